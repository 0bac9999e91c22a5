from __future__ import annotations

import argparse
import csv
import json
import math
from pathlib import Path
from typing import Optional

from ..config import SimulationConfig
from ..logging import logger, setup_json_logfile, setup_logfile
from ..sim.core.world import World
from ..sim.types.metrics import StepMetrics

_HEADER = [
    "tick",
    "time",
    "population",
    "mean_speed",
    "polarization",
    "max_constraint_value",
    "max_surface_distance",
    "neighbor_checks",
    "tick_ms",
]


def _format_row(metrics: StepMetrics, tick_ms: float) -> list[object]:
    return [
        metrics.tick,
        f"{metrics.time:.4f}",
        metrics.population,
        f"{metrics.mean_speed:.6f}",
        f"{metrics.polarization:.6f}",
        f"{metrics.max_constraint_value:.6e}",
        f"{metrics.max_surface_distance:.6e}",
        metrics.neighbor_checks,
        f"{tick_ms:.3f}",
    ]


def _percentile(sorted_values: list[float], percentile: float) -> float:
    if not sorted_values:
        return 0.0
    if len(sorted_values) == 1:
        return float(sorted_values[0])
    pos = (len(sorted_values) - 1) * percentile
    low = int(math.floor(pos))
    high = int(math.ceil(pos))
    if low == high:
        return float(sorted_values[low])
    weight = pos - low
    return float(sorted_values[low] + (sorted_values[high] - sorted_values[low]) * weight)


def _summary_stats(values: list[float]) -> dict[str, float]:
    if not values:
        return {"min": 0.0, "max": 0.0, "avg": 0.0, "p50": 0.0, "p90": 0.0, "p99": 0.0}
    sorted_values = sorted(values)
    return {
        "min": float(sorted_values[0]),
        "max": float(sorted_values[-1]),
        "avg": float(sum(values) / len(values)),
        "p50": _percentile(sorted_values, 0.50),
        "p90": _percentile(sorted_values, 0.90),
        "p99": _percentile(sorted_values, 0.99),
    }


def load_run_config(config_path: Optional[Path], seed: Optional[int], mesh_cache: Optional[Path] = None) -> SimulationConfig:
    config = SimulationConfig.from_yaml(config_path) if config_path else SimulationConfig()
    if seed is not None:
        config.seed = seed
    if mesh_cache is not None:
        config.mesh.cache_path = mesh_cache
    return config.validate()


def run_headless(
    steps: Optional[int],
    seed: Optional[int],
    log_path: Optional[Path],
    deterministic_log: bool = False,
    config_path: Optional[Path] = None,
    summary_path: Optional[Path] = None,
    mesh_cache: Optional[Path] = None,
) -> list[StepMetrics]:
    config = load_run_config(config_path, seed, mesh_cache)
    world = World(config)
    total_steps = config.step_count if steps is None else steps
    logger.info(f"Running {total_steps} steps with {config.agent_count} agents (seed={config.seed})")

    writer = None
    csv_file = None
    if log_path:
        csv_file = Path(log_path).open("w", newline="")
        writer = csv.writer(csv_file)
        writer.writerow(_HEADER)

    history: list[StepMetrics] = []
    try:
        for _ in range(total_steps):
            metrics = world.step()
            history.append(metrics)
            if writer:
                writer.writerow(_format_row(metrics, 0.0 if deterministic_log else metrics.tick_duration_ms))
    finally:
        if csv_file:
            csv_file.close()

    if summary_path:
        summary = {
            "steps": total_steps,
            "seed": config.seed,
            "agents": config.agent_count,
            "simulated_time": world.time,
            "deterministic_log": deterministic_log,
            "tick_ms": _summary_stats([0.0 if deterministic_log else m.tick_duration_ms for m in history]),
            "mean_speed": _summary_stats([m.mean_speed for m in history]),
            "polarization": _summary_stats([m.polarization for m in history]),
            "max_surface_distance": _summary_stats([m.max_surface_distance for m in history]),
            "final": {
                "polarization": history[-1].polarization if history else 0.0,
                "max_surface_distance": history[-1].max_surface_distance if history else 0.0,
            },
        }
        Path(summary_path).write_text(json.dumps(summary, indent=2))
    logger.info(f"Finished at t={world.time:.3f}")
    return history


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Headless simulation of agents on a torus")
    parser.add_argument("--config", type=Path, default=None, help="YAML configuration file")
    parser.add_argument("--steps", type=int, default=None, help="Number of steps (default: until total_time)")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--log", type=Path, default=None, help="CSV file to write per-step metrics")
    parser.add_argument("--summary", type=Path, default=None, help="Optional JSON file for run summary stats")
    parser.add_argument("--mesh-cache", type=Path, default=None, help="Mesh bundle (.npz) to load or create")
    parser.add_argument("--log-file", type=Path, default=None, help="Also write log messages to this file")
    parser.add_argument("--log-json", type=Path, default=None, help="Also write log messages as JSON lines")
    parser.add_argument(
        "--deterministic-log",
        action="store_true",
        help="Write deterministic CSV (tick_ms is forced to 0.000 so identical seeds match).",
    )
    args = parser.parse_args(argv)
    sink_ids = []
    if args.log_file:
        sink_ids.append(setup_logfile(args.log_file))
    if args.log_json:
        sink_ids.append(setup_json_logfile(args.log_json))
    try:
        run_headless(
            args.steps,
            args.seed,
            args.log,
            deterministic_log=args.deterministic_log,
            config_path=args.config,
            summary_path=args.summary,
            mesh_cache=args.mesh_cache,
        )
    finally:
        for sink_id in sink_ids:
            logger.remove(sink_id)


if __name__ == "__main__":
    main()
