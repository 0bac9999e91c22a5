from __future__ import annotations

import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from .sim.core.errors import ConfigError

REPULSION_KERNELS = ("squared", "unsquared")


@dataclass
class SurfaceConfig:
    minor_radius: float = 2.0
    major_radius: float = 5.0
    # Externally imposed (dr/dt, dR/dt); zero keeps the surface static.
    shape_rates: tuple[float, float] = (0.0, 0.0)
    stiffness: float = 1.0


@dataclass
class RepulsionConfig:
    enabled: bool = False
    alpha: float = 2.0
    sigma: float = 0.5
    kernel: str = "squared"


@dataclass
class PolarityConfig:
    enabled: bool = True
    amplitude: float = 0.5
    heading_stdev: float = math.pi / 4.0
    period: int = 10


@dataclass
class AlignmentConfig:
    enabled: bool = True
    k: float = 2.0
    sigma: float = 1.0
    gamma: float = 1.5
    neighbor_threshold: float = 5.0
    use_geodesic_neighbors: bool = False


@dataclass
class MeshConfig:
    theta_count: int = 80
    phi_count: int = 40
    bucket_size: int = 10
    cache_path: Optional[Path] = None
    preview_theta_count: int = 36
    preview_phi_count: int = 18


@dataclass
class SimulationConfig:
    agent_count: int = 50
    time_step: float = 0.1
    total_time: float = 60.0
    seed: int = 4987
    trail_length: int = 40
    config_version: str = "v1"
    surface: SurfaceConfig = field(default_factory=SurfaceConfig)
    repulsion: RepulsionConfig = field(default_factory=RepulsionConfig)
    polarity: PolarityConfig = field(default_factory=PolarityConfig)
    alignment: AlignmentConfig = field(default_factory=AlignmentConfig)
    mesh: MeshConfig = field(default_factory=MeshConfig)

    @property
    def step_count(self) -> int:
        if self.time_step <= 0.0:
            return 0
        # Tolerate float noise so 60 / 0.1 yields 600 rather than 601.
        return max(0, int(math.ceil(self.total_time / self.time_step - 1e-9)))

    @staticmethod
    def from_yaml(path: Path) -> "SimulationConfig":
        data = yaml.safe_load(Path(path).read_text()) or {}
        return load_config(data)

    def validate(self) -> "SimulationConfig":
        surface = self.surface
        if self.agent_count < 1:
            raise ConfigError(f"agent_count must be at least 1, got {self.agent_count}")
        if self.time_step <= 0.0:
            raise ConfigError(f"time_step must be positive, got {self.time_step}")
        if self.total_time < 0.0:
            raise ConfigError(f"total_time must be non-negative, got {self.total_time}")
        if self.trail_length < 1:
            raise ConfigError(f"trail_length must be at least 1, got {self.trail_length}")
        if surface.minor_radius <= 0.0 or surface.major_radius <= 0.0:
            raise ConfigError(
                f"torus radii must be positive, got r={surface.minor_radius}, R={surface.major_radius}"
            )
        if surface.minor_radius >= surface.major_radius:
            raise ConfigError(
                "minor_radius must be smaller than major_radius for a non-self-intersecting torus, "
                f"got r={surface.minor_radius}, R={surface.major_radius}"
            )
        if len(surface.shape_rates) != 2:
            raise ConfigError(f"shape_rates must hold two values, got {surface.shape_rates!r}")
        if self.repulsion.sigma <= 0.0:
            raise ConfigError(f"repulsion.sigma must be positive, got {self.repulsion.sigma}")
        if self.repulsion.kernel not in REPULSION_KERNELS:
            raise ConfigError(
                f"repulsion.kernel must be one of {', '.join(REPULSION_KERNELS)}, got {self.repulsion.kernel!r}"
            )
        if self.polarity.period < 1:
            raise ConfigError(f"polarity.period must be at least 1, got {self.polarity.period}")
        if self.polarity.heading_stdev < 0.0:
            raise ConfigError(f"polarity.heading_stdev must be non-negative, got {self.polarity.heading_stdev}")
        if self.alignment.sigma <= 0.0:
            raise ConfigError(f"alignment.sigma must be positive, got {self.alignment.sigma}")
        if self.alignment.neighbor_threshold < 0.0:
            raise ConfigError(
                f"alignment.neighbor_threshold must be non-negative, got {self.alignment.neighbor_threshold}"
            )
        mesh = self.mesh
        for name in ("theta_count", "phi_count", "preview_theta_count", "preview_phi_count"):
            if getattr(mesh, name) < 3:
                raise ConfigError(f"mesh.{name} must be at least 3, got {getattr(mesh, name)}")
        if mesh.bucket_size < 1:
            raise ConfigError(f"mesh.bucket_size must be at least 1, got {mesh.bucket_size}")
        return self


def load_config(raw: dict) -> SimulationConfig:
    def _pair(
        name: str, value: tuple[float, float] | list[float] | None, default: tuple[float, float]
    ) -> tuple[float, float]:
        if value is None:
            return default
        if not isinstance(value, (tuple, list)) or len(value) != 2:
            raise ConfigError(f"{name} must be a pair of numbers, got {value!r}")
        try:
            return (float(value[0]), float(value[1]))
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"{name} must be a pair of numbers, got {value!r}") from exc

    surface_raw = dict(raw.get("surface", {}))
    surface = SurfaceConfig(
        shape_rates=_pair("surface.shape_rates", surface_raw.pop("shape_rates", None), (0.0, 0.0)),
        **surface_raw,
    )
    repulsion = RepulsionConfig(**raw.get("repulsion", {}))
    polarity = PolarityConfig(**raw.get("polarity", {}))
    alignment = AlignmentConfig(**raw.get("alignment", {}))
    mesh_raw = dict(raw.get("mesh", {}))
    cache_path = mesh_raw.pop("cache_path", None)
    mesh = MeshConfig(cache_path=Path(cache_path) if cache_path else None, **mesh_raw)
    sim_values = {
        k: v for k, v in raw.items() if k not in {"surface", "repulsion", "polarity", "alignment", "mesh"}
    }
    return SimulationConfig(
        surface=surface,
        repulsion=repulsion,
        polarity=polarity,
        alignment=alignment,
        mesh=mesh,
        **sim_values,
    )
