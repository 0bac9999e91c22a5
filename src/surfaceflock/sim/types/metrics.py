from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class StepMetrics:
    tick: int
    time: float
    population: int
    mean_speed: float
    polarization: float
    max_constraint_value: float
    max_surface_distance: float
    neighbor_checks: int
    tick_duration_ms: float = 0.0
