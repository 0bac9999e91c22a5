from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List

from .metrics import StepMetrics


@dataclass(slots=True)
class Snapshot:
    tick: int
    time: float
    metrics: StepMetrics | None
    agents: List[Dict[str, Any]]
    surface: "SnapshotSurface"
    metadata: "SnapshotMetadata"


@dataclass(slots=True)
class SnapshotSurface:
    x: List[List[float]]
    y: List[List[float]]
    z: List[List[float]]
    gaussian_curvature: List[List[float]]
    mean_curvature: List[List[float]]


@dataclass(slots=True)
class SnapshotMetadata:
    minor_radius: float
    major_radius: float
    sim_dt: float
    total_time: float
    seed: int
    config_version: str
