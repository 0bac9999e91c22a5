from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple

from pygame.math import Vector3

from ..utils.math3d import ZERO3, Vec3Tuple, _sum_xyz
from .trail import TrajectoryHistory


@dataclass(frozen=True, slots=True)
class ForceRecord:
    """Contributions one agent accumulated on a single step."""

    repulsion: Vec3Tuple = ZERO3
    polarity: Vec3Tuple = ZERO3
    alignment: Vec3Tuple = ZERO3

    def total(self) -> Vec3Tuple:
        return _sum_xyz((self.repulsion, self.polarity, self.alignment))


@dataclass(frozen=True, slots=True)
class RepolarizationSchedule:
    """Cyclic schedule: due on every step whose index is ``offset`` modulo ``period``."""

    offset: int
    period: int

    def __post_init__(self) -> None:
        if self.period < 1:
            raise ValueError(f"period must be at least 1, got {self.period}")
        if not 0 <= self.offset < self.period:
            raise ValueError(f"offset must lie in [0, {self.period}), got {self.offset}")

    def is_due(self, step_index: int) -> bool:
        return step_index % self.period == self.offset


@dataclass(slots=True)
class Agent:
    id: int
    position: Vector3
    heading: float
    schedule: RepolarizationSchedule
    trail: TrajectoryHistory
    color: Tuple[float, float, float] = (1.0, 1.0, 1.0)
    velocity: Vector3 = field(default_factory=Vector3)
    previous: ForceRecord = field(default_factory=ForceRecord)
