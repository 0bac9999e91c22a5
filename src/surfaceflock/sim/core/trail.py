from __future__ import annotations

from collections import deque
from typing import Deque, Iterator, List

from ..utils.math3d import Vec3Tuple


class TrajectoryHistory:
    """The last ``capacity`` positions of one agent, oldest first."""

    __slots__ = ("_points",)

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f"trajectory capacity must be at least 1, got {capacity}")
        self._points: Deque[Vec3Tuple] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._points.maxlen or 0

    def append(self, point: Vec3Tuple) -> None:
        self._points.append((float(point[0]), float(point[1]), float(point[2])))

    def clear(self) -> None:
        self._points.clear()

    def latest(self) -> Vec3Tuple | None:
        return self._points[-1] if self._points else None

    def to_list(self) -> List[Vec3Tuple]:
        return list(self._points)

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[Vec3Tuple]:
        return iter(self._points)
