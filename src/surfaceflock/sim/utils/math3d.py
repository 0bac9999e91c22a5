from __future__ import annotations

from typing import Iterable, Tuple

from pygame.math import Vector3

Vec3Tuple = Tuple[float, float, float]

ZERO3: Vec3Tuple = (0.0, 0.0, 0.0)


def as_tuple(vector: Vector3) -> Vec3Tuple:
    return (vector.x, vector.y, vector.z)


def _sum_xyz(vectors: Iterable[Vec3Tuple]) -> Vec3Tuple:
    x = y = z = 0.0
    for vx, vy, vz in vectors:
        x += vx
        y += vy
        z += vz
    return (x, y, z)
