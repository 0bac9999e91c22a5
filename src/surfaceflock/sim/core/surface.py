from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Protocol, Tuple

import numpy as np
from pygame.math import Vector3

from ...config import SurfaceConfig
from ...rng import DeterministicRng


@dataclass(frozen=True, slots=True)
class SurfaceSample:
    """Constraint value and derivatives at one point.

    ``grad_x`` is the unnormalized surface normal; ``grad_q`` is the sensitivity
    to the shape parameters and only matters when the shape is driven.
    """

    value: float
    grad_x: Vector3
    grad_q: Tuple[float, float]

    @property
    def grad_norm_sq(self) -> float:
        return self.grad_x.length_squared()


class ImplicitSurface(Protocol):
    def evaluate(self, position: Vector3) -> SurfaceSample: ...

    def shape(self) -> Tuple[float, ...]: ...


class TorusSurface:
    """Torus centered on the origin with its axis along z."""

    def __init__(self, minor_radius: float, major_radius: float):
        self.minor_radius = float(minor_radius)
        self.major_radius = float(major_radius)

    @classmethod
    def from_config(cls, config: SurfaceConfig) -> "TorusSurface":
        return cls(config.minor_radius, config.major_radius)

    def shape(self) -> Tuple[float, float]:
        return (self.minor_radius, self.major_radius)

    def evaluate(self, position: Vector3) -> SurfaceSample:
        r = self.minor_radius
        big_r = self.major_radius
        x, y, z = position.x, position.y, position.z
        rho_sq = x * x + y * y
        s = rho_sq + z * z + big_r * big_r - r * r
        value = s * s - 4.0 * big_r * big_r * rho_sq
        radial = 4.0 * s - 8.0 * big_r * big_r
        grad_x = Vector3(radial * x, radial * y, 4.0 * s * z)
        grad_q = (-4.0 * s * r, 4.0 * s * big_r - 8.0 * big_r * rho_sq)
        return SurfaceSample(value=value, grad_x=grad_x, grad_q=grad_q)

    def value(self, position: Vector3) -> float:
        return self.evaluate(position).value

    def point_at(self, theta: float, phi: float) -> Vector3:
        ring = self.major_radius + self.minor_radius * math.cos(theta)
        return Vector3(ring * math.cos(phi), ring * math.sin(phi), self.minor_radius * math.sin(theta))

    def embed(self, theta: np.ndarray, phi: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        ring = self.major_radius + self.minor_radius * np.cos(theta)
        return ring * np.cos(phi), ring * np.sin(phi), self.minor_radius * np.sin(theta)

    def sample_point(self, rng: DeterministicRng) -> Vector3:
        # Accept with probability proportional to the local area element so
        # points are uniform over the surface, not over parameter space.
        r = self.minor_radius
        big_r = self.major_radius
        while True:
            theta = 2.0 * math.pi * rng.next_float()
            phi = 2.0 * math.pi * rng.next_float()
            threshold = (big_r + r * math.cos(theta)) / (big_r + r)
            if rng.next_float() < threshold:
                return self.point_at(theta, phi)

    def distance_to_surface(self, position: Vector3) -> float:
        rho = math.hypot(position.x, position.y)
        return math.hypot(rho - self.major_radius, position.z) - self.minor_radius

    def gaussian_curvature(self, theta: np.ndarray) -> np.ndarray:
        r = self.minor_radius
        return np.cos(theta) / (r * (self.major_radius + r * np.cos(theta)))

    def mean_curvature(self, theta: np.ndarray) -> np.ndarray:
        r = self.minor_radius
        return (self.major_radius + 2.0 * r * np.cos(theta)) / (2.0 * r * (self.major_radius + r * np.cos(theta)))
