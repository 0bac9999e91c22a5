from __future__ import annotations

from typing import Tuple

from pygame.math import Vector3

from ..core.errors import DegenerateSurfaceError
from ..core.surface import SurfaceSample

_MIN_GRADIENT_NORM_SQ = 1e-24


def constraint_correction(
    force: Vector3,
    sample: SurfaceSample,
    shape_rates: Tuple[float, float],
    stiffness: float,
) -> float:
    norm_sq = sample.grad_norm_sq
    if norm_sq < _MIN_GRADIENT_NORM_SQ:
        raise DegenerateSurfaceError(f"surface gradient vanishes (|dF/dX|^2 = {norm_sq:.3e}); cannot project")
    shape_term = sample.grad_q[0] * shape_rates[0] + sample.grad_q[1] * shape_rates[1]
    return (sample.grad_x.dot(force) + shape_term + stiffness * sample.value) / norm_sq


def project_velocity(
    force: Vector3,
    sample: SurfaceSample,
    shape_rates: Tuple[float, float],
    stiffness: float,
) -> Vector3:
    """Remove the normal component of ``force`` and pull back toward F = 0 in one Newton step."""
    correction = constraint_correction(force, sample, shape_rates, stiffness)
    return force - sample.grad_x * correction


def euler_step(position: Vector3, velocity: Vector3, time_step: float) -> Vector3:
    return position + velocity * time_step
