from __future__ import annotations

import math
from typing import Sequence, Tuple

import numpy as np
from pygame.math import Vector3
from scipy.linalg import null_space

from ...config import AlignmentConfig, PolarityConfig, RepulsionConfig
from ...rng import DeterministicRng
from ..core.agent import Agent
from ..core.errors import DegenerateSurfaceError
from ..core.surface import SurfaceSample
from ..utils.math3d import Vec3Tuple


def repulsion(index: int, positions: Sequence[Vector3], config: RepulsionConfig) -> Vector3:
    """Gaussian pairwise push away from every other agent."""
    xi = positions[index]
    two_sigma_sq = 2.0 * config.sigma * config.sigma
    squared = config.kernel == "squared"
    alpha = config.alpha
    acc_x = acc_y = acc_z = 0.0
    for j, xj in enumerate(positions):
        if j == index:
            continue
        dx = xi.x - xj.x
        dy = xi.y - xj.y
        dz = xi.z - xj.z
        dist_sq = dx * dx + dy * dy + dz * dz
        exponent = dist_sq if squared else math.sqrt(dist_sq)
        weight = alpha * math.exp(-exponent / two_sigma_sq)
        acc_x += dx * weight
        acc_y += dy * weight
        acc_z += dz * weight
    return Vector3(acc_x, acc_y, acc_z)


def tangent_basis(sample: SurfaceSample) -> Tuple[Vector3, Vector3]:
    grad = sample.grad_x
    stacked = np.array([[grad.x, grad.y, grad.z], [0.0, 0.0, 0.0], [0.0, 0.0, 0.0]], dtype=np.float64)
    basis = null_space(stacked)
    if basis.shape[1] != 2:
        raise DegenerateSurfaceError(
            f"tangent space at gradient {tuple(grad)} has dimension {basis.shape[1]}, expected 2"
        )
    return Vector3(*basis[:, 0]), Vector3(*basis[:, 1])


def random_polarity(
    agent: Agent,
    sample: SurfaceSample,
    step_index: int,
    config: PolarityConfig,
    rng: DeterministicRng,
) -> Vector3:
    """Persistent random walk in the tangent plane.

    The heading is re-drawn only on the agent's scheduled steps; the tangent
    basis is recomputed every step since the agent moves.
    """
    if agent.schedule.is_due(step_index):
        agent.heading += rng.next_gaussian(0.0, config.heading_stdev)
    t1, t2 = tangent_basis(sample)
    return (t1 * math.cos(agent.heading) + t2 * math.sin(agent.heading)) * config.amplitude


def alignment_weight(distance: float, config: AlignmentConfig) -> float:
    return config.k / (config.sigma * config.sigma + distance * distance) ** config.gamma


def flocking_alignment(
    index: int,
    positions: Sequence[Vector3],
    lagged_totals: Sequence[Vec3Tuple],
    neighbors: Sequence[int],
    config: AlignmentConfig,
    time_step: float,
) -> Vector3:
    """Cucker-Smale pull toward neighbors' previous-step force totals."""
    if not neighbors:
        return Vector3()
    xi = positions[index]
    pi_x, pi_y, pi_z = lagged_totals[index]
    acc_x = acc_y = acc_z = 0.0
    for j in neighbors:
        weight = alignment_weight(xi.distance_to(positions[j]), config)
        pj_x, pj_y, pj_z = lagged_totals[j]
        acc_x += weight * (pj_x - pi_x)
        acc_y += weight * (pj_y - pi_y)
        acc_z += weight * (pj_z - pi_z)
    scale = time_step / len(neighbors)
    return Vector3(acc_x * scale, acc_y * scale, acc_z * scale)
