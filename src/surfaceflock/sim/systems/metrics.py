from __future__ import annotations

import math
from typing import List, Sequence

from pygame.math import Vector3

from ..core.agent import Agent
from ..core.surface import TorusSurface
from ..types.metrics import StepMetrics


def polarization(velocities: Sequence[Vector3]) -> float:
    """|mean velocity| / mean |velocity|: 1 for a fully aligned flock, near 0 for a disordered one."""
    if not velocities:
        return 0.0
    speed_sum = 0.0
    sum_x = sum_y = sum_z = 0.0
    for velocity in velocities:
        speed_sum += velocity.length()
        sum_x += velocity.x
        sum_y += velocity.y
        sum_z += velocity.z
    if speed_sum <= 1e-12:
        return 0.0
    return math.sqrt(sum_x * sum_x + sum_y * sum_y + sum_z * sum_z) / speed_sum


def create_metrics(
    tick: int,
    time: float,
    agents: List[Agent],
    surface: TorusSurface,
    neighbor_checks: int,
    duration_ms: float,
) -> StepMetrics:
    population = len(agents)
    velocities = [agent.velocity for agent in agents]
    max_value = 0.0
    max_distance = 0.0
    for agent in agents:
        max_value = max(max_value, abs(surface.value(agent.position)))
        max_distance = max(max_distance, abs(surface.distance_to_surface(agent.position)))
    mean_speed = sum(v.length() for v in velocities) / population if population else 0.0
    return StepMetrics(
        tick=tick,
        time=time,
        population=population,
        mean_speed=mean_speed,
        polarization=polarization(velocities),
        max_constraint_value=max_value,
        max_surface_distance=max_distance,
        neighbor_checks=neighbor_checks,
        tick_duration_ms=duration_ms,
    )
