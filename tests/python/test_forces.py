from __future__ import annotations

import math

import pytest
from pygame.math import Vector3
from pytest import approx

from surfaceflock.config import AlignmentConfig, PolarityConfig, RepulsionConfig
from surfaceflock.rng import DeterministicRng
from surfaceflock.sim.core.agent import Agent, RepolarizationSchedule
from surfaceflock.sim.core.errors import DegenerateSurfaceError
from surfaceflock.sim.core.surface import TorusSurface
from surfaceflock.sim.core.trail import TrajectoryHistory
from surfaceflock.sim.systems import forces

SURFACE = TorusSurface(2.0, 5.0)


def _agent(offset: int = 0, period: int = 10, heading: float = 0.0) -> Agent:
    return Agent(
        id=0,
        position=SURFACE.point_at(0.3, 1.1),
        heading=heading,
        schedule=RepolarizationSchedule(offset=offset, period=period),
        trail=TrajectoryHistory(4),
    )


def test_repulsion_single_agent_is_zero():
    push = forces.repulsion(0, [SURFACE.point_at(0.0, 0.0)], RepulsionConfig(enabled=True))
    assert tuple(push) == (0.0, 0.0, 0.0)


def test_repulsion_pair_matches_gaussian_kernel():
    config = RepulsionConfig(enabled=True, alpha=2.0, sigma=0.5)
    first = SURFACE.point_at(0.0, 0.0)
    second = SURFACE.point_at(0.0, 0.1)
    push = forces.repulsion(0, [first, second], config)

    offset = first - second
    weight = 2.0 * math.exp(-offset.length_squared() / (2.0 * 0.25))
    expected = offset * weight
    for axis in range(3):
        assert push[axis] == approx(expected[axis], rel=1e-12, abs=1e-15)
    assert push.length() == approx(weight * offset.length())
    # Newton's third law for the pair.
    back = forces.repulsion(1, [first, second], config)
    assert tuple(back) == approx(tuple(-push))


def test_unsquared_kernel_uses_plain_distance():
    config = RepulsionConfig(enabled=True, alpha=2.0, sigma=0.5, kernel="unsquared")
    first = Vector3(7.0, 0.0, 0.0)
    second = Vector3(6.0, 0.0, 0.0)
    push = forces.repulsion(0, [first, second], config)
    assert push.x == approx(2.0 * math.exp(-1.0 / 0.5))
    assert push.y == 0.0 and push.z == 0.0


def test_repulsion_sums_over_all_others():
    config = RepulsionConfig(enabled=True)
    positions = [Vector3(0.0, 0.0, 0.0), Vector3(0.5, 0.0, 0.0), Vector3(-0.5, 0.0, 0.0)]
    # Symmetric neighbors cancel.
    assert forces.repulsion(0, positions, config).length() == approx(0.0, abs=1e-15)


def test_tangent_basis_is_orthonormal_and_tangent():
    sample = SURFACE.evaluate(SURFACE.point_at(0.7, 2.3))
    t1, t2 = forces.tangent_basis(sample)
    grad = sample.grad_x
    scale = grad.length()
    assert t1.length() == approx(1.0)
    assert t2.length() == approx(1.0)
    assert t1.dot(t2) == approx(0.0, abs=1e-12)
    assert t1.dot(grad) == approx(0.0, abs=1e-12 * scale)
    assert t2.dot(grad) == approx(0.0, abs=1e-12 * scale)


def test_tangent_basis_rejects_vanishing_gradient():
    sample = SURFACE.evaluate(Vector3(0.0, 0.0, 0.0))
    with pytest.raises(DegenerateSurfaceError):
        forces.tangent_basis(sample)


def test_polarity_has_configured_amplitude_and_is_tangent():
    agent = _agent(offset=5)
    sample = SURFACE.evaluate(agent.position)
    walk = forces.random_polarity(agent, sample, 0, PolarityConfig(amplitude=0.5), DeterministicRng(1))
    assert walk.length() == approx(0.5)
    assert walk.dot(sample.grad_x) == approx(0.0, abs=1e-10 * sample.grad_x.length())


def test_heading_changes_only_on_scheduled_steps():
    agent = _agent(offset=3, period=10, heading=0.2)
    sample = SURFACE.evaluate(agent.position)
    rng = DeterministicRng(9)
    config = PolarityConfig()
    for step in range(35):
        before = agent.heading
        forces.random_polarity(agent, sample, step, config, rng)
        if step % 10 == 3:
            assert agent.heading != before
        else:
            assert agent.heading == before


def test_zero_stdev_keeps_heading():
    agent = _agent(offset=0, heading=1.25)
    sample = SURFACE.evaluate(agent.position)
    forces.random_polarity(agent, sample, 0, PolarityConfig(heading_stdev=0.0), DeterministicRng(2))
    assert agent.heading == 1.25


def test_alignment_weight():
    config = AlignmentConfig(k=2.0, sigma=1.0, gamma=1.5)
    assert forces.alignment_weight(0.0, config) == approx(2.0)
    assert forces.alignment_weight(1.0, config) == approx(2.0 / 2.0**1.5)


def test_alignment_is_zero_at_consensus():
    positions = [Vector3(7.0, 0.0, 0.0), Vector3(0.0, 7.0, 0.0), Vector3(-3.0, 0.0, 0.0)]
    lagged = [(0.3, -0.2, 0.1)] * 3
    pull = forces.flocking_alignment(0, positions, lagged, [1, 2], AlignmentConfig(), 0.1)
    assert tuple(pull) == (0.0, 0.0, 0.0)


def test_alignment_without_neighbors_is_zero():
    positions = [Vector3(7.0, 0.0, 0.0)]
    pull = forces.flocking_alignment(0, positions, [(1.0, 0.0, 0.0)], [], AlignmentConfig(), 0.1)
    assert tuple(pull) == (0.0, 0.0, 0.0)


def test_alignment_averages_weighted_differences():
    config = AlignmentConfig(k=2.0, sigma=1.0, gamma=1.5)
    positions = [Vector3(0.0, 0.0, 0.0), Vector3(1.0, 0.0, 0.0), Vector3(0.0, 2.0, 0.0)]
    lagged = [(0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 0.0, 1.0)]
    pull = forces.flocking_alignment(0, positions, lagged, [1, 2], config, 0.1)
    w1 = 2.0 / 2.0**1.5
    w2 = 2.0 / 5.0**1.5
    assert pull.x == approx(0.1 * w1 / 2.0)
    assert pull.y == approx(0.0)
    assert pull.z == approx(0.1 * w2 / 2.0)


def test_alignment_only_reads_listed_neighbors():
    positions = [Vector3(0.0, 0.0, 0.0), Vector3(1.0, 0.0, 0.0), Vector3(0.0, 2.0, 0.0)]
    lagged = [(0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 0.0, 1.0)]
    pull = forces.flocking_alignment(0, positions, lagged, [2], AlignmentConfig(), 0.1)
    assert pull.x == 0.0
    assert pull.z > 0.0
