from __future__ import annotations

import pytest

from surfaceflock.rng import DeterministicRng
from surfaceflock.sim.core.agent import ForceRecord, RepolarizationSchedule
from surfaceflock.sim.core.trail import TrajectoryHistory


def test_trail_evicts_oldest():
    trail = TrajectoryHistory(3)
    for k in range(5):
        trail.append((float(k), 0.0, 0.0))
    assert len(trail) == 3
    assert trail.to_list() == [(2.0, 0.0, 0.0), (3.0, 0.0, 0.0), (4.0, 0.0, 0.0)]
    assert trail.latest() == (4.0, 0.0, 0.0)
    assert trail.capacity == 3


def test_trail_clear_and_empty_latest():
    trail = TrajectoryHistory(2)
    assert trail.latest() is None
    trail.append((1, 2, 3))
    assert list(trail) == [(1.0, 2.0, 3.0)]
    trail.clear()
    assert len(trail) == 0


def test_trail_rejects_zero_capacity():
    with pytest.raises(ValueError):
        TrajectoryHistory(0)


def test_schedule_is_due_cyclically():
    schedule = RepolarizationSchedule(offset=2, period=5)
    due = [step for step in range(16) if schedule.is_due(step)]
    assert due == [2, 7, 12]


@pytest.mark.parametrize("offset,period", [(0, 0), (5, 5), (-1, 3)])
def test_schedule_validates(offset, period):
    with pytest.raises(ValueError):
        RepolarizationSchedule(offset=offset, period=period)


def test_force_record_total():
    record = ForceRecord(repulsion=(1.0, 0.0, 0.0), polarity=(0.0, 2.0, 0.0), alignment=(0.5, 0.5, -1.0))
    assert record.total() == (1.5, 2.5, -1.0)
    assert ForceRecord().total() == (0.0, 0.0, 0.0)


def test_rng_reset_replays_sequence():
    rng = DeterministicRng(42)
    first = [rng.next_float(), rng.next_angle(), rng.next_int(10), rng.next_gaussian(0.0, 1.0)]
    rng.reset()
    second = [rng.next_float(), rng.next_angle(), rng.next_int(10), rng.next_gaussian(0.0, 1.0)]
    assert first == second
    assert rng.seed == 42


def test_rng_zero_stdev_returns_mean():
    assert DeterministicRng(1).next_gaussian(0.75, 0.0) == 0.75
