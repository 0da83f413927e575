"""Tests for SpatialMemoryStream."""

import pytest

from zooverse.memory import SpatialMemoryStream
from zooverse.schemas import Position


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def test_repeat_discovery_merges_nearby():
    clock = FakeClock()
    memory = SpatialMemoryStream(clock=clock)

    first = memory.add_discovery("a1", "water", "pond", Position(x=0))
    clock.now += 60
    merged = memory.add_discovery("a1", "water", "pond again", Position(x=2))

    assert merged.id == first.id
    assert merged.reliability == pytest.approx(0.7)
    assert merged.last_visited == clock.now
    assert merged.description == "pond again"
    assert len(memory.discoveries("a1")) == 1

    memory.add_discovery("a1", "food", "bush", Position(x=1))
    memory.add_discovery("a1", "water", "lake", Position(x=10))
    assert len(memory.discoveries("a1")) == 3


def test_relevance_filters_distance_and_ranks_by_score():
    clock = FakeClock()
    memory = SpatialMemoryStream(clock=clock)
    memory.add_discovery("a1", "water", "old pond", Position(x=2))
    clock.now += 100
    memory.add_discovery("a1", "food", "fresh bush", Position(x=5))
    memory.add_discovery("a1", "stone", "far quarry", Position(x=40))

    relevant = memory.get_relevant("a1", Position())

    # old pond scores 2 + 100/10 = 12; fresh bush scores 5
    assert [m.description for m in relevant] == ["fresh bush", "old pond"]
    assert memory.get_relevant("a1", Position(), limit=1)[0].description == "fresh bush"
    assert memory.get_relevant("someone-else", Position()) == []


def test_reliability_decays_with_time():
    clock = FakeClock()
    memory = SpatialMemoryStream(clock=clock)
    record = memory.add_discovery("a1", "food", "bush", Position(), reliability=0.6)

    clock.now += 3600
    assert memory.effective_reliability(record) == pytest.approx(0.4)

    clock.now += 3600
    assert memory.effective_reliability(record) == pytest.approx(0.2)
    assert memory.get_relevant("a1", Position()) == []


def test_cleanup_forgets_faded_discoveries():
    clock = FakeClock()
    memory = SpatialMemoryStream(clock=clock)
    memory.add_discovery("a1", "food", "stale", Position(), reliability=0.3)
    memory.add_discovery("a1", "water", "solid", Position(x=20), reliability=1.0)

    clock.now += 3600
    forgotten = memory.cleanup("a1")

    assert forgotten == 1
    assert [m.description for m in memory.discoveries("a1")] == ["solid"]


def test_discoveries_are_capped():
    clock = FakeClock()
    memory = SpatialMemoryStream(clock=clock)
    for i in range(51):
        clock.now += 1
        memory.add_discovery("a1", "food", f"bush {i}", Position(x=i * 10))

    kept = memory.discoveries("a1")
    assert len(kept) == 30
    assert kept[0].description == "bush 50"


def test_failures_are_bounded_and_cleared():
    memory = SpatialMemoryStream(clock=FakeClock())
    for i in range(25):
        memory.record_failure("a1", "harvesting", f"attempt {i}", Position())

    failures = memory.failures("a1")
    assert len(failures) == 20
    assert failures[-1].description == "attempt 24"
    assert memory.get_relevant("a1", Position(), kind="failure", limit=3)

    memory.clear_agent("a1")
    assert memory.failures("a1") == []
    assert memory.discoveries("a1") == []
