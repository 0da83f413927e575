"""Tests for agent creation, aging and stat degradation."""

import random

import pytest

from zooverse.health import assess_health
from zooverse.lifecycle import (
    blend_traits,
    compute_age,
    create_agent,
    degrade_stats,
    inventory_capacity,
    life_stage,
    random_traits,
    survival_priority,
)
from zooverse.schemas import Agent, AgentStats, GeneticTraits, STAT_NAMES


def test_create_agent_starts_young_and_healthy_within_bounds():
    rng = random.Random(3)
    agent = create_agent(rng=rng, now=500.0)

    assert agent.is_alive
    assert agent.age == 0
    assert agent.birth_time == 500.0
    assert agent.last_health_check == 500.0
    assert 3600 <= agent.lifespan <= 7200
    assert 20 <= agent.stats.health <= 100
    assert agent.stats.hunger <= 80
    assert agent.inventory.items == []
    assert agent.inventory.max_capacity == inventory_capacity(agent.traits)


def test_inventory_capacity_has_a_floor():
    weak = GeneticTraits(strength=5, size=0.5)
    strong = GeneticTraits(strength=100, size=2.0)

    assert inventory_capacity(weak) == 5
    assert inventory_capacity(strong) == 40


def test_blend_traits_stays_in_range_and_records_parents():
    rng = random.Random(11)
    first, second = random_traits(rng), random_traits(rng)
    first = first.model_copy(update={"generation": 2})

    child = blend_traits(first, second, rng, ("a", "b"))

    assert child.generation == 3
    assert child.parent_ids == ("a", "b")
    for name in ("intelligence", "agility", "strength", "social", "curiosity", "resilience"):
        value = getattr(child, name)
        assert 1 <= value <= 100
        assert abs(value - (getattr(first, name) + getattr(second, name)) / 2) <= 10 + 1e-9


def test_compute_age_is_fraction_of_lifespan():
    agent = Agent(name="Tick", birth_time=0.0, lifespan=1000.0)

    assert compute_age(agent, 250.0) == pytest.approx(0.25)
    assert compute_age(agent, 5000.0) == 1.0
    assert compute_age(agent, -10.0) == 0.0


def test_degrade_stats_scales_with_elapsed_minutes():
    agent = Agent(
        name="Drift",
        stats=AgentStats(health=80, hunger=10, energy=80, happiness=80, thirst=10),
        traits=GeneticTraits(resilience=0),
        last_health_check=0.0,
        age=0.0,
    )

    stats = degrade_stats(agent, 600.0)

    assert stats.hunger == pytest.approx(10 + 1.5 * 10)
    assert stats.thirst == pytest.approx(10 + 2.0 * 10)
    assert stats.energy == pytest.approx(80 - 0.8 * 10)
    assert stats.health == pytest.approx(80 - 0.1 * 10)


def test_resilience_and_youth_slow_degradation():
    base = dict(stats=AgentStats(hunger=0), last_health_check=0.0)
    tough = Agent(name="Tough", traits=GeneticTraits(resilience=100), age=0.0, **base)
    frail_old = Agent(name="Frail", traits=GeneticTraits(resilience=0), age=0.9, **base)

    assert degrade_stats(tough, 600.0).hunger < degrade_stats(frail_old, 600.0).hunger


def test_degradation_never_leaves_stat_bounds():
    agent = Agent(name="Forever", last_health_check=0.0)

    stats = degrade_stats(agent, 10_000_000.0)

    for name in STAT_NAMES:
        assert 0 <= getattr(stats, name) <= 100
    assert stats.hunger == 100
    assert stats.energy == 0


def test_survival_priority_and_life_stage():
    calm = AgentStats()
    assert survival_priority(calm) == 0
    thirsty = AgentStats(thirst=80)
    assert survival_priority(thirsty) == pytest.approx(20)

    assert life_stage(0.1) == "baby"
    assert life_stage(0.2) == "young"
    assert life_stage(0.5) == "adult"
    assert life_stage(0.9) == "elder"


def test_assess_health_classifies_severity_and_delay():
    healthy = Agent(name="Fine")
    report = assess_health(healthy)
    assert report.status == "healthy"
    assert report.decision_delay_multiplier == 1.0

    thirsty = Agent(name="Dry", stats=AgentStats(thirst=75))
    report = assess_health(thirsty)
    assert report.status == "warning"
    assert report.decision_delay_multiplier == 0.3
    assert report.recommendation == "drinking"

    starving = Agent(name="Starving", stats=AgentStats(hunger=95))
    assert assess_health(starving).status == "critical"
    assert assess_health(starving).decision_delay_multiplier == 0.1

    dead = Agent(name="Gone", is_alive=False)
    assert assess_health(dead).status == "dying"

    sad = Agent(name="Sad", stats=AgentStats(happiness=10))
    report = assess_health(sad)
    assert report.status == "healthy"
    assert [alert.severity for alert in report.alerts] == ["medium"]
