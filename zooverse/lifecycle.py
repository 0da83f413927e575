"""Agent lifecycle: creation, aging and passive stat degradation.

Everything here is pure. Functions take an agent (or traits) plus the
current time and return new values; the state store applies them.
"""

from __future__ import annotations

import math
import random
from typing import Optional

from .schemas import (
    Agent,
    AgentStats,
    Coloring,
    GeneticTraits,
    Inventory,
    Personality,
    Position,
    clamp,
)

MIN_LIFESPAN_SECONDS = 3600.0
MAX_LIFESPAN_SECONDS = 7200.0

# Per-minute drift of each stat before age/resilience scaling.
DEGRADATION_PER_MINUTE = {
    "hunger": 1.5,
    "thirst": 2.0,
    "energy": -0.8,
    "happiness": -0.5,
    "health": -0.1,
}

TRAIT_NAMES = ("intelligence", "agility", "strength", "social", "curiosity", "resilience")
PERSONALITY_NAMES = ("aggressive", "playful", "cautious", "nurturing")
TRAIT_MUTATION = 10.0

_NAME_PREFIXES = [
    "Fluffy", "Bouncy", "Sunny", "Whiskers", "Patches", "Shadow", "Pepper",
    "Maple", "Clover", "Hazel", "Juniper", "Pebble", "Willow", "Biscuit",
    "Thistle", "Acorn", "Bramble", "Ember", "Moss", "Sage",
]
_NAME_SUFFIXES = ["the Brave", "the Wise", "the Swift", "the Kind", "Jr.", "the Bold"]


def random_name(rng: random.Random) -> str:
    name = rng.choice(_NAME_PREFIXES)
    if rng.random() < 0.3:
        name = f"{name} {rng.choice(_NAME_SUFFIXES)}"
    return name


def _random_color(rng: random.Random) -> str:
    return "#{:06x}".format(rng.randint(0, 0xFFFFFF))


def random_traits(rng: random.Random) -> GeneticTraits:
    return GeneticTraits(
        **{name: rng.randint(1, 100) for name in TRAIT_NAMES},
        personality=Personality(**{name: rng.randint(1, 100) for name in PERSONALITY_NAMES}),
        size=round(rng.uniform(0.5, 2.0), 2),
        color=Coloring(primary=_random_color(rng), secondary=_random_color(rng)),
    )


def blend_traits(
    first: GeneticTraits,
    second: GeneticTraits,
    rng: random.Random,
    parent_ids: tuple[str, str],
) -> GeneticTraits:
    """Average two parents' traits with a small random mutation."""

    def mix(a: float, b: float) -> float:
        return clamp((a + b) / 2 + rng.uniform(-TRAIT_MUTATION, TRAIT_MUTATION), 1, 100)

    return GeneticTraits(
        **{name: mix(getattr(first, name), getattr(second, name)) for name in TRAIT_NAMES},
        personality=Personality(**{
            name: mix(getattr(first.personality, name), getattr(second.personality, name))
            for name in PERSONALITY_NAMES
        }),
        size=clamp((first.size + second.size) / 2 + rng.uniform(-0.1, 0.1), 0.5, 2.0),
        color=Coloring(
            primary=rng.choice([first.color.primary, second.color.primary]),
            secondary=rng.choice([first.color.secondary, second.color.secondary]),
        ),
        generation=max(first.generation, second.generation) + 1,
        parent_ids=parent_ids,
    )


def initial_stats(traits: GeneticTraits, rng: random.Random) -> AgentStats:
    """Starting stats correlated with traits (resilient animals start healthier)."""

    health = clamp(50 + (traits.resilience - 50) * 0.3 + rng.uniform(-10, 10), 20, 100)
    hunger = clamp(30 + rng.random() * 20, 0, 80)
    energy = clamp(60 + traits.strength * 0.2 + rng.uniform(-5, 5), 30, 100)
    happiness = clamp(50 + traits.social * 0.3 + rng.uniform(-10, 10), 20, 100)
    thirst = clamp(20 + rng.random() * 20, 0, 80)
    return AgentStats(
        health=health, hunger=hunger, energy=energy, happiness=happiness, thirst=thirst
    )


def inventory_capacity(traits: GeneticTraits) -> float:
    return float(max(5, math.floor(20 * traits.strength / 100 * traits.size)))


def create_agent(
    *,
    rng: random.Random,
    now: float,
    position: Optional[Position] = None,
    name: Optional[str] = None,
    traits: Optional[GeneticTraits] = None,
    world_size: float = 100.0,
) -> Agent:
    """Build a newborn agent. Pass ``traits`` to create offspring."""

    traits = traits or random_traits(rng)
    if position is None:
        half = world_size / 2
        position = Position(x=rng.uniform(-half, half), z=rng.uniform(-half, half))
    return Agent(
        name=name or random_name(rng),
        traits=traits,
        stats=initial_stats(traits, rng),
        position=position,
        inventory=Inventory(max_capacity=inventory_capacity(traits)),
        birth_time=now,
        lifespan=rng.uniform(MIN_LIFESPAN_SECONDS, MAX_LIFESPAN_SECONDS),
        age=0.0,
        last_health_check=now,
    )


def compute_age(agent: Agent, now: float) -> float:
    """Fraction of lifespan lived, clamped to [0, 1]."""
    return clamp((now - agent.birth_time) / agent.lifespan, 0.0, 1.0)


def degrade_stats(agent: Agent, now: float) -> AgentStats:
    """Passive drift since ``agent.last_health_check``.

    Older agents degrade faster; resilience slows it down by up to 30%.
    """

    minutes = max(0.0, now - agent.last_health_check) / 60.0
    if minutes == 0:
        return agent.stats
    age_multiplier = 1 + agent.age * 0.5
    resilience_multiplier = 1 - (agent.traits.resilience / 100) * 0.3
    scale = minutes * age_multiplier * resilience_multiplier
    return agent.stats.with_deltas(
        {stat: rate * scale for stat, rate in DEGRADATION_PER_MINUTE.items()}
    )


def survival_priority(stats: AgentStats) -> float:
    """Urgency score; 0 means nothing pressing."""

    priority = 0.0
    if stats.health < 30:
        priority += (30 - stats.health) * 2
    if stats.hunger > 70:
        priority += (stats.hunger - 70) * 1.5
    if stats.thirst > 70:
        priority += (stats.thirst - 70) * 2
    if stats.energy < 30:
        priority += 30 - stats.energy
    return priority


def life_stage(age: float) -> str:
    if age < 0.15:
        return "baby"
    if age < 0.35:
        return "young"
    if age < 0.75:
        return "adult"
    return "elder"
