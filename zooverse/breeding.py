"""Breeding collaborator.

Given the living population, decides which pairs may breed and returns
offspring for the caller to register. Trait inheritance is a simple
average-plus-mutation (see ``lifecycle.blend_traits``).
"""

from __future__ import annotations

import random
import time
from typing import Callable, Dict, List, Optional, Sequence

from .lifecycle import blend_traits, create_agent
from .logging_utils import log_success
from .schemas import Agent, Position

BREEDING_COOLDOWN_SECONDS = 30 * 60
MIN_BREEDING_AGE = 0.25
MAX_BREEDING_AGE = 0.85
MIN_HEALTH = 60.0
MIN_ENERGY = 40.0
MIN_HAPPINESS = 50.0
MATE_SEARCH_RADIUS = 20.0


def are_related(first: Agent, second: Agent) -> bool:
    """Parent/child or siblings."""
    first_parents = set(first.traits.parent_ids or ())
    second_parents = set(second.traits.parent_ids or ())
    if first.id in second_parents or second.id in first_parents:
        return True
    return bool(first_parents & second_parents)


class BreedingSystem:
    def __init__(
        self,
        *,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time,
        cooldown: float = BREEDING_COOLDOWN_SECONDS,
        chance: float = 0.3,
    ) -> None:
        self.rng = rng or random.Random()
        self._clock = clock
        self.cooldown = cooldown
        self.chance = chance
        self._last_bred: Dict[str, float] = {}

    def can_breed(self, agent: Agent) -> bool:
        if not agent.is_alive:
            return False
        if not MIN_BREEDING_AGE <= agent.age <= MAX_BREEDING_AGE:
            return False
        stats = agent.stats
        if stats.health < MIN_HEALTH or stats.energy < MIN_ENERGY or stats.happiness < MIN_HAPPINESS:
            return False
        last = self._last_bred.get(agent.id)
        return last is None or self._clock() - last >= self.cooldown

    def find_compatible_mates(self, agent: Agent, population: Sequence[Agent]) -> List[Agent]:
        mates = [
            other for other in population
            if other.id != agent.id
            and self.can_breed(other)
            and not are_related(agent, other)
            and agent.position.planar_distance(other.position) <= MATE_SEARCH_RADIUS
        ]
        return sorted(mates, key=lambda other: agent.position.planar_distance(other.position))

    def breed(self, first: Agent, second: Agent) -> Optional[Agent]:
        """Offspring of two compatible parents, or None."""
        if first.id == second.id or are_related(first, second):
            return None
        if not (self.can_breed(first) and self.can_breed(second)):
            return None

        now = self._clock()
        traits = blend_traits(first.traits, second.traits, self.rng, (first.id, second.id))
        position = Position(
            x=(first.position.x + second.position.x) / 2 + self.rng.uniform(-2, 2),
            y=first.position.y,
            z=(first.position.z + second.position.z) / 2 + self.rng.uniform(-2, 2),
        )
        child = create_agent(rng=self.rng, now=now, position=position, traits=traits)
        self._last_bred[first.id] = now
        self._last_bred[second.id] = now
        log_success(f"{first.name} and {second.name} had a baby: {child.name}")
        return child

    def auto_breeding(self, population: Sequence[Agent], max_offspring: int = 1) -> List[Agent]:
        """One breeding round over the population. Each agent breeds at most once."""
        offspring: List[Agent] = []
        used: set[str] = set()
        for agent in population:
            if len(offspring) >= max_offspring:
                break
            if agent.id in used or not self.can_breed(agent):
                continue
            for mate in self.find_compatible_mates(agent, population):
                if mate.id in used:
                    continue
                if self.rng.random() >= self.chance:
                    break
                child = self.breed(agent, mate)
                if child is not None:
                    offspring.append(child)
                    used.update({agent.id, mate.id})
                break
        return offspring

    def forget(self, agent_id: str) -> None:
        self._last_bred.pop(agent_id, None)
