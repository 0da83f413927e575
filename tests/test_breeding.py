"""Tests for the breeding collaborator."""

import random

from zooverse.breeding import BreedingSystem, are_related
from zooverse.schemas import Agent, AgentStats, GeneticTraits, Position


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


def adult(name, x=0.0, **kwargs):
    return Agent(name=name, age=0.5, position=Position(x=x), stats=AgentStats(happiness=80), **kwargs)


def test_can_breed_requires_adulthood_and_condition():
    system = BreedingSystem(rng=random.Random(0), clock=FakeClock())

    assert system.can_breed(adult("Ready"))
    assert not system.can_breed(Agent(name="Baby", age=0.1))
    assert not system.can_breed(adult("Tired").model_copy(update={"stats": AgentStats(energy=10)}))
    assert not system.can_breed(adult("Gone", is_alive=False))


def test_breed_blends_parents_and_starts_cooldown():
    clock = FakeClock(1000.0)
    system = BreedingSystem(rng=random.Random(3), clock=clock)
    mother = adult("Maple", x=0, traits=GeneticTraits(strength=80))
    father = adult("Acorn", x=4, traits=GeneticTraits(strength=40))

    child = system.breed(mother, father)

    assert child is not None
    assert child.traits.parent_ids == (mother.id, father.id)
    assert child.traits.generation == 1
    assert 50 <= child.traits.strength <= 70
    assert child.birth_time == 1000.0
    assert are_related(child, mother)
    assert system.breed(mother, father) is None

    clock.now += system.cooldown
    assert system.can_breed(mother)


def test_siblings_are_not_compatible():
    system = BreedingSystem(rng=random.Random(0), clock=FakeClock())
    parents = ("p1", "p2")
    first = adult("A", traits=GeneticTraits(parent_ids=parents))
    second = adult("B", x=1, traits=GeneticTraits(parent_ids=parents))
    stranger = adult("C", x=30)

    assert system.find_compatible_mates(first, [first, second, stranger]) == []
    assert system.breed(first, second) is None


def test_auto_breeding_pairs_each_agent_once():
    system = BreedingSystem(rng=random.Random(0), clock=FakeClock(), chance=1.0)
    population = [adult(name, x=i) for i, name in enumerate(["A", "B", "C", "D"])]

    offspring = system.auto_breeding(population, max_offspring=5)

    assert len(offspring) == 2
    parents = [pid for child in offspring for pid in child.traits.parent_ids]
    assert len(set(parents)) == 4
