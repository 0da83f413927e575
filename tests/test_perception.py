"""Tests for perception snapshots and the exploration goal heuristic."""

import random

import pytest

from zooverse.memory import SpatialMemoryStream
from zooverse.perception import (
    PerceptionBuilder,
    choose_exploration_goal,
    direction_to,
    exploration_position,
    sight_radius,
)
from zooverse.schemas import Agent, AgentStats, GeneticTraits, Position, WorldResource
from zooverse.state import AgentStateStore
from zooverse.world import WorldResourceRegistry


def build(resources=(), harvest_radius=4.0):
    clock = lambda: 100.0
    world = WorldResourceRegistry(list(resources))
    store = AgentStateStore(clock=clock)
    memory = SpatialMemoryStream(clock=clock)
    builder = PerceptionBuilder(world, store, memory, harvest_radius=harvest_radius, clock=clock)
    return builder, store, memory


def resource(resource_type, x, z=0.0, quantity=5, **kwargs):
    return WorldResource(type=resource_type, position=Position(x=x, z=z), quantity=quantity, **kwargs)


def test_sight_radius_grows_with_traits_and_youth():
    agent = Agent(name="Average", traits=GeneticTraits(intelligence=50, curiosity=50), age=0.1)
    assert sight_radius(agent, 4.0) == pytest.approx(5 + 1.5 + 1.0 + 1)

    old = agent.model_copy(update={"age": 0.8})
    assert sight_radius(old, 4.0) == pytest.approx(5 + 1.5 + 1.0 - 1)


def test_sight_radius_never_below_harvest_radius():
    dull = Agent(name="Dull", traits=GeneticTraits(intelligence=0, curiosity=0), age=0.9)

    assert sight_radius(dull, 2.0) == pytest.approx(4.0)
    assert sight_radius(dull, 12.0) == 12.0


def test_harvestability_flags_are_mutually_exclusive():
    near_water = resource("water", 3)
    far_water = resource("water", 6)
    shelter = resource("shelter", 0, 2, quantity=1, harvestable=False)
    empty = resource("food", 1, quantity=0)
    out_of_sight = resource("stone", 30)
    builder, _, _ = build([near_water, far_water, shelter, empty, out_of_sight])
    agent = Agent(name="Pip")

    snapshot = builder.build_snapshot(agent)
    by_id = {r.id: r for r in snapshot.nearby_resources}

    assert set(by_id) == {near_water.id, far_water.id, shelter.id}
    assert by_id[near_water.id].can_harvest_now and not by_id[near_water.id].too_far_to_harvest
    assert by_id[far_water.id].too_far_to_harvest and not by_id[far_water.id].can_harvest_now
    assert not by_id[shelter.id].can_harvest_now and not by_id[shelter.id].too_far_to_harvest
    assert snapshot.harvest_radius <= snapshot.sight_radius
    assert snapshot.resource_summary.harvestable_now == [near_water.id]
    assert snapshot.resource_summary.need_to_move_closer == [far_water.id]
    assert snapshot.resource_summary.water_sources == 2


def test_distance_is_rounded_and_planar():
    odd = WorldResource(type="wood", position=Position(x=1.234, y=40, z=0), quantity=2)
    builder, _, _ = build([odd])

    snapshot = builder.build_snapshot(Agent(name="Pip"))

    assert snapshot.nearby_resources[0].distance == 1.2


@pytest.mark.parametrize(
    "x,z,expected",
    [(0, 5, "north"), (0, -5, "south"), (5, 1, "east"), (-5, 1, "west"), (3, 3, "east"), (-3, 3, "west")],
)
def test_direction_uses_dominant_axis(x, z, expected):
    assert direction_to(Position(), Position(x=x, z=z)) == expected


def test_nearby_agents_sorted_and_filtered():
    builder, store, _ = build()
    me = Agent(name="Me")
    close = Agent(name="Close", position=Position(x=2))
    closer = Agent(name="Closer", position=Position(x=1))
    far = Agent(name="Far", position=Position(x=50))
    dead = Agent(name="Dead", position=Position(x=1), is_alive=False)
    for agent in (me, close, closer, far, dead):
        store.set_agent(agent)

    snapshot = builder.build_snapshot(me)

    assert [a.name for a in snapshot.nearby_agents] == ["Closer", "Close"]


def test_snapshot_includes_relevant_memories():
    builder, _, memory = build()
    agent = Agent(name="Pip")
    memory.add_discovery(agent.id, "water", "pond", Position(x=5))
    memory.add_discovery(agent.id, "food", "far bush", Position(x=40))
    memory.record_failure(agent.id, "harvesting", "too far", Position(x=1))

    snapshot = builder.build_snapshot(agent)

    assert [m.description for m in snapshot.discoveries] == ["pond"]
    assert [m.type for m in snapshot.recent_failures] == ["harvesting"]


def test_exploration_goal_prefers_remembered_source_for_urgent_need():
    builder, _, memory = build([resource("water", 7)])
    agent = Agent(name="Dry", stats=AgentStats(thirst=85))
    remembered = memory.add_discovery(agent.id, "water", "spring", Position(x=-6), reliability=0.8)
    snapshot = builder.build_snapshot(agent)

    goal = choose_exploration_goal(agent, snapshot, [remembered], random.Random(1))

    assert goal.kind == "remembered"
    assert goal.target == remembered.position


def test_exploration_goal_falls_back_to_visible_then_random():
    water = resource("water", 7)
    builder, _, _ = build([water])
    thirsty = Agent(name="Dry", stats=AgentStats(thirst=85))
    snapshot = builder.build_snapshot(thirsty)

    goal = choose_exploration_goal(thirsty, snapshot, [], random.Random(1))
    assert goal.kind == "visible"
    assert goal.target == water.position

    calm = Agent(name="Calm", traits=GeneticTraits(curiosity=10))
    goal = choose_exploration_goal(calm, builder.build_snapshot(calm), [], random.Random(1))
    assert goal.kind == "random"
    assert goal.target is None

    curious = Agent(name="Curious", traits=GeneticTraits(curiosity=90))
    goal = choose_exploration_goal(curious, builder.build_snapshot(curious), [], random.Random(1))
    assert goal.kind == "unexplored"


def test_exploration_position_is_bounded():
    builder, _, _ = build()
    agent = Agent(name="Runner", traits=GeneticTraits(agility=100, curiosity=100))
    snapshot = builder.build_snapshot(agent)
    rng = random.Random(2)
    goal = choose_exploration_goal(agent, snapshot, [], rng)

    destination = exploration_position(agent, goal, rng, max_radius=3.0)

    assert agent.position.planar_distance(destination) <= 3.0 + 1e-9
