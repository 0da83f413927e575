"""Perception Builder.

Builds the bounded-radius snapshot an agent "sees": nearby agents,
resources with harvestability flags, structures, environment and a small
window of relevant memories. Also hosts the exploration-goal heuristic,
which only needs what a snapshot plus memory can tell.
"""

from __future__ import annotations

import math
import random
import time
from dataclasses import dataclass
from typing import Callable, List, Literal, Optional, Sequence

from .config import Config
from .memory import MemoryStrategy
from .schemas import (
    Agent,
    Direction,
    MemoryRecord,
    NearbyAgent,
    NearbyResource,
    NearbyStructure,
    PerceptionSnapshot,
    Position,
    ResourceSummary,
)
from .state import AgentStateStore
from .world import WorldResourceRegistry

MIN_SIGHT_RADIUS = 3.0
MEMORY_WINDOW = 5
REMEMBERED_MAX_AGE_SECONDS = 30 * 60
UNEXPLORED_PROBE_DISTANCE = 10.0

NEED_RESOURCE_TYPES = {
    "water": ("water",),
    "food": ("food", "berries"),
}


def sight_radius(agent: Agent, harvest_radius: float) -> float:
    """How far an agent can see. Never below the harvest radius."""
    age_bonus = 0.0
    if agent.age < 0.3:
        age_bonus = 1.0
    elif agent.age > 0.7:
        age_bonus = -1.0
    radius = (
        5
        + agent.traits.intelligence / 100 * 3
        + agent.traits.curiosity / 100 * 2
        + age_bonus
    )
    return max(max(MIN_SIGHT_RADIUS, harvest_radius), radius)


def direction_to(origin: Position, target: Position) -> Direction:
    """Dominant compass axis from ``origin`` to ``target`` (+z is north)."""
    dx = target.x - origin.x
    dz = target.z - origin.z
    if abs(dz) > abs(dx):
        return "north" if dz > 0 else "south"
    return "east" if dx >= 0 else "west"


class PerceptionBuilder:
    """Builds perception snapshots from the world, the store and memory."""

    def __init__(
        self,
        world: WorldResourceRegistry,
        store: AgentStateStore,
        memory: MemoryStrategy,
        *,
        harvest_radius: float = Config.HARVEST_RADIUS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.world = world
        self.store = store
        self.memory = memory
        self.harvest_radius = harvest_radius
        self._clock = clock

    def build_snapshot(self, agent: Agent) -> PerceptionSnapshot:
        origin = agent.position
        radius = sight_radius(agent, self.harvest_radius)

        resources: List[NearbyResource] = []
        for node in self.world.query_nearby(origin, radius):
            if node.quantity <= 0:
                continue
            distance = origin.planar_distance(node.position)
            can_harvest_now = node.harvestable and distance <= self.harvest_radius
            resources.append(
                NearbyResource(
                    id=node.id,
                    type=node.type,
                    position=node.position,
                    distance=round(distance, 1),
                    quantity=node.quantity,
                    quality=node.quality,
                    harvestable=node.harvestable,
                    can_harvest_now=can_harvest_now,
                    too_far_to_harvest=node.harvestable and not can_harvest_now,
                    direction=direction_to(origin, node.position),
                )
            )

        agents: List[NearbyAgent] = []
        for other in self.store.get_all_agents():
            if other.id == agent.id or not other.is_alive:
                continue
            distance = origin.planar_distance(other.position)
            if distance > radius:
                continue
            agents.append(
                NearbyAgent(
                    id=other.id,
                    name=other.name,
                    position=other.position,
                    distance=round(distance, 1),
                    current_action=other.current_action,
                    age=other.age,
                )
            )
        agents.sort(key=lambda nearby: nearby.distance)

        structures = [
            NearbyStructure(
                id=structure.id,
                name=structure.name,
                position=structure.position,
                distance=round(origin.planar_distance(structure.position), 1),
                comfort=structure.comfort,
            )
            for structure in self.world.structures_near(origin, radius)
        ]

        return PerceptionSnapshot(
            agent_id=agent.id,
            timestamp=self._clock(),
            my_position=origin,
            sight_radius=radius,
            harvest_radius=self.harvest_radius,
            nearby_agents=agents,
            nearby_resources=resources,
            nearby_structures=structures,
            environment=self.world.environment,
            resource_summary=summarize_resources(resources),
            recent_failures=self.memory.get_relevant(
                agent.id, origin, kind="failure", limit=MEMORY_WINDOW
            ),
            discoveries=self.memory.get_relevant(
                agent.id, origin, kind="discovery", limit=MEMORY_WINDOW
            ),
        )


def summarize_resources(resources: Sequence[NearbyResource]) -> ResourceSummary:
    return ResourceSummary(
        food_sources=sum(1 for r in resources if r.type in ("food", "berries")),
        water_sources=sum(1 for r in resources if r.type == "water"),
        material_sources=sum(1 for r in resources if r.type in ("wood", "stone")),
        shelters=sum(1 for r in resources if r.type == "shelter"),
        harvestable_now=[r.id for r in resources if r.can_harvest_now],
        need_to_move_closer=[r.id for r in resources if r.too_far_to_harvest],
    )


# Exploration goals -----------------------------------------------------------


@dataclass
class ExplorationGoal:
    kind: Literal["remembered", "visible", "unexplored", "random"]
    reason: str
    target: Optional[Position] = None


def _urgent_needs(agent: Agent) -> List[str]:
    needs = []
    if agent.stats.thirst > 70:
        needs.append("water")
    if agent.stats.hunger > 70:
        needs.append("food")
    return needs


def choose_exploration_goal(
    agent: Agent,
    snapshot: PerceptionSnapshot,
    memories: Sequence[MemoryRecord],
    rng: random.Random,
    *,
    now: Optional[float] = None,
) -> ExplorationGoal:
    """Pick where an untargeted exploration should head.

    Order: a remembered source for an urgent need, a visible source for it,
    unexplored territory (curious agents only), then a random walk.
    """
    now = snapshot.timestamp if now is None else now
    origin = agent.position

    for need in _urgent_needs(agent):
        known = [
            memory for memory in memories
            if memory.kind == "discovery"
            and memory.type == need
            and memory.reliability > 0.5
            and now - memory.last_visited < REMEMBERED_MAX_AGE_SECONDS
        ]
        if known:
            best = min(known, key=lambda m: origin.planar_distance(m.position))
            return ExplorationGoal("remembered", f"Returning to known {need}", best.position)

        visible = [r for r in snapshot.nearby_resources if r.type in NEED_RESOURCE_TYPES[need]]
        if visible:
            nearest = min(visible, key=lambda r: r.distance)
            return ExplorationGoal("visible", f"Heading to visible {nearest.type}", nearest.position)

    if agent.traits.curiosity > 60:
        return ExplorationGoal(
            "unexplored",
            "Exploring unknown territory",
            _least_explored_point(origin, memories, rng),
        )

    return ExplorationGoal("random", "Wandering")


def _least_explored_point(
    origin: Position,
    memories: Sequence[MemoryRecord],
    rng: random.Random,
) -> Position:
    """Probe eight compass directions; keep the one farthest from any memory."""
    known = [m.position for m in memories]
    best = origin
    best_score = -1.0
    angles = [i * math.pi / 4 for i in range(8)]
    rng.shuffle(angles)
    for angle in angles:
        probe = Position(
            x=origin.x + math.cos(angle) * UNEXPLORED_PROBE_DISTANCE,
            y=origin.y,
            z=origin.z + math.sin(angle) * UNEXPLORED_PROBE_DISTANCE,
        )
        score = min((probe.planar_distance(p) for p in known), default=math.inf)
        if score > best_score:
            best, best_score = probe, score
    return best


def exploration_range(agent: Agent) -> float:
    """How far one exploration step can carry an agent right now."""
    traits = agent.traits
    base = 6 * (traits.agility / 100) * (1 + traits.curiosity / 100 * 0.5)
    return max(1.0, base * (agent.stats.energy / 100))


def exploration_position(
    agent: Agent,
    goal: ExplorationGoal,
    rng: random.Random,
    *,
    max_radius: float,
) -> Position:
    """Where this exploration step ends: toward the goal's target, or a random
    heading, never farther than ``max_radius``."""
    origin = agent.position
    reach = min(exploration_range(agent), max_radius)
    if goal.target is not None:
        distance = origin.planar_distance(goal.target)
        if distance <= reach:
            return Position(x=goal.target.x, y=origin.y, z=goal.target.z, rotation=origin.rotation)
        angle = math.atan2(goal.target.z - origin.z, goal.target.x - origin.x)
    else:
        angle = rng.uniform(0, 2 * math.pi)
        reach = rng.uniform(reach / 2, reach)
    return Position(
        x=origin.x + math.cos(angle) * reach,
        y=origin.y,
        z=origin.z + math.sin(angle) * reach,
        rotation=angle,
    )
