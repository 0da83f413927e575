"""Action Executor.

``ActionExecutor.execute`` turns ``(agent, action, params, snapshot)`` into
an ``ActionResult`` describing what *would* change. Handlers read the world
but never write to it or to the agent; the controller applies results.
"""

from __future__ import annotations

import math
import random
from typing import Callable, Dict, List, Optional

from .building import BUILD_RANGE, BUILDING_ADJUSTMENTS, BUILDING_COSTS, SHELTER_RANGE, missing_materials
from .cognition.plan import (
    BuildParams,
    ExploreParams,
    HarvestParams,
    MateParams,
    MoveParams,
    PlayParams,
    SleepParams,
    SocializeParams,
    StepParams,
    WorkParams,
    build_step_params,
)
from .config import Config
from .logging_utils import log_error
from .memory import MemoryStrategy, SpatialMemoryStream
from .perception import choose_exploration_goal, exploration_position
from .schemas import (
    ACTION_NAMES,
    ActionResult,
    Agent,
    BuildingChange,
    Discovery,
    PerceptionSnapshot,
    Position,
)
from .world import WorldResourceRegistry, harvest_item_for

HARVEST_ENERGY_COST = 15.0
STONE_EXTRA_ENERGY = 10.0
BUILD_ENERGY_COST = 20.0
MATING_ENERGY_COST = 30.0
SOCIAL_RANGE = 10.0
RANDOM_DISCOVERY_CHANCE = 0.2

DISCOVERY_TYPES: Dict[str, str] = {
    "food": "food",
    "berries": "food",
    "water": "water",
    "wood": "material",
    "stone": "material",
    "shelter": "shelter",
}

Handler = Callable[[Agent, StepParams, PerceptionSnapshot], ActionResult]


def failure(message: str, duration: float = 1.0) -> ActionResult:
    return ActionResult(success=False, message=message, duration=duration)


def travel_energy(agent: Agent, distance: float, base: float = 0.0) -> float:
    """Energy to cover ``distance``: heavier animals pay more, agile ones less."""
    agility_factor = 1.5 - agent.traits.agility / 100
    return (base + 5 * distance / 10) * agent.traits.size * agility_factor


class ActionExecutor:
    """Computes action effects for the closed action vocabulary."""

    def __init__(
        self,
        world: WorldResourceRegistry,
        *,
        memory: Optional[MemoryStrategy] = None,
        rng: Optional[random.Random] = None,
        max_exploration_radius: float = Config.MAX_EXPLORATION_RADIUS,
    ) -> None:
        self.world = world
        self.memory = memory or SpatialMemoryStream()
        self.rng = rng or random.Random()
        self.max_exploration_radius = max_exploration_radius
        self._handlers: Dict[str, Handler] = {
            "idle": self._idle,
            "moving": self._moving,
            "eating": self._eating,
            "drinking": self._drinking,
            "sleeping": self._sleeping,
            "playing": self._playing,
            "exploring": self._exploring,
            "socializing": self._socializing,
            "working": self._working,
            "mating": self._mating,
            "harvesting": self._harvesting,
            "building": self._building,
        }

    async def execute(
        self,
        agent: Agent,
        action: str,
        params: Optional[StepParams],
        snapshot: PerceptionSnapshot,
    ) -> ActionResult:
        """Compute the result of ``action``. Never raises.

        Unknown actions run as ``idle``; a handler exception becomes a
        failure result.
        """
        if action not in ACTION_NAMES:
            action = "idle"
        if params is None or params.kind != action:
            params = build_step_params(action)
        try:
            return self._handlers[action](agent, params, snapshot)
        except Exception as exc:  # handler bugs must not escape the tick loop
            log_error(f"{agent.name}: {action} raised {exc!r}")
            return failure(f"Failed to execute {action}: {exc}")

    # Handlers ---------------------------------------------------------------

    def _idle(self, agent: Agent, params: StepParams, snapshot: PerceptionSnapshot) -> ActionResult:
        return ActionResult(
            success=True,
            message=f"{agent.name} is resting quietly",
            stat_deltas={"energy": 3, "happiness": 1},
            duration=5.0,
        )

    def _moving(self, agent: Agent, params: MoveParams, snapshot: PerceptionSnapshot) -> ActionResult:
        origin = agent.position
        if params.target is not None:
            destination = self._bounded(origin, params.target.x, params.target.z)
        else:
            angle = self.rng.uniform(0, 2 * math.pi)
            step = self.rng.uniform(2, 6)
            destination = Position(
                x=origin.x + math.cos(angle) * step,
                y=origin.y,
                z=origin.z + math.sin(angle) * step,
                rotation=angle,
            )
        distance = origin.planar_distance(destination)
        cost = travel_energy(agent, distance)
        if agent.stats.energy < cost:
            return failure(f"{agent.name} is too tired to move {distance:.1f} units")
        speed = params.speed * max(0.1, agent.traits.agility / 100)
        return ActionResult(
            success=True,
            message=f"{agent.name} moved {distance:.1f} units",
            stat_deltas={"energy": -cost},
            new_position=destination,
            duration=max(2.0, distance / speed),
        )

    def _eating(self, agent: Agent, params: StepParams, snapshot: PerceptionSnapshot) -> ActionResult:
        item = agent.inventory.find("food")
        if item is None:
            return failure(f"{agent.name} has no food to eat")
        nutrition = 0.5 + item.quality / 100
        return ActionResult(
            success=True,
            message=f"{agent.name} ate some {item.name}",
            stat_deltas={
                "hunger": -20 * nutrition,
                "energy": 10 * nutrition,
                "health": 2,
                "happiness": 5,
            },
            consumed_item=item.model_copy(update={"quantity": 1}),
            duration=5.0 + 2.0 * nutrition,
        )

    def _drinking(self, agent: Agent, params: StepParams, snapshot: PerceptionSnapshot) -> ActionResult:
        item = agent.inventory.find("water")
        if item is None:
            return failure(f"{agent.name} has no water to drink")
        hydration = 0.5 + item.quality / 100
        return ActionResult(
            success=True,
            message=f"{agent.name} drank some water",
            stat_deltas={"thirst": -25 * hydration, "health": 5 * hydration},
            consumed_item=item.model_copy(update={"quantity": 1}),
            duration=3.0,
        )

    def _sleeping(self, agent: Agent, params: SleepParams, snapshot: PerceptionSnapshot) -> ActionResult:
        structures = self.world.structures_near(agent.position, SHELTER_RANGE)
        shelters = [
            r for r in snapshot.nearby_resources
            if r.type == "shelter" and r.distance <= SHELTER_RANGE
        ]
        if structures:
            comfort, safety, where = min(1.0, 0.5 + structures[0].comfort / 100), 1.0, structures[0].name
        elif shelters:
            comfort, safety, where = 0.8, 0.9, "a shelter"
        else:
            comfort, safety, where = 0.5, 0.6, "the open"
        if params.comfort is not None:
            comfort = params.comfort
        return ActionResult(
            success=True,
            message=f"{agent.name} slept in {where}",
            stat_deltas={
                "energy": 40 * comfort,
                "health": 15 * safety,
                "happiness": 5 * comfort,
            },
            duration=10.0 * (2 - comfort),
        )

    def _playing(self, agent: Agent, params: PlayParams, snapshot: PerceptionSnapshot) -> ActionResult:
        if agent.stats.energy < 10:
            return failure(f"{agent.name} is too tired to play")
        playful = max(0.1, agent.traits.personality.playful / 100)
        playmates = params.playmates or [
            other.id for other in snapshot.nearby_agents if other.distance <= SOCIAL_RANGE
        ]
        social = 1.5 if playmates else 1.0
        return ActionResult(
            success=True,
            message=f"{agent.name} played" + (f" with {len(playmates)} friend(s)" if playmates else ""),
            stat_deltas={
                "happiness": 20 * social * playful,
                "energy": -min(30.0, 15 / playful),
            },
            duration=8.0 + 2.0 * len(playmates),
        )

    def _working(self, agent: Agent, params: WorkParams, snapshot: PerceptionSnapshot) -> ActionResult:
        effectiveness = max(0.1, (agent.traits.intelligence + agent.traits.strength) / 200)
        cost = 25 * params.difficulty / effectiveness
        if agent.stats.energy < cost:
            return failure(f"{agent.name} is too tired to work on {params.task}")
        return ActionResult(
            success=True,
            message=f"{agent.name} worked on {params.task}",
            stat_deltas={"energy": -cost, "happiness": 10 * effectiveness},
            duration=15.0 * params.difficulty,
        )

    def _exploring(self, agent: Agent, params: ExploreParams, snapshot: PerceptionSnapshot) -> ActionResult:
        origin = agent.position
        if params.target is not None:
            destination = self._bounded(origin, params.target.x, params.target.z)
            heading = params.purpose or "a chosen spot"
        else:
            memories = self.memory.get_relevant(agent.id, origin, limit=20)
            goal = choose_exploration_goal(agent, snapshot, memories, self.rng)
            destination = exploration_position(
                agent, goal, self.rng, max_radius=self.max_exploration_radius
            )
            heading = goal.reason.lower()

        distance = origin.planar_distance(destination)
        cost = min(travel_energy(agent, distance, base=5.0), agent.stats.energy * 0.5)
        happiness = 10 * agent.traits.curiosity / 100 + (5 if params.target else 3)
        return ActionResult(
            success=True,
            message=f"{agent.name} explored {distance:.1f} units ({heading})",
            stat_deltas={"energy": -cost, "happiness": happiness},
            new_position=destination,
            discoveries=self._discoveries_at(destination, snapshot.sight_radius),
            duration=8.0 + distance * 0.5,
        )

    def _socializing(self, agent: Agent, params: SocializeParams, snapshot: PerceptionSnapshot) -> ActionResult:
        companions = params.companions or [
            other.id for other in snapshot.nearby_agents if other.distance <= SOCIAL_RANGE
        ]
        if not companions:
            return failure(f"{agent.name} found nobody to socialize with")
        social = agent.traits.social / 100
        return ActionResult(
            success=True,
            message=f"{agent.name} spent time with {len(companions)} companion(s)",
            stat_deltas={"happiness": 25 * social * (1 + 0.2 * len(companions)), "energy": -5},
            duration=6.0,
        )

    def _mating(self, agent: Agent, params: MateParams, snapshot: PerceptionSnapshot) -> ActionResult:
        if params.partner_id is None:
            return failure(f"{agent.name} has no partner in mind")
        if all(other.id != params.partner_id for other in snapshot.nearby_agents):
            return failure(f"{agent.name}'s partner is not nearby")
        if agent.stats.energy < MATING_ENERGY_COST:
            return failure(f"{agent.name} is too tired to court")
        return ActionResult(
            success=True,
            message=f"{agent.name} courted a partner",
            stat_deltas={"happiness": 30, "energy": -MATING_ENERGY_COST},
            duration=12.0,
        )

    def _harvesting(self, agent: Agent, params: HarvestParams, snapshot: PerceptionSnapshot) -> ActionResult:
        if not params.resource_id:
            return failure(f"{agent.name} did not say what to harvest")
        if snapshot.resource(params.resource_id) is None:
            return failure(f"Resource {params.resource_id} is not in sight")
        resource = self.world.get_resource(params.resource_id)
        if resource is None:
            return failure(f"Resource {params.resource_id} no longer exists")
        if not resource.harvestable:
            return failure(f"{resource.type} cannot be harvested")
        if resource.quantity <= 0:
            return failure(f"The {resource.type} is depleted")

        distance = agent.position.planar_distance(resource.position)
        if distance > snapshot.harvest_radius:
            return failure(
                f"{resource.type} is too far to harvest "
                f"({distance:.1f} > {snapshot.harvest_radius:g})"
            )

        cost = HARVEST_ENERGY_COST + (STONE_EXTRA_ENERGY if resource.type == "stone" else 0.0)
        if agent.stats.energy < cost:
            return failure(f"{agent.name} is too tired to harvest {resource.type}")

        effectiveness = (agent.traits.strength + agent.traits.intelligence) / 200
        amount = min(math.floor(1 + effectiveness * 2), resource.quantity)
        item = harvest_item_for(resource, amount)
        if not agent.inventory.can_hold(item.type, item.quantity):
            return failure(f"{agent.name}'s inventory is too full for {amount} {resource.type}")

        return ActionResult(
            success=True,
            message=f"{agent.name} harvested {amount} {resource.type}",
            stat_deltas={"energy": -cost, "happiness": 2},
            harvested_item=item,
            resource_id=resource.id,
            duration=3.0 + amount,
        )

    def _building(self, agent: Agent, params: BuildParams, snapshot: PerceptionSnapshot) -> ActionResult:
        action = params.building_action
        missing = missing_materials(agent.inventory, action)
        if missing:
            needs = ", ".join(f"{count} {material}" for material, count in missing.items())
            return failure(f"{agent.name} needs {needs} more to {action.replace('_', ' ')}")
        if agent.stats.energy < BUILD_ENERGY_COST:
            return failure(f"{agent.name} is too tired to build")

        if action == "create_building":
            change = BuildingChange(
                building_action=action,
                name=params.building_name,
                position=agent.position,
                materials_used=dict(BUILDING_COSTS[action]),
            )
        else:
            structure = self.world.get_structure(params.building_id) if params.building_id else None
            if structure is None:
                nearby = self.world.structures_near(agent.position, BUILD_RANGE)
                structure = nearby[0] if nearby else None
            if structure is None:
                return failure(f"{agent.name} has no building nearby to improve")
            if agent.position.planar_distance(structure.position) > BUILD_RANGE:
                return failure(f"{structure.name} is too far away to work on")
            change = BuildingChange(
                building_action=action,
                building_id=structure.id,
                name=structure.name,
                position=structure.position,
                materials_used=dict(BUILDING_COSTS[action]),
                adjustments=dict(BUILDING_ADJUSTMENTS[action]),
            )

        return ActionResult(
            success=True,
            message=f"{agent.name} {action.replace('_', ' ')}: {change.name}",
            stat_deltas={"energy": -BUILD_ENERGY_COST, "happiness": 10},
            building=change,
            duration=15.0,
        )

    # Helpers ----------------------------------------------------------------

    def _bounded(self, origin: Position, x: float, z: float) -> Position:
        dx, dz = x - origin.x, z - origin.z
        if not (math.isfinite(dx) and math.isfinite(dz)):
            return origin.model_copy()
        distance = math.hypot(dx, dz)
        if distance > self.max_exploration_radius:
            scale = self.max_exploration_radius / distance
            dx, dz = dx * scale, dz * scale
        return Position(
            x=origin.x + dx,
            y=origin.y,
            z=origin.z + dz,
            rotation=math.atan2(dz, dx) if distance else origin.rotation,
        )

    def _discoveries_at(self, position: Position, radius: float) -> List[Discovery]:
        found: List[Discovery] = []
        for resource in self.world.query_nearby(position, radius):
            if resource.quantity > 0:
                found.append(
                    Discovery(
                        type=DISCOVERY_TYPES.get(resource.type, "interesting"),
                        description=f"{resource.type} ({resource.quantity} left)",
                        position=resource.position,
                        reliability=0.8,
                    )
                )
                break
        if self.rng.random() < RANDOM_DISCOVERY_CHANCE:
            found.append(
                Discovery(
                    type="interesting",
                    description="an interesting spot",
                    position=position,
                    reliability=0.6,
                )
            )
        return found
