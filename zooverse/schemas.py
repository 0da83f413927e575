"""
Pydantic schemas for the Zooverse simulation core.

All data structures shared between the world registry, the agent state
store, perception, the executor and the planning layer are defined here.

Design Philosophy:
- Records are replaced, not mutated: services build new instances with
  ``model_copy``/constructors and hand them to the store
- Stats clamp instead of rejecting so degradation and action effects can
  never push an agent outside [0, 100]
- Inventory weight is derived from its items on every construction
"""

from __future__ import annotations

import math
from typing import Dict, List, Literal, Optional, Tuple, get_args
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator


# ============================================================================
# Vocabularies
# ============================================================================

ActionName = Literal[
    "idle",
    "moving",
    "eating",
    "drinking",
    "sleeping",
    "playing",
    "exploring",
    "socializing",
    "working",
    "mating",
    "harvesting",
    "building",
]
ACTION_NAMES: Tuple[str, ...] = get_args(ActionName)

ResourceType = Literal["food", "water", "wood", "stone", "berries", "shelter"]
ItemType = Literal["food", "water", "wood", "stone", "material", "tool"]
DiscoveryType = Literal["food", "water", "shelter", "material", "danger", "interesting"]
BuildingAction = Literal[
    "create_building", "make_wider", "make_taller", "make_beautiful", "add_room"
]

STAT_NAMES: Tuple[str, ...] = ("health", "hunger", "energy", "happiness", "thirst")

# Weight of one unit of an item. Anything not listed weighs 1.
ITEM_UNIT_WEIGHTS: Dict[str, float] = {"stone": 3.0, "wood": 2.0}


def unit_weight(item_type: str) -> float:
    return ITEM_UNIT_WEIGHTS.get(item_type, 1.0)


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid4().hex[:8]}"


# ============================================================================
# Agent Schemas
# ============================================================================


class Personality(BaseModel):
    """Personality scalars (0-100) that bias action effects."""

    aggressive: float = Field(50.0, ge=0, le=100)
    playful: float = Field(50.0, ge=0, le=100)
    cautious: float = Field(50.0, ge=0, le=100)
    nurturing: float = Field(50.0, ge=0, le=100)


class Coloring(BaseModel):
    primary: str = "#8B4513"
    secondary: str = "#D2B48C"


class GeneticTraits(BaseModel):
    """Heritable traits. Fixed for the lifetime of an agent."""

    intelligence: float = Field(50.0, ge=0, le=100)
    agility: float = Field(50.0, ge=0, le=100)
    strength: float = Field(50.0, ge=0, le=100)
    social: float = Field(50.0, ge=0, le=100)
    curiosity: float = Field(50.0, ge=0, le=100)
    resilience: float = Field(50.0, ge=0, le=100)
    personality: Personality = Field(default_factory=Personality)
    size: float = Field(1.0, ge=0.5, le=2.0)
    color: Coloring = Field(default_factory=Coloring)
    generation: int = Field(0, ge=0)
    parent_ids: Optional[Tuple[str, str]] = None


class AgentStats(BaseModel):
    """Survival stats. Every value is clamped to [0, 100] on construction.

    ``hunger`` and ``thirst`` grow towards 100 (bad); ``health``, ``energy``
    and ``happiness`` shrink towards 0 (bad).
    """

    health: float = 100.0
    hunger: float = 0.0
    energy: float = 100.0
    happiness: float = 100.0
    thirst: float = 0.0

    @field_validator(*STAT_NAMES, mode="before")
    @classmethod
    def _clamp_stat(cls, value: float) -> float:
        return clamp(float(value))

    def with_values(self, values: Dict[str, float]) -> "AgentStats":
        """Return new stats with absolute ``values`` applied (clamped)."""
        merged = self.model_dump()
        merged.update({k: v for k, v in values.items() if k in STAT_NAMES})
        return AgentStats(**merged)

    def with_deltas(self, deltas: Dict[str, float]) -> "AgentStats":
        """Return new stats with relative ``deltas`` applied (clamped)."""
        current = self.model_dump()
        for name, delta in deltas.items():
            if name in STAT_NAMES:
                current[name] = current[name] + delta
        return AgentStats(**current)


class Position(BaseModel):
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    rotation: float = 0.0

    def planar_distance(self, other: "Position") -> float:
        """Distance on the ground plane (x/z); height is ignored."""
        return math.hypot(other.x - self.x, other.z - self.z)


class InventoryItem(BaseModel):
    id: str = Field(default_factory=lambda: new_id("item"))
    type: ItemType
    name: str
    quantity: int = Field(1, ge=0)
    quality: float = Field(50.0, ge=0, le=100)
    harvested_at: Optional[float] = None


class Inventory(BaseModel):
    """Ordered item stacks plus a derived weight.

    ``current_weight`` is recomputed from ``items`` whenever an inventory is
    built, so callers only ever swap whole inventories via ``add``/``remove``.
    """

    items: List[InventoryItem] = Field(default_factory=list)
    max_capacity: float = Field(10.0, ge=0)
    current_weight: float = 0.0

    @model_validator(mode="after")
    def _derive_weight(self) -> "Inventory":
        self.current_weight = sum(
            item.quantity * unit_weight(item.type) for item in self.items
        )
        return self

    def count(self, item_type: str) -> int:
        return sum(item.quantity for item in self.items if item.type == item_type)

    def find(self, item_type: str) -> Optional[InventoryItem]:
        """First stack of ``item_type`` that still holds something."""
        for item in self.items:
            if item.type == item_type and item.quantity > 0:
                return item
        return None

    def can_hold(self, item_type: str, quantity: int) -> bool:
        return self.current_weight + quantity * unit_weight(item_type) <= self.max_capacity

    def add(self, item: InventoryItem) -> Optional["Inventory"]:
        """Return a new inventory holding ``item``, or None if it would not fit.

        Items of the same type, name and quality stack.
        """
        if not self.can_hold(item.type, item.quantity):
            return None
        items = [stack.model_copy() for stack in self.items]
        for index, stack in enumerate(items):
            if (stack.type, stack.name, stack.quality) == (item.type, item.name, item.quality):
                items[index] = stack.model_copy(update={"quantity": stack.quantity + item.quantity})
                break
        else:
            items.append(item.model_copy())
        return Inventory(items=items, max_capacity=self.max_capacity)

    def remove(
        self,
        item_type: str,
        quantity: int = 1,
        item_id: Optional[str] = None,
    ) -> Optional["Inventory"]:
        """Return a new inventory without ``quantity`` units, or None if short.

        Units are taken from the stack named by ``item_id`` when given,
        otherwise from the earliest stacks of ``item_type``. Empty stacks
        are dropped.
        """
        candidates = [
            item for item in self.items
            if item.type == item_type and (item_id is None or item.id == item_id)
        ]
        if sum(item.quantity for item in candidates) < quantity:
            return None

        candidate_ids = {item.id for item in candidates}
        remaining = quantity
        items: List[InventoryItem] = []
        for stack in self.items:
            if remaining > 0 and stack.id in candidate_ids:
                taken = min(stack.quantity, remaining)
                remaining -= taken
                left = stack.quantity - taken
                if left > 0:
                    items.append(stack.model_copy(update={"quantity": left}))
                continue
            items.append(stack.model_copy())
        return Inventory(items=items, max_capacity=self.max_capacity)


class Agent(BaseModel):
    """An animal in the world.

    ``age`` is the fraction of ``lifespan`` already lived. Timestamps and
    ``lifespan`` are in seconds.
    """

    id: str = Field(default_factory=lambda: new_id("animal"))
    name: str
    traits: GeneticTraits = Field(default_factory=GeneticTraits)
    stats: AgentStats = Field(default_factory=AgentStats)
    position: Position = Field(default_factory=Position)
    inventory: Inventory = Field(default_factory=Inventory)
    birth_time: float = 0.0
    lifespan: float = Field(3600.0, gt=0)
    age: float = Field(0.0, ge=0, le=1)
    current_action: str = "idle"
    last_health_check: float = 0.0
    is_alive: bool = True

    @model_validator(mode="after")
    def _dead_when_old(self) -> "Agent":
        if self.age >= 1:
            self.is_alive = False
        return self

    def has_item(self, item_type: str) -> bool:
        return self.inventory.find(item_type) is not None


# ============================================================================
# World Schemas
# ============================================================================


class WorldResource(BaseModel):
    """A resource node. ``quantity`` only drops through harvest and only
    grows through regeneration."""

    id: str = Field(default_factory=lambda: new_id("resource"))
    type: ResourceType
    position: Position
    quantity: int = Field(0, ge=0)
    harvestable: bool = True
    regenerates: bool = False
    quality: float = Field(70.0, ge=0, le=100)


class Structure(BaseModel):
    """A building raised by an agent."""

    id: str = Field(default_factory=lambda: new_id("building"))
    name: str
    position: Position
    width: float = 3.0
    height: float = 2.0
    depth: float = 3.0
    rooms: int = 1
    durability: float = 60.0
    beauty: float = 30.0
    comfort: float = 50.0
    capacity: int = 2
    materials: Dict[str, int] = Field(default_factory=dict)
    created_by: Optional[str] = None
    created_at: float = 0.0


class EnvironmentSummary(BaseModel):
    time_of_day: Literal["dawn", "day", "dusk", "night"] = "day"
    weather: Literal["sunny", "cloudy", "rainy", "stormy"] = "sunny"
    temperature: float = 20.0


class WorldEvent(BaseModel):
    id: str = Field(default_factory=lambda: new_id("event"))
    timestamp: float
    type: str
    description: str
    agent_ids: List[str] = Field(default_factory=list)


# ============================================================================
# Memory Schemas
# ============================================================================


class MemoryRecord(BaseModel):
    """A remembered discovery or failure tied to a location.

    ``reliability`` is the stored confidence; effective reliability decays
    with time since ``last_visited`` (see ``zooverse.memory``).
    """

    id: str = Field(default_factory=lambda: new_id("memory"))
    agent_id: str
    kind: Literal["discovery", "failure"]
    type: str
    description: str
    position: Position
    timestamp: float
    last_visited: float
    reliability: float = Field(0.5, ge=0, le=1)


# ============================================================================
# Action Results
# ============================================================================


class Discovery(BaseModel):
    type: DiscoveryType
    description: str
    position: Position
    reliability: float = Field(0.6, ge=0, le=1)


class BuildingChange(BaseModel):
    """Structure effect of a building step; applied by the controller."""

    building_action: BuildingAction
    building_id: Optional[str] = None
    name: str = "Shelter"
    position: Position
    materials_used: Dict[str, int] = Field(default_factory=dict)
    adjustments: Dict[str, float] = Field(default_factory=dict)


class ActionResult(BaseModel):
    """Effects computed by the executor. Nothing here has been applied yet.

    ``stat_deltas`` are relative changes; the store clamps after applying.
    ``duration`` (seconds) only paces presentation.
    """

    success: bool
    message: str
    stat_deltas: Dict[str, float] = Field(default_factory=dict)
    new_position: Optional[Position] = None
    consumed_item: Optional[InventoryItem] = None
    harvested_item: Optional[InventoryItem] = None
    resource_id: Optional[str] = None
    building: Optional[BuildingChange] = None
    discoveries: List[Discovery] = Field(default_factory=list)
    duration: float = 1.0


# ============================================================================
# Perception Schemas
# ============================================================================

Direction = Literal["north", "south", "east", "west"]


class NearbyAgent(BaseModel):
    id: str
    name: str
    position: Position
    distance: float
    current_action: str
    age: float


class NearbyResource(BaseModel):
    """A visible resource node.

    At most one of ``can_harvest_now`` and ``too_far_to_harvest`` is set;
    both are false for non-harvestable nodes such as shelter.
    """

    id: str
    type: ResourceType
    position: Position
    distance: float
    quantity: int
    quality: float
    harvestable: bool
    can_harvest_now: bool
    too_far_to_harvest: bool
    direction: Direction


class NearbyStructure(BaseModel):
    id: str
    name: str
    position: Position
    distance: float
    comfort: float


class ResourceSummary(BaseModel):
    food_sources: int = 0
    water_sources: int = 0
    material_sources: int = 0
    shelters: int = 0
    harvestable_now: List[str] = Field(default_factory=list)
    need_to_move_closer: List[str] = Field(default_factory=list)


class PerceptionSnapshot(BaseModel):
    """What one agent can see right now. Built fresh; never stored."""

    agent_id: str
    timestamp: float
    my_position: Position
    sight_radius: float
    harvest_radius: float
    nearby_agents: List[NearbyAgent] = Field(default_factory=list)
    nearby_resources: List[NearbyResource] = Field(default_factory=list)
    nearby_structures: List[NearbyStructure] = Field(default_factory=list)
    environment: EnvironmentSummary = Field(default_factory=EnvironmentSummary)
    resource_summary: ResourceSummary = Field(default_factory=ResourceSummary)
    recent_failures: List[MemoryRecord] = Field(default_factory=list)
    discoveries: List[MemoryRecord] = Field(default_factory=list)

    def resource(self, resource_id: str) -> Optional[NearbyResource]:
        for resource in self.nearby_resources:
            if resource.id == resource_id:
                return resource
        return None
