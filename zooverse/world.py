"""World Resource Registry.

Holds resource nodes, agent-built structures and the environment summary.
``harvest`` is the only operation that lowers a node's quantity and
``regenerate_tick`` the only one that raises it.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from .logging_utils import log_deterministic
from .schemas import (
    BuildingChange,
    EnvironmentSummary,
    InventoryItem,
    Position,
    ResourceType,
    Structure,
    WorldResource,
)

# Regeneration: (below this quantity, add up to this much, never exceed ceiling)
REGENERATION_RULES: Dict[str, tuple[int, int, int]] = {
    "food": (20, 30, 50),
    "water": (50, 100, 150),
    "berries": (5, 15, 20),
}

INITIAL_RESOURCE_COUNTS: Dict[str, int] = {
    "food": 8,
    "water": 5,
    "berries": 10,
    "wood": 8,
    "stone": 6,
    "shelter": 4,
}
MIN_RESOURCE_SPACING = 15.0

# Harvesting berries yields food items; other types keep their own name.
HARVEST_ITEM_TYPES: Dict[str, str] = {
    "berries": "food",
    "food": "food",
    "water": "water",
    "wood": "wood",
    "stone": "stone",
}


def harvest_item_for(resource: WorldResource, amount: int) -> InventoryItem:
    """The inventory item produced by taking ``amount`` units of ``resource``."""
    return InventoryItem(
        type=HARVEST_ITEM_TYPES.get(resource.type, "material"),
        name=resource.type,
        quantity=amount,
        quality=resource.quality,
    )


@dataclass
class HarvestOutcome:
    success: bool
    item: Optional[InventoryItem] = None
    message: str = ""


class WorldResourceRegistry:
    """Shared mutable world state queried by perception and the executor."""

    def __init__(
        self,
        resources: Optional[Iterable[WorldResource]] = None,
        *,
        environment: Optional[EnvironmentSummary] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._resources: Dict[str, WorldResource] = {}
        self._structures: Dict[str, Structure] = {}
        self.environment = environment or EnvironmentSummary()
        self._rng = rng or random.Random()
        for resource in resources or []:
            self.add_resource(resource)

    # Resources --------------------------------------------------------------

    def add_resource(self, resource: WorldResource) -> None:
        self._resources[resource.id] = resource

    def get_resource(self, resource_id: str) -> Optional[WorldResource]:
        return self._resources.get(resource_id)

    def all_resources(self) -> List[WorldResource]:
        return list(self._resources.values())

    def query_nearby(self, position: Position, radius: float) -> List[WorldResource]:
        """Nodes within ``radius`` on the ground plane, nearest first."""
        hits = [
            resource for resource in self._resources.values()
            if position.planar_distance(resource.position) <= radius
        ]
        return sorted(hits, key=lambda resource: position.planar_distance(resource.position))

    def harvest(self, resource_id: str, amount: int) -> HarvestOutcome:
        """Take ``amount`` units from a node.

        Fails without changing anything if the node is missing, not
        harvestable, or holds less than ``amount``.
        """
        resource = self._resources.get(resource_id)
        if resource is None:
            return HarvestOutcome(False, message=f"Resource {resource_id} not found")
        if not resource.harvestable:
            return HarvestOutcome(False, message=f"{resource.type} cannot be harvested")
        if amount <= 0 or resource.quantity < amount:
            return HarvestOutcome(
                False,
                message=f"Only {resource.quantity} {resource.type} left, wanted {amount}",
            )

        self._resources[resource_id] = resource.model_copy(
            update={"quantity": resource.quantity - amount}
        )
        item = harvest_item_for(resource, amount)
        return HarvestOutcome(True, item=item, message=f"Harvested {amount} {resource.type}")

    def regenerate_tick(self) -> int:
        """Top up depleted regenerating nodes. Returns how many nodes grew."""
        grown = 0
        for resource_id, resource in list(self._resources.items()):
            rule = REGENERATION_RULES.get(resource.type)
            if not resource.regenerates or rule is None:
                continue
            threshold, max_gain, ceiling = rule
            if resource.quantity >= threshold:
                continue
            gain = int(self._rng.random() * max_gain)
            quantity = min(ceiling, resource.quantity + gain)
            if quantity > resource.quantity:
                self._resources[resource_id] = resource.model_copy(update={"quantity": quantity})
                grown += 1
        if grown:
            log_deterministic(f"Regenerated {grown} resource node(s)")
        return grown

    # Structures -------------------------------------------------------------

    def get_structure(self, structure_id: str) -> Optional[Structure]:
        return self._structures.get(structure_id)

    def all_structures(self) -> List[Structure]:
        return list(self._structures.values())

    def structures_near(self, position: Position, radius: float) -> List[Structure]:
        hits = [
            structure for structure in self._structures.values()
            if position.planar_distance(structure.position) <= radius
        ]
        return sorted(hits, key=lambda structure: position.planar_distance(structure.position))

    def apply_building_change(
        self,
        change: BuildingChange,
        *,
        agent_id: str,
        now: float,
    ) -> Optional[Structure]:
        """Create or modify a structure. Returns the stored structure, or None
        when a modification targets a structure that no longer exists."""

        if change.building_action == "create_building":
            structure = Structure(
                name=change.name,
                position=change.position,
                materials=dict(change.materials_used),
                created_by=agent_id,
                created_at=now,
            )
            self._structures[structure.id] = structure
            return structure

        current = self._structures.get(change.building_id or "")
        if current is None:
            return None
        updates: Dict[str, object] = {}
        for attribute, delta in change.adjustments.items():
            value = getattr(current, attribute)
            updates[attribute] = type(value)(value + delta)
        materials = dict(current.materials)
        for material, count in change.materials_used.items():
            materials[material] = materials.get(material, 0) + count
        updates["materials"] = materials
        updated = current.model_copy(update=updates)
        self._structures[updated.id] = updated
        return updated


def generate_initial_resources(
    rng: random.Random,
    *,
    world_size: float = 100.0,
    counts: Optional[Dict[str, int]] = None,
    min_spacing: float = MIN_RESOURCE_SPACING,
    max_attempts: int = 50,
) -> List[WorldResource]:
    """Scatter resource nodes across a square world, keeping them apart.

    When no spaced spot is found after ``max_attempts`` the last candidate
    is used anyway.
    """

    counts = counts or INITIAL_RESOURCE_COUNTS
    half = world_size / 2
    placed: List[WorldResource] = []

    def initial_quantity(resource_type: str) -> int:
        if resource_type == "water":
            return rng.randint(100, 150)
        if resource_type == "shelter":
            return 1
        return rng.randint(10, 30)

    for resource_type, count in counts.items():
        for _ in range(count):
            position = Position()
            for _ in range(max_attempts):
                position = Position(x=rng.uniform(-half, half), z=rng.uniform(-half, half))
                if all(position.planar_distance(other.position) >= min_spacing for other in placed):
                    break
            kind: ResourceType = resource_type  # type: ignore[assignment]
            placed.append(
                WorldResource(
                    type=kind,
                    position=position,
                    quantity=initial_quantity(resource_type),
                    harvestable=resource_type != "shelter",
                    regenerates=resource_type in REGENERATION_RULES,
                    quality=rng.uniform(50, 100),
                )
            )
    return placed
