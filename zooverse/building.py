"""Building rules: material costs and structure effects per building action."""

from __future__ import annotations

from typing import Dict

from .schemas import Inventory

# Agents must be this close to a structure to modify it or sleep in it.
BUILD_RANGE = 5.0
SHELTER_RANGE = 5.0

BUILDING_COSTS: Dict[str, Dict[str, int]] = {
    "create_building": {"stone": 2, "wood": 2},
    "make_wider": {"wood": 2, "stone": 1},
    "make_taller": {"wood": 3, "stone": 1},
    "make_beautiful": {"wood": 1, "stone": 1},
    "add_room": {"wood": 3, "stone": 2},
}

BUILDING_ADJUSTMENTS: Dict[str, Dict[str, float]] = {
    "create_building": {},
    "make_wider": {"width": 1, "capacity": 1, "comfort": 5},
    "make_taller": {"height": 1, "durability": 10, "comfort": 3},
    "make_beautiful": {"beauty": 20, "comfort": 5},
    "add_room": {"rooms": 1, "width": 1, "capacity": 2, "comfort": 10},
}


def missing_materials(inventory: Inventory, building_action: str) -> Dict[str, int]:
    """Materials still needed for ``building_action``; empty when affordable."""
    missing = {}
    for material, needed in BUILDING_COSTS[building_action].items():
        have = inventory.count(material)
        if have < needed:
            missing[material] = needed - have
    return missing


def can_afford(inventory: Inventory, building_action: str) -> bool:
    return not missing_materials(inventory, building_action)
