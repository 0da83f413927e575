"""Oracle request context.

Bundles everything the decision oracle is told about one agent and offers
the text/JSON views prompt templates draw from.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..schemas import ACTION_NAMES, Agent, PerceptionSnapshot
from .plan import Plan


@dataclass
class OracleRequest:
    agent: Agent
    snapshot: PerceptionSnapshot
    existing_plan: Optional[Plan] = None
    needs_new_plan: bool = True
    max_exploration_radius: float = 15.0
    available_actions: List[str] = field(default_factory=lambda: list(ACTION_NAMES))

    def traits_text(self) -> str:
        traits = self.agent.traits
        personality = traits.personality
        return (
            f"intelligence {traits.intelligence:.0f}, agility {traits.agility:.0f}, "
            f"strength {traits.strength:.0f}, social {traits.social:.0f}, "
            f"curiosity {traits.curiosity:.0f}, resilience {traits.resilience:.0f}; "
            f"personality: aggressive {personality.aggressive:.0f}, playful {personality.playful:.0f}, "
            f"cautious {personality.cautious:.0f}, nurturing {personality.nurturing:.0f}"
        )

    def stats_text(self) -> str:
        stats = self.agent.stats
        return (
            f"health {stats.health:.0f}/100, hunger {stats.hunger:.0f}/100 (100 = starving), "
            f"thirst {stats.thirst:.0f}/100 (100 = dehydrated), energy {stats.energy:.0f}/100, "
            f"happiness {stats.happiness:.0f}/100"
        )

    def inventory_text(self) -> str:
        inventory = self.agent.inventory
        if not inventory.items:
            return f"empty (capacity {inventory.max_capacity:.0f})"
        items = ", ".join(f"{item.quantity}x {item.name} ({item.type})" for item in inventory.items)
        return f"{items} (weight {inventory.current_weight:.0f}/{inventory.max_capacity:.0f})"

    def perception_json(self) -> str:
        payload = self.snapshot.model_dump(
            include={
                "my_position",
                "sight_radius",
                "harvest_radius",
                "nearby_agents",
                "nearby_resources",
                "nearby_structures",
                "environment",
                "resource_summary",
            }
        )
        return json.dumps(payload, indent=2, default=str)

    def memories_text(self) -> str:
        lines = [f"- failed {m.type}: {m.description}" for m in self.snapshot.recent_failures]
        lines += [
            f"- found {m.type} at ({m.position.x:.0f}, {m.position.z:.0f}): {m.description}"
            for m in self.snapshot.discoveries
        ]
        return "\n".join(lines) if lines else "(none)"

    def plan_json(self) -> str:
        if self.existing_plan is None:
            return "null"
        return json.dumps(self.existing_plan.summary(), indent=2)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "agent_id": self.agent.id,
            "needs_new_plan": self.needs_new_plan,
            "existing_plan": self.existing_plan.summary() if self.existing_plan else None,
        }
