"""Rule-based fallback planner.

Used whenever the decision oracle is unavailable, slow, or returns
nothing usable. Needs are handled in priority order: thirst, hunger, then
rest (energy/health). Each need becomes consume-from-inventory when
possible, otherwise harvest a reachable source, otherwise walk to a visible
one, otherwise explore for one.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..building import SHELTER_RANGE, can_afford
from ..schemas import Agent, NearbyResource, PerceptionSnapshot
from .plan import Plan, PlanStep, build_step_params

FALLBACK_CONFIDENCE = 0.6
NEED_THRESHOLD = 70.0
REST_THRESHOLD = 30.0
MAX_FALLBACK_STEPS = 6

# (action, params, priority, reason)
_Draft = Tuple[str, Dict[str, Any], int, str]


def _nearest(resources: Sequence[NearbyResource]) -> Optional[NearbyResource]:
    return min(resources, key=lambda r: r.distance) if resources else None


def _resource_need(
    agent: Agent,
    snapshot: Optional[PerceptionSnapshot],
    *,
    item_type: str,
    resource_types: Tuple[str, ...],
    consume_action: str,
    label: str,
) -> List[_Draft]:
    if agent.has_item(item_type):
        return [(consume_action, {}, 10, f"{label.capitalize()} is in my inventory")]

    if snapshot is not None:
        matching = [r for r in snapshot.nearby_resources if r.type in resource_types]
        reachable = _nearest([r for r in matching if r.can_harvest_now])
        if reachable is not None:
            return [
                ("harvesting", {"resource_id": reachable.id}, 10, f"Collect {label} right here"),
                (consume_action, {}, 9, f"Use the {label} I just collected"),
            ]
        visible = _nearest([r for r in matching if r.too_far_to_harvest])
        if visible is not None:
            target = {"x": visible.position.x, "z": visible.position.z}
            return [
                ("exploring", {"target": target, "purpose": f"reach {label}"}, 9, f"Walk to the {label} I can see"),
                ("harvesting", {"resource_id": visible.id}, 9, f"Collect {label}"),
                (consume_action, {}, 8, f"Use the {label} I collected"),
            ]

    return [("exploring", {"purpose": f"find {label}"}, 8, f"Find a {label} source")]


def _rest_need(agent: Agent, snapshot: Optional[PerceptionSnapshot]) -> List[_Draft]:
    near_shelter = snapshot is not None and (
        any(s.distance <= SHELTER_RANGE for s in snapshot.nearby_structures)
        or any(r.type == "shelter" and r.distance <= SHELTER_RANGE for r in snapshot.nearby_resources)
    )
    if near_shelter:
        return [("sleeping", {}, 8, "Rest in the shelter nearby")]
    if can_afford(agent.inventory, "create_building"):
        return [
            ("building", {"building_action": "create_building", "building_name": "Emergency Shelter"}, 8, "Build a shelter to rest in"),
            ("sleeping", {}, 7, "Rest in the new shelter"),
        ]
    return [("exploring", {"purpose": "find materials"}, 6, "Find materials for a shelter")]


def build_fallback_plan(
    agent: Agent,
    snapshot: Optional[PerceptionSnapshot] = None,
    *,
    now: float,
) -> Plan:
    """Deterministic plan from the agent's stats, inventory and surroundings."""

    stats = agent.stats
    drafts: List[_Draft] = []
    plan_type = "exploration"

    if stats.thirst > NEED_THRESHOLD:
        drafts += _resource_need(
            agent, snapshot,
            item_type="water", resource_types=("water",),
            consume_action="drinking", label="water",
        )
        plan_type = "survival"
    if stats.hunger > NEED_THRESHOLD:
        drafts += _resource_need(
            agent, snapshot,
            item_type="food", resource_types=("food", "berries"),
            consume_action="eating", label="food",
        )
        plan_type = "survival"
    if stats.energy < REST_THRESHOLD or stats.health < REST_THRESHOLD:
        rest = _rest_need(agent, snapshot)
        if plan_type == "exploration" and any(action == "building" for action, *_ in rest):
            plan_type = "building"
        elif plan_type == "exploration":
            plan_type = "survival"
        drafts += rest

    if not drafts:
        drafts = [("exploring", {}, 5, "Nothing urgent; look around")]

    steps = [
        PlanStep(
            action=action,
            params=build_step_params(action, params),
            priority=priority,
            turn_offset=index,
            reason=reason,
        )
        for index, (action, params, priority, reason) in enumerate(drafts[:MAX_FALLBACK_STEPS])
    ]
    return Plan(
        agent_id=agent.id,
        steps=steps,
        created_at=now,
        updated_at=now,
        confidence=FALLBACK_CONFIDENCE,
        plan_type=plan_type,  # type: ignore[arg-type]
        reasoning="Rule-based plan from current needs",
    )
