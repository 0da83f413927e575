"""Plan Store & Scheduler.

Holds at most one active plan per agent and decides, from timestamps alone,
whether an agent may act, what it may do right now, and when it needs a new
plan. All time comes from the injected ``clock`` (seconds).

Per-agent states::

    NoPlan --store_plan--> Waiting --start_step--> Executing
       ^                      ^                        |
       |                      +--complete_current_step-+
       +------ (exhausted / low confidence / stale) ---+
"""

from __future__ import annotations

import time
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional

from ..config import Config
from .plan import Plan, PlanStep

CONFIDENCE_FLOOR = 0.1
CONFIDENCE_CEILING = 1.0
SUCCESS_FACTOR = 1.05
FAILURE_FACTOR = 0.95


class PlanStore:
    """Per-agent plan lifecycle and step gating."""

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.time,
        min_step_delay: float = Config.MIN_STEP_DELAY_SECONDS,
        low_confidence_threshold: float = Config.LOW_CONFIDENCE_THRESHOLD,
        max_plan_age: float = Config.PLAN_MAX_AGE_SECONDS,
        history_size: int = Config.PLAN_HISTORY_SIZE,
    ) -> None:
        self._clock = clock
        self.min_step_delay = min_step_delay
        self.low_confidence_threshold = low_confidence_threshold
        self.max_plan_age = max_plan_age
        self.history_size = history_size
        self._plans: Dict[str, Plan] = {}
        self._history: Dict[str, Deque[Plan]] = {}

    # Plan storage -----------------------------------------------------------

    def store_plan(self, plan: Plan) -> None:
        """Make ``plan`` the agent's active plan, starting from its first step.

        Any previous plan moves into the bounded history ring.
        """
        previous = self._plans.get(plan.agent_id)
        if previous is not None:
            history = self._history.setdefault(plan.agent_id, deque(maxlen=self.history_size))
            history.append(previous)
        now = self._clock()
        plan.current_step_index = 0
        plan.updated_at = now
        if not plan.created_at:
            plan.created_at = now
        self._plans[plan.agent_id] = plan

    def get_plan(self, agent_id: str) -> Optional[Plan]:
        return self._plans.get(agent_id)

    def get_all_plans(self) -> List[Plan]:
        return list(self._plans.values())

    def history(self, agent_id: str) -> List[Plan]:
        return list(self._history.get(agent_id, ()))

    def clear_plan(self, agent_id: str) -> None:
        """Forget an agent's plan and history (used on removal)."""
        self._plans.pop(agent_id, None)
        self._history.pop(agent_id, None)

    # Gating -----------------------------------------------------------------

    def get_current_step(self, agent_id: str) -> Optional[PlanStep]:
        """The step at the cursor, but only once its turn offset reaches 0."""
        plan = self._plans.get(agent_id)
        if plan is None:
            return None
        step = plan.current_step
        if step is None or step.turn_offset != 0:
            return None
        return step

    def is_executing_step(self, agent_id: str) -> bool:
        plan = self._plans.get(agent_id)
        if plan is None or plan.current_step is None:
            return False
        return plan.current_step.in_flight

    def can_make_new_decision(self, agent_id: str) -> bool:
        """False while a step is in flight or during the cooldown after one."""
        plan = self._plans.get(agent_id)
        if plan is None:
            return True
        if self.is_executing_step(agent_id):
            return False
        if plan.current_step_index > 0:
            previous = plan.steps[plan.current_step_index - 1]
            if previous.completed_at is not None:
                if self._clock() - previous.completed_at < self.min_step_delay:
                    return False
        return True

    def needs_new_plan(self, agent_id: str) -> bool:
        plan = self._plans.get(agent_id)
        if plan is None or plan.exhausted:
            return True
        if plan.confidence < self.low_confidence_threshold:
            return True
        return self._clock() - plan.created_at > self.max_plan_age

    # Step lifecycle ---------------------------------------------------------

    def start_step(self, agent_id: str, step_id: str) -> bool:
        plan = self._plans.get(agent_id)
        if plan is None:
            return False
        for step in plan.steps:
            if step.id == step_id:
                step.started_at = self._clock()
                plan.updated_at = step.started_at
                return True
        return False

    def complete_current_step(
        self,
        agent_id: str,
        success: bool,
        step_id: Optional[str] = None,
    ) -> bool:
        """Close the current step and advance the cursor.

        Confidence moves up on success and down on failure, and every step
        still ahead of the cursor comes one turn closer. With ``step_id``,
        nothing happens unless that step is still the current one (the plan
        may have been replaced while it ran).
        """
        plan = self._plans.get(agent_id)
        if plan is None or plan.exhausted:
            return False

        step = plan.steps[plan.current_step_index]
        if step_id is not None and step.id != step_id:
            return False
        now = self._clock()
        step.completed_at = now
        factor = SUCCESS_FACTOR if success else FAILURE_FACTOR
        plan.confidence = max(CONFIDENCE_FLOOR, min(CONFIDENCE_CEILING, plan.confidence * factor))
        plan.current_step_index += 1
        for upcoming in plan.steps[plan.current_step_index:]:
            upcoming.turn_offset = max(0, upcoming.turn_offset - 1)
        plan.updated_at = now
        return True

    # Insight ----------------------------------------------------------------

    def get_upcoming_steps(self, agent_id: str, count: int = 3, max_offset: int = 5) -> List[PlanStep]:
        plan = self._plans.get(agent_id)
        if plan is None:
            return []
        ahead = [s for s in plan.steps[plan.current_step_index:] if s.turn_offset <= max_offset]
        return ahead[:count]

    def execution_status(self, agent_id: str) -> str:
        plan = self._plans.get(agent_id)
        if plan is None:
            return "No plan"
        step = plan.current_step
        if step is None:
            return "Plan completed"
        if step.in_flight:
            return f"Executing: {step.action}"
        if not self.can_make_new_decision(agent_id) or step.turn_offset > 0:
            return "Waiting between steps"
        return f"Ready for: {step.action}"

    def planning_insights(self, agent_id: str) -> Dict[str, Any]:
        plan = self._plans.get(agent_id)
        if plan is None:
            return {"has_plan": False, "needs_new_plan": True}
        completed = plan.steps[: plan.current_step_index]
        return {
            "has_plan": True,
            "plan_type": plan.plan_type,
            "confidence": plan.confidence,
            "progress": f"{plan.current_step_index}/{len(plan.steps)}",
            "completed_actions": [step.action for step in completed],
            "upcoming_actions": [step.action for step in self.get_upcoming_steps(agent_id)],
            "plan_age_seconds": self._clock() - plan.created_at,
            "needs_new_plan": self.needs_new_plan(agent_id),
            "status": self.execution_status(agent_id),
        }

    def plan_stats(self) -> Dict[str, Any]:
        plans = list(self._plans.values())
        by_type: Dict[str, int] = {}
        for plan in plans:
            by_type[plan.plan_type] = by_type.get(plan.plan_type, 0) + 1
        average = sum(p.confidence for p in plans) / len(plans) if plans else 0.0
        return {
            "active_plans": len(plans),
            "executing": sum(1 for p in plans if self.is_executing_step(p.agent_id)),
            "average_confidence": average,
            "plans_by_type": by_type,
        }
