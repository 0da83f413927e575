"""Decision Oracle Adapter.

Asks the external reasoning service (an LLM) what an agent should do next
and turns whatever comes back into a plan the scheduler can trust:

- JSON is parsed leniently (code fences, surrounding prose, several
  response shapes, camelCase keys)
- prose without JSON is searched for an action keyword
- unknown actions become ``idle``; exploring/moving targets are pulled in to
  the maximum exploration radius along the same bearing
- every step gets an id, a priority, a turn offset and a reason
- transport errors and timeouts produce the rule-based fallback plan
"""

from __future__ import annotations

import asyncio
import json
import math
import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Literal, Optional, Protocol, Tuple

from ..config import Config
from ..llm_utils import call_llm_text
from ..logging_utils import log_deterministic, log_error, log_llm
from ..schemas import ACTION_NAMES, Agent, PerceptionSnapshot, Position, clamp
from .context import OracleRequest
from .fallback import build_fallback_plan
from .plan import Plan, PlanStep, build_step_params
from .prompts import PromptTemplate
from .renderers import render_prompt

DEFAULT_ORACLE_CONFIDENCE = 0.8
MAX_PLAN_STEPS = 8
PLAN_TYPES = ("survival", "building", "exploration", "social", "mixed")

_PARAM_ALIASES = {
    "resourceId": "resource_id",
    "buildingAction": "building_action",
    "buildingId": "building_id",
    "buildingName": "building_name",
    "partnerId": "partner_id",
    "explorationTarget": "target",
    "targetPosition": "target",
    "destination": "target",
}
_STEP_LEVEL_PARAMS = (
    "target", "resource_id", "building_action", "building_id", "building_name",
    "partner_id", "companions", "playmates", "comfort", "task", "difficulty",
    "purpose", "speed",
) + tuple(_PARAM_ALIASES)

# Word stems that identify each action in free text.
_ACTION_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "idle": ("idle", "wait", "waiting"),
    "moving": ("moving", "move", "walk", "walking"),
    "eating": ("eating", "eat"),
    "drinking": ("drinking", "drink"),
    "sleeping": ("sleeping", "sleep", "rest", "resting"),
    "playing": ("playing", "play"),
    "exploring": ("exploring", "explore"),
    "socializing": ("socializing", "socialize", "socialise"),
    "working": ("working", "work"),
    "mating": ("mating", "mate"),
    "harvesting": ("harvesting", "harvest", "gather", "collect"),
    "building": ("building", "build"),
}
_KEYWORD_PATTERNS = {
    action: re.compile(r"\b(" + "|".join(words) + r")\b")
    for action, words in _ACTION_KEYWORDS.items()
}
_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


class OracleUnavailableError(RuntimeError):
    """Raised by a transport that has no model configured."""


class OracleTransport(Protocol):
    """Reaches the reasoning service. Returns text or already-parsed JSON."""

    async def request(self, request: OracleRequest) -> Any:
        ...


class LLMOracleTransport:
    """Renders a prompt and sends it through ``call_llm_text``."""

    def __init__(
        self,
        *,
        llm_provider: Optional[str] = Config.LLM_PROVIDER,
        llm_model: Optional[str] = Config.LLM_MODEL,
        template: Optional[PromptTemplate] = None,
        timeout: float = Config.ORACLE_TIMEOUT_SECONDS,
        debug: bool = Config.DEBUG_LLM,
    ) -> None:
        self.llm_provider = llm_provider
        self.llm_model = llm_model
        self.template = template
        self.timeout = timeout
        self.debug = debug

    async def request(self, request: OracleRequest) -> str:
        if not self.llm_provider or not self.llm_model:
            raise OracleUnavailableError(
                "No LLM configured. Set LLM_PROVIDER and LLM_MODEL to enable the oracle."
            )
        rendered = render_prompt(self.template, request)
        if self.debug:
            print(f"\n{'=' * 60}\nORACLE PROMPT ({request.agent.name})\n{'=' * 60}")
            print(rendered.system)
            print(rendered.user)
        text = await call_llm_text(
            system_prompt=rendered.system,
            user_prompt=rendered.user,
            llm_provider=self.llm_provider,
            llm_model=self.llm_model,
            timeout=self.timeout,
        )
        if self.debug:
            print(f"\n{'=' * 60}\nORACLE RESPONSE ({request.agent.name})\n{'=' * 60}\n{text}")
        return text


@dataclass
class Decision:
    """Outcome of one oracle consultation.

    ``plan`` is None only when the agent already has a plan and the oracle
    chose to keep it.
    """

    plan: Optional[Plan]
    reasoning: str
    source: Literal["oracle", "keyword", "idle", "fallback"]


# Parsing helpers -------------------------------------------------------------


def extract_json(raw: Any) -> Any:
    """Best-effort JSON extraction. Returns None when nothing parses."""
    if isinstance(raw, (dict, list)):
        return raw
    if not isinstance(raw, str):
        return None
    text = raw.strip()
    fenced = _FENCE.search(text)
    if fenced:
        text = fenced.group(1).strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        try:
            return json.loads(text[start:end + 1])
        except json.JSONDecodeError:
            return None
    return None


def recover_action(text: str) -> Optional[str]:
    """The action mentioned earliest in free text, if any."""
    lowered = text.lower()
    best: Optional[Tuple[int, str]] = None
    for action, pattern in _KEYWORD_PATTERNS.items():
        match = pattern.search(lowered)
        if match and (best is None or match.start() < best[0]):
            best = (match.start(), action)
    return best[1] if best else None


def clamp_to_radius(origin: Position, x: float, z: float, radius: float) -> Tuple[float, float]:
    """Pull ``(x, z)`` onto the circle of ``radius`` around ``origin`` if it lies
    outside, keeping the bearing."""
    dx, dz = x - origin.x, z - origin.z
    distance = math.hypot(dx, dz)
    if distance <= radius or distance == 0:
        return x, z
    scale = radius / distance
    return origin.x + dx * scale, origin.z + dz * scale


def _coerce_int(value: Any, default: int) -> int:
    result = _coerce_float(value, math.nan)
    return default if math.isnan(result) else int(result)


def _coerce_float(value: Any, default: float) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError, OverflowError):
        return default
    return result if math.isfinite(result) else default


def _coerce_target(value: Any) -> Optional[Dict[str, float]]:
    if isinstance(value, dict):
        x = value.get("x")
        z = value.get("z", value.get("y"))
    elif isinstance(value, (list, tuple)) and len(value) >= 2:
        x, z = value[0], value[-1]
    else:
        return None
    # Non-finite coordinates come back as NaN and drop the target.
    x_val, z_val = _coerce_float(x, math.nan), _coerce_float(z, math.nan)
    if math.isnan(x_val) or math.isnan(z_val):
        return None
    return {"x": x_val, "z": z_val}


def _raw_steps(payload: Any) -> Optional[List[Any]]:
    """Find the step list in any of the response shapes we accept."""
    if isinstance(payload, list):
        return payload
    if not isinstance(payload, dict):
        return None
    for key in ("steps", "plan", "newPlan", "new_plan"):
        value = payload.get(key)
        if isinstance(value, list):
            return value
        if isinstance(value, dict):
            nested = _raw_steps(value)
            if nested is not None:
                return nested
    if "action" in payload:
        return [payload]
    return None


class DecisionOracleAdapter:
    """Consults the oracle and always comes back with something safe."""

    def __init__(
        self,
        transport: Optional[OracleTransport] = None,
        *,
        clock: Callable[[], float] = time.time,
        timeout: float = Config.ORACLE_TIMEOUT_SECONDS,
        max_exploration_radius: float = Config.MAX_EXPLORATION_RADIUS,
    ) -> None:
        self.transport = transport
        self._clock = clock
        self.timeout = timeout
        self.max_exploration_radius = max_exploration_radius

    async def decide(
        self,
        agent: Agent,
        snapshot: PerceptionSnapshot,
        existing_plan: Optional[Plan] = None,
        *,
        needs_new_plan: bool = True,
    ) -> Decision:
        if self.transport is None:
            return self.fallback(agent, snapshot, "No oracle configured")

        request = OracleRequest(
            agent=agent,
            snapshot=snapshot,
            existing_plan=existing_plan,
            needs_new_plan=needs_new_plan,
            max_exploration_radius=self.max_exploration_radius,
        )
        log_llm(f"Consulting oracle for {agent.name}")
        try:
            raw = await asyncio.wait_for(self.transport.request(request), timeout=self.timeout)
        except asyncio.TimeoutError:
            log_error(f"Oracle timed out after {self.timeout:.0f}s for {agent.name}")
            return self.fallback(agent, snapshot, "Oracle timed out")
        except Exception as exc:  # any transport failure degrades to the fallback plan
            log_error(f"Oracle failed for {agent.name}: {exc}")
            return self.fallback(agent, snapshot, f"Oracle unavailable: {exc}")

        try:
            return self.interpret(raw, agent, snapshot, needs_new_plan=needs_new_plan)
        except Exception as exc:  # a reply we cannot normalize still yields a safe plan
            log_error(f"Could not interpret oracle reply for {agent.name}: {exc}")
            return self.fallback(agent, snapshot, f"Unreadable oracle reply: {exc}")

    def fallback(self, agent: Agent, snapshot: Optional[PerceptionSnapshot], reason: str) -> Decision:
        plan = build_fallback_plan(agent, snapshot, now=self._clock())
        log_deterministic(
            f"Fallback plan for {agent.name}: "
            + " -> ".join(step.action for step in plan.steps)
        )
        return Decision(plan=plan, reasoning=reason, source="fallback")

    def interpret(
        self,
        raw: Any,
        agent: Agent,
        snapshot: PerceptionSnapshot,
        *,
        needs_new_plan: bool = True,
    ) -> Decision:
        """Turn a raw oracle response into a normalized decision."""
        payload = extract_json(raw)
        steps = _raw_steps(payload)
        meta = payload if isinstance(payload, dict) else {}
        reasoning = str(meta.get("reasoning") or meta.get("reason") or "")

        if steps:
            plan = self._build_plan(steps, agent, snapshot, meta, reasoning)
            return Decision(plan=plan, reasoning=reasoning or "Oracle plan", source="oracle")

        if payload is not None and not needs_new_plan:
            return Decision(plan=None, reasoning=reasoning or "Keep current plan", source="oracle")

        text = raw if isinstance(raw, str) else json.dumps(raw, default=str)
        action = recover_action(text)
        if action is not None:
            log_error(f"Unstructured oracle reply for {agent.name}; recovered '{action}'")
            plan = self._build_plan([{"action": action}], agent, snapshot, {}, text[:200])
            return Decision(plan=plan, reasoning=text[:200], source="keyword")

        log_error(f"Unusable oracle reply for {agent.name}; substituting idle")
        plan = self._build_plan([{"action": "idle"}], agent, snapshot, {}, "Unusable oracle reply")
        return Decision(plan=plan, reasoning="Unusable oracle reply", source="idle")

    # Normalization ----------------------------------------------------------

    def _build_plan(
        self,
        raw_steps: List[Any],
        agent: Agent,
        snapshot: PerceptionSnapshot,
        meta: Dict[str, Any],
        reasoning: str,
    ) -> Plan:
        steps = [
            self._normalize_step(raw, index, agent, snapshot)
            for index, raw in enumerate(raw_steps[:MAX_PLAN_STEPS])
        ]
        plan_type = meta.get("plan_type", meta.get("planType"))
        if plan_type not in PLAN_TYPES:
            plan_type = "mixed"
        now = self._clock()
        return Plan(
            agent_id=agent.id,
            steps=steps,
            created_at=now,
            updated_at=now,
            confidence=clamp(_coerce_float(meta.get("confidence"), DEFAULT_ORACLE_CONFIDENCE), 0.1, 1.0),
            plan_type=plan_type,  # type: ignore[arg-type]
            reasoning=reasoning,
        )

    def _normalize_step(
        self,
        raw: Any,
        index: int,
        agent: Agent,
        snapshot: PerceptionSnapshot,
    ) -> PlanStep:
        if isinstance(raw, str):
            raw = {"action": raw}
        elif not isinstance(raw, dict):
            raw = {}

        action = str(raw.get("action") or raw.get("type") or "").strip().lower()
        params = self._collect_params(raw)
        if action not in ACTION_NAMES:
            log_error(f"Unknown action '{action}' for {agent.name}; using idle")
            action = "idle"
            params = {}

        if action in ("exploring", "moving") and "target" in params:
            target = _coerce_target(params["target"])
            if target is None:
                params.pop("target")
            else:
                x, z = clamp_to_radius(agent.position, target["x"], target["z"], self.max_exploration_radius)
                params["target"] = {"x": x, "z": z}

        if action == "harvesting" and not params.get("resource_id"):
            reachable = [r for r in snapshot.nearby_resources if r.can_harvest_now]
            if reachable:
                params["resource_id"] = min(reachable, key=lambda r: r.distance).id

        # Steps are never scheduled later than their position in the plan.
        turn_offset = min(max(0, _coerce_int(raw.get("turn_offset", raw.get("turnOffset")), index)), index)
        return PlanStep(
            action=action,
            params=build_step_params(action, params),
            priority=int(clamp(_coerce_int(raw.get("priority"), 5), 1, 10)),
            turn_offset=turn_offset,
            reason=str(raw.get("reason") or raw.get("reasoning") or f"Planned {action}"),
        )

    @staticmethod
    def _collect_params(raw: Dict[str, Any]) -> Dict[str, Any]:
        nested = raw.get("params", raw.get("parameters"))
        params: Dict[str, Any] = dict(nested) if isinstance(nested, dict) else {}
        for key in _STEP_LEVEL_PARAMS:
            if key in raw and key not in params:
                params[key] = raw[key]
        # Building steps sometimes name their sub-action "action" inside params.
        if "action" in params and "building_action" not in params:
            params["building_action"] = params["action"]
        if "targetX" in params and "targetZ" in params and "target" not in params:
            params["target"] = {"x": params["targetX"], "z": params["targetZ"]}
        return {_PARAM_ALIASES.get(key, key): value for key, value in params.items()}
