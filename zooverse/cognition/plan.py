"""Plan and step structures.

Plans and steps are plain dataclasses owned by the plan store. Step
parameters are a pydantic tagged union keyed by the step's action, so each
action only ever sees the parameters it understands. Parameters from the
oracle are validated through ``build_step_params``; anything that does not
fit falls back to the action's defaults.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from ..schemas import BuildingAction

PlanType = Literal["survival", "building", "exploration", "social", "mixed"]


class Target(BaseModel):
    model_config = ConfigDict(extra="ignore")

    x: float
    z: float


class _Params(BaseModel):
    model_config = ConfigDict(extra="ignore")


class NoParams(_Params):
    kind: Literal["idle", "eating", "drinking"]


class MoveParams(_Params):
    kind: Literal["moving"] = "moving"
    target: Optional[Target] = None
    speed: float = Field(1.0, gt=0, le=5)


class ExploreParams(_Params):
    kind: Literal["exploring"] = "exploring"
    target: Optional[Target] = None
    purpose: Optional[str] = None


class HarvestParams(_Params):
    kind: Literal["harvesting"] = "harvesting"
    resource_id: Optional[str] = None


class BuildParams(_Params):
    kind: Literal["building"] = "building"
    building_action: BuildingAction = "create_building"
    building_id: Optional[str] = None
    building_name: str = "Shelter"


class SleepParams(_Params):
    kind: Literal["sleeping"] = "sleeping"
    comfort: Optional[float] = Field(None, ge=0, le=1)


class PlayParams(_Params):
    kind: Literal["playing"] = "playing"
    playmates: List[str] = Field(default_factory=list)


class WorkParams(_Params):
    kind: Literal["working"] = "working"
    task: str = "general"
    difficulty: float = Field(1.0, gt=0, le=3)


class SocializeParams(_Params):
    kind: Literal["socializing"] = "socializing"
    companions: List[str] = Field(default_factory=list)


class MateParams(_Params):
    kind: Literal["mating"] = "mating"
    partner_id: Optional[str] = None


StepParams = Annotated[
    Union[
        NoParams,
        MoveParams,
        ExploreParams,
        HarvestParams,
        BuildParams,
        SleepParams,
        PlayParams,
        WorkParams,
        SocializeParams,
        MateParams,
    ],
    Field(discriminator="kind"),
]

_STEP_PARAMS_ADAPTER: TypeAdapter[StepParams] = TypeAdapter(StepParams)


def build_step_params(action: str, raw: Optional[Dict[str, Any]] = None) -> StepParams:
    """Validate ``raw`` as the parameters of ``action``.

    Invalid fields do not reject the step: the action's default parameters
    are used instead. ``action`` must be a known action name.
    """
    payload = dict(raw or {})
    payload["kind"] = action
    try:
        return _STEP_PARAMS_ADAPTER.validate_python(payload)
    except ValidationError:
        return _STEP_PARAMS_ADAPTER.validate_python({"kind": action})


def new_step_id() -> str:
    return f"step_{uuid4().hex[:8]}"


@dataclass
class PlanStep:
    """One step of a plan.

    ``turn_offset`` 0 means eligible now. A step is in flight while
    ``started_at`` is set and ``completed_at`` is not.
    """

    action: str
    params: StepParams
    id: str = field(default_factory=new_step_id)
    priority: int = 5
    turn_offset: int = 0
    reason: str = ""
    started_at: Optional[float] = None
    completed_at: Optional[float] = None

    @property
    def in_flight(self) -> bool:
        return self.started_at is not None and self.completed_at is None

    def summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "action": self.action,
            "params": self.params.model_dump(exclude={"kind"}, exclude_none=True),
            "priority": self.priority,
            "turn_offset": self.turn_offset,
            "reason": self.reason,
            "done": self.completed_at is not None,
        }


@dataclass
class Plan:
    """An agent's multi-step plan.

    Steps before ``current_step_index`` are history and are never touched
    again; the index only moves forward.
    """

    agent_id: str
    steps: List[PlanStep] = field(default_factory=list)
    created_at: float = 0.0
    updated_at: float = 0.0
    current_step_index: int = 0
    confidence: float = 0.8
    plan_type: PlanType = "mixed"
    reasoning: str = ""

    @property
    def exhausted(self) -> bool:
        return self.current_step_index >= len(self.steps)

    @property
    def current_step(self) -> Optional[PlanStep]:
        if self.exhausted:
            return None
        return self.steps[self.current_step_index]

    def summary(self) -> Dict[str, Any]:
        """Compact description used in oracle requests and logs."""
        return {
            "plan_type": self.plan_type,
            "confidence": round(self.confidence, 2),
            "current_step_index": self.current_step_index,
            "reasoning": self.reasoning,
            "steps": [step.summary() for step in self.steps],
        }
