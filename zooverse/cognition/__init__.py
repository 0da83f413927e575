"""Planning and decision layer for Zooverse.

Houses the plan structures, the plan store/scheduler, the rule-based
fallback planner and the decision oracle adapter with its prompts.
"""

from .plan import (
    Plan,
    PlanStep,
    PlanType,
    StepParams,
    Target,
    build_step_params,
)
from .plan_store import PlanStore
from .fallback import build_fallback_plan
from .context import OracleRequest
from .prompts import PromptLibrary, PromptTemplate, DEFAULT_PROMPTS
from .renderers import render_prompt, RenderedPrompt
from .oracle import (
    Decision,
    DecisionOracleAdapter,
    LLMOracleTransport,
    OracleTransport,
    OracleUnavailableError,
)

__all__ = [
    "Plan",
    "PlanStep",
    "PlanType",
    "StepParams",
    "Target",
    "build_step_params",
    "PlanStore",
    "build_fallback_plan",
    "OracleRequest",
    "PromptLibrary",
    "PromptTemplate",
    "DEFAULT_PROMPTS",
    "render_prompt",
    "RenderedPrompt",
    "Decision",
    "DecisionOracleAdapter",
    "LLMOracleTransport",
    "OracleTransport",
    "OracleUnavailableError",
]
