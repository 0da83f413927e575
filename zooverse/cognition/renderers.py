"""Prompt rendering utilities."""

from __future__ import annotations

from dataclasses import dataclass

from ..lifecycle import life_stage
from .context import OracleRequest
from .prompts import DEFAULT_PROMPTS, PromptTemplate


@dataclass
class RenderedPrompt:
    system: str
    user: str


def action_catalog(actions: list[str]) -> str:
    return "Available actions (use exactly one of these names per step):\n" + "\n".join(
        f"- {name}" for name in actions
    )


def render_prompt(template: PromptTemplate | None, request: OracleRequest) -> RenderedPrompt:
    """Fill a template's ``{{placeholders}}`` from an oracle request.

    Parameters
    ----------
    template:
        Template to render. ``None`` picks ``decide_plan`` or
        ``review_plan`` from ``DEFAULT_PROMPTS`` depending on whether a new
        plan is needed.
    request:
        The agent, snapshot and plan context being sent to the oracle.
    """

    if template is None:
        name = "decide_plan" if request.needs_new_plan else "review_plan"
        template = DEFAULT_PROMPTS.get(name)

    replacements = {
        "{{agent_name}}": request.agent.name,
        "{{life_stage}}": life_stage(request.agent.age),
        "{{traits_text}}": request.traits_text(),
        "{{stats_text}}": request.stats_text(),
        "{{inventory_text}}": request.inventory_text(),
        "{{perception_json}}": request.perception_json(),
        "{{memories_text}}": request.memories_text(),
        "{{plan_json}}": request.plan_json(),
        "{{action_catalog}}": action_catalog(request.available_actions),
        "{{max_exploration_radius}}": f"{request.max_exploration_radius:g}",
    }

    system = template.system
    user = template.user
    for placeholder, value in replacements.items():
        system = system.replace(placeholder, value)
        user = user.replace(placeholder, value)
    return RenderedPrompt(system=system, user=user)
