"""Prompt templates for the decision oracle."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict


@dataclass
class PromptTemplate:
    """Represents a templated prompt with ``{{placeholder}}`` slots."""

    name: str
    system: str
    user: str
    description: str = ""


class PromptLibrary:
    """Container for named prompt templates."""

    def __init__(self) -> None:
        self.templates: Dict[str, PromptTemplate] = {}

    def register(self, template: PromptTemplate) -> None:
        self.templates[template.name] = template

    def get(self, name: str) -> PromptTemplate:
        return self.templates[name]


_SURVIVAL_RULES = (
    "Survival rules:\n"
    "- Eating needs a food item in the inventory; drinking needs a water item.\n"
    "- To get items, harvest a resource whose can_harvest_now is true, using its id as resource_id.\n"
    "- Resources marked too_far_to_harvest must be approached first (exploring with a target).\n"
    "- Exploring targets farther than {{max_exploration_radius}} units are shortened.\n"
    "- Building a shelter (building_action create_building) needs 2 stone and 2 wood.\n"
    "- Recent failures show what did not work here; avoid repeating them."
)

DEFAULT_PROMPTS = PromptLibrary()

DEFAULT_PROMPTS.register(
    PromptTemplate(
        name="decide_plan",
        system=(
            "You are the decision-making mind of an animal living in a shared world. "
            "Plan the next few actions that keep it alive and content. Respond with JSON only."
        ),
        user=(
            "Animal: {{agent_name}} (life stage {{life_stage}})\n"
            "Traits: {{traits_text}}\n"
            "Stats: {{stats_text}}\n"
            "Inventory: {{inventory_text}}\n\n"
            "What it perceives:\n{{perception_json}}\n\n"
            "Memories:\n{{memories_text}}\n\n"
            "Current plan:\n{{plan_json}}\n\n"
            + _SURVIVAL_RULES + "\n\n"
            "{{action_catalog}}\n\n"
            "Example output:\n"
            "{\n"
            "  \"reasoning\": \"Thirsty and water is within reach\",\n"
            "  \"plan_type\": \"survival\",\n"
            "  \"confidence\": 0.8,\n"
            "  \"steps\": [\n"
            "    {\"action\": \"harvesting\", \"params\": {\"resource_id\": \"resource_1a2b3c4d\"}, \"priority\": 9, \"turn_offset\": 0, \"reason\": \"Collect water\"},\n"
            "    {\"action\": \"drinking\", \"priority\": 9, \"turn_offset\": 1, \"reason\": \"Quench thirst\"}\n"
            "  ]\n"
            "}\n\n"
            "Respond with JSON only."
        ),
        description="Produces a new multi-step plan from the agent's situation.",
    )
)

DEFAULT_PROMPTS.register(
    PromptTemplate(
        name="review_plan",
        system=(
            "You are the decision-making mind of an animal. It already has a plan. "
            "Keep it unless the situation has changed; respond with JSON only."
        ),
        user=(
            "Animal: {{agent_name}}\n"
            "Stats: {{stats_text}}\n"
            "Inventory: {{inventory_text}}\n\n"
            "What it perceives:\n{{perception_json}}\n\n"
            "Current plan:\n{{plan_json}}\n\n"
            + _SURVIVAL_RULES + "\n\n"
            "{{action_catalog}}\n\n"
            "Return {\"reasoning\": \"...\"} to keep the plan, or include \"steps\" to replace it."
        ),
        description="Lets the oracle keep or replace an existing plan.",
    )
)
