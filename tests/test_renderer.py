from zooverse.cognition.context import OracleRequest
from zooverse.cognition.plan import Plan, PlanStep, build_step_params
from zooverse.cognition.prompts import DEFAULT_PROMPTS, PromptTemplate
from zooverse.cognition.renderers import render_prompt
from zooverse.schemas import (
    Agent,
    Inventory,
    InventoryItem,
    PerceptionSnapshot,
    Position,
)


def make_request(**kwargs):
    agent = Agent(
        name="Hazel",
        inventory=Inventory(items=[InventoryItem(type="wood", name="wood", quantity=2)]),
    )
    snapshot = PerceptionSnapshot(
        agent_id=agent.id,
        timestamp=0.0,
        my_position=Position(),
        sight_radius=8.5,
        harvest_radius=4.0,
    )
    return OracleRequest(agent=agent, snapshot=snapshot, **kwargs)


def test_render_prompt_replaces_placeholders():
    template = PromptTemplate(
        name="test",
        system="You are {{agent_name}}.",
        user="Stage: {{life_stage}}\nCarrying: {{inventory_text}}\nRadius: {{max_exploration_radius}}\n{{action_catalog}}",
    )

    rendered = render_prompt(template, make_request())

    assert rendered.system == "You are Hazel."
    assert "Stage: baby" in rendered.user
    assert "2x wood (wood)" in rendered.user
    assert "Radius: 15" in rendered.user
    assert "- harvesting" in rendered.user
    assert "{{" not in rendered.user


def test_default_templates_follow_plan_need():
    step = PlanStep(action="idle", params=build_step_params("idle"))
    request = make_request(existing_plan=Plan(agent_id="x", steps=[step]), needs_new_plan=False)

    rendered = render_prompt(None, request)

    assert "{{" not in rendered.user
    assert '"action": "idle"' in rendered.user
    assert DEFAULT_PROMPTS.get("review_plan").name == "review_plan"


def test_memories_text_defaults_to_none():
    assert make_request().memories_text() == "(none)"
