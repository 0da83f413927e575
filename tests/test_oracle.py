"""Tests for the decision oracle adapter and its LLM transport."""

import asyncio
import json
import math
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from zooverse.cognition.oracle import (
    DecisionOracleAdapter,
    LLMOracleTransport,
    OracleUnavailableError,
    extract_json,
    recover_action,
)
from zooverse.cognition.context import OracleRequest
from zooverse.memory import SpatialMemoryStream
from zooverse.perception import PerceptionBuilder
from zooverse.schemas import Agent, AgentStats, Position, WorldResource
from zooverse.state import AgentStateStore
from zooverse.world import WorldResourceRegistry


class StaticTransport:
    def __init__(self, reply):
        self.reply = reply
        self.requests = []

    async def request(self, request):
        self.requests.append(request)
        return self.reply


class FailingTransport:
    async def request(self, request):
        raise ConnectionError("service down")


class SlowTransport:
    async def request(self, request):
        await asyncio.sleep(1)
        return "{}"


def snapshot_for(agent, resources=()):
    clock = lambda: 0.0
    builder = PerceptionBuilder(
        WorldResourceRegistry(list(resources)),
        AgentStateStore(clock=clock),
        SpatialMemoryStream(clock=clock),
        harvest_radius=4.0,
        clock=clock,
    )
    return builder.build_snapshot(agent)


def adapter(transport=None, **kwargs):
    return DecisionOracleAdapter(transport, clock=lambda: 42.0, max_exploration_radius=15.0, **kwargs)


def test_unknown_action_becomes_idle():
    agent = Agent(name="Pip")
    decision = adapter().interpret(
        json.dumps({"steps": [{"action": "NOT_A_REAL_ACTION", "params": {"resource_id": "r"}}]}),
        agent,
        snapshot_for(agent),
    )

    assert decision.source == "oracle"
    assert decision.plan.steps[0].action == "idle"
    assert decision.plan.steps[0].params.kind == "idle"


def test_distant_exploration_target_is_pulled_in_on_the_same_bearing():
    agent = Agent(name="Pip")
    decision = adapter().interpret(
        {"steps": [{"action": "exploring", "params": {"target": {"x": 1000, "z": 1000}}}]},
        agent,
        snapshot_for(agent),
    )

    target = decision.plan.steps[0].params.target
    assert math.hypot(target.x, target.z) == pytest.approx(15.0)
    assert target.x == pytest.approx(15 / math.sqrt(2))
    assert target.z == pytest.approx(target.x)


def test_fenced_camel_case_reply_is_normalized():
    agent = Agent(name="Pip")
    reply = (
        "Here is the plan:\n```json\n"
        + json.dumps(
            {
                "planType": "survival",
                "confidence": 0.9,
                "reasoning": "Thirsty",
                "steps": [
                    {"action": "harvesting", "resourceId": "resource_1", "turnOffset": 3},
                    {"action": "drinking", "priority": 42},
                ],
            }
        )
        + "\n```"
    )

    decision = adapter().interpret(reply, agent, snapshot_for(agent))
    plan = decision.plan

    assert plan.plan_type == "survival"
    assert plan.confidence == pytest.approx(0.9)
    assert plan.reasoning == "Thirsty"
    assert plan.created_at == 42.0
    assert plan.steps[0].params.resource_id == "resource_1"
    assert plan.steps[0].turn_offset == 0
    assert plan.steps[1].priority == 10
    assert plan.steps[0].id != plan.steps[1].id


def test_turn_offsets_never_exceed_step_position():
    agent = Agent(name="Pip")
    decision = adapter().interpret(
        {"steps": [
            {"action": "idle", "turn_offset": -2},
            {"action": "playing", "turn_offset": 5},
            {"action": "sleeping"},
        ]},
        agent,
        snapshot_for(agent),
    )

    assert [s.turn_offset for s in decision.plan.steps] == [0, 1, 2]


@pytest.mark.asyncio
async def test_infinite_numbers_fall_back_to_defaults():
    agent = Agent(name="Pip")
    reply = (
        '{"steps": ['
        '{"action": "idle", "priority": Infinity, "turn_offset": 0},'
        '{"action": "playing", "priority": "inf", "turn_offset": "-inf"},'
        '{"action": "sleeping", "turn_offset": Infinity}'
        '], "confidence": Infinity}'
    )

    decision = await adapter(StaticTransport(reply)).decide(agent, snapshot_for(agent))

    assert decision.source == "oracle"
    assert [s.priority for s in decision.plan.steps] == [5, 5, 5]
    assert [s.turn_offset for s in decision.plan.steps] == [0, 1, 2]
    assert decision.plan.confidence == pytest.approx(0.8)


def test_infinite_exploration_target_is_dropped():
    agent = Agent(name="Pip")
    decision = adapter().interpret(
        '{"action": "exploring", "target": {"x": Infinity, "z": 5}}',
        agent,
        snapshot_for(agent),
    )

    step = decision.plan.steps[0]
    assert step.action == "exploring"
    assert step.params.target is None


@pytest.mark.asyncio
async def test_unreadable_reply_yields_fallback_plan(monkeypatch):
    agent = Agent(name="Pip")
    adapter_under_test = adapter(StaticTransport('{"action": "idle"}'))

    def explode(*args, **kwargs):
        raise RuntimeError("bad shape")

    monkeypatch.setattr(adapter_under_test, "_build_plan", explode)
    decision = await adapter_under_test.decide(agent, snapshot_for(agent))

    assert decision.source == "fallback"
    assert "bad shape" in decision.reasoning


def test_building_sub_action_in_params():
    agent = Agent(name="Pip")
    decision = adapter().interpret(
        {"action": "building", "params": {"action": "add_room", "buildingId": "building_1"}},
        agent,
        snapshot_for(agent),
    )

    params = decision.plan.steps[0].params
    assert params.building_action == "add_room"
    assert params.building_id == "building_1"


def test_harvest_without_id_targets_nearest_reachable_node():
    near = WorldResource(type="water", position=Position(x=1), quantity=10)
    farther = WorldResource(type="food", position=Position(x=3), quantity=10)
    agent = Agent(name="Pip")

    decision = adapter().interpret(
        '{"steps": [{"action": "harvesting"}]}', agent, snapshot_for(agent, [farther, near])
    )

    assert decision.plan.steps[0].params.resource_id == near.id


def test_prose_reply_recovers_first_action_keyword():
    agent = Agent(name="Pip")

    decision = adapter().interpret(
        "I think the animal should drink some water and then rest.", agent, snapshot_for(agent)
    )

    assert decision.source == "keyword"
    assert [s.action for s in decision.plan.steps] == ["drinking"]


def test_gibberish_becomes_idle():
    agent = Agent(name="Pip")

    decision = adapter().interpret("zzz qqq ???", agent, snapshot_for(agent))

    assert decision.source == "idle"
    assert decision.plan.steps[0].action == "idle"


def test_keep_plan_reply_returns_no_plan():
    agent = Agent(name="Pip")

    decision = adapter().interpret(
        '{"keep_plan": true, "reasoning": "Still on track"}',
        agent,
        snapshot_for(agent),
        needs_new_plan=False,
    )

    assert decision.plan is None
    assert decision.reasoning == "Still on track"


@pytest.mark.asyncio
async def test_failing_transport_yields_fallback_plan():
    agent = Agent(name="Pip", stats=AgentStats(thirst=90))

    decision = await adapter(FailingTransport()).decide(agent, snapshot_for(agent))

    assert decision.source == "fallback"
    assert decision.plan.steps
    assert decision.plan.steps[0].turn_offset == 0
    assert decision.plan.confidence == 0.6


@pytest.mark.asyncio
async def test_slow_transport_times_out_to_fallback():
    agent = Agent(name="Pip")

    decision = await adapter(SlowTransport(), timeout=0.01).decide(agent, snapshot_for(agent))

    assert decision.source == "fallback"
    assert "timed out" in decision.reasoning


@pytest.mark.asyncio
async def test_missing_transport_uses_fallback():
    agent = Agent(name="Pip")

    decision = await adapter().decide(agent, snapshot_for(agent))

    assert decision.source == "fallback"


@pytest.mark.asyncio
async def test_transport_receives_request_context():
    agent = Agent(name="Pip")
    transport = StaticTransport('{"steps": [{"action": "playing"}]}')

    decision = await adapter(transport).decide(agent, snapshot_for(agent), needs_new_plan=True)

    assert decision.plan.steps[0].action == "playing"
    request = transport.requests[0]
    assert request.agent is agent
    assert request.needs_new_plan is True
    assert request.max_exploration_radius == 15.0


@pytest.mark.asyncio
async def test_unconfigured_llm_transport_raises():
    agent = Agent(name="Pip")
    transport = LLMOracleTransport(llm_provider=None, llm_model=None)

    with pytest.raises(OracleUnavailableError):
        await transport.request(OracleRequest(agent=agent, snapshot=snapshot_for(agent)))

    decision = await adapter(transport).decide(agent, snapshot_for(agent))
    assert decision.source == "fallback"


@pytest.mark.asyncio
async def test_llm_transport_renders_prompt(monkeypatch):
    captured = {}

    async def fake_call_llm_text(**kwargs):
        captured.update(kwargs)
        return '{"steps": [{"action": "sleeping"}]}'

    monkeypatch.setattr("zooverse.cognition.oracle.call_llm_text", fake_call_llm_text)
    agent = Agent(name="Pip")
    transport = LLMOracleTransport(llm_provider="openai", llm_model="gpt-test")

    decision = await adapter(transport).decide(agent, snapshot_for(agent))

    assert decision.plan.steps[0].action == "sleeping"
    assert captured["llm_provider"] == "openai"
    assert captured["llm_model"] == "gpt-test"
    assert "Pip" in captured["user_prompt"]
    assert "{{" not in captured["user_prompt"]


def test_parsing_helpers():
    assert extract_json('noise {"a": 1} noise') == {"a": 1}
    assert extract_json("no json here") is None
    assert extract_json(17) is None
    assert recover_action("Let's build then sleep") == "building"
    assert recover_action("nothing useful") is None


@pytest.mark.asyncio
async def test_oracle_is_consulted_once_per_decision():
    agent = Agent(name="Pip")
    request_mock = AsyncMock(return_value={"steps": [{"action": "exploring", "purpose": "look around"}]})
    oracle = adapter(SimpleNamespace(request=request_mock))

    decision = await oracle.decide(agent, snapshot_for(agent))

    request_mock.assert_awaited_once()
    assert decision.plan.steps[0].params.purpose == "look around"
