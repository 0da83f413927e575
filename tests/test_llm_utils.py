"""Unit tests for the LLM text helper."""

import pytest

from zooverse.llm_utils import call_llm_text, combine_prompts


class FakeResponse:
    def __init__(self, content: str):
        self.content = content


@pytest.mark.asyncio
async def test_call_llm_text_success(monkeypatch):
    recorded_prompts: list[str] = []

    async def fake_caller(prompt: str) -> FakeResponse:
        recorded_prompts.append(prompt)
        return FakeResponse('{"steps": []}')

    def fake_decorator(*, provider, model):
        assert provider == "openai"
        assert model == "gpt-5-nano"

        def wrapper(fn):
            async def inner(prompt: str):
                return await fake_caller(prompt)

            return inner

        return wrapper

    monkeypatch.setattr("zooverse.llm_utils.llm.call", fake_decorator)

    result = await call_llm_text(
        system_prompt="System context",
        user_prompt="What now?",
        llm_provider="openai",
        llm_model="gpt-5-nano",
    )

    assert result == '{"steps": []}'
    assert recorded_prompts == ["System context\n\nWhat now?"]


@pytest.mark.asyncio
async def test_call_llm_text_retries_transport_errors(monkeypatch):
    attempts: list[str] = []

    async def flaky_caller(prompt: str) -> FakeResponse:
        attempts.append(prompt)
        if len(attempts) == 1:
            raise ConnectionError("reset by peer")
        return FakeResponse("eat")

    def fake_decorator(*, provider, model):
        def wrapper(fn):
            async def inner(prompt: str):
                return await flaky_caller(prompt)

            return inner

        return wrapper

    monkeypatch.setattr("zooverse.llm_utils.llm.call", fake_decorator)

    result = await call_llm_text(
        system_prompt="System",
        user_prompt="User",
        llm_provider="anthropic",
        llm_model="claude-test",
        retry_wait=0,
    )

    assert result == "eat"
    assert len(attempts) == 2


@pytest.mark.asyncio
async def test_call_llm_text_does_not_retry_other_errors(monkeypatch):
    attempts: list[str] = []

    def fake_decorator(*, provider, model):
        def wrapper(fn):
            async def inner(prompt: str):
                attempts.append(prompt)
                raise ValueError("bad request")

            return inner

        return wrapper

    monkeypatch.setattr("zooverse.llm_utils.llm.call", fake_decorator)

    with pytest.raises(ValueError):
        await call_llm_text(
            system_prompt="System",
            user_prompt="User",
            llm_provider="openai",
            llm_model="gpt-5-nano",
            retry_wait=0,
        )
    assert len(attempts) == 1


@pytest.mark.asyncio
async def test_call_llm_text_local_provider(monkeypatch):
    captured_kwargs: dict[str, object] = {}

    async def fake_local_call(*, system_prompt, user_prompt, llm_model, base_url=None, timeout=60.0, json_mode=False):
        captured_kwargs["system_prompt"] = system_prompt
        captured_kwargs["user_prompt"] = user_prompt
        captured_kwargs["llm_model"] = llm_model
        captured_kwargs["json_mode"] = json_mode
        return '{"action": "drinking"}'

    def fail_decorator(*args, **kwargs):
        raise AssertionError("remote provider path should not be used for ollama")

    monkeypatch.setattr("zooverse.llm_utils.call_ollama_chat", fake_local_call)
    monkeypatch.setattr("zooverse.llm_utils.llm.call", fail_decorator)

    result = await call_llm_text(
        system_prompt="System context",
        user_prompt="User payload",
        llm_provider="ollama",
        llm_model="llama3.1",
    )

    assert result == '{"action": "drinking"}'
    assert captured_kwargs["system_prompt"] == "System context"
    assert captured_kwargs["user_prompt"] == "User payload"
    assert captured_kwargs["llm_model"] == "llama3.1"
    assert captured_kwargs["json_mode"] is True


def test_combine_prompts_skips_empty_sections():
    assert combine_prompts("", " user ") == "user"
    assert combine_prompts("system", "user") == "system\n\nuser"
