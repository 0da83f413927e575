"""Provider-agnostic LLM text calls with retries.

The decision oracle needs the model's raw text (it parses leniently and can
recover an action from prose), so this helper returns text rather than a
validated response model. Transport errors are retried with backoff;
anything else propagates to the caller.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable

from mirascope import llm
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .config import Config
from .local_llm import LocalLLMError, call_ollama_chat
from .logging_utils import log_error

LLM_TIMEOUT_SECONDS = 60.0
RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (LocalLLMError, ConnectionError)


def combine_prompts(system_prompt: str, user_prompt: str) -> str:
    sections = [section.strip() for section in (system_prompt, user_prompt)]
    return "\n\n".join(section for section in sections if section)


async def call_llm_text(
    *,
    system_prompt: str,
    user_prompt: str,
    llm_provider: str,
    llm_model: str,
    max_attempts: int = 2,
    timeout: float = LLM_TIMEOUT_SECONDS,
    retry_wait: float = 0.5,
) -> str:
    """Return the model's reply as plain text.

    ``llm_provider == "ollama"`` goes to the local server; any other value is
    handed to mirascope. Each attempt is bounded by ``timeout``; timeouts are
    not retried because the caller has its own deadline.

    Raises:
        LocalLLMError / ConnectionError: transport kept failing after retries
        asyncio.TimeoutError: one attempt exceeded ``timeout``
    """

    prompt = combine_prompts(system_prompt, user_prompt)
    use_local_llm = llm_provider.lower() == "ollama"

    invoke: Callable[[str], Any] | None = None
    if not use_local_llm:
        @llm.call(provider=llm_provider, model=llm_model)
        async def _invoke(text: str) -> str:
            return text

        invoke = _invoke

    attempt_number = 0
    async for attempt in AsyncRetrying(
        retry=retry_if_exception_type(RETRYABLE_ERRORS),
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=retry_wait, max=4),
        reraise=True,
    ):
        with attempt:
            attempt_number += 1
            if attempt_number > 1:
                log_error(f"LLM retry {attempt_number}/{max_attempts} after transport error")
            if use_local_llm:
                return await asyncio.wait_for(
                    call_ollama_chat(
                        system_prompt=system_prompt,
                        user_prompt=user_prompt,
                        llm_model=llm_model,
                        base_url=Config.OLLAMA_BASE_URL,
                        timeout=timeout,
                        json_mode=True,
                    ),
                    timeout=timeout,
                )
            if invoke is None:
                raise RuntimeError("Remote LLM invoke is not initialized.")
            try:
                response = await asyncio.wait_for(invoke(prompt), timeout=timeout)
            except asyncio.TimeoutError:
                log_error(f"LLM call timed out after {timeout:.0f}s")
                raise
            return response.content

    # reraise=True means the loop always returns or raises.
    raise RuntimeError("LLM retry mechanism exited unexpectedly")
