"""Ollama chat client for running the decision oracle on a local model.

The HTTP call is blocking (urllib), so it runs in a worker thread to keep
the simulation's event loop responsive.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List, Optional
from urllib import error, request

from .config import Config

_CHAT_ENDPOINT = "/api/chat"


class LocalLLMError(RuntimeError):
    """Raised when the local model cannot be reached or answers badly."""


def build_chat_payload(
    *,
    system_prompt: str,
    user_prompt: str,
    llm_model: str,
    json_mode: bool = False,
    temperature: Optional[float] = None,
) -> Dict[str, Any]:
    messages: List[Dict[str, str]] = []
    if system_prompt.strip():
        messages.append({"role": "system", "content": system_prompt.strip()})
    messages.append({"role": "user", "content": user_prompt.strip()})

    payload: Dict[str, Any] = {"model": llm_model, "messages": messages, "stream": False}
    if json_mode:
        payload["format"] = "json"
    if temperature is not None:
        payload["options"] = {"temperature": temperature}
    return payload


def _extract_content(raw: str) -> str:
    try:
        body = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise LocalLLMError("Ollama returned a non-JSON body") from exc
    content = (body.get("message") or {}).get("content")
    if not content:
        raise LocalLLMError("Ollama response had no assistant content")
    return content


def _post_chat(payload: Dict[str, Any], base_url: str, timeout: float) -> str:
    url = base_url.rstrip("/") + _CHAT_ENDPOINT
    req = request.Request(
        url,
        data=json.dumps(payload).encode("utf-8"),
        headers={"Content-Type": "application/json"},
        method="POST",
    )
    try:
        with request.urlopen(req, timeout=timeout) as resp:
            return _extract_content(resp.read().decode("utf-8"))
    except error.HTTPError as exc:
        detail = exc.read().decode("utf-8", errors="ignore") if exc.fp else exc.reason
        raise LocalLLMError(f"Ollama returned HTTP {exc.code}: {detail}") from exc
    except error.URLError as exc:
        raise LocalLLMError(f"Could not reach Ollama at {url}: {exc.reason}") from exc


async def call_ollama_chat(
    *,
    system_prompt: str,
    user_prompt: str,
    llm_model: str,
    base_url: Optional[str] = None,
    timeout: float = 60.0,
    json_mode: bool = False,
    temperature: Optional[float] = None,
) -> str:
    """Send one chat turn to Ollama and return the assistant's text."""

    if not user_prompt.strip():
        raise LocalLLMError("Cannot call Ollama with an empty user prompt")
    payload = build_chat_payload(
        system_prompt=system_prompt,
        user_prompt=user_prompt,
        llm_model=llm_model,
        json_mode=json_mode,
        temperature=temperature,
    )
    return await asyncio.to_thread(_post_chat, payload, base_url or Config.OLLAMA_BASE_URL, timeout)


__all__ = ["LocalLLMError", "build_chat_payload", "call_ollama_chat"]
