"""
Chat-completion client and reply parsing.

The LLM is an opaque text oracle: callers hand it a prompt and get text back.
Everything that talks to it depends on the ``LLMClient`` protocol so tests can
substitute a deterministic fake.
"""

import json
import logging
import re
from typing import Any, Protocol

from openai import AsyncOpenAI

logger = logging.getLogger(__name__)

_JSON_FENCE = re.compile(r"```json\s*([\s\S]*?)\s*```")
_ANY_FENCE_OPEN = re.compile(r"^```[^\n]*\n?")


class LLMClient(Protocol):
    """Anything that can turn a prompt into a completion."""

    async def complete(
        self,
        prompt: str,
        *,
        system: str | None = None,
        history: list[dict[str, str]] | None = None,
        max_tokens: int = 1024,
    ) -> str:
        ...


class ChatCompletionClient:
    """
    LLMClient backed by an OpenAI-compatible chat completions endpoint.

    Usage:
        client = ChatCompletionClient(api_key=..., base_url=..., model=...)
        text = await client.complete("Classify this query ...", max_tokens=500)
        await client.close()
    """

    def __init__(self, api_key: str, base_url: str, model: str, timeout: float = 60.0):
        if not api_key:
            raise ValueError("LLM_API_KEY environment variable is required")
        self.model = model
        self._client = AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout)

    async def complete(
        self,
        prompt: str,
        *,
        system: str | None = None,
        history: list[dict[str, str]] | None = None,
        max_tokens: int = 1024,
    ) -> str:
        messages: list[dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        for turn in history or []:
            role = "user" if turn.get("role") == "user" else "assistant"
            messages.append({"role": role, "content": turn.get("content", "")})
        messages.append({"role": "user", "content": prompt})

        response = await self._client.chat.completions.create(
            model=self.model,
            messages=messages,
            max_tokens=max_tokens,
        )
        if not response.choices:
            raise ValueError("LLM returned no choices")
        return response.choices[0].message.content or ""

    async def close(self) -> None:
        await self._client.close()


def strip_fences(text: str) -> str:
    """Remove a surrounding ```json / ``` markdown fence, if any."""
    text = text.strip()
    match = _JSON_FENCE.search(text)
    if match:
        return match.group(1).strip()
    if text.startswith("```"):
        text = _ANY_FENCE_OPEN.sub("", text, count=1)
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


def parse_json_reply(text: str) -> dict[str, Any]:
    """
    Parse an LLM reply expected to hold a single JSON object.

    Raises ValueError if the reply is empty, not JSON, or not an object.
    """
    if not text or not text.strip():
        raise ValueError("empty LLM response")
    payload = strip_fences(text)
    try:
        obj = json.loads(payload)
    except json.JSONDecodeError as e:
        logger.debug("Unparseable LLM reply: %s", payload[:400])
        raise ValueError(f"LLM reply is not valid JSON: {e}") from e
    if not isinstance(obj, dict):
        raise ValueError("LLM reply is not a JSON object")
    return obj
