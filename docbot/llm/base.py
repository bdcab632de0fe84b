"""Shared behaviour for LangChain-backed chat providers."""

from __future__ import annotations

import asyncio
from typing import Any

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from docbot.core.config import LLMConfig
from docbot.core.exceptions import ProviderAuthError, ProviderError
from docbot.core.logging import get_logger

logger = get_logger(__name__)

# Error classifications surfaced through ProviderError.code
RATE_LIMIT = "rate_limit"
CONTEXT_LENGTH = "context_length"
MODEL_UNAVAILABLE = "model_unavailable"
AUTH = "provider_auth"
GENERIC = "provider_error"


def content_text(content: Any) -> str:
    """Flatten a chat model's message content into plain text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts)
    return str(content)


_MESSAGE_TYPES = {
    "system": SystemMessage,
    "user": HumanMessage,
    "assistant": AIMessage,
}


def to_langchain_messages(messages: list[dict[str, str]]) -> list[BaseMessage]:
    """Convert ``{"role", "content"}`` dicts to LangChain message objects."""
    converted = []
    for message in messages:
        message_cls = _MESSAGE_TYPES.get(message.get("role", "user"), HumanMessage)
        converted.append(message_cls(content=message.get("content", "")))
    return converted


class ChatProvider:
    """Base provider: rate-limit backoff plus SDK error translation.

    Subclasses set ``name`` and ``self.client`` (a LangChain chat model) and
    implement :meth:`classify_error`.
    """

    name = "base"

    def __init__(self, config: LLMConfig):
        self.config = config
        self.client: Any = None

    def classify_error(self, error: Exception) -> str | None:
        """Map an SDK exception to an error classification, or None if unknown."""
        raise NotImplementedError

    async def generate(
        self,
        messages: list[dict[str, str]],
        temperature: float | None = None,
        max_tokens: int | None = None,
        **kwargs: Any,
    ) -> str:
        """Generate a single response."""
        params = dict(kwargs)
        if temperature is not None:
            params["temperature"] = temperature
        if max_tokens is not None:
            params["max_tokens"] = max_tokens

        lc_messages = to_langchain_messages(messages)
        max_retries = self.config.max_retries
        for attempt in range(max_retries + 1):
            try:
                response = await self.client.ainvoke(lc_messages, **params)
                return content_text(response.content)
            except Exception as e:
                code = self.classify_error(e)
                if code == RATE_LIMIT and attempt < max_retries:
                    wait_time = self.config.retry_delay_seconds * (2**attempt)
                    logger.warning(
                        "llm_rate_limit_hit",
                        provider=self.name,
                        attempt=attempt + 1,
                        max_retries=max_retries,
                        wait_time=wait_time,
                    )
                    await asyncio.sleep(wait_time)
                    continue
                if code is None:
                    raise
                logger.error("llm_generation_failed", provider=self.name, code=code, error=str(e))
                if code == AUTH:
                    raise ProviderAuthError(str(e), provider=self.name) from e
                raise ProviderError(
                    str(e),
                    provider=self.name,
                    code=code,
                    status=getattr(e, "status_code", None),
                ) from e

        raise ProviderError("Max retries exceeded", provider=self.name, code=RATE_LIMIT)
