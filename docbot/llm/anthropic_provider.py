"""Anthropic LLM Provider."""

import anthropic
from langchain_anthropic import ChatAnthropic

from docbot.core.config import LLMConfig
from docbot.llm.base import AUTH, CONTEXT_LENGTH, GENERIC, MODEL_UNAVAILABLE, RATE_LIMIT, ChatProvider
from docbot.llm.factory import LLMFactory


@LLMFactory.register("anthropic")
class AnthropicProvider(ChatProvider):
    """Anthropic API provider using langchain-anthropic.

    Supports custom base_url for Anthropic-compatible APIs.
    """

    name = "anthropic"

    def __init__(self, config: LLMConfig):
        super().__init__(config)
        client_kwargs = {
            "model": config.model,
            "api_key": config.anthropic_api_key,
            "timeout": config.timeout_seconds,
            "max_retries": 0,
        }
        if config.base_url:
            client_kwargs["anthropic_api_url"] = config.base_url
        self.client = ChatAnthropic(**client_kwargs)

    def classify_error(self, error: Exception) -> str | None:
        if isinstance(error, anthropic.RateLimitError):
            return RATE_LIMIT
        if isinstance(error, anthropic.AuthenticationError | anthropic.PermissionDeniedError):
            return AUTH
        if isinstance(error, anthropic.BadRequestError):
            if "prompt is too long" in str(error).lower():
                return CONTEXT_LENGTH
            return GENERIC
        if isinstance(error, anthropic.NotFoundError | anthropic.APIConnectionError):
            return MODEL_UNAVAILABLE
        if isinstance(error, anthropic.APIStatusError):
            return MODEL_UNAVAILABLE if error.status_code >= 500 else GENERIC
        if isinstance(error, anthropic.APIError):
            return GENERIC
        return None
