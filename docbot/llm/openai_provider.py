"""OpenAI LLM Provider."""

import openai
from langchain_openai import ChatOpenAI

from docbot.core.config import LLMConfig
from docbot.llm.base import AUTH, CONTEXT_LENGTH, GENERIC, MODEL_UNAVAILABLE, RATE_LIMIT, ChatProvider
from docbot.llm.factory import LLMFactory


@LLMFactory.register("openai")
class OpenAIProvider(ChatProvider):
    """OpenAI API provider using langchain-openai."""

    name = "openai"

    def __init__(self, config: LLMConfig):
        super().__init__(config)
        client_kwargs = {
            "model": config.model,
            "api_key": config.openai_api_key,
            "timeout": config.timeout_seconds,
            # Retries are handled in generate() so rate limits back off uniformly
            "max_retries": 0,
        }
        if config.base_url:
            client_kwargs["openai_api_base"] = config.base_url
        self.client = ChatOpenAI(**client_kwargs)

    def classify_error(self, error: Exception) -> str | None:
        if isinstance(error, openai.RateLimitError):
            return RATE_LIMIT
        if isinstance(error, openai.AuthenticationError | openai.PermissionDeniedError):
            return AUTH
        if isinstance(error, openai.BadRequestError):
            if getattr(error, "code", None) == "context_length_exceeded" or "context length" in str(error).lower():
                return CONTEXT_LENGTH
            return GENERIC
        if isinstance(error, openai.NotFoundError | openai.APIConnectionError | openai.InternalServerError):
            return MODEL_UNAVAILABLE
        if isinstance(error, openai.APIError):
            return GENERIC
        return None
