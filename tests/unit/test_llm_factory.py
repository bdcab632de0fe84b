"""Tests for LLM Factory and provider error handling."""

from types import SimpleNamespace

import anthropic
import httpx
import openai
import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from docbot.core.config import LLMConfig
from docbot.core.exceptions import ConfigurationError, ProviderAuthError, ProviderError
from docbot.llm import LLMFactory, base
from docbot.llm.anthropic_provider import AnthropicProvider
from docbot.llm.base import (
    AUTH,
    CONTEXT_LENGTH,
    GENERIC,
    MODEL_UNAVAILABLE,
    RATE_LIMIT,
    ChatProvider,
    content_text,
    to_langchain_messages,
)
from docbot.llm.openai_provider import OpenAIProvider


class TestLLMFactory:
    """Test cases for LLM Factory."""

    def test_available_providers(self):
        """Test that providers are registered."""
        providers = LLMFactory.available_providers()
        assert "openai" in providers
        assert "anthropic" in providers

    def test_create_openai_provider(self):
        config = LLMConfig(provider="openai", model="gpt-4o-mini", openai_api_key="test-key")
        provider = LLMFactory.create(config)
        assert provider.__class__.__name__ == "OpenAIProvider"

    def test_create_anthropic_provider(self):
        config = LLMConfig(
            provider="anthropic",
            model="claude-3-5-haiku-latest",
            anthropic_api_key="test-key",
        )
        provider = LLMFactory.create(config)
        assert provider.__class__.__name__ == "AnthropicProvider"

    def test_missing_api_key_raises(self):
        config = LLMConfig(provider="anthropic", model="x", anthropic_api_key=None)
        with pytest.raises(ConfigurationError) as exc_info:
            LLMFactory.create(config)
        assert "LLM_ANTHROPIC_API_KEY" in exc_info.value.message

    def test_unknown_provider_raises(self):
        """Test that unknown provider raises error."""
        config = LLMConfig(provider="unknown", model="x")
        with pytest.raises(ConfigurationError) as exc_info:
            LLMFactory.create(config)
        assert "Unknown LLM provider" in str(exc_info.value.message)


class TestMessageConversion:
    def test_roles_map_to_message_types(self):
        converted = to_langchain_messages(
            [
                {"role": "system", "content": "rules"},
                {"role": "user", "content": "hi"},
                {"role": "assistant", "content": "hello"},
            ]
        )

        assert [type(m) for m in converted] == [SystemMessage, HumanMessage, AIMessage]
        assert [m.content for m in converted] == ["rules", "hi", "hello"]

    def test_content_blocks_are_flattened(self):
        blocks = [{"type": "text", "text": "Hello "}, {"type": "tool_use"}, "world"]
        assert content_text(blocks) == "Hello world"


class FakeChatModel:
    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    async def ainvoke(self, messages, **params):
        self.calls.append({"messages": messages, **params})
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return SimpleNamespace(content=outcome)


class RateLimited(Exception):
    pass


class TooLong(Exception):
    pass


class Rejected(Exception):
    pass


class StubProvider(ChatProvider):
    name = "stub"

    def __init__(self, outcomes, max_retries=2):
        super().__init__(LLMConfig(max_retries=max_retries, retry_delay_seconds=0.5))
        self.client = FakeChatModel(outcomes)

    def classify_error(self, error):
        return {RateLimited: RATE_LIMIT, TooLong: CONTEXT_LENGTH, Rejected: AUTH}.get(type(error))


@pytest.fixture
def sleeps(monkeypatch):
    recorded = []

    async def fake_sleep(seconds):
        recorded.append(seconds)

    monkeypatch.setattr(base.asyncio, "sleep", fake_sleep)
    return recorded


class TestChatProvider:
    async def test_params_are_forwarded(self):
        provider = StubProvider(["ok"])

        reply = await provider.generate([{"role": "user", "content": "hi"}], temperature=0.3, max_tokens=60)

        assert reply == "ok"
        call = provider.client.calls[0]
        assert call["temperature"] == 0.3
        assert call["max_tokens"] == 60
        assert isinstance(call["messages"][0], HumanMessage)

    async def test_rate_limit_backs_off_then_succeeds(self, sleeps):
        provider = StubProvider([RateLimited(), RateLimited(), "finally"])

        assert await provider.generate([{"role": "user", "content": "hi"}]) == "finally"
        assert sleeps == [0.5, 1.0]

    async def test_rate_limit_exhausted(self, sleeps):
        provider = StubProvider([RateLimited()] * 3)

        with pytest.raises(ProviderError) as exc_info:
            await provider.generate([{"role": "user", "content": "hi"}])

        assert exc_info.value.code == RATE_LIMIT
        assert len(sleeps) == 2

    async def test_context_length_is_not_retried(self, sleeps):
        provider = StubProvider([TooLong("too many tokens")])

        with pytest.raises(ProviderError) as exc_info:
            await provider.generate([{"role": "user", "content": "hi"}])

        assert exc_info.value.code == CONTEXT_LENGTH
        assert sleeps == []

    async def test_auth_error(self):
        provider = StubProvider([Rejected("bad key")])

        with pytest.raises(ProviderAuthError):
            await provider.generate([{"role": "user", "content": "hi"}])

    async def test_unknown_errors_propagate(self):
        provider = StubProvider([RuntimeError("bug")])

        with pytest.raises(RuntimeError):
            await provider.generate([{"role": "user", "content": "hi"}])


class TestOpenAIClassification:
    @pytest.fixture
    def provider(self):
        return OpenAIProvider(LLMConfig(provider="openai", openai_api_key="test-key"))

    def _status_error(self, error_cls, status, message="error"):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        response = httpx.Response(status, request=request)
        return error_cls(message, response=response, body=None)

    def test_rate_limit(self, provider):
        assert provider.classify_error(self._status_error(openai.RateLimitError, 429)) == RATE_LIMIT

    def test_authentication(self, provider):
        assert provider.classify_error(self._status_error(openai.AuthenticationError, 401)) == AUTH

    def test_context_length(self, provider):
        error = self._status_error(openai.BadRequestError, 400, "maximum context length is 128000 tokens")
        assert provider.classify_error(error) == CONTEXT_LENGTH

    def test_non_sdk_error(self, provider):
        assert provider.classify_error(ValueError("x")) is None


ANTHROPIC_REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


def anthropic_error(error_cls, status, message="error"):
    return error_cls(message, response=httpx.Response(status, request=ANTHROPIC_REQUEST), body=None)


class TestAnthropicClassification:
    @pytest.fixture
    def provider(self):
        return AnthropicProvider(LLMConfig(provider="anthropic", anthropic_api_key="test-key"))

    @pytest.mark.parametrize(
        ("error_cls", "status", "expected"),
        [
            (anthropic.RateLimitError, 429, RATE_LIMIT),
            (anthropic.AuthenticationError, 401, AUTH),
            (anthropic.PermissionDeniedError, 403, AUTH),
            (anthropic.NotFoundError, 404, MODEL_UNAVAILABLE),
            (anthropic.InternalServerError, 529, MODEL_UNAVAILABLE),
            (anthropic.UnprocessableEntityError, 422, GENERIC),
        ],
    )
    def test_status_errors(self, provider, error_cls, status, expected):
        assert provider.classify_error(anthropic_error(error_cls, status)) == expected

    def test_prompt_too_long(self, provider):
        error = anthropic_error(anthropic.BadRequestError, 400, "prompt is too long: 210000 tokens > 200000 maximum")
        assert provider.classify_error(error) == CONTEXT_LENGTH

    def test_other_bad_request(self, provider):
        error = anthropic_error(anthropic.BadRequestError, 400, "messages: roles must alternate")
        assert provider.classify_error(error) == GENERIC

    def test_connection_error(self, provider):
        error = anthropic.APIConnectionError(request=ANTHROPIC_REQUEST)
        assert provider.classify_error(error) == MODEL_UNAVAILABLE

    def test_non_sdk_error(self, provider):
        assert provider.classify_error(KeyError("x")) is None

    async def test_rate_limit_maps_to_provider_error(self, provider, sleeps):
        provider.client = FakeChatModel([anthropic_error(anthropic.RateLimitError, 429)] * 4)

        with pytest.raises(ProviderError) as exc_info:
            await provider.generate([{"role": "user", "content": "hi"}])

        assert exc_info.value.code == RATE_LIMIT
        assert exc_info.value.provider == "anthropic"
        assert sleeps == [1.0, 2.0, 4.0]
