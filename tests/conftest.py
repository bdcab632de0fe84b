"""Common test fixtures."""

import pytest

from docbot.chat.config_store import ChatbotConfig, InMemoryChatbotConfigRepository
from docbot.chat.orchestrator import ChatOrchestrator
from docbot.core.config import (
    AppConfig,
    ChatConfig,
    EmbeddingConfig,
    IngestionConfig,
    LLMConfig,
    RateLimitConfig,
    SupabaseConfig,
    VectorStoreConfig,
)
from docbot.core.di_container import container as di_container
from docbot.documents.chunker import SentenceChunker
from docbot.documents.extractors import DocumentExtractor
from docbot.documents.ingestion import IngestionService
from docbot.documents.repository import InMemoryChunkRepository
from docbot.documents.vector_store import InMemoryVectorIndex
from docbot.ratelimit import RateLimiter
from docbot.ratelimit.in_memory_store import InMemoryRateLimitStore

TEST_DIMENSION = 8


class MockLLM:
    """Mock LLM provider for testing."""

    def __init__(self, response: str = "This is a mock response.", error: Exception | None = None):
        self.response = response
        self.error = error
        self.calls: list[dict] = []

    async def generate(self, messages, temperature=None, max_tokens=None, **kwargs) -> str:
        self.calls.append({"messages": messages, "temperature": temperature, "max_tokens": max_tokens})
        if self.error:
            raise self.error
        return self.response


class FakeEmbedder:
    """Deterministic bag-of-letters embeddings.

    Texts sharing letters get similar vectors, so retrieval order is
    predictable without a real model.
    """

    def __init__(self, dimension: int = TEST_DIMENSION, fail_on_call: int | None = None, error=None):
        self.dimension = dimension
        self.fail_on_call = fail_on_call
        self.error = error
        self.batch_calls: list[list[str]] = []

    def vector_for(self, text: str) -> list[float]:
        vector = [0.0] * self.dimension
        for char in text.lower():
            if char.isalpha():
                vector[ord(char) % self.dimension] += 1.0
        if not any(vector):
            vector[0] = 1.0
        return vector

    async def embed(self, text: str) -> list[float]:
        return self.vector_for(text)

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        self.batch_calls.append(list(texts))
        if self.fail_on_call is not None and len(self.batch_calls) == self.fail_on_call:
            raise self.error
        return [self.vector_for(t) for t in texts]


@pytest.fixture
def test_config() -> AppConfig:
    """Create test configuration backed entirely by in-process stores."""
    return AppConfig(
        debug=True,
        log_level="DEBUG",
        log_to_file=False,
        llm=LLMConfig(provider="openai", model="gpt-4o-mini", openai_api_key="test-key"),
        embedding=EmbeddingConfig(provider="openai", dimension=TEST_DIMENSION, batch_size=2),
        vector=VectorStoreConfig(backend="in_memory"),
        supabase=SupabaseConfig(url=None, service_key=None, owner_emails=["owner@example.com"]),
        ingestion=IngestionConfig(backend="in_memory"),
        rate_limit=RateLimitConfig(backend="in_memory", cleanup_interval_seconds=0),
        chat=ChatConfig(config_backend="in_memory"),
    )


@pytest.fixture
def mock_llm() -> MockLLM:
    """Create mock LLM provider."""
    return MockLLM()


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def vector_index() -> InMemoryVectorIndex:
    return InMemoryVectorIndex(dimension=TEST_DIMENSION)


@pytest.fixture
def chunk_repository() -> InMemoryChunkRepository:
    return InMemoryChunkRepository()


@pytest.fixture
def ingestion_service(fake_embedder, vector_index, chunk_repository) -> IngestionService:
    return IngestionService(
        extractor=DocumentExtractor(),
        chunker=SentenceChunker(),
        embedder=fake_embedder,
        vector_index=vector_index,
        repository=chunk_repository,
        batch_size=2,
    )


@pytest.fixture
def chatbot_config() -> ChatbotConfig:
    return ChatbotConfig(
        chatbot_name="Acme Helper",
        role="customer support assistant for Acme routers",
        description="Answers questions about Acme routers.",
        current_status="active",
    )


@pytest.fixture
def config_repository(chatbot_config) -> InMemoryChatbotConfigRepository:
    return InMemoryChatbotConfigRepository(initial=chatbot_config)


@pytest.fixture
def orchestrator(mock_llm, fake_embedder, vector_index) -> ChatOrchestrator:
    return ChatOrchestrator(llm=mock_llm, embedder=fake_embedder, vector_index=vector_index)


@pytest.fixture
def rate_limiter() -> RateLimiter:
    return RateLimiter(store=InMemoryRateLimitStore())


@pytest.fixture
def di_container_fixture():
    """Provide the DI container for testing."""
    yield di_container


@pytest.fixture
def override_llm(mock_llm):
    """Override LLM provider in DI container."""
    with di_container.llm.override(mock_llm):
        yield
