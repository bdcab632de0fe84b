"""Embedding clients for document vectorization.

Supports multiple providers:
- OpenAI (default, requires LLM_OPENAI_API_KEY)
- Pinecone Inference (requires VECTOR_PINECONE_API_KEY)
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from docbot.core.exceptions import ConfigurationError, EmbeddingError, ProviderAuthError
from docbot.core.logging import get_logger

if TYPE_CHECKING:
    from openai import AsyncOpenAI

    from docbot.core.config import AppConfig

logger = get_logger(__name__)

# Maximum retries for rate limiting
MAX_RETRIES = 3
# Initial delay between retries (seconds), doubled per attempt
RETRY_DELAY = 1.0


def _is_rate_limited(error: Exception) -> bool:
    if getattr(error, "status_code", None) == 429:
        return True
    error_str = str(error).lower()
    return "rate limit" in error_str or "429" in error_str


class OpenAIEmbeddingClient:
    """Embeddings from the OpenAI embeddings endpoint."""

    provider = "openai"

    def __init__(
        self,
        model: str = "text-embedding-3-small",
        api_key: str | None = None,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_DELAY,
        client: AsyncOpenAI | None = None,
    ):
        """Initialize the embedding client.

        Args:
            model: OpenAI embedding model to use
            api_key: OpenAI API key
            max_retries: Retries after a rate-limit response
            retry_delay: First backoff delay in seconds
            client: Pre-built async client (tests)
        """
        self.model = model
        self._api_key = api_key
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self._api_key:
                raise ProviderAuthError("OpenAI API key is not configured", provider=self.provider)
            from openai import AsyncOpenAI

            self._client = AsyncOpenAI(api_key=self._api_key)
        return self._client

    async def embed(self, text: str) -> list[float]:
        embeddings = await self.embed_batch([text])
        return embeddings[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed a batch in a single request.

        The API reports each item's input position; results are re-ordered
        by it so vector i always belongs to text i.
        """
        if not texts:
            return []

        import openai

        client = self._get_client()
        inputs = [t if t.strip() else " " for t in texts]

        for attempt in range(self.max_retries + 1):
            try:
                response = await client.embeddings.create(model=self.model, input=inputs)
                break
            except openai.AuthenticationError as e:
                logger.error("embedding_auth_failed", provider=self.provider, error=str(e))
                raise ProviderAuthError(str(e), provider=self.provider) from e
            except openai.APIStatusError as e:
                if _is_rate_limited(e) and attempt < self.max_retries:
                    wait_time = self.retry_delay * (2**attempt)
                    logger.warning(
                        "embedding_rate_limit_hit",
                        attempt=attempt + 1,
                        max_retries=self.max_retries,
                        wait_time=wait_time,
                    )
                    await asyncio.sleep(wait_time)
                    continue
                code = "rate_limit" if _is_rate_limited(e) else "embedding_error"
                logger.error("embedding_failed", status=e.status_code, error=str(e))
                raise EmbeddingError(str(e), provider=self.provider, code=code, status=e.status_code) from e
            except openai.APIConnectionError as e:
                logger.error("embedding_connection_failed", error=str(e))
                raise EmbeddingError(str(e), provider=self.provider, code="model_unavailable") from e

        ordered = sorted(response.data, key=lambda item: item.index)
        if len(ordered) != len(texts):
            raise EmbeddingError(
                f"Expected {len(texts)} embeddings, received {len(ordered)}",
                provider=self.provider,
            )
        return [item.embedding for item in ordered]


class PineconeInferenceEmbeddingClient:
    """Embeddings from Pinecone's hosted inference models."""

    provider = "pinecone"

    def __init__(
        self,
        api_key: str | None,
        model: str = "multilingual-e5-large",
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_DELAY,
    ):
        self._api_key = api_key
        self.model = model
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._pinecone_client = None

    def _get_client(self):
        if self._pinecone_client is None:
            if not self._api_key:
                raise ProviderAuthError("Pinecone API key is not configured", provider=self.provider)
            from pinecone import Pinecone

            self._pinecone_client = Pinecone(api_key=self._api_key)
        return self._pinecone_client

    async def embed(self, text: str) -> list[float]:
        vectors = await self._embed(self._client_inputs([text]), input_type="query")
        return vectors[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        return await self._embed(self._client_inputs(texts), input_type="passage")

    @staticmethod
    def _client_inputs(texts: list[str]) -> list[str]:
        return [t if t.strip() else " " for t in texts]

    async def _embed(self, inputs: list[str], input_type: str) -> list[list[float]]:
        client = self._get_client()

        for attempt in range(self.max_retries + 1):
            try:
                # The Pinecone SDK is synchronous
                response = await asyncio.to_thread(
                    client.inference.embed,
                    model=self.model,
                    inputs=inputs,
                    parameters={"input_type": input_type, "truncate": "END"},
                )
                break
            except Exception as e:
                if _is_rate_limited(e) and attempt < self.max_retries:
                    wait_time = self.retry_delay * (2**attempt)
                    logger.warning(
                        "pinecone_embedding_retry",
                        attempt=attempt + 1,
                        max_retries=self.max_retries,
                        wait_time=wait_time,
                    )
                    await asyncio.sleep(wait_time)
                    continue
                status = getattr(e, "status", None)
                logger.error("pinecone_embedding_failed", status=status, error=str(e))
                if status in (401, 403):
                    raise ProviderAuthError(str(e), provider=self.provider) from e
                code = "rate_limit" if _is_rate_limited(e) else "embedding_error"
                raise EmbeddingError(str(e), provider=self.provider, code=code, status=status) from e

        # Inference responses are returned in input order
        vectors = [list(item.values) for item in response.data]
        if len(vectors) != len(inputs):
            raise EmbeddingError(
                f"Expected {len(inputs)} embeddings, received {len(vectors)}",
                provider=self.provider,
            )
        return vectors


def create_embedding_client(config: AppConfig):
    """Create the embedding client selected by ``EMBEDDING_PROVIDER``."""
    settings = config.embedding
    if settings.provider == "pinecone":
        model = settings.model
        if model.startswith("text-embedding-"):
            model = "multilingual-e5-large"
        return PineconeInferenceEmbeddingClient(
            api_key=config.vector.pinecone_api_key,
            model=model,
            max_retries=settings.max_retries,
            retry_delay=settings.retry_delay_seconds,
        )
    if settings.provider == "openai":
        return OpenAIEmbeddingClient(
            model=settings.model,
            api_key=config.llm.openai_api_key,
            max_retries=settings.max_retries,
            retry_delay=settings.retry_delay_seconds,
        )
    raise ConfigurationError(
        f"Unknown embedding provider: {settings.provider!r}. Available: openai, pinecone"
    )
