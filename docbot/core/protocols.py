"""Protocol interfaces for dependency injection."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from docbot.chat.config_store import ChatbotConfig, ChatbotConfigUpdate, ChatbotStatus
    from docbot.documents.models import (
        ChunkRecord,
        DocumentSummary,
        IndexStats,
        VectorMatch,
        VectorRecord,
    )
    from docbot.ratelimit.models import WindowState


@runtime_checkable
class LLMProvider(Protocol):
    """Chat completion interface."""

    async def generate(
        self,
        messages: list[dict[str, str]],
        temperature: float | None = None,
        max_tokens: int | None = None,
        **kwargs: Any,
    ) -> str:
        """Generate a single response."""
        ...


@runtime_checkable
class TextExtractor(Protocol):
    """Per-file-type text extraction (synchronous, runs in a worker thread)."""

    def extract(self, content: bytes) -> str: ...


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Text embedding interface."""

    async def embed(self, text: str) -> list[float]:
        """Embed a single text."""
        ...

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed texts; result i belongs to input i."""
        ...


@runtime_checkable
class VectorIndex(Protocol):
    """Vector store gateway."""

    async def upsert(self, records: list[VectorRecord]) -> None: ...

    async def query(
        self,
        vector: list[float],
        top_k: int,
        filter: dict[str, Any] | None = None,
    ) -> list[VectorMatch]:
        """Return matches sorted by descending score."""
        ...

    async def delete(self, ids: list[str]) -> None: ...

    async def stats(self) -> IndexStats: ...


@runtime_checkable
class ChunkRepository(Protocol):
    """Relational store for chunk records."""

    async def insert_chunks(self, chunks: list[ChunkRecord]) -> list[ChunkRecord]:
        """Persist chunks and return them with ids assigned."""
        ...

    async def list_chunks(self, document_name: str) -> list[ChunkRecord]:
        """Chunks of one document ordered by chunk_index."""
        ...

    async def list_documents(self) -> list[DocumentSummary]: ...

    async def delete_document(self, document_name: str) -> int:
        """Delete all chunks of a document; returns the number deleted."""
        ...

    async def mark_indexed(self, chunk_ids: list[str], indexed: bool) -> None: ...


@runtime_checkable
class RateLimitStore(Protocol):
    """Window storage for the rate limiter.

    ``hit`` must count the request atomically and report the window state
    after counting (or, when the limit was already reached, without counting).
    """

    async def hit(
        self,
        identifier: str,
        endpoint: str,
        max_requests: int,
        window_minutes: int,
        now: datetime,
    ) -> WindowState: ...

    async def cleanup(self, older_than: datetime) -> int:
        """Delete windows that started before ``older_than``."""
        ...


@runtime_checkable
class ChatbotConfigRepository(Protocol):
    """Singleton chatbot configuration storage."""

    async def get(self) -> ChatbotConfig | None: ...

    async def get_public_status(self) -> ChatbotStatus: ...

    async def update(self, changes: ChatbotConfigUpdate, updated_by: str | None) -> ChatbotConfig: ...
