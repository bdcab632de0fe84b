"""Document ingestion: extract, chunk, persist, embed and index.

Chunk rows are the durable copy of a document; vectors only make them
searchable. Indexing therefore runs after persistence and its failures
downgrade the outcome to "stored but not searchable" instead of failing
the upload. Chunks that did not reach the vector index stay flagged
``indexed = False`` so :meth:`IngestionService.reindex_document` can retry
them later.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import PurePath
from typing import Any

from docbot.core.exceptions import (
    DocumentNotFoundError,
    DuplicateDocumentError,
    PartialSuccessError,
    ProviderError,
    StorageError,
    ValidationError,
)
from docbot.core.logging import get_logger
from docbot.core.protocols import ChunkRepository, EmbeddingProvider, VectorIndex
from docbot.documents.chunker import SentenceChunker, count_words
from docbot.documents.extractors import DocumentExtractor, normalize_extension
from docbot.documents.models import (
    ChunkRecord,
    DocumentSummary,
    IndexStats,
    IngestionResult,
    VectorMatch,
    VectorMetadata,
    VectorRecord,
    utc_now,
)

logger = get_logger(__name__)

DEFAULT_BATCH_SIZE = 10


class IngestionService:
    """Coordinates the chunk repository and the vector index."""

    def __init__(
        self,
        extractor: DocumentExtractor,
        chunker: SentenceChunker,
        embedder: EmbeddingProvider,
        vector_index: VectorIndex,
        repository: ChunkRepository,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_chunk_size: int | None = None,
    ):
        self.extractor = extractor
        self.chunker = chunker
        self.embedder = embedder
        self.vector_index = vector_index
        self.repository = repository
        self.batch_size = batch_size
        self.max_chunk_size = max_chunk_size
        # One lock per document name serializes ingest/delete/reindex of that name
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: defaultdict[str, int] = defaultdict(int)

    @asynccontextmanager
    async def _document_lock(self, document_name: str) -> AsyncIterator[None]:
        """Hold the lock for one document name; the entry is dropped once nobody holds or awaits it."""
        lock = self._locks.setdefault(document_name, asyncio.Lock())
        self._lock_users[document_name] += 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[document_name] -= 1
            if not self._lock_users[document_name]:
                del self._lock_users[document_name]
                del self._locks[document_name]

    @staticmethod
    def document_name_for(filename: str) -> str:
        name = PurePath(filename.replace("\\", "/")).name.strip()
        if not name:
            raise ValidationError("Filename is required", code="MISSING_FILENAME")
        return name

    async def ingest(
        self,
        content: bytes,
        filename: str,
        created_by: str | None = None,
    ) -> IngestionResult:
        """Ingest one uploaded file.

        Raises:
            ValidationError: Unsupported type, oversized, empty or duplicate document
            ExtractionTimeoutError: Extraction exceeded its time budget
            StorageError: Chunk rows could not be persisted
        """
        document_name = self.document_name_for(filename)
        file_type = normalize_extension(document_name)

        async with self._document_lock(document_name):
            if await self.repository.list_chunks(document_name):
                raise DuplicateDocumentError(document_name)

            text = await self.extractor.extract(content, file_type)
            pieces = self.chunker.chunk(text, self.max_chunk_size)

            now = utc_now()
            records = [
                ChunkRecord(
                    document_name=document_name,
                    file_type=file_type,
                    chunk_index=index,
                    content=piece,
                    word_count=count_words(piece),
                    created_by=created_by,
                    created_at=now,
                )
                for index, piece in enumerate(pieces)
            ]
            stored = await self.repository.insert_chunks(records)
            logger.info(
                "document_chunks_stored",
                document=document_name,
                file_type=file_type,
                chunk_count=len(stored),
                words=sum(c.word_count for c in stored),
            )

            return await self._index(document_name, stored, total=len(stored))

    async def reindex_document(self, document_name: str) -> IngestionResult:
        """Embed and index the chunks of a document that are not yet searchable."""
        async with self._document_lock(document_name):
            chunks = await self.repository.list_chunks(document_name)
            if not chunks:
                raise DocumentNotFoundError(document_name)

            pending = [c for c in chunks if not c.indexed]
            if not pending:
                return IngestionResult(
                    document_name=document_name,
                    status="indexed",
                    chunk_count=len(chunks),
                    indexed_count=len(chunks),
                    message=f"Document '{document_name}' is already searchable.",
                )

            logger.info("document_reindex_started", document=document_name, pending=len(pending))
            return await self._index(document_name, pending, total=len(chunks))

    async def _index(
        self,
        document_name: str,
        chunks: list[ChunkRecord],
        total: int,
    ) -> IngestionResult:
        already_indexed = total - len(chunks)
        try:
            indexed = await self._index_batches(chunks)
        except PartialSuccessError as e:
            indexed_count = already_indexed + e.indexed
            logger.warning(
                "document_stored_not_searchable",
                document=document_name,
                chunk_count=total,
                indexed=indexed_count,
                error=str(e.cause),
            )
            return IngestionResult(
                document_name=document_name,
                status="stored_not_searchable",
                chunk_count=total,
                indexed_count=indexed_count,
                message=(
                    f"Document '{document_name}' was stored ({total} chunks) but is not "
                    f"searchable yet: {indexed_count} of {total} chunks indexed. "
                    "Retry indexing later."
                ),
            )

        logger.info("document_indexed", document=document_name, chunk_count=total)
        return IngestionResult(
            document_name=document_name,
            status="indexed",
            chunk_count=total,
            indexed_count=already_indexed + indexed,
            message=f"Document '{document_name}' processed: {total} chunks indexed and searchable.",
        )

    async def _index_batches(self, chunks: list[ChunkRecord]) -> int:
        """Embed and upsert chunks batch by batch.

        Raises:
            PartialSuccessError: A batch failed; it and all later batches were
                flagged unindexed.
        """
        timestamp = utc_now()
        indexed = 0

        for start in range(0, len(chunks), self.batch_size):
            batch = chunks[start : start + self.batch_size]
            try:
                vectors = await self.embedder.embed_batch([c.content for c in batch])
                records = [
                    VectorRecord(
                        id=chunk.id,
                        values=vector,
                        metadata=VectorMetadata.for_chunk(chunk, timestamp),
                    )
                    for chunk, vector in zip(batch, vectors, strict=True)
                ]
                await self.vector_index.upsert(records)
                await self.repository.mark_indexed([c.id for c in batch], True)
            except (ProviderError, ValueError) as e:
                await self._mark_unindexed(chunks[start:])
                raise PartialSuccessError(
                    "Chunks stored but indexing failed",
                    stored=len(chunks),
                    indexed=indexed,
                    cause=e,
                ) from e
            indexed += len(batch)

        return indexed

    async def _mark_unindexed(self, chunks: list[ChunkRecord]) -> None:
        ids = [c.id for c in chunks]
        try:
            await self.repository.mark_indexed(ids, False)
        except StorageError as e:
            logger.error("mark_unindexed_failed", chunk_count=len(ids), error=str(e))

    async def delete_document(self, document_name: str) -> int:
        """Delete vectors first, then chunk rows.

        If vector deletion fails the rows are kept, so the document can be
        deleted again without leaving orphaned vectors behind.
        """
        async with self._document_lock(document_name):
            chunks = await self.repository.list_chunks(document_name)
            if not chunks:
                raise DocumentNotFoundError(document_name)

            await self.vector_index.delete([c.id for c in chunks])
            deleted = await self.repository.delete_document(document_name)

        logger.info("document_deleted", document=document_name, chunks=deleted)
        return deleted

    async def list_documents(self) -> list[DocumentSummary]:
        return await self.repository.list_documents()

    async def list_chunks(self, document_name: str) -> list[ChunkRecord]:
        chunks = await self.repository.list_chunks(document_name)
        if not chunks:
            raise DocumentNotFoundError(document_name)
        return chunks

    async def search(
        self,
        query: str,
        top_k: int = 5,
        filter: dict[str, Any] | None = None,
    ) -> list[VectorMatch]:
        """Rank indexed chunks against a free-text query."""
        if not query or not query.strip():
            raise ValidationError("Query cannot be empty", code="EMPTY_QUERY")
        vector = await self.embedder.embed(query.strip())
        return await self.vector_index.query(vector, top_k=top_k, filter=filter)

    async def stats(self) -> IndexStats:
        return await self.vector_index.stats()
