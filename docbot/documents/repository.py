"""Chunk record storage: Supabase table or in-process dictionary."""

from __future__ import annotations

import asyncio
import uuid
from collections import defaultdict
from typing import TYPE_CHECKING, Any

from docbot.core.exceptions import ConfigurationError
from docbot.core.logging import get_logger
from docbot.core.supabase import execute, get_supabase_client
from docbot.documents.models import ChunkRecord, DocumentSummary

if TYPE_CHECKING:
    from docbot.core.config import AppConfig

logger = get_logger(__name__)

_SUMMARY_COLUMNS = "id,document_name,file_type,word_count,created_by,created_at,indexed"


def summarize(chunks: list[ChunkRecord]) -> list[DocumentSummary]:
    """Aggregate chunk records into one summary per document, newest first."""
    grouped: dict[str, list[ChunkRecord]] = defaultdict(list)
    for chunk in chunks:
        grouped[chunk.document_name].append(chunk)

    summaries = [
        DocumentSummary(
            name=name,
            file_type=items[0].file_type,
            chunk_count=len(items),
            word_count=sum(c.word_count for c in items),
            created_at=min(c.created_at for c in items),
            created_by=items[0].created_by,
            searchable=all(c.indexed for c in items),
        )
        for name, items in grouped.items()
    ]
    summaries.sort(key=lambda s: s.created_at, reverse=True)
    return summaries


class InMemoryChunkRepository:
    """In-memory chunk storage.

    Not persistent - data is lost on restart.
    """

    def __init__(self) -> None:
        self._chunks: dict[str, ChunkRecord] = {}
        self._lock = asyncio.Lock()

    async def insert_chunks(self, chunks: list[ChunkRecord]) -> list[ChunkRecord]:
        async with self._lock:
            for chunk in chunks:
                chunk.id = chunk.id or str(uuid.uuid4())
                self._chunks[chunk.id] = chunk
        return chunks

    async def list_chunks(self, document_name: str) -> list[ChunkRecord]:
        chunks = [c for c in self._chunks.values() if c.document_name == document_name]
        return sorted(chunks, key=lambda c: c.chunk_index)

    async def list_documents(self) -> list[DocumentSummary]:
        return summarize(list(self._chunks.values()))

    async def delete_document(self, document_name: str) -> int:
        async with self._lock:
            ids = [cid for cid, c in self._chunks.items() if c.document_name == document_name]
            for cid in ids:
                del self._chunks[cid]
        return len(ids)

    async def mark_indexed(self, chunk_ids: list[str], indexed: bool) -> None:
        async with self._lock:
            for cid in chunk_ids:
                if cid in self._chunks:
                    self._chunks[cid].indexed = indexed


class SupabaseChunkRepository:
    """Chunk storage in the Supabase ``document_chunks`` table.

    Ids are generated by the table default (``gen_random_uuid()``).
    """

    def __init__(self, client: Any, table_name: str = "document_chunks") -> None:
        self._client = client
        self._table_name = table_name

    def _table(self):
        return self._client.table(self._table_name)

    async def insert_chunks(self, chunks: list[ChunkRecord]) -> list[ChunkRecord]:
        if not chunks:
            return []
        rows = await execute(
            self._table().insert([c.to_row() for c in chunks]),
            "insert_chunks",
        )
        stored = sorted((ChunkRecord.from_row(r) for r in rows), key=lambda c: c.chunk_index)
        logger.debug("chunks_inserted", count=len(stored), document=chunks[0].document_name)
        return stored

    async def list_chunks(self, document_name: str) -> list[ChunkRecord]:
        rows = await execute(
            self._table().select("*").eq("document_name", document_name).order("chunk_index"),
            "list_chunks",
        )
        return [ChunkRecord.from_row(r) for r in rows]

    async def list_documents(self) -> list[DocumentSummary]:
        rows = await execute(self._table().select(_SUMMARY_COLUMNS), "list_documents")
        chunks = [
            ChunkRecord.from_row({**r, "chunk_index": 0, "content": ""})
            for r in rows
        ]
        return summarize(chunks)

    async def delete_document(self, document_name: str) -> int:
        rows = await execute(
            self._table().delete().eq("document_name", document_name),
            "delete_document",
        )
        return len(rows)

    async def mark_indexed(self, chunk_ids: list[str], indexed: bool) -> None:
        if not chunk_ids:
            return
        await execute(
            self._table().update({"indexed": indexed}).in_("id", chunk_ids),
            "mark_indexed",
        )


def create_chunk_repository(config: AppConfig):
    """Create the chunk repository selected by ``INGESTION_BACKEND``."""
    backend = config.ingestion.backend
    if backend == "in_memory":
        return InMemoryChunkRepository()
    if backend == "supabase":
        client = get_supabase_client(config.supabase.url, config.supabase.service_key)
        return SupabaseChunkRepository(client, table_name=config.supabase.chunks_table)
    raise ConfigurationError(f"Unknown chunk repository backend: '{backend}'. Available: in_memory, supabase")
