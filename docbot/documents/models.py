"""Document, chunk and vector models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class ChunkRecord:
    """A persisted chunk of a document's extracted text.

    ``id`` is assigned by the repository at persistence time and doubles as
    the id of the chunk's vector record.
    """

    document_name: str
    file_type: str
    chunk_index: int
    content: str
    word_count: int
    created_by: str | None = None
    created_at: datetime = field(default_factory=utc_now)
    id: str | None = None
    indexed: bool = False

    def to_row(self) -> dict[str, Any]:
        """Serialize for a relational insert."""
        row = {
            "document_name": self.document_name,
            "file_type": self.file_type,
            "chunk_index": self.chunk_index,
            "content": self.content,
            "word_count": self.word_count,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat(),
            "indexed": self.indexed,
        }
        if self.id is not None:
            row["id"] = self.id
        return row

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> ChunkRecord:
        created_at = row.get("created_at")
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at.replace("Z", "+00:00"))
        return cls(
            id=str(row["id"]) if row.get("id") is not None else None,
            document_name=row["document_name"],
            file_type=row.get("file_type") or "",
            chunk_index=int(row["chunk_index"]),
            content=row.get("content") or "",
            word_count=int(row.get("word_count") or 0),
            created_by=row.get("created_by"),
            created_at=created_at or utc_now(),
            indexed=bool(row.get("indexed", False)),
        )


@dataclass
class DocumentSummary:
    """Aggregate view of one document across its chunks."""

    name: str
    file_type: str
    chunk_count: int
    word_count: int
    created_at: datetime
    created_by: str | None = None
    searchable: bool = True


class VectorMetadata(BaseModel):
    """Fixed metadata schema stored alongside each vector.

    Unknown keys are dropped; known keys are coerced to their declared type.
    """

    model_config = ConfigDict(extra="ignore")

    document_name: str
    chunk_index: int
    content: str
    word_count: int
    timestamp: str

    @classmethod
    def for_chunk(cls, chunk: ChunkRecord, timestamp: datetime | None = None) -> VectorMetadata:
        return cls(
            document_name=chunk.document_name,
            chunk_index=chunk.chunk_index,
            content=chunk.content,
            word_count=chunk.word_count,
            timestamp=(timestamp or utc_now()).isoformat(),
        )


@dataclass
class VectorRecord:
    """A vector ready for upsert."""

    id: str
    values: list[float]
    metadata: VectorMetadata


@dataclass
class VectorMatch:
    """One ranked query result."""

    id: str
    score: float
    metadata: VectorMetadata | None = None


@dataclass
class IndexStats:
    total_vectors: int
    dimension: int


IngestionStatus = Literal["indexed", "stored_not_searchable"]


@dataclass
class IngestionResult:
    """Outcome of ingesting (or re-indexing) one document."""

    document_name: str
    status: IngestionStatus
    chunk_count: int
    indexed_count: int
    message: str

    @property
    def searchable(self) -> bool:
        return self.status == "indexed"
