"""Request and response schemas for the API."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from docbot.chat.orchestrator import ChatTurn
from docbot.documents.models import ChunkRecord, DocumentSummary, IngestionResult, VectorMatch

# --- Request Models ---


class ConversationTurn(BaseModel):
    """One prior exchange supplied by the client."""

    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    """Chat request schema."""

    model_config = ConfigDict(populate_by_name=True)

    # Length limits are enforced by the orchestrator so the error message is uniform
    message: str = Field(default="", description="User message")
    conversation_history: list[ConversationTurn] = Field(
        default_factory=list,
        alias="conversationHistory",
        description="Earlier turns of this conversation, oldest first",
    )

    def history(self) -> list[ChatTurn]:
        return [ChatTurn(role=t.role, content=t.content) for t in self.conversation_history]


class SearchRequest(BaseModel):
    """Semantic search request."""

    query: str = Field(..., description="Free-text query")
    top_k: int = Field(default=5, ge=1, le=50, description="Number of matches to return")
    filter: dict[str, Any] | None = Field(default=None, description="Metadata equality filter")


# --- Response Models ---


class ChatResponse(BaseModel):
    """Chat response schema."""

    response: str = Field(..., description="Assistant response")


class ChatErrorResponse(BaseModel):
    """Chat error payload."""

    error: str = Field(..., description="Message safe to show to end users")


class IngestionResponse(BaseModel):
    """Result of uploading or re-indexing a document."""

    document_name: str
    status: Literal["indexed", "stored_not_searchable"]
    chunk_count: int
    indexed_count: int
    searchable: bool
    message: str

    @classmethod
    def from_result(cls, result: IngestionResult) -> "IngestionResponse":
        return cls(
            document_name=result.document_name,
            status=result.status,
            chunk_count=result.chunk_count,
            indexed_count=result.indexed_count,
            searchable=result.searchable,
            message=result.message,
        )


class DocumentInfo(BaseModel):
    """Document summary for list responses."""

    name: str
    file_type: str
    chunk_count: int
    word_count: int
    created_at: datetime
    created_by: str | None = None
    searchable: bool = True

    @classmethod
    def from_summary(cls, summary: DocumentSummary) -> "DocumentInfo":
        return cls(
            name=summary.name,
            file_type=summary.file_type,
            chunk_count=summary.chunk_count,
            word_count=summary.word_count,
            created_at=summary.created_at,
            created_by=summary.created_by,
            searchable=summary.searchable,
        )


class DocumentListResponse(BaseModel):
    """List of ingested documents."""

    documents: list[DocumentInfo] = Field(default_factory=list)
    total: int = Field(..., description="Number of documents")


class ChunkInfo(BaseModel):
    """One stored chunk."""

    id: str | None = None
    chunk_index: int
    content: str
    word_count: int
    indexed: bool

    @classmethod
    def from_record(cls, record: ChunkRecord) -> "ChunkInfo":
        return cls(
            id=record.id,
            chunk_index=record.chunk_index,
            content=record.content,
            word_count=record.word_count,
            indexed=record.indexed,
        )


class ChunkListResponse(BaseModel):
    document_name: str
    chunks: list[ChunkInfo]


class DocumentDeleteResponse(BaseModel):
    """Document deletion response."""

    document_name: str
    deleted_chunks: int
    message: str


class SearchMatch(BaseModel):
    id: str
    score: float
    metadata: dict[str, Any] | None = None

    @classmethod
    def from_match(cls, match: VectorMatch) -> "SearchMatch":
        return cls(
            id=match.id,
            score=match.score,
            metadata=match.metadata.model_dump() if match.metadata else None,
        )


class SearchResponse(BaseModel):
    query: str
    matches: list[SearchMatch]


class IndexStatsResponse(BaseModel):
    total_vectors: int
    dimension: int


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Service status")
    llm_provider: str = Field(..., description="Active LLM provider")
    llm_model: str = Field(..., description="Active LLM model")
    embedding_model: str = Field(..., description="Active embedding model")
    vector_backend: str = Field(..., description="Active vector index backend")
    rate_limit_backend: str | None = Field(default=None, description="Rate limit store, if enabled")
    missing_credentials: list[str] = Field(default_factory=list)
