"""Document ingestion: extraction, chunking, embedding and indexing."""

from docbot.documents.chunker import SentenceChunker
from docbot.documents.extractors import DocumentExtractor, ExtractorRegistry
from docbot.documents.ingestion import IngestionService
from docbot.documents.models import (
    ChunkRecord,
    DocumentSummary,
    IngestionResult,
    VectorMatch,
    VectorMetadata,
    VectorRecord,
)

__all__ = [
    "ChunkRecord",
    "DocumentExtractor",
    "DocumentSummary",
    "ExtractorRegistry",
    "IngestionResult",
    "IngestionService",
    "SentenceChunker",
    "VectorMatch",
    "VectorMetadata",
    "VectorRecord",
]
