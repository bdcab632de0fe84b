"""Vector index gateways: Pinecone and an in-process index."""

from __future__ import annotations

import asyncio
import math
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError as PydanticValidationError

from docbot.core.exceptions import ConfigurationError, VectorStoreError
from docbot.core.logging import get_logger
from docbot.documents.models import IndexStats, VectorMatch, VectorMetadata, VectorRecord

if TYPE_CHECKING:
    from docbot.core.config import AppConfig

logger = get_logger(__name__)

# Pinecone recommends upserts of at most ~100 vectors per request
UPSERT_BATCH_SIZE = 100


class VectorIndexFactory:
    """Decorator-based registry of vector index backends."""

    _registry: dict[str, type] = {}

    @classmethod
    def register(cls, name: str):
        def decorator(index_cls: type) -> type:
            cls._registry[name] = index_cls
            return index_cls

        return decorator

    @classmethod
    def create(cls, config: AppConfig):
        index_cls = cls._registry.get(config.vector.backend)
        if index_cls is None:
            available = ", ".join(cls._registry.keys()) or "none registered"
            raise ConfigurationError(
                f"Unknown vector backend: '{config.vector.backend}'. Available: {available}"
            )
        return index_cls.from_config(config)


def parse_metadata(raw: dict[str, Any] | None) -> VectorMetadata | None:
    """Coerce provider metadata into the fixed schema at the gateway boundary."""
    if not raw:
        return None
    try:
        return VectorMetadata.model_validate(dict(raw))
    except PydanticValidationError as e:
        raise VectorStoreError(f"Vector metadata does not match schema: {e}") from e


def build_filter(filters: dict[str, Any] | None) -> dict[str, Any] | None:
    """Translate an equality map into a Pinecone metadata filter."""
    if not filters:
        return None

    pinecone_filter = {}
    for key, value in filters.items():
        if value is not None:
            pinecone_filter[key] = {"$eq": value}

    return pinecone_filter or None


@VectorIndexFactory.register("pinecone")
class PineconeVectorIndex:
    """Vector index backed by a Pinecone serverless index.

    The Pinecone SDK is synchronous, so every call is pushed to a worker
    thread.
    """

    provider = "pinecone"

    def __init__(
        self,
        api_key: str | None,
        index_name: str = "documents",
        namespace: str = "default",
        index: Any | None = None,
    ):
        self.index_name = index_name
        self.namespace = namespace
        self._api_key = api_key
        self._index = index

    @classmethod
    def from_config(cls, config: AppConfig) -> PineconeVectorIndex:
        return cls(
            api_key=config.vector.pinecone_api_key,
            index_name=config.vector.index_name,
            namespace=config.vector.namespace,
        )

    def _get_index(self):
        if self._index is None:
            if not self._api_key:
                raise VectorStoreError("Pinecone API key is not configured", provider=self.provider)
            from pinecone import Pinecone

            pc = Pinecone(api_key=self._api_key)
            self._index = pc.Index(self.index_name)
            logger.info("pinecone_initialized", index=self.index_name, namespace=self.namespace)
        return self._index

    async def _call(self, operation: str, fn_name: str, **kwargs: Any) -> Any:
        try:
            index = self._get_index()
            return await asyncio.to_thread(getattr(index, fn_name), **kwargs)
        except VectorStoreError:
            raise
        except Exception as e:
            logger.error("pinecone_operation_failed", operation=operation, error=str(e))
            raise VectorStoreError(
                f"Pinecone {operation} failed: {e}",
                provider=self.provider,
                status=getattr(e, "status", None),
            ) from e

    async def upsert(self, records: list[VectorRecord]) -> None:
        if not records:
            return
        vectors = [
            {"id": r.id, "values": list(r.values), "metadata": r.metadata.model_dump()}
            for r in records
        ]
        for i in range(0, len(vectors), UPSERT_BATCH_SIZE):
            await self._call(
                "upsert",
                "upsert",
                vectors=vectors[i : i + UPSERT_BATCH_SIZE],
                namespace=self.namespace,
            )
        logger.info("vectors_upserted", count=len(vectors), namespace=self.namespace)

    async def query(
        self,
        vector: list[float],
        top_k: int,
        filter: dict[str, Any] | None = None,
    ) -> list[VectorMatch]:
        results = await self._call(
            "query",
            "query",
            vector=vector,
            top_k=top_k,
            namespace=self.namespace,
            filter=build_filter(filter),
            include_metadata=True,
        )
        matches = [
            VectorMatch(
                id=str(match.id),
                score=float(match.score or 0.0),
                metadata=parse_metadata(match.metadata),
            )
            for match in results.matches
        ]
        matches.sort(key=lambda m: m.score, reverse=True)
        logger.debug("vector_query_completed", top_k=top_k, results_count=len(matches))
        return matches

    async def delete(self, ids: list[str]) -> None:
        if not ids:
            return
        for i in range(0, len(ids), UPSERT_BATCH_SIZE):
            await self._call(
                "delete",
                "delete",
                ids=ids[i : i + UPSERT_BATCH_SIZE],
                namespace=self.namespace,
            )
        logger.info("vectors_deleted", count=len(ids), namespace=self.namespace)

    async def stats(self) -> IndexStats:
        result = await self._call("stats", "describe_index_stats")
        namespaces = getattr(result, "namespaces", None) or {}
        namespace_stats = namespaces.get(self.namespace)
        if namespace_stats is not None:
            total = namespace_stats.vector_count
        else:
            total = result.total_vector_count
        return IndexStats(total_vectors=int(total or 0), dimension=int(result.dimension or 0))


def cosine_similarity(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b, strict=True))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


@VectorIndexFactory.register("in_memory")
class InMemoryVectorIndex:
    """Dictionary-based vector index for development/testing.

    Not persistent - data is lost on restart.
    """

    provider = "in_memory"

    def __init__(self, dimension: int = 1536):
        self.dimension = dimension
        self._vectors: dict[str, tuple[list[float], VectorMetadata]] = {}
        self._lock = asyncio.Lock()

    @classmethod
    def from_config(cls, config: AppConfig) -> InMemoryVectorIndex:
        return cls(dimension=config.embedding.dimension)

    async def upsert(self, records: list[VectorRecord]) -> None:
        async with self._lock:
            for record in records:
                if len(record.values) != self.dimension:
                    raise VectorStoreError(
                        f"Vector '{record.id}' has dimension {len(record.values)}, "
                        f"index expects {self.dimension}",
                        provider=self.provider,
                    )
                self._vectors[record.id] = (list(record.values), record.metadata)

    async def query(
        self,
        vector: list[float],
        top_k: int,
        filter: dict[str, Any] | None = None,
    ) -> list[VectorMatch]:
        if len(vector) != self.dimension:
            raise VectorStoreError(
                f"Query vector has dimension {len(vector)}, index expects {self.dimension}",
                provider=self.provider,
            )
        conditions = {k: v for k, v in (filter or {}).items() if v is not None}

        matches = []
        for vector_id, (values, metadata) in self._vectors.items():
            fields = metadata.model_dump()
            if any(fields.get(key) != value for key, value in conditions.items()):
                continue
            matches.append(
                VectorMatch(id=vector_id, score=cosine_similarity(vector, values), metadata=metadata)
            )

        matches.sort(key=lambda m: m.score, reverse=True)
        return matches[:top_k]

    async def delete(self, ids: list[str]) -> None:
        async with self._lock:
            for vector_id in ids:
                self._vectors.pop(vector_id, None)

    async def stats(self) -> IndexStats:
        return IndexStats(total_vectors=len(self._vectors), dimension=self.dimension)
