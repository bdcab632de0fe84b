"""Tests for vector index gateways."""

from types import SimpleNamespace

import pytest

from docbot.core.config import AppConfig, EmbeddingConfig, VectorStoreConfig
from docbot.core.exceptions import ConfigurationError, VectorStoreError
from docbot.documents.models import VectorMetadata, VectorRecord
from docbot.documents.vector_store import (
    InMemoryVectorIndex,
    PineconeVectorIndex,
    VectorIndexFactory,
    build_filter,
    cosine_similarity,
    parse_metadata,
)


def metadata(name: str = "guide.txt", index: int = 0, content: str = "text") -> VectorMetadata:
    return VectorMetadata(
        document_name=name,
        chunk_index=index,
        content=content,
        word_count=len(content.split()),
        timestamp="2026-01-01T00:00:00+00:00",
    )


class TestInMemoryVectorIndex:
    async def test_upsert_is_idempotent(self):
        index = InMemoryVectorIndex(dimension=2)
        record = VectorRecord(id="c1", values=[1.0, 0.0], metadata=metadata())

        await index.upsert([record])
        await index.upsert([record])

        stats = await index.stats()
        assert stats.total_vectors == 1
        assert stats.dimension == 2

    async def test_upsert_replaces_values(self):
        index = InMemoryVectorIndex(dimension=2)
        await index.upsert([VectorRecord(id="c1", values=[1.0, 0.0], metadata=metadata(content="old"))])
        await index.upsert([VectorRecord(id="c1", values=[0.0, 1.0], metadata=metadata(content="new"))])

        matches = await index.query([0.0, 1.0], top_k=1)

        assert matches[0].metadata.content == "new"
        assert matches[0].score == pytest.approx(1.0)

    async def test_query_orders_by_score_and_limits(self):
        index = InMemoryVectorIndex(dimension=2)
        await index.upsert(
            [
                VectorRecord(id="far", values=[0.0, 1.0], metadata=metadata(index=0)),
                VectorRecord(id="near", values=[1.0, 0.1], metadata=metadata(index=1)),
                VectorRecord(id="mid", values=[1.0, 1.0], metadata=metadata(index=2)),
            ]
        )

        matches = await index.query([1.0, 0.0], top_k=2)

        assert [m.id for m in matches] == ["near", "mid"]
        assert matches[0].score >= matches[1].score

    async def test_query_filter(self):
        index = InMemoryVectorIndex(dimension=2)
        await index.upsert(
            [
                VectorRecord(id="a", values=[1.0, 0.0], metadata=metadata(name="a.txt")),
                VectorRecord(id="b", values=[1.0, 0.0], metadata=metadata(name="b.txt")),
            ]
        )

        matches = await index.query([1.0, 0.0], top_k=5, filter={"document_name": "b.txt"})

        assert [m.id for m in matches] == ["b"]

    async def test_dimension_mismatch(self):
        index = InMemoryVectorIndex(dimension=3)
        with pytest.raises(VectorStoreError):
            await index.upsert([VectorRecord(id="x", values=[1.0], metadata=metadata())])
        with pytest.raises(VectorStoreError):
            await index.query([1.0], top_k=1)

    async def test_delete(self):
        index = InMemoryVectorIndex(dimension=2)
        await index.upsert([VectorRecord(id="x", values=[1.0, 0.0], metadata=metadata())])

        await index.delete(["x", "missing"])

        assert (await index.stats()).total_vectors == 0


class FakePineconeIndex:
    def __init__(self, matches=None, fail: str | None = None):
        self.matches = matches or []
        self.fail = fail
        self.upserts = []
        self.deletes = []
        self.queries = []

    def _maybe_fail(self, operation):
        if self.fail == operation:
            raise RuntimeError(f"{operation} exploded")

    def upsert(self, vectors, namespace):
        self._maybe_fail("upsert")
        self.upserts.append((vectors, namespace))

    def query(self, **kwargs):
        self._maybe_fail("query")
        self.queries.append(kwargs)
        return SimpleNamespace(matches=self.matches)

    def delete(self, ids, namespace):
        self._maybe_fail("delete")
        self.deletes.append((ids, namespace))

    def describe_index_stats(self):
        return SimpleNamespace(
            namespaces={"docs": SimpleNamespace(vector_count=7)},
            total_vector_count=42,
            dimension=1536,
        )


class TestPineconeVectorIndex:
    async def test_upsert_sends_metadata(self):
        fake = FakePineconeIndex()
        index = PineconeVectorIndex(api_key="k", namespace="docs", index=fake)

        await index.upsert([VectorRecord(id="c1", values=[0.5, 0.5], metadata=metadata())])

        vectors, namespace = fake.upserts[0]
        assert namespace == "docs"
        assert vectors[0]["id"] == "c1"
        assert vectors[0]["metadata"]["document_name"] == "guide.txt"

    async def test_query_coerces_metadata_and_sorts(self):
        raw = {
            "document_name": "guide.txt",
            "chunk_index": 3.0,
            "content": "text",
            "word_count": "1",
            "timestamp": "2026-01-01T00:00:00+00:00",
            "legacy_field": "dropped",
        }
        fake = FakePineconeIndex(
            matches=[
                SimpleNamespace(id="low", score=0.2, metadata=raw),
                SimpleNamespace(id="high", score=0.9, metadata=raw),
            ]
        )
        index = PineconeVectorIndex(api_key="k", namespace="docs", index=fake)

        matches = await index.query([0.1, 0.2], top_k=2, filter={"document_name": "guide.txt"})

        assert [m.id for m in matches] == ["high", "low"]
        assert matches[0].metadata.chunk_index == 3
        assert matches[0].metadata.word_count == 1
        assert fake.queries[0]["filter"] == {"document_name": {"$eq": "guide.txt"}}
        assert fake.queries[0]["include_metadata"] is True

    async def test_sdk_failure_is_wrapped(self):
        index = PineconeVectorIndex(api_key="k", index=FakePineconeIndex(fail="delete"))
        with pytest.raises(VectorStoreError) as exc_info:
            await index.delete(["a"])
        assert "delete" in exc_info.value.message

    async def test_stats_use_namespace_count(self):
        index = PineconeVectorIndex(api_key="k", namespace="docs", index=FakePineconeIndex())
        stats = await index.stats()
        assert stats.total_vectors == 7
        assert stats.dimension == 1536

    async def test_missing_api_key(self):
        with pytest.raises(VectorStoreError):
            await PineconeVectorIndex(api_key=None).stats()


class TestHelpers:
    def test_parse_metadata_rejects_missing_fields(self):
        with pytest.raises(VectorStoreError):
            parse_metadata({"document_name": "x"})

    def test_parse_metadata_empty(self):
        assert parse_metadata(None) is None

    def test_build_filter_skips_none(self):
        assert build_filter({"document_name": "a", "chunk_index": None}) == {"document_name": {"$eq": "a"}}
        assert build_filter({}) is None

    def test_cosine_similarity(self):
        assert cosine_similarity([1.0, 0.0], [1.0, 0.0]) == pytest.approx(1.0)
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
        assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0


class TestVectorIndexFactory:
    def test_create_in_memory(self):
        config = AppConfig(vector=VectorStoreConfig(backend="in_memory"), embedding=EmbeddingConfig(dimension=4))
        index = VectorIndexFactory.create(config)
        assert isinstance(index, InMemoryVectorIndex)
        assert index.dimension == 4

    def test_unknown_backend(self):
        config = AppConfig(vector=VectorStoreConfig(backend="faiss"))
        with pytest.raises(ConfigurationError):
            VectorIndexFactory.create(config)
