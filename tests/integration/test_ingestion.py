"""Integration tests for the document ingestion pipeline.

Verifies end-to-end ingestion (chunk -> embed -> upsert -> tally) using
mock embedding and vector store providers (no real API calls), plus one
run against a real on-disk ChromaDB fed by the filesystem source.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import pytest

from src.models.ingestion import SourceText
from src.providers.source.filesystem_provider import FileSystemSourceProvider
from src.providers.vector_store.chromadb_provider import ChromaDBProvider
from src.services.ingestion import identity
from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.ingestion_service import IngestionService
from src.utils.errors import PipelineError, SourceError
from tests.conftest import (
    FailingVectorStore,
    FlakyEmbeddingProvider,
    MockEmbeddingProvider,
    MockVectorStore,
    make_document,
    make_long_text,
    make_settings,
)

# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _build_ingestion_service(
    embedding: Any | None = None,
    store: Any | None = None,
    **kwargs: Any,
) -> IngestionService:
    """Construct an IngestionService wired to mock providers."""
    return IngestionService(
        chunker=TextChunker(),
        embedding_provider=embedding or MockEmbeddingProvider(),
        vector_store=store or MockVectorStore(),
        collection_name="test_collection",
        **kwargs,
    )


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestSingleDocumentE2E:
    @pytest.mark.asyncio
    async def test_document_is_chunked_embedded_and_stored(
        self, sample_document: SourceText
    ) -> None:
        store = MockVectorStore()
        service = _build_ingestion_service(store=store)

        run = await service.ingest_document(sample_document)

        expected_chunks = TextChunker().chunk(sample_document.body, sample_document.document_id)
        assert run.documents_processed == 1
        assert run.chunks_produced == len(expected_chunks) > 1
        assert run.points_upserted == len(expected_chunks)
        assert not run.has_failures
        assert run.finished_at is not None
        assert store.collections == {"test_collection": 128}
        assert set(store.points) == {c.chunk_id for c in expected_chunks}
        assert all(store.wait_flags)

    @pytest.mark.asyncio
    async def test_payload_carries_document_metadata(self, sample_document: SourceText) -> None:
        store = MockVectorStore()

        await _build_ingestion_service(store=store).ingest_document(sample_document)

        point = store.points[f"{sample_document.document_id}_chunk_0"]
        assert point.payload["id"] == sample_document.document_id
        assert point.payload["department"] == "HR"
        assert point.payload["tags"] == ["policy", "leave"]
        assert point.payload["chunk_index"] == 0
        assert point.payload["text"] == point.chunk.text
        assert len(point.vector) == 128

    @pytest.mark.asyncio
    async def test_blank_document_counts_with_zero_chunks(self) -> None:
        store = MockVectorStore()

        run = await _build_ingestion_service(store=store).ingest_document(
            make_document("empty", body="   \n\n ")
        )

        assert run.documents_processed == 1
        assert run.chunks_produced == 0
        assert not run.has_failures
        assert store.upsert_calls == []

    @pytest.mark.asyncio
    async def test_small_upsert_batches(self, sample_document: SourceText) -> None:
        store = MockVectorStore()
        service = _build_ingestion_service(store=store, upsert_batch_size=1)

        run = await service.ingest_document(sample_document)

        assert len(store.upsert_calls) == run.chunks_produced
        assert all(len(call) == 1 for call in store.upsert_calls)


class TestIdempotency:
    @pytest.mark.asyncio
    async def test_reingest_does_not_duplicate(self, sample_document: SourceText) -> None:
        store = MockVectorStore()
        service = _build_ingestion_service(store=store)

        first = await service.ingest_document(sample_document)
        count_after_first = await store.count()
        second = await service.ingest_document(sample_document)

        assert await store.count() == count_after_first == first.points_upserted
        assert second.points_upserted == first.points_upserted

    @pytest.mark.asyncio
    async def test_uuid_ids_are_stable(self, sample_document: SourceText) -> None:
        store = MockVectorStore()
        service = _build_ingestion_service(store=store, id_format="uuid")

        await service.ingest_document(sample_document)
        await service.ingest_document(sample_document)

        expected = identity.canonicalize(f"{sample_document.document_id}_chunk_0", "uuid")
        assert expected in store.points
        assert await store.count() == len(store.points)


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_many_documents(self) -> None:
        store = MockVectorStore()
        documents = [make_document(f"doc-{i}") for i in range(12)]

        run = await _build_ingestion_service(store=store, concurrency=4).ingest_documents(documents)

        assert run.documents_processed == 12
        assert store.document_ids() == {f"doc-{i}" for i in range(12)}
        assert run.points_upserted == await store.count()

    @pytest.mark.asyncio
    async def test_documents_in_flight_are_bounded(self) -> None:
        active = 0
        peak = 0

        class _SlowStore(MockVectorStore):
            async def upsert(self, points, wait=True):
                nonlocal active, peak
                active += 1
                peak = max(peak, active)
                await asyncio.sleep(0.01)
                active -= 1
                return await super().upsert(points, wait=wait)

        documents = [make_document(f"doc-{i}", body="Short body.") for i in range(10)]

        await _build_ingestion_service(store=_SlowStore(), concurrency=3).ingest_documents(
            documents
        )

        assert peak == 3

    @pytest.mark.asyncio
    async def test_async_source_is_consumed(self) -> None:
        async def _documents():
            for i in range(3):
                yield make_document(f"doc-{i}")

        run = await _build_ingestion_service().ingest_documents(_documents())

        assert run.documents_processed == 3


class TestFailureIsolation:
    @pytest.mark.asyncio
    async def test_ensure_collection_failure_aborts_run(self) -> None:
        embedding = MockEmbeddingProvider()
        store = MockVectorStore()
        store.collections["test_collection"] = 64  # existing, incompatible

        with pytest.raises(PipelineError, match="test_collection"):
            await _build_ingestion_service(embedding, store).ingest_documents(
                [make_document("doc-1")]
            )

        assert embedding.batch_calls == []

    @pytest.mark.asyncio
    async def test_failing_upsert_does_not_affect_siblings(self) -> None:
        store = FailingVectorStore(document_id="doc-bad")
        documents = [make_document("doc-ok-1"), make_document("doc-bad"), make_document("doc-ok-2")]

        run = await _build_ingestion_service(store=store).ingest_documents(documents)

        assert run.documents_processed == 3
        assert store.document_ids() == {"doc-ok-1", "doc-ok-2"}
        assert [(f.document_id, f.stage) for f in run.failures] == [("doc-bad", "upsert")]
        bad = next(r for r in run.results if r.document_id == "doc-bad")
        assert bad.points_upserted == 0

    @pytest.mark.asyncio
    async def test_embedding_failure_is_reported_and_rest_stored(self) -> None:
        body = "\n\n".join(f"Paragraph {i}. " + ("policy text " * 40) for i in range(8))
        poison = "Paragraph 3."
        embedding = FlakyEmbeddingProvider(poison=poison)
        store = MockVectorStore()
        document = make_document("doc-1", body=body)

        run = await _build_ingestion_service(embedding, store).ingest_document(document)

        chunks = TextChunker().chunk(body, "doc-1")
        poisoned = [c for c in chunks if poison in c.text]
        assert poisoned
        assert run.points_upserted == len(chunks) - len(poisoned)
        assert [f.stage for f in run.failures] == ["embedding"]
        assert run.results[0].embedding_failures == len(poisoned)

    @pytest.mark.asyncio
    async def test_one_bad_chunk_of_eight_leaves_other_documents_intact(self) -> None:
        # Paragraphs between min and max chars pack one per chunk, without overlap.
        body = "\n\n".join(f"Clause {i}. " + ("leave accrual policy text " * 57) for i in range(8))
        embedding = FlakyEmbeddingProvider(poison="Clause 5.")
        store = MockVectorStore()
        documents = [
            make_document("doc-ok-1"),
            make_document("doc-poisoned", body=body),
            make_document("doc-ok-2"),
        ]

        run = await _build_ingestion_service(
            embedding, store, embed_batch_size=8
        ).ingest_documents(documents)

        poisoned_chunks = TextChunker().chunk(body, "doc-poisoned")
        sibling_chunks = TextChunker().chunk(make_long_text(), "doc-ok-1")
        assert len(poisoned_chunks) == 8
        assert run.documents_processed == 3
        assert [(f.document_id, f.stage) for f in run.failures] == [("doc-poisoned", "embedding")]

        results = {r.document_id: r for r in run.results}
        assert results["doc-poisoned"].embedding_failures == 1
        assert results["doc-poisoned"].points_upserted == 7
        for sibling in ("doc-ok-1", "doc-ok-2"):
            assert results[sibling].embedding_failures == 0
            assert results[sibling].points_upserted == len(sibling_chunks)
        assert "doc-poisoned_chunk_5" not in store.points
        assert run.points_upserted == 7 + 2 * len(sibling_chunks)

    @pytest.mark.asyncio
    async def test_unexpected_error_is_recorded_as_pipeline_failure(self) -> None:
        class _BrokenChunker(TextChunker):
            def chunk(self, text, document_id):
                raise RuntimeError("tokenizer exploded")

        service = IngestionService(
            chunker=_BrokenChunker(),
            embedding_provider=MockEmbeddingProvider(),
            vector_store=MockVectorStore(),
        )

        run = await service.ingest_documents([make_document("doc-1"), make_document("doc-2")])

        assert run.documents_processed == 2
        assert {f.stage for f in run.failures} == {"pipeline"}
        assert "tokenizer exploded" in run.failures[0].error

    @pytest.mark.asyncio
    async def test_source_failure_is_recorded(self) -> None:
        async def _documents():
            yield make_document("doc-1")
            raise SourceError(message="listing interrupted", provider_name="filesystem")

        run = await _build_ingestion_service().ingest_documents(_documents())

        assert run.documents_processed == 1
        assert [(f.document_id, f.stage) for f in run.failures] == [("<source>", "source")]


class TestFilesystemToChromaDB:
    @pytest.mark.asyncio
    async def test_directory_ingest_end_to_end(self, tmp_path: Path) -> None:
        docs = tmp_path / "docs" / "hr"
        docs.mkdir(parents=True)
        (docs / "leave.md").write_text(make_long_text(), encoding="utf-8")
        (docs / "short.txt").write_text("One short note.", encoding="utf-8")

        settings = make_settings()
        store = ChromaDBProvider(
            persist_directory=str(tmp_path / "chroma"), collection_name="test_collection"
        )
        service = _build_ingestion_service(store=store)
        source = FileSystemSourceProvider(settings)

        run = await service.ingest_source(source, str(tmp_path / "docs"))
        again = await service.ingest_source(source, str(tmp_path / "docs"))

        assert run.documents_processed == 2
        assert not run.has_failures
        assert await store.count() == run.points_upserted == again.points_upserted
