"""Orchestrator for the document ingestion pipeline.

Pipeline stages: **chunk -> embed -> upsert -> tally**.

The :class:`IngestionService` implements the **Orchestrator pattern**: it
coordinates the chunker, the embedding batcher and the upsert batcher
without any of them knowing about each other.  Each run follows the same
flow:

    1. IVectorStoreProvider.ensure_collection -- fatal if it fails
    2. TextChunker -- splits each document into overlapping chunks
    3. EmbeddingBatcher -- embeds chunks in small batches, retrying singly
    4. UpsertBatcher -- writes points in larger batches with wait=True
    5. PipelineRun -- per-document results and failures are tallied

Documents run concurrently up to ``concurrency`` at a time.  The document
source is consumed lazily: a new document is only pulled once a slot is
free, so a slow store never causes the whole source to pile up in memory.
A failing document is recorded on the run and never stops its siblings.

All collaborators are injected via the constructor, so providers can be
swapped (e.g. OpenAI -> Hugging Face) without changing this class.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, AsyncIterable, Iterable

import structlog

from src.models.ingestion import (
    DocumentFailure,
    DocumentResult,
    EmbeddedPoint,
    EmbeddingFailure,
    PipelineRun,
    SourceText,
)
from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.embedding_batcher import EmbeddingBatcher
from src.services.ingestion.upsert_batcher import UpsertBatcher, UpsertReport
from src.utils.errors import PipelineError, SourceError

if TYPE_CHECKING:
    from src.interfaces.embedding_provider import IEmbeddingProvider
    from src.interfaces.source_provider import ISourceProvider
    from src.interfaces.vector_store_provider import IVectorStoreProvider

logger = structlog.get_logger(logger_name=__name__)


class IngestionService:
    """Runs documents through chunk -> embed -> upsert with bounded concurrency.

    Parameters
    ----------
    chunker:
        Splits document text into overlapping chunks.
    embedding_provider:
        Generates embedding vectors for chunk text.
    vector_store:
        Stores embedded points.
    collection_name:
        Collection passed to ``ensure_collection`` at the start of a run.
    dimension:
        Vector dimension of the collection.  Defaults to the embedding
        provider's dimension; vectors of any other length are rejected.
    embed_batch_size:
        Chunks per embedding call.
    upsert_batch_size:
        Points per upsert call.
    concurrency:
        Default number of documents in flight.
    call_timeout:
        Seconds allowed per collaborator call.
    id_format:
        ``"natural"`` or ``"uuid"`` point ids.
    upsert_max_in_flight:
        Concurrent upsert batches per document.
    """

    def __init__(
        self,
        chunker: TextChunker,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
        collection_name: str = "nexa_knowledge",
        dimension: int | None = None,
        embed_batch_size: int = 8,
        upsert_batch_size: int = 50,
        concurrency: int = 5,
        call_timeout: float | None = 30.0,
        id_format: str = "natural",
        upsert_max_in_flight: int = 2,
    ) -> None:
        self._chunker = chunker
        self._embedding_provider = embedding_provider
        self._vector_store = vector_store
        self._collection_name = collection_name
        self._dimension = dimension or embedding_provider.get_dimension()
        self._embed_batch_size = max(1, embed_batch_size)
        self._upsert_batch_size = max(1, upsert_batch_size)
        self._concurrency = max(1, concurrency)
        self._embedding_batcher = EmbeddingBatcher(
            embedding_provider,
            expected_dimension=self._dimension,
            call_timeout=call_timeout,
            id_format=id_format,
        )
        self._upsert_batcher = UpsertBatcher(
            vector_store,
            max_in_flight=upsert_max_in_flight,
            call_timeout=call_timeout,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def ingest_documents(
        self,
        documents: Iterable[SourceText] | AsyncIterable[SourceText],
        concurrency: int | None = None,
    ) -> PipelineRun:
        """Ingest every document from *documents* and return the run tally.

        Raises
        ------
        PipelineError
            If the target collection cannot be ensured.  Nothing is
            embedded in that case.
        """
        await self._ensure_collection()

        run = PipelineRun()
        limit = max(1, concurrency or self._concurrency)
        semaphore = asyncio.Semaphore(limit)
        tasks: set[asyncio.Task[None]] = set()

        logger.info(
            "ingestion_run_started",
            collection=self._collection_name,
            concurrency=limit,
            embedding_provider=self._embedding_provider.get_provider_name(),
        )

        async def _run_one(document: SourceText) -> None:
            try:
                await self._process_document(document, run)
            finally:
                semaphore.release()

        try:
            async for document in _iterate(documents):
                await semaphore.acquire()
                task = asyncio.create_task(_run_one(document))
                tasks.add(task)
                task.add_done_callback(tasks.discard)
        except SourceError as exc:
            logger.error("document_source_failed", error=str(exc))
            await run.record_failure(
                DocumentFailure(document_id="<source>", stage="source", error=str(exc))
            )
        finally:
            if tasks:
                await asyncio.gather(*tasks)

        run.finish()
        logger.info("ingestion_run_complete", **run.summary())
        return run

    async def ingest_document(self, document: SourceText) -> PipelineRun:
        """Ingest a single document (e.g. an upload)."""
        return await self.ingest_documents([document], concurrency=1)

    async def ingest_source(
        self,
        source: ISourceProvider,
        selection_key: str,
        concurrency: int | None = None,
    ) -> PipelineRun:
        """Drain *source* for *selection_key* through the pipeline."""
        logger.info(
            "ingest_source",
            source=source.get_provider_name(),
            selection_key=selection_key,
        )
        return await self.ingest_documents(
            source.iter_documents(selection_key), concurrency=concurrency
        )

    async def aclose(self) -> None:
        """Release collaborator resources (e.g. HTTP clients) that support it."""
        close = getattr(self._embedding_provider, "aclose", None)
        if close is not None:
            await close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _ensure_collection(self) -> None:
        try:
            await self._vector_store.ensure_collection(self._collection_name, self._dimension)
        except Exception as exc:
            logger.error(
                "ensure_collection_failed",
                collection=self._collection_name,
                dimension=self._dimension,
                error=str(exc),
            )
            raise PipelineError(
                message=f"Cannot prepare collection {self._collection_name!r}: {exc}",
                provider_name=self._vector_store.get_provider_name(),
            ) from exc

    async def _process_document(self, document: SourceText, run: PipelineRun) -> None:
        """Run one document end to end and record its outcome on *run*."""
        started = time.monotonic()
        document_id = document.document_id
        chunks_produced = 0
        upserted = 0
        embedding_failures: list[EmbeddingFailure] = []
        upsert_reports: list[UpsertReport] = []

        try:
            chunks = self._chunker.chunk(document.body, document_id)
            chunks_produced = len(chunks)

            if chunks:
                pending: list[EmbeddedPoint] = []
                async for outcome in self._embedding_batcher.embed_chunks(
                    chunks,
                    batch_size=self._embed_batch_size,
                    document_payload=document.to_payload(),
                ):
                    if isinstance(outcome, EmbeddingFailure):
                        embedding_failures.append(outcome)
                        continue
                    pending.append(outcome)
                    if len(pending) >= self._upsert_batch_size:
                        upsert_reports.append(await self._flush(pending))
                        pending = []
                if pending:
                    upsert_reports.append(await self._flush(pending))
                upserted = sum(r.upserted for r in upsert_reports)
        except Exception as exc:  # noqa: BLE001
            logger.error("document_failed", document_id=document_id, error=str(exc))
            await run.record_failure(
                DocumentFailure(document_id=document_id, stage="pipeline", error=str(exc))
            )
        else:
            if embedding_failures:
                await run.record_failure(
                    DocumentFailure(
                        document_id=document_id,
                        stage="embedding",
                        error=_describe_embedding_failures(embedding_failures),
                    )
                )
            upsert_failures = [f for r in upsert_reports for f in r.failures]
            if upsert_failures:
                await run.record_failure(
                    DocumentFailure(
                        document_id=document_id,
                        stage="upsert",
                        error="; ".join(
                            f"batch {f.batch_index} ({len(f.point_ids)} points): {f.error}"
                            for f in upsert_failures
                        ),
                    )
                )

        result = DocumentResult(
            document_id=document_id,
            chunks_produced=chunks_produced,
            points_upserted=upserted,
            embedding_failures=len(embedding_failures),
            elapsed_seconds=time.monotonic() - started,
        )
        await run.record_result(result)
        logger.debug("document_processed", **result.model_dump())

    async def _flush(self, points: list[EmbeddedPoint]) -> UpsertReport:
        return await self._upsert_batcher.upsert(points, batch_size=self._upsert_batch_size)


async def _iterate(
    documents: Iterable[SourceText] | AsyncIterable[SourceText],
) -> AsyncIterable[SourceText]:
    """Present a sync or async iterable as an async iterator."""
    if hasattr(documents, "__aiter__"):
        async for document in documents:  # type: ignore[union-attr]
            yield document
    else:
        for document in documents:  # type: ignore[union-attr]
            yield document


def _describe_embedding_failures(failures: list[EmbeddingFailure]) -> str:
    indices = ", ".join(str(f.chunk.chunk_index) for f in failures)
    return f"{len(failures)} chunk(s) failed to embed (indices {indices}): {failures[0].reason}"
