"""Batched embedding with per-chunk retry.

Chunks are sent to the :class:`~src.interfaces.embedding_provider.IEmbeddingProvider`
in consecutive batches; each returned vector is matched back to its chunk
strictly by position.  Failures are contained at the smallest scope that
still makes progress:

* a batch call that raises, times out, or returns the wrong number of
  vectors is retried once as single-text calls, one per chunk;
* a single empty or wrong-dimension vector is retried on its own;
* a chunk that still fails is emitted as an
  :class:`~src.models.ingestion.EmbeddingFailure` so the orchestrator can
  report it, and the rest of the batch flows through.
"""

from __future__ import annotations

from typing import Any, AsyncIterator, Sequence

import structlog

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.models.ingestion import Chunk, EmbeddedPoint, EmbeddingFailure
from src.services.ingestion import identity
from src.utils.concurrency import with_timeout
from src.utils.errors import EmbeddingError

logger = structlog.get_logger(logger_name=__name__)

EmbeddingOutcome = EmbeddedPoint | EmbeddingFailure


class EmbeddingBatcher:
    """Turns chunks into :class:`EmbeddedPoint` objects via batched calls.

    Parameters
    ----------
    embedding_provider:
        The embedding collaborator.
    expected_dimension:
        When set, vectors of any other length are rejected.
    call_timeout:
        Seconds allowed per provider call; ``None`` disables the limit.
    id_format:
        Point id format passed to :func:`identity.canonicalize`.
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        expected_dimension: int | None = None,
        call_timeout: float | None = 30.0,
        id_format: str = "natural",
    ) -> None:
        self._embedding_provider = embedding_provider
        self._expected_dimension = expected_dimension
        self._call_timeout = call_timeout
        self._id_format = id_format
        self._provider_name = embedding_provider.get_provider_name()
        self._model_name = embedding_provider.get_model_name()

    async def embed_chunks(
        self,
        chunks: Sequence[Chunk],
        batch_size: int = 8,
        document_payload: dict[str, Any] | None = None,
    ) -> AsyncIterator[EmbeddingOutcome]:
        """Yield one outcome per chunk, in input order.

        Parameters
        ----------
        chunks:
            Chunks of one document, in index order.
        batch_size:
            Maximum chunks per provider call (values below 1 are treated as 1).
        document_payload:
            Document-level metadata merged into every point's payload.
        """
        batch_size = max(1, batch_size)
        base_payload = document_payload or {}

        for offset in range(0, len(chunks), batch_size):
            batch = list(chunks[offset : offset + batch_size])
            vectors = await self._embed_batch(batch)

            for position, chunk in enumerate(batch):
                vector = vectors[position] if vectors is not None else None
                if vector is None or self._vector_problem(vector) is not None:
                    yield await self._embed_one(chunk, base_payload)
                else:
                    yield self._to_point(chunk, vector, base_payload)

    # ------------------------------------------------------------------
    # Provider calls
    # ------------------------------------------------------------------

    async def _embed_batch(self, batch: list[Chunk]) -> list[list[float]] | None:
        """Return vectors for *batch*, or ``None`` if the batch call failed."""
        try:
            vectors = await with_timeout(
                self._embedding_provider.embed([c.text for c in batch]),
                self._call_timeout,
                EmbeddingError,
                self._provider_name,
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "embedding_batch_failed",
                document_id=batch[0].document_id,
                first_chunk_index=batch[0].chunk_index,
                batch_size=len(batch),
                error=str(exc),
            )
            return None

        if len(vectors) != len(batch):
            logger.warning(
                "embedding_batch_count_mismatch",
                document_id=batch[0].document_id,
                expected=len(batch),
                received=len(vectors),
            )
            return None
        return vectors

    async def _embed_one(self, chunk: Chunk, base_payload: dict[str, Any]) -> EmbeddingOutcome:
        """Retry a single chunk once; return a failure marker if it still fails."""
        try:
            vector = await with_timeout(
                self._embedding_provider.embed_single(chunk.text),
                self._call_timeout,
                EmbeddingError,
                self._provider_name,
            )
        except Exception as exc:  # noqa: BLE001
            return self._to_failure(chunk, str(exc))

        problem = self._vector_problem(vector)
        if problem is not None:
            return self._to_failure(chunk, problem)
        return self._to_point(chunk, vector, base_payload)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _vector_problem(self, vector: list[float] | None) -> str | None:
        if not vector:
            return "empty vector"
        if self._expected_dimension is not None and len(vector) != self._expected_dimension:
            return f"dimension {len(vector)} != expected {self._expected_dimension}"
        return None

    def _to_point(
        self, chunk: Chunk, vector: list[float], base_payload: dict[str, Any]
    ) -> EmbeddedPoint:
        payload = {
            **base_payload,
            "chunk_id": chunk.chunk_id,
            "text": chunk.text,
            "chunk_index": chunk.chunk_index,
            "embedding_model": self._model_name,
        }
        return EmbeddedPoint(
            chunk=chunk,
            point_id=identity.canonicalize(chunk.chunk_id, self._id_format),
            vector=[float(v) for v in vector],
            payload=payload,
        )

    def _to_failure(self, chunk: Chunk, reason: str) -> EmbeddingFailure:
        logger.warning(
            "chunk_embedding_failed",
            document_id=chunk.document_id,
            chunk_id=chunk.chunk_id,
            reason=reason,
        )
        return EmbeddingFailure(chunk=chunk, reason=reason)
