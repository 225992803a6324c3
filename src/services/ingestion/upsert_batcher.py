"""Batched synchronous upsert into the vector store.

Points are cut into batches of ``batch_size`` and written with
``wait=True``, a bounded number of batches in flight at once.  A failing
batch is retried once; if it fails again its point ids are recorded in the
returned :class:`UpsertReport` and the other batches are unaffected.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Sequence

import structlog

from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.ingestion import EmbeddedPoint
from src.utils.concurrency import throttled_gather, with_timeout
from src.utils.errors import VectorStoreError

logger = structlog.get_logger(logger_name=__name__)


@dataclass(frozen=True)
class UpsertBatchFailure:
    """A batch that failed both its attempt and its retry."""

    batch_index: int
    point_ids: list[str | int]
    error: str


@dataclass
class UpsertReport:
    """Outcome of one :meth:`UpsertBatcher.upsert` call."""

    upserted: int = 0
    failures: list[UpsertBatchFailure] = field(default_factory=list)

    @property
    def failed_points(self) -> int:
        return sum(len(f.point_ids) for f in self.failures)


class UpsertBatcher:
    """Writes embedded points to an :class:`IVectorStoreProvider` in batches.

    Parameters
    ----------
    vector_store:
        The store collaborator.
    max_in_flight:
        Maximum concurrent batch writes.
    call_timeout:
        Seconds allowed per upsert call; ``None`` disables the limit.
    """

    def __init__(
        self,
        vector_store: IVectorStoreProvider,
        max_in_flight: int = 2,
        call_timeout: float | None = 30.0,
    ) -> None:
        self._vector_store = vector_store
        self._max_in_flight = max(1, max_in_flight)
        self._call_timeout = call_timeout
        self._provider_name = vector_store.get_provider_name()

    async def upsert(self, points: Sequence[EmbeddedPoint], batch_size: int = 50) -> UpsertReport:
        """Upsert *points*; ``upserted`` counts only acknowledged points."""
        report = UpsertReport()
        if not points:
            return report

        batch_size = max(1, batch_size)
        batches = [list(points[i : i + batch_size]) for i in range(0, len(points), batch_size)]
        semaphore = asyncio.Semaphore(self._max_in_flight)

        results = await throttled_gather(
            [self._upsert_with_retry(index, batch) for index, batch in enumerate(batches)],
            semaphore=semaphore,
            return_exceptions=True,
        )

        for index, (batch, result) in enumerate(zip(batches, results)):
            if isinstance(result, BaseException):
                report.failures.append(
                    UpsertBatchFailure(
                        batch_index=index,
                        point_ids=[p.point_id for p in batch],
                        error=str(result),
                    )
                )
            else:
                report.upserted += result

        logger.debug(
            "upsert_complete",
            batches=len(batches),
            upserted=report.upserted,
            failed_batches=len(report.failures),
        )
        return report

    async def _upsert_with_retry(self, batch_index: int, batch: list[EmbeddedPoint]) -> int:
        try:
            return await self._upsert_once(batch)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "upsert_batch_retry",
                batch_index=batch_index,
                batch_size=len(batch),
                error=str(exc),
            )
        try:
            return await self._upsert_once(batch)
        except Exception as exc:
            logger.error(
                "upsert_batch_failed",
                batch_index=batch_index,
                batch_size=len(batch),
                error=str(exc),
            )
            raise

    async def _upsert_once(self, batch: list[EmbeddedPoint]) -> int:
        return await with_timeout(
            self._vector_store.upsert(batch, wait=True),
            self._call_timeout,
            VectorStoreError,
            self._provider_name,
        )
