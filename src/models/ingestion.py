"""Ingestion pipeline data models.

Defines Pydantic v2 models for the values that flow through the pipeline::

    SourceText -> Chunk -> EmbeddedPoint | EmbeddingFailure -> PipelineRun

Everything except :class:`PipelineRun` is frozen.  A ``PipelineRun`` is
the per-run accumulator; it is mutated only through its ``record_*``
coroutines, which serialize updates from concurrent document tasks with
an ``asyncio.Lock``.  Runs are reported, never persisted.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, computed_field


class SourceText(BaseModel):
    """A document as handed over by a source collaborator."""

    model_config = ConfigDict(frozen=True)

    document_id: str = Field(min_length=1, description="Stable identifier of the document at its origin.")
    title: str = Field(default="", description="Human-readable title.")
    body: str = Field(default="", description="Raw document text; may be empty.")
    source_type: str | None = Field(
        default=None,
        description='Origin kind, e.g. "confluence", "jira", "github", "filesystem", "upload".',
    )
    url: str | None = None
    author: str | None = None
    department: str | None = None
    tags: list[str] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    security_level: str = Field(default="internal", description="Access classification copied to every chunk.")
    language: str = Field(default="en", description="ISO language code of the body.")
    precomputed_entities: list[str] = Field(default_factory=list)
    custom_fields: dict[str, Any] = Field(
        default_factory=dict,
        description="Source-specific extras, flattened as custom_<key> in the payload.",
    )

    def to_payload(self) -> dict[str, Any]:
        """Flatten document-level metadata into a store payload.

        ``None`` values are omitted.  Timestamps are ISO-8601 strings.
        """
        payload: dict[str, Any] = {
            "id": self.document_id,
            "source": self.title,
            "security_level": self.security_level,
            "language": self.language,
        }
        optional: dict[str, Any] = {
            "source_type": self.source_type,
            "url": self.url,
            "author": self.author,
            "department": self.department,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        payload.update({k: v for k, v in optional.items() if v is not None})
        if self.tags:
            payload["tags"] = list(self.tags)
        if self.precomputed_entities:
            payload["precomputed_entities"] = list(self.precomputed_entities)
        for key, value in self.custom_fields.items():
            if value is not None:
                payload[f"custom_{key}"] = value
        return payload


class Chunk(BaseModel):
    """One bounded segment of a document, the unit that gets embedded."""

    model_config = ConfigDict(frozen=True)

    chunk_id: str = Field(description='Deterministic id, "<document_id>_chunk_<index>".')
    document_id: str
    chunk_index: int = Field(ge=0, description="0-based, dense within the document.")
    text: str = Field(min_length=1)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def char_length(self) -> int:
        return len(self.text)


class EmbeddedPoint(BaseModel):
    """A chunk paired with its vector and flattened payload."""

    model_config = ConfigDict(frozen=True)

    chunk: Chunk
    point_id: str | int = Field(description="Store-facing id (natural chunk id or canonical UUID).")
    vector: list[float]
    payload: dict[str, Any] = Field(default_factory=dict)


class EmbeddingFailure(BaseModel):
    """Marker for a chunk that could not be embedded after retry."""

    model_config = ConfigDict(frozen=True)

    chunk: Chunk
    reason: str


class DocumentFailure(BaseModel):
    """A per-document failure recorded on the run."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    stage: str = Field(description='"chunking", "embedding", "upsert" or "pipeline".')
    error: str


class DocumentResult(BaseModel):
    """Per-document tally, recorded whether or not the document failed."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    chunks_produced: int = Field(default=0, ge=0)
    points_upserted: int = Field(default=0, ge=0)
    embedding_failures: int = Field(default=0, ge=0)
    elapsed_seconds: float = Field(default=0.0, ge=0.0)


class PipelineRun(BaseModel):
    """Aggregate outcome of one ingestion run."""

    documents_processed: int = 0
    chunks_produced: int = 0
    points_upserted: int = 0
    failures: list[DocumentFailure] = Field(default_factory=list)
    results: list[DocumentResult] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: datetime | None = None

    _lock: asyncio.Lock = PrivateAttr(default_factory=asyncio.Lock)

    async def record_result(self, result: DocumentResult) -> None:
        async with self._lock:
            self.documents_processed += 1
            self.chunks_produced += result.chunks_produced
            self.points_upserted += result.points_upserted
            self.results.append(result)

    async def record_failure(self, failure: DocumentFailure) -> None:
        async with self._lock:
            self.failures.append(failure)

    def finish(self) -> None:
        self.finished_at = datetime.now(timezone.utc)

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)

    @property
    def elapsed_seconds(self) -> float:
        end = self.finished_at or datetime.now(timezone.utc)
        return (end - self.started_at).total_seconds()

    def summary(self) -> dict[str, Any]:
        """Return a JSON-friendly summary for logs and the CLI."""
        return {
            "documents_processed": self.documents_processed,
            "chunks_produced": self.chunks_produced,
            "points_upserted": self.points_upserted,
            "failures": [f.model_dump() for f in self.failures],
            "elapsed_seconds": round(self.elapsed_seconds, 3),
        }
