"""nexa-ingest domain models -- re-exports all public model classes.

Import from ``src.models`` rather than the individual module, e.g.
``from src.models import SourceText``.
"""

from __future__ import annotations

from src.models.ingestion import (
    Chunk,
    DocumentFailure,
    DocumentResult,
    EmbeddedPoint,
    EmbeddingFailure,
    PipelineRun,
    SourceText,
)

__all__ = [
    "Chunk",
    "DocumentFailure",
    "DocumentResult",
    "EmbeddedPoint",
    "EmbeddingFailure",
    "PipelineRun",
    "SourceText",
]
