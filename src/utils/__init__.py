"""Utility modules for nexa-ingest.

- **errors** -- Domain exception hierarchy rooted at NexaIngestError.
- **concurrency** -- semaphore-throttled gather and timeout helpers used by
  the embedding and upsert batchers.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
- **text_normalizer** -- whitespace collapsing and paragraph splitting that
  prepare document text for the chunker.
"""

# -- Domain exception hierarchy --------------------------------------------
from src.utils.errors import (
    ConfigurationError,
    EmbeddingError,
    NexaIngestError,
    PipelineError,
    ProviderUnavailableError,
    SourceError,
    VectorStoreError,
)

# -- Async concurrency helpers ---------------------------------------------
from src.utils.concurrency import throttled_gather, with_timeout

# -- Structured logging setup ----------------------------------------------
from src.utils.logging import configure_logging

# -- Text normalization -----------------------------------------------------
from src.utils.text_normalizer import normalize, split_paragraphs

__all__ = [
    "ConfigurationError",
    "EmbeddingError",
    "NexaIngestError",
    "PipelineError",
    "ProviderUnavailableError",
    "SourceError",
    "VectorStoreError",
    "configure_logging",
    "normalize",
    "split_paragraphs",
    "throttled_gather",
    "with_timeout",
]
