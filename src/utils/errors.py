"""Custom exception hierarchy for nexa-ingest.

All application exceptions inherit from :class:`NexaIngestError`, which
carries an optional ``provider_name`` so error handlers can identify which
collaborator (e.g. "openai", "huggingface", "chromadb", "filesystem")
caused the failure.

The hierarchy is organized by pipeline stage:

    NexaIngestError  (base -- catch-all for any nexa-ingest error)
    +-- ConfigurationError       (invalid chunking / provider settings)
    +-- PipelineError            (fatal run-level failure, e.g. ensure_collection)
    +-- SourceError              (a document source could not be read)
    +-- EmbeddingError           (embedding collaborator call failed)
    +-- VectorStoreError         (vector store collaborator call failed)
    +-- ProviderUnavailableError (external service down / unreachable)

Per-document failures never surface as exceptions from the orchestrator;
they are recorded on the run as ``DocumentFailure`` entries.  Only
``PipelineError`` aborts a run.
"""


class NexaIngestError(Exception):
    """Base exception for all nexa-ingest errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name``.  ``__str__`` prefixes the provider name in brackets
    for structured log output, e.g. ``[chromadb] Upsert failed``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Configuration / orchestration errors
# ---------------------------------------------------------------------------

class ConfigurationError(NexaIngestError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class PipelineError(NexaIngestError):
    """Raised when a run cannot proceed at all.

    Raised before any document is embedded, e.g. when the target
    collection cannot be created or has an incompatible dimension.
    """

    def __init__(
        self,
        message: str = "Pipeline run failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Collaborator errors
# ---------------------------------------------------------------------------

class SourceError(NexaIngestError):
    """Raised when a document source cannot be read or enumerated."""

    def __init__(
        self,
        message: str = "Document source failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingError(NexaIngestError):
    """Raised when an embedding call fails or returns an unusable response."""

    def __init__(
        self,
        message: str = "Embedding call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class VectorStoreError(NexaIngestError):
    """Raised when a vector store operation fails."""

    def __init__(
        self,
        message: str = "Vector store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ProviderUnavailableError(NexaIngestError):
    """Raised when an adapter cannot reach its endpoint (connection refused,
    DNS failure, transport timeout).

    The embedding batcher treats it like any failed call: the chunks are
    retried singly once, then recorded as embedding failures.
    """

    def __init__(
        self,
        message: str = "External service is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
