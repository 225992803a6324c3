"""Shared pytest fixtures for the nexa-ingest test suite."""

from __future__ import annotations

import asyncio
import hashlib
from pathlib import Path
from typing import Any

import pytest

from src.config.settings import Settings
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.ingestion import EmbeddedPoint, SourceText

# ---------------------------------------------------------------------------
# Sample text
# ---------------------------------------------------------------------------


_SAMPLE_PARAGRAPHS = [
    (
        "Employees accrue paid time off from their first day of employment. "
        "Full-time staff earn one and a half days per month, capped at "
        "twenty-five days per calendar year. Unused days roll over once."
    ),
    (
        "Requests for leave longer than five consecutive days must be filed "
        "at least two weeks in advance. Managers approve or decline requests "
        "within three business days. Declined requests include a reason."
    ),
    (
        "Parental leave is granted for sixteen weeks at full pay. It may be "
        "taken in up to three blocks within the first year after birth or "
        "adoption. Benefits continue unchanged during the leave."
    ),
    (
        "Sick days do not count against paid time off. A doctor's note is "
        "required after three consecutive sick days. Long-term illness is "
        "handled by the disability insurance policy."
    ),
    (
        "Travel expenses are reimbursed within thirty days of submission. "
        "Receipts are mandatory for every item above twenty-five euros. "
        "Business class is only approved for flights longer than six hours."
    ),
]


def make_long_text(paragraph_repeats: int = 4) -> str:
    """Return a multi-paragraph policy document separated by blank lines."""
    paragraphs = [
        f"Section {n + 1}. {p}"
        for n in range(paragraph_repeats)
        for p in _SAMPLE_PARAGRAPHS
    ]
    return "\n\n".join(paragraphs)


@pytest.fixture
def sample_document_text() -> str:
    """A ~4 KB multi-paragraph document, long enough to need several chunks."""
    return make_long_text()


def make_document(document_id: str = "doc-1", body: str | None = None, **kwargs: Any) -> SourceText:
    """Build a SourceText with sensible defaults for tests."""
    return SourceText(
        document_id=document_id,
        title=kwargs.pop("title", f"{document_id}.md"),
        body=make_long_text() if body is None else body,
        **kwargs,
    )


@pytest.fixture
def sample_document() -> SourceText:
    return make_document(
        "hr/leave-policy.md",
        source_type="filesystem",
        department="HR",
        tags=["policy", "leave"],
    )


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


def make_settings(**overrides: Any) -> Settings:
    """Build Settings from explicit values; init kwargs win over the environment."""
    defaults: dict[str, Any] = {
        "openai_api_key": "",
        "huggingface_api_token": "",
        "embedding_provider": "openai",
    }
    defaults.update(overrides)
    return Settings(**defaults)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return make_settings(chromadb_persist_dir=str(tmp_path / "chroma"))


# ---------------------------------------------------------------------------
# Mock embedding providers
# ---------------------------------------------------------------------------


_EMBEDDING_DIM = 128


def _hash_to_vector(text: str, dim: int = _EMBEDDING_DIM) -> list[float]:
    """Generate a deterministic fixed-length vector by hashing *text*.

    Uses SHA-256 to hash the text, maps each byte into ``[-1, 1]`` and
    normalises to unit length.  Deterministic: the same text always
    produces the same vector.
    """
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    raw = digest
    while len(raw) < dim:
        raw += hashlib.sha256(raw).digest()
    values = [b / 127.5 - 1.0 for b in raw[:dim]]
    magnitude = max(sum(v * v for v in values) ** 0.5, 1e-10)
    return [v / magnitude for v in values]


class MockEmbeddingProvider(IEmbeddingProvider):
    """In-memory deterministic embedding provider for tests.

    Records every call so tests can assert on batching.
    """

    def __init__(self, dimension: int = _EMBEDDING_DIM) -> None:
        self._dimension = dimension
        self.batch_calls: list[list[str]] = []
        self.single_calls: list[str] = []

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.batch_calls.append(list(texts))
        return [_hash_to_vector(t, self._dimension) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        self.single_calls.append(text)
        return _hash_to_vector(text, self._dimension)

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "mock-embedding"

    def get_model_name(self) -> str:
        return f"mock-hash-{self._dimension}"

    def is_available(self) -> bool:
        return True


class FlakyEmbeddingProvider(MockEmbeddingProvider):
    """Returns an empty vector for texts containing *poison*, in batch and singly."""

    def __init__(self, poison: str, fail_batches: bool = False) -> None:
        super().__init__()
        self._poison = poison
        self._fail_batches = fail_batches

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.batch_calls.append(list(texts))
        if self._fail_batches:
            raise RuntimeError("batch endpoint unavailable")
        return [[] if self._poison in t else _hash_to_vector(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        self.single_calls.append(text)
        if self._poison in text:
            raise RuntimeError(f"cannot embed text containing {self._poison!r}")
        return _hash_to_vector(text)


# ---------------------------------------------------------------------------
# Mock vector stores
# ---------------------------------------------------------------------------


class MockVectorStore(IVectorStoreProvider):
    """In-memory vector store backed by a dict keyed by point id.

    Upserts replace existing ids, so re-ingesting a document leaves the
    count unchanged.  Tracks the peak number of concurrent upsert calls.
    """

    def __init__(self, upsert_delay: float = 0.0) -> None:
        self.points: dict[str | int, EmbeddedPoint] = {}
        self.collections: dict[str, int] = {}
        self.upsert_calls: list[list[str | int]] = []
        self.wait_flags: list[bool] = []
        self.in_flight = 0
        self.peak_in_flight = 0
        self._upsert_delay = upsert_delay

    async def ensure_collection(self, name: str, dimension: int) -> None:
        existing = self.collections.get(name)
        if existing is not None and existing != dimension:
            raise ValueError(f"dimension mismatch: {existing} != {dimension}")
        self.collections[name] = dimension

    async def upsert(self, points: list[EmbeddedPoint], wait: bool = True) -> int:
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            if self._upsert_delay:
                await asyncio.sleep(self._upsert_delay)
            self.upsert_calls.append([p.point_id for p in points])
            self.wait_flags.append(wait)
            for point in points:
                self.points[point.point_id] = point
            return len(points)
        finally:
            self.in_flight -= 1

    async def count(self) -> int:
        return len(self.points)

    def get_provider_name(self) -> str:
        return "mock-store"

    def is_available(self) -> bool:
        return True

    def document_ids(self) -> set[str]:
        return {p.chunk.document_id for p in self.points.values()}


class FailingVectorStore(MockVectorStore):
    """Fails every upsert whose batch contains a point of *document_id*.

    ``failures_per_batch`` bounds how many times each such batch fails
    before succeeding; ``None`` fails forever.
    """

    def __init__(self, document_id: str, failures_per_batch: int | None = None) -> None:
        super().__init__()
        self._document_id = document_id
        self._failures_per_batch = failures_per_batch
        self._attempts: dict[tuple[str | int, ...], int] = {}

    async def upsert(self, points: list[EmbeddedPoint], wait: bool = True) -> int:
        if any(p.chunk.document_id == self._document_id for p in points):
            key = tuple(p.point_id for p in points)
            self._attempts[key] = self._attempts.get(key, 0) + 1
            if self._failures_per_batch is None or self._attempts[key] <= self._failures_per_batch:
                raise ConnectionError("store connection reset")
        return await super().upsert(points, wait=wait)


@pytest.fixture
def mock_embedding() -> MockEmbeddingProvider:
    return MockEmbeddingProvider()


@pytest.fixture
def mock_store() -> MockVectorStore:
    return MockVectorStore()
