"""Abstract base class for vector-store service providers.

Defines the contract the upsert stage needs: create-or-verify a
collection, write points synchronously, and count what is stored.
Implementations may wrap ChromaDB, Qdrant or any other vector database.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.ingestion import EmbeddedPoint


# Concrete implementation: ChromaDBProvider (src/providers/vector_store/)
class IVectorStoreProvider(ABC):
    """Contract for vector stores used by the ingestion pipeline.

    All mutation methods are async so network-backed stores do not block
    the event loop.
    """

    @abstractmethod
    async def ensure_collection(self, name: str, dimension: int) -> None:
        """Create the collection if missing, or verify it if present.

        Idempotent.  Called once at the start of every run, before any
        embedding is generated.

        Raises
        ------
        src.utils.errors.VectorStoreError
            If the collection cannot be created, or exists with a
            different dimension.
        """

    @abstractmethod
    async def upsert(self, points: list[EmbeddedPoint], wait: bool = True) -> int:
        """Insert or replace *points* by ``point_id``.

        Parameters
        ----------
        points:
            Points to write.  Re-upserting an existing id replaces it.
        wait:
            When ``True`` the call returns only after the store has
            acknowledged the write.

        Returns
        -------
        int
            The number of points acknowledged.

        Raises
        ------
        src.utils.errors.VectorStoreError
            If the write fails.
        """

    @abstractmethod
    async def count(self) -> int:
        """Return the number of points in the active collection."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"chromadb"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the store is reachable."""
