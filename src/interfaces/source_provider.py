"""Abstract base class for document source providers.

A source turns a selection key (a directory, a space key, a repository
name) into a stream of :class:`~src.models.ingestion.SourceText`.  What
to fetch and how to page through an origin API is the source's business;
the pipeline only drains the stream.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AsyncIterator

from src.models.ingestion import SourceText


# Concrete implementation: FileSystemSourceProvider (src/providers/source/)
class ISourceProvider(ABC):
    """Contract for document sources feeding the ingestion pipeline."""

    @abstractmethod
    def iter_documents(self, selection_key: str) -> AsyncIterator[SourceText]:
        """Yield documents for *selection_key* lazily.

        Implementations log and skip items they cannot read rather than
        aborting the stream.

        Raises
        ------
        src.utils.errors.SourceError
            If the selection itself cannot be resolved.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"filesystem"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the source is configured."""
