"""Public interface definitions for all external collaborators.

The ingestion pipeline reaches sources, embedding services and vector
stores only through the abstract base classes in this package.  Concrete
adapters live in ``src/providers/`` and are chosen in ``src/cli/ingest.py``
from Settings; tests inject in-memory fakes instead.

CONCRETE PROVIDER MAP:
    Interface                  →  Concrete implementations (in src/providers/)
    ─────────────────────────────────────────────────────────────────────
    ISourceProvider            →  FileSystemSourceProvider
    IEmbeddingProvider         →  OpenAIEmbeddingProvider,
                                  HuggingFaceEmbeddingProvider
    IVectorStoreProvider       →  ChromaDBProvider
"""

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.source_provider import ISourceProvider
from src.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "IEmbeddingProvider",
    "ISourceProvider",
    "IVectorStoreProvider",
]
