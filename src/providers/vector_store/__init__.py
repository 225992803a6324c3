"""Vector store provider implementations.

ChromaDBProvider is the only adapter: a local, file-backed store that
accepts pre-computed vectors and arbitrary string point ids.
"""

from src.providers.vector_store.chromadb_provider import ChromaDBProvider

__all__ = ["ChromaDBProvider"]
