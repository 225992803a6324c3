"""ChromaDB vector store provider adapter.

Wraps `chromadb.PersistentClient` to implement :class:`IVectorStoreProvider`.
Uses cosine distance.  Fully local and Python-native; no external service
required.

ChromaDB's client is synchronous, so every call runs in a worker thread
via ``asyncio.to_thread`` to keep the event loop free for the other
documents in flight.  Writes return only after ChromaDB has persisted
them, so ``wait=True`` holds for every upsert.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

import chromadb
import structlog

from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.ingestion import EmbeddedPoint
from src.utils.errors import VectorStoreError

logger = structlog.get_logger(logger_name=__name__)

_DIMENSION_KEY = "dimension"


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """No-op embedding function that prevents ChromaDB from loading a model.

    Every point arrives with a pre-computed vector, so ChromaDB's built-in
    embedding is never invoked.  Without this, ChromaDB downloads its
    default ONNX model on collection creation.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError(
            "nexa-ingest uses pre-computed embeddings; "
            "ChromaDB's built-in embedding should never be called."
        )

    def name(self) -> str:
        """Return function name (required by ChromaDB's EmbeddingFunction protocol)."""
        return "noop_precomputed"


class ChromaDBProvider(IVectorStoreProvider):
    """Vector store provider backed by ChromaDB with local persistence.

    Parameters
    ----------
    persist_directory:
        On-disk location of the ChromaDB database.
    collection_name:
        Collection used by :meth:`count` before :meth:`ensure_collection`
        has been called.
    recreate_collection:
        Drop and recreate the collection in :meth:`ensure_collection`.
    client:
        Pre-built ChromaDB client (e.g. ``chromadb.EphemeralClient()``);
        when given, *persist_directory* is ignored.
    """

    def __init__(
        self,
        persist_directory: str = "./data/chromadb",
        collection_name: str = "nexa_knowledge",
        recreate_collection: bool = False,
        client: Any = None,
    ) -> None:
        self._persist_directory = persist_directory
        self._collection_name = collection_name
        self._recreate_collection = recreate_collection
        self._client = client or chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )
        self._collection: Any = None

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def ensure_collection(self, name: str, dimension: int) -> None:
        """Create *name* with *dimension*, or verify an existing collection.

        The dimension is recorded in the collection metadata.  For
        collections created without it, a stored vector is sampled.
        """
        try:
            await asyncio.to_thread(self._ensure_collection_sync, name, dimension)
        except VectorStoreError:
            raise
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB ensure_collection failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def upsert(self, points: list[EmbeddedPoint], wait: bool = True) -> int:
        """Upsert *points* by id; ChromaDB writes are always acknowledged."""
        if not points:
            return 0

        ids = [str(p.point_id) for p in points]
        embeddings = [p.vector for p in points]
        documents = [p.chunk.text for p in points]
        metadatas = [self._payload_to_metadata(p.payload) for p in points]

        try:
            collection = await asyncio.to_thread(self._get_collection)
            await asyncio.to_thread(
                collection.upsert,
                ids=ids,
                embeddings=embeddings,
                documents=documents,
                metadatas=metadatas,
            )
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB upsert failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.debug("chromadb_upsert", collection=collection.name, count=len(points))
        return len(points)

    async def count(self) -> int:
        try:
            collection = await asyncio.to_thread(self._get_collection)
            return await asyncio.to_thread(collection.count)
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB count failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    def get_provider_name(self) -> str:
        return "chromadb"

    def is_available(self) -> bool:
        """Return ``True`` if the ChromaDB client responds."""
        try:
            self._client.heartbeat()
            return True
        except Exception:
            return False

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _ensure_collection_sync(self, name: str, dimension: int) -> None:
        existing = {getattr(c, "name", c) for c in self._client.list_collections()}

        if name in existing and self._recreate_collection:
            logger.info("chromadb_collection_recreate", collection=name)
            self._client.delete_collection(name)
            existing.discard(name)

        if name in existing:
            collection = self._open_collection(name)
            stored = self._stored_dimension(collection)
            if stored is not None and stored != dimension:
                raise VectorStoreError(
                    message=(
                        f"Collection {name!r} holds {stored}-dim vectors but the "
                        f"embedding provider produces {dimension}-dim vectors. "
                        "Set RECREATE_COLLECTION=true or use another collection."
                    ),
                    provider_name=self.get_provider_name(),
                )
            logger.info("chromadb_collection_verified", collection=name, dimension=dimension)
        else:
            collection = self._open_collection(
                name, {"hnsw:space": "cosine", _DIMENSION_KEY: dimension}
            )
            logger.info("chromadb_collection_created", collection=name, dimension=dimension)

        self._collection = collection
        self._collection_name = name

    def _get_collection(self) -> Any:
        if self._collection is None:
            self._collection = self._open_collection(
                self._collection_name, {"hnsw:space": "cosine"}
            )
        return self._collection

    def _open_collection(self, name: str, metadata: dict[str, Any] | None = None) -> Any:
        """Get or create *name*; metadata only applies when it is created."""
        # Newer ChromaDB versions reject an embedding function that differs
        # from the persisted one; reopen without it in that case.
        try:
            return self._client.get_or_create_collection(
                name=name,
                metadata=metadata,
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            return self._client.get_or_create_collection(name=name, metadata=metadata)

    @staticmethod
    def _stored_dimension(collection: Any) -> int | None:
        metadata = collection.metadata or {}
        if _DIMENSION_KEY in metadata:
            return int(metadata[_DIMENSION_KEY])
        if collection.count() == 0:
            return None
        sample = collection.peek(limit=1)
        embeddings = sample.get("embeddings") if sample else None
        if embeddings is None or len(embeddings) == 0:
            return None
        return len(embeddings[0])

    @staticmethod
    def _payload_to_metadata(payload: dict[str, Any]) -> dict[str, str | int | float | bool]:
        """Convert a point payload to a ChromaDB-compatible metadata dict.

        ChromaDB metadata values must be str, int, float, or bool.  Lists
        are serialized as comma-separated strings, dicts as JSON, and
        ``None`` values are dropped.  ``text`` is stored as the document.
        """
        meta: dict[str, str | int | float | bool] = {}
        for key, value in payload.items():
            if key == "text" or value is None:
                continue
            if isinstance(value, (str, int, float, bool)):
                meta[key] = value
            elif isinstance(value, (list, tuple, set)):
                meta[key] = ",".join(str(v) for v in value)
            elif isinstance(value, dict):
                meta[key] = json.dumps(value, sort_keys=True, default=str)
            else:
                meta[key] = str(value)
        return meta
