"""Hugging Face Inference embedding provider adapter.

Calls the feature-extraction endpoint of the Hugging Face Inference router
over ``httpx``::

    POST {api_url}/hf-inference/models/{model}
    Authorization: Bearer <token>
    {"inputs": ["text one", "text two"]}

The response is a JSON array with one vector per input, in request order.
Single-text requests may come back either as ``[[...]]`` or as a bare
``[...]``; both shapes are accepted.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from src.config.settings import Settings
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.utils.errors import EmbeddingError, ProviderUnavailableError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_TIMEOUT = 60.0


class HuggingFaceEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by the Hugging Face Inference API.

    The dimension is not reported by the API, so it is taken from
    ``settings.vector_size`` (768 for the default ``BAAI/bge-base-en-v1.5``).
    An :class:`httpx.AsyncClient` may be injected for connection reuse or
    tests; otherwise one is created lazily and closed by :meth:`aclose`.
    """

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None) -> None:
        self._api_url = settings.huggingface_api_url.rstrip("/")
        self._api_token = settings.huggingface_api_token
        self._model = settings.huggingface_model
        self._dimension = settings.vector_size
        self._client = client
        self._owns_client = client is None

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        data = await self._post(texts)
        if not isinstance(data, list):
            raise EmbeddingError(
                message=f"Unexpected response type {type(data).__name__}",
                provider_name=self.get_provider_name(),
            )
        vectors = [self._to_vector(item) for item in data]
        logger.debug("huggingface_embedding_batch", model=self._model, batch_size=len(texts))
        return vectors

    async def embed_single(self, text: str) -> list[float]:
        if not text or not text.strip():
            raise EmbeddingError(
                message="Text must not be blank",
                provider_name=self.get_provider_name(),
            )
        data = await self._post(text)
        if isinstance(data, list) and data and isinstance(data[0], list):
            return self._to_vector(data[0])
        return self._to_vector(data)

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return f"huggingface:{self._model}"

    def get_model_name(self) -> str:
        return self._model

    def is_available(self) -> bool:
        """Return ``True`` if an API token is configured."""
        return bool(self._api_token)

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Content-Type": "application/json"}
            if self._api_token:
                headers["Authorization"] = f"Bearer {self._api_token}"
            self._client = httpx.AsyncClient(
                base_url=self._api_url, headers=headers, timeout=_DEFAULT_TIMEOUT
            )
        return self._client

    async def _post(self, inputs: str | list[str]) -> Any:
        path = f"/hf-inference/models/{self._model}"
        try:
            response = await self._get_client().post(path, json={"inputs": inputs})
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            raise EmbeddingError(
                message=(
                    f"Hugging Face embedding failed at {path}: "
                    f"HTTP {exc.response.status_code}"
                ),
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.TransportError as exc:
            raise ProviderUnavailableError(
                message=f"Hugging Face endpoint {self._api_url} unreachable: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise EmbeddingError(
                message=f"Hugging Face embedding failed at {path}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    def _to_vector(self, item: Any) -> list[float]:
        """Coerce one response item to a flat float list; non-lists become ``[]``."""
        if not isinstance(item, list):
            return []
        try:
            return [float(v) for v in item]
        except (TypeError, ValueError) as exc:
            raise EmbeddingError(
                message=f"Non-numeric embedding component: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
