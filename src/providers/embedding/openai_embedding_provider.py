"""OpenAI-compatible embedding provider adapter.

Wraps the ``openai`` async client to implement :class:`IEmbeddingProvider`.
Supports both real OpenAI and OpenAI-compatible providers (TogetherAI,
Fireworks, a local Ollama ``/v1``) via custom ``base_url`` and model name
settings.

The ``text-embedding-3-*`` models can return shortened vectors.  Setting
``OPENAI_EMBEDDING_DIMENSIONS`` requests that size from the API, which lets
an existing collection keep its dimension across a model upgrade.
"""

from __future__ import annotations

from typing import Any

import openai
import structlog

from src.config.settings import Settings
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.utils.errors import ConfigurationError, EmbeddingError, ProviderUnavailableError

logger = structlog.get_logger(logger_name=__name__)

# Per-request input limit of the embeddings endpoint.
_MAX_INPUTS_PER_REQUEST = 2048

_DEFAULT_MODEL = "text-embedding-3-small"

# Native output size of well-known embedding models.
_NATIVE_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
    "BAAI/bge-base-en-v1.5": 768,
    "BAAI/bge-large-en-v1.5": 1024,
    "nomic-embed-text": 768,
    "intfloat/multilingual-e5-large-instruct": 1024,
}

# Models that accept the ``dimensions`` request parameter.
_SHORTENABLE_PREFIX = "text-embedding-3-"


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by an OpenAI-compatible embeddings API.

    Dimension resolution, first match wins:

    1. ``openai_embedding_dimensions`` (text-embedding-3 models only)
    2. the model's native size from the table above
    3. ``settings.vector_size`` for models the table does not know

    Raises
    ------
    ConfigurationError
        If shortened vectors are requested from a model that cannot
        produce them, or a size above the model's native one is requested.
    """

    def __init__(self, settings: Settings) -> None:
        self._api_key = settings.openai_api_key
        self._model = settings.openai_embedding_model or _DEFAULT_MODEL
        self._provider_label = (
            "openai-compatible_embedding" if settings.openai_base_url else "openai_embedding"
        )
        self._requested_dimensions = self._resolve_requested_dimensions(
            settings.openai_embedding_dimensions
        )
        self._dimension = self._requested_dimensions or _NATIVE_DIMENSIONS.get(
            self._model, settings.vector_size
        )

        client_kwargs: dict[str, Any] = {"api_key": self._api_key or "unset"}
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url
        self._client = openai.AsyncOpenAI(**client_kwargs)

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed *texts*, one vector per text in request order.

        Inputs beyond the per-request limit are sent as consecutive
        requests and the results concatenated.
        """
        if not texts:
            return []

        vectors: list[list[float]] = []
        for offset in range(0, len(texts), _MAX_INPUTS_PER_REQUEST):
            vectors.extend(await self._request(texts[offset : offset + _MAX_INPUTS_PER_REQUEST]))
        return vectors

    async def embed_single(self, text: str) -> list[float]:
        vectors = await self.embed([text])
        if not vectors:
            raise EmbeddingError(
                message="Empty embedding response",
                provider_name=self.get_provider_name(),
            )
        return vectors[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return self._provider_label

    def get_model_name(self) -> str:
        return self._model

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured."""
        return bool(self._api_key)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _request(self, batch: list[str]) -> list[list[float]]:
        request: dict[str, Any] = {"input": batch, "model": self._model}
        if self._requested_dimensions:
            request["dimensions"] = self._requested_dimensions

        try:
            response = await self._client.embeddings.create(**request)
        except openai.APIConnectionError as exc:
            raise ProviderUnavailableError(
                message=f"{self._provider_label} endpoint unreachable: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIError as exc:
            raise EmbeddingError(
                message=f"{self._provider_label} API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        usage = getattr(response, "usage", None)
        logger.debug(
            "openai_embedding_request",
            model=self._model,
            provider=self._provider_label,
            batch_size=len(batch),
            tokens=usage.total_tokens if usage else None,
        )
        return [item.embedding for item in response.data]

    def _resolve_requested_dimensions(self, requested: int) -> int | None:
        if requested <= 0:
            return None
        if not self._model.startswith(_SHORTENABLE_PREFIX):
            raise ConfigurationError(
                message=(
                    f"OPENAI_EMBEDDING_DIMENSIONS is only supported by "
                    f"{_SHORTENABLE_PREFIX}* models, not {self._model!r}"
                ),
                provider_name=self._provider_label,
            )
        native = _NATIVE_DIMENSIONS.get(self._model)
        if native is not None and requested > native:
            raise ConfigurationError(
                message=f"{self._model} produces at most {native} dimensions, got {requested}",
                provider_name=self._provider_label,
            )
        return requested
