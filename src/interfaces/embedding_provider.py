"""Abstract base class for text-embedding service providers.

Defines the contract for generating embedding vectors from text.
Implementations wrap an OpenAI-compatible embeddings endpoint or the
Hugging Face Inference API; the pipeline only ever sees this interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations (src/providers/embedding/):
#   OpenAIEmbeddingProvider      -- OpenAI or any OpenAI-compatible base URL
#   HuggingFaceEmbeddingProvider -- HF Inference feature-extraction endpoint
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services used by the ingestion pipeline."""

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            One or more text strings to embed.

        Returns
        -------
        list[list[float]]
            Embedding vectors corresponding positionally to *texts*.  A
            result of a different length is treated by the caller as a
            failed batch.

        Raises
        ------
        src.utils.errors.EmbeddingError
            If the embedding API call fails.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string.

        Used by the batcher to retry chunks of a failed batch one by one.
        """

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the embedding vectors.

        Must match the dimension of the target collection.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable adapter label, e.g. ``"openai_embedding"``."""

    @abstractmethod
    def get_model_name(self) -> str:
        """Return the embedding model id, stored with every point as ``embedding_model``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured (credentials present)."""
