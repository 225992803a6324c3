"""Embedding provider implementations.

Embeddings convert text into numeric vectors that capture semantic meaning.

Two implementations of IEmbeddingProvider:
    1. OpenAIEmbeddingProvider       -- text-embedding-3-small (1536 dims), or
       any OpenAI-compatible endpoint via OPENAI_BASE_URL.
    2. HuggingFaceEmbeddingProvider  -- Hugging Face Inference router,
       BAAI/bge-base-en-v1.5 (768 dims) by default.
"""

from src.providers.embedding.huggingface_embedding_provider import HuggingFaceEmbeddingProvider
from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["HuggingFaceEmbeddingProvider", "OpenAIEmbeddingProvider"]
