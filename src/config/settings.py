"""Application settings loaded from environment variables via pydantic-settings.

Values are resolved in priority order:

  1. Environment variables, e.g. ``EMBED_BATCH_SIZE=16``
  2. ``.env`` file in the working directory
  3. config/config.yaml, via :func:`src.config.loader.load_config`
  4. Field defaults below

Field name ``embed_batch_size`` maps to env var ``EMBED_BATCH_SIZE``.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """nexa-ingest settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # === Chunking ===
    chunk_chars_per_token: int = 4
    chunk_target_tokens_min: int = 300
    chunk_target_tokens_max: int = 500
    chunk_overlap_tokens: int = 50

    # === Batching / pipeline ===
    embed_batch_size: int = 8
    upsert_batch_size: int = 50
    upsert_max_in_flight: int = 2
    ingest_concurrency: int = 5
    call_timeout_seconds: float = 30.0
    # "natural" keeps "<document_id>_chunk_<n>"; "uuid" canonicalizes for
    # stores that only accept UUID or integer point ids.
    point_id_format: str = "natural"

    # === Embedding ===
    embedding_provider: str = "openai"  # "openai" | "huggingface"
    openai_api_key: str = ""
    openai_base_url: str = ""  # Custom base URL for OpenAI-compatible APIs
    openai_embedding_model: str = ""  # Empty = provider default
    # Shortened vectors for text-embedding-3-* models; 0 = native size
    openai_embedding_dimensions: int = 0
    huggingface_api_url: str = "https://router.huggingface.co"
    huggingface_api_token: str = ""
    huggingface_model: str = "BAAI/bge-base-en-v1.5"

    # === Vector store ===
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_collection: str = "nexa_knowledge"
    vector_size: int = 768
    recreate_collection: bool = False

    # === Filesystem source ===
    filesystem_base_paths: list[str] = []
    filesystem_extensions: list[str] = [".txt", ".md"]
    filesystem_max_file_size_kb: int = 1000
    filesystem_recursive: bool = True

    # === App Config ===
    app_env: str = "development"
    log_level: str = "INFO"

    def get_available_embedding_providers(self) -> list[str]:
        """Return embedding provider names that have credentials configured."""
        providers: list[str] = []
        if self.openai_api_key:
            providers.append("openai")
        if self.huggingface_api_token:
            providers.append("huggingface")
        return providers
