"""Document ingestion pipeline for the nexa knowledge base.

Orchestrates the full pipeline: **chunk -> identify -> embed -> upsert**.

1. **Chunk** (chunker.py / TextChunker) -- splits document text into
   overlapping windows inside a token-size band, preserving paragraph
   and sentence boundaries.

2. **Identify** (identity.py) -- derives deterministic chunk ids so that
   re-ingesting a document replaces its points instead of duplicating them.

3. **Embed** (embedding_batcher.py / EmbeddingBatcher) -- batched calls to
   the IEmbeddingProvider with per-chunk retry.

4. **Upsert** (upsert_batcher.py / UpsertBatcher) -- batched, acknowledged
   writes to the IVectorStoreProvider with one retry per batch.

The IngestionService class coordinates all four stages under bounded
concurrency and returns a PipelineRun tally.
"""

from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.embedding_batcher import EmbeddingBatcher
from src.services.ingestion.ingestion_service import IngestionService
from src.services.ingestion.upsert_batcher import UpsertBatcher, UpsertReport

__all__ = [
    "EmbeddingBatcher",
    "IngestionService",
    "TextChunker",
    "UpsertBatcher",
    "UpsertReport",
]
