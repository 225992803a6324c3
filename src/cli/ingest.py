# =============================================================================
# src/cli/ingest.py -- CLI Ingest Command
# =============================================================================
#
# Standalone CLI for running the nexa ingestion pipeline against the local
# ChromaDB knowledge base.
#
# Supported subcommands:
#
#   directory -- Ingest every matching file under a directory
#   file      -- Ingest a single file
#   stats     -- Print the number of points in the collection
#
# Provider Selection:
#   - Embedding: EMBEDDING_PROVIDER=openai (default) or huggingface
#   - Vector Store: ChromaDB (always)
#
# Usage examples:
#   python -m src.cli.ingest directory --path ./docs/hr
#   python -m src.cli.ingest file --file ./docs/handbook.md
#   python -m src.cli.ingest --config config/config.yaml stats
# =============================================================================

"""Standalone CLI for the nexa ingestion pipeline.

Usage::

    python -m src.cli.ingest directory --path /path/to/docs [--concurrency 10]

    python -m src.cli.ingest file --file /path/to/handbook.md

    python -m src.cli.ingest stats

Exit status is 0 on a clean run, 1 if any document failed or the run
could not start.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from src.config.loader import load_config
from src.config.settings import Settings
from src.utils.errors import ConfigurationError, NexaIngestError
from src.utils.logging import configure_logging


def _build_embedding_provider(app_settings: Settings):  # noqa: ANN202
    """Build the embedding provider named by ``EMBEDDING_PROVIDER``.

    Imports are deferred so that ``stats`` never loads the openai SDK.

    Returns
    -------
    IEmbeddingProvider or None
        The configured provider, or ``None`` if it has no credentials.

    Raises
    ------
    ConfigurationError
        If ``EMBEDDING_PROVIDER`` names an unknown provider.
    """
    name = app_settings.embedding_provider.lower()
    if name == "openai":
        from src.providers.embedding.openai_embedding_provider import (
            OpenAIEmbeddingProvider,
        )

        provider = OpenAIEmbeddingProvider(settings=app_settings)
    elif name == "huggingface":
        from src.providers.embedding.huggingface_embedding_provider import (
            HuggingFaceEmbeddingProvider,
        )

        provider = HuggingFaceEmbeddingProvider(settings=app_settings)
    else:
        raise ConfigurationError(
            message=f"Unknown EMBEDDING_PROVIDER {app_settings.embedding_provider!r}",
        )

    return provider if provider.is_available() else None


def _build_vector_store(app_settings: Settings):  # noqa: ANN202
    from src.providers.vector_store.chromadb_provider import ChromaDBProvider

    return ChromaDBProvider(
        persist_directory=app_settings.chromadb_persist_dir,
        collection_name=app_settings.chromadb_collection,
        recreate_collection=app_settings.recreate_collection,
    )


def _build_ingestion_service(app_settings: Settings):  # noqa: ANN202
    """Construct the ingestion service with all providers.

    Returns
    -------
    tuple[IngestionService, str] or tuple[None, str]
        The ingestion service and a status message.  Returns ``None`` with
        an error message if the embedding provider is not configured.
    """
    embedding_provider = _build_embedding_provider(app_settings)
    if embedding_provider is None:
        message = f"EMBEDDING_PROVIDER={app_settings.embedding_provider} has no credentials."
        configured = app_settings.get_available_embedding_providers()
        if configured:
            message += f" Credentials are set for: {', '.join(configured)}."
        return None, (
            f"{message}\n"
            "Set one of:\n"
            "  OPENAI_API_KEY         -- with EMBEDDING_PROVIDER=openai\n"
            "  HUGGINGFACE_API_TOKEN  -- with EMBEDDING_PROVIDER=huggingface\n"
        )

    from src.services.ingestion.chunker import TextChunker
    from src.services.ingestion.ingestion_service import IngestionService

    service = IngestionService(
        chunker=TextChunker.from_settings(app_settings),
        embedding_provider=embedding_provider,
        vector_store=_build_vector_store(app_settings),
        collection_name=app_settings.chromadb_collection,
        embed_batch_size=app_settings.embed_batch_size,
        upsert_batch_size=app_settings.upsert_batch_size,
        concurrency=app_settings.ingest_concurrency,
        call_timeout=app_settings.call_timeout_seconds,
        id_format=app_settings.point_id_format,
        upsert_max_in_flight=app_settings.upsert_max_in_flight,
    )

    provider_name = embedding_provider.get_provider_name()
    return service, f"Embedding: {provider_name} | Store: chromadb"


def _build_source(app_settings: Settings):  # noqa: ANN202
    from src.providers.source.filesystem_provider import FileSystemSourceProvider

    return FileSystemSourceProvider(app_settings)


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


def _print_run(run, as_json: bool) -> int:  # noqa: ANN001
    """Print a PipelineRun summary and return the process exit code."""
    summary = run.summary()
    if as_json:
        print(json.dumps(summary, indent=2, default=str))
    else:
        print("\nIngestion complete:")
        print(f"  Documents processed: {summary['documents_processed']}")
        print(f"  Chunks produced:     {summary['chunks_produced']}")
        print(f"  Points upserted:     {summary['points_upserted']}")
        print(f"  Elapsed:             {summary['elapsed_seconds']:.2f}s")
        if run.failures:
            print(f"\n  Failures ({len(run.failures)}):")
            for failure in run.failures:
                print(f"    [{failure.stage}] {failure.document_id}: {failure.error}")
    return 1 if run.has_failures else 0


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


async def _handle_directory(args: argparse.Namespace, service, source) -> int:  # noqa: ANN001
    """Ingest every matching file under a directory."""
    print(f"Ingesting directory: {args.path}")
    try:
        run = await service.ingest_source(source, args.path, concurrency=args.concurrency)
    finally:
        await service.aclose()
    return _print_run(run, args.json)


async def _handle_file(args: argparse.Namespace, service, source) -> int:  # noqa: ANN001
    """Ingest a single file."""
    try:
        documents = [doc async for doc in source.iter_documents(args.file)]
        if not documents:
            print(
                f"Error: {args.file} was skipped (unsupported extension, too large, "
                "unreadable or blank)",
                file=sys.stderr,
            )
            return 1

        print(f"Ingesting file: {args.file}")
        run = await service.ingest_document(documents[0])
    finally:
        await service.aclose()
    return _print_run(run, args.json)


async def _handle_stats(app_settings: Settings) -> int:
    """Display collection statistics."""
    vector_store = _build_vector_store(app_settings)
    if not vector_store.is_available():
        print("Vector store not available.")
        return 1

    count = await vector_store.count()
    print("Collection Statistics")
    print("=" * 40)
    print(f"  Collection:   {app_settings.chromadb_collection}")
    print(f"  Persist dir:  {app_settings.chromadb_persist_dir}")
    print(f"  Total points: {count}")
    return 0


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the ingestion CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m src.cli.ingest",
        description="Ingest documents into the nexa vector-store collection.",
    )
    parser.add_argument(
        "--config",
        default="config/config.yaml",
        help="YAML config file (default: config/config.yaml; missing is fine)",
    )
    parser.add_argument(
        "--json", action="store_true", help="Print the run summary as JSON"
    )
    subparsers = parser.add_subparsers(dest="command", help="Ingestion commands")

    # -- directory --
    dir_parser = subparsers.add_parser("directory", help="Ingest all files in a directory")
    dir_parser.add_argument("--path", required=True, help="Directory path")
    dir_parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Documents in flight (default: INGEST_CONCURRENCY)",
    )

    # -- file --
    file_parser = subparsers.add_parser("file", help="Ingest a single file")
    file_parser.add_argument("--file", required=True, help="Path to the file")

    # -- stats --
    subparsers.add_parser("stats", help="Show collection statistics")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the ingestion tool.

    ``stats`` only needs the vector store.  The other commands build the
    full pipeline (chunker + embedding + store) and the filesystem source.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    try:
        app_settings = load_config(args.config)
        configure_logging(app_settings.log_level)
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    if args.command == "stats":
        exit_code = asyncio.run(_handle_stats(app_settings))
        sys.exit(exit_code)

    try:
        service, status_msg = _build_ingestion_service(app_settings)
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    if service is None:
        print(f"Error: {status_msg}", file=sys.stderr)
        sys.exit(1)

    print(f"Providers: {status_msg}")
    source = _build_source(app_settings)

    try:
        if args.command == "directory":
            exit_code = asyncio.run(_handle_directory(args, service, source))
        elif args.command == "file":
            exit_code = asyncio.run(_handle_file(args, service, source))
        else:
            parser.print_help()
            exit_code = 1
    except NexaIngestError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
