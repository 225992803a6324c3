# =============================================================================
# src/cli/__init__.py -- CLI Module Overview
# =============================================================================
#
# Command-line entry points for operators running ingestion outside of a
# scheduler.  Each submodule is runnable via `python -m src.cli.<module>`.
#
# Architecture Notes:
#   - argparse for argument parsing (not Click/Typer).
#   - Provider imports are deferred inside builder functions so `stats`
#     starts without loading the embedding SDKs.
#   - The CLI wires its own dependencies from Settings; there is no
#     central DI container for a one-shot script.
# =============================================================================

"""CLI tools for the nexa ingestion pipeline.

- ``python -m src.cli.ingest`` -- ingest directories or single files into
  the vector store, or print collection statistics.
"""
