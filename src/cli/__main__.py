# =============================================================================
# src/cli/__main__.py -- Package Entry Point
# =============================================================================
#
# Running the package itself (`python -m src.cli`) delegates to the
# ingestion CLI, the only command-line tool in this project.
# =============================================================================

"""Allow ``python -m src.cli`` execution."""

from src.cli.ingest import main

main()
