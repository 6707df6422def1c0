# =============================================================================
# src/cli/__main__.py -- Package Entry Point
# =============================================================================
#
# Enables running the CLI package itself as a module:
#     python -m src.cli run
#
# Delegates to the sync CLI (sync.py), the only command set docsync ships.
# =============================================================================

"""Allow ``python -m src.cli`` execution."""

from src.cli.sync import main

main()
