# =============================================================================
# src/cli/__init__.py -- CLI Module Overview
# =============================================================================
#
# Command-line entry points for docsync. The sync CLI (sync.py) drives the
# whole indexing workflow:
#
#   1. SEEDING   -- provider settings records are written from environment
#      variables on first start (existing records are never overwritten).
#   2. SYNC      -- every enabled provider is listed, diffed against the
#      tracking table, and changed documents are re-indexed.
#   3. SCHEDULE  -- the same pass repeated every few hours until stopped.
#   4. PROBE     -- a cheap connectivity check per provider.
#
# Architecture Notes:
#   - argparse for argument parsing (not Click/Typer).
#   - Heavy imports (OpenAI client, boto3, PyMuPDF) are deferred inside
#     functions to keep startup time fast for simple commands.
#   - The CLI builds its own stores and services rather than relying on a
#     DI container, because each invocation is a one-shot process.
# =============================================================================

"""CLI tools for docsync.

- ``python -m src.cli.sync run`` -- one sync pass over all providers
- ``python -m src.cli.sync schedule`` -- periodic sync passes
- ``python -m src.cli.sync probe`` -- provider connectivity check
- ``python -m src.cli.sync providers`` -- configured providers and sync state
- ``python -m src.cli.sync seed`` -- seed provider settings from env vars
"""
