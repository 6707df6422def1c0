# =============================================================================
# src/cli/sync.py -- CLI Sync Command (Incremental Document Indexing)
# =============================================================================
#
# Standalone CLI for running the docsync indexer. Every configured document
# provider (local directory, S3 bucket, OneDrive folder) is listed, diffed
# against the tracking table, and changed documents are downloaded,
# extracted, chunked, embedded and stored. Documents that disappeared from a
# provider are removed from the store.
#
# Supported subcommands:
#
#   run       -- One sync pass over all enabled providers, then exit
#   schedule  -- Run a pass now and then every SYNC_INTERVAL_HOURS (default 6)
#   probe     -- Connectivity check: list and read a few bytes per provider
#   providers -- Show configured providers and their last sync time
#   seed      -- Write provider settings from LOCAL_PROVIDER_* / S3_* /
#               ONEDRIVE_* environment variables (existing records win)
#
# Exit codes:
#   0   -- the pass completed (individual document failures are reported,
#         not fatal)
#   1   -- the pass could not complete (store unreachable, invalid
#         configuration, no enabled providers)
#   130 -- cancelled (Ctrl+C / SIGINT)
#
# Provider Selection:
#   - Embedding: OpenAI text-embedding-3-small when OPENAI_API_KEY is set;
#     EMBEDDING_OFFLINE=true uses deterministic offline vectors instead.
#   - Store: SQLite at DATABASE_PATH (default data/docsync.db).
#
# Usage examples:
#   python -m src.cli.sync run
#   python -m src.cli.sync run --force-full-reindex --concurrency 4
#   python -m src.cli.sync run --max-files 50 --no-cleanup
#   python -m src.cli.sync schedule --interval-hours 1
#   python -m src.cli.sync probe --type s3 --name Archive
#   python -m src.cli.sync providers
# =============================================================================

"""Standalone CLI for running docsync passes.

Usage::

    python -m src.cli.sync run
    python -m src.cli.sync schedule
    python -m src.cli.sync probe
    python -m src.cli.sync providers
    python -m src.cli.sync seed
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import signal
import sys
from typing import TYPE_CHECKING

from pydantic import ValidationError

from src.config.loader import load_config, settings_from_config
from src.config.settings import Settings
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.models.documents import ProviderProbeRequest
from src.models.sync import SyncRunReport
from src.utils.errors import ConfigurationError, DocSyncError
from src.utils.logging import configure_logging

if TYPE_CHECKING:
    from src.services.sync.sync_engine import SyncEngine

EXIT_CANCELLED = 130


def _build_embedding_provider(app_settings: Settings) -> IEmbeddingProvider | None:
    """Select the embedding provider.

    Priority: offline hash vectors (if EMBEDDING_OFFLINE) -> OpenAI (if a
    key is configured).  Returns ``None`` when neither is available.
    """
    if app_settings.embedding_offline:
        from src.providers.embedding.hash_embedding_provider import HashEmbeddingProvider

        return HashEmbeddingProvider(dimension=app_settings.offline_embedding_dimension)

    if app_settings.openai_api_key:
        from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        provider = OpenAIEmbeddingProvider(settings=app_settings)
        if provider.is_available():
            return provider

    return None


class _Components:
    """Stores and services shared by every subcommand."""

    def __init__(self, app_settings: Settings) -> None:
        from src.providers.store.sqlite_provider_settings_store import SQLiteProviderSettingsStore
        from src.providers.store.sqlite_sync_store import SQLiteSyncStore
        from src.services.sync.provider_configuration_service import ProviderConfigurationService
        from src.services.sync.provider_settings_seeder import ProviderSettingsSeeder

        self.settings = app_settings
        self.sync_store = SQLiteSyncStore(app_settings.database_path)
        self.settings_store = SQLiteProviderSettingsStore(app_settings.database_path)
        self.configuration = ProviderConfigurationService(self.settings_store)
        self.seeder = ProviderSettingsSeeder(self.settings_store)

    async def initialize(self) -> None:
        await self.settings_store.initialize()
        await self.sync_store.initialize()
        if self.settings.seed_providers_from_env:
            await self.seeder.seed_from_environment()


def _build_engine(components: _Components, args: argparse.Namespace) -> tuple[SyncEngine | None, str]:
    """Construct the SyncEngine, applying CLI overrides to the settings."""
    from src.providers.extraction import default_extractors
    from src.services.sync.sync_engine import SyncEngine
    from src.services.sync.text_extraction_service import TextExtractionService

    embedder = _build_embedding_provider(components.settings)
    if embedder is None:
        return None, (
            "No embedding provider available.\n"
            "Set one of:\n"
            "  OPENAI_API_KEY         -- for OpenAI text-embedding-3-small\n"
            "  EMBEDDING_OFFLINE=true -- for deterministic offline vectors\n"
        )

    try:
        options = components.settings.to_sync_options(
            force_full_reindex=True if getattr(args, "force_full_reindex", False) else None,
            max_files=getattr(args, "max_files", None),
            cleanup_orphaned_documents=False if getattr(args, "no_cleanup", False) else None,
            document_concurrency=getattr(args, "concurrency", None),
        )
    except ValidationError as exc:
        raise ConfigurationError(message=f"Invalid sync options: {exc}") from exc
    engine = SyncEngine(
        store=components.sync_store,
        extraction_service=TextExtractionService(default_extractors()),
        embedder=embedder,
        options=options,
    )
    return engine, f"Embedding: {embedder.get_provider_name()} | Store: {components.settings.database_path}"


def _print_report(report: SyncRunReport) -> None:
    print(f"\nSync run {report.run_id} finished (exit code {report.exit_code})")
    if report.error:
        print(f"  Error: {report.error}")
    for p in report.providers:
        status = "FAILED" if p.error else "ok"
        print(f"\n  {p.provider_type}:{p.provider_name} [{status}]")
        print(f"    Listed:            {p.listed}")
        print(f"    Indexed:           {p.indexed} ({p.chunks_written} chunks)")
        print(f"    Skipped unchanged: {p.skipped_unchanged}")
        print(f"    Skipped other:     {p.skipped_unsupported + p.skipped_empty + p.not_found}")
        print(f"    Deferred:          {p.deferred}")
        print(f"    Removed:           {p.removed}")
        print(f"    Failed:            {p.failed}")
        print(f"    Time:              {p.elapsed_seconds:.2f}s")
        if p.error:
            print(f"    Provider error:    {p.error}")
        for failure in p.failures:
            print(f"    ! {failure.filename} ({failure.doc_id}) [{failure.stage}]: {failure.reason}")


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


async def _handle_run(args: argparse.Namespace, components: _Components) -> int:
    """Run one sync pass."""
    engine, status_msg = _build_engine(components, args)
    if engine is None:
        print(f"Error: {status_msg}", file=sys.stderr)
        return 1
    print(f"Providers: {status_msg}")

    await components.initialize()
    snapshot = await components.configuration.reload()
    try:
        report = await engine.run(snapshot)
    finally:
        await components.configuration.aclose()
    _print_report(report)
    return report.exit_code


async def _handle_schedule(args: argparse.Namespace, components: _Components) -> int:
    """Run sync passes periodically until interrupted."""
    from src.services.sync.scheduler import ScheduledSyncService

    engine, status_msg = _build_engine(components, args)
    if engine is None:
        print(f"Error: {status_msg}", file=sys.stderr)
        return 1
    print(f"Providers: {status_msg}")

    await components.initialize()

    async def _run_once() -> SyncRunReport:
        # Reload so settings edited between passes take effect.
        snapshot = await components.configuration.reload()
        report = await engine.run(snapshot)
        _print_report(report)
        return report

    interval = args.interval_hours or components.settings.sync_interval_hours
    scheduler = ScheduledSyncService(_run_once, interval_hours=interval)

    loop = asyncio.get_running_loop()
    with contextlib.suppress(NotImplementedError):
        loop.add_signal_handler(signal.SIGTERM, scheduler.stop)

    try:
        await scheduler.run_forever()
    finally:
        await components.configuration.aclose()
    return 0


async def _handle_probe(args: argparse.Namespace, components: _Components) -> int:
    """Probe one or all enabled providers."""
    await components.initialize()
    snapshot = await components.configuration.reload()

    providers = list(snapshot.providers)
    if args.type or args.name:
        providers = [
            p
            for p in providers
            if (not args.type or p.get_provider_type().lower() == args.type.lower())
            and (not args.name or p.get_provider_name().lower() == args.name.lower())
        ]
    if not providers:
        print("No matching enabled providers.")
        return 1

    request = ProviderProbeRequest(max_documents=args.max_documents, max_preview_bytes=args.preview_bytes)
    all_ok = True
    try:
        for provider in providers:
            result = await provider.probe(request)
            all_ok = all_ok and result.success
            print(f"{provider.describe()}: {'OK' if result.success else 'FAILED'} -- {result.message}")
            for doc in result.documents:
                print(f"    {doc.filename} ({doc.size_bytes or '?'} bytes, read {doc.bytes_read})")
    finally:
        await components.configuration.aclose()
    return 0 if all_ok else 1


async def _handle_providers(components: _Components) -> int:
    """List configured providers with their registry state."""
    await components.settings_store.initialize()
    await components.sync_store.initialize()
    snapshot = await components.configuration.reload()
    registry = {
        (str(row["provider_type"]), str(row["provider_name"])): row
        for row in await components.sync_store.list_providers()
    }

    if not snapshot.settings:
        print("No providers configured.")
        return 0

    print("Configured Providers")
    print("=" * 60)
    for settings in snapshot.settings:
        row = registry.get((settings.provider_type, settings.name), {})
        last_sync = row.get("last_sync_at") or "never"
        chunks = await components.sync_store.count_chunks(settings.provider_type, settings.name)
        state = "enabled" if settings.enabled else "disabled"
        print(f"  {settings.provider_type:<10} {settings.name:<20} {state:<9} chunks={chunks:<6} last sync: {last_sync}")
    await components.configuration.aclose()
    return 0


async def _handle_seed(components: _Components) -> int:
    """Seed provider settings from environment variables."""
    await components.settings_store.initialize()
    seeded = await components.seeder.seed_from_environment()
    if not seeded:
        print("Nothing seeded (no *_ENABLED variables set, or records already exist).")
    for key in seeded:
        print(f"  Seeded {key}")
    return 0


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}") from None
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def _positive_float(value: str) -> float:
    try:
        number = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number: {value!r}") from None
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be greater than 0, got {number}")
    return number


def _add_sync_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--force-full-reindex",
        action="store_true",
        dest="force_full_reindex",
        help="Wipe each provider's chunks and re-index every document",
    )
    parser.add_argument(
        "--max-files", type=_positive_int, dest="max_files", help="Index at most N changed documents per provider"
    )
    parser.add_argument(
        "--no-cleanup",
        action="store_true",
        dest="no_cleanup",
        help="Keep chunks of documents that disappeared from their provider",
    )
    parser.add_argument("--concurrency", type=_positive_int, help="Documents processed in parallel per provider")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the sync CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m src.cli.sync",
        description="Incrementally index documents from configured providers.",
    )
    parser.add_argument("--config", default="config/config.yaml", help="YAML config file")
    subparsers = parser.add_subparsers(dest="command", help="Sync commands")

    # -- run --
    run_parser = subparsers.add_parser("run", help="Run one sync pass and exit")
    _add_sync_options(run_parser)

    # -- schedule --
    schedule_parser = subparsers.add_parser("schedule", help="Run sync passes periodically")
    _add_sync_options(schedule_parser)
    schedule_parser.add_argument(
        "--interval-hours", type=_positive_float, dest="interval_hours", help="Hours between passes (default: 6)"
    )

    # -- probe --
    probe_parser = subparsers.add_parser("probe", help="Check provider connectivity")
    probe_parser.add_argument("--type", help="Provider type (local, s3, onedrive)")
    probe_parser.add_argument("--name", help="Provider name")
    probe_parser.add_argument("--max-documents", type=_positive_int, default=3, dest="max_documents")
    probe_parser.add_argument("--preview-bytes", type=int, default=256, dest="preview_bytes")

    # -- providers --
    subparsers.add_parser("providers", help="List configured providers")

    # -- seed --
    subparsers.add_parser("seed", help="Seed provider settings from environment variables")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


async def _dispatch(args: argparse.Namespace, app_settings: Settings) -> int:
    components = _Components(app_settings)
    if args.command == "run":
        return await _handle_run(args, components)
    if args.command == "schedule":
        return await _handle_schedule(args, components)
    if args.command == "probe":
        return await _handle_probe(args, components)
    if args.command == "providers":
        return await _handle_providers(components)
    return await _handle_seed(components)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the sync tool.

    Loads the YAML config merged with environment variables, configures
    logging, and dispatches to the subcommand handler.  Exits with the
    handler's code, 1 on a fatal docsync error, or 130 when interrupted.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    app_settings = settings_from_config(load_config(args.config))
    configure_logging(app_settings.log_level, json_output=app_settings.app_env == "production")

    try:
        exit_code = asyncio.run(_dispatch(args, app_settings))
    except (KeyboardInterrupt, asyncio.CancelledError):
        print("\nInterrupted.", file=sys.stderr)
        exit_code = EXIT_CANCELLED
    except DocSyncError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
