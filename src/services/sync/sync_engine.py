"""Incremental sync engine: keeps the chunk store in step with every provider.

One call to :meth:`SyncEngine.run` makes a single pass over the enabled
providers of a configuration snapshot:

    for each enabled provider (snapshot order, sequentially):
        register provider -> list documents -> load tracked records
        -> [force: wipe provider data] -> plan (ChangeDetector)
        -> cap by max_files -> index changed documents (bounded concurrency)
        -> remove orphans -> stamp provider sync time

    per document:
        download -> extract -> chunk -> embed (one logical batch)
        -> upsert chunks (atomic replace) -> upsert tracking record

Failure isolation:

* Document-level errors (download, extraction, embedding, a single failed
  store write) are logged with the document id, provider and stage, recorded
  in the report, and the pass moves on.  The document keeps its previous
  tracking record, so the next run retries it.
* ``DocumentNotFoundError`` (deleted between list and download), unsupported
  extensions and empty extracted text are skips, not failures.
* Provider-level errors (listing, registry writes) are recorded against the
  provider; other providers still run.
* ``StoreUnavailableError`` and ``ConfigurationError`` end the pass with
  exit code 1.  ``asyncio.CancelledError`` is never swallowed: cancelling the
  task running the pass cancels in-flight documents, and because each
  document's chunk replace is a single transaction the store stays valid.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import structlog

from src.interfaces.document_provider import IDocumentProvider
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.sync_store_provider import ISyncStoreProvider
from src.models.documents import ProviderDocument
from src.models.sync import (
    ChunkRecord,
    DocumentFailure,
    FileTrackingRecord,
    ProviderSyncReport,
    SyncOptions,
    SyncRunReport,
)
from src.services.sync.change_detector import ChangeDetector
from src.services.sync.chunker import TextChunker
from src.services.sync.text_extraction_service import TextExtractionService
from src.utils.concurrency import throttled_gather
from src.utils.errors import (
    ConfigurationError,
    DocSyncError,
    DocumentNotFoundError,
    EmbeddingProviderError,
    StoreUnavailableError,
    SyncError,
    UnsupportedFormatError,
)

if TYPE_CHECKING:
    from src.services.sync.provider_configuration_service import ProviderConfigurationSnapshot

logger = structlog.get_logger(logger_name=__name__)

# Errors that mean the pass cannot make progress at all.
_FATAL_ERRORS = (StoreUnavailableError, ConfigurationError, SyncError)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CANCELLED = 130


# Per-document outcome statuses.
_INDEXED = "indexed"
_EMPTY = "empty"
_UNSUPPORTED = "unsupported"
_NOT_FOUND = "not_found"
_FAILED = "failed"


@dataclass(frozen=True)
class _DocumentOutcome:
    status: str
    chunks: int = 0
    failure: DocumentFailure | None = None


class _StageError(Exception):
    """Carries the stage name alongside the original document-level error."""

    def __init__(self, stage: str, error: Exception) -> None:
        super().__init__(str(error))
        self.stage = stage
        self.error = error


class SyncEngine:
    """Orchestrates one incremental indexing pass.

    Parameters
    ----------
    store:
        Chunk / tracking store shared by every provider.
    extraction_service:
        Extension-based dispatch to text extractors.
    embedder:
        Embedding backend; called once per document with all chunk texts.
    options:
        Chunking and run options.  Chunk size / overlap are validated here,
        so an invalid pair fails at construction.
    """

    def __init__(
        self,
        store: ISyncStoreProvider,
        extraction_service: TextExtractionService,
        embedder: IEmbeddingProvider,
        options: SyncOptions | None = None,
        change_detector: ChangeDetector | None = None,
    ) -> None:
        self._store = store
        self._extraction = extraction_service
        self._embedder = embedder
        self._options = options or SyncOptions()
        self._chunker = TextChunker(self._options.chunk_size, self._options.chunk_overlap)
        self._detector = change_detector or ChangeDetector()

    @property
    def options(self) -> SyncOptions:
        return self._options

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run(
        self, snapshot: ProviderConfigurationSnapshot | Iterable[IDocumentProvider]
    ) -> SyncRunReport:
        """Run one pass over the enabled providers of *snapshot*.

        Parameters
        ----------
        snapshot:
            A configuration snapshot, or any iterable of providers.  The
            provider list is fixed for the whole pass.

        Returns
        -------
        SyncRunReport
            Per-provider counts and failures.  ``exit_code`` is 0 when the
            pass completed (even with isolated failures) and 1 when it could
            not.

        Raises
        ------
        asyncio.CancelledError
            If the task running the pass is cancelled.
        """
        providers = list(getattr(snapshot, "providers", snapshot))
        run_id = uuid.uuid4().hex[:12]
        started_at = datetime.now(timezone.utc)
        reports: list[ProviderSyncReport] = []

        with structlog.contextvars.bound_contextvars(run_id=run_id):
            enabled = [p for p in providers if p.is_enabled()]
            logger.info(
                "sync_run_started",
                providers=len(providers),
                enabled=len(enabled),
                force_full_reindex=self._options.force_full_reindex,
                max_files=self._options.max_files,
            )

            if not enabled:
                logger.error("sync_run_no_enabled_providers")
                return self._finish(run_id, started_at, reports, EXIT_FAILED, "No enabled providers configured")

            try:
                await self._store.initialize()
                for provider in enabled:
                    reports.append(await self._sync_provider(provider))
            except _FATAL_ERRORS as exc:
                logger.error("sync_run_aborted", error=str(exc), error_type=type(exc).__name__)
                return self._finish(run_id, started_at, reports, EXIT_FAILED, str(exc))
            except asyncio.CancelledError:
                logger.warning("sync_run_cancelled", providers_completed=len(reports))
                raise

            return self._finish(run_id, started_at, reports, EXIT_OK, None)

    # ------------------------------------------------------------------
    # Provider level
    # ------------------------------------------------------------------

    async def _sync_provider(self, provider: IDocumentProvider) -> ProviderSyncReport:
        provider_type = provider.get_provider_type()
        provider_name = provider.get_provider_name()
        start = time.monotonic()
        counts: Counter[str] = Counter()
        failures: list[DocumentFailure] = []

        with structlog.contextvars.bound_contextvars(provider_type=provider_type, provider_name=provider_name):
            logger.info("provider_sync_started")
            try:
                await self._store.register_provider(await provider.get_metadata())
                remote = await provider.list_documents()
                counts["listed"] = len(remote)

                if self._options.force_full_reindex:
                    removed_chunks = await self._store.delete_provider_data(provider_type, provider_name)
                    logger.info("provider_data_wiped_for_reindex", chunks=removed_chunks)
                    tracked: list[FileTrackingRecord] = []
                else:
                    tracked = await self._store.get_tracked_documents(provider_type, provider_name)

                plan = self._detector.plan(remote, tracked, force=self._options.force_full_reindex)
                counts["skipped_unchanged"] = len(plan.unchanged)

                to_index = plan.to_index
                max_files = self._options.max_files
                if max_files is not None and len(to_index) > max_files:
                    counts["deferred"] = len(to_index) - max_files
                    to_index = to_index[:max_files]
                    logger.info("provider_max_files_reached", max_files=max_files, deferred=counts["deferred"])

                logger.info(
                    "provider_sync_planned",
                    listed=len(remote),
                    to_index=len(to_index),
                    unchanged=len(plan.unchanged),
                    orphans=len(plan.to_remove),
                )

                outcomes = await throttled_gather(
                    [self._index_document(provider, document) for document in to_index],
                    limit=self._options.document_concurrency,
                    return_exceptions=True,
                )
                for outcome in outcomes:
                    if isinstance(outcome, BaseException):
                        raise outcome
                    counts[outcome.status] += 1
                    counts["chunks_written"] += outcome.chunks
                    if outcome.failure is not None:
                        failures.append(outcome.failure)

                if self._options.cleanup_orphaned_documents:
                    for record in plan.to_remove:
                        failure = await self._remove_orphan(record)
                        if failure is None:
                            counts["removed"] += 1
                        else:
                            failures.append(failure)
                elif plan.to_remove:
                    logger.info("orphan_cleanup_disabled", orphans=len(plan.to_remove))

                await self._store.update_provider_sync_time(
                    provider_type, provider_name, datetime.now(timezone.utc)
                )
            except _FATAL_ERRORS:
                raise
            except Exception as exc:
                logger.error("provider_sync_failed", error=str(exc), error_type=type(exc).__name__)
                return self._provider_report(provider, counts, failures, start, error=str(exc))

            report = self._provider_report(provider, counts, failures, start)
            logger.info(
                "provider_sync_complete",
                listed=report.listed,
                indexed=report.indexed,
                skipped_unchanged=report.skipped_unchanged,
                removed=report.removed,
                failed=report.failed,
                elapsed_s=report.elapsed_seconds,
            )
            return report

    async def _remove_orphan(self, record: FileTrackingRecord) -> DocumentFailure | None:
        try:
            chunks = await self._store.delete_chunks(record.doc_id, record.provider_type, record.provider_name)
            await self._store.delete_tracking(record.doc_id, record.provider_type, record.provider_name)
        except _FATAL_ERRORS:
            raise
        except DocSyncError as exc:
            logger.error("orphan_cleanup_failed", doc_id=record.doc_id, filename=record.filename, error=str(exc))
            return DocumentFailure(
                doc_id=record.doc_id,
                filename=record.filename,
                provider_type=record.provider_type,
                provider_name=record.provider_name,
                stage="cleanup",
                reason=str(exc),
            )
        logger.info("orphan_removed", doc_id=record.doc_id, filename=record.filename, chunks=chunks)
        return None

    # ------------------------------------------------------------------
    # Document level
    # ------------------------------------------------------------------

    async def _index_document(self, provider: IDocumentProvider, document: ProviderDocument) -> _DocumentOutcome:
        log = logger.bind(doc_id=document.document_id, filename=document.filename)

        if not self._extraction.is_supported(document.filename):
            log.info("document_skipped_unsupported", extension=document.extension or None)
            return _DocumentOutcome(_UNSUPPORTED)

        try:
            chunk_count = await self._process_document(provider, document)
        except _FATAL_ERRORS:
            raise
        except _StageError as exc:
            if isinstance(exc.error, DocumentNotFoundError):
                log.info("document_skipped_not_found", reason=str(exc.error))
                return _DocumentOutcome(_NOT_FOUND)
            if isinstance(exc.error, UnsupportedFormatError):
                log.info("document_skipped_unsupported", reason=str(exc.error))
                return _DocumentOutcome(_UNSUPPORTED)
            log.error(
                "document_index_failed",
                stage=exc.stage,
                error=str(exc.error),
                error_type=type(exc.error).__name__,
            )
            return _DocumentOutcome(_FAILED, failure=self._failure(document, exc.stage, exc.error))

        if chunk_count == 0:
            log.info("document_indexed_empty")
            return _DocumentOutcome(_EMPTY)
        log.info("document_indexed", chunks=chunk_count)
        return _DocumentOutcome(_INDEXED, chunks=chunk_count)

    async def _process_document(self, provider: IDocumentProvider, document: ProviderDocument) -> int:
        """Run the strictly sequential per-document pipeline.

        Returns the number of chunks written.  Document-level errors are
        re-raised as :class:`_StageError` naming the stage that failed.
        """
        stage = "download"
        try:
            stream = await provider.download_document(document.document_id)
            stage = "extract"
            with stream:
                text = await self._extraction.extract(stream, document.filename)

            stage = "chunk"
            chunks = self._chunker.chunk_list(text)

            stage = "embed"
            vectors = await self._embedder.embed([c.text for c in chunks]) if chunks else []
            if len(vectors) != len(chunks):
                raise EmbeddingProviderError(
                    message=f"Embedder returned {len(vectors)} vectors for {len(chunks)} chunks",
                    provider_name=self._embedder.get_provider_name(),
                )

            stage = "store"
            records = [
                ChunkRecord(
                    doc_id=document.document_id,
                    filename=document.filename,
                    provider_type=document.provider_type,
                    provider_name=document.provider_name,
                    chunk=chunk,
                    embedding=vector,
                    metadata=_chunk_metadata(document, chunk.chunk_num, chunk.char_start, chunk.char_end),
                )
                for chunk, vector in zip(chunks, vectors)
            ]
            await self._store.upsert_chunks(
                document.document_id, document.provider_type, document.provider_name, records
            )
            await self._store.upsert_tracking(FileTrackingRecord.from_document(document))
        except _FATAL_ERRORS:
            raise
        except Exception as exc:
            raise _StageError(stage, exc) from exc

        return len(chunks)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    @staticmethod
    def _failure(document: ProviderDocument, stage: str, error: Exception) -> DocumentFailure:
        return DocumentFailure(
            doc_id=document.document_id,
            filename=document.filename,
            provider_type=document.provider_type,
            provider_name=document.provider_name,
            stage=stage,
            reason=str(error) or type(error).__name__,
        )

    @staticmethod
    def _provider_report(
        provider: IDocumentProvider,
        counts: Counter[str],
        failures: list[DocumentFailure],
        start: float,
        error: str | None = None,
    ) -> ProviderSyncReport:
        return ProviderSyncReport(
            provider_type=provider.get_provider_type(),
            provider_name=provider.get_provider_name(),
            listed=counts["listed"],
            indexed=counts[_INDEXED],
            skipped_unchanged=counts["skipped_unchanged"],
            skipped_unsupported=counts[_UNSUPPORTED],
            skipped_empty=counts[_EMPTY],
            not_found=counts[_NOT_FOUND],
            deferred=counts["deferred"],
            removed=counts["removed"],
            chunks_written=counts["chunks_written"],
            failures=failures,
            error=error,
            elapsed_seconds=round(time.monotonic() - start, 3),
        )

    @staticmethod
    def _finish(
        run_id: str,
        started_at: datetime,
        reports: list[ProviderSyncReport],
        exit_code: int,
        error: str | None,
    ) -> SyncRunReport:
        report = SyncRunReport(
            run_id=run_id,
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
            providers=reports,
            exit_code=exit_code,
            error=error,
        )
        logger.info(
            "sync_run_complete",
            exit_code=exit_code,
            indexed=report.total_indexed,
            unchanged=report.total_skipped_unchanged,
            removed=report.total_removed,
            failed_documents=len(report.failures),
            failed_providers=len(report.failed_providers),
        )
        return report


def _chunk_metadata(document: ProviderDocument, chunk_num: int, char_start: int, char_end: int) -> dict[str, Any]:
    # Only values derived from the document itself, so re-indexing unchanged
    # content reproduces identical records.
    return {
        "doc_id": document.document_id,
        "filename": document.filename,
        "provider_type": document.provider_type,
        "provider_name": document.provider_name,
        "chunk_num": chunk_num,
        "char_start": char_start,
        "char_end": char_end,
        "etag": document.etag,
        "last_modified": document.last_modified.isoformat() if document.last_modified else None,
        "relative_path": document.relative_path,
    }
