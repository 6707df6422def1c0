"""Integration tests for SyncEngine -- incremental indexing end to end.

Most tests drive the engine with in-memory providers and store so failure
injection is simple; the end-to-end cases use a real directory tree and the
SQLite store.
"""

from __future__ import annotations

import asyncio
import shutil
from datetime import timedelta
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from src.config.provider_settings import LocalProviderSettings
from src.models.sync import SyncOptions
from src.providers.documents.local_provider import LocalProvider
from src.providers.documents.memory_provider import InMemoryDocumentProvider
from src.providers.store.memory_sync_store import InMemorySyncStore
from src.providers.store.sqlite_sync_store import SQLiteSyncStore
from src.services.sync.provider_configuration_service import ProviderConfigurationSnapshot
from src.services.sync.sync_engine import SyncEngine
from src.utils.errors import (
    ConfigurationError,
    DocumentNotFoundError,
    EmbeddingProviderError,
    ProviderUnavailableError,
    StoreUnavailableError,
)

_LONG_TEXT = "".join(f"Sentence number {i} of a longer document. " for i in range(20))


class _FailingStore(InMemorySyncStore):
    async def initialize(self) -> None:
        raise StoreUnavailableError(message="database offline", provider_name="sqlite")


class _MisconfiguredProvider(InMemoryDocumentProvider):
    def __init__(self) -> None:
        super().__init__(name="Misconfigured")

    async def list_documents(self):
        raise ConfigurationError(message="drive id missing", provider_name=self.describe())


class _FlakyEmbedder:
    """Embedder that fails for texts containing a marker."""

    def __init__(self, inner, marker: str) -> None:
        self._inner = inner
        self._marker = marker

    async def embed(self, texts):
        if any(self._marker in t for t in texts):
            raise EmbeddingProviderError(message="rate limited", provider_name="test")
        return await self._inner.embed(texts)

    def get_provider_name(self) -> str:
        return "flaky"


# ======================================================================
# Basic indexing
# ======================================================================


class TestIndexing:
    @pytest.mark.asyncio
    async def test_end_to_end_local_directory_then_delete(self, tmp_path: Path, extraction_service, embedder) -> None:
        root = tmp_path / "docs"
        root.mkdir()
        (root / "a.txt").write_text("hello world", encoding="utf-8")
        store = SQLiteSyncStore(db_path=tmp_path / "sync.db")
        provider = LocalProvider(LocalProviderSettings(enabled=True, name="Files", root_path=str(root)))
        engine = SyncEngine(store, extraction_service, embedder, SyncOptions(chunk_size=100, chunk_overlap=20))

        report = await engine.run([provider])

        assert report.exit_code == 0
        assert report.total_indexed == 1
        doc = (await provider.list_documents())[0]
        chunks = await store.get_chunks(doc.document_id, "local", "Files")
        assert len(chunks) == 1
        assert chunks[0].chunk.chunk_num == 0
        assert chunks[0].chunk.text == "hello world"
        assert (chunks[0].chunk.char_start, chunks[0].chunk.char_end) == (0, 11)
        assert chunks[0].metadata["filename"] == "a.txt"
        assert chunks[0].metadata["relative_path"] == "a.txt"
        tracked = await store.get_tracked_documents("local", "Files")
        assert [t.doc_id for t in tracked] == [doc.document_id]
        assert tracked[0].etag == doc.etag

        rows = await store.list_providers()
        assert rows[0]["last_sync_at"] is not None

        (root / "a.txt").unlink()
        second = await engine.run([provider])

        assert second.exit_code == 0
        assert second.providers[0].removed == 1
        assert await store.count_chunks(doc_id=doc.document_id) == 0
        assert await store.get_tracked_documents("local", "Files") == []

    @pytest.mark.asyncio
    async def test_second_run_is_idempotent(self, make_engine, memory_store, memory_provider, embedder, t0) -> None:
        memory_provider.put("d1", "a.txt", _LONG_TEXT, etag="1", last_modified=t0)
        memory_provider.put("d2", "b.md", "short", etag="1", last_modified=t0)
        engine = make_engine()

        first = await engine.run([memory_provider])
        snapshot = await memory_store.get_chunks("d1", "memory", "Primary")
        downloads = memory_provider.download_count

        second = await engine.run([memory_provider])

        assert first.providers[0].indexed == 2
        assert second.providers[0].indexed == 0
        assert second.providers[0].skipped_unchanged == 2
        assert memory_provider.download_count == downloads
        assert await memory_store.get_chunks("d1", "memory", "Primary") == snapshot
        assert len(embedder.calls) == 2

    @pytest.mark.asyncio
    async def test_changed_document_is_replaced(self, make_engine, memory_store, memory_provider, t0) -> None:
        memory_provider.put("d1", "a.txt", _LONG_TEXT, etag="1", last_modified=t0)
        engine = make_engine()
        await engine.run([memory_provider])
        before = await memory_store.count_chunks(doc_id="d1")

        memory_provider.put("d1", "a.txt", "now much shorter", etag="2", last_modified=t0 + timedelta(hours=1))
        report = await engine.run([memory_provider])

        assert before > 1
        assert report.providers[0].indexed == 1
        chunks = await memory_store.get_chunks("d1", "memory", "Primary")
        assert [c.chunk.text for c in chunks] == ["now much shorter"]

    @pytest.mark.asyncio
    async def test_accepts_configuration_snapshot(self, make_engine, memory_provider) -> None:
        memory_provider.put("d1", "a.txt", "text", etag="1")
        snapshot = ProviderConfigurationSnapshot(providers=(memory_provider,))

        report = await make_engine().run(snapshot)

        assert report.total_indexed == 1


# ======================================================================
# Skips
# ======================================================================


class TestSkips:
    @pytest.mark.asyncio
    async def test_unsupported_extension_is_skipped_without_download(self, make_engine, memory_provider) -> None:
        memory_provider.put("img", "photo.png", b"\x89PNG", etag="1")

        report = await make_engine().run([memory_provider])

        assert report.providers[0].skipped_unsupported == 1
        assert report.providers[0].failed == 0
        assert memory_provider.download_count == 0

    @pytest.mark.asyncio
    async def test_empty_text_purges_old_chunks(self, make_engine, memory_store, memory_provider, t0) -> None:
        memory_provider.put("d1", "a.txt", _LONG_TEXT, etag="1", last_modified=t0)
        engine = make_engine()
        await engine.run([memory_provider])

        memory_provider.put("d1", "a.txt", "   ", etag="2", last_modified=t0)
        report = await engine.run([memory_provider])

        assert report.providers[0].skipped_empty == 1
        assert await memory_store.count_chunks(doc_id="d1") == 0
        tracked = await memory_store.get_tracked_documents("memory", "Primary")
        assert tracked[0].etag == "2"

    @pytest.mark.asyncio
    async def test_document_deleted_between_list_and_download(self, make_engine, memory_provider) -> None:
        memory_provider.put("d1", "a.txt", "text", etag="1")
        memory_provider.fail_download("d1", DocumentNotFoundError(message="gone"))

        report = await make_engine().run([memory_provider])

        assert report.providers[0].not_found == 1
        assert report.providers[0].failed == 0
        assert report.exit_code == 0


# ======================================================================
# Failure isolation
# ======================================================================


class TestFailureIsolation:
    @pytest.mark.asyncio
    async def test_download_failure_isolated(self, make_engine, memory_store, memory_provider) -> None:
        memory_provider.put("bad", "bad.txt", "x", etag="1")
        memory_provider.put("good", "good.txt", "fine", etag="1")
        memory_provider.fail_download("bad", ProviderUnavailableError(message="timeout"))

        report = await make_engine().run([memory_provider])

        provider_report = report.providers[0]
        assert report.exit_code == 0
        assert provider_report.indexed == 1
        assert [(f.doc_id, f.stage) for f in provider_report.failures] == [("bad", "download")]
        tracked = {t.doc_id for t in await memory_store.get_tracked_documents("memory", "Primary")}
        assert tracked == {"good"}

    @pytest.mark.asyncio
    async def test_failed_document_is_retried_next_run(self, make_engine, memory_store, memory_provider) -> None:
        memory_provider.put("d1", "a.txt", "content", etag="1")
        memory_store.fail_writes_for("d1")
        engine = make_engine()

        first = await engine.run([memory_provider])
        memory_store.clear_failures()
        second = await engine.run([memory_provider])

        assert first.providers[0].failures[0].stage == "store"
        assert second.providers[0].indexed == 1

    @pytest.mark.asyncio
    async def test_extraction_failure_stage(self, make_engine, memory_provider) -> None:
        memory_provider.put("d1", "broken.docx", b"not a docx", etag="1")

        report = await make_engine().run([memory_provider])

        assert report.providers[0].failures[0].stage == "extract"

    @pytest.mark.asyncio
    async def test_middle_document_extraction_failure_isolated(self, make_engine, memory_store, memory_provider) -> None:
        memory_provider.put("d1", "first.txt", "first document", etag="1")
        memory_provider.put("d2", "second.docx", b"not a docx", etag="1")
        memory_provider.put("d3", "third.txt", "third document", etag="1")

        report = await make_engine().run([memory_provider])

        provider_report = report.providers[0]
        assert report.exit_code == 0
        assert provider_report.indexed == 2
        assert [(f.doc_id, f.stage) for f in provider_report.failures] == [("d2", "extract")]
        assert await memory_store.count_chunks(doc_id="d1") == 1
        assert await memory_store.count_chunks(doc_id="d3") == 1
        tracked = {t.doc_id for t in await memory_store.get_tracked_documents("memory", "Primary")}
        assert tracked == {"d1", "d3"}

    @pytest.mark.asyncio
    async def test_embedding_failure_keeps_previous_chunks(
        self, memory_store, extraction_service, embedder, memory_provider, t0
    ) -> None:
        options = SyncOptions(chunk_size=100, chunk_overlap=20)
        memory_provider.put("d1", "a.txt", "original text", etag="1", last_modified=t0)
        await SyncEngine(memory_store, extraction_service, embedder, options).run([memory_provider])

        memory_provider.put("d1", "a.txt", "POISON update", etag="2", last_modified=t0)
        flaky = _FlakyEmbedder(embedder, "POISON")
        report = await SyncEngine(memory_store, extraction_service, flaky, options).run([memory_provider])

        assert report.providers[0].failures[0].stage == "embed"
        chunks = await memory_store.get_chunks("d1", "memory", "Primary")
        assert [c.chunk.text for c in chunks] == ["original text"]
        assert (await memory_store.get_tracked_documents("memory", "Primary"))[0].etag == "1"

    @pytest.mark.asyncio
    async def test_provider_failure_isolated(self, make_engine) -> None:
        broken = InMemoryDocumentProvider(name="Broken")
        broken.fail_listing(RuntimeError("auth expired"))
        healthy = InMemoryDocumentProvider(name="Healthy")
        healthy.put("d1", "a.txt", "hello", etag="1")

        report = await make_engine().run([broken, healthy])

        assert report.exit_code == 0
        assert [p.provider_name for p in report.failed_providers] == ["Broken"]
        assert "auth expired" in report.providers[0].error
        assert report.providers[1].indexed == 1

    @pytest.mark.asyncio
    async def test_listing_failure_does_not_remove_tracked_documents(self, make_engine, memory_store, memory_provider) -> None:
        memory_provider.put("d1", "a.txt", "hello", etag="1")
        engine = make_engine()
        await engine.run([memory_provider])

        memory_provider.fail_listing(RuntimeError("offline"))
        await engine.run([memory_provider])

        assert await memory_store.count_chunks(doc_id="d1") == 1

    @pytest.mark.asyncio
    async def test_store_unavailable_aborts_run(self, make_engine, memory_provider) -> None:
        memory_provider.put("d1", "a.txt", "hello", etag="1")

        report = await make_engine(store=_FailingStore()).run([memory_provider])

        assert report.exit_code == 1
        assert "database offline" in report.error

    @pytest.mark.asyncio
    async def test_store_lost_after_initialize_aborts_run(
        self, tmp_path: Path, extraction_service, embedder, memory_provider, monkeypatch
    ) -> None:
        data_dir = tmp_path / "data"
        store = SQLiteSyncStore(db_path=data_dir / "sync.db")
        await store.initialize()
        monkeypatch.setattr(store, "initialize", AsyncMock())
        shutil.rmtree(data_dir)
        data_dir.write_text("not a directory")
        memory_provider.put("d1", "a.txt", "hello", etag="1")
        other = InMemoryDocumentProvider(name="Other")
        other.put("d2", "b.txt", "world", etag="1")
        engine = SyncEngine(store, extraction_service, embedder, SyncOptions(chunk_size=100, chunk_overlap=20))

        report = await engine.run([memory_provider, other])

        assert report.exit_code == 1
        assert "cannot open" in report.error
        assert report.providers == []

    @pytest.mark.asyncio
    async def test_configuration_error_aborts_run(self, make_engine) -> None:
        healthy = InMemoryDocumentProvider(name="Healthy")
        healthy.put("d1", "a.txt", "hello", etag="1")

        report = await make_engine().run([_MisconfiguredProvider(), healthy])

        assert report.exit_code == 1
        assert "drive id missing" in report.error
        assert report.providers == []

    @pytest.mark.asyncio
    async def test_no_enabled_providers(self, make_engine) -> None:
        report = await make_engine().run([InMemoryDocumentProvider(enabled=False)])

        assert report.exit_code == 1
        assert report.providers == []


# ======================================================================
# Orphans, force and caps
# ======================================================================


class TestOrphansAndOptions:
    @pytest.mark.asyncio
    async def test_orphan_cleanup(self, make_engine, memory_store, memory_provider) -> None:
        memory_provider.put("keep", "keep.txt", "kept", etag="1")
        memory_provider.put("gone", "gone.txt", "removed", etag="1")
        engine = make_engine()
        await engine.run([memory_provider])

        memory_provider.remove("gone")
        report = await engine.run([memory_provider])

        assert report.providers[0].removed == 1
        assert await memory_store.count_chunks(doc_id="gone") == 0
        tracked = {t.doc_id for t in await memory_store.get_tracked_documents("memory", "Primary")}
        assert tracked == {"keep"}

    @pytest.mark.asyncio
    async def test_cleanup_disabled_keeps_orphans(self, make_engine, memory_store, memory_provider) -> None:
        memory_provider.put("gone", "gone.txt", "removed", etag="1")
        await make_engine().run([memory_provider])

        memory_provider.remove("gone")
        report = await make_engine(cleanup_orphaned_documents=False).run([memory_provider])

        assert report.providers[0].removed == 0
        assert await memory_store.count_chunks(doc_id="gone") == 1

    @pytest.mark.asyncio
    async def test_force_full_reindex(self, make_engine, memory_store, memory_provider) -> None:
        memory_provider.put("d1", "a.txt", "one", etag="1")
        memory_provider.put("d2", "b.txt", "two", etag="1")
        await make_engine().run([memory_provider])
        downloads = memory_provider.download_count

        report = await make_engine(force_full_reindex=True).run([memory_provider])

        assert report.providers[0].indexed == 2
        assert report.providers[0].skipped_unchanged == 0
        assert memory_provider.download_count == downloads + 2
        assert await memory_store.count_chunks("memory", "Primary") == 2

    @pytest.mark.asyncio
    async def test_max_files_defers_remaining(self, make_engine, memory_store, memory_provider) -> None:
        for i in range(5):
            memory_provider.put(f"d{i}", f"f{i}.txt", f"document {i}", etag="1")

        first = await make_engine(max_files=2).run([memory_provider])
        second = await make_engine(max_files=2).run([memory_provider])

        assert (first.providers[0].indexed, first.providers[0].deferred) == (2, 3)
        assert (second.providers[0].indexed, second.providers[0].deferred) == (2, 1)
        assert second.providers[0].skipped_unchanged == 2

    @pytest.mark.asyncio
    async def test_concurrency_matches_sequential_result(self, memory_provider, extraction_service, embedder) -> None:
        for i in range(6):
            memory_provider.put(f"d{i}", f"f{i}.txt", _LONG_TEXT + str(i), etag="1")
        sequential, parallel = InMemorySyncStore(), InMemorySyncStore()

        await SyncEngine(sequential, extraction_service, embedder, SyncOptions(chunk_size=100, chunk_overlap=20)).run(
            [memory_provider]
        )
        await SyncEngine(
            parallel,
            extraction_service,
            embedder,
            SyncOptions(chunk_size=100, chunk_overlap=20, document_concurrency=4),
        ).run([memory_provider])

        for i in range(6):
            assert await sequential.get_chunks(f"d{i}", "memory", "Primary") == await parallel.get_chunks(
                f"d{i}", "memory", "Primary"
            )


# ======================================================================
# Cancellation
# ======================================================================


class _SlowProvider(InMemoryDocumentProvider):
    def __init__(self) -> None:
        super().__init__(name="Slow")
        self.started = asyncio.Event()

    async def download_document(self, document_id: str):
        self.started.set()
        await asyncio.sleep(60)
        return await super().download_document(document_id)


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_propagates_and_leaves_store_consistent(self, make_engine, memory_store) -> None:
        provider = _SlowProvider()
        provider.put("d1", "a.txt", "hello", etag="1")

        task = asyncio.create_task(make_engine().run([provider]))
        await provider.started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert await memory_store.count_chunks() == 0
        assert await memory_store.get_tracked_documents("memory", "Slow") == []
