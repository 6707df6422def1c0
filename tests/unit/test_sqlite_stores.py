"""Unit tests for SQLiteSyncStore, SQLiteProviderSettingsStore and InMemorySyncStore.

Uses a temp file per test to avoid polluting the real data directory.
"""

from __future__ import annotations

import shutil
from datetime import datetime, timezone
from pathlib import Path

import pytest

from src.models.documents import ProviderMetadata
from src.models.sync import Chunk, ChunkRecord, FileTrackingRecord
from src.providers.store.memory_sync_store import InMemorySyncStore
from src.providers.store.sqlite_provider_settings_store import SQLiteProviderSettingsStore
from src.providers.store.sqlite_sync_store import SQLiteSyncStore
from src.utils.errors import StoreError, StoreUnavailableError


@pytest.fixture
async def store(tmp_path: Path):
    s = SQLiteSyncStore(db_path=tmp_path / "sync.db")
    await s.initialize()
    yield s


@pytest.fixture(params=["sqlite", "memory"])
async def any_store(request, tmp_path: Path):
    if request.param == "sqlite":
        s = SQLiteSyncStore(db_path=tmp_path / "sync.db")
    else:
        s = InMemorySyncStore()
    await s.initialize()
    yield s


def _records(doc_id: str, count: int, provider: tuple[str, str] = ("local", "Files"), tag: str = "") -> list[ChunkRecord]:
    records = []
    for n in range(count):
        text = f"{tag}chunk-{n}"
        records.append(
            ChunkRecord(
                doc_id=doc_id,
                filename=f"{doc_id}.txt",
                provider_type=provider[0],
                provider_name=provider[1],
                chunk=Chunk(chunk_num=n, char_start=n * 10, char_end=n * 10 + len(text), text=text),
                embedding=[float(n), 0.5],
                metadata={"chunk_num": n},
            )
        )
    return records


def _tracking(doc_id: str, etag: str = "e1") -> FileTrackingRecord:
    return FileTrackingRecord(
        doc_id=doc_id,
        provider_type="local",
        provider_name="Files",
        filename=f"{doc_id}.txt",
        etag=etag,
        last_modified=datetime(2025, 1, 1, 8, 30, tzinfo=timezone.utc),
    )


# ─── Chunks ───────────────────────────────────────────────────────


class TestChunkReplace:
    @pytest.mark.asyncio
    async def test_replace_five_with_three_leaves_three(self, any_store) -> None:
        await any_store.upsert_chunks("d1", "local", "Files", _records("d1", 5))
        await any_store.upsert_chunks("d1", "local", "Files", _records("d1", 3, tag="v2-"))

        chunks = await any_store.get_chunks("d1", "local", "Files")
        assert [c.chunk.chunk_num for c in chunks] == [0, 1, 2]
        assert all(c.chunk.text.startswith("v2-") for c in chunks)
        assert await any_store.count_chunks(doc_id="d1") == 3

    @pytest.mark.asyncio
    async def test_empty_replace_purges(self, any_store) -> None:
        await any_store.upsert_chunks("d1", "local", "Files", _records("d1", 4))
        await any_store.upsert_chunks("d1", "local", "Files", [])

        assert await any_store.count_chunks(doc_id="d1") == 0

    @pytest.mark.asyncio
    async def test_same_doc_id_in_two_providers_is_independent(self, any_store) -> None:
        await any_store.upsert_chunks("d1", "local", "Files", _records("d1", 2))
        await any_store.upsert_chunks("d1", "s3", "Archive", _records("d1", 4, provider=("s3", "Archive")))

        assert await any_store.count_chunks("local", "Files") == 2
        assert await any_store.count_chunks("s3", "Archive") == 4
        assert await any_store.count_chunks() == 6

    @pytest.mark.asyncio
    async def test_round_trip_preserves_embedding_and_metadata(self, any_store) -> None:
        await any_store.upsert_chunks("d1", "local", "Files", _records("d1", 2))

        chunks = await any_store.get_chunks("d1", "local", "Files")
        assert chunks[1].embedding == [1.0, 0.5]
        assert chunks[1].metadata == {"chunk_num": 1}

    @pytest.mark.asyncio
    async def test_delete_chunks(self, any_store) -> None:
        await any_store.upsert_chunks("d1", "local", "Files", _records("d1", 3))

        assert await any_store.delete_chunks("d1", "local", "Files") == 3
        assert await any_store.count_chunks() == 0

    @pytest.mark.asyncio
    async def test_foreign_record_rejected(self, store) -> None:
        with pytest.raises(StoreError):
            await store.upsert_chunks("d1", "local", "Files", _records("other", 1))


# ─── Tracking ─────────────────────────────────────────────────────


class TestTracking:
    @pytest.mark.asyncio
    async def test_upsert_replaces(self, any_store) -> None:
        await any_store.upsert_tracking(_tracking("d1", etag="e1"))
        await any_store.upsert_tracking(_tracking("d1", etag="e2"))

        tracked = await any_store.get_tracked_documents("local", "Files")
        assert len(tracked) == 1
        assert tracked[0].etag == "e2"
        assert tracked[0].last_modified == datetime(2025, 1, 1, 8, 30, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_delete_tracking(self, any_store) -> None:
        await any_store.upsert_tracking(_tracking("d1"))

        assert await any_store.delete_tracking("d1", "local", "Files") is True
        assert await any_store.delete_tracking("d1", "local", "Files") is False

    @pytest.mark.asyncio
    async def test_delete_provider_data(self, any_store) -> None:
        await any_store.upsert_chunks("d1", "local", "Files", _records("d1", 2))
        await any_store.upsert_chunks("d2", "local", "Files", _records("d2", 1))
        await any_store.upsert_chunks("d1", "s3", "Archive", _records("d1", 1, provider=("s3", "Archive")))
        await any_store.upsert_tracking(_tracking("d1"))

        assert await any_store.delete_provider_data("local", "Files") == 3
        assert await any_store.get_tracked_documents("local", "Files") == []
        assert await any_store.count_chunks("s3", "Archive") == 1


# ─── Provider registry ────────────────────────────────────────────


class TestRegistry:
    @pytest.mark.asyncio
    async def test_register_and_stamp_sync_time(self, any_store) -> None:
        registered = datetime(2025, 1, 1, tzinfo=timezone.utc)
        synced = datetime(2025, 1, 2, 6, tzinfo=timezone.utc)
        meta = ProviderMetadata(
            provider_type="local",
            provider_name="Files",
            registered_at=registered,
            additional_info={"RootPath": "/data"},
        )
        await any_store.register_provider(meta)
        await any_store.register_provider(meta)
        await any_store.update_provider_sync_time("local", "Files", synced)

        rows = await any_store.list_providers()
        assert len(rows) == 1
        assert rows[0]["last_sync_at"] == synced
        assert rows[0]["registered_at"] == registered
        assert rows[0]["metadata"] == {"RootPath": "/data"}


# ─── Failures ─────────────────────────────────────────────────────


class TestFailures:
    @pytest.mark.asyncio
    async def test_initialize_unreachable_path(self, tmp_path: Path) -> None:
        blocker = tmp_path / "file"
        blocker.write_text("x")
        store = SQLiteSyncStore(db_path=blocker / "nested" / "sync.db")

        with pytest.raises(StoreUnavailableError):
            await store.initialize()

    @pytest.mark.asyncio
    async def test_query_before_initialize_is_store_error(self, tmp_path: Path) -> None:
        store = SQLiteSyncStore(db_path=tmp_path / "empty.db")

        with pytest.raises(StoreError) as exc_info:
            await store.get_tracked_documents("local", "Files")
        assert not isinstance(exc_info.value, StoreUnavailableError)

    @pytest.mark.asyncio
    async def test_database_gone_after_initialize_is_unavailable(self, tmp_path: Path) -> None:
        data_dir = tmp_path / "data"
        store = SQLiteSyncStore(db_path=data_dir / "sync.db")
        await store.initialize()

        shutil.rmtree(data_dir)
        data_dir.write_text("not a directory")

        with pytest.raises(StoreUnavailableError, match="cannot open"):
            await store.get_tracked_documents("local", "Files")
        with pytest.raises(StoreUnavailableError):
            await store.register_provider(
                ProviderMetadata(
                    provider_type="local",
                    provider_name="Files",
                    is_enabled=True,
                    registered_at=datetime.now(timezone.utc),
                )
            )

    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self, store) -> None:
        await store.initialize()

    @pytest.mark.asyncio
    async def test_memory_store_injected_write_failure(self) -> None:
        store = InMemorySyncStore()
        store.fail_writes_for("d1")

        with pytest.raises(StoreError):
            await store.upsert_chunks("d1", "local", "Files", _records("d1", 1))


# ─── Provider settings store ──────────────────────────────────────


@pytest.fixture
async def settings_store(tmp_path: Path):
    s = SQLiteProviderSettingsStore(db_path=tmp_path / "settings.db")
    await s.initialize()
    yield s


class TestProviderSettingsStore:
    @pytest.mark.asyncio
    async def test_upsert_get_case_insensitive(self, settings_store) -> None:
        await settings_store.upsert("S3", "Archive", {"bucketName": "b", "enabled": True})

        record = await settings_store.get("s3", "archive")
        assert record is not None
        assert record.provider_type == "s3"
        assert record.settings == {"bucketName": "b", "enabled": True}
        assert record.updated_at is not None

    @pytest.mark.asyncio
    async def test_upsert_overwrites(self, settings_store) -> None:
        await settings_store.upsert("local", "Files", {"root_path": "/a"})
        await settings_store.upsert("local", "files", {"root_path": "/b"})

        records = await settings_store.get_all()
        assert len(records) == 1
        assert records[0].settings["root_path"] == "/b"

    @pytest.mark.asyncio
    async def test_delete(self, settings_store) -> None:
        await settings_store.upsert("local", "Files", {})

        assert await settings_store.delete("local", "Files") is True
        assert await settings_store.delete("local", "Files") is False
        assert await settings_store.get("local", "Files") is None
