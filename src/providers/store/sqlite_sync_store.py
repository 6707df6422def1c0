"""SQLite-backed chunk and file-tracking store.

Persists everything a sync run produces to a local SQLite database (by
default ``data/docsync.db``) using ``aiosqlite`` for async I/O:

    docs_chunks  -- one row per (doc_id, chunk_num, provider_type, provider_name)
                    with text, character offsets, embedding and metadata (JSON)
    docs_files   -- one tracking row per (doc_id, provider_type, provider_name)
    providers    -- registry of providers with their last sync time

Re-indexing a document upserts its new chunk rows and deletes the rows whose
``chunk_num`` is beyond the new count inside one transaction, so readers
never see a mix of old and new chunk sets.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from src.interfaces.sync_store_provider import ISyncStoreProvider
from src.models.documents import ProviderMetadata
from src.models.sync import Chunk, ChunkRecord, FileTrackingRecord
from src.utils.errors import StoreError, StoreUnavailableError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/docsync.db")
_STORE_NAME = "sqlite"

_CREATE_TABLES_SQL = [
    """\
CREATE TABLE IF NOT EXISTS docs_chunks (
    doc_id         TEXT    NOT NULL,
    chunk_num      INTEGER NOT NULL,
    provider_type  TEXT    NOT NULL,
    provider_name  TEXT    NOT NULL,
    filename       TEXT    NOT NULL,
    text           TEXT    NOT NULL,
    char_start     INTEGER NOT NULL,
    char_end       INTEGER NOT NULL,
    embedding      TEXT    NOT NULL,
    metadata       TEXT    NOT NULL DEFAULT '{}',
    updated_at     TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    PRIMARY KEY (doc_id, chunk_num, provider_type, provider_name)
);
""",
    """\
CREATE TABLE IF NOT EXISTS docs_files (
    doc_id         TEXT NOT NULL,
    provider_type  TEXT NOT NULL,
    provider_name  TEXT NOT NULL,
    filename       TEXT NOT NULL,
    etag           TEXT,
    last_modified  TEXT,
    updated_at     TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    PRIMARY KEY (doc_id, provider_type, provider_name)
);
""",
    """\
CREATE TABLE IF NOT EXISTS providers (
    provider_type  TEXT    NOT NULL,
    provider_name  TEXT    NOT NULL,
    is_enabled     INTEGER NOT NULL DEFAULT 1,
    registered_at  TEXT    NOT NULL,
    last_sync_at   TEXT,
    metadata       TEXT    NOT NULL DEFAULT '{}',
    PRIMARY KEY (provider_type, provider_name)
);
""",
]

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_chunks_provider ON docs_chunks(provider_type, provider_name);",
    "CREATE INDEX IF NOT EXISTS idx_files_provider ON docs_files(provider_type, provider_name);",
]

_UPSERT_CHUNK_SQL = """\
INSERT INTO docs_chunks (
    doc_id, chunk_num, provider_type, provider_name, filename,
    text, char_start, char_end, embedding, metadata
)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(doc_id, chunk_num, provider_type, provider_name)
DO UPDATE SET filename   = excluded.filename,
              text       = excluded.text,
              char_start = excluded.char_start,
              char_end   = excluded.char_end,
              embedding  = excluded.embedding,
              metadata   = excluded.metadata,
              updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now');
"""

_TRIM_CHUNKS_SQL = """\
DELETE FROM docs_chunks
WHERE doc_id = ? AND provider_type = ? AND provider_name = ? AND chunk_num >= ?;
"""

_UPSERT_TRACKING_SQL = """\
INSERT INTO docs_files (doc_id, provider_type, provider_name, filename, etag, last_modified)
VALUES (?, ?, ?, ?, ?, ?)
ON CONFLICT(doc_id, provider_type, provider_name)
DO UPDATE SET filename      = excluded.filename,
              etag          = excluded.etag,
              last_modified = excluded.last_modified,
              updated_at    = strftime('%Y-%m-%dT%H:%M:%fZ', 'now');
"""

_REGISTER_PROVIDER_SQL = """\
INSERT INTO providers (provider_type, provider_name, is_enabled, registered_at, metadata)
VALUES (?, ?, ?, ?, ?)
ON CONFLICT(provider_type, provider_name)
DO UPDATE SET is_enabled = excluded.is_enabled,
              metadata   = excluded.metadata;
"""


def _to_iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _from_iso(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class SQLiteSyncStore(ISyncStoreProvider):
    """SQLite persistence for chunks, tracking records and the provider registry."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    @asynccontextmanager
    async def _connect(self, operation: str) -> AsyncIterator[aiosqlite.Connection]:
        # A connection that cannot be opened means the whole store is unreachable.
        try:
            db = await aiosqlite.connect(str(self._db_path))
        except (aiosqlite.Error, OSError) as exc:
            logger.error("sync_store_unreachable", path=str(self._db_path), operation=operation, error=str(exc))
            raise StoreUnavailableError(
                message=f"{operation} failed: cannot open {self._db_path}: {exc}",
                provider_name=_STORE_NAME,
            ) from exc
        try:
            db.row_factory = aiosqlite.Row
            yield db
        except aiosqlite.Error as exc:
            raise StoreError(message=f"{operation} failed: {exc}", provider_name=_STORE_NAME) from exc
        finally:
            await db.close()

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Create tables and indices if they don't exist."""
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiosqlite.connect(str(self._db_path)) as db:
                for table_sql in _CREATE_TABLES_SQL:
                    await db.execute(table_sql)
                for idx_sql in _CREATE_INDICES_SQL:
                    await db.execute(idx_sql)
                await db.commit()
        except (aiosqlite.Error, OSError) as exc:
            raise StoreUnavailableError(
                message=f"Cannot initialize {self._db_path}: {exc}",
                provider_name=_STORE_NAME,
            ) from exc
        logger.info("sync_store_initialized", path=str(self._db_path))

    # ------------------------------------------------------------------
    # Tracking records
    # ------------------------------------------------------------------

    async def get_tracked_documents(
        self, provider_type: str, provider_name: str
    ) -> list[FileTrackingRecord]:
        async with self._connect("get_tracked_documents") as db:
            cursor = await db.execute(
                "SELECT doc_id, provider_type, provider_name, filename, etag, last_modified "
                "FROM docs_files WHERE provider_type = ? AND provider_name = ? ORDER BY doc_id",
                (provider_type, provider_name),
            )
            rows = await cursor.fetchall()
        return [
            FileTrackingRecord(
                doc_id=row["doc_id"],
                provider_type=row["provider_type"],
                provider_name=row["provider_name"],
                filename=row["filename"],
                etag=row["etag"],
                last_modified=_from_iso(row["last_modified"]),
            )
            for row in rows
        ]

    async def upsert_tracking(self, record: FileTrackingRecord) -> None:
        async with self._connect("upsert_tracking") as db:
            await db.execute(
                _UPSERT_TRACKING_SQL,
                (
                    record.doc_id,
                    record.provider_type,
                    record.provider_name,
                    record.filename,
                    record.etag,
                    _to_iso(record.last_modified),
                ),
            )
            await db.commit()

    async def delete_tracking(self, doc_id: str, provider_type: str, provider_name: str) -> bool:
        async with self._connect("delete_tracking") as db:
            cursor = await db.execute(
                "DELETE FROM docs_files WHERE doc_id = ? AND provider_type = ? AND provider_name = ?",
                (doc_id, provider_type, provider_name),
            )
            await db.commit()
            return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Chunk records
    # ------------------------------------------------------------------

    async def upsert_chunks(
        self,
        doc_id: str,
        provider_type: str,
        provider_name: str,
        records: list[ChunkRecord],
    ) -> None:
        for record in records:
            if (record.doc_id, record.provider_type, record.provider_name) != (
                doc_id,
                provider_type,
                provider_name,
            ):
                raise StoreError(
                    message=f"Chunk record for {record.doc_id} passed to upsert of {doc_id}",
                    provider_name=_STORE_NAME,
                )

        rows = [
            (
                doc_id,
                record.chunk.chunk_num,
                provider_type,
                provider_name,
                record.filename,
                record.chunk.text,
                record.chunk.char_start,
                record.chunk.char_end,
                json.dumps(record.embedding),
                json.dumps(record.metadata, default=str),
            )
            for record in records
        ]

        async with self._connect("upsert_chunks") as db:
            try:
                await db.execute("BEGIN")
                if rows:
                    await db.executemany(_UPSERT_CHUNK_SQL, rows)
                await db.execute(_TRIM_CHUNKS_SQL, (doc_id, provider_type, provider_name, len(rows)))
                await db.commit()
            except aiosqlite.Error:
                await db.rollback()
                raise

        logger.debug("chunks_upserted", doc_id=doc_id, provider=f"{provider_type}:{provider_name}", count=len(rows))

    async def delete_chunks(self, doc_id: str, provider_type: str, provider_name: str) -> int:
        async with self._connect("delete_chunks") as db:
            cursor = await db.execute(
                "DELETE FROM docs_chunks WHERE doc_id = ? AND provider_type = ? AND provider_name = ?",
                (doc_id, provider_type, provider_name),
            )
            await db.commit()
            return cursor.rowcount

    async def delete_provider_data(self, provider_type: str, provider_name: str) -> int:
        async with self._connect("delete_provider_data") as db:
            try:
                await db.execute("BEGIN")
                cursor = await db.execute(
                    "DELETE FROM docs_chunks WHERE provider_type = ? AND provider_name = ?",
                    (provider_type, provider_name),
                )
                removed = cursor.rowcount
                await db.execute(
                    "DELETE FROM docs_files WHERE provider_type = ? AND provider_name = ?",
                    (provider_type, provider_name),
                )
                await db.commit()
            except aiosqlite.Error:
                await db.rollback()
                raise
        logger.info("provider_data_deleted", provider=f"{provider_type}:{provider_name}", chunks=removed)
        return removed

    async def count_chunks(
        self,
        provider_type: str | None = None,
        provider_name: str | None = None,
        doc_id: str | None = None,
    ) -> int:
        clauses: list[str] = []
        params: list[Any] = []
        for column, value in (
            ("provider_type", provider_type),
            ("provider_name", provider_name),
            ("doc_id", doc_id),
        ):
            if value is not None:
                clauses.append(f"{column} = ?")
                params.append(value)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""

        async with self._connect("count_chunks") as db:
            cursor = await db.execute(f"SELECT COUNT(*) FROM docs_chunks{where}", params)
            row = await cursor.fetchone()
        return int(row[0]) if row else 0

    async def get_chunks(
        self, doc_id: str, provider_type: str, provider_name: str
    ) -> list[ChunkRecord]:
        async with self._connect("get_chunks") as db:
            cursor = await db.execute(
                "SELECT doc_id, chunk_num, provider_type, provider_name, filename, text, "
                "char_start, char_end, embedding, metadata FROM docs_chunks "
                "WHERE doc_id = ? AND provider_type = ? AND provider_name = ? ORDER BY chunk_num",
                (doc_id, provider_type, provider_name),
            )
            rows = await cursor.fetchall()
        return [
            ChunkRecord(
                doc_id=row["doc_id"],
                filename=row["filename"],
                provider_type=row["provider_type"],
                provider_name=row["provider_name"],
                chunk=Chunk(
                    chunk_num=row["chunk_num"],
                    char_start=row["char_start"],
                    char_end=row["char_end"],
                    text=row["text"],
                ),
                embedding=json.loads(row["embedding"]),
                metadata=json.loads(row["metadata"]),
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Provider registry
    # ------------------------------------------------------------------

    async def register_provider(self, metadata: ProviderMetadata) -> None:
        async with self._connect("register_provider") as db:
            await db.execute(
                _REGISTER_PROVIDER_SQL,
                (
                    metadata.provider_type,
                    metadata.provider_name,
                    int(metadata.is_enabled),
                    _to_iso(metadata.registered_at),
                    json.dumps(metadata.additional_info),
                ),
            )
            await db.commit()

    async def update_provider_sync_time(
        self, provider_type: str, provider_name: str, synced_at: datetime
    ) -> None:
        async with self._connect("update_provider_sync_time") as db:
            await db.execute(
                "UPDATE providers SET last_sync_at = ? WHERE provider_type = ? AND provider_name = ?",
                (_to_iso(synced_at), provider_type, provider_name),
            )
            await db.commit()

    async def list_providers(self) -> list[dict[str, object]]:
        async with self._connect("list_providers") as db:
            cursor = await db.execute(
                "SELECT provider_type, provider_name, is_enabled, registered_at, last_sync_at, metadata "
                "FROM providers ORDER BY provider_type, provider_name"
            )
            rows = await cursor.fetchall()
        return [
            {
                "provider_type": row["provider_type"],
                "provider_name": row["provider_name"],
                "is_enabled": bool(row["is_enabled"]),
                "registered_at": _from_iso(row["registered_at"]),
                "last_sync_at": _from_iso(row["last_sync_at"]),
                "metadata": json.loads(row["metadata"]),
            }
            for row in rows
        ]
