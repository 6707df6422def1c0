"""SQLite-backed provider settings store.

Stores one JSON settings document per ``(provider_type, provider_name)`` in
the ``provider_settings`` table.  Keys compare case-insensitively, so
``S3/Archive`` and ``s3/archive`` address the same record.
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from src.interfaces.provider_settings_store import IProviderSettingsStore, ProviderSettingsRecord
from src.utils.errors import StoreError, StoreUnavailableError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/docsync.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS provider_settings (
    provider_type  TEXT NOT NULL COLLATE NOCASE,
    provider_name  TEXT NOT NULL COLLATE NOCASE,
    settings       TEXT NOT NULL,
    updated_at     TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    PRIMARY KEY (provider_type, provider_name)
);
"""

_UPSERT_SQL = """\
INSERT INTO provider_settings (provider_type, provider_name, settings)
VALUES (?, ?, ?)
ON CONFLICT(provider_type, provider_name)
DO UPDATE SET settings   = excluded.settings,
              updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now');
"""


def _to_record(row: aiosqlite.Row) -> ProviderSettingsRecord:
    updated = row["updated_at"]
    return ProviderSettingsRecord(
        provider_type=row["provider_type"],
        provider_name=row["provider_name"],
        settings=json.loads(row["settings"]),
        # SQLite writes a trailing "Z"; older interpreters reject it.
        updated_at=datetime.fromisoformat(updated.replace("Z", "+00:00")) if updated else None,
    )


class SQLiteProviderSettingsStore(IProviderSettingsStore):
    """Provider settings persisted in SQLite."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the provider_settings table if it doesn't exist."""
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(_CREATE_TABLE_SQL)
                await db.commit()
        except (aiosqlite.Error, OSError) as exc:
            raise StoreUnavailableError(
                message=f"Cannot initialize provider settings in {self._db_path}: {exc}",
                provider_name="sqlite",
            ) from exc
        logger.info("provider_settings_store_initialized", path=str(self._db_path))

    async def get_all(self) -> list[ProviderSettingsRecord]:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(
                    "SELECT provider_type, provider_name, settings, updated_at "
                    "FROM provider_settings ORDER BY provider_type, provider_name"
                )
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise StoreError(message=f"Reading provider settings failed: {exc}", provider_name="sqlite") from exc
        return [_to_record(row) for row in rows]

    async def get(self, provider_type: str, provider_name: str) -> ProviderSettingsRecord | None:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(
                    "SELECT provider_type, provider_name, settings, updated_at "
                    "FROM provider_settings WHERE provider_type = ? AND provider_name = ?",
                    (provider_type, provider_name),
                )
                row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise StoreError(message=f"Reading provider settings failed: {exc}", provider_name="sqlite") from exc
        return _to_record(row) if row is not None else None

    async def upsert(
        self, provider_type: str, provider_name: str, settings: dict[str, Any]
    ) -> None:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(
                    _UPSERT_SQL,
                    (provider_type.lower(), provider_name, json.dumps(settings)),
                )
                await db.commit()
        except aiosqlite.Error as exc:
            raise StoreError(message=f"Saving provider settings failed: {exc}", provider_name="sqlite") from exc
        logger.info("provider_settings_saved", provider_type=provider_type, provider_name=provider_name)

    async def delete(self, provider_type: str, provider_name: str) -> bool:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(
                    "DELETE FROM provider_settings WHERE provider_type = ? AND provider_name = ?",
                    (provider_type, provider_name),
                )
                await db.commit()
                removed = cursor.rowcount > 0
        except aiosqlite.Error as exc:
            raise StoreError(message=f"Deleting provider settings failed: {exc}", provider_name="sqlite") from exc
        return removed
