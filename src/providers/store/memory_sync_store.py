"""In-memory sync store.

Dict-backed implementation of :class:`ISyncStoreProvider` for tests and
dry runs.  Mirrors the SQLite store's replace-and-trim semantics and can be
told to fail writes for specific documents.
"""

from __future__ import annotations

from datetime import datetime

from src.interfaces.sync_store_provider import ISyncStoreProvider
from src.models.documents import ProviderMetadata
from src.models.sync import ChunkRecord, FileTrackingRecord
from src.utils.errors import StoreError

_DocKey = tuple[str, str, str]


class InMemorySyncStore(ISyncStoreProvider):
    """Volatile store keyed exactly like the persistent one."""

    def __init__(self) -> None:
        self._chunks: dict[_DocKey, dict[int, ChunkRecord]] = {}
        self._tracking: dict[_DocKey, FileTrackingRecord] = {}
        self._providers: dict[tuple[str, str], dict[str, object]] = {}
        self._failing_docs: set[str] = set()
        self.initialized = False

    def fail_writes_for(self, doc_id: str) -> None:
        """Make ``upsert_chunks`` raise :class:`StoreError` for *doc_id*."""
        self._failing_docs.add(doc_id)

    def clear_failures(self) -> None:
        self._failing_docs.clear()

    async def initialize(self) -> None:
        self.initialized = True

    async def get_tracked_documents(
        self, provider_type: str, provider_name: str
    ) -> list[FileTrackingRecord]:
        return sorted(
            (
                record
                for (_, ptype, pname), record in self._tracking.items()
                if ptype == provider_type and pname == provider_name
            ),
            key=lambda record: record.doc_id,
        )

    async def upsert_chunks(
        self,
        doc_id: str,
        provider_type: str,
        provider_name: str,
        records: list[ChunkRecord],
    ) -> None:
        if doc_id in self._failing_docs:
            raise StoreError(message=f"Injected write failure for {doc_id}", provider_name="memory")
        # Assigning the whole dict at once is the in-memory equivalent of
        # the SQLite upsert-then-trim transaction.
        self._chunks[(doc_id, provider_type, provider_name)] = {
            record.chunk.chunk_num: record for record in records
        }

    async def upsert_tracking(self, record: FileTrackingRecord) -> None:
        self._tracking[(record.doc_id, record.provider_type, record.provider_name)] = record

    async def delete_chunks(self, doc_id: str, provider_type: str, provider_name: str) -> int:
        removed = self._chunks.pop((doc_id, provider_type, provider_name), {})
        return len(removed)

    async def delete_tracking(self, doc_id: str, provider_type: str, provider_name: str) -> bool:
        return self._tracking.pop((doc_id, provider_type, provider_name), None) is not None

    async def delete_provider_data(self, provider_type: str, provider_name: str) -> int:
        removed = 0
        for key in [k for k in self._chunks if k[1:] == (provider_type, provider_name)]:
            removed += len(self._chunks.pop(key))
        for key in [k for k in self._tracking if k[1:] == (provider_type, provider_name)]:
            del self._tracking[key]
        return removed

    async def count_chunks(
        self,
        provider_type: str | None = None,
        provider_name: str | None = None,
        doc_id: str | None = None,
    ) -> int:
        total = 0
        for (did, ptype, pname), chunks in self._chunks.items():
            if provider_type is not None and ptype != provider_type:
                continue
            if provider_name is not None and pname != provider_name:
                continue
            if doc_id is not None and did != doc_id:
                continue
            total += len(chunks)
        return total

    async def get_chunks(
        self, doc_id: str, provider_type: str, provider_name: str
    ) -> list[ChunkRecord]:
        chunks = self._chunks.get((doc_id, provider_type, provider_name), {})
        return [chunks[num] for num in sorted(chunks)]

    async def register_provider(self, metadata: ProviderMetadata) -> None:
        key = (metadata.provider_type, metadata.provider_name)
        existing = self._providers.get(key, {})
        self._providers[key] = {
            "provider_type": metadata.provider_type,
            "provider_name": metadata.provider_name,
            "is_enabled": metadata.is_enabled,
            "registered_at": existing.get("registered_at", metadata.registered_at),
            "last_sync_at": existing.get("last_sync_at"),
            "metadata": dict(metadata.additional_info),
        }

    async def update_provider_sync_time(
        self, provider_type: str, provider_name: str, synced_at: datetime
    ) -> None:
        row = self._providers.get((provider_type, provider_name))
        if row is not None:
            row["last_sync_at"] = synced_at

    async def list_providers(self) -> list[dict[str, object]]:
        return [dict(self._providers[key]) for key in sorted(self._providers)]
