"""Abstract base class for the chunk / file-tracking store.

The store is the only shared mutable resource of a sync run.  It keeps:

* chunk records keyed by ``(doc_id, chunk_num, provider_type, provider_name)``
  holding text, embedding and metadata;
* tracking records keyed by ``(doc_id, provider_type, provider_name)``
  holding filename, etag and last-modified time;
* a registry of providers with their last successful sync time.

Correctness relies on the key uniqueness constraints, not on serialized
access: concurrent upserts for different documents need no global lock.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from src.models.documents import ProviderMetadata
from src.models.sync import ChunkRecord, FileTrackingRecord


# Concrete implementations:
#   SQLiteSyncStore   -- aiosqlite-backed persistent store
#   InMemorySyncStore -- dict-backed fake for tests
# Located in: src/providers/store/
class ISyncStoreProvider(ABC):
    """Contract for durable, idempotent persistence of chunks and tracking."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables/indices if needed.  Safe to call repeatedly.

        Raises
        ------
        src.utils.errors.StoreUnavailableError
            If the backing store cannot be reached.
        """

    @abstractmethod
    async def get_tracked_documents(
        self, provider_type: str, provider_name: str
    ) -> list[FileTrackingRecord]:
        """Return every tracking record belonging to one provider."""

    @abstractmethod
    async def upsert_chunks(
        self,
        doc_id: str,
        provider_type: str,
        provider_name: str,
        records: list[ChunkRecord],
    ) -> None:
        """Replace the full chunk set of one document atomically.

        Chunk numbers present before but beyond ``len(records)`` are removed
        in the same transaction, so a document that shrank from five chunks
        to three keeps exactly chunks 0..2.  An empty *records* list removes
        every chunk of the document.

        Raises
        ------
        src.utils.errors.StoreError
            If the write fails.  No partial chunk set is left behind.
        """

    @abstractmethod
    async def upsert_tracking(self, record: FileTrackingRecord) -> None:
        """Insert or replace the tracking record for one document."""

    @abstractmethod
    async def delete_chunks(self, doc_id: str, provider_type: str, provider_name: str) -> int:
        """Delete all chunk records of one document.  Returns rows removed."""

    @abstractmethod
    async def delete_tracking(self, doc_id: str, provider_type: str, provider_name: str) -> bool:
        """Delete one tracking record.  Returns ``True`` if it existed."""

    @abstractmethod
    async def delete_provider_data(self, provider_type: str, provider_name: str) -> int:
        """Delete every chunk and tracking record of one provider.

        Used by forced full re-indexing.  Returns chunk rows removed.
        """

    @abstractmethod
    async def count_chunks(
        self,
        provider_type: str | None = None,
        provider_name: str | None = None,
        doc_id: str | None = None,
    ) -> int:
        """Count chunk records, optionally narrowed by provider and document."""

    @abstractmethod
    async def get_chunks(
        self, doc_id: str, provider_type: str, provider_name: str
    ) -> list[ChunkRecord]:
        """Return the chunk records of one document ordered by chunk number."""

    @abstractmethod
    async def register_provider(self, metadata: ProviderMetadata) -> None:
        """Insert or refresh the registry row for a provider."""

    @abstractmethod
    async def update_provider_sync_time(
        self, provider_type: str, provider_name: str, synced_at: datetime
    ) -> None:
        """Record the completion time of a provider's last sync."""

    @abstractmethod
    async def list_providers(self) -> list[dict[str, object]]:
        """Return registry rows (type, name, enabled, registered_at, last_sync_at)."""
