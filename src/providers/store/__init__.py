"""Persistence implementations.

    SQLiteSyncStore             -- chunks, tracking records, provider registry
    InMemorySyncStore           -- dict-backed fake of the above for tests
    SQLiteProviderSettingsStore -- JSON provider settings documents
"""

from src.providers.store.memory_sync_store import InMemorySyncStore
from src.providers.store.sqlite_provider_settings_store import SQLiteProviderSettingsStore
from src.providers.store.sqlite_sync_store import SQLiteSyncStore

__all__ = ["InMemorySyncStore", "SQLiteProviderSettingsStore", "SQLiteSyncStore"]
