"""Public interface definitions for all pluggable components.

Every document source, extractor, embedding backend and store used by the
sync engine is accessed exclusively through the abstract base classes
defined in this package.  Concrete adapters implement these interfaces and
are injected at runtime (adapter pattern), which keeps the engine free of
transport details and lets tests inject in-memory fakes.

CONCRETE PROVIDER MAP:
    Interface                  ->  Concrete implementations (in src/providers/)
    -------------------------------------------------------------------------
    IDocumentProvider          ->  LocalProvider, S3Provider, OneDriveProvider,
                                   InMemoryDocumentProvider
    ITextExtractor             ->  PlainTextExtractor, DocxExtractor,
                                   PdfExtractor, OdtExtractor, RtfExtractor
    IEmbeddingProvider         ->  OpenAIEmbeddingProvider,
                                   HashEmbeddingProvider
    ISyncStoreProvider         ->  SQLiteSyncStore, InMemorySyncStore
    IProviderSettingsStore     ->  SQLiteProviderSettingsStore
"""

from src.interfaces.document_provider import IDocumentProvider
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.provider_settings_store import IProviderSettingsStore, ProviderSettingsRecord
from src.interfaces.sync_store_provider import ISyncStoreProvider
from src.interfaces.text_extractor import ITextExtractor

__all__ = [
    "IDocumentProvider",
    "IEmbeddingProvider",
    "IProviderSettingsStore",
    "ISyncStoreProvider",
    "ITextExtractor",
    "ProviderSettingsRecord",
]
