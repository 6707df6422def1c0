"""Utility modules for docsync.

- **errors** -- Domain exception hierarchy rooted at DocSyncError; each sync
  stage raises its own subclass so the engine can isolate failures per
  document or per provider.
- **concurrency** -- ``throttled_gather``, a semaphore-bounded
  ``asyncio.gather`` used for per-document parallelism.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
- **mime_types** -- Extension normalization and extension -> MIME lookup.
"""

# -- Domain exception hierarchy --------------------------------------------
from src.utils.errors import (
    ConfigurationError,
    DocSyncError,
    DocumentNotFoundError,
    EmbeddingProviderError,
    ExtractionError,
    ProviderUnavailableError,
    StoreError,
    StoreUnavailableError,
    SyncError,
    UnsupportedFormatError,
)

# -- Async concurrency helpers ---------------------------------------------
from src.utils.concurrency import throttled_gather

# -- Structured logging setup ----------------------------------------------
from src.utils.logging import configure_logging, get_logger

# -- File type helpers -----------------------------------------------------
from src.utils.mime_types import get_mime_type, normalize_extension

__all__ = [
    "ConfigurationError",
    "DocSyncError",
    "DocumentNotFoundError",
    "EmbeddingProviderError",
    "ExtractionError",
    "ProviderUnavailableError",
    "StoreError",
    "StoreUnavailableError",
    "SyncError",
    "UnsupportedFormatError",
    "configure_logging",
    "get_logger",
    "get_mime_type",
    "normalize_extension",
    "throttled_gather",
]
