"""Custom exception hierarchy for docsync.

All application exceptions inherit from :class:`DocSyncError`, which
carries an optional ``provider_name`` so error handlers can identify which
document source or external service (e.g. "local:LocalFiles", "openai")
caused the failure.

The hierarchy is organized by sync stage:

    DocSyncError  (base -- catch-all for any docsync error)
    +-- ProviderUnavailableError (listing/downloading failed: auth, network)
    +-- DocumentNotFoundError    (document vanished between list and download)
    +-- UnsupportedFormatError   (no extractor for the file extension)
    +-- ExtractionError          (extractor could not read the bytes)
    +-- EmbeddingProviderError   (embedding backend failure)
    +-- StoreError               (persistence failure for one operation)
    |   +-- StoreUnavailableError (store unreachable -- run cannot progress)
    +-- ConfigurationError       (invalid settings -- fail fast)
    +-- SyncError                (run could not complete its control flow)

Document-level errors are isolated to the offending document, provider-level
errors to the offending provider.  Only ConfigurationError,
StoreUnavailableError and SyncError abort a whole run.
"""


class DocSyncError(Exception):
    """Base exception for all docsync errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which source or service triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets
    for structured log output, e.g. ``[s3:Archive] Access denied``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Document source errors
# ---------------------------------------------------------------------------

class ProviderUnavailableError(DocSyncError):
    """Raised when a document provider cannot be reached or authenticated.

    The sync engine catches this at the provider boundary and moves on to
    the next provider; the next scheduled run retries.
    """

    def __init__(
        self,
        message: str = "Document provider is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class DocumentNotFoundError(DocSyncError):
    """Raised when a listed document no longer exists at download time."""

    def __init__(
        self,
        message: str = "Document not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Extraction errors
# ---------------------------------------------------------------------------

class UnsupportedFormatError(DocSyncError):
    """Raised when no text extractor is registered for a file extension."""

    def __init__(
        self,
        message: str = "Unsupported document format",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ExtractionError(DocSyncError):
    """Raised when an extractor fails to turn document bytes into text."""

    def __init__(
        self,
        message: str = "Text extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Embedding / storage errors
# ---------------------------------------------------------------------------

class EmbeddingProviderError(DocSyncError):
    """Raised when the embedding backend fails (rate limit, auth, network).

    A failed sub-batch fails the whole logical call; callers never see a
    partial set of vectors.
    """

    def __init__(
        self,
        message: str = "Embedding provider call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class StoreError(DocSyncError):
    """Raised when a single persistence operation fails."""

    def __init__(
        self,
        message: str = "Store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class StoreUnavailableError(StoreError):
    """Raised when the store cannot be reached at all.

    Unlike :class:`StoreError` this is fatal for the run: no document can
    make progress without the store.
    """

    def __init__(
        self,
        message: str = "Store is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Orchestration / configuration errors
# ---------------------------------------------------------------------------

class ConfigurationError(DocSyncError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class SyncError(DocSyncError):
    """Raised when a sync run cannot complete its control flow."""

    def __init__(
        self,
        message: str = "Sync run failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
