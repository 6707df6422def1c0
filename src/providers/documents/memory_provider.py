"""In-memory document provider.

Holds documents as ``bytes`` keyed by id.  Used by the test suite and for
dry runs of the sync engine; a real deployment uses the local, S3 or
OneDrive providers.  Supports failure injection so tests can exercise the
engine's isolation of provider-level and document-level errors.
"""

from __future__ import annotations

import io
from datetime import datetime, timezone
from typing import BinaryIO

import structlog

from src.interfaces.document_provider import IDocumentProvider
from src.models.documents import ProviderDocument, ProviderMetadata
from src.utils.errors import DocumentNotFoundError, ProviderUnavailableError
from src.utils.mime_types import get_mime_type

logger = structlog.get_logger(logger_name=__name__)


class InMemoryDocumentProvider(IDocumentProvider):
    """Dict-backed document provider.

    Parameters
    ----------
    name:
        Provider instance name.
    provider_type:
        Type key reported to the engine, ``"memory"`` by default.
    enabled:
        Whether sync runs should include this provider.
    """

    def __init__(self, name: str = "memory", provider_type: str = "memory", enabled: bool = True) -> None:
        self._name = name
        self._type = provider_type
        self._enabled = enabled
        self._documents: dict[str, tuple[ProviderDocument, bytes]] = {}
        self._list_error: Exception | None = None
        self._download_errors: dict[str, Exception] = {}
        self.download_count = 0

    # ------------------------------------------------------------------
    # Test helpers
    # ------------------------------------------------------------------

    def put(
        self,
        document_id: str,
        filename: str,
        content: bytes | str,
        etag: str | None = None,
        last_modified: datetime | None = None,
    ) -> ProviderDocument:
        """Add or replace a document and return its descriptor."""
        data = content.encode("utf-8") if isinstance(content, str) else content
        document = ProviderDocument(
            document_id=document_id,
            filename=filename,
            provider_type=self._type,
            provider_name=self._name,
            etag=etag,
            last_modified=last_modified,
            size_bytes=len(data),
            mime_type=get_mime_type(filename),
            relative_path=filename,
        )
        self._documents[document_id] = (document, data)
        return document

    def remove(self, document_id: str) -> None:
        self._documents.pop(document_id, None)

    def fail_listing(self, error: Exception | None = None) -> None:
        """Make every subsequent listing raise *error* (``None`` clears it)."""
        self._list_error = error

    def fail_download(self, document_id: str, error: Exception) -> None:
        self._download_errors[document_id] = error

    # ------------------------------------------------------------------
    # IDocumentProvider implementation
    # ------------------------------------------------------------------

    def get_provider_type(self) -> str:
        return self._type

    def get_provider_name(self) -> str:
        return self._name

    def is_enabled(self) -> bool:
        return self._enabled

    async def list_documents(self) -> list[ProviderDocument]:
        if self._list_error is not None:
            if isinstance(self._list_error, ProviderUnavailableError):
                raise self._list_error
            raise ProviderUnavailableError(
                message=str(self._list_error), provider_name=self.describe()
            ) from self._list_error
        return [document for document, _ in self._documents.values()]

    async def download_document(self, document_id: str) -> BinaryIO:
        self.download_count += 1
        error = self._download_errors.get(document_id)
        if error is not None:
            raise error
        entry = self._documents.get(document_id)
        if entry is None:
            raise DocumentNotFoundError(
                message=f"Document {document_id} not found", provider_name=self.describe()
            )
        return io.BytesIO(entry[1])

    async def get_metadata(self) -> ProviderMetadata:
        return ProviderMetadata(
            provider_type=self._type,
            provider_name=self._name,
            is_enabled=self._enabled,
            registered_at=datetime.now(timezone.utc),
            additional_info={"Documents": str(len(self._documents))},
        )
