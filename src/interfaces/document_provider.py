"""Abstract base class for document source providers.

Defines the capability every document source (local directory, S3 bucket,
OneDrive drive, ...) exposes to the sync engine: list, download, describe,
probe.  The contract is intentionally narrow so the engine never sees
transport specifics such as continuation tokens, ``@odata.nextLink`` paging
or Graph drive resolution.

Each concrete provider owns its extension filtering, exclusion matching,
pagination loops and the mapping of transport errors onto
:class:`~src.utils.errors.ProviderUnavailableError` and
:class:`~src.utils.errors.DocumentNotFoundError`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import BinaryIO

import structlog

from src.models.documents import (
    ProviderDocument,
    ProviderMetadata,
    ProviderProbeDocument,
    ProviderProbeRequest,
    ProviderProbeResult,
)

logger = structlog.get_logger(logger_name=__name__)


# Concrete implementations:
#   LocalProvider            -- directory tree on the local filesystem
#   S3Provider               -- one bucket (optionally under a key prefix)
#   OneDriveProvider         -- one OneDrive / SharePoint drive folder
#   InMemoryDocumentProvider -- dict-backed fake for tests
# Located in: src/providers/documents/
class IDocumentProvider(ABC):
    """Contract for a configured source of documents."""

    @abstractmethod
    def get_provider_type(self) -> str:
        """Return the lower-case provider type key, e.g. ``"s3"``."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return the operator-chosen name of this provider instance."""

    @abstractmethod
    def is_enabled(self) -> bool:
        """Return ``True`` if the provider should take part in sync runs."""

    @abstractmethod
    async def list_documents(self) -> list[ProviderDocument]:
        """Enumerate every document matching the configured filters.

        Pagination is handled internally; callers always receive the
        complete listing.  Cancellation is honoured between pages.

        Returns
        -------
        list[ProviderDocument]
            One descriptor per matching document.  Ids are stable across
            calls.

        Raises
        ------
        src.utils.errors.ProviderUnavailableError
            If the source cannot be reached or authenticated.
        """

    @abstractmethod
    async def download_document(self, document_id: str) -> BinaryIO:
        """Open a readable stream over the bytes of *document_id*.

        The caller owns the returned stream and must close it.

        Raises
        ------
        src.utils.errors.DocumentNotFoundError
            If the document no longer exists.
        src.utils.errors.ProviderUnavailableError
            If the source cannot be reached or authenticated.
        """

    @abstractmethod
    async def get_metadata(self) -> ProviderMetadata:
        """Return static descriptive information about this provider.

        Must not require network access to succeed.
        """

    # ------------------------------------------------------------------
    # Shared behaviour
    # ------------------------------------------------------------------

    def describe(self) -> str:
        """Return ``"type:name"``, the label used in logs and errors."""
        return f"{self.get_provider_type()}:{self.get_provider_name()}"

    async def aclose(self) -> None:
        """Release network clients.  Providers without any keep the no-op."""

    async def probe(self, request: ProviderProbeRequest | None = None) -> ProviderProbeResult:
        """Best-effort connectivity check.

        Lists documents, then reads up to ``request.effective_preview_bytes``
        from each of the first ``request.max_documents`` of them.  Never
        raises: any failure is reported as an unsuccessful result.
        """
        request = request or ProviderProbeRequest()
        try:
            documents = await self.list_documents()
            if not documents:
                return ProviderProbeResult(
                    success=True,
                    message="No matching files were found, but the provider is reachable.",
                )

            probed: list[ProviderProbeDocument] = []
            for document in documents[: request.max_documents]:
                bytes_read = 0
                if request.effective_preview_bytes > 0:
                    stream = await self.download_document(document.document_id)
                    with stream:
                        bytes_read = len(stream.read(request.effective_preview_bytes))
                probed.append(
                    ProviderProbeDocument(
                        document_id=document.document_id,
                        filename=document.filename,
                        size_bytes=document.size_bytes,
                        mime_type=document.mime_type,
                        bytes_read=bytes_read,
                    )
                )

            return ProviderProbeResult(
                success=True,
                message=f"Found {len(documents)} matching file(s); sampled {len(probed)}.",
                documents=probed,
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("provider_probe_failed", provider=self.describe(), error=str(exc))
            return ProviderProbeResult(success=False, message=f"Probe failed: {exc}")
