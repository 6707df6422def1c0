"""Provider-facing data models: documents, provider metadata and probes.

Every document provider (local directory, S3 bucket, OneDrive drive) turns
its native listing into :class:`ProviderDocument` values.  The sync engine
never sees S3 object summaries or Graph ``driveItem`` payloads, only these
normalized descriptors.

All models are frozen Pydantic v2 models: a listing is produced fresh on
every call, never mutated afterwards, and compared by value.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# ProviderDocument -- one remote document as reported by a listing.
# ---------------------------------------------------------------------------
class ProviderDocument(BaseModel):
    """Immutable descriptor of a document available from a provider.

    ``(document_id, provider_type, provider_name)`` identifies the document
    for the lifetime of the provider instance.  Ids are derived from the
    document's stable identity (object key, hashed relative path, drive item
    id) so that re-listing reproduces them exactly.
    """

    model_config = ConfigDict(frozen=True)

    document_id: str = Field(description="Provider-scoped stable document identifier.")
    filename: str = Field(description="File name including extension.")
    provider_type: str = Field(description='Provider type key, e.g. "local", "s3".')
    provider_name: str = Field(description="Operator-chosen provider instance name.")
    etag: str | None = Field(default=None, description="Opaque change token, if supplied.")
    last_modified: datetime | None = Field(
        default=None, description="Last modification timestamp (UTC), if supplied."
    )
    size_bytes: int | None = Field(default=None, ge=0, description="Size in bytes, if known.")
    mime_type: str | None = Field(default=None, description="MIME type, if known.")
    relative_path: str | None = Field(
        default=None, description="Path relative to the provider root, '/'-separated."
    )

    @property
    def extension(self) -> str:
        """Lower-case extension including the leading dot, or ``""``."""
        dot = self.filename.rfind(".")
        if dot <= 0 or dot == len(self.filename) - 1:
            return ""
        return self.filename[dot:].lower()


# ---------------------------------------------------------------------------
# ProviderMetadata -- static descriptive info for registries and the admin UI.
# ---------------------------------------------------------------------------
class ProviderMetadata(BaseModel):
    """Descriptive, side-effect-free information about a provider instance."""

    model_config = ConfigDict(frozen=True)

    provider_type: str
    provider_name: str
    is_enabled: bool = True
    registered_at: datetime
    additional_info: dict[str, str] = Field(
        default_factory=dict,
        description="Provider-specific diagnostics, e.g. bucket name or root path.",
    )


# ---------------------------------------------------------------------------
# Probe models -- best-effort connectivity checks.
# ---------------------------------------------------------------------------

# Upper bound on preview bytes regardless of what the caller asks for.
MAX_PROBE_PREVIEW_BYTES = 4096


class ProviderProbeRequest(BaseModel):
    """Parameters for :meth:`IDocumentProvider.probe`."""

    model_config = ConfigDict(frozen=True)

    max_documents: int = Field(default=3, ge=0, description="Documents to list at most.")
    max_preview_bytes: int = Field(
        default=256, ge=0, description="Bytes to read from each listed document."
    )

    @property
    def effective_preview_bytes(self) -> int:
        return min(self.max_preview_bytes, MAX_PROBE_PREVIEW_BYTES)


class ProviderProbeDocument(BaseModel):
    """One document touched during a probe."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    filename: str
    size_bytes: int | None = None
    mime_type: str | None = None
    bytes_read: int = 0


class ProviderProbeResult(BaseModel):
    """Outcome of a probe.  Failures are values, never exceptions."""

    model_config = ConfigDict(frozen=True)

    success: bool
    message: str
    documents: list[ProviderProbeDocument] = Field(default_factory=list)
