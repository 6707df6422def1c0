"""Sync-engine data models: tracking state, chunks, options and run reports.

Lifecycle of the persisted models:

    FileTrackingRecord -- one per currently-known document; created on the
        first successful index, replaced on every re-index, deleted by
        orphan cleanup.
    Chunk              -- computed fresh for every extraction pass; only
        persisted together with its embedding inside a ChunkRecord.
    ChunkRecord        -- keyed by (doc_id, chunk_num, provider_type,
        provider_name); the whole set for a document is replaced atomically.

The report models (:class:`DocumentFailure`, :class:`ProviderSyncReport`,
:class:`SyncRunReport`) are the only user-facing output of a run.  They keep
"skipped because unchanged" separate from "failed" since the two have
opposite health implications.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.models.documents import ProviderDocument


# ---------------------------------------------------------------------------
# Persisted state
# ---------------------------------------------------------------------------
class FileTrackingRecord(BaseModel):
    """Change-tracking state for one indexed document."""

    model_config = ConfigDict(frozen=True)

    doc_id: str
    provider_type: str
    provider_name: str
    filename: str
    etag: str | None = None
    last_modified: datetime | None = None

    @classmethod
    def from_document(cls, document: ProviderDocument) -> FileTrackingRecord:
        return cls(
            doc_id=document.document_id,
            provider_type=document.provider_type,
            provider_name=document.provider_name,
            filename=document.filename,
            etag=document.etag,
            last_modified=document.last_modified,
        )


class Chunk(BaseModel):
    """A contiguous slice ``[char_start, char_end)`` of extracted text."""

    model_config = ConfigDict(frozen=True)

    chunk_num: int = Field(ge=0, description="0-based sequential index within the document.")
    char_start: int = Field(ge=0)
    char_end: int = Field(ge=0)
    text: str

    @model_validator(mode="after")
    def _check_offsets(self) -> Chunk:
        if self.char_end - self.char_start != len(self.text):
            msg = (
                f"Chunk {self.chunk_num}: offsets [{self.char_start}, {self.char_end}) "
                f"do not match text length {len(self.text)}"
            )
            raise ValueError(msg)
        return self


class ChunkRecord(BaseModel):
    """A chunk with its embedding and provenance -- the unit of storage."""

    model_config = ConfigDict(frozen=True)

    doc_id: str
    filename: str
    provider_type: str
    provider_name: str
    chunk: Chunk
    embedding: list[float]
    metadata: dict[str, Any] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Options
# ---------------------------------------------------------------------------
class SyncOptions(BaseModel):
    """Per-run tuning knobs for the sync engine."""

    model_config = ConfigDict(frozen=True)

    chunk_size: int = Field(default=1000, gt=0)
    chunk_overlap: int = Field(default=200, ge=0)
    # Caps how many changed documents are processed per provider per run.
    max_files: int | None = Field(default=None, gt=0)
    cleanup_orphaned_documents: bool = True
    force_full_reindex: bool = False
    document_concurrency: int = Field(default=1, ge=1)


# ---------------------------------------------------------------------------
# Run report
# ---------------------------------------------------------------------------
class DocumentFailure(BaseModel):
    """A document that could not be indexed during a run."""

    model_config = ConfigDict(frozen=True)

    doc_id: str
    filename: str
    provider_type: str
    provider_name: str
    stage: str = Field(description='Stage that failed: "download", "extract", "embed", "store".')
    reason: str


class ProviderSyncReport(BaseModel):
    """Counts and failures for one provider within a run."""

    model_config = ConfigDict(frozen=True)

    provider_type: str
    provider_name: str
    listed: int = 0
    indexed: int = 0
    skipped_unchanged: int = 0
    skipped_unsupported: int = 0
    skipped_empty: int = 0
    not_found: int = 0
    deferred: int = Field(default=0, description="Changed documents left for a later run by max_files.")
    removed: int = 0
    chunks_written: int = 0
    failures: list[DocumentFailure] = Field(default_factory=list)
    error: str | None = Field(default=None, description="Provider-level failure, if any.")
    elapsed_seconds: float = Field(default=0.0, ge=0.0)

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def succeeded(self) -> bool:
        return self.error is None


class SyncRunReport(BaseModel):
    """Aggregate outcome of one pass over all enabled providers.

    ``exit_code`` is 0 when the control flow completed (even with isolated
    document or provider failures), 1 when it could not, and 130 when the
    run was cancelled.
    """

    model_config = ConfigDict(frozen=True)

    run_id: str
    started_at: datetime
    finished_at: datetime
    providers: list[ProviderSyncReport] = Field(default_factory=list)
    exit_code: int = 0
    error: str | None = None

    @property
    def total_indexed(self) -> int:
        return sum(p.indexed for p in self.providers)

    @property
    def total_removed(self) -> int:
        return sum(p.removed for p in self.providers)

    @property
    def total_skipped_unchanged(self) -> int:
        return sum(p.skipped_unchanged for p in self.providers)

    @property
    def failures(self) -> list[DocumentFailure]:
        return [f for p in self.providers for f in p.failures]

    @property
    def failed_providers(self) -> list[ProviderSyncReport]:
        return [p for p in self.providers if not p.succeeded]
