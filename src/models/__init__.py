"""docsync domain models -- re-exports all public model classes.

Other parts of the codebase can import from ``src.models`` directly
(e.g. ``from src.models import ProviderDocument``) instead of reaching into
the individual submodules.

The models are organized across two submodules by concern:
    - documents.py -- what providers report (documents, metadata, probes)
    - sync.py      -- what the sync engine persists and reports
                      (tracking records, chunks, options, run reports)

If you add a new model class, remember to add it to ``__all__`` too.
"""

from __future__ import annotations

from src.models.documents import (
    ProviderDocument,
    ProviderMetadata,
    ProviderProbeDocument,
    ProviderProbeRequest,
    ProviderProbeResult,
)
from src.models.sync import (
    Chunk,
    ChunkRecord,
    DocumentFailure,
    FileTrackingRecord,
    ProviderSyncReport,
    SyncOptions,
    SyncRunReport,
)

__all__ = [
    "Chunk",
    "ChunkRecord",
    "DocumentFailure",
    "FileTrackingRecord",
    "ProviderDocument",
    "ProviderMetadata",
    "ProviderProbeDocument",
    "ProviderProbeRequest",
    "ProviderProbeResult",
    "ProviderSyncReport",
    "SyncOptions",
    "SyncRunReport",
]
