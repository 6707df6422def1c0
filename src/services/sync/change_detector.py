"""Change detection: diff a fresh provider listing against tracked state.

A listed document is (re-)indexed when any of the following holds:

* no tracking record exists for it;
* its etag differs from the tracked etag;
* its last-modified time differs from the tracked one;
* the provider supplies neither an etag nor a last-modified time (nothing
  to compare, so it is always treated as changed);
* a forced full re-index was requested.

Tracked documents absent from the listing are orphans and are scheduled for
removal.  The two change signals are combined with OR semantics: if only one
of them moved, the document is still re-indexed.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from src.models.documents import ProviderDocument
from src.models.sync import FileTrackingRecord


@dataclass(frozen=True)
class SyncPlan:
    """The work derived from one provider listing."""

    to_index: list[ProviderDocument] = field(default_factory=list)
    unchanged: list[ProviderDocument] = field(default_factory=list)
    to_remove: list[FileTrackingRecord] = field(default_factory=list)


class ChangeDetector:
    """Stateless planner mapping (listing, tracked records) to a :class:`SyncPlan`."""

    def plan(
        self,
        remote_documents: Iterable[ProviderDocument],
        tracked_records: Iterable[FileTrackingRecord],
        force: bool = False,
    ) -> SyncPlan:
        tracked_by_id = {record.doc_id: record for record in tracked_records}

        to_index: list[ProviderDocument] = []
        unchanged: list[ProviderDocument] = []
        seen: set[str] = set()

        for document in remote_documents:
            if document.document_id in seen:
                continue
            seen.add(document.document_id)
            tracked = tracked_by_id.get(document.document_id)
            if force or self.has_changed(document, tracked):
                to_index.append(document)
            else:
                unchanged.append(document)

        to_remove = [record for doc_id, record in tracked_by_id.items() if doc_id not in seen]
        return SyncPlan(to_index=to_index, unchanged=unchanged, to_remove=to_remove)

    @staticmethod
    def has_changed(document: ProviderDocument, tracked: FileTrackingRecord | None) -> bool:
        if tracked is None:
            return True
        if document.etag is None and document.last_modified is None:
            return True
        if document.etag != tracked.etag:
            return True
        return _normalize(document.last_modified) != _normalize(tracked.last_modified)


def _normalize(value: datetime | None) -> datetime | None:
    # Stores may round-trip timestamps without tzinfo; compare as UTC.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)
