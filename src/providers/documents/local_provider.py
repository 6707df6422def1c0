"""Local filesystem document provider.

Serves documents from a directory tree.  Document ids are derived from the
path relative to the root, so editing a file changes its etag but never its
id; moving or renaming a file makes it a new document (and the old id an
orphan).

    document_id = "local_" + sha256(relative_path).hexdigest()[:16]
    etag        = '"<mtime_ns>-<size>"'

Relative paths always use ``/`` separators so ids are identical across
operating systems.  Blocking filesystem calls run in worker threads via
``asyncio.to_thread``.
"""

from __future__ import annotations

import asyncio
import hashlib
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO

import structlog

from src.config.provider_settings import LocalProviderSettings
from src.interfaces.document_provider import IDocumentProvider
from src.models.documents import ProviderDocument, ProviderMetadata
from src.utils.errors import DocumentNotFoundError, ProviderUnavailableError
from src.utils.mime_types import get_mime_type

logger = structlog.get_logger(logger_name=__name__)

# Office lock/temp files ("~$report.docx") are never documents.
_TEMP_FILE_PREFIX = "~$"


def generate_document_id(relative_path: str) -> str:
    """Return the stable id for a file at *relative_path* under the root."""
    normalized = relative_path.replace("\\", "/")
    digest = hashlib.sha256(normalized.encode("utf-8")).hexdigest()
    return f"local_{digest[:16]}"


def generate_etag(stat: os.stat_result) -> str:
    return f'"{stat.st_mtime_ns}-{stat.st_size}"'


class LocalProvider(IDocumentProvider):
    """Document provider backed by a local directory tree."""

    def __init__(self, settings: LocalProviderSettings) -> None:
        self._settings = settings
        self._root = Path(settings.root_path).expanduser()
        self._extensions = frozenset(settings.file_extensions)
        self._exclude_patterns = [p.lower() for p in settings.exclude_patterns if p.strip()]
        # id -> absolute path from the most recent listing.
        self._paths: dict[str, Path] = {}

        if not self._root.exists():
            logger.warning("local_root_missing_creating", root=str(self._root))
            self._root.mkdir(parents=True, exist_ok=True)

        logger.info("local_provider_initialized", name=settings.name, root=str(self._root))

    # ------------------------------------------------------------------
    # IDocumentProvider implementation
    # ------------------------------------------------------------------

    def get_provider_type(self) -> str:
        return LocalProviderSettings.provider_type

    def get_provider_name(self) -> str:
        return self._settings.name

    def is_enabled(self) -> bool:
        return self._settings.enabled

    async def list_documents(self) -> list[ProviderDocument]:
        try:
            documents = await asyncio.to_thread(self._scan)
        except OSError as exc:
            raise ProviderUnavailableError(
                message=f"Failed to list {self._root}: {exc}",
                provider_name=self.describe(),
            ) from exc

        self._paths = {
            doc.document_id: self._root / doc.relative_path
            for doc in documents
            if doc.relative_path is not None
        }
        logger.info("local_documents_listed", provider=self.describe(), count=len(documents))
        return documents

    async def download_document(self, document_id: str) -> BinaryIO:
        path = self._paths.get(document_id)
        if path is None or not path.is_file():
            try:
                path = await asyncio.to_thread(self._find_path, document_id)
            except OSError as exc:
                raise ProviderUnavailableError(
                    message=f"Failed to scan {self._root}: {exc}",
                    provider_name=self.describe(),
                ) from exc
        if path is None:
            raise DocumentNotFoundError(
                message=f"Document {document_id} not found under {self._root}",
                provider_name=self.describe(),
            )

        try:
            stream = open(path, "rb")  # noqa: SIM115 -- caller owns the stream
        except FileNotFoundError as exc:
            raise DocumentNotFoundError(
                message=f"Document {document_id} disappeared: {path}",
                provider_name=self.describe(),
            ) from exc
        except OSError as exc:
            raise ProviderUnavailableError(
                message=f"Cannot open {path}: {exc}",
                provider_name=self.describe(),
            ) from exc

        logger.debug("local_document_opened", document_id=document_id, path=str(path))
        return stream

    async def get_metadata(self) -> ProviderMetadata:
        return ProviderMetadata(
            provider_type=self.get_provider_type(),
            provider_name=self.get_provider_name(),
            is_enabled=self.is_enabled(),
            registered_at=datetime.now(timezone.utc),
            additional_info={
                "RootPath": str(self._root),
                "Recursive": str(self._settings.recursive),
                "Extensions": ", ".join(self._settings.file_extensions),
            },
        )

    # ------------------------------------------------------------------
    # Filesystem scanning (runs in a worker thread)
    # ------------------------------------------------------------------

    def _scan(self) -> list[ProviderDocument]:
        documents: list[ProviderDocument] = []
        for path in self._iter_files():
            relative = path.relative_to(self._root).as_posix()
            if not self._matches(path.name, relative):
                continue
            try:
                stat = path.stat()
            except FileNotFoundError:
                continue
            documents.append(
                ProviderDocument(
                    document_id=generate_document_id(relative),
                    filename=path.name,
                    provider_type=self.get_provider_type(),
                    provider_name=self.get_provider_name(),
                    etag=generate_etag(stat),
                    last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                    size_bytes=stat.st_size,
                    mime_type=get_mime_type(path.name),
                    relative_path=relative,
                )
            )
        return documents

    def _find_path(self, document_id: str) -> Path | None:
        for path in self._iter_files():
            relative = path.relative_to(self._root).as_posix()
            if generate_document_id(relative) == document_id:
                return path
        return None

    def _iter_files(self) -> list[Path]:
        if not self._root.is_dir():
            raise FileNotFoundError(f"Root path {self._root} is not a directory")
        candidates = self._root.rglob("*") if self._settings.recursive else self._root.iterdir()
        return sorted(p for p in candidates if p.is_file())

    def _matches(self, filename: str, relative: str) -> bool:
        if filename.startswith(_TEMP_FILE_PREFIX):
            return False
        if Path(filename).suffix.lower() not in self._extensions:
            return False
        lowered = relative.lower()
        return not any(pattern in lowered for pattern in self._exclude_patterns)
