"""Extension to MIME type mapping for document providers.

Providers that do not receive a MIME type from their backend (local files,
S3 listings) derive one from the file extension.  Unknown extensions map to
``application/octet-stream``.
"""

from __future__ import annotations

from pathlib import PurePosixPath

DEFAULT_MIME_TYPE = "application/octet-stream"

_MIME_TYPES: dict[str, str] = {
    # Office documents
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".doc": "application/msword",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".xls": "application/vnd.ms-excel",
    ".pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    ".ppt": "application/vnd.ms-powerpoint",
    ".odt": "application/vnd.oasis.opendocument.text",
    ".rtf": "application/rtf",
    ".pdf": "application/pdf",
    # Text formats
    ".txt": "text/plain",
    ".md": "text/markdown",
    ".markdown": "text/markdown",
    ".csv": "text/csv",
    ".log": "text/plain",
    ".json": "application/json",
    ".xml": "application/xml",
    ".yaml": "application/x-yaml",
    ".yml": "application/x-yaml",
    ".html": "text/html",
    ".htm": "text/html",
    ".css": "text/css",
    # Source code / scripts
    ".sql": "application/sql",
    ".sh": "application/x-sh",
    ".bat": "application/x-msdos-program",
    ".ps1": "text/plain",
    ".js": "text/javascript",
    ".ts": "text/typescript",
    ".cs": "text/plain",
    ".py": "text/x-python",
}


def get_mime_type(filename: str) -> str:
    """Return the MIME type for *filename* based on its extension."""
    suffix = PurePosixPath(filename.replace("\\", "/")).suffix.lower()
    return _MIME_TYPES.get(suffix, DEFAULT_MIME_TYPE)


def normalize_extension(extension: str) -> str:
    """Return *extension* lower-cased with exactly one leading dot.

    ``"PDF"``, ``".pdf"`` and ``" .Pdf "`` all become ``".pdf"``; blank
    input becomes ``""``.
    """
    cleaned = extension.strip().lower()
    if not cleaned:
        return ""
    return "." + cleaned.lstrip(".")
