"""Plain-text extractor for text-based formats (Markdown, CSV, JSON, code...).

Decodes the raw bytes as UTF-8.  A UTF-8 or UTF-16 byte-order mark selects
the matching codec; undecodable bytes are replaced rather than failing the
document, since a few stray bytes should not keep an otherwise readable
file out of the index.
"""

from __future__ import annotations

import codecs
from typing import BinaryIO

import structlog

from src.interfaces.text_extractor import ITextExtractor
from src.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)

_SUPPORTED_EXTENSIONS = frozenset(
    {
        ".txt",
        ".md",
        ".markdown",
        ".csv",
        ".log",
        ".json",
        ".xml",
        ".yaml",
        ".yml",
        ".html",
        ".htm",
        ".css",
        ".js",
        ".ts",
        ".sql",
        ".sh",
        ".bat",
        ".ps1",
    }
)

_BOMS: list[tuple[bytes, str]] = [
    (codecs.BOM_UTF8, "utf-8"),
    (codecs.BOM_UTF16_LE, "utf-16-le"),
    (codecs.BOM_UTF16_BE, "utf-16-be"),
]


class PlainTextExtractor(ITextExtractor):
    """Returns the decoded contents of text files unchanged."""

    @property
    def supported_extensions(self) -> frozenset[str]:
        return _SUPPORTED_EXTENSIONS

    async def extract_text(self, stream: BinaryIO, filename: str) -> str:
        try:
            data = stream.read()
        except OSError as exc:
            raise ExtractionError(message=f"Failed to read {filename}: {exc}") from exc

        text = _decode(data)
        logger.debug("plain_text_extracted", filename=filename, length=len(text))
        return text


def _decode(data: bytes) -> str:
    for bom, encoding in _BOMS:
        if data.startswith(bom):
            return data[len(bom) :].decode(encoding, errors="replace")
    return data.decode("utf-8", errors="replace")
