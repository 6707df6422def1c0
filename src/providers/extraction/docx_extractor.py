"""DOCX text extractor using python-docx.

Returns the document's non-blank body paragraphs joined by newlines.  Table
cell paragraphs are appended after the body, row by row.  A document with an
empty body yields ``""``.  Parsing runs in a worker thread via
``asyncio.to_thread`` so a large document does not stall the event loop.
"""

from __future__ import annotations

import asyncio
import io
import zipfile
from typing import BinaryIO

import docx
import structlog
from docx.opc.exceptions import PackageNotFoundError

from src.interfaces.text_extractor import ITextExtractor
from src.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)


class DocxExtractor(ITextExtractor):
    """Extracts paragraph text from Word ``.docx`` files."""

    @property
    def supported_extensions(self) -> frozenset[str]:
        return frozenset({".docx"})

    # -- Sync helpers (executed via asyncio.to_thread) -------------------------

    @staticmethod
    def _extract_lines_sync(data: bytes, filename: str) -> list[str]:
        try:
            document = docx.Document(io.BytesIO(data))
        except (PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError) as exc:
            raise ExtractionError(message=f"Cannot open DOCX {filename}: {exc}") from exc

        lines = [p.text for p in document.paragraphs if p.text and p.text.strip()]
        for table in document.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if cells:
                    lines.append("\t".join(cells))
        return lines

    # -- Public API -------------------------------------------------------------

    async def extract_text(self, stream: BinaryIO, filename: str) -> str:
        data = stream.read()
        if not data:
            return ""

        lines = await asyncio.to_thread(self._extract_lines_sync, data, filename)
        text = "\n".join(lines)
        logger.debug("docx_text_extracted", filename=filename, paragraphs=len(lines), length=len(text))
        return text
