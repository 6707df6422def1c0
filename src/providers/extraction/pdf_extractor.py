"""PDF text extractor using PyMuPDF (fitz).

Extracts text page by page, appending a blank line after each page, and
trims the result.  The MuPDF work runs in a worker thread via
``asyncio.to_thread``; a module lock keeps MuPDF on one thread at a time
because its global context is not thread safe.
"""

from __future__ import annotations

import asyncio
import threading
from typing import BinaryIO

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog

from src.interfaces.text_extractor import ITextExtractor
from src.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)

_MUPDF_LOCK = threading.Lock()


class PdfExtractor(ITextExtractor):
    """Extracts the text layer of PDF documents."""

    @property
    def supported_extensions(self) -> frozenset[str]:
        return frozenset({".pdf"})

    # -- Sync helpers (executed via asyncio.to_thread) -------------------------

    @staticmethod
    def _extract_pages_sync(data: bytes, filename: str) -> list[str]:
        with _MUPDF_LOCK:
            try:
                doc = fitz.open(stream=data, filetype="pdf")
            except (fitz.FileDataError, RuntimeError, ValueError) as exc:
                raise ExtractionError(message=f"Cannot open PDF {filename}: {exc}") from exc

            try:
                return [doc.load_page(i).get_text("text") for i in range(doc.page_count)]
            except RuntimeError as exc:
                raise ExtractionError(message=f"Failed to read PDF {filename}: {exc}") from exc
            finally:
                doc.close()

    # -- Public API -------------------------------------------------------------

    async def extract_text(self, stream: BinaryIO, filename: str) -> str:
        data = stream.read()
        if not data:
            return ""

        pages = await asyncio.to_thread(self._extract_pages_sync, data, filename)
        text = "".join(f"{page}\n\n" for page in pages).strip()
        logger.debug("pdf_text_extracted", filename=filename, pages=len(pages), length=len(text))
        return text
