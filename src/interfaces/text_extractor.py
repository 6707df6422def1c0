"""Abstract base class for per-format text extractors.

An extractor turns a document's byte stream into plain text.  Each
implementation declares the extensions it handles; the
:class:`~src.services.sync.text_extraction_service.TextExtractionService`
dispatches on the file extension.

Extraction must be deterministic: the same bytes always yield the same
text.  Empty or structurally empty documents yield ``""``, not an error.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import BinaryIO


# Concrete implementations:
#   PlainTextExtractor -- .txt .md .csv .json .yaml .html ... (decoded as UTF-8)
#   DocxExtractor      -- .docx via python-docx
#   PdfExtractor       -- .pdf via PyMuPDF
#   OdtExtractor       -- .odt via zipfile + ElementTree
#   RtfExtractor       -- .rtf via striprtf
# Located in: src/providers/extraction/
class ITextExtractor(ABC):
    """Contract for turning document bytes into plain text."""

    @property
    @abstractmethod
    def supported_extensions(self) -> frozenset[str]:
        """Extensions handled by this extractor, lower-case with leading dot."""

    @abstractmethod
    async def extract_text(self, stream: BinaryIO, filename: str) -> str:
        """Extract plain text from *stream*.

        Parameters
        ----------
        stream:
            Readable binary stream positioned at the start of the document.
            The extractor does not close it.
        filename:
            Original file name, used for diagnostics.

        Returns
        -------
        str
            The extracted text, possibly empty.

        Raises
        ------
        src.utils.errors.ExtractionError
            If the bytes cannot be parsed as the declared format.
        """

    def get_extractor_name(self) -> str:
        return type(self).__name__
