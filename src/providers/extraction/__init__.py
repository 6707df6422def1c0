"""Text extractor implementations.

Each extractor handles one family of file formats and is registered with
the :class:`~src.services.sync.text_extraction_service.TextExtractionService`
in the order returned by :func:`default_extractors`.  When two extractors
claim the same extension the first registration wins.
"""

from src.providers.extraction.docx_extractor import DocxExtractor
from src.providers.extraction.odt_extractor import OdtExtractor
from src.providers.extraction.pdf_extractor import PdfExtractor
from src.providers.extraction.plain_text_extractor import PlainTextExtractor
from src.providers.extraction.rtf_extractor import RtfExtractor


def default_extractors() -> list:
    """Return the standard extractor set in registration order."""
    return [PlainTextExtractor(), DocxExtractor(), PdfExtractor(), OdtExtractor(), RtfExtractor()]


__all__ = [
    "DocxExtractor",
    "OdtExtractor",
    "PdfExtractor",
    "PlainTextExtractor",
    "RtfExtractor",
    "default_extractors",
]
