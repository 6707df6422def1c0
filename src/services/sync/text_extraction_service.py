"""Extension-based dispatch to text extractors.

The extension map is built once, at construction, from the extractors in
registration order and is read-only afterwards.  Extensions are normalized
to lower case with a single leading dot, so ``"PDF"``, ``".pdf"`` and
``".Pdf"`` are the same key.  On a collision the first-registered extractor
keeps the extension and the collision is logged as a warning.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import PurePosixPath
from types import MappingProxyType
from typing import TYPE_CHECKING, BinaryIO

import structlog

from src.utils.errors import ExtractionError, UnsupportedFormatError
from src.utils.mime_types import normalize_extension

if TYPE_CHECKING:
    from src.interfaces.text_extractor import ITextExtractor

logger = structlog.get_logger(logger_name=__name__)


class TextExtractionService:
    """Routes a document to the extractor registered for its extension.

    Parameters
    ----------
    extractors:
        Extractors in priority order.  Earlier entries win extension
        collisions.
    """

    def __init__(self, extractors: Iterable[ITextExtractor]) -> None:
        mapping: dict[str, ITextExtractor] = {}
        for extractor in extractors:
            for raw_ext in extractor.supported_extensions:
                ext = normalize_extension(raw_ext)
                if not ext:
                    continue
                existing = mapping.get(ext)
                if existing is not None:
                    if existing is not extractor:
                        logger.warning(
                            "extractor_extension_collision",
                            extension=ext,
                            kept=existing.get_extractor_name(),
                            ignored=extractor.get_extractor_name(),
                        )
                    continue
                mapping[ext] = extractor
        self._extractors = MappingProxyType(mapping)
        logger.info("text_extraction_ready", extensions=self.get_supported_extensions())

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def extract(self, stream: BinaryIO, filename: str) -> str:
        """Extract text from *stream* using the extractor for *filename*.

        Raises
        ------
        UnsupportedFormatError
            If *filename* has no extension or no extractor handles it.
        ExtractionError
            If the extractor fails.  Unexpected extractor exceptions are
            wrapped so callers only deal with the domain hierarchy.
        """
        extractor = self.get_extractor(filename)
        if extractor is None:
            ext = _extension_of(filename)
            reason = "has no file extension" if not ext else f"has unsupported extension {ext}"
            raise UnsupportedFormatError(message=f"{filename} {reason}")

        try:
            return await extractor.extract_text(stream, filename)
        except ExtractionError:
            raise
        except Exception as exc:
            raise ExtractionError(
                message=f"{extractor.get_extractor_name()} failed on {filename}: {exc}"
            ) from exc

    def get_extractor(self, filename: str) -> ITextExtractor | None:
        ext = _extension_of(filename)
        if not ext:
            return None
        return self._extractors.get(ext)

    def is_supported(self, filename: str) -> bool:
        return self.get_extractor(filename) is not None

    def get_supported_extensions(self) -> list[str]:
        """Return every registered extension, sorted."""
        return sorted(self._extractors)


def _extension_of(filename: str) -> str:
    return normalize_extension(PurePosixPath(filename.replace("\\", "/")).suffix)
