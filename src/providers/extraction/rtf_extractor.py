"""RTF text extractor using striprtf.

RTF control words are stripped, then whitespace is tidied: runs of spaces
and tabs collapse to one space, and three or more consecutive line breaks
collapse to a single blank line.
"""

from __future__ import annotations

import re
from typing import BinaryIO

import structlog
from striprtf.striprtf import rtf_to_text

from src.interfaces.text_extractor import ITextExtractor
from src.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)

_HORIZONTAL_WS = re.compile(r"[ \t\f\v]+")
_EXCESS_NEWLINES = re.compile(r"(?:\r?\n[ \t]*){3,}")


class RtfExtractor(ITextExtractor):
    """Extracts plain text from Rich Text Format documents."""

    @property
    def supported_extensions(self) -> frozenset[str]:
        return frozenset({".rtf"})

    async def extract_text(self, stream: BinaryIO, filename: str) -> str:
        data = stream.read()
        if not data:
            return ""

        # RTF is 7-bit ASCII with escapes for everything else; cp1252 is the
        # default code page for the few raw 8-bit bytes writers emit.
        raw = data.decode("cp1252", errors="replace")
        if not raw.lstrip().startswith("{\\rtf"):
            raise ExtractionError(message=f"{filename} is not an RTF document")

        try:
            text = rtf_to_text(raw, errors="replace")
        except (ValueError, IndexError) as exc:
            raise ExtractionError(message=f"Failed to parse RTF {filename}: {exc}") from exc

        text = _HORIZONTAL_WS.sub(" ", text)
        text = _EXCESS_NEWLINES.sub("\n\n", text).strip()
        logger.debug("rtf_text_extracted", filename=filename, length=len(text))
        return text
