"""OpenDocument Text (.odt) extractor.

An ``.odt`` file is a zip archive whose ``content.xml`` holds the body.
Paragraphs (``text:p``) and headings (``text:h``) are emitted one per line;
inside them ``text:s`` expands to ``c`` spaces (default 1), ``text:tab`` to a
tab and ``text:line-break`` to a newline.  Blank paragraphs are dropped.
"""

from __future__ import annotations

import asyncio
import io
import xml.etree.ElementTree as ET
import zipfile
from typing import BinaryIO

import structlog

from src.interfaces.text_extractor import ITextExtractor
from src.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)

_TEXT_NS = "urn:oasis:names:tc:opendocument:xmlns:text:1.0"
_OFFICE_NS = "urn:oasis:names:tc:opendocument:xmlns:office:1.0"

_PARAGRAPH_TAGS = frozenset({f"{{{_TEXT_NS}}}p", f"{{{_TEXT_NS}}}h"})
_SPACE_TAG = f"{{{_TEXT_NS}}}s"
_TAB_TAG = f"{{{_TEXT_NS}}}tab"
_LINE_BREAK_TAG = f"{{{_TEXT_NS}}}line-break"


class OdtExtractor(ITextExtractor):
    """Extracts paragraph text from OpenDocument Text files."""

    @property
    def supported_extensions(self) -> frozenset[str]:
        return frozenset({".odt"})

    async def extract_text(self, stream: BinaryIO, filename: str) -> str:
        data = stream.read()
        if not data:
            return ""

        try:
            with zipfile.ZipFile(io.BytesIO(data)) as archive:
                if "content.xml" not in archive.namelist():
                    raise ExtractionError(message=f"ODT file {filename} has no content.xml")
                content = archive.read("content.xml")
            root = ET.fromstring(content)
        except (zipfile.BadZipFile, ET.ParseError) as exc:
            raise ExtractionError(message=f"Cannot open ODT {filename}: {exc}") from exc

        body = root.find(f".//{{{_OFFICE_NS}}}text")
        if body is None:
            return ""

        lines: list[str] = []
        paragraphs = (e for e in body.iter() if e.tag in _PARAGRAPH_TAGS)
        for index, element in enumerate(paragraphs, start=1):
            paragraph = _element_text(element)
            if paragraph.strip():
                lines.append(paragraph)
            if index % 200 == 0:
                await asyncio.sleep(0)

        text = "\n".join(lines)
        logger.debug("odt_text_extracted", filename=filename, paragraphs=len(lines), length=len(text))
        return text


def _element_text(element: ET.Element) -> str:
    parts: list[str] = [element.text or ""]
    for child in element:
        if child.tag == _SPACE_TAG:
            parts.append(" " * _space_count(child))
        elif child.tag == _TAB_TAG:
            parts.append("\t")
        elif child.tag == _LINE_BREAK_TAG:
            parts.append("\n")
        elif child.tag not in _PARAGRAPH_TAGS:
            parts.append(_element_text(child))
        parts.append(child.tail or "")
    return "".join(parts)


def _space_count(element: ET.Element) -> int:
    raw = element.get(f"{{{_TEXT_NS}}}c")
    try:
        return max(int(raw), 1) if raw is not None else 1
    except ValueError:
        return 1
