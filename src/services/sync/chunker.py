"""Fixed-size character chunking with overlapping windows.

Splits extracted document text into :class:`~src.models.sync.Chunk` objects
whose offsets index directly into the input string:

    chunk 0     covers [0, chunk_size)
    chunk i + 1 covers [end_i - overlap, end_i - overlap + chunk_size)

Every window is clamped to the text length, and iteration stops as soon as a
window reaches the end of the text.  The final chunk may be shorter than
``chunk_size``; it is never padded.

Because windows advance by exactly ``chunk_size - overlap`` characters,
taking the first ``chunk_size - overlap`` characters of every chunk but the
last, followed by the whole last chunk, reconstructs the input exactly.
"""

from __future__ import annotations

from collections.abc import Iterator

import structlog

from src.models.sync import Chunk
from src.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)


class TextChunker:
    """Splits text into overlapping fixed-size character windows.

    Parameters
    ----------
    chunk_size:
        Maximum characters per chunk (default 1000).
    overlap:
        Characters shared by consecutive chunks (default 200).  Must be
        smaller than *chunk_size*.

    Raises
    ------
    ConfigurationError
        If the size/overlap pair is invalid.  This is an operator error and
        is raised eagerly at construction time.
    """

    def __init__(self, chunk_size: int = 1000, overlap: int = 200) -> None:
        _validate(chunk_size, overlap)
        self._chunk_size = chunk_size
        self._overlap = overlap

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def overlap(self) -> int:
        return self._overlap

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def chunk(self, text: str) -> Iterator[Chunk]:
        """Return a fresh lazy sequence of chunks for *text*.

        Empty or whitespace-only input yields nothing.  Each call returns an
        independent generator, so the sequence can be restarted by calling
        again.
        """
        return iter_chunks(text, self._chunk_size, self._overlap)

    def chunk_list(self, text: str) -> list[Chunk]:
        """Materialize :meth:`chunk` and log a summary."""
        chunks = list(self.chunk(text))
        logger.debug(
            "chunking_complete",
            num_chunks=len(chunks),
            text_length=len(text),
            chunk_size=self._chunk_size,
            overlap=self._overlap,
        )
        return chunks


def iter_chunks(text: str, chunk_size: int, overlap: int) -> Iterator[Chunk]:
    """Yield overlapping chunks of *text*.

    Validation happens when this function is called, not when the first
    item is requested.
    """
    _validate(chunk_size, overlap)
    return _generate(text, chunk_size, overlap)


def _generate(text: str, chunk_size: int, overlap: int) -> Iterator[Chunk]:
    if not text or not text.strip():
        return

    length = len(text)
    start = 0
    chunk_num = 0
    while True:
        end = min(start + chunk_size, length)
        yield Chunk(chunk_num=chunk_num, char_start=start, char_end=end, text=text[start:end])
        if end >= length:
            return
        start = end - overlap
        chunk_num += 1


def _validate(chunk_size: int, overlap: int) -> None:
    if chunk_size <= 0:
        raise ConfigurationError(message=f"chunk_size must be positive, got {chunk_size}")
    if overlap < 0:
        raise ConfigurationError(message=f"overlap must not be negative, got {overlap}")
    if overlap >= chunk_size:
        raise ConfigurationError(
            message=f"overlap ({overlap}) must be smaller than chunk_size ({chunk_size})"
        )
