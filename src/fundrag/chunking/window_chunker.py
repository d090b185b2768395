"""Fixed-size sliding-window chunker with character overlap.

Each window is ``[start, min(start + chunk_size, len(text)))`` and the next
window starts ``overlap`` characters before the previous one ended. The last
window always ends exactly at the end of the text.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator

from fundrag.chunking.base import BaseChunker
from fundrag.chunking.schemas import Chunk

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1200
DEFAULT_OVERLAP = 150


class WindowChunker(BaseChunker):
    """Split text into overlapping fixed-size character windows."""

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE, overlap: int = DEFAULT_OVERLAP):
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        if overlap < 0:
            raise ValueError(f"overlap must be non-negative, got {overlap}")
        if overlap >= chunk_size:
            raise ValueError(
                f"overlap ({overlap}) must be smaller than chunk_size ({chunk_size})"
            )
        self.chunk_size = chunk_size
        self.overlap = overlap

    def chunk(self, text: str) -> Iterator[Chunk]:
        if not text or not text.strip():
            return

        length = len(text)
        index = 0
        start = 0
        while start < length:
            end = min(start + self.chunk_size, length)
            yield Chunk(
                text=text[start:end],
                chunk_index=index,
                start_offset=start,
                end_offset=end,
            )
            index += 1
            if end == length:
                break
            start = end - self.overlap

        logger.debug("WindowChunker produced %d chunks from %d chars", index, length)


def chunk_text(
    text: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_OVERLAP,
) -> list[Chunk]:
    """Convenience wrapper returning a materialized list of window chunks."""
    return list(WindowChunker(chunk_size=chunk_size, overlap=overlap).chunk(text))
