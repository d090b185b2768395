"""Data models for chunks."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Chunk:
    """A contiguous slice of a document's text with its source offsets."""

    text: str
    chunk_index: int
    start_offset: int
    end_offset: int
    slide_number: int | None = None
