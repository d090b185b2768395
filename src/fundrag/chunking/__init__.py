"""Chunking — overlapping fixed-size windows with offset bookkeeping."""

from fundrag.chunking.base import BaseChunker
from fundrag.chunking.schemas import Chunk
from fundrag.chunking.window_chunker import WindowChunker, chunk_text

__all__ = ["BaseChunker", "Chunk", "WindowChunker", "chunk_text"]
