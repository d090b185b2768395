"""Abstract base class for all chunkers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator

from fundrag.chunking.schemas import Chunk


class BaseChunker(ABC):
    """Interface for document chunking strategies."""

    @abstractmethod
    def chunk(self, text: str) -> Iterator[Chunk]:
        """Split text into chunks.

        Args:
            text: Full document text.

        Yields:
            ``Chunk`` objects in source order, indexed from 0.
        """

    @classmethod
    def strategy_name(cls) -> str:
        """Return human-readable strategy name."""
        return cls.__name__
