"""Abstract base class for embedding providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from fundrag.errors import EmbeddingProviderError, ValidationError


def align_dimension(vector: Sequence[float], dimension: int) -> list[float]:
    """Truncate or zero-pad a vector to exactly ``dimension`` entries."""
    values = [float(v) for v in vector]
    if len(values) >= dimension:
        return values[:dimension]
    return values + [0.0] * (dimension - len(values))


class EmbeddingProvider(ABC):
    """Interface for text embedding models.

    Subclasses implement ``_embed`` for a single upstream call. ``embed``
    rejects blank input before any network traffic and aligns every vector
    to the configured dimension so it always fits the storage column.
    """

    def __init__(self, dimension: int):
        if dimension <= 0:
            raise ValueError(f"dimension must be positive, got {dimension}")
        self._dimension = dimension

    def embed(self, text: str) -> list[float]:
        """Embed a single string.

        Raises:
            ValidationError: ``text`` is empty or whitespace.
            EmbeddingProviderError: the upstream call failed or returned
                no usable vector.
        """
        if not text or not text.strip():
            raise ValidationError("Input text is required for embedding generation")

        vector = self._embed(text)
        if not vector:
            raise EmbeddingProviderError(
                f"{self.provider_name()} returned an empty embedding"
            )
        return align_dimension(vector, self._dimension)

    @abstractmethod
    def _embed(self, text: str) -> Sequence[float]:
        """Call the upstream API for one non-blank string."""

    @property
    def dimension(self) -> int:
        """Return the embedding dimensionality."""
        return self._dimension

    @classmethod
    def provider_name(cls) -> str:
        """Return human-readable provider name."""
        return cls.__name__
