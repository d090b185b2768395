"""Similarity search — clamp, filter, rank by cosine distance."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

from fundrag.embeddings.base import EmbeddingProvider
from fundrag.errors import ValidationError
from fundrag.store.base import DocumentStore
from fundrag.store.schemas import ChunkSearchResult, SearchFilters

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10
MAX_LIMIT = 50
DEFAULT_RECENT_LIMIT = 6
MAX_RECENT_LIMIT = 20


def clamp(value: int | None, default: int, lower: int, upper: int) -> int:
    """Return ``value`` (or ``default`` when unset) forced into ``[lower, upper]``."""
    if value is None:
        value = default
    return max(lower, min(int(value), upper))


def resolve_embedding(
    provider: EmbeddingProvider,
    query: str | None = None,
    embedding: Sequence[float] | None = None,
) -> list[float]:
    """Return the caller's embedding, or embed ``query`` when none was given.

    Raises:
        ValidationError: neither a non-empty embedding nor a query was supplied.
    """
    if embedding:
        return [float(v) for v in embedding]
    if query and query.strip():
        return provider.embed(query)
    raise ValidationError("Provide either a query or an embedding")


class SimilaritySearch:
    """Rank stored chunks against a query embedding."""

    def __init__(self, store: DocumentStore):
        self.store = store

    def search(
        self,
        embedding: Sequence[float],
        fund_id: str | None = None,
        strategy_id: str | None = None,
        doc_types: Sequence[str] | None = None,
        min_uploaded_at: datetime | None = None,
        limit: int | None = None,
    ) -> list[ChunkSearchResult]:
        """Return the closest chunks, most similar first.

        ``limit`` defaults to 10 and is clamped to ``[1, 50]``. Filters are
        combined with AND; ``doc_types`` matches any of its values and
        ``min_uploaded_at`` is inclusive.

        Raises:
            ValidationError: ``embedding`` is empty or has the wrong length.
        """
        if not embedding:
            raise ValidationError("Query embedding is required")
        if len(embedding) != self.store.dimension:
            raise ValidationError(
                f"Query embedding must have {self.store.dimension} dimensions",
                details={"received": len(embedding)},
            )

        filters = SearchFilters(
            fund_id=fund_id or None,
            strategy_id=strategy_id or None,
            doc_types=tuple(doc_types or ()),
            min_uploaded_at=min_uploaded_at,
        )
        k = clamp(limit, DEFAULT_LIMIT, 1, MAX_LIMIT)
        results = self.store.search_chunks(embedding, filters, k)

        logger.info(
            "Search returned %d/%d chunks (fund=%s, doc_types=%s)",
            len(results),
            k,
            fund_id,
            list(filters.doc_types),
        )
        return results

    def recent_chunks(self, fund_id: str, limit: int | None = None) -> list[ChunkSearchResult]:
        """Return chunks from the fund's most recently uploaded documents.

        ``limit`` is clamped to ``[1, 20]``.
        """
        k = clamp(limit, DEFAULT_RECENT_LIMIT, 1, MAX_RECENT_LIMIT)
        return self.store.recent_chunks(fund_id, k)
