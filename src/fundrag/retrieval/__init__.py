"""Retrieval — similarity search and time-series context."""

from fundrag.retrieval.context import Available, ContextRetriever, ContextResult, Unavailable
from fundrag.retrieval.search import SimilaritySearch, clamp, resolve_embedding

__all__ = [
    "Available",
    "ContextResult",
    "ContextRetriever",
    "SimilaritySearch",
    "Unavailable",
    "clamp",
    "resolve_embedding",
]
