"""Embedding providers — OpenAI-compatible, Google, Ollama."""

from fundrag.embeddings.base import EmbeddingProvider, align_dimension
from fundrag.embeddings.factory import (
    available_providers,
    build_embedding_provider,
    get_embedding_provider,
)

__all__ = [
    "EmbeddingProvider",
    "align_dimension",
    "available_providers",
    "build_embedding_provider",
    "get_embedding_provider",
]
