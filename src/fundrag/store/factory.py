"""Document store factory — registry and lazy import, no instance cache."""

from __future__ import annotations

import importlib
import logging
from typing import Any

from fundrag.config import StoreSettings
from fundrag.errors import ConfigurationError
from fundrag.store.base import DocumentStore

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Store registry: (store_key, module_path, class_name)
# ---------------------------------------------------------------------------

_STORE_REGISTRY: list[tuple[str, str, str]] = [
    ("memory", "fundrag.store.memory_store", "MemoryStore"),
    ("pgvector", "fundrag.store.pgvector_store", "PgVectorStore"),
]


def get_document_store(backend: str = "pgvector", **kwargs: Any) -> DocumentStore:
    """Construct a document store by name.

    Args:
        backend: One of ``memory``, ``pgvector``.
        **kwargs: Passed to the store constructor.
    """
    key = backend.strip().lower()

    for reg_key, module_path, cls_name in _STORE_REGISTRY:
        if reg_key == key:
            mod = importlib.import_module(module_path)
            cls = getattr(mod, cls_name)
            instance = cls(**kwargs)
            logger.info("Document store ready: %s", instance.store_name())
            return instance

    raise ConfigurationError(
        f"Unknown document store '{backend}'. Available: {available_stores()}"
    )


def build_store(settings: StoreSettings, dimension: int) -> DocumentStore:
    """Construct the configured store for embeddings of ``dimension``."""
    if settings.backend.strip().lower() == "pgvector":
        if not settings.database_url:
            raise ConfigurationError("pgvector store requires DATABASE_URL to be set")
        return get_document_store(
            "pgvector", database_url=settings.database_url, dimension=dimension
        )
    return get_document_store(settings.backend, dimension=dimension)


def available_stores() -> list[str]:
    """Return names of registered document stores."""
    return [k for k, _, _ in _STORE_REGISTRY]
