"""Embedding provider factory — registry and lazy import.

Providers are constructed explicitly and handed to their consumers; the
factory keeps no instance cache, so the composing application owns each
client's lifecycle.
"""

from __future__ import annotations

import importlib
import logging
from typing import Any

from fundrag.config import EmbeddingSettings, HttpSettings
from fundrag.embeddings.base import EmbeddingProvider
from fundrag.errors import ConfigurationError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Provider registry: (provider_key, module_path, class_name, fixed kwargs)
# ---------------------------------------------------------------------------

_OPENAI_COMPAT = "fundrag.embeddings.openai_compatible"

_PROVIDER_REGISTRY: list[tuple[str, str, str, dict[str, Any]]] = [
    ("openai", _OPENAI_COMPAT, "OpenAICompatibleEmbeddingProvider", {"provider": "openai"}),
    ("groq", _OPENAI_COMPAT, "OpenAICompatibleEmbeddingProvider", {"provider": "groq"}),
    ("together", _OPENAI_COMPAT, "OpenAICompatibleEmbeddingProvider", {"provider": "together"}),
    ("fireworks", _OPENAI_COMPAT, "OpenAICompatibleEmbeddingProvider", {"provider": "fireworks"}),
    ("google", "fundrag.embeddings.google_provider", "GoogleEmbeddingProvider", {}),
    ("ollama", "fundrag.embeddings.ollama_provider", "OllamaEmbeddingProvider", {}),
]


def get_embedding_provider(provider: str = "openai", **kwargs: Any) -> EmbeddingProvider:
    """Construct an embedding provider by name.

    Args:
        provider: One of the keys returned by ``available_providers()``.
        **kwargs: Passed to the provider constructor.

    Raises:
        ConfigurationError: unknown provider or missing credential.
    """
    key = provider.strip().lower()

    for reg_key, module_path, cls_name, fixed in _PROVIDER_REGISTRY:
        if reg_key == key:
            mod = importlib.import_module(module_path)
            cls = getattr(mod, cls_name)
            instance = cls(**fixed, **kwargs)
            logger.info("Embedding provider ready: %s", key)
            return instance

    raise ConfigurationError(
        f"Unknown embedding provider '{provider}'. Available: {available_providers()}"
    )


def build_embedding_provider(
    settings: EmbeddingSettings,
    http: HttpSettings | None = None,
) -> EmbeddingProvider:
    """Construct the configured embedding provider."""
    http = http or HttpSettings()
    return get_embedding_provider(
        settings.provider,
        model=settings.model,
        dimension=settings.dimension,
        timeout=http.timeout_seconds,
        max_retries=http.max_retries,
    )


def available_providers() -> list[str]:
    """Return names of registered embedding providers."""
    return [k for k, _, _, _ in _PROVIDER_REGISTRY]
