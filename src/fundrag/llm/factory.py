"""LLM provider factory — registry and lazy import, no instance cache."""

from __future__ import annotations

import importlib
import logging
from typing import Any

from fundrag.config import HttpSettings, LLMSettings
from fundrag.errors import ConfigurationError
from fundrag.llm.base import LLMProvider

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Provider registry: (provider_key, module_path, class_name, fixed kwargs)
# ---------------------------------------------------------------------------

_PROVIDER_REGISTRY: list[tuple[str, str, str, dict[str, Any]]] = [
    ("openai", "fundrag.llm.openai_compatible", "OpenAICompatibleLLMProvider", {"provider": "openai"}),
    (
        "fireworks",
        "fundrag.llm.openai_compatible",
        "OpenAICompatibleLLMProvider",
        {"provider": "fireworks"},
    ),
    ("anthropic", "fundrag.llm.anthropic_provider", "AnthropicLLMProvider", {}),
    ("ollama", "fundrag.llm.ollama_provider", "OllamaLLMProvider", {}),
]


def get_llm_provider(provider: str = "openai", **kwargs: Any) -> LLMProvider:
    """Construct an LLM provider by name.

    Args:
        provider: One of ``openai``, ``fireworks``, ``anthropic``, ``ollama``.
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
            logger.info("LLM provider ready: %s (%s)", key, instance.model)
            return instance

    raise ConfigurationError(
        f"Unknown LLM provider '{provider}'. Available: {available_providers()}"
    )


def build_llm_provider(settings: LLMSettings, http: HttpSettings | None = None) -> LLMProvider:
    """Construct the configured chat-completion provider."""
    http = http or HttpSettings()
    return get_llm_provider(
        settings.provider,
        model=settings.model,
        temperature=settings.temperature,
        max_tokens=settings.max_tokens,
        timeout=http.timeout_seconds,
        max_retries=http.max_retries,
    )


def available_providers() -> list[str]:
    """Return names of registered LLM providers."""
    return [k for k, _, _, _ in _PROVIDER_REGISTRY]
