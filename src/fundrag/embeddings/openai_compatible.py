"""OpenAI-compatible embedding providers — OpenAI, Groq, Together, Fireworks.

All four speak the OpenAI ``/embeddings`` protocol, so one class drives them
through the ``openai`` SDK with a per-provider ``base_url`` and credential.
The SDK applies the request timeout and retries transient failures
(connection errors, 408/409/429, 5xx); authentication errors are not retried.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Sequence
from typing import Any

import openai

from fundrag.config import require_env
from fundrag.embeddings.base import EmbeddingProvider
from fundrag.errors import ConfigurationError, EmbeddingProviderError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "text-embedding-3-small"
DEFAULT_DIM = 768

# provider -> (base_url, credential env var, model override env var)
ENDPOINTS: dict[str, tuple[str, str, str | None]] = {
    "openai": ("https://api.openai.com/v1", "OPENAI_API_KEY", None),
    "groq": ("https://api.groq.com/openai/v1", "GROQ_API_KEY", None),
    "together": ("https://api.together.xyz/v1", "TOGETHER_API_KEY", "TOGETHER_EMBED_MODEL"),
    "fireworks": (
        "https://api.fireworks.ai/inference/v1",
        "FIREWORKS_API_KEY",
        "FIREWORKS_EMBED_MODEL",
    ),
}


class OpenAICompatibleEmbeddingProvider(EmbeddingProvider):
    """Embed text via an OpenAI-compatible Embeddings API."""

    def __init__(
        self,
        provider: str = "openai",
        model: str = DEFAULT_MODEL,
        dimension: int = DEFAULT_DIM,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float = 30.0,
        max_retries: int = 3,
        client: Any | None = None,
    ):
        super().__init__(dimension)
        key = provider.lower()
        if key not in ENDPOINTS:
            raise ConfigurationError(
                f"Unsupported OpenAI-compatible embedding provider: {provider}"
            )

        default_url, key_env, model_env = ENDPOINTS[key]
        self.provider = key
        self.model = (os.getenv(model_env) if model_env else None) or model

        if client is not None:
            self._client = client
        else:
            self._client = openai.OpenAI(
                api_key=api_key or require_env(key_env, f"{key} embeddings"),
                base_url=base_url or default_url,
                timeout=timeout,
                max_retries=max_retries,
            )

    def _embed(self, text: str) -> Sequence[float]:
        try:
            resp = self._client.embeddings.create(model=self.model, input=text)
        except openai.APIError as exc:
            raise EmbeddingProviderError(
                f"{self.provider} embedding request failed: {exc}"
            ) from exc

        data = getattr(resp, "data", None) or []
        vector = getattr(data[0], "embedding", None) if data else None
        if not vector or not isinstance(vector, list):
            raise EmbeddingProviderError(
                f"{self.provider} embedding response was missing embedding data"
            )
        return vector
