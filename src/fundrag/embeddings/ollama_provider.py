"""Ollama embedding provider — local-first, no API keys needed.

Uses the Ollama REST API (http://localhost:11434) with models like
``nomic-embed-text``, ``mxbai-embed-large``, etc.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import httpx

from fundrag.embeddings.base import EmbeddingProvider
from fundrag.errors import EmbeddingProviderError
from fundrag.http import post_json

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "nomic-embed-text"
DEFAULT_BASE_URL = "http://localhost:11434"
DEFAULT_DIM = 768


class OllamaEmbeddingProvider(EmbeddingProvider):
    """Embed text via a local Ollama server."""

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        dimension: int = DEFAULT_DIM,
        timeout: float = 60.0,
        max_retries: int = 3,
        client: httpx.Client | None = None,
    ):
        super().__init__(dimension)
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.max_retries = max_retries
        self._client = client or httpx.Client(base_url=self.base_url, timeout=timeout)

    def _embed(self, text: str) -> Sequence[float]:
        try:
            resp = post_json(
                self._client,
                "/api/embeddings",
                {"model": self.model, "prompt": text},
                max_retries=self.max_retries,
            )
            vector = resp.json().get("embedding")
        except httpx.HTTPStatusError as exc:
            raise EmbeddingProviderError(
                f"ollama embedding request failed: {exc.response.status_code}"
            ) from exc
        except (httpx.HTTPError, ValueError, AttributeError) as exc:
            raise EmbeddingProviderError(f"ollama embedding request failed: {exc}") from exc

        if not vector or not isinstance(vector, list):
            raise EmbeddingProviderError("ollama embedding response was missing embedding data")
        return vector
