"""Google Generative Language embedding provider.

Calls ``models/{model}:embedContent`` over httpx. Requires ``GOOGLE_API_KEY``.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Sequence
from urllib.parse import quote

import httpx

from fundrag.config import require_env
from fundrag.embeddings.base import EmbeddingProvider
from fundrag.errors import EmbeddingProviderError
from fundrag.http import post_json

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "models/text-embedding-004"
DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1"
DEFAULT_DIM = 768


def _normalize_model_name(name: str) -> str:
    trimmed = name.strip()
    return trimmed if trimmed.startswith("models/") else f"models/{trimmed}"


class GoogleEmbeddingProvider(EmbeddingProvider):
    """Embed text via the Google ``embedContent`` endpoint."""

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        dimension: int = DEFAULT_DIM,
        api_key: str | None = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        max_retries: int = 3,
        client: httpx.Client | None = None,
    ):
        super().__init__(dimension)
        self.model = _normalize_model_name(os.getenv("GOOGLE_EMBED_MODEL") or model)
        self.max_retries = max_retries
        self._api_key = api_key or require_env("GOOGLE_API_KEY", "Google embeddings")
        self._client = client or httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout)

    def _embed(self, text: str) -> Sequence[float]:
        url = f"/{quote(self.model, safe='/')}:embedContent"
        try:
            resp = post_json(
                self._client,
                url,
                {"content": {"parts": [{"text": text}]}},
                max_retries=self.max_retries,
                params={"key": self._api_key},
            )
            data = resp.json()
        except httpx.HTTPStatusError as exc:
            raise EmbeddingProviderError(
                f"google embedding request failed: {exc.response.status_code} {exc.response.text}"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise EmbeddingProviderError(f"google embedding request failed: {exc}") from exc

        vector = (data.get("embedding") or {}).get("values") if isinstance(data, dict) else None
        if not vector or not isinstance(vector, list):
            raise EmbeddingProviderError("google embedding response was missing embedding data")
        return vector
