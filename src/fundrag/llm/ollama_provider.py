"""Ollama LLM provider — local-first, no API keys."""

from __future__ import annotations

import logging

import httpx

from fundrag.errors import ChatProviderError
from fundrag.http import post_json
from fundrag.llm.base import LLMProvider

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "llama3.1:8b"
DEFAULT_BASE_URL = "http://localhost:11434"


class OllamaLLMProvider(LLMProvider):
    """Generate responses via a local Ollama server."""

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        temperature: float = 0.0,
        max_tokens: int = 800,
        timeout: float = 120.0,
        max_retries: int = 3,
        client: httpx.Client | None = None,
    ):
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.max_retries = max_retries
        self._client = client or httpx.Client(base_url=self.base_url, timeout=timeout)

    def generate(
        self,
        prompt: str,
        system: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> str:
        payload = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": self.temperature if temperature is None else temperature,
                "num_predict": max_tokens or self.max_tokens,
            },
        }
        if system:
            payload["system"] = system

        try:
            resp = post_json(self._client, "/api/generate", payload, max_retries=self.max_retries)
            content = resp.json().get("response", "")
        except httpx.HTTPStatusError as exc:
            raise ChatProviderError(
                f"ollama chat request failed: {exc.response.status_code}"
            ) from exc
        except (httpx.HTTPError, ValueError, AttributeError) as exc:
            raise ChatProviderError(f"ollama chat request failed: {exc}") from exc

        if not content:
            raise ChatProviderError("ollama chat response missing content")
        return content
