"""OpenAI-compatible chat providers — OpenAI and Fireworks.

Both are reached with the ``openai`` SDK and a bearer credential; the SDK
handles the per-call timeout and bounded retries for transient failures.
"""

from __future__ import annotations

import logging
import os
from typing import Any

import openai

from fundrag.config import require_env
from fundrag.errors import ChatProviderError, ConfigurationError
from fundrag.llm.base import LLMProvider

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"

# provider -> (base_url, credential env var, model override env var)
ENDPOINTS: dict[str, tuple[str, str, str | None]] = {
    "openai": ("https://api.openai.com/v1", "OPENAI_API_KEY", None),
    "fireworks": ("https://api.fireworks.ai/inference/v1", "FIREWORKS_API_KEY", "FIREWORKS_LLM_MODEL"),
}


class OpenAICompatibleLLMProvider(LLMProvider):
    """Generate responses via an OpenAI-compatible Chat Completions API."""

    def __init__(
        self,
        provider: str = "openai",
        model: str = DEFAULT_MODEL,
        api_key: str | None = None,
        base_url: str | None = None,
        max_tokens: int = 800,
        temperature: float = 0.0,
        timeout: float = 30.0,
        max_retries: int = 3,
        client: Any | None = None,
    ):
        key = provider.lower()
        if key not in ENDPOINTS:
            raise ConfigurationError(f"Unsupported LLM provider: {provider}")

        default_url, key_env, model_env = ENDPOINTS[key]
        self.provider = key
        self.model = (os.getenv(model_env) if model_env else None) or model
        self.max_tokens = max_tokens
        self.temperature = temperature

        if client is not None:
            self._client = client
        else:
            self._client = openai.OpenAI(
                api_key=api_key or require_env(key_env, f"{key} chat"),
                base_url=base_url or default_url,
                timeout=timeout,
                max_retries=max_retries,
            )

    def generate(
        self,
        prompt: str,
        system: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> str:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=max_tokens or self.max_tokens,
                temperature=self.temperature if temperature is None else temperature,
            )
        except openai.APIError as exc:
            raise ChatProviderError(f"{self.provider} chat request failed: {exc}") from exc

        choices = getattr(response, "choices", None) or []
        content = choices[0].message.content if choices else None
        if not content:
            raise ChatProviderError(f"{self.provider} chat response missing content")
        return content
