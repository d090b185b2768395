"""Anthropic Claude LLM provider.

Requires ``ANTHROPIC_API_KEY``.
"""

from __future__ import annotations

import logging
from typing import Any

import anthropic

from fundrag.config import require_env
from fundrag.errors import ChatProviderError
from fundrag.llm.base import LLMProvider

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"


class AnthropicLLMProvider(LLMProvider):
    """Generate responses via the Anthropic API."""

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        api_key: str | None = None,
        max_tokens: int = 800,
        temperature: float = 0.0,
        timeout: float = 30.0,
        max_retries: int = 3,
        client: Any | None = None,
    ):
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._client: Any = client or anthropic.Anthropic(
            api_key=api_key or require_env("ANTHROPIC_API_KEY", "Anthropic chat"),
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
        kwargs: dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens or self.max_tokens,
            "temperature": self.temperature if temperature is None else temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            kwargs["system"] = system

        try:
            response = self._client.messages.create(**kwargs)
        except anthropic.APIError as exc:
            raise ChatProviderError(f"anthropic chat request failed: {exc}") from exc

        text = "".join(
            getattr(block, "text", "") for block in (getattr(response, "content", None) or [])
        )
        if not text:
            raise ChatProviderError("anthropic chat response missing content")
        return text
