"""Abstract base class for chat-completion providers."""

from __future__ import annotations

from abc import ABC, abstractmethod


class LLMProvider(ABC):
    """Interface for LLM response generation."""

    model: str = "unknown"

    @abstractmethod
    def generate(
        self,
        prompt: str,
        system: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> str:
        """Generate a response from the LLM.

        Args:
            prompt: The user prompt.
            system: Optional system prompt.
            max_tokens: Per-call override of the provider's token budget.
            temperature: Per-call override of the provider's temperature.

        Returns:
            Generated text response (never empty).

        Raises:
            ChatProviderError: the upstream call failed or returned no content.
        """

    @classmethod
    def provider_name(cls) -> str:
        """Return human-readable provider name."""
        return cls.__name__
