"""LLM providers — OpenAI-compatible, Anthropic, Ollama."""

from fundrag.llm.base import LLMProvider
from fundrag.llm.factory import available_providers, build_llm_provider, get_llm_provider

__all__ = ["LLMProvider", "available_providers", "build_llm_provider", "get_llm_provider"]
