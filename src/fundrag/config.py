"""Application settings loaded from YAML with environment variable overrides."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Settings sections
# ---------------------------------------------------------------------------


class EmbeddingSettings(BaseModel):
    provider: str = "openai"
    model: str = "text-embedding-3-small"
    dimension: int = 768


class LLMSettings(BaseModel):
    provider: str = "openai"
    model: str = "gpt-4o-mini"
    temperature: float = 0.0
    max_tokens: int = 800


class StoreSettings(BaseModel):
    backend: str = "pgvector"
    database_url: str | None = None


class ChunkingSettings(BaseModel):
    chunk_size: int = 1200
    overlap: int = 150


class RetrievalSettings(BaseModel):
    search_limit: int = 8
    panel_chunks: int = 6
    context_limit: int = 24


class HttpSettings(BaseModel):
    timeout_seconds: float = 30.0
    max_retries: int = 3


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------


class Settings(BaseModel):
    embedding: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    chunking: ChunkingSettings = Field(default_factory=ChunkingSettings)
    retrieval: RetrievalSettings = Field(default_factory=RetrievalSettings)
    http: HttpSettings = Field(default_factory=HttpSettings)


# (env var, section, key)
_ENV_OVERRIDES: list[tuple[str, str, str]] = [
    ("EMBEDDING_PROVIDER", "embedding", "provider"),
    ("EMBEDDING_MODEL", "embedding", "model"),
    ("EMBEDDING_DIM", "embedding", "dimension"),
    ("LLM_PROVIDER", "llm", "provider"),
    ("LLM_MODEL", "llm", "model"),
    ("LLM_TEMPERATURE", "llm", "temperature"),
    ("STORE_BACKEND", "store", "backend"),
    ("DATABASE_URL", "store", "database_url"),
]


def _find_settings_file() -> Path | None:
    """Walk up from cwd looking for settings.yaml."""
    profile = os.getenv("FUNDRAG_PROFILE", "")
    names = [f"settings-{profile}.yaml", "settings.yaml"] if profile else ["settings.yaml"]

    cwd = Path.cwd()
    for parent in [cwd, *cwd.parents]:
        for name in names:
            candidate = parent / name
            if candidate.exists():
                return candidate
    return None


def _apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    for env_key, section, key in _ENV_OVERRIDES:
        value = os.getenv(env_key)
        if value is None or not value.strip():
            continue
        raw.setdefault(section, {})[key] = value.strip()
    return raw


def load_settings(path: str | Path | None = None) -> Settings:
    """Load settings from YAML, then apply environment overrides.

    Args:
        path: Explicit settings file. When omitted the file is discovered
            by walking up from the current directory.
    """
    settings_path = Path(path) if path else _find_settings_file()

    raw: dict[str, Any] = {}
    if settings_path is not None:
        with open(settings_path, encoding="utf-8") as fh:
            raw = yaml.safe_load(fh) or {}

    return Settings(**_apply_env_overrides(raw))


def require_env(key: str, label: str) -> str:
    """Return a credential from the environment or fail at startup."""
    from fundrag.errors import ConfigurationError

    value = os.getenv(key)
    if not value:
        raise ConfigurationError(f"{label} requires {key} to be set")
    return value
