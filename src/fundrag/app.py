"""Composition root — builds every client once and wires the pipelines.

Nothing in the package caches clients at module level; callers (Lambda
handlers, CLI, tests) own the ``Services`` object and its lifecycle.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from fundrag.config import Settings, load_settings
from fundrag.embeddings.base import EmbeddingProvider
from fundrag.embeddings.factory import build_embedding_provider
from fundrag.insights.answer import GroundedAnswerGenerator
from fundrag.insights.panel import PanelGenerator
from fundrag.llm.base import LLMProvider
from fundrag.llm.factory import build_llm_provider
from fundrag.pipeline.ingest import IngestPipeline
from fundrag.pipeline.query import QueryPipeline
from fundrag.retrieval.context import ContextRetriever
from fundrag.retrieval.search import SimilaritySearch
from fundrag.store.base import DocumentStore
from fundrag.store.factory import build_store

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    store: DocumentStore
    embedding_provider: EmbeddingProvider
    llm_provider: LLMProvider
    ingest: IngestPipeline
    query: QueryPipeline

    def close(self) -> None:
        self.store.close()


def wire_services(
    settings: Settings,
    store: DocumentStore,
    embedding_provider: EmbeddingProvider,
    llm_provider: LLMProvider,
) -> Services:
    """Assemble pipelines from already-constructed clients."""
    query = QueryPipeline(
        embedding_provider=embedding_provider,
        search=SimilaritySearch(store),
        context=ContextRetriever(store),
        answerer=GroundedAnswerGenerator(llm_provider),
        panel_generator=PanelGenerator(llm_provider),
        settings=settings.retrieval,
    )
    return Services(
        settings=settings,
        store=store,
        embedding_provider=embedding_provider,
        llm_provider=llm_provider,
        ingest=IngestPipeline(
            embedding_provider,
            store,
            chunk_size=settings.chunking.chunk_size,
            overlap=settings.chunking.overlap,
        ),
        query=query,
    )


def build_services(settings: Settings | None = None) -> Services:
    """Construct clients from settings and wire them.

    Raises:
        ConfigurationError: unknown provider/backend or missing credential.
    """
    settings = settings or load_settings()
    embedding_provider = build_embedding_provider(settings.embedding, settings.http)
    llm_provider = build_llm_provider(settings.llm, settings.http)
    store = build_store(settings.store, dimension=embedding_provider.dimension)
    logger.info(
        "Services ready: embeddings=%s llm=%s store=%s",
        settings.embedding.provider,
        settings.llm.provider,
        store.store_name(),
    )
    return wire_services(settings, store, embedding_provider, llm_provider)
