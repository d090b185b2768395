"""Read-path orchestration — search, grounded answers, panels, context reads."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from typing import Any

from fundrag.config import RetrievalSettings
from fundrag.embeddings.base import EmbeddingProvider
from fundrag.insights.answer import GroundedAnswer, GroundedAnswerGenerator
from fundrag.insights.panel import InsightsPanel, PanelGenerator
from fundrag.insights.prompts import Source
from fundrag.pipeline.schemas import AnswerRequest, ContextRequest, PanelRequest, SearchRequest
from fundrag.retrieval.context import ContextResult, ContextRetriever
from fundrag.retrieval.search import SimilaritySearch, resolve_embedding
from fundrag.store.schemas import (
    BenchmarkSeries,
    ChunkSearchResult,
    FundMetric,
    FundRecord,
    ensure_utc,
)

logger = logging.getLogger(__name__)


@dataclass
class FundContext:
    """Time-series context gathered for one fund."""

    fund: FundRecord | None = None
    metrics: list[FundMetric] = field(default_factory=list)
    benchmarks: list[BenchmarkSeries] = field(default_factory=list)
    unavailable: list[str] = field(default_factory=list)


@dataclass
class AnswerResult:
    """A grounded answer plus the chunks it was built from."""

    answer: GroundedAnswer
    chunks: list[ChunkSearchResult]
    unavailable: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        body = self.answer.to_dict()
        return {
            "answer": body["answer"],
            "sources": [c.to_dict() for c in self.chunks],
            "citations": body["sources"],
            "unavailable": self.unavailable,
        }


@dataclass
class PanelResult:
    panel: InsightsPanel
    chunks: list[ChunkSearchResult]
    sources: list[Source] = field(default_factory=list)
    unavailable: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "panel": self.panel.to_dict(),
            "sources": [c.to_dict() for c in self.chunks],
            "citations": [s.to_dict() for s in self.sources],
            "unavailable": self.unavailable,
        }


class QueryPipeline:
    """Orchestrates the read path on top of injected components."""

    def __init__(
        self,
        embedding_provider: EmbeddingProvider,
        search: SimilaritySearch,
        context: ContextRetriever,
        answerer: GroundedAnswerGenerator,
        panel_generator: PanelGenerator,
        settings: RetrievalSettings | None = None,
    ):
        self.embedding_provider = embedding_provider
        self.similarity = search
        self.context = context
        self.answerer = answerer
        self.panel_generator = panel_generator
        self.settings = settings or RetrievalSettings()

    def search(self, request: SearchRequest) -> list[ChunkSearchResult]:
        """Resolve the query vector (a supplied embedding wins) and search."""
        embedding = resolve_embedding(self.embedding_provider, request.query, request.embedding)
        return self.similarity.search(
            embedding,
            fund_id=request.fund_id,
            strategy_id=request.strategy_id,
            doc_types=request.doc_types,
            min_uploaded_at=ensure_utc(request.min_uploaded_at),
            limit=request.limit,
        )

    def answer(self, request: AnswerRequest) -> AnswerResult:
        """Gather fund context and matching chunks, then answer with citations."""
        ctx = self.fund_context(request.fund_id, request.benchmark_codes)
        embedding = resolve_embedding(self.embedding_provider, request.question, request.embedding)
        chunks = self.similarity.search(
            embedding,
            fund_id=request.fund_id,
            limit=self.settings.search_limit,
        )

        answer = self.answerer.answer_with_sources(
            request.question,
            ctx.fund,
            chunks,
            ctx.metrics,
            ctx.benchmarks,
            fund_name=ctx.fund.name if ctx.fund else request.fund_id,
        )
        return AnswerResult(answer=answer, chunks=chunks, unavailable=ctx.unavailable)

    def panel(self, request: PanelRequest) -> PanelResult:
        """Build the insights panel from the fund's most recent chunks."""
        ctx = self.fund_context(request.fund_id, request.benchmark_codes)
        chunks = self.similarity.recent_chunks(request.fund_id, self.settings.panel_chunks)

        panel, sources = self.panel_generator.generate_with_sources(
            ctx.fund.name if ctx.fund else request.fund_id,
            chunks,
            ctx.metrics,
            ctx.benchmarks,
            fund_context=ctx.fund,
        )
        return PanelResult(panel=panel, chunks=chunks, sources=sources, unavailable=ctx.unavailable)

    def fund_context(self, fund_id: str, benchmark_codes: list[str] | None = None) -> FundContext:
        """Read fund record, recent metrics and benchmarks, tolerating missing tables."""
        limit = self.settings.context_limit
        fund = self.context.fund(fund_id)
        metrics = self.context.fund_metrics(fund_id, limit=limit)
        benchmarks = self.context.benchmarks(codes=benchmark_codes, limit_points=limit)

        unavailable = [
            name
            for name, result in (("fund", fund), ("metrics", metrics), ("benchmarks", benchmarks))
            if not result.available
        ]
        return FundContext(
            fund=fund.rows[0] if fund.rows else None,
            metrics=list(metrics.rows),
            benchmarks=list(benchmarks.rows),
            unavailable=unavailable,
        )

    def read_context(self, request: ContextRequest) -> ContextResult:
        """Dispatch a range query to the matching context adapter."""
        if request.source == "metrics":
            return self.context.fund_metrics(
                request.fund_id,
                limit=request.limit,
                from_date=request.from_date,
                to_date=request.to_date,
                order=request.order,
            )
        if request.source == "cash_flows":
            return self.context.cash_flows(
                request.fund_id,
                limit=request.limit,
                from_date=request.from_date,
                to_date=request.to_date,
                flow_type=request.flow_type,
                order=request.order,
            )
        if request.source == "documents":
            return self.context.documents(
                request.fund_id,
                limit=request.limit,
                doc_types=request.doc_types,
                from_date=_start_of_day(request.from_date),
                to_date=_end_of_day(request.to_date),
                order=request.order,
            )
        return self.context.benchmarks(
            codes=request.codes,
            asset_class=request.asset_class,
            sector=request.sector,
            limit_points=request.limit,
            from_date=request.from_date,
            to_date=request.to_date,
        )


def _start_of_day(value: date | None) -> datetime | None:
    if value is None:
        return None
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def _end_of_day(value: date | None) -> datetime | None:
    if value is None:
        return None
    return datetime.combine(value, time.max, tzinfo=timezone.utc)
