"""Grounded answer generation — evidence → prompt → LLM → citation check."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from fundrag.insights.citations import enforce_citations
from fundrag.insights.prompts import (
    ANSWER_SYSTEM_PROMPT,
    Source,
    build_answer_prompt,
    build_sources,
)
from fundrag.llm.base import LLMProvider
from fundrag.store.schemas import BenchmarkSeries, ChunkSearchResult, FundMetric, FundRecord

logger = logging.getLogger(__name__)

NO_CONTEXT_MESSAGE = (
    "No context is available for this fund yet: there are no documents, "
    "metrics, benchmarks or fund details to answer from."
)


@dataclass
class GroundedAnswer:
    """An accepted answer with the sources it was given and the ones it cited."""

    answer: str
    sources: list[Source] = field(default_factory=list)
    cited: list[Source] = field(default_factory=list)
    model: str = ""

    @property
    def has_context(self) -> bool:
        return bool(self.sources)

    def to_dict(self) -> dict[str, Any]:
        cited = {s.index for s in self.cited}
        return {
            "answer": self.answer,
            "sources": [{**s.to_dict(), "cited": s.index in cited} for s in self.sources],
        }


class GroundedAnswerGenerator:
    """Answer a question from supplied evidence, refusing uncited output."""

    def __init__(self, llm_provider: LLMProvider, system_prompt: str = ANSWER_SYSTEM_PROMPT):
        self.llm_provider = llm_provider
        self.system_prompt = system_prompt

    def answer(
        self,
        question: str,
        fund_context: FundRecord | None,
        chunks: Sequence[ChunkSearchResult],
        metrics: Sequence[FundMetric] = (),
        benchmarks: Sequence[BenchmarkSeries] = (),
        fund_name: str | None = None,
    ) -> str:
        """Return the answer text. See ``answer_with_sources``."""
        return self.answer_with_sources(
            question, fund_context, chunks, metrics, benchmarks, fund_name=fund_name
        ).answer

    def answer_with_sources(
        self,
        question: str,
        fund_context: FundRecord | None,
        chunks: Sequence[ChunkSearchResult],
        metrics: Sequence[FundMetric] = (),
        benchmarks: Sequence[BenchmarkSeries] = (),
        fund_name: str | None = None,
    ) -> GroundedAnswer:
        """Generate a cited answer.

        With no evidence at all the fixed ``NO_CONTEXT_MESSAGE`` is returned
        and the LLM is never called.

        Raises:
            ChatProviderError: the completion call failed.
            GroundingError: the response cites none of the supplied sources.
        """
        sources = build_sources(fund_context, chunks, metrics, benchmarks)
        model = getattr(self.llm_provider, "model", "unknown")
        if not sources:
            logger.info("No context for question; skipping LLM call")
            return GroundedAnswer(answer=NO_CONTEXT_MESSAGE, model=model)

        name = fund_name or (fund_context.name if fund_context else "unknown fund")
        prompt = build_answer_prompt(question, name, sources)
        text = self.llm_provider.generate(prompt, system=self.system_prompt)

        cited = enforce_citations(text, sources)
        logger.info(
            "Answer generated: %d sources, %d cited (model=%s)",
            len(sources),
            len(cited),
            model,
        )
        return GroundedAnswer(answer=text, sources=sources, cited=cited, model=model)
