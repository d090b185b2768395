"""Insights panel — four structured cards from one completion call.

The raw response must cite the supplied sources before it is parsed. A
response that is not valid card JSON degrades to a single free-text card.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Sequence
from typing import Any, Literal

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from fundrag.insights.citations import enforce_citations
from fundrag.insights.prompts import (
    PANEL_SYSTEM_PROMPT,
    Source,
    build_panel_prompt,
    build_sources,
)
from fundrag.llm.base import LLMProvider
from fundrag.store.schemas import BenchmarkSeries, ChunkSearchResult, FundMetric, FundRecord

logger = logging.getLogger(__name__)

CardType = Literal["performance", "risk", "liquidity", "changes"]

INSUFFICIENT_CONTEXT_TITLE = "Insufficient context"
INSUFFICIENT_CONTEXT_SUMMARY = "No documents, metrics, or benchmarks available to generate insights."

_FENCE_RE = re.compile(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", re.DOTALL | re.IGNORECASE)


class InsightCard(BaseModel):
    type: CardType
    title: str = Field(min_length=1)
    summary: str = Field(min_length=1)


class InsightsPanel(BaseModel):
    cards: list[InsightCard] = Field(min_length=1)
    degraded: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"cards": [c.model_dump() for c in self.cards], "degraded": self.degraded}


def strip_code_fences(text: str) -> str:
    """Remove a surrounding Markdown code fence, if any."""
    match = _FENCE_RE.match(text)
    return match.group(1) if match else text.strip()


def parse_panel(text: str) -> InsightsPanel | None:
    """Parse card JSON, returning ``None`` when it is malformed."""
    try:
        data = json.loads(strip_code_fences(text))
        if not isinstance(data, dict):
            return None
        return InsightsPanel(cards=data.get("cards"))
    except (json.JSONDecodeError, PydanticValidationError) as exc:
        logger.warning("Panel response is not valid card JSON: %s", exc)
        return None


class PanelGenerator:
    """Generate performance/risk/liquidity/changes cards for one fund."""

    def __init__(self, llm_provider: LLMProvider, system_prompt: str = PANEL_SYSTEM_PROMPT):
        self.llm_provider = llm_provider
        self.system_prompt = system_prompt

    def generate(
        self,
        fund_name: str,
        chunks: Sequence[ChunkSearchResult],
        metrics: Sequence[FundMetric] = (),
        benchmarks: Sequence[BenchmarkSeries] = (),
        fund_context: FundRecord | None = None,
    ) -> InsightsPanel:
        """Return the panel for ``fund_name``.

        Raises:
            ChatProviderError: the completion call failed.
            GroundingError: the raw response cites none of the supplied sources.
        """
        panel, _ = self.generate_with_sources(fund_name, chunks, metrics, benchmarks, fund_context)
        return panel

    def generate_with_sources(
        self,
        fund_name: str,
        chunks: Sequence[ChunkSearchResult],
        metrics: Sequence[FundMetric] = (),
        benchmarks: Sequence[BenchmarkSeries] = (),
        fund_context: FundRecord | None = None,
    ) -> tuple[InsightsPanel, list[Source]]:
        sources = build_sources(fund_context, chunks, metrics, benchmarks)
        if not sources:
            logger.info("No context for %s panel; skipping LLM call", fund_name)
            card = InsightCard(
                type="changes",
                title=INSUFFICIENT_CONTEXT_TITLE,
                summary=INSUFFICIENT_CONTEXT_SUMMARY,
            )
            return InsightsPanel(cards=[card]), []

        text = self.llm_provider.generate(
            build_panel_prompt(fund_name, sources),
            system=self.system_prompt,
        )
        enforce_citations(text, sources)

        panel = parse_panel(text)
        if panel is None:
            panel = InsightsPanel(
                cards=[InsightCard(type="changes", title="Insights", summary=text.strip())],
                degraded=True,
            )

        logger.info(
            "Panel generated for %s: %d cards from %d sources (degraded=%s)",
            fund_name,
            len(panel.cards),
            len(sources),
            panel.degraded,
        )
        return panel, sources
