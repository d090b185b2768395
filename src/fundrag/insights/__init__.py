"""Insights — grounded answers and the fund insights panel."""

from fundrag.insights.answer import NO_CONTEXT_MESSAGE, GroundedAnswer, GroundedAnswerGenerator
from fundrag.insights.citations import cited_indices, enforce_citations, extract_citations
from fundrag.insights.panel import InsightCard, InsightsPanel, PanelGenerator, parse_panel
from fundrag.insights.prompts import Source, build_sources

__all__ = [
    "NO_CONTEXT_MESSAGE",
    "GroundedAnswer",
    "GroundedAnswerGenerator",
    "InsightCard",
    "InsightsPanel",
    "PanelGenerator",
    "Source",
    "build_sources",
    "cited_indices",
    "enforce_citations",
    "extract_citations",
    "parse_panel",
]
