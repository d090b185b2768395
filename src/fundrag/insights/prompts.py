"""LP-analyst prompt templates and numbered evidence sources.

Every piece of evidence handed to the model becomes a ``Source`` with a
1-based index; the model cites it as ``[n]`` and the citation checks map the
marker back to the source.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Literal

from fundrag.store.schemas import BenchmarkSeries, ChunkSearchResult, FundMetric, FundRecord

SourceKind = Literal["document", "metrics", "benchmark", "fund"]

MAX_EXCERPT_CHARS = 800
MAX_BENCHMARK_POINTS = 12

# ---------------------------------------------------------------------------
# System prompts
# ---------------------------------------------------------------------------

ANSWER_SYSTEM_PROMPT = """\
You are an LP analyst reviewing a private-markets fund. Answer using ONLY \
the numbered context sources provided.

Rules:
1. Cite every claim with the matching source number in square brackets, \
e.g. [1] or [2][3].
2. Use exact numbers from the context and name the as-of date of any metric \
you quote.
3. If the context is insufficient, say so plainly.
4. Prefer the most recent data and give relative and temporal framing.
5. Never invent numbers or benchmarks.
"""

PANEL_SYSTEM_PROMPT = ANSWER_SYSTEM_PROMPT + """\
6. Respond with JSON only, no prose before or after it.
"""

ANSWER_QUERY_TEMPLATE = """\
Fund: {fund_name}

Context sources:
{context}

Question: {question}

Answer using only the sources above and cite them as [1], [2], etc.
"""

PANEL_QUERY_TEMPLATE = """\
Fund: {fund_name}

Context sources:
{context}

Create exactly four concise cards: performance vs benchmark, risk, liquidity \
and notable changes. Respond as JSON of the form
{{"cards": [{{"type": "performance|risk|liquidity|changes", "title": "...", "summary": "..."}}]}}
and include [n] citations inline in every summary.
"""


# ---------------------------------------------------------------------------
# Evidence
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Source:
    """One numbered piece of evidence in a prompt."""

    index: int
    kind: SourceKind
    label: str
    body: str
    document_id: str | None = None
    chunk_id: str | None = None

    @property
    def marker(self) -> str:
        return f"[{self.index}]"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"index": self.index, "kind": self.kind, "label": self.label}
        if self.document_id:
            data["documentId"] = self.document_id
        if self.chunk_id:
            data["chunkId"] = self.chunk_id
        return data


def _number(value: float | None) -> str:
    return "n/a" if value is None else f"{value:g}"


def _chunk_label(chunk: ChunkSearchResult) -> str:
    label = chunk.document.title
    if chunk.slide_number is not None:
        label += f", slide {chunk.slide_number}"
    return label


def _metric_body(metric: FundMetric) -> str:
    fields = (
        ("nav", metric.nav),
        ("tvpi", metric.tvpi),
        ("dpi", metric.dpi),
        ("rvpi", metric.rvpi),
        ("irr", metric.irr),
        ("net_irr", metric.net_irr),
        ("gross_irr", metric.gross_irr),
        ("committed", metric.committed),
        ("called_to_date", metric.called_to_date),
        ("unfunded", metric.unfunded),
        ("distributions_to_date", metric.distributions_to_date),
    )
    return ", ".join(f"{name}={_number(value)}" for name, value in fields if value is not None)


def _benchmark_body(series: BenchmarkSeries) -> str:
    points = series.points[-MAX_BENCHMARK_POINTS:]
    if not points:
        return f"{series.name}: no points in range"
    values = ", ".join(f"{p.date.isoformat()}={_number(p.value)}" for p in points)
    return f"{series.name} ({series.frequency or 'n/a'}, {series.currency or 'n/a'}): {values}"


def _fund_body(fund: FundRecord) -> str:
    fields = (
        ("commitment", _number(fund.commitment)),
        ("paid_in", _number(fund.paid_in)),
        ("nav", _number(fund.nav)),
        ("irr", _number(fund.irr)),
        ("tvpi", _number(fund.tvpi)),
        ("dpi", _number(fund.dpi)),
        ("asset_class", fund.asset_class or "n/a"),
        ("strategy", fund.strategy or "n/a"),
        ("sector", fund.sector or "n/a"),
        ("base_currency", fund.base_currency or "n/a"),
    )
    return ", ".join(f"{name}={value}" for name, value in fields)


def build_sources(
    fund: FundRecord | None,
    chunks: Sequence[ChunkSearchResult],
    metrics: Sequence[FundMetric] = (),
    benchmarks: Sequence[BenchmarkSeries] = (),
) -> list[Source]:
    """Number all evidence: fund record, then metrics, benchmarks and chunks."""
    sources: list[Source] = []

    def add(kind: SourceKind, label: str, body: str, **ids: str | None) -> None:
        sources.append(Source(index=len(sources) + 1, kind=kind, label=label, body=body, **ids))

    if fund is not None:
        add("fund", f"Fund record {fund.name}", _fund_body(fund))
    for metric in metrics:
        add("metrics", f"Metrics as of {metric.as_of_date.isoformat()}", _metric_body(metric))
    for series in benchmarks:
        add("benchmark", f"Benchmark {series.code}", _benchmark_body(series))
    for chunk in chunks:
        add(
            "document",
            _chunk_label(chunk),
            chunk.text.strip()[:MAX_EXCERPT_CHARS],
            document_id=chunk.document_id,
            chunk_id=chunk.chunk_id,
        )
    return sources


def format_sources(sources: Sequence[Source]) -> str:
    """Render sources as ``[n] label`` headers followed by their text."""
    if not sources:
        return "None"
    return "\n\n---\n\n".join(f"{s.marker} {s.label}\n{s.body}" for s in sources)


def build_answer_prompt(question: str, fund_name: str, sources: Sequence[Source]) -> str:
    return ANSWER_QUERY_TEMPLATE.format(
        fund_name=fund_name,
        context=format_sources(sources),
        question=question,
    )


def build_panel_prompt(fund_name: str, sources: Sequence[Source]) -> str:
    return PANEL_QUERY_TEMPLATE.format(fund_name=fund_name, context=format_sources(sources))
