"""Data models for stored documents, chunks and read-only time-series rows."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Literal

Order = Literal["asc", "desc"]


def ensure_utc(value: datetime | None) -> datetime | None:
    """Treat naive timestamps as UTC so comparisons never mix naive/aware."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _jsonable(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


# ---------------------------------------------------------------------------
# Owned by the ingestion pipeline
# ---------------------------------------------------------------------------


@dataclass
class DocumentRecord:
    """A logical source artifact (deck, report, notice)."""

    id: str
    title: str
    fund_id: str | None = None
    strategy_id: str | None = None
    file_id: str | None = None
    doc_type: str | None = None
    as_of_date: date | None = None
    uploaded_at: datetime | None = None
    source_system: str | None = None
    page_count: int | None = None
    is_redacted: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "fundId": self.fund_id,
            "strategyId": self.strategy_id,
            "fileId": self.file_id,
            "title": self.title,
            "docType": self.doc_type,
            "asOfDate": _jsonable(self.as_of_date),
            "uploadedAt": _jsonable(self.uploaded_at),
            "sourceSystem": self.source_system,
            "pageCount": self.page_count,
            "isRedacted": self.is_redacted,
        }


@dataclass
class ChunkRecord:
    """A persisted chunk with its embedding."""

    id: str
    document_id: str
    chunk_index: int
    start_offset: int
    end_offset: int
    text: str
    embedding: list[float]
    fund_id: str | None = None
    strategy_id: str | None = None
    slide_number: int | None = None


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DocumentSummary:
    """Parent-document catalog fields joined onto every search hit."""

    id: str
    title: str
    doc_type: str | None = None
    as_of_date: date | None = None
    uploaded_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "docType": self.doc_type,
            "asOfDate": _jsonable(self.as_of_date),
            "uploadedAt": _jsonable(self.uploaded_at),
        }


@dataclass(frozen=True)
class ChunkSearchResult:
    """A ranked chunk. ``similarity`` is ``None`` for recency listings."""

    chunk_id: str
    document_id: str
    text: str
    chunk_index: int
    document: DocumentSummary
    fund_id: str | None = None
    strategy_id: str | None = None
    slide_number: int | None = None
    similarity: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "chunkId": self.chunk_id,
            "documentId": self.document_id,
            "fundId": self.fund_id,
            "strategyId": self.strategy_id,
            "text": self.text,
            "chunkIndex": self.chunk_index,
            "slideNumber": self.slide_number,
            "similarity": self.similarity,
            "document": self.document.to_dict(),
        }


@dataclass(frozen=True)
class SearchFilters:
    """Filters combined with AND. ``doc_types`` matches any of its values."""

    fund_id: str | None = None
    strategy_id: str | None = None
    doc_types: tuple[str, ...] = ()
    min_uploaded_at: datetime | None = None


# ---------------------------------------------------------------------------
# Externally owned, read-only context
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FundRecord:
    id: str
    name: str
    commitment: float | None = None
    paid_in: float | None = None
    nav: float | None = None
    irr: float | None = None
    tvpi: float | None = None
    dpi: float | None = None
    asset_class: str | None = None
    strategy: str | None = None
    sector: str | None = None
    base_currency: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _jsonable(asdict(self))


@dataclass(frozen=True)
class FundMetric:
    id: str
    fund_id: str
    as_of_date: date
    nav: float | None = None
    tvpi: float | None = None
    dpi: float | None = None
    irr: float | None = None
    rvpi: float | None = None
    committed: float | None = None
    called_to_date: float | None = None
    unfunded: float | None = None
    distributions_to_date: float | None = None
    gross_irr: float | None = None
    net_irr: float | None = None
    source_system: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _jsonable(asdict(self))


@dataclass(frozen=True)
class BenchmarkPoint:
    series_id: str
    date: date
    value: float

    def to_dict(self) -> dict[str, Any]:
        return _jsonable(asdict(self))


@dataclass(frozen=True)
class BenchmarkSeries:
    id: str
    code: str
    name: str
    frequency: str | None = None
    currency: str | None = None
    asset_class: str | None = None
    sector: str | None = None
    points: tuple[BenchmarkPoint, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return _jsonable(asdict(self))


@dataclass(frozen=True)
class FundCashFlow:
    id: str
    fund_id: str
    flow_date: date
    flow_type: str
    amount: float
    currency: str | None = None
    due_date: date | None = None
    description: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _jsonable(asdict(self))


# ---------------------------------------------------------------------------
# Range queries (limits are already clamped by the context adapters)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FundMetricsQuery:
    fund_id: str
    limit: int
    from_date: date | None = None
    to_date: date | None = None
    order: Order = "desc"


@dataclass(frozen=True)
class BenchmarkQuery:
    limit_points: int
    codes: tuple[str, ...] = ()
    asset_class: str | None = None
    sector: str | None = None
    from_date: date | None = None
    to_date: date | None = None


@dataclass(frozen=True)
class CashFlowsQuery:
    fund_id: str
    limit: int
    from_date: date | None = None
    to_date: date | None = None
    flow_type: str | None = None
    order: Order = "desc"


@dataclass(frozen=True)
class DocumentsQuery:
    fund_id: str
    limit: int
    doc_types: tuple[str, ...] = ()
    from_date: datetime | None = None
    to_date: datetime | None = None
    order: Order = "desc"
