"""Context retrieval adapters for the time-series tables.

Each adapter clamps its limit, runs one store read and wraps the rows in a
tagged result. A deployment that never provisioned a table gets
``Unavailable`` instead of an error so answers can proceed in degraded mode.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from typing import Generic, TypeVar, Union

from fundrag.errors import TableMissingError
from fundrag.retrieval.search import clamp
from fundrag.store.base import DocumentStore
from fundrag.store.schemas import (
    BenchmarkQuery,
    BenchmarkSeries,
    CashFlowsQuery,
    DocumentRecord,
    DocumentsQuery,
    FundCashFlow,
    FundMetric,
    FundMetricsQuery,
    FundRecord,
    Order,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_SERIES_LIMIT = 120
MAX_SERIES_LIMIT = 365
DEFAULT_DOCUMENTS_LIMIT = 50
MAX_DOCUMENTS_LIMIT = 200


@dataclass(frozen=True)
class Available(Generic[T]):
    rows: list[T]

    @property
    def available(self) -> bool:
        return True


@dataclass(frozen=True)
class Unavailable:
    reason: str

    @property
    def available(self) -> bool:
        return False

    @property
    def rows(self) -> list:
        return []


ContextResult = Union[Available[T], Unavailable]


def _order(value: str | None) -> Order:
    return "asc" if value == "asc" else "desc"


class ContextRetriever:
    """Range queries over fund metrics, benchmarks, cash flows and documents."""

    def __init__(self, store: DocumentStore):
        self.store = store

    def fund(self, fund_id: str) -> ContextResult[FundRecord]:
        """Look up the fund record; ``Available([])`` when the fund is unknown."""
        def read() -> list[FundRecord]:
            record = self.store.get_fund(fund_id)
            return [record] if record is not None else []

        return self._guarded("funds", read)

    def fund_metrics(
        self,
        fund_id: str,
        limit: int | None = None,
        from_date: date | None = None,
        to_date: date | None = None,
        order: str | None = None,
    ) -> ContextResult[FundMetric]:
        query = FundMetricsQuery(
            fund_id=fund_id,
            limit=clamp(limit, DEFAULT_SERIES_LIMIT, 1, MAX_SERIES_LIMIT),
            from_date=from_date,
            to_date=to_date,
            order=_order(order),
        )
        return self._guarded("fund_metrics", lambda: self.store.fund_metrics(query))

    def benchmarks(
        self,
        codes: Sequence[str] | None = None,
        asset_class: str | None = None,
        sector: str | None = None,
        limit_points: int | None = None,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> ContextResult[BenchmarkSeries]:
        """Series ordered by code, each with its latest points ascending by date."""
        query = BenchmarkQuery(
            limit_points=clamp(limit_points, DEFAULT_SERIES_LIMIT, 1, MAX_SERIES_LIMIT),
            codes=tuple(codes or ()),
            asset_class=asset_class,
            sector=sector,
            from_date=from_date,
            to_date=to_date,
        )
        return self._guarded("benchmark_series", lambda: self.store.benchmark_series(query))

    def cash_flows(
        self,
        fund_id: str,
        limit: int | None = None,
        from_date: date | None = None,
        to_date: date | None = None,
        flow_type: str | None = None,
        order: str | None = None,
    ) -> ContextResult[FundCashFlow]:
        query = CashFlowsQuery(
            fund_id=fund_id,
            limit=clamp(limit, DEFAULT_SERIES_LIMIT, 1, MAX_SERIES_LIMIT),
            from_date=from_date,
            to_date=to_date,
            flow_type=flow_type,
            order=_order(order),
        )
        return self._guarded("fund_cash_flows", lambda: self.store.fund_cash_flows(query))

    def documents(
        self,
        fund_id: str,
        limit: int | None = None,
        doc_types: Sequence[str] | None = None,
        from_date: datetime | None = None,
        to_date: datetime | None = None,
        order: str | None = None,
    ) -> ContextResult[DocumentRecord]:
        query = DocumentsQuery(
            fund_id=fund_id,
            limit=clamp(limit, DEFAULT_DOCUMENTS_LIMIT, 1, MAX_DOCUMENTS_LIMIT),
            doc_types=tuple(doc_types or ()),
            from_date=from_date,
            to_date=to_date,
            order=_order(order),
        )
        return self._guarded("documents", lambda: self.store.list_documents(query))

    @staticmethod
    def _guarded(source: str, read: Callable[[], list[T]]) -> ContextResult[T]:
        try:
            rows = read()
        except TableMissingError as exc:
            logger.warning("Context source %s unavailable: %s", source, exc.message)
            return Unavailable(reason=exc.message)
        return Available(rows=rows)
