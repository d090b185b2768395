"""Document stores — pgvector for production, in-memory for local runs."""

from fundrag.store.base import DocumentStore, StoreTransaction
from fundrag.store.factory import available_stores, build_store, get_document_store
from fundrag.store.schemas import (
    BenchmarkPoint,
    BenchmarkQuery,
    BenchmarkSeries,
    CashFlowsQuery,
    ChunkRecord,
    ChunkSearchResult,
    DocumentRecord,
    DocumentsQuery,
    DocumentSummary,
    FundCashFlow,
    FundMetric,
    FundMetricsQuery,
    FundRecord,
    SearchFilters,
)

__all__ = [
    "BenchmarkPoint",
    "BenchmarkQuery",
    "BenchmarkSeries",
    "CashFlowsQuery",
    "ChunkRecord",
    "ChunkSearchResult",
    "DocumentRecord",
    "DocumentStore",
    "DocumentSummary",
    "DocumentsQuery",
    "FundCashFlow",
    "FundMetric",
    "FundMetricsQuery",
    "FundRecord",
    "SearchFilters",
    "StoreTransaction",
    "available_stores",
    "build_store",
    "get_document_store",
]
