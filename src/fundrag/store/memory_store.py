"""In-process document store — numpy cosine ranking, staged transactions.

Zero infrastructure: useful for local runs and tests. Time-series tables are
optional; a table passed as ``None`` behaves like a table that has not been
provisioned and raises ``TableMissingError`` on read.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime, timezone

import numpy as np

from fundrag.errors import NotFoundError, TableMissingError, TransactionError
from fundrag.store.base import DocumentStore, StoreTransaction
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
    ensure_utc,
)

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class _MemoryTransaction(StoreTransaction):
    def __init__(self, dimension: int):
        self._dimension = dimension
        self.documents: dict[str, DocumentRecord] = {}
        self.chunks: dict[str, ChunkRecord] = {}
        self.prunes: list[tuple[str, int]] = []

    def upsert_document(self, document: DocumentRecord) -> None:
        self.documents[document.id] = document

    def upsert_chunk(self, chunk: ChunkRecord) -> None:
        if len(chunk.embedding) != self._dimension:
            raise TransactionError(
                f"expected {self._dimension} dimensions, not {len(chunk.embedding)}"
            )
        self.chunks[chunk.id] = chunk

    def prune_chunks(self, document_id: str, keep: int) -> None:
        self.prunes.append((document_id, keep))


class MemoryStore(DocumentStore):
    """Dict-backed store with the same semantics as the pgvector backend."""

    def __init__(
        self,
        dimension: int = 768,
        funds: Iterable[FundRecord] | None = None,
        fund_metrics: Iterable[FundMetric] | None = None,
        benchmark_series: Iterable[BenchmarkSeries] | None = None,
        cash_flows: Iterable[FundCashFlow] | None = None,
    ):
        super().__init__(dimension)
        self._lock = threading.Lock()
        self._documents: dict[str, DocumentRecord] = {}
        self._chunks: dict[str, ChunkRecord] = {}
        self._funds = None if funds is None else {f.id: f for f in funds}
        self._metrics = None if fund_metrics is None else list(fund_metrics)
        self._benchmarks = None if benchmark_series is None else list(benchmark_series)
        self._cash_flows = None if cash_flows is None else list(cash_flows)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[StoreTransaction]:
        txn = _MemoryTransaction(self._dimension)
        yield txn
        # Only reached when the block exited without an exception.
        with self._lock:
            self._documents.update(txn.documents)
            self._chunks.update(txn.chunks)
            for document_id, keep in txn.prunes:
                stale = [
                    cid
                    for cid, c in self._chunks.items()
                    if c.document_id == document_id and c.chunk_index >= keep
                ]
                for cid in stale:
                    del self._chunks[cid]
        logger.debug(
            "MemoryStore committed %d documents, %d chunks",
            len(txn.documents),
            len(txn.chunks),
        )

    # ------------------------------------------------------------------
    # Chunk reads
    # ------------------------------------------------------------------

    def search_chunks(
        self,
        embedding: Sequence[float],
        filters: SearchFilters,
        limit: int,
    ) -> list[ChunkSearchResult]:
        with self._lock:
            candidates = [c for c in self._chunks.values() if self._matches(c, filters)]
            documents = dict(self._documents)

        if not candidates:
            return []

        query = np.asarray(embedding, dtype=np.float64)
        matrix = np.asarray([c.embedding for c in candidates], dtype=np.float64)
        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        dots = matrix @ query
        with np.errstate(divide="ignore", invalid="ignore"):
            cosine = np.where(norms > 0, dots / norms, 0.0)
        distances = 1.0 - cosine

        order = sorted(
            range(len(candidates)),
            key=lambda i: (float(distances[i]), candidates[i].chunk_index, candidates[i].id),
        )[:limit]

        return [
            self._to_result(candidates[i], documents[candidates[i].document_id], 1.0 - float(distances[i]))
            for i in order
        ]

    def recent_chunks(self, fund_id: str, limit: int) -> list[ChunkSearchResult]:
        with self._lock:
            rows = [
                (c, self._documents[c.document_id])
                for c in self._chunks.values()
                if c.fund_id == fund_id
            ]

        rows.sort(key=lambda r: (r[1].uploaded_at is None, r[0].chunk_index))
        rows.sort(key=lambda r: ensure_utc(r[1].uploaded_at) or _EPOCH, reverse=True)
        return [self._to_result(c, d, None) for c, d in rows[:limit]]

    def get_document(self, document_id: str) -> DocumentRecord:
        with self._lock:
            document = self._documents.get(document_id)
        if document is None:
            raise NotFoundError(f"document '{document_id}' not found")
        return document

    def count_chunks(self, document_id: str | None = None) -> int:
        with self._lock:
            if document_id is None:
                return len(self._chunks)
            return sum(1 for c in self._chunks.values() if c.document_id == document_id)

    def chunks_for(self, document_id: str) -> list[ChunkRecord]:
        """Return a document's stored chunks in index order."""
        with self._lock:
            rows = [c for c in self._chunks.values() if c.document_id == document_id]
        return sorted(rows, key=lambda c: c.chunk_index)

    # ------------------------------------------------------------------
    # Context reads
    # ------------------------------------------------------------------

    def get_fund(self, fund_id: str) -> FundRecord | None:
        if self._funds is None:
            raise TableMissingError("funds")
        return self._funds.get(fund_id)

    def fund_metrics(self, query: FundMetricsQuery) -> list[FundMetric]:
        if self._metrics is None:
            raise TableMissingError("fund_metrics")
        rows = [
            m
            for m in self._metrics
            if m.fund_id == query.fund_id
            and (query.from_date is None or m.as_of_date >= query.from_date)
            and (query.to_date is None or m.as_of_date <= query.to_date)
        ]
        rows.sort(key=lambda m: m.as_of_date, reverse=query.order == "desc")
        return rows[: query.limit]

    def benchmark_series(self, query: BenchmarkQuery) -> list[BenchmarkSeries]:
        if self._benchmarks is None:
            raise TableMissingError("benchmark_series")
        series = [
            s
            for s in self._benchmarks
            if (not query.codes or s.code in query.codes)
            and (query.asset_class is None or s.asset_class == query.asset_class)
            and (query.sector is None or s.sector == query.sector)
        ]
        series.sort(key=lambda s: s.code)

        result = []
        for s in series:
            points = [
                p
                for p in s.points
                if (query.from_date is None or p.date >= query.from_date)
                and (query.to_date is None or p.date <= query.to_date)
            ]
            latest = sorted(points, key=lambda p: p.date, reverse=True)[: query.limit_points]
            result.append(_with_points(s, sorted(latest, key=lambda p: p.date)))
        return result

    def fund_cash_flows(self, query: CashFlowsQuery) -> list[FundCashFlow]:
        if self._cash_flows is None:
            raise TableMissingError("fund_cash_flows")
        rows = [
            f
            for f in self._cash_flows
            if f.fund_id == query.fund_id
            and (query.from_date is None or f.flow_date >= query.from_date)
            and (query.to_date is None or f.flow_date <= query.to_date)
            and (query.flow_type is None or f.flow_type == query.flow_type)
        ]
        rows.sort(key=lambda f: f.flow_date, reverse=query.order == "desc")
        return rows[: query.limit]

    def list_documents(self, query: DocumentsQuery) -> list[DocumentRecord]:
        from_date = ensure_utc(query.from_date)
        to_date = ensure_utc(query.to_date)
        with self._lock:
            rows = [
                d
                for d in self._documents.values()
                if d.fund_id == query.fund_id
                and (not query.doc_types or d.doc_type in query.doc_types)
                and (from_date is None or (d.uploaded_at is not None and d.uploaded_at >= from_date))
                and (to_date is None or (d.uploaded_at is not None and d.uploaded_at <= to_date))
            ]
        dated = [d for d in rows if d.uploaded_at is not None]
        undated = [d for d in rows if d.uploaded_at is None]
        dated.sort(key=lambda d: d.uploaded_at, reverse=query.order == "desc")
        return (dated + undated)[: query.limit]

    # ------------------------------------------------------------------
    # Private
    # ------------------------------------------------------------------

    def _matches(self, chunk: ChunkRecord, filters: SearchFilters) -> bool:
        if filters.fund_id and chunk.fund_id != filters.fund_id:
            return False
        if filters.strategy_id and chunk.strategy_id != filters.strategy_id:
            return False
        document = self._documents[chunk.document_id]
        if filters.doc_types and document.doc_type not in filters.doc_types:
            return False
        min_uploaded = ensure_utc(filters.min_uploaded_at)
        return not (
            min_uploaded is not None
            and (document.uploaded_at is None or document.uploaded_at < min_uploaded)
        )

    @staticmethod
    def _to_result(
        chunk: ChunkRecord,
        document: DocumentRecord,
        similarity: float | None,
    ) -> ChunkSearchResult:
        return ChunkSearchResult(
            chunk_id=chunk.id,
            document_id=chunk.document_id,
            fund_id=chunk.fund_id,
            strategy_id=chunk.strategy_id,
            text=chunk.text,
            chunk_index=chunk.chunk_index,
            slide_number=chunk.slide_number,
            similarity=similarity,
            document=DocumentSummary(
                id=document.id,
                title=document.title,
                doc_type=document.doc_type,
                as_of_date=document.as_of_date,
                uploaded_at=document.uploaded_at,
            ),
        )


def _with_points(series: BenchmarkSeries, points: list[BenchmarkPoint]) -> BenchmarkSeries:
    return BenchmarkSeries(
        id=series.id,
        code=series.code,
        name=series.name,
        frequency=series.frequency,
        currency=series.currency,
        asset_class=series.asset_class,
        sector=series.sector,
        points=tuple(points),
    )
