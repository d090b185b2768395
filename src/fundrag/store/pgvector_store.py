"""Postgres + pgvector document store.

Documents and chunks live in ``documents`` / ``document_chunks``; the chunk
embedding column is ``vector(dimension)`` with an HNSW cosine index. The
time-series tables (``funds``, ``fund_metrics``, ``benchmark_series``,
``benchmark_points``, ``fund_cash_flows``) are owned by other systems and only
read here.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any

import numpy as np
import psycopg
from pgvector.psycopg import register_vector
from psycopg.rows import dict_row

from fundrag.errors import (
    ConfigurationError,
    NotFoundError,
    StorageReadError,
    TableMissingError,
    TransactionError,
)
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
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

_SCHEMA_SQL = """
CREATE EXTENSION IF NOT EXISTS vector;

CREATE TABLE IF NOT EXISTS documents (
    id TEXT PRIMARY KEY,
    fund_id TEXT,
    strategy_id TEXT,
    file_id TEXT,
    title TEXT NOT NULL,
    doc_type TEXT,
    as_of_date DATE,
    uploaded_at TIMESTAMPTZ,
    source_system TEXT,
    page_count INTEGER,
    is_redacted BOOLEAN NOT NULL DEFAULT FALSE
);

CREATE TABLE IF NOT EXISTS document_chunks (
    id TEXT PRIMARY KEY,
    document_id TEXT NOT NULL REFERENCES documents(id),
    fund_id TEXT,
    strategy_id TEXT,
    chunk_index INTEGER NOT NULL,
    start_offset INTEGER NOT NULL,
    end_offset INTEGER NOT NULL,
    slide_number INTEGER,
    text TEXT NOT NULL,
    embedding vector({dimension}) NOT NULL,
    UNIQUE (document_id, chunk_index)
);

CREATE INDEX IF NOT EXISTS document_chunks_embedding_idx
    ON document_chunks USING hnsw (embedding vector_cosine_ops);
CREATE INDEX IF NOT EXISTS document_chunks_fund_idx ON document_chunks (fund_id);
CREATE INDEX IF NOT EXISTS documents_fund_uploaded_idx ON documents (fund_id, uploaded_at DESC);
"""

_UPSERT_DOCUMENT = """
INSERT INTO documents (
    id, fund_id, strategy_id, file_id, title, doc_type, as_of_date,
    uploaded_at, source_system, page_count, is_redacted
) VALUES (
    %(id)s, %(fund_id)s, %(strategy_id)s, %(file_id)s, %(title)s, %(doc_type)s,
    %(as_of_date)s, COALESCE(%(uploaded_at)s, NOW()), %(source_system)s,
    %(page_count)s, %(is_redacted)s
)
ON CONFLICT (id) DO UPDATE SET
    fund_id = EXCLUDED.fund_id,
    strategy_id = EXCLUDED.strategy_id,
    file_id = EXCLUDED.file_id,
    title = EXCLUDED.title,
    doc_type = EXCLUDED.doc_type,
    as_of_date = EXCLUDED.as_of_date,
    uploaded_at = EXCLUDED.uploaded_at,
    source_system = EXCLUDED.source_system,
    page_count = EXCLUDED.page_count,
    is_redacted = EXCLUDED.is_redacted
"""

_UPSERT_CHUNK = """
INSERT INTO document_chunks (
    id, document_id, fund_id, strategy_id, chunk_index, start_offset,
    end_offset, slide_number, text, embedding
) VALUES (
    %(id)s, %(document_id)s, %(fund_id)s, %(strategy_id)s, %(chunk_index)s,
    %(start_offset)s, %(end_offset)s, %(slide_number)s, %(text)s, %(embedding)s
)
ON CONFLICT (id) DO UPDATE SET
    document_id = EXCLUDED.document_id,
    fund_id = EXCLUDED.fund_id,
    strategy_id = EXCLUDED.strategy_id,
    chunk_index = EXCLUDED.chunk_index,
    start_offset = EXCLUDED.start_offset,
    end_offset = EXCLUDED.end_offset,
    slide_number = EXCLUDED.slide_number,
    text = EXCLUDED.text,
    embedding = EXCLUDED.embedding
"""

_PRUNE_CHUNKS = "DELETE FROM document_chunks WHERE document_id = %s AND chunk_index >= %s"

_CHUNK_COLUMNS = """
    dc.id, dc.document_id, dc.fund_id, dc.strategy_id, dc.chunk_index,
    dc.slide_number, dc.text,
    d.title, d.doc_type, d.as_of_date, d.uploaded_at
"""

_DOCUMENT_COLUMNS = (
    "id, fund_id, strategy_id, file_id, title, doc_type, as_of_date, "
    "uploaded_at, source_system, page_count, is_redacted"
)


# ---------------------------------------------------------------------------
# Transaction
# ---------------------------------------------------------------------------


class _PgTransaction(StoreTransaction):
    def __init__(self, conn: psycopg.Connection):
        self._conn = conn

    def upsert_document(self, document: DocumentRecord) -> None:
        self._conn.execute(
            _UPSERT_DOCUMENT,
            {
                "id": document.id,
                "fund_id": document.fund_id,
                "strategy_id": document.strategy_id,
                "file_id": document.file_id,
                "title": document.title,
                "doc_type": document.doc_type,
                "as_of_date": document.as_of_date,
                "uploaded_at": document.uploaded_at,
                "source_system": document.source_system,
                "page_count": document.page_count,
                "is_redacted": document.is_redacted,
            },
        )

    def upsert_chunk(self, chunk: ChunkRecord) -> None:
        self._conn.execute(
            _UPSERT_CHUNK,
            {
                "id": chunk.id,
                "document_id": chunk.document_id,
                "fund_id": chunk.fund_id,
                "strategy_id": chunk.strategy_id,
                "chunk_index": chunk.chunk_index,
                "start_offset": chunk.start_offset,
                "end_offset": chunk.end_offset,
                "slide_number": chunk.slide_number,
                "text": chunk.text,
                "embedding": np.asarray(chunk.embedding, dtype=np.float32),
            },
        )

    def prune_chunks(self, document_id: str, keep: int) -> None:
        self._conn.execute(_PRUNE_CHUNKS, (document_id, keep))


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class PgVectorStore(DocumentStore):
    """pgvector-backed store over a single psycopg connection."""

    def __init__(
        self,
        database_url: str | None = None,
        dimension: int = 768,
        conn: psycopg.Connection | None = None,
    ):
        super().__init__(dimension)
        if conn is None:
            if not database_url:
                raise ValueError("PgVectorStore needs a database_url or an open connection")
            try:
                conn = psycopg.connect(database_url, autocommit=True, row_factory=dict_row)
            except psycopg.Error as exc:
                raise ConfigurationError(f"cannot connect to pgvector database: {exc}") from exc
            try:
                register_vector(conn)
            except psycopg.ProgrammingError:
                # Fresh database: the type is registered once init_schema() creates it.
                logger.warning("vector extension not installed yet; run init-db")
        self._conn = conn
        logger.info("PgVectorStore connected (dim=%d)", dimension)

    def init_schema(self) -> None:
        """Create the extension, owned tables and indexes if missing."""
        try:
            self._conn.execute(_SCHEMA_SQL.format(dimension=int(self._dimension)))
            register_vector(self._conn)
        except psycopg.Error as exc:
            raise TransactionError(f"schema initialisation failed: {exc}") from exc
        logger.info("PgVectorStore schema ready")

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[StoreTransaction]:
        try:
            with self._conn.transaction():
                yield _PgTransaction(self._conn)
        except psycopg.Error as exc:
            raise TransactionError(f"storage write failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Chunk reads
    # ------------------------------------------------------------------

    def search_chunks(
        self,
        embedding: Sequence[float],
        filters: SearchFilters,
        limit: int,
    ) -> list[ChunkSearchResult]:
        conditions: list[str] = []
        params: dict[str, Any] = {
            "embedding": np.asarray(embedding, dtype=np.float32),
            "limit": limit,
        }
        if filters.fund_id:
            conditions.append("dc.fund_id = %(fund_id)s")
            params["fund_id"] = filters.fund_id
        if filters.strategy_id:
            conditions.append("dc.strategy_id = %(strategy_id)s")
            params["strategy_id"] = filters.strategy_id
        if filters.doc_types:
            conditions.append("d.doc_type = ANY(%(doc_types)s)")
            params["doc_types"] = list(filters.doc_types)
        if filters.min_uploaded_at:
            conditions.append("d.uploaded_at >= %(min_uploaded_at)s")
            params["min_uploaded_at"] = filters.min_uploaded_at

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        sql = f"""
            SELECT {_CHUNK_COLUMNS},
                   1 - (dc.embedding <=> %(embedding)s) AS similarity
            FROM document_chunks dc
            JOIN documents d ON d.id = dc.document_id
            {where}
            ORDER BY dc.embedding <=> %(embedding)s, dc.chunk_index ASC, dc.id ASC
            LIMIT %(limit)s
        """
        rows = self._fetch(sql, params, table="document_chunks")
        return [_row_to_result(r) for r in rows]

    def recent_chunks(self, fund_id: str, limit: int) -> list[ChunkSearchResult]:
        sql = f"""
            SELECT {_CHUNK_COLUMNS}, NULL AS similarity
            FROM document_chunks dc
            JOIN documents d ON d.id = dc.document_id
            WHERE dc.fund_id = %(fund_id)s
            ORDER BY d.uploaded_at DESC NULLS LAST, dc.chunk_index ASC
            LIMIT %(limit)s
        """
        rows = self._fetch(sql, {"fund_id": fund_id, "limit": limit}, table="document_chunks")
        return [_row_to_result(r) for r in rows]

    def get_document(self, document_id: str) -> DocumentRecord:
        rows = self._fetch(
            f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE id = %s",
            (document_id,),
            table="documents",
        )
        if not rows:
            raise NotFoundError(f"document '{document_id}' not found")
        return _row_to_document(rows[0])

    def count_chunks(self, document_id: str | None = None) -> int:
        if document_id is None:
            rows = self._fetch("SELECT COUNT(*) AS n FROM document_chunks", (), table="document_chunks")
        else:
            rows = self._fetch(
                "SELECT COUNT(*) AS n FROM document_chunks WHERE document_id = %s",
                (document_id,),
                table="document_chunks",
            )
        return int(rows[0]["n"])

    # ------------------------------------------------------------------
    # Context reads
    # ------------------------------------------------------------------

    def get_fund(self, fund_id: str) -> FundRecord | None:
        rows = self._fetch(
            """
            SELECT id, name, commitment, paid_in, nav, irr, tvpi, dpi,
                   asset_class, strategy, sector, base_currency
            FROM funds WHERE id = %s
            """,
            (fund_id,),
            table="funds",
        )
        return FundRecord(**rows[0]) if rows else None

    def fund_metrics(self, query: FundMetricsQuery) -> list[FundMetric]:
        conditions = ["fund_id = %(fund_id)s"]
        params: dict[str, Any] = {"fund_id": query.fund_id, "limit": query.limit}
        if query.from_date:
            conditions.append("as_of_date >= %(from_date)s")
            params["from_date"] = query.from_date
        if query.to_date:
            conditions.append("as_of_date <= %(to_date)s")
            params["to_date"] = query.to_date

        sql = f"""
            SELECT id, fund_id, as_of_date, nav, tvpi, dpi, irr, rvpi, committed,
                   called_to_date, unfunded, distributions_to_date, gross_irr,
                   net_irr, source_system
            FROM fund_metrics
            WHERE {' AND '.join(conditions)}
            ORDER BY as_of_date {_direction(query.order)}
            LIMIT %(limit)s
        """
        return [FundMetric(**r) for r in self._fetch(sql, params, table="fund_metrics")]

    def benchmark_series(self, query: BenchmarkQuery) -> list[BenchmarkSeries]:
        conditions: list[str] = []
        params: dict[str, Any] = {}
        if query.codes:
            conditions.append("code = ANY(%(codes)s)")
            params["codes"] = list(query.codes)
        if query.asset_class:
            conditions.append("asset_class = %(asset_class)s")
            params["asset_class"] = query.asset_class
        if query.sector:
            conditions.append("sector = %(sector)s")
            params["sector"] = query.sector

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        series_rows = self._fetch(
            f"""
            SELECT id, code, name, frequency, currency, asset_class, sector
            FROM benchmark_series
            {where}
            ORDER BY code ASC
            """,
            params,
            table="benchmark_series",
        )
        if not series_rows:
            return []

        point_conditions = ["series_id = ANY(%(series_ids)s)"]
        point_params: dict[str, Any] = {
            "series_ids": [r["id"] for r in series_rows],
            "limit_points": query.limit_points,
        }
        if query.from_date:
            point_conditions.append("date >= %(from_date)s")
            point_params["from_date"] = query.from_date
        if query.to_date:
            point_conditions.append("date <= %(to_date)s")
            point_params["to_date"] = query.to_date

        # Latest N points per series, returned oldest first.
        point_rows = self._fetch(
            f"""
            SELECT series_id, date, value FROM (
                SELECT series_id, date, value,
                       ROW_NUMBER() OVER (PARTITION BY series_id ORDER BY date DESC) AS rn
                FROM benchmark_points
                WHERE {' AND '.join(point_conditions)}
            ) ranked
            WHERE rn <= %(limit_points)s
            ORDER BY series_id, date ASC
            """,
            point_params,
            table="benchmark_points",
        )

        grouped: dict[str, list[BenchmarkPoint]] = {}
        for r in point_rows:
            grouped.setdefault(r["series_id"], []).append(
                BenchmarkPoint(series_id=r["series_id"], date=r["date"], value=float(r["value"]))
            )
        return [
            BenchmarkSeries(**r, points=tuple(grouped.get(r["id"], [])))
            for r in series_rows
        ]

    def fund_cash_flows(self, query: CashFlowsQuery) -> list[FundCashFlow]:
        conditions = ["fund_id = %(fund_id)s"]
        params: dict[str, Any] = {"fund_id": query.fund_id, "limit": query.limit}
        if query.from_date:
            conditions.append("flow_date >= %(from_date)s")
            params["from_date"] = query.from_date
        if query.to_date:
            conditions.append("flow_date <= %(to_date)s")
            params["to_date"] = query.to_date
        if query.flow_type:
            conditions.append("flow_type = %(flow_type)s")
            params["flow_type"] = query.flow_type

        sql = f"""
            SELECT id, fund_id, flow_date, flow_type, amount, currency, due_date, description
            FROM fund_cash_flows
            WHERE {' AND '.join(conditions)}
            ORDER BY flow_date {_direction(query.order)}
            LIMIT %(limit)s
        """
        return [FundCashFlow(**r) for r in self._fetch(sql, params, table="fund_cash_flows")]

    def list_documents(self, query: DocumentsQuery) -> list[DocumentRecord]:
        conditions = ["fund_id = %(fund_id)s"]
        params: dict[str, Any] = {"fund_id": query.fund_id, "limit": query.limit}
        if query.doc_types:
            conditions.append("doc_type = ANY(%(doc_types)s)")
            params["doc_types"] = list(query.doc_types)
        if query.from_date:
            conditions.append("uploaded_at >= %(from_date)s")
            params["from_date"] = query.from_date
        if query.to_date:
            conditions.append("uploaded_at <= %(to_date)s")
            params["to_date"] = query.to_date

        sql = f"""
            SELECT {_DOCUMENT_COLUMNS}
            FROM documents
            WHERE {' AND '.join(conditions)}
            ORDER BY uploaded_at {_direction(query.order)} NULLS LAST
            LIMIT %(limit)s
        """
        return [_row_to_document(r) for r in self._fetch(sql, params, table="documents")]

    def close(self) -> None:
        self._conn.close()

    # ------------------------------------------------------------------
    # Private
    # ------------------------------------------------------------------

    def _fetch(self, sql: str, params: Any, table: str) -> list[dict[str, Any]]:
        try:
            with self._conn.cursor() as cur:
                cur.execute(sql, params)
                return list(cur.fetchall())
        except psycopg.errors.UndefinedTable as exc:
            raise TableMissingError(table) from exc
        except psycopg.Error as exc:
            raise StorageReadError(f"storage read failed: {exc}") from exc


def _direction(order: str) -> str:
    return "ASC" if order == "asc" else "DESC"


def _row_to_document(row: dict[str, Any]) -> DocumentRecord:
    return DocumentRecord(
        id=row["id"],
        title=row["title"],
        fund_id=row["fund_id"],
        strategy_id=row["strategy_id"],
        file_id=row["file_id"],
        doc_type=row["doc_type"],
        as_of_date=row["as_of_date"],
        uploaded_at=row["uploaded_at"],
        source_system=row["source_system"],
        page_count=row["page_count"],
        is_redacted=bool(row["is_redacted"]),
    )


def _row_to_result(row: dict[str, Any]) -> ChunkSearchResult:
    similarity = row["similarity"]
    return ChunkSearchResult(
        chunk_id=row["id"],
        document_id=row["document_id"],
        fund_id=row["fund_id"],
        strategy_id=row["strategy_id"],
        text=row["text"],
        chunk_index=row["chunk_index"],
        slide_number=row["slide_number"],
        similarity=None if similarity is None else float(similarity),
        document=DocumentSummary(
            id=row["document_id"],
            title=row["title"],
            doc_type=row["doc_type"],
            as_of_date=row["as_of_date"],
            uploaded_at=row["uploaded_at"],
        ),
    )
