"""Tests for document stores — in-memory semantics and pgvector SQL plumbing."""

from __future__ import annotations

from datetime import date, datetime, timezone
from unittest.mock import MagicMock, patch

import psycopg
import pytest

from fundrag.config import StoreSettings
from fundrag.errors import (
    ConfigurationError,
    NotFoundError,
    StorageReadError,
    TableMissingError,
    TransactionError,
)
from fundrag.store import available_stores, build_store, get_document_store
from fundrag.store.memory_store import MemoryStore
from fundrag.store.pgvector_store import PgVectorStore
from fundrag.store.schemas import (
    BenchmarkQuery,
    CashFlowsQuery,
    ChunkRecord,
    DocumentRecord,
    DocumentsQuery,
    FundMetricsQuery,
    SearchFilters,
)

from conftest import DIM, FUND_ID, hash_embed


def _doc(doc_id: str, uploaded_at: datetime | None = None, **kw) -> DocumentRecord:
    return DocumentRecord(id=doc_id, title=f"Doc {doc_id}", fund_id=kw.pop("fund_id", FUND_ID),
                          uploaded_at=uploaded_at, **kw)


def _chunk(doc: DocumentRecord, index: int, embedding: list[float] | None = None, **kw) -> ChunkRecord:
    text = kw.pop("text", f"{doc.id} chunk {index}")
    return ChunkRecord(
        id=f"{doc.id}-{index}",
        document_id=doc.id,
        chunk_index=index,
        start_offset=0,
        end_offset=len(text),
        text=text,
        embedding=embedding if embedding is not None else hash_embed(text),
        fund_id=doc.fund_id,
        **kw,
    )


def _write(store: MemoryStore, doc: DocumentRecord, chunks: list[ChunkRecord]) -> None:
    with store.transaction() as txn:
        txn.upsert_document(doc)
        for c in chunks:
            txn.upsert_chunk(c)


# ---------------------------------------------------------------------------
# MemoryStore transactions
# ---------------------------------------------------------------------------


class TestMemoryTransactions:
    def test_commit_on_clean_exit(self, bare_store):
        doc = _doc("d1")
        _write(bare_store, doc, [_chunk(doc, 0), _chunk(doc, 1)])
        assert bare_store.get_document("d1").title == "Doc d1"
        assert bare_store.count_chunks("d1") == 2
        assert bare_store.count_chunks() == 2

    def test_rollback_on_exception(self, bare_store):
        doc = _doc("d1")
        with pytest.raises(RuntimeError):
            with bare_store.transaction() as txn:
                txn.upsert_document(doc)
                txn.upsert_chunk(_chunk(doc, 0))
                raise RuntimeError("embedding failed")
        assert bare_store.count_chunks() == 0
        with pytest.raises(NotFoundError):
            bare_store.get_document("d1")

    def test_dimension_mismatch_rolls_back(self, bare_store):
        doc = _doc("d1")
        with pytest.raises(TransactionError, match="dimensions"):
            with bare_store.transaction() as txn:
                txn.upsert_document(doc)
                txn.upsert_chunk(_chunk(doc, 0, embedding=[1.0, 0.0]))
        assert bare_store.count_chunks() == 0

    def test_upsert_overwrites_and_prunes(self, bare_store):
        doc = _doc("d1")
        _write(bare_store, doc, [_chunk(doc, i) for i in range(4)])

        renamed = DocumentRecord(id="d1", title="Renamed", fund_id=FUND_ID)
        with bare_store.transaction() as txn:
            txn.upsert_document(renamed)
            txn.upsert_chunk(_chunk(doc, 0, text="new first chunk"))
            txn.prune_chunks("d1", keep=1)

        assert bare_store.get_document("d1").title == "Renamed"
        chunks = bare_store.chunks_for("d1")
        assert [c.chunk_index for c in chunks] == [0]
        assert chunks[0].text == "new first chunk"


# ---------------------------------------------------------------------------
# MemoryStore search
# ---------------------------------------------------------------------------


class TestMemorySearch:
    def test_exact_match_ranks_first(self, bare_store):
        doc = _doc("d1")
        chunks = [_chunk(doc, i, text=f"topic {i}") for i in range(5)]
        _write(bare_store, doc, chunks)

        results = bare_store.search_chunks(hash_embed("topic 3"), SearchFilters(), limit=5)
        assert results[0].chunk_id == "d1-3"
        assert results[0].similarity == pytest.approx(1.0)
        sims = [r.similarity for r in results]
        assert sims == sorted(sims, reverse=True)
        assert results[0].document.title == "Doc d1"

    def test_ties_break_on_chunk_index_then_id(self, bare_store):
        vec = hash_embed("same")
        a = _doc("a")
        b = _doc("b")
        _write(bare_store, b, [_chunk(b, 1, embedding=vec), _chunk(b, 0, embedding=vec)])
        _write(bare_store, a, [_chunk(a, 1, embedding=vec)])

        ids = [r.chunk_id for r in bare_store.search_chunks(vec, SearchFilters(), limit=10)]
        assert ids == ["b-0", "a-1", "b-1"]

    def test_limit(self, bare_store):
        doc = _doc("d1")
        _write(bare_store, doc, [_chunk(doc, i) for i in range(6)])
        assert len(bare_store.search_chunks(hash_embed("q"), SearchFilters(), limit=2)) == 2

    def test_filters_are_anded(self, bare_store):
        old = _doc("old", uploaded_at=datetime(2023, 1, 1, tzinfo=timezone.utc), doc_type="notice")
        new = _doc("new", uploaded_at=datetime(2024, 6, 1, tzinfo=timezone.utc), doc_type="report")
        other = _doc("other", fund_id="fund-2", doc_type="report")
        for d in (old, new, other):
            _write(bare_store, d, [_chunk(d, 0)])

        q = hash_embed("q")
        by_fund = bare_store.search_chunks(q, SearchFilters(fund_id=FUND_ID), 10)
        assert {r.document_id for r in by_fund} == {"old", "new"}

        by_type = bare_store.search_chunks(q, SearchFilters(doc_types=("report",)), 10)
        assert {r.document_id for r in by_type} == {"new", "other"}

        # Naive timestamps are read as UTC; undated documents never match.
        recent = bare_store.search_chunks(
            q, SearchFilters(fund_id=FUND_ID, min_uploaded_at=datetime(2024, 1, 1)), 10
        )
        assert [r.document_id for r in recent] == ["new"]

    def test_min_uploaded_at_is_inclusive(self, bare_store):
        boundary = datetime(2024, 7, 1, tzinfo=timezone.utc)
        before = _doc("before", uploaded_at=datetime(2024, 6, 30, 23, 59, 59, tzinfo=timezone.utc))
        exact = _doc("exact", uploaded_at=boundary)
        after = _doc("after", uploaded_at=datetime(2024, 7, 1, 0, 0, 1, tzinfo=timezone.utc))
        for d in (before, exact, after):
            _write(bare_store, d, [_chunk(d, 0)])

        results = bare_store.search_chunks(hash_embed("q"), SearchFilters(min_uploaded_at=boundary), 10)
        assert {r.document_id for r in results} == {"exact", "after"}

    def test_zero_norm_vector_has_zero_similarity(self, bare_store):
        doc = _doc("d1")
        _write(bare_store, doc, [_chunk(doc, 0, embedding=[0.0] * DIM)])
        results = bare_store.search_chunks(hash_embed("q"), SearchFilters(), 5)
        assert results[0].similarity == pytest.approx(0.0)

    def test_empty_store(self, bare_store):
        assert bare_store.search_chunks(hash_embed("q"), SearchFilters(), 5) == []

    def test_recent_chunks_newest_first(self, bare_store):
        undated = _doc("undated")
        older = _doc("older", uploaded_at=datetime(2024, 1, 1, tzinfo=timezone.utc))
        newer = _doc("newer", uploaded_at=datetime(2024, 9, 1, tzinfo=timezone.utc))
        for d in (undated, older, newer):
            _write(bare_store, d, [_chunk(d, 1), _chunk(d, 0)])

        results = bare_store.recent_chunks(FUND_ID, limit=10)
        assert [r.chunk_id for r in results] == [
            "newer-0", "newer-1", "older-0", "older-1", "undated-0", "undated-1",
        ]
        assert all(r.similarity is None for r in results)
        assert len(bare_store.recent_chunks(FUND_ID, limit=3)) == 3
        assert bare_store.recent_chunks("fund-9", limit=3) == []


# ---------------------------------------------------------------------------
# MemoryStore context reads
# ---------------------------------------------------------------------------


class TestMemoryContext:
    def test_missing_tables(self, bare_store):
        with pytest.raises(TableMissingError) as exc_info:
            bare_store.fund_metrics(FundMetricsQuery(fund_id=FUND_ID, limit=5))
        assert exc_info.value.table == "fund_metrics"
        with pytest.raises(TableMissingError):
            bare_store.get_fund(FUND_ID)
        with pytest.raises(TableMissingError):
            bare_store.benchmark_series(BenchmarkQuery(limit_points=5))
        with pytest.raises(TableMissingError):
            bare_store.fund_cash_flows(CashFlowsQuery(fund_id=FUND_ID, limit=5))

    def test_get_fund(self, store):
        assert store.get_fund(FUND_ID).name == "Evergreen Growth Fund III"
        assert store.get_fund("nope") is None

    def test_metrics_order_and_range(self, store):
        desc = store.fund_metrics(FundMetricsQuery(fund_id=FUND_ID, limit=10))
        assert [m.id for m in desc] == ["m3", "m2", "m1"]

        ranged = store.fund_metrics(
            FundMetricsQuery(fund_id=FUND_ID, limit=10, from_date=date(2024, 6, 1), order="asc")
        )
        assert [m.id for m in ranged] == ["m2", "m3"]
        assert len(store.fund_metrics(FundMetricsQuery(fund_id=FUND_ID, limit=1))) == 1

    def test_benchmarks_latest_points_ascending(self, store):
        series = store.benchmark_series(BenchmarkQuery(limit_points=3, codes=("PME-US",)))
        assert [s.code for s in series] == ["PME-US"]
        assert [p.date.month for p in series[0].points] == [4, 5, 6]

    def test_benchmarks_sorted_by_code(self, store):
        series = store.benchmark_series(BenchmarkQuery(limit_points=120))
        assert [s.code for s in series] == ["MSCI-W", "PME-US"]

    def test_cash_flows_by_type(self, store):
        calls = store.fund_cash_flows(CashFlowsQuery(fund_id=FUND_ID, limit=10, flow_type="CALL"))
        assert [f.id for f in calls] == ["c3", "c1"]

    def test_list_documents_nulls_last(self, bare_store):
        for d in (
            _doc("undated"),
            _doc("a", uploaded_at=datetime(2024, 1, 1, tzinfo=timezone.utc)),
            _doc("b", uploaded_at=datetime(2024, 2, 1, tzinfo=timezone.utc)),
        ):
            _write(bare_store, d, [])
        desc = bare_store.list_documents(DocumentsQuery(fund_id=FUND_ID, limit=10))
        asc = bare_store.list_documents(DocumentsQuery(fund_id=FUND_ID, limit=10, order="asc"))
        assert [d.id for d in desc] == ["b", "a", "undated"]
        assert [d.id for d in asc] == ["a", "b", "undated"]


# ---------------------------------------------------------------------------
# PgVectorStore against a mocked connection
# ---------------------------------------------------------------------------


def _pg(rows: list[dict] | None = None) -> tuple[PgVectorStore, MagicMock, MagicMock]:
    conn = MagicMock()
    cur = MagicMock()
    cur.fetchall.return_value = rows or []
    conn.cursor.return_value.__enter__.return_value = cur
    return PgVectorStore(dimension=DIM, conn=conn), conn, cur


class TestPgVectorStore:
    def test_requires_url_or_connection(self):
        with pytest.raises(ValueError):
            PgVectorStore()

    def test_search_sql_and_params(self):
        store, _, cur = _pg([
            {
                "id": "c1", "document_id": "d1", "fund_id": FUND_ID, "strategy_id": None,
                "chunk_index": 0, "slide_number": 2, "text": "NAV up",
                "title": "Q3", "doc_type": "report", "as_of_date": None,
                "uploaded_at": None, "similarity": 0.91,
            }
        ])
        results = store.search_chunks(
            hash_embed("q"), SearchFilters(fund_id=FUND_ID, doc_types=("report",)), limit=5
        )
        sql, params = cur.execute.call_args.args
        assert "ORDER BY dc.embedding <=> %(embedding)s, dc.chunk_index ASC, dc.id ASC" in sql
        assert "dc.fund_id = %(fund_id)s" in sql
        assert "d.doc_type = ANY(%(doc_types)s)" in sql
        assert params["limit"] == 5
        assert params["doc_types"] == ["report"]
        assert results[0].similarity == pytest.approx(0.91)
        assert results[0].slide_number == 2
        assert results[0].document.title == "Q3"

    def test_undefined_table_maps_to_table_missing(self):
        store, _, cur = _pg()
        cur.execute.side_effect = psycopg.errors.UndefinedTable("relation does not exist")
        with pytest.raises(TableMissingError) as exc_info:
            store.fund_cash_flows(CashFlowsQuery(fund_id=FUND_ID, limit=5))
        assert exc_info.value.table == "fund_cash_flows"

    def test_connection_loss_maps_to_storage_read_error(self):
        store, _, cur = _pg()
        cur.execute.side_effect = psycopg.OperationalError("connection lost")
        with pytest.raises(StorageReadError, match="storage read failed: connection lost"):
            store.search_chunks(hash_embed("q"), SearchFilters(), limit=5)

    def test_statement_timeout_on_context_read(self):
        store, _, cur = _pg()
        cur.execute.side_effect = psycopg.errors.QueryCanceled("canceling statement due to statement timeout")
        with pytest.raises(StorageReadError) as exc_info:
            store.fund_metrics(FundMetricsQuery(fund_id=FUND_ID, limit=5))
        assert exc_info.value.status_code == 500

    def test_search_min_uploaded_at_is_inclusive(self):
        store, _, cur = _pg()
        boundary = datetime(2024, 7, 1, tzinfo=timezone.utc)
        store.search_chunks(hash_embed("q"), SearchFilters(min_uploaded_at=boundary), 5)
        sql, params = cur.execute.call_args.args
        assert "d.uploaded_at >= %(min_uploaded_at)s" in sql
        assert params["min_uploaded_at"] == boundary

    def test_get_document_not_found(self):
        store, _, _ = _pg([])
        with pytest.raises(NotFoundError):
            store.get_document("missing")

    def test_write_failure_becomes_transaction_error(self):
        store, conn, _ = _pg()
        conn.execute.side_effect = psycopg.errors.UniqueViolation("duplicate key")
        with pytest.raises(TransactionError, match="storage write failed"):
            with store.transaction() as txn:
                txn.upsert_document(_doc("d1"))
        conn.transaction.assert_called_once()

    def test_transaction_executes_upserts_and_prune(self):
        store, conn, _ = _pg()
        doc = _doc("d1")
        with store.transaction() as txn:
            txn.upsert_document(doc)
            txn.upsert_chunk(_chunk(doc, 0))
            txn.prune_chunks("d1", 1)

        statements = [c.args[0] for c in conn.execute.call_args_list]
        assert "INSERT INTO documents" in statements[0]
        assert "INSERT INTO document_chunks" in statements[1]
        assert statements[2].startswith("DELETE FROM document_chunks")
        assert conn.execute.call_args_list[2].args[1] == ("d1", 1)

    def test_init_schema_uses_dimension(self):
        store, conn, _ = _pg()
        with patch("fundrag.store.pgvector_store.register_vector") as register:
            store.init_schema()
        assert f"vector({DIM})" in conn.execute.call_args.args[0]
        register.assert_called_once_with(conn)

    def test_connect_failure_is_configuration_error(self):
        with patch(
            "fundrag.store.pgvector_store.psycopg.connect",
            side_effect=psycopg.OperationalError("connection refused"),
        ):
            with pytest.raises(ConfigurationError, match="cannot connect"):
                PgVectorStore(database_url="postgresql://nowhere/db")

    def test_benchmark_points_grouped(self):
        store, _, cur = _pg()
        cur.fetchall.side_effect = [
            [{"id": "b1", "code": "PME-US", "name": "US PME", "frequency": "monthly",
              "currency": "USD", "asset_class": None, "sector": None}],
            [{"series_id": "b1", "date": date(2024, 1, 1), "value": 101},
             {"series_id": "b1", "date": date(2024, 2, 1), "value": 102}],
        ]
        series = store.benchmark_series(BenchmarkQuery(limit_points=2, codes=("PME-US",)))
        assert [p.value for p in series[0].points] == [101.0, 102.0]
        assert "ROW_NUMBER()" in cur.execute.call_args.args[0]


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


class TestStoreFactory:
    def test_available(self):
        assert available_stores() == ["memory", "pgvector"]

    def test_unknown(self):
        with pytest.raises(ConfigurationError):
            get_document_store("sqlite")

    def test_pgvector_requires_url(self):
        with pytest.raises(ConfigurationError, match="DATABASE_URL"):
            build_store(StoreSettings(backend="pgvector"), dimension=DIM)

    def test_memory(self):
        store = build_store(StoreSettings(backend="memory"), dimension=DIM)
        assert isinstance(store, MemoryStore)
        assert store.dimension == DIM
