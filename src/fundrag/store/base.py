"""Abstract base classes for document stores."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from contextlib import AbstractContextManager

from fundrag.store.schemas import (
    BenchmarkQuery,
    BenchmarkSeries,
    CashFlowsQuery,
    ChunkRecord,
    ChunkSearchResult,
    DocumentRecord,
    DocumentsQuery,
    FundCashFlow,
    FundMetric,
    FundMetricsQuery,
    FundRecord,
    SearchFilters,
)


class StoreTransaction(ABC):
    """Writes staged inside one ``DocumentStore.transaction()`` block."""

    @abstractmethod
    def upsert_document(self, document: DocumentRecord) -> None:
        """Insert a document or overwrite every metadata field of an existing one."""

    @abstractmethod
    def upsert_chunk(self, chunk: ChunkRecord) -> None:
        """Insert a chunk or overwrite every field of the chunk with the same id."""

    @abstractmethod
    def prune_chunks(self, document_id: str, keep: int) -> None:
        """Delete the document's chunks whose index is ``>= keep``."""


class DocumentStore(ABC):
    """Interface for the relational + vector store behind the pipeline.

    Writes only happen through ``transaction()``: leaving the block normally
    commits, leaving it with an exception rolls every staged write back.
    Storage failures surface as ``TransactionError``; any other exception
    raised inside the block propagates unchanged after the rollback.
    """

    def __init__(self, dimension: int):
        self._dimension = dimension

    @property
    def dimension(self) -> int:
        """Length of every stored embedding."""
        return self._dimension

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @abstractmethod
    def transaction(self) -> AbstractContextManager[StoreTransaction]:
        """Open an all-or-nothing write scope."""

    # ------------------------------------------------------------------
    # Chunk reads
    # ------------------------------------------------------------------

    @abstractmethod
    def search_chunks(
        self,
        embedding: Sequence[float],
        filters: SearchFilters,
        limit: int,
    ) -> list[ChunkSearchResult]:
        """Rank chunks by cosine distance to ``embedding``, closest first.

        Ties are broken by chunk index, then chunk id.
        """

    @abstractmethod
    def recent_chunks(self, fund_id: str, limit: int) -> list[ChunkSearchResult]:
        """Return a fund's chunks from its most recently uploaded documents."""

    @abstractmethod
    def get_document(self, document_id: str) -> DocumentRecord:
        """Return one document or raise ``NotFoundError``."""

    @abstractmethod
    def count_chunks(self, document_id: str | None = None) -> int:
        """Count stored chunks, optionally for a single document."""

    # ------------------------------------------------------------------
    # Context reads (raise TableMissingError when not provisioned)
    # ------------------------------------------------------------------

    @abstractmethod
    def get_fund(self, fund_id: str) -> FundRecord | None:
        """Return the fund record, or ``None`` if no such fund."""

    @abstractmethod
    def fund_metrics(self, query: FundMetricsQuery) -> list[FundMetric]:
        """Return fund metric snapshots ordered by as-of date."""

    @abstractmethod
    def benchmark_series(self, query: BenchmarkQuery) -> list[BenchmarkSeries]:
        """Return matching series, each with its points ascending by date."""

    @abstractmethod
    def fund_cash_flows(self, query: CashFlowsQuery) -> list[FundCashFlow]:
        """Return cash-flow events ordered by flow date."""

    @abstractmethod
    def list_documents(self, query: DocumentsQuery) -> list[DocumentRecord]:
        """Return a fund's document catalog ordered by upload time."""

    def close(self) -> None:
        """Release connections (optional)."""

    @classmethod
    def store_name(cls) -> str:
        """Return human-readable store name."""
        return cls.__name__
