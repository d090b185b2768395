"""Ingestion pipeline — request → chunk → embed → atomic upsert.

Every chunk of a document is embedded serially inside one store
transaction. A failure on any chunk rolls back the document upsert and every
chunk written before it, so search never sees a partially embedded document.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from fundrag.chunking.schemas import Chunk
from fundrag.chunking.window_chunker import DEFAULT_CHUNK_SIZE, DEFAULT_OVERLAP, WindowChunker
from fundrag.embeddings.base import EmbeddingProvider
from fundrag.errors import ValidationError
from fundrag.pipeline.schemas import IngestRequest, IngestResult
from fundrag.store.base import DocumentStore
from fundrag.store.schemas import ChunkRecord, DocumentRecord, ensure_utc

logger = logging.getLogger(__name__)

_CHUNK_NAMESPACE = uuid.UUID("6f1c1a8e-3f53-4b9e-9a51-0c8d5f3f2a77")


def chunk_id(document_id: str, chunk_index: int) -> str:
    """Stable chunk identity so re-ingestion overwrites the same rows."""
    return str(uuid.uuid5(_CHUNK_NAMESPACE, f"{document_id}:{chunk_index}"))


class IngestPipeline:
    """Orchestrates ingestion: prepare chunks → embed → store in one transaction."""

    def __init__(
        self,
        embedding_provider: EmbeddingProvider,
        store: DocumentStore,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        overlap: int = DEFAULT_OVERLAP,
    ):
        self.embedding_provider = embedding_provider
        self.store = store
        self.chunk_size = chunk_size
        self.overlap = overlap

    def ingest(self, request: IngestRequest) -> IngestResult:
        """Persist a document and all of its chunks, or nothing.

        Raises:
            ValidationError: the request's chunkSize/overlap combination is invalid.
            EmbeddingProviderError: embedding any chunk failed (rolled back).
            TransactionError: a storage write failed (rolled back).
        """
        document = self._document_record(request)
        chunks = self._prepare_chunks(request)

        with self.store.transaction() as txn:
            txn.upsert_document(document)
            for chunk in chunks:
                embedding = self.embedding_provider.embed(chunk.text)
                txn.upsert_chunk(
                    ChunkRecord(
                        id=chunk_id(document.id, chunk.chunk_index),
                        document_id=document.id,
                        chunk_index=chunk.chunk_index,
                        start_offset=chunk.start_offset,
                        end_offset=chunk.end_offset,
                        text=chunk.text,
                        embedding=embedding,
                        fund_id=document.fund_id,
                        strategy_id=document.strategy_id,
                        slide_number=chunk.slide_number,
                    )
                )
            txn.prune_chunks(document.id, keep=len(chunks))

        logger.info(
            "Ingested document %s: %d chunks (fund=%s)",
            document.id,
            len(chunks),
            document.fund_id,
        )
        return IngestResult(document_id=document.id, chunks_inserted=len(chunks))

    # ------------------------------------------------------------------
    # Private
    # ------------------------------------------------------------------

    @staticmethod
    def _document_record(request: IngestRequest) -> DocumentRecord:
        doc = request.document
        return DocumentRecord(
            id=doc.id or str(uuid.uuid4()),
            title=doc.title,
            fund_id=doc.fund_id,
            strategy_id=doc.strategy_id,
            file_id=doc.file_id,
            doc_type=doc.doc_type,
            as_of_date=doc.as_of_date,
            uploaded_at=ensure_utc(doc.uploaded_at) or datetime.now(timezone.utc),
            source_system=doc.source_system,
            page_count=doc.page_count,
            is_redacted=bool(doc.is_redacted),
        )

    def _prepare_chunks(self, request: IngestRequest) -> list[Chunk]:
        if request.chunks:
            return [
                Chunk(
                    text=c.text,
                    chunk_index=i,
                    start_offset=c.start_offset if c.start_offset is not None else 0,
                    end_offset=c.end_offset if c.end_offset is not None else len(c.text),
                    slide_number=c.slide_number,
                )
                for i, c in enumerate(request.chunks)
            ]

        chunk_size = request.chunk_size if request.chunk_size is not None else self.chunk_size
        overlap = request.overlap if request.overlap is not None else self.overlap
        if overlap >= chunk_size:
            raise ValidationError(
                "overlap must be smaller than chunkSize",
                details={"chunkSize": chunk_size, "overlap": overlap},
            )
        chunker = WindowChunker(chunk_size=chunk_size, overlap=overlap)
        return list(chunker.chunk(request.text or ""))
