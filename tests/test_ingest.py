"""Tests for the ingestion pipeline — chunk, embed and upsert atomically."""

from __future__ import annotations

import pytest

from fundrag.errors import EmbeddingProviderError, NotFoundError, ValidationError
from fundrag.pipeline import IngestPipeline, IngestRequest, parse_request
from fundrag.pipeline.ingest import chunk_id
from fundrag.retrieval import SimilaritySearch

from conftest import FUND_ID, FakeEmbedder, hash_embed


def _request(body: dict) -> IngestRequest:
    return parse_request(IngestRequest, body)


def _chunks_body(n: int, doc_id: str = "deck-1") -> dict:
    return {
        "document": {"id": doc_id, "fundId": FUND_ID, "title": "Annual Meeting Deck"},
        "chunks": [{"text": f"Slide {i} commentary", "slideNumber": i + 1} for i in range(n)],
    }


class TestIngestText:
    def test_three_thousand_chars_makes_three_chunks(self, bare_store, embedder):
        pipeline = IngestPipeline(embedder, bare_store, chunk_size=1200, overlap=150)
        body = {"document": {"id": "doc-1", "title": "Q3"}, "text": "x" * 3000}

        result = pipeline.ingest(_request(body))

        assert result.to_dict() == {"documentId": "doc-1", "chunksInserted": 3}
        chunks = bare_store.chunks_for("doc-1")
        assert [(c.start_offset, c.end_offset) for c in chunks] == [(0, 1200), (1050, 2250), (2100, 3000)]
        assert len(embedder.calls) == 3

    def test_request_chunk_params_override_defaults(self, bare_store, embedder):
        pipeline = IngestPipeline(embedder, bare_store)
        body = {"document": {"id": "doc-1", "title": "Q3"}, "text": "x" * 1000,
                "chunkSize": 500, "overlap": 0}
        assert pipeline.ingest(_request(body)).chunks_inserted == 2

    def test_overlap_checked_against_defaults(self, bare_store, embedder):
        body = {"document": {"id": "doc-1", "title": "Q3"}, "text": "x" * 1000, "chunkSize": 200}

        ok = IngestPipeline(embedder, bare_store, chunk_size=1200, overlap=150)
        assert ok.ingest(_request(body)).chunks_inserted > 0

        embedder.calls.clear()
        bad = IngestPipeline(embedder, bare_store, chunk_size=1200, overlap=300)
        with pytest.raises(ValidationError, match="overlap"):
            bad.ingest(_request(body))
        assert embedder.calls == []

    def test_metadata_stored(self, services, ingest_body):
        services.ingest.ingest(_request(ingest_body))
        doc = services.store.get_document("doc-1")
        assert doc.fund_id == FUND_ID
        assert doc.doc_type == "quarterly_report"
        assert doc.as_of_date.isoformat() == "2024-09-30"
        assert doc.uploaded_at.year == 2024
        assert all(c.fund_id == FUND_ID for c in services.store.chunks_for("doc-1"))

    def test_generated_id_and_upload_time(self, bare_store, embedder):
        pipeline = IngestPipeline(embedder, bare_store)
        result = pipeline.ingest(_request({"document": {"title": "Untitled"}, "text": "hello world"}))
        doc = bare_store.get_document(result.document_id)
        assert doc.uploaded_at is not None
        assert doc.uploaded_at.tzinfo is not None


class TestIngestChunks:
    def test_supplied_chunks_keep_offsets_and_slides(self, bare_store, embedder):
        body = _chunks_body(2)
        body["chunks"][1].update({"startOffset": 40, "endOffset": 80})
        IngestPipeline(embedder, bare_store).ingest(_request(body))

        first, second = bare_store.chunks_for("deck-1")
        assert (first.start_offset, first.end_offset) == (0, len("Slide 0 commentary"))
        assert (second.start_offset, second.end_offset) == (40, 80)
        assert [first.slide_number, second.slide_number] == [1, 2]
        assert first.id == chunk_id("deck-1", 0)

    def test_failure_mid_document_persists_nothing(self, bare_store):
        embedder = FakeEmbedder(fail_on_call=3)
        pipeline = IngestPipeline(embedder, bare_store)

        with pytest.raises(EmbeddingProviderError):
            pipeline.ingest(_request(_chunks_body(5)))

        assert len(embedder.calls) == 3
        assert bare_store.count_chunks() == 0
        with pytest.raises(NotFoundError):
            bare_store.get_document("deck-1")

    def test_failed_reingest_keeps_previous_version(self, bare_store):
        IngestPipeline(FakeEmbedder(), bare_store).ingest(_request(_chunks_body(3)))
        with pytest.raises(EmbeddingProviderError):
            IngestPipeline(FakeEmbedder(fail_on_call=2), bare_store).ingest(_request(_chunks_body(4)))
        assert bare_store.count_chunks("deck-1") == 3

    def test_reingest_replaces_and_prunes(self, bare_store, embedder):
        pipeline = IngestPipeline(embedder, bare_store)
        pipeline.ingest(_request(_chunks_body(5)))
        first_ids = {c.id for c in bare_store.chunks_for("deck-1")}

        result = pipeline.ingest(_request(_chunks_body(2)))

        assert result.chunks_inserted == 2
        remaining = bare_store.chunks_for("deck-1")
        assert [c.chunk_index for c in remaining] == [0, 1]
        assert {c.id for c in remaining} <= first_ids

    def test_chunk_id_is_stable(self):
        assert chunk_id("doc", 0) == chunk_id("doc", 0)
        assert chunk_id("doc", 0) != chunk_id("doc", 1)
        assert chunk_id("doc", 1) != chunk_id("other", 1)


class TestIngestThenSearch:
    @staticmethod
    def _body(texts: list[str]) -> dict:
        return {
            "document": {"id": "letter-1", "fundId": FUND_ID, "title": "LP Letter"},
            "chunks": [{"text": t} for t in texts],
        }

    def test_own_embedding_ranks_first(self, bare_store, embedder):
        texts = [f"Q3 distribution notice, tranche {i}" for i in range(4)]
        IngestPipeline(embedder, bare_store).ingest(_request(self._body(texts)))

        results = SimilaritySearch(bare_store).search(hash_embed(texts[2]), fund_id=FUND_ID)

        assert results[0].text == texts[2]
        assert results[0].similarity == pytest.approx(1.0)

    def test_reingest_drops_old_content_from_search(self, bare_store, embedder):
        pipeline = IngestPipeline(embedder, bare_store)
        old = [f"Q2 capital call notice, tranche {i}" for i in range(3)]
        new = ["Q3 distribution notice, tranche 0"]
        pipeline.ingest(_request(self._body(old)))
        pipeline.ingest(_request(self._body(new)))

        search = SimilaritySearch(bare_store)
        for text in old:
            results = search.search(hash_embed(text), fund_id=FUND_ID, limit=50)
            assert text not in {r.text for r in results}
        assert [r.text for r in search.search(hash_embed(new[0]))] == new


class TestIngestValidation:
    @pytest.mark.parametrize(
        "body",
        [
            {"document": {"title": "T"}},
            {"document": {"title": "T"}, "text": "   "},
            {"document": {"title": "T"}, "chunks": []},
            {"document": {"title": "T"}, "text": "abc", "chunks": [{"text": "abc"}]},
            {"document": {"title": ""}, "text": "abc"},
            {"text": "abc"},
            {"document": {"title": "T"}, "text": "abc", "chunkSize": 100},
            {"document": {"title": "T"}, "text": "abc", "overlap": 600},
            {"document": {"title": "T"}, "text": "abc", "chunkSize": 300, "overlap": 300},
            {"document": {"title": "T"}, "chunks": [{"text": "  "}]},
            {"document": {"title": "T"}, "chunks": [{"text": "a", "startOffset": -1}]},
        ],
    )
    def test_rejected_before_any_io(self, body):
        with pytest.raises(ValidationError) as exc_info:
            _request(body)
        assert exc_info.value.status_code == 400
        assert "fieldErrors" in exc_info.value.details

    def test_non_object_body(self):
        with pytest.raises(ValidationError, match="JSON object"):
            parse_request(IngestRequest, ["not", "an", "object"])

    def test_snake_case_also_accepted(self):
        req = _request({"document": {"title": "T", "fund_id": "f"}, "text": "abc", "chunk_size": 300})
        assert req.document.fund_id == "f"
        assert req.chunk_size == 300
