"""Pipelines — ingestion write path and read-path orchestration."""

from fundrag.pipeline.ingest import IngestPipeline, chunk_id
from fundrag.pipeline.query import AnswerResult, FundContext, PanelResult, QueryPipeline
from fundrag.pipeline.schemas import (
    AnswerRequest,
    ContextRequest,
    IngestRequest,
    IngestResult,
    PanelRequest,
    SearchRequest,
    parse_request,
)

__all__ = [
    "AnswerRequest",
    "AnswerResult",
    "ContextRequest",
    "FundContext",
    "IngestPipeline",
    "IngestRequest",
    "IngestResult",
    "PanelRequest",
    "PanelResult",
    "QueryPipeline",
    "SearchRequest",
    "chunk_id",
    "parse_request",
]
