"""Request and result models for the pipeline.

Request bodies arrive as camelCase JSON. ``parse_request`` validates them
into typed models once, so everything downstream receives well-formed input.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from fundrag.errors import ValidationError

M = TypeVar("M", bound=BaseModel)

MIN_CHUNK_SIZE = 200
MAX_CHUNK_SIZE = 4000
MAX_OVERLAP = 500


class _Request(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


def _blank(value: str | None) -> bool:
    return value is None or not value.strip()


def _split_codes(value: Any) -> Any:
    if isinstance(value, str):
        return [c.strip() for c in value.split(",") if c.strip()]
    return value


# ---------------------------------------------------------------------------
# Ingest
# ---------------------------------------------------------------------------


class DocumentInput(_Request):
    id: str | None = None
    fund_id: str | None = None
    strategy_id: str | None = None
    file_id: str | None = None
    title: str = Field(min_length=1)
    doc_type: str | None = None
    as_of_date: date | None = None
    uploaded_at: datetime | None = None
    source_system: str | None = None
    page_count: int | None = Field(default=None, ge=0)
    is_redacted: bool | None = None

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("title must not be blank")
        return value


class ChunkInput(_Request):
    text: str
    slide_number: int | None = None
    start_offset: int | None = Field(default=None, ge=0)
    end_offset: int | None = Field(default=None, ge=0)

    @field_validator("text")
    @classmethod
    def _text_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("chunk text must not be blank")
        return value


class IngestRequest(_Request):
    """``POST ingest`` body. Exactly one of ``text`` / ``chunks`` is non-empty."""

    document: DocumentInput
    text: str | None = None
    chunks: list[ChunkInput] | None = None
    chunk_size: int | None = Field(default=None, ge=MIN_CHUNK_SIZE, le=MAX_CHUNK_SIZE)
    overlap: int | None = Field(default=None, ge=0, le=MAX_OVERLAP)

    @model_validator(mode="after")
    def _check_content(self) -> IngestRequest:
        has_text = not _blank(self.text)
        has_chunks = bool(self.chunks)
        if not has_text and not has_chunks:
            raise ValueError("Either text or chunks must be provided")
        if has_text and has_chunks:
            raise ValueError("Provide either text or chunks, not both")
        if (
            self.chunk_size is not None
            and self.overlap is not None
            and self.overlap >= self.chunk_size
        ):
            raise ValueError("overlap must be smaller than chunkSize")
        return self


@dataclass
class IngestResult:
    """Result of document ingestion."""

    document_id: str
    chunks_inserted: int

    def to_dict(self) -> dict[str, Any]:
        return {"documentId": self.document_id, "chunksInserted": self.chunks_inserted}


# ---------------------------------------------------------------------------
# Read path
# ---------------------------------------------------------------------------


class SearchRequest(_Request):
    """``POST search`` body. A query or an embedding must be supplied."""

    query: str | None = None
    embedding: list[float] | None = None
    fund_id: str | None = None
    strategy_id: str | None = None
    doc_types: list[str] | None = None
    min_uploaded_at: datetime | None = None
    limit: int | None = None

    @model_validator(mode="after")
    def _check_vector_source(self) -> SearchRequest:
        if not self.embedding and _blank(self.query):
            raise ValueError("Provide either a query or an embedding")
        return self


class AnswerRequest(_Request):
    """Question-answering body; ``fund_id`` comes from the path."""

    fund_id: str = Field(min_length=1)
    question: str = Field(min_length=1)
    benchmark_codes: list[str] | None = None
    embedding: list[float] | None = None

    @field_validator("question")
    @classmethod
    def _question_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("question must not be blank")
        return value.strip()

    @field_validator("benchmark_codes", mode="before")
    @classmethod
    def _codes(cls, value: Any) -> Any:
        return _split_codes(value)


class PanelRequest(_Request):
    """Panel query; ``benchmarkCodes`` may be a comma-separated string."""

    fund_id: str = Field(min_length=1)
    benchmark_codes: list[str] | None = None

    @field_validator("benchmark_codes", mode="before")
    @classmethod
    def _codes(cls, value: Any) -> Any:
        return _split_codes(value)


ContextSource = Literal["metrics", "cash_flows", "documents", "benchmarks"]


class ContextRequest(_Request):
    """Range query against one time-series context source."""

    source: ContextSource
    fund_id: str | None = None
    limit: int | None = None
    from_date: date | None = None
    to_date: date | None = None
    order: Literal["asc", "desc"] = "desc"
    flow_type: Literal["CALL", "DISTRIBUTION", "OTHER"] | None = None
    doc_types: list[str] | None = None
    codes: list[str] | None = None
    asset_class: str | None = None
    sector: str | None = None

    @field_validator("doc_types", "codes", mode="before")
    @classmethod
    def _lists(cls, value: Any) -> Any:
        return _split_codes(value)

    @model_validator(mode="after")
    def _fund_required(self) -> ContextRequest:
        if self.source != "benchmarks" and not self.fund_id:
            raise ValueError(f"fundId is required for {self.source}")
        return self


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _field_errors(exc: PydanticValidationError) -> dict[str, list[str]]:
    errors: dict[str, list[str]] = {}
    for err in exc.errors():
        key = ".".join(str(p) for p in err["loc"]) or "body"
        errors.setdefault(key, []).append(err["msg"])
    return errors


def parse_request(model: type[M], data: Any) -> M:
    """Validate ``data`` into ``model``.

    Raises:
        ValidationError: ``data`` is not an object or fails validation.
    """
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(
            "Invalid request",
            details={"fieldErrors": _field_errors(exc)},
        ) from exc
