"""Shared fixtures for tests — in-memory store, fake providers, no network."""

from __future__ import annotations

import hashlib
from collections.abc import Sequence
from datetime import date, datetime, timezone

import numpy as np
import pytest

from fundrag.app import Services, wire_services
from fundrag.config import Settings
from fundrag.embeddings.base import EmbeddingProvider
from fundrag.errors import ChatProviderError, EmbeddingProviderError
from fundrag.llm.base import LLMProvider
from fundrag.store.memory_store import MemoryStore
from fundrag.store.schemas import (
    BenchmarkPoint,
    BenchmarkSeries,
    FundCashFlow,
    FundMetric,
    FundRecord,
)

DIM = 32

# ---------------------------------------------------------------------------
# Fake providers
# ---------------------------------------------------------------------------


def hash_embed(text: str, dim: int = DIM) -> list[float]:
    """Deterministic unit vector seeded by the text's hash."""
    seed = int.from_bytes(hashlib.sha256(text.encode()).digest()[:8], "big")
    vec = np.random.default_rng(seed).normal(size=dim)
    vec /= np.linalg.norm(vec)
    return vec.tolist()


class FakeEmbedder(EmbeddingProvider):
    """Hash-based embedder that can be told to fail on the n-th call."""

    def __init__(self, dim: int = DIM, fail_on_call: int | None = None):
        super().__init__(dim)
        self.fail_on_call = fail_on_call
        self.calls: list[str] = []

    def _embed(self, text: str) -> Sequence[float]:
        self.calls.append(text)
        if self.fail_on_call is not None and len(self.calls) == self.fail_on_call:
            raise EmbeddingProviderError("upstream embedding failed")
        return hash_embed(text, self.dimension)


class FakeLLM(LLMProvider):
    """Returns scripted responses in order and records every prompt."""

    def __init__(self, responses: Sequence[str] = ("Returns improved [1].",)):
        self.model = "fake-llm"
        self.responses = list(responses)
        self.prompts: list[tuple[str, str | None]] = []

    def generate(
        self,
        prompt: str,
        system: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> str:
        self.prompts.append((prompt, system))
        if not self.responses:
            raise ChatProviderError("no scripted response left")
        if len(self.responses) == 1:
            return self.responses[0]
        return self.responses.pop(0)


# ---------------------------------------------------------------------------
# Seed data
# ---------------------------------------------------------------------------

FUND_ID = "fund-1"


@pytest.fixture
def fund() -> FundRecord:
    return FundRecord(
        id=FUND_ID,
        name="Evergreen Growth Fund III",
        commitment=10_000_000,
        paid_in=6_500_000,
        nav=7_200_000,
        irr=0.142,
        tvpi=1.38,
        dpi=0.41,
        asset_class="Private Equity",
        strategy="Growth",
        sector="Technology",
        base_currency="USD",
    )


@pytest.fixture
def metrics() -> list[FundMetric]:
    return [
        FundMetric(id="m1", fund_id=FUND_ID, as_of_date=date(2024, 3, 31), nav=6.9e6, tvpi=1.31),
        FundMetric(id="m2", fund_id=FUND_ID, as_of_date=date(2024, 6, 30), nav=7.0e6, tvpi=1.34),
        FundMetric(id="m3", fund_id=FUND_ID, as_of_date=date(2024, 9, 30), nav=7.2e6, tvpi=1.38),
        FundMetric(id="x1", fund_id="fund-2", as_of_date=date(2024, 9, 30), nav=1.0e6),
    ]


@pytest.fixture
def benchmarks() -> list[BenchmarkSeries]:
    def points(series_id: str, start: float) -> tuple[BenchmarkPoint, ...]:
        return tuple(
            BenchmarkPoint(series_id=series_id, date=date(2024, m, 1), value=start + m)
            for m in range(1, 7)
        )

    return [
        BenchmarkSeries(
            id="b1", code="PME-US", name="US PME Index", frequency="monthly",
            currency="USD", asset_class="Private Equity", points=points("b1", 100.0),
        ),
        BenchmarkSeries(
            id="b2", code="MSCI-W", name="MSCI World", frequency="monthly",
            currency="USD", asset_class="Public Equity", points=points("b2", 200.0),
        ),
    ]


@pytest.fixture
def cash_flows() -> list[FundCashFlow]:
    return [
        FundCashFlow(id="c1", fund_id=FUND_ID, flow_date=date(2024, 1, 15), flow_type="CALL", amount=500_000),
        FundCashFlow(id="c2", fund_id=FUND_ID, flow_date=date(2024, 4, 15), flow_type="DISTRIBUTION", amount=200_000),
        FundCashFlow(id="c3", fund_id=FUND_ID, flow_date=date(2024, 7, 15), flow_type="CALL", amount=300_000),
    ]


# ---------------------------------------------------------------------------
# Store, providers and services
# ---------------------------------------------------------------------------


@pytest.fixture
def store(fund, metrics, benchmarks, cash_flows) -> MemoryStore:
    """Memory store with every context table provisioned."""
    return MemoryStore(
        dimension=DIM,
        funds=[fund],
        fund_metrics=metrics,
        benchmark_series=benchmarks,
        cash_flows=cash_flows,
    )


@pytest.fixture
def bare_store() -> MemoryStore:
    """Memory store whose context tables were never provisioned."""
    return MemoryStore(dimension=DIM)


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def settings() -> Settings:
    return Settings(**{"store": {"backend": "memory"}, "embedding": {"dimension": DIM}})


@pytest.fixture
def services(settings, store, embedder, llm) -> Services:
    return wire_services(settings, store, embedder, llm)


@pytest.fixture
def ingest_body() -> dict:
    """A camelCase ingest request body as sent by the upload UI."""
    return {
        "document": {
            "id": "doc-1",
            "fundId": FUND_ID,
            "title": "Q3 2024 LP Update",
            "docType": "quarterly_report",
            "asOfDate": "2024-09-30",
            "uploadedAt": datetime(2024, 10, 15, tzinfo=timezone.utc).isoformat(),
        },
        "text": "".join(f"Paragraph {i}: NAV rose on portfolio markups. " for i in range(80)),
    }
