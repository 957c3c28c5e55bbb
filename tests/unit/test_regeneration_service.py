"""
Unit tests for EmbeddingRegenerationService
"""

import asyncio
from contextlib import suppress
from uuid import uuid4

import pytest

from labeler.core.exceptions import RateLimitedError
from labeler.embedding.mock import MockEmbeddingProvider
from labeler.models.transaction import EMBEDDING_FIELDS, Transaction
from labeler.services.regeneration_service import EmbeddingRegenerationService
from labeler.vectorstore.memory import InMemoryVectorStore


class SelectiveFailureProvider(MockEmbeddingProvider):
    """Fails every passage mentioning ``broken``; counts calls."""

    def __init__(self) -> None:
        super().__init__()
        self.calls = 0

    async def embed_passage(self, text: str) -> list[float]:
        self.calls += 1
        if "broken" in text:
            raise RuntimeError("model crashed")
        return self.embed_sync(text)


class FlakyProvider(MockEmbeddingProvider):
    """First call fails, the rest succeed."""

    def __init__(self) -> None:
        super().__init__()
        self.failed = False

    async def embed_passage(self, text: str) -> list[float]:
        if not self.failed:
            self.failed = True
            raise TimeoutError("transient")
        return self.embed_sync(text)


class GatedProvider(MockEmbeddingProvider):
    """Holds calls until ``bound`` are in flight at once; records the peak."""

    def __init__(self, bound: int) -> None:
        super().__init__()
        self.bound = bound
        self.in_flight = 0
        self.peak = 0
        self.gate = asyncio.Event()

    async def embed_passage(self, text: str) -> list[float]:
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        if self.in_flight >= self.bound:
            self.gate.set()
        try:
            with suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self.gate.wait(), timeout=1.0)
            return self.embed_sync(text)
        finally:
            self.in_flight -= 1


class RateLimitedProvider(MockEmbeddingProvider):
    def __init__(self) -> None:
        super().__init__()
        self.calls = 0

    async def embed_passage(self, text: str) -> list[float]:
        self.calls += 1
        raise RateLimitedError("Embedding provider rate limit exceeded")


def _service(session_maker, provider, **kwargs) -> EmbeddingRegenerationService:
    return EmbeddingRegenerationService(
        session_maker=session_maker,
        vectorstore=InMemoryVectorStore(session_maker),
        embedding_provider=provider,
        retry_backoff_seconds=0,
        **kwargs,
    )


async def _load(session_maker, transaction_id) -> Transaction:
    async with session_maker() as session:
        return await session.get(Transaction, transaction_id)


@pytest.mark.asyncio
async def test_failed_item_does_not_abort_batch(session_maker, seed_transactions) -> None:
    ok_one, broken, ok_two = await seed_transactions(
        {"description": "salary"},
        {"description": "broken import"},
        {"description": "groceries"},
    )
    provider = SelectiveFailureProvider()

    report = await _service(session_maker, provider, max_concurrency=2).regenerate(
        [ok_one.id, broken.id, ok_two.id]
    )

    assert report.requested == 3
    assert set(report.succeeded) == {ok_one.id, ok_two.id}
    assert [f.transaction_id for f in report.failed] == [broken.id]
    assert report.failed[0].code == "EmbeddingUnavailableError"
    assert "model crashed" not in report.failed[0].message

    for row in (ok_one, ok_two):
        stored = await _load(session_maker, row.id)
        assert all(getattr(stored, field) is not None for field in EMBEDDING_FIELDS)
    stored_broken = await _load(session_maker, broken.id)
    assert all(getattr(stored_broken, field) is None for field in EMBEDDING_FIELDS)


@pytest.mark.asyncio
async def test_unknown_id_is_reported_without_retry(session_maker) -> None:
    missing = uuid4()
    provider = SelectiveFailureProvider()

    report = await _service(session_maker, provider).regenerate([missing])

    assert report.succeeded == []
    assert report.failed[0].transaction_id == missing
    assert report.failed[0].code == "RecordNotFoundError"
    assert provider.calls == 0


@pytest.mark.asyncio
async def test_transient_failure_is_retried(session_maker, seed_transactions) -> None:
    (row,) = await seed_transactions({"description": "coffee"})

    report = await _service(session_maker, FlakyProvider()).regenerate([row.id])

    assert report.succeeded == [row.id]
    assert report.failed == []


@pytest.mark.asyncio
async def test_rate_limit_exhausts_attempts(session_maker, seed_transactions) -> None:
    (row,) = await seed_transactions({"description": "coffee"})
    provider = RateLimitedProvider()

    report = await _service(session_maker, provider, max_attempts=3).regenerate([row.id])

    assert report.failed[0].code == "RateLimitedError"
    assert provider.calls == 3


@pytest.mark.asyncio
async def test_missing_embeddings_are_found_across_pages(session_maker, seed_transactions) -> None:
    vector = MockEmbeddingProvider().embed_sync("done")
    complete = {field: vector for field in EMBEDDING_FIELDS}
    rows = await seed_transactions(
        {"description": "a"},
        {"description": "b", "customer_name": "globex"},
        {"description": "c"},
        {"description": "d", **complete},
    )

    report = await _service(session_maker, MockEmbeddingProvider(), page_size=1).regenerate()

    assert set(report.succeeded) == {rows[0].id, rows[1].id, rows[2].id}
    assert report.requested == 3


@pytest.mark.asyncio
async def test_missing_embeddings_scoped_to_customer(session_maker, seed_transactions) -> None:
    rows = await seed_transactions(
        {"description": "a"},
        {"description": "b", "customer_name": "globex"},
    )

    report = await _service(session_maker, MockEmbeddingProvider()).regenerate(
        customer_name="globex"
    )

    assert report.succeeded == [rows[1].id]


@pytest.mark.asyncio
async def test_duplicate_ids_are_processed_once(session_maker, seed_transactions) -> None:
    (row,) = await seed_transactions({"description": "coffee"})

    report = await _service(session_maker, MockEmbeddingProvider()).regenerate([row.id, row.id])

    assert report.requested == 1
    assert report.succeeded == [row.id]


@pytest.mark.asyncio
async def test_concurrency_never_exceeds_bound(session_maker, seed_transactions) -> None:
    rows = await seed_transactions(*({"description": f"row {i}"} for i in range(6)))
    provider = GatedProvider(bound=3)

    report = await _service(session_maker, provider, max_concurrency=3).regenerate(
        [row.id for row in rows]
    )

    assert provider.peak == 3
    assert set(report.succeeded) == {row.id for row in rows}
    assert report.failed == []

