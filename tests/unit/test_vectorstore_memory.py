"""
Unit tests for InMemoryVectorStore and the shared embedding write path
"""

import math
from uuid import uuid4

import pytest

from labeler.core.exceptions import RecordNotFoundError, ValidationError
from labeler.models.transaction import Transaction, TransactionType
from labeler.vectorstore.memory import InMemoryVectorStore, cosine_distance

DIM = 384


def _vector(*head: float) -> list[float]:
    return list(head) + [0.0] * (DIM - len(head))


@pytest.fixture
def store(session_maker) -> InMemoryVectorStore:
    return InMemoryVectorStore(session_maker)


def test_cosine_distance() -> None:
    assert cosine_distance([1.0, 0.0], [1.0, 0.0]) == pytest.approx(0.0)
    assert cosine_distance([1.0, 0.0], [0.0, 1.0]) == pytest.approx(1.0)
    assert cosine_distance([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(2.0)
    assert cosine_distance([0.0, 0.0], [1.0, 0.0]) == 1.0


@pytest.mark.asyncio
async def test_written_embeddings_read_back_unchanged(store, session_maker, seed_transactions) -> None:
    (row,) = await seed_transactions({"description": "rent"})
    vector = [math.sin(i) / 10 for i in range(DIM)]

    await store.write_embeddings(row.id, {"amount_embedding": vector})

    async with session_maker() as session:
        stored = await session.get(Transaction, row.id)
    assert len(stored.amount_embedding) == DIM
    assert all(abs(a - b) <= 1e-6 for a, b in zip(stored.amount_embedding, vector))
    assert stored.content_embedding is None


@pytest.mark.asyncio
async def test_write_rejects_partial_vectors(store, seed_transactions) -> None:
    (row,) = await seed_transactions({})

    with pytest.raises(ValidationError):
        await store.write_embeddings(row.id, {"content_embedding": [0.1, 0.2]})
    with pytest.raises(ValidationError):
        await store.write_embeddings(row.id, {"content_embedding": _vector(float("nan"))})


@pytest.mark.asyncio
async def test_write_to_unknown_transaction(store) -> None:
    with pytest.raises(RecordNotFoundError):
        await store.write_embeddings(uuid4(), {"content_embedding": _vector(1.0)})


@pytest.mark.asyncio
async def test_unknown_field_is_rejected(store) -> None:
    with pytest.raises(ValidationError):
        await store.search("description; DROP TABLE transactions", _vector(1.0), 5)


@pytest.mark.asyncio
async def test_unsupported_filter_is_rejected(store) -> None:
    with pytest.raises(ValidationError):
        await store.search("content_embedding", _vector(1.0), 5, {"label": "Rent"})


@pytest.mark.asyncio
async def test_search_ranks_and_filters(store, seed_transactions) -> None:
    await seed_transactions(
        {"description": "near", "content_embedding": _vector(1.0, 0.1)},
        {"description": "far", "content_embedding": _vector(0.1, 1.0)},
        {"description": "other customer", "customer_name": "globex", "content_embedding": _vector(1.0)},
        {"description": "credit", "transaction_type": TransactionType.CREDIT, "content_embedding": _vector(1.0)},
        {"description": "not embedded"},
    )

    hits = await store.search(
        "content_embedding",
        _vector(1.0),
        10,
        {"customer_name": "acme", "transaction_type": "debit"},
    )

    assert [h.transaction.description for h in hits] == ["near", "far"]
    assert hits[0].distance < hits[1].distance


@pytest.mark.asyncio
async def test_search_respects_top_k(store, seed_transactions) -> None:
    await seed_transactions(*({"content_embedding": _vector(1.0, i / 10)} for i in range(5)))

    hits = await store.search("content_embedding", _vector(1.0), 2)

    assert len(hits) == 2
