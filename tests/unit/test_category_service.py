"""
Unit tests for CategoryAnalyticsService and the calendar range helpers
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from labeler.core.exceptions import ValidationError
from labeler.embedding.mock import MockEmbeddingProvider
from labeler.models.transaction import TransactionType
from labeler.schemas.analytics import (
    CategorySearchRequest,
    CategorySpendingRequest,
    CategoryTransactionsRequest,
    SimilarityResult,
    TopExpenseCategoriesRequest,
)
from labeler.schemas.transaction import TransactionSnapshot
from labeler.services.category_service import CategoryAnalyticsService, collapse_by_category
from labeler.services.retrieval_service import SimilarityRetrievalService
from labeler.services.windows import day_bounds, resolve_date_range
from labeler.vectorstore.memory import InMemoryVectorStore

TODAY = date(2025, 11, 15)


def _hit(code: str | None, similarity: float) -> SimilarityResult:
    return SimilarityResult(
        transaction=TransactionSnapshot(
            id=uuid4(),
            description="row",
            amount=Decimal("1.00"),
            transaction_type=TransactionType.DEBIT,
            transaction_date=datetime(2025, 1, 1, tzinfo=timezone.utc),
            category_code=code,
            category_name=code and code.title(),
            label="x",
        ),
        similarity=similarity,
    )


# ==================== Pure helpers ====================


def test_collapse_keeps_best_similarity_per_category() -> None:
    matches = collapse_by_category(
        [_hit("CAR", 0.4), _hit("FOOD", 0.7), _hit("CAR", 0.9), _hit(None, 0.99), _hit("RENT", 0.7)],
        limit=2,
    )

    assert [(m.category_code, m.similarity) for m in matches] == [("CAR", 0.9), ("FOOD", 0.7)]
    assert matches[0].matching_transactions == 2


def test_resolve_date_range() -> None:
    assert resolve_date_range(None, None, None, TODAY) == (date(2025, 1, 1), date(2025, 12, 31))
    assert resolve_date_range(None, None, 2024, TODAY) == (date(2024, 1, 1), date(2024, 12, 31))
    assert resolve_date_range(date(2025, 3, 1), date(2025, 3, 31), 2020, TODAY) == (
        date(2025, 3, 1),
        date(2025, 3, 31),
    )

    with pytest.raises(ValidationError):
        resolve_date_range(date(2025, 3, 1), None, None, TODAY)
    with pytest.raises(ValidationError):
        resolve_date_range(date(2025, 3, 31), date(2025, 3, 1), None, TODAY)


def test_day_bounds_include_the_whole_end_day() -> None:
    start, end = day_bounds(date(2025, 3, 1), date(2025, 3, 31))

    assert start == datetime(2025, 3, 1, tzinfo=timezone.utc)
    assert end == datetime(2025, 4, 1, tzinfo=timezone.utc)


# ==================== Service ====================


@pytest.fixture
def provider() -> MockEmbeddingProvider:
    return MockEmbeddingProvider()


@pytest.fixture
def service(async_db_session, session_maker, provider) -> CategoryAnalyticsService:
    retrieval = SimilarityRetrievalService(
        vectorstore=InMemoryVectorStore(session_maker), embedding_provider=provider
    )
    return CategoryAnalyticsService(session=async_db_session, retrieval=retrieval)


@pytest.fixture
async def ledger(seed_transactions, provider):
    def row(code, name, amount, when, **extra):
        return {
            "description": f"{name} payment",
            "category_code": code,
            "category_name": name,
            "category_embedding": provider.embed_sync(name),
            "amount": Decimal(amount),
            "transaction_date": when,
            **extra,
        }

    return await seed_transactions(
        row("CAR", "Car costs", "40.00", datetime(2025, 3, 1, tzinfo=timezone.utc)),
        row("CAR", "Car costs", "60.00", datetime(2025, 3, 31, 23, 59, tzinfo=timezone.utc)),
        row("CAR", "Car costs", "500.00", datetime(2025, 5, 2, tzinfo=timezone.utc),
            transaction_type=TransactionType.CREDIT),
        row("CAR", "Car costs", "70.00", datetime(2024, 6, 1, tzinfo=timezone.utc)),
        row("FOOD", "Groceries", "25.50", datetime(2025, 3, 15, tzinfo=timezone.utc)),
        row("RENT", "Housing", "900.00", datetime(2025, 4, 1, tzinfo=timezone.utc)),
        {"description": "uncoded", "amount": Decimal("999.00"),
         "transaction_date": datetime(2025, 3, 10, tzinfo=timezone.utc)},
    )


@pytest.mark.asyncio
async def test_search_ranks_closest_category_first(service, ledger) -> None:
    response = await service.search_categories(CategorySearchRequest(query="car costs", limit=3))

    best = response.categories[0]
    assert best.category_code == "CAR"
    assert best.similarity == pytest.approx(1.0)
    assert best.matching_transactions == 4
    assert {m.category_code for m in response.categories} == {"CAR", "FOOD", "RENT"}


@pytest.mark.asyncio
async def test_empty_query_lists_categories_alphabetically(service, ledger) -> None:
    response = await service.search_categories(CategorySearchRequest(query="  "))

    assert [m.category_name for m in response.categories] == ["Car costs", "Groceries", "Housing"]
    assert all(m.similarity is None for m in response.categories)


@pytest.mark.asyncio
async def test_spending_counts_debits_in_the_year(service, ledger) -> None:
    response = await service.category_spending(
        CategorySpendingRequest(query="car costs", year=2025, top_categories=1), today=TODAY
    )

    assert (response.start_date, response.end_date) == (date(2025, 1, 1), date(2025, 12, 31))
    assert response.total_amount == Decimal("100.00")
    assert response.transaction_count == 2
    assert [b.category_code for b in response.breakdown] == ["CAR"]


@pytest.mark.asyncio
async def test_spending_over_explicit_range_includes_end_day(service, ledger) -> None:
    response = await service.category_spending(
        CategorySpendingRequest(
            query="car costs",
            start_date=date(2025, 3, 2),
            end_date=date(2025, 3, 31),
            top_categories=1,
        ),
        today=TODAY,
    )

    assert response.total_amount == Decimal("60.00")
    assert response.transaction_count == 1


@pytest.mark.asyncio
async def test_spending_needs_both_range_ends(service, ledger) -> None:
    with pytest.raises(ValidationError):
        await service.category_spending(
            CategorySpendingRequest(query="car", start_date=date(2025, 3, 2)), today=TODAY
        )


@pytest.mark.asyncio
async def test_top_expense_categories_default_to_current_year(service, ledger) -> None:
    response = await service.top_expense_categories(TopExpenseCategoriesRequest(limit=2), today=TODAY)

    assert [(c.category_code, c.total_amount) for c in response.categories] == [
        ("RENT", Decimal("900.00")),
        ("CAR", Decimal("100.00")),
    ]


@pytest.mark.asyncio
async def test_top_transactions_largest_first(service, ledger) -> None:
    response = await service.top_transactions(
        CategoryTransactionsRequest(query="car costs", year=2025, top_categories=1, limit=2),
        today=TODAY,
    )

    assert [c.category_code for c in response.categories] == ["CAR"]
    assert [t.amount for t in response.transactions] == [Decimal("500.00"), Decimal("60.00")]
