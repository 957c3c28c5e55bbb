"""
Category Analytics Service

Category lookup by meaning over the category embedding index, and debit
spending per category over a calendar range.

A category is identified by ``category_code``; rows without one take no
part. Similarity search returns rows, so hits are collapsed per category,
each category keeping the similarity of its closest row.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from labeler.core.logging import get_logger, measure_latency
from labeler.embedding.calls import embed_query_bounded
from labeler.models.transaction import RetrievalIntent
from labeler.repositories.transaction_repository import TransactionRepository
from labeler.schemas.analytics import (
    CategoryMatch,
    CategorySearchRequest,
    CategorySearchResponse,
    CategorySpending,
    CategorySpendingRequest,
    CategorySpendingResponse,
    CategoryTransactionsRequest,
    CategoryTransactionsResponse,
    DateRangeParams,
    SimilarityResult,
    TopExpenseCategoriesRequest,
    TopExpenseCategoriesResponse,
)
from labeler.schemas.transaction import TransactionSnapshot
from labeler.services.retrieval_service import SimilarityRetrievalService
from labeler.services.windows import day_bounds, resolve_date_range, utcnow

logger = get_logger(__name__)


def collapse_by_category(hits: Sequence[SimilarityResult], limit: int) -> list[CategoryMatch]:
    """Best similarity per category, similarity desc then code asc."""
    matches: dict[str, CategoryMatch] = {}
    for hit in hits:
        code = hit.transaction.category_code
        if code is None:
            continue
        match = matches.get(code)
        if match is None:
            matches[code] = CategoryMatch(
                category_code=code,
                category_name=hit.transaction.category_name,
                similarity=hit.similarity,
                matching_transactions=1,
            )
            continue
        match.matching_transactions += 1
        if hit.similarity > (match.similarity or 0.0):
            match.similarity = hit.similarity

    ranked = sorted(matches.values(), key=lambda m: (-(m.similarity or 0.0), m.category_code))
    return ranked[:limit]


class CategoryAnalyticsService:
    def __init__(
        self,
        *,
        session: AsyncSession,
        retrieval: SimilarityRetrievalService,
        repository: TransactionRepository | None = None,
    ) -> None:
        self.session = session
        self.retrieval = retrieval
        self.repository = repository or TransactionRepository(session)

    @measure_latency("category_search")
    async def search_categories(self, request: CategorySearchRequest) -> CategorySearchResponse:
        """
        Categories closest in meaning to the query

        An empty query lists categories alphabetically without scores.

        Raises:
            EmbeddingUnavailableError: Query embedding failed or timed out
            RetrievalUnavailableError: Store failed or timed out
        """
        query = request.query.strip()
        if not query:
            rows = await self.repository.list_categories(
                customer_name=request.customer_name, limit=request.limit
            )
            categories = [
                CategoryMatch(category_code=code, category_name=name, matching_transactions=count)
                for code, name, count in rows
            ]
            return CategorySearchResponse(query=query, categories=categories)

        categories = await self._match_categories(query, request.limit, request.customer_name)

        logger.info("category_search_completed", limit=request.limit, categories=len(categories))
        return CategorySearchResponse(query=query, categories=categories)

    @measure_latency("category_transactions")
    async def top_transactions(
        self, request: CategoryTransactionsRequest, today: date | None = None
    ) -> CategoryTransactionsResponse:
        """Largest transactions of the categories matching the query."""
        start_date, end_date = self._date_range(request, today)
        categories = await self._match_categories(
            request.query, request.top_categories, request.customer_name
        )
        start, end = day_bounds(start_date, end_date)
        rows = await self.repository.list_for_categories(
            [c.category_code for c in categories],
            start,
            end,
            customer_name=request.customer_name,
            limit=request.limit,
        )

        return CategoryTransactionsResponse(
            query=request.query,
            start_date=start_date,
            end_date=end_date,
            categories=categories,
            transactions=[TransactionSnapshot.model_validate(row) for row in rows],
        )

    @measure_latency("category_spending")
    async def category_spending(
        self, request: CategorySpendingRequest, today: date | None = None
    ) -> CategorySpendingResponse:
        """
        Debit spending in the categories matching the query

        Raises:
            ValidationError: Only one of start_date/end_date, or start after end
        """
        start_date, end_date = self._date_range(request, today)
        categories = await self._match_categories(
            request.query, request.top_categories, request.customer_name
        )
        start, end = day_bounds(start_date, end_date)
        rows = await self.repository.spending_by_category(
            start,
            end,
            category_codes=[c.category_code for c in categories],
            customer_name=request.customer_name,
        )
        breakdown = [
            CategorySpending(
                category_code=code, category_name=name, total_amount=total, transaction_count=count
            )
            for code, name, total, count in rows
        ]

        logger.info(
            "category_spending_computed",
            categories=len(categories),
            breakdown=len(breakdown),
            start_date=start_date.isoformat(),
            end_date=end_date.isoformat(),
        )
        return CategorySpendingResponse(
            query=request.query,
            start_date=start_date,
            end_date=end_date,
            customer_name=request.customer_name,
            total_amount=sum((b.total_amount for b in breakdown), Decimal("0.00")),
            transaction_count=sum(b.transaction_count for b in breakdown),
            breakdown=breakdown,
        )

    async def top_expense_categories(
        self, request: TopExpenseCategoriesRequest, today: date | None = None
    ) -> TopExpenseCategoriesResponse:
        start_date, end_date = self._date_range(request, today)
        start, end = day_bounds(start_date, end_date)
        rows = await self.repository.spending_by_category(
            start, end, customer_name=request.customer_name, limit=request.limit
        )
        return TopExpenseCategoriesResponse(
            start_date=start_date,
            end_date=end_date,
            categories=[
                CategorySpending(
                    category_code=code,
                    category_name=name,
                    total_amount=total,
                    transaction_count=count,
                )
                for code, name, total, count in rows
            ],
        )

    async def _match_categories(
        self, query: str, limit: int, customer_name: str | None
    ) -> list[CategoryMatch]:
        vector = await embed_query_bounded(
            self.retrieval.embedding_provider,
            query,
            timeout=self.retrieval.embedding_timeout,
            dimension=self.retrieval.dimension,
        )
        # Rows, not categories, come back; scan a wide pool before collapsing
        hits = await self.retrieval.search(
            RetrievalIntent.CATEGORY,
            vector,
            self.retrieval.max_limit,
            {"customer_name": customer_name},
        )
        return collapse_by_category(hits, limit)

    @staticmethod
    def _date_range(params: DateRangeParams, today: date | None) -> tuple[date, date]:
        return resolve_date_range(
            params.start_date, params.end_date, params.year, today or utcnow().date()
        )
