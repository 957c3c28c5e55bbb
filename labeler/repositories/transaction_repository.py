"""
Transaction Repository

Window queries for the analytic services and the embedding maintenance scans.
Windows are half-open on the left: ``start < transaction_date <= end``.
Calendar ranges (category and duplicate queries) are ``start <= transaction_date < end``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Sequence
from uuid import UUID

from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from labeler.models.transaction import EMBEDDING_FIELDS, Transaction, TransactionType
from labeler.repositories.base import BaseRepository

CENTS = Decimal("0.01")


@dataclass(frozen=True)
class TransactionFilters:
    """Optional row filters shared by the window queries."""

    customer_name: str | None = None
    counterparty_account: str | None = None
    transaction_type: TransactionType | None = None
    min_amount: Decimal | None = None
    max_amount: Decimal | None = None


class TransactionRepository(BaseRepository[Transaction]):
    def __init__(self, session: AsyncSession, timeout: float | None = None):
        super().__init__(Transaction, session, timeout)

    async def list_in_window(
        self,
        start: datetime,
        end: datetime,
        filters: TransactionFilters | None = None,
        *,
        with_counterparty_only: bool = False,
    ) -> Sequence[Transaction]:
        """
        Rows with ``start < transaction_date <= end``

        Ordered by date desc, amount desc, id asc so repeated calls on the
        same data return the same sequence.
        """
        stmt = self._apply_filters(
            select(Transaction).where(
                Transaction.transaction_date > start,
                Transaction.transaction_date <= end,
            ),
            filters,
        )
        if with_counterparty_only:
            stmt = stmt.where(Transaction.counterparty_account.is_not(None))

        stmt = stmt.order_by(
            Transaction.transaction_date.desc(),
            Transaction.amount.desc(),
            Transaction.id.asc(),
        )
        result = await self._execute(stmt)
        return result.scalars().all()

    async def counterparties_in_window(
        self,
        start: datetime,
        end: datetime,
        filters: TransactionFilters | None = None,
    ) -> set[str]:
        """Distinct non-null counterparty accounts seen in the window."""
        if start >= end:
            return set()

        stmt = self._apply_filters(
            select(Transaction.counterparty_account)
            .where(
                Transaction.transaction_date > start,
                Transaction.transaction_date <= end,
                Transaction.counterparty_account.is_not(None),
            )
            .distinct(),
            filters,
        )
        result = await self._execute(stmt)
        return {row for row in result.scalars().all()}

    async def amounts_by_counterparty(
        self,
        start: datetime,
        end: datetime,
        counterparties: Sequence[str],
        filters: TransactionFilters | None = None,
    ) -> dict[str, list[Decimal]]:
        """Historical amounts per counterparty account inside the window."""
        if not counterparties or start >= end:
            return {}

        stmt = self._apply_filters(
            select(Transaction.counterparty_account, Transaction.amount).where(
                Transaction.transaction_date > start,
                Transaction.transaction_date <= end,
                Transaction.counterparty_account.in_(list(counterparties)),
            ),
            filters,
        )
        amounts: dict[str, list[Decimal]] = {}
        for account, amount in (await self._execute(stmt)).all():
            amounts.setdefault(account, []).append(amount)
        return amounts

    async def find_missing_embeddings(
        self,
        *,
        limit: int,
        after_id: UUID | None = None,
        customer_name: str | None = None,
    ) -> Sequence[UUID]:
        """
        Keyset page of ids with at least one NULL embedding column

        Args:
            limit: Page size
            after_id: Last id of the previous page
            customer_name: Optional customer scope
        """
        stmt = select(Transaction.id).where(
            or_(*(getattr(Transaction, field).is_(None) for field in EMBEDDING_FIELDS))
        )
        if customer_name is not None:
            stmt = stmt.where(Transaction.customer_name == customer_name)
        if after_id is not None:
            stmt = stmt.where(Transaction.id > after_id)

        stmt = stmt.order_by(Transaction.id.asc()).limit(limit)
        result = await self._execute(stmt)
        return result.scalars().all()

    async def list_transactions(
        self,
        *,
        customer_name: str | None = None,
        label: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> Sequence[Transaction]:
        stmt = select(Transaction)
        if customer_name is not None:
            stmt = stmt.where(Transaction.customer_name == customer_name)
        if label is not None:
            stmt = stmt.where(Transaction.label == label)

        stmt = (
            stmt.order_by(Transaction.transaction_date.desc(), Transaction.id.asc())
            .limit(limit)
            .offset(offset)
        )
        result = await self._execute(stmt)
        return result.scalars().all()

    async def list_in_range(
        self,
        start: datetime,
        end: datetime,
        filters: TransactionFilters | None = None,
        *,
        description_contains: str | None = None,
    ) -> Sequence[Transaction]:
        """Rows with ``start <= transaction_date < end``, oldest first."""
        stmt = self._apply_filters(
            select(Transaction).where(
                Transaction.transaction_date >= start,
                Transaction.transaction_date < end,
            ),
            filters,
        )
        if description_contains:
            stmt = stmt.where(Transaction.description.icontains(description_contains, autoescape=True))

        stmt = stmt.order_by(Transaction.transaction_date.asc(), Transaction.id.asc())
        result = await self._execute(stmt)
        return result.scalars().all()

    async def list_categories(
        self, *, customer_name: str | None = None, limit: int = 100
    ) -> list[tuple[str, str | None, int]]:
        """Distinct (category_code, category_name, row count), ordered by name then code."""
        stmt = select(
            Transaction.category_code,
            Transaction.category_name,
            func.count(Transaction.id),
        ).where(Transaction.category_code.is_not(None))
        if customer_name is not None:
            stmt = stmt.where(Transaction.customer_name == customer_name)

        stmt = (
            stmt.group_by(Transaction.category_code, Transaction.category_name)
            .order_by(Transaction.category_name.asc(), Transaction.category_code.asc())
            .limit(limit)
        )
        result = await self._execute(stmt)
        return [(code, name, count) for code, name, count in result.all()]

    async def spending_by_category(
        self,
        start: datetime,
        end: datetime,
        *,
        category_codes: Sequence[str] | None = None,
        customer_name: str | None = None,
        limit: int | None = None,
    ) -> list[tuple[str, str | None, Decimal, int]]:
        """
        Debit totals per category for ``start <= transaction_date < end``

        Returns:
            (category_code, category_name, total, count) ordered by total desc
        """
        if category_codes is not None and not category_codes:
            return []

        total = func.sum(Transaction.amount)
        stmt = select(
            Transaction.category_code,
            Transaction.category_name,
            total,
            func.count(Transaction.id),
        ).where(
            Transaction.transaction_type == TransactionType.DEBIT,
            Transaction.transaction_date >= start,
            Transaction.transaction_date < end,
            Transaction.category_code.is_not(None),
        )
        if category_codes is not None:
            stmt = stmt.where(Transaction.category_code.in_(list(category_codes)))
        if customer_name is not None:
            stmt = stmt.where(Transaction.customer_name == customer_name)

        stmt = stmt.group_by(Transaction.category_code, Transaction.category_name).order_by(
            total.desc(), Transaction.category_code.asc()
        )
        if limit is not None:
            stmt = stmt.limit(limit)

        result = await self._execute(stmt)
        return [
            (code, name, Decimal(str(amount or 0)).quantize(CENTS), count)
            for code, name, amount, count in result.all()
        ]

    async def list_for_categories(
        self,
        category_codes: Sequence[str],
        start: datetime,
        end: datetime,
        *,
        customer_name: str | None = None,
        limit: int = 10,
    ) -> Sequence[Transaction]:
        """Largest rows of the given categories, amount desc then date desc."""
        if not category_codes:
            return []

        stmt = select(Transaction).where(
            Transaction.category_code.in_(list(category_codes)),
            Transaction.transaction_date >= start,
            Transaction.transaction_date < end,
        )
        if customer_name is not None:
            stmt = stmt.where(Transaction.customer_name == customer_name)

        stmt = stmt.order_by(
            Transaction.amount.desc(),
            Transaction.transaction_date.desc(),
            Transaction.id.asc(),
        ).limit(limit)
        result = await self._execute(stmt)
        return result.scalars().all()

    async def customer_names(self, limit: int | None = None) -> list[str]:
        stmt = (
            select(Transaction.customer_name)
            .where(Transaction.customer_name.is_not(None), Transaction.customer_name != "")
            .distinct()
            .order_by(Transaction.customer_name.asc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self._execute(stmt)
        return list(result.scalars().all())

    async def is_known_label(self, label: str) -> bool:
        """True when ``label`` is already used as a label or a category name."""
        stmt = (
            select(Transaction.id)
            .where(or_(Transaction.label == label, Transaction.category_name == label))
            .limit(1)
        )
        result = await self._execute(stmt)
        return result.first() is not None

    @staticmethod
    def _apply_filters(stmt: Select, filters: TransactionFilters | None) -> Select:
        if filters is None:
            return stmt
        if filters.customer_name is not None:
            stmt = stmt.where(Transaction.customer_name == filters.customer_name)
        if filters.counterparty_account is not None:
            stmt = stmt.where(Transaction.counterparty_account == filters.counterparty_account)
        if filters.transaction_type is not None:
            stmt = stmt.where(Transaction.transaction_type == filters.transaction_type)
        if filters.min_amount is not None:
            stmt = stmt.where(Transaction.amount >= filters.min_amount)
        if filters.max_amount is not None:
            stmt = stmt.where(Transaction.amount <= filters.max_amount)
        return stmt
