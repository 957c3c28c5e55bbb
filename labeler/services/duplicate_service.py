"""
Duplicate Payment Service

Finds repeated payments: rows of one customer to the same payee, with the
same amount and direction, each following the previous one within
``window_days``. The payee is the counterparty account, or the normalized
description when the account is missing.
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from labeler.core.logging import get_logger, measure_latency
from labeler.models.transaction import Transaction, TransactionType
from labeler.repositories.transaction_repository import (
    TransactionFilters,
    TransactionRepository,
)
from labeler.schemas.analytics import (
    DuplicateGroup,
    DuplicatePaymentRequest,
    DuplicatePaymentResponse,
)
from labeler.schemas.transaction import TransactionSnapshot
from labeler.services.windows import day_bounds, resolve_date_range, utcnow

logger = get_logger(__name__)

PaymentKey = tuple[str | None, str, Decimal, TransactionType]


def payee_of(row: Transaction) -> str:
    if row.counterparty_account:
        return row.counterparty_account
    return " ".join(row.description.casefold().split())


def group_duplicates(rows: Iterable[Transaction], window_days: int) -> list[list[Transaction]]:
    """
    Chains of repeated payments

    Rows must arrive oldest first. A chain breaks when the gap to the
    previous row of the same payment key exceeds ``window_days``; chains of
    one row are dropped.
    """
    window = timedelta(days=window_days)
    open_chains: dict[PaymentKey, list[Transaction]] = {}
    chains: list[list[Transaction]] = []

    for row in rows:
        key = (row.customer_name, payee_of(row), row.amount, row.transaction_type)
        chain = open_chains.get(key)
        if chain is not None and row.transaction_date - chain[-1].transaction_date <= window:
            chain.append(row)
            continue
        chain = [row]
        open_chains[key] = chain
        chains.append(chain)

    return [chain for chain in chains if len(chain) > 1]


class DuplicatePaymentService:
    def __init__(
        self,
        *,
        session: AsyncSession,
        repository: TransactionRepository | None = None,
    ) -> None:
        self.session = session
        self.repository = repository or TransactionRepository(session)

    @measure_latency("duplicate_payments")
    async def find_duplicates(
        self, request: DuplicatePaymentRequest, today: date | None = None
    ) -> DuplicatePaymentResponse:
        """
        Raises:
            ValidationError: Only one of start_date/end_date, or start after end
        """
        start_date, end_date = resolve_date_range(
            request.start_date, request.end_date, request.year, today or utcnow().date()
        )
        start, end = day_bounds(start_date, end_date)
        rows = await self.repository.list_in_range(
            start,
            end,
            TransactionFilters(
                customer_name=request.customer_name,
                counterparty_account=request.counterparty_account,
                transaction_type=request.transaction_type,
                min_amount=request.amount,
                max_amount=request.amount,
            ),
            description_contains=request.description,
        )

        groups = [
            DuplicateGroup(
                payee=payee_of(chain[0]),
                amount=chain[0].amount,
                transaction_count=len(chain),
                first_date=chain[0].transaction_date,
                last_date=chain[-1].transaction_date,
                transactions=[TransactionSnapshot.model_validate(row) for row in chain],
            )
            for chain in group_duplicates(rows, request.window_days)
        ]

        logger.info(
            "duplicate_payments_detected",
            transactions=len(rows),
            groups=len(groups),
            window_days=request.window_days,
        )
        return DuplicatePaymentResponse(
            start_date=start_date,
            end_date=end_date,
            window_days=request.window_days,
            groups=groups,
        )
