"""
Counterparty Drift Service

Reports transactions in the current window whose counterparty never
appeared in the historical window immediately before it. Both windows get
the same filters. Rows without a counterparty account take no part.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from labeler.core.exceptions import ValidationError
from labeler.core.logging import get_logger, measure_latency
from labeler.models.transaction import Transaction
from labeler.repositories.transaction_repository import (
    TransactionFilters,
    TransactionRepository,
)
from labeler.schemas.analytics import DriftRequest, DriftResponse, DriftResult
from labeler.schemas.transaction import TransactionSnapshot
from labeler.services.windows import day_windows, require_non_negative, utcnow

logger = get_logger(__name__)


def find_unknown_counterparties(historical: Iterable[str], current: Iterable[str]) -> set[str]:
    """Counterparties present now but absent from the historical set."""
    return set(current) - set(historical)


def validate_drift_request(request: DriftRequest) -> None:
    require_non_negative(
        current_days=request.current_days,
        historical_days=request.historical_days,
        min_amount=request.min_amount,
        max_amount=request.max_amount,
    )
    if (
        request.min_amount is not None
        and request.max_amount is not None
        and request.min_amount > request.max_amount
    ):
        raise ValidationError("min_amount must not exceed max_amount")


class CounterpartyDriftService:
    def __init__(
        self,
        *,
        session: AsyncSession,
        repository: TransactionRepository | None = None,
    ) -> None:
        self.session = session
        self.repository = repository or TransactionRepository(session)

    @measure_latency("counterparty_drift")
    async def detect(self, request: DriftRequest, now: datetime | None = None) -> DriftResponse:
        """
        Current-window transactions with a first-seen counterparty

        Raises:
            ValidationError: Negative window or amount, min_amount > max_amount
        """
        validate_drift_request(request)
        now = now or utcnow()
        historical_start, current_start, current_end = day_windows(
            now, request.current_days, request.historical_days
        )
        filters = TransactionFilters(
            customer_name=request.customer_name,
            transaction_type=request.transaction_type,
            min_amount=request.min_amount,
            max_amount=request.max_amount,
        )

        # Empty when historical_days == 0
        historical = await self.repository.counterparties_in_window(
            historical_start, current_start, filters
        )
        current_rows: Sequence[Transaction] = await self.repository.list_in_window(
            current_start, current_end, filters, with_counterparty_only=True
        )
        unknown = find_unknown_counterparties(
            historical, (row.counterparty_account for row in current_rows)
        )

        results = [
            DriftResult(transaction=TransactionSnapshot.model_validate(row), first_seen=True)
            for row in current_rows
            if row.counterparty_account in unknown
        ]

        logger.info(
            "counterparty_drift_detected",
            current_days=request.current_days,
            historical_days=request.historical_days,
            historical_counterparties=len(historical),
            current_transactions=len(current_rows),
            unknown_counterparties=len(unknown),
        )

        return DriftResponse(
            current_window_start=current_start,
            current_window_end=current_end,
            historical_window_start=historical_start,
            unknown_counterparties=sorted(unknown),
            results=results,
        )
