"""
Counterparty Profile Service

Per-counterparty statistics over the last N months, recomputed on every
request and never stored.
"""

from __future__ import annotations

import statistics
from datetime import datetime
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from labeler.core.exceptions import ValidationError
from labeler.core.logging import get_logger, measure_latency
from labeler.models.transaction import Transaction
from labeler.repositories.transaction_repository import (
    TransactionFilters,
    TransactionRepository,
)
from labeler.schemas.analytics import CounterpartyProfile, ProfileRequest
from labeler.services.windows import subtract_months, utcnow

logger = get_logger(__name__)


def build_profile(account: str, rows: list[Transaction]) -> CounterpartyProfile:
    amounts = [row.amount for row in rows]
    floats = [float(a) for a in amounts]
    dates = [row.transaction_date for row in rows]
    # Latest non-empty name wins; rows arrive newest first
    name = next((row.counterparty_name for row in rows if row.counterparty_name), None)

    return CounterpartyProfile(
        counterparty_account=account,
        counterparty_name=name,
        transaction_count=len(rows),
        total_amount=sum(amounts, Decimal("0")),
        mean_amount=statistics.fmean(floats),
        stdev_amount=statistics.stdev(floats) if len(floats) > 1 else None,
        min_amount=min(amounts),
        max_amount=max(amounts),
        first_transaction_date=min(dates),
        last_transaction_date=max(dates),
    )


class CounterpartyProfileService:
    def __init__(
        self,
        *,
        session: AsyncSession,
        repository: TransactionRepository | None = None,
    ) -> None:
        self.session = session
        self.repository = repository or TransactionRepository(session)

    @measure_latency("counterparty_profiles")
    async def get_profiles(
        self, request: ProfileRequest, now: datetime | None = None
    ) -> list[CounterpartyProfile]:
        """Profiles ordered by transaction count desc, then account."""
        if request.months < 1:
            raise ValidationError("months must be at least 1")

        now = now or utcnow()
        start = subtract_months(now, request.months)
        rows = await self.repository.list_in_window(
            start,
            now,
            TransactionFilters(
                customer_name=request.customer_name,
                counterparty_account=request.counterparty_account,
                transaction_type=request.transaction_type,
            ),
            with_counterparty_only=True,
        )

        grouped: dict[str, list[Transaction]] = {}
        for row in rows:
            grouped.setdefault(row.counterparty_account, []).append(row)

        profiles = [build_profile(account, items) for account, items in grouped.items()]
        profiles.sort(key=lambda p: (-p.transaction_count, p.counterparty_account))

        logger.info(
            "counterparty_profiles_built",
            months=request.months,
            transactions=len(rows),
            counterparties=len(profiles),
        )
        return profiles
