"""
Amount Anomaly Service

Compares each current-window transaction with its counterparty's baseline
(mean, sample stdev, count) over a lookback window that ends where the
current window starts.

- n == 0: insufficient_data, never flagged, never dropped
- stdev unavailable (n <= 1) or zero: mean_multiple, flagged when amount > M * mean
- otherwise std_deviation, flagged when |amount - mean| > M * stdev
- flagged rows are ``high`` when the ratio reaches 2 * M, else ``moderate``
"""

from __future__ import annotations

import statistics
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import NamedTuple, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from labeler.core.config import settings
from labeler.core.exceptions import ValidationError
from labeler.core.logging import get_logger, measure_latency
from labeler.repositories.transaction_repository import (
    TransactionFilters,
    TransactionRepository,
)
from labeler.schemas.analytics import (
    AnomalyMethod,
    AnomalyRequest,
    AnomalyResponse,
    AnomalyResult,
    AnomalySeverity,
    AnomalyStatus,
    CounterpartyBaseline,
)
from labeler.schemas.transaction import TransactionSnapshot
from labeler.services.windows import require_non_negative, subtract_months, utcnow

logger = get_logger(__name__)


@dataclass(frozen=True)
class AnomalyPolicy:
    threshold_multiplier: float = 2.0
    lookback_months: int = 15

    @classmethod
    def from_settings(cls) -> "AnomalyPolicy":
        return cls(
            threshold_multiplier=settings.anomaly_threshold_multiplier,
            lookback_months=settings.anomaly_lookback_months,
        )


class Baseline(NamedTuple):
    sample_count: int
    mean: float | None
    stdev: float | None


class AmountEvaluation(NamedTuple):
    status: AnomalyStatus
    method: AnomalyMethod | None
    severity: AnomalySeverity | None
    ratio: float | None


def compute_baseline(amounts: Sequence[Decimal | float]) -> Baseline:
    values = [float(a) for a in amounts]
    if not values:
        return Baseline(0, None, None)
    mean = statistics.fmean(values)
    stdev = statistics.stdev(values) if len(values) > 1 else None
    return Baseline(len(values), mean, stdev)


def evaluate_amount(
    amount: Decimal | float, baseline: Baseline, multiplier: float
) -> AmountEvaluation:
    if baseline.sample_count == 0 or baseline.mean is None:
        return AmountEvaluation(AnomalyStatus.INSUFFICIENT_DATA, None, None, None)

    value = float(amount)
    mean = baseline.mean

    if baseline.sample_count <= 1 or not baseline.stdev:
        method = AnomalyMethod.MEAN_MULTIPLE
        if mean > 0:
            ratio: float | None = value / mean
            flagged = value > multiplier * mean
        else:
            # Zero baseline: any positive amount is out of pattern, ratio undefined
            ratio = None
            flagged = value > 0
    else:
        method = AnomalyMethod.STD_DEVIATION
        deviation = abs(value - mean)
        ratio = deviation / baseline.stdev
        flagged = deviation > multiplier * baseline.stdev

    if not flagged:
        return AmountEvaluation(AnomalyStatus.NORMAL, method, None, ratio)

    if ratio is None or ratio >= 2 * multiplier:
        severity = AnomalySeverity.HIGH
    else:
        severity = AnomalySeverity.MODERATE
    return AmountEvaluation(AnomalyStatus.ANOMALOUS, method, severity, ratio)


class AmountAnomalyService:
    def __init__(
        self,
        *,
        session: AsyncSession,
        policy: AnomalyPolicy | None = None,
        repository: TransactionRepository | None = None,
    ) -> None:
        self.session = session
        self.policy = policy or AnomalyPolicy.from_settings()
        self.repository = repository or TransactionRepository(session)

    @measure_latency("amount_anomalies")
    async def detect(self, request: AnomalyRequest, now: datetime | None = None) -> AnomalyResponse:
        """
        Evaluate current-window transactions against per-counterparty baselines

        Raises:
            ValidationError: Negative window or non-positive multiplier
        """
        multiplier = (
            request.threshold_multiplier
            if request.threshold_multiplier is not None
            else self.policy.threshold_multiplier
        )
        require_non_negative(
            current_days=request.current_days, lookback_months=request.lookback_months
        )
        if multiplier <= 0:
            raise ValidationError("threshold_multiplier must be positive")

        now = now or utcnow()
        current_start = now - timedelta(days=request.current_days)
        lookback_start = subtract_months(current_start, request.lookback_months)
        filters = TransactionFilters(
            customer_name=request.customer_name,
            counterparty_account=request.counterparty_account,
            transaction_type=request.transaction_type,
        )

        current_rows = await self.repository.list_in_window(
            current_start, now, filters, with_counterparty_only=True
        )
        accounts = sorted({row.counterparty_account for row in current_rows})
        history = await self.repository.amounts_by_counterparty(
            lookback_start, current_start, accounts, filters
        )
        baselines = {account: compute_baseline(history.get(account, [])) for account in accounts}

        results: list[AnomalyResult] = []
        for row in current_rows:
            baseline = baselines[row.counterparty_account]
            evaluation = evaluate_amount(row.amount, baseline, multiplier)
            if evaluation.status is AnomalyStatus.NORMAL and not request.include_normal:
                continue
            results.append(
                AnomalyResult(
                    transaction=TransactionSnapshot.model_validate(row),
                    status=evaluation.status,
                    method=evaluation.method,
                    severity=evaluation.severity,
                    ratio=evaluation.ratio,
                    baseline=CounterpartyBaseline(**baseline._asdict()),
                )
            )

        logger.info(
            "amount_anomalies_evaluated",
            current_transactions=len(current_rows),
            counterparties=len(accounts),
            anomalous=sum(1 for r in results if r.status is AnomalyStatus.ANOMALOUS),
            insufficient_data=sum(
                1 for r in results if r.status is AnomalyStatus.INSUFFICIENT_DATA
            ),
            threshold_multiplier=multiplier,
        )

        return AnomalyResponse(
            current_window_start=current_start,
            current_window_end=now,
            lookback_start=lookback_start,
            threshold_multiplier=multiplier,
            results=results,
        )
