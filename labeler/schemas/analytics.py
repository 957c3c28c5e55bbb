"""
Analytics Schemas
Request/response models for retrieval, drift, anomaly, profile, category,
duplicate-payment and customer queries.

Each request is a flat parameter record so the same model serves the HTTP
API and the MCP tools.
"""

from __future__ import annotations

import enum
from datetime import date, datetime
from decimal import Decimal

from pydantic import Field

from labeler.core.config import settings
from labeler.models.transaction import RetrievalIntent, TransactionType
from labeler.schemas.base import BaseSchema
from labeler.schemas.transaction import TransactionSnapshot


# ---------------------------------------------------------------------------
# Query classification / similarity retrieval
# ---------------------------------------------------------------------------


class ClassifyQueryResponse(BaseSchema):
    query: str
    intent: RetrievalIntent
    embedding_field: str


class RetrievalRequest(BaseSchema):
    """Similarity search parameters. Either ``query`` or ``query_embedding`` is required."""

    query: str | None = None
    query_embedding: list[float] | None = Field(
        default=None, description="Precomputed query vector; skips the provider call"
    )
    intent: RetrievalIntent | None = Field(
        default=None, description="Classified from the query text when omitted"
    )
    limit: int = Field(default_factory=lambda: settings.retrieval_default_limit, ge=1)
    customer_name: str | None = None
    transaction_type: TransactionType | None = None


class SimilarityResult(BaseSchema):
    transaction: TransactionSnapshot
    similarity: float = Field(ge=0.0, le=1.0)
    sort_key: str | None = Field(
        default=None, description="Secondary ordering applied after ranking (amount or date)"
    )


class RetrievalResponse(BaseSchema):
    intent: RetrievalIntent
    embedding_field: str
    results: list[SimilarityResult]


# ---------------------------------------------------------------------------
# Counterparty drift
# ---------------------------------------------------------------------------


class DriftRequest(BaseSchema):
    current_days: int = Field(default=30, description="Current window length in days")
    historical_days: int = Field(
        default=90, description="Historical window length in days, ending where the current one starts"
    )
    customer_name: str | None = None
    min_amount: Decimal | None = None
    max_amount: Decimal | None = None
    transaction_type: TransactionType | None = None


class DriftResult(BaseSchema):
    transaction: TransactionSnapshot
    first_seen: bool = True


class DriftResponse(BaseSchema):
    current_window_start: datetime
    current_window_end: datetime
    historical_window_start: datetime
    unknown_counterparties: list[str]
    results: list[DriftResult]


# ---------------------------------------------------------------------------
# Amount anomalies
# ---------------------------------------------------------------------------


class AnomalyStatus(str, enum.Enum):
    ANOMALOUS = "anomalous"
    NORMAL = "normal"
    INSUFFICIENT_DATA = "insufficient_data"


class AnomalyMethod(str, enum.Enum):
    """How the baseline was applied."""

    STD_DEVIATION = "std_deviation"  # |amount - mean| > M * stdev
    MEAN_MULTIPLE = "mean_multiple"  # amount > M * mean (no dispersion estimate)


class AnomalySeverity(str, enum.Enum):
    MODERATE = "moderate"
    HIGH = "high"


class AnomalyRequest(BaseSchema):
    current_days: int = Field(default=30, description="Current window length in days")
    lookback_months: int = Field(
        default_factory=lambda: settings.anomaly_lookback_months,
        description="Baseline length in months, ending where the current window starts",
    )
    threshold_multiplier: float | None = Field(
        default=None, description="Overrides the configured multiplier M"
    )
    customer_name: str | None = None
    counterparty_account: str | None = None
    transaction_type: TransactionType | None = None
    include_normal: bool = False


class CounterpartyBaseline(BaseSchema):
    sample_count: int
    mean: float | None = None
    stdev: float | None = None


class AnomalyResult(BaseSchema):
    transaction: TransactionSnapshot
    status: AnomalyStatus
    method: AnomalyMethod | None = None
    severity: AnomalySeverity | None = None
    ratio: float | None = Field(
        default=None, description="Deviation in stdevs, or amount / mean for the fallback"
    )
    baseline: CounterpartyBaseline


class AnomalyResponse(BaseSchema):
    current_window_start: datetime
    current_window_end: datetime
    lookback_start: datetime
    threshold_multiplier: float
    results: list[AnomalyResult]


# ---------------------------------------------------------------------------
# Counterparty profiles
# ---------------------------------------------------------------------------


class ProfileRequest(BaseSchema):
    months: int = Field(default=12, description="Lookback length in months")
    customer_name: str | None = None
    counterparty_account: str | None = None
    transaction_type: TransactionType | None = None


class CounterpartyProfile(BaseSchema):
    counterparty_account: str
    counterparty_name: str | None = None
    transaction_count: int
    total_amount: Decimal
    mean_amount: float
    stdev_amount: float | None = None
    min_amount: Decimal
    max_amount: Decimal
    first_transaction_date: datetime
    last_transaction_date: datetime


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


class DateRangeParams(BaseSchema):
    """Inclusive calendar range: both dates, else ``year``, else the current year."""

    start_date: date | None = None
    end_date: date | None = None
    year: int | None = Field(default=None, ge=1900, le=2100)


class CategorySearchRequest(BaseSchema):
    query: str = Field(default="", description="Empty lists categories alphabetically")
    limit: int = Field(default=5, ge=1, le=100)
    customer_name: str | None = None


class CategoryMatch(BaseSchema):
    category_code: str
    category_name: str | None = None
    similarity: float | None = Field(
        default=None, ge=0.0, le=1.0, description="Best similarity of any row in the category"
    )
    matching_transactions: int = Field(ge=0)


class CategorySearchResponse(BaseSchema):
    query: str
    categories: list[CategoryMatch]


class CategoryTransactionsRequest(DateRangeParams):
    query: str = Field(min_length=1)
    limit: int = Field(default=10, ge=1, le=100)
    top_categories: int = Field(default=3, ge=1, le=20)
    customer_name: str | None = None


class CategoryTransactionsResponse(BaseSchema):
    query: str
    start_date: date
    end_date: date
    categories: list[CategoryMatch]
    transactions: list[TransactionSnapshot]


class CategorySpendingRequest(DateRangeParams):
    query: str = Field(min_length=1)
    top_categories: int = Field(default=5, ge=1, le=20)
    customer_name: str | None = None


class CategorySpending(BaseSchema):
    category_code: str
    category_name: str | None = None
    total_amount: Decimal
    transaction_count: int


class CategorySpendingResponse(BaseSchema):
    query: str
    start_date: date
    end_date: date
    customer_name: str | None = None
    total_amount: Decimal
    transaction_count: int
    breakdown: list[CategorySpending]


class TopExpenseCategoriesRequest(DateRangeParams):
    limit: int = Field(default=5, ge=1, le=100)
    customer_name: str | None = None


class TopExpenseCategoriesResponse(BaseSchema):
    start_date: date
    end_date: date
    categories: list[CategorySpending]


# ---------------------------------------------------------------------------
# Duplicate payments
# ---------------------------------------------------------------------------


class DuplicatePaymentRequest(DateRangeParams):
    window_days: int = Field(
        default=7, ge=0, le=365, description="Max gap in days between consecutive repeats"
    )
    amount: Decimal | None = Field(default=None, ge=0)
    counterparty_account: str | None = None
    description: str | None = Field(default=None, description="Case-insensitive substring")
    customer_name: str | None = None
    transaction_type: TransactionType | None = TransactionType.DEBIT


class DuplicateGroup(BaseSchema):
    payee: str = Field(description="Counterparty account, or the normalized description")
    amount: Decimal
    transaction_count: int
    first_date: datetime
    last_date: datetime
    transactions: list[TransactionSnapshot]


class DuplicatePaymentResponse(BaseSchema):
    start_date: date
    end_date: date
    window_days: int
    groups: list[DuplicateGroup]


# ---------------------------------------------------------------------------
# Customers
# ---------------------------------------------------------------------------


class CustomerListResponse(BaseSchema):
    customers: list[str]


class CustomerNameValidation(BaseSchema):
    customer_name: str | None = None
    is_valid: bool
    corrected_name: str | None = None
    similarity: float | None = Field(default=None, ge=0.0, le=1.0)
    suggestions: list[str] = Field(default_factory=list)
    message: str
