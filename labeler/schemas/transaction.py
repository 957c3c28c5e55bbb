"""
Transaction Schemas
Pydantic models for Transaction API requests/responses
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import Field, model_validator

from labeler.models.transaction import TransactionType
from labeler.schemas.base import BaseSchema, RecordSchema


class TransactionBase(BaseSchema):
    """
    Base transaction fields
    """

    description: str = Field(min_length=1)
    amount: Decimal = Field(ge=0, max_digits=14, decimal_places=2)
    transaction_type: TransactionType = TransactionType.DEBIT
    transaction_date: datetime
    counterparty_account: str | None = Field(default=None, max_length=64)
    counterparty_name: str | None = Field(default=None, max_length=255)
    customer_name: str | None = Field(default=None, max_length=255)
    category_code: str | None = Field(default=None, max_length=50)
    category_name: str | None = Field(default=None, max_length=255)


class TransactionCreate(TransactionBase):
    """
    Schema for ingesting a new transaction

    The label is never supplied by the caller; it is assigned from the
    nearest historical neighbors at ingestion.
    """

    pass


class TransactionUpdate(BaseSchema):
    """
    Partial update. Changing description, amount or category regenerates
    the transaction's embeddings.
    """

    description: str | None = Field(default=None, min_length=1)
    amount: Decimal | None = Field(default=None, ge=0, max_digits=14, decimal_places=2)
    category_code: str | None = Field(default=None, max_length=50)
    category_name: str | None = Field(default=None, max_length=255)
    counterparty_name: str | None = Field(default=None, max_length=255)
    label: str | None = Field(
        default=None,
        min_length=1,
        max_length=255,
        description="Must already be in use as a label or category name, or be Uncategorized",
    )

    @model_validator(mode="after")
    def reject_null_required_fields(self) -> "TransactionUpdate":
        # Omitted means unchanged; an explicit null would clear a NOT NULL column
        cleared = sorted(
            name
            for name in ("description", "amount", "label")
            if name in self.model_fields_set and getattr(self, name) is None
        )
        if cleared:
            raise ValueError(f"{', '.join(cleared)} cannot be null")
        return self


class TransactionSnapshot(BaseSchema):
    """
    Point-in-time view of a transaction row, without embeddings
    """

    id: UUID
    description: str
    amount: Decimal
    transaction_type: TransactionType
    transaction_date: datetime
    counterparty_account: str | None = None
    counterparty_name: str | None = None
    customer_name: str | None = None
    category_code: str | None = None
    category_name: str | None = None
    label: str


class TransactionResponse(TransactionBase, RecordSchema):
    """
    Schema for transaction response
    """

    label: str
    embedded_fields: list[str] = Field(
        default_factory=list,
        description="Embedding columns currently populated for this transaction",
    )


class LabelAssignmentResponse(BaseSchema):
    """Result of ingesting a transaction with an automatically assigned label."""

    transaction: TransactionResponse
    assigned_label: str
    best_similarity: float | None = Field(default=None, ge=0.0, le=1.0)
    decision: str = Field(description="Which step of the label cascade decided")
    neighbors_considered: int = Field(ge=0)


class RegenerationRequest(BaseSchema):
    """Batch embedding regeneration scope."""

    transaction_ids: list[UUID] | None = Field(
        default=None, description="Explicit ids; when omitted rows with missing embeddings are used"
    )
    customer_name: str | None = None
    max_concurrency: int | None = Field(default=None, ge=1, le=64)


class RegenerationFailure(BaseSchema):
    transaction_id: UUID
    code: str
    message: str


class RegenerationReport(BaseSchema):
    """Per-item outcome of a regeneration batch."""

    requested: int = Field(ge=0)
    succeeded: list[UUID] = Field(default_factory=list)
    failed: list[RegenerationFailure] = Field(default_factory=list)
