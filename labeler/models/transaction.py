"""
ERD summary:
- Transaction carries five purpose-specific embedding columns
  (content/amount/date/category/combined), one per retrieval intent.
- Counterparty profiles are derived from Transaction rows per request and
  never persisted.
"""

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Enum as SQLEnum, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from labeler.core.config import settings
from labeler.core.sqlalchemy_types import EmbeddingVector
from labeler.models.base import BaseModel

UNCATEGORIZED = "Uncategorized"


class TransactionType(str, enum.Enum):
    """Direction of the money flow; debits are outgoing."""

    DEBIT = "debit"
    CREDIT = "credit"


class RetrievalIntent(str, enum.Enum):
    """Purpose of a similarity query, selecting which embedding index to scan."""

    CONTENT = "content"
    AMOUNT = "amount"
    DATE = "date"
    CATEGORY = "category"
    COMBINED = "combined"


INTENT_EMBEDDING_FIELDS: dict[RetrievalIntent, str] = {
    RetrievalIntent.CONTENT: "content_embedding",
    RetrievalIntent.AMOUNT: "amount_embedding",
    RetrievalIntent.DATE: "date_embedding",
    RetrievalIntent.CATEGORY: "category_embedding",
    RetrievalIntent.COMBINED: "combined_embedding",
}

EMBEDDING_FIELDS: tuple[str, ...] = tuple(INTENT_EMBEDDING_FIELDS.values())

if set(INTENT_EMBEDDING_FIELDS) != set(RetrievalIntent):
    raise RuntimeError("Every RetrievalIntent needs an embedding column")


class Transaction(BaseModel):
    """
    Bank transaction with its category label and per-purpose embeddings
    """

    __tablename__ = "transactions"

    description: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    transaction_type: Mapped[TransactionType] = mapped_column(
        SQLEnum(
            TransactionType,
            name="transaction_type",
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        nullable=False,
        default=TransactionType.DEBIT,
    )
    transaction_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )

    counterparty_account: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    counterparty_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    customer_name: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)

    category_code: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)
    category_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    label: Mapped[str] = mapped_column(
        String(255), nullable=False, default=UNCATEGORIZED, server_default=UNCATEGORIZED
    )

    content_embedding: Mapped[list[float] | None] = mapped_column(
        EmbeddingVector(settings.vectorstore_dimension), nullable=True
    )
    amount_embedding: Mapped[list[float] | None] = mapped_column(
        EmbeddingVector(settings.vectorstore_dimension), nullable=True
    )
    date_embedding: Mapped[list[float] | None] = mapped_column(
        EmbeddingVector(settings.vectorstore_dimension), nullable=True
    )
    category_embedding: Mapped[list[float] | None] = mapped_column(
        EmbeddingVector(settings.vectorstore_dimension), nullable=True
    )
    combined_embedding: Mapped[list[float] | None] = mapped_column(
        EmbeddingVector(settings.vectorstore_dimension), nullable=True
    )

    __table_args__ = (
        Index("ix_transactions_customer_date", "customer_name", "transaction_date"),
    )

    @property
    def signed_amount(self) -> Decimal:
        """Amount with debits negative."""
        if self.transaction_type == TransactionType.DEBIT:
            return -self.amount
        return self.amount

    @property
    def has_all_embeddings(self) -> bool:
        return all(getattr(self, field) is not None for field in EMBEDDING_FIELDS)

    def embedding_for(self, intent: RetrievalIntent) -> list[float] | None:
        return getattr(self, INTENT_EMBEDDING_FIELDS[intent])

    def __repr__(self) -> str:
        return f"<Transaction(id={self.id}, label={self.label})>"
