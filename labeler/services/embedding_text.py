"""
Per-purpose embedding texts.

Each embedding column is computed from its own template so that, e.g., an
amount query lands near transactions with similar amounts rather than
similar descriptions.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Protocol

from labeler.models.transaction import INTENT_EMBEDDING_FIELDS, RetrievalIntent


class EmbeddingSource(Protocol):
    """Anything carrying the fields the templates read (ORM row or create payload)."""

    description: str
    amount: Decimal
    transaction_type: Any
    transaction_date: datetime | None
    category_code: str | None
    category_name: str | None


def _clean(*parts: object) -> str:
    return " ".join(str(p).strip() for p in parts if p is not None and str(p).strip())


def content_text(source: EmbeddingSource) -> str:
    return _clean(source.description, source.category_name)


def amount_text(source: EmbeddingSource) -> str:
    return f"amount {source.amount} currency money payment transaction value financial"


def date_text(source: EmbeddingSource) -> str:
    d = source.transaction_date
    if d is None:
        return "date unknown"
    return (
        f"date {d:%Y-%m-%d} month {d:%B} year {d:%Y} day {d:%d} weekday {d:%A}"
    )


def category_text(source: EmbeddingSource) -> str:
    tx_type = getattr(source.transaction_type, "value", source.transaction_type)
    return _clean(
        "category", source.category_code, source.category_name, "type", tx_type
    )


def build_embedding_texts(source: EmbeddingSource) -> dict[str, str]:
    """Text to embed for every embedding column, keyed by column name."""
    texts = {
        RetrievalIntent.CONTENT: content_text(source),
        RetrievalIntent.AMOUNT: amount_text(source),
        RetrievalIntent.DATE: date_text(source),
        RetrievalIntent.CATEGORY: category_text(source),
    }
    texts[RetrievalIntent.COMBINED] = " ".join(texts.values())
    return {INTENT_EMBEDDING_FIELDS[intent]: text for intent, text in texts.items()}
