"""
SQLAlchemy 2.0 Models
"""

from labeler.models.base import Base, BaseModel  # noqa: F401
from labeler.models.transaction import (  # noqa: F401
    EMBEDDING_FIELDS,
    INTENT_EMBEDDING_FIELDS,
    UNCATEGORIZED,
    RetrievalIntent,
    Transaction,
    TransactionType,
)

__all__ = [
    "Base",
    "BaseModel",
    "EMBEDDING_FIELDS",
    "INTENT_EMBEDDING_FIELDS",
    "UNCATEGORIZED",
    "RetrievalIntent",
    "Transaction",
    "TransactionType",
]
