"""
In-process VectorStore Implementation
Exact cosine ranking computed in Python, for development and testing on
databases without pgvector (SQLite).
"""

import math
from typing import Mapping, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from labeler.core.exceptions import RetrievalUnavailableError
from labeler.core.logging import get_logger, metrics_counter
from labeler.core.sqlalchemy_types import validate_embedding
from labeler.models.transaction import Transaction, TransactionType
from labeler.schemas.transaction import TransactionSnapshot
from labeler.vectorstore.base import TransactionVectorStore
from labeler.vectorstore.protocol import VectorSearchResult

logger = get_logger(__name__)


def cosine_distance(a: Sequence[float], b: Sequence[float]) -> float:
    """1 - cosine similarity; zero vectors are treated as maximally distant."""
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 1.0
    dot = sum(x * y for x, y in zip(a, b))
    return 1.0 - dot / (norm_a * norm_b)


class InMemoryVectorStore(TransactionVectorStore):
    """
    Loads candidate rows through SQLAlchemy and ranks them in memory.

    O(n) per query; fine for tests and small local datasets.
    """

    store_name = "memory"

    async def search(
        self,
        field: str,
        query_embedding: Sequence[float],
        top_k: int,
        filters: Mapping[str, str] | None = None,
    ) -> list[VectorSearchResult]:
        column_name = self._check_field(field)
        active_filters = self._check_filters(filters)
        query = validate_embedding(query_embedding, self.dimension)

        column = getattr(Transaction, column_name)
        stmt = select(Transaction).where(column.is_not(None))
        if "customer_name" in active_filters:
            stmt = stmt.where(Transaction.customer_name == active_filters["customer_name"])
        if "transaction_type" in active_filters:
            stmt = stmt.where(
                Transaction.transaction_type == TransactionType(active_filters["transaction_type"])
            )

        try:
            async with self.session_maker() as session:
                rows = list((await session.execute(stmt)).scalars().all())
        except (SQLAlchemyError, OSError) as exc:
            metrics_counter("vectorstore_failure", store=self.store_name, operation="search")
            logger.error("memory_search_failed", field=column_name, error=str(exc))
            raise RetrievalUnavailableError("Similarity search failed") from exc

        scored = sorted(
            ((cosine_distance(query, getattr(row, column_name)), row) for row in rows),
            key=lambda item: (item[0], item[1].id),
        )

        logger.debug(
            "memory_search_completed", field=column_name, candidates=len(rows), top_k=top_k
        )

        return [
            VectorSearchResult(
                transaction=TransactionSnapshot.model_validate(row),
                distance=distance,
            )
            for distance, row in scored[:top_k]
        ]
