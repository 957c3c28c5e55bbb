"""
PGVector VectorStore implementation.

Ranks rows of the ``transactions`` table with pgvector's cosine distance
operator (``<=>``) on the requested embedding column.
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from pgvector.sqlalchemy import Vector
from sqlalchemy import Integer, String, bindparam, text as sa_text
from sqlalchemy.exc import SQLAlchemyError

from labeler.core.exceptions import RetrievalUnavailableError
from labeler.core.logging import get_logger, metrics_counter
from labeler.core.sqlalchemy_types import validate_embedding
from labeler.schemas.transaction import TransactionSnapshot
from labeler.vectorstore.base import TransactionVectorStore
from labeler.vectorstore.protocol import VectorSearchResult

logger = get_logger(__name__)

_SNAPSHOT_COLUMNS = (
    "id",
    "description",
    "amount",
    "transaction_type",
    "transaction_date",
    "counterparty_account",
    "counterparty_name",
    "customer_name",
    "category_code",
    "category_name",
    "label",
)


class PGVectorStore(TransactionVectorStore):
    """PostgreSQL + pgvector-backed VectorStore."""

    store_name = "pgvector"

    async def search(
        self,
        field: str,
        query_embedding: Sequence[float],
        top_k: int,
        filters: Mapping[str, str] | None = None,
    ) -> list[VectorSearchResult]:
        column = self._check_field(field)
        active_filters = self._check_filters(filters)
        embedding = validate_embedding(query_embedding, self.dimension)

        conditions = [f"{column} IS NOT NULL"]
        params: dict[str, Any] = {"embedding": embedding, "limit": top_k}
        bind_list = [
            bindparam("embedding", type_=Vector(self.dimension)),
            bindparam("limit", type_=Integer()),
        ]
        if "customer_name" in active_filters:
            conditions.append("customer_name = :customer_name")
            params["customer_name"] = active_filters["customer_name"]
            bind_list.append(bindparam("customer_name", type_=String()))
        if "transaction_type" in active_filters:
            # transaction_type is a native enum; compare on its text form
            conditions.append("CAST(transaction_type AS TEXT) = :transaction_type")
            params["transaction_type"] = active_filters["transaction_type"]
            bind_list.append(bindparam("transaction_type", type_=String()))

        search_sql = f"""
            SELECT
                {", ".join(_SNAPSHOT_COLUMNS)},
                ({column} <=> :embedding) AS distance
            FROM transactions
            WHERE {" AND ".join(conditions)}
            ORDER BY {column} <=> :embedding, id
            LIMIT :limit
        """
        stmt = sa_text(search_sql).bindparams(*bind_list)

        try:
            async with self.session_maker() as session:
                result = await session.execute(stmt, params)
                rows = result.mappings().all()
        except (SQLAlchemyError, OSError) as exc:
            metrics_counter("vectorstore_failure", store=self.store_name, operation="search")
            logger.error("pgvector_search_failed", field=column, error=str(exc))
            raise RetrievalUnavailableError("Similarity search failed") from exc

        logger.debug("pgvector_search_completed", field=column, hits=len(rows), top_k=top_k)

        return [
            VectorSearchResult(
                transaction=TransactionSnapshot.model_validate(
                    {key: row[key] for key in _SNAPSHOT_COLUMNS}
                ),
                distance=float(row["distance"]),
            )
            for row in rows
        ]
