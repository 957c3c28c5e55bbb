"""
Shared plumbing for VectorStore implementations backed by the transactions table.
"""

from typing import Mapping, Sequence
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from labeler.core.config import settings
from labeler.core.db import get_session_maker
from labeler.core.exceptions import (
    RecordNotFoundError,
    StoreError,
    ValidationError,
)
from labeler.core.logging import get_logger, metrics_counter
from labeler.core.sqlalchemy_types import validate_embedding
from labeler.models.transaction import EMBEDDING_FIELDS, Transaction, TransactionType
from labeler.vectorstore.protocol import SUPPORTED_FILTERS

logger = get_logger(__name__)


class TransactionVectorStore:
    """Base class: field/filter validation and embedding overwrite."""

    store_name = "base"

    def __init__(self, session_maker: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._session_maker = session_maker
        self.dimension = settings.vectorstore_dimension

    @property
    def session_maker(self) -> async_sessionmaker[AsyncSession]:
        if self._session_maker is None:
            self._session_maker = get_session_maker()
        return self._session_maker

    @staticmethod
    def _check_field(field: str) -> str:
        # Column names are interpolated into SQL; only known columns pass
        if field not in EMBEDDING_FIELDS:
            raise ValidationError(f"Unknown embedding field: {field}")
        return field

    @staticmethod
    def _check_filters(filters: Mapping[str, str] | None) -> dict[str, str]:
        active = {key: value for key, value in (filters or {}).items() if value is not None}
        unknown = set(active) - set(SUPPORTED_FILTERS)
        if unknown:
            raise ValidationError(f"Unsupported search filters: {sorted(unknown)}")
        normalized = {key: str(getattr(value, "value", value)) for key, value in active.items()}
        if "transaction_type" in normalized:
            try:
                TransactionType(normalized["transaction_type"])
            except ValueError as exc:
                raise ValidationError(
                    f"Unknown transaction type: {normalized['transaction_type']}"
                ) from exc
        return normalized

    async def write_embeddings(self, id: UUID, embeddings: Mapping[str, Sequence[float]]) -> None:
        values = {
            self._check_field(field): validate_embedding(vector, self.dimension)
            for field, vector in embeddings.items()
        }
        if not values:
            return

        try:
            async with self.session_maker() as session:
                result = await session.execute(
                    update(Transaction).where(Transaction.id == id).values(**values)
                )
                if result.rowcount == 0:
                    await session.rollback()
                    raise RecordNotFoundError(f"Transaction {id} not found")
                await session.commit()
        except SQLAlchemyError as exc:
            metrics_counter("vectorstore_failure", store=self.store_name, operation="write")
            logger.error(
                "vectorstore_write_failed",
                store=self.store_name,
                transaction_id=str(id),
                error=str(exc),
            )
            raise StoreError("Failed to write embeddings") from exc

        logger.debug(
            "vectorstore_embeddings_written",
            store=self.store_name,
            transaction_id=str(id),
            fields=sorted(values),
        )
