"""
Transaction Service

Reads and partial updates. Embeddings are derived data: an update touching
description, amount or category recomputes all of them in the same commit;
any other update leaves them untouched.
"""

from __future__ import annotations

from typing import Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from labeler.core.exceptions import ValidationError
from labeler.core.logging import get_logger
from labeler.embedding.calls import embed_passages_bounded
from labeler.embedding.protocol import EmbeddingProviderProtocol
from labeler.models.transaction import EMBEDDING_FIELDS, UNCATEGORIZED, Transaction
from labeler.repositories.transaction_repository import TransactionRepository
from labeler.schemas.transaction import TransactionResponse, TransactionUpdate
from labeler.services.embedding_text import build_embedding_texts

logger = get_logger(__name__)

EMBEDDING_SOURCE_FIELDS = frozenset({"description", "amount", "category_code", "category_name"})


def to_response(transaction: Transaction) -> TransactionResponse:
    response = TransactionResponse.model_validate(transaction)
    response.embedded_fields = [
        field for field in EMBEDDING_FIELDS if getattr(transaction, field) is not None
    ]
    return response


class TransactionService:
    def __init__(
        self,
        *,
        session: AsyncSession,
        embedding_provider: EmbeddingProviderProtocol | None = None,
        repository: TransactionRepository | None = None,
    ) -> None:
        self.session = session
        self.embedding_provider = embedding_provider
        self.repository = repository or TransactionRepository(session)

    async def get_transaction(self, transaction_id: UUID) -> TransactionResponse:
        transaction = await self.repository.get_by_id_or_raise(transaction_id)
        return to_response(transaction)

    async def list_transactions(
        self,
        *,
        customer_name: str | None = None,
        label: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> Sequence[TransactionResponse]:
        rows = await self.repository.list_transactions(
            customer_name=customer_name, label=label, limit=limit, offset=offset
        )
        return [to_response(row) for row in rows]

    async def update_transaction(
        self, transaction_id: UUID, data: TransactionUpdate
    ) -> TransactionResponse:
        """
        Apply a partial update, regenerating embeddings when their inputs change

        Raises:
            RecordNotFoundError: Unknown id
            ValidationError: Label not in use as a label or category name
            StoreError: Database failure, nothing is persisted
            EmbeddingUnavailableError / RateLimitedError: nothing is persisted
        """
        transaction = await self.repository.get_by_id_or_raise(transaction_id)
        changes = {
            key: value
            for key, value in data.model_dump(exclude_unset=True).items()
            if getattr(transaction, key) != value
        }
        if not changes:
            return to_response(transaction)

        label = changes.get("label")
        own_category = changes.get("category_name", transaction.category_name)
        if label is not None and label not in (UNCATEGORIZED, own_category):
            if not await self.repository.is_known_label(label):
                raise ValidationError(f"Unknown label: {label}")

        regenerate = bool(EMBEDDING_SOURCE_FIELDS & changes.keys())

        try:
            for key, value in changes.items():
                setattr(transaction, key, value)

            if regenerate:
                if self.embedding_provider is None:
                    raise RuntimeError("embedding_provider is required to update embedding inputs")
                embeddings = await embed_passages_bounded(
                    self.embedding_provider, build_embedding_texts(transaction)
                )
                # Overwrite every column so no stale vector survives the change
                for field, vector in embeddings.items():
                    setattr(transaction, field, vector)

            transaction = await self.repository.update(transaction)
            await self.repository.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "transaction_updated",
            transaction_id=str(transaction_id),
            changed_fields=sorted(changes),
            embeddings_regenerated=regenerate,
        )
        return to_response(transaction)
