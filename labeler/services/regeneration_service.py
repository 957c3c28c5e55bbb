"""
Embedding Regeneration Service

Recomputes every purpose embedding for many transactions. Each transaction
is an independent job run in its own session behind a semaphore; a failing
job is retried, then recorded in the report and skipped.

Known limitation: two concurrent regenerations of the same transaction id
are not serialized here. Last write wins; callers needing strict ordering
must serialize per id (single writer queue or keyed lock).
"""

from __future__ import annotations

import asyncio
from typing import Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from labeler.core.config import settings
from labeler.core.exceptions import (
    LabelerException,
    RateLimitedError,
    RecordNotFoundError,
    ValidationError,
)
from labeler.core.logging import get_logger, measure_latency, metrics_counter
from labeler.embedding.calls import embed_passages_bounded
from labeler.embedding.protocol import EmbeddingProviderProtocol
from labeler.repositories.transaction_repository import TransactionRepository
from labeler.schemas.transaction import RegenerationFailure, RegenerationReport
from labeler.services.embedding_text import build_embedding_texts
from labeler.vectorstore.protocol import VectorStoreProtocol

logger = get_logger(__name__)


class EmbeddingRegenerationService:
    def __init__(
        self,
        *,
        session_maker: async_sessionmaker[AsyncSession],
        vectorstore: VectorStoreProtocol,
        embedding_provider: EmbeddingProviderProtocol,
        max_concurrency: int | None = None,
        page_size: int | None = None,
        max_attempts: int = 3,
        retry_backoff_seconds: float = 1.0,
    ) -> None:
        self.session_maker = session_maker
        self.vectorstore = vectorstore
        self.embedding_provider = embedding_provider
        self.max_concurrency = max_concurrency or settings.regeneration_max_concurrency
        self.page_size = page_size or settings.regeneration_page_size
        self.max_attempts = max(1, max_attempts)
        self.retry_backoff_seconds = retry_backoff_seconds

    @measure_latency("embedding_regeneration")
    async def regenerate(
        self,
        transaction_ids: Sequence[UUID] | None = None,
        *,
        customer_name: str | None = None,
        max_concurrency: int | None = None,
    ) -> RegenerationReport:
        """
        Regenerate embeddings for ``transaction_ids``, or for every row with a
        missing embedding (optionally scoped to one customer)
        """
        ids = (
            list(dict.fromkeys(transaction_ids))
            if transaction_ids is not None
            else await self._collect_missing(customer_name)
        )
        semaphore = asyncio.Semaphore(max_concurrency or self.max_concurrency)
        report = RegenerationReport(requested=len(ids))

        logger.info(
            "embedding_regeneration_started",
            requested=len(ids),
            customer_name=customer_name,
            max_concurrency=max_concurrency or self.max_concurrency,
        )

        async def run(transaction_id: UUID) -> RegenerationFailure | None:
            async with semaphore:
                return await self._regenerate_one(transaction_id)

        outcomes = await asyncio.gather(*(run(transaction_id) for transaction_id in ids))

        for transaction_id, failure in zip(ids, outcomes):
            if failure is None:
                report.succeeded.append(transaction_id)
            else:
                report.failed.append(failure)

        logger.info(
            "embedding_regeneration_finished",
            requested=report.requested,
            succeeded=len(report.succeeded),
            failed=len(report.failed),
        )
        return report

    async def _collect_missing(self, customer_name: str | None) -> list[UUID]:
        ids: list[UUID] = []
        after_id: UUID | None = None
        async with self.session_maker() as session:
            repository = TransactionRepository(session)
            while True:
                page = await repository.find_missing_embeddings(
                    limit=self.page_size, after_id=after_id, customer_name=customer_name
                )
                if not page:
                    break
                ids.extend(page)
                after_id = page[-1]
        return ids

    async def _regenerate_one(self, transaction_id: UUID) -> RegenerationFailure | None:
        """One job. Returns the failure record, or None on success."""
        for attempt in range(1, self.max_attempts + 1):
            try:
                await self._embed_and_write(transaction_id)
                return None
            except (RecordNotFoundError, ValidationError) as exc:
                return self._record_failure(transaction_id, exc, attempt)
            except LabelerException as exc:
                if attempt >= self.max_attempts:
                    return self._record_failure(transaction_id, exc, attempt)
                logger.warning(
                    "embedding_regeneration_retry",
                    transaction_id=str(transaction_id),
                    attempt=attempt,
                    code=exc.code,
                )
                await asyncio.sleep(self.retry_backoff_seconds * attempt)
            except Exception as exc:
                logger.exception(
                    "embedding_regeneration_unexpected_error",
                    transaction_id=str(transaction_id),
                )
                return RegenerationFailure(
                    transaction_id=transaction_id,
                    code="UnexpectedError",
                    message=f"{type(exc).__name__} while regenerating embeddings",
                )
        return None

    async def _embed_and_write(self, transaction_id: UUID) -> None:
        async with self.session_maker() as session:
            transaction = await TransactionRepository(session).get_by_id_or_raise(transaction_id)
            texts = build_embedding_texts(transaction)

        embeddings = await embed_passages_bounded(self.embedding_provider, texts)
        await self.vectorstore.write_embeddings(transaction_id, embeddings)

    def _record_failure(
        self, transaction_id: UUID, exc: LabelerException, attempts: int
    ) -> RegenerationFailure:
        metrics_counter(
            "embedding_regeneration_failure",
            code=exc.code,
            rate_limited=isinstance(exc, RateLimitedError),
        )
        logger.error(
            "embedding_regeneration_failed",
            transaction_id=str(transaction_id),
            code=exc.code,
            attempts=attempts,
        )
        return RegenerationFailure(transaction_id=transaction_id, code=exc.code, message=exc.message)
