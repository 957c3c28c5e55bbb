"""
Similarity Retrieval Service

intent + query -> ranked transactions with similarity scores.

1) query embedding (provider call, time-bounded)
2) intent -> embedding column via INTENT_EMBEDDING_FIELDS
3) nearest-neighbor scan, ascending cosine distance, ties by id, limit N
4) similarity = 1 - distance, clamped to [0, 1]
5) amount/date intents are re-sorted by that key, similarity breaking ties
"""

from __future__ import annotations

import asyncio
from typing import Sequence

from labeler.core.config import settings
from labeler.core.exceptions import (
    RetrievalUnavailableError,
    ValidationError,
)
from labeler.core.logging import get_logger, measure_latency, metrics_counter
from labeler.core.sqlalchemy_types import validate_embedding
from labeler.embedding.calls import embed_query_bounded
from labeler.embedding.protocol import EmbeddingProviderProtocol
from labeler.models.transaction import INTENT_EMBEDDING_FIELDS, RetrievalIntent
from labeler.schemas.analytics import RetrievalRequest, RetrievalResponse, SimilarityResult
from labeler.services.query_classifier import classify_query
from labeler.vectorstore.protocol import VectorSearchResult, VectorStoreProtocol

logger = get_logger(__name__)


def distance_to_similarity(distance: float) -> float:
    return min(1.0, max(0.0, 1.0 - float(distance)))


def order_for_intent(
    intent: RetrievalIntent, results: Sequence[SimilarityResult]
) -> list[SimilarityResult]:
    """Apply the intent's secondary ordering on top of distance order.

    Stable sorts from the least significant key up: id asc, similarity desc,
    then the intent key desc.
    """
    ordered = list(results)
    if intent not in (RetrievalIntent.AMOUNT, RetrievalIntent.DATE):
        return ordered

    ordered.sort(key=lambda r: r.transaction.id)
    ordered.sort(key=lambda r: r.similarity, reverse=True)
    if intent is RetrievalIntent.AMOUNT:
        ordered.sort(key=lambda r: r.transaction.amount, reverse=True)
        sort_key = "amount"
    else:
        ordered.sort(key=lambda r: r.transaction.transaction_date, reverse=True)
        sort_key = "date"

    return [r.model_copy(update={"sort_key": sort_key}) for r in ordered]


class SimilarityRetrievalService:
    """Ranked nearest-neighbor retrieval over the per-purpose embedding columns."""

    def __init__(
        self,
        *,
        vectorstore: VectorStoreProtocol,
        embedding_provider: EmbeddingProviderProtocol,
        search_timeout: float | None = None,
        embedding_timeout: float | None = None,
        max_limit: int | None = None,
    ) -> None:
        self.vectorstore = vectorstore
        self.embedding_provider = embedding_provider
        self.search_timeout = search_timeout or settings.search_timeout_seconds
        self.embedding_timeout = embedding_timeout or settings.embedding_timeout_seconds
        self.max_limit = max_limit or settings.retrieval_max_limit
        self.dimension = settings.vectorstore_dimension

    @measure_latency("similarity_retrieval")
    async def retrieve(self, request: RetrievalRequest) -> RetrievalResponse:
        """
        Run one similarity query

        Raises:
            ValidationError: Missing query, bad limit or wrong vector dimension
            EmbeddingUnavailableError: Query embedding failed or timed out
            RetrievalUnavailableError: Store failed or timed out
        """
        has_text = request.query is not None and request.query.strip() != ""
        if not has_text and request.query_embedding is None:
            raise ValidationError("Either query text or query_embedding is required")
        if not 1 <= request.limit <= self.max_limit:
            raise ValidationError(f"limit must be between 1 and {self.max_limit}")

        intent = request.intent or classify_query(request.query)

        if request.query_embedding is not None:
            query_embedding = validate_embedding(request.query_embedding, self.dimension)
        else:
            query_embedding = await embed_query_bounded(
                self.embedding_provider,
                request.query,
                timeout=self.embedding_timeout,
                dimension=self.dimension,
            )

        filters = {
            "customer_name": request.customer_name,
            "transaction_type": request.transaction_type.value if request.transaction_type else None,
        }
        results = await self.search(intent, query_embedding, request.limit, filters)

        logger.info(
            "similarity_retrieval_completed",
            intent=intent.value,
            limit=request.limit,
            hits=len(results),
            precomputed_vector=request.query_embedding is not None,
        )
        return RetrievalResponse(
            intent=intent,
            embedding_field=INTENT_EMBEDDING_FIELDS[intent],
            results=results,
        )

    async def search(
        self,
        intent: RetrievalIntent,
        query_embedding: Sequence[float],
        limit: int,
        filters: dict[str, str | None] | None = None,
    ) -> list[SimilarityResult]:
        """Scan + score + intent ordering for an already-embedded query."""
        field = INTENT_EMBEDDING_FIELDS[intent]
        active_filters = {k: v for k, v in (filters or {}).items() if v is not None}

        hits = await self._scan(field, query_embedding, limit, active_filters)
        results = [
            SimilarityResult(
                transaction=hit.transaction,
                similarity=distance_to_similarity(hit.distance),
            )
            for hit in hits
        ]
        return order_for_intent(intent, results)

    async def _scan(
        self,
        field: str,
        query_embedding: Sequence[float],
        limit: int,
        filters: dict[str, str],
    ) -> list[VectorSearchResult]:
        try:
            return await asyncio.wait_for(
                self.vectorstore.search(field, query_embedding, limit, filters or None),
                timeout=self.search_timeout,
            )
        except asyncio.TimeoutError as exc:
            metrics_counter("retrieval_unavailable", reason="timeout")
            logger.warning("similarity_search_timeout", field=field, timeout_seconds=self.search_timeout)
            raise RetrievalUnavailableError("Similarity search timed out") from exc
        except (ValidationError, RetrievalUnavailableError):
            raise
        except Exception as exc:
            metrics_counter("retrieval_unavailable", reason="error")
            logger.error(
                "similarity_search_failed",
                field=field,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise RetrievalUnavailableError("Similarity search failed") from exc
