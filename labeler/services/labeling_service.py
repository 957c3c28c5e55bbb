"""
Label Assignment Service

A new transaction takes its category label from its nearest historical
neighbors by content similarity. The label, the embeddings and the other
fields are committed together; nothing is written if any step fails.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import NamedTuple, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from labeler.core.config import settings
from labeler.core.logging import get_logger, measure_latency
from labeler.embedding.calls import embed_passages_bounded
from labeler.embedding.protocol import EmbeddingProviderProtocol
from labeler.models.transaction import (
    INTENT_EMBEDDING_FIELDS,
    UNCATEGORIZED,
    RetrievalIntent,
    Transaction,
)
from labeler.repositories.transaction_repository import TransactionRepository
from labeler.schemas.analytics import SimilarityResult
from labeler.schemas.transaction import LabelAssignmentResponse, TransactionCreate
from labeler.services.embedding_text import build_embedding_texts
from labeler.services.retrieval_service import SimilarityRetrievalService
from labeler.services.transaction_service import to_response

logger = get_logger(__name__)


@dataclass(frozen=True)
class LabelPolicy:
    """Cascade constants.

    top_k: neighbors consulted
    majority_threshold: T1, neighbors at or above it vote
    fallback_floor: T2, candidates for the single-neighbor fallback
    fallback_min_similarity: T3, the fallback neighbor must reach it
    """

    top_k: int = 5
    majority_threshold: float = 0.35
    fallback_floor: float = 0.25
    fallback_min_similarity: float = 0.30

    @classmethod
    def from_settings(cls) -> "LabelPolicy":
        return cls(
            top_k=settings.label_top_k,
            majority_threshold=settings.label_majority_threshold,
            fallback_floor=settings.label_fallback_floor,
            fallback_min_similarity=settings.label_fallback_min_similarity,
        )


class LabelDecision(NamedTuple):
    label: str
    best_similarity: float | None
    rule: str  # no_neighbors | majority | best_neighbor | below_threshold


class Neighbor(NamedTuple):
    label: str
    similarity: float


def decide_label(neighbors: Sequence[Neighbor], policy: LabelPolicy) -> LabelDecision:
    """Run the label cascade over (label, similarity) neighbors.

    1. no neighbors -> Uncategorized
    2. best >= T1 -> most frequent label among neighbors >= T1; a tie goes to
       the tied label holding the most similar neighbor, then alphabetical
    3. else the best neighbor >= T2, if it also reaches T3
    4. else Uncategorized
    """
    if not neighbors:
        return LabelDecision(UNCATEGORIZED, None, "no_neighbors")

    ranked = sorted(neighbors, key=lambda n: (-n.similarity, n.label))
    best = ranked[0]

    if best.similarity >= policy.majority_threshold:
        voters = [n for n in ranked if n.similarity >= policy.majority_threshold]
        counts = Counter(n.label for n in voters)
        top_count = max(counts.values())
        tied = {label for label, count in counts.items() if count == top_count}
        # ranked is similarity-desc then label-asc, so the first tied hit wins
        winner = next(n.label for n in voters if n.label in tied)
        return LabelDecision(winner, best.similarity, "majority")

    band = [n for n in ranked if n.similarity >= policy.fallback_floor]
    if band and band[0].similarity >= policy.fallback_min_similarity:
        return LabelDecision(band[0].label, best.similarity, "best_neighbor")

    return LabelDecision(UNCATEGORIZED, best.similarity, "below_threshold")


class LabelAssignmentService:
    """Embeds, labels and persists new transactions."""

    def __init__(
        self,
        *,
        session: AsyncSession,
        retrieval: SimilarityRetrievalService,
        embedding_provider: EmbeddingProviderProtocol,
        policy: LabelPolicy | None = None,
        repository: TransactionRepository | None = None,
    ) -> None:
        self.session = session
        self.retrieval = retrieval
        self.embedding_provider = embedding_provider
        self.policy = policy or LabelPolicy.from_settings()
        self.repository = repository or TransactionRepository(session)

    @measure_latency("label_transaction")
    async def label_transaction(self, data: TransactionCreate) -> LabelAssignmentResponse:
        """
        Ingest a transaction with an automatically assigned label

        Raises:
            EmbeddingUnavailableError / RateLimitedError: provider failure, nothing persisted
            RetrievalUnavailableError: similarity scan failed, nothing persisted
            StoreError: insert or commit failed, nothing persisted
        """
        texts = build_embedding_texts(data)
        embeddings = await embed_passages_bounded(
            self.embedding_provider,
            texts,
            timeout=self.retrieval.embedding_timeout,
            dimension=self.retrieval.dimension,
        )

        content_vector = embeddings[INTENT_EMBEDDING_FIELDS[RetrievalIntent.CONTENT]]
        similar = await self.retrieval.search(
            RetrievalIntent.CONTENT, content_vector, self.policy.top_k
        )
        decision = decide_label(self._neighbors(similar), self.policy)

        transaction = Transaction(
            **data.model_dump(),
            label=decision.label,
            **embeddings,
        )
        try:
            transaction = await self.repository.create(transaction)
            await self.repository.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "transaction_labeled",
            transaction_id=str(transaction.id),
            label=decision.label,
            rule=decision.rule,
            best_similarity=decision.best_similarity,
            neighbors=len(similar),
        )

        return LabelAssignmentResponse(
            transaction=to_response(transaction),
            assigned_label=decision.label,
            best_similarity=decision.best_similarity,
            decision=decision.rule,
            neighbors_considered=len(similar),
        )

    async def suggest_label(self, data: TransactionCreate) -> LabelDecision:
        """Dry run of the cascade without persisting anything."""
        texts = build_embedding_texts(data)
        content_field = INTENT_EMBEDDING_FIELDS[RetrievalIntent.CONTENT]
        vectors = await embed_passages_bounded(
            self.embedding_provider,
            {content_field: texts[content_field]},
            timeout=self.retrieval.embedding_timeout,
            dimension=self.retrieval.dimension,
        )
        similar = await self.retrieval.search(
            RetrievalIntent.CONTENT, vectors[content_field], self.policy.top_k
        )
        return decide_label(self._neighbors(similar), self.policy)

    @staticmethod
    def _neighbors(similar: Sequence[SimilarityResult]) -> list[Neighbor]:
        return [Neighbor(r.transaction.label, r.similarity) for r in similar]
