"""
Transaction endpoints

Ingestion with automatic labeling, reads, partial updates and batch
embedding regeneration.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from labeler.core.db import get_session, get_session_maker
from labeler.core.dependencies import (
    get_embedding_provider,
    get_retrieval_service,
    get_vectorstore,
)
from labeler.embedding.protocol import EmbeddingProviderProtocol
from labeler.schemas.transaction import (
    LabelAssignmentResponse,
    RegenerationReport,
    RegenerationRequest,
    TransactionCreate,
    TransactionResponse,
    TransactionUpdate,
)
from labeler.services.labeling_service import LabelAssignmentService
from labeler.services.regeneration_service import EmbeddingRegenerationService
from labeler.services.retrieval_service import SimilarityRetrievalService
from labeler.services.transaction_service import TransactionService
from labeler.vectorstore.protocol import VectorStoreProtocol

router = APIRouter(prefix="/transactions", tags=["transactions"])


def get_label_service(
    session: AsyncSession = Depends(get_session),
    retrieval: SimilarityRetrievalService = Depends(get_retrieval_service),
    embedding_provider: EmbeddingProviderProtocol = Depends(get_embedding_provider),
) -> LabelAssignmentService:
    return LabelAssignmentService(
        session=session,
        retrieval=retrieval,
        embedding_provider=embedding_provider,
    )


def get_transaction_service(
    session: AsyncSession = Depends(get_session),
    embedding_provider: EmbeddingProviderProtocol = Depends(get_embedding_provider),
) -> TransactionService:
    return TransactionService(session=session, embedding_provider=embedding_provider)


def get_regeneration_service(
    vectorstore: VectorStoreProtocol = Depends(get_vectorstore),
    embedding_provider: EmbeddingProviderProtocol = Depends(get_embedding_provider),
) -> EmbeddingRegenerationService:
    return EmbeddingRegenerationService(
        session_maker=get_session_maker(),
        vectorstore=vectorstore,
        embedding_provider=embedding_provider,
    )


@router.post(
    "",
    response_model=LabelAssignmentResponse,
    status_code=201,
    summary="Ingest a transaction and assign its label",
)
async def create_transaction(
    payload: TransactionCreate,
    service: LabelAssignmentService = Depends(get_label_service),
) -> LabelAssignmentResponse:
    """
    Embeds the transaction, labels it from its 5 nearest neighbors and stores
    everything in one commit.

    Errors:
    - 429: embedding provider rate limited
    - 503: embedding provider or vector store unavailable
    """
    return await service.label_transaction(payload)


@router.get("", response_model=list[TransactionResponse], summary="List transactions")
async def list_transactions(
    customer_name: Optional[str] = Query(None),
    label: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    service: TransactionService = Depends(get_transaction_service),
):
    return await service.list_transactions(
        customer_name=customer_name, label=label, limit=limit, offset=offset
    )


@router.get("/{transaction_id}", response_model=TransactionResponse)
async def get_transaction(
    transaction_id: UUID,
    service: TransactionService = Depends(get_transaction_service),
) -> TransactionResponse:
    return await service.get_transaction(transaction_id)


@router.patch(
    "/{transaction_id}",
    response_model=TransactionResponse,
    summary="Update a transaction",
)
async def update_transaction(
    transaction_id: UUID,
    payload: TransactionUpdate,
    service: TransactionService = Depends(get_transaction_service),
) -> TransactionResponse:
    """
    Changing description, amount or category regenerates all embeddings
    before the update is committed.
    """
    return await service.update_transaction(transaction_id, payload)


@router.post(
    "/embeddings/regenerate",
    response_model=RegenerationReport,
    summary="Regenerate embeddings in bulk",
)
async def regenerate_embeddings(
    payload: RegenerationRequest,
    service: EmbeddingRegenerationService = Depends(get_regeneration_service),
) -> RegenerationReport:
    """
    Per-item failures are reported in ``failed`` and never abort the batch.
    """
    return await service.regenerate(
        payload.transaction_ids,
        customer_name=payload.customer_name,
        max_concurrency=payload.max_concurrency,
    )
