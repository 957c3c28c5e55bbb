"""
Analytics endpoints

Query classification, similarity search, counterparty drift, amount
anomalies, counterparty profiles, category search and spending, and
repeated payments. All results are computed per request.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from labeler.core.db import get_session
from labeler.core.dependencies import get_category_service, get_retrieval_service
from labeler.models.transaction import INTENT_EMBEDDING_FIELDS
from labeler.schemas.analytics import (
    AnomalyRequest,
    AnomalyResponse,
    CategorySearchRequest,
    CategorySearchResponse,
    CategorySpendingRequest,
    CategorySpendingResponse,
    CategoryTransactionsRequest,
    CategoryTransactionsResponse,
    ClassifyQueryResponse,
    CounterpartyProfile,
    DriftRequest,
    DriftResponse,
    DuplicatePaymentRequest,
    DuplicatePaymentResponse,
    ProfileRequest,
    RetrievalRequest,
    RetrievalResponse,
    TopExpenseCategoriesRequest,
    TopExpenseCategoriesResponse,
)
from labeler.services.anomaly_service import AmountAnomalyService
from labeler.services.category_service import CategoryAnalyticsService
from labeler.services.drift_service import CounterpartyDriftService
from labeler.services.duplicate_service import DuplicatePaymentService
from labeler.services.profile_service import CounterpartyProfileService
from labeler.services.query_classifier import classify_query
from labeler.services.retrieval_service import SimilarityRetrievalService

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("/classify", response_model=ClassifyQueryResponse, summary="Classify a query")
async def classify(query: str = Query("", description="Free-text question")) -> ClassifyQueryResponse:
    intent = classify_query(query)
    return ClassifyQueryResponse(
        query=query, intent=intent, embedding_field=INTENT_EMBEDDING_FIELDS[intent]
    )


@router.post("/search", response_model=RetrievalResponse, summary="Similarity search")
async def search(
    payload: RetrievalRequest,
    service: SimilarityRetrievalService = Depends(get_retrieval_service),
) -> RetrievalResponse:
    """
    Errors:
    - 400: neither query nor query_embedding, limit out of range, wrong vector size
    - 503: embedding provider or vector store unavailable
    """
    return await service.retrieve(payload)


@router.post("/drift", response_model=DriftResponse, summary="Unknown counterparties")
async def counterparty_drift(
    payload: DriftRequest,
    session: AsyncSession = Depends(get_session),
) -> DriftResponse:
    return await CounterpartyDriftService(session=session).detect(payload)


@router.post("/anomalies", response_model=AnomalyResponse, summary="Amount anomalies")
async def amount_anomalies(
    payload: AnomalyRequest,
    session: AsyncSession = Depends(get_session),
) -> AnomalyResponse:
    return await AmountAnomalyService(session=session).detect(payload)


@router.post(
    "/profiles",
    response_model=list[CounterpartyProfile],
    summary="Counterparty statistics",
)
async def counterparty_profiles(
    payload: ProfileRequest,
    session: AsyncSession = Depends(get_session),
):
    return await CounterpartyProfileService(session=session).get_profiles(payload)


@router.post(
    "/categories/search",
    response_model=CategorySearchResponse,
    summary="Categories closest to a query",
)
async def search_categories(
    payload: CategorySearchRequest,
    service: CategoryAnalyticsService = Depends(get_category_service),
) -> CategorySearchResponse:
    return await service.search_categories(payload)


@router.post(
    "/categories/transactions",
    response_model=CategoryTransactionsResponse,
    summary="Largest transactions of the matching categories",
)
async def category_transactions(
    payload: CategoryTransactionsRequest,
    service: CategoryAnalyticsService = Depends(get_category_service),
) -> CategoryTransactionsResponse:
    return await service.top_transactions(payload)


@router.post(
    "/categories/spending",
    response_model=CategorySpendingResponse,
    summary="Spending in the matching categories",
)
async def category_spending(
    payload: CategorySpendingRequest,
    service: CategoryAnalyticsService = Depends(get_category_service),
) -> CategorySpendingResponse:
    """
    Errors:
    - 400: only one of start_date/end_date, or start_date after end_date
    - 503: embedding provider or store unavailable
    """
    return await service.category_spending(payload)


@router.post(
    "/categories/top-expenses",
    response_model=TopExpenseCategoriesResponse,
    summary="Categories with the highest spending",
)
async def top_expense_categories(
    payload: TopExpenseCategoriesRequest,
    service: CategoryAnalyticsService = Depends(get_category_service),
) -> TopExpenseCategoriesResponse:
    return await service.top_expense_categories(payload)


@router.post("/duplicates", response_model=DuplicatePaymentResponse, summary="Repeated payments")
async def duplicate_payments(
    payload: DuplicatePaymentRequest,
    session: AsyncSession = Depends(get_session),
) -> DuplicatePaymentResponse:
    return await DuplicatePaymentService(session=session).find_duplicates(payload)
