"""
MCP Tool Implementations
Business logic for MCP tool calls

Every tool takes flat keyword arguments, validates them with the same
Pydantic request models as the HTTP API and returns a JSON string. Failures
come back as ``{"error": {"code", "message"}}``. Sessions and services are
resolved here, never taken from tool arguments.
"""

import json
from contextlib import asynccontextmanager
from functools import wraps
from typing import Any, AsyncIterator, Awaitable, Callable

import pydantic
from sqlalchemy.ext.asyncio import AsyncSession

from labeler.core.db import get_session_maker
from labeler.core.exceptions import LabelerException, ValidationError
from labeler.core.logging import get_logger
from labeler.embedding.factory import get_embedding_provider_instance
from labeler.models.transaction import INTENT_EMBEDDING_FIELDS
from labeler.schemas.analytics import (
    AnomalyRequest,
    CategorySearchRequest,
    CategorySpendingRequest,
    CategoryTransactionsRequest,
    DriftRequest,
    DuplicatePaymentRequest,
    ProfileRequest,
    RetrievalRequest,
    TopExpenseCategoriesRequest,
)
from labeler.schemas.transaction import TransactionCreate
from labeler.services.anomaly_service import AmountAnomalyService
from labeler.services.category_service import CategoryAnalyticsService
from labeler.services.customer_service import CustomerService
from labeler.services.drift_service import CounterpartyDriftService
from labeler.services.duplicate_service import DuplicatePaymentService
from labeler.services.labeling_service import LabelAssignmentService
from labeler.services.profile_service import CounterpartyProfileService
from labeler.services.query_classifier import classify_query
from labeler.services.retrieval_service import SimilarityRetrievalService
from labeler.vectorstore.factory import get_vectorstore_instance

logger = get_logger(__name__)


def _dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False)


def _error(code: str, message: str) -> str:
    return _dumps({"error": {"code": code, "message": message}})


def mcp_tool(func: Callable[..., Awaitable[str]]) -> Callable[..., Awaitable[str]]:
    """Translate every failure into the tool error payload."""

    @wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> str:
        try:
            return await func(*args, **kwargs)
        except LabelerException as exc:
            logger.warning("mcp_tool_failed", tool=func.__name__, code=exc.code)
            return _error(exc.code, exc.message)
        except pydantic.ValidationError as exc:
            logger.warning("mcp_tool_invalid_arguments", tool=func.__name__)
            return _error("ValidationError", "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
            ))
        except Exception:
            logger.exception("mcp_tool_error", tool=func.__name__)
            return _error("InternalError", "The tool failed unexpectedly")

    return wrapper


@asynccontextmanager
async def _session() -> AsyncIterator[AsyncSession]:
    async with get_session_maker()() as session:
        yield session


def _retrieval_service() -> SimilarityRetrievalService:
    return SimilarityRetrievalService(
        vectorstore=get_vectorstore_instance(),
        embedding_provider=get_embedding_provider_instance(),
    )


@mcp_tool
async def classify_query_tool(query: str = "", **kwargs: Any) -> str:
    intent = classify_query(query)
    logger.info("mcp_classify_query", intent=intent.value)
    return _dumps(
        {"query": query, "intent": intent.value, "embedding_field": INTENT_EMBEDDING_FIELDS[intent]}
    )


@mcp_tool
async def search_transactions_tool(**arguments: Any) -> str:
    """
    Similarity search via MCP

    Args:
        **arguments: RetrievalRequest fields

    Returns:
        JSON string with ranked results
    """
    request = RetrievalRequest.model_validate(arguments)
    response = await _retrieval_service().retrieve(request)
    return _dumps(response.model_dump(mode="json"))


@mcp_tool
async def label_transaction_tool(**arguments: Any) -> str:
    """Ingest one transaction with an automatically assigned label."""
    payload = TransactionCreate.model_validate(arguments)
    retrieval = _retrieval_service()

    async with _session() as session:
        service = LabelAssignmentService(
            session=session,
            retrieval=retrieval,
            embedding_provider=retrieval.embedding_provider,
        )
        result = await service.label_transaction(payload)

    logger.info("mcp_label_transaction", label=result.assigned_label)
    return _dumps(result.model_dump(mode="json"))


@mcp_tool
async def detect_counterparty_drift_tool(**arguments: Any) -> str:
    request = DriftRequest.model_validate(arguments)
    async with _session() as session:
        response = await CounterpartyDriftService(session=session).detect(request)
    return _dumps(response.model_dump(mode="json"))


@mcp_tool
async def detect_amount_anomalies_tool(**arguments: Any) -> str:
    request = AnomalyRequest.model_validate(arguments)
    async with _session() as session:
        response = await AmountAnomalyService(session=session).detect(request)
    return _dumps(response.model_dump(mode="json"))


@mcp_tool
async def get_counterparty_profiles_tool(**arguments: Any) -> str:
    request = ProfileRequest.model_validate(arguments)
    async with _session() as session:
        profiles = await CounterpartyProfileService(session=session).get_profiles(request)
    return _dumps({"profiles": [p.model_dump(mode="json") for p in profiles]})


@mcp_tool
async def search_categories_tool(**arguments: Any) -> str:
    request = CategorySearchRequest.model_validate(arguments)
    async with _session() as session:
        service = CategoryAnalyticsService(session=session, retrieval=_retrieval_service())
        response = await service.search_categories(request)
    return _dumps(response.model_dump(mode="json"))


@mcp_tool
async def get_category_transactions_tool(**arguments: Any) -> str:
    request = CategoryTransactionsRequest.model_validate(arguments)
    async with _session() as session:
        service = CategoryAnalyticsService(session=session, retrieval=_retrieval_service())
        response = await service.top_transactions(request)
    return _dumps(response.model_dump(mode="json"))


@mcp_tool
async def get_category_spending_tool(**arguments: Any) -> str:
    """
    Spending in the categories closest to the query

    Args:
        **arguments: CategorySpendingRequest fields

    Returns:
        JSON string with totals and the per-category breakdown
    """
    request = CategorySpendingRequest.model_validate(arguments)
    async with _session() as session:
        service = CategoryAnalyticsService(session=session, retrieval=_retrieval_service())
        response = await service.category_spending(request)
    return _dumps(response.model_dump(mode="json"))


@mcp_tool
async def get_top_expense_categories_tool(**arguments: Any) -> str:
    request = TopExpenseCategoriesRequest.model_validate(arguments)
    async with _session() as session:
        service = CategoryAnalyticsService(session=session, retrieval=_retrieval_service())
        response = await service.top_expense_categories(request)
    return _dumps(response.model_dump(mode="json"))


@mcp_tool
async def find_duplicate_payments_tool(**arguments: Any) -> str:
    request = DuplicatePaymentRequest.model_validate(arguments)
    async with _session() as session:
        response = await DuplicatePaymentService(session=session).find_duplicates(request)
    return _dumps(response.model_dump(mode="json"))


@mcp_tool
async def list_customers_tool(limit: int = 50, **kwargs: Any) -> str:
    if not isinstance(limit, int) or not 1 <= limit <= 1000:
        raise ValidationError("limit must be an integer between 1 and 1000")
    async with _session() as session:
        customers = await CustomerService(session=session).list_customers(limit)
    return _dumps({"customers": customers})


@mcp_tool
async def validate_customer_name_tool(customer_name: str | None = None, **kwargs: Any) -> str:
    async with _session() as session:
        result = await CustomerService(session=session).validate_customer_name(customer_name)
    return _dumps(result.model_dump(mode="json"))


TOOL_HANDLERS: dict[str, Callable[..., Awaitable[str]]] = {
    "classify_query": classify_query_tool,
    "search_transactions": search_transactions_tool,
    "label_transaction": label_transaction_tool,
    "detect_counterparty_drift": detect_counterparty_drift_tool,
    "detect_amount_anomalies": detect_amount_anomalies_tool,
    "get_counterparty_profiles": get_counterparty_profiles_tool,
    "search_categories": search_categories_tool,
    "get_category_transactions": get_category_transactions_tool,
    "get_category_spending": get_category_spending_tool,
    "get_top_expense_categories": get_top_expense_categories_tool,
    "find_duplicate_payments": find_duplicate_payments_tool,
    "list_customers": list_customers_tool,
    "validate_customer_name": validate_customer_name_tool,
}
