"""
Store failures surface as StoreError from every service that touches the database
"""

import asyncio
import json
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from labeler.core.exceptions import StoreError
from labeler.core.logging import get_metric
from labeler.embedding.mock import MockEmbeddingProvider
from labeler.mcp.tools import detect_counterparty_drift_tool
from labeler.repositories.transaction_repository import TransactionRepository
from labeler.schemas.analytics import AnomalyRequest, DriftRequest, ProfileRequest
from labeler.schemas.transaction import TransactionCreate
from labeler.services.anomaly_service import AmountAnomalyService
from labeler.services.drift_service import CounterpartyDriftService
from labeler.services.labeling_service import LabelAssignmentService
from labeler.services.profile_service import CounterpartyProfileService
from labeler.services.retrieval_service import SimilarityRetrievalService


def _query_failures() -> int:
    return get_metric("store_failure", table="transactions", operation="query", reason="error")


@pytest.mark.asyncio
async def test_drift_wraps_driver_error(failing_session, now) -> None:
    before = _query_failures()

    with pytest.raises(StoreError) as exc_info:
        await CounterpartyDriftService(session=failing_session).detect(DriftRequest(), now=now)

    assert exc_info.value.code == "StoreError"
    assert "password" not in exc_info.value.message
    assert _query_failures() == before + 1


@pytest.mark.asyncio
async def test_anomalies_wrap_driver_error(failing_session, now) -> None:
    with pytest.raises(StoreError) as exc_info:
        await AmountAnomalyService(session=failing_session).detect(AnomalyRequest(), now=now)

    assert "password" not in exc_info.value.message


@pytest.mark.asyncio
async def test_profiles_wrap_driver_error(failing_session, now) -> None:
    with pytest.raises(StoreError):
        await CounterpartyProfileService(session=failing_session).get_profiles(
            ProfileRequest(months=3), now=now
        )


@pytest.mark.asyncio
async def test_failed_insert_rolls_back_and_raises_store_error(failing_session) -> None:
    vectorstore = AsyncMock()
    vectorstore.search.return_value = []
    provider = MockEmbeddingProvider()
    service = LabelAssignmentService(
        session=failing_session,
        retrieval=SimilarityRetrievalService(vectorstore=vectorstore, embedding_provider=provider),
        embedding_provider=provider,
    )
    before = get_metric("store_failure", table="transactions", operation="insert", reason="error")

    with pytest.raises(StoreError) as exc_info:
        await service.label_transaction(
            TransactionCreate(
                description="Coffee shop",
                amount=Decimal("4.50"),
                transaction_date=datetime(2026, 6, 1, tzinfo=timezone.utc),
            )
        )

    assert "password" not in exc_info.value.message
    failing_session.rollback.assert_awaited_once()
    failing_session.commit.assert_not_awaited()
    assert (
        get_metric("store_failure", table="transactions", operation="insert", reason="error")
        == before + 1
    )


@pytest.mark.asyncio
async def test_slow_store_call_times_out() -> None:
    async def hang(*args, **kwargs):
        await asyncio.sleep(10)

    session = AsyncMock(spec=AsyncSession)
    session.execute.side_effect = hang
    repository = TransactionRepository(session, timeout=0.01)
    before = get_metric("store_failure", table="transactions", operation="query", reason="timeout")

    with pytest.raises(StoreError, match="timed out"):
        await repository.customer_names()

    assert (
        get_metric("store_failure", table="transactions", operation="query", reason="timeout")
        == before + 1
    )


@pytest.mark.asyncio
async def test_mcp_tool_reports_store_error_payload(tmp_path, monkeypatch) -> None:
    # The parent directory does not exist, so SQLite cannot open the file
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'labeler.db'}")
    unreachable = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    monkeypatch.setattr("labeler.mcp.tools.get_session_maker", lambda: unreachable)

    try:
        payload = json.loads(await detect_counterparty_drift_tool(current_days=7))
    finally:
        await engine.dispose()

    assert payload["error"]["code"] == "StoreError"
    assert "unable to open" not in payload["error"]["message"]
