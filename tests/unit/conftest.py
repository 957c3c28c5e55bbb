"""
Shared fixtures: file-backed SQLite database and transaction seeding.

A file database (not ``:memory:``) is used so that services opening their
own sessions from the same factory see each other's commits.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from labeler.models import Base, Transaction, TransactionType

NOW = datetime(2026, 6, 30, 12, 0, tzinfo=timezone.utc)

TRANSACTION_DEFAULTS = {
    "description": "card payment",
    "amount": Decimal("10.00"),
    "transaction_type": TransactionType.DEBIT,
    "customer_name": "acme",
}


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
async def session_maker(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'labeler.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    await engine.dispose()


@pytest.fixture
async def async_db_session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def seed_transactions(session_maker):
    """
    Insert rows; ``days_ago`` is resolved against NOW, other keys are columns
    """

    async def _seed(*rows: dict) -> list[Transaction]:
        objs = []
        for row in rows:
            values = {**TRANSACTION_DEFAULTS, **row}
            days_ago = values.pop("days_ago", 1)
            values.setdefault("transaction_date", NOW - timedelta(days=days_ago))
            objs.append(Transaction(**values))

        async with session_maker() as session:
            session.add_all(objs)
            await session.commit()
        return objs

    return _seed


@pytest.fixture
def failing_session():
    """Session whose every round trip fails like an unreachable database."""
    error = OperationalError(
        "SELECT 1", {}, Exception("FATAL: password authentication failed for user postgres")
    )
    session = AsyncMock(spec=AsyncSession)
    session.execute.side_effect = error
    session.flush.side_effect = error
    session.commit.side_effect = error
    return session
