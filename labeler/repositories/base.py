"""
Generic async repository over a single SQLAlchemy model.

Methods flush but never commit; the calling service owns the transaction.
Every database round trip is time-bounded, and driver failures surface as
``StoreError`` with the raw driver text kept in the logs only.
"""

import asyncio
from typing import Any, Awaitable, Generic, Type, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.engine import Result
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.expression import Executable

from labeler.core.config import settings
from labeler.core.exceptions import RecordNotFoundError, StoreError
from labeler.core.logging import get_logger, metrics_counter
from labeler.models.base import Base

logger = get_logger(__name__)

ModelType = TypeVar("ModelType", bound=Base)
T = TypeVar("T")


class BaseRepository(Generic[ModelType]):
    def __init__(
        self,
        model: Type[ModelType],
        session: AsyncSession,
        timeout: float | None = None,
    ):
        self.model = model
        self.session = session
        self.timeout = timeout or settings.store_timeout_seconds

    async def _run(self, operation: str, call: Awaitable[T]) -> T:
        """
        Await a session call under the store timeout

        Raises:
            StoreError: Timeout or driver failure
        """
        table = self.model.__tablename__
        try:
            return await asyncio.wait_for(call, timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            metrics_counter("store_failure", table=table, operation=operation, reason="timeout")
            logger.error(
                "store_call_timeout", table=table, operation=operation, timeout_seconds=self.timeout
            )
            raise StoreError(f"Store {operation} on {table} timed out") from exc
        except (SQLAlchemyError, OSError) as exc:
            metrics_counter("store_failure", table=table, operation=operation, reason="error")
            logger.error(
                "store_call_failed",
                table=table,
                operation=operation,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise StoreError(f"Store {operation} on {table} failed") from exc

    async def _execute(self, stmt: Executable, operation: str = "query") -> Result[Any]:
        return await self._run(operation, self.session.execute(stmt))

    async def create(self, obj: ModelType) -> ModelType:
        """
        Insert ``obj`` and load server-generated columns

        Returns:
            The same instance, refreshed
        """
        self.session.add(obj)
        await self._run("insert", self.session.flush())
        await self._run("refresh", self.session.refresh(obj))
        return obj

    async def get_by_id(self, id: UUID) -> ModelType | None:
        result = await self._execute(select(self.model).where(self.model.id == id), "get")
        return result.scalar_one_or_none()

    async def get_by_id_or_raise(self, id: UUID) -> ModelType:
        """
        Raises:
            RecordNotFoundError: No row with this id
        """
        obj = await self.get_by_id(id)
        if obj is None:
            raise RecordNotFoundError(f"{self.model.__name__} {id} not found")
        return obj

    async def update(self, obj: ModelType) -> ModelType:
        """Flush attribute changes on ``obj`` and reload ``onupdate`` columns."""
        await self._run("update", self.session.flush())
        await self._run("refresh", self.session.refresh(obj))
        return obj

    async def commit(self) -> None:
        await self._run("commit", self.session.commit())
