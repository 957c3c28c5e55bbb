"""
Async SQLAlchemy engine and session factory

The engine is built lazily on first use, so importing this module never
opens a connection pool.
"""

from typing import Any, AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from labeler.core.config import settings
from labeler.models.base import Base

_engine: AsyncEngine | None = None
_session_maker: async_sessionmaker[AsyncSession] | None = None


def _engine_options(url: str) -> dict[str, Any]:
    options: dict[str, Any] = {"echo": settings.database_echo}
    if url.startswith("sqlite"):
        # SQLite pools don't take size limits
        return options
    options.update(
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        pool_pre_ping=True,
    )
    return options


def get_async_engine() -> AsyncEngine:
    global _engine

    if _engine is None:
        url = settings.async_database_url
        _engine = create_async_engine(url, **_engine_options(url))
    return _engine


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Shared session factory; ``expire_on_commit`` is off so results outlive commits."""
    global _session_maker

    if _session_maker is None:
        _session_maker = async_sessionmaker(
            bind=get_async_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _session_maker


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency yielding one session per request

    Commits when the handler returns, rolls back when it raises.
    """
    async with get_session_maker()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create tables from the models. Development only; Alembic owns real schemas."""
    async with get_async_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    global _engine, _session_maker

    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_maker = None
