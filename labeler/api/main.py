"""
FastAPI Application Factory

Creates and configures FastAPI application
"""

import asyncio
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from labeler.core.config import settings
from labeler.core.db import close_db, init_db
from labeler.core.logging import configure_logging, get_logger
from labeler.embedding.factory import get_embedding_provider_instance
from labeler.routers import analytics, customers, transactions
from labeler.api.error_handlers import register_exception_handlers
from labeler.api.response_middleware import SuccessEnvelopeMiddleware

logger = get_logger(__name__)


async def _warmup_embedding_provider() -> None:
    """Preload the local model in the background; lazy init covers a failure."""
    provider = get_embedding_provider_instance()
    warmup = getattr(provider, "warmup", None)
    if warmup is None:
        return

    t0 = time.perf_counter()
    try:
        await warmup()
    except Exception as exc:
        logger.error(
            "embedding_provider_background_warmup_failed",
            provider=provider.provider_name,
            error=str(exc),
            elapsed_seconds=f"{time.perf_counter() - t0:.2f}",
        )
        return

    logger.info(
        "embedding_provider_background_warmup_complete",
        provider=provider.provider_name,
        elapsed_seconds=f"{time.perf_counter() - t0:.2f}",
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup: logging, dev-only table creation, background model warmup.
    Shutdown: close database connections.
    """
    configure_logging()
    logger.info("application_startup", environment=settings.environment)

    if settings.environment == "development" and settings.vectorstore_type == "memory":
        # SQLite/dev setups without Alembic
        logger.info("initializing_database_tables")
        await init_db()

    warmup_task = asyncio.create_task(_warmup_embedding_provider())

    yield

    logger.info("application_shutdown")
    if not warmup_task.done():
        warmup_task.cancel()
    await close_db()


def create_app() -> FastAPI:
    """
    Create FastAPI application

    Returns:
        Configured FastAPI app instance
    """
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Transaction categorization and analytics",
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    app.add_middleware(SuccessEnvelopeMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_hosts,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(transactions.router, prefix=settings.api_v1_prefix)
    app.include_router(analytics.router, prefix=settings.api_v1_prefix)
    app.include_router(customers.router, prefix=settings.api_v1_prefix)

    register_exception_handlers(app)

    @app.get("/health", tags=["health"])
    async def health_check() -> dict:
        return {
            "status": "ok",
            "app": settings.app_name,
            "version": settings.app_version,
            "environment": settings.environment,
            "embedding_provider": settings.embedding_provider,
            "vectorstore": settings.vectorstore_type,
        }

    logger.info("fastapi_app_created", routes=len(app.routes))

    return app


# Application instance
app = create_app()
