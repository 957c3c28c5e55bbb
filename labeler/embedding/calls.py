"""
Time-bounded provider calls.

Every provider call made by a service goes through here so timeouts and
failures surface as ``EmbeddingUnavailableError`` with the raw provider
text kept in the logs only. Rate limiting is passed through unchanged so
callers can back off.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Mapping

from labeler.core.config import settings
from labeler.core.exceptions import (
    EmbeddingUnavailableError,
    RateLimitedError,
    ValidationError,
)
from labeler.core.logging import get_logger, metrics_counter
from labeler.core.sqlalchemy_types import validate_embedding
from labeler.embedding.protocol import EmbeddingProviderProtocol

logger = get_logger(__name__)


async def _bounded(
    call: Awaitable[list[float]],
    *,
    operation: str,
    timeout: float,
    dimension: int,
) -> list[float]:
    try:
        vector = await asyncio.wait_for(call, timeout=timeout)
    except asyncio.TimeoutError as exc:
        metrics_counter("embedding_unavailable", reason="timeout", operation=operation)
        logger.warning("embedding_call_timeout", operation=operation, timeout_seconds=timeout)
        raise EmbeddingUnavailableError("Embedding provider timed out") from exc
    except RateLimitedError:
        metrics_counter("embedding_unavailable", reason="rate_limited", operation=operation)
        raise
    except Exception as exc:
        metrics_counter("embedding_unavailable", reason="error", operation=operation)
        logger.warning(
            "embedding_call_failed",
            operation=operation,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        raise EmbeddingUnavailableError("Embedding provider unavailable") from exc

    try:
        return validate_embedding(vector, dimension)
    except ValidationError as exc:
        logger.error("embedding_invalid_vector", operation=operation, error=exc.message)
        raise EmbeddingUnavailableError("Embedding provider returned an invalid vector") from exc


async def embed_query_bounded(
    provider: EmbeddingProviderProtocol,
    text: str,
    *,
    timeout: float | None = None,
    dimension: int | None = None,
) -> list[float]:
    return await _bounded(
        provider.embed_query(text),
        operation="embed_query",
        timeout=timeout or settings.embedding_timeout_seconds,
        dimension=dimension or settings.vectorstore_dimension,
    )


async def embed_passages_bounded(
    provider: EmbeddingProviderProtocol,
    texts: Mapping[str, str],
    *,
    timeout: float | None = None,
    dimension: int | None = None,
) -> dict[str, list[float]]:
    """Embed every text in ``texts``; any failure aborts the whole set."""
    vectors: dict[str, list[float]] = {}
    for key, text in texts.items():
        vectors[key] = await _bounded(
            provider.embed_passage(text),
            operation="embed_passage",
            timeout=timeout or settings.embedding_timeout_seconds,
            dimension=dimension or settings.vectorstore_dimension,
        )
    return vectors
