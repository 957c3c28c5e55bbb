"""
Ollama Embedding Provider

Talks to a local Ollama server's ``/api/embeddings`` endpoint.
"""

from __future__ import annotations

import time

import httpx

from labeler.core.config import settings
from labeler.core.exceptions import ProviderUnavailableError, RateLimitedError
from labeler.core.logging import get_logger, log_provider_call, metrics_counter

logger = get_logger(__name__)


class OllamaEmbeddingProvider:
    """Ollama-backed embedding provider."""

    provider_name = "ollama"

    def __init__(
        self,
        *,
        base_url: str | None = None,
        model: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = (base_url or settings.ollama_base_url).rstrip("/")
        self.model = model or settings.ollama_embedding_model
        self.dimension = settings.vectorstore_dimension
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url, timeout=settings.ollama_timeout
        )
        logger.info("ollama_embedding_initialized", base_url=self.base_url, model=self.model)

    async def embed_query(self, text: str) -> list[float]:
        return await self._embed(text, operation="embed_query")

    async def embed_passage(self, text: str) -> list[float]:
        return await self._embed(text, operation="embed_passage")

    async def _embed(self, text: str, *, operation: str) -> list[float]:
        payload = {"model": self.model, "prompt": text}
        start = time.perf_counter()

        try:
            resp = await self._client.post("/api/embeddings", json=payload)
        except httpx.HTTPError as exc:
            self._record_failure(operation, start, str(exc))
            raise ProviderUnavailableError("Embedding provider request failed") from exc

        if resp.status_code == 429:
            self._record_failure(operation, start, "rate limited")
            raise RateLimitedError("Embedding provider rate limit exceeded")

        if resp.status_code >= 400:
            self._record_failure(operation, start, f"{resp.status_code} {resp.text}")
            raise ProviderUnavailableError(
                f"Embedding provider returned status {resp.status_code}"
            )

        embedding = resp.json().get("embedding")
        if not isinstance(embedding, list) or not embedding:
            self._record_failure(operation, start, "missing embedding in response")
            raise ProviderUnavailableError("Embedding provider returned no vector")

        log_provider_call(
            operation=operation,
            provider=self.provider_name,
            latency_ms=(time.perf_counter() - start) * 1000,
            dimension=len(embedding),
        )
        return [float(v) for v in embedding]

    def _record_failure(self, operation: str, start: float, error: str) -> None:
        metrics_counter("embedding_provider_failure", provider=self.provider_name)
        log_provider_call(
            operation=operation,
            provider=self.provider_name,
            latency_ms=(time.perf_counter() - start) * 1000,
            error=error,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "OllamaEmbeddingProvider":
        await self._client.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        await self._client.__aexit__(exc_type, exc, tb)
