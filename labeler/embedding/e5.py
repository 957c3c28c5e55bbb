"""
E5 Semantic Embedding Provider

Local multilingual E5 model via sentence-transformers. Encoding is CPU/GPU
bound, so every call runs in the default threadpool executor behind a
semaphore to keep the event loop responsive.
"""

from __future__ import annotations

import asyncio
import time
from typing import Optional

from sentence_transformers import SentenceTransformer

from labeler.core.config import settings
from labeler.core.exceptions import ProviderUnavailableError
from labeler.core.logging import get_logger, log_provider_call, metrics_counter

logger = get_logger(__name__)


class E5EmbeddingProvider:
    """
    Async-safe embedding provider using a local E5 model.

    - Model loaded once (warmup at startup, lazy fallback otherwise)
    - ``SentenceTransformer.encode()`` runs in a threadpool executor
    - Semaphore limits concurrent encodes
    - "query:" prefix for searches, "passage:" prefix for stored rows
    """

    provider_name = "e5"

    def __init__(
        self,
        *,
        model_name: str | None = None,
        device: str | None = None,
        max_concurrency: int | None = None,
    ) -> None:
        self.model_name = model_name or settings.e5_model_name
        self.device = device or settings.embedding_device
        self.max_concurrency = max_concurrency or settings.embedding_max_concurrency
        self.dimension = settings.vectorstore_dimension
        self.model: Optional[SentenceTransformer] = None
        self._initialized = False
        self._load_lock = asyncio.Lock()
        self._semaphore: Optional[asyncio.Semaphore] = None

        logger.info(
            "e5_provider_created",
            model_name=self.model_name,
            device=self.device,
            max_concurrency=self.max_concurrency,
        )

    async def warmup(self) -> None:
        """
        Preload the model so the first request does not pay for the download.

        Raises:
            ProviderUnavailableError: If model loading fails
        """
        if self._initialized:
            return

        async with self._load_lock:
            if self._initialized:
                return

            t0 = time.perf_counter()
            logger.info("e5_provider_loading_model", model_name=self.model_name)
            loop = asyncio.get_running_loop()
            try:
                self.model = await asyncio.wait_for(
                    loop.run_in_executor(
                        None,
                        lambda: SentenceTransformer(self.model_name, device=self.device),
                    ),
                    timeout=300,  # model download on first start
                )
            except asyncio.TimeoutError as exc:
                logger.error("e5_provider_load_timeout", model_name=self.model_name)
                raise ProviderUnavailableError(
                    f"Timed out loading embedding model {self.model_name}"
                ) from exc
            except Exception as exc:
                logger.error(
                    "e5_provider_load_failed", model_name=self.model_name, error=str(exc)
                )
                raise ProviderUnavailableError(
                    f"Failed to load embedding model {self.model_name}"
                ) from exc

            self._semaphore = asyncio.Semaphore(self.max_concurrency)
            self._initialized = True
            logger.info(
                "e5_provider_warmed",
                model_name=self.model_name,
                elapsed_seconds=f"{time.perf_counter() - t0:.2f}",
            )

    async def embed_query(self, text: str) -> list[float]:
        return await self._embed(f"query: {text}", operation="embed_query")

    async def embed_passage(self, text: str) -> list[float]:
        return await self._embed(f"passage: {text}", operation="embed_passage")

    # Private helper methods ------------------------------------------------

    async def _embed(self, prefixed_text: str, *, operation: str) -> list[float]:
        if not self._initialized:
            logger.warning("e5_provider_lazy_initialization")
            await self.warmup()

        start = time.perf_counter()
        try:
            embedding = await self._encode_async(prefixed_text)
        except Exception as exc:
            metrics_counter("embedding_provider_failure", provider=self.provider_name)
            log_provider_call(
                operation=operation,
                provider=self.provider_name,
                latency_ms=(time.perf_counter() - start) * 1000,
                error=str(exc),
            )
            raise ProviderUnavailableError("Embedding model failed to encode text") from exc

        log_provider_call(
            operation=operation,
            provider=self.provider_name,
            latency_ms=(time.perf_counter() - start) * 1000,
            dimension=len(embedding),
        )
        return embedding

    async def _encode_async(self, text: str) -> list[float]:
        if self.model is None or self._semaphore is None:
            raise RuntimeError("Model not initialized. Call warmup() first.")

        loop = asyncio.get_running_loop()
        model = self.model

        async with self._semaphore:
            embedding_array = await loop.run_in_executor(
                None,
                lambda: model.encode(text, normalize_embeddings=True),
            )

        embedding_list = embedding_array.tolist()
        if not isinstance(embedding_list, list) or len(embedding_list) == 0:
            raise ValueError("Invalid embedding output")

        return embedding_list
