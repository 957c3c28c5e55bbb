"""
Mock Embedding Provider
Deterministic hashing embedder for development and testing without a model
"""

import hashlib
import math
import re

from labeler.core.config import settings
from labeler.core.logging import get_logger

logger = get_logger(__name__)

_TOKEN_RE = re.compile(r"\w+", re.UNICODE)


class MockEmbeddingProvider:
    """
    Bag-of-words feature hashing into an L2-normalized vector.

    Texts sharing tokens get a positive cosine similarity, so neighbor
    search behaves plausibly in local runs. Identical text always yields an
    identical vector.
    """

    provider_name = "mock"

    def __init__(self, dimension: int | None = None):
        self.dimension = dimension or settings.vectorstore_dimension
        logger.info("mock_embedding_initialized", dimension=self.dimension)

    async def embed_query(self, text: str) -> list[float]:
        return self.embed_sync(text)

    async def embed_passage(self, text: str) -> list[float]:
        return self.embed_sync(text)

    def embed_sync(self, text: str) -> list[float]:
        vector = [0.0] * self.dimension
        for token in _TOKEN_RE.findall(text.lower()):
            digest = hashlib.sha256(token.encode("utf-8")).digest()
            bucket = int.from_bytes(digest[:4], "big") % self.dimension
            sign = 1.0 if digest[4] % 2 == 0 else -1.0
            vector[bucket] += sign

        norm = math.sqrt(sum(v * v for v in vector))
        if norm == 0:
            # Empty text: fixed unit vector so the result is still a valid embedding
            vector[0] = 1.0
            return vector
        return [v / norm for v in vector]
