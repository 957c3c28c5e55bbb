"""
Embedding Provider Protocol (Interface)
Defines contract for all text-to-vector providers
"""

from typing import Protocol


class EmbeddingProviderProtocol(Protocol):
    """
    Protocol for embedding provider implementations

    Queries and stored passages are embedded separately so that asymmetric
    models (E5 "query:"/"passage:" prefixes) stay consistent between
    ingestion and search.
    """

    provider_name: str
    dimension: int

    async def embed_query(self, text: str) -> list[float]:
        """
        Embed a search query

        Args:
            text: Query text

        Returns:
            Embedding vector of ``dimension`` floats

        Raises:
            ProviderUnavailableError: If the provider fails or is unreachable
            RateLimitedError: If the provider rejects the call for rate limiting
        """
        ...

    async def embed_passage(self, text: str) -> list[float]:
        """
        Embed a stored transaction text

        Args:
            text: Passage text

        Returns:
            Embedding vector of ``dimension`` floats

        Raises:
            ProviderUnavailableError: If the provider fails or is unreachable
            RateLimitedError: If the provider rejects the call for rate limiting
        """
        ...
