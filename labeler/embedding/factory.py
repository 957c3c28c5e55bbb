"""
Embedding Provider Factory
Creates appropriate embedding provider based on configuration
"""

from labeler.core.config import settings
from labeler.core.logging import get_logger
from labeler.embedding.mock import MockEmbeddingProvider
from labeler.embedding.protocol import EmbeddingProviderProtocol

logger = get_logger(__name__)


def get_embedding_provider() -> EmbeddingProviderProtocol:
    """
    Get embedding provider implementation based on configuration

    Returns:
        Embedding provider implementation

    Raises:
        ValueError: If embedding_provider is not supported
    """
    provider = settings.embedding_provider

    logger.info("embedding_factory", provider=provider)

    if provider == "mock":
        return MockEmbeddingProvider()

    if provider == "e5":
        # Imported lazily: sentence-transformers pulls in torch
        from labeler.embedding.e5 import E5EmbeddingProvider

        return E5EmbeddingProvider()

    if provider == "ollama":
        from labeler.embedding.ollama import OllamaEmbeddingProvider

        return OllamaEmbeddingProvider()

    raise ValueError(
        f"Unsupported embedding_provider: {provider}. Supported providers: e5, ollama, mock"
    )


# Singleton instance for dependency injection
_embedding_provider: EmbeddingProviderProtocol | None = None


def get_embedding_provider_instance() -> EmbeddingProviderProtocol:
    """
    Get singleton embedding provider instance

    Returns:
        Embedding provider instance
    """
    global _embedding_provider
    if _embedding_provider is None:
        _embedding_provider = get_embedding_provider()
    return _embedding_provider
