"""
Embedding Provider Abstraction
Interface and implementations for text-to-vector providers
"""

from labeler.embedding.protocol import EmbeddingProviderProtocol
from labeler.embedding.factory import get_embedding_provider, get_embedding_provider_instance

__all__ = [
    "EmbeddingProviderProtocol",
    "get_embedding_provider",
    "get_embedding_provider_instance",
]
