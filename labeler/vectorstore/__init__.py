"""
VectorStore Abstraction
Interface and implementations for vector similarity search
"""

from labeler.vectorstore.protocol import VectorStoreProtocol, VectorSearchResult
from labeler.vectorstore.factory import get_vectorstore, get_vectorstore_instance

__all__ = [
    "VectorStoreProtocol",
    "VectorSearchResult",
    "get_vectorstore",
    "get_vectorstore_instance",
]
