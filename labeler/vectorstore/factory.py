"""
VectorStore Factory
Creates appropriate VectorStore implementation based on configuration
"""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from labeler.core.config import settings
from labeler.core.logging import get_logger
from labeler.vectorstore.memory import InMemoryVectorStore
from labeler.vectorstore.pgvector import PGVectorStore
from labeler.vectorstore.protocol import VectorStoreProtocol

logger = get_logger(__name__)


def get_vectorstore(
    session_maker: async_sessionmaker[AsyncSession] | None = None,
) -> VectorStoreProtocol:
    """
    Get VectorStore implementation based on configuration

    Args:
        session_maker: Optional session factory (defaults to the app engine)

    Returns:
        VectorStore implementation

    Raises:
        ValueError: If vectorstore_type is not supported
    """
    vectorstore_type = settings.vectorstore_type

    logger.info("vectorstore_factory", vectorstore_type=vectorstore_type)

    if vectorstore_type == "memory":
        return InMemoryVectorStore(session_maker)

    if vectorstore_type == "pgvector":
        return PGVectorStore(session_maker)

    raise ValueError(
        f"Unsupported vectorstore_type: {vectorstore_type}. Supported types: pgvector, memory"
    )


# Singleton instance for dependency injection
_vectorstore: VectorStoreProtocol | None = None


def get_vectorstore_instance() -> VectorStoreProtocol:
    """
    Get singleton VectorStore instance

    Returns:
        VectorStore bound to the application session factory
    """
    global _vectorstore
    if _vectorstore is None:
        _vectorstore = get_vectorstore()
    return _vectorstore
