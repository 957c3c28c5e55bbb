"""
Common FastAPI dependencies
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from labeler.core.db import get_session
from labeler.embedding.factory import get_embedding_provider_instance
from labeler.embedding.protocol import EmbeddingProviderProtocol
from labeler.services.category_service import CategoryAnalyticsService
from labeler.services.retrieval_service import SimilarityRetrievalService
from labeler.vectorstore.factory import get_vectorstore_instance
from labeler.vectorstore.protocol import VectorStoreProtocol


def get_embedding_provider() -> EmbeddingProviderProtocol:
    return get_embedding_provider_instance()


def get_vectorstore() -> VectorStoreProtocol:
    return get_vectorstore_instance()


def get_retrieval_service(
    vectorstore: VectorStoreProtocol = Depends(get_vectorstore),
    embedding_provider: EmbeddingProviderProtocol = Depends(get_embedding_provider),
) -> SimilarityRetrievalService:
    """
    Retrieval service wired to the configured store and provider

    Overridden in tests via ``app.dependency_overrides``.
    """
    return SimilarityRetrievalService(
        vectorstore=vectorstore,
        embedding_provider=embedding_provider,
    )


def get_category_service(
    session: AsyncSession = Depends(get_session),
    retrieval: SimilarityRetrievalService = Depends(get_retrieval_service),
) -> CategoryAnalyticsService:
    return CategoryAnalyticsService(session=session, retrieval=retrieval)
