"""
VectorStore Protocol (Interface)
Defines contract for all VectorStore implementations
"""

from typing import Mapping, NamedTuple, Protocol, Sequence
from uuid import UUID

from labeler.schemas.transaction import TransactionSnapshot

# Filters every implementation must honour (exact match)
SUPPORTED_FILTERS = ("customer_name", "transaction_type")


class VectorSearchResult(NamedTuple):
    """
    Single vector search hit

    Attributes:
        transaction: Snapshot of the matched row
        distance: Cosine distance to the query (0 = identical direction)
    """

    transaction: TransactionSnapshot
    distance: float


class VectorStoreProtocol(Protocol):
    """
    Protocol for VectorStore implementations

    The store holds one row per transaction with several named embedding
    columns; callers choose the column per query.
    """

    async def search(
        self,
        field: str,
        query_embedding: Sequence[float],
        top_k: int,
        filters: Mapping[str, str] | None = None,
    ) -> list[VectorSearchResult]:
        """
        Ranked nearest-neighbor scan

        Args:
            field: Embedding column name (one of EMBEDDING_FIELDS)
            query_embedding: Query vector
            top_k: Maximum number of hits
            filters: Optional exact-match filters (see SUPPORTED_FILTERS)

        Returns:
            Hits ordered by ascending cosine distance, ties by transaction id.
            Rows whose ``field`` is NULL are never returned.

        Raises:
            RetrievalUnavailableError: If the store is unreachable or the query fails
        """
        ...

    async def write_embeddings(self, id: UUID, embeddings: Mapping[str, Sequence[float]]) -> None:
        """
        Overwrite the named embedding columns of one transaction

        Raises:
            RecordNotFoundError: If the transaction does not exist
            StoreError: If the write fails
        """
        ...
