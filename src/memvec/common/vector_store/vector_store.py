"""
Abstract base class for a vector store.

Defines the interface for initializing a collection,
adding documents, and searching them by similarity.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence

from memvec.common.embedder import Embedder
from memvec.common.filter import FilterExpr

from .data_types import Document


class VectorStore(ABC):
    """Abstract base class for a vector store bound to one collection."""

    @abstractmethod
    async def initialize_collection(self) -> None:
        """
        Create the collection if it does not exist.

        Safe to call on every startup.

        Raises:
            SchemaError:
                If the collection cannot be created
                or exists with an incompatible configuration.

        """
        raise NotImplementedError

    @abstractmethod
    async def add_documents(
        self,
        docs: Sequence[Document],
        *,
        embedder: Embedder | None = None,
    ) -> list[int]:
        """
        Embed and store documents atomically.

        Args:
            docs (Sequence[Document]):
                Documents to add.
            embedder (Embedder | None):
                Embedder to use instead of the store's default
                (default: None).

        Returns:
            list[int]:
                Storage-assigned IDs of the documents, in input order.

        """
        raise NotImplementedError

    @abstractmethod
    async def similarity_search(
        self,
        query: str,
        limit: int,
        *,
        property_filter: FilterExpr | None = None,
        embedder: Embedder | None = None,
    ) -> list[Document]:
        """
        Search for documents similar to the query.

        Args:
            query (str):
                Query text to embed and compare against.
            limit (int):
                Maximum number of documents to return.
            property_filter (FilterExpr | None):
                Filter expression tree over document metadata.
                If None, no filtering is applied
                (default: None).
            embedder (Embedder | None):
                Embedder to use instead of the store's default
                (default: None).

        Returns:
            list[Document]:
                Matching documents ordered by ascending distance.

        """
        raise NotImplementedError

    @abstractmethod
    async def startup(self) -> None:
        """Start up."""
        raise NotImplementedError

    @abstractmethod
    async def shutdown(self) -> None:
        """Shut down."""
        raise NotImplementedError
