"""
Abstract base class for an embedder.

Defines the interface for generating embeddings
for ingested documents and search queries.
"""

from abc import ABC, abstractmethod

from memvec.common.data_types import SimilarityMetric


class Embedder(ABC):
    """
    Abstract base class for an embedder.
    """

    @abstractmethod
    async def ingest_embed(
        self,
        inputs: list[str],
        max_attempts: int = 1,
    ) -> list[list[float]]:
        """
        Generate embeddings for the provided inputs.

        Args:
            inputs (list[str]):
                A list of document texts to embed.
            max_attempts (int):
                The maximum number of attempts to make before giving up
                (default: 1).

        Returns:
            list[list[float]]:
                A list of embedding vectors corresponding to each input,
                in the same order.

        Raises:
            ExternalServiceAPIError:
                Errors from the underlying embedding API.
        """
        raise NotImplementedError

    @abstractmethod
    async def search_embed(
        self,
        queries: list[str],
        max_attempts: int = 1,
    ) -> list[list[float]]:
        """
        Generate embeddings for the provided queries.

        Args:
            queries (list[str]):
                A list of query texts to embed.
            max_attempts (int):
                The maximum number of attempts to make before giving up
                (default: 1).

        Returns:
            list[list[float]]:
                A list of embedding vectors corresponding to each query,
                in the same order.

        Raises:
            ExternalServiceAPIError:
                Errors from the underlying embedding API.
        """
        raise NotImplementedError

    @property
    @abstractmethod
    def model_id(self) -> str:
        """Identifier of the embedding model."""
        raise NotImplementedError

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Number of dimensions of the produced embeddings."""
        raise NotImplementedError

    @property
    @abstractmethod
    def similarity_metric(self) -> SimilarityMetric:
        """Similarity metric the embeddings are meant to be compared with."""
        raise NotImplementedError
