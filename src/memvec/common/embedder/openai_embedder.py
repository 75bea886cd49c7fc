"""OpenAI Embeddings API-based embedder implementation."""

import logging
import time
from uuid import uuid4

import openai
from pydantic import BaseModel, Field, InstanceOf

from memvec.common.data_types import ExternalServiceAPIError, SimilarityMetric

from .embedder import Embedder

logger = logging.getLogger(__name__)


class OpenAIEmbedderParams(BaseModel):
    """
    Parameters for OpenAIEmbedder.

    Attributes:
        client (openai.AsyncOpenAI):
            AsyncOpenAI client to use for making API calls.
        model (str):
            Name of the OpenAI embedding model to use
            (e.g. 'text-embedding-3-small').
        dimensions (int):
            Number of dimensions to request from the model.
        max_input_length (int | None):
            Maximum number of characters per input;
            longer inputs are truncated
            (default: None).

    """

    client: InstanceOf[openai.AsyncOpenAI] = Field(
        ...,
        description="AsyncOpenAI client to use for making API calls",
    )
    model: str = Field(
        ...,
        description="Name of the OpenAI embedding model to use (e.g. 'text-embedding-3-small')",
    )
    dimensions: int = Field(
        ...,
        description="Number of dimensions to request from the model",
        gt=0,
    )
    max_input_length: int | None = Field(
        None,
        description="Maximum number of characters per input",
        gt=0,
    )


class OpenAIEmbedder(Embedder):
    """Embedder that uses the OpenAI Embeddings API."""

    def __init__(self, params: OpenAIEmbedderParams) -> None:
        """
        Initialize the OpenAI embedder.

        Args:
            params (OpenAIEmbedderParams):
                Parameters for the OpenAIEmbedder.

        """
        super().__init__()

        self._client = params.client
        self._model = params.model
        self._dimensions = params.dimensions
        self._max_input_length = params.max_input_length

    async def ingest_embed(
        self,
        inputs: list[str],
        max_attempts: int = 1,
    ) -> list[list[float]]:
        """Embed input documents using the OpenAI Embeddings API."""
        return await self._embed(inputs, max_attempts)

    async def search_embed(
        self,
        queries: list[str],
        max_attempts: int = 1,
    ) -> list[list[float]]:
        """Embed search queries using the OpenAI Embeddings API."""
        return await self._embed(queries, max_attempts)

    async def _embed(
        self,
        inputs: list[str],
        max_attempts: int = 1,
    ) -> list[list[float]]:
        if not inputs:
            return []
        if max_attempts <= 0:
            raise ValueError("max_attempts must be a positive integer")

        if self._max_input_length is not None:
            inputs = [text[: self._max_input_length] for text in inputs]
        # The API rejects empty strings.
        inputs = [text or " " for text in inputs]

        embed_call_uuid = uuid4()

        start_time = time.monotonic()

        logger.debug(
            "[call uuid: %s] "
            "Attempting to create embeddings using %s OpenAI model",
            embed_call_uuid,
            self._model,
        )

        try:
            response = await self._client.with_options(
                max_retries=max_attempts - 1,
            ).embeddings.create(
                model=self._model,
                input=inputs,
                dimensions=self._dimensions,
            )
        except openai.OpenAIError as e:
            error_message = (
                f"[call uuid: {embed_call_uuid}] "
                "Giving up creating embeddings "
                f"due to {type(e).__name__}"
            )
            logger.exception(error_message)
            raise ExternalServiceAPIError(error_message) from e

        end_time = time.monotonic()
        logger.debug(
            "[call uuid: %s] Embeddings created in %.3f seconds",
            embed_call_uuid,
            end_time - start_time,
        )

        return [
            list(datum.embedding)
            for datum in sorted(response.data, key=lambda datum: datum.index)
        ]

    @property
    def model_id(self) -> str:
        """Return the underlying model identifier."""
        return self._model

    @property
    def dimensions(self) -> int:
        """Return the embedding dimensionality."""
        return self._dimensions

    @property
    def similarity_metric(self) -> SimilarityMetric:
        """Return the similarity metric used."""
        return SimilarityMetric.COSINE
