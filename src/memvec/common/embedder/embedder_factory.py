"""
Factory for Embedder instances.
"""

import logging

from memvec.common.configuration.embedder_conf import EmbedderConf
from memvec.common.errors import ConfigurationError

from .embedder import Embedder

logger = logging.getLogger(__name__)


def create_embedder(conf: EmbedderConf, vector_dimensions: int) -> Embedder:
    """
    Build the embedder selected by the configuration.

    Provider libraries are imported lazily
    so that only the configured one needs to be installed.
    """
    match conf.provider:
        case "openai":
            import openai

            from .openai_embedder import OpenAIEmbedder, OpenAIEmbedderParams

            openai_conf = conf.openai
            if openai_conf is None:
                raise ConfigurationError("OpenAI embedder selected but not configured")
            logger.info("Building OpenAI embedder with model %s", openai_conf.model)
            return OpenAIEmbedder(
                OpenAIEmbedderParams(
                    client=openai.AsyncOpenAI(
                        api_key=openai_conf.api_key.get_secret_value(),
                        base_url=openai_conf.base_url,
                    ),
                    model=openai_conf.model,
                    dimensions=openai_conf.dimensions or vector_dimensions,
                    max_input_length=openai_conf.max_input_length,
                )
            )

        case "sentence_transformer":
            from sentence_transformers import SentenceTransformer

            from .sentence_transformer_embedder import (
                SentenceTransformerEmbedder,
                SentenceTransformerEmbedderParams,
            )

            st_conf = conf.sentence_transformer
            if st_conf is None:
                raise ConfigurationError(
                    "Sentence transformer embedder selected but not configured"
                )
            logger.info(
                "Building sentence transformer embedder with model %s",
                st_conf.model,
            )
            return SentenceTransformerEmbedder(
                SentenceTransformerEmbedderParams(
                    model_name=st_conf.model,
                    sentence_transformer=SentenceTransformer(st_conf.model),
                    max_input_length=st_conf.max_input_length,
                )
            )

        case _:
            raise ValueError(f"Unknown Embedder provider: {conf.provider}")
