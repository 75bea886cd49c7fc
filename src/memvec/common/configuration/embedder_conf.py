"""Embedder configuration."""

import os

from pydantic import BaseModel, Field, SecretStr, field_validator


def _expand_env(value: str) -> str:
    """Expand $VAR and ${VAR} references from the environment."""
    return os.path.expandvars(value)


class OpenAIEmbedderConf(BaseModel):
    """Configuration for an OpenAI embedder."""

    model: str = Field(
        default="text-embedding-3-small",
        description="OpenAI embedding model name",
    )
    api_key: SecretStr = Field(
        ...,
        description="OpenAI API key; $VAR references are expanded",
    )
    base_url: str | None = Field(
        default=None,
        description="Base URL of an OpenAI-compatible API",
    )
    dimensions: int | None = Field(
        default=None,
        description="Number of dimensions to request (defaults to the collection's)",
        gt=0,
    )
    max_input_length: int | None = Field(
        default=None,
        description="Maximum number of characters per input",
        gt=0,
    )

    @field_validator("api_key", mode="before")
    @classmethod
    def expand_api_key(cls, v: object) -> object:
        if isinstance(v, str):
            return _expand_env(v)
        return v


class SentenceTransformerEmbedderConf(BaseModel):
    """Configuration for a local sentence transformer embedder."""

    model: str = Field(
        ...,
        description="Sentence transformer model name or path",
    )
    max_input_length: int | None = Field(
        default=None,
        description="Maximum number of characters per input",
        gt=0,
    )


class EmbedderConf(BaseModel):
    """Embedder selection; exactly one provider must be configured."""

    openai: OpenAIEmbedderConf | None = None
    sentence_transformer: SentenceTransformerEmbedderConf | None = None

    @property
    def provider(self) -> str:
        configured = [
            name
            for name, conf in (
                ("openai", self.openai),
                ("sentence_transformer", self.sentence_transformer),
            )
            if conf is not None
        ]
        if len(configured) != 1:
            raise ValueError(
                "Exactly one embedder provider must be configured, "
                f"got {configured or 'none'}"
            )
        return configured[0]
