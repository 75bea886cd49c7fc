"""Configuration models and helpers for memvec."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, TypeGuard, cast

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from memvec.common.configuration.embedder_conf import (
    EmbedderConf,
    OpenAIEmbedderConf,
    SentenceTransformerEmbedderConf,
)
from memvec.common.configuration.log_conf import LogConf
from memvec.common.data_types import SimilarityMetric
from memvec.common.errors import ConfigurationError

YamlValue = dict[str, "YamlValue"] | list["YamlValue"] | str | int | float | bool | None

logger = logging.getLogger(__name__)

__all__ = [
    "CollectionConf",
    "DatabaseConf",
    "EmbedderConf",
    "LogConf",
    "MemvecConf",
    "OpenAIEmbedderConf",
    "SentenceTransformerEmbedderConf",
]


class DatabaseConf(BaseModel):
    """Configuration for the SQLite database connection."""

    url: str = Field(
        default="sqlite+aiosqlite:///memvec.db",
        description="SQLAlchemy URL of the database (sqlite+aiosqlite driver)",
    )

    @model_validator(mode="before")
    @classmethod
    def _overwrite_with_env_variable(cls, data: dict | None) -> dict:
        data = dict(data or {})

        url = os.getenv("MEMVEC_DATABASE_URL")
        if url:
            data["url"] = url

        return data

    @model_validator(mode="after")
    def _check_driver(self) -> DatabaseConf:
        if not self.url.startswith("sqlite+aiosqlite://"):
            raise ValueError(
                f"Database URL must use the sqlite+aiosqlite driver, got {self.url!r}"
            )
        return self


class CollectionConf(BaseModel):
    """Configuration of the collection served by the store."""

    name: str = Field(
        ...,
        description="Collection name; also the row table name",
    )
    vector_dimensions: int = Field(
        ...,
        description="Number of dimensions of every stored and queried vector",
        gt=0,
    )
    similarity_metric: SimilarityMetric = Field(
        default=SimilarityMetric.EUCLIDEAN,
        description="Distance metric of the vector index",
    )


class MemvecConf(BaseModel):
    """Top-level memvec configuration."""

    database: DatabaseConf = Field(default_factory=DatabaseConf)
    collection: CollectionConf
    embedder: EmbedderConf
    logging: LogConf = Field(default_factory=LogConf)

    @model_validator(mode="after")
    def _check_embedder(self) -> MemvecConf:
        _ = self.embedder.provider
        openai_conf = self.embedder.openai
        if (
            openai_conf is not None
            and openai_conf.dimensions is not None
            and openai_conf.dimensions != self.collection.vector_dimensions
        ):
            raise ValueError(
                f"Embedder dimensions {openai_conf.dimensions} do not match "
                f"collection vector_dimensions {self.collection.vector_dimensions}"
            )
        return self

    @classmethod
    def load_yml_file(cls, config_file: str | Path) -> MemvecConf:
        """Load configuration from a YAML file path."""
        config_path = Path(config_file)
        logger.info("Loading configuration from '%s'", config_file)
        try:
            yaml_config = yaml.safe_load(config_path.read_text(encoding="utf-8"))
        except FileNotFoundError as err:
            raise ConfigurationError(f"Config file {config_file} not found") from err
        except yaml.YAMLError as err:
            raise ConfigurationError(f"Config file {config_file} is not valid YAML") from err

        def is_mapping(val: YamlValue) -> TypeGuard[dict[str, YamlValue]]:
            return isinstance(val, dict)

        if not is_mapping(yaml_config):
            raise ConfigurationError(
                f"Root of YAML config '{config_path}' must be a mapping"
            )

        mapping_config = cast(dict[str, Any], yaml_config)
        try:
            return cls(**mapping_config)
        except ValidationError as err:
            raise ConfigurationError(
                f"Invalid configuration in '{config_path}': {err}"
            ) from err
