"""Schema management for sqlite-vec backed collections."""

import logging
import re
import time
from dataclasses import dataclass

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from memvec.common.data_types import SimilarityMetric
from memvec.common.errors import (
    CollectionNotFoundError,
    DimensionMismatchError,
    SchemaError,
)

logger = logging.getLogger(__name__)

REGISTRY_TABLE = "_memvec_collections"

_COLLECTION_NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

_METRIC_TO_VEC0: dict[SimilarityMetric, str] = {
    SimilarityMetric.COSINE: "cosine",
    SimilarityMetric.EUCLIDEAN: "l2",
}

_METRIC_TO_DISTANCE_FN: dict[SimilarityMetric, str] = {
    SimilarityMetric.COSINE: "vec_distance_cosine",
    SimilarityMetric.EUCLIDEAN: "vec_distance_L2",
}


def validate_collection_name(name: str) -> str:
    """Return name if it is a safe SQL identifier, raise SchemaError otherwise."""
    if not isinstance(name, str) or _COLLECTION_NAME_RE.fullmatch(name) is None:
        raise SchemaError(
            f"Invalid collection name {name!r}: "
            "must start with a letter or underscore "
            "and contain only letters, digits and underscores"
        )
    if name.startswith("_memvec"):
        raise SchemaError(f"Collection name {name!r} uses a reserved prefix")
    return name


@dataclass(frozen=True)
class CollectionConfig:
    """Resolved configuration and object names of a collection."""

    name: str
    vector_dimensions: int
    similarity_metric: SimilarityMetric

    @property
    def table(self) -> str:
        return f'"{self.name}"'

    @property
    def vec_table(self) -> str:
        return f'"vec_{self.name}"'

    @property
    def insert_trigger(self) -> str:
        return f'"embed_text_{self.name}"'

    @property
    def delete_trigger(self) -> str:
        return f'"unembed_text_{self.name}"'

    @property
    def distance_fn(self) -> str:
        return _METRIC_TO_DISTANCE_FN[self.similarity_metric]


class SchemaManager:
    """
    Ensures the row table, the vec0 index and the triggers
    that keep them in sync exist for a collection.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        """Initialize with the async engine to run DDL on."""
        self._engine = engine

    async def ensure_collection(
        self,
        name: str,
        vector_dimensions: int,
        similarity_metric: SimilarityMetric = SimilarityMetric.EUCLIDEAN,
    ) -> CollectionConfig:
        """
        Create the collection if it does not exist.

        Safe to call on every startup.

        Args:
            name (str):
                Name of the collection.
            vector_dimensions (int):
                Number of dimensions of the stored vectors.
            similarity_metric (SimilarityMetric):
                Distance metric of the vector index
                (default: SimilarityMetric.EUCLIDEAN).

        Returns:
            CollectionConfig:
                The configuration of the collection.

        Raises:
            DimensionMismatchError:
                If the collection exists with different vector dimensions.
            SchemaError:
                If the name or dimensions are invalid,
                the collection exists with a different metric,
                or DDL fails.

        """
        validate_collection_name(name)
        if (
            isinstance(vector_dimensions, bool)
            or not isinstance(vector_dimensions, int)
            or vector_dimensions <= 0
        ):
            raise SchemaError(
                f"Collection '{name}': vector_dimensions must be a positive integer, "
                f"got {vector_dimensions!r}"
            )

        start_time = time.monotonic()
        cfg = CollectionConfig(
            name=name,
            vector_dimensions=vector_dimensions,
            similarity_metric=similarity_metric,
        )

        try:
            async with self._engine.begin() as conn:
                await self._create_registry(conn)
                created = await self._register(conn, cfg)
                await self._create_objects(conn, cfg)
        except SQLAlchemyError as e:
            raise SchemaError(
                f"Failed to ensure collection '{name}': {e}"
            ) from e

        if created:
            logger.info(
                "Created collection '%s' with %d dimensions and %s metric",
                name,
                vector_dimensions,
                similarity_metric.value,
            )
        logger.debug(
            "Ensured collection '%s' in %.3f seconds",
            name,
            time.monotonic() - start_time,
        )
        return cfg

    async def get_collection_config(self, name: str) -> CollectionConfig:
        """
        Fetch collection configuration from the registry.

        Raises:
            CollectionNotFoundError: If the collection does not exist.

        """
        validate_collection_name(name)
        try:
            async with self._engine.connect() as conn:
                result = await conn.execute(
                    text(
                        "SELECT 1 FROM sqlite_master "
                        "WHERE type = 'table' AND name = :registry"
                    ),
                    {"registry": REGISTRY_TABLE},
                )
                row = None
                if result.fetchone() is not None:
                    result = await conn.execute(
                        text(
                            "SELECT vector_dimensions, similarity_metric "
                            f"FROM {REGISTRY_TABLE} WHERE name = :name"
                        ),
                        {"name": name},
                    )
                    row = result.fetchone()
        except SQLAlchemyError as e:
            raise SchemaError(
                f"Failed to read configuration of collection '{name}': {e}"
            ) from e

        if row is None:
            raise CollectionNotFoundError(name)
        return CollectionConfig(
            name=name,
            vector_dimensions=row[0],
            similarity_metric=SimilarityMetric(row[1]),
        )

    async def drop_collection(self, name: str) -> None:
        """Drop the triggers, the tables and the registry entry of a collection."""
        validate_collection_name(name)
        cfg = CollectionConfig(
            name=name,
            vector_dimensions=1,
            similarity_metric=SimilarityMetric.EUCLIDEAN,
        )
        try:
            async with self._engine.begin() as conn:
                await self._create_registry(conn)
                await conn.execute(text(f"DROP TRIGGER IF EXISTS {cfg.insert_trigger}"))
                await conn.execute(text(f"DROP TRIGGER IF EXISTS {cfg.delete_trigger}"))
                await conn.execute(text(f"DROP TABLE IF EXISTS {cfg.vec_table}"))
                await conn.execute(text(f"DROP TABLE IF EXISTS {cfg.table}"))
                await conn.execute(
                    text(f"DELETE FROM {REGISTRY_TABLE} WHERE name = :name"),
                    {"name": name},
                )
        except SQLAlchemyError as e:
            raise SchemaError(f"Failed to drop collection '{name}': {e}") from e
        logger.info("Dropped collection '%s'", name)

    @staticmethod
    async def _create_registry(conn: AsyncConnection) -> None:
        await conn.execute(
            text(
                f"CREATE TABLE IF NOT EXISTS {REGISTRY_TABLE} ("
                "  name TEXT PRIMARY KEY,"
                "  vector_dimensions INTEGER NOT NULL,"
                "  similarity_metric TEXT NOT NULL"
                ")"
            )
        )

    @staticmethod
    async def _register(conn: AsyncConnection, cfg: CollectionConfig) -> bool:
        """Register the collection, or verify it matches the existing entry."""
        result = await conn.execute(
            text(
                "SELECT vector_dimensions, similarity_metric "
                f"FROM {REGISTRY_TABLE} WHERE name = :name"
            ),
            {"name": cfg.name},
        )
        row = result.fetchone()
        if row is not None:
            existing_dimensions, existing_metric = row[0], row[1]
            if existing_dimensions != cfg.vector_dimensions:
                raise DimensionMismatchError(
                    collection=cfg.name,
                    expected=existing_dimensions,
                    actual=cfg.vector_dimensions,
                    operation="ensure_collection",
                )
            if existing_metric != cfg.similarity_metric.value:
                raise SchemaError(
                    f"Collection '{cfg.name}' already exists with similarity metric "
                    f"{existing_metric!r}, not {cfg.similarity_metric.value!r}"
                )
            return False

        await conn.execute(
            text(
                f"INSERT INTO {REGISTRY_TABLE} (name, vector_dimensions, similarity_metric) "
                "VALUES (:name, :dims, :metric)"
            ),
            {
                "name": cfg.name,
                "dims": cfg.vector_dimensions,
                "metric": cfg.similarity_metric.value,
            },
        )
        return True

    @staticmethod
    async def _create_objects(conn: AsyncConnection, cfg: CollectionConfig) -> None:
        await conn.execute(
            text(
                f"CREATE TABLE IF NOT EXISTS {cfg.table} ("
                "  rowid INTEGER PRIMARY KEY AUTOINCREMENT,"
                "  text TEXT,"
                "  metadata BLOB,"
                "  text_embedding BLOB"
                ")"
            )
        )

        vec0_metric = _METRIC_TO_VEC0[cfg.similarity_metric]
        await conn.execute(
            text(
                f"CREATE VIRTUAL TABLE IF NOT EXISTS {cfg.vec_table} USING vec0("
                f"  text_embedding float[{cfg.vector_dimensions}] "
                f"distance_metric={vec0_metric}"
                ")"
            )
        )

        # The index entry is written by the same statement that inserts the row.
        await conn.execute(
            text(
                f"CREATE TRIGGER IF NOT EXISTS {cfg.insert_trigger} "
                f"AFTER INSERT ON {cfg.table} "
                "BEGIN "
                f"  INSERT INTO {cfg.vec_table} (rowid, text_embedding) "
                "  VALUES (new.rowid, new.text_embedding); "
                "END"
            )
        )
        await conn.execute(
            text(
                f"CREATE TRIGGER IF NOT EXISTS {cfg.delete_trigger} "
                f"AFTER DELETE ON {cfg.table} "
                "BEGIN "
                f"  DELETE FROM {cfg.vec_table} WHERE rowid = old.rowid; "
                "END"
            )
        )
