"""SQLite-backed vector store implementation using sqlite-vec."""

import json
import logging
import math
import struct
import time
from collections.abc import Iterable, Mapping, Sequence
from uuid import UUID, uuid4

import sqlite_vec
from pydantic import BaseModel, Field, InstanceOf
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from memvec.common.data_types import JSONValue, SimilarityMetric
from memvec.common.embedder import Embedder
from memvec.common.errors import (
    DimensionMismatchError,
    EmbeddingCountMismatchError,
    EmbeddingError,
    InvalidMetadataError,
    InvalidVectorError,
    MetadataDecodeError,
    StorageError,
)
from memvec.common.filter import CompiledFilter, FilterExpr, compile_filter

from .data_types import Document, StoredRecord
from .engine import register_sqlite_vec
from .schema_manager import CollectionConfig, SchemaManager, validate_collection_name
from .vector_store import VectorStore

logger = logging.getLogger(__name__)

_BindParams = dict[str, str | int | float | bytes | None]

# Malformed metadata reads as NULL so json_extract cannot fail the whole query.
_METADATA_COLUMN = "(CASE WHEN json_valid(e.metadata) THEN e.metadata END)"

# Largest k a vec0 KNN query accepts.
KNN_MAX_K = 4096


def _serialize_vector(vector: Sequence[float]) -> bytes:
    """Serialize a float vector to bytes for sqlite-vec."""
    return sqlite_vec.serialize_float32(list(vector))


def _deserialize_vector(blob: bytes) -> list[float]:
    """Deserialize bytes from sqlite-vec to a float vector."""
    n = len(blob) // 4
    return list(struct.unpack(f"{n}f", blob))


def _serialize_metadata(metadata: Mapping[str, JSONValue]) -> str:
    """Serialize metadata to a JSON object string."""
    if not isinstance(metadata, Mapping):
        raise InvalidMetadataError(
            f"Metadata must be a mapping, got {type(metadata).__name__}"
        )
    for key in metadata:
        if not isinstance(key, str):
            raise InvalidMetadataError(f"Metadata key {key!r} is not a string")
    try:
        return json.dumps(dict(metadata), allow_nan=False)
    except (TypeError, ValueError) as e:
        raise InvalidMetadataError(f"Metadata is not JSON-representable: {e}") from e


def _deserialize_metadata(
    raw: str | bytes | None,
    collection: str,
    row_id: int,
) -> dict[str, JSONValue]:
    """Deserialize a metadata blob, raising MetadataDecodeError if it is not a JSON object."""
    if raw is None:
        raise MetadataDecodeError(collection, row_id, "metadata is NULL")
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise MetadataDecodeError(collection, row_id, str(e)) from e
    if not isinstance(data, dict):
        raise MetadataDecodeError(
            collection,
            row_id,
            f"expected a JSON object, got {type(data).__name__}",
        )
    return data


class SQLiteVectorStoreParams(BaseModel):
    """
    Parameters for SQLiteVectorStore.

    Attributes:
        engine (AsyncEngine):
            SQLAlchemy async engine (sqlite+aiosqlite).
        collection_name (str):
            Name of the collection the store reads and writes.
        vector_dimensions (int):
            Number of dimensions of every stored and queried vector.
        embedder (Embedder):
            Default embedder for documents and queries.
        similarity_metric (SimilarityMetric):
            Distance metric of the vector index
            (default: SimilarityMetric.EUCLIDEAN).

    """

    engine: InstanceOf[AsyncEngine] = Field(
        ...,
        description="SQLAlchemy async engine (sqlite+aiosqlite)",
    )
    collection_name: str = Field(
        ...,
        description="Name of the collection",
    )
    vector_dimensions: int = Field(
        ...,
        description="Number of dimensions of the vectors",
        gt=0,
    )
    embedder: InstanceOf[Embedder] = Field(
        ...,
        description="Default embedder for documents and queries",
    )
    similarity_metric: SimilarityMetric = Field(
        SimilarityMetric.EUCLIDEAN,
        description="Distance metric of the vector index",
    )


class SQLiteVectorStore(VectorStore):
    """SQLite-backed vector store using sqlite-vec for native vector search."""

    def __init__(self, params: SQLiteVectorStoreParams) -> None:
        """Initialize the vector store with the provided parameters."""
        super().__init__()
        self._engine = params.engine
        self._embedder = params.embedder
        self._schema_manager = SchemaManager(self._engine)
        self._config = CollectionConfig(
            name=validate_collection_name(params.collection_name),
            vector_dimensions=params.vector_dimensions,
            similarity_metric=params.similarity_metric,
        )

    @property
    def collection_name(self) -> str:
        return self._config.name

    @property
    def vector_dimensions(self) -> int:
        return self._config.vector_dimensions

    async def startup(self) -> None:
        """Register the sqlite-vec extension loader on the engine."""
        register_sqlite_vec(self._engine)

    async def shutdown(self) -> None:
        """Dispose of the engine."""
        await self._engine.dispose()

    async def initialize_collection(self) -> None:
        """Create the row table, the vector index and the sync triggers."""
        await self._schema_manager.ensure_collection(
            self._config.name,
            self._config.vector_dimensions,
            self._config.similarity_metric,
        )

    async def drop_collection(self) -> None:
        """Drop everything from the collection."""
        await self._schema_manager.drop_collection(self._config.name)

    async def add_documents(
        self,
        docs: Sequence[Document],
        *,
        embedder: Embedder | None = None,
    ) -> list[int]:
        """
        Embed and store documents in one transaction.

        The embedder is called once for the whole batch
        before the write transaction opens.

        Raises:
            InvalidMetadataError:
                If any document's metadata is not JSON-representable.
            EmbeddingError:
                If the embedder fails.
            EmbeddingCountMismatchError:
                If the embedder returns a different number of vectors than documents.
            DimensionMismatchError:
                If any vector's length differs from the collection's dimensions.
            StorageError:
                If the transaction fails. No document of the batch is stored.

        """
        docs = list(docs)
        if not docs:
            return []

        call_uuid = uuid4()
        start_time = time.monotonic()

        serialized_metadata = [_serialize_metadata(doc.metadata) for doc in docs]
        texts = [doc.content for doc in docs]

        vectors = await self._embed(
            embedder or self._embedder,
            texts,
            operation="add_documents",
            call_uuid=call_uuid,
            ingest=True,
        )
        for vector in vectors:
            self._check_vector(vector, "add_documents")

        table = self._config.table
        ids: list[int] = []
        try:
            async with self._engine.begin() as conn:
                for doc, metadata_json, vector in zip(
                    docs, serialized_metadata, vectors, strict=True
                ):
                    result = await conn.execute(
                        text(
                            f"INSERT INTO {table} (text, metadata, text_embedding) "
                            "VALUES (:text, :metadata, :embedding)"
                        ),
                        {
                            "text": doc.content,
                            "metadata": metadata_json,
                            "embedding": _serialize_vector(vector),
                        },
                    )
                    ids.append(result.lastrowid)
        except SQLAlchemyError as e:
            raise StorageError(
                f"[call uuid: {call_uuid}] add_documents on collection "
                f"'{self._config.name}' failed; no documents were stored: {e}"
            ) from e

        logger.debug(
            "[call uuid: %s] Added %d documents to collection '%s' in %.3f seconds",
            call_uuid,
            len(ids),
            self._config.name,
            time.monotonic() - start_time,
        )
        return ids

    async def similarity_search(
        self,
        query: str,
        limit: int,
        *,
        property_filter: FilterExpr | None = None,
        embedder: Embedder | None = None,
    ) -> list[Document]:
        """
        Search for documents similar to the query text.

        With a property filter, the filter is applied before
        nearest-neighbor selection, so up to `limit` qualifying documents
        are returned even if they rank far down the unfiltered ordering.
        Ties in distance are broken by ascending row ID.
        """
        _validate_limit(limit)
        # Fail on a malformed filter before calling the embedder.
        compiled = _compile_property_filter(property_filter)

        call_uuid = uuid4()
        vectors = await self._embed(
            embedder or self._embedder,
            [query],
            operation="similarity_search",
            call_uuid=call_uuid,
            ingest=False,
        )
        return await self._search(
            vectors[0],
            limit,
            compiled,
            call_uuid=call_uuid,
        )

    async def similarity_search_by_vector(
        self,
        query_vector: Sequence[float],
        limit: int,
        *,
        property_filter: FilterExpr | None = None,
    ) -> list[Document]:
        """Search for documents similar to an already embedded query."""
        _validate_limit(limit)
        return await self._search(
            list(query_vector),
            limit,
            _compile_property_filter(property_filter),
            call_uuid=uuid4(),
        )

    async def get_records(self, row_ids: Iterable[int]) -> list[StoredRecord]:
        """Get stored records by their row IDs, ordered as in the input."""
        row_id_list = list(row_ids)
        if not row_id_list:
            return []

        placeholders = ", ".join(f":rid{i}" for i in range(len(row_id_list)))
        bind_params: _BindParams = {f"rid{i}": rid for i, rid in enumerate(row_id_list)}

        try:
            async with self._engine.connect() as conn:
                rows = await conn.execute(
                    text(
                        "SELECT rowid, text, metadata, text_embedding "
                        f"FROM {self._config.table} "
                        f"WHERE rowid IN ({placeholders})"
                    ),
                    bind_params,
                )
                rows_list = rows.fetchall()
        except SQLAlchemyError as e:
            raise StorageError(
                f"get_records on collection '{self._config.name}' failed: {e}"
            ) from e

        rowid_to_record: dict[int, StoredRecord] = {}
        for row in rows_list:
            rowid_to_record[row[0]] = StoredRecord(
                row_id=row[0],
                text=row[1],
                metadata=self._decode_metadata(row[2], row[0]),
                embedding=_deserialize_vector(row[3]),
            )
        return [rowid_to_record[rid] for rid in row_id_list if rid in rowid_to_record]

    async def delete(self, row_ids: Iterable[int]) -> None:
        """Delete rows; the delete trigger removes their index entries."""
        row_id_list = list(row_ids)
        if not row_id_list:
            return

        placeholders = ", ".join(f":rid{i}" for i in range(len(row_id_list)))
        bind_params: _BindParams = {f"rid{i}": rid for i, rid in enumerate(row_id_list)}

        try:
            async with self._engine.begin() as conn:
                await conn.execute(
                    text(
                        f"DELETE FROM {self._config.table} "
                        f"WHERE rowid IN ({placeholders})"
                    ),
                    bind_params,
                )
        except SQLAlchemyError as e:
            raise StorageError(
                f"delete on collection '{self._config.name}' failed: {e}"
            ) from e

    async def count(self) -> tuple[int, int]:
        """Return the number of rows and the number of vector index entries."""
        try:
            async with self._engine.connect() as conn:
                result = await conn.execute(
                    text(
                        f"SELECT (SELECT count(*) FROM {self._config.table}), "
                        f"(SELECT count(*) FROM {self._config.vec_table})"
                    )
                )
                row = result.one()
        except SQLAlchemyError as e:
            raise StorageError(
                f"count on collection '{self._config.name}' failed: {e}"
            ) from e
        return row[0], row[1]

    async def _embed(
        self,
        embedder: Embedder,
        inputs: list[str],
        *,
        operation: str,
        call_uuid: UUID,
        ingest: bool,
    ) -> list[list[float]]:
        start_time = time.monotonic()
        try:
            if ingest:
                vectors = await embedder.ingest_embed(inputs)
            else:
                vectors = await embedder.search_embed(inputs)
        except Exception as e:
            raise EmbeddingError(
                f"[call uuid: {call_uuid}] {operation} on collection "
                f"'{self._config.name}': embedder {type(embedder).__name__} "
                f"failed with {type(e).__name__}: {e}"
            ) from e

        if len(vectors) != len(inputs):
            raise EmbeddingCountMismatchError(
                collection=self._config.name,
                expected=len(inputs),
                actual=len(vectors),
            )

        logger.debug(
            "[call uuid: %s] Embedded %d inputs for %s in %.3f seconds",
            call_uuid,
            len(inputs),
            operation,
            time.monotonic() - start_time,
        )
        return [list(vector) for vector in vectors]

    def _check_vector(self, vector: Sequence[float], operation: str) -> None:
        if len(vector) != self._config.vector_dimensions:
            raise DimensionMismatchError(
                collection=self._config.name,
                expected=self._config.vector_dimensions,
                actual=len(vector),
                operation=operation,
            )
        if not all(math.isfinite(x) for x in vector):
            raise InvalidVectorError(self._config.name, operation)

    async def _search(
        self,
        query_vector: list[float],
        limit: int,
        compiled_filter: CompiledFilter | None,
        *,
        call_uuid: UUID,
    ) -> list[Document]:
        self._check_vector(query_vector, "similarity_search")

        start_time = time.monotonic()
        query_blob = _serialize_vector(query_vector)

        if compiled_filter is None:
            sql, bind_params = self._knn_query(query_blob, limit)
        else:
            sql, bind_params = self._filtered_query(query_blob, limit, compiled_filter)

        try:
            async with self._engine.connect() as conn:
                rows = await conn.execute(text(sql), bind_params)
                rows_list = rows.fetchall()
        except SQLAlchemyError as e:
            raise StorageError(
                f"[call uuid: {call_uuid}] similarity_search on collection "
                f"'{self._config.name}' failed: {e}"
            ) from e

        docs = [
            Document(
                content=row[1],
                metadata=self._decode_metadata(row[2], row[0]),
                score=row[3],
            )
            for row in rows_list
        ]

        logger.debug(
            "[call uuid: %s] Found %d documents in collection '%s' in %.3f seconds",
            call_uuid,
            len(docs),
            self._config.name,
            time.monotonic() - start_time,
        )
        return docs

    def _knn_query(self, query_blob: bytes, limit: int) -> tuple[str, _BindParams]:
        """
        Build a KNN query over the vec0 index, joined back to the row table.

        vec0 picks arbitrarily among rows tied at the k-th distance,
        so its result only fixes the cutoff distance.
        Rows within the cutoff are then ranked by distance and row ID.
        """
        if limit > KNN_MAX_K:
            return self._filtered_query(query_blob, limit, compile_filter(None))

        distance_fn = self._config.distance_fn
        vec_table = self._config.vec_table
        sql = (
            "WITH knn AS ("
            "  SELECT rowid "
            f"  FROM {vec_table} "
            "  WHERE text_embedding MATCH :query AND k = :limit"
            "), cutoff AS ("
            f"  SELECT max({distance_fn}(c.text_embedding, :query)) AS distance "
            "  FROM knn "
            f"  JOIN {vec_table} c ON c.rowid = knn.rowid"
            ") "
            "SELECT e.rowid, e.text, e.metadata, "
            f"{distance_fn}(v.text_embedding, :query) AS distance "
            f"FROM {self._config.table} e "
            f"JOIN {vec_table} v ON v.rowid = e.rowid "
            f"WHERE {distance_fn}(v.text_embedding, :query) "
            "<= (SELECT distance FROM cutoff) "
            "ORDER BY distance ASC, e.rowid ASC "
            "LIMIT :limit"
        )
        return sql, {"query": query_blob, "limit": limit}

    def _filtered_query(
        self,
        query_blob: bytes,
        limit: int,
        compiled: CompiledFilter,
    ) -> tuple[str, _BindParams]:
        """Build an exact scan over rows satisfying the filter, ranked by distance."""
        distance_fn = self._config.distance_fn
        sql = (
            "SELECT e.rowid, e.text, e.metadata, "
            f"{distance_fn}(v.text_embedding, :query) AS distance "
            f"FROM {self._config.table} e "
            f"JOIN {self._config.vec_table} v ON v.rowid = e.rowid "
            f"WHERE {compiled.clause} "
            "ORDER BY distance ASC, e.rowid ASC "
            "LIMIT :limit"
        )
        bind_params: _BindParams = {"query": query_blob, "limit": limit}
        bind_params.update(compiled.params)
        return sql, bind_params

    def _decode_metadata(self, raw: str | bytes | None, row_id: int) -> dict[str, JSONValue]:
        try:
            return _deserialize_metadata(raw, self._config.name, row_id)
        except MetadataDecodeError as e:
            logger.warning("%s; returning empty metadata", e)
            return {}


def _compile_property_filter(
    property_filter: FilterExpr | None,
) -> CompiledFilter | None:
    if property_filter is None:
        return None
    return compile_filter(property_filter, metadata_column=_METADATA_COLUMN)


def _validate_limit(limit: int) -> None:
    if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
        raise ValueError(f"limit must be a positive integer, got {limit!r}")
