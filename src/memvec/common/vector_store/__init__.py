"""Public exports for vector store."""

from .data_types import Document, StoredRecord
from .engine import create_sqlite_vec_engine, register_sqlite_vec
from .schema_manager import CollectionConfig, SchemaManager
from .sqlite_vector_store import SQLiteVectorStore, SQLiteVectorStoreParams
from .vector_store import VectorStore

__all__ = [
    "CollectionConfig",
    "Document",
    "SQLiteVectorStore",
    "SQLiteVectorStoreParams",
    "SchemaManager",
    "StoredRecord",
    "VectorStore",
    "create_sqlite_vec_engine",
    "register_sqlite_vec",
]
