"""SQLAlchemy async engine setup for SQLite with the sqlite-vec extension."""

import logging
from typing import Any

import sqlite_vec
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

logger = logging.getLogger(__name__)


def _load_vec_extension(dbapi_conn: Any, _connection_record: object) -> None:
    # BEGIN is emitted by _begin_transaction.
    dbapi_conn.isolation_level = None
    dbapi_conn.run_async(lambda conn: conn.enable_load_extension(True))
    dbapi_conn.run_async(
        lambda conn: conn.load_extension(sqlite_vec.loadable_path())
    )
    dbapi_conn.run_async(lambda conn: conn.enable_load_extension(False))


def _begin_transaction(conn: Any) -> None:
    conn.exec_driver_sql("BEGIN")


def register_sqlite_vec(engine: AsyncEngine) -> None:
    """
    Load sqlite-vec on every new pooled connection of the engine.

    Must be called before the engine opens its first connection.
    Calling it more than once is a no-op.
    """
    sync_engine = engine.sync_engine
    if not event.contains(sync_engine, "connect", _load_vec_extension):
        event.listen(sync_engine, "connect", _load_vec_extension)
        logger.debug("Registered sqlite-vec loader on engine %s", engine.url)
    if not event.contains(sync_engine, "begin", _begin_transaction):
        event.listen(sync_engine, "begin", _begin_transaction)


def create_sqlite_vec_engine(url: str, **kwargs: Any) -> AsyncEngine:
    """
    Create an async SQLite engine with sqlite-vec loaded.

    Args:
        url (str):
            SQLAlchemy URL using the aiosqlite driver
            (e.g. 'sqlite+aiosqlite:///memvec.db').
        **kwargs:
            Extra keyword arguments passed to create_async_engine.

    """
    engine = create_async_engine(url, **kwargs)
    register_sqlite_vec(engine)
    return engine
