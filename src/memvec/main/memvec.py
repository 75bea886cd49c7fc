"""Wire a configured SQLiteVectorStore."""

import logging

from memvec.common.configuration import MemvecConf
from memvec.common.embedder import create_embedder
from memvec.common.errors import ConfigurationError
from memvec.common.vector_store import (
    SQLiteVectorStore,
    SQLiteVectorStoreParams,
    create_sqlite_vec_engine,
)

logger = logging.getLogger(__name__)


async def create_vector_store(
    conf: MemvecConf,
    *,
    configure_logging: bool = True,
) -> SQLiteVectorStore:
    """
    Build the engine, the embedder and the store from configuration,
    then start the store and initialize its collection.
    """
    if configure_logging:
        conf.logging.apply()

    embedder = create_embedder(conf.embedder, conf.collection.vector_dimensions)
    if embedder.dimensions != conf.collection.vector_dimensions:
        raise ConfigurationError(
            f"Embedder {embedder.model_id} produces {embedder.dimensions}-dimensional "
            f"vectors but collection '{conf.collection.name}' "
            f"expects {conf.collection.vector_dimensions}"
        )

    engine = create_sqlite_vec_engine(conf.database.url)
    store = SQLiteVectorStore(
        SQLiteVectorStoreParams(
            engine=engine,
            collection_name=conf.collection.name,
            vector_dimensions=conf.collection.vector_dimensions,
            embedder=embedder,
            similarity_metric=conf.collection.similarity_metric,
        )
    )
    await store.startup()
    await store.initialize_collection()
    logger.info(
        "Vector store ready for collection '%s' at %s",
        conf.collection.name,
        conf.database.url,
    )
    return store
