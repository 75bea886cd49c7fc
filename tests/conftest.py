import pytest
import pytest_asyncio
from memvec_test_utils import VECTOR_DIM, VECTORS, MappingEmbedder

from memvec.common.vector_store import (
    SQLiteVectorStore,
    SQLiteVectorStoreParams,
    create_sqlite_vec_engine,
)

COLLECTION = "docs"


@pytest.fixture
def embedder() -> MappingEmbedder:
    return MappingEmbedder(dict(VECTORS))


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_sqlite_vec_engine(f"sqlite+aiosqlite:///{tmp_path / 'memvec.db'}")
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def store(engine, embedder):
    s = SQLiteVectorStore(
        SQLiteVectorStoreParams(
            engine=engine,
            collection_name=COLLECTION,
            vector_dimensions=VECTOR_DIM,
            embedder=embedder,
        )
    )
    await s.startup()
    await s.initialize_collection()
    yield s
