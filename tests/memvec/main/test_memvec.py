import pytest
from memvec_test_utils import VECTORS, MappingEmbedder

from memvec.common.configuration import MemvecConf
from memvec.common.errors import ConfigurationError
from memvec.common.filter import parse_filter
from memvec.common.vector_store import Document
from memvec.main import create_vector_store


@pytest.fixture
def conf(tmp_path, monkeypatch):
    monkeypatch.delenv("MEMVEC_DATABASE_URL", raising=False)
    return MemvecConf(
        database={"url": f"sqlite+aiosqlite:///{tmp_path / 'memvec.db'}"},
        collection={"name": "docs", "vector_dimensions": 3},
        embedder={"openai": {"api_key": "sk-test"}},
    )


@pytest.mark.asyncio
async def test_create_vector_store(conf, monkeypatch):
    embedder = MappingEmbedder(dict(VECTORS))
    monkeypatch.setattr(
        "memvec.main.memvec.create_embedder",
        lambda embedder_conf, vector_dimensions: embedder,
    )

    store = await create_vector_store(conf, configure_logging=False)
    try:
        await store.add_documents(
            [
                Document(content="cat", metadata={"type": "animal"}),
                Document(content="car", metadata={"type": "vehicle"}),
            ]
        )
        results = await store.similarity_search(
            "query", 5, property_filter=parse_filter("type = animal")
        )
        assert [doc.content for doc in results] == ["cat"]
    finally:
        await store.shutdown()


@pytest.mark.asyncio
async def test_embedder_dimensions_must_match(conf, monkeypatch):
    monkeypatch.setattr(
        "memvec.main.memvec.create_embedder",
        lambda embedder_conf, vector_dimensions: MappingEmbedder({}, dimensions=4),
    )

    with pytest.raises(ConfigurationError, match="expects 3"):
        await create_vector_store(conf, configure_logging=False)
