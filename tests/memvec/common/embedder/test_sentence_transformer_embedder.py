from unittest.mock import MagicMock

import pytest

np = pytest.importorskip("numpy")
sentence_transformers = pytest.importorskip("sentence_transformers")

from memvec.common.data_types import ExternalServiceAPIError  # noqa: E402
from memvec.common.embedder.sentence_transformer_embedder import (  # noqa: E402
    SentenceTransformerEmbedder,
    SentenceTransformerEmbedderParams,
)


@pytest.fixture
def sentence_transformer():
    model = MagicMock(spec=sentence_transformers.SentenceTransformer)
    model.get_sentence_embedding_dimension.return_value = 2
    model.encode.side_effect = lambda inputs, **kwargs: np.array(
        [[float(len(text)), 1.0] for text in inputs], dtype=np.float32
    )
    return model


@pytest.fixture
def embedder(sentence_transformer):
    return SentenceTransformerEmbedder(
        SentenceTransformerEmbedderParams(
            model_name="all-MiniLM-L6-v2",
            sentence_transformer=sentence_transformer,
            max_input_length=4,
        )
    )


@pytest.mark.asyncio
async def test_embed_returns_python_floats(embedder, sentence_transformer):
    vectors = await embedder.ingest_embed(["ab", "abcdefg"])

    assert vectors == [[2.0, 1.0], [4.0, 1.0]]
    assert all(isinstance(x, float) for vector in vectors for x in vector)
    sentence_transformer.encode.assert_called_once_with(
        ["ab", "abcd"],
        convert_to_numpy=True,
        show_progress_bar=False,
    )


@pytest.mark.asyncio
async def test_empty_inputs(embedder, sentence_transformer):
    assert await embedder.search_embed([]) == []
    sentence_transformer.encode.assert_not_called()


@pytest.mark.asyncio
async def test_model_error_is_wrapped(embedder, sentence_transformer):
    sentence_transformer.encode.side_effect = RuntimeError("out of memory")

    with pytest.raises(ExternalServiceAPIError, match="RuntimeError"):
        await embedder.search_embed(["query"])


def test_dimensions_come_from_model(embedder):
    assert embedder.dimensions == 2
    assert embedder.model_id == "all-MiniLM-L6-v2"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_real_model():
    model_name = "sentence-transformers/all-MiniLM-L6-v2"
    embedder = SentenceTransformerEmbedder(
        SentenceTransformerEmbedderParams(
            model_name=model_name,
            sentence_transformer=sentence_transformers.SentenceTransformer(model_name),
        )
    )

    vectors = await embedder.ingest_embed(["hello world", "goodbye"])

    assert len(vectors) == 2
    assert all(len(vector) == embedder.dimensions for vector in vectors)
