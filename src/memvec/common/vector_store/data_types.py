"""Data types for vector store."""

from dataclasses import dataclass, field

from memvec.common.data_types import JSONValue


@dataclass(frozen=True, kw_only=True)
class Document:
    """
    A text chunk with its metadata.

    score is the distance to the query (lower is more similar)
    and is only populated on retrieval.
    """

    content: str
    metadata: dict[str, JSONValue] = field(default_factory=dict)
    score: float = 0.0


@dataclass(frozen=True, kw_only=True)
class StoredRecord:
    """A persisted row of a collection."""

    row_id: int
    text: str
    metadata: dict[str, JSONValue]
    embedding: list[float]
