"""
Common data types for memvec.
"""

from enum import Enum
from typing import TypeAlias

# Type alias for JSON-compatible data structures.
JSONValue: TypeAlias = (
    None | bool | int | float | str | list["JSONValue"] | dict[str, "JSONValue"]
)

# Scalar values that may appear as literals in a filter expression.
FilterValue: TypeAlias = bool | int | float | str | None


class SimilarityMetric(Enum):
    """
    Distance metrics supported by the vector index.
    """

    COSINE = "cosine"
    EUCLIDEAN = "euclidean"


class ExternalServiceAPIError(Exception):
    """
    Raised when an API error occurs for an external service.
    """

    pass
