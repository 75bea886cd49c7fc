"""Custom exceptions for memvec."""


class MemvecError(RuntimeError):
    """Base class for memvec errors."""


class ConfigurationError(MemvecError):
    """Error related to system configuration."""


class SchemaError(MemvecError):
    """Error creating or resolving a collection's schema."""


class CollectionNotFoundError(SchemaError):
    """Error when a collection has not been initialized."""

    def __init__(self, collection: str) -> None:
        """Initialize with the name of the missing collection."""
        self.collection = collection
        super().__init__(
            f"Collection '{collection}' does not exist. "
            "Call initialize_collection() first."
        )

    def __repr__(self) -> str:
        """Return a helpful debug representation."""
        return f"CollectionNotFoundError('{self.collection}')"


class DimensionMismatchError(SchemaError):
    """Error when a vector length disagrees with the collection's dimensions."""

    def __init__(
        self,
        collection: str,
        expected: int,
        actual: int,
        operation: str,
    ) -> None:
        """Initialize with the collection, the expected and actual lengths."""
        self.collection = collection
        self.expected = expected
        self.actual = actual
        self.operation = operation
        super().__init__(
            f"{operation} on collection '{collection}': "
            f"expected vector dimensions {expected}, got {actual}"
        )

    def __repr__(self) -> str:
        """Return a helpful debug representation."""
        return (
            f"DimensionMismatchError('{self.collection}', "
            f"{self.expected}, {self.actual}, '{self.operation}')"
        )


class InvalidVectorError(MemvecError, ValueError):
    """Error when an embedding vector contains NaN or infinite values."""

    def __init__(self, collection: str, operation: str) -> None:
        """Initialize with the collection and the rejecting operation."""
        self.collection = collection
        self.operation = operation
        super().__init__(
            f"{operation} on collection '{collection}': "
            "vector must contain only finite values"
        )


class IngestError(MemvecError):
    """Error while ingesting documents."""


class InvalidMetadataError(IngestError):
    """Error when document metadata is not representable as a JSON object."""


class EmbeddingError(MemvecError):
    """Error raised by the embedding collaborator."""


class EmbeddingCountMismatchError(EmbeddingError):
    """Error when the embedder returns a different number of vectors than inputs."""

    def __init__(self, collection: str, expected: int, actual: int) -> None:
        """Initialize with the collection and the expected and actual counts."""
        self.collection = collection
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Embedder returned {actual} vectors for {expected} inputs "
            f"on collection '{collection}'"
        )


class StorageError(MemvecError):
    """Error raised by the storage engine during a query or transaction."""


class InvalidFilterError(MemvecError, ValueError):
    """Error when a filter expression cannot be compiled."""


class FilterParseError(InvalidFilterError):
    """Raised when the textual filter specification is invalid."""


class MetadataDecodeError(MemvecError):
    """Error decoding a stored metadata blob into a mapping."""

    def __init__(self, collection: str, row_id: int, reason: str) -> None:
        """Initialize with the collection, row id and the decode failure."""
        self.collection = collection
        self.row_id = row_id
        super().__init__(
            f"Malformed metadata for row {row_id} "
            f"in collection '{collection}': {reason}"
        )
