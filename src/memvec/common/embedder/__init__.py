from .embedder import Embedder
from .embedder_factory import create_embedder

__all__ = [
    "Embedder",
    "create_embedder",
]
