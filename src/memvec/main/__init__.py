from .memvec import create_vector_store

__all__ = ["create_vector_store"]
