"""memvec: SQLite-backed hybrid vector search."""
