"""I/O layer: in-memory caching."""
