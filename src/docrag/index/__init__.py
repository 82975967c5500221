"""Local vector index: storage and retrieval."""
