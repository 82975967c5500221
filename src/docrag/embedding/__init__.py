"""Embedding model wrappers."""
