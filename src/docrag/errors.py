"""Exceptions raised by the DocRAG pipeline."""

from __future__ import annotations


class DocRagError(Exception):
    """Base class for pipeline failures reported to the caller."""


class ModelUnavailable(DocRagError):
    """The embedding model could not be loaded or failed while encoding."""


class EmbeddingTimeout(ModelUnavailable):
    """The embedding model did not answer within the configured timeout."""


class StorageFailure(DocRagError):
    """The local index database failed to read or write."""
