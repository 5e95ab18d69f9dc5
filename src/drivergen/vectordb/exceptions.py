"""Custom exceptions for the VectorDB module."""

from __future__ import annotations


class VectorStoreError(Exception):
    """Base exception for all VectorStore errors.

    Examples: unreadable persisted store, corrupt entry on load.
    """


class EmbeddingError(VectorStoreError):
    """Raised when embedding generation or comparison fails.

    Examples: model loading failure, encoder error, dimension mismatch.
    """
