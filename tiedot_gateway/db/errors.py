"""Exceptions raised by the embedded document database."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    import collections.abc as cabc

__all__ = [
    "CollectionExistsError",
    "CollectionNotFoundError",
    "DatabaseClosedError",
    "DatabaseError",
    "DocumentNotFoundError",
    "IndexExistsError",
    "IndexNotFoundError",
    "QueryError",
]


def _format_path(path: cabc.Sequence[str]) -> str:
    return ",".join(path)


class DatabaseError(Exception):
    """Base exception for all database failures.

    The HTTP layer maps this to a single client error response; the
    message is safe to show to callers.
    """


class DatabaseClosedError(DatabaseError):
    """Raised when an operation is attempted after the handle was closed."""

    def __init__(self) -> None:
        """Initialize with a fixed message."""
        super().__init__("Database is closed")


class CollectionNotFoundError(DatabaseError):
    """Raised when a named collection does not exist.

    Attributes
    ----------
    name
        The collection that was requested.

    """

    def __init__(self, name: str) -> None:
        """Initialize with the missing collection name."""
        self.name = name
        super().__init__(f"Collection {name} does not exist")


class CollectionExistsError(DatabaseError):
    """Raised when creating or renaming onto an existing collection name."""

    def __init__(self, name: str) -> None:
        """Initialize with the conflicting collection name."""
        self.name = name
        super().__init__(f"Collection {name} already exists")


class DocumentNotFoundError(DatabaseError):
    """Raised when a document ID is not present in a collection.

    Attributes
    ----------
    doc_id
        The document ID that was requested.

    """

    def __init__(self, doc_id: int) -> None:
        """Initialize with the missing document ID."""
        self.doc_id = doc_id
        super().__init__(f"Document {doc_id} does not exist")


class IndexNotFoundError(DatabaseError):
    """Raised when a query or unindex names a path that is not indexed."""

    def __init__(self, path: cabc.Sequence[str]) -> None:
        """Initialize with the missing index path."""
        self.path = tuple(path)
        super().__init__(f"Please index {_format_path(path)} and retry query")


class IndexExistsError(DatabaseError):
    """Raised when the same path is indexed twice."""

    def __init__(self, path: cabc.Sequence[str]) -> None:
        """Initialize with the duplicate index path."""
        self.path = tuple(path)
        super().__init__(f"Path {_format_path(path)} is already indexed")


class QueryError(DatabaseError):
    """Raised for query documents outside the supported forms."""

    @classmethod
    def unsupported(cls, query: object) -> QueryError:
        """Create error for a query expression that cannot be evaluated.

        Parameters
        ----------
        query
            The offending expression.

        Returns
        -------
        QueryError
            Error naming the expression.

        """
        return cls(f"Query {query!r} is not supported")

    @classmethod
    def malformed(cls, operator: str, reason: str) -> QueryError:
        """Create error for an operator whose operands are unusable."""
        return cls(f"Query operator '{operator}' {reason}")

    @classmethod
    def too_deep(cls, limit: int) -> QueryError:
        """Create error for a query nested beyond *limit* levels."""
        return cls(f"Query is nested more than {limit} levels deep")
