"""Embedded document database consumed by the HTTP gateway.

Public API
----------
Database
    Handle over the collections stored under one directory.
DatabaseError
    Base class of every failure the database reports.
"""

from tiedot_gateway.db.engine import Database
from tiedot_gateway.db.errors import (
    CollectionExistsError,
    CollectionNotFoundError,
    DatabaseClosedError,
    DatabaseError,
    DocumentNotFoundError,
    IndexExistsError,
    IndexNotFoundError,
    QueryError,
)

__all__ = [
    "CollectionExistsError",
    "CollectionNotFoundError",
    "Database",
    "DatabaseClosedError",
    "DatabaseError",
    "DocumentNotFoundError",
    "IndexExistsError",
    "IndexNotFoundError",
    "QueryError",
]
