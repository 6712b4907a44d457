"""Evaluate query documents against a collection's indexes.

Supported forms:

- ``"all"``: every document ID.
- ``{"eq": value, "in": [path], "limit": n}``: IDs whose indexed *path*
  holds *value*. ``limit`` is optional.
- ``{"has": [path]}``: IDs with any value at the indexed *path*.
- ``{"n": [query, ...]}``: intersection of the sub-queries.
- ``{"c": [query, ...]}``: every ID not matched by any sub-query.
- ``[query, ...]``: union of the sub-queries.

Lookups only ever consult indexes; querying an unindexed path fails with
``IndexNotFoundError``. Sub-queries may nest at most ``MAX_DEPTH`` levels.
"""

from __future__ import annotations

import typing as typ

from tiedot_gateway.db.collection import index_key
from tiedot_gateway.db.errors import QueryError

if typ.TYPE_CHECKING:
    from tiedot_gateway.db.collection import Collection, IndexPath

__all__ = ["MAX_DEPTH", "evaluate"]

MAX_DEPTH = 32


def _index_path(operator: str, raw: object) -> IndexPath:
    if not isinstance(raw, list) or not raw or not all(isinstance(s, str) for s in raw):
        raise QueryError.malformed(operator, "needs a non-empty list of path segments")
    return tuple(raw)


def _sub_queries(operator: str, raw: object) -> list[object]:
    if not isinstance(raw, list):
        raise QueryError.malformed(operator, "needs a list of sub-queries")
    return raw


def _lookup(query: dict[str, typ.Any], collection: Collection) -> set[int]:
    path = _index_path("in", query.get("in"))
    bucket = collection.lookup(path).get(index_key(query["eq"]), set())
    limit = query.get("limit")
    if limit is None:
        return set(bucket)
    if not isinstance(limit, int) or isinstance(limit, bool) or limit < 0:
        raise QueryError.malformed("limit", "must be a non-negative integer")
    return set(sorted(bucket)[:limit])


def _has_path(query: dict[str, typ.Any], collection: Collection) -> set[int]:
    path = _index_path("has", query["has"])
    found: set[int] = set()
    for bucket in collection.lookup(path).values():
        found |= bucket
    return found


def _intersect(
    query: dict[str, typ.Any], collection: Collection, depth: int
) -> set[int]:
    parts = _sub_queries("n", query["n"])
    if not parts:
        return set()
    result = _evaluate(parts[0], collection, depth + 1)
    for part in parts[1:]:
        result &= _evaluate(part, collection, depth + 1)
    return result


def _complement(
    query: dict[str, typ.Any], collection: Collection, depth: int
) -> set[int]:
    excluded: set[int] = set()
    for part in _sub_queries("c", query["c"]):
        excluded |= _evaluate(part, collection, depth + 1)
    return set(collection.docs) - excluded


def evaluate(query: object, collection: Collection) -> set[int]:
    """Return the IDs of documents in *collection* matched by *query*.

    Parameters
    ----------
    query
        Decoded query document.
    collection
        Collection to evaluate against. The caller holds its lock.

    Returns
    -------
    set[int]
        Matching document IDs.

    Raises
    ------
    QueryError
        If the query is not one of the supported forms or nests deeper
        than ``MAX_DEPTH``.
    IndexNotFoundError
        If the query names a path without an index.

    """
    return _evaluate(query, collection, 0)


def _evaluate(query: object, collection: Collection, depth: int) -> set[int]:
    if depth > MAX_DEPTH:
        raise QueryError.too_deep(MAX_DEPTH)
    if query == "all":
        return set(collection.docs)
    if isinstance(query, list):
        result: set[int] = set()
        for part in query:
            result |= _evaluate(part, collection, depth + 1)
        return result
    if isinstance(query, dict):
        if "eq" in query:
            return _lookup(query, collection)
        if "has" in query:
            return _has_path(query, collection)
        if "n" in query:
            return _intersect(query, collection, depth)
        if "c" in query:
            return _complement(query, collection, depth)
    raise QueryError.unsupported(query)
