"""A single document collection and its path indexes.

Each collection lives in its own directory holding two msgspec-encoded
JSON files:

- ``docs.json`` maps document IDs to document objects.
- ``indexes.json`` lists the indexed paths.

Index contents are rebuilt from the documents on load, so only the path
list is persisted. Mutations mark the collection dirty; ``save()`` writes
it back.
"""

from __future__ import annotations

import secrets
import threading
import typing as typ

import msgspec

from tiedot_gateway.db.errors import (
    DatabaseError,
    DocumentNotFoundError,
    IndexExistsError,
    IndexNotFoundError,
)

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    from pathlib import Path

__all__ = ["Collection", "Document", "IndexPath", "index_key", "values_at"]

Document = dict[str, typ.Any]
IndexPath = tuple[str, ...]

_DOCS_FILE = "docs.json"
_INDEXES_FILE = "indexes.json"
_ID_BITS = 62


def index_key(value: object) -> str:
    """Return the index bucket key for a document value."""
    return msgspec.json.encode(value).decode()


def values_at(doc: object, path: cabc.Sequence[str]) -> list[object]:
    """Return every value reached by following *path* into *doc*.

    Lists met along the way fan out, so ``["tags"]`` on
    ``{"tags": ["a", "b"]}`` yields both tags.
    """
    current: list[object] = [doc]
    for segment in path:
        following: list[object] = []
        for node in current:
            if isinstance(node, dict) and segment in node:
                following.append(node[segment])
        current = []
        for node in following:
            if isinstance(node, list):
                current.extend(node)
            else:
                current.append(node)
    return [value for value in current if value is not None]


def _write_atomic(target: Path, payload: bytes) -> None:
    scratch = target.with_suffix(".tmp")
    scratch.write_bytes(payload)
    scratch.replace(target)


class Collection:
    """Documents plus their indexes, guarded by a per-collection lock.

    Parameters
    ----------
    directory
        Directory holding the collection files.

    """

    def __init__(self, directory: Path) -> None:
        """Create an empty collection bound to *directory*."""
        self.directory = directory
        self.lock = threading.RLock()
        self.docs: dict[int, Document] = {}
        self.indexes: dict[IndexPath, dict[str, set[int]]] = {}
        self.dirty = False

    @property
    def name(self) -> str:
        """Return the collection name (its directory name)."""
        return self.directory.name

    @classmethod
    def create(cls, directory: Path) -> Collection:
        """Create the collection directory and persist an empty collection."""
        directory.mkdir(parents=True)
        collection = cls(directory)
        collection.save()
        return collection

    @classmethod
    def load(cls, directory: Path) -> Collection:
        """Load a collection from *directory*.

        Raises
        ------
        DatabaseError
            If the files cannot be read or decoded.

        """
        collection = cls(directory)
        try:
            docs = msgspec.json.decode(
                (directory / _DOCS_FILE).read_bytes(), type=dict[int, Document]
            )
            raw_paths = msgspec.json.decode(
                (directory / _INDEXES_FILE).read_bytes(), type=list[list[str]]
            )
        except (OSError, msgspec.DecodeError, msgspec.ValidationError) as exc:
            msg = f"Collection {directory.name} is unreadable: {exc}"
            raise DatabaseError(msg) from exc

        collection.docs = docs
        for path in raw_paths:
            collection.indexes[tuple(path)] = {}
        collection.reindex()
        return collection

    def save(self) -> None:
        """Write documents and index paths back to disk."""
        docs = {str(doc_id): doc for doc_id, doc in self.docs.items()}
        paths = [list(path) for path in self.indexes]
        _write_atomic(self.directory / _DOCS_FILE, msgspec.json.encode(docs))
        _write_atomic(self.directory / _INDEXES_FILE, msgspec.json.encode(paths))
        self.dirty = False

    def reindex(self) -> None:
        """Rebuild every index from the stored documents."""
        for path in self.indexes:
            self.indexes[path] = {}
        for doc_id, doc in self.docs.items():
            self._index_document(doc_id, doc)

    def _index_document(self, doc_id: int, doc: Document) -> None:
        for path, buckets in self.indexes.items():
            for value in values_at(doc, path):
                buckets.setdefault(index_key(value), set()).add(doc_id)

    def _unindex_document(self, doc_id: int, doc: Document) -> None:
        for path, buckets in self.indexes.items():
            for value in values_at(doc, path):
                key = index_key(value)
                bucket = buckets.get(key)
                if bucket is None:
                    continue
                bucket.discard(doc_id)
                if not bucket:
                    del buckets[key]

    def _new_id(self) -> int:
        while True:
            doc_id = secrets.randbits(_ID_BITS) + 1
            if doc_id not in self.docs:
                return doc_id

    def insert(self, doc: Document) -> int:
        """Store *doc* under a fresh ID and return the ID."""
        doc_id = self._new_id()
        self.docs[doc_id] = doc
        self._index_document(doc_id, doc)
        self.dirty = True
        return doc_id

    def read(self, doc_id: int) -> Document:
        """Return the document stored under *doc_id*."""
        try:
            return self.docs[doc_id]
        except KeyError:
            raise DocumentNotFoundError(doc_id) from None

    def update(self, doc_id: int, doc: Document) -> None:
        """Replace the document stored under *doc_id*."""
        self._unindex_document(doc_id, self.read(doc_id))
        self.docs[doc_id] = doc
        self._index_document(doc_id, doc)
        self.dirty = True

    def delete(self, doc_id: int) -> None:
        """Remove the document stored under *doc_id*."""
        self._unindex_document(doc_id, self.read(doc_id))
        del self.docs[doc_id]
        self.dirty = True

    def add_index(self, path: IndexPath) -> None:
        """Index *path* and populate it from existing documents."""
        if path in self.indexes:
            raise IndexExistsError(path)
        buckets: dict[str, set[int]] = {}
        for doc_id, doc in self.docs.items():
            for value in values_at(doc, path):
                buckets.setdefault(index_key(value), set()).add(doc_id)
        self.indexes[path] = buckets
        self.dirty = True

    def remove_index(self, path: IndexPath) -> None:
        """Drop the index on *path*."""
        if path not in self.indexes:
            raise IndexNotFoundError(path)
        del self.indexes[path]
        self.dirty = True

    def lookup(self, path: IndexPath) -> dict[str, set[int]]:
        """Return the buckets of the index on *path*."""
        try:
            return self.indexes[path]
        except KeyError:
            raise IndexNotFoundError(path) from None

    def page(self, page: int, total: int) -> dict[int, Document]:
        """Return the *page*-th of *total* roughly equal slices of documents."""
        ordered = sorted(self.docs)
        start = len(ordered) * page // total
        end = len(ordered) * (page + 1) // total
        return {doc_id: self.docs[doc_id] for doc_id in ordered[start:end]}

    def scrub(self) -> int:
        """Discard documents that are not JSON objects and rebuild indexes.

        Returns
        -------
        int
            Number of documents discarded.

        """
        broken = [doc_id for doc_id, doc in self.docs.items() if not isinstance(doc, dict)]
        for doc_id in broken:
            del self.docs[doc_id]
        self.reindex()
        self.dirty = True
        return len(broken)
