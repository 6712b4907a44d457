"""Embedded document database shared by every gateway request.

``Database`` owns the collections under one directory. It is safe to
call from many threads at once:

- data operations (insert, read, update, delete, query, count, paging)
  hold the schema lock in shared mode plus the target collection's lock;
- stop-the-world operations (create, rename, drop, scrub, sync, index
  changes, dump, close) hold the schema lock exclusively.

Writes are kept in memory until ``sync()`` (or ``dump()``/``close()``,
which sync first) persists dirty collections.

Usage
-----
>>> db = Database.open("/tmp/d1")
>>> db.create("Feeds")
>>> doc_id = db.insert("Feeds", {"url": "http://example.test"})
>>> db.close()

"""

from __future__ import annotations

import contextlib
import shutil
import threading
import typing as typ
from pathlib import Path

from tiedot_gateway.db.collection import Collection
from tiedot_gateway.db.errors import (
    CollectionExistsError,
    CollectionNotFoundError,
    DatabaseClosedError,
    DatabaseError,
)
from tiedot_gateway.db.query import evaluate
from tiedot_gateway.logging import get_logger, log_info

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from tiedot_gateway.db.collection import Document, IndexPath

__all__ = ["Database"]

logger = get_logger(__name__)


class _SchemaLock:
    """Readers-writer lock: many shared holders or a single exclusive one."""

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._readers = 0
        self._writer = False

    @contextlib.contextmanager
    def shared(self) -> cabc.Iterator[None]:
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextlib.contextmanager
    def exclusive(self) -> cabc.Iterator[None]:
        with self._cond:
            while self._writer or self._readers:
                self._cond.wait()
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


def _valid_name(name: str) -> bool:
    return bool(name) and name not in {".", ".."} and "/" not in name and "\\" not in name


class Database:
    """Collections stored under a single directory.

    Use :meth:`open` rather than the constructor.
    """

    def __init__(self, directory: Path, collections: dict[str, Collection]) -> None:
        """Bind an already-loaded set of collections to *directory*."""
        self.directory = directory
        self._collections = collections
        self._schema = _SchemaLock()
        self._closed = False

    @classmethod
    def open(cls, directory: str | Path) -> Database:
        """Open (creating if needed) the database under *directory*.

        Raises
        ------
        DatabaseError
            If the directory cannot be created or a collection cannot be
            loaded.

        """
        root = Path(directory)
        try:
            root.mkdir(parents=True, exist_ok=True)
            children = sorted(child for child in root.iterdir() if child.is_dir())
        except OSError as exc:
            msg = f"Cannot use {str(root)!r} as a database directory: {exc}"
            raise DatabaseError(msg) from exc

        collections = {child.name: Collection.load(child) for child in children}
        log_info(logger, "Opened database at %s (%d collections)", root, len(collections))
        return cls(root, collections)

    @property
    def closed(self) -> bool:
        """Return True once :meth:`close` has run."""
        return self._closed

    def _check_open(self) -> None:
        if self._closed:
            raise DatabaseClosedError

    def _collection(self, name: str) -> Collection:
        try:
            return self._collections[name]
        except KeyError:
            raise CollectionNotFoundError(name) from None

    @contextlib.contextmanager
    def _shared(self, name: str) -> cabc.Iterator[Collection]:
        with self._schema.shared():
            self._check_open()
            collection = self._collection(name)
            with collection.lock:
                yield collection

    @contextlib.contextmanager
    def _exclusive(self) -> cabc.Iterator[None]:
        with self._schema.exclusive():
            self._check_open()
            yield

    # Collection management (stop-the-world)

    def all_collections(self) -> list[str]:
        """Return the names of every collection, sorted."""
        with self._exclusive():
            return sorted(self._collections)

    def create(self, name: str) -> None:
        """Create an empty collection called *name*."""
        with self._exclusive():
            if not _valid_name(name):
                msg = f"Invalid collection name {name!r}"
                raise DatabaseError(msg)
            if name in self._collections:
                raise CollectionExistsError(name)
            try:
                self._collections[name] = Collection.create(self.directory / name)
            except OSError as exc:
                msg = f"Failed to create collection {name}: {exc}"
                raise DatabaseError(msg) from exc

    def rename(self, old: str, new: str) -> None:
        """Rename collection *old* to *new*."""
        with self._exclusive():
            collection = self._collection(old)
            if not _valid_name(new):
                msg = f"Invalid collection name {new!r}"
                raise DatabaseError(msg)
            if new in self._collections:
                raise CollectionExistsError(new)
            target = self.directory / new
            try:
                collection.save()
                collection.directory.rename(target)
            except OSError as exc:
                msg = f"Failed to rename collection {old} to {new}: {exc}"
                raise DatabaseError(msg) from exc
            collection.directory = target
            self._collections[new] = self._collections.pop(old)

    def drop(self, name: str) -> None:
        """Delete collection *name* and its files."""
        with self._exclusive():
            collection = self._collection(name)
            try:
                shutil.rmtree(collection.directory)
            except OSError as exc:
                msg = f"Failed to drop collection {name}: {exc}"
                raise DatabaseError(msg) from exc
            del self._collections[name]

    def scrub(self, name: str) -> int:
        """Repair collection *name*; return the number of documents discarded."""
        with self._exclusive():
            collection = self._collection(name)
            discarded = collection.scrub()
            collection.save()
            return discarded

    def _sync_all(self) -> None:
        for collection in self._collections.values():
            if collection.dirty:
                collection.save()

    def sync(self) -> None:
        """Persist every collection with unsaved changes."""
        with self._exclusive():
            self._sync_all()

    # Index management (stop-the-world)

    def index(self, name: str, path: IndexPath) -> None:
        """Index *path* in collection *name*."""
        with self._exclusive():
            self._collection(name).add_index(path)

    def indexes(self, name: str) -> list[list[str]]:
        """Return the indexed paths of collection *name*."""
        with self._exclusive():
            return [list(path) for path in self._collection(name).indexes]

    def unindex(self, name: str, path: IndexPath) -> None:
        """Remove the index on *path* from collection *name*."""
        with self._exclusive():
            self._collection(name).remove_index(path)

    # Document management

    def insert(self, name: str, doc: Document) -> int:
        """Insert *doc* into collection *name* and return its new ID."""
        with self._shared(name) as collection:
            return collection.insert(doc)

    def get(self, name: str, doc_id: int) -> Document:
        """Return document *doc_id* from collection *name*."""
        with self._shared(name) as collection:
            return collection.read(doc_id)

    def get_page(self, name: str, page: int, total: int) -> dict[int, Document]:
        """Return page *page* of *total* from collection *name*."""
        with self._shared(name) as collection:
            return collection.page(page, total)

    def update(self, name: str, doc_id: int, doc: Document) -> None:
        """Replace document *doc_id* in collection *name*."""
        with self._shared(name) as collection:
            collection.update(doc_id, doc)

    def delete(self, name: str, doc_id: int) -> None:
        """Delete document *doc_id* from collection *name*."""
        with self._shared(name) as collection:
            collection.delete(doc_id)

    def approx_doc_count(self, name: str) -> int:
        """Return the number of documents in collection *name*."""
        with self._shared(name) as collection:
            return len(collection.docs)

    # Query

    def query(self, name: str, query: object) -> dict[int, Document]:
        """Return the documents of collection *name* matched by *query*."""
        with self._shared(name) as collection:
            return {doc_id: collection.docs[doc_id] for doc_id in evaluate(query, collection)}

    def count(self, name: str, query: object) -> int:
        """Return how many documents of collection *name* match *query*."""
        with self._shared(name) as collection:
            return len(evaluate(query, collection))

    # Maintenance (stop-the-world)

    def dump(self, dest: str | Path) -> None:
        """Persist pending changes and copy the database into *dest*."""
        with self._exclusive():
            self._sync_all()
            try:
                shutil.copytree(self.directory, Path(dest), dirs_exist_ok=True)
            except OSError as exc:
                msg = f"Failed to dump database into {str(dest)!r}: {exc}"
                raise DatabaseError(msg) from exc
        log_info(logger, "Dumped database into %s", dest)

    def close(self) -> None:
        """Persist pending changes and invalidate the handle."""
        with self._exclusive():
            self._sync_all()
            self._closed = True
        log_info(logger, "Closed database at %s", self.directory)
