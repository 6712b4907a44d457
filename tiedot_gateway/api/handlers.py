"""Terminal responders for the operation endpoints.

Each handler extracts its parameters, validates their shape, and makes
one call into the database. Blocking database calls run in a worker
thread so the event loop keeps serving other requests. Failures are
raised, never written, so every request gets exactly one response.
"""

from __future__ import annotations

import asyncio
import typing as typ

import falcon
import msgspec

from tiedot_gateway.api.credentials import authenticate
from tiedot_gateway.api.endpoints import Operation
from tiedot_gateway.api.errors import InvalidParameterError, UnauthorizedError
from tiedot_gateway.api.params import optional, require
from tiedot_gateway.logging import get_logger, log_info

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from tiedot_gateway.api.app import AppDependencies
    from tiedot_gateway.db.collection import Document, IndexPath

__all__ = ["HANDLERS", "Handler"]

logger = get_logger(__name__)

Handler = typ.Callable[["Request", "Response", "AppDependencies"], typ.Awaitable[None]]


def _decode_json(raw: str, field: str) -> object:
    try:
        return msgspec.json.decode(raw)
    except msgspec.DecodeError as exc:
        raise InvalidParameterError(field, "is not valid JSON") from exc
    except RecursionError as exc:
        raise InvalidParameterError(field, "is nested too deeply") from exc


def _decode_document(raw: str, field: str) -> Document:
    doc = _decode_json(raw, field)
    if not isinstance(doc, dict):
        raise InvalidParameterError(field, "must be a JSON object")
    return doc


def _decode_query(raw: str) -> object:
    if raw.strip() == "all":
        return "all"
    return _decode_json(raw, "q")


def _parse_int(raw: str, field: str) -> int:
    try:
        return int(raw)
    except ValueError as exc:
        raise InvalidParameterError(field, "must be an integer") from exc


def _parse_path(raw: str) -> IndexPath:
    path = tuple(segment.strip() for segment in raw.split(","))
    if not all(path):
        raise InvalidParameterError("path", "must be comma-separated attribute names")
    return path


def _text(resp: Response, body: str, status: str = falcon.HTTP_200) -> None:
    resp.status = status
    resp.content_type = falcon.MEDIA_TEXT
    resp.text = body


def _documents(docs: dict[int, Document]) -> dict[str, Document]:
    return {str(doc_id): doc for doc_id, doc in docs.items()}


# Collection management


async def create(req: Request, resp: Response, deps: AppDependencies) -> None:
    """Create a collection."""
    col = await require(req, "col")
    await asyncio.to_thread(deps.database.create, col)
    resp.status = falcon.HTTP_201


async def rename(req: Request, _resp: Response, deps: AppDependencies) -> None:
    """Rename a collection."""
    old = await require(req, "old")
    new = await require(req, "new")
    await asyncio.to_thread(deps.database.rename, old, new)


async def drop(req: Request, _resp: Response, deps: AppDependencies) -> None:
    """Drop a collection."""
    col = await require(req, "col")
    await asyncio.to_thread(deps.database.drop, col)


async def list_all(_req: Request, resp: Response, deps: AppDependencies) -> None:
    """List collection names."""
    resp.media = await asyncio.to_thread(deps.database.all_collections)


async def scrub(req: Request, _resp: Response, deps: AppDependencies) -> None:
    """Repair a collection."""
    col = await require(req, "col")
    discarded = await asyncio.to_thread(deps.database.scrub, col)
    log_info(logger, "Scrubbed %s, discarded %d documents", col, discarded)


async def sync(_req: Request, _resp: Response, deps: AppDependencies) -> None:
    """Persist pending changes."""
    await asyncio.to_thread(deps.database.sync)


# Query


async def query(req: Request, resp: Response, deps: AppDependencies) -> None:
    """Return matching documents keyed by ID."""
    col = await require(req, "col")
    q = _decode_query(await require(req, "q"))
    docs = await asyncio.to_thread(deps.database.query, col, q)
    resp.media = _documents(docs)


async def count(req: Request, resp: Response, deps: AppDependencies) -> None:
    """Return the number of matching documents."""
    col = await require(req, "col")
    q = _decode_query(await require(req, "q"))
    total = await asyncio.to_thread(deps.database.count, col, q)
    _text(resp, str(total))


# Document management


async def insert(req: Request, resp: Response, deps: AppDependencies) -> None:
    """Insert a document and return its new ID."""
    col = await require(req, "col")
    doc = _decode_document(await require(req, "doc"), "doc")
    doc_id = await asyncio.to_thread(deps.database.insert, col, doc)
    _text(resp, str(doc_id), falcon.HTTP_201)


async def get(req: Request, resp: Response, deps: AppDependencies) -> None:
    """Return one document."""
    col = await require(req, "col")
    doc_id = _parse_int(await require(req, "id"), "id")
    resp.media = await asyncio.to_thread(deps.database.get, col, doc_id)


async def get_page(req: Request, resp: Response, deps: AppDependencies) -> None:
    """Return one page of a collection's documents keyed by ID."""
    col = await require(req, "col")
    page = _parse_int(await require(req, "page"), "page")
    total = _parse_int(await require(req, "total"), "total")
    if total < 1:
        raise InvalidParameterError("total", "must be at least 1")
    if not 0 <= page < total:
        raise InvalidParameterError("page", "must be between 0 and total - 1")
    docs = await asyncio.to_thread(deps.database.get_page, col, page, total)
    resp.media = _documents(docs)


async def update(req: Request, _resp: Response, deps: AppDependencies) -> None:
    """Replace a document."""
    col = await require(req, "col")
    doc_id = _parse_int(await require(req, "id"), "id")
    doc = _decode_document(await require(req, "doc"), "doc")
    await asyncio.to_thread(deps.database.update, col, doc_id, doc)


async def delete(req: Request, _resp: Response, deps: AppDependencies) -> None:
    """Delete a document."""
    col = await require(req, "col")
    doc_id = _parse_int(await require(req, "id"), "id")
    await asyncio.to_thread(deps.database.delete, col, doc_id)


async def approx_doc_count(
    req: Request, resp: Response, deps: AppDependencies
) -> None:
    """Return the number of documents in a collection."""
    col = await require(req, "col")
    total = await asyncio.to_thread(deps.database.approx_doc_count, col)
    _text(resp, str(total))


# Index management


async def index(req: Request, resp: Response, deps: AppDependencies) -> None:
    """Index a path."""
    col = await require(req, "col")
    path = _parse_path(await require(req, "path"))
    await asyncio.to_thread(deps.database.index, col, path)
    resp.status = falcon.HTTP_201


async def indexes(req: Request, resp: Response, deps: AppDependencies) -> None:
    """List indexed paths."""
    col = await require(req, "col")
    resp.media = await asyncio.to_thread(deps.database.indexes, col)


async def unindex(req: Request, _resp: Response, deps: AppDependencies) -> None:
    """Remove an index."""
    col = await require(req, "col")
    path = _parse_path(await require(req, "path"))
    await asyncio.to_thread(deps.database.unindex, col, path)


# Misc


async def shutdown(_req: Request, _resp: Response, deps: AppDependencies) -> None:
    """Close the database handle; later requests against it fail."""
    await asyncio.to_thread(deps.database.close)
    log_info(logger, "Database closed by shutdown request")


async def dump(req: Request, _resp: Response, deps: AppDependencies) -> None:
    """Copy the database into another directory."""
    dest = await require(req, "dest")
    await asyncio.to_thread(deps.database.dump, dest)


# Credentials


async def issue_credential(
    req: Request, resp: Response, deps: AppDependencies
) -> None:
    """Exchange a user name and password for a bearer credential."""
    user = await require(req, "user")
    password = await optional(req, "pass")
    if deps.credentials is None:
        msg = "credential issuance is not configured"
        raise UnauthorizedError(msg)
    if not await asyncio.to_thread(authenticate, deps.database, user, password):
        msg = f"wrong user name or password for {user!r}"
        raise UnauthorizedError(msg)
    token = deps.credentials.issue(user)
    resp.set_header("Authorization", f"Bearer {token}")
    log_info(logger, "Issued credential for %s", user)


async def check_credential(
    _req: Request, resp: Response, _deps: AppDependencies
) -> None:
    """Succeed; reaching this handler means the credential was accepted."""
    _text(resp, "")


HANDLERS: dict[Operation, Handler] = {
    Operation.CREATE: create,
    Operation.RENAME: rename,
    Operation.DROP: drop,
    Operation.ALL: list_all,
    Operation.SCRUB: scrub,
    Operation.SYNC: sync,
    Operation.QUERY: query,
    Operation.COUNT: count,
    Operation.INSERT: insert,
    Operation.GET: get,
    Operation.GET_PAGE: get_page,
    Operation.UPDATE: update,
    Operation.DELETE: delete,
    Operation.APPROX_DOC_COUNT: approx_doc_count,
    Operation.INDEX: index,
    Operation.INDEXES: indexes,
    Operation.UNINDEX: unindex,
    Operation.SHUTDOWN: shutdown,
    Operation.DUMP: dump,
    Operation.ISSUE_CREDENTIAL: issue_credential,
    Operation.CHECK_CREDENTIAL: check_credential,
}
