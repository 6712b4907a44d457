"""The fixed table of operation endpoints.

Every operation the gateway exposes is listed once in ``ENDPOINTS`` with
its path and whether it is stop-the-world, i.e. needs exclusive access to
the database's global state (schema or index changes, full scans, dump,
shutdown). The flag is informational at this layer; the database
serializes those operations itself.
"""

from __future__ import annotations

import dataclasses as dc
import enum

__all__ = [
    "CHECK_CREDENTIAL_ENDPOINT",
    "ENDPOINTS",
    "ISSUE_CREDENTIAL_ENDPOINT",
    "EndpointSpec",
    "Operation",
]


class Operation(enum.StrEnum):
    """Logical operations reachable over HTTP."""

    CREATE = "create"
    RENAME = "rename"
    DROP = "drop"
    ALL = "all"
    SCRUB = "scrub"
    SYNC = "sync"
    QUERY = "query"
    COUNT = "count"
    INSERT = "insert"
    GET = "get"
    GET_PAGE = "getpage"
    UPDATE = "update"
    DELETE = "delete"
    APPROX_DOC_COUNT = "approxdoccount"
    INDEX = "index"
    INDEXES = "indexes"
    UNINDEX = "unindex"
    SHUTDOWN = "shutdown"
    DUMP = "dump"
    ISSUE_CREDENTIAL = "getjwt"
    CHECK_CREDENTIAL = "checkjwt"


@dc.dataclass(frozen=True, slots=True)
class EndpointSpec:
    """Binding of a URL path to a logical operation.

    Attributes
    ----------
    path
        Exact, case-sensitive route path.
    operation
        Operation served at *path*.
    stop_the_world
        True when the operation requires exclusive database access.

    """

    path: str
    operation: Operation
    stop_the_world: bool


def _endpoint(operation: Operation, *, stop_the_world: bool) -> EndpointSpec:
    return EndpointSpec(f"/{operation.value}", operation, stop_the_world)


ENDPOINTS: tuple[EndpointSpec, ...] = (
    # collection management
    _endpoint(Operation.CREATE, stop_the_world=True),
    _endpoint(Operation.RENAME, stop_the_world=True),
    _endpoint(Operation.DROP, stop_the_world=True),
    _endpoint(Operation.ALL, stop_the_world=True),
    _endpoint(Operation.SCRUB, stop_the_world=True),
    _endpoint(Operation.SYNC, stop_the_world=True),
    # query
    _endpoint(Operation.QUERY, stop_the_world=False),
    _endpoint(Operation.COUNT, stop_the_world=False),
    # document management
    _endpoint(Operation.INSERT, stop_the_world=False),
    _endpoint(Operation.GET, stop_the_world=False),
    _endpoint(Operation.GET_PAGE, stop_the_world=False),
    _endpoint(Operation.UPDATE, stop_the_world=False),
    _endpoint(Operation.DELETE, stop_the_world=False),
    _endpoint(Operation.APPROX_DOC_COUNT, stop_the_world=False),
    # index management
    _endpoint(Operation.INDEX, stop_the_world=True),
    _endpoint(Operation.INDEXES, stop_the_world=True),
    _endpoint(Operation.UNINDEX, stop_the_world=True),
    # misc
    _endpoint(Operation.SHUTDOWN, stop_the_world=True),
    _endpoint(Operation.DUMP, stop_the_world=True),
)

# Registered only in auth-gated mode.
ISSUE_CREDENTIAL_ENDPOINT = _endpoint(Operation.ISSUE_CREDENTIAL, stop_the_world=False)
CHECK_CREDENTIAL_ENDPOINT = _endpoint(Operation.CHECK_CREDENTIAL, stop_the_world=False)
