"""Domain exceptions and Falcon error handlers for the API layer.

Resources raise these exceptions instead of writing error responses
themselves; the handlers registered by ``create_app`` turn each one into
exactly one plain-text response.

Usage
-----
Register error handlers on the Falcon app::

    from tiedot_gateway.api.errors import (
        MissingParameterError,
        handle_missing_parameter,
    )

    app.add_error_handler(MissingParameterError, handle_missing_parameter)

"""

from __future__ import annotations

import typing as typ

import falcon

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from tiedot_gateway.db import DatabaseClosedError, DatabaseError

__all__ = [
    "InvalidParameterError",
    "MissingParameterError",
    "UnauthorizedError",
    "handle_database_closed",
    "handle_database_error",
    "handle_invalid_parameter",
    "handle_missing_parameter",
    "handle_route_not_found",
    "handle_unauthorized",
]


class MissingParameterError(Exception):
    """Raised when a required form or query parameter is absent or empty.

    Attributes
    ----------
    key
        Name of the missing parameter.

    """

    def __init__(self, key: str) -> None:
        """Initialize with the name of the missing parameter.

        Parameters
        ----------
        key
            Name of the missing parameter.

        """
        self.key = key
        super().__init__(f"Please pass POST/PUT/GET parameter value of '{key}'.")


class InvalidParameterError(Exception):
    """Raised when a parameter is present but cannot be interpreted.

    Attributes
    ----------
    field
        Name of the offending parameter.
    reason
        Human-readable description of the problem.

    """

    def __init__(self, field: str, reason: str) -> None:
        """Initialize with the parameter name and the reason it was rejected."""
        self.field = field
        self.reason = reason
        super().__init__(f"Parameter '{field}' {reason}.")


class UnauthorizedError(Exception):
    """Raised when a request lacks a credential the gate accepts.

    The *reason* is kept for logging only and never reaches the client.
    """

    def __init__(self, reason: str) -> None:
        """Initialize with the internal rejection reason."""
        self.reason = reason
        super().__init__(reason)


def _plain_text(resp: Response, status: str, text: str) -> None:
    resp.status = status
    resp.content_type = falcon.MEDIA_TEXT
    resp.text = text


async def handle_missing_parameter(
    _req: Request,
    resp: Response,
    ex: MissingParameterError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``MissingParameterError`` to HTTP 400 naming the missing key.

    Parameters
    ----------
    _req
        Falcon request (unused).
    resp
        Falcon response whose status and body are set.
    ex
        The exception carrying the missing key.
    _params
        URI template parameters (unused).

    """
    _plain_text(resp, falcon.HTTP_400, str(ex))


async def handle_invalid_parameter(
    _req: Request,
    resp: Response,
    ex: InvalidParameterError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``InvalidParameterError`` to HTTP 400."""
    _plain_text(resp, falcon.HTTP_400, str(ex))


async def handle_unauthorized(
    _req: Request,
    resp: Response,
    _ex: UnauthorizedError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``UnauthorizedError`` to a generic HTTP 401.

    The body never carries the rejection reason.
    """
    _plain_text(resp, falcon.HTTP_401, "Unauthorized")
    resp.set_header("WWW-Authenticate", "Bearer")


async def handle_database_error(
    _req: Request,
    resp: Response,
    ex: DatabaseError,
    _params: dict[str, typ.Any],
) -> None:
    """Map a database failure to HTTP 400 carrying its message."""
    _plain_text(resp, falcon.HTTP_400, str(ex))


async def handle_database_closed(
    _req: Request,
    resp: Response,
    ex: DatabaseClosedError,
    _params: dict[str, typ.Any],
) -> None:
    """Map requests against a shut-down database to HTTP 503."""
    _plain_text(resp, falcon.HTTP_503, str(ex))


async def handle_route_not_found(
    _req: Request,
    resp: Response,
    _ex: falcon.HTTPRouteNotFound,
    _params: dict[str, typ.Any],
) -> None:
    """Answer unregistered paths with HTTP 404."""
    _plain_text(resp, falcon.HTTP_404, "Invalid API endpoint")
