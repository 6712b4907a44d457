"""Application factory and endpoint registry for the gateway.

``create_app()`` builds the Falcon ASGI application. The app object is
the route table; nothing is registered globally.

Registration happens in a fixed order:

1. The always-public endpoints ``/``, ``/version`` and ``/memstats``,
   unwrapped.
2. The operation endpoints, each wrapped according to the ``AuthMode``:
   ``AUTH_GATED`` wraps them in ``AuthMiddleware`` only and adds the
   credential endpoints; ``CORS_OPEN`` wraps them in ``CorsMiddleware``
   only. The two are never combined.
3. Error handlers.

Usage
-----
Create a CORS-open app over an open database::

    from tiedot_gateway.api.app import AppDependencies, create_app
    from tiedot_gateway.config import AuthMode

    app = create_app(AppDependencies(database=db), AuthMode.CORS_OPEN)

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import falcon
import falcon.asgi

from tiedot_gateway.api import handlers
from tiedot_gateway.api.endpoints import (
    CHECK_CREDENTIAL_ENDPOINT,
    ENDPOINTS,
    ISSUE_CREDENTIAL_ENDPOINT,
)
from tiedot_gateway.api.errors import (
    InvalidParameterError,
    MissingParameterError,
    UnauthorizedError,
    handle_database_closed,
    handle_database_error,
    handle_invalid_parameter,
    handle_missing_parameter,
    handle_route_not_found,
    handle_unauthorized,
)
from tiedot_gateway.api.middleware import AuthMiddleware, CorsMiddleware
from tiedot_gateway.api.public import MemStatsResource, VersionResource, WelcomeResource
from tiedot_gateway.api.resources import OperationResource
from tiedot_gateway.config import AuthMode
from tiedot_gateway.db import DatabaseClosedError, DatabaseError
from tiedot_gateway.logging import get_logger, log_info

if typ.TYPE_CHECKING:
    from tiedot_gateway.api.credentials import JwtCredentials
    from tiedot_gateway.api.middleware import Middleware
    from tiedot_gateway.db import Database

__all__ = ["AppDependencies", "create_app"]

logger = get_logger(__name__)


@dc.dataclass(frozen=True, slots=True)
class AppDependencies:
    """Collaborators shared by every operation handler.

    Attributes
    ----------
    database
        The open database handle.
    credentials
        Credential verifier and issuer. Required in auth-gated mode.

    """

    database: Database
    credentials: JwtCredentials | None = None


def _operation_middleware(
    mode: AuthMode, dependencies: AppDependencies
) -> list[Middleware]:
    if mode is AuthMode.AUTH_GATED:
        if dependencies.credentials is None:
            msg = "auth-gated mode requires credentials"
            raise ValueError(msg)
        return [AuthMiddleware(dependencies.credentials)]
    return [CorsMiddleware()]


def create_app(
    dependencies: AppDependencies,
    mode: AuthMode = AuthMode.CORS_OPEN,
) -> falcon.asgi.App:
    """Create and configure the Falcon ASGI application.

    Parameters
    ----------
    dependencies
        Collaborators for the operation handlers.
    mode
        How the operation endpoints are exposed. Fixed for the life of
        the returned app.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    Raises
    ------
    ValueError
        If *mode* is auth-gated but no credentials are provided.

    """
    app = falcon.asgi.App()

    # Always public, regardless of mode
    app.add_route("/", WelcomeResource())
    app.add_route("/version", VersionResource())
    app.add_route("/memstats", MemStatsResource())

    middleware = _operation_middleware(mode, dependencies)
    for spec in ENDPOINTS:
        app.add_route(
            spec.path,
            OperationResource(
                spec, handlers.HANDLERS[spec.operation], dependencies, middleware
            ),
        )

    if mode is AuthMode.AUTH_GATED:
        issue = ISSUE_CREDENTIAL_ENDPOINT
        check = CHECK_CREDENTIAL_ENDPOINT
        app.add_route(
            issue.path,
            OperationResource(issue, handlers.HANDLERS[issue.operation], dependencies),
        )
        app.add_route(
            check.path,
            OperationResource(
                check, handlers.HANDLERS[check.operation], dependencies, middleware
            ),
        )
        log_info(logger, "JWT authentication is enabled.")
    else:
        log_info(logger, "HTTP CORS is enabled.")

    app.add_error_handler(falcon.HTTPRouteNotFound, handle_route_not_found)
    app.add_error_handler(MissingParameterError, handle_missing_parameter)
    app.add_error_handler(InvalidParameterError, handle_invalid_parameter)
    app.add_error_handler(UnauthorizedError, handle_unauthorized)
    app.add_error_handler(DatabaseError, handle_database_error)
    app.add_error_handler(DatabaseClosedError, handle_database_closed)

    return app
