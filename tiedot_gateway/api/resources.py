"""Falcon resource serving one operation endpoint.

An ``OperationResource`` answers every HTTP method at its path. Per
request it records the endpoint on ``req.context``, then runs its
middleware chain ending in the operation handler.

Usage
-----
Register a CORS-open insert endpoint::

    app.add_route(
        "/insert",
        OperationResource(spec, handlers.insert, deps, [CorsMiddleware()]),
    )

"""

from __future__ import annotations

import typing as typ

from tiedot_gateway.api.middleware import chain
from tiedot_gateway.logging import get_logger, log_debug

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from falcon.asgi import Request, Response

    from tiedot_gateway.api.app import AppDependencies
    from tiedot_gateway.api.endpoints import EndpointSpec
    from tiedot_gateway.api.handlers import Handler
    from tiedot_gateway.api.middleware import Middleware

__all__ = ["OperationResource"]

logger = get_logger(__name__)


class OperationResource:
    """Resource binding an endpoint to its handler and middleware chain.

    Parameters
    ----------
    spec
        The endpoint served.
    handler
        Terminal responder for the operation.
    dependencies
        Collaborators passed to *handler*.
    middleware
        Chain run before *handler*, outermost first.

    """

    def __init__(
        self,
        spec: EndpointSpec,
        handler: Handler,
        dependencies: AppDependencies,
        middleware: cabc.Sequence[Middleware] = (),
    ) -> None:
        """Compose the middleware chain once for the resource's lifetime."""
        self.spec = spec
        self.middleware = tuple(middleware)
        self._handler = handler
        self._dependencies = dependencies
        self._responder = chain(self.middleware, self._terminal)

    async def _terminal(self, req: Request, resp: Response) -> None:
        await self._handler(req, resp, self._dependencies)

    async def _dispatch(self, req: Request, resp: Response) -> None:
        req.context.endpoint = self.spec
        req.context.credential = None
        if self.spec.stop_the_world:
            log_debug(logger, "%s %s (stop-the-world)", req.method, self.spec.path)
        await self._responder(req, resp)

    on_get = _dispatch
    on_post = _dispatch
    on_put = _dispatch
    on_delete = _dispatch
    on_patch = _dispatch
    on_head = _dispatch
    on_options = _dispatch
