"""Per-endpoint middleware for operation resources.

Each operation resource runs an explicit, ordered chain of middleware
objects before its terminal responder. A middleware receives the request,
the response and the next responder in the chain, and decides whether to
call it.

Two middleware exist and an endpoint carries exactly one of them:

- ``CorsMiddleware`` adds cross-origin headers and answers preflight
  requests itself.
- ``AuthMiddleware`` requires a verified bearer credential.

Usage
-----
Compose a chain around a responder::

    responder = chain([CorsMiddleware()], terminal)
    await responder(req, resp)

"""

from __future__ import annotations

import functools
import typing as typ

from tiedot_gateway.api.credentials import CredentialError
from tiedot_gateway.api.errors import UnauthorizedError
from tiedot_gateway.logging import get_logger, log_warning

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from falcon.asgi import Request, Response

    from tiedot_gateway.api.credentials import CredentialVerifier

__all__ = [
    "CORS_HEADERS",
    "AuthMiddleware",
    "CorsMiddleware",
    "Middleware",
    "Responder",
    "chain",
]

logger = get_logger(__name__)

Responder = typ.Callable[["Request", "Response"], typ.Awaitable[None]]

# Headers set on every CORS-wrapped response, in this order.
CORS_HEADERS: tuple[tuple[str, str], ...] = (
    ("Cache-Control", "must-revalidate"),
    ("Access-Control-Expose-Headers", "Authorization"),
    ("Access-Control-Allow-Methods", "POST, GET, OPTIONS, PUT, DELETE"),
    (
        "Access-Control-Allow-Headers",
        "Content-Type, Content-Length, Accept-Encoding, X-CSRF-Token, Authorization",
    ),
)


class Middleware(typ.Protocol):
    """A link in an operation resource's middleware chain."""

    async def handle(
        self, req: Request, resp: Response, next_: Responder
    ) -> None:
        """Process the request and optionally delegate to *next_*."""
        ...


class CorsMiddleware:
    """Permissive cross-origin access for browser clients.

    Any ``Origin`` is reflected back as the allowed origin; in CORS-open
    mode every origin is trusted.
    Preflight (OPTIONS) requests end here with an empty 200 response.
    """

    async def handle(
        self, req: Request, resp: Response, next_: Responder
    ) -> None:
        """Set the CORS headers, then delegate unless this is a preflight.

        Parameters
        ----------
        req
            Falcon request whose ``Origin`` header is reflected.
        resp
            Falcon response receiving the CORS headers.
        next_
            Remainder of the chain; not called for OPTIONS.

        """
        for name, value in CORS_HEADERS:
            resp.set_header(name, value)
        origin = req.get_header("Origin")
        if origin:
            resp.set_header("Access-Control-Allow-Origin", origin)
        if req.method == "OPTIONS":
            return
        await next_(req, resp)


def _bearer_token(header: str | None) -> str:
    if not header:
        msg = "missing Authorization header"
        raise UnauthorizedError(msg)
    scheme, _, token = header.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        msg = "Authorization header is not a bearer credential"
        raise UnauthorizedError(msg)
    return token


class AuthMiddleware:
    """Gate that admits only requests with a verifiable bearer credential.

    Parameters
    ----------
    verifier
        Checks the token taken from ``Authorization: Bearer <token>``.

    """

    def __init__(self, verifier: CredentialVerifier) -> None:
        """Bind the gate to *verifier*."""
        self._verifier = verifier

    async def handle(
        self, req: Request, resp: Response, next_: Responder
    ) -> None:
        """Verify the credential and delegate, or raise ``UnauthorizedError``.

        The verified claims are stored on ``req.context.credential``.
        """
        try:
            token = _bearer_token(req.get_header("Authorization"))
            claims = self._verifier.verify(token)
        except (UnauthorizedError, CredentialError) as exc:
            log_warning(logger, "Rejected request to %s: %s", req.path, exc)
            raise UnauthorizedError(str(exc)) from exc
        req.context.credential = claims
        await next_(req, resp)


def chain(
    middleware: cabc.Sequence[Middleware], terminal: Responder
) -> Responder:
    """Return a responder running *middleware* in order, then *terminal*."""
    responder = terminal
    for link in reversed(middleware):
        responder = functools.partial(link.handle, next_=responder)
    return responder
