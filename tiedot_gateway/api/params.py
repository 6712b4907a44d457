"""Form and query-string parameter extraction.

Parameters may arrive in the query string or in an
``application/x-www-form-urlencoded`` or ``multipart/form-data`` body.
Body values win when a key appears in both. Multipart parts that are not
text, such as binary file uploads, are ignored. The decoded body is
cached on ``req.context.form`` so it is read at most once per request.

Usage
-----
Inside a responder::

    col = await require(req, "col")
    page = await optional(req, "page", "0")

"""

from __future__ import annotations

import typing as typ

import falcon

from tiedot_gateway.api.errors import MissingParameterError

if typ.TYPE_CHECKING:
    from falcon.asgi import Request

__all__ = ["load_form", "optional", "require"]


def _first(value: object) -> str | None:
    if isinstance(value, list):
        return str(value[0]) if value else None
    if value is None:
        return None
    return str(value)


def _media_type(req: Request) -> str:
    content_type = req.content_type or ""
    return content_type.split(";", 1)[0].strip().lower()


async def _read_multipart(req: Request) -> dict[str, list[str]]:
    form: dict[str, list[str]] = {}
    async for part in await req.get_media():
        text = await part.get_text()
        if text is None or not part.name:
            continue
        form.setdefault(part.name, []).append(text)
    return form


async def load_form(req: Request) -> dict[str, typ.Any]:
    """Return the decoded form body, reading it on first use.

    Requests without a form body yield an empty mapping.
    """
    form = getattr(req.context, "form", None)
    if form is None:
        form = {}
        media_type = _media_type(req)
        if media_type == falcon.MEDIA_URLENCODED:
            form = await req.get_media(default_when_empty={})
        elif media_type == falcon.MEDIA_MULTIPART:
            form = await _read_multipart(req)
        req.context.form = form
    return form


async def optional(req: Request, key: str, default: str = "") -> str:
    """Return the first non-empty value bound to *key*, or *default*."""
    form = await load_form(req)
    value = _first(form.get(key))
    if not value:
        value = _first(req.get_param_as_list(key))
    return value or default


async def require(req: Request, key: str) -> str:
    """Return the first value bound to *key*.

    Parameters
    ----------
    req
        Falcon request carrying the parameters.
    key
        Parameter name.

    Returns
    -------
    str
        The parameter value; never empty.

    Raises
    ------
    MissingParameterError
        If *key* is absent or bound only to an empty value.

    """
    value = await optional(req, key)
    if not value:
        raise MissingParameterError(key)
    return value
