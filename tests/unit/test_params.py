"""Unit tests for tiedot_gateway.api.params parameter extraction."""

from __future__ import annotations

import falcon
import falcon.asgi
import falcon.testing
import pytest

from tiedot_gateway.api.errors import MissingParameterError, handle_missing_parameter
from tiedot_gateway.api.params import optional, require

_FORM = {"Content-Type": "application/x-www-form-urlencoded"}
_BOUNDARY = "gatewayboundary"
_MULTIPART = {"Content-Type": f"multipart/form-data; boundary={_BOUNDARY}"}


def _multipart(*parts: tuple[str, str, str]) -> bytes:
    """Encode (name, content type, value) triples as a multipart body."""
    chunks = []
    for name, content_type, value in parts:
        chunks.append(
            f"--{_BOUNDARY}\r\n"
            f'Content-Disposition: form-data; name="{name}"\r\n'
            f"Content-Type: {content_type}\r\n\r\n"
            f"{value}\r\n"
        )
    chunks.append(f"--{_BOUNDARY}--\r\n")
    return "".join(chunks).encode()


class _EchoResource:
    """Resource echoing the required ``key`` and optional ``extra`` values."""

    def __init__(self) -> None:
        self.completed = 0

    async def on_post(
        self, req: falcon.asgi.Request, resp: falcon.asgi.Response
    ) -> None:
        value = await require(req, "key")
        extra = await optional(req, "extra", "default")
        self.completed += 1
        resp.media = {"key": value, "extra": extra}

    on_get = on_post
    on_put = on_post


@pytest.fixture
def resource() -> _EchoResource:
    """Provide a fresh echo resource."""
    return _EchoResource()


@pytest.fixture
def client(resource: _EchoResource) -> falcon.testing.TestClient:
    """Build a test client around the echo resource."""
    app = falcon.asgi.App()
    app.add_route("/echo", resource)
    app.add_error_handler(MissingParameterError, handle_missing_parameter)
    return falcon.testing.TestClient(app)


def test_reads_query_string(client: falcon.testing.TestClient) -> None:
    """Values are taken from the query string."""
    result = client.simulate_get("/echo", params={"key": "a"})
    assert result.json == {"key": "a", "extra": "default"}, "wrong echo"


def test_reads_form_body(client: falcon.testing.TestClient) -> None:
    """Values are taken from a form-encoded body."""
    result = client.simulate_post("/echo", body="key=b&extra=c", headers=_FORM)
    assert result.json == {"key": "b", "extra": "c"}, "wrong echo"


def test_reads_form_body_on_put(client: falcon.testing.TestClient) -> None:
    """PUT bodies are parsed the same way."""
    result = client.simulate_put("/echo", body="key=p", headers=_FORM)
    assert result.json["key"] == "p", "wrong echo"


def test_body_wins_over_query(client: falcon.testing.TestClient) -> None:
    """A body value is preferred to a query-string value."""
    result = client.simulate_post(
        "/echo", params={"key": "query"}, body="key=body", headers=_FORM
    )
    assert result.json["key"] == "body", "body value should win"


def test_first_of_repeated_values(client: falcon.testing.TestClient) -> None:
    """The first of several values is returned."""
    result = client.simulate_post("/echo", body="key=one&key=two", headers=_FORM)
    assert result.json["key"] == "one", "first value should be used"


def test_reads_multipart_body(client: falcon.testing.TestClient) -> None:
    """Values are taken from a multipart/form-data body."""
    body = _multipart(("key", "text/plain", "m"), ("extra", "text/plain", "n"))
    result = client.simulate_post("/echo", body=body, headers=_MULTIPART)
    assert result.status == falcon.HTTP_200, f"unexpected status: {result.text}"
    assert result.json == {"key": "m", "extra": "n"}, "wrong echo"


def test_multipart_body_wins_over_query(client: falcon.testing.TestClient) -> None:
    """A multipart value is preferred to a query-string value."""
    body = _multipart(("key", "text/plain", "body"))
    result = client.simulate_put(
        "/echo", params={"key": "query"}, body=body, headers=_MULTIPART
    )
    assert result.json["key"] == "body", "multipart value should win"


def test_multipart_skips_binary_parts(client: falcon.testing.TestClient) -> None:
    """Non-text parts do not supply parameters."""
    body = _multipart(
        ("key", "text/plain", "kept"),
        ("extra", "application/octet-stream", "blob"),
    )
    result = client.simulate_post("/echo", body=body, headers=_MULTIPART)
    assert result.json == {"key": "kept", "extra": "default"}, "binary part leaked"


def test_json_body_is_not_form(client: falcon.testing.TestClient) -> None:
    """A JSON body does not supply form parameters."""
    result = client.simulate_post("/echo", json={"key": "x"})
    assert result.status == falcon.HTTP_400, "JSON body is not a form"


@pytest.mark.parametrize(
    ("kwargs"),
    [
        {},
        {"params": {"other": "x"}},
        {"query_string": "key="},
        {"body": "key=", "headers": _FORM},
    ],
)
def test_missing_or_empty_is_400(
    client: falcon.testing.TestClient,
    resource: _EchoResource,
    kwargs: dict[str, object],
) -> None:
    """Absent or empty values produce one 400 and stop the handler."""
    result = client.simulate_post("/echo", **kwargs)  # type: ignore[arg-type]
    assert result.status == falcon.HTTP_400, "expected HTTP 400"
    assert result.text == "Please pass POST/PUT/GET parameter value of 'key'.", (
        "wrong message"
    )
    assert resource.completed == 0, "handler must stop at the missing key"


def test_missing_parameter_error_message() -> None:
    """The exception carries the key and the client-facing message."""
    ex = MissingParameterError("doc")
    assert ex.key == "doc", "key attribute mismatch"
    assert str(ex) == "Please pass POST/PUT/GET parameter value of 'doc'.", (
        "wrong message"
    )
