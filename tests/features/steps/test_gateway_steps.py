"""Behavioural coverage for the gateway access modes."""

from __future__ import annotations

import typing as typ
from unittest import mock

import falcon.testing
import pytest
from pytest_bdd import given, parsers, scenario, then, when

from tiedot_gateway.api.app import AppDependencies, create_app
from tiedot_gateway.config import AuthMode

if typ.TYPE_CHECKING:
    from falcon.testing.client import Result

    from tiedot_gateway.api.credentials import JwtCredentials
    from tiedot_gateway.db import Database


class GatewayContext(typ.TypedDict, total=False):
    """Shared mutable scenario state."""

    client: falcon.testing.TestClient
    database: mock.MagicMock
    response: Result


@scenario(
    "../gateway.feature",
    "Missing document is rejected in CORS-open mode",
)
def test_missing_document_rejected() -> None:
    """Wrap the pytest-bdd scenario for a missing parameter."""


@scenario(
    "../gateway.feature",
    "Preflight is answered without touching the database",
)
def test_preflight_answered() -> None:
    """Wrap the pytest-bdd scenario for CORS preflight."""


@scenario(
    "../gateway.feature",
    "Inserted documents can be counted",
)
def test_insert_then_count() -> None:
    """Wrap the pytest-bdd scenario for insert and count."""


@scenario(
    "../gateway.feature",
    "Auth-gated gateway rejects anonymous requests",
)
def test_auth_rejects_anonymous() -> None:
    """Wrap the pytest-bdd scenario for anonymous rejection."""


@scenario(
    "../gateway.feature",
    "Auth-gated gateway accepts a valid credential",
)
def test_auth_accepts_credential() -> None:
    """Wrap the pytest-bdd scenario for credential acceptance."""


@scenario(
    "../gateway.feature",
    "Unknown paths are not served",
)
def test_unknown_paths() -> None:
    """Wrap the pytest-bdd scenario for unknown paths."""


@pytest.fixture
def gateway_context() -> GatewayContext:
    """Provide empty scenario state."""
    return {}


def _split(target: str) -> tuple[str, str]:
    path, _, query_string = target.partition("?")
    return path, query_string


@given("a CORS-open gateway over an empty database")
def given_cors_gateway(gateway_context: GatewayContext, database: Database) -> None:
    """Serve a real database with a call-recording wrapper."""
    spy = mock.MagicMock(wraps=database)
    gateway_context["database"] = spy
    app = create_app(AppDependencies(database=spy), AuthMode.CORS_OPEN)
    gateway_context["client"] = falcon.testing.TestClient(app)


@given("an auth-gated gateway")
def given_auth_gateway(
    gateway_context: GatewayContext,
    fake_database: mock.MagicMock,
    credentials: JwtCredentials,
) -> None:
    """Serve a fake database behind the credential gate."""
    fake_database.count.return_value = 0
    gateway_context["database"] = fake_database
    deps = AppDependencies(database=fake_database, credentials=credentials)
    gateway_context["client"] = falcon.testing.TestClient(
        create_app(deps, AuthMode.AUTH_GATED)
    )


@given(parsers.parse('a collection "{name}"'))
def given_collection(gateway_context: GatewayContext, name: str) -> None:
    """Create a collection through the API."""
    response = gateway_context["client"].simulate_post(
        "/create", params={"col": name}
    )
    assert response.status_code == 201, f"could not create {name}"
    gateway_context["database"].reset_mock()


@when(parsers.parse('I POST {path} with form "{form}"'))
def when_post_form(gateway_context: GatewayContext, path: str, form: str) -> None:
    """Issue a form-encoded POST request."""
    gateway_context["response"] = gateway_context["client"].simulate_post(
        path,
        body=form,
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )


@when(parsers.parse('I send OPTIONS {path} from origin "{origin}"'))
def when_preflight(gateway_context: GatewayContext, path: str, origin: str) -> None:
    """Issue a CORS preflight request."""
    gateway_context["response"] = gateway_context["client"].simulate_options(
        path, headers={"Origin": origin}
    )


@when(parsers.parse("I request GET {target} with a valid credential"))
def when_request_get_with_credential(
    gateway_context: GatewayContext, credentials: JwtCredentials, target: str
) -> None:
    """Issue a GET request carrying a freshly issued bearer token."""
    path, query_string = _split(target)
    gateway_context["response"] = gateway_context["client"].simulate_get(
        path,
        query_string=query_string,
        headers={"Authorization": f"Bearer {credentials.issue('admin')}"},
    )


@when(parsers.re(r"I request GET (?P<target>\S+)$"))
def when_request_get(gateway_context: GatewayContext, target: str) -> None:
    """Issue a GET request without credentials."""
    path, query_string = _split(target)
    gateway_context["response"] = gateway_context["client"].simulate_get(
        path, query_string=query_string
    )


@then(parsers.parse("the response status is {status:d}"))
def then_response_status(gateway_context: GatewayContext, status: int) -> None:
    """Assert the HTTP response status code."""
    response = gateway_context["response"]
    assert response.status_code == status, (
        f"expected status {status}, got {response.status_code}: {response.text}"
    )


@then(parsers.parse('the response body is "{body}"'))
def then_response_body(gateway_context: GatewayContext, body: str) -> None:
    """Assert the exact plain-text response body."""
    response = gateway_context["response"]
    assert response.text == body, f"expected {body!r}, got {response.text!r}"


@then("the response body is empty")
def then_response_body_empty(gateway_context: GatewayContext) -> None:
    """Assert the response has no body."""
    assert gateway_context["response"].text == "", "expected an empty body"


@then(parsers.parse('the response allows origin "{origin}"'))
def then_allows_origin(gateway_context: GatewayContext, origin: str) -> None:
    """Assert the requesting origin is reflected."""
    headers = gateway_context["response"].headers
    assert headers.get("Access-Control-Allow-Origin") == origin, (
        f"expected origin {origin} to be reflected"
    )


@then("the database was not called")
def then_database_not_called(gateway_context: GatewayContext) -> None:
    """Assert no database operation ran."""
    calls = gateway_context["database"].method_calls
    assert calls == [], f"expected no database calls, got {calls}"


@then("the database was called once")
def then_database_called_once(gateway_context: GatewayContext) -> None:
    """Assert exactly one database operation ran."""
    calls = gateway_context["database"].method_calls
    assert len(calls) == 1, f"expected one database call, got {calls}"
