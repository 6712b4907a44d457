"""Shared fixtures for unit and feature tests."""

from __future__ import annotations

import typing as typ
from unittest import mock

import falcon.testing
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from tiedot_gateway.api.app import AppDependencies, create_app
from tiedot_gateway.api.credentials import JwtCredentials
from tiedot_gateway.config import AuthMode
from tiedot_gateway.db import Database

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    from pathlib import Path


class KeyPair(typ.NamedTuple):
    """PEM-encoded RSA key pair."""

    private_pem: str
    public_pem: str


def _generate_key_pair() -> KeyPair:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    public_pem = (
        key.public_key()
        .public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        .decode()
    )
    return KeyPair(private_pem, public_pem)


@pytest.fixture(scope="session")
def key_pair() -> KeyPair:
    """Return an RSA key pair shared by the whole session."""
    return _generate_key_pair()


@pytest.fixture(scope="session")
def other_key_pair() -> KeyPair:
    """Return a second, unrelated RSA key pair."""
    return _generate_key_pair()


@pytest.fixture
def credentials(key_pair: KeyPair) -> JwtCredentials:
    """Return credentials able to issue and verify tokens."""
    return JwtCredentials(public_key=key_pair.public_pem, private_key=key_pair.private_pem)


@pytest.fixture
def database(tmp_path: Path) -> cabc.Iterator[Database]:
    """Open a fresh database in a temporary directory."""
    db = Database.open(tmp_path / "db")
    yield db
    if not db.closed:
        db.close()


@pytest.fixture
def fake_database() -> mock.MagicMock:
    """Return a database stand-in that records every call.

    Read operations return empty, serializable results.
    """
    fake = mock.create_autospec(Database, instance=True)
    fake.all_collections.return_value = []
    fake.indexes.return_value = []
    fake.query.return_value = {}
    fake.get_page.return_value = {}
    fake.get.return_value = {}
    fake.count.return_value = 0
    fake.approx_doc_count.return_value = 0
    fake.insert.return_value = 1
    fake.scrub.return_value = 0
    return fake


@pytest.fixture
def cors_client(fake_database: mock.MagicMock) -> falcon.testing.TestClient:
    """Build a test client for a CORS-open app over the fake database."""
    app = create_app(AppDependencies(database=fake_database), AuthMode.CORS_OPEN)
    return falcon.testing.TestClient(app)


@pytest.fixture
def auth_client(
    fake_database: mock.MagicMock, credentials: JwtCredentials
) -> falcon.testing.TestClient:
    """Build a test client for an auth-gated app over the fake database."""
    deps = AppDependencies(database=fake_database, credentials=credentials)
    return falcon.testing.TestClient(create_app(deps, AuthMode.AUTH_GATED))


@pytest.fixture
def live_client(database: Database) -> falcon.testing.TestClient:
    """Build a test client for a CORS-open app over a real database."""
    app = create_app(AppDependencies(database=database), AuthMode.CORS_OPEN)
    return falcon.testing.TestClient(app)
