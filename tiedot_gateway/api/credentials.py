"""Bearer credential issuance and verification.

Credentials are RS256 JWTs. The auth gate only needs the
``CredentialVerifier`` protocol; ``JwtCredentials`` implements it with
PyJWT and can also issue tokens when it holds the private key.

User accounts live in the ``jwt`` collection of the database. Each
account is a document ``{"user": ..., "pass": ...}``; a fresh database
is seeded with an ``admin`` account whose password is empty.

Usage
-----
Build credentials from configuration::

    credentials = JwtCredentials.from_config(config)
    token = credentials.issue("admin")
    claims = credentials.verify(token)

"""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import hmac
import typing as typ

import jwt
from cryptography.hazmat.primitives import serialization

from tiedot_gateway.db import CollectionExistsError, CollectionNotFoundError
from tiedot_gateway.errors import ConfigError
from tiedot_gateway.logging import get_logger, log_info

if typ.TYPE_CHECKING:
    from tiedot_gateway.config import ServerConfig
    from tiedot_gateway.db import Database

__all__ = [
    "ADMIN_USER",
    "CREDENTIAL_COLLECTION",
    "CredentialError",
    "CredentialVerifier",
    "JwtCredentials",
    "authenticate",
    "seed_credential_store",
]

logger = get_logger(__name__)

CREDENTIAL_COLLECTION = "jwt"
ADMIN_USER = "admin"
_ALGORITHM = "RS256"
_USER_PATH = ("user",)


class CredentialError(Exception):
    """Raised when a credential cannot be verified or issued."""


class CredentialVerifier(typ.Protocol):
    """Anything that can check a bearer token."""

    def verify(self, token: str) -> dict[str, typ.Any]:
        """Return the token's claims or raise ``CredentialError``."""
        ...


def _public_key_from_private(private_pem: str) -> str:
    try:
        private_key = serialization.load_pem_private_key(
            private_pem.encode(), password=None
        )
    except (ValueError, TypeError) as exc:
        msg = "TIEDOT_JWT_PRIVATE_KEY_FILE does not hold an unencrypted PEM private key"
        raise ConfigError(msg) from exc
    public_bytes = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return public_bytes.decode()


@dc.dataclass(frozen=True, slots=True)
class JwtCredentials:
    """RS256 JWT verifier and issuer.

    Attributes
    ----------
    public_key
        PEM public key used for verification.
    private_key
        PEM private key used for issuance. Empty disables ``issue``.
    ttl_seconds
        Lifetime of issued tokens.

    """

    public_key: str
    private_key: str = dc.field(default="", repr=False)
    ttl_seconds: int = 72 * 60 * 60

    @classmethod
    def from_config(cls, config: ServerConfig) -> JwtCredentials:
        """Build credentials from the configured key pair.

        The public key is derived from the private key when only the
        latter is configured.

        Raises
        ------
        ConfigError
            If the private key cannot be parsed while deriving the
            public key.

        """
        public_key = config.jwt_public_key
        if not public_key:
            public_key = _public_key_from_private(config.jwt_private_key)
        return cls(
            public_key=public_key,
            private_key=config.jwt_private_key,
            ttl_seconds=config.jwt_ttl_seconds,
        )

    def verify(self, token: str) -> dict[str, typ.Any]:
        """Return the claims of *token* after checking signature and expiry.

        Raises
        ------
        CredentialError
            If the token is malformed, expired, or not signed by our key.

        """
        try:
            return jwt.decode(
                token,
                self.public_key,
                algorithms=[_ALGORITHM],
                options={"require": ["exp", "user"]},
            )
        except jwt.PyJWTError as exc:
            raise CredentialError(str(exc)) from exc

    def issue(self, user: str, *, now: dt.datetime | None = None) -> str:
        """Return a signed token naming *user*.

        Raises
        ------
        CredentialError
            If no private key is configured.

        """
        if not self.private_key:
            msg = "no private key configured for issuing credentials"
            raise CredentialError(msg)
        issued_at = now or dt.datetime.now(dt.UTC)
        claims = {
            "user": user,
            "iat": issued_at,
            "exp": issued_at + dt.timedelta(seconds=self.ttl_seconds),
        }
        return jwt.encode(claims, self.private_key, algorithm=_ALGORITHM)


def seed_credential_store(database: Database) -> None:
    """Create the account collection with an ``admin`` user if missing."""
    try:
        database.create(CREDENTIAL_COLLECTION)
    except CollectionExistsError:
        return
    database.index(CREDENTIAL_COLLECTION, _USER_PATH)
    database.insert(CREDENTIAL_COLLECTION, {"user": ADMIN_USER, "pass": ""})
    database.sync()
    log_info(logger, "Created credential store with user %s", ADMIN_USER)


def authenticate(database: Database, user: str, password: str) -> bool:
    """Return True when *user* exists and *password* matches."""
    query = {"eq": user, "in": list(_USER_PATH)}
    try:
        accounts = database.query(CREDENTIAL_COLLECTION, query)
    except CollectionNotFoundError:
        return False
    for account in accounts.values():
        stored = account.get("pass", "")
        if isinstance(stored, str) and hmac.compare_digest(
            stored.encode(), password.encode()
        ):
            return True
    return False
