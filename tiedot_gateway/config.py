"""Configuration for the gateway process.

``ServerConfig`` holds everything the bootstrap needs: where the database
lives, where to listen, optional TLS material, and optional JWT key
material. Two switches are derived from it and are independent of each
other:

- TLS is active when a certificate path is configured.
- Auth-gated mode is active when a private key is configured; otherwise
  the operation endpoints are served CORS-open.

Usage
-----
Load from the environment:

>>> import os
>>> os.environ["TIEDOT_DIR"] = "/tmp/d1"
>>> config = ServerConfig.from_env()
>>> config.auth_mode
<AuthMode.CORS_OPEN: 'cors-open'>

"""

from __future__ import annotations

import dataclasses as dc
import enum
import os
from pathlib import Path

from tiedot_gateway.errors import ConfigError

__all__ = ["AuthMode", "ServerConfig"]

_DEFAULT_HOST = "0.0.0.0"  # noqa: S104 - listen on all interfaces
_DEFAULT_PORT = 8080
_DEFAULT_JWT_TTL_SECONDS = 72 * 60 * 60

# TCP port number range limits
_MIN_PORT = 1
_MAX_PORT = 65535


class AuthMode(enum.StrEnum):
    """How the operation endpoints are exposed.

    The two modes are mutually exclusive for the lifetime of the process.
    """

    CORS_OPEN = "cors-open"
    AUTH_GATED = "auth-gated"


def _parse_port(raw: str) -> int:
    try:
        port = int(raw)
    except ValueError as exc:
        raise ConfigError.invalid("TIEDOT_PORT", raw, "must be an integer") from exc
    if not _MIN_PORT <= port <= _MAX_PORT:
        reason = f"must be {_MIN_PORT}-{_MAX_PORT}"
        raise ConfigError.invalid("TIEDOT_PORT", raw, reason)
    return port


def _parse_positive_int(env_var: str, default: int) -> int:
    raw = os.environ.get(env_var, "")
    if not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigError.invalid(env_var, raw, "must be an integer") from exc
    if value < 1:
        raise ConfigError.invalid(env_var, raw, "must be positive")
    return value


def _read_key_file(env_var: str) -> str:
    """Return the PEM text named by *env_var*, or ``""`` when unset."""
    path = os.environ.get(env_var, "").strip()
    if not path:
        return ""
    try:
        return Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError.unreadable_key(env_var, path, str(exc)) from exc


@dc.dataclass(frozen=True, slots=True)
class ServerConfig:
    """Bootstrap configuration for the gateway.

    Attributes
    ----------
    directory
        Database directory. Created on open when absent.
    port
        TCP port to listen on.
    host
        Bind address. Defaults to all interfaces.
    tls_cert
        Path to the TLS certificate file. Empty disables TLS.
    tls_key
        Path to the TLS private key file.
    jwt_public_key
        PEM public key used to verify credentials. Derived from
        ``jwt_private_key`` when empty.
    jwt_private_key
        PEM private key used to issue credentials. Non-empty selects
        auth-gated mode.
    jwt_ttl_seconds
        Lifetime of issued credentials.
    log_level
        Raw log level string; normalized by ``configure_logging``.

    """

    directory: str
    port: int = _DEFAULT_PORT
    host: str = _DEFAULT_HOST
    tls_cert: str = ""
    tls_key: str = ""
    jwt_public_key: str = ""
    jwt_private_key: str = dc.field(default="", repr=False)
    jwt_ttl_seconds: int = _DEFAULT_JWT_TTL_SECONDS
    log_level: str = "INFO"

    @property
    def tls_enabled(self) -> bool:
        """Return True when a TLS certificate path is configured."""
        return bool(self.tls_cert)

    @property
    def auth_mode(self) -> AuthMode:
        """Return the endpoint exposure mode implied by the key material."""
        if self.jwt_private_key:
            return AuthMode.AUTH_GATED
        return AuthMode.CORS_OPEN

    @classmethod
    def from_env(cls) -> ServerConfig:
        """Create configuration from environment variables.

        Reads the following environment variables:

        - ``TIEDOT_DIR``: Database directory (required).
        - ``TIEDOT_PORT``: Listen port, 1-65535 (default ``8080``).
        - ``TIEDOT_HOST``: Bind address (default ``0.0.0.0``).
        - ``TIEDOT_TLS_CERT`` / ``TIEDOT_TLS_KEY``: TLS certificate and key
          file paths.
        - ``TIEDOT_JWT_PUBLIC_KEY_FILE`` / ``TIEDOT_JWT_PRIVATE_KEY_FILE``:
          PEM files holding the credential key pair.
        - ``TIEDOT_JWT_TTL_SECONDS``: Lifetime of issued credentials.
        - ``TIEDOT_LOG_LEVEL``: Log level (default ``INFO``).

        Returns
        -------
        ServerConfig
            Configuration populated from the environment.

        Raises
        ------
        ConfigError
            If a required value is missing or a value fails validation.

        """
        directory = os.environ.get("TIEDOT_DIR", "").strip()
        if not directory:
            raise ConfigError.missing("TIEDOT_DIR")

        tls_cert = os.environ.get("TIEDOT_TLS_CERT", "").strip()
        tls_key = os.environ.get("TIEDOT_TLS_KEY", "").strip()
        if tls_cert and not tls_key:
            raise ConfigError.missing("TIEDOT_TLS_KEY")

        return cls(
            directory=directory,
            port=_parse_port(os.environ.get("TIEDOT_PORT", str(_DEFAULT_PORT))),
            host=os.environ.get("TIEDOT_HOST", "").strip() or _DEFAULT_HOST,
            tls_cert=tls_cert,
            tls_key=tls_key,
            jwt_public_key=_read_key_file("TIEDOT_JWT_PUBLIC_KEY_FILE"),
            jwt_private_key=_read_key_file("TIEDOT_JWT_PRIVATE_KEY_FILE"),
            jwt_ttl_seconds=_parse_positive_int(
                "TIEDOT_JWT_TTL_SECONDS", _DEFAULT_JWT_TTL_SECONDS
            ),
            log_level=os.environ.get("TIEDOT_LOG_LEVEL", "INFO"),
        )
