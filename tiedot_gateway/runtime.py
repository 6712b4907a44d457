"""Gateway runtime entrypoint.

``main()`` bootstraps the service and hands it to Granian:

1. configure logging from ``TIEDOT_LOG_LEVEL``;
2. load ``ServerConfig`` from the environment;
3. check that the database opens (fatal otherwise; there is no degraded
   mode without a working database);
4. check TLS material when a certificate is configured;
5. serve ``tiedot_gateway.runtime:create_app`` on all interfaces, over
   HTTPS when TLS is enabled and plain HTTP otherwise.

Any failure in these steps is logged and terminates the process with
exit status 1. A listener that fails to start is not retried.

Granian imports ``create_app`` in its worker, which opens the database,
selects the endpoint mode and builds the Falcon app. A single worker is
used because the embedded database is owned by one process.

Run the service directly with ``python -m tiedot_gateway.runtime``.
"""

from __future__ import annotations

import typing as typ
from pathlib import Path

from tiedot_gateway.api.app import AppDependencies
from tiedot_gateway.api.app import create_app as create_api_app
from tiedot_gateway.api.credentials import JwtCredentials, seed_credential_store
from tiedot_gateway.config import AuthMode, ServerConfig
from tiedot_gateway.db import Database, DatabaseError
from tiedot_gateway.errors import BootstrapError
from tiedot_gateway.logging import (
    configure_logging,
    get_logger,
    log_error,
    log_exception,
    log_info,
    log_warning,
)

if typ.TYPE_CHECKING:
    import falcon.asgi

__all__ = ["bootstrap", "build_app", "create_app", "main", "open_database"]

logger = get_logger(__name__)


def open_database(config: ServerConfig) -> Database:
    """Open the database named by *config*.

    Raises
    ------
    BootstrapError
        If the database cannot be opened.

    """
    try:
        return Database.open(config.directory)
    except DatabaseError as exc:
        raise BootstrapError.database_unavailable(config.directory, str(exc)) from exc


def build_app(config: ServerConfig, database: Database) -> falcon.asgi.App:
    """Select the endpoint mode from *config* and build the app over *database*.

    In auth-gated mode the credential store is seeded with an ``admin``
    account when it does not exist yet.
    """
    credentials: JwtCredentials | None = None
    if config.auth_mode is AuthMode.AUTH_GATED:
        credentials = JwtCredentials.from_config(config)
        seed_credential_store(database)
    return create_api_app(
        AppDependencies(database=database, credentials=credentials),
        config.auth_mode,
    )


def create_app() -> falcon.asgi.App:
    """Granian factory: build the app from environment configuration.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    """
    config = ServerConfig.from_env()
    return build_app(config, open_database(config))


def _check_tls_files(config: ServerConfig) -> tuple[Path, Path]:
    cert = Path(config.tls_cert)
    key = Path(config.tls_key)
    if not cert.is_file():
        raise BootstrapError.missing_tls_file("certificate", cert)
    if not key.is_file():
        raise BootstrapError.missing_tls_file("key", key)
    return cert, key


def _serve(config: ServerConfig) -> None:
    from granian import Granian
    from granian.constants import Interfaces

    tls_files: tuple[Path, Path] | None = None
    scheme = "HTTP"
    if config.tls_enabled:
        tls_files = _check_tls_files(config)
        scheme = "HTTPS"

    log_info(
        logger,
        "Will listen on all interfaces (%s), port %d.",
        scheme,
        config.port,
    )
    server = Granian(
        "tiedot_gateway.runtime:create_app",
        address=config.host,
        port=config.port,
        interface=Interfaces.ASGI,
        workers=1,
        factory=True,
        ssl_cert=tls_files[0] if tls_files else None,
        ssl_key=tls_files[1] if tls_files else None,
    )
    try:
        server.serve()
    except (OSError, RuntimeError) as exc:
        raise BootstrapError.listener_failed(scheme, str(exc)) from exc


def bootstrap(config: ServerConfig) -> None:
    """Run the startup checks for *config*, then serve until stopped.

    Raises
    ------
    BootstrapError
        If the database cannot be opened, the key material is unusable,
        TLS files are missing, or the listener fails to start.

    """
    # Workers reopen the database; this run only proves the app can be built.
    database = open_database(config)
    try:
        build_app(config, database)
    finally:
        database.close()
    _serve(config)


def main() -> None:
    """Start the gateway using Granian.

    Raises
    ------
    SystemExit
        With status 1 when configuration or startup fails.

    """
    try:
        config = ServerConfig.from_env()
    except BootstrapError as exc:
        configure_logging(None)
        log_error(logger, "Invalid configuration: %s", exc)
        raise SystemExit(1) from exc

    normalized_level, invalid_level = configure_logging(config.log_level)
    if invalid_level:
        log_warning(
            logger,
            "Invalid TIEDOT_LOG_LEVEL %r, falling back to %s",
            config.log_level,
            normalized_level,
        )

    log_info(
        logger,
        "Starting gateway for %s (mode=%s, tls=%s, log_level=%s)",
        config.directory,
        config.auth_mode,
        config.tls_enabled,
        normalized_level,
    )
    try:
        bootstrap(config)
    except BootstrapError as exc:
        log_exception(logger, f"Failed to start gateway: {exc}", exc)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
