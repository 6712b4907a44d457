"""HTTP API layer of the gateway.

This package provides the Falcon Asynchronous Server Gateway Interface
(ASGI) application that exposes the database's collection, document,
index, query and maintenance operations.

Usage
-----
Create the application::

    from tiedot_gateway.api import AppDependencies, create_app
    from tiedot_gateway.config import AuthMode

    app = create_app(AppDependencies(database=db))           # CORS-open
    app = create_app(deps_with_credentials, AuthMode.AUTH_GATED)

Public API
----------
create_app
    Application factory registering the public endpoints and the
    operation endpoints in the selected mode.
AppDependencies
    Collaborators handed to the operation handlers.
"""

from tiedot_gateway.api.app import AppDependencies, create_app

__all__ = ["AppDependencies", "create_app"]
