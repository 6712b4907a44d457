"""Always-public resources: welcome, version, and runtime statistics.

These are registered in every mode, carry neither CORS headers nor a
credential requirement, and never touch the database.

Usage
-----
Register the resources on the Falcon app::

    app.add_route("/", WelcomeResource())
    app.add_route("/version", VersionResource())
    app.add_route("/memstats", MemStatsResource())

"""

from __future__ import annotations

import gc
import platform
import resource
import sys
import threading
import typing as typ

import falcon

from tiedot_gateway import __version__

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

__all__ = ["MemStatsResource", "VersionResource", "WelcomeResource", "memory_stats"]

WELCOME_TEXT = "Welcome to tiedot"


class WelcomeResource:
    """Greeting served at exactly ``/``."""

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET / requests."""
        resp.content_type = falcon.MEDIA_TEXT
        resp.text = WELCOME_TEXT

    on_post = on_get
    on_put = on_get
    on_delete = on_get
    on_patch = on_get


class VersionResource:
    """Gateway version as plain text."""

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /version requests."""
        resp.content_type = falcon.MEDIA_TEXT
        resp.text = __version__

    on_post = on_get
    on_put = on_get
    on_delete = on_get
    on_patch = on_get


def memory_stats() -> dict[str, typ.Any]:
    """Return a snapshot of interpreter memory and runtime statistics."""
    usage = resource.getrusage(resource.RUSAGE_SELF)
    return {
        "python": platform.python_version(),
        "implementation": sys.implementation.name,
        "threads": threading.active_count(),
        "max_rss_kb": usage.ru_maxrss,
        "gc": {
            "counts": list(gc.get_count()),
            "thresholds": list(gc.get_threshold()),
            "generations": gc.get_stats(),
        },
    }


class MemStatsResource:
    """Memory and runtime statistics as JSON."""

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /memstats requests."""
        resp.media = memory_stats()

    on_post = on_get
    on_put = on_get
    on_delete = on_get
    on_patch = on_get
