"""Run a fennec app on the pounce ASGI server.

Pounce's ``run()`` takes an import string (e.g. ``"myapp:app"``), but
``App.listen()`` has a live ``App`` object, so ``pounce.Server`` is
used directly with the ASGI callable.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fennec.app import App


def run_server(app: "App", host: str, port: int, *, workers: int = 1, log_level: str = "info") -> None:
    """Start pounce with *app* and block until it stops."""
    from pounce.config import ServerConfig
    from pounce.server import Server

    config = ServerConfig(
        host=host,
        port=port,
        workers=workers,
        log_level=log_level,
    )
    Server(config, app).run()
