"""Fennec: an Express-style ASGI web framework.

Ordered middleware, ``await ctx.next()`` re-entry and pooled request
contexts on top of any ASGI server.

Basic usage::

    from fennec import App, Ctx

    app = App()

    @app.get("/")
    def index(ctx: Ctx) -> str:
        return "Hello, World!"

    app.listen(port=3000)
"""

# Declare free-threading support (PEP 703)
_Py_mod_gil = 0

__version__ = "0.1.0.dev0"
__all__ = [
    "App",
    "AppConfig",
    "ConfigurationError",
    "Cookie",
    "Ctx",
    "FennecError",
    "Group",
    "HTTPError",
    "MethodNotAllowed",
    "NotFound",
    "Response",
    "Route",
    "SendFileConfig",
    "get_ctx",
    "new_error",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import fennec`` fast while providing a clean top-level API.
    """
    if name == "App":
        from fennec.app import App

        return App

    if name == "AppConfig":
        from fennec.config import AppConfig

        return AppConfig

    if name in ("Ctx", "SendFileConfig"):
        from fennec import ctx as _ctx

        return getattr(_ctx, name)

    if name == "get_ctx":
        from fennec.context import get_ctx

        return get_ctx

    if name == "Cookie":
        from fennec.http.cookies import Cookie

        return Cookie

    if name == "Response":
        from fennec.http.response import Response

        return Response

    if name == "Group":
        from fennec.routing.group import Group

        return Group

    if name == "Route":
        from fennec.routing.route import Route

        return Route

    if name in (
        "ConfigurationError",
        "FennecError",
        "HTTPError",
        "MethodNotAllowed",
        "NotFound",
        "new_error",
    ):
        from fennec import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
