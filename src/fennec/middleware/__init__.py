"""Middleware: plain handlers that call ``await ctx.next()``.

A middleware has the same shape as an endpoint, ``mw(ctx)``, sync or
async, and is installed with ``app.use(...)`` or as an extra handler
on a route or group.

Built-in middleware:
    keyauth -- API key authentication through an Extractor
    recover -- Convert unexpected exceptions into a 500
    static -- Serve files from a directory (``App.static``)
    timeout -- Deadline for a wrapped handler
"""

from fennec.middleware import keyauth, recover, static, timeout
from fennec.middleware.keyauth import KeyAuthConfig
from fennec.middleware.recover import RecoverConfig
from fennec.middleware.static import StaticConfig
from fennec.middleware.timeout import TimeoutConfig

__all__ = [
    "KeyAuthConfig",
    "RecoverConfig",
    "StaticConfig",
    "TimeoutConfig",
    "keyauth",
    "recover",
    "static",
    "timeout",
]
