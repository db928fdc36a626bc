"""Invoke helpers: call sync or async handlers uniformly.

Fennec handlers and middleware can be ``def`` or ``async def``. Any
code that calls a user-provided callable goes through ``invoke`` so
the sync/async check lives in exactly one place.

Usage::

    from fennec._internal.invoke import invoke

    result = await invoke(handler, ctx)
"""

import inspect
from typing import Any


async def invoke(handler: Any, *args: Any, **kwargs: Any) -> Any:
    """Call a handler and await the result if it's awaitable.

    Works with both sync and async callables::

        def hello(ctx):
            return "Hello"

        async def hello(ctx):
            await ctx.next()
    """
    result = handler(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result
