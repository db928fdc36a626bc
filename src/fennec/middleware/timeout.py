"""Timeout middleware: bound the run time of a handler.

Wraps one handler (usually the endpoint) rather than being installed
with ``use``::

    app.get("/report", timeout.new(build_report, TimeoutConfig(timeout=2.0)))

The wrapped call is cancelled at the deadline through anyio, so the
context is not released while the handler is still running.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import anyio

from fennec._internal.types import Handler
from fennec.errors import RequestTimeout
from fennec.routing.router import call_handler

if TYPE_CHECKING:
    from fennec.ctx import Ctx


@dataclass(frozen=True, slots=True)
class TimeoutConfig:
    """Timeout middleware configuration.

    Attributes:
        timeout: Seconds; ``0`` or less disables the deadline.
        on_timeout: ``on_timeout(ctx)`` replaces the ``408`` when set.
        errors: Exception types raised by the handler that also count
            as a timeout (e.g. a database driver's own timeout error).
    """

    timeout: float = 0.0
    on_timeout: Callable[["Ctx"], Any] | None = None
    errors: tuple[type[BaseException], ...] = ()


def new(handler: Handler, config: TimeoutConfig | None = None) -> Callable[["Ctx"], Any]:
    config = config or TimeoutConfig()
    if config.timeout <= 0:
        return handler

    async def _expired(ctx: "Ctx") -> None:
        if config.on_timeout is None:
            raise RequestTimeout
        await call_handler(config.on_timeout, ctx)

    async def timeout_handler(ctx: "Ctx") -> None:
        try:
            with anyio.fail_after(config.timeout):
                await call_handler(handler, ctx)
        except TimeoutError:
            await _expired(ctx)
        except config.errors:
            await _expired(ctx)

    return timeout_handler
