"""Recover middleware: turn any exception from downstream into a 500.

Place it first so it wraps every handler after it::

    app.use(recover.new())
    app.use(recover.new(RecoverConfig(enable_stack_trace=True)))

``HTTPError`` passes through unchanged; it already carries a status.
"""

import logging
import traceback
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from fennec.errors import HTTPError, InternalServerError

if TYPE_CHECKING:
    from fennec.ctx import Ctx

logger = logging.getLogger("fennec.middleware")


def _log_stack_trace(ctx: "Ctx", exc: BaseException) -> None:
    logger.error(
        "panic recovered in %s %s: %r\n%s",
        ctx.method(),
        ctx.path_original,
        exc,
        "".join(traceback.format_exception(exc)),
    )


@dataclass(frozen=True, slots=True)
class RecoverConfig:
    """Recover middleware configuration.

    ``stack_trace_handler(ctx, exc)`` runs when ``enable_stack_trace``
    is on; the default logs the traceback on ``fennec.middleware``.
    """

    enable_stack_trace: bool = False
    stack_trace_handler: Callable[["Ctx", BaseException], Any] = _log_stack_trace
    next: Callable[["Ctx"], bool] | None = None


def new(config: RecoverConfig | None = None) -> Callable[["Ctx"], Any]:
    config = config or RecoverConfig()

    async def recover(ctx: "Ctx") -> None:
        if config.next is not None and config.next(ctx):
            await ctx.next()
            return
        try:
            await ctx.next()
        except HTTPError:
            raise
        except Exception as exc:
            if config.enable_stack_trace:
                config.stack_trace_handler(ctx, exc)
            raise InternalServerError(str(exc) or None) from exc

    return recover
