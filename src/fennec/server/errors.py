"""Error handling for fennec requests.

Whatever escapes the handler chain (or is left on ``ctx.error``) goes
to exactly one error handler. The default one writes the message as
plain text with the error's status.
"""

import logging
from typing import TYPE_CHECKING, Any

from fennec._internal.invoke import invoke
from fennec._internal.types import ErrorHandler
from fennec.constants import MIME_TEXT_PLAIN_UTF8
from fennec.errors import HTTPError, status_message

if TYPE_CHECKING:
    from fennec.ctx import Ctx

logger = logging.getLogger("fennec.server")


def default_error_handler(ctx: "Ctx", exc: BaseException) -> None:
    """Map *exc* to a plain-text response.

    ``HTTPError`` keeps its status, message and extra headers; anything
    else becomes a bare ``500 Internal Server Error``.
    """
    if isinstance(exc, HTTPError):
        status, message = exc.status, exc.message
        for name, value in exc.headers:
            ctx.set(name, value)
    else:
        status, message = 500, status_message(500)
    ctx.set("Content-Type", MIME_TEXT_PLAIN_UTF8)
    ctx.status(status).send_string(message)


async def call_error_handler(handler: ErrorHandler, ctx: "Ctx", exc: BaseException) -> None:
    """Run *handler*; returning an exception counts as raising it."""
    result: Any = await invoke(handler, ctx, exc)
    if isinstance(result, BaseException):
        raise result


def write_last_resort(ctx: "Ctx") -> None:
    """Replace the response with a bare 500 after the error handler failed."""
    response = ctx.response
    if response is None:
        return
    response.reset()
    response.status = 500
    response.content_type = MIME_TEXT_PLAIN_UTF8
    response.body = status_message(500).encode()
