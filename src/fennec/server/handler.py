"""ASGI handler: translates one HTTP scope into a dispatched ``Ctx``.

The only component that touches raw ASGI messages for requests. It
buffers the body, borrows a context from the app's pool, runs the
router, hands failures to the error handler and flushes the response.
"""

import logging
from typing import TYPE_CHECKING

from fennec._internal.asgi import Receive, Scope, Send, read_body
from fennec.constants import FLASH_COOKIE_NAME, METHOD_HEAD, MIME_TEXT_PLAIN_UTF8
from fennec.context import ctx_var
from fennec.errors import HTTPError, status_message
from fennec.http.request import Request
from fennec.http.response import Response
from fennec.server.errors import call_error_handler, write_last_resort
from fennec.server.sender import send_response

if TYPE_CHECKING:
    from fennec.app import App
    from fennec.ctx import Ctx

logger = logging.getLogger("fennec.server")


async def handle_request(scope: Scope, receive: Receive, send: Send, *, app: "App") -> None:
    """Process a single HTTP request through the full pipeline."""
    if scope["type"] != "http":
        return
    config = app.config

    body = await read_body(receive, config.body_limit)
    if body is None:
        logger.debug("Request body over %d bytes rejected", config.body_limit)
        await send_response(
            Response(
                body=status_message(413).encode(),
                status=413,
                headers=[("Content-Type", MIME_TEXT_PLAIN_UTF8)],
            ),
            send,
            server_header=config.server_header,
        )
        return

    request = Request.from_asgi(scope, body)
    ctx = app.pool.acquire(app, request)
    token = ctx_var.set(ctx)
    try:
        await dispatch(app, ctx)
        await send_response(
            ctx.response,  # type: ignore[arg-type]
            send,
            head=request.method == METHOD_HEAD,
            server_header=config.server_header,
        )
    finally:
        ctx_var.reset(token)
        app.pool.release(ctx)


async def dispatch(app: "App", ctx: "Ctx") -> None:
    """Run the router for *ctx* and settle any error exactly once."""
    if ctx.method_int == -1:
        ctx.send_status(501)
        return

    if FLASH_COOKIE_NAME in ctx.get("Cookie"):
        ctx.load_flash()

    try:
        await app.router.next(ctx)
    except Exception as exc:
        await handle_error(app, ctx, exc)
        return
    if ctx.error is not None:
        await handle_error(app, ctx, ctx.error)


async def handle_error(app: "App", ctx: "Ctx", exc: BaseException) -> None:
    if isinstance(exc, HTTPError):
        logger.debug("%s %s -> %d %s", ctx.method(), ctx.path_original, exc.status, exc.message)
    else:
        logger.error("Unhandled error in %s %s", ctx.method(), ctx.path_original, exc_info=exc)

    handler = app.error_handler_for(ctx.detection_path)
    try:
        await call_error_handler(handler, ctx, exc)
    except Exception:
        logger.exception("Error handler failed for %s %s", ctx.method(), ctx.path_original)
        write_last_resort(ctx)
