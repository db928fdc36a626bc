"""ASGI response sending: translates a fennec Response to ASGI messages."""

import logging

from fennec._internal.asgi import Send
from fennec.constants import MIME_TEXT_PLAIN_UTF8
from fennec.http.response import Response

logger = logging.getLogger("fennec.server")


def _body_allowed(status: int) -> bool:
    # RFC: 1xx, 204, and 304 responses do not include a message body.
    return not (100 <= status < 200 or status in {204, 304})


async def send_response(
    response: Response,
    send: Send,
    *,
    head: bool = False,
    server_header: str = "",
) -> None:
    """Translate *response* into ASGI ``send()`` calls.

    A response without ``Content-Type`` goes out as ``text/plain;
    charset=utf-8``. For ``HEAD`` the body is dropped but
    ``Content-Length`` still describes it.
    """
    allowed = _body_allowed(response.status)
    body = response.body if allowed else b""

    raw_headers: list[tuple[bytes, bytes]] = []
    has_type = False
    for name, value in response.headers:
        lowered = name.lower()
        if lowered == "content-length":
            continue
        has_type = has_type or lowered == "content-type"
        raw_headers.append((lowered.encode("latin-1"), value.encode("latin-1")))
    if not has_type and allowed:
        raw_headers.append((b"content-type", MIME_TEXT_PLAIN_UTF8.encode("latin-1")))
    if server_header:
        raw_headers.append((b"server", server_header.encode("latin-1")))
    raw_headers.extend(
        (b"set-cookie", cookie.to_header_value().encode("latin-1")) for cookie in response.cookies
    )
    if allowed:
        raw_headers.append((b"content-length", str(len(body)).encode("latin-1")))

    await send(
        {
            "type": "http.response.start",
            "status": response.status,
            "headers": raw_headers,
        }
    )
    await send(
        {
            "type": "http.response.body",
            "body": b"" if head else body,
        }
    )
