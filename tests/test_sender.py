"""Tests for fennec.server.sender.send_response."""

from typing import Any

from fennec.http.cookies import Cookie
from fennec.http.response import Response
from fennec.server.sender import send_response


class _Capture:
    def __init__(self) -> None:
        self.messages: list[dict[str, Any]] = []

    async def __call__(self, message: dict[str, Any]) -> None:
        self.messages.append(message)

    @property
    def status(self) -> int:
        return self.messages[0]["status"]

    @property
    def headers(self) -> dict[bytes, bytes]:
        return dict(self.messages[0]["headers"])

    @property
    def body(self) -> bytes:
        return self.messages[1]["body"]


class TestSendResponse:
    async def test_default_content_type_and_length(self) -> None:
        send = _Capture()
        await send_response(Response(b"hello"), send)
        assert send.status == 200
        assert send.headers[b"content-type"] == b"text/plain; charset=utf-8"
        assert send.headers[b"content-length"] == b"5"
        assert send.body == b"hello"

    async def test_explicit_content_type_kept(self) -> None:
        send = _Capture()
        response = Response(b"{}", headers=[("Content-Type", "application/json")])
        await send_response(response, send)
        assert send.headers[b"content-type"] == b"application/json"

    async def test_head_keeps_length_drops_body(self) -> None:
        send = _Capture()
        await send_response(Response(b"hello"), send, head=True)
        assert send.headers[b"content-length"] == b"5"
        assert send.body == b""

    async def test_no_body_statuses(self) -> None:
        for status in (204, 304, 101):
            send = _Capture()
            await send_response(Response(b"ignored", status=status), send)
            assert send.body == b""
            assert b"content-length" not in send.headers
            assert b"content-type" not in send.headers

    async def test_stale_content_length_replaced(self) -> None:
        send = _Capture()
        response = Response(b"abc", headers=[("Content-Length", "99")])
        await send_response(response, send)
        assert [v for k, v in send.messages[0]["headers"] if k == b"content-length"] == [b"3"]

    async def test_server_header_and_cookies(self) -> None:
        send = _Capture()
        response = Response(b"", cookies=[Cookie("a", "1"), Cookie("b", "2", http_only=True)])
        await send_response(response, send, server_header="fennec")
        headers = send.messages[0]["headers"]
        assert (b"server", b"fennec") in headers
        cookies = [v for k, v in headers if k == b"set-cookie"]
        assert cookies == [
            b"a=1; Path=/; SameSite=Lax",
            b"b=2; Path=/; HttpOnly; SameSite=Lax",
        ]
