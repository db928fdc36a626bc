"""Mutable HTTP response owned by one ``Ctx``.

Handlers compose the response in place through the context
(``ctx.status(201).json(...)``); the ASGI sender flushes it once the
handler chain and the error handler have finished. Setting a value
twice keeps only the last one on the wire.
"""

import json as json_module
from typing import Any

from fennec.http.cookies import Cookie, parse_set_cookie


class Response:
    """Status, headers, cookies, and a buffered body.

    Header names are matched case-insensitively; ``set_header`` replaces
    every existing value, ``add_header`` appends another one.
    """

    __slots__ = ("body", "cookies", "headers", "status")

    def __init__(
        self,
        body: bytes = b"",
        status: int = 200,
        headers: list[tuple[str, str]] | None = None,
        cookies: list[Cookie] | None = None,
    ) -> None:
        self.body = body
        self.status = status
        self.headers: list[tuple[str, str]] = headers if headers is not None else []
        self.cookies: list[Cookie] = cookies if cookies is not None else []

    def __repr__(self) -> str:
        return f"<Response {self.status} {self.content_type!r} {len(self.body)} bytes>"

    # -- Headers --

    def get_header(self, name: str, default: str = "") -> str:
        """First value of *name*, or *default*."""
        lowered = name.lower()
        for key, value in self.headers:
            if key.lower() == lowered:
                return value
        return default

    def get_headers(self, name: str) -> list[str]:
        lowered = name.lower()
        return [value for key, value in self.headers if key.lower() == lowered]

    def set_header(self, name: str, value: str) -> None:
        self.del_header(name)
        self.headers.append((name, value))

    def add_header(self, name: str, value: str) -> None:
        self.headers.append((name, value))

    def del_header(self, name: str) -> None:
        lowered = name.lower()
        self.headers[:] = [(k, v) for k, v in self.headers if k.lower() != lowered]

    @property
    def content_type(self) -> str:
        return self.get_header("Content-Type")

    @content_type.setter
    def content_type(self, value: str) -> None:
        self.set_header("Content-Type", value)

    # -- Cookies --

    def set_cookie(self, cookie: Cookie) -> None:
        """Add *cookie*, replacing an earlier one with the same name, path and domain."""
        self.cookies[:] = [
            c
            for c in self.cookies
            if (c.name, c.path, c.domain) != (cookie.name, cookie.path, cookie.domain)
        ]
        self.cookies.append(cookie)

    def get_cookie(self, name: str) -> Cookie | None:
        for cookie in reversed(self.cookies):
            if cookie.name == name:
                return cookie
        return None

    # -- Body --

    @property
    def text(self) -> str:
        return self.body.decode("utf-8")

    def json(self) -> Any:
        return json_module.loads(self.body)

    def reset(self) -> None:
        """Clear everything, back to an empty 200."""
        self.body = b""
        self.status = 200
        self.headers.clear()
        self.cookies.clear()

    # -- Wire form --

    @classmethod
    def from_wire(cls, status: int, raw_headers: list[tuple[bytes, bytes]], body: bytes) -> "Response":
        """Rebuild a Response from ASGI ``http.response.*`` messages.

        ``Set-Cookie`` headers become ``Cookie`` objects again so a
        written cookie reads back with the same name, value and flags.
        """
        headers: list[tuple[str, str]] = []
        cookies: list[Cookie] = []
        for name_b, value_b in raw_headers:
            name = name_b.decode("latin-1")
            value = value_b.decode("latin-1")
            if name.lower() == "set-cookie":
                cookies.append(parse_set_cookie(value))
            else:
                headers.append((name, value))
        return cls(body=body, status=status, headers=headers, cookies=cookies)
