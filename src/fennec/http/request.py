"""Immutable HTTP request.

Frozen metadata plus the fully buffered body. The ASGI adapter reads
the body (bounded by ``AppConfig.body_limit``) before dispatch, so
every accessor here is synchronous.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

from fennec._internal.asgi import HTTPScope, Scope
from fennec.http.cookies import parse_cookies
from fennec.http.forms import FormData, media_type, parse_form_data
from fennec.http.headers import Headers
from fennec.http.query import QueryParams

# RFC 3986 pchar plus "/", left unescaped when rebuilding a missing raw_path
PATH_SAFE = "/:@!$&'()*+,;="


@dataclass(frozen=True, slots=True)
class Request:
    """An immutable HTTP request.

    Cookies are parsed once at creation time; the form body is parsed on
    first access and cached.
    """

    method: str
    path: str
    raw_path: bytes
    headers: Headers
    query: QueryParams
    cookies: Mapping[str, str]
    body: bytes
    http_version: str = "1.1"
    scheme: str = "http"
    root_path: str = ""
    server: tuple[str, int] | None = None
    client: tuple[str, int] | None = None

    # Parsed form data (dict contents are mutable even though the field is frozen)
    _cache: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "") or ""

    @property
    def content_length(self) -> int | None:
        value = self.headers.get("content-length")
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            return None

    @property
    def query_string(self) -> str:
        return self.query.raw.decode("latin-1")

    @property
    def url(self) -> str:
        """Request target: path plus query string."""
        qs = self.query_string
        return f"{self.path}?{qs}" if qs else self.path

    def text(self, encoding: str = "utf-8") -> str:
        return self.body.decode(encoding)

    def form(self) -> FormData:
        """Parse the body as form data (URL-encoded or multipart).

        Returns an empty ``FormData`` when the body is not a form
        encoding. Result is cached.
        """
        cached = self._cache.get("form")
        if cached is not None:
            return cached
        if media_type(self.content_type) in (
            "application/x-www-form-urlencoded",
            "multipart/form-data",
        ):
            result = parse_form_data(self.body, self.content_type)
        else:
            result = FormData()
        self._cache["form"] = result
        return result

    @classmethod
    def from_asgi(cls, scope: Scope, body: bytes = b"") -> "Request":
        """Create a Request from an ASGI scope and the buffered body."""
        http = HTTPScope.from_scope(scope)
        headers = Headers(http.headers)
        return cls(
            method=http.method,
            path=http.path,
            raw_path=http.raw_path or quote(http.path, safe=PATH_SAFE).encode("ascii"),
            headers=headers,
            query=QueryParams(http.query_string),
            cookies=parse_cookies("; ".join(headers.get_list("cookie"))),
            body=body,
            http_version=http.http_version,
            scheme=http.scheme,
            root_path=http.root_path,
            server=http.server,
            client=http.client,
        )
