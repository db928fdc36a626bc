"""Per-request context handed to every handler and middleware.

A ``Ctx`` wraps one buffered ``Request`` and the ``Response`` being
built for it, plus the router's position in the handler chain::

    @app.get("/users/:id")
    async def show(ctx: Ctx) -> None:
        user = await load(ctx.params("id"))
        ctx.status(200).json(user)

Contexts are pooled. The pool resets every field on acquire; after the
response is flushed the context is released and all accessors raise
``RuntimeError``. Copy anything a background task needs before the
handler returns.
"""

import gzip
import mimetypes
import zlib
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from email.utils import format_datetime
from pathlib import PurePath
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Self
from urllib.parse import parse_qsl, quote, unquote, urlencode

import anyio

from fennec.constants import (
    FLASH_COOKIE_NAME,
    MAX_PARAMS,
    MIME_JAVASCRIPT_UTF8,
    MIME_JSON_UTF8,
    MIME_TEXT_HTML_UTF8,
)
from fennec.errors import (
    BadRequest,
    ConfigurationError,
    InternalServerError,
    NotFound,
    new_error,
    status_message,
)
from fennec.http.cookies import Cookie, expired_cookie
from fennec.http.forms import FormData, UploadFile, media_type
from fennec.http.fresh import is_fresh
from fennec.http.negotiation import (
    accepts_language,
    accepts_media_type,
    accepts_token,
    get_offer,
)
from fennec.http.ranges import Range, parse_range
from fennec.http.request import Request
from fennec.http.response import Response
from fennec.routing.parser import ascii_lower, detection_path

if TYPE_CHECKING:
    from fennec.app import App
    from fennec.routing.route import Route
    from fennec.routing.router import Bucket

_MISSING: Any = object()
_EMPTY_VALUES = ("",) * MAX_PARAMS
_TEXT_TYPES = ("application/json", "application/javascript", "application/xml")


@dataclass(frozen=True, slots=True)
class SendFileConfig:
    """Options for ``Ctx.send_file``.

    ``byte_range=None`` follows ``AppConfig.enable_byte_range``.
    """

    download: bool = False
    max_age: int = 0
    byte_range: bool | None = None


def _with_charset(mime: str) -> str:
    if mime.startswith("text/") or mime in _TEXT_TYPES or mime.endswith("+json") or mime.endswith("+xml"):
        return f"{mime}; charset=utf-8"
    return mime


def mime_for(extension: str) -> str:
    """MIME type for a file extension (``"html"``, ``".json"``) or a file name."""
    name = extension if "." in extension.lstrip(".") else f"x.{extension.lstrip('.')}"
    guessed, _ = mimetypes.guess_type(name)
    return guessed or "application/octet-stream"


def _decode_body(body: bytes, encoding_header: str) -> bytes:
    for coding in reversed([c.strip().lower() for c in encoding_header.split(",") if c.strip()]):
        try:
            match coding:
                case "gzip" | "x-gzip":
                    body = gzip.decompress(body)
                case "deflate":
                    body = zlib.decompress(body)
                case "identity":
                    pass
                case _:
                    raise new_error(415, f"Unsupported Content-Encoding {coding!r}")
        except (OSError, EOFError, zlib.error) as exc:
            raise BadRequest(f"Cannot decode {coding} request body") from exc
    return body


class Ctx:
    """Request and response API for one in-flight request."""

    __slots__ = (
        "_error",
        "_flash_out",
        "_locals",
        "_method",
        "_path",
        "app",
        "bucket",
        "detection_path",
        "index_handler",
        "index_route",
        "matched",
        "method_int",
        "path_original",
        "request",
        "response",
        "route",
        "tree_path",
        "values",
    )

    def __init__(self) -> None:
        self.app: App | None = None
        self.request: Request | None = None
        self.response: Response | None = None
        self.route: Route | None = None
        self.bucket: Bucket | None = None
        self.index_route = -1
        self.index_handler = 0
        self.matched = False
        self.method_int = -1
        self.values: list[str] = list(_EMPTY_VALUES)
        self.path_original = ""
        self.detection_path = ""
        self.tree_path = ""
        self._path = ""
        self._method = ""
        self._locals: dict[Any, Any] = {}
        self._error: BaseException | None = None
        self._flash_out: list[tuple[str, str]] = []

    def __repr__(self) -> str:
        if self.request is None:
            return "<Ctx released>"
        return f"<Ctx {self._method} {self.path_original!r} route={self.route!r}>"

    # -- Lifecycle --

    def reset(self, app: "App", request: Request) -> None:
        """Prepare this context for *request*. Called by the pool."""
        self.app = app
        self.request = request
        self.response = Response()
        self.route = None
        self.bucket = None
        self.index_route = -1
        self.index_handler = 0
        self.matched = False
        self.values[:] = _EMPTY_VALUES
        self._locals = {}
        self._error = None
        self._flash_out = []
        self._method = request.method
        self.method_int = app.router.method_int(self._method)
        self.path_original = request.raw_path.decode("latin-1")
        self._configure_paths()

    def release(self) -> None:
        """Drop every reference to request data."""
        self.request = None
        self.response = None
        self.route = None
        self.bucket = None
        self._locals = {}
        self._error = None
        self._flash_out = []

    def _req(self) -> Request:
        request = self.request
        if request is None:
            msg = "Ctx used after it was released; copy values before the handler returns"
            raise RuntimeError(msg)
        return request

    def _resp(self) -> Response:
        response = self.response
        if response is None:
            msg = "Ctx used after it was released; copy values before the handler returns"
            raise RuntimeError(msg)
        return response

    def _configure_paths(self) -> None:
        config = self.app.config  # type: ignore[union-attr]
        path = self.path_original or "/"
        if config.unescape_path:
            path = unquote(path)
        self._path = path
        self.detection_path = detection_path(
            path, case_sensitive=config.case_sensitive, strict_routing=config.strict_routing
        )
        self.tree_path = self.detection_path[:3] if len(self.detection_path) >= 3 else ""
        self.bucket = None

    # -- Flow --

    async def next(self, err: BaseException | None = None) -> None:
        """Run the next handler of the current route, or the next matching route.

        Passing *err* records it on ``ctx.error`` and keeps going;
        whatever is left there after the chain finishes goes to the
        error handler.
        """
        from fennec.routing.router import call_handler

        if err is not None:
            self._error = err
        self.index_handler += 1
        route = self.route
        if route is not None and self.index_handler < len(route.handlers):
            await call_handler(route.handlers[self.index_handler], self)
            return
        await self.app.router.next(self)  # type: ignore[union-attr]

    async def restart_routing(self) -> None:
        """Scan the routes again from the start, e.g. after changing ``path``."""
        self.index_route = -1
        self.bucket = None
        await self.app.router.next(self)  # type: ignore[union-attr]

    @property
    def error(self) -> BaseException | None:
        return self._error

    def clear_error(self) -> None:
        self._error = None

    # -- Request: routing data --

    def method(self, override: str = "") -> str:
        """The request method, optionally replacing it with *override*.

        Unknown methods are ignored.
        """
        if override:
            method = override.upper()
            method_int = self.app.router.method_int(method)  # type: ignore[union-attr]
            if method_int != -1:
                self._method = method
                self.method_int = method_int
                self.bucket = None
        return self._method

    @property
    def path(self) -> str:
        return self._path

    @path.setter
    def path(self, value: str) -> None:
        if value != self._path:
            self.path_original = value
            self._configure_paths()

    def params(self, key: str, default: str = "") -> str:
        """Path parameter *key*; ``"*"`` and ``"+"`` mean the first wildcard."""
        route = self.route
        if route is None:
            return default
        if key in ("*", "+"):
            key += "1"
        insensitive = not self.app.config.case_sensitive  # type: ignore[union-attr]
        for i, name in enumerate(route.params):
            if name == key or (insensitive and ascii_lower(name) == ascii_lower(key)):
                return self.values[i] or default
        return default

    def params_int(self, key: str, default: int = 0) -> int:
        raw = self.params(key)
        if not raw:
            return default
        try:
            return int(raw)
        except ValueError:
            raise BadRequest(f"Path parameter {key!r} is not an integer") from None

    def all_params(self) -> dict[str, str]:
        route = self.route
        if route is None:
            return {}
        return {name: self.values[i] for i, name in enumerate(route.params)}

    def get_route_url(self, name: str, params: Mapping[str, Any] | None = None) -> str:
        route = self.app.router.find(name)  # type: ignore[union-attr]
        if route is None:
            msg = f"No route named {name!r}"
            raise ConfigurationError(msg)
        return route.url(params, case_sensitive=self.app.config.case_sensitive)  # type: ignore[union-attr]

    # -- Request: connection --

    @property
    def protocol(self) -> str:
        return f"HTTP/{self._req().http_version}"

    @property
    def scheme(self) -> str:
        return self._req().scheme

    @property
    def hostname(self) -> str:
        request = self._req()
        host = request.headers.get("host") or (request.server[0] if request.server else "")
        if host.startswith("["):
            end = host.find("]")
            return host[: end + 1] if end != -1 else host
        if host.count(":") == 1:
            return host.split(":", 1)[0]
        return host

    @property
    def port(self) -> str:
        """Client port, or ``""`` when the server did not report one."""
        client = self._req().client
        return str(client[1]) if client else ""

    @property
    def ip(self) -> str:
        """Client address, from ``AppConfig.proxy_header`` when set."""
        request = self._req()
        header = self.app.config.proxy_header  # type: ignore[union-attr]
        if header:
            forwarded = request.headers.get_joined(header)
            first = forwarded.split(",", 1)[0].strip()
            if first:
                return first
        return request.client[0] if request.client else ""

    @property
    def ips(self) -> list[str]:
        """Addresses listed in ``X-Forwarded-For``, client first."""
        raw = self._req().headers.get_joined("x-forwarded-for")
        return [part.strip() for part in raw.split(",") if part.strip()]

    def subdomains(self, offset: int = 2) -> list[str]:
        host = self.hostname
        if not host or host.startswith("[") or host.replace(".", "").isdigit():
            return []
        parts = host.split(".")
        keep = len(parts) - offset
        if keep < 0:
            keep = len(parts)
        return parts[:keep]

    @property
    def xhr(self) -> bool:
        return self.get("X-Requested-With").lower() == "xmlhttprequest"

    @property
    def is_from_local(self) -> bool:
        return self.ip in ("127.0.0.1", "::1", "0:0:0:0:0:0:0:1")

    # -- Request: headers, cookies, query --

    def get(self, key: str, default: str = "") -> str:
        """Request header *key*; repeated headers are joined with ``, ``."""
        return self._req().headers.get_joined(key, default)

    def get_req_headers(self) -> dict[str, list[str]]:
        headers = self._req().headers
        return {name: headers.get_list(name) for name in headers}

    def cookies(self, key: str, default: str = "") -> str:
        return self._req().cookies.get(key, default)

    def query(self, key: str, default: str = "") -> str:
        """First query value for *key*."""
        value = self._req().query.get(key)
        return default if value is None else value

    def queries(self) -> dict[str, str]:
        return self._req().query.to_dict()

    # -- Request: body --

    @property
    def body_raw(self) -> bytes:
        return self._req().body

    @property
    def body(self) -> bytes:
        """The body, decoded according to ``Content-Encoding``."""
        request = self._req()
        encoding = request.headers.get_joined("content-encoding")
        if not encoding:
            return request.body
        return _decode_body(request.body, encoding)

    def body_json(self) -> Any:
        """Decode the body with ``AppConfig.json_decoder``.

        Raises:
            BadRequest: If the body is empty or not valid JSON.
        """
        decoder = self.app.config.json_decoder  # type: ignore[union-attr]
        body = self.body
        if not body:
            raise BadRequest("Empty JSON body")
        try:
            return decoder(body)
        except ValueError as exc:
            raise BadRequest(f"Malformed JSON body: {exc}") from exc

    def _form(self) -> FormData:
        try:
            return self._req().form()
        except ValueError as exc:
            raise BadRequest(f"Malformed form body: {exc}") from exc

    def form_value(self, key: str, default: str = "") -> str:
        value = self._form().get(key)
        return default if value is None else value

    def multipart_form(self) -> FormData:
        request = self._req()
        if media_type(request.content_type) != "multipart/form-data":
            raise BadRequest("Request body is not multipart/form-data")
        return self._form()

    def form_file(self, key: str) -> UploadFile | None:
        return self._form().file(key)

    # -- Request: negotiation and conditionals --

    def accepts(self, *offers: str) -> str:
        return get_offer(self.get("Accept"), accepts_media_type, *offers)

    def accepts_charsets(self, *offers: str) -> str:
        return get_offer(self.get("Accept-Charset"), accepts_token, *offers)

    def accepts_encodings(self, *offers: str) -> str:
        return get_offer(self.get("Accept-Encoding"), accepts_token, *offers)

    def accepts_languages(self, *offers: str) -> str:
        return get_offer(self.get("Accept-Language"), accepts_language, *offers)

    @property
    def fresh(self) -> bool:
        """Whether the client's cached copy matches the response validators."""
        response = self._resp()
        return is_fresh(
            if_none_match=self.get("If-None-Match"),
            if_modified_since=self.get("If-Modified-Since"),
            cache_control=self.get("Cache-Control"),
            etag=response.get_header("ETag"),
            last_modified=response.get_header("Last-Modified"),
        )

    @property
    def stale(self) -> bool:
        return not self.fresh

    def range(self, size: int) -> Range:
        """Parse the ``Range`` header against a resource of *size* bytes."""
        header = self.get("Range")
        if not header:
            raise BadRequest("Missing Range header")
        return parse_range(header, size)

    # -- Response: status and headers --

    def status(self, code: int) -> Self:
        self._resp().status = code
        return self

    def send_status(self, code: int) -> None:
        """Set *code*; an empty body becomes the reason phrase."""
        response = self._resp()
        response.status = code
        if not response.body:
            response.body = status_message(code).encode()

    def set(self, key: str, value: str) -> Self:
        self._resp().set_header(key, value)
        return self

    def append(self, key: str, *values: str) -> Self:
        """Add *values* to header *key* unless already listed."""
        response = self._resp()
        current = response.get_header(key)
        present = [part.strip() for part in current.split(",") if part.strip()]
        for value in values:
            if value and value not in present:
                present.append(value)
        if present:
            response.set_header(key, ", ".join(present))
        return self

    def vary(self, *fields: str) -> Self:
        return self.append("Vary", *fields)

    def location(self, url: str) -> Self:
        return self.set("Location", url)

    def type(self, extension: str, charset: str = "") -> Self:
        """Set ``Content-Type`` from a file extension such as ``"json"``."""
        mime = mime_for(extension)
        self._resp().content_type = f"{mime}; charset={charset}" if charset else _with_charset(mime)
        return self

    def get_resp_header(self, key: str, default: str = "") -> str:
        return self._resp().get_header(key, default)

    def cookie(self, cookie: Cookie) -> Self:
        self._resp().set_cookie(cookie)
        return self

    def clear_cookie(self, *names: str) -> Self:
        """Expire *names*, or every cookie the request sent."""
        response = self._resp()
        for name in names or tuple(self._req().cookies):
            response.set_cookie(expired_cookie(name))
        return self

    def attachment(self, filename: str = "") -> Self:
        if not filename:
            return self.set("Content-Disposition", "attachment")
        name = PurePath(filename).name
        self.type(PurePath(name).suffix or "bin")
        if name.isascii():
            escaped = name.replace("\\", "\\\\").replace('"', '\\"')
            return self.set("Content-Disposition", f'attachment; filename="{escaped}"')
        return self.set("Content-Disposition", f"attachment; filename*=UTF-8''{quote(name)}")

    # -- Response: body --

    def send(self, data: bytes) -> None:
        self._resp().body = bytes(data)

    def send_string(self, text: str) -> None:
        self._resp().body = text.encode("utf-8")

    def write(self, data: str | bytes) -> None:
        """Append to the body."""
        response = self._resp()
        response.body += data.encode("utf-8") if isinstance(data, str) else bytes(data)

    def json(self, obj: Any, ctype: str = "") -> None:
        encoder = self.app.config.json_encoder  # type: ignore[union-attr]
        response = self._resp()
        response.body = encoder(obj).encode("utf-8")
        response.content_type = ctype or MIME_JSON_UTF8

    def jsonp(self, obj: Any, callback: str = "callback") -> None:
        encoder = self.app.config.json_encoder  # type: ignore[union-attr]
        response = self._resp()
        response.body = f"{callback}({encoder(obj)});".encode()
        response.content_type = MIME_JAVASCRIPT_UTF8

    def render(self, name: str, bind: Mapping[str, Any] | None = None) -> None:
        """Render template *name* with kida and send it as HTML."""
        from fennec.templating import render_template

        app = self.app
        context: dict[str, Any] = {}
        if app.config.pass_locals_to_views:  # type: ignore[union-attr]
            context.update((k, v) for k, v in self._locals.items() if isinstance(k, str))
        if bind:
            context.update(bind)
        html = render_template(app.template_env(), name, context)  # type: ignore[union-attr]
        response = self._resp()
        response.body = html.encode("utf-8")
        response.content_type = MIME_TEXT_HTML_UTF8

    async def send_file(self, path: str, config: SendFileConfig | None = None) -> None:
        """Send the file at *path*.

        Sets ``Content-Type`` from the extension and ``Last-Modified``
        from the file. Answers ``304`` when the client copy is fresh and
        ``206`` for a satisfiable single ``Range`` when ranges are on.

        Raises:
            NotFound: If *path* is not a regular file.
        """
        config = config or SendFileConfig()
        file = anyio.Path(path)
        if not await file.is_file():
            raise NotFound(f"File not found: {PurePath(path).name}")
        stat = await file.stat()
        response = self._resp()

        if not response.content_type:
            response.content_type = _with_charset(mime_for(file.name))
        modified = datetime.fromtimestamp(int(stat.st_mtime), tz=UTC)
        response.set_header("Last-Modified", format_datetime(modified, usegmt=True))
        if config.max_age > 0:
            response.set_header("Cache-Control", f"public, max-age={config.max_age}")
        if config.download:
            self.attachment(file.name)

        if self.fresh:
            response.status = 304
            response.body = b""
            return

        byte_range = config.byte_range
        if byte_range is None:
            byte_range = self.app.config.enable_byte_range  # type: ignore[union-attr]
        if byte_range:
            response.set_header("Accept-Ranges", "bytes")
            header = self.get("Range")
            if header:
                first = parse_range(header, stat.st_size).ranges[0]
                async with await anyio.open_file(file, "rb") as fh:
                    await fh.seek(first.start)
                    response.body = await fh.read(first.length)
                response.status = 206
                response.set_header("Content-Range", f"bytes {first.start}-{first.end}/{stat.st_size}")
                return

        response.body = await file.read_bytes()

    async def download(self, path: str, filename: str = "") -> None:
        self.attachment(filename or PurePath(path).name)
        await self.send_file(path)

    # -- Response: redirects and flash --

    def redirect(self, location: str, status: int = 302) -> Self:
        """Point the client at *location*, carrying any queued flash messages."""
        response = self._resp()
        response.set_header("Location", location)
        response.status = status
        if self._flash_out:
            response.set_cookie(
                Cookie(FLASH_COOKIE_NAME, urlencode(self._flash_out), session_only=True)
            )
            self._flash_out = []
        return self

    def redirect_back(self, fallback: str = "", status: int = 302) -> Self:
        location = self.get("Referer") or fallback
        if not location:
            raise InternalServerError(
                "Referer not found, you have to enter fallback URL for redirection."
            )
        return self.redirect(location, status)

    def redirect_route(
        self,
        name: str,
        params: Mapping[str, Any] | None = None,
        queries: Mapping[str, str] | None = None,
        status: int = 302,
    ) -> Self:
        location = self.get_route_url(name, params)
        if queries:
            location = f"{location}?{urlencode(dict(queries))}"
        return self.redirect(location, status)

    def flash(self, key: str, value: str) -> Self:
        """Queue a message for the next request; sent by ``redirect``."""
        self._flash_out.append((key, value))
        return self

    def flash_messages(self) -> dict[str, str]:
        """Messages that arrived with this request's flash cookie."""
        return dict(self._locals.get("flash") or {})

    def load_flash(self) -> None:
        """Move the request's flash cookie into ``locals("flash")`` and expire it."""
        raw = self.cookies(FLASH_COOKIE_NAME)
        self._locals["flash"] = dict(parse_qsl(raw, keep_blank_values=True)) if raw else {}
        self._resp().set_cookie(expired_cookie(FLASH_COOKIE_NAME))

    # -- Request-scoped storage --

    def locals(self, key: Any, value: Any = _MISSING) -> Any:
        """Get ``locals[key]`` (``None`` if unset), or set it when *value* is given."""
        if value is _MISSING:
            return self._locals.get(key)
        self._locals[key] = value
        return value

    @property
    def locals_map(self) -> Mapping[Any, Any]:
        return MappingProxyType(self._locals)
