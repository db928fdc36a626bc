"""Shared constants: HTTP methods, limits, and well-known names."""

METHOD_GET = "GET"
METHOD_HEAD = "HEAD"
METHOD_POST = "POST"
METHOD_PUT = "PUT"
METHOD_DELETE = "DELETE"
METHOD_CONNECT = "CONNECT"
METHOD_OPTIONS = "OPTIONS"
METHOD_TRACE = "TRACE"
METHOD_PATCH = "PATCH"

# Pseudo-method for middleware routes; never appears on the wire.
METHOD_USE = "USE"

DEFAULT_METHODS: tuple[str, ...] = (
    METHOD_GET,
    METHOD_HEAD,
    METHOD_POST,
    METHOD_PUT,
    METHOD_DELETE,
    METHOD_CONNECT,
    METHOD_OPTIONS,
    METHOD_TRACE,
    METHOD_PATCH,
)

# Capacity of the per-context parameter value list.
MAX_PARAMS = 30

FLASH_COOKIE_NAME = "fennec_flash"

DEFAULT_BODY_LIMIT = 4 * 1024 * 1024

MIME_TEXT_PLAIN_UTF8 = "text/plain; charset=utf-8"
MIME_TEXT_HTML_UTF8 = "text/html; charset=utf-8"
MIME_JSON_UTF8 = "application/json; charset=utf-8"
MIME_JAVASCRIPT_UTF8 = "application/javascript; charset=utf-8"
MIME_OCTET_STREAM = "application/octet-stream"
