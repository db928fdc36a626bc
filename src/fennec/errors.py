"""Fennec exception hierarchy.

Shared across Router, App, Ctx, and middleware so every module
raises and catches the same types. Raising is how a handler reports
failure; the ASGI adapter hands whatever escapes the chain to the
app's error handler.
"""

from http import HTTPStatus


class FennecError(Exception):
    """Base for all fennec-specific errors."""


class ConfigurationError(FennecError):
    """Raised when a route, group, mount, or config value is invalid.

    Always raised at registration time, never while serving.
    """


def status_message(status: int) -> str:
    """Standard reason phrase for *status*, or ``"Unknown Status Code"``."""
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return "Unknown Status Code"


class HTTPError(FennecError):
    """An error that maps directly to an HTTP status code.

    Raised by the router, middleware, or handlers. The default error
    handler writes ``message`` as a ``text/plain`` body with ``status``
    and copies ``headers`` onto the response.
    """

    status: int = 500

    def __init__(
        self,
        status: int | None = None,
        message: str | None = None,
        headers: tuple[tuple[str, str], ...] = (),
    ) -> None:
        if status is not None:
            self.status = status
        self.message = message if message is not None else status_message(self.status)
        self.headers = headers
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status={self.status}, message={self.message!r})"


def new_error(status: int, message: str | None = None) -> HTTPError:
    """Build an ``HTTPError`` for *status*.

    The message defaults to the standard reason phrase::

        raise new_error(418)            # "I'm a Teapot"
        raise new_error(409, "taken")
    """
    return HTTPError(status, message)


class BadRequest(HTTPError):  # noqa: N818
    """400"""

    status = 400

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message=message)


class Unauthorized(HTTPError):  # noqa: N818
    """401"""

    status = 401

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message=message)


class Forbidden(HTTPError):  # noqa: N818
    """403"""

    status = 403

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message=message)


class NotFound(HTTPError):  # noqa: N818
    """404: no route matched the request path."""

    status = 404

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message=message)


class MethodNotAllowed(HTTPError):  # noqa: N818
    """405: a route exists for the path, but not for this HTTP method.

    Carries an ``Allow`` header listing the methods that would match,
    in the app's configured method order.
    """

    status = 405

    def __init__(self, allowed: tuple[str, ...] = (), message: str | None = None) -> None:
        self.allowed = tuple(allowed)
        headers = (("Allow", ", ".join(self.allowed)),) if self.allowed else ()
        super().__init__(message=message, headers=headers)


class RequestTimeout(HTTPError):  # noqa: N818
    """408"""

    status = 408

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message=message)


class RequestEntityTooLarge(HTTPError):  # noqa: N818
    """413: body exceeded ``AppConfig.body_limit``."""

    status = 413

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message=message)


class RangeNotSatisfiable(HTTPError):  # noqa: N818
    """416"""

    status = 416

    def __init__(self, message: str | None = None, *, size: int | None = None) -> None:
        headers = (("Content-Range", f"bytes */{size}"),) if size is not None else ()
        super().__init__(message=message, headers=headers)


class InternalServerError(HTTPError):  # noqa: N818
    """500"""

    status = 500

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message=message)


class NotImplementedMethod(HTTPError):  # noqa: N818
    """501: the request method is not in ``AppConfig.request_methods``."""

    status = 501

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message=message)
