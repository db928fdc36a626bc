"""Cookie parsing and Set-Cookie serialization.

Consolidates the read side (``parse_cookies``, used by Request), the
write side (``Cookie.to_header_value``, used by Response), and the
reverse of the write side (``parse_set_cookie``, used by the test
client) in one module.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from email.utils import format_datetime, parsedate_to_datetime


def parse_cookies(header: str) -> dict[str, str]:
    """Parse a ``Cookie`` header value into a name-value dict.

    Values are kept in their wire form (no URL decoding). The first
    occurrence of a name wins. Returns an empty dict for empty headers.
    """
    if not header:
        return {}
    cookies: dict[str, str] = {}
    for pair in header.split(";"):
        pair = pair.strip()
        if "=" not in pair:
            continue
        key, _, value = pair.partition("=")
        key = key.strip()
        value = value.strip()
        if len(value) > 1 and value[0] == value[-1] == '"':
            value = value[1:-1]
        if key and key not in cookies:
            cookies[key] = value
    return cookies


@dataclass(frozen=True, slots=True)
class Cookie:
    """A ``Set-Cookie`` directive attached to a Response.

    ``max_age=0`` or an ``expires`` in the past deletes the cookie on
    the client. ``session_only`` drops both so the browser discards
    the cookie when it closes.
    """

    name: str
    value: str = ""
    path: str = "/"
    domain: str | None = None
    max_age: int | None = None
    expires: datetime | None = None
    secure: bool = False
    http_only: bool = False
    same_site: str = "Lax"
    session_only: bool = False
    partitioned: bool = False

    def to_header_value(self) -> str:
        """Serialize to a ``Set-Cookie`` header value string."""
        parts = [f"{self.name}={self.value}"]
        if not self.session_only:
            if self.max_age is not None:
                parts.append(f"Max-Age={self.max_age}")
            if self.expires is not None:
                parts.append(f"Expires={format_datetime(self.expires.astimezone(UTC), usegmt=True)}")
        if self.path:
            parts.append(f"Path={self.path}")
        if self.domain:
            parts.append(f"Domain={self.domain}")
        # SameSite=None and Partitioned both require Secure
        secure = self.secure or (self.same_site.lower() == "none") or self.partitioned
        if secure:
            parts.append("Secure")
        if self.http_only:
            parts.append("HttpOnly")
        if self.same_site:
            parts.append(f"SameSite={self.same_site}")
        if self.partitioned:
            parts.append("Partitioned")
        return "; ".join(parts)


def expired_cookie(name: str, path: str = "/", domain: str | None = None) -> Cookie:
    """A cookie that tells the client to delete *name*."""
    return Cookie(
        name=name,
        value="",
        path=path,
        domain=domain,
        expires=datetime(2009, 11, 10, 23, 0, tzinfo=UTC),
        max_age=0,
    )


def parse_set_cookie(header: str) -> Cookie:
    """Parse a ``Set-Cookie`` header value back into a ``Cookie``.

    Unknown attributes are ignored. Raises ``ValueError`` when the
    name-value pair is missing.
    """
    first, *attributes = (part.strip() for part in header.split(";"))
    if "=" not in first:
        msg = f"Malformed Set-Cookie value: {header!r}"
        raise ValueError(msg)
    name, _, value = first.partition("=")
    fields: dict[str, object] = {"path": "", "same_site": ""}
    for attribute in attributes:
        key, _, attr_value = attribute.partition("=")
        match key.strip().lower():
            case "path":
                fields["path"] = attr_value
            case "domain":
                fields["domain"] = attr_value or None
            case "max-age":
                fields["max_age"] = int(attr_value)
            case "expires":
                fields["expires"] = parsedate_to_datetime(attr_value)
            case "secure":
                fields["secure"] = True
            case "httponly":
                fields["http_only"] = True
            case "samesite":
                fields["same_site"] = attr_value
            case "partitioned":
                fields["partitioned"] = True
    return Cookie(name=name.strip(), value=value.strip(), **fields)  # type: ignore[arg-type]
