"""Uniform value extraction from a request.

An ``Extractor`` reads one value (typically a credential) from a
request source. Middleware accepts an extractor instead of hard-coding
where a key lives, and can report ``extractor.source`` for auditing::

    token = chain(from_auth_header("Bearer"), from_cookie("token"))
    value = token.extract(ctx)    # raises ExtractorNotFound if absent

Missing and whitespace-only values both count as absent.
"""

import enum
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from fennec.errors import FennecError

if TYPE_CHECKING:
    from fennec.ctx import Ctx


class ExtractorNotFound(FennecError, LookupError):  # noqa: N818
    """The requested value is missing or blank."""


ErrNotFound = ExtractorNotFound


class Source(enum.Enum):
    HEADER = "header"
    AUTH_HEADER = "auth_header"
    FORM = "form"
    QUERY = "query"
    PARAM = "param"
    COOKIE = "cookie"
    CUSTOM = "custom"


type ExtractFn = Callable[["Ctx"], str]


def _not_found(_ctx: "Ctx") -> str:
    raise ExtractorNotFound("value not found")


@dataclass(frozen=True, slots=True)
class Extractor:
    """A named strategy for reading one value from a request.

    Attributes:
        source: Where the value comes from.
        key: Header, cookie, query, form or parameter name.
        extract: ``extract(ctx) -> str``; raises ``ExtractorNotFound``.
        auth_scheme: Scheme stripped by ``from_auth_header``.
        chain: The members of a ``chain()`` extractor, for introspection.
    """

    source: Source
    key: str
    extract: ExtractFn = field(repr=False, compare=False)
    auth_scheme: str = ""
    chain: tuple["Extractor", ...] = ()


def _required(value: str) -> str:
    value = value.strip()
    if not value:
        raise ExtractorNotFound("value not found")
    return value


def from_auth_header(auth_scheme: str = "Bearer") -> Extractor:
    """Read ``Authorization``, stripping *auth_scheme* when it is given.

    The scheme is matched case-insensitively and must be followed by at
    least one space or tab. With an empty scheme the whole trimmed
    header is returned.
    """
    scheme = re.compile(rf"{re.escape(auth_scheme)}[ \t]+", re.IGNORECASE) if auth_scheme else None

    def extract(ctx: "Ctx") -> str:
        header = ctx.get("Authorization")
        if scheme is None:
            return _required(header)
        found = scheme.match(header.lstrip(" \t"))
        if found is None:
            raise ExtractorNotFound("value not found")
        return _required(header.lstrip(" \t")[found.end() :])

    return Extractor(Source.AUTH_HEADER, "Authorization", extract, auth_scheme=auth_scheme)


def from_header(name: str) -> Extractor:
    return Extractor(Source.HEADER, name, lambda ctx: _required(ctx.get(name)))


def from_cookie(name: str) -> Extractor:
    return Extractor(Source.COOKIE, name, lambda ctx: _required(ctx.cookies(name)))


def from_query(name: str) -> Extractor:
    return Extractor(Source.QUERY, name, lambda ctx: _required(ctx.query(name)))


def from_form(name: str) -> Extractor:
    return Extractor(Source.FORM, name, lambda ctx: _required(ctx.form_value(name)))


def from_param(name: str) -> Extractor:
    return Extractor(Source.PARAM, name, lambda ctx: _required(ctx.params(name)))


def from_custom(key: str, fn: ExtractFn) -> Extractor:
    """Wrap *fn*; an empty result also counts as absent."""
    return Extractor(Source.CUSTOM, key, lambda ctx: _required(fn(ctx)))


def chain(*extractors: Extractor) -> Extractor:
    """Try *extractors* in order; the first non-empty value wins.

    When every member fails, the last failure is raised, so a chain
    ending in ``from_custom`` surfaces that function's own error. List
    trusted sources (headers, cookies) before query and form values.
    The chain reports the first member's source and key.
    """
    if not extractors:
        return Extractor(Source.CUSTOM, "", _not_found)

    members = tuple(extractors)

    def extract(ctx: "Ctx") -> str:
        last: Exception | None = None
        for extractor in members:
            try:
                value = extractor.extract(ctx)
            except Exception as exc:  # noqa: BLE001
                last = exc
                continue
            if value:
                return value
        if last is not None:
            raise last
        raise ExtractorNotFound("value not found")

    first = members[0]
    return Extractor(first.source, first.key, extract, auth_scheme=first.auth_scheme, chain=members)
