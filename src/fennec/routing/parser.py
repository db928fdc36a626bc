"""Route pattern parsing and matching.

A pattern is split into alternating constant and parameter segments::

    /users/:id/books/:bid?   ->  "/users/"  :id  "/books/"  :bid?

Grammar:

* ``/const``: literal text; ``\\:`` escapes a special character
* ``/:name``: one parameter, ends at ``/ - . :`` or a modifier
* ``/:name?``: optional parameter
* ``/:name<int;min(1)>``: typed constraints, ``;``-separated
* ``/:name(regex)``: the regex must match the whole value
* ``/:name+`` / ``/:name*``: greedy, crosses ``/``; ``*`` may be empty
* ``/*`` and ``/+``: unnamed greedy parameters ``*1``, ``+1``, ...

Matching walks the segments left to right. A parameter that is
followed by a constant stops where that constant begins; greedy
parameters search for it from the right instead.
"""

from collections.abc import Mapping, MutableSequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from fennec.constants import MAX_PARAMS
from fennec.errors import ConfigurationError
from fennec.routing.constraints import (
    Constraint,
    CustomConstraint,
    build_constraint,
    pattern_constraint,
)

if TYPE_CHECKING:
    from fennec.config import AppConfig

ESCAPE = "\\"
_PARAM_START = frozenset(":*+")
# Characters that end a parameter name
_NAME_END = frozenset("/-.:\\?*+(<")

_ASCII_LOWER = str.maketrans("ABCDEFGHIJKLMNOPQRSTUVWXYZ", "abcdefghijklmnopqrstuvwxyz")


def ascii_lower(value: str) -> str:
    """Lower-case ASCII letters only, so the length never changes."""
    return value.translate(_ASCII_LOWER)


def remove_escape_chars(value: str) -> str:
    return value.replace(ESCAPE, "")


def canonicalize(path: str, *, case_sensitive: bool = False, strict_routing: bool = False) -> str:
    """The "pretty" form of a registered path.

    Empty becomes ``/``, a leading ``/`` is added, escapes are removed,
    letters are lower-cased unless *case_sensitive*, and trailing slashes
    are stripped unless *strict_routing* (the root stays ``/``).
    Idempotent for every flag combination.
    """
    if not path:
        return "/"
    if path[0] != "/":
        path = "/" + path
    path = remove_escape_chars(path)
    if not case_sensitive:
        path = ascii_lower(path)
    if not strict_routing and len(path) > 1:
        path = path.rstrip("/") or "/"
    return path


def detection_path(path: str, *, case_sensitive: bool = False, strict_routing: bool = False) -> str:
    """Normalize a request path for comparison against registered routes."""
    if not path:
        return "/"
    if not case_sensitive:
        path = ascii_lower(path)
    if not strict_routing and len(path) > 1:
        path = path.rstrip("/") or "/"
    return path


def _find_unescaped(value: str, char: str, start: int = 0) -> int:
    for i in range(start, len(value)):
        if value[i] == char and (i == 0 or value[i - 1] != ESCAPE):
            return i
    return -1


def _split_unescaped(value: str, sep: str) -> list[str]:
    parts: list[str] = []
    i = _find_unescaped(value, sep)
    while i != -1:
        parts.append(value[:i])
        value = value[i + 1 :]
        i = _find_unescaped(value, sep)
    parts.append(value)
    return parts


def _find_next_param_position(pattern: str) -> int:
    position = -1
    for i, char in enumerate(pattern):
        if char in _PARAM_START and (i == 0 or pattern[i - 1] != ESCAPE):
            position = i
            break
    if position > 0 and pattern[position] != "*":
        # a run of start characters belongs to the last one
        for i in range(position + 1, len(pattern)):
            if pattern[i] not in _PARAM_START:
                return i - 1
        return len(pattern) - 1
    return position


def has_partial_match_boundary(path: str, matched: int) -> bool:
    """Whether a prefix match of *matched* characters ends on a ``/`` boundary."""
    if matched < 0 or matched > len(path):
        return False
    if matched == len(path):
        return True
    if matched == 0:
        return False
    return path[matched - 1] == "/" or path[matched] == "/"


@dataclass(slots=True)
class Segment:
    """One constant or parameter piece of a parsed pattern."""

    const: str = ""
    param_name: str = ""
    is_param: bool = False
    is_optional: bool = False
    is_greedy: bool = False
    is_last: bool = False
    constraints: tuple[Constraint, ...] = ()
    # Constant text that ends this parameter; found by searching ahead
    compare_part: str = ""
    # How often ``compare_part`` appears in later constants (greedy search)
    part_count: int = 0
    # Fixed width: the constant's length, or 1 for adjacent plain params
    length: int = 0
    has_optional_slash: bool = False


@dataclass(slots=True)
class RouteParser:
    """Parsed form of one route pattern."""

    segments: list[Segment] = field(default_factory=list)
    params: list[str] = field(default_factory=list)
    _star_count: int = 0
    _plus_count: int = 0

    @classmethod
    def parse(
        cls,
        pattern: str,
        *,
        case_sensitive: bool = True,
        custom_constraints: Mapping[str, CustomConstraint] | None = None,
    ) -> "RouteParser":
        """Parse *pattern*, lower-casing constant text unless *case_sensitive*.

        Raises:
            ConfigurationError: For duplicate parameter names, more than one
                greedy parameter, a greedy parameter that is not the last
                parameter, an empty parameter name, a malformed constraint,
                or more than ``MAX_PARAMS`` parameters.
        """
        parser = cls()
        rest = pattern
        while rest:
            position = _find_next_param_position(rest)
            if position == 0:
                consumed, segment = parser._parse_param(rest, pattern, custom_constraints)
                parser.params.append(segment.param_name)
            else:
                chunk = rest if position == -1 else rest[:position]
                const = remove_escape_chars(chunk)
                if not case_sensitive:
                    const = ascii_lower(const)
                consumed, segment = len(chunk), Segment(const=const, length=len(const))
            parser.segments.append(segment)
            rest = rest[consumed:]
        if parser.segments:
            parser.segments[-1].is_last = True
        parser._validate(pattern)
        parser._add_meta_info()
        return parser

    def _parse_param(
        self,
        rest: str,
        pattern: str,
        custom: Mapping[str, CustomConstraint] | None,
    ) -> tuple[int, Segment]:
        head = rest[0]
        if head in "*+":
            if head == "*":
                self._star_count += 1
                name = f"*{self._star_count}"
            else:
                self._plus_count += 1
                name = f"+{self._plus_count}"
            return 1, Segment(param_name=name, is_param=True, is_greedy=True, is_optional=head == "*")

        constraints: list[Constraint] = []
        pos = 1
        while pos < len(rest) and not (rest[pos] in _NAME_END and rest[pos - 1] != ESCAPE):
            pos += 1
        name = remove_escape_chars(rest[1:pos])
        if not name:
            msg = f"Empty parameter name in route pattern {pattern!r}"
            raise ConfigurationError(msg)

        if pos < len(rest) and rest[pos] == "<":
            close = _find_unescaped(rest, ">", pos + 1)
            if close == -1:
                msg = f"Unterminated constraint in route pattern {pattern!r}"
                raise ConfigurationError(msg)
            constraints.extend(_parse_constraint_block(rest[pos + 1 : close], custom))
            pos = close + 1
        elif pos < len(rest) and rest[pos] == "(":
            close = _matching_paren(rest, pos)
            if close == -1:
                msg = f"Unbalanced parentheses in route pattern {pattern!r}"
                raise ConfigurationError(msg)
            constraints.append(pattern_constraint(rest[pos + 1 : close]))
            pos = close + 1

        optional = greedy = False
        if pos < len(rest) and rest[pos] in "?*+":
            modifier = rest[pos]
            optional = modifier in "?*"
            greedy = modifier in "*+"
            pos += 1

        segment = Segment(
            param_name=name,
            is_param=True,
            is_optional=optional,
            is_greedy=greedy,
            constraints=tuple(constraints),
        )
        return pos, segment

    def _validate(self, pattern: str) -> None:
        if len(set(self.params)) != len(self.params):
            msg = f"Duplicate parameter name in route pattern {pattern!r}"
            raise ConfigurationError(msg)
        if len(self.params) > MAX_PARAMS:
            msg = f"Route pattern {pattern!r} has more than {MAX_PARAMS} parameters"
            raise ConfigurationError(msg)
        params = [s for s in self.segments if s.is_param]
        greedy = [i for i, s in enumerate(params) if s.is_greedy]
        if len(greedy) > 1 or (greedy and greedy[0] != len(params) - 1):
            msg = f"A greedy parameter must be the last parameter in {pattern!r}"
            raise ConfigurationError(msg)

    def _add_meta_info(self) -> None:
        segments = self.segments
        compare_part = ""
        for segment in reversed(segments):
            if segment.is_param:
                segment.compare_part = compare_part
            else:
                compare_part = segment.const
                if len(compare_part) > 1:
                    compare_part = compare_part.rstrip("/")

        for i, segment in enumerate(segments):
            following = segments[i + 1] if i + 1 < len(segments) else None
            if segment.is_param:
                if (
                    following is not None
                    and following.is_param
                    and not segment.is_greedy
                    and not following.is_greedy
                ):
                    segment.length = 1
                if segment.compare_part:
                    segment.part_count = sum(
                        later.const.count(segment.compare_part)
                        for later in segments[i + 1 :]
                        if not later.is_param
                    )
            elif segment.const.endswith("/") and (
                segment.is_last or (following is not None and following.is_optional)
            ):
                segment.has_optional_slash = True

    # -- Matching --

    def get_match(
        self,
        detection: str,
        path: str,
        values: MutableSequence[str],
        *,
        partial: bool = False,
    ) -> bool:
        """Match *detection* (normalized) and capture values from *path* (original case).

        Both strings have the same length. Captured values are written
        to *values* in parameter order. With *partial*, unmatched trailing
        text is allowed when the match ends on a ``/`` boundary.
        """
        original = detection
        index = 0
        for segment in self.segments:
            remaining = len(detection)
            if not segment.is_param:
                size = segment.length
                if (
                    segment.has_optional_slash
                    and remaining == size - 1
                    and detection == segment.const[:-1]
                ):
                    size -= 1
                elif size > remaining or detection[:size] != segment.const:
                    return False
            else:
                size = _param_len(detection, segment)
                if not segment.is_optional and size == 0:
                    return False
                value = path[:size]
                if size or not segment.is_optional:
                    for constraint in segment.constraints:
                        if not constraint(value):
                            return False
                values[index] = value
                index += 1
            if remaining:
                detection, path = detection[size:], path[size:]

        if detection:
            if not partial:
                return False
            if not has_partial_match_boundary(original, len(original) - len(detection)):
                return False
        return True


def _parse_constraint_block(
    block: str,
    custom: Mapping[str, CustomConstraint] | None,
) -> list[Constraint]:
    constraints: list[Constraint] = []
    for raw in _split_unescaped(block, ";"):
        start = _find_unescaped(raw, "(")
        end = raw.rfind(")")
        if start != -1 and end > start:
            name = raw[:start]
            data = raw[start + 1 : end]
            if name == "regex":
                args: tuple[str, ...] = (data,)
            else:
                args = tuple(remove_escape_chars(arg) for arg in _split_unescaped(data, ","))
        else:
            name, args = raw, ()
        constraints.append(build_constraint(name.strip(), args, custom))
    return constraints


def _matching_paren(value: str, start: int) -> int:
    depth = 0
    for i in range(start, len(value)):
        if value[i - 1] == ESCAPE and i > start:
            continue
        if value[i] == "(":
            depth += 1
        elif value[i] == ")":
            depth -= 1
            if depth == 0:
                return i
    return -1


def _param_len(value: str, segment: Segment) -> int:
    """How much of *value* the parameter *segment* consumes."""
    if segment.is_last:
        if not segment.is_greedy:
            slash = value.find("/")
            if slash != -1:
                return slash
        return len(value)

    if segment.length and len(value) >= segment.length:
        return segment.length
    if segment.is_greedy:
        count = value.count(segment.compare_part)
        if count > 1:
            return _greedy_param_len(value, count, segment)

    position = value.find(segment.compare_part)
    if position != -1:
        # /api/:param/end must not match /api/123/456/end
        if (
            len(segment.compare_part) > 1
            and not segment.is_greedy
            and "/" in value[:position]
        ):
            return 0
        return position
    return len(value)


def _greedy_param_len(value: str, count: int, segment: Segment) -> int:
    # take from the right: leave room for every later occurrence
    remaining = segment.part_count
    while remaining > 0 and count > 0:
        count -= 1
        remaining -= 1
        position = value.rfind(segment.compare_part)
        if position == -1:
            break
        value = value[:position]
    return len(value)


def route_pattern_match(
    path: str,
    pattern: str,
    config: "AppConfig | None" = None,
    *,
    case_sensitive: bool = False,
    strict_routing: bool = False,
) -> bool:
    """Check *path* against *pattern* without registering a route.

    When *config* is given its ``case_sensitive`` and ``strict_routing``
    flags replace the keyword arguments.
    """
    if config is not None:
        case_sensitive = config.case_sensitive
        strict_routing = config.strict_routing
    if not pattern:
        pattern = "/"
    if pattern[0] != "/":
        pattern = "/" + pattern
    if not strict_routing and len(pattern) > 1:
        pattern = pattern.rstrip("/") or "/"
    pretty = canonicalize(pattern, case_sensitive=case_sensitive, strict_routing=strict_routing)
    detection = detection_path(path or "/", case_sensitive=case_sensitive, strict_routing=True)
    if (pretty == "/" and detection == "/") or pretty == "/*":
        return True
    parser = RouteParser.parse(pattern, case_sensitive=case_sensitive)
    if parser.params:
        values = [""] * MAX_PARAMS
        if parser.get_match(detection, path or "/", values):
            return True
    return pretty == detection
