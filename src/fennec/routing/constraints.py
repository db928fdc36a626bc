"""Parameter constraints: ``/:id<int>``, ``/:name<minLen(3);alpha>``, ``/:slug(\\w+)``.

A constraint is compiled once when the route is registered. Unknown
constraint names and malformed arguments raise ``ConfigurationError``
then, never at match time.
"""

import re
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime

from fennec.errors import ConfigurationError

# Custom constraint: ``check(value, *args) -> bool``
type CustomConstraint = Callable[..., bool]

_INT = re.compile(r"[+-]?\d+")
_FLOAT = re.compile(r"[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?|[+-]?(inf|infinity|nan)", re.IGNORECASE)
_BOOL = frozenset({"1", "t", "T", "TRUE", "true", "True", "0", "f", "F", "FALSE", "false", "False"})


def _is_int(value: str) -> bool:
    return _INT.fullmatch(value) is not None


def _is_guid(value: str) -> bool:
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


def _is_datetime(value: str, fmt: str) -> bool:
    try:
        datetime.strptime(value, fmt)
    except ValueError:
        return False
    return True


@dataclass(frozen=True, slots=True)
class Constraint:
    """A compiled check applied to one captured parameter value."""

    name: str
    args: tuple[str, ...] = ()
    check: Callable[[str], bool] = field(default=lambda _value: True, repr=False, compare=False)

    def __call__(self, value: str) -> bool:
        return self.check(value)


def _int_arg(name: str, raw: str) -> int:
    if not _is_int(raw):
        msg = f"Constraint {name!r} expects an integer argument, got {raw!r}"
        raise ConfigurationError(msg)
    return int(raw)


def _arity(name: str, args: tuple[str, ...], expected: int) -> None:
    if len(args) != expected:
        msg = f"Constraint {name!r} takes {expected} argument(s), got {len(args)}"
        raise ConfigurationError(msg)


def build_constraint(
    name: str,
    args: tuple[str, ...] = (),
    custom: Mapping[str, CustomConstraint] | None = None,
) -> Constraint:
    """Compile a named constraint.

    Custom constraints registered on the app take precedence over the
    built-in ones of the same name.
    """
    if custom and name in custom:
        fn = custom[name]
        return Constraint(name, args, lambda value: bool(fn(value, *args)))

    match name:
        case "int":
            check = _is_int
        case "bool":
            check = _BOOL.__contains__
        case "float":
            check = lambda value: _FLOAT.fullmatch(value) is not None  # noqa: E731
        case "alpha":
            check = lambda value: all(ch.isalpha() for ch in value)  # noqa: E731
        case "guid":
            check = _is_guid
        case "minLen" | "minlen":
            _arity(name, args, 1)
            low = _int_arg(name, args[0])
            check = lambda value: len(value) >= low  # noqa: E731
        case "maxLen" | "maxlen":
            _arity(name, args, 1)
            high = _int_arg(name, args[0])
            check = lambda value: len(value) <= high  # noqa: E731
        case "len":
            _arity(name, args, 1)
            exact = _int_arg(name, args[0])
            check = lambda value: len(value) == exact  # noqa: E731
        case "betweenLen" | "betweenlen":
            _arity(name, args, 2)
            low, high = _int_arg(name, args[0]), _int_arg(name, args[1])
            check = lambda value: low <= len(value) <= high  # noqa: E731
        case "min":
            _arity(name, args, 1)
            low = _int_arg(name, args[0])
            check = lambda value: _is_int(value) and int(value) >= low  # noqa: E731
        case "max":
            _arity(name, args, 1)
            high = _int_arg(name, args[0])
            check = lambda value: _is_int(value) and int(value) <= high  # noqa: E731
        case "range":
            _arity(name, args, 2)
            low, high = _int_arg(name, args[0]), _int_arg(name, args[1])
            check = lambda value: _is_int(value) and low <= int(value) <= high  # noqa: E731
        case "datetime":
            _arity(name, args, 1)
            fmt = args[0]
            check = lambda value: _is_datetime(value, fmt)  # noqa: E731
        case "regex":
            _arity(name, args, 1)
            check = _compile(args[0]).search
        case _:
            msg = f"Unknown route constraint {name!r}"
            raise ConfigurationError(msg)

    return Constraint(name, args, lambda value: bool(check(value)))


def pattern_constraint(expression: str) -> Constraint:
    """The ``/:name(expr)`` shorthand: *expr* must match the whole value."""
    compiled = _compile(expression)
    return Constraint("regex", (expression,), lambda value: compiled.fullmatch(value) is not None)


def _compile(expression: str) -> re.Pattern[str]:
    try:
        return re.compile(expression)
    except re.error as exc:
        msg = f"Invalid constraint regex {expression!r}: {exc}"
        raise ConfigurationError(msg) from exc
