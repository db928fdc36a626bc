"""Route: one registered (method, pattern, handlers) record."""

from collections.abc import Mapping, MutableSequence
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from fennec._internal.types import Handler
from fennec.routing.parser import RouteParser, has_partial_match_boundary

if TYPE_CHECKING:
    from fennec.routing.group import Group


@dataclass(slots=True, eq=False)
class Route:
    """A registered endpoint or middleware layer.

    ``path`` is the pattern as registered (escapes kept, shown in route
    listings); ``pretty_path`` is its canonical form used for matching.
    ``use`` routes match any path below ``pretty_path`` on a ``/``
    boundary, ``mount`` routes are placeholders that never match, ``star``
    marks ``/*`` and ``root`` marks ``/``.

    ``group`` is a back-reference for introspection and naming only;
    matching never follows it.
    """

    method: str
    path: str
    pretty_path: str
    parser: RouteParser
    handlers: list[Handler] = field(default_factory=list)
    params: tuple[str, ...] = ()
    group: "Group | None" = field(default=None, repr=False)
    pos: int = 0
    use: bool = False
    mount: bool = False
    star: bool = False
    root: bool = False
    name: str = ""

    @property
    def tree_key(self) -> str:
        """Bucket key: the first three characters of the leading constant."""
        segments = self.parser.segments
        if not segments or segments[0].is_param:
            return ""
        const = segments[0].const
        # "/a/:x?" also matches "/a", so only the part that must be present counts
        if segments[0].has_optional_slash:
            const = const[:-1]
        return const[:3] if len(const) >= 3 else ""

    def match(self, detection: str, path: str, values: MutableSequence[str]) -> bool:
        """Whether this route matches; captured parameters go to *values*.

        *detection* is the normalized request path, *path* the same path in
        its original case (parameter values are taken from it).
        """
        if self.root and detection == "/":
            return True
        if self.star:
            values[0] = path[1:] if len(path) > 1 else ""
            return True
        if self.params and self.parser.get_match(detection, path, values, partial=self.use):
            return True
        if self.use:
            if self.root:
                return True
            return detection.startswith(self.pretty_path) and has_partial_match_boundary(
                detection, len(self.pretty_path)
            )
        return self.pretty_path == detection

    def copy(self, **changes: Any) -> "Route":
        """A separate record with its own handler list."""
        changes.setdefault("handlers", list(self.handlers))
        return replace(self, **changes)

    def url(self, params: Mapping[str, Any] | None = None, *, case_sensitive: bool = False) -> str:
        """Build a concrete path by substituting *params* into the pattern.

        Greedy parameters also accept ``"*"`` / ``"+"`` as the key.
        """
        params = params or {}
        raw = RouteParser.parse(self.path)
        parts: list[str] = []
        for segment in raw.segments:
            if not segment.is_param:
                parts.append(segment.const)
                continue
            for key, value in params.items():
                same = key == segment.param_name or (
                    not case_sensitive and key.lower() == segment.param_name.lower()
                )
                greedy = segment.is_greedy and key in ("*", "+")
                if (same or greedy) and value is not None:
                    parts.append(str(value))
        return "".join(parts)

    def __repr__(self) -> str:
        kind = "use" if self.use else "mount" if self.mount else "route"
        return f"<Route {kind} {self.method} {self.path!r} pos={self.pos} handlers={len(self.handlers)}>"
