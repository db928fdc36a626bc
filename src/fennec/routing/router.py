"""Route registry and the per-request match loop.

Routes are appended to ``stack[method]`` in registration order. The
lookup structure ``tree_stack`` is derived from ``stack`` and rebuilt
lazily on the first dispatch after a registration::

    tree_stack[method]["/us"] -> [use "/", GET "/users", GET "/users/:id"]
    tree_stack[method][""]    -> [use "/", GET "/:lang"]

Every bucket also carries the ``""`` routes, so a request only scans
one bucket. Buckets are sorted by registration position, which is the
order middleware and endpoints run in.
"""

import html
import logging
import threading
from collections.abc import Iterable, Mapping, Sequence
from typing import TYPE_CHECKING

from fennec._internal.invoke import invoke
from fennec._internal.types import Handler
from fennec.constants import MAX_PARAMS, METHOD_USE, MIME_OCTET_STREAM
from fennec.errors import ConfigurationError, MethodNotAllowed, NotFound
from fennec.hooks import Hooks
from fennec.http.response import Response
from fennec.routing.constraints import CustomConstraint
from fennec.routing.parser import RouteParser, canonicalize
from fennec.routing.route import Route

if TYPE_CHECKING:
    from fennec.config import AppConfig
    from fennec.ctx import Ctx
    from fennec.routing.group import Group

logger = logging.getLogger("fennec.routing")

type Bucket = tuple[Route, ...]
type Tree = Mapping[str, Bucket]


async def call_handler(handler: Handler, ctx: "Ctx") -> None:
    """Run one handler and write whatever it returns through *ctx*.

    ``None`` (or *ctx* itself, as chained helpers such as
    ``ctx.redirect`` return) leaves the response alone, so middleware
    that only calls ``await ctx.next()`` never touches it.
    """
    value = await invoke(handler, ctx)
    if value is ctx:
        return
    match value:
        case None:
            return
        case Response():
            ctx.response = value
        case str():
            ctx.send_string(value)
        case bytes() | bytearray() | memoryview():
            ctx.send(bytes(value))
            if not ctx.response.content_type:
                ctx.set("Content-Type", MIME_OCTET_STREAM)
        case dict() | list():
            ctx.json(value)
        case BaseException():
            raise value
        case _:
            msg = (
                f"Cannot write {type(value).__name__} returned by {handler!r}. "
                f"Return None, str, bytes, dict, list, Response, or an exception."
            )
            raise TypeError(msg)


class Router:
    """Per-app route storage and dispatch.

    Registration and tree rebuilds share one re-entrant lock. A rebuild
    publishes a fresh ``tree_stack`` tuple, and each request keeps the
    bucket it started with, so routes added while serving only affect
    requests that arrive afterwards.
    """

    __slots__ = (
        "_lock",
        "_method_index",
        "case_sensitive",
        "custom_constraints",
        "handlers_count",
        "hooks",
        "latest_route",
        "methods",
        "routes_count",
        "routes_refreshed",
        "stack",
        "strict_routing",
        "tree_stack",
    )

    def __init__(self, config: "AppConfig", hooks: Hooks | None = None) -> None:
        self.methods: tuple[str, ...] = tuple(config.request_methods)
        self._method_index = {method: i for i, method in enumerate(self.methods)}
        self.case_sensitive = config.case_sensitive
        self.strict_routing = config.strict_routing
        self.hooks = hooks if hooks is not None else Hooks()
        self.custom_constraints: dict[str, CustomConstraint] = {}
        self.stack: list[list[Route]] = [[] for _ in self.methods]
        self.tree_stack: tuple[Tree, ...] = tuple({} for _ in self.methods)
        self.handlers_count = 0
        self.routes_count = 0
        self.routes_refreshed = False
        self.latest_route: Route | None = None
        self._lock = threading.RLock()

    def method_int(self, method: str) -> int:
        """Index of *method* in the configured method list, or ``-1``."""
        return self._method_index.get(method, -1)

    # -- Registration --

    def register(
        self,
        methods: Iterable[str],
        path: str,
        handlers: Sequence[Handler],
        *,
        group: "Group | None" = None,
        mount: bool = False,
        use: bool = False,
    ) -> None:
        """Create route records for *methods* and append them to the stack.

        ``"USE"`` registers a middleware route that is copied to every
        configured method. Each copy owns its handler list. With
        ``use=True`` the listed methods get prefix-matching middleware
        routes instead.

        Raises:
            ConfigurationError: For an unknown method, a non-mount route
                without handlers, or an invalid pattern.
        """
        if not path:
            path = "/"
        if path[0] != "/":
            path = "/" + path
        pattern = path
        if not self.strict_routing and len(pattern) > 1:
            pattern = pattern.rstrip("/") or "/"

        pretty = canonicalize(path, case_sensitive=self.case_sensitive, strict_routing=self.strict_routing)
        parser = RouteParser.parse(
            pattern,
            case_sensitive=self.case_sensitive,
            custom_constraints=self.custom_constraints,
        )

        for raw_method in methods:
            method = raw_method.upper()
            if method != METHOD_USE and self.method_int(method) == -1:
                msg = f"Invalid HTTP method {raw_method!r} for route {path!r}"
                raise ConfigurationError(msg)
            if not handlers and not mount:
                msg = f"Missing handler for route {method} {path!r}"
                raise ConfigurationError(msg)

            route = Route(
                method=method,
                path=path,
                pretty_path=pretty,
                parser=parser,
                handlers=list(handlers),
                params=tuple(parser.params),
                group=group,
                use=method == METHOD_USE or use,
                mount=mount,
                star=pretty == "/*",
                root=pretty == "/",
            )
            if method == METHOD_USE:
                for each in self.methods:
                    self._add_route(each, route.copy(method=each))
            else:
                self._add_route(method, route)

    def _add_route(self, method: str, route: Route) -> Route:
        with self._lock:
            m = self.method_int(method)
            routes = self.stack[m]
            previous = routes[-1] if routes else None
            snapshot = (
                len(routes),
                len(previous.handlers) if previous else 0,
                self.handlers_count,
                self.routes_count,
                self.latest_route,
            )

            # Consecutive registrations of the same pattern share one record
            if (
                previous is not None
                and previous.pretty_path == route.pretty_path
                and previous.use == route.use
                and not route.mount
                and not previous.mount
            ):
                previous.handlers.extend(route.handlers)
                stored = previous
            else:
                self.routes_count += 1
                route.pos = self.routes_count
                route.method = method
                routes.append(route)
                stored = route

            self.handlers_count += len(route.handlers)
            self.routes_refreshed = True
            if stored.mount:
                return stored
            self.latest_route = stored

            try:
                self.hooks.run_route(stored)
            except Exception:
                size, handler_size, self.handlers_count, self.routes_count, self.latest_route = snapshot
                del routes[size:]
                if previous is not None:
                    del previous.handlers[handler_size:]
                raise
            return stored

    def import_routes(self, prefix: str, other: "Router") -> int:
        """Copy *other*'s routes below *prefix*, keeping their relative order.

        Used by ``App.mount``. Imported routes fire no route hooks.
        Returns the number of records imported.
        """
        from fennec.routing.group import get_group_path

        imported = 0
        with self._lock:
            base = self.routes_count
            for method, routes in zip(other.methods, other.stack, strict=True):
                m = self.method_int(method)
                if m == -1:
                    logger.debug("Skipping mounted routes for unknown method %s", method)
                    continue
                for route in routes:
                    path = get_group_path(prefix, route.path)
                    pattern = path
                    if not self.strict_routing and len(pattern) > 1:
                        pattern = pattern.rstrip("/") or "/"
                    pretty = canonicalize(
                        path, case_sensitive=self.case_sensitive, strict_routing=self.strict_routing
                    )
                    parser = RouteParser.parse(
                        pattern,
                        case_sensitive=self.case_sensitive,
                        custom_constraints={**other.custom_constraints, **self.custom_constraints},
                    )
                    self.stack[m].append(
                        route.copy(
                            path=path,
                            pretty_path=pretty,
                            parser=parser,
                            params=tuple(parser.params),
                            pos=base + route.pos,
                            star=pretty == "/*",
                            root=pretty == "/",
                        )
                    )
                    self.handlers_count += len(route.handlers)
                    imported += 1
            self.routes_count = base + other.routes_count
            self.routes_refreshed = True
        return imported

    def name(self, name: str) -> Route:
        """Name the most recently registered route.

        Routes sharing its path and method get the same name; naming a
        ``GET`` route also names its ``HEAD`` twin.
        """
        with self._lock:
            latest = self.latest_route
            if latest is None:
                msg = "name() called before any route was registered"
                raise ConfigurationError(msg)
            full = latest.group.name_prefix + name if latest.group is not None else name
            for routes in self.stack:
                for route in routes:
                    same_method = (
                        route.method == latest.method
                        or latest.use
                        or (latest.method == "GET" and route.method == "HEAD")
                    )
                    if route.path == latest.path and same_method:
                        route.name = full
            latest.name = full
            self.hooks.run_name(latest)
            return latest

    # -- Lookup structure --

    def build_tree(self) -> None:
        """Regroup every method's routes by tree key and publish the result."""
        with self._lock:
            if not self.routes_refreshed:
                return
            trees: list[Tree] = []
            for routes in self.stack:
                grouped: dict[str, list[Route]] = {}
                for route in routes:
                    grouped.setdefault(route.tree_key, []).append(route)
                shared = grouped.get("", [])
                tree: dict[str, Bucket] = {}
                for key, bucket in grouped.items():
                    if key:
                        bucket = list({id(r): r for r in (*bucket, *shared)}.values())
                    tree[key] = tuple(sorted(bucket, key=lambda r: r.pos))
                trees.append(tree)
            self.tree_stack = tuple(trees)
            self.routes_refreshed = False
            logger.debug("Rebuilt route tree: %d routes", self.routes_count)

    def bucket(self, method_int: int, tree_key: str) -> Bucket:
        """The routes a request with *tree_key* has to scan, in order."""
        if self.routes_refreshed:
            self.build_tree()
        tree = self.tree_stack[method_int]
        found = tree.get(tree_key)
        if found is None:
            found = tree.get("", ())
        return found

    # -- Dispatch --

    async def next(self, ctx: "Ctx") -> None:
        """Advance *ctx* to the next matching route and run its first handler.

        Raises:
            MethodNotAllowed: Nothing matched, but another method has a
                matching endpoint.
            NotFound: Nothing matched at all.
        """
        bucket = ctx.bucket
        if bucket is None:
            bucket = ctx.bucket = self.bucket(ctx.method_int, ctx.tree_path)

        while ctx.index_route < len(bucket) - 1:
            ctx.index_route += 1
            route = bucket[ctx.index_route]
            if route.mount:
                continue
            if not route.match(ctx.detection_path, ctx.path, ctx.values):
                continue
            ctx.route = route
            if not route.use:
                ctx.matched = True
            ctx.index_handler = 0
            if route.handlers:
                await call_handler(route.handlers[0], ctx)
            return

        method = ctx.method()
        if not ctx.matched:
            allowed = self.allowed_methods(ctx)
            if allowed:
                for each in allowed:
                    ctx.append("Allow", each)
                logger.debug("405 %s %s, allowed: %s", method, ctx.path_original, allowed)
                raise MethodNotAllowed(allowed)
        logger.debug("404 %s %s", method, ctx.path_original)
        raise NotFound(f"Cannot {method} {html.escape(ctx.path_original)}")

    def allowed_methods(self, ctx: "Ctx") -> list[str]:
        """Other methods with an endpoint matching *ctx*'s path."""
        scratch = [""] * MAX_PARAMS
        allowed: list[str] = []
        for m, method in enumerate(self.methods):
            if m == ctx.method_int:
                continue
            for route in self.bucket(m, ctx.tree_path):
                if route.use or route.mount:
                    continue
                if route.match(ctx.detection_path, ctx.path, scratch):
                    allowed.append(method)
                    break
        return allowed

    # -- Introspection --

    def routes(self, *, filter_use: bool = False) -> list[Route]:
        """Every stored route record, method by method."""
        return [
            route
            for routes in self.stack
            for route in routes
            if not route.mount and not (filter_use and route.use)
        ]

    def find(self, name: str) -> Route | None:
        for routes in self.stack:
            for route in routes:
                if route.name == name:
                    return route
        return None

    def __repr__(self) -> str:
        return f"<Router routes={self.routes_count} handlers={self.handlers_count}>"
