"""Groups: a path prefix plus middleware shared by a set of endpoints.

A group never stores routes. Each endpoint registered through it is
appended to the app with the group's prefix joined on and the group's
handlers placed in front::

    api = app.group("/api", auth)
    v1 = api.group("/v1", audit)
    v1.get("/users", list_users)    # GET /api/v1/users -> auth, audit, list_users

Later changes to a group's handler list do not touch routes that
already exist.
"""

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Self

from fennec._internal.types import Handler
from fennec.constants import (
    METHOD_CONNECT,
    METHOD_DELETE,
    METHOD_GET,
    METHOD_HEAD,
    METHOD_OPTIONS,
    METHOD_PATCH,
    METHOD_POST,
    METHOD_PUT,
    METHOD_TRACE,
    METHOD_USE,
)
from fennec.errors import ConfigurationError

if TYPE_CHECKING:
    from fennec.app import App
    from fennec.middleware.static import StaticConfig
    from fennec.routing.router import Router


def get_group_path(prefix: str, path: str) -> str:
    """Join *prefix* and *path* with exactly one ``/``."""
    if not path:
        return prefix
    if path[0] != "/":
        path = "/" + path
    return prefix.rstrip("/") + path


def split_use_args(args: Sequence[Any]) -> tuple[list[str], list[Handler], "App | None"]:
    """Sort ``use()`` arguments into prefixes, handlers and a sub-app."""
    from fennec.app import App

    prefixes: list[str] = []
    handlers: list[Handler] = []
    sub_app: App | None = None
    for arg in args:
        match arg:
            case str():
                prefixes.append(arg)
            case list() | tuple() if all(isinstance(p, str) for p in arg):
                prefixes.extend(arg)
            case App():
                sub_app = arg
            case _ if callable(arg):
                handlers.append(arg)
            case _:
                msg = f"use(): unexpected argument {arg!r}"
                raise ConfigurationError(msg)
    if sub_app is not None and handlers:
        msg = "use(): pass either handlers or a sub-app, not both"
        raise ConfigurationError(msg)
    return prefixes or ["/"], handlers, sub_app


class Registrar:
    """HTTP verb shortcuts shared by ``App`` and ``Group``.

    Subclasses implement ``add``. With no handlers, every shortcut
    returns a decorator instead of registering immediately.
    """

    __slots__ = ()

    router: "Router"

    def add(self, methods: Sequence[str], path: str, *handlers: Handler) -> Any:
        raise NotImplementedError

    def _verb(self, methods: Sequence[str], path: str, handlers: tuple[Handler, ...]) -> Any:
        if handlers:
            return self.add(methods, path, *handlers)

        def decorator(func: Handler) -> Handler:
            self.add(methods, path, func)
            return func

        return decorator

    def get(self, path: str, *handlers: Handler) -> Any:
        """Register ``GET`` plus a ``HEAD`` twin with the same handlers."""
        return self._verb([METHOD_HEAD, METHOD_GET], path, handlers)

    def head(self, path: str, *handlers: Handler) -> Any:
        return self._verb([METHOD_HEAD], path, handlers)

    def post(self, path: str, *handlers: Handler) -> Any:
        return self._verb([METHOD_POST], path, handlers)

    def put(self, path: str, *handlers: Handler) -> Any:
        return self._verb([METHOD_PUT], path, handlers)

    def delete(self, path: str, *handlers: Handler) -> Any:
        return self._verb([METHOD_DELETE], path, handlers)

    def connect(self, path: str, *handlers: Handler) -> Any:
        return self._verb([METHOD_CONNECT], path, handlers)

    def options(self, path: str, *handlers: Handler) -> Any:
        return self._verb([METHOD_OPTIONS], path, handlers)

    def trace(self, path: str, *handlers: Handler) -> Any:
        return self._verb([METHOD_TRACE], path, handlers)

    def patch(self, path: str, *handlers: Handler) -> Any:
        return self._verb([METHOD_PATCH], path, handlers)

    def all(self, path: str, *handlers: Handler) -> Any:
        """Register for every configured method (not as middleware)."""
        return self._verb(self.router.methods, path, handlers)

    def route(self, path: str) -> "RouteChain":
        """Chain several methods on one path: ``app.route("/x").get(a).post(b)``."""
        return RouteChain(self, path)


class Group(Registrar):
    """A prefix and handler list bound to an app (and maybe a parent group)."""

    __slots__ = ("_any_route", "app", "handlers", "name_prefix", "parent", "prefix")

    def __init__(
        self,
        app: "App",
        prefix: str,
        handlers: Sequence[Handler] = (),
        parent: "Group | None" = None,
    ) -> None:
        self.app = app
        self.prefix = prefix
        self.handlers: list[Handler] = list(handlers)
        self.parent = parent
        self.name_prefix = parent.name_prefix if parent is not None else ""
        self._any_route = False

    def __repr__(self) -> str:
        return f"<Group {self.prefix!r} handlers={len(self.handlers)}>"

    @property
    def router(self) -> "Router":
        return self.app.router

    def add(self, methods: Sequence[str], path: str, *handlers: Handler) -> Self:
        self.app.router.register(
            methods,
            get_group_path(self.prefix, path),
            [*self.handlers, *handlers],
            group=self,
        )
        self._any_route = True
        return self

    def use(self, *args: Any) -> Self:
        """Middleware below the group prefix; the group's handlers are not prepended."""
        prefixes, handlers, sub_app = split_use_args(args)
        if sub_app is not None:
            for prefix in prefixes:
                self.mount(prefix, sub_app)
            return self
        if not handlers:
            msg = "use(): at least one handler is required"
            raise ConfigurationError(msg)
        for prefix in prefixes:
            self.app.router.register(
                [METHOD_USE], get_group_path(self.prefix, prefix), handlers, group=self
            )
        self._any_route = True
        return self

    def group(self, prefix: str, *handlers: Handler) -> "Group":
        child = Group(
            self.app,
            get_group_path(self.prefix, prefix),
            [*self.handlers, *handlers],
            parent=self,
        )
        self.app.hooks.run_group(child)
        return child

    def mount(self, prefix: str, sub_app: "App") -> Self:
        self.app.mount(get_group_path(self.prefix, prefix), sub_app)
        self._any_route = True
        return self

    def static(self, prefix: str, root: str, config: "StaticConfig | None" = None) -> Self:
        self.app.static(get_group_path(self.prefix, prefix), root, config)
        self._any_route = True
        return self

    def name(self, name: str) -> Self:
        """Name the group, or its latest route once it has registered one.

        Route names registered through the group are prefixed with the
        group's name, including the names of all parent groups.
        """
        if self._any_route:
            self.app.router.name(name)
            return self
        self.name_prefix = self.parent.name_prefix + name if self.parent is not None else name
        self.app.hooks.run_group_name(self)
        return self


class RouteChain:
    """Several methods registered on one path, optionally nested."""

    __slots__ = ("_owner", "path")

    def __init__(self, owner: Registrar, path: str) -> None:
        self._owner = owner
        self.path = path

    def __repr__(self) -> str:
        return f"<RouteChain {self.path!r}>"

    def add(self, methods: Sequence[str], *handlers: Handler) -> Self:
        self._owner.add(methods, self.path, *handlers)
        return self

    def get(self, *handlers: Handler) -> Self:
        return self.add([METHOD_HEAD, METHOD_GET], *handlers)

    def head(self, *handlers: Handler) -> Self:
        return self.add([METHOD_HEAD], *handlers)

    def post(self, *handlers: Handler) -> Self:
        return self.add([METHOD_POST], *handlers)

    def put(self, *handlers: Handler) -> Self:
        return self.add([METHOD_PUT], *handlers)

    def delete(self, *handlers: Handler) -> Self:
        return self.add([METHOD_DELETE], *handlers)

    def connect(self, *handlers: Handler) -> Self:
        return self.add([METHOD_CONNECT], *handlers)

    def options(self, *handlers: Handler) -> Self:
        return self.add([METHOD_OPTIONS], *handlers)

    def trace(self, *handlers: Handler) -> Self:
        return self.add([METHOD_TRACE], *handlers)

    def patch(self, *handlers: Handler) -> Self:
        return self.add([METHOD_PATCH], *handlers)

    def all(self, *handlers: Handler) -> Self:
        return self.add(self._owner.router.methods, *handlers)

    def route(self, path: str) -> "RouteChain":
        return RouteChain(self._owner, get_group_path(self.path, path))

    def name(self, name: str) -> Self:
        self._owner.router.name(name)
        return self

