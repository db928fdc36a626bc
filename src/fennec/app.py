"""Fennec application class.

The app is a registry facade over one ``Router``: handlers are added
with ``use``, the verb shortcuts, ``group`` and ``mount``, and stay
registrable while serving. The routing tree is rebuilt on the next
request after any change.

Thread safety:
    Registration goes through the router's lock. Requests read the
    published tree without locking, and the lazy template environment
    is created under its own lock with a double check.
"""

import logging
import threading
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any, Self

from fennec._internal.asgi import Receive, Scope, Send
from fennec._internal.types import ErrorHandler, Handler
from fennec.config import AppConfig
from fennec.constants import METHOD_GET, METHOD_HEAD, METHOD_USE
from fennec.errors import ConfigurationError
from fennec.hooks import Hooks, ListenData
from fennec.pool import CtxPool
from fennec.radix import RadixTree
from fennec.routing.constraints import CustomConstraint
from fennec.routing.group import Group, Registrar, split_use_args
from fennec.routing.parser import canonicalize
from fennec.routing.route import Route
from fennec.routing.router import Router
from fennec.server.errors import default_error_handler
from fennec.server.handler import handle_request

if TYPE_CHECKING:
    from kida import Environment

    from fennec.middleware.static import StaticConfig

logger = logging.getLogger("fennec.server")


class App(Registrar):
    """The fennec application.

    Usage::

        app = App(AppConfig(app_name="shop"))

        @app.get("/hello/:name")
        def hello(ctx: Ctx) -> str:
            return f"Hello, {ctx.params('name')}!"

        app.listen(port=3000)
    """

    __slots__ = (
        "_env_lock",
        "_listen_address",
        "_mount_handlers",
        "_sub_apps",
        "_template_env",
        "_template_filters",
        "_template_globals",
        "config",
        "hooks",
        "mount_path",
        "pool",
        "router",
    )

    def __init__(self, config: AppConfig | None = None) -> None:
        self.config: AppConfig = config or AppConfig()
        self.hooks = Hooks()
        self.router = Router(self.config, self.hooks)
        self.pool = CtxPool()
        self.mount_path = ""
        # Mounted apps by prefix relative to this app, nested ones included
        self._sub_apps: dict[str, App] = {}
        # Canonical "prefix/" -> mounted app that has its own error handler
        self._mount_handlers: RadixTree[App] = RadixTree(cache_size=256)
        self._template_env: Environment | None = None
        self._template_filters: dict[str, Callable[..., Any]] = {}
        self._template_globals: dict[str, Any] = {}
        self._env_lock = threading.Lock()
        self._listen_address = (self.config.host, self.config.port)

    def __repr__(self) -> str:
        name = self.config.app_name or "fennec"
        return f"<App {name!r} routes={self.router.routes_count} handlers={self.router.handlers_count}>"

    # -- Registration --

    def add(self, methods: Sequence[str], path: str, *handlers: Handler) -> Self:
        """Register *handlers* for each of *methods* on *path*, run in order."""
        self.router.register(methods, path, handlers)
        return self

    def use(self, *args: Any) -> Self:
        """Install middleware, or mount a sub-app.

        Accepts an optional path (or list of paths), then handlers::

            app.use(logger)                 # every path
            app.use("/api", auth, audit)    # /api and below
            app.use(["/a", "/b"], auth)
            app.use("/admin", admin_app)    # same as app.mount(...)
        """
        prefixes, handlers, sub_app = split_use_args(args)
        if sub_app is not None:
            for prefix in prefixes:
                self.mount(prefix, sub_app)
            return self
        if not handlers:
            msg = "use(): at least one handler is required"
            raise ConfigurationError(msg)
        for prefix in prefixes:
            self.router.register([METHOD_USE], prefix, handlers)
        return self

    def static(self, prefix: str, root: str | Path, config: "StaticConfig | None" = None) -> Self:
        """Serve files below *root* for ``GET``/``HEAD`` requests under *prefix*."""
        from fennec.middleware import static

        handler = static.new(root, config)
        self.router.register([METHOD_HEAD, METHOD_GET], prefix, [handler], use=True)
        return self

    def group(self, prefix: str, *handlers: Handler) -> Group:
        """A route group under *prefix* whose routes run *handlers* first."""
        group = Group(self, prefix, handlers)
        self.hooks.run_group(group)
        return group

    def mount(self, prefix: str, sub_app: "App") -> Self:
        """Attach *sub_app*'s routes below *prefix*.

        The routes are copied when this is called; routes added to
        *sub_app* later are not seen. Errors raised below *prefix* go to
        *sub_app*'s own ``error_handler`` when its config sets one.
        """
        if sub_app is self:
            msg = "An app cannot be mounted on itself"
            raise ConfigurationError(msg)
        prefix = prefix.rstrip("/") or "/"
        if prefix[0] != "/":
            prefix = "/" + prefix
        base = "" if prefix == "/" else prefix

        self.router.register([METHOD_USE], prefix, [], mount=True)
        self.router.import_routes(prefix, sub_app.router)

        sub_app.mount_path = prefix
        self._register_sub_app(prefix, sub_app)
        for relative, nested in sub_app._sub_apps.items():
            nested.mount_path = base + relative
            self._register_sub_app(base + relative, nested)

        sub_app.hooks.run_mount(self)
        logger.debug("Mounted %r at %s", sub_app, prefix)
        return self

    def _register_sub_app(self, prefix: str, sub_app: "App") -> None:
        self._sub_apps[prefix] = sub_app
        if sub_app.config.error_handler is None:
            return
        key = canonicalize(
            prefix,
            case_sensitive=self.config.case_sensitive,
            strict_routing=False,
        ).rstrip("/") + "/"
        self._mount_handlers.insert(key, sub_app)

    def name(self, name: str) -> Self:
        """Name the route registered last (and its ``HEAD`` twin for ``GET``)."""
        self.router.name(name)
        return self

    def register_custom_constraint(self, name: str, check: CustomConstraint) -> None:
        """Make ``<name(args)>`` usable in patterns registered after this call."""
        self.router.custom_constraints[name] = check

    # -- Introspection --

    def get_routes(self, filter_use: bool = False) -> list[Route]:
        return self.router.routes(filter_use=filter_use)

    def get_route(self, name: str) -> Route | None:
        return self.router.find(name)

    @property
    def handlers_count(self) -> int:
        return self.router.handlers_count

    @property
    def routes_count(self) -> int:
        return self.router.routes_count

    @property
    def sub_apps(self) -> dict[str, "App"]:
        return dict(self._sub_apps)

    # -- Errors --

    @property
    def error_handler(self) -> ErrorHandler:
        return self.config.error_handler or default_error_handler

    def error_handler_for(self, detection: str) -> ErrorHandler:
        """The handler for an error raised while serving *detection*.

        A mounted app with its own handler owns the errors raised below
        its prefix; the longest such prefix wins.
        """
        if len(self._mount_handlers):
            found = self._mount_handlers.longest_prefix(detection.rstrip("/") + "/")
            if found is not None:
                return found[1].error_handler
        return self.error_handler

    # -- Template integration --

    def template_filter(
        self,
        name: str | None = None,
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Register a kida template filter."""

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            self._template_filters[name or func.__name__] = func
            self._template_env = None
            return func

        return decorator

    def template_global(
        self,
        name: str | None = None,
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Register a kida template global."""

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            self._template_globals[name or func.__name__] = func
            self._template_env = None
            return func

        return decorator

    def template_env(self) -> "Environment":
        """The kida environment, created on first use."""
        env = self._template_env
        if env is not None:
            return env
        with self._env_lock:
            if self._template_env is None:
                from fennec.templating import create_environment

                self._template_env = create_environment(
                    self.config, self._template_filters, self._template_globals
                )
            return self._template_env

    # -- Server --

    def listen(self, host: str | None = None, port: int | None = None) -> None:
        """Serve the app with pounce until interrupted."""
        from fennec.server.runner import run_server

        address = (host or self.config.host, port or self.config.port)
        self._listen_address = address
        self.router.build_tree()
        run_server(
            self,
            address[0],
            address[1],
            workers=self.config.workers,
            log_level=self.config.log_level,
        )

    async def startup(self) -> None:
        """Build the routing tree and run the listen hooks."""
        self.router.build_tree()
        host, port = self._listen_address
        await self.hooks.run_listen(
            ListenData(
                host=host,
                port=port,
                app_name=self.config.app_name,
                handler_count=self.router.handlers_count,
                route_count=self.router.routes_count,
                workers=self.config.workers,
            )
        )

    async def shutdown(self) -> None:
        await self.hooks.run_shutdown()

    # -- ASGI interface --

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI 3.0 entry point."""
        if scope["type"] == "lifespan":
            await self._handle_lifespan(receive, send)
            return
        await handle_request(scope, receive, send, app=self)

    async def _handle_lifespan(self, receive: Receive, send: Send) -> None:
        """Run the ASGI lifespan protocol.

        Startup and shutdown delegate to ``startup()`` and ``shutdown()``.
        """
        while True:
            message = await receive()
            msg_type = message["type"]

            if msg_type == "lifespan.startup":
                try:
                    await self.startup()
                except Exception as exc:
                    logger.exception("Startup failed")
                    await send({"type": "lifespan.startup.failed", "message": str(exc)})
                    return
                await send({"type": "lifespan.startup.complete"})

            elif msg_type == "lifespan.shutdown":
                try:
                    await self.shutdown()
                except Exception as exc:
                    logger.exception("Shutdown hook failed")
                    await send({"type": "lifespan.shutdown.failed", "message": str(exc)})
                    return
                await send({"type": "lifespan.shutdown.complete"})
                return
