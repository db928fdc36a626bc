"""Lifecycle hooks.

Registration hooks (route, name, group, group name, mount) run
synchronously while the app is being built; an exception raised by a
hook propagates out of the registering call and the registration is
rolled back. Listen and shutdown hooks run from the ASGI lifespan
protocol and may be ``async``.

Usage::

    @app.hooks.on_route
    def audit(route: Route) -> None:
        print(route.method, route.path)
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from fennec._internal.invoke import invoke

if TYPE_CHECKING:
    from fennec.app import App
    from fennec.routing.group import Group
    from fennec.routing.route import Route


@dataclass(frozen=True, slots=True)
class ListenData:
    """Payload for ``on_listen`` hooks."""

    host: str
    port: int
    app_name: str
    handler_count: int
    route_count: int
    workers: int = 1


type RouteHook = Callable[["Route"], Any]
type GroupHook = Callable[["Group"], Any]
type MountHook = Callable[["App"], Any]
type ListenHook = Callable[[ListenData], Any]
type ShutdownHook = Callable[[], Any]


class Hooks:
    """Per-app hook registry. Each ``on_*`` method doubles as a decorator."""

    __slots__ = (
        "_on_group",
        "_on_group_name",
        "_on_listen",
        "_on_mount",
        "_on_name",
        "_on_route",
        "_on_shutdown",
    )

    def __init__(self) -> None:
        self._on_route: list[RouteHook] = []
        self._on_name: list[RouteHook] = []
        self._on_group: list[GroupHook] = []
        self._on_group_name: list[GroupHook] = []
        self._on_mount: list[MountHook] = []
        self._on_listen: list[ListenHook] = []
        self._on_shutdown: list[ShutdownHook] = []

    # -- Registration --

    def on_route(self, fn: RouteHook) -> RouteHook:
        """Called with each route record as it is registered."""
        self._on_route.append(fn)
        return fn

    def on_name(self, fn: RouteHook) -> RouteHook:
        """Called when a route receives a name."""
        self._on_name.append(fn)
        return fn

    def on_group(self, fn: GroupHook) -> GroupHook:
        self._on_group.append(fn)
        return fn

    def on_group_name(self, fn: GroupHook) -> GroupHook:
        self._on_group_name.append(fn)
        return fn

    def on_mount(self, fn: MountHook) -> MountHook:
        """Called on the *mounted* app with its new parent."""
        self._on_mount.append(fn)
        return fn

    def on_listen(self, fn: ListenHook) -> ListenHook:
        self._on_listen.append(fn)
        return fn

    def on_shutdown(self, fn: ShutdownHook) -> ShutdownHook:
        self._on_shutdown.append(fn)
        return fn

    # -- Execution --

    def run_route(self, route: "Route") -> None:
        for hook in self._on_route:
            hook(route)

    def run_name(self, route: "Route") -> None:
        for hook in self._on_name:
            hook(route)

    def run_group(self, group: "Group") -> None:
        for hook in self._on_group:
            hook(group)

    def run_group_name(self, group: "Group") -> None:
        for hook in self._on_group_name:
            hook(group)

    def run_mount(self, parent: "App") -> None:
        for hook in self._on_mount:
            hook(parent)

    async def run_listen(self, data: ListenData) -> None:
        for hook in self._on_listen:
            await invoke(hook, data)

    async def run_shutdown(self) -> None:
        for hook in self._on_shutdown:
            await invoke(hook)
