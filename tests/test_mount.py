"""Tests for mounting sub-apps and per-mount error handlers."""

import pytest

from fennec.app import App
from fennec.config import AppConfig
from fennec.ctx import Ctx
from fennec.errors import ConfigurationError, NotFound
from fennec.testing import TestClient


def _error_handler(label: str):
    def handler(ctx: Ctx, exc: BaseException) -> None:
        ctx.status(getattr(exc, "status", 500)).send_string(f"{label}: {exc}")

    return handler


class TestMount:
    async def test_routes_are_served_below_prefix(self) -> None:
        admin = App()
        admin.get("/users", lambda ctx: "admin users")
        admin.get("/", lambda ctx: "admin home")

        app = App()
        app.mount("/admin", admin)
        client = TestClient(app)

        assert (await client.get("/admin/users")).text == "admin users"
        assert (await client.get("/admin")).text == "admin home"
        assert (await client.get("/users")).status == 404
        assert admin.mount_path == "/admin"
        assert app.sub_apps == {"/admin": admin}

    async def test_use_with_sub_app(self) -> None:
        blog = App()
        blog.get("/posts", lambda ctx: "posts")

        app = App()
        app.use("/blog", blog)
        assert (await TestClient(app).get("/blog/posts")).text == "posts"

    async def test_sub_app_middleware_stays_below_prefix(self) -> None:
        calls: list[str] = []

        async def audit(ctx: Ctx) -> None:
            calls.append(ctx.path)
            await ctx.next()

        api = App()
        api.use(audit)
        api.get("/items", lambda ctx: "items")

        app = App()
        app.get("/", lambda ctx: "home")
        app.mount("/api", api)
        client = TestClient(app)

        await client.get("/")
        await client.get("/api/items")
        assert calls == ["/api/items"]

    async def test_mount_keeps_position_among_parent_routes(self) -> None:
        calls: list[str] = []

        def record(name: str):
            async def handler(ctx: Ctx) -> None:
                calls.append(name)
                await ctx.next()

            return handler

        sub = App()
        sub.use(record("sub"))
        sub.get("/x", lambda ctx: "x")

        app = App()
        app.use(record("before"))
        app.mount("/m", sub)
        app.use(record("after"))
        app.get("/m/y", lambda ctx: "y")

        client = TestClient(app)
        assert (await client.get("/m/x")).text == "x"
        assert calls == ["before", "sub"]
        calls.clear()
        assert (await client.get("/m/y")).text == "y"
        assert calls == ["before", "sub", "after"]

    async def test_nested_mounts(self) -> None:
        inner = App()
        inner.get("/ping", lambda ctx: "pong")
        middle = App()
        middle.mount("/inner", inner)

        app = App()
        app.mount("/outer", middle)

        assert (await TestClient(app).get("/outer/inner/ping")).text == "pong"
        assert inner.mount_path == "/outer/inner"
        assert set(app.sub_apps) == {"/outer", "/outer/inner"}

    async def test_routes_added_after_mount_are_not_seen(self) -> None:
        sub = App()
        sub.get("/a", lambda ctx: "a")
        app = App()
        app.mount("/s", sub)
        sub.get("/b", lambda ctx: "b")

        client = TestClient(app)
        assert (await client.get("/s/a")).text == "a"
        assert (await client.get("/s/b")).status == 404

    def test_mount_on_itself_rejected(self) -> None:
        app = App()
        with pytest.raises(ConfigurationError):
            app.mount("/self", app)

    def test_mounted_routes_are_listed(self) -> None:
        sub = App()
        sub.post("/a", lambda ctx: None)
        app = App()
        app.post("/", lambda ctx: None)
        app.mount("/s", sub)

        assert app.handlers_count == 2
        assert [r.path for r in app.get_routes()] == ["/", "/s/a"]

    def test_on_mount_hook(self) -> None:
        parents: list[App] = []
        sub = App()
        sub.hooks.on_mount(parents.append)
        app = App()
        app.mount("/s", sub)
        assert parents == [app]


class TestMountErrorHandlers:
    async def test_longest_mount_prefix_owns_errors(self) -> None:
        inner = App(AppConfig(error_handler=_error_handler("inner")))
        inner.get("/boom", lambda ctx: NotFound("inner boom"))
        middle = App(AppConfig(error_handler=_error_handler("middle")))
        middle.get("/boom", lambda ctx: NotFound("middle boom"))
        middle.mount("/inner", inner)

        app = App(AppConfig(error_handler=_error_handler("root")))
        app.mount("/middle", middle)
        client = TestClient(app)

        assert (await client.get("/middle/inner/boom")).text == "inner: inner boom"
        assert (await client.get("/middle/boom")).text == "middle: middle boom"
        assert (await client.get("/middle/missing")).text == "middle: Cannot GET /middle/missing"
        assert (await client.get("/elsewhere")).text == "root: Cannot GET /elsewhere"

    async def test_prefix_boundary(self) -> None:
        api = App(AppConfig(error_handler=_error_handler("api")))
        app = App()
        app.mount("/api", api)
        client = TestClient(app)

        assert (await client.get("/api/nothing")).text == "api: Cannot GET /api/nothing"
        response = await client.get("/apiv2")
        assert response.text == "Cannot GET /apiv2"

    async def test_sub_app_without_handler_uses_parent(self) -> None:
        sub = App()
        sub.get("/x", lambda ctx: NotFound("nope"))
        app = App(AppConfig(error_handler=_error_handler("root")))
        app.mount("/s", sub)

        assert (await TestClient(app).get("/s/x")).text == "root: nope"

    def test_error_handler_for(self) -> None:
        handler = _error_handler("api")
        api = App(AppConfig(error_handler=handler))
        app = App()
        app.mount("/API", api)

        assert app.error_handler_for("/api/users") is handler
        assert app.error_handler_for("/api") is handler
        assert app.error_handler_for("/apix") is app.error_handler
