"""Tests for fennec.routing.group: prefixes, scoped middleware, names."""

from fennec.app import App
from fennec.ctx import Ctx
from fennec.routing.group import Group, get_group_path
from fennec.testing import TestClient


def _recorder(calls: list[str], name: str):
    async def handler(ctx: Ctx) -> None:
        calls.append(name)
        await ctx.next()

    return handler


class TestGetGroupPath:
    def test_joins_with_one_slash(self) -> None:
        assert get_group_path("/api", "/users") == "/api/users"
        assert get_group_path("/api/", "/users") == "/api/users"
        assert get_group_path("/api", "users") == "/api/users"

    def test_empty_path_keeps_prefix(self) -> None:
        assert get_group_path("/api", "") == "/api"

    def test_root_prefix(self) -> None:
        assert get_group_path("/", "/users") == "/users"


class TestGroup:
    def test_creating_a_group_adds_no_routes(self) -> None:
        app = App()
        app.group("/api", lambda ctx: None)
        assert app.get_routes() == []
        assert app.routes_count == 0

    async def test_prefix_and_handlers_prepended(self) -> None:
        app = App()
        calls: list[str] = []
        api = app.group("/api", _recorder(calls, "auth"))
        api.get("/users", lambda ctx: "users")

        async with TestClient(app) as client:
            response = await client.get("/api/users")
        assert response.text == "users"
        assert calls == ["auth"]

    async def test_nested_groups_concatenate(self) -> None:
        app = App()
        calls: list[str] = []
        api = app.group("/api", _recorder(calls, "auth"))
        v1 = api.group("/v1", _recorder(calls, "audit"))
        v1.get("/users", _recorder(calls, "mw"), lambda ctx: "users")

        route = next(r for r in app.get_routes() if r.method == "GET")
        assert route.path == "/api/v1/users"
        assert len(route.handlers) == 4

        async with TestClient(app) as client:
            response = await client.get("/api/v1/users")
        assert response.text == "users"
        assert calls == ["auth", "audit", "mw"]

    def test_later_group_changes_do_not_touch_existing_routes(self) -> None:
        app = App()
        api = app.group("/api", lambda ctx: None)
        api.post("/items", lambda ctx: "ok")
        api.handlers.append(lambda ctx: None)
        assert len(app.get_routes()[0].handlers) == 2

    async def test_group_use_does_not_prepend_group_handlers(self) -> None:
        app = App()
        calls: list[str] = []
        api = app.group("/api", _recorder(calls, "group"))
        api.use(_recorder(calls, "use"))
        api.get("/ping", lambda ctx: "pong")

        use_route = next(r for r in app.get_routes() if r.use)
        assert use_route.pretty_path == "/api"
        assert len(use_route.handlers) == 1

        async with TestClient(app) as client:
            await client.get("/api/ping")
        assert calls == ["use", "group"]

    async def test_group_route_chain(self) -> None:
        app = App()
        api = app.group("/api")
        api.route("/items").get(lambda ctx: "list").post(lambda ctx: "create")

        async with TestClient(app) as client:
            assert (await client.get("/api/items")).text == "list"
            assert (await client.post("/api/items")).text == "create"

    def test_decorator_form(self) -> None:
        app = App()
        api = app.group("/api")

        @api.delete("/items/:id")
        def remove(ctx: Ctx) -> None: ...

        route = app.get_routes()[0]
        assert route.path == "/api/items/:id"
        assert route.group is api
        assert route.handlers == [remove]

    def test_coalescing_crosses_group_boundaries(self) -> None:
        # Two groups with the same prefix registering the same path back to
        # back share one record; the record keeps the first group.
        app = App()
        first = app.group("/g", lambda ctx: None)
        second = app.group("/g", lambda ctx: None)
        first.post("/x", lambda ctx: None)
        second.post("/x", lambda ctx: None)

        routes = app.get_routes()
        assert len(routes) == 1
        assert routes[0].group is first
        assert len(routes[0].handlers) == 4

    def test_repr(self) -> None:
        app = App()
        assert repr(Group(app, "/api")) == "<Group '/api' handlers=0>"


class TestGroupNames:
    def test_group_name_prefixes_route_names(self) -> None:
        app = App()
        api = app.group("/api").name("api.")
        v1 = api.group("/v1").name("v1.")
        v1.get("/users", lambda ctx: None).name("users")

        route = app.get_route("api.v1.users")
        assert route is not None
        assert route.path == "/api/v1/users"

    def test_name_after_route_names_the_route(self) -> None:
        app = App()
        api = app.group("/api")
        api.get("/status", lambda ctx: None)
        api.name("status")
        assert app.get_route("status") is not None

    def test_group_hooks(self) -> None:
        app = App()
        created: list[str] = []
        named: list[str] = []
        app.hooks.on_group(lambda group: created.append(group.prefix))
        app.hooks.on_group_name(lambda group: named.append(group.name_prefix))

        api = app.group("/api")
        api.group("/v1").name("v1.")
        assert created == ["/api", "/api/v1"]
        assert named == ["v1."]
