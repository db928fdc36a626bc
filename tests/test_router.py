"""Tests for fennec.routing.router: storage, buckets and rebuilds."""

import pytest

from fennec.config import AppConfig
from fennec.constants import METHOD_USE
from fennec.errors import ConfigurationError
from fennec.hooks import Hooks
from fennec.routing.router import Router


def _handler(ctx: object) -> None:
    return None


def _router(**overrides: object) -> Router:
    return Router(AppConfig(**overrides))  # type: ignore[arg-type]


class TestRegister:
    def test_route_fields(self) -> None:
        router = _router()
        router.register(["GET"], "/Users/:id", [_handler])
        route = router.stack[router.method_int("GET")][0]
        assert route.path == "/Users/:id"
        assert route.pretty_path == "/users/:id"
        assert route.params == ("id",)
        assert route.pos == 1
        assert not route.use
        assert router.routes_refreshed

    def test_use_route_for_every_method(self) -> None:
        router = _router()
        router.register([METHOD_USE], "/", [_handler])
        assert all(len(routes) == 1 for routes in router.stack)
        assert router.routes_count == len(router.methods)
        assert [routes[0].method for routes in router.stack] == list(router.methods)

    def test_use_flag_for_listed_methods(self) -> None:
        router = _router()
        router.register(["GET"], "/static", [_handler], use=True)
        route = router.stack[router.method_int("GET")][0]
        assert route.use
        assert router.stack[router.method_int("POST")] == []

    def test_lowercase_method_accepted(self) -> None:
        router = _router()
        router.register(["get"], "/", [_handler])
        assert router.stack[router.method_int("GET")][0].method == "GET"

    def test_invalid_pattern_raises(self) -> None:
        router = _router()
        with pytest.raises(ConfigurationError):
            router.register(["GET"], "/:id/:id", [_handler])

    def test_method_int(self) -> None:
        router = _router()
        assert router.method_int("GET") == 0
        assert router.method_int("BREW") == -1

    def test_mount_routes_are_hidden(self) -> None:
        router = _router()
        router.register([METHOD_USE], "/api", [], mount=True)
        assert router.routes() == []
        assert router.latest_route is None


class TestHooksDuringRegistration:
    def test_hook_sees_route(self) -> None:
        hooks = Hooks()
        seen: list[str] = []
        hooks.on_route(lambda route: seen.append(f"{route.method} {route.path}"))
        router = Router(AppConfig(), hooks)
        router.register(["POST"], "/items", [_handler])
        assert seen == ["POST /items"]

    def test_failing_hook_rolls_back(self) -> None:
        hooks = Hooks()

        def reject(route: object) -> None:
            raise ValueError("no")

        router = Router(AppConfig(), hooks)
        router.register(["POST"], "/ok", [_handler])
        hooks.on_route(reject)

        with pytest.raises(ValueError, match="no"):
            router.register(["POST"], "/bad", [_handler])
        assert [r.path for r in router.routes()] == ["/ok"]
        assert router.routes_count == 1
        assert router.handlers_count == 1
        assert router.latest_route is not None
        assert router.latest_route.path == "/ok"

    def test_failing_hook_rolls_back_coalesced_handlers(self) -> None:
        hooks = Hooks()
        router = Router(AppConfig(), hooks)
        router.register(["POST"], "/x", [_handler])

        def reject(route: object) -> None:
            raise ValueError("no")

        hooks.on_route(reject)
        with pytest.raises(ValueError):
            router.register(["POST"], "/x", [_handler])
        assert len(router.routes()[0].handlers) == 1


class TestBuckets:
    def test_bucket_key_and_shared_routes(self) -> None:
        router = _router()
        router.register([METHOD_USE], "/", [_handler])
        router.register(["GET"], "/users", [_handler])
        router.register(["GET"], "/:lang", [_handler])
        get = router.method_int("GET")

        bucket = router.bucket(get, "/us")
        assert [r.path for r in bucket] == ["/", "/users", "/:lang"]
        assert [r.pos for r in bucket] == sorted(r.pos for r in bucket)

        fallback = router.bucket(get, "/zz")
        assert [r.path for r in fallback] == ["/", "/:lang"]

    def test_optional_slash_shortens_key(self) -> None:
        router = _router()
        router.register(["GET"], "/a/:x?", [_handler])
        route = router.stack[router.method_int("GET")][0]
        assert route.tree_key == ""

    def test_short_constant_uses_shared_bucket(self) -> None:
        router = _router()
        router.register(["GET"], "/a", [_handler])
        assert router.stack[router.method_int("GET")][0].tree_key == ""

    def test_rebuild_only_after_changes(self) -> None:
        router = _router()
        router.register(["GET"], "/users", [_handler])
        router.build_tree()
        published = router.tree_stack
        router.build_tree()
        assert router.tree_stack is published

        router.register(["GET"], "/posts", [_handler])
        router.bucket(router.method_int("GET"), "/po")
        assert router.tree_stack is not published
        assert not router.routes_refreshed


class TestImport:
    def test_import_keeps_order_after_existing_routes(self) -> None:
        parent = _router()
        parent.register(["GET"], "/", [_handler])
        child = _router()
        child.register(["GET"], "/a", [_handler])
        child.register(["GET"], "/b", [_handler])

        imported = parent.import_routes("/sub", child)
        assert imported == 2
        routes = parent.stack[parent.method_int("GET")]
        assert [(r.path, r.pos) for r in routes] == [("/", 1), ("/sub/a", 2), ("/sub/b", 3)]
        assert parent.routes_count == 3
        assert parent.handlers_count == 3

    def test_import_does_not_share_handler_lists(self) -> None:
        parent = _router()
        child = _router()
        child.register(["GET"], "/a", [_handler])
        parent.import_routes("/sub", child)
        parent.stack[0][0].handlers.append(_handler)
        assert len(child.stack[0][0].handlers) == 1


class TestName:
    def test_name_applies_to_same_path_and_method(self) -> None:
        router = _router()
        router.register(["POST"], "/x", [_handler])
        router.register(["PUT"], "/x", [_handler])
        route = router.name("x")
        assert route.method == "PUT"
        assert router.find("x") is route
        post = router.stack[router.method_int("POST")][0]
        assert post.name == ""

    def test_name_hook(self) -> None:
        hooks = Hooks()
        named: list[str] = []
        hooks.on_name(lambda route: named.append(route.name))
        router = Router(AppConfig(), hooks)
        router.register(["GET"], "/x", [_handler])
        router.name("x")
        assert named == ["x"]
