"""Tests for the built-in middleware: recover, timeout, keyauth, static."""

import logging
from pathlib import Path

import anyio
import pytest

from fennec.app import App
from fennec.config import AppConfig
from fennec.ctx import Ctx
from fennec.errors import ConfigurationError, new_error
from fennec.extractors import from_header, from_query
from fennec.middleware import (
    KeyAuthConfig,
    RecoverConfig,
    StaticConfig,
    TimeoutConfig,
    keyauth,
    recover,
    timeout,
)
from fennec.middleware.keyauth import MISSING_OR_MALFORMED, constant_time_validator, token_from_ctx
from fennec.testing import TestClient


class TestRecover:
    async def test_exception_becomes_500_with_message(self) -> None:
        app = App()
        app.use(recover.new())

        @app.get("/")
        def index(ctx: Ctx) -> None:
            raise KeyError("boom")

        response = await TestClient(app).get("/")
        assert response.status == 500
        assert response.text == "'boom'"

    async def test_http_error_passes_through(self) -> None:
        app = App()
        app.use(recover.new())
        app.get("/", lambda ctx: new_error(409, "taken"))

        response = await TestClient(app).get("/")
        assert (response.status, response.text) == (409, "taken")

    async def test_empty_message_uses_reason_phrase(self) -> None:
        app = App()
        app.use(recover.new())

        @app.get("/")
        def index(ctx: Ctx) -> None:
            raise RuntimeError

        response = await TestClient(app).get("/")
        assert response.text == "Internal Server Error"

    async def test_stack_trace_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        app = App()
        app.use(recover.new(RecoverConfig(enable_stack_trace=True)))

        @app.get("/")
        def index(ctx: Ctx) -> None:
            raise ValueError("bad value")

        with caplog.at_level(logging.ERROR, logger="fennec.middleware"):
            await TestClient(app).get("/")
        assert any("panic recovered in GET /" in record.message for record in caplog.records)

    async def test_custom_stack_trace_handler(self) -> None:
        seen: list[str] = []
        config = RecoverConfig(
            enable_stack_trace=True,
            stack_trace_handler=lambda ctx, exc: seen.append(type(exc).__name__),
        )
        app = App()
        app.use(recover.new(config))

        @app.get("/")
        def index(ctx: Ctx) -> None:
            raise ValueError("bad value")

        await TestClient(app).get("/")
        assert seen == ["ValueError"]


class TestTimeout:
    async def test_slow_handler_is_408(self) -> None:
        async def slow(ctx: Ctx) -> str:
            await anyio.sleep(1)
            return "late"

        app = App()
        app.get("/", timeout.new(slow, TimeoutConfig(timeout=0.05)))

        response = await TestClient(app).get("/")
        assert response.status == 408
        assert response.text == "Request Timeout"

    async def test_fast_handler_passes(self) -> None:
        app = App()
        app.get("/", timeout.new(lambda ctx: "fast", TimeoutConfig(timeout=1.0)))
        assert (await TestClient(app).get("/")).text == "fast"

    async def test_on_timeout(self) -> None:
        async def slow(ctx: Ctx) -> None:
            await anyio.sleep(1)

        config = TimeoutConfig(timeout=0.05, on_timeout=lambda ctx: ctx.status(503).send_string("busy"))
        app = App()
        app.get("/", timeout.new(slow, config))

        response = await TestClient(app).get("/")
        assert (response.status, response.text) == (503, "busy")

    async def test_listed_errors_count_as_timeout(self) -> None:
        class DriverTimeout(Exception):
            pass

        def query(ctx: Ctx) -> None:
            raise DriverTimeout

        app = App()
        app.get("/", timeout.new(query, TimeoutConfig(timeout=1.0, errors=(DriverTimeout,))))
        assert (await TestClient(app).get("/")).status == 408

    def test_disabled_returns_handler(self) -> None:
        def handler(ctx: Ctx) -> None: ...

        assert timeout.new(handler) is handler
        assert timeout.new(handler, TimeoutConfig(timeout=0)) is handler


class TestKeyAuth:
    def _app(self, config: KeyAuthConfig) -> App:
        app = App()
        app.use("/api", keyauth.new(config))
        app.get("/api/me", lambda ctx: token_from_ctx(ctx))
        app.get("/public", lambda ctx: "public")
        return app

    async def test_valid_key(self) -> None:
        app = self._app(KeyAuthConfig(validator=constant_time_validator("secret")))

        response = await TestClient(app).get("/api/me", headers={"Authorization": "Bearer secret"})
        assert (response.status, response.text) == (200, "secret")

    async def test_missing_and_invalid_keys(self) -> None:
        app = self._app(KeyAuthConfig(validator=constant_time_validator("secret")))
        client = TestClient(app)

        for headers in (None, {"Authorization": "Bearer wrong"}, {"Authorization": "Basic secret"}):
            response = await client.get("/api/me", headers=headers)
            assert response.status == 401
            assert response.text == MISSING_OR_MALFORMED
            assert response.get_header("www-authenticate") == 'Bearer realm="Restricted"'

    async def test_routes_outside_prefix_are_open(self) -> None:
        app = self._app(KeyAuthConfig(validator=constant_time_validator("secret")))
        assert (await TestClient(app).get("/public")).text == "public"

    async def test_async_validator_and_custom_extractor(self) -> None:
        async def validate(ctx: Ctx, key: str) -> bool:
            await anyio.sleep(0)
            return key == "k1"

        config = KeyAuthConfig(validator=validate, extractor=from_header("X-Api-Key"), realm="api")
        app = self._app(config)
        client = TestClient(app)

        assert (await client.get("/api/me", headers={"X-Api-Key": "k1"})).text == "k1"
        response = await client.get("/api/me")
        assert response.get_header("www-authenticate") == 'ApiKey realm="api"'

    async def test_validator_error_goes_to_error_handler(self) -> None:
        def validate(ctx: Ctx, key: str) -> bool:
            raise new_error(403, "revoked")

        def on_error(ctx: Ctx, exc: BaseException) -> str:
            return f"denied: {exc}"

        app = self._app(KeyAuthConfig(validator=validate, error_handler=on_error))
        response = await TestClient(app).get("/api/me", headers={"Authorization": "Bearer x"})
        assert (response.status, response.text) == (200, "denied: revoked")

    async def test_success_handler_and_skip(self) -> None:
        async def success(ctx: Ctx) -> None:
            ctx.set("X-Authed", "1")
            await ctx.next()

        config = KeyAuthConfig(
            validator=constant_time_validator("secret"),
            extractor=from_query("key"),
            success_handler=success,
            next=lambda ctx: ctx.get("X-Internal") == "1",
        )
        app = self._app(config)
        client = TestClient(app)

        response = await client.get("/api/me?key=secret")
        assert response.get_header("x-authed") == "1"
        response = await client.get("/api/me", headers={"X-Internal": "1"})
        assert (response.status, response.text) == (200, "")

    def test_validator_required(self) -> None:
        with pytest.raises(ConfigurationError):
            keyauth.new(KeyAuthConfig())


@pytest.fixture
def public(tmp_path: Path) -> Path:
    root = tmp_path / "public"
    (root / "css").mkdir(parents=True)
    (root / "docs").mkdir()
    (root / "empty").mkdir()
    (root / "index.html").write_text("<h1>home</h1>")
    (root / "css" / "app.css").write_text("body{}")
    (root / "docs" / "index.html").write_text("docs")
    (root / "hello world.txt").write_text("spaced")
    (tmp_path / "secret.txt").write_text("secret")
    return root


class TestStatic:
    async def test_serves_file(self, public: Path) -> None:
        app = App()
        app.static("/assets", public)

        response = await TestClient(app).get("/assets/css/app.css")
        assert response.status == 200
        assert response.text == "body{}"
        assert response.get_header("content-type") == "text/css; charset=utf-8"

    async def test_index_and_directory_redirect(self, public: Path) -> None:
        app = App()
        app.static("/assets", public)
        client = TestClient(app)

        assert (await client.get("/assets")).text == "<h1>home</h1>"
        response = await client.get("/assets/docs")
        assert response.status == 301
        assert response.get_header("location") == "/assets/docs/"
        assert (await client.get("/assets/docs/")).text == "docs"

    async def test_root_prefix(self, public: Path) -> None:
        app = App()
        app.static("/", public)
        client = TestClient(app)

        assert (await client.get("/")).text == "<h1>home</h1>"
        assert (await client.get("/css/app.css")).text == "body{}"

    async def test_escaped_names(self, public: Path) -> None:
        app = App()
        app.static("/assets", public)
        assert (await TestClient(app).get("/assets/hello%20world.txt")).text == "spaced"

    async def test_escaped_names_with_unescape_path(self, public: Path) -> None:
        (public / "a%20b.txt").write_text("literal")
        app = App(AppConfig(unescape_path=True))
        app.static("/assets", public)
        client = TestClient(app)

        assert (await client.get("/assets/a%2520b.txt")).text == "literal"
        assert (await client.get("/assets/hello%20world.txt")).text == "spaced"

    async def test_falls_through_to_later_routes(self, public: Path) -> None:
        app = App()
        app.static("/assets", public)
        app.get("/assets/missing.js", lambda ctx: "generated")
        client = TestClient(app)

        assert (await client.get("/assets/missing.js")).text == "generated"
        assert (await client.get("/assets/empty")).status == 404
        assert (await client.get("/assets/nope.css")).status == 404

    async def test_refuses_paths_outside_root(self, public: Path) -> None:
        app = App()
        app.static("/assets", public)
        client = TestClient(app)

        assert (await client.get("/assets/../secret.txt")).status == 404
        assert (await client.get("/assets/%2e%2e/secret.txt")).status == 404

    async def test_only_get_and_head(self, public: Path) -> None:
        app = App()
        app.static("/assets", public)
        client = TestClient(app)

        head = await client.head("/assets/css/app.css")
        assert head.status == 200
        assert head.body == b""
        assert head.get_header("content-length") == "6"
        assert (await client.post("/assets/css/app.css")).status == 404

    async def test_config(self, public: Path) -> None:
        touched: list[str] = []
        config = StaticConfig(
            max_age=3600,
            download=True,
            byte_range=True,
            next=lambda ctx: ctx.query("skip") == "1",
            modify_response=lambda ctx: touched.append(ctx.path),
        )
        app = App()
        app.static("/assets", public, config)
        client = TestClient(app)

        response = await client.get("/assets/css/app.css", headers={"Range": "bytes=0-3"})
        assert response.status == 206
        assert response.text == "body"
        assert response.get_header("cache-control") == "public, max-age=3600"
        assert response.get_header("content-disposition") == 'attachment; filename="app.css"'
        assert touched == ["/assets/css/app.css"]

        assert (await client.get("/assets/css/app.css?skip=1")).status == 404

    def test_browse_not_supported(self, public: Path) -> None:
        app = App()
        with pytest.raises(ConfigurationError):
            app.static("/assets", public, StaticConfig(browse=True))

    async def test_custom_index(self, public: Path) -> None:
        (public / "docs" / "README.txt").write_text("readme")
        app = App()
        app.static("/d", public / "docs", StaticConfig(index="README.txt"))
        assert (await TestClient(app).get("/d")).text == "readme"
