"""Tests for context pooling and the current-context variable."""

import pytest

from fennec import get_ctx
from fennec.app import App
from fennec.ctx import Ctx
from fennec.http.headers import Headers
from fennec.http.query import QueryParams
from fennec.http.request import Request
from fennec.pool import CtxPool
from fennec.testing import TestClient


def _request(method: str = "GET", path: str = "/") -> Request:
    return Request(
        method=method,
        path=path,
        raw_path=path.encode(),
        headers=Headers(),
        query=QueryParams(),
        cookies={},
        body=b"",
    )


class TestCtxPool:
    def test_acquire_resets_state(self) -> None:
        app = App()
        pool = CtxPool()
        ctx = pool.acquire(app, _request(path="/first"))
        ctx.locals("user", "ann")
        ctx.status(500)
        pool.release(ctx)
        assert len(pool) == 1

        again = pool.acquire(app, _request("POST", "/second"))
        assert again is ctx
        assert again.locals("user") is None
        assert again.response is not None
        assert again.response.status == 200
        assert again.method() == "POST"
        assert again.path == "/second"
        assert again.index_route == -1
        assert len(pool) == 0

    def test_released_ctx_refuses_access(self) -> None:
        app = App()
        pool = CtxPool()
        ctx = pool.acquire(app, _request())
        pool.release(ctx)

        with pytest.raises(RuntimeError, match="released"):
            ctx.get("host")
        with pytest.raises(RuntimeError, match="released"):
            ctx.status(200)
        assert repr(ctx) == "<Ctx released>"

    def test_max_size(self) -> None:
        app = App()
        pool = CtxPool(max_size=1)
        first = pool.acquire(app, _request())
        second = pool.acquire(app, _request())
        pool.release(first)
        pool.release(second)
        assert len(pool) == 1

    def test_unknown_method(self) -> None:
        ctx = CtxPool().acquire(App(), _request("BREW"))
        assert ctx.method_int == -1


class TestAppPool:
    async def test_ctx_is_reused_and_released_after_request(self) -> None:
        app = App()
        captured: list[Ctx] = []

        @app.get("/")
        def index(ctx: Ctx) -> str:
            captured.append(ctx)
            return "ok"

        client = TestClient(app)
        await client.get("/")
        await client.get("/")
        assert captured[0] is captured[1]
        assert len(app.pool) == 1
        with pytest.raises(RuntimeError):
            captured[0].query("x")

    async def test_get_ctx_inside_request(self) -> None:
        app = App()

        def helper() -> str:
            return get_ctx().path

        app.get("/deep/path", lambda ctx: helper())
        assert (await TestClient(app).get("/deep/path")).text == "/deep/path"

    def test_get_ctx_outside_request(self) -> None:
        with pytest.raises(LookupError):
            get_ctx()
