"""Free list of ``Ctx`` objects.

``acquire`` hands out a fully reset context. ``release`` only drops the
context's request and response references before taking it back, so
a released context refuses all access until it is acquired again.
"""

import threading
from collections import deque
from typing import TYPE_CHECKING

from fennec.ctx import Ctx
from fennec.http.request import Request

if TYPE_CHECKING:
    from fennec.app import App


class CtxPool:
    """Thread-safe pool of reusable contexts.

    Args:
        max_size: Contexts kept for reuse; extras are dropped on release.
    """

    __slots__ = ("_free", "_lock", "max_size")

    def __init__(self, max_size: int = 1024) -> None:
        self.max_size = max_size
        self._free: deque[Ctx] = deque()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._free)

    def acquire(self, app: "App", request: Request) -> Ctx:
        with self._lock:
            ctx = self._free.pop() if self._free else None
        if ctx is None:
            ctx = Ctx()
        ctx.reset(app, request)
        return ctx

    def release(self, ctx: Ctx) -> None:
        """Return *ctx*. Must be called exactly once per acquire."""
        ctx.release()
        with self._lock:
            if len(self._free) < self.max_size:
                self._free.append(ctx)
