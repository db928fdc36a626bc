"""The in-flight context via ContextVar.

``ctx_var`` is set by the ASGI adapter for the duration of a request
and reset before the context goes back to the pool. Helpers deep in a
call stack can reach the context without it being passed down::

    from fennec.context import get_ctx

    def current_user_id() -> str:
        return get_ctx().locals("user_id")

Thread safety:
    ``ContextVar`` is task-local under asyncio and thread-local under
    free-threading. No locks needed.
"""

from contextvars import ContextVar

from fennec.ctx import Ctx

ctx_var: ContextVar[Ctx] = ContextVar("fennec_ctx")
"""The current context. Set by the ASGI adapter before dispatch."""


def get_ctx() -> Ctx:
    """Return the current context.

    Raises ``LookupError`` if called outside a request.
    """
    return ctx_var.get()
