"""Key authentication middleware.

Pulls a key out of the request with an ``Extractor`` and checks it with
a validator. A valid key is stored in ``ctx.locals`` for later handlers::

    async def check(ctx: Ctx, key: str) -> bool:
        return await keys.exists(key)

    app.use("/api", keyauth.new(KeyAuthConfig(validator=check)))

    @app.get("/api/me")
    def me(ctx: Ctx) -> str:
        return token_from_ctx(ctx)
"""

import hmac
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from fennec._internal.invoke import invoke
from fennec.errors import ConfigurationError, Unauthorized
from fennec.extractors import Extractor, Source, from_auth_header

if TYPE_CHECKING:
    from fennec.ctx import Ctx

MISSING_OR_MALFORMED = "missing or malformed API Key"

TOKEN_KEY = "keyauth_token"


async def _continue(ctx: "Ctx") -> None:
    await ctx.next()


def _reject(ctx: "Ctx", exc: BaseException) -> None:
    raise Unauthorized(MISSING_OR_MALFORMED)


def constant_time_validator(*keys: str) -> Callable[["Ctx", str], bool]:
    """A validator accepting exactly *keys*, compared in constant time."""
    encoded = [key.encode() for key in keys]

    def validate(_ctx: "Ctx", key: str) -> bool:
        candidate = key.encode()
        return any(hmac.compare_digest(candidate, known) for known in encoded)

    return validate


@dataclass(frozen=True, slots=True)
class KeyAuthConfig:
    """Key authentication configuration.

    Attributes:
        validator: ``validator(ctx, key) -> bool``, sync or async. Required.
        extractor: Where the key comes from; ``Authorization: Bearer``.
        success_handler: Runs after a valid key; defaults to ``ctx.next()``.
        error_handler: ``error_handler(ctx, exc)`` for a missing or
            rejected key; defaults to a ``401``.
        context_key: ``ctx.locals`` key the valid key is stored under.
        realm: Realm announced in ``WWW-Authenticate``.
        next: ``next(ctx) -> bool``; skip authentication when true.
    """

    validator: Callable[..., Any] | None = None
    extractor: Extractor = field(default_factory=lambda: from_auth_header("Bearer"))
    success_handler: Callable[["Ctx"], Any] = _continue
    error_handler: Callable[["Ctx", BaseException], Any] = _reject
    context_key: str = TOKEN_KEY
    realm: str = "Restricted"
    next: Callable[["Ctx"], bool] | None = None


def _challenge(config: KeyAuthConfig) -> str:
    if config.extractor.source is Source.AUTH_HEADER and config.extractor.auth_scheme:
        return f'{config.extractor.auth_scheme} realm="{config.realm}"'
    return f'ApiKey realm="{config.realm}"'


def new(config: KeyAuthConfig) -> Callable[["Ctx"], Any]:
    """Build the middleware.

    Raises:
        ConfigurationError: If no validator is configured.
    """
    if config.validator is None:
        msg = "KeyAuthConfig.validator is required"
        raise ConfigurationError(msg)
    validator = config.validator
    challenge = _challenge(config)

    async def keyauth(ctx: "Ctx") -> Any:
        if config.next is not None and config.next(ctx):
            await ctx.next()
            return None
        try:
            key = config.extractor.extract(ctx)
            valid = await invoke(validator, ctx, key)
        except Exception as exc:  # noqa: BLE001
            ctx.set("WWW-Authenticate", challenge)
            return await invoke(config.error_handler, ctx, exc)
        if not valid:
            ctx.set("WWW-Authenticate", challenge)
            return await invoke(config.error_handler, ctx, Unauthorized(MISSING_OR_MALFORMED))
        ctx.locals(config.context_key, key)
        return await invoke(config.success_handler, ctx)

    return keyauth


def token_from_ctx(ctx: "Ctx", context_key: str = TOKEN_KEY) -> str:
    """The key stored by ``keyauth`` for this request, or ``""``."""
    token = ctx.locals(context_key)
    return token if isinstance(token, str) else ""
