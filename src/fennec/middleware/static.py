"""Static file serving.

Serves files below a directory for requests under a URL prefix.
Registered through ``App.static`` as a ``GET``/``HEAD`` middleware
route, so paths without a matching file fall through to the routes
registered after it::

    app.static("/assets", "./public", StaticConfig(max_age=3600))
    app.static("/", "./site")    # root-level, with index.html
"""

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any
from urllib.parse import unquote

import anyio

from fennec.constants import METHOD_GET, METHOD_HEAD
from fennec.ctx import SendFileConfig
from fennec.errors import ConfigurationError

if TYPE_CHECKING:
    from fennec.ctx import Ctx


@dataclass(frozen=True, slots=True)
class StaticConfig:
    """Options for ``App.static``.

    Attributes:
        index: File served for a directory request.
        byte_range: Answer ``Range`` requests with ``206``.
        download: Send files as attachments.
        max_age: ``Cache-Control: public, max-age=N`` when positive.
        browse: Directory listings. Not supported; must stay ``False``.
        next: ``next(ctx) -> bool``; skip serving when it returns true.
        modify_response: ``modify_response(ctx)`` after a file was sent.
    """

    index: str = "index.html"
    byte_range: bool = False
    download: bool = False
    max_age: int = 0
    browse: bool = False
    next: Callable[["Ctx"], bool] | None = None
    modify_response: Callable[["Ctx"], Any] | None = None


def new(root: str | Path, config: StaticConfig | None = None) -> Callable[["Ctx"], Any]:
    """Build the handler serving files below *root*.

    Resolves symlinks and refuses any path that ends up outside *root*.
    Missing files, refused paths and non-GET requests call
    ``ctx.next()``.
    """
    config = config or StaticConfig()
    if config.browse:
        msg = "StaticConfig.browse: directory listings are not supported"
        raise ConfigurationError(msg)
    directory = Path(root).resolve()
    file_config = SendFileConfig(
        download=config.download,
        max_age=config.max_age,
        byte_range=config.byte_range,
    )

    async def static_handler(ctx: "Ctx") -> None:
        if config.next is not None and config.next(ctx):
            await ctx.next()
            return
        if ctx.method() not in (METHOD_GET, METHOD_HEAD):
            await ctx.next()
            return

        route = ctx.route
        path = ctx.path
        offset = 0 if route is None or route.root else len(route.pretty_path)
        relative = path[offset:]
        if not ctx.app.config.unescape_path:  # type: ignore[union-attr]
            relative = unquote(relative)
        relative = relative.lstrip("/")

        target = anyio.Path(directory / relative) if relative else anyio.Path(directory)
        target = await target.resolve()
        if not Path(target).is_relative_to(directory):
            await ctx.next()
            return

        if await target.is_dir():
            index = target / config.index
            if not await index.is_file():
                await ctx.next()
                return
            if relative and not path.endswith("/"):
                ctx.redirect(path + "/", 301)
                return
            target = index

        if not await target.is_file():
            await ctx.next()
            return

        await ctx.send_file(str(target), file_config)
        if config.modify_response is not None:
            config.modify_response(ctx)

    return static_handler
