"""Kida environment setup for ``ctx.render``.

The environment is created lazily on the first render and reused for
the lifetime of the app. Filters and globals registered on the app
before that point are bound into it.
"""

from collections.abc import Callable, Mapping
from typing import Any

from kida import ChoiceLoader, Environment, FileSystemLoader

from fennec.config import AppConfig


def create_environment(
    config: AppConfig,
    filters: Mapping[str, Callable[..., Any]] | None = None,
    globals_: Mapping[str, Any] | None = None,
) -> Environment:
    """Create a kida Environment rooted at ``config.template_dir``."""
    env = Environment(
        loader=ChoiceLoader([FileSystemLoader(str(config.template_dir))]),
        autoescape=config.autoescape,
        auto_reload=config.debug,
    )
    if filters:
        env.update_filters(dict(filters))
    for name, value in (globals_ or {}).items():
        env.add_global(name, value)
    return env


def render_template(env: Environment, name: str, context: Mapping[str, Any]) -> str:
    """Render template *name* with *context* to a string."""
    return env.get_template(name).render(dict(context))
