"""Shared type aliases used across fennec modules."""

from collections.abc import Callable
from typing import Any, TypeAlias

# Handler or middleware: ``handler(ctx)``, sync or async
Handler: TypeAlias = Callable[..., Any]

# Error handler: ``handler(ctx, exc)``, sync or async
ErrorHandler: TypeAlias = Callable[..., Any]
