"""Application configuration.

AppConfig is a frozen dataclass: immutable after creation, IDE-autocompletable,
no string-key dict lookups.
"""

import json
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from fennec.constants import DEFAULT_BODY_LIMIT, DEFAULT_METHODS
from fennec.errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = AppConfig(case_sensitive=True, port=3000)
    """

    app_name: str = ""

    # Routing
    case_sensitive: bool = False
    strict_routing: bool = False
    unescape_path: bool = False
    request_methods: tuple[str, ...] = DEFAULT_METHODS

    # Errors -- ``error_handler(ctx, exc)``; None selects the default handler
    error_handler: Callable[..., Any] | None = None

    # Limits
    body_limit: int = DEFAULT_BODY_LIMIT

    # Proxies -- header holding the client IP, e.g. "X-Forwarded-For"
    proxy_header: str = ""
    server_header: str = ""

    # Templates
    template_dir: str | Path = "templates"
    autoescape: bool = True
    pass_locals_to_views: bool = False

    # Encoding
    json_encoder: Callable[[Any], str] = json.dumps
    json_decoder: Callable[[str | bytes], Any] = json.loads

    # Files
    enable_byte_range: bool = False

    # Server
    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False
    log_level: str = "info"
    workers: int = 1

    def __post_init__(self) -> None:
        if not self.request_methods:
            msg = "request_methods must not be empty"
            raise ConfigurationError(msg)
        for method in self.request_methods:
            if not method or method != method.upper():
                msg = f"request method {method!r} must be a non-empty upper-case token"
                raise ConfigurationError(msg)
        if len(set(self.request_methods)) != len(self.request_methods):
            msg = f"request_methods contains duplicates: {self.request_methods!r}"
            raise ConfigurationError(msg)
        if self.body_limit <= 0:
            msg = f"body_limit must be positive, got {self.body_limit}"
            raise ConfigurationError(msg)
