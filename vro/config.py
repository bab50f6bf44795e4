"""Process configuration for vro.

Settings come from ``VRO_*`` environment variables, with defaults applied
for anything unset. Command-line options override them.

Key functions:
- load_settings: Read Settings from an environment mapping.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pygments.styles import get_all_styles

from .errors import ConfigError, OnError
from .renderers import MarkdownOptions

ENV_PREFIX = "VRO_"

DEFAULT_CONFIG: dict[str, Any] = {
    "port": 7000,
    "host": "",
    "debug": True,
    "path": "./contents",
    "output": "./out",
    "serve_sources": False,
    "highlight_style": "monokai",
    "line_numbers": True,
    "static_errors": "abort",
    "content_errors": "skip",
}

_TRUE = {"1", "t", "true", "yes", "on"}
_FALSE = {"0", "f", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    """Resolved process settings.

    Attributes:
        port: Listening port for live mode.
        host: Bind address; empty for all interfaces.
        debug: Development mode (reload the layout on every render).
        path: Source root holding ``content/`` and ``static/``.
        output: Destination directory for batch mode.
        serve_sources: Serve raw ``.md`` files in live mode.
        highlight_style: Pygments style for code blocks.
        line_numbers: Line numbers in code blocks.
        static_errors: Policy for failed static copies.
        content_errors: Policy for failed content files.
    """

    port: int = 7000
    host: str = ""
    debug: bool = True
    path: Path = Path("./contents")
    output: Path = Path("./out")
    serve_sources: bool = False
    highlight_style: str = "monokai"
    line_numbers: bool = True
    static_errors: OnError = OnError.ABORT
    content_errors: OnError = OnError.SKIP

    def markdown_options(self) -> MarkdownOptions:
        """Return the Markdown engine configuration for these settings."""
        return MarkdownOptions(
            highlight_style=self.highlight_style, line_numbers=self.line_numbers
        )


def parse_bool(value: str, name: str) -> bool:
    """Parse a boolean environment value.

    Raises:
        ConfigError: If the value is not a recognised boolean.
    """
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ConfigError(f"{name} must be a boolean, got {value!r}")


def _parse_port(value: Any, name: str) -> int:
    try:
        port = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be an integer, got {value!r}", original_error=exc) from exc
    if not 0 <= port <= 65535:
        raise ConfigError(f"{name} must be between 0 and 65535, got {port}")
    return port


def _parse_policy(value: Any, name: str) -> OnError:
    try:
        return OnError(str(value).strip().lower())
    except ValueError as exc:
        choices = ", ".join(policy.value for policy in OnError)
        raise ConfigError(f"{name} must be one of {choices}, got {value!r}", original_error=exc) from exc


def _parse_style(value: Any, name: str) -> str:
    style = str(value).strip()
    if style not in set(get_all_styles()):
        raise ConfigError(f"{name} is not a known Pygments style: {style!r}")
    return style


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Load settings from environment variables.

    Args:
        environ: Environment mapping; defaults to ``os.environ``.

    Returns:
        Settings with defaults applied for unset variables.

    Raises:
        ConfigError: If any variable has an invalid value.
    """
    environ = os.environ if environ is None else environ
    config = DEFAULT_CONFIG.copy()
    for key in config:
        value = environ.get(ENV_PREFIX + key.upper())
        if value is not None:
            config[key] = value

    def var(key: str) -> str:
        return ENV_PREFIX + key.upper()

    def flag(key: str) -> bool:
        value = config[key]
        return value if isinstance(value, bool) else parse_bool(value, var(key))

    return Settings(
        port=_parse_port(config["port"], var("port")),
        host=str(config["host"]),
        debug=flag("debug"),
        path=Path(config["path"]),
        output=Path(config["output"]),
        serve_sources=flag("serve_sources"),
        highlight_style=_parse_style(config["highlight_style"], var("highlight_style")),
        line_numbers=flag("line_numbers"),
        static_errors=_parse_policy(config["static_errors"], var("static_errors")),
        content_errors=_parse_policy(config["content_errors"], var("content_errors")),
    )
