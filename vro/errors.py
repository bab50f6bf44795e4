"""Error types for vro.

Every failure the renderer reports derives from VroError and carries the
source path it concerns (when there is one), a human-readable message and
the underlying exception.

Key classes:
- StructuralError: The source or destination tree itself is unusable.
- RenderError: A Markdown source could not be converted.
- TemplateError: The layout template is missing, invalid or failed to execute.
- NotFoundError: A live request matched nothing in the source tree.
- ConfigError: A setting could not be parsed.
- OnError: Per-step policy deciding whether a failure aborts or is skipped.
"""

from __future__ import annotations

from enum import Enum


class VroError(Exception):
    """Base error with file context.

    Attributes:
        source_path: Path (relative to the tree it came from) that caused the error.
        message: Human-readable error message.
        original_error: The original exception that was caught.
    """

    def __init__(
        self,
        message: str,
        source_path: str | None = None,
        original_error: Exception | None = None,
    ):
        self.source_path = source_path
        self.message = message
        self.original_error = original_error
        if source_path:
            super().__init__(f"{source_path}: {message}")
        else:
            super().__init__(message)


class StructuralError(VroError):
    """A directory could not be created or enumerated; fatal to a batch run."""


class RenderError(VroError):
    """Markdown source could not be parsed into HTML."""


class TemplateError(VroError):
    """The layout template could not be loaded or executed."""


class NotFoundError(VroError):
    """No resource matched a live request."""


class ConfigError(VroError):
    """An environment setting has an invalid value."""


class OnError(str, Enum):
    """What a build step does when a single file fails."""

    ABORT = "abort"
    SKIP = "skip"
