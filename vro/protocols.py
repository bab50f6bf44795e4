"""Protocol definitions for vro.

This module defines the interfaces shared by the two drivers (batch
generation and live serving) and the rendering core they both call.

These protocols enable:
- Swapping the on-disk source tree for an in-memory one in tests
- Driving the generator and resolver with stub renderers
"""

from __future__ import annotations

from abc import abstractmethod
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, BinaryIO, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .renderers import Heading, RenderedDocument


@dataclass(frozen=True)
class Entry:
    """A single entry yielded while walking a source tree.

    Attributes:
        path: Slash-separated path relative to the tree root.
        name: Final path component.
        is_dir: Whether the entry is a directory.
    """

    path: str
    name: str
    is_dir: bool


@dataclass(frozen=True)
class EntryStat:
    """File information used for content negotiation."""

    name: str
    mtime: datetime
    size: int


@runtime_checkable
class SourceTree(Protocol):
    """Protocol for a read-only hierarchical file store.

    Paths are slash-separated and relative to the tree root; the empty
    string names the root itself.
    """

    @abstractmethod
    def walk(
        self, path: str = "", prune: Callable[[Entry], bool] | None = None
    ) -> Iterator[Entry]:
        """Yield entries below ``path`` depth-first in lexicographic order.

        Args:
            path: Directory to start from.
            prune: Optional predicate; matching entries and their
                descendants are not yielded.

        Raises:
            FileNotFoundError: If ``path`` does not exist.
            NotADirectoryError: If ``path`` is a file.
        """
        ...

    @abstractmethod
    def open(self, path: str) -> BinaryIO:
        """Open a file for binary, seekable reading."""
        ...

    @abstractmethod
    def read_bytes(self, path: str) -> bytes:
        """Return the full contents of a file."""
        ...

    @abstractmethod
    def stat(self, path: str) -> EntryStat:
        """Return name, modification time and size for a file."""
        ...

    @abstractmethod
    def is_file(self, path: str) -> bool:
        """Check whether ``path`` names an existing file."""
        ...

    @abstractmethod
    def is_dir(self, path: str) -> bool:
        """Check whether ``path`` names an existing directory."""
        ...

    @abstractmethod
    def sub(self, name: str) -> SourceTree:
        """Return a tree rooted at the subdirectory ``name``."""
        ...


@runtime_checkable
class MarkdownConverter(Protocol):
    """Protocol for turning Markdown source into an HTML fragment."""

    @abstractmethod
    def render(self, source: bytes | str) -> RenderedDocument:
        """Render Markdown to a RenderedDocument.

        Raises:
            RenderError: If the source cannot be parsed.
        """
        ...


@runtime_checkable
class Layout(Protocol):
    """Protocol for wrapping a fragment into a complete HTML document."""

    @abstractmethod
    def acquire(self) -> Any:
        """Return the template handle to render with, loading it if needed.

        Raises:
            TemplateError: If the template cannot be loaded.
        """
        ...

    @abstractmethod
    def apply(
        self,
        html: str,
        metadata: Mapping[str, Any] | None = None,
        toc: list[Heading] | None = None,
        template: Any | None = None,
    ) -> str:
        """Render the layout around ``html``.

        Raises:
            TemplateError: If the layout is unavailable or fails to execute.
        """
        ...
