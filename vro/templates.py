"""Layout rendering for vro.

This module uses Jinja2 to wrap rendered fragments in the single layout
template, ``layout.templ`` at the root of the content tree.

The template is loaded lazily on first use and cached for the life of the
process. Concurrent first renders block on one load. In debug mode the
template is reloaded before every render instead, so edits show up
immediately. A load that fails caches nothing; the next render tries again.

Key class:
- LayoutRenderer: Loads the layout and renders fragments into it.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from typing import Any

from jinja2 import (
    BaseLoader,
    Environment,
    StrictUndefined,
    Template,
    TemplateNotFound,
    TemplateSyntaxError,
)
from markupsafe import Markup

from .errors import TemplateError
from .protocols import SourceTree
from .renderers import Heading
from .sources import InvalidPathError

__all__ = ["LAYOUT_NAME", "LayoutRenderer", "Metadata", "render_toc"]

LAYOUT_NAME = "layout.templ"

logger = logging.getLogger(__name__)


class Metadata(dict):
    """Metadata mapping exposed to the layout; missing keys read as ``""``."""

    def __missing__(self, key):
        return ""


class SourceTreeLoader(BaseLoader):
    """Jinja2 loader reading templates from a SourceTree.

    Templates are always reported stale; caching is handled by
    LayoutRenderer.
    """

    def __init__(self, tree: SourceTree):
        self.tree = tree

    def get_source(self, environment: Environment, template: str):
        try:
            data = self.tree.read_bytes(template)
        except (FileNotFoundError, IsADirectoryError, InvalidPathError) as exc:
            raise TemplateNotFound(template) from exc
        return data.decode("utf-8"), template, lambda: False


def render_toc(toc: list[Heading] | None) -> Markup:
    """Render a table of contents as nested HTML from headings.

    Generates properly nested `<ul><li><a href="#id">text</a></li></ul>` structure
    based on heading levels.

    Args:
        toc: Headings in document order.

    Returns:
        Markup-safe HTML string of the nested TOC, or empty Markup if no headings.
    """
    if not toc:
        return Markup("")

    html_parts: list[str] = []
    level_stack: list[int] = []

    for heading in toc:
        level = heading.level

        # Close nested lists if going to a shallower level
        while level_stack and level_stack[-1] > level:
            level_stack.pop()
            html_parts.append("</li></ul>")

        if level_stack and level_stack[-1] == level:
            html_parts.append("</li>")
        else:
            html_parts.append("<ul>")
            level_stack.append(level)

        html_parts.append(
            Markup('<li><a href="#{}">{}</a>').format(heading.id, heading.text)
        )

    while level_stack:
        level_stack.pop()
        html_parts.append("</li></ul>")

    return Markup("".join(html_parts))


def _format_error_message(exc: Exception) -> str:
    """Format a template execution error into a readable message."""
    error_type = type(exc).__name__
    error_msg = str(exc)

    if error_type == "UndefinedError":
        return f"Undefined variable: {error_msg}"
    if error_type == "TypeError":
        return f"Type error: {error_msg}"
    if error_type == "AttributeError":
        return f"Attribute error: {error_msg}"

    return f"{error_type}: {error_msg}"


class LayoutRenderer:
    """Renders HTML fragments into the layout template.

    Attributes:
        tree: Source tree holding the template.
        name: Template path within the tree.
        debug: Reload the template before every render.
        env: Jinja2 environment.
    """

    def __init__(self, tree: SourceTree, debug: bool = False, name: str = LAYOUT_NAME):
        self.tree = tree
        self.name = name
        self.debug = debug
        self.env = Environment(
            loader=SourceTreeLoader(tree),
            autoescape=True,
            undefined=StrictUndefined,
            cache_size=0,
        )
        self.env.globals["render_toc"] = render_toc
        self._template: Template | None = None
        self._lock = threading.Lock()

    @property
    def loaded(self) -> bool:
        """Whether a compiled template is currently cached."""
        return self._template is not None

    def reload(self) -> Template:
        """Load and compile the template, replacing the cached handle.

        Returns:
            The freshly compiled template.

        Raises:
            TemplateError: If the template is missing or does not compile.
        """
        try:
            template = self.env.get_template(self.name)
        except TemplateNotFound as exc:
            raise TemplateError("Layout template not found", self.name, exc) from exc
        except TemplateSyntaxError as exc:
            raise TemplateError(
                f"Template syntax error on line {exc.lineno}: {exc.message}", self.name, exc
            ) from exc
        except (OSError, UnicodeDecodeError) as exc:
            raise TemplateError(f"Cannot read layout template: {exc}", self.name, exc) from exc
        self._template = template
        logger.debug("Loaded layout template %s", self.name)
        return template

    def acquire(self) -> Template:
        """Return the template to render with.

        In debug mode this always reloads. Otherwise the first caller loads
        the template while concurrent callers wait, and later callers get
        the cached handle.

        Raises:
            TemplateError: If the template has to be loaded and cannot be.
        """
        if self.debug:
            return self.reload()
        template = self._template
        if template is not None:
            return template
        with self._lock:
            if self._template is None:
                return self.reload()
            return self._template

    def apply(
        self,
        html: str,
        metadata: Mapping[str, Any] | None = None,
        toc: list[Heading] | None = None,
        template: Template | None = None,
    ) -> str:
        """Render ``html`` inside the layout.

        Args:
            html: Trusted HTML fragment, inserted without escaping.
            metadata: Front matter mapping; empty when None.
            toc: Headings for the table of contents.
            template: Already acquired template; acquired when None.

        Returns:
            The complete HTML document.

        Raises:
            TemplateError: If the template is unavailable or fails to execute.
        """
        if template is None:
            template = self.acquire()
        context = {
            "content": Markup(html),
            "metadata": Metadata(metadata or {}),
            "toc": list(toc or []),
        }
        try:
            return template.render(**context)
        except Exception as exc:
            raise TemplateError(_format_error_message(exc), self.name, exc) from exc
