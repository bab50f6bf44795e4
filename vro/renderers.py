"""Markdown rendering for vro.

This module converts Markdown sources into HTML fragments. The parser is
configured once, from an immutable MarkdownOptions value, and a fresh
mistune instance is built for every render so no parser state is shared
between concurrent requests.

Key classes:
- MarkdownOptions: Extension set and highlighting theme.
- MarkdownEngine: Renders Markdown bytes to a RenderedDocument.
- RenderedDocument: HTML fragment plus metadata and headings.
- Heading: A heading collected while rendering, for TOC generation.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass, field
from typing import Any

import mistune
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import TextLexer, get_lexer_by_name
from pygments.util import ClassNotFound

from .errors import RenderError
from .extractors import extract_frontmatter

DEFAULT_PLUGINS = (
    "strikethrough",
    "table",
    "url",
    "task_lists",
    "footnotes",
    "math",
)

_TAG_RE = re.compile(r"<[^>]+>")


@dataclass
class Heading:
    """Represents a heading extracted from markdown content for TOC generation.

    Attributes:
        id: Anchor ID for the heading (URL-friendly slug).
        text: The plain text content of the heading.
        level: Heading level (1-6).
    """

    id: str
    text: str
    level: int


@dataclass
class RenderedDocument:
    """The result of rendering one Markdown source.

    Attributes:
        html: Rendered HTML fragment (trusted).
        metadata: Front matter mapping; empty when the source has none.
        toc: Headings in document order.
    """

    html: str
    metadata: dict[str, Any] = field(default_factory=dict)
    toc: list[Heading] = field(default_factory=list)


@dataclass(frozen=True)
class MarkdownOptions:
    """Process-wide Markdown configuration.

    Attributes:
        plugins: mistune plugin names, applied in order.
        highlight_style: Pygments style for fenced code.
        line_numbers: Whether code blocks show line numbers.
        hard_wrap: Whether single newlines become ``<br />``.
    """

    plugins: tuple[str, ...] = DEFAULT_PLUGINS
    highlight_style: str = "monokai"
    line_numbers: bool = True
    hard_wrap: bool = True


def _plain_text(fragment: str) -> str:
    return html.unescape(_TAG_RE.sub("", fragment)).strip()


def _generate_heading_id(text: str) -> str:
    """Generate a URL-friendly ID from heading text.

    Args:
        text: The heading text, possibly containing inline HTML.

    Returns:
        URL-friendly slug suitable for anchor links.
    """
    slug = _plain_text(text).lower()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[-\s]+", "-", slug)
    return slug.strip("-") or "heading"


def _lexer_for(info: str | None):
    name = info.split()[0] if info and info.strip() else ""
    if not name:
        return TextLexer(stripall=True)
    try:
        return get_lexer_by_name(name, stripall=True)
    except ClassNotFound:
        return TextLexer(stripall=True)


class _HighlightRenderer(mistune.HTMLRenderer):
    """Markdown renderer with heading anchors and Pygments highlighting.

    Attributes:
        options: Engine configuration.
        headings: List of Heading objects extracted during rendering.
    """

    def __init__(self, options: MarkdownOptions):
        super().__init__(escape=False)
        self.options = options
        self.headings: list[Heading] = []
        self._heading_id_counts: dict[str, int] = {}
        self._used_ids: set[str] = set()

    def heading(self, text: str, level: int, **attrs) -> str:
        """Render a heading with auto-generated ID and track for TOC.

        Repeated ids get the first free numeric suffix: ``intro``, ``intro-1``, ``intro-2``.
        """
        base_id = _generate_heading_id(text)

        heading_id = base_id
        while heading_id in self._used_ids:
            self._heading_id_counts[base_id] = self._heading_id_counts.get(base_id, 0) + 1
            heading_id = f"{base_id}-{self._heading_id_counts[base_id]}"
        self._used_ids.add(heading_id)

        self.headings.append(Heading(id=heading_id, text=_plain_text(text), level=level))

        return f'<h{level} id="{heading_id}">{text}</h{level}>\n'

    def block_code(self, code: str, info: str | None = None) -> str:
        """Render a code block with Pygments syntax highlighting.

        Unknown or missing languages are highlighted as plain text so every
        block shares the same theme.
        """
        formatter = HtmlFormatter(
            style=self.options.highlight_style,
            noclasses=True,
            linenos="inline" if self.options.line_numbers else False,
            cssclass="highlight",
        )
        return highlight(code, _lexer_for(info), formatter)


class MarkdownEngine:
    """Renders Markdown sources to HTML fragments.

    The engine itself holds only immutable configuration and can be shared
    by every caller in the process.

    Attributes:
        options: Markdown configuration fixed at construction.
    """

    def __init__(self, options: MarkdownOptions | None = None):
        self.options = options or MarkdownOptions()

    def render(self, source: bytes | str) -> RenderedDocument:
        """Render Markdown content to HTML.

        Args:
            source: Markdown source, as UTF-8 bytes or text.

        Returns:
            RenderedDocument with the fragment, front matter and headings.

        Raises:
            RenderError: If the source is not UTF-8, has invalid front
                matter, or the parser fails.
        """
        if isinstance(source, bytes):
            try:
                text = source.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise RenderError(f"Source is not valid UTF-8: {exc}", original_error=exc) from exc
        else:
            text = source
        text = text.removeprefix("\ufeff")

        metadata, body = extract_frontmatter(text)
        renderer = _HighlightRenderer(self.options)
        markdown = mistune.create_markdown(
            renderer=renderer,
            hard_wrap=self.options.hard_wrap,
            plugins=list(self.options.plugins),
        )
        try:
            fragment = markdown(body)
        except Exception as exc:
            raise RenderError(f"Markdown conversion failed: {exc}", original_error=exc) from exc
        return RenderedDocument(html=fragment, metadata=metadata, toc=renderer.headings)
