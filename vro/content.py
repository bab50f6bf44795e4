"""Content processing for vro.

This module holds the classify -> render -> lay out pipeline that both the
batch generator and the live resolver call. It owns no state of its own;
it only combines a Markdown converter with a layout.

Key class:
- ContentPipeline: Turns Markdown and fragment sources into full documents.
"""

from __future__ import annotations

from typing import Any

from .errors import RenderError
from .protocols import Layout, MarkdownConverter
from .utils import FileKind


class ContentPipeline:
    """Renders source files into complete HTML documents.

    Attributes:
        markdown: Converter used for Markdown sources.
        layout: Layout wrapped around every rendered body.
    """

    def __init__(self, markdown: MarkdownConverter, layout: Layout):
        self.markdown = markdown
        self.layout = layout

    def render_markdown(self, source: bytes | str, template: Any | None = None) -> str:
        """Render a Markdown source and wrap it in the layout.

        Raises:
            RenderError: If the Markdown cannot be converted.
            TemplateError: If the layout fails.
        """
        document = self.markdown.render(source)
        return self.layout.apply(
            document.html, document.metadata, document.toc, template=template
        )

    def render_fragment(self, source: bytes | str, template: Any | None = None) -> str:
        """Wrap a pre-rendered HTML fragment in the layout, with empty metadata.

        Raises:
            RenderError: If the fragment is not valid UTF-8.
            TemplateError: If the layout fails.
        """
        if isinstance(source, bytes):
            try:
                source = source.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise RenderError(f"Fragment is not valid UTF-8: {exc}", original_error=exc) from exc
        return self.layout.apply(source, {}, template=template)

    def render(self, kind: FileKind, source: bytes | str, template: Any | None = None) -> str:
        """Render a source of the given kind.

        Args:
            kind: MARKDOWN or FRAGMENT.
            source: File contents.
            template: Already acquired template, if any.

        Raises:
            ValueError: For PASSTHROUGH, which is never rendered.
        """
        if kind is FileKind.MARKDOWN:
            return self.render_markdown(source, template)
        if kind is FileKind.FRAGMENT:
            return self.render_fragment(source, template)
        raise ValueError(f"{kind.value} files are not rendered")
