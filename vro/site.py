"""Site wiring for vro.

Opens a source root (a directory holding ``content/`` and ``static/``) and
builds the rendering core once: one Markdown engine, one layout renderer
and the pipeline combining them. The batch generator and the live resolver
are created from it as two independent drivers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from .build import STATIC_DIR, SiteGenerator
from .content import ContentPipeline
from .errors import OnError, StructuralError
from .protocols import SourceTree
from .renderers import MarkdownEngine, MarkdownOptions
from .server import SiteResolver
from .sources import DirectoryTree
from .templates import LayoutRenderer

CONTENT_DIR = "content"

logger = logging.getLogger(__name__)


@dataclass
class Site:
    """A source tree together with its rendering core.

    Attributes:
        content: The ``content`` subtree.
        static: The ``static`` subtree.
        pipeline: Shared classify -> render -> lay out pipeline.
        debug: Reload the layout before every render.
    """

    content: SourceTree
    static: SourceTree
    pipeline: ContentPipeline
    debug: bool = False

    @classmethod
    def from_tree(
        cls,
        tree: SourceTree,
        debug: bool = False,
        options: MarkdownOptions | None = None,
    ) -> Site:
        """Build a Site over any SourceTree holding ``content`` and ``static``.

        Raises:
            StructuralError: If the tree has no ``content`` directory.
        """
        if not tree.is_dir(CONTENT_DIR):
            raise StructuralError(f"Expected a {CONTENT_DIR}/ directory", repr(tree))
        content = tree.sub(CONTENT_DIR)
        static = tree.sub(STATIC_DIR)
        pipeline = ContentPipeline(
            MarkdownEngine(options), LayoutRenderer(content, debug=debug)
        )
        return cls(content=content, static=static, pipeline=pipeline, debug=debug)

    @classmethod
    def open(
        cls,
        root: Path | str,
        debug: bool = False,
        options: MarkdownOptions | None = None,
    ) -> Site:
        """Open a source root directory.

        Raises:
            StructuralError: If ``root`` is not a directory or lacks ``content/``.
        """
        root = Path(root)
        if not root.is_dir():
            raise StructuralError("Source root is not a directory", str(root))
        logger.debug("Opening site at %s (debug=%s)", root, debug)
        return cls.from_tree(DirectoryTree(root), debug=debug, options=options)

    def generator(
        self,
        static_errors: OnError = OnError.ABORT,
        content_errors: OnError = OnError.SKIP,
        clean: bool = False,
    ) -> SiteGenerator:
        """Create the batch driver."""
        return SiteGenerator(
            self.content,
            self.static,
            self.pipeline,
            static_errors=static_errors,
            content_errors=content_errors,
            clean=clean,
        )

    def resolver(self, serve_sources: bool = False) -> SiteResolver:
        """Create the live driver."""
        return SiteResolver(
            self.content,
            self.static,
            self.pipeline,
            serve_sources=serve_sources,
            debug=self.debug,
        )
