"""Site building functionality for vro.

This module renders a whole source tree into an output directory in one
sequential pass.

The static subtree is copied verbatim under ``static/``; by default the
first failed copy aborts the build. The content subtree is then walked
depth-first in lexicographic order: Markdown and fragment sources are
rendered into ``.html`` files and everything else is copied unchanged. By
default a file that fails to render or write is logged and skipped. Both
policies are explicit OnError settings.

Key classes:
- SiteGenerator: Walks the source tree and writes the output tree.
- BuildResult: What a build wrote and what it skipped.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path

from .content import ContentPipeline
from .errors import OnError, StructuralError, VroError
from .protocols import Entry, SourceTree
from .utils import FileKind, classify, ensure_clean_dir, is_hidden

STATIC_DIR = "static"

logger = logging.getLogger(__name__)


@dataclass
class SkippedFile:
    """A source file left out of the output.

    Attributes:
        path: Path of the source file, relative to the source root.
        error: Why it was skipped.
    """

    path: str
    error: Exception


@dataclass
class BuildResult:
    """Result of a site build operation.

    Attributes:
        output_dir: Directory where the site was built.
        written: Output files, relative to output_dir, in write order.
        skipped: Source files that failed and were left out.
    """

    output_dir: Path
    written: list[str] = field(default_factory=list)
    skipped: list[SkippedFile] = field(default_factory=list)


def _prune_hidden(entry: Entry) -> bool:
    return is_hidden(entry.name)


def _copy_file(tree: SourceTree, path: str, target: Path) -> None:
    with tree.open(path) as src, open(target, "wb") as dst:
        shutil.copyfileobj(src, dst)


class SiteGenerator:
    """Generates the static site from a content tree and a static tree.

    Attributes:
        content: Renderable source tree (holds the layout template).
        static: Tree copied verbatim under ``static/``.
        pipeline: Shared rendering pipeline.
        static_errors: Policy for a failed static copy.
        content_errors: Policy for a content file that fails.
        clean: Wipe the destination before building.
    """

    def __init__(
        self,
        content: SourceTree,
        static: SourceTree,
        pipeline: ContentPipeline,
        static_errors: OnError = OnError.ABORT,
        content_errors: OnError = OnError.SKIP,
        clean: bool = False,
    ):
        self.content = content
        self.static = static
        self.pipeline = pipeline
        self.static_errors = OnError(static_errors)
        self.content_errors = OnError(content_errors)
        self.clean = clean

    def generate(self, destination: Path | str) -> BuildResult:
        """Build the site into ``destination``.

        Args:
            destination: Output directory; created with its parents if absent.

        Returns:
            BuildResult listing written and skipped files.

        Raises:
            StructuralError: If a directory cannot be created or enumerated,
                or a step whose policy is ABORT fails on a write.
            RenderError: If content rendering fails under an ABORT policy.
            TemplateError: If the layout fails under an ABORT policy.
        """
        destination = Path(destination)
        try:
            if self.clean:
                ensure_clean_dir(destination)
            else:
                destination.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StructuralError(
                f"Cannot create output directory: {exc}", str(destination), exc
            ) from exc

        result = BuildResult(output_dir=destination)
        self._copy_static(destination, result)
        self._render_content(destination, result)
        logger.info(
            "Wrote %d files to %s (%d skipped)",
            len(result.written),
            destination,
            len(result.skipped),
        )
        return result

    def _walk(self, tree: SourceTree, label: str) -> Iterator[Entry]:
        try:
            yield from tree.walk("", prune=_prune_hidden)
        except OSError as exc:
            raise StructuralError(f"Cannot enumerate {label} tree: {exc}", label, exc) from exc

    def _make_dir(self, path: Path) -> None:
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StructuralError(f"Cannot create directory: {exc}", str(path), exc) from exc

    def _fail(
        self, policy: OnError, path: str, exc: Exception, result: BuildResult
    ) -> None:
        if policy is OnError.ABORT:
            logger.error("Build aborted at %s: %s", path, exc)
            if isinstance(exc, VroError):
                raise exc
            raise StructuralError(str(exc), path, exc) from exc
        logger.warning("Skipping %s: %s", path, exc)
        result.skipped.append(SkippedFile(path=path, error=exc))

    def _copy_static(self, destination: Path, result: BuildResult) -> None:
        static_root = destination / STATIC_DIR
        self._make_dir(static_root)
        for entry in self._walk(self.static, STATIC_DIR):
            target = static_root / entry.path
            if entry.is_dir:
                self._make_dir(target)
                continue
            try:
                _copy_file(self.static, entry.path, target)
            except OSError as exc:
                self._fail(self.static_errors, f"{STATIC_DIR}/{entry.path}", exc, result)
                continue
            written = f"{STATIC_DIR}/{entry.path}"
            result.written.append(written)
            logger.debug("Copied %s", written)

    def _render_content(self, destination: Path, result: BuildResult) -> None:
        for entry in self._walk(self.content, "content"):
            if entry.is_dir:
                self._make_dir(destination / entry.path)
                continue
            parent, _, _ = entry.path.rpartition("/")
            kind, output_name = classify(entry.name)
            target = (destination / parent if parent else destination) / output_name
            try:
                if kind is FileKind.PASSTHROUGH:
                    _copy_file(self.content, entry.path, target)
                else:
                    rendered = self.pipeline.render(kind, self.content.read_bytes(entry.path))
                    target.write_text(rendered, encoding="utf-8")
            except (VroError, OSError) as exc:
                self._fail(self.content_errors, entry.path, exc, result)
                continue
            written = target.relative_to(destination).as_posix()
            result.written.append(written)
            logger.debug("Wrote %s", written)
