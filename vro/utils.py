"""Utility functions for vro.

This module holds the file classification rule shared by batch generation
and live serving, plus small path helpers.

Key functions:
    classify: Decide how a file is treated and what it is written as.
    is_hidden: Check if an entry name is hidden.
    has_hidden_segment: Check if any segment of a path is hidden.
    ensure_clean_dir: Ensure a directory exists and is empty.
"""

from __future__ import annotations

import shutil
from enum import Enum
from pathlib import Path
from typing import NamedTuple

MARKDOWN_SUFFIX = ".md"
FRAGMENT_SUFFIX = ".body"
OUTPUT_SUFFIX = ".html"


class FileKind(str, Enum):
    """How a source file is treated."""

    MARKDOWN = "markdown"
    FRAGMENT = "fragment"
    PASSTHROUGH = "passthrough"


class Classification(NamedTuple):
    kind: FileKind
    output_name: str


def classify(filename: str) -> Classification:
    """Classify a filename and compute its output name.

    Only the final extension is considered, and it is matched
    case-sensitively. ``.md`` sources become Markdown, ``.body`` sources
    become fragments, and everything else passes through unchanged.

    Args:
        filename: Base name of the source file.

    Returns:
        Classification with the kind and the output filename.

    Examples:
        >>> classify("post.md")
        Classification(kind=<FileKind.MARKDOWN: 'markdown'>, output_name='post.html')

        >>> classify("logo.png").output_name
        'logo.png'
    """
    if filename.endswith(MARKDOWN_SUFFIX) and filename != MARKDOWN_SUFFIX:
        return Classification(
            FileKind.MARKDOWN, filename[: -len(MARKDOWN_SUFFIX)] + OUTPUT_SUFFIX
        )
    if filename.endswith(FRAGMENT_SUFFIX) and filename != FRAGMENT_SUFFIX:
        return Classification(
            FileKind.FRAGMENT, filename[: -len(FRAGMENT_SUFFIX)] + OUTPUT_SUFFIX
        )
    return Classification(FileKind.PASSTHROUGH, filename)


def is_hidden(name: str) -> bool:
    """Check if an entry name is hidden (starts with a dot).

    Args:
        name: Final path component.

    Returns:
        True for dotfiles and dot-directories.
    """
    return name.startswith(".")


def has_hidden_segment(path: str) -> bool:
    """Check if any segment of a slash-separated path is hidden."""
    return any(is_hidden(segment) for segment in path.split("/") if segment)


def ensure_clean_dir(path: Path) -> None:
    """Ensure a directory exists and is empty.

    If the directory exists, removes all contents. Creates the
    directory if it doesn't exist.

    Args:
        path: Directory path to clean or create.
    """
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True, exist_ok=True)
