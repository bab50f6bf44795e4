"""Front matter extraction for vro.

A Markdown source may open with a YAML block fenced by ``---`` lines. The
block is parsed into the document metadata and stripped from the body
before the Markdown is rendered.
"""

from __future__ import annotations

import re
from typing import Any

import yaml

from .errors import RenderError

FRONTMATTER_RE = re.compile(
    r"\A---[ \t]*\r?\n(?:(.*?)\r?\n)?---[ \t]*(?:\r?\n|\Z)", re.DOTALL
)


def extract_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    """Extract YAML frontmatter from content.

    Args:
        text: Raw file content.

    Returns:
        Tuple of (frontmatter dict, remaining content). Content without a
        front matter block yields an empty dict and the text unchanged.

    Raises:
        RenderError: If the block is not valid YAML or is not a mapping.
    """
    match = FRONTMATTER_RE.match(text)
    if not match:
        return {}, text
    try:
        data = yaml.safe_load(match.group(1) or "")
    except yaml.YAMLError as exc:
        raise RenderError(f"Invalid front matter: {exc}", original_error=exc) from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise RenderError(
            f"Front matter must be a mapping, got {type(data).__name__}"
        )
    return {str(key): value for key, value in data.items()}, text[match.end():]
