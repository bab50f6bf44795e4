"""vro static site renderer.

This package renders a tree of Markdown sources and HTML fragments through
a single Jinja2 layout, either into a static output directory or on demand
over HTTP.

The main entry point is the CLI module, which provides commands for
building the site and serving it live.
"""

import logging

__all__ = ["__version__"]
__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())
