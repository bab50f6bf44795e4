"""Live serving for vro.

Renders the source tree on demand instead of building it ahead of time:
- ``/static/<path>`` serves files from the static subtree.
- Any other path is resolved against the content subtree, trying a
  Markdown source, then a fragment source, then a literal file.
- Directory listings, hidden entries and escaping paths are 404s.
- Rendering failures answer a generic 500; details only go to the log.

Key classes:
- SiteResolver: Maps a request path to a Response.
- SiteServer: Hosts a resolver on a threading HTTP server.
- _SiteRequestHandler: HTTP request handler delegating to the resolver.
"""

from __future__ import annotations

import logging
import mimetypes
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import formatdate, parsedate_to_datetime
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any
from urllib.parse import unquote, urlsplit

from . import __version__
from .content import ContentPipeline
from .errors import NotFoundError, VroError
from .protocols import SourceTree
from .sources import InvalidPathError, check_path
from .utils import FileKind, has_hidden_segment

STATIC_PREFIX = "/static"
HTML_CONTENT_TYPE = "text/html; charset=utf-8"
GENERIC_ERROR = "An unexpected error occurred while rendering the web page"

_RENDERED_VARIANTS = ((".md", FileKind.MARKDOWN), (".body", FileKind.FRAGMENT))
_BINARY_BYTES = frozenset(
    list(range(0x00, 0x09)) + [0x0B] + list(range(0x0E, 0x1B)) + list(range(0x1C, 0x20))
)

logger = logging.getLogger(__name__)


@dataclass
class Response:
    """An HTTP response produced by the resolver.

    Attributes:
        status: HTTP status code.
        body: Response payload.
        headers: Header names to values (Content-Length is added on send).
    """

    status: int
    body: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)

    @classmethod
    def html(cls, document: str) -> Response:
        return cls(200, document.encode("utf-8"), {"Content-Type": HTML_CONTENT_TYPE})

    @classmethod
    def text(cls, status: int, message: str) -> Response:
        return cls(
            status,
            f"{message}\n".encode("utf-8"),
            {"Content-Type": "text/plain; charset=utf-8"},
        )


def normalize_path(request_path: str) -> str:
    """Normalize a request path for lookup in the content tree.

    A trailing slash requests ``index``; surrounding slashes are trimmed.

    Examples:
        >>> normalize_path("/")
        'index'

        >>> normalize_path("/docs/intro")
        'docs/intro'
    """
    if not request_path or request_path.endswith("/"):
        request_path += "index"
    return request_path.strip("/")


def sniff_content_type(data: bytes) -> str:
    """Guess a content type from the first bytes of a file."""
    sample = data[:512]
    head = sample.lstrip().lower()
    if head.startswith((b"<!doctype html", b"<html")):
        return HTML_CONTENT_TYPE
    if any(byte in _BINARY_BYTES for byte in sample):
        return "application/octet-stream"
    return "text/plain; charset=utf-8"


def content_type_for(name: str, data: bytes) -> str:
    """Return the Content-Type for a file, by extension first, then by sniffing."""
    guessed, _ = mimetypes.guess_type(name)
    if guessed is None:
        return sniff_content_type(data)
    if guessed.startswith("text/"):
        return f"{guessed}; charset=utf-8"
    return guessed


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


class SiteResolver:
    """Resolves request paths against the source tree.

    Attributes:
        content: Renderable source tree.
        static: Tree served under ``/static/``.
        pipeline: Shared rendering pipeline.
        serve_sources: Allow raw ``.md`` requests.
        debug: Reload the layout at the start of every request.
    """

    def __init__(
        self,
        content: SourceTree,
        static: SourceTree,
        pipeline: ContentPipeline,
        serve_sources: bool = False,
        debug: bool = False,
    ):
        self.content = content
        self.static = static
        self.pipeline = pipeline
        self.serve_sources = serve_sources
        self.debug = debug

    def resolve(
        self, request_path: str, headers: Mapping[str, str] | Any | None = None
    ) -> Response:
        """Answer a request path.

        Args:
            request_path: URL path, already percent-decoded.
            headers: Request headers (used for If-Modified-Since).

        Returns:
            The response; never raises for per-request failures.
        """
        headers = headers if headers is not None else {}
        template = None
        if self.debug:
            try:
                template = self.pipeline.layout.acquire()
            except VroError as exc:
                logger.error("Reloading layout failed: %s", exc)
                return Response.text(500, GENERIC_ERROR)
        try:
            return self.lookup(request_path, headers, template)
        except NotFoundError:
            return Response.text(404, "Not Found")
        except (VroError, OSError) as exc:
            logger.error("Failed to serve %s: %s", request_path, exc)
            return Response.text(500, GENERIC_ERROR)

    def lookup(
        self,
        request_path: str,
        headers: Mapping[str, str] | Any,
        template: Any | None = None,
    ) -> Response:
        """Resolve a request path, raising instead of answering errors.

        Raises:
            NotFoundError: If nothing matches.
            RenderError: If a Markdown source fails to render.
            TemplateError: If the layout fails.
        """
        if request_path == STATIC_PREFIX or request_path.startswith(STATIC_PREFIX + "/"):
            rel = request_path[len(STATIC_PREFIX):].strip("/")
            return self._serve_file(self.static, rel, headers)

        path = normalize_path(request_path)
        self._check(path)

        if path.endswith(".md"):
            if not self.serve_sources:
                raise NotFoundError("Source files are not served", path)
            return self._serve_file(self.content, path, headers)

        for suffix, kind in _RENDERED_VARIANTS:
            candidate = path + suffix
            if self.content.is_file(candidate):
                source = self.content.read_bytes(candidate)
                return Response.html(self.pipeline.render(kind, source, template))

        return self._serve_file(self.content, path, headers)

    def _check(self, path: str) -> None:
        try:
            check_path(path)
        except InvalidPathError as exc:
            raise NotFoundError("Invalid path", path, exc) from exc
        if has_hidden_segment(path):
            raise NotFoundError("Hidden path", path)

    def _serve_file(
        self, tree: SourceTree, path: str, headers: Mapping[str, str] | Any
    ) -> Response:
        self._check(path)
        if not path or not tree.is_file(path):
            raise NotFoundError("Not Found", path)

        info = tree.stat(path)
        modified = _as_utc(info.mtime).replace(microsecond=0)
        last_modified = formatdate(modified.timestamp(), usegmt=True)

        since_header = headers.get("If-Modified-Since")
        if since_header:
            try:
                since = parsedate_to_datetime(since_header)
            except (TypeError, ValueError):
                since = None
            if since is not None and modified <= _as_utc(since):
                return Response(304, b"", {"Last-Modified": last_modified})

        data = tree.read_bytes(path)
        return Response(
            200,
            data,
            {
                "Content-Type": content_type_for(info.name, data),
                "Last-Modified": last_modified,
            },
        )


class _SiteRequestHandler(BaseHTTPRequestHandler):
    """HTTP request handler answering GET and HEAD through a SiteResolver."""

    resolver: SiteResolver | None = None
    server_version = f"vro/{__version__}"

    def do_GET(self):
        self._respond(include_body=True)

    def do_HEAD(self):
        self._respond(include_body=False)

    def _respond(self, include_body: bool) -> None:
        path = unquote(urlsplit(self.path).path)
        response = self.resolver.resolve(path, self.headers)
        self.send_response(response.status)
        for name, value in response.headers.items():
            self.send_header(name, value)
        if response.status != 304:
            self.send_header("Content-Length", str(len(response.body)))
        self.end_headers()
        if include_body and response.body:
            self.wfile.write(response.body)

    def log_message(self, format, *args):
        logger.info("%s - %s", self.address_string(), format % args)


class SiteServer:
    """Serves a SiteResolver over HTTP, one thread per request.

    Attributes:
        resolver: Resolver answering every request.
        host: Bind address; empty for all interfaces.
        port: Listening port; 0 picks a free one.
    """

    def __init__(self, resolver: SiteResolver, host: str = "", port: int = 7000):
        self.resolver = resolver
        self.host = host
        self.port = port

    def make_server(self) -> ThreadingHTTPServer:
        """Bind the HTTP server without starting it."""
        handler_cls = type(
            "_SiteRequestHandlerWithResolver",
            (_SiteRequestHandler,),
            {"resolver": self.resolver},
        )
        return ThreadingHTTPServer((self.host, self.port), handler_cls)

    def start(self) -> None:  # pragma: no cover - integration path
        httpd = self.make_server()
        port = httpd.server_address[1]
        logger.info("Listening on http://%s:%d", self.host or "localhost", port)
        try:
            httpd.serve_forever()
        except KeyboardInterrupt:
            logger.info("Shutting down")
        finally:
            httpd.server_close()
