import threading
import urllib.error
import urllib.request
from datetime import datetime, timezone

import pytest

from vro.server import (
    GENERIC_ERROR,
    HTML_CONTENT_TYPE,
    SiteServer,
    content_type_for,
    normalize_path,
    sniff_content_type,
)
from vro.site import Site
from vro.sources import MemoryTree

MTIME = datetime(2024, 1, 1, tzinfo=timezone.utc)
LAST_MODIFIED = "Mon, 01 Jan 2024 00:00:00 GMT"
LAYOUT = "<title>{{ metadata.title }}</title><main>{{ content }}</main>"


def create_site(files=None, debug=False, layout=LAYOUT):
    tree = {
        "content/index.md": "---\ntitle: Home\n---\n# Welcome\n",
        "content/foo.md": "# From markdown",
        "content/foo.body": "<p>from fragment</p>",
        "content/bar.body": "<p>Bar *raw*</p>",
        "content/docs/index.md": "# Docs",
        "content/raw.txt": "plain text",
        "content/data.bin": b"\x00\x01\x02\x03",
        "content/.secret.md": "# Secret",
        "content/.git/config": "[core]",
        "static/site.css": "body {}",
        "static/.env": "TOKEN=x",
    }
    if layout is not None:
        tree["content/layout.templ"] = layout
    tree.update(files or {})
    return Site.from_tree(MemoryTree(tree, mtime=MTIME), debug=debug)


def resolve(site, path, headers=None, **options):
    return site.resolver(**options).resolve(path, headers)


def test_root_renders_index():
    site = create_site()
    response = resolve(site, "/")
    assert response.status == 200
    assert response.headers["Content-Type"] == HTML_CONTENT_TYPE
    body = response.body.decode("utf-8")
    assert "<title>Home</title>" in body
    assert '<h1 id="welcome">Welcome</h1>' in body
    assert resolve(site, "/index").body == response.body


def test_markdown_preferred_over_fragment():
    response = resolve(create_site(), "/foo")
    assert b"From markdown" in response.body
    assert b"from fragment" not in response.body


def test_fragment_rendered_with_empty_metadata():
    response = resolve(create_site(), "/bar")
    assert response.status == 200
    assert response.body == b"<title></title><main><p>Bar *raw*</p></main>"


def test_directory_with_trailing_slash_serves_index():
    response = resolve(create_site(), "/docs/")
    assert response.status == 200
    assert b'id="docs"' in response.body


def test_literal_file_served_with_type_and_last_modified():
    response = resolve(create_site(), "/raw.txt")
    assert response.status == 200
    assert response.body == b"plain text"
    assert response.headers["Content-Type"] == "text/plain; charset=utf-8"
    assert response.headers["Last-Modified"] == LAST_MODIFIED

    binary = resolve(create_site(), "/data.bin")
    assert binary.body == b"\x00\x01\x02\x03"


@pytest.mark.parametrize(
    "path",
    [
        "/missing",
        "/docs",
        "/.secret",
        "/.secret.md",
        "/.git/config",
        "/../content/raw.txt",
        "/a//b",
        "/static",
        "/static/",
        "/static/.env",
        "/static/missing.css",
    ],
)
def test_not_found(path):
    response = resolve(create_site(), path)
    assert response.status == 404
    assert response.body == b"Not Found\n"


def test_markdown_sources_hidden_unless_enabled():
    site = create_site()
    assert resolve(site, "/index.md").status == 404

    response = resolve(site, "/index.md", serve_sources=True)
    assert response.status == 200
    assert response.body.startswith(b"---\ntitle: Home")


def test_static_route():
    response = resolve(create_site(), "/static/site.css")
    assert response.status == 200
    assert response.body == b"body {}"
    assert response.headers["Content-Type"] == "text/css; charset=utf-8"


def test_static_prefix_requires_separator():
    site = create_site({"content/staticfoo.body": "<p>not static</p>"})
    response = resolve(site, "/staticfoo")
    assert response.status == 200
    assert b"not static" in response.body


def test_if_modified_since():
    site = create_site()
    not_modified = resolve(site, "/raw.txt", {"If-Modified-Since": LAST_MODIFIED})
    assert not_modified.status == 304
    assert not_modified.body == b""

    stale = resolve(site, "/raw.txt", {"If-Modified-Since": "Sun, 31 Dec 2023 00:00:00 GMT"})
    assert stale.status == 200

    garbage = resolve(site, "/raw.txt", {"If-Modified-Since": "yesterday"})
    assert garbage.status == 200


def test_render_error_is_generic_500(caplog):
    site = create_site({"content/broken.md": "---\ntitle: [unclosed\n---\nBody"})
    response = resolve(site, "/broken")
    assert response.status == 500
    assert response.body == f"{GENERIC_ERROR}\n".encode("utf-8")
    assert b"unclosed" not in response.body
    assert "Failed to serve /broken" in caplog.text


def test_layout_reloaded_per_request_in_debug():
    site = create_site(debug=True)
    resolver = site.resolver()
    assert b"<main>" in resolver.resolve("/bar").body

    site.content.files["layout.templ"] = b"<article>{{ content }}</article>"
    assert resolver.resolve("/bar").body == b"<article><p>Bar *raw*</p></article>"


def test_layout_cached_without_debug():
    site = create_site(debug=False)
    resolver = site.resolver()
    first = resolver.resolve("/bar").body

    site.content.files["layout.templ"] = b"<article>{{ content }}</article>"
    assert resolver.resolve("/bar").body == first


def test_broken_layout_in_debug_fails_every_request():
    site = create_site(debug=True, layout="{% if %}")
    resolver = site.resolver()
    assert resolver.resolve("/").status == 500
    assert resolver.resolve("/static/site.css").status == 500
    assert resolver.resolve("/raw.txt").status == 500


def test_missing_layout_is_retried_without_debug():
    site = create_site(layout=None)
    resolver = site.resolver()
    assert resolver.resolve("/").status == 500
    assert resolver.resolve("/raw.txt").status == 200

    site.content.files["layout.templ"] = LAYOUT.encode("utf-8")
    assert resolver.resolve("/").status == 200


def test_normalize_path():
    assert normalize_path("/") == "index"
    assert normalize_path("") == "index"
    assert normalize_path("/docs/") == "docs/index"
    assert normalize_path("/docs/intro") == "docs/intro"


def test_sniff_content_type():
    assert sniff_content_type(b"  <!DOCTYPE html><html></html>") == HTML_CONTENT_TYPE
    assert sniff_content_type(b"\x00\x01binary") == "application/octet-stream"
    assert sniff_content_type(b"hello\nworld\n") == "text/plain; charset=utf-8"


def test_content_type_for():
    assert content_type_for("raw.txt", b"x") == "text/plain; charset=utf-8"
    assert content_type_for("logo.png", b"\x89PNG") == "image/png"
    assert content_type_for("README", b"<html><body></body></html>") == HTML_CONTENT_TYPE


@pytest.fixture
def live_server():
    site = create_site()
    httpd = SiteServer(site.resolver(), host="127.0.0.1", port=0).make_server()
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{httpd.server_address[1]}"
    finally:
        httpd.shutdown()
        httpd.server_close()
        thread.join()


def test_http_get_and_head(live_server):
    with urllib.request.urlopen(f"{live_server}/foo") as response:
        assert response.status == 200
        assert response.headers["Content-Type"] == HTML_CONTENT_TYPE
        body = response.read()
    assert b"From markdown" in body
    assert response.headers["Content-Length"] == str(len(body))

    request = urllib.request.Request(f"{live_server}/raw.txt", method="HEAD")
    with urllib.request.urlopen(request) as response:
        assert response.status == 200
        assert response.headers["Content-Length"] == "10"
        assert response.read() == b""


def test_http_percent_encoded_path(live_server):
    with urllib.request.urlopen(f"{live_server}/docs%2Findex") as response:
        assert b'id="docs"' in response.read()


def test_http_errors(live_server):
    with pytest.raises(urllib.error.HTTPError) as excinfo:
        urllib.request.urlopen(f"{live_server}/nope")
    assert excinfo.value.code == 404
    excinfo.value.close()

    request = urllib.request.Request(f"{live_server}/", data=b"x", method="POST")
    with pytest.raises(urllib.error.HTTPError) as excinfo:
        urllib.request.urlopen(request)
    assert excinfo.value.code == 501
    excinfo.value.close()


def test_overlong_path_on_disk_is_not_found(tmp_path, caplog):
    root = tmp_path / "site"
    (root / "content").mkdir(parents=True)
    (root / "static").mkdir()
    (root / "content" / "layout.templ").write_text(LAYOUT, encoding="utf-8")
    resolver = Site.open(root).resolver()

    for path in ("/" + "a" * 300, "/static/" + "b" * 300):
        response = resolver.resolve(path)
        assert response.status == 404
        assert response.body == b"Not Found\n"
    assert "Failed to serve" not in caplog.text
