from pathlib import Path

from click.testing import CliRunner

from vro import __version__
from vro.cli import cli


def create_source(tmp_path: Path) -> Path:
    root = tmp_path / "site"
    (root / "content").mkdir(parents=True)
    (root / "static").mkdir()
    (root / "content" / "layout.templ").write_text("<main>{{ content }}</main>", encoding="utf-8")
    (root / "content" / "index.md").write_text("# Home", encoding="utf-8")
    (root / "static" / "app.js").write_text("console.log(1);", encoding="utf-8")
    return root


def test_cli_build(tmp_path):
    root = create_source(tmp_path)
    out = tmp_path / "out"
    runner = CliRunner()
    result = runner.invoke(cli, ["--path", str(root), "build", "--output", str(out)])
    assert result.exit_code == 0, result.output
    assert "Built 3 files" in result.output
    assert (out / "index.html").read_text(encoding="utf-8").startswith("<main>")
    assert (out / "static" / "app.js").exists()


def test_cli_build_uses_environment(tmp_path):
    root = create_source(tmp_path)
    out = tmp_path / "from-env"
    runner = CliRunner()
    result = runner.invoke(
        cli, ["build"], env={"VRO_PATH": str(root), "VRO_OUTPUT": str(out)}
    )
    assert result.exit_code == 0, result.output
    assert (out / "index.html").exists()


def test_cli_build_reports_skipped_files(tmp_path):
    root = create_source(tmp_path)
    (root / "content" / "bad.md").write_text("---\n[\n---\n", encoding="utf-8")
    runner = CliRunner()
    result = runner.invoke(
        cli, ["--path", str(root), "build", "--output", str(tmp_path / "out")]
    )
    assert result.exit_code == 0
    assert "Skipped 1 files" in result.output
    assert "bad.md" in result.output


def test_cli_build_abort_exits_nonzero(tmp_path):
    root = create_source(tmp_path)
    (root / "content" / "bad.md").write_text("---\n[\n---\n", encoding="utf-8")
    runner = CliRunner()
    result = runner.invoke(
        cli,
        [
            "--path",
            str(root),
            "build",
            "--output",
            str(tmp_path / "out"),
            "--content-errors",
            "abort",
        ],
    )
    assert result.exit_code == 1
    assert "Build failed:" in result.output


def test_cli_build_missing_content_dir(tmp_path):
    runner = CliRunner()
    result = runner.invoke(cli, ["--path", str(tmp_path), "build", "-o", str(tmp_path / "o")])
    assert result.exit_code == 1
    assert "content/" in result.output


def test_cli_rejects_invalid_environment(tmp_path):
    runner = CliRunner()
    result = runner.invoke(cli, ["build"], env={"VRO_PORT": "not-a-port"})
    assert result.exit_code != 0
    assert "VRO_PORT" in result.output


def test_cli_serve(monkeypatch, tmp_path):
    root = create_source(tmp_path)
    called = {}

    class DummyServer:
        def __init__(self, resolver, host="", port=7000):
            called["resolver"] = resolver
            called["host"] = host
            called["port"] = port

        def start(self):
            called["started"] = True

    monkeypatch.setattr("vro.server.SiteServer", DummyServer)
    runner = CliRunner()
    result = runner.invoke(
        cli,
        ["--path", str(root), "--no-debug", "serve", "--port", "5055", "--serve-sources"],
        env={"VRO_HOST": "127.0.0.1"},
    )
    assert result.exit_code == 0, result.output
    assert called["port"] == 5055
    assert called["host"] == "127.0.0.1"
    assert called["started"] is True
    assert called["resolver"].serve_sources is True
    assert called["resolver"].debug is False
    assert "Serving" in result.output


def test_cli_serve_defaults_to_debug(monkeypatch, tmp_path):
    root = create_source(tmp_path)
    called = {}

    class DummyServer:
        def __init__(self, resolver, host="", port=7000):
            called["resolver"] = resolver
            called["port"] = port

        def start(self):
            pass

    monkeypatch.setattr("vro.server.SiteServer", DummyServer)
    result = CliRunner().invoke(cli, ["serve"], env={"VRO_PATH": str(root)})
    assert result.exit_code == 0, result.output
    assert called["port"] == 7000
    assert called["resolver"].debug is True


def test_cli_version():
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output
