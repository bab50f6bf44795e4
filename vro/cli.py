"""Command-line interface for vro.

This module defines the CLI commands using the Click framework. Defaults
come from ``VRO_*`` environment variables (see vro.config); options given
on the command line take precedence.

Commands:
- build: Render the source tree into the output directory.
- serve: Render pages on demand over HTTP.
"""

from __future__ import annotations

import dataclasses
import logging
from pathlib import Path

import click

from . import __version__
from .config import Settings, load_settings
from .errors import ConfigError, OnError, VroError

_POLICIES = [policy.value for policy in OnError]


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _override(settings: Settings, **values) -> Settings:
    changes = {key: value for key, value in values.items() if value is not None}
    return dataclasses.replace(settings, **changes)


def _report_failure(exc: VroError) -> None:
    click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
    if exc.source_path:
        click.echo(click.style(f"  File: {exc.source_path}", fg="yellow"), err=True)
    click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)


@click.group()
@click.version_option(version=__version__, prog_name="vro")
@click.option(
    "--path",
    "-p",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Source root holding content/ and static/ (overrides VRO_PATH)",
)
@click.option(
    "--debug/--no-debug",
    default=None,
    help="Reload the layout on every render (overrides VRO_DEBUG)",
)
@click.option("-v", "--verbose", is_flag=True, help="Log every file written")
@click.pass_context
def cli(ctx: click.Context, path: Path | None, debug: bool | None, verbose: bool):
    """vro static site renderer."""
    try:
        settings = load_settings()
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from None
    ctx.obj = _override(settings, path=path, debug=debug)
    _configure_logging(verbose)


@cli.command()
@click.option(
    "--output",
    "-o",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Output directory (overrides VRO_OUTPUT)",
)
@click.option("--clean", is_flag=True, help="Empty the output directory first")
@click.option(
    "--static-errors",
    type=click.Choice(_POLICIES),
    default=None,
    help="Abort or skip when a static file fails to copy",
)
@click.option(
    "--content-errors",
    type=click.Choice(_POLICIES),
    default=None,
    help="Abort or skip when a content file fails to render",
)
@click.pass_obj
def build(
    settings: Settings,
    output: Path | None,
    clean: bool,
    static_errors: str | None,
    content_errors: str | None,
):
    """Build the site into the output directory."""
    from .site import Site

    settings = _override(
        settings,
        output=output,
        static_errors=OnError(static_errors) if static_errors else None,
        content_errors=OnError(content_errors) if content_errors else None,
    )
    try:
        site = Site.open(
            settings.path, debug=settings.debug, options=settings.markdown_options()
        )
        generator = site.generator(
            static_errors=settings.static_errors,
            content_errors=settings.content_errors,
            clean=clean,
        )
        result = generator.generate(settings.output)
    except VroError as exc:
        _report_failure(exc)
        raise SystemExit(1) from None

    click.echo(f"Built {len(result.written)} files into {result.output_dir}")
    if result.skipped:
        click.echo(click.style(f"Skipped {len(result.skipped)} files:", fg="yellow"), err=True)
        for skipped in result.skipped:
            click.echo(f"  {skipped.path}: {skipped.error}", err=True)


@cli.command()
@click.option("--host", default=None, help="Bind address (overrides VRO_HOST)")
@click.option("--port", type=int, default=None, help="Port to listen on (overrides VRO_PORT)")
@click.option(
    "--serve-sources/--no-serve-sources",
    default=None,
    help="Serve raw .md files when requested by name (overrides VRO_SERVE_SOURCES)",
)
@click.pass_obj
def serve(
    settings: Settings, host: str | None, port: int | None, serve_sources: bool | None
):
    """Render pages on demand over HTTP."""
    from .server import SiteServer
    from .site import Site

    settings = _override(settings, host=host, port=port, serve_sources=serve_sources)
    try:
        site = Site.open(
            settings.path, debug=settings.debug, options=settings.markdown_options()
        )
    except VroError as exc:
        raise click.ClickException(str(exc)) from None

    resolver = site.resolver(serve_sources=settings.serve_sources)
    click.echo(
        f"Serving {settings.path} at http://{settings.host or 'localhost'}:{settings.port}"
    )
    SiteServer(resolver, host=settings.host, port=settings.port).start()


def main():
    """Entry point for the CLI application."""
    cli()
