"""Command-line interface for mdfetch."""

from __future__ import annotations

import asyncio
import json
import sys

import click
from dotenv import load_dotenv

# Load .env file from current directory and parent directories
load_dotenv()

from loguru import logger
from rich.markup import escape

from mdfetch.cli.commands.doctor import doctor
from mdfetch.cli.console import get_console, get_stderr_console
from mdfetch.cli.logging_config import print_version, setup_logging
from mdfetch.config import ConfigManager, MdfetchConfig
from mdfetch.errors import SearchError
from mdfetch.fetch import FetchOrchestrator, FetchResult
from mdfetch.fetch_static import close_static_client
from mdfetch.utils.executor import shutdown_browser_executor
from mdfetch.utils.once import AsyncOnceCell


@click.group()
@click.option(
    "--version",
    is_flag=True,
    callback=print_version,
    expose_value=False,
    is_eager=True,
    help="Show version and exit.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to configuration file.",
)
@click.pass_context
def app(ctx: click.Context, verbose: bool, config_path: str | None) -> None:
    """Fetch web pages as clean markdown and search the web."""
    try:
        cfg = ConfigManager().load(config_path)
    except (OSError, ValueError) as e:
        raise click.ClickException(f"Failed to load config: {e}") from e

    setup_logging(
        verbose=verbose,
        log_dir=cfg.log.dir,
        log_level=cfg.log.level,
        rotation=cfg.log.rotation,
        retention=cfg.log.retention,
    )
    ctx.obj = {"config": cfg, "config_path": config_path, "verbose": verbose}


app.add_command(doctor)


@app.command()
@click.option("--host", default=None, help="Bind address (default from config).")
@click.option("--port", type=int, default=None, help="Port (default from config).")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Run the MCP server over streamable HTTP."""
    from mdfetch.server import run_server

    cfg: MdfetchConfig = ctx.obj["config"]
    if host is not None:
        cfg.server.host = host
    if port is not None:
        cfg.server.port = port
    run_server(cfg)


async def _run_fetch(urls: list[str], cfg: MdfetchConfig) -> list[FetchResult]:
    cell: AsyncOnceCell = AsyncOnceCell()
    orchestrator = FetchOrchestrator(cfg.fetch, browser_cell=cell)
    try:
        return await orchestrator.fetch(urls)
    finally:
        await close_static_client()
        handle = cell.reset()
        if handle is not None:
            handle.close()


@app.command()
@click.argument("urls", nargs=-1, required=True)
@click.option(
    "--browser-only",
    is_flag=True,
    help="Skip the plain HTTP attempt and always render in the browser.",
)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def fetch(ctx: click.Context, urls: tuple[str, ...], browser_only: bool, as_json: bool) -> None:
    """Fetch URLS and print their contents as markdown."""
    cfg: MdfetchConfig = ctx.obj["config"]
    if browser_only:
        cfg.fetch.mode = "browser"

    try:
        results = asyncio.run(_run_fetch(list(urls), cfg))
    finally:
        shutdown_browser_executor()

    if as_json:
        click.echo(json.dumps([r.to_payload() for r in results], indent=2, ensure_ascii=False))
    else:
        stderr_console = get_stderr_console()
        for index, result in enumerate(results):
            if index:
                click.echo("\n---\n")
            payload = result.to_payload()
            if "content" in payload:
                click.echo(payload["content"])
            else:
                stderr_console.print(f"[red]{escape(payload['error'])}[/red]")

    failed = sum(1 for r in results if not r.ok)
    if failed:
        logger.debug(f"{failed}/{len(results)} URLs failed")
        sys.exit(1)


@app.command()
@click.argument("query")
@click.option(
    "--domain",
    "domains",
    multiple=True,
    help="Only return results from this domain (repeatable).",
)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def search(ctx: click.Context, query: str, domains: tuple[str, ...], as_json: bool) -> None:
    """Search the web for QUERY."""
    from mdfetch.search import search as run_search

    cfg: MdfetchConfig = ctx.obj["config"]
    try:
        results = asyncio.run(run_search(query, list(domains) or None, cfg.search))
    except SearchError as e:
        raise click.ClickException(str(e)) from e

    if as_json:
        click.echo(json.dumps([r.model_dump() for r in results], indent=2, ensure_ascii=False))
        return

    console = get_console()
    if not results:
        console.print("[yellow]No results.[/yellow]")
        return
    for index, result in enumerate(results, start=1):
        console.print(f"[bold]{index}. {escape(result.title)}[/bold]")
        console.print(f"   [cyan]{escape(result.url)}[/cyan]")
        console.print(f"   {escape(result.summary)}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
