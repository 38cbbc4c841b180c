"""Doctor CLI command for system health checking.

Reports which config file was loaded and verifies the pieces the fetch and
search tools depend on: the headless browser executable, Playwright,
markitdown and the search API key.
"""

from __future__ import annotations

import json
from importlib.util import find_spec
from typing import Any

import click
from rich.panel import Panel
from rich.table import Table

from mdfetch.browser import resolve_executable
from mdfetch.cli.console import get_console
from mdfetch.config import ConfigManager, MdfetchConfig
from mdfetch.constants import BROWSER_PATH_ENV

console = get_console()


def _check_config(manager: ConfigManager) -> dict[str, str]:
    source = manager.config_path
    return {
        "name": "Configuration",
        "description": "Settings file in use",
        "status": "ok",
        "message": str(source) if source else "Defaults (no config file)",
        "install_hint": "",
    }


def _check_browser(cfg: MdfetchConfig) -> dict[str, str]:
    configured = cfg.fetch.browser.get_resolved_executable_path()
    executable = resolve_executable(configured)
    if executable:
        return {
            "name": "Headless Browser",
            "description": "Renders JS-dependent pages",
            "status": "ok",
            "message": executable,
            "install_hint": "",
        }
    return {
        "name": "Headless Browser",
        "description": "Renders JS-dependent pages",
        "status": "missing",
        "message": f"Not found: {configured}",
        "install_hint": (
            "Install chrome-headless-shell (npx @puppeteer/browsers install "
            f"chrome-headless-shell@stable) and set {BROWSER_PATH_ENV}"
        ),
    }


def _check_module(
    module: str, name: str, description: str, install_hint: str
) -> dict[str, str]:
    if find_spec(module) is not None:
        return {
            "name": name,
            "description": description,
            "status": "ok",
            "message": "Installed",
            "install_hint": "",
        }
    return {
        "name": name,
        "description": description,
        "status": "missing",
        "message": f"{module} not installed",
        "install_hint": install_hint,
    }


def _check_search_key(cfg: MdfetchConfig) -> dict[str, str]:
    if cfg.search.get_resolved_api_key():
        return {
            "name": "Search API Key",
            "description": "Web search (fetch works without it)",
            "status": "ok",
            "message": "Configured",
            "install_hint": "",
        }
    return {
        "name": "Search API Key",
        "description": "Web search (fetch works without it)",
        "status": "warning",
        "message": "Not configured",
        "install_hint": "Set EXA_API_KEY or search.api_key",
    }


def _doctor_impl(as_json: bool, config_path: str | None = None) -> None:
    """Implementation of the doctor command."""
    manager = ConfigManager()
    cfg = manager.load(config_path)

    results: dict[str, dict[str, Any]] = {
        "config": _check_config(manager),
        "browser": _check_browser(cfg),
        "playwright": _check_module(
            "playwright",
            "Playwright",
            "Drives browser tabs over DevTools",
            "pip install playwright",
        ),
        "markitdown": _check_module(
            "markitdown",
            "markitdown",
            "HTML to Markdown conversion",
            "pip install markitdown",
        ),
        "search": _check_search_key(cfg),
    }

    if as_json:
        # Use click.echo for raw JSON (avoid Rich formatting which breaks JSON)
        click.echo(json.dumps(results, indent=2))
        return

    table = Table(title="Dependency Status")
    table.add_column("Component", style="cyan")
    table.add_column("Status", justify="center")
    table.add_column("Description")
    table.add_column("Details")

    status_icons = {
        "ok": "[green]✓[/green]",
        "warning": "[yellow]⚠[/yellow]",
        "missing": "[red]✗[/red]",
        "error": "[red]![/red]",
    }

    for info in results.values():
        table.add_row(
            info["name"],
            status_icons.get(info["status"], "?"),
            info["description"],
            info["message"],
        )

    console.print(table)
    console.print()

    hints = [
        (info["name"], info["install_hint"])
        for info in results.values()
        if info["status"] in ("missing", "error", "warning") and info["install_hint"]
    ]

    if hints:
        hint_text = "\n".join(f"  * {name}: {hint}" for name, hint in hints)
        console.print(
            Panel(
                f"[yellow]To fix missing dependencies:[/yellow]\n{hint_text}",
                title="Installation Hints",
                border_style="yellow",
            )
        )
    else:
        console.print("[green]All dependencies are properly configured![/green]")


@click.command("doctor")
@click.option(
    "--json",
    "as_json",
    is_flag=True,
    help="Output as JSON.",
)
@click.pass_context
def doctor(ctx: click.Context, as_json: bool) -> None:
    """Check the browser, converter and search configuration."""
    from loguru import logger

    config_path = (ctx.obj or {}).get("config_path")
    logger.disable("mdfetch")
    try:
        _doctor_impl(as_json, config_path)
    finally:
        logger.enable("mdfetch")
