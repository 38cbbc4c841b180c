"""Loguru setup shared by the CLI commands and the MCP server.

The console sink goes to stderr so that `mdfetch fetch --json` keeps stdout
clean. Records from httpx, playwright, mcp, uvicorn and friends are pulled out
of stdlib logging into loguru at WARNING and above.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

from click import Context
from loguru import logger

from mdfetch import __version__

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{message}</cyan>"
)
FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss} | {level: <5} | {thread.name} | "
    "{module}:{line: <3} | {message}"
)
LOG_DIR_ENV = "MDFETCH_LOG_DIR"

INTERCEPTED_LOGGERS = (
    "httpx",
    "httpcore",
    "playwright",
    "markitdown",
    "mcp",
    "uvicorn",
    "uvicorn.error",
    "uvicorn.access",
    "asyncio",
    "concurrent.futures",
)


class InterceptHandler(logging.Handler):
    """Forward stdlib records to loguru, keeping the origin in `extra`."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        origin = logger.bind(
            name=record.name,
            module=record.module,
            function=record.funcName,
            line=record.lineno,
        )
        origin.opt(exception=record.exc_info).log(level, record.getMessage())


def setup_logging(
    verbose: bool,
    log_dir: str | None = None,
    log_level: str = "DEBUG",
    rotation: str = "10 MB",
    retention: str = "7 days",
    quiet: bool = False,
) -> tuple[int | None, Path | None]:
    """Replace loguru's default sink with mdfetch's console and file sinks.

    Args:
        verbose: Show DEBUG records (and third-party INFO) on the console
        log_dir: Directory for a timestamped log file; None disables it.
            MDFETCH_LOG_DIR takes precedence when set.
        log_level: Minimum level written to the file
        rotation: Loguru rotation policy for the file
        retention: Loguru retention policy for the file
        quiet: Skip the console sink entirely

    Returns:
        (console sink id or None, log file path or None)
    """
    logger.remove()

    console_id: int | None = None
    if not quiet:
        console_id = logger.add(
            sys.stderr,
            level="DEBUG" if verbose else "INFO",
            format=CONSOLE_FORMAT,
            filter=lambda record: _should_show_log(record, verbose),
        )

    log_dir = os.environ.get(LOG_DIR_ENV) or log_dir
    log_file: Path | None = None
    if log_dir:
        directory = Path(log_dir).expanduser()
        directory.mkdir(parents=True, exist_ok=True)
        log_file = directory / f"mdfetch_{datetime.now():%Y%m%d_%H%M%S_%f}.log"
        logger.add(
            log_file,
            level=log_level,
            format=FILE_FORMAT,
            rotation=rotation,
            retention=retention,
            enqueue=True,
        )

    _setup_log_interception()
    return console_id, log_file


def _setup_log_interception() -> None:
    handler = InterceptHandler()
    for name in INTERCEPTED_LOGGERS:
        stdlib_logger = logging.getLogger(name)
        stdlib_logger.handlers = [handler]
        stdlib_logger.propagate = False
        stdlib_logger.setLevel(logging.WARNING)


def _is_third_party_log(name: str) -> bool:
    """True if name is an intercepted logger or one of its children."""
    name = name.lower()
    return any(
        name == prefix or name.startswith(prefix + ".")
        for prefix in INTERCEPTED_LOGGERS
    )


def _should_show_log(record: Any, verbose: bool) -> bool:
    """Console filter: third-party INFO stays hidden unless verbose."""
    level = record["level"].name
    if verbose or level in ("WARNING", "ERROR", "CRITICAL"):
        return True
    origin = record.get("extra", {}).get("name", "")
    return not (level == "INFO" and _is_third_party_log(origin))


def print_version(ctx: Context, param: Any, value: bool) -> None:
    """Eager --version callback."""
    if not value or ctx.resilient_parsing:
        return
    from mdfetch.cli.console import get_console

    get_console().print(f"mdfetch {__version__}")
    ctx.exit(0)
