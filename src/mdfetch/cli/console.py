"""Rich consoles shared by the CLI commands.

Human-facing output goes to stdout; per-URL errors from `mdfetch fetch` go to
the stderr console so piping the markdown stays clean.
"""

from __future__ import annotations

from rich.console import Console

_console: Console | None = None
_stderr_console: Console | None = None


def get_console() -> Console:
    global _console
    if _console is None:
        _console = Console()
    return _console


def get_stderr_console() -> Console:
    global _stderr_console
    if _stderr_console is None:
        _stderr_console = Console(stderr=True)
    return _stderr_console
