"""Shared ThreadPoolExecutor for blocking browser operations.

Browser-backed fetches drive the browser through Playwright's sync API and
sleep between readiness polls, so the whole unit of work (tab creation
through content extraction) runs here instead of on the event loop.

One worker holds one tab and one Playwright driver connection for the whole
fetch, so the pool is sized by fetch.browser.max_tabs: that many pages render
at once and the rest queue. max_tabs = 1 renders a batch one page at a time.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Any, TypeVar

from mdfetch.constants import DEFAULT_BROWSER_MAX_TABS

T = TypeVar("T")

# Global browser thread pool executor with thread-safe initialization
_BROWSER_EXECUTOR: ThreadPoolExecutor | None = None
_EXECUTOR_LOCK = threading.Lock()


def get_browser_executor(max_workers: int | None = None) -> ThreadPoolExecutor:
    """Get or create the shared browser thread pool executor.

    Uses double-checked locking for thread-safe lazy initialization.

    Args:
        max_workers: Pool size. Only used on first call; subsequent calls
            return the existing executor.

    Returns:
        Shared ThreadPoolExecutor instance for browser operations
    """
    global _BROWSER_EXECUTOR
    if _BROWSER_EXECUTOR is None:
        with _EXECUTOR_LOCK:
            # Double-check after acquiring lock
            if _BROWSER_EXECUTOR is None:
                _BROWSER_EXECUTOR = ThreadPoolExecutor(
                    max_workers=max_workers or DEFAULT_BROWSER_MAX_TABS,
                    thread_name_prefix="mdfetch-browser",
                )
    return _BROWSER_EXECUTOR


async def run_in_browser_thread(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a blocking function in the shared browser thread pool.

    Args:
        func: Function to run in thread pool
        *args: Positional arguments to pass to func
        **kwargs: Keyword arguments to pass to func

    Returns:
        Result of func(*args, **kwargs)
    """
    loop = asyncio.get_running_loop()
    executor = get_browser_executor()
    return await loop.run_in_executor(executor, lambda: func(*args, **kwargs))


def shutdown_browser_executor() -> None:
    """Shutdown the shared browser executor.

    Call this during application cleanup to ensure clean shutdown.
    """
    global _BROWSER_EXECUTOR
    with _EXECUTOR_LOCK:
        if _BROWSER_EXECUTOR is not None:
            _BROWSER_EXECUTOR.shutdown(wait=True)
            _BROWSER_EXECUTOR = None
