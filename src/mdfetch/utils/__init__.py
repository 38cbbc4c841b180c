"""mdfetch utilities."""

from mdfetch.utils.executor import (
    get_browser_executor,
    run_in_browser_thread,
    shutdown_browser_executor,
)
from mdfetch.utils.once import AsyncOnceCell
from mdfetch.utils.urls import is_url

__all__ = [
    "AsyncOnceCell",
    "get_browser_executor",
    "is_url",
    "run_in_browser_thread",
    "shutdown_browser_executor",
]
