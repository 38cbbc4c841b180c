"""URL fetch orchestration with plain-HTTP first and browser fallback.

For a batch of URLs, each URL is tried with the lightweight fetcher first
(unless running browser-only). When that fails or yields too little text,
the URL falls back to rendering in the shared headless browser. Browser
fetches for different URLs run concurrently on the browser thread pool.

The batch call never fails as a whole: every URL gets exactly one result
slot, in input order, holding either content or an error message.

Example usage:
    from mdfetch.fetch import fetch_urls

    results = await fetch_urls(["https://example.com", "https://x.com/..."])
    payload = [r.to_payload() for r in results]
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Union

from loguru import logger

from mdfetch.browser import BrowserHandle, fetch_with_browser
from mdfetch.config import FetchConfig
from mdfetch.errors import (
    BrowserInitError,
    InsufficientContentError,
    InvalidURLError,
    NetworkError,
)
from mdfetch.fetch_static import fetch_with_static
from mdfetch.utils.executor import get_browser_executor, run_in_browser_thread
from mdfetch.utils.once import AsyncOnceCell
from mdfetch.utils.urls import is_url

if TYPE_CHECKING:
    from mdfetch.config import BrowserConfig


class FetchMode(Enum):
    """Which paths a URL may take."""

    FALLBACK = "fallback"  # plain HTTP first, browser on failure
    BROWSER = "browser"  # browser only


@dataclass(frozen=True)
class FetchContent:
    """Successful fetch of one URL."""

    markdown: str
    source_url: str

    @property
    def ok(self) -> bool:
        return True

    def to_payload(self) -> dict[str, str]:
        return {"content": f"<{self.source_url}>\n\n{self.markdown}"}


@dataclass(frozen=True)
class FetchFailure:
    """Failed fetch of one URL."""

    source_url: str
    message: str

    @property
    def ok(self) -> bool:
        return False

    def to_payload(self) -> dict[str, str]:
        return {"error": self.message}


FetchResult = Union[FetchContent, FetchFailure]

StaticFetcher = Callable[[str], Awaitable[str]]
BrowserFetcher = Callable[[BrowserHandle, str, "BrowserConfig"], str]
BrowserLauncher = Callable[["BrowserConfig"], BrowserHandle]


class _BatchBrowser:
    """Per-batch view of the shared browser.

    The first URL needing the browser starts acquisition; every other URL in
    the batch awaits that same attempt, so an init failure is reported to all
    of them without retrying.
    """

    def __init__(self, acquire: Callable[[], Awaitable[BrowserHandle]]) -> None:
        self._acquire = acquire
        self._task: asyncio.Future[BrowserHandle] | None = None

    async def get(self) -> BrowserHandle:
        if self._task is None:
            self._task = asyncio.ensure_future(self._acquire())
        return await asyncio.shield(self._task)

    def discard(self) -> None:
        """Consume an unobserved failure so asyncio does not warn about it."""
        if self._task is not None and self._task.done() and not self._task.cancelled():
            self._task.exception()


class FetchOrchestrator:
    """Fetch batches of URLs with lightweight-first, browser-fallback routing.

    Args:
        config: Fetch configuration
        browser_cell: Once-cell holding the shared browser. Pass the same cell
            to several orchestrators to share one browser process.
        static_fetcher: Coroutine fetching a URL over plain HTTP
        browser_fetcher: Blocking callable rendering a URL in a tab
        launcher: Blocking callable starting the browser process
    """

    def __init__(
        self,
        config: FetchConfig | None = None,
        browser_cell: AsyncOnceCell[BrowserHandle] | None = None,
        static_fetcher: StaticFetcher | None = None,
        browser_fetcher: BrowserFetcher | None = None,
        launcher: BrowserLauncher | None = None,
    ) -> None:
        self.config = config or FetchConfig()
        self.mode = FetchMode(self.config.mode)
        self._browser_cell = browser_cell if browser_cell is not None else AsyncOnceCell()
        self._static_fetcher = static_fetcher or self._default_static_fetcher
        self._browser_fetcher = browser_fetcher or fetch_with_browser
        self._launcher = launcher or BrowserHandle.launch

    async def _default_static_fetcher(self, url: str) -> str:
        static = self.config.static
        return await fetch_with_static(
            url,
            timeout=static.timeout,
            user_agent=static.user_agent,
            min_content_length=static.min_content_length,
        )

    async def _acquire_browser(self) -> BrowserHandle:
        """Get the shared browser, launching it on first use.

        A cached browser whose process has exited is discarded and launched
        again, so one crash does not fail every later batch.
        """
        cached = self._browser_cell.get()
        if cached is not None and not cached.is_alive():
            logger.warning("Browser process exited, relaunching")
            self._browser_cell.reset()
            cached.close()

        async def launch() -> BrowserHandle:
            logger.info("Initializing browser for fallback fetching")
            try:
                return await run_in_browser_thread(self._launcher, self.config.browser)
            except BrowserInitError:
                raise
            except Exception as e:
                raise BrowserInitError(str(e)) from e

        try:
            return await self._browser_cell.get_or_init(launch)
        except BrowserInitError as e:
            logger.error(f"Failed to initialize browser: {e}")
            raise

    async def fetch(self, urls: Sequence[str]) -> list[FetchResult]:
        """Fetch a batch of URLs.

        Args:
            urls: URLs to fetch (order defines output order, no dedup)

        Returns:
            One FetchContent or FetchFailure per input URL, same order
        """
        batch = _BatchBrowser(self._acquire_browser)
        try:
            results = await asyncio.gather(
                *(self._fetch_one(url, batch) for url in urls)
            )
        finally:
            batch.discard()
        return list(results)

    async def _fetch_one(self, url: str, batch: _BatchBrowser) -> FetchResult:
        """Fetch one URL, converting any failure to a FetchFailure."""
        try:
            markdown = await self._route(url, batch)
        except Exception as e:
            logger.error(f"Fetch failed for {url}: {e}")
            return FetchFailure(source_url=url, message=f"Error fetching {url}: {e}")
        return FetchContent(markdown=markdown, source_url=url)

    async def _route(self, url: str, batch: _BatchBrowser) -> str:
        if not is_url(url):
            raise InvalidURLError(url)

        if self.mode is FetchMode.FALLBACK:
            try:
                return await self._static_fetcher(url)
            except InsufficientContentError as e:
                logger.info(f"Falling back to browser for {url}: {e}")
            except NetworkError as e:
                logger.debug(f"Plain HTTP failed for {url}: {e}")

        # Pool size is fixed by the first caller
        get_browser_executor(self.config.browser.max_tabs)
        handle = await batch.get()
        return await run_in_browser_thread(
            self._browser_fetcher, handle, url, self.config.browser
        )


# Process-wide browser shared across requests
_browser_cell: AsyncOnceCell[BrowserHandle] = AsyncOnceCell()
_default_orchestrator: FetchOrchestrator | None = None


def get_orchestrator(config: FetchConfig | None = None) -> FetchOrchestrator:
    """Get or create the process-wide orchestrator.

    Args:
        config: Fetch configuration (used on first creation only)
    """
    global _default_orchestrator
    if _default_orchestrator is None:
        _default_orchestrator = FetchOrchestrator(config, browser_cell=_browser_cell)
    return _default_orchestrator


def reset_orchestrator() -> None:
    """Drop the process-wide orchestrator and close its browser."""
    global _default_orchestrator
    _default_orchestrator = None
    handle = _browser_cell.reset()
    if handle is not None:
        handle.close()


async def fetch_urls(
    urls: Sequence[str], config: FetchConfig | None = None
) -> list[FetchResult]:
    """Fetch URLs with the process-wide orchestrator."""
    return await get_orchestrator(config).fetch(urls)
