"""Browser-backed fetch for JS-rendered pages.

One long-lived headless browser process is shared by all fetches. Each fetch
opens its own tab, waits for readiness, extracts the rendered HTML, closes the
tab and converts the result to markdown.

The browser is started as a plain child process with a DevTools endpoint on
127.0.0.1. Fetches attach to that endpoint with Playwright's sync API from the
browser thread pool, so concurrent fetches get independent connections to the
same process and never share a tab.

Each fetch enters its own sync_playwright() context, and every context spawns
a Playwright driver (a Node process) for the lifetime of that fetch. With
max_tabs browser threads there are up to max_tabs drivers alive at once in
addition to the browser itself, so max_tabs bounds process count as well as
open tabs.

Usage:
    from mdfetch.browser import BrowserHandle, fetch_with_browser

    handle = BrowserHandle.launch(config.fetch.browser)    # blocking
    markdown = fetch_with_browser(handle, url, config.fetch.browser)  # blocking
"""

from __future__ import annotations

import atexit
import shutil
import socket
import subprocess
import tempfile
import threading
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any

import httpx
from loguru import logger
from playwright.sync_api import sync_playwright

from mdfetch.constants import (
    BROWSER_DEBUG_HOST,
    BROWSER_ENDPOINT_POLL_INTERVAL,
    BROWSER_LAUNCH_ARGS,
)
from mdfetch.converter import html_to_markdown
from mdfetch.errors import (
    BrowserInitError,
    ExtractionError,
    NavigationError,
    TabOpenError,
)
from mdfetch.readiness import ReadinessDetector

if TYPE_CHECKING:
    from mdfetch.config import BrowserConfig


def _find_free_port() -> int:
    """Ask the OS for an unused TCP port on the loopback interface."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((BROWSER_DEBUG_HOST, 0))
        return sock.getsockname()[1]


def resolve_executable(path: str) -> str | None:
    """Resolve a browser executable from an absolute path or a PATH lookup."""
    candidate = Path(path).expanduser()
    if candidate.is_file():
        return str(candidate)
    return shutil.which(path)


def build_launch_args(executable: str, port: int, user_data_dir: str) -> list[str]:
    """Build the browser command line.

    Args:
        executable: Browser executable path
        port: Remote debugging port
        user_data_dir: Private profile directory

    Returns:
        argv list for subprocess.Popen
    """
    return [
        executable,
        *BROWSER_LAUNCH_ARGS,
        f"--remote-debugging-address={BROWSER_DEBUG_HOST}",
        f"--remote-debugging-port={port}",
        f"--user-data-dir={user_data_dir}",
        "about:blank",
    ]


class BrowserHandle:
    """A running headless browser process with a DevTools endpoint.

    Created at most once per server process by the orchestrator and shared
    read-only by all fetches. The process is terminated at interpreter exit.
    """

    def __init__(
        self,
        process: subprocess.Popen[bytes],
        endpoint: str,
        user_data_dir: str | None = None,
    ) -> None:
        self.process = process
        self.endpoint = endpoint
        self.user_data_dir = user_data_dir
        self.version: dict[str, Any] = {}
        self._close_lock = threading.Lock()
        self._closed = False

    @classmethod
    def launch(cls, config: BrowserConfig) -> BrowserHandle:
        """Start the browser and wait until its DevTools endpoint answers.

        Args:
            config: Browser configuration

        Returns:
            Running BrowserHandle

        Raises:
            BrowserInitError: If the executable is missing, the process exits
                early, or the endpoint does not answer within startup_timeout
        """
        configured = config.get_resolved_executable_path()
        executable = resolve_executable(configured)
        if executable is None:
            raise BrowserInitError(f"browser executable not found: {configured}")

        port = _find_free_port()
        user_data_dir = tempfile.mkdtemp(prefix="mdfetch-browser-")
        args = build_launch_args(executable, port, user_data_dir)

        logger.info(f"Launching headless browser: {executable}")
        logger.debug(f"Browser command line: {' '.join(args)}")
        try:
            process = subprocess.Popen(
                args,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            shutil.rmtree(user_data_dir, ignore_errors=True)
            raise BrowserInitError(str(e)) from e

        handle = cls(process, f"http://{BROWSER_DEBUG_HOST}:{port}", user_data_dir)
        try:
            handle.wait_for_endpoint(config.startup_timeout)
        except BrowserInitError:
            handle.close()
            raise

        atexit.register(handle.close)
        logger.info(
            f"Browser ready at {handle.endpoint} "
            f"({handle.version.get('Browser', 'unknown version')})"
        )
        return handle

    def wait_for_endpoint(self, timeout: float) -> None:
        """Poll /json/version until the endpoint answers.

        Raises:
            BrowserInitError: If the process exits or the timeout elapses
        """
        deadline = time.monotonic() + timeout
        last_error: Exception | None = None
        while time.monotonic() < deadline:
            exit_code = self.process.poll()
            if exit_code is not None:
                raise BrowserInitError(
                    f"browser process exited during startup (code {exit_code})"
                )
            try:
                response = httpx.get(f"{self.endpoint}/json/version", timeout=1.0)
                if response.status_code == 200:
                    self.version = response.json()
                    return
            except (httpx.HTTPError, ValueError) as e:
                last_error = e
            time.sleep(BROWSER_ENDPOINT_POLL_INTERVAL)

        detail = f": {last_error}" if last_error else ""
        raise BrowserInitError(
            f"DevTools endpoint did not answer within {timeout:g}s{detail}"
        )

    def is_alive(self) -> bool:
        return not self._closed and self.process.poll() is None

    def close(self) -> None:
        """Terminate the browser process and remove its profile directory."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True

        if self.process.poll() is None:
            self.process.terminate()
            try:
                self.process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                self.process.kill()
                self.process.wait()
        if self.user_data_dir:
            shutil.rmtree(self.user_data_dir, ignore_errors=True)


def _close_tab(page: Any, url: str) -> None:
    """Close a tab, logging instead of raising on failure."""
    try:
        page.close()
    except Exception as e:
        logger.warning(f"Failed to close tab for {url}: {e}")


def fetch_with_browser(handle: BrowserHandle, url: str, config: BrowserConfig) -> str:
    """Render a URL in a new tab of the shared browser and convert it.

    Blocks the calling thread; run it on the browser thread pool.

    Args:
        handle: Shared browser handle
        url: URL to fetch
        config: Browser configuration (timeouts, selectors)

    Returns:
        Markdown content

    Raises:
        TabOpenError: If attaching to the browser or opening the tab fails
        NavigationError: If loading the URL fails
        ReadinessTimeout: If no content signal fires within readiness_timeout
        ExtractionError: If reading the rendered HTML fails
    """
    logger.info(f"Fetching with browser: {url}")

    detector = ReadinessDetector(
        selectors=config.ready_selectors,
        timeout=config.readiness_timeout,
        poll_interval=config.poll_interval,
    )

    with sync_playwright() as playwright:
        try:
            browser = playwright.chromium.connect_over_cdp(
                handle.endpoint, timeout=config.startup_timeout * 1000
            )
            context = browser.contexts[0] if browser.contexts else browser.new_context()
            page = context.new_page()
        except Exception as e:
            raise TabOpenError(str(e), url=url) from e

        try:
            try:
                page.goto(
                    url,
                    timeout=config.navigation_timeout * 1000,
                    wait_until=config.wait_for,
                )
            except Exception as e:
                raise NavigationError(str(e), url=url) from e

            detector.wait(page, url=url)

            try:
                html = page.content()
            except Exception as e:
                raise ExtractionError(str(e), url=url) from e
        finally:
            _close_tab(page, url)

    return html_to_markdown(html)
