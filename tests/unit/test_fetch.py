"""Tests for fetch orchestration (plain HTTP first, browser fallback)."""

from __future__ import annotations

import threading
import time
from typing import Any
from unittest.mock import MagicMock

import httpx
import pytest

from mdfetch import fetch as fetch_module
from mdfetch import fetch_static
from mdfetch.config import BrowserConfig, FetchConfig, StaticFetchConfig
from mdfetch.errors import (
    BrowserInitError,
    InsufficientContentError,
    NavigationError,
    NetworkError,
    ReadinessTimeout,
)
from mdfetch.fetch import (
    FetchContent,
    FetchFailure,
    FetchMode,
    FetchOrchestrator,
    get_orchestrator,
    reset_orchestrator,
)
from mdfetch.utils.once import AsyncOnceCell


class FakeStatic:
    """Async lightweight fetcher with scripted per-URL outcomes.

    URLs without an outcome fail with NetworkError.
    """

    def __init__(self, outcomes: dict[str, Any] | None = None) -> None:
        self.outcomes = outcomes or {}
        self.calls: list[str] = []

    async def __call__(self, url: str) -> str:
        self.calls.append(url)
        outcome = self.outcomes.get(url, NetworkError(f"connection refused: {url}"))
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeBrowser:
    """Blocking browser fetcher that records when each call ran."""

    def __init__(
        self, outcomes: dict[str, Any] | None = None, delay: float = 0.0
    ) -> None:
        self.outcomes = outcomes or {}
        self.delay = delay
        self.calls: list[str] = []
        self.handles: list[Any] = []
        self.windows: list[tuple[float, float]] = []
        self._lock = threading.Lock()

    def __call__(self, handle: Any, url: str, config: Any) -> str:
        start = time.monotonic()
        if self.delay:
            time.sleep(self.delay)
        end = time.monotonic()
        with self._lock:
            self.calls.append(url)
            self.handles.append(handle)
            self.windows.append((start, end))
        outcome = self.outcomes.get(url, f"# Rendered\n\nbrowser content for {url}")
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeLauncher:
    """Browser launcher that fails the first fail_times calls."""

    def __init__(
        self,
        fail_times: int = 0,
        error: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        self.fail_times = fail_times
        self.error = error or BrowserInitError("browser executable not found: /bin/x")
        self.delay = delay
        self.calls = 0
        self._lock = threading.Lock()

    def __call__(self, config: Any) -> MagicMock:
        with self._lock:
            self.calls += 1
            attempt = self.calls
        if self.delay:
            time.sleep(self.delay)
        if attempt <= self.fail_times:
            raise self.error
        return MagicMock(name=f"browser-handle-{attempt}")


def _orchestrator(
    config: FetchConfig,
    static: FakeStatic | None = None,
    browser: FakeBrowser | None = None,
    launcher: FakeLauncher | None = None,
    cell: AsyncOnceCell | None = None,
) -> FetchOrchestrator:
    return FetchOrchestrator(
        config,
        browser_cell=cell if cell is not None else AsyncOnceCell(),
        static_fetcher=static or FakeStatic(),
        browser_fetcher=browser or FakeBrowser(),
        launcher=launcher or FakeLauncher(),
    )


class TestFetchResults:
    """Tests for result values and payloads."""

    def test_content_payload(self):
        result = FetchContent(markdown="# Hello", source_url="https://example.com")
        assert result.ok is True
        assert result.to_payload() == {"content": "<https://example.com>\n\n# Hello"}

    def test_failure_payload(self):
        result = FetchFailure(
            source_url="https://example.com",
            message="Error fetching https://example.com: boom",
        )
        assert result.ok is False
        assert result.to_payload() == {
            "error": "Error fetching https://example.com: boom"
        }

    def test_mode_from_config(self):
        assert FetchOrchestrator(FetchConfig()).mode is FetchMode.FALLBACK
        assert FetchOrchestrator(FetchConfig(mode="browser")).mode is FetchMode.BROWSER


class TestRouting:
    """Tests for plain-HTTP-first routing."""

    @pytest.mark.asyncio
    async def test_order_and_length_preserved(self, fetch_config: FetchConfig):
        urls = [
            "https://a.example.com",
            "https://b.example.com",
            "https://c.example.com",
            "https://d.example.com",
        ]
        static = FakeStatic(
            {
                urls[0]: "static A",
                urls[1]: InsufficientContentError(12, 300),
                urls[3]: "static D",
            }
        )
        browser = FakeBrowser({urls[1]: "browser B", urls[2]: "browser C"})
        orchestrator = _orchestrator(fetch_config, static, browser)

        results = await orchestrator.fetch(urls)

        assert [r.source_url for r in results] == urls
        assert [r.markdown for r in results] == [
            "static A",
            "browser B",
            "browser C",
            "static D",
        ]

    @pytest.mark.asyncio
    async def test_empty_batch(self, fetch_config: FetchConfig):
        assert await _orchestrator(fetch_config).fetch([]) == []

    @pytest.mark.asyncio
    async def test_duplicates_fetched_independently(self, fetch_config: FetchConfig):
        url = "https://example.com"
        static = FakeStatic({url: "content"})
        results = await _orchestrator(fetch_config, static).fetch([url, url])

        assert len(results) == 2
        assert static.calls == [url, url]

    @pytest.mark.asyncio
    async def test_static_success_never_launches_browser(
        self, fetch_config: FetchConfig
    ):
        url = "https://example.com"
        launcher = FakeLauncher()
        browser = FakeBrowser()
        orchestrator = _orchestrator(
            fetch_config, FakeStatic({url: "content"}), browser, launcher
        )

        results = await orchestrator.fetch([url])

        assert results == [FetchContent(markdown="content", source_url=url)]
        assert launcher.calls == 0
        assert browser.calls == []

    @pytest.mark.asyncio
    async def test_insufficient_content_falls_back(self, fetch_config: FetchConfig):
        url = "https://spa.example.com"
        static = FakeStatic({url: InsufficientContentError(40, 300)})
        browser = FakeBrowser({url: "rendered"})

        results = await _orchestrator(fetch_config, static, browser).fetch([url])

        assert results[0].ok
        assert results[0].markdown == "rendered"
        assert static.calls == [url]
        assert browser.calls == [url]

    @pytest.mark.asyncio
    async def test_network_error_falls_back(self, fetch_config: FetchConfig):
        url = "https://blocked.example.com"
        browser = FakeBrowser({url: "rendered"})

        results = await _orchestrator(fetch_config, FakeStatic(), browser).fetch([url])

        assert results[0].markdown == "rendered"

    @pytest.mark.asyncio
    async def test_browser_only_mode_skips_static(self, fetch_config: FetchConfig):
        fetch_config.mode = "browser"
        url = "https://example.com"
        static = FakeStatic({url: "static"})
        browser = FakeBrowser({url: "rendered"})

        results = await _orchestrator(fetch_config, static, browser).fetch([url])

        assert results[0].markdown == "rendered"
        assert static.calls == []


class TestIsolation:
    """Tests that one URL's failure never affects another."""

    @pytest.mark.asyncio
    async def test_invalid_url_isolated(self, fetch_config: FetchConfig):
        urls = ["https://good1.example.com", "not a url", "https://good2.example.com"]
        static = FakeStatic({urls[0]: "one", urls[2]: "two"})
        launcher = FakeLauncher()

        results = await _orchestrator(fetch_config, static, launcher=launcher).fetch(
            urls
        )

        assert results[0] == FetchContent(markdown="one", source_url=urls[0])
        assert results[2] == FetchContent(markdown="two", source_url=urls[2])
        assert isinstance(results[1], FetchFailure)
        assert results[1].message.startswith("Error fetching not a url: Invalid URL")
        assert "not a url" not in static.calls
        assert launcher.calls == 0

    @pytest.mark.asyncio
    async def test_browser_failure_isolated(self, fetch_config: FetchConfig):
        fetch_config.mode = "browser"
        urls = ["https://a.example.com", "https://dead.invalid", "https://c.example.com"]
        browser = FakeBrowser(
            {urls[1]: NavigationError("net::ERR_NAME_NOT_RESOLVED", url=urls[1])}
        )

        results = await _orchestrator(fetch_config, browser=browser).fetch(urls)

        assert results[0].ok and results[2].ok
        assert results[1].to_payload() == {
            "error": (
                "Error fetching https://dead.invalid: "
                "navigate failed: net::ERR_NAME_NOT_RESOLVED"
            )
        }

    @pytest.mark.asyncio
    async def test_readiness_timeout_message(self, fetch_config: FetchConfig):
        fetch_config.mode = "browser"
        url = "https://slow.example.com"
        browser = FakeBrowser({url: ReadinessTimeout(15.0, url=url)})

        results = await _orchestrator(fetch_config, browser=browser).fetch([url])

        assert results[0].message == (
            "Error fetching https://slow.example.com: wait for content failed: "
            "Timeout: no suitable element found within 15s"
        )

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_failure(
        self, fetch_config: FetchConfig
    ):
        url = "https://example.com"
        static = FakeStatic({url: KeyError("surprise")})

        results = await _orchestrator(fetch_config, static).fetch([url])

        assert isinstance(results[0], FetchFailure)
        assert results[0].message.startswith(f"Error fetching {url}:")


class TestBrowserLifecycle:
    """Tests for lazy, shared, fail-fast browser initialization."""

    @pytest.mark.asyncio
    async def test_init_failure_fails_fast_for_whole_batch(
        self, fetch_config: FetchConfig
    ):
        urls = [
            "https://spa1.example.com",
            "https://static.example.com",
            "https://spa2.example.com",
            "https://spa3.example.com",
        ]
        static = FakeStatic({urls[1]: "static content"})
        launcher = FakeLauncher(fail_times=99, delay=0.05)
        browser = FakeBrowser()

        results = await _orchestrator(fetch_config, static, browser, launcher).fetch(
            urls
        )

        assert launcher.calls == 1
        assert browser.calls == []
        assert results[1].ok
        for index in (0, 2, 3):
            assert results[index].message == (
                f"Error fetching {urls[index]}: "
                "Browser initialization failed: browser executable not found: /bin/x"
            )

    @pytest.mark.asyncio
    async def test_unexpected_launch_error_wrapped(self, fetch_config: FetchConfig):
        fetch_config.mode = "browser"
        launcher = FakeLauncher(fail_times=1, error=RuntimeError("spawn failed"))

        results = await _orchestrator(fetch_config, launcher=launcher).fetch(
            ["https://example.com"]
        )

        assert results[0].message == (
            "Error fetching https://example.com: "
            "Browser initialization failed: spawn failed"
        )

    @pytest.mark.asyncio
    async def test_browser_reused_across_batches(self, fetch_config: FetchConfig):
        fetch_config.mode = "browser"
        launcher = FakeLauncher()
        browser = FakeBrowser()
        orchestrator = _orchestrator(fetch_config, browser=browser, launcher=launcher)

        await orchestrator.fetch(["https://a.example.com", "https://b.example.com"])
        await orchestrator.fetch(["https://c.example.com"])

        assert launcher.calls == 1
        assert len(browser.handles) == 3
        assert all(h is browser.handles[0] for h in browser.handles)

    @pytest.mark.asyncio
    async def test_shared_cell_across_orchestrators(self, fetch_config: FetchConfig):
        fetch_config.mode = "browser"
        cell: AsyncOnceCell = AsyncOnceCell()
        launcher = FakeLauncher()

        first = _orchestrator(fetch_config, launcher=launcher, cell=cell)
        second = _orchestrator(fetch_config, launcher=launcher, cell=cell)
        await first.fetch(["https://a.example.com"])
        await second.fetch(["https://b.example.com"])

        assert launcher.calls == 1

    @pytest.mark.asyncio
    async def test_init_retried_in_later_batch(self, fetch_config: FetchConfig):
        fetch_config.mode = "browser"
        launcher = FakeLauncher(fail_times=1)
        orchestrator = _orchestrator(fetch_config, launcher=launcher)

        first = await orchestrator.fetch(["https://a.example.com", "https://b.example.com"])
        second = await orchestrator.fetch(["https://a.example.com"])

        assert not any(r.ok for r in first)
        assert second[0].ok
        assert launcher.calls == 2

    @pytest.mark.asyncio
    async def test_dead_browser_relaunched(self, fetch_config: FetchConfig):
        fetch_config.mode = "browser"
        cell: AsyncOnceCell = AsyncOnceCell()
        launcher = FakeLauncher()
        browser = FakeBrowser()
        orchestrator = _orchestrator(
            fetch_config, browser=browser, launcher=launcher, cell=cell
        )

        await orchestrator.fetch(["https://a.example.com"])
        crashed = cell.get()
        crashed.is_alive.return_value = False
        results = await orchestrator.fetch(["https://b.example.com"])

        assert results[0].ok
        assert launcher.calls == 2
        crashed.close.assert_called_once()
        assert browser.handles[1] is cell.get()
        assert browser.handles[1] is not crashed

    @pytest.mark.asyncio
    async def test_browser_fetches_run_concurrently(self, fetch_config: FetchConfig):
        fetch_config.mode = "browser"
        browser = FakeBrowser(delay=0.2)
        urls = [f"https://site{i}.example.com" for i in range(4)]

        start = time.monotonic()
        results = await _orchestrator(fetch_config, browser=browser).fetch(urls)
        elapsed = time.monotonic() - start

        assert all(r.ok for r in results)
        starts = [s for s, _ in browser.windows]
        ends = [e for _, e in browser.windows]
        assert max(starts) < min(ends)
        assert elapsed < 0.6

    @pytest.mark.asyncio
    async def test_single_tab_runs_sequentially(self, fetch_config: FetchConfig):
        fetch_config.mode = "browser"
        fetch_config.browser.max_tabs = 1
        browser = FakeBrowser(delay=0.05)
        urls = [f"https://site{i}.example.com" for i in range(3)]

        results = await _orchestrator(fetch_config, browser=browser).fetch(urls)

        assert all(r.ok for r in results)
        windows = sorted(browser.windows)
        for (_, prev_end), (next_start, _) in zip(windows, windows[1:]):
            assert prev_end <= next_start


class TestDefaultStaticFetcher:
    """The built-in plain fetcher honours the static fetch settings."""

    SHORT_PAGE = (
        "<html><body><p>A page of plain text that holds roughly seventy "
        "characters.</p></body></html>"
    )
    TINY_PAGE = "<html><body><p>Tiny.</p></body></html>"

    @pytest.mark.asyncio
    async def test_user_agent_and_threshold_from_config(
        self, fast_browser_config: BrowserConfig, monkeypatch: pytest.MonkeyPatch
    ):
        seen_agents: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen_agents.append(request.headers["user-agent"])
            if request.url.host == "tiny.example.com":
                return httpx.Response(200, text=self.TINY_PAGE)
            return httpx.Response(200, text=self.SHORT_PAGE)

        config = FetchConfig(
            static=StaticFetchConfig(
                user_agent="mdfetch-test-agent", min_content_length=50
            ),
            browser=fast_browser_config,
        )
        launcher = FakeLauncher()
        browser = FakeBrowser()
        orchestrator = FetchOrchestrator(
            config,
            browser_cell=AsyncOnceCell(),
            browser_fetcher=browser,
            launcher=launcher,
        )

        transport = httpx.MockTransport(handler)
        async with httpx.AsyncClient(transport=transport) as client:
            monkeypatch.setattr(fetch_static, "_static_client", client)
            results = await orchestrator.fetch(
                ["https://short.example.com", "https://tiny.example.com"]
            )

        assert results[0].ok
        assert "seventy" in results[0].markdown
        assert results[1].ok
        assert browser.calls == ["https://tiny.example.com"]
        assert launcher.calls == 1
        assert seen_agents == ["mdfetch-test-agent", "mdfetch-test-agent"]


class TestModuleOrchestrator:
    """Tests for the process-wide orchestrator."""

    def test_singleton(self):
        assert get_orchestrator() is get_orchestrator()

    def test_first_config_wins(self):
        first = get_orchestrator(FetchConfig(mode="browser"))
        assert get_orchestrator(FetchConfig()) is first
        assert first.mode is FetchMode.BROWSER

    @pytest.mark.asyncio
    async def test_reset_closes_browser(self):
        handle = MagicMock()

        async def launch():
            return handle

        get_orchestrator()
        await fetch_module._browser_cell.get_or_init(launch)

        reset_orchestrator()

        handle.close.assert_called_once()
        assert not fetch_module._browser_cell.initialized
        assert fetch_module._default_orchestrator is None
