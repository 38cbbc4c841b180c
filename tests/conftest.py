"""Pytest configuration and fixtures."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from mdfetch.config import BrowserConfig, FetchConfig
from mdfetch.utils.executor import shutdown_browser_executor

# =============================================================================
# Global state cleanup
# =============================================================================


@pytest.fixture(autouse=True)
def _reset_global_state(monkeypatch: pytest.MonkeyPatch):
    """Keep process-wide singletons and host env vars out of tests."""
    monkeypatch.delenv("MDFETCH_CONFIG", raising=False)
    monkeypatch.delenv("MDFETCH_BROWSER_PATH", raising=False)
    monkeypatch.delenv("MDFETCH_LOG_DIR", raising=False)
    yield
    from mdfetch import fetch as fetch_module

    fetch_module._default_orchestrator = None
    fetch_module._browser_cell.reset()
    shutdown_browser_executor()


# =============================================================================
# Sample Content Fixtures
# =============================================================================


@pytest.fixture
def article_html() -> str:
    """Return a server-rendered article with well over 300 chars of text."""
    paragraph = (
        "Markdown is a lightweight markup language for creating formatted text "
        "using a plain-text editor. It is widely used for documentation, "
        "readme files and online forums. "
    )
    return f"""<!DOCTYPE html>
<html>
<head>
  <title>Sample Article</title>
  <style>body {{ color: red; }}</style>
  <script>window.tracking = true;</script>
</head>
<body>
  <article>
    <h1>Sample Article</h1>
    <p>{paragraph}</p>
    <p>{paragraph}</p>
    <p>Read more at <a href="https://example.com/more">the example site</a>.</p>
    <ul>
      <li>Item 1</li>
      <li>Item 2</li>
    </ul>
  </article>
</body>
</html>
"""


@pytest.fixture
def spa_shell_html() -> str:
    """Return a JS application shell with almost no server-rendered text."""
    return """<!DOCTYPE html>
<html>
<head><title>App</title></head>
<body>
  <div id="root"></div>
  <noscript>You need to enable JavaScript to run this app.</noscript>
  <script src="/static/bundle.js"></script>
</body>
</html>
"""


@pytest.fixture
def fast_browser_config() -> BrowserConfig:
    """Browser config with short timeouts for tests."""
    return BrowserConfig(
        executable_path="/nonexistent/chrome-headless-shell",
        startup_timeout=0.5,
        navigation_timeout=1.0,
        readiness_timeout=0.2,
        poll_interval=0.01,
        max_tabs=4,
    )


@pytest.fixture
def fetch_config(fast_browser_config: BrowserConfig) -> FetchConfig:
    """Fallback-mode fetch config with test browser settings."""
    return FetchConfig(mode="fallback", browser=fast_browser_config)


@pytest.fixture
def tmp_config_file(tmp_path: Path):
    """Factory writing a JSON config file into tmp_path."""
    import json

    def _write(data: dict[str, Any], name: str = "mdfetch.json") -> Path:
        path = tmp_path / name
        path.write_text(json.dumps(data), encoding="utf-8")
        return path

    return _write


# =============================================================================
# Fake browser page
# =============================================================================


class FakePage:
    """Stand-in for playwright.sync_api.Page used by readiness probes.

    Args:
        matching: Selectors that match once the page is "rendered"
        body_ready: Result of the in-page body heuristic once rendered
        ready_after: Number of probe rounds before content appears
        raise_on_probe: Exception raised by every probe call
    """

    def __init__(
        self,
        matching: set[str] | None = None,
        body_ready: bool = False,
        ready_after: int = 0,
        raise_on_probe: Exception | None = None,
    ) -> None:
        self.matching = matching or set()
        self.body_ready = body_ready
        self.ready_after = ready_after
        self.raise_on_probe = raise_on_probe
        self.selector_calls: list[str] = []
        self.evaluate_calls: list[str] = []

    @property
    def rounds(self) -> int:
        return len(self.evaluate_calls)

    def _rendered(self) -> bool:
        return self.rounds >= self.ready_after

    def query_selector(self, selector: str) -> Any:
        self.selector_calls.append(selector)
        if self.raise_on_probe is not None:
            raise self.raise_on_probe
        if self._rendered() and selector in self.matching:
            return object()
        return None

    def evaluate(self, expression: str) -> Any:
        rendered = self._rendered()
        self.evaluate_calls.append(expression)
        if self.raise_on_probe is not None:
            raise self.raise_on_probe
        return self.body_ready and rendered


@pytest.fixture
def fake_page_factory():
    """Factory for FakePage instances."""
    return FakePage
