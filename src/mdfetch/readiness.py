"""Readiness detection for rendered pages.

Decides when a page has loaded enough content to be worth extracting.
Two tiers are tried on every poll, in order:

1. Structural probes: a fixed, ordered list of content-bearing CSS selectors.
   The first selector matching any element signals readiness.
2. Heuristic probe: an in-page check that the body has more than 100
   characters of visible text and at least one child element.

The detector works against any object exposing Playwright's sync page
methods ``query_selector`` and ``evaluate``, and blocks the calling thread
between polls. It must run on the browser thread pool, never on the event loop.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Literal, Protocol

from loguru import logger

from mdfetch.constants import (
    DEFAULT_READINESS_POLL_INTERVAL,
    DEFAULT_READINESS_TIMEOUT,
    DEFAULT_READY_SELECTORS,
    READY_BODY_CHECK_JS,
)
from mdfetch.errors import ReadinessTimeout


class PageLike(Protocol):
    """Subset of playwright.sync_api.Page used for probing."""

    def query_selector(self, selector: str) -> Any: ...

    def evaluate(self, expression: str) -> Any: ...


@dataclass(frozen=True)
class ReadySignal:
    """Which probe declared the page ready."""

    tier: Literal["selector", "heuristic"]
    detail: str


class ReadinessDetector:
    """Poll a live page until content-bearing markup appears.

    Args:
        selectors: Ordered structural probes
        heuristic_js: Expression evaluated in-page as the fallback probe
        timeout: Upper bound in seconds before giving up
        poll_interval: Sleep between polls in seconds
        clock: Monotonic clock (injectable for tests)
        sleep: Blocking sleep (injectable for tests)
    """

    def __init__(
        self,
        selectors: Sequence[str] = DEFAULT_READY_SELECTORS,
        heuristic_js: str = READY_BODY_CHECK_JS,
        timeout: float = DEFAULT_READINESS_TIMEOUT,
        poll_interval: float = DEFAULT_READINESS_POLL_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.selectors = tuple(selectors)
        self.heuristic_js = heuristic_js
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._clock = clock
        self._sleep = sleep

    def probe(self, page: PageLike) -> ReadySignal | None:
        """Run both tiers once.

        Probe errors (e.g. the execution context being replaced mid-navigation)
        count as "not ready yet" and are retried on the next poll.
        """
        for selector in self.selectors:
            try:
                if page.query_selector(selector) is not None:
                    return ReadySignal("selector", selector)
            except Exception as e:
                logger.debug(f"Selector probe {selector!r} failed: {e}")

        try:
            if page.evaluate(self.heuristic_js) is True:
                return ReadySignal("heuristic", "body")
        except Exception as e:
            logger.debug(f"Body heuristic probe failed: {e}")

        return None

    def wait(self, page: PageLike, url: str | None = None) -> ReadySignal:
        """Block until the page is ready.

        Args:
            page: Live page handle
            url: URL being loaded (only used for error reporting)

        Returns:
            The signal that fired

        Raises:
            ReadinessTimeout: If no probe fired before the timeout elapsed.
                Raised at or after the bound, never before.
        """
        start = self._clock()
        while True:
            signal = self.probe(page)
            if signal is not None:
                if signal.tier == "selector":
                    logger.info(f"Found element with selector: {signal.detail}")
                else:
                    logger.info("Found content by checking body")
                return signal

            elapsed = self._clock() - start
            if elapsed >= self.timeout:
                raise ReadinessTimeout(self.timeout, url=url)

            self._sleep(min(self.poll_interval, self.timeout - elapsed))
