"""Error classes for URL fetching and search.

Error Hierarchy:
    FetchError (base)
    ├── InvalidURLError (input is not an http(s) URL, never retried)
    ├── NetworkError (lightweight path: DNS/connect/timeout/TLS/HTTP status)
    ├── InsufficientContentError (lightweight path produced too little text)
    ├── BrowserInitError (shared browser process failed to launch)
    └── BrowserFetchError (browser path, carries the failing stage)
        ├── TabOpenError
        ├── NavigationError
        ├── ReadinessTimeout
        └── ExtractionError

    SearchError (search path only)

NetworkError and InsufficientContentError both trigger the browser fallback;
every other FetchError is terminal for its URL. All of them are converted to
a result string at the per-URL boundary in the orchestrator.
"""

from __future__ import annotations


class FetchError(Exception):
    """Base exception for fetch errors."""


class InvalidURLError(FetchError):
    """Raised when the requested URL is not an absolute http(s) URL."""

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(f"Invalid URL (expected http:// or https://): {url!r}")


class NetworkError(FetchError):
    """Raised when the plain HTTP request fails."""


class InsufficientContentError(FetchError):
    """Raised when the plain HTTP response converts to too little markdown.

    Attributes:
        length: Trimmed markdown length that was measured
        threshold: Minimum length that would have been accepted
    """

    def __init__(self, length: int, threshold: int) -> None:
        self.length = length
        self.threshold = threshold
        super().__init__(
            f"Content insufficient ({length} chars, need at least {threshold})"
        )


class BrowserInitError(FetchError):
    """Raised when the shared browser process cannot be started."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Browser initialization failed: {message}")


class BrowserFetchError(FetchError):
    """Base class for per-URL failures on the browser path.

    Attributes:
        stage: Human-readable name of the step that failed
        detail: Underlying error description
        url: URL being fetched, if known
    """

    stage = "browser fetch"

    def __init__(self, detail: str, url: str | None = None) -> None:
        self.detail = detail
        self.url = url
        super().__init__(f"{self.stage} failed: {detail}")


class TabOpenError(BrowserFetchError):
    stage = "open tab"


class NavigationError(BrowserFetchError):
    stage = "navigate"


class ReadinessTimeout(BrowserFetchError):
    """No readiness signal fired before the timeout elapsed.

    Attributes:
        timeout: The bound that elapsed, in seconds
    """

    stage = "wait for content"

    def __init__(self, timeout: float, url: str | None = None) -> None:
        self.timeout = timeout
        super().__init__(
            f"Timeout: no suitable element found within {timeout:g}s", url=url
        )


class ExtractionError(BrowserFetchError):
    stage = "extract content"


class SearchError(Exception):
    """Raised when the search provider call fails or is not configured."""
