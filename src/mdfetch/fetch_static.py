"""Lightweight fetch over plain HTTP (no JavaScript execution).

This is the fast path: most static and server-rendered pages do not need
a browser. A response whose converted markdown is shorter than the
sufficiency threshold is reported as InsufficientContentError so the
orchestrator can fall back to rendering.

Example usage:
    from mdfetch.fetch_static import fetch_with_static

    markdown = await fetch_with_static("https://example.com")
"""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from mdfetch.constants import (
    DEFAULT_STATIC_MAX_CONNECTIONS,
    DEFAULT_STATIC_TIMEOUT,
    DEFAULT_USER_AGENT,
    MIN_CONTENT_LENGTH,
)
from mdfetch.converter import process_html
from mdfetch.errors import InsufficientContentError, NetworkError

_static_client: httpx.AsyncClient | None = None


def _get_static_client(
    timeout: float = DEFAULT_STATIC_TIMEOUT,
    user_agent: str = DEFAULT_USER_AGENT,
) -> httpx.AsyncClient:
    """Get or create the shared httpx.AsyncClient for lightweight fetching.

    Reusing a single client instance avoids repeated connection setup overhead.

    Args:
        timeout: Request timeout in seconds (used on first creation only)
        user_agent: User-Agent header (used on first creation only)

    Returns:
        httpx.AsyncClient instance
    """
    global _static_client
    if _static_client is None:
        client_kwargs: dict[str, Any] = {
            "timeout": timeout,
            "follow_redirects": True,
            "headers": {"User-Agent": user_agent},
            "limits": httpx.Limits(
                max_connections=DEFAULT_STATIC_MAX_CONNECTIONS,
                max_keepalive_connections=5,
            ),
        }
        _static_client = httpx.AsyncClient(**client_kwargs)
    return _static_client


async def close_static_client() -> None:
    """Close the shared client instance.

    Call this during cleanup to release resources.
    """
    global _static_client
    if _static_client is not None:
        await _static_client.aclose()
        _static_client = None


async def fetch_with_static(
    url: str,
    *,
    timeout: float = DEFAULT_STATIC_TIMEOUT,
    user_agent: str = DEFAULT_USER_AGENT,
    min_content_length: int = MIN_CONTENT_LENGTH,
    client: httpx.AsyncClient | None = None,
) -> str:
    """Fetch a URL with a plain GET and convert the body to markdown.

    Args:
        url: URL to fetch
        timeout: Request timeout in seconds
        user_agent: Browser-like User-Agent header
        min_content_length: Sufficiency threshold on trimmed markdown length
        client: Optional client to use instead of the shared one

    Returns:
        Markdown content

    Raises:
        NetworkError: On DNS/connect/timeout/TLS failure or HTTP error status
        InsufficientContentError: If the converted markdown is too short
    """
    logger.debug(f"Fetching URL with static strategy: {url}")

    http = client or _get_static_client(timeout=timeout, user_agent=user_agent)
    try:
        response = await http.get(
            url, headers={"User-Agent": user_agent}, timeout=timeout
        )
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        raise NetworkError(f"HTTP error fetching URL {url}: {e!r}") from e

    if response.status_code >= 400:
        raise NetworkError(f"HTTP {response.status_code} fetching URL: {url}")

    markdown, sufficient = process_html(response.text, min_content_length)
    if not sufficient:
        length = len(markdown.strip())
        logger.warning(
            f"Content insufficient with plain HTTP (length: {length}), "
            f"will retry with browser: {url}"
        )
        raise InsufficientContentError(length, min_content_length)

    logger.info(f"Successfully fetched with plain HTTP: {url}")
    return markdown
