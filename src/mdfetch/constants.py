"""Centralized constants for mdfetch.

This module contains all hardcoded constants used throughout the codebase.
Grouping them here makes it easier to:
- Find and modify default values
- Understand system limits at a glance
- Maintain consistency across modules
"""

from __future__ import annotations

# =============================================================================
# Lightweight (plain HTTP) Fetch
# =============================================================================

DEFAULT_STATIC_TIMEOUT = 10.0  # seconds
# Some servers reject non-browser agents
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/126.0.0.0 Safari/537.36"
)
# Trimmed markdown shorter than this means the page probably needed JS
MIN_CONTENT_LENGTH = 300
DEFAULT_STATIC_MAX_CONNECTIONS = 20

# =============================================================================
# Browser
# =============================================================================

DEFAULT_BROWSER_PATH = "/bin/chrome-headless-shell"
BROWSER_PATH_ENV = "MDFETCH_BROWSER_PATH"
DEFAULT_BROWSER_STARTUP_TIMEOUT = 20.0  # seconds
DEFAULT_BROWSER_NAVIGATION_TIMEOUT = 30.0  # seconds
DEFAULT_BROWSER_WAIT_FOR = "domcontentloaded"  # load | domcontentloaded | commit
DEFAULT_BROWSER_MAX_TABS = 8  # Blocking pool size; 1 = sequential

# Launch flags for restricted containers without sandbox privileges
BROWSER_LAUNCH_ARGS: tuple[str, ...] = (
    "--headless",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-gpu",
    "--disable-dev-shm-usage",
    "--disable-software-rasterizer",
    "--single-process",
    "--no-zygote",
    "--no-first-run",
    "--no-default-browser-check",
)
BROWSER_DEBUG_HOST = "127.0.0.1"
BROWSER_ENDPOINT_POLL_INTERVAL = 0.1  # seconds

# =============================================================================
# Readiness Detection
# =============================================================================

DEFAULT_READINESS_TIMEOUT = 15.0  # seconds
DEFAULT_READINESS_POLL_INTERVAL = 0.05  # seconds

# Content-bearing selectors, tried in order
DEFAULT_READY_SELECTORS: tuple[str, ...] = (
    "main",
    "article",
    "[role='main']",
    ".content",
    ".main-content",
    "#content",
    "[data-testid]",
    "[data-component]",
)

# Body has visible text and at least one child element
READY_BODY_CHECK_JS = """() => {
    const body = document.body;
    return !!body && body.innerText.length > 100 && body.children.length > 0;
}"""

# =============================================================================
# Search
# =============================================================================

DEFAULT_SEARCH_BASE_URL = "https://api.exa.ai/search"
DEFAULT_SEARCH_API_KEY = "env:EXA_API_KEY"
DEFAULT_SEARCH_NUM_RESULTS = 3
DEFAULT_SEARCH_TIMEOUT = 30.0  # seconds

# =============================================================================
# Server
# =============================================================================

DEFAULT_SERVER_NAME = "mdfetch"
DEFAULT_SERVER_HOST = "0.0.0.0"
DEFAULT_SERVER_PORT = 8081
DEFAULT_SERVER_PATH = "/mcp"

# =============================================================================
# Logging
# =============================================================================

DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_DIR = None
DEFAULT_LOG_ROTATION = "10 MB"
DEFAULT_LOG_RETENTION = "7 days"

# =============================================================================
# Paths and Filenames
# =============================================================================

CONFIG_FILENAME = "mdfetch.json"
DEFAULT_USER_CONFIG_DIR = "~/.mdfetch"
