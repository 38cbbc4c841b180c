"""URL helpers."""

from __future__ import annotations

import re
from urllib.parse import urlparse

# URL pattern for validation
_URL_PATTERN = re.compile(r"^https?://", re.IGNORECASE)


def is_url(s: str) -> bool:
    """Check if string is an absolute http(s) URL with a host.

    Args:
        s: String to check

    Returns:
        True if the string starts with http:// or https:// and names a host
    """
    if not isinstance(s, str) or not _URL_PATTERN.match(s):
        return False
    try:
        return bool(urlparse(s).hostname)
    except ValueError:
        return False
