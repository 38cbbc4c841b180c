"""HTML to Markdown conversion.

Pure functions: no network access, no state beyond a shared MarkItDown
instance. Malformed HTML degrades to plain text instead of raising.
"""

from __future__ import annotations

import html as html_module
import io
import re
import threading
from typing import Any

from loguru import logger

_markitdown_instance: Any = None
_markitdown_lock = threading.Lock()

_NOSCRIPT_RE = re.compile(r"<noscript[^>]*>.*?</noscript>", re.DOTALL | re.IGNORECASE)
_SCRIPT_RE = re.compile(r"<script[^>]*>.*?</script>", re.DOTALL | re.IGNORECASE)
_STYLE_RE = re.compile(r"<style[^>]*>.*?</style>", re.DOTALL | re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")


def _get_markitdown() -> Any:
    """Get or create the shared MarkItDown instance.

    Reusing a single instance avoids repeated initialization overhead.
    Browser fetches convert from worker threads, so creation is locked.
    """
    global _markitdown_instance
    if _markitdown_instance is None:
        with _markitdown_lock:
            if _markitdown_instance is None:
                from markitdown import MarkItDown

                _markitdown_instance = MarkItDown()
    return _markitdown_instance


def html_to_markdown(html: str) -> str:
    """Convert HTML to markdown.

    Tries markitdown first, falls back to basic HTML stripping.

    Args:
        html: HTML content

    Returns:
        Markdown content (empty string for empty input)
    """
    if not html or not html.strip():
        return ""

    # <noscript> fallbacks ("JavaScript is not available") are noise here
    html = _NOSCRIPT_RE.sub("", html)

    try:
        md = _get_markitdown()
        # MarkItDown uses convert_stream for in-memory content
        stream = io.BytesIO(html.encode("utf-8"))
        result = md.convert_stream(stream, file_extension=".html")
        return result.text_content if result and result.text_content else ""
    except Exception as e:
        logger.debug(f"markitdown conversion failed, using fallback: {e}")
        return strip_html_tags(html)


def strip_html_tags(html: str) -> str:
    """Strip HTML tags from content (fallback converter).

    Args:
        html: HTML content

    Returns:
        Plain text with HTML tags removed
    """
    html = _SCRIPT_RE.sub("", html)
    html = _STYLE_RE.sub("", html)
    html = _NOSCRIPT_RE.sub("", html)

    # Block-level closers become line breaks so paragraphs survive
    html = re.sub(r"</(p|div|h[1-6]|li|tr|section|article)>", "\n", html, flags=re.I)
    html = re.sub(r"<br\s*/?>", "\n", html, flags=re.I)

    text = _TAG_RE.sub("", html)
    text = html_module.unescape(text)

    # Normalize whitespace
    lines = (re.sub(r"[ \t\r\f\v]+", " ", line).strip() for line in text.split("\n"))
    return "\n".join(line for line in lines if line)


def is_sufficient(markdown: str, min_length: int) -> bool:
    """Check whether converted markdown carries real content.

    Args:
        markdown: Converted markdown
        min_length: Minimum trimmed length, inclusive

    Returns:
        True if the trimmed markdown is at least min_length characters
    """
    return len(markdown.strip()) >= min_length


def process_html(html: str, min_length: int) -> tuple[str, bool]:
    """Convert HTML to markdown and validate content sufficiency."""
    markdown = html_to_markdown(html)
    return markdown, is_sufficient(markdown, min_length)
