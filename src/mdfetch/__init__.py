"""mdfetch - fetch web pages as clean markdown, with headless-browser fallback."""

__version__ = "0.1.0"
