"""Command-line interface for mdfetch."""

from mdfetch.cli.main import app

__all__ = ["app"]
