"""Configuration management for mdfetch."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field

from mdfetch.constants import (
    BROWSER_PATH_ENV,
    CONFIG_FILENAME,
    DEFAULT_BROWSER_MAX_TABS,
    DEFAULT_BROWSER_NAVIGATION_TIMEOUT,
    DEFAULT_BROWSER_PATH,
    DEFAULT_BROWSER_STARTUP_TIMEOUT,
    DEFAULT_BROWSER_WAIT_FOR,
    DEFAULT_LOG_DIR,
    DEFAULT_LOG_LEVEL,
    DEFAULT_LOG_RETENTION,
    DEFAULT_LOG_ROTATION,
    DEFAULT_READINESS_POLL_INTERVAL,
    DEFAULT_READINESS_TIMEOUT,
    DEFAULT_READY_SELECTORS,
    DEFAULT_SEARCH_API_KEY,
    DEFAULT_SEARCH_BASE_URL,
    DEFAULT_SEARCH_NUM_RESULTS,
    DEFAULT_SEARCH_TIMEOUT,
    DEFAULT_SERVER_HOST,
    DEFAULT_SERVER_PATH,
    DEFAULT_SERVER_PORT,
    DEFAULT_STATIC_TIMEOUT,
    DEFAULT_USER_AGENT,
    DEFAULT_USER_CONFIG_DIR,
    MIN_CONTENT_LENGTH,
)


ENV_PREFIX = "env:"


class EnvVarNotFoundError(ValueError):
    """An `env:NAME` reference points at an unset variable."""

    def __init__(self, var_name: str) -> None:
        self.var_name = var_name
        super().__init__(f"Environment variable not found: {var_name}")


def resolve_env_value(value: str, strict: bool = True) -> str | None:
    """Expand an `env:NAME` reference; other values pass through unchanged.

    Args:
        value: Literal value or `env:NAME` reference
        strict: Raise on an unset variable instead of returning None

    Raises:
        EnvVarNotFoundError: If strict and the variable is unset
    """
    if not isinstance(value, str) or not value.startswith(ENV_PREFIX):
        return value
    var_name = value[len(ENV_PREFIX) :]
    resolved = os.environ.get(var_name)
    if resolved is None and strict:
        raise EnvVarNotFoundError(var_name)
    return resolved


class StaticFetchConfig(BaseModel):
    """Plain HTTP (lightweight) fetch configuration."""

    timeout: float = Field(default=DEFAULT_STATIC_TIMEOUT, gt=0)  # seconds
    user_agent: str = DEFAULT_USER_AGENT
    min_content_length: int = Field(default=MIN_CONTENT_LENGTH, ge=0)


class BrowserConfig(BaseModel):
    """Headless browser configuration for JS-rendered pages."""

    executable_path: str = DEFAULT_BROWSER_PATH  # Supports env: syntax
    startup_timeout: float = Field(default=DEFAULT_BROWSER_STARTUP_TIMEOUT, gt=0)
    navigation_timeout: float = Field(default=DEFAULT_BROWSER_NAVIGATION_TIMEOUT, gt=0)
    wait_for: Literal["load", "domcontentloaded", "commit"] = DEFAULT_BROWSER_WAIT_FOR
    readiness_timeout: float = Field(default=DEFAULT_READINESS_TIMEOUT, ge=0)
    poll_interval: float = Field(default=DEFAULT_READINESS_POLL_INTERVAL, gt=0)
    ready_selectors: list[str] = Field(
        default_factory=lambda: list(DEFAULT_READY_SELECTORS)
    )
    max_tabs: int = Field(default=DEFAULT_BROWSER_MAX_TABS, ge=1)

    def get_resolved_executable_path(self) -> str:
        """Get the browser executable path.

        The MDFETCH_BROWSER_PATH environment variable wins over the
        configured value; env: syntax in the configured value is resolved.
        """
        env_path = os.environ.get(BROWSER_PATH_ENV)
        if env_path:
            return env_path
        return resolve_env_value(self.executable_path, strict=False) or DEFAULT_BROWSER_PATH


class FetchConfig(BaseModel):
    """URL fetch configuration."""

    mode: Literal["fallback", "browser"] = "fallback"
    static: StaticFetchConfig = Field(default_factory=StaticFetchConfig)
    browser: BrowserConfig = Field(default_factory=BrowserConfig)


class SearchConfig(BaseModel):
    """Search provider configuration."""

    api_key: str | None = DEFAULT_SEARCH_API_KEY  # Supports env: syntax
    base_url: str = DEFAULT_SEARCH_BASE_URL
    num_results: int = Field(default=DEFAULT_SEARCH_NUM_RESULTS, ge=1)
    timeout: float = Field(default=DEFAULT_SEARCH_TIMEOUT, gt=0)

    def get_resolved_api_key(self, strict: bool = False) -> str | None:
        """Return the API key, or None when unset or its env var is missing."""
        if self.api_key:
            return resolve_env_value(self.api_key, strict=strict)
        return None


class ServerConfig(BaseModel):
    """Tool-protocol server configuration."""

    host: str = DEFAULT_SERVER_HOST
    port: int = Field(default=DEFAULT_SERVER_PORT, ge=1, le=65535)
    path: str = DEFAULT_SERVER_PATH
    stateless: bool = True


class LogConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = DEFAULT_LOG_LEVEL
    dir: str | None = DEFAULT_LOG_DIR
    rotation: str = DEFAULT_LOG_ROTATION
    retention: str = DEFAULT_LOG_RETENTION


class MdfetchConfig(BaseModel):
    """Main configuration model."""

    fetch: FetchConfig = Field(default_factory=FetchConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    log: LogConfig = Field(default_factory=LogConfig)


class ConfigManager:
    """Locate, read and validate the JSON configuration file.

    Lookup order, first hit wins:
        1. explicit path passed to load()
        2. $MDFETCH_CONFIG
        3. ./mdfetch.json
        4. ~/.mdfetch/config.json
    With no file at all the model defaults apply. An explicit path that
    does not exist is an error rather than a silent fallback.
    """

    CONFIG_FILENAME = CONFIG_FILENAME
    CONFIG_ENV = "MDFETCH_CONFIG"
    DEFAULT_USER_CONFIG_DIR = Path(DEFAULT_USER_CONFIG_DIR).expanduser()

    def __init__(self) -> None:
        self._config_path: Path | None = None

    @property
    def config_path(self) -> Path | None:
        """File the current config came from, None for pure defaults."""
        return self._config_path

    def load(
        self,
        config_path: Path | str | None = None,
        env_override: bool = True,
    ) -> MdfetchConfig:
        """Load and validate the configuration.

        Raises:
            FileNotFoundError: If config_path is given but missing
            ValueError: On malformed JSON or invalid values
        """
        path = self._find_config_file(config_path, env_override)
        if config_path and (path is None or not path.exists()):
            raise FileNotFoundError(f"Config file not found: {config_path}")

        data: dict[str, Any] = {}
        self._config_path = None
        if path is not None and path.exists():
            data = json.loads(path.read_text(encoding="utf-8"))
            self._config_path = path

        return MdfetchConfig.model_validate(data)

    def _find_config_file(
        self, config_path: Path | str | None, env_override: bool
    ) -> Path | None:
        if config_path:
            return Path(config_path)
        if env_override and os.environ.get(self.CONFIG_ENV):
            return Path(os.environ[self.CONFIG_ENV])

        candidates = (
            Path.cwd() / self.CONFIG_FILENAME,
            self.DEFAULT_USER_CONFIG_DIR / "config.json",
        )
        return next((c for c in candidates if c.exists()), None)
