"""Configuration and paths for firecli."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import platformdirs

# Application name for platformdirs
APP_NAME = "firecli"

# Default Firecrawl API settings
DEFAULT_API_URL = "https://api.firecrawl.dev"
API_KEY_ENV = "FIRECRAWL_API_KEY"
API_URL_ENV = "FIRECRAWL_API_URL"

# Local state
SESSION_FILENAME = "browser-session.json"

# Root directory for bulk scrape output, relative to the working directory
BULK_OUTPUT_DIR = ".firecrawl"


def get_config_dir() -> Path:
    """Get the config directory for firecli (~/.config/firecli/)."""
    return Path(platformdirs.user_config_dir(APP_NAME))


def get_session_path() -> Path:
    """Get the path of the stored browser session record."""
    return get_config_dir() / SESSION_FILENAME


def is_custom_api_url(api_url: str | None) -> bool:
    """Check if an API URL points somewhere other than the hosted Firecrawl API."""
    if not api_url:
        return False
    return api_url.rstrip("/") != DEFAULT_API_URL


class ConfigError(Exception):
    """Invalid or incomplete configuration."""

    pass


@dataclass(frozen=True)
class ClientConfig:
    """Connection settings for one command invocation."""

    api_url: str = DEFAULT_API_URL
    api_key: str | None = None
    timeout: float = 60.0
    max_retries: int = 3

    @classmethod
    def resolve(
        cls,
        api_key: str | None = None,
        api_url: str | None = None,
        timeout: float = 60.0,
        max_retries: int = 3,
    ) -> "ClientConfig":
        """Build a config from explicit flags, falling back to environment variables.

        Args:
            api_key: API key passed on the command line
            api_url: API URL passed on the command line
            timeout: Request timeout in seconds
            max_retries: Retry attempts for transient errors

        Returns:
            ClientConfig for this invocation

        Raises:
            ConfigError: If the hosted API is targeted without an API key
        """
        url = api_url or os.environ.get(API_URL_ENV) or DEFAULT_API_URL
        key = api_key or os.environ.get(API_KEY_ENV) or None

        # Self-hosted instances usually run without authentication
        if not key and not is_custom_api_url(url):
            raise ConfigError(
                f"No API key configured. Set {API_KEY_ENV} or pass --api-key."
            )

        return cls(
            api_url=url.rstrip("/"),
            api_key=key,
            timeout=timeout,
            max_retries=max_retries,
        )
