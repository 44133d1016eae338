"""Configuration management for netlify-published-date."""

import json
import logging
import os
import re
from pathlib import Path
from typing import Any, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_API_ROOT = "https://api.netlify.com/api/v1/"


def default_site_id() -> str:
    """Derive the site ID from the ``URL`` variable set by Netlify builds."""
    match = re.match(r"^https://([^/]+)", os.environ.get("URL", ""))
    return match.group(1) if match else ""


def default_access_token() -> Optional[str]:
    return os.environ.get("NETLIFY_API_TOKEN") or None


class HttpConfig(BaseModel):
    """Configuration for the shared HTTP session."""

    timeout: float = Field(default=30.0, description="Read timeout in seconds")
    connect_timeout: float = Field(
        default=10.0, description="Connect timeout in seconds"
    )
    max_connections: int = Field(default=10, description="Total connections")
    max_keepalive_connections: int = Field(
        default=5, description="Keepalive connections"
    )
    max_concurrent_requests: int = Field(
        default=10, description="Maximum number of requests in flight at once"
    )

    # Retries only apply to rate limited (429) responses
    max_retries: int = Field(
        default=3, description="Maximum number of retries for rate limited requests"
    )
    retry_delay: float = Field(
        default=1.0, description="Initial delay between retries in seconds"
    )
    max_retry_delay: float = Field(
        default=30.0, description="Upper bound for a single retry delay in seconds"
    )

    follow_redirects: bool = Field(
        default=True, description="Follow redirects when fetching preview pages"
    )
    max_redirects: int = Field(default=20, description="Maximum redirects per fetch")


class PublishedDateConfig(BaseModel):
    """Main configuration for published/modified date resolution."""

    site_id: str = Field(
        default_factory=default_site_id, description="Netlify site ID or domain"
    )
    access_token: Optional[str] = Field(
        default_factory=default_access_token,
        description="Netlify personal access token",
    )
    api_root: str = Field(
        default=DEFAULT_API_ROOT, description="Root URL of the Netlify API"
    )
    cache_dir: Optional[Path] = Field(
        default=None,
        description="Directory for the persistent preview cache (in-memory if unset)",
    )
    pattern: List[str] = Field(
        default=["**/*.html"], description="Glob patterns selecting target files"
    )
    http: HttpConfig = Field(default_factory=HttpConfig)

    @field_validator("api_root")
    @classmethod
    def normalize_api_root(cls, v: str) -> str:
        """Ensure the API root ends with a slash."""
        return v.rstrip("/") + "/"

    @field_validator("cache_dir", mode="before")
    @classmethod
    def convert_path(cls, v: Any) -> Optional[Path]:
        """Convert string paths to Path objects."""
        if v is None or isinstance(v, Path):
            return v
        if isinstance(v, str):
            return Path(v) if v else None
        raise ValueError(f"Expected str or Path, got {type(v)}")

    @field_validator("pattern", mode="before")
    @classmethod
    def wrap_pattern(cls, v: Any) -> Any:
        """Accept a single pattern string."""
        if isinstance(v, str):
            return [v]
        return v


class ConfigManager:
    """Manages configuration loading and saving."""

    DEFAULT_CONFIG_PATH = Path(".netlify-published-date/config.json")

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = config_path or self.DEFAULT_CONFIG_PATH
        self._config: Optional[PublishedDateConfig] = None

    def load(self) -> PublishedDateConfig:
        """Load configuration from file, or defaults when no file exists."""
        if self.config_path.exists():
            try:
                with open(self.config_path, "r") as f:
                    data = json.load(f)
                self._config = PublishedDateConfig(**data)
            except (OSError, json.JSONDecodeError, ValidationError, TypeError) as e:
                raise ConfigurationError(
                    f"Failed to load config from {self.config_path}", str(e)
                ) from e
        else:
            logger.debug(f"No config file at {self.config_path}, using defaults")
            self._config = PublishedDateConfig()

        return self._config

    def save(self, config: Optional[PublishedDateConfig] = None) -> None:
        """Save configuration to file."""
        if config is None:
            config = self._config

        if config is None:
            raise ValueError("No configuration to save")

        self.config_path.parent.mkdir(parents=True, exist_ok=True)

        # Tokens stay in the environment, never on disk
        config_dict = config.model_dump(mode="json", exclude={"access_token"})

        with open(self.config_path, "w") as f:
            json.dump(config_dict, f, indent=2)

    def get_config(self) -> PublishedDateConfig:
        """Get current configuration, loading if necessary."""
        if self._config is None:
            self.load()
        if self._config is None:
            raise RuntimeError("Failed to load configuration")
        return self._config

    @staticmethod
    def find_config_path(start_dir: Optional[Path] = None) -> Optional[Path]:
        """Find .netlify-published-date/config.json by walking up the directory tree.

        Args:
            start_dir: Directory to start searching from (default: current directory)

        Returns:
            Path to config.json if found, None otherwise
        """
        current = start_dir or Path.cwd()

        for path in [current] + list(current.parents):
            config_path = path / ".netlify-published-date" / "config.json"
            if config_path.exists():
                return config_path

        return None
