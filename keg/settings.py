"""
Keg Settings - Configuration management using Pydantic Settings.

Loads configuration from environment variables and .env files.
"""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class KegSettings(BaseSettings):
    """
    Keg configuration settings.

    Settings are loaded from:
    1. Environment variables (highest priority)
    2. .env file in current directory
    3. Default values (lowest priority)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_prefix="KEG_",  # All keg env vars must start with KEG_
    )

    # Install locations
    prefix: Path = Field(
        default=Path.home() / ".keg",
        description="Root directory for installed kegs and links (env: KEG_PREFIX)",
    )

    cache_dir: Path | None = Field(
        default=None,
        description="Download cache directory, defaults to <prefix>/cache (env: KEG_CACHE_DIR)",
    )

    formula_path: str = Field(
        default="",
        description="Extra formula directories separated by os.pathsep (env: KEG_FORMULA_PATH)",
    )

    # Logging Configuration
    log_level: str = Field(
        default="WARNING",
        description="Logging level (DEBUG, INFO, WARNING, ERROR) (env: KEG_LOG_LEVEL)",
    )

    # Timeouts
    download_timeout: float = Field(
        default=60.0,
        description="Seconds to wait on the artifact server (env: KEG_DOWNLOAD_TIMEOUT)",
    )

    smoke_test_timeout: int = Field(
        default=30,
        description="Default seconds allowed for a smoke test (env: KEG_SMOKE_TEST_TIMEOUT)",
    )

    # Release checks
    github_api_url: str = Field(
        default="https://api.github.com",
        description="GitHub API base URL used by `keg outdated` (env: KEG_GITHUB_API_URL)",
    )

    @property
    def resolved_cache_dir(self) -> Path:
        return self.cache_dir or self.prefix / "cache"

    @property
    def formula_dirs(self) -> list[Path]:
        return [Path(p).expanduser() for p in self.formula_path.split(os.pathsep) if p]


# Global settings instance
_settings: KegSettings | None = None


def get_settings() -> KegSettings:
    """
    Get the global settings instance.

    Creates the settings instance on first call, then returns cached instance.

    Returns:
        KegSettings instance
    """
    global _settings
    if _settings is None:
        _settings = KegSettings()
    return _settings


def reload_settings() -> KegSettings:
    """
    Reload settings from environment/files.

    Useful for testing or when .env file changes.

    Returns:
        Fresh KegSettings instance
    """
    global _settings
    _settings = KegSettings()
    return _settings
