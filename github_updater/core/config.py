"""
Configuration management

Centralized settings using Pydantic BaseSettings for type-safe configuration
with environment variable support (GITHUB_UPDATER_ prefix, optional .env file).

Repository identifiers are validated when the settings object is built and
again on every assignment, so a bad owner or repository name fails immediately
instead of surfacing later as a failed release lookup.
"""

import logging
import re
from pathlib import Path

from pydantic import SecretStr, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from github_updater.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# GitHub allows alphanumerics, hyphen, underscore and dot in repository names
VALID_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_.-]{1,100}$")
RESERVED_REPO_NAMES = {".", ".."}

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class UpdaterSettings(BaseSettings):
    """
    Updater settings with environment variable support

    Settings can be overridden via environment variables:
    - GITHUB_UPDATER_GITHUB_OWNER=my-org
    - GITHUB_UPDATER_GITHUB_REPO=my-app
    - GITHUB_UPDATER_GITHUB_TOKEN=ghp_...
    - GITHUB_UPDATER_INCLUDE_PRERELEASES=true
    - GITHUB_UPDATER_LOG_LEVEL=DEBUG
    """

    # Release source
    github_owner: str
    github_repo: str
    github_token: SecretStr | None = None
    api_url: str = "https://api.github.com"
    include_prereleases: bool = False

    # Network
    request_timeout: float = 10.0
    download_timeout: float = 300.0

    # Host application
    app_name: str = "github-updater"
    current_version: str | None = None  # Defaults to the package version
    data_dir: Path | None = None
    target_executable: Path | None = None

    # Logging (the CLI passes it to setup_logging)
    log_level: str = "WARNING"

    model_config = SettingsConfigDict(
        env_prefix="GITHUB_UPDATER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_assignment=True,
    )

    @field_validator("github_owner", "github_repo")
    @classmethod
    def validate_repository_identifier(cls, v: str, info: ValidationInfo) -> str:
        """Reject blank or malformed owner/repository names"""
        # ConfigurationError is not a ValueError, so pydantic lets it propagate as-is
        if not v.strip():
            raise ConfigurationError(f"The {info.field_name} can't be empty or whitespace")
        if not VALID_NAME_PATTERN.match(v):
            raise ConfigurationError(f"Invalid {info.field_name}: {v!r}")
        if info.field_name == "github_repo" and v in RESERVED_REPO_NAMES:
            raise ConfigurationError(f"Invalid github_repo: {v!r}")
        return v

    @field_validator("app_name")
    @classmethod
    def validate_app_name(cls, v: str) -> str:
        """App name becomes a directory name"""
        if not v.strip() or "/" in v or "\\" in v:
            raise ConfigurationError(f"Invalid app_name: {v!r}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Accept standard level names in any case"""
        level = v.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ConfigurationError(
                f"Invalid log_level: {v!r}",
                recovery_hint="Use DEBUG, INFO, WARNING, ERROR or CRITICAL",
            )
        return level

    @property
    def token(self) -> str | None:
        """Plain token value, if configured"""
        if self.github_token is None:
            return None
        return self.github_token.get_secret_value() or None


# Singleton pattern for settings
_settings: UpdaterSettings | None = None


def get_settings() -> UpdaterSettings:
    """
    Get updater settings (singleton), read from the environment

    Returns:
        UpdaterSettings instance
    """
    global _settings
    if _settings is None:
        _settings = UpdaterSettings()
    return _settings


def setup_logging(level: str = "INFO") -> None:
    """
    Configure root logging with the package log format

    Args:
        level: Log level name (DEBUG, INFO, ...)
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )
    logger.debug(f"Logging configured at {level.upper()}")
