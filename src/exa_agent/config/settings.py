"""Application configuration settings.

This module provides the AppConfig class and settings singleton.
"""

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import structlog

from exa_agent.config.env_loader import Environment, get_environment, load_env_files
from exa_agent.config.validators import resolve_path, validate_backend_name, validate_log_level

log = structlog.get_logger(__name__)


class AppConfig(BaseSettings):
    """Unified application configuration.

    Loads configuration from environment variables (``EXA_`` prefix), ``.env``
    files and defaults. Credentials live in :mod:`exa_agent.config.local_settings`,
    not here.
    """

    model_config = SettingsConfigDict(
        # .env files are loaded manually via env_loader to support priority order
        env_prefix="EXA_",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    environment: Environment = Field(
        default_factory=get_environment, description="Current environment"
    )
    debug: bool = Field(default=False, description="Debug mode flag")

    # Telemetry
    log_level: str = Field(
        default="WARNING",
        description="Console logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    log_dir: Path = Field(default=Path("~/.exa/logs"), description="JSON log directory")
    config_dir: Path = Field(
        default=Path("~/.exa"), description="User configuration directory (local settings)"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        return validate_log_level(v)

    @field_validator("log_dir", "config_dir", mode="before")
    @classmethod
    def resolve_paths(cls, v: Path | str) -> Path:
        """Expand user and resolve paths to absolute."""
        return resolve_path(v)

    # Orchestrator
    max_iterations: int = Field(
        default=50, ge=1, description="Backend calls per run before asking whether to continue"
    )
    max_tokens: int = Field(default=8000, ge=1, description="Maximum tokens per completion")
    temperature: float = Field(default=1.0, ge=0.0, le=2.0, description="Sampling temperature")
    approval_timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Seconds to wait for a tool approval before treating it as a rejection "
        "(None waits indefinitely)",
    )

    # Backends
    default_backend: str = Field(default="groq", description="Backend used when none is chosen")
    fallback_backend: str = Field(
        default="groq", description="Backend used when the configured one fails to initialize"
    )
    request_timeout_seconds: float = Field(
        default=300.0, gt=0, description="HTTP timeout for backend requests"
    )

    @field_validator("default_backend", "fallback_backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        """Validate backend identifiers."""
        return validate_backend_name(v)

    # Project context
    context_file: Path | None = Field(
        default=None, description="Explicit project context file (overrides context_dir)"
    )
    context_dir: Path | None = Field(
        default=None, description="Directory whose .exa/context.md is loaded (defaults to cwd)"
    )
    context_limit: int = Field(
        default=20000, ge=0, description="Maximum characters of project context to load"
    )

    # Tools
    command_timeout_seconds: float = Field(
        default=120.0, gt=0, description="Default timeout for execute_command"
    )
    web_fetch_timeout_seconds: float = Field(
        default=30.0, gt=0, description="Default timeout for web_fetch"
    )
    tool_policy_path: Path | None = Field(
        default=None, description="Optional YAML file overriding tool approval classes"
    )

    # MCP
    mcp_enabled: bool = Field(default=True, description="Connect configured MCP servers")
    mcp_timeout_seconds: float = Field(
        default=60.0, ge=1, le=300, description="Timeout for MCP operations (seconds)"
    )

    @property
    def local_settings_path(self) -> Path:
        """Path of the user credential and preference file."""
        return self.config_dir / "local-settings.json"


_settings: AppConfig | None = None


def load_app_config() -> AppConfig:
    """Load and validate application configuration.

    This function:
    1. Loads .env files in priority order (via env_loader)
    2. Creates AppConfig instance (reads from environment variables)
    3. Validates all values using Pydantic

    Returns:
        Validated AppConfig instance.

    Raises:
        ValidationError: If configuration validation fails.
    """
    load_env_files()

    try:
        config = AppConfig()
        log.info(
            "app_config_loaded",
            environment=config.environment.value,
            debug=config.debug,
            default_backend=config.default_backend,
            max_iterations=config.max_iterations,
        )
        return config
    except Exception as e:
        log.error("app_config_load_failed", error=str(e), error_type=type(e).__name__)
        raise


def get_settings() -> AppConfig:
    """Get the application settings singleton.

    Returns:
        AppConfig instance (singleton pattern).
    """
    global _settings
    if _settings is None:
        _settings = load_app_config()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next get_settings() reloads them."""
    global _settings
    _settings = None
