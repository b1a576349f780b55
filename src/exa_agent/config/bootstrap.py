"""Bootstrap configuration helpers (pre-settings).

These helpers exist for "chicken-and-egg" situations where we need a small amount
of configuration before the full Pydantic settings singleton can be imported.

Constraints:
- Keep this module dependency-light (no telemetry imports) to avoid circular imports.
- Prefer validating values using existing config validators.
"""

from __future__ import annotations

import os
from pathlib import Path

from exa_agent.config.validators import resolve_path, validate_log_level

DEFAULT_CONFIG_DIR = Path("~/.exa")


def get_bootstrap_log_level(default: str = "WARNING") -> str:
    """Get console logging level from environment without importing settings.

    Args:
        default: Default log level if not set or invalid.

    Returns:
        Uppercased, validated log level string.
    """
    value = os.getenv("EXA_LOG_LEVEL", default)
    try:
        return validate_log_level(value)
    except ValueError:
        return validate_log_level(default)


def get_bootstrap_config_dir() -> Path:
    """Get the user configuration directory (``EXA_CONFIG_DIR`` or ``~/.exa``)."""
    return resolve_path(os.getenv("EXA_CONFIG_DIR") or DEFAULT_CONFIG_DIR)


def get_bootstrap_log_dir() -> Path:
    """Get the log directory (``EXA_LOG_DIR`` or ``<config dir>/logs``)."""
    value = os.getenv("EXA_LOG_DIR")
    if value:
        return resolve_path(value)
    return get_bootstrap_config_dir() / "logs"
