"""Custom Pydantic validators for configuration.

This module provides validators for cross-field validation and
custom type conversions.
"""

from pathlib import Path

VALID_BACKENDS = frozenset({"groq", "openai", "azure", "openrouter", "ollama", "anthropic"})


def validate_log_level(value: str) -> str:
    """Validate log level is one of the standard levels.

    Args:
        value: Log level string.

    Returns:
        Validated log level.

    Raises:
        ValueError: If log level is not valid.
    """
    valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
    if value.upper() not in valid_levels:
        raise ValueError(f"log_level must be one of {valid_levels}, got {value}")
    return value.upper()


def validate_backend_name(value: str) -> str:
    """Validate a backend identifier.

    Args:
        value: Backend name (case-insensitive).

    Returns:
        Lower-cased backend name.

    Raises:
        ValueError: If the backend is not one of the supported backends.
    """
    normalized = value.strip().lower()
    if normalized not in VALID_BACKENDS:
        raise ValueError(f"backend must be one of {sorted(VALID_BACKENDS)}, got {value}")
    return normalized


def resolve_path(value: Path | str) -> Path:
    """Expand ``~`` and resolve relative paths against the working directory.

    Args:
        value: Path value (can be string or Path).

    Returns:
        Resolved Path object.
    """
    if isinstance(value, str):
        path = Path(value)
    else:
        path = value

    return path.expanduser().resolve()
