"""Security utilities for preventing credential and path disclosure."""

import re

_SECRET_PATTERNS = [
    # Bearer tokens in echoed headers
    (re.compile(r"(?i)bearer\s+[A-Za-z0-9._\-]+"), "Bearer [redacted]"),
    # Vendor key shapes: gsk_..., sk-..., sk-ant-..., sk-or-...
    (re.compile(r"\b(?:gsk|sk|sk-ant|sk-or|sk-proj)[-_][A-Za-z0-9_\-]{8,}"), "[redacted-key]"),
    # key=value and "api_key": "value" forms
    (
        re.compile(r"(?i)((?:api[-_]?key|token|secret|password)[\"']?\s*[:=]\s*[\"']?)[^\s\"',}]+"),
        r"\1[redacted]",
    ),
]

_PATH_PATTERN = re.compile(r"(?<![\w:/])/(?:[\w.\-]+/)+[\w.\-]*")
_ADDRESS_PATTERN = re.compile(r"0x[0-9a-fA-F]{6,}")


def redact_secrets(text: str) -> str:
    """Replace API keys and bearer tokens in ``text`` with placeholders."""
    for pattern, replacement in _SECRET_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def sanitize_error_message(error: Exception | str, *, redact_paths: bool = True) -> str:
    """Create an error message safe to show in the UI and to echo into the log.

    Unlike a generic "something went wrong", the message keeps its meaning so the
    user (and the model) can react to it. Only credentials, absolute paths and
    memory addresses are removed. URLs are kept because they identify which
    endpoint failed.

    Args:
        error: The exception (or message) that occurred.
        redact_paths: Whether to replace absolute filesystem paths.

    Returns:
        The sanitized message.
    """
    message = str(error) if isinstance(error, str) else (str(error) or type(error).__name__)

    message = redact_secrets(message)
    if redact_paths:
        message = _PATH_PATTERN.sub("[path]", message)
    message = _ADDRESS_PATTERN.sub("[address]", message)
    return message
