"""Tests for error message sanitization."""

from exa_agent.security import redact_secrets, sanitize_error_message


def test_redacts_vendor_keys_and_bearer_tokens() -> None:
    message = "Header Authorization: Bearer abc.def-123 rejected for key gsk_ABCDEFGH12345678"

    redacted = redact_secrets(message)

    assert "abc.def-123" not in redacted
    assert "gsk_ABCDEFGH12345678" not in redacted
    assert "Bearer [redacted]" in redacted
    assert "[redacted-key]" in redacted


def test_redacts_key_value_pairs() -> None:
    assert redact_secrets('{"api_key": "hunter2"}') == '{"api_key": "[redacted]"}'
    assert redact_secrets("token=abc123 failed") == "token=[redacted] failed"


def test_paths_removed_but_urls_kept() -> None:
    message = sanitize_error_message(
        "Failed to connect to https://api.groq.com/openai/v1/chat/completions reading /home/ada/.exa/local-settings.json"
    )

    assert "https://api.groq.com/openai/v1/chat/completions" in message
    assert "/home/ada" not in message
    assert "[path]" in message


def test_paths_kept_when_requested() -> None:
    assert sanitize_error_message("missing /etc/hosts", redact_paths=False) == "missing /etc/hosts"


def test_exception_without_message_uses_type_name() -> None:
    assert sanitize_error_message(TimeoutError()) == "TimeoutError"


def test_memory_addresses_removed() -> None:
    assert sanitize_error_message("<object at 0x7f3a2b1c9d40>") == "<object at [address]>"
