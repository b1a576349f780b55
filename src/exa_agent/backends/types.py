"""Type definitions for the backends module.

This module defines the core types shared by every backend:
- BackendType: closed set of supported backend identifiers
- ToolCallRequest: a tool call requested by the model
- Usage, BackendResponse: normalized result of one model call
- GenerationOptions: per-call generation parameters
- Error classes: hierarchy of backend errors (auth-fatal vs retryable)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class BackendType(str, Enum):
    """Supported model backends."""

    GROQ = "groq"
    OPENAI = "openai"
    AZURE = "azure"
    OPENROUTER = "openrouter"
    OLLAMA = "ollama"
    ANTHROPIC = "anthropic"

    @classmethod
    def from_str(cls, value: str) -> "BackendType | None":
        """Convert string to BackendType.

        Args:
            value: String representation (case-insensitive).

        Returns:
            BackendType or None if unknown.
        """
        value_lower = value.strip().lower()
        for backend in cls:
            if backend.value == value_lower:
                return backend
        return None


@dataclass(frozen=True)
class ToolCallRequest:
    """A tool invocation requested by the model.

    Attributes:
        id: Identifier, unique within the assistant turn that issued it.
        name: Name of the tool to call.
        raw_arguments: JSON-encoded arguments exactly as the model produced them.
    """

    id: str
    name: str
    raw_arguments: str = "{}"

    def to_openai(self) -> dict[str, Any]:
        """Render in the OpenAI ``tool_calls`` wire format."""
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.raw_arguments},
        }


@dataclass(frozen=True)
class Usage:
    """Token usage reported by a backend for one call."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    total_time: float | None = None


@dataclass
class BackendResponse:
    """Normalized result of one backend call.

    Attributes:
        text: Free-form text content (may be empty when tool calls are present).
        tool_calls: Requested tool calls, in the order the model returned them.
        usage: Token usage, when reported.
        finish_reason: Backend-specific stop reason.
        reasoning: Reasoning trace, for backends that expose one.
        raw: Raw response payload, for debugging.
    """

    text: str = ""
    tool_calls: list[ToolCallRequest] = field(default_factory=list)
    usage: Usage | None = None
    finish_reason: str | None = None
    reasoning: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)


@dataclass(frozen=True)
class GenerationOptions:
    """Generation parameters for one backend call."""

    model: str
    tools: list[dict[str, Any]] = field(default_factory=list)
    tool_choice: str = "auto"
    temperature: float = 1.0
    max_tokens: int = 8000


@dataclass(frozen=True)
class BackendConfig:
    """Configuration handed to ``BackendGateway.initialize``.

    Attributes:
        api_key: Credential, for backends that need one.
        endpoint: Base URL override (required for azure and ollama).
        deployment_name: Azure deployment name.
        api_version: Azure API version.
        model: Model identifier the backend will be used with.
        timeout_seconds: HTTP timeout for a single call.
    """

    api_key: str | None = None
    endpoint: str | None = None
    deployment_name: str | None = None
    api_version: str | None = None
    model: str | None = None
    timeout_seconds: float = 300.0


# Error hierarchy


class BackendError(Exception):
    """Base exception for all backend errors. Retryable unless a subclass says otherwise."""

    def __init__(self, message: str, *, backend: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.backend = backend
        self.status_code = status_code


class BackendAuthError(BackendError):
    """Raised when credentials are missing or rejected (401/403). Never retried."""

    pass


class BackendTimeout(BackendError):
    """Raised when a backend request times out."""

    pass


class BackendConnectionError(BackendError):
    """Raised when the backend cannot be reached."""

    pass


class BackendRateLimit(BackendError):
    """Raised when the backend returns a rate limit error (429)."""

    pass


class BackendServerError(BackendError):
    """Raised when the backend returns a server error (5xx)."""

    pass


class BackendInvalidResponse(BackendError):
    """Raised when the backend returns an invalid or unexpected response format."""

    pass


class BackendConfigError(BackendError):
    """Raised when ``initialize`` is given an invalid configuration."""

    pass


class BackendNotInitialized(BackendError):
    """Raised when ``send`` is called before a successful ``initialize``."""

    pass
