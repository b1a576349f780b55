"""Backend error classification.

The orchestrator needs one decision per failed call: is this error
authentication-fatal (never retried, surfaced with re-login guidance) or
retryable (offered to the user via ``on_error``)? Typed errors from the
backends answer that directly. Untyped errors from third-party code are
classified by message, matching the phrases vendor SDKs use for bad keys.
"""

from enum import Enum

import httpx

from exa_agent.backends.types import (
    BackendAuthError,
    BackendConnectionError,
    BackendError,
    BackendRateLimit,
    BackendServerError,
    BackendTimeout,
)

_AUTH_MARKERS = ("401", "invalid api key", "authentication")


class ErrorClass(str, Enum):
    """How the run loop reacts to a backend error."""

    AUTH_FATAL = "auth_fatal"
    RETRYABLE = "retryable"


def login_guidance(backend: str | None) -> str:
    """Re-authentication hint appended to auth-fatal messages."""
    if backend:
        return f"Please check your {backend} API key and use /login {backend} to set a valid key."
    return "Please check your API key and use /login to set a valid key."


def is_auth_error(exc: BaseException) -> bool:
    """Return True if ``exc`` means the credentials are missing or rejected.

    Args:
        exc: Exception raised by a backend call.

    Returns:
        True for BackendAuthError, HTTP 401/403, or auth phrases in the message.
    """
    if isinstance(exc, BackendAuthError):
        return True
    if isinstance(exc, BackendError) and exc.status_code in (401, 403):
        return True
    if isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code in (401, 403):
        return True
    if isinstance(exc, BackendError) and type(exc) is not BackendError:
        # Typed non-auth errors (rate limit, timeout ...) are never reclassified
        return False
    message = str(exc).lower()
    return any(marker in message for marker in _AUTH_MARKERS)


def classify_backend_error(exc: BaseException) -> ErrorClass:
    """Classify a backend failure as auth-fatal or retryable."""
    return ErrorClass.AUTH_FATAL if is_auth_error(exc) else ErrorClass.RETRYABLE


def map_http_error(exc: Exception, *, backend: str, endpoint: str) -> BackendError:
    """Translate an httpx exception into the backend error hierarchy.

    Args:
        exc: Exception raised by httpx.
        backend: Backend name, used in messages and auth guidance.
        endpoint: URL that was called.

    Returns:
        The matching BackendError subclass instance.
    """
    if isinstance(exc, httpx.TimeoutException):
        return BackendTimeout(f"Request to {endpoint} timed out", backend=backend)
    if isinstance(exc, httpx.ConnectError):
        return BackendConnectionError(f"Failed to connect to {endpoint}: {exc}", backend=backend)
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        detail = _error_detail(exc.response)
        message = f"API Error ({status}): {detail}"
        if status in (401, 403):
            return BackendAuthError(
                f"{message}. {login_guidance(backend)}", backend=backend, status_code=status
            )
        if status == 429:
            return BackendRateLimit(
                f"Rate limit exceeded: {detail}", backend=backend, status_code=status
            )
        if status >= 500:
            return BackendServerError(
                f"Server error {status}: {detail}", backend=backend, status_code=status
            )
        return BackendError(message, backend=backend, status_code=status)
    if isinstance(exc, httpx.RequestError):
        return BackendConnectionError(f"Request error: {exc}", backend=backend)
    return BackendError(f"Error: {exc}", backend=backend)


def _error_detail(response: httpx.Response) -> str:
    """Extract the vendor error message from an error response body."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:500] or response.reason_phrase
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        message = str(error.get("message", error))
        code = error.get("code")
        return f"{message} (Code: {code})" if code else message
    if error:
        return str(error)
    return str(body)[:500]
