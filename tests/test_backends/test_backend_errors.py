"""Tests for backend error classification."""

import httpx
import pytest

from exa_agent.backends import (
    BackendAuthError,
    BackendError,
    BackendRateLimit,
    BackendTimeout,
    ErrorClass,
    classify_backend_error,
    is_auth_error,
    login_guidance,
)
from exa_agent.backends.errors import map_http_error

REQUEST = httpx.Request("POST", "https://api.example.com/v1/chat/completions")


def _status_error(status: int, **kwargs) -> httpx.HTTPStatusError:
    response = httpx.Response(status, request=REQUEST, **kwargs)
    return httpx.HTTPStatusError("error", request=REQUEST, response=response)


def test_login_guidance() -> None:
    assert login_guidance("groq") == "Please check your groq API key and use /login groq to set a valid key."
    assert login_guidance(None) == "Please check your API key and use /login to set a valid key."


@pytest.mark.parametrize(
    "exc",
    [
        BackendAuthError("bad key"),
        BackendError("forbidden", status_code=403),
        _status_error(401),
        RuntimeError("Error code: 401 - unauthorized"),
        ValueError("Invalid API Key provided"),
        Exception("Authentication failed"),
    ],
)
def test_auth_errors(exc) -> None:
    assert is_auth_error(exc)
    assert classify_backend_error(exc) == ErrorClass.AUTH_FATAL


@pytest.mark.parametrize(
    "exc",
    [
        BackendRateLimit("Rate limit exceeded: authentication tokens per minute"),
        BackendTimeout("timed out"),
        RuntimeError("connection reset"),
        _status_error(500),
    ],
)
def test_retryable_errors(exc) -> None:
    assert classify_backend_error(exc) == ErrorClass.RETRYABLE


def test_map_http_error() -> None:
    timeout = map_http_error(httpx.ReadTimeout("slow", request=REQUEST), backend="groq", endpoint="u")
    assert isinstance(timeout, BackendTimeout)
    assert str(timeout) == "Request to u timed out"

    auth = map_http_error(
        _status_error(401, json={"error": {"message": "Invalid API Key"}}), backend="openai", endpoint="u"
    )
    assert isinstance(auth, BackendAuthError)
    assert str(auth) == (
        "API Error (401): Invalid API Key. "
        "Please check your openai API key and use /login openai to set a valid key."
    )

    generic = map_http_error(RuntimeError("weird"), backend="groq", endpoint="u")
    assert type(generic) is BackendError
    assert str(generic) == "Error: weird"
