"""Tests for OpenAICompatibleBackend against a stubbed HTTP transport."""

import json

import httpx
import pytest

from exa_agent.backends import (
    BackendAuthError,
    BackendConfig,
    BackendConfigError,
    BackendConnectionError,
    BackendError,
    BackendInvalidResponse,
    BackendNotInitialized,
    BackendRateLimit,
    BackendServerError,
    BackendType,
    GenerationOptions,
)
from exa_agent.backends.openai_compat import PROFILES, OpenAICompatibleBackend, normalize_ollama_endpoint
from exa_agent.orchestrator.types import Turn

GROQ_URL = "https://api.groq.com/openai/v1/chat/completions"
OLLAMA_URL = "http://localhost:11434/v1/chat/completions"
AZURE_URL = "https://res.openai.azure.com/openai/deployments/prod-gpt5/chat/completions"
TURNS = [Turn.system("sys"), Turn.user("hi")]
TOOLS = [{"type": "function", "function": {"name": "read_file", "parameters": {"type": "object"}}}]

OK_BODY = {
    "choices": [{"message": {"role": "assistant", "content": "hello"}, "finish_reason": "stop"}],
    "usage": {"prompt_tokens": 3, "completion_tokens": 1, "total_tokens": 4},
}


async def _backend(backend_type: BackendType, **config) -> OpenAICompatibleBackend:
    backend = OpenAICompatibleBackend(PROFILES[backend_type])
    await backend.initialize(BackendConfig(**config))
    return backend


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("localhost:11434", "http://localhost:11434/v1"),
        ("htpp://localhost:11434/", "http://localhost:11434/v1"),
        ("https://ollama.example.com/v1", "https://ollama.example.com/v1"),
    ],
)
def test_normalize_ollama_endpoint(raw, expected) -> None:
    assert normalize_ollama_endpoint(raw) == expected


@pytest.mark.asyncio
async def test_initialize_requires_fields() -> None:
    backend = OpenAICompatibleBackend(PROFILES[BackendType.AZURE])

    with pytest.raises(BackendConfigError) as exc_info:
        await backend.initialize(BackendConfig(api_key="k"))

    message = str(exc_info.value)
    assert "endpoint is required" in message
    assert "deployment name is required" in message
    assert backend.is_configured() is False


@pytest.mark.asyncio
async def test_send_before_initialize() -> None:
    backend = OpenAICompatibleBackend(PROFILES[BackendType.GROQ])
    with pytest.raises(BackendNotInitialized):
        await backend.send(TURNS, GenerationOptions(model="m"))


@pytest.mark.asyncio
async def test_groq_send(http_stub) -> None:
    http_stub.add(GROQ_URL, json=OK_BODY)
    backend = await _backend(BackendType.GROQ, api_key="gsk-test")

    response = await backend.send(TURNS, GenerationOptions(model="openai/gpt-oss-20b", tools=TOOLS))

    assert response.text == "hello"
    assert response.usage.total_tokens == 4
    assert http_stub.last.headers["authorization"] == "Bearer gsk-test"
    body = json.loads(http_stub.last.content)
    assert body["model"] == "openai/gpt-oss-20b"
    assert body["tools"] == TOOLS
    assert backend.request_count == 1


@pytest.mark.asyncio
async def test_azure_url_and_header(http_stub) -> None:
    http_stub.add(AZURE_URL, json=OK_BODY)
    backend = await _backend(
        BackendType.AZURE, api_key="az-key", endpoint="https://res.openai.azure.com/", deployment_name="prod-gpt5"
    )

    await backend.send(TURNS, GenerationOptions(model="gpt-5"))

    request = http_stub.last
    assert request.url.params["api-version"] == "2024-10-21"
    assert request.headers["api-key"] == "az-key"
    assert "authorization" not in request.headers
    assert json.loads(request.content)["model"] == "prod-gpt5"


@pytest.mark.asyncio
async def test_ollama_strips_tools_for_unsupported_models(http_stub) -> None:
    http_stub.add(OLLAMA_URL, json=OK_BODY)
    backend = await _backend(BackendType.OLLAMA, endpoint="localhost:11434")

    await backend.send(TURNS, GenerationOptions(model="gemma3:270m", tools=TOOLS))
    assert "tools" not in json.loads(http_stub.last.content)

    await backend.send(TURNS, GenerationOptions(model="gpt-oss:20b", tools=TOOLS))
    assert json.loads(http_stub.last.content)["tools"] == TOOLS


@pytest.mark.asyncio
async def test_openrouter_title_header(http_stub) -> None:
    http_stub.add("https://openrouter.ai/api/v1/chat/completions", json=OK_BODY)
    backend = await _backend(BackendType.OPENROUTER, api_key="or-key")

    await backend.send(TURNS, GenerationOptions(model="openai/gpt-oss-120b"))

    assert http_stub.last.headers["x-title"] == "exa-agent"


@pytest.mark.asyncio
async def test_auth_error_carries_login_guidance(http_stub) -> None:
    http_stub.add(GROQ_URL, 401, json={"error": {"message": "Invalid API Key", "code": "invalid_api_key"}})
    backend = await _backend(BackendType.GROQ, api_key="bad")

    with pytest.raises(BackendAuthError) as exc_info:
        await backend.send(TURNS, GenerationOptions(model="m"))

    message = str(exc_info.value)
    assert message.startswith("API Error (401): Invalid API Key (Code: invalid_api_key)")
    assert "/login groq" in message
    assert exc_info.value.status_code == 401


@pytest.mark.asyncio
async def test_status_errors_typed(http_stub) -> None:
    backend = await _backend(BackendType.GROQ, api_key="k")
    options = GenerationOptions(model="m")

    http_stub.add(GROQ_URL, 429, json={"error": {"message": "slow down"}})
    with pytest.raises(BackendRateLimit, match="Rate limit exceeded: slow down"):
        await backend.send(TURNS, options)

    http_stub.add(GROQ_URL, 503, text="unavailable")
    with pytest.raises(BackendServerError, match="Server error 503: unavailable"):
        await backend.send(TURNS, options)

    http_stub.add(GROQ_URL, 400, json={"error": "bad request"})
    with pytest.raises(BackendError, match=r"API Error \(400\): bad request"):
        await backend.send(TURNS, options)


@pytest.mark.asyncio
async def test_error_object_in_ok_response(http_stub) -> None:
    http_stub.add(GROQ_URL, json={"error": {"message": "model overloaded"}})
    backend = await _backend(BackendType.GROQ, api_key="k")

    with pytest.raises(BackendError, match="API returned error: model overloaded"):
        await backend.send(TURNS, GenerationOptions(model="m"))


@pytest.mark.asyncio
async def test_invalid_json(http_stub) -> None:
    http_stub.add(GROQ_URL, text="<html>")
    backend = await _backend(BackendType.GROQ, api_key="k")

    with pytest.raises(BackendInvalidResponse, match="not valid JSON"):
        await backend.send(TURNS, GenerationOptions(model="m"))


@pytest.mark.asyncio
async def test_ollama_connection_hint(http_stub) -> None:
    http_stub.fail(OLLAMA_URL, httpx.ConnectError("refused"))
    backend = await _backend(BackendType.OLLAMA, endpoint="http://localhost:11434")

    with pytest.raises(BackendConnectionError, match="Please check that Ollama is running at http://localhost:11434"):
        await backend.send(TURNS, GenerationOptions(model="gemma3:270m"))


@pytest.mark.asyncio
async def test_azure_404_hint(http_stub) -> None:
    http_stub.add(
        "https://res.openai.azure.com/openai/deployments/missing/chat/completions", 404, text="nope"
    )
    backend = await _backend(
        BackendType.AZURE, api_key="k", endpoint="https://res.openai.azure.com", deployment_name="missing"
    )

    with pytest.raises(BackendError, match='deployment name "missing" exists'):
        await backend.send(TURNS, GenerationOptions(model="gpt-5"))
