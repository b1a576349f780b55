"""Backends that speak the OpenAI chat/completions protocol over httpx.

One class serves groq, openai, azure, openrouter and ollama. The differences
between them (base URL, auth header, required config, endpoint quirks) are
data in :data:`PROFILES`, not subclasses.
"""

import re
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

import httpx

from exa_agent.backends.adapters import (
    adapt_chat_completions_response,
    build_chat_completions_request,
)
from exa_agent.backends.base import BaseBackend
from exa_agent.backends.errors import map_http_error
from exa_agent.backends.types import (
    BackendConfig,
    BackendConnectionError,
    BackendError,
    BackendInvalidResponse,
    BackendResponse,
    BackendType,
    GenerationOptions,
)
from exa_agent.telemetry import get_logger
from exa_agent.telemetry.events import BACKEND_CALL_COMPLETED, BACKEND_CALL_ERROR

if TYPE_CHECKING:
    from exa_agent.orchestrator.types import Turn

log = get_logger(__name__)

DEFAULT_AZURE_API_VERSION = "2024-10-21"

# Ollama models known to accept the tools parameter; others get tools stripped
OLLAMA_TOOL_MODELS = frozenset({"gpt-oss:20b", "gpt-oss:120b"})


@dataclass(frozen=True)
class BackendProfile:
    """Static description of one chat/completions-compatible service."""

    backend_type: BackendType
    display_name: str
    base_url: str | None
    required_fields: tuple[str, ...] = ("api_key",)
    extra_headers: dict[str, str] = field(default_factory=dict)


PROFILES: dict[BackendType, BackendProfile] = {
    BackendType.GROQ: BackendProfile(
        BackendType.GROQ, "Groq Cloud", "https://api.groq.com/openai/v1"
    ),
    BackendType.OPENAI: BackendProfile(
        BackendType.OPENAI, "OpenAI API", "https://api.openai.com/v1"
    ),
    BackendType.OPENROUTER: BackendProfile(
        BackendType.OPENROUTER,
        "OpenRouter API",
        "https://openrouter.ai/api/v1",
        extra_headers={"X-Title": "exa-agent"},
    ),
    BackendType.AZURE: BackendProfile(
        BackendType.AZURE,
        "Azure OpenAI Service",
        None,
        required_fields=("api_key", "endpoint", "deployment_name"),
    ),
    BackendType.OLLAMA: BackendProfile(
        BackendType.OLLAMA, "Ollama Local", None, required_fields=("endpoint",)
    ),
}


def normalize_ollama_endpoint(endpoint: str) -> str:
    """Fix scheme typos, add a missing scheme and force the ``/v1`` suffix.

    Args:
        endpoint: User-supplied endpoint, e.g. ``htpp://localhost:11434``.

    Returns:
        Normalized endpoint, e.g. ``http://localhost:11434/v1``.

    Raises:
        ValueError: If the result is not a valid URL.
    """
    normalized = endpoint.strip()
    normalized = re.sub(r"^(htpp|httpp|htp)://", "http://", normalized)
    if not normalized.startswith(("http://", "https://")):
        normalized = "http://" + normalized
    if not normalized.endswith("/v1"):
        normalized = normalized.rstrip("/") + "/v1"

    parsed = urlparse(normalized)
    if not parsed.netloc:
        raise ValueError(f"Invalid endpoint URL after normalization: {normalized}")
    return normalized


class OpenAICompatibleBackend(BaseBackend):
    """Chat/completions backend parameterized by a :class:`BackendProfile`.

    Attributes:
        profile: Service description (URL, headers, required config).
        endpoint: Resolved chat/completions URL, set by ``initialize``.
    """

    def __init__(self, profile: BackendProfile) -> None:
        super().__init__()
        self.profile = profile
        self.backend_type = profile.backend_type
        self.display_name = profile.display_name
        self.endpoint: str | None = None

    def required_config_fields(self) -> list[str]:
        return list(self.profile.required_fields)

    def validate_config(self, config: BackendConfig) -> list[str]:
        errors = super().validate_config(config)
        if config.endpoint and self.backend_type is BackendType.OLLAMA:
            try:
                normalize_ollama_endpoint(config.endpoint)
            except ValueError as e:
                errors.append(str(e))
        elif config.endpoint and self.backend_type is BackendType.AZURE:
            parsed = urlparse(config.endpoint)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                errors.append("Invalid endpoint URL format")
        return errors

    async def initialize(self, config: BackendConfig) -> None:
        """Validate config and resolve the request URL."""
        await super().initialize(config)
        self.endpoint = self._resolve_endpoint(config)
        log.debug("backend_endpoint_resolved", backend=self.name, endpoint=self.endpoint)

    def _resolve_endpoint(self, config: BackendConfig) -> str:
        if self.backend_type is BackendType.AZURE:
            base = (config.endpoint or "").rstrip("/")
            version = config.api_version or DEFAULT_AZURE_API_VERSION
            return (
                f"{base}/openai/deployments/{config.deployment_name}"
                f"/chat/completions?api-version={version}"
            )
        if self.backend_type is BackendType.OLLAMA:
            base = normalize_ollama_endpoint(config.endpoint or "")
            if base != config.endpoint:
                log.info(
                    "ollama_endpoint_corrected", original=config.endpoint, corrected=base
                )
            return f"{base}/chat/completions"
        base = (config.endpoint or self.profile.base_url or "").rstrip("/")
        return f"{base}/chat/completions"

    def _headers(self, config: BackendConfig) -> dict[str, str]:
        headers = {"Content-Type": "application/json", **self.profile.extra_headers}
        if self.backend_type is BackendType.AZURE:
            headers["api-key"] = config.api_key or ""
        elif config.api_key:
            headers["Authorization"] = f"Bearer {config.api_key}"
        return headers

    def supports_tools(self, model: str) -> bool:
        if self.backend_type is BackendType.OLLAMA:
            return model in OLLAMA_TOOL_MODELS
        return True

    async def send(
        self, turns: Sequence["Turn"], options: GenerationOptions
    ) -> BackendResponse:
        """Run one chat/completions call.

        Args:
            turns: Full conversation log.
            options: Generation options.

        Returns:
            Normalized BackendResponse.

        Raises:
            BackendError: Typed per ``exa_agent.backends.errors.map_http_error``.
        """
        config = self._require_config()
        endpoint = self.endpoint or self._resolve_endpoint(config)
        self.request_count += 1

        payload = build_chat_completions_request(
            turns,
            options,
            model=config.deployment_name if self.backend_type is BackendType.AZURE else None,
            include_tools=self.supports_tools(options.model),
        )

        timeout_config = httpx.Timeout(
            connect=10.0,
            read=config.timeout_seconds,
            write=10.0,
            pool=10.0,
        )
        start_time = time.monotonic()
        try:
            async with httpx.AsyncClient(timeout=timeout_config) as client:
                response = await client.post(endpoint, json=payload, headers=self._headers(config))
                response.raise_for_status()
                data: Any = response.json()
        except httpx.HTTPError as e:
            error = self._with_hint(map_http_error(e, backend=self.name, endpoint=endpoint))
            log.warning(
                BACKEND_CALL_ERROR,
                backend=self.name,
                model=options.model,
                error_type=type(error).__name__,
                status_code=error.status_code,
            )
            raise error from e
        except ValueError as e:
            raise BackendInvalidResponse(
                f"Response from {self.name} was not valid JSON: {e}", backend=self.name
            ) from e

        if not isinstance(data, dict):
            raise BackendInvalidResponse(
                f"Unexpected response type from {self.name}: {type(data).__name__}",
                backend=self.name,
            )
        # Some servers return 200 with an error object
        if data.get("error"):
            error_obj = data["error"]
            message = (
                error_obj.get("message", str(error_obj))
                if isinstance(error_obj, dict)
                else str(error_obj)
            )
            raise BackendError(f"API returned error: {message}", backend=self.name)

        result = adapt_chat_completions_response(data)
        log.debug(
            BACKEND_CALL_COMPLETED,
            backend=self.name,
            model=options.model,
            latency_ms=int((time.monotonic() - start_time) * 1000),
            tool_calls=len(result.tool_calls),
            finish_reason=result.finish_reason,
        )
        return result

    def _with_hint(self, error: BackendError) -> BackendError:
        """Append backend-specific guidance for common misconfigurations."""
        hint = None
        if self.backend_type is BackendType.OLLAMA and isinstance(error, BackendConnectionError):
            endpoint = self.config.endpoint if self.config else None
            hint = f"Cannot connect to Ollama server. Please check that Ollama is running at {endpoint}"
        elif error.status_code == 404 and self.backend_type is BackendType.OLLAMA:
            hint = "Please check that Ollama is running and the endpoint URL is correct."
        elif error.status_code == 404 and self.backend_type is BackendType.AZURE:
            deployment = self.config.deployment_name if self.config else None
            hint = f'Please check your deployment name "{deployment}" exists in your Azure OpenAI resource.'
        elif error.status_code == 402 and self.backend_type is BackendType.OPENROUTER:
            hint = "Please check your OpenRouter account balance and add credits."
        if hint is None:
            return error
        return type(error)(f"{error}. {hint}", backend=error.backend, status_code=error.status_code)
