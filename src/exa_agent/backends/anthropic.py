"""Anthropic Messages API backend (anthropic SDK).

Conversation turns are translated to the Messages format:
- system turns are joined into the ``system`` parameter
- assistant tool calls become ``tool_use`` blocks
- tool turns become ``tool_result`` blocks in a user message, with
  consecutive results merged into one message as the API requires
"""

import json
import time
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

import anthropic
from anthropic import AsyncAnthropic

from exa_agent.backends.base import BaseBackend
from exa_agent.backends.errors import login_guidance
from exa_agent.backends.types import (
    BackendAuthError,
    BackendConfig,
    BackendConnectionError,
    BackendError,
    BackendInvalidResponse,
    BackendRateLimit,
    BackendResponse,
    BackendServerError,
    BackendTimeout,
    BackendType,
    GenerationOptions,
    ToolCallRequest,
    Usage,
)
from exa_agent.telemetry import get_logger
from exa_agent.telemetry.events import BACKEND_CALL_COMPLETED, BACKEND_CALL_ERROR

if TYPE_CHECKING:
    from exa_agent.orchestrator.types import Turn

log = get_logger(__name__)


def convert_turns(turns: Sequence["Turn"]) -> tuple[str, list[dict[str, Any]]]:
    """Split turns into a system prompt and Messages API messages.

    Args:
        turns: Conversation log, oldest first.

    Returns:
        Tuple of (system prompt, messages).
    """
    system_parts: list[str] = []
    messages: list[dict[str, Any]] = []

    for turn in turns:
        if turn.role == "system":
            system_parts.append(turn.content)
            continue

        if turn.role == "tool":
            block = {
                "type": "tool_result",
                "tool_use_id": turn.tool_call_id,
                "content": turn.content,
            }
            previous = messages[-1] if messages else None
            if (
                previous is not None
                and previous["role"] == "user"
                and isinstance(previous["content"], list)
                and all(b.get("type") == "tool_result" for b in previous["content"])
            ):
                previous["content"].append(block)
            else:
                messages.append({"role": "user", "content": [block]})
            continue

        if turn.role == "assistant" and turn.tool_calls:
            content: list[dict[str, Any]] = []
            if turn.content:
                content.append({"type": "text", "text": turn.content})
            for tc in turn.tool_calls:
                try:
                    tool_input = json.loads(tc.raw_arguments or "{}")
                except json.JSONDecodeError:
                    tool_input = {}
                content.append(
                    {"type": "tool_use", "id": tc.id, "name": tc.name, "input": tool_input}
                )
            messages.append({"role": "assistant", "content": content})
            continue

        messages.append({"role": turn.role.value, "content": turn.content})

    return "\n\n".join(p for p in system_parts if p), messages


def convert_tools(tools: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Convert OpenAI function schemas to Anthropic tool definitions."""
    converted = []
    for tool in tools:
        function = tool.get("function", tool)
        converted.append(
            {
                "name": function["name"],
                "description": function.get("description", ""),
                "input_schema": function.get("parameters") or {"type": "object", "properties": {}},
            }
        )
    return converted


class AnthropicBackend(BaseBackend):
    """Backend for Anthropic's Claude models."""

    backend_type = BackendType.ANTHROPIC
    display_name = "Anthropic API"

    def __init__(self) -> None:
        super().__init__()
        self.client: AsyncAnthropic | None = None

    async def initialize(self, config: BackendConfig) -> None:
        """Validate config and create the SDK client."""
        await super().initialize(config)
        kwargs: dict[str, Any] = {"api_key": config.api_key, "timeout": config.timeout_seconds}
        if config.endpoint:
            kwargs["base_url"] = config.endpoint
        self.client = AsyncAnthropic(**kwargs)

    async def send(
        self, turns: Sequence["Turn"], options: GenerationOptions
    ) -> BackendResponse:
        """Run one Messages API call.

        Raises:
            BackendError: SDK exceptions mapped onto the backend error hierarchy.
        """
        self._require_config()
        if self.client is None:
            raise BackendError("Anthropic client not created", backend=self.name)
        self.request_count += 1

        system, messages = convert_turns(turns)
        create_params: dict[str, Any] = {
            "model": options.model,
            "max_tokens": options.max_tokens,
            "messages": messages,
            "temperature": min(options.temperature, 1.0),
        }
        if system:
            create_params["system"] = system
        if options.tools:
            create_params["tools"] = convert_tools(options.tools)

        start_time = time.monotonic()
        try:
            response = await self.client.messages.create(**create_params)
        except anthropic.APIError as e:
            error = map_anthropic_error(e)
            log.warning(
                BACKEND_CALL_ERROR,
                backend=self.name,
                model=options.model,
                error_type=type(error).__name__,
                status_code=error.status_code,
            )
            raise error from e

        result = adapt_message(response)
        log.debug(
            BACKEND_CALL_COMPLETED,
            backend=self.name,
            model=options.model,
            latency_ms=int((time.monotonic() - start_time) * 1000),
            tool_calls=len(result.tool_calls),
            finish_reason=result.finish_reason,
        )
        return result

    async def aclose(self) -> None:
        if self.client is not None:
            await self.client.close()
            self.client = None


def adapt_message(response: Any) -> BackendResponse:
    """Normalize an Anthropic ``Message`` into BackendResponse.

    Raises:
        BackendInvalidResponse: If the message has an unexpected shape.
    """
    try:
        text_parts: list[str] = []
        reasoning_parts: list[str] = []
        tool_calls: list[ToolCallRequest] = []
        for block in response.content or []:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "thinking":
                reasoning_parts.append(block.thinking)
            elif block.type == "tool_use":
                tool_calls.append(
                    ToolCallRequest(
                        id=block.id, name=block.name, raw_arguments=json.dumps(block.input)
                    )
                )

        usage = None
        if response.usage is not None:
            usage = Usage(
                prompt_tokens=response.usage.input_tokens,
                completion_tokens=response.usage.output_tokens,
                total_tokens=response.usage.input_tokens + response.usage.output_tokens,
            )

        return BackendResponse(
            text="".join(text_parts),
            tool_calls=tool_calls,
            usage=usage,
            finish_reason=response.stop_reason,
            reasoning="\n".join(reasoning_parts) or None,
        )
    except (AttributeError, TypeError, ValueError) as e:
        raise BackendInvalidResponse(f"Invalid response format: {e}", backend="anthropic") from e


def map_anthropic_error(exc: anthropic.APIError) -> BackendError:
    """Translate an anthropic SDK exception into the backend error hierarchy."""
    backend = BackendType.ANTHROPIC.value
    status = getattr(exc, "status_code", None)
    message = f"Anthropic API Error ({status}): {exc.message}" if status else str(exc.message)

    if isinstance(exc, (anthropic.AuthenticationError, anthropic.PermissionDeniedError)):
        return BackendAuthError(
            f"{message}. {login_guidance(backend)}", backend=backend, status_code=status
        )
    if isinstance(exc, anthropic.RateLimitError):
        return BackendRateLimit(message, backend=backend, status_code=status)
    if isinstance(exc, anthropic.APITimeoutError):
        return BackendTimeout("Request to Anthropic API timed out", backend=backend)
    if isinstance(exc, anthropic.APIConnectionError):
        return BackendConnectionError(f"Failed to connect to Anthropic API: {exc}", backend=backend)
    if isinstance(exc, anthropic.InternalServerError) or (status is not None and status >= 500):
        return BackendServerError(message, backend=backend, status_code=status)
    return BackendError(message, backend=backend, status_code=status)
