"""Adapters between conversation turns and the chat/completions wire format.

Groq, OpenAI, Azure OpenAI, OpenRouter and Ollama all speak the OpenAI
chat/completions dialect, so one request builder and one response adapter
serve all of them.
"""

import json
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from exa_agent.backends.models import uses_max_completion_tokens
from exa_agent.backends.types import (
    BackendInvalidResponse,
    BackendResponse,
    GenerationOptions,
    ToolCallRequest,
    Usage,
)

if TYPE_CHECKING:
    from exa_agent.orchestrator.types import Turn


def turns_to_messages(turns: Sequence["Turn"]) -> list[dict[str, Any]]:
    """Render conversation turns as chat/completions messages.

    Args:
        turns: Conversation log, oldest first.

    Returns:
        List of message dicts with role, content and optional tool fields.
    """
    messages: list[dict[str, Any]] = []
    for turn in turns:
        message: dict[str, Any] = {"role": turn.role.value, "content": turn.content}
        if turn.tool_calls:
            message["tool_calls"] = [tc.to_openai() for tc in turn.tool_calls]
        if turn.tool_call_id is not None:
            message["tool_call_id"] = turn.tool_call_id
        messages.append(message)
    return messages


def build_chat_completions_request(
    turns: Sequence["Turn"],
    options: GenerationOptions,
    *,
    model: str | None = None,
    include_tools: bool = True,
) -> dict[str, Any]:
    """Build a chat/completions request payload.

    Args:
        turns: Conversation log, oldest first.
        options: Generation options for this call.
        model: Model name to send, when it differs from ``options.model``
            (Azure sends the deployment name).
        include_tools: Whether to send tool schemas. False for models without
            function calling support.

    Returns:
        Request payload dictionary.
    """
    payload: dict[str, Any] = {
        "model": model or options.model,
        "messages": turns_to_messages(turns),
        "temperature": options.temperature,
        "stream": False,
    }

    if include_tools and options.tools:
        payload["tools"] = options.tools
        payload["tool_choice"] = options.tool_choice or "auto"

    if uses_max_completion_tokens(options.model):
        payload["max_completion_tokens"] = options.max_tokens
    else:
        payload["max_tokens"] = options.max_tokens

    return payload


def adapt_chat_completions_response(response_data: dict[str, Any]) -> BackendResponse:
    """Adapt an OpenAI-style chat/completions response to BackendResponse.

    Args:
        response_data: Raw response body.

    Returns:
        Normalized BackendResponse.

    Raises:
        BackendInvalidResponse: If the response format is invalid or unexpected.
    """
    try:
        choices = response_data.get("choices", [])
        if not choices:
            raise BackendInvalidResponse("Response has no choices")

        choice = choices[0]
        message = choice.get("message") or {}
        content = message.get("content") or ""

        tool_calls: list[ToolCallRequest] = []
        for idx, tc in enumerate(message.get("tool_calls") or []):
            if not isinstance(tc, dict):
                continue
            function = tc.get("function") or {}
            arguments = function.get("arguments")
            if not isinstance(arguments, str):
                # Some servers return already-decoded arguments
                arguments = json.dumps(arguments if arguments is not None else {})
            tool_calls.append(
                ToolCallRequest(
                    id=tc.get("id") or f"call_{idx}",
                    name=function.get("name", ""),
                    raw_arguments=arguments,
                )
            )

        usage = None
        raw_usage = response_data.get("usage")
        if isinstance(raw_usage, dict):
            usage = Usage(
                prompt_tokens=raw_usage.get("prompt_tokens", 0) or 0,
                completion_tokens=raw_usage.get("completion_tokens", 0) or 0,
                total_tokens=raw_usage.get("total_tokens", 0) or 0,
                total_time=raw_usage.get("total_time"),
            )

        # Groq exposes "reasoning", OpenRouter and others "reasoning_content"
        reasoning = message.get("reasoning") or message.get("reasoning_content")

        return BackendResponse(
            text=content,
            tool_calls=tool_calls,
            usage=usage,
            finish_reason=choice.get("finish_reason"),
            reasoning=reasoning if isinstance(reasoning, str) and reasoning else None,
            raw=response_data,
        )
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise BackendInvalidResponse(f"Invalid response format: {e}") from e
