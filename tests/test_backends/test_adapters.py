"""Tests for the chat/completions request builder and response adapter."""

import json

import pytest

from exa_agent.backends.adapters import (
    adapt_chat_completions_response,
    build_chat_completions_request,
    turns_to_messages,
)
from exa_agent.backends.models import uses_max_completion_tokens
from exa_agent.backends.types import BackendInvalidResponse, GenerationOptions, ToolCallRequest
from exa_agent.orchestrator.types import Turn

TOOLS = [{"type": "function", "function": {"name": "read_file", "parameters": {"type": "object"}}}]


def _turns() -> list[Turn]:
    return [
        Turn.system("You are helpful."),
        Turn.user("read a.txt"),
        Turn.assistant("", [ToolCallRequest(id="call_1", name="read_file", raw_arguments='{"file_path": "a.txt"}')]),
        Turn.tool("call_1", '{"success": true}'),
    ]


def test_turns_to_messages() -> None:
    messages = turns_to_messages(_turns())

    assert [m["role"] for m in messages] == ["system", "user", "assistant", "tool"]
    assert messages[2]["tool_calls"] == [
        {
            "id": "call_1",
            "type": "function",
            "function": {"name": "read_file", "arguments": '{"file_path": "a.txt"}'},
        }
    ]
    assert messages[3]["tool_call_id"] == "call_1"
    assert "tool_calls" not in messages[1]


def test_request_with_tools() -> None:
    payload = build_chat_completions_request(
        _turns(), GenerationOptions(model="moonshotai/kimi-k2-instruct", tools=TOOLS, temperature=0.5)
    )

    assert payload["model"] == "moonshotai/kimi-k2-instruct"
    assert payload["tools"] == TOOLS
    assert payload["tool_choice"] == "auto"
    assert payload["temperature"] == 0.5
    assert payload["max_tokens"] == 8000
    assert payload["stream"] is False


def test_request_without_tools_and_deployment_name() -> None:
    payload = build_chat_completions_request(
        _turns(), GenerationOptions(model="o3-mini", tools=TOOLS), model="my-deployment", include_tools=False
    )

    assert payload["model"] == "my-deployment"
    assert "tools" not in payload
    assert payload["max_completion_tokens"] == 8000
    assert "max_tokens" not in payload


@pytest.mark.parametrize(
    ("model", "expected"),
    [
        ("o3-mini", True),
        ("o4-mini", True),
        ("gpt-5", True),
        ("openai/o1", True),
        ("gpt-oss-20b", False),
        ("moonshotai/kimi-k2-instruct", False),
        ("claude-sonnet-4-5", False),
    ],
)
def test_completion_token_models(model, expected) -> None:
    assert uses_max_completion_tokens(model) is expected


def test_adapt_response_with_tool_calls_and_usage() -> None:
    response = adapt_chat_completions_response(
        {
            "choices": [
                {
                    "message": {
                        "content": None,
                        "reasoning": "I should read the file",
                        "tool_calls": [
                            {"id": "call_a", "function": {"name": "read_file", "arguments": '{"file_path": "x"}'}},
                            {"function": {"name": "list_files", "arguments": {"directory": "."}}},
                        ],
                    },
                    "finish_reason": "tool_calls",
                }
            ],
            "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15, "total_time": 0.2},
        }
    )

    assert response.text == ""
    assert response.reasoning == "I should read the file"
    assert response.finish_reason == "tool_calls"
    assert [tc.id for tc in response.tool_calls] == ["call_a", "call_1"]
    assert json.loads(response.tool_calls[1].raw_arguments) == {"directory": "."}
    assert response.usage.total_tokens == 15
    assert response.usage.total_time == 0.2


def test_adapt_response_reasoning_content_key() -> None:
    response = adapt_chat_completions_response(
        {"choices": [{"message": {"content": "hi", "reasoning_content": "thinking"}}]}
    )
    assert response.text == "hi"
    assert response.reasoning == "thinking"
    assert response.usage is None


def test_adapt_response_without_choices() -> None:
    with pytest.raises(BackendInvalidResponse, match="no choices"):
        adapt_chat_completions_response({"choices": []})


def test_adapt_response_bad_shape() -> None:
    with pytest.raises(BackendInvalidResponse, match="Invalid response format"):
        adapt_chat_completions_response({"choices": ["not a dict"]})
