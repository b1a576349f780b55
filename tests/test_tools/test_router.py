"""Tests for ToolRouter and argument parsing."""

import asyncio

import pytest

from exa_agent.tools import (
    ToolArgumentError,
    ToolDefinition,
    ToolExecutionError,
    ToolParameter,
    ToolRegistry,
    ToolResult,
    ToolRouter,
    parse_tool_arguments,
    prepare_tool_call,
    resolve_tool_name,
)


@pytest.fixture
def router() -> ToolRouter:
    registry = ToolRegistry()

    def greet(name: str, punctuation: str = "!") -> dict:
        return {"greeting": f"Hello {name}{punctuation}"}

    async def slow_add(a: int, b: int) -> dict:
        await asyncio.sleep(0)
        return {"sum": a + b}

    def broken() -> dict:
        raise ToolExecutionError("disk full")

    def crashing() -> dict:
        raise RuntimeError("boom")

    registry.register(
        ToolDefinition(
            name="greet",
            description="Greet",
            parameters=[
                ToolParameter(name="name", type="string", description="Name"),
                ToolParameter(name="punctuation", type="string", description="End", required=False),
            ],
        ),
        greet,
    )
    registry.register(
        ToolDefinition(
            name="slow_add",
            description="Add",
            parameters=[
                ToolParameter(name="a", type="integer", description="a"),
                ToolParameter(name="b", type="integer", description="b"),
            ],
        ),
        slow_add,
    )
    registry.register(ToolDefinition(name="broken", description="Fails"), broken)
    registry.register(ToolDefinition(name="crashing", description="Crashes"), crashing)
    return ToolRouter(registry)


def test_parse_tool_arguments() -> None:
    """Test parsing of raw argument strings."""
    assert parse_tool_arguments(None) == {}
    assert parse_tool_arguments("   ") == {}
    assert parse_tool_arguments('{"a": 1}') == {"a": 1}
    assert parse_tool_arguments({"a": 1}) == {"a": 1}
    with pytest.raises(ToolArgumentError):
        parse_tool_arguments('{"a": ')
    with pytest.raises(ToolArgumentError, match="JSON object"):
        parse_tool_arguments("[1, 2]")


def test_resolve_tool_name() -> None:
    """Test the hallucinated namespace prefix is stripped."""
    assert resolve_tool_name("repo_browser.read_file") == "read_file"
    assert resolve_tool_name("read_file") == "read_file"


@pytest.mark.asyncio
async def test_execute_sync_tool(router) -> None:
    """Test a sync executor runs and reports latency."""
    result = await router.execute("greet", {"name": "Ada"})

    assert result.success is True
    assert result.payload == {"greeting": "Hello Ada!"}
    assert result.latency_ms >= 0


@pytest.mark.asyncio
async def test_execute_async_tool(router) -> None:
    """Test an async executor is awaited."""
    result = await router.execute("slow_add", {"a": 2, "b": 3})
    assert result.payload == {"sum": 5}


@pytest.mark.asyncio
async def test_unknown_tool(router) -> None:
    """Test an unknown tool lists the available tools."""
    result = await router.execute("nope", {})

    assert result.success is False
    assert result.error.startswith("Unknown tool 'nope'. Available tools:")
    assert "greet" in result.error


@pytest.mark.asyncio
async def test_undeclared_arguments_filtered(router) -> None:
    """Test extra arguments from the model are dropped instead of crashing the executor."""
    result = await router.execute("greet", {"name": "Ada", "mood": "happy"})
    assert result.success is True


@pytest.mark.asyncio
async def test_missing_required_argument(router) -> None:
    """Test a missing required parameter fails before execution."""
    result = await router.execute("greet", {})

    assert result.success is False
    assert result.error == "Missing required parameter(s) for greet: name"


@pytest.mark.asyncio
async def test_expected_failure_message(router) -> None:
    """Test ToolExecutionError messages pass through unchanged."""
    result = await router.execute("broken", {})
    assert result.error == "disk full"


@pytest.mark.asyncio
async def test_unexpected_exception_is_wrapped(router) -> None:
    """Test unexpected exceptions become failed results."""
    result = await router.execute("crashing", {})

    assert result.success is False
    assert result.error == "Tool execution error: boom"


@pytest.mark.asyncio
async def test_invoke_parses_raw_arguments(router) -> None:
    """Test invoke parses the raw JSON and resolves the name."""
    result = await router.invoke("repo_browser.greet", '{"name": "Bo", "punctuation": "?"}')
    assert result.payload == {"greeting": "Hello Bo?"}

    bad = await router.invoke("greet", '{"name": ')
    assert bad.success is False
    assert bad.error.startswith("Tool arguments truncated")


def test_prepare_tool_call() -> None:
    """Test names are resolved and unparsable arguments become a failed result."""
    assert prepare_tool_call("repo_browser.greet", '{"name": "Bo"}') == ("greet", {"name": "Bo"})

    name, failure = prepare_tool_call("greet", '{"name": "B')
    assert name == "greet"
    assert isinstance(failure, ToolResult)
    assert failure.success is False
    assert failure.error.startswith("Tool arguments truncated")
