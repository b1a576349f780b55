"""Tests for MCPClientWrapper using a mocked SDK transport and session."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from mcp.types import (
    CallToolResult,
    EmbeddedResource,
    ImageContent,
    TextContent,
    TextResourceContents,
    Tool,
)

from exa_agent.config import MCPServerConfig
from exa_agent.mcp import MCPClientError, MCPClientWrapper, parse_mcp_content
from exa_agent.mcp.client import extract_error_message


def _transport() -> MagicMock:
    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=(MagicMock(), MagicMock()))
    context.__aexit__ = AsyncMock(return_value=None)
    return context


def _session() -> MagicMock:
    session = MagicMock()
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=None)
    session.initialize = AsyncMock()
    return session


@pytest.fixture
def stdio_config() -> MCPServerConfig:
    return MCPServerConfig(command="npx", args=["-y", "server-github"], env={"GITHUB_TOKEN": "t"})


@pytest.mark.asyncio
async def test_connect_stdio_and_list_tools(stdio_config) -> None:
    transport, session = _transport(), _session()
    session.list_tools = AsyncMock(
        return_value=MagicMock(tools=[Tool(name="search", description="Search", inputSchema={"type": "object"})])
    )

    with (
        patch("exa_agent.mcp.client.stdio_client", return_value=transport) as stdio,
        patch("exa_agent.mcp.client.ClientSession", return_value=session),
    ):
        async with MCPClientWrapper("github", stdio_config, timeout=5) as client:
            assert client.connected
            tools = await client.list_tools()

    params = stdio.call_args.args[0]
    assert params.command == "npx"
    assert params.args == ["-y", "server-github"]
    assert params.env["GITHUB_TOKEN"] == "t"
    assert tools[0]["name"] == "search"
    assert tools[0]["inputSchema"] == {"type": "object"}
    session.initialize.assert_awaited_once()
    session.__aexit__.assert_awaited_once()
    transport.__aexit__.assert_awaited_once()
    assert not client.connected


@pytest.mark.asyncio
async def test_http_transports_need_url() -> None:
    with pytest.raises(MCPClientError, match="URL is required for sse transport"):
        await MCPClientWrapper("remote", MCPServerConfig(transport="sse")).__aenter__()


@pytest.mark.asyncio
async def test_stdio_needs_command() -> None:
    with pytest.raises(MCPClientError, match="Command is required"):
        await MCPClientWrapper("local", MCPServerConfig()).__aenter__()


@pytest.mark.asyncio
async def test_streamable_http_selected() -> None:
    transport, session = _transport(), _session()
    transport.__aenter__ = AsyncMock(return_value=(MagicMock(), MagicMock(), MagicMock()))
    config = MCPServerConfig(transport="http", url="https://mcp.example.com/mcp")

    with (
        patch("exa_agent.mcp.client.streamablehttp_client", return_value=transport) as http_client,
        patch("exa_agent.mcp.client.ClientSession", return_value=session),
    ):
        client = await MCPClientWrapper("remote", config).__aenter__()
        await client.__aexit__(None, None, None)

    http_client.assert_called_once_with("https://mcp.example.com/mcp")


@pytest.mark.asyncio
async def test_connect_timeout(stdio_config) -> None:
    transport, session = _transport(), _session()

    async def hang():
        await asyncio.sleep(5)

    session.initialize = AsyncMock(side_effect=hang)

    with (
        patch("exa_agent.mcp.client.stdio_client", return_value=transport),
        patch("exa_agent.mcp.client.ClientSession", return_value=session),
    ):
        client = MCPClientWrapper("slow", stdio_config, timeout=0.05)
        with pytest.raises(MCPClientError, match="Connection timeout"):
            await client.__aenter__()

    assert not client.connected
    transport.__aexit__.assert_awaited_once()


@pytest.mark.asyncio
async def test_connect_failure_wrapped(stdio_config) -> None:
    transport = _transport()
    transport.__aenter__ = AsyncMock(side_effect=FileNotFoundError("npx"))

    with patch("exa_agent.mcp.client.stdio_client", return_value=transport):
        with pytest.raises(MCPClientError, match="Connection failed: npx"):
            await MCPClientWrapper("bad", stdio_config).__aenter__()


@pytest.mark.asyncio
async def test_call_tool_results(stdio_config) -> None:
    transport, session = _transport(), _session()
    session.call_tool = AsyncMock(
        side_effect=[
            CallToolResult(content=[TextContent(type="text", text='{"stars": 5}')]),
            CallToolResult(content=[], structuredContent={"rows": 2}),
            CallToolResult(content=[TextContent(type="text", text="no such repo")], isError=True),
        ]
    )

    with (
        patch("exa_agent.mcp.client.stdio_client", return_value=transport),
        patch("exa_agent.mcp.client.ClientSession", return_value=session),
    ):
        async with MCPClientWrapper("github", stdio_config) as client:
            assert await client.call_tool("stars", {"repo": "x"}) == {"stars": 5}
            assert await client.call_tool("rows", {}) == {"rows": 2}
            with pytest.raises(MCPClientError, match="MCP tool 'repo' returned error: no such repo"):
                await client.call_tool("repo", {})

    session.call_tool.assert_any_await("stars", {"repo": "x"})


@pytest.mark.asyncio
async def test_calls_require_connection(stdio_config) -> None:
    client = MCPClientWrapper("github", stdio_config)
    with pytest.raises(MCPClientError, match="is not connected"):
        await client.call_tool("x", {})
    with pytest.raises(MCPClientError, match="is not connected"):
        await client.list_tools()


def test_parse_mcp_content() -> None:
    assert parse_mcp_content([]) == {}
    assert parse_mcp_content([TextContent(type="text", text="plain")]) == "plain"

    image = ImageContent(type="image", data="aGk=", mimeType="image/png")
    resource = EmbeddedResource(
        type="resource",
        resource=TextResourceContents(uri="file:///notes.md", text="# Notes", mimeType="text/markdown"),
    )
    parsed = parse_mcp_content([TextContent(type="text", text="[1, 2]"), image, resource])

    assert parsed[0] == [1, 2]
    assert parsed[1] == {"type": "binary", "mime_type": "image/png", "data": "aGk="}
    assert parsed[2] == {"type": "embedded_resource", "uri": "file:///notes.md", "text": "# Notes"}


def test_extract_error_message() -> None:
    assert extract_error_message([TextContent(type="text", text="boom")]) == "boom"
    assert extract_error_message(None) == "Unknown tool error"
