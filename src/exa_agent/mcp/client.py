"""MCP client wrapper for one configured server.

This wrapper uses the MCP SDK's transport context managers (stdio, SSE and
streamable HTTP). For stdio the SDK handles the server subprocess lifecycle.
"""

import asyncio
import json
import os
from typing import Any

from mcp import ClientSession, StdioServerParameters
from mcp.client.sse import sse_client
from mcp.client.stdio import stdio_client
from mcp.client.streamable_http import streamablehttp_client

from exa_agent.config.local_settings import MCPServerConfig
from exa_agent.telemetry import get_logger

log = get_logger(__name__)


class MCPClientError(RuntimeError):
    """Raised when an MCP server cannot be reached or a tool call fails."""

    pass


class MCPClientWrapper:
    """Wraps an MCP SDK client session for one server.

    Usage:
        async with MCPClientWrapper("github", config, timeout=60) as client:
            tools = await client.list_tools()
            result = await client.call_tool("search_repositories", {"query": "mcp"})
    """

    def __init__(self, name: str, config: MCPServerConfig, timeout: float = 60):
        """Initialize MCP client wrapper.

        Args:
            name: Server name from the settings file.
            config: Transport configuration of the server.
            timeout: Timeout for connect and list operations in seconds.
        """
        self.name = name
        self.config = config
        self.timeout = timeout
        self.session: ClientSession | None = None
        self._client_context: Any = None

    def _open_transport(self) -> Any:
        """Return the SDK transport context manager for the configured transport."""
        transport = self.config.transport
        if transport == "stdio":
            if not self.config.command or not self.config.command.strip():
                raise MCPClientError("Command is required for stdio transport")
            # Server inherits our environment plus its configured overrides
            env = {**os.environ, **self.config.env}
            server_params = StdioServerParameters(
                command=self.config.command,
                args=list(self.config.args),
                env=env,
            )
            return stdio_client(server_params)
        if not self.config.url:
            raise MCPClientError(f"URL is required for {transport} transport")
        if transport == "sse":
            return sse_client(self.config.url)
        return streamablehttp_client(self.config.url)

    async def __aenter__(self) -> "MCPClientWrapper":
        """Open the transport, create the session and run the handshake.

        Returns:
            Self for use in context.
        """
        try:
            log.info("mcp_client_connecting", server=self.name, transport=self.config.transport)

            self._client_context = self._open_transport()
            streams = await asyncio.wait_for(self._client_context.__aenter__(), timeout=self.timeout)
            # streamable HTTP yields a third element (session id callback)
            read_stream, write_stream = streams[0], streams[1]

            self.session = ClientSession(read_stream, write_stream)
            await asyncio.wait_for(self.session.__aenter__(), timeout=self.timeout)
            await asyncio.wait_for(self.session.initialize(), timeout=self.timeout)

            log.info("mcp_client_connected", server=self.name)
            return self

        except asyncio.TimeoutError as e:
            log.error("mcp_client_timeout", server=self.name, timeout=self.timeout)
            await self._cleanup()
            raise MCPClientError("Connection timeout") from e
        except MCPClientError:
            await self._cleanup()
            raise
        except Exception as e:
            log.error("mcp_client_connect_failed", server=self.name, error=str(e))
            await self._cleanup()
            raise MCPClientError(f"Connection failed: {e}") from e

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Close the session and the transport."""
        await self._cleanup()
        log.info("mcp_client_disconnected", server=self.name)

    async def _cleanup(self) -> None:
        # Exit with None so a timed-out connect does not trip anyio cancel scopes
        if self.session is not None:
            try:
                await self.session.__aexit__(None, None, None)
            except RuntimeError as e:
                if "cancel scope" not in str(e):
                    log.warning("mcp_session_cleanup_failed", server=self.name, error=str(e))
            finally:
                self.session = None

        if self._client_context is not None:
            try:
                await self._client_context.__aexit__(None, None, None)
            except RuntimeError as e:
                if "cancel scope" not in str(e):
                    log.warning("mcp_client_cleanup_failed", server=self.name, error=str(e))
            finally:
                self._client_context = None

    @property
    def connected(self) -> bool:
        return self.session is not None

    async def list_tools(self) -> list[dict[str, Any]]:
        """List the server's tools.

        Returns:
            List of tool schemas (MCP format: name, description, inputSchema).

        Raises:
            MCPClientError: If client not connected or the request fails.
        """
        if not self.session:
            raise MCPClientError(f"MCP server '{self.name}' is not connected")

        try:
            result = await asyncio.wait_for(self.session.list_tools(), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise MCPClientError("Timed out listing tools") from e
        tools = [tool.model_dump() for tool in result.tools]
        log.debug("mcp_tools_listed", server=self.name, count=len(tools))
        return tools

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> Any:
        """Call a tool on the server.

        Args:
            name: Tool name as the server knows it (no ``mcp_`` prefix).
            arguments: Tool arguments.

        Returns:
            Parsed tool output.

        Raises:
            MCPClientError: If client not connected or the tool reports an error.
        """
        if not self.session:
            raise MCPClientError(f"MCP server '{self.name}' is not connected")

        log.info("mcp_tool_calling", server=self.name, tool=name)
        # No asyncio.wait_for here: it conflicts with the SDK's anyio cancel scopes
        result = await self.session.call_tool(name, arguments)

        if result.isError:
            error_msg = extract_error_message(result.content)
            log.warning("mcp_tool_returned_error", server=self.name, tool=name, error=error_msg)
            raise MCPClientError(f"MCP tool '{name}' returned error: {error_msg}")

        if result.structuredContent:
            return result.structuredContent
        return parse_mcp_content(result.content)


def extract_error_message(content: list[Any] | None) -> str:
    """First text block of an error result."""
    for item in content or []:
        text = getattr(item, "text", None)
        if text:
            return text
    return "Unknown tool error"


def parse_mcp_content(content: list[Any] | None) -> Any:
    """Parse MCP content items.

    MCP results can contain multiple content types:
    - TextContent: Plain text (may be JSON)
    - ImageContent / AudioContent: Base64 data
    - ResourceLink: Link to a resource
    - EmbeddedResource: Embedded resource data

    Returns:
        A single parsed item directly, a list for several items, {} for none.
    """
    if not content:
        return {}

    parsed_items: list[Any] = []
    for item in content:
        if hasattr(item, "text"):
            try:
                parsed_items.append(json.loads(item.text))
            except (json.JSONDecodeError, TypeError):
                parsed_items.append(item.text)
        elif hasattr(item, "data"):
            parsed_items.append(
                {"type": "binary", "mime_type": getattr(item, "mimeType", None), "data": item.data}
            )
        elif hasattr(item, "uri"):
            parsed_items.append({"type": "resource_link", "uri": str(item.uri)})
        elif hasattr(item, "resource"):
            resource = item.resource
            uri = getattr(resource, "uri", None)
            parsed_items.append(
                {
                    "type": "embedded_resource",
                    "uri": str(uri) if uri is not None else None,
                    "text": getattr(resource, "text", None),
                }
            )
        else:
            log.warning("mcp_unknown_content_type", item_type=type(item).__name__)
            parsed_items.append(str(item))

    if len(parsed_items) == 1:
        return parsed_items[0]
    return parsed_items
