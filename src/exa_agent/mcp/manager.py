"""Connects the configured MCP servers and exposes their tools in the registry.

Each enabled server from the local settings file gets its own client session.
A server that fails to start is recorded with its error and skipped; the
agent keeps working with the remaining tools.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from exa_agent.config import LocalSettings, MCPServerConfig, get_settings
from exa_agent.mcp.client import MCPClientError, MCPClientWrapper
from exa_agent.mcp.types import mcp_tool_to_definition
from exa_agent.telemetry import (
    MCP_SERVER_CONNECTED,
    MCP_SERVER_FAILED,
    MCP_SHUTDOWN,
    MCP_TOOL_REGISTERED,
    get_logger,
)
from exa_agent.tools.registry import ToolRegistry
from exa_agent.tools.router import ToolExecutionError

log = get_logger(__name__)

ClientFactory = Callable[[str, MCPServerConfig, float], MCPClientWrapper]


@dataclass
class MCPServerStatus:
    """Connection health of one configured server."""

    name: str
    config: MCPServerConfig
    connected: bool = False
    last_error: str | None = None
    tools: list[str] = field(default_factory=list)
    client: MCPClientWrapper | None = field(default=None, repr=False)

    @property
    def tool_count(self) -> int:
        return len(self.tools)


class MCPToolManager:
    """Owns the MCP client sessions and their registered tools.

    Usage:
        registry = create_default_registry()
        manager = MCPToolManager(registry, LocalSettings())
        await manager.start()
        # ... tool execution happens through the registry ...
        await manager.shutdown()
    """

    def __init__(
        self,
        registry: ToolRegistry,
        local_settings: LocalSettings,
        *,
        default_timeout: float | None = None,
        client_factory: ClientFactory | None = None,
    ):
        """Initialize manager.

        Args:
            registry: Tool registry to register MCP tools with.
            local_settings: Source of the server definitions.
            default_timeout: Timeout used when neither the server nor the
                settings file sets one. Defaults to ``EXA_MCP_TIMEOUT_SECONDS``.
            client_factory: Builds a client for one server (tests inject fakes).
        """
        self.registry = registry
        self.local_settings = local_settings
        self.default_timeout = default_timeout or get_settings().mcp_timeout_seconds
        self.client_factory: ClientFactory = client_factory or MCPClientWrapper
        self.servers: dict[str, MCPServerStatus] = {}
        self._global_timeout: float | None = None

    def _timeout_for(self, config: MCPServerConfig) -> float:
        return config.timeout or self._global_timeout or self.default_timeout

    async def start(self) -> int:
        """Connect every enabled server and register its tools.

        Returns:
            Number of servers connected.
        """
        mcp_settings = self.local_settings.get_mcp_settings()
        self._global_timeout = mcp_settings.global_timeout

        for name, config in mcp_settings.servers.items():
            if not config.enabled:
                log.debug("mcp_server_disabled", server=name)
                continue
            await self._connect(name, config)

        connected = sum(1 for status in self.servers.values() if status.connected)
        log.info(
            "mcp_servers_started",
            connected=connected,
            configured=len(mcp_settings.servers),
            tools_count=len(self.tool_names()),
        )
        return connected

    async def _connect(self, name: str, config: MCPServerConfig) -> MCPServerStatus:
        status = MCPServerStatus(name=name, config=config)
        self.servers[name] = status

        client = self.client_factory(name, config, self._timeout_for(config))
        try:
            await client.__aenter__()
            mcp_tools = await client.list_tools()
        except Exception as e:
            # Graceful degradation: continue without this server
            status.last_error = str(e)
            log.warning(
                MCP_SERVER_FAILED, server=name, error=str(e), error_type=type(e).__name__
            )
            if client.connected:
                await self._close_client(name, client)
            return status

        status.client = client
        status.connected = True
        self._register_tools(status, mcp_tools)
        log.info(MCP_SERVER_CONNECTED, server=name, tools_count=status.tool_count)
        return status

    def _register_tools(self, status: MCPServerStatus, mcp_tools: list[dict[str, Any]]) -> None:
        for mcp_tool in mcp_tools:
            try:
                tool_def = mcp_tool_to_definition(status.name, mcp_tool)
                executor = self._create_executor(status.name, mcp_tool["name"])
                self.registry.register(tool_def, executor)
            except (KeyError, ValueError) as e:
                log.error(
                    "mcp_tool_registration_failed",
                    server=status.name,
                    tool=mcp_tool.get("name"),
                    error=str(e),
                )
                continue
            status.tools.append(tool_def.name)
            log.debug(MCP_TOOL_REGISTERED, server=status.name, tool=tool_def.name)

    def _create_executor(self, server_name: str, mcp_tool_name: str):
        """Create async executor function for one server tool.

        Args:
            server_name: Server the tool lives on.
            mcp_tool_name: Original MCP tool name (without prefix).

        Returns:
            Async executor function.
        """

        async def executor(**kwargs: Any) -> Any:
            return await self.call_tool(server_name, mcp_tool_name, kwargs)

        return executor

    async def call_tool(self, server_name: str, tool_name: str, arguments: dict[str, Any]) -> Any:
        """Route a call to the named server.

        Raises:
            ToolExecutionError: If the server is unknown or down, or the call fails.
        """
        status = self.servers.get(server_name)
        if status is None:
            raise ToolExecutionError(f"MCP server '{server_name}' not found")
        if not status.connected or status.client is None:
            raise ToolExecutionError(
                f"MCP server '{server_name}' is not connected: {status.last_error or 'unknown error'}"
            )

        try:
            result = await status.client.call_tool(tool_name, arguments)
        except MCPClientError as e:
            raise ToolExecutionError(str(e)) from e
        except Exception as e:
            log.error("mcp_tool_execution_failed", server=server_name, tool=tool_name, error=str(e))
            status.last_error = str(e)
            raise ToolExecutionError(f"MCP tool '{tool_name}' failed: {e}") from e
        return result if result is not None else {}

    def server_status(self) -> list[MCPServerStatus]:
        """Status of every server that was started, in settings order."""
        return list(self.servers.values())

    def tool_names(self) -> list[str]:
        return [tool for status in self.servers.values() for tool in status.tools]

    async def reconnect(self, name: str) -> MCPServerStatus:
        """Drop and re-open one server, re-registering its tools.

        Raises:
            KeyError: If the server is not in the settings file.
        """
        await self._disconnect(name)
        config = self.local_settings.get_mcp_settings().servers.get(name)
        if config is None:
            raise KeyError(f"MCP server '{name}' not found")
        return await self._connect(name, config)

    async def _disconnect(self, name: str) -> None:
        status = self.servers.pop(name, None)
        if status is None:
            return
        for tool in status.tools:
            self.registry.unregister(tool)
        if status.client is not None:
            await self._close_client(name, status.client)

    async def _close_client(self, name: str, client: MCPClientWrapper) -> None:
        try:
            await client.__aexit__(None, None, None)
        except Exception as e:
            log.error("mcp_client_shutdown_error", server=name, error=str(e))

    async def shutdown(self) -> None:
        """Close every session and remove the MCP tools from the registry."""
        names = list(self.servers)
        for name in names:
            await self._disconnect(name)
        log.info(MCP_SHUTDOWN, servers=len(names))
