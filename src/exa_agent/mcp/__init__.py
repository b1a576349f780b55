"""MCP (Model Context Protocol) integration.

Tools from configured MCP servers are registered next to the built-in tools
as ``mcp_<server>_<tool>`` and always require approval.
"""

from exa_agent.mcp.client import MCPClientError, MCPClientWrapper, parse_mcp_content
from exa_agent.mcp.manager import MCPServerStatus, MCPToolManager
from exa_agent.mcp.types import mcp_tool_name, mcp_tool_to_definition, parse_mcp_tool_name

__all__ = [
    "MCPClientError",
    "MCPClientWrapper",
    "MCPServerStatus",
    "MCPToolManager",
    "mcp_tool_name",
    "mcp_tool_to_definition",
    "parse_mcp_content",
    "parse_mcp_tool_name",
]
