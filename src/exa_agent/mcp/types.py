"""Type conversions between MCP tool schemas and registry tool definitions."""

import re
from typing import Any

from exa_agent.tools.types import ToolClass, ToolDefinition, ToolParameter

MCP_PREFIX = "mcp_"
# Alternate naming some clients emit: <tool>__mcp__<server>
MCP_INFIX = "__mcp__"

# Chat APIs accept ^[a-zA-Z0-9_-]{1,64}$ for function names
_UNSAFE_NAME_CHARS = re.compile(r"[^a-zA-Z0-9_-]")
MAX_TOOL_NAME_LENGTH = 64

_TYPE_MAPPING = {
    "string": "string",
    "number": "number",
    "integer": "integer",
    "boolean": "boolean",
    "object": "object",
    "array": "array",
}


def mcp_tool_name(server_name: str, tool_name: str) -> str:
    """Registry name of a server tool: ``mcp_<server>_<tool>``."""
    name = f"{MCP_PREFIX}{server_name}_{tool_name}"
    return _UNSAFE_NAME_CHARS.sub("_", name)[:MAX_TOOL_NAME_LENGTH]


def parse_mcp_tool_name(name: str) -> tuple[str, str] | None:
    """Split a registry name back into ``(server, tool)``.

    Accepts ``mcp_<server>_<tool>`` (the server name ends at the first
    underscore) and ``<tool>__mcp__<server>``. Returns None for names that are
    not MCP tools.

    Example:
        >>> parse_mcp_tool_name("mcp_github_search_repos")
        ('github', 'search_repos')
    """
    if name.startswith(MCP_PREFIX):
        server, sep, tool = name[len(MCP_PREFIX) :].partition("_")
        if sep and server and tool:
            return server, tool
        return None

    if MCP_INFIX in name:
        tool, _, server = name.partition(MCP_INFIX)
        if server and tool:
            return server, tool
    return None


def mcp_tool_to_definition(
    server_name: str, mcp_tool: dict[str, Any], description_override: str | None = None
) -> ToolDefinition:
    """Convert MCP tool schema to ToolDefinition.

    Args:
        server_name: Name of the server the tool lives on.
        mcp_tool: MCP tool schema from list_tools().
        Format: {
            "name": "search_repositories",
            "description": "Search GitHub repositories",
            "inputSchema": {
                "type": "object",
                "properties": {...},
                "required": [...]
            }
        }
        description_override: Optional description to use instead of MCP description.

    Returns:
        Approval-required ToolDefinition named ``mcp_<server>_<tool>``. The
        server's input schema is sent to the model unchanged.
    """
    name = mcp_tool.get("name", "")
    description = description_override or mcp_tool.get("description") or f"MCP tool {name}"
    input_schema = mcp_tool.get("inputSchema") or {"type": "object", "properties": {}}

    parameters = []
    properties = input_schema.get("properties") or {}
    required_fields = input_schema.get("required") or []

    for param_name, param_schema in properties.items():
        param_type = param_schema.get("type", "string")
        if not isinstance(param_type, str):
            # Union types such as ["string", "null"]
            param_type = "string"

        # Nested schemas are kept whole for array and object parameters
        json_schema: dict[str, Any] | None = None
        if param_type in ("array", "object"):
            json_schema = param_schema

        parameters.append(
            ToolParameter(
                name=param_name,
                type=_TYPE_MAPPING.get(param_type, "string"),
                description=param_schema.get("description", ""),
                required=param_name in required_fields,
                default=param_schema.get("default"),
                json_schema=json_schema,
            )
        )

    return ToolDefinition(
        name=mcp_tool_name(server_name, name),
        description=f"[{server_name}] {description}",
        parameters=parameters,
        tool_class=ToolClass.APPROVAL_REQUIRED,
        category="mcp",
        input_schema=input_schema,
    )
