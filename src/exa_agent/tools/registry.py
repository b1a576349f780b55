"""Tool registry for tool discovery and registration.

This module provides the ToolRegistry class that manages tool definitions
and their executor functions. Built-in tools and MCP tools share one registry;
the orchestrator hands ``get_tool_definitions_for_llm`` to the backend.
"""

from typing import Any, Callable

from exa_agent.telemetry import get_logger
from exa_agent.tools.types import ToolClass, ToolDefinition

log = get_logger(__name__)


class ToolRegistry:
    """Central registry of available tools.

    The registry stores tool definitions along with their executor functions,
    enabling tools to be discovered, filtered, and executed.
    """

    def __init__(self) -> None:
        """Initialize empty tool registry."""
        self._tools: dict[str, tuple[ToolDefinition, Callable[..., Any]]] = {}
        log.debug("tool_registry_initialized")

    def register(self, tool_def: ToolDefinition, executor: Callable[..., Any]) -> None:
        """Register a tool with its definition and executor function.

        Args:
            tool_def: Tool definition with metadata.
            executor: Callable that executes the tool. Accepts tool parameters
                as keyword arguments and returns a JSON-serializable payload.
                May be sync or async.

        Raises:
            ValueError: If tool name already registered.
        """
        if tool_def.name in self._tools:
            raise ValueError(f"Tool '{tool_def.name}' is already registered")

        self._tools[tool_def.name] = (tool_def, executor)
        log.debug(
            "tool_registered",
            tool_name=tool_def.name,
            category=tool_def.category,
            tool_class=tool_def.tool_class.value,
        )

    def unregister(self, name: str) -> bool:
        """Remove a tool. Returns False if it was not registered."""
        return self._tools.pop(name, None) is not None

    def get_tool(self, name: str) -> tuple[ToolDefinition, Callable[..., Any]] | None:
        """Retrieve tool definition and executor.

        Args:
            name: Tool name to retrieve.

        Returns:
            Tuple of (ToolDefinition, executor) if found, None otherwise.
        """
        return self._tools.get(name)

    def get_definition(self, name: str) -> ToolDefinition | None:
        entry = self._tools.get(name)
        return entry[0] if entry else None

    def has_tool(self, name: str) -> bool:
        return name in self._tools

    def list_tools(self, tool_class: ToolClass | None = None) -> list[ToolDefinition]:
        """List registered tools.

        Args:
            tool_class: Approval class to filter by. If None, returns all tools.

        Returns:
            List of tool definitions.
        """
        if tool_class is None:
            return [tool_def for tool_def, _ in self._tools.values()]
        return [tool_def for tool_def, _ in self._tools.values() if tool_def.tool_class == tool_class]

    def filter_by_category(self, category: str) -> list[ToolDefinition]:
        """Filter tools by category (filesystem, command, web, mcp)."""
        return [tool_def for tool_def, _ in self._tools.values() if tool_def.category == category]

    def list_tool_names(self) -> list[str]:
        """List names of all registered tools.

        Returns:
            List of tool names.
        """
        return list(self._tools.keys())

    def get_tool_definitions_for_llm(self) -> list[dict[str, Any]]:
        """Get tool definitions in OpenAI function calling format.

        Returns:
            List of tool definitions in OpenAI format (for function calling).
        """
        result = []
        for tool_def in self.list_tools():
            if tool_def.input_schema is not None:
                # MCP tools carry a complete schema from their server
                parameters = tool_def.input_schema
            else:
                properties: dict[str, Any] = {}
                for param in tool_def.parameters:
                    if param.json_schema:
                        # Full JSON schema for complex types (array, object)
                        properties[param.name] = param.json_schema
                        continue
                    schema: dict[str, Any] = {
                        "type": param.type,
                        "description": param.description,
                    }
                    if param.enum:
                        schema["enum"] = param.enum
                    properties[param.name] = schema
                parameters = {
                    "type": "object",
                    "properties": properties,
                    "required": [param.name for param in tool_def.parameters if param.required],
                    "additionalProperties": False,
                }

            result.append(
                {
                    "type": "function",
                    "function": {
                        "name": tool_def.name,
                        "description": tool_def.description,
                        "parameters": parameters,
                    },
                }
            )
        return result
