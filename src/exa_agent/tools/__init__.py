"""Tool layer: definitions, registry, routing and the built-in tools.

This module provides:
- ToolRegistry for tool discovery and registration
- ToolRouter, the single entry point the orchestrator uses to run a tool
- Built-in filesystem, command and web tools
"""

from exa_agent.tools.commands import execute_command_executor, execute_command_tool
from exa_agent.tools.filesystem import (
    create_file_executor,
    create_file_tool,
    delete_file_executor,
    delete_file_tool,
    edit_file_executor,
    edit_file_tool,
    list_files_executor,
    list_files_tool,
    read_file_executor,
    read_file_tool,
    search_files_executor,
    search_files_tool,
)
from exa_agent.tools.registry import ToolRegistry
from exa_agent.tools.router import (
    ToolArgumentError,
    ToolExecutionError,
    ToolRouter,
    parse_tool_arguments,
    prepare_tool_call,
    resolve_tool_name,
)
from exa_agent.tools.types import ToolClass, ToolDefinition, ToolParameter, ToolResult
from exa_agent.tools.web import web_fetch_executor, web_fetch_tool, web_search_executor, web_search_tool

__all__ = [
    # Core exports
    "ToolRegistry",
    "ToolRouter",
    "ToolExecutionError",
    "ToolArgumentError",
    "ToolClass",
    "ToolDefinition",
    "ToolParameter",
    "ToolResult",
    "parse_tool_arguments",
    "prepare_tool_call",
    "resolve_tool_name",
    # Tool registration
    "register_builtin_tools",
    "create_default_registry",
]


def register_builtin_tools(registry: ToolRegistry) -> None:
    """Register the built-in tools with the registry.

    - read_file, list_files, search_files: inspect the working tree (safe)
    - create_file, edit_file: change files (approval required)
    - delete_file, execute_command: dangerous
    - web_fetch, web_search: public web access (safe)

    Args:
        registry: Tool registry to register tools with.
    """
    registry.register(read_file_tool, read_file_executor)
    registry.register(list_files_tool, list_files_executor)
    registry.register(search_files_tool, search_files_executor)
    registry.register(create_file_tool, create_file_executor)
    registry.register(edit_file_tool, edit_file_executor)
    registry.register(delete_file_tool, delete_file_executor)
    registry.register(execute_command_tool, execute_command_executor)
    registry.register(web_fetch_tool, web_fetch_executor)
    registry.register(web_search_tool, web_search_executor)


def create_default_registry() -> ToolRegistry:
    """Create a registry with the built-in tools.

    Each Orchestrator owns its registry so MCP tools registered for one
    session never leak into another.
    """
    registry = ToolRegistry()
    register_builtin_tools(registry)
    return registry
