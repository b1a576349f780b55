"""Tests for MCP tool naming and schema conversion."""

from exa_agent.mcp import mcp_tool_name, mcp_tool_to_definition, parse_mcp_tool_name
from exa_agent.mcp.types import MAX_TOOL_NAME_LENGTH
from exa_agent.tools import ToolClass, ToolRegistry


def test_tool_name_prefix() -> None:
    assert mcp_tool_name("github", "search_repos") == "mcp_github_search_repos"


def test_tool_name_sanitized_and_capped() -> None:
    name = mcp_tool_name("my.server", "do thing/now" + "x" * 80)

    assert name.startswith("mcp_my_server_do_thing_now")
    assert len(name) == MAX_TOOL_NAME_LENGTH


def test_parse_tool_name() -> None:
    assert parse_mcp_tool_name("mcp_github_search_repos") == ("github", "search_repos")
    assert parse_mcp_tool_name("search_repos__mcp__github") == ("github", "search_repos")
    assert parse_mcp_tool_name("mcp_github") is None
    assert parse_mcp_tool_name("read_file") is None


def test_definition_from_mcp_schema() -> None:
    mcp_tool = {
        "name": "search_repositories",
        "description": "Search GitHub repositories",
        "inputSchema": {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Search text"},
                "limit": {"type": "integer", "default": 10},
                "labels": {"type": "array", "items": {"type": "string"}},
                "owner": {"type": ["string", "null"]},
            },
            "required": ["query"],
        },
    }

    tool_def = mcp_tool_to_definition("github", mcp_tool)

    assert tool_def.name == "mcp_github_search_repositories"
    assert tool_def.description == "[github] Search GitHub repositories"
    assert tool_def.tool_class == ToolClass.APPROVAL_REQUIRED
    assert tool_def.category == "mcp"
    assert tool_def.input_schema == mcp_tool["inputSchema"]

    params = {p.name: p for p in tool_def.parameters}
    assert params["query"].required is True
    assert params["limit"].default == 10
    assert params["labels"].json_schema == {"type": "array", "items": {"type": "string"}}
    assert params["owner"].type == "string"


def test_definition_without_schema_or_description() -> None:
    tool_def = mcp_tool_to_definition("fs", {"name": "ping"})

    assert tool_def.description == "[fs] MCP tool ping"
    assert tool_def.parameters == []
    assert tool_def.input_schema == {"type": "object", "properties": {}}


def test_schema_reaches_model_unchanged() -> None:
    schema = {"type": "object", "properties": {"q": {"type": "string"}}, "required": ["q"]}
    registry = ToolRegistry()
    registry.register(mcp_tool_to_definition("srv", {"name": "q", "inputSchema": schema}), lambda **_: {})

    (llm_tool,) = registry.get_tool_definitions_for_llm()
    assert llm_tool["function"]["parameters"] == schema
