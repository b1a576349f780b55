"""Type definitions for the tool layer.

This module defines the Pydantic models for tool definitions, parameters,
and results, and the approval classes every tool belongs to.
"""

import json
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field


class ToolClass(str, Enum):
    """Approval class of a tool.

    SAFE tools run without confirmation. APPROVAL_REQUIRED tools are gated
    unless the user chose "approve for the rest of the session". DANGEROUS
    tools are gated on every call.
    """

    SAFE = "safe"
    APPROVAL_REQUIRED = "approval_required"
    DANGEROUS = "dangerous"


class ToolParameter(BaseModel):
    """Parameter definition for a tool."""

    name: str = Field(..., description="Parameter name")
    type: Literal["string", "integer", "number", "boolean", "object", "array"] = Field(
        ..., description="Parameter type"
    )
    description: str = Field(..., description="Parameter description for the model")
    required: bool = Field(True, description="Whether parameter is required")
    default: Any | None = Field(None, description="Default value if not required")
    enum: list[str] | None = Field(None, description="Allowed values for string parameters")
    # Full JSON Schema for complex types (array items, object properties, etc.)
    json_schema: dict[str, Any] | None = Field(
        None, description="Full JSON Schema for complex nested types"
    )


class ToolDefinition(BaseModel):
    """Tool definition for model function calling plus policy metadata."""

    name: str = Field(..., description="Tool name (e.g., 'read_file', 'execute_command')")
    description: str = Field(..., description="Clear description for the model")
    parameters: list[ToolParameter] = Field(default_factory=list, description="Tool parameters")
    tool_class: ToolClass = Field(ToolClass.SAFE, description="Approval class")
    category: str = Field("general", description="Grouping for display (filesystem, web ...)")

    # Read-before-write bookkeeping: name of the path argument, if any
    reads_path: str | None = Field(
        None, description="Argument naming a file this tool reads (recorded for the session)"
    )
    mutates_path: str | None = Field(
        None, description="Argument naming a file this tool modifies (requires a prior read)"
    )

    # Passed through unchanged to the model (MCP tools ship their own JSON Schema)
    input_schema: dict[str, Any] | None = Field(
        None, description="Complete JSON Schema overriding 'parameters'"
    )


class ToolResult(BaseModel):
    """Result of one tool call, successful or not.

    Every result is wrapped into exactly one tool turn; ``to_content`` is the
    text the model sees.
    """

    tool_name: str = Field(..., description="Name of the executed tool")
    success: bool = Field(..., description="Whether tool execution succeeded")
    payload: Any | None = Field(None, description="Tool-specific output")
    error: str | None = Field(None, description="Error message if failed")
    user_rejected: bool = Field(False, description="The user declined or interrupted the call")
    latency_ms: float = Field(0.0, ge=0, description="Execution latency in milliseconds")

    @classmethod
    def failure(
        cls, tool_name: str, error: str, *, user_rejected: bool = False
    ) -> "ToolResult":
        return cls(tool_name=tool_name, success=False, error=error, user_rejected=user_rejected)

    def to_content(self) -> str:
        """Serialize for the tool turn."""
        body: dict[str, Any] = {"success": self.success}
        if self.payload is not None:
            body["result"] = self.payload
        if self.error is not None:
            body["error"] = self.error
        if self.user_rejected:
            body["user_rejected"] = True
        return json.dumps(body, ensure_ascii=False, default=str)

