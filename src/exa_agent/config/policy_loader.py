"""Load and validate tool approval-class overrides from YAML.

The file is optional. It lets a user move tools between the approval classes
without code changes, for example to make ``execute_command`` merely
approval-required in a sandbox, or to mark an MCP tool as dangerous::

    safe: [read_file, list_files]
    approval_required: [execute_command]
    dangerous: [mcp_github_delete_repo]
"""

from pathlib import Path

import structlog
from pydantic import BaseModel, Field, ValidationError, model_validator

from exa_agent.config.loader import ConfigLoadError, load_yaml_file

log = structlog.get_logger(__name__)


class ToolPolicyConfigError(ConfigLoadError):
    """Raised when the tool policy file cannot be loaded or validated."""

    pass


class ToolPolicyConfig(BaseModel):
    """Tool name lists per approval class."""

    safe: list[str] = Field(default_factory=list, description="Never gated")
    approval_required: list[str] = Field(
        default_factory=list, description="Gated unless session auto-approve is on"
    )
    dangerous: list[str] = Field(default_factory=list, description="Always gated")

    @model_validator(mode="after")
    def check_disjoint(self) -> "ToolPolicyConfig":
        """A tool may appear in at most one class."""
        seen: dict[str, str] = {}
        for cls_name in ("safe", "approval_required", "dangerous"):
            for tool in getattr(self, cls_name):
                if tool in seen and seen[tool] != cls_name:
                    raise ValueError(
                        f"Tool '{tool}' listed under both '{seen[tool]}' and '{cls_name}'"
                    )
                seen[tool] = cls_name
        return self

    def overrides(self) -> dict[str, str]:
        """Flatten to a mapping of tool name to class name."""
        result: dict[str, str] = {}
        for cls_name in ("safe", "approval_required", "dangerous"):
            for tool in getattr(self, cls_name):
                result[tool] = cls_name
        return result


def load_tool_policy_config(path: Path | str) -> ToolPolicyConfig:
    """Load and validate a tool policy override file.

    Args:
        path: Path to the YAML file.

    Returns:
        Validated ToolPolicyConfig.

    Raises:
        ToolPolicyConfigError: If the file is missing, malformed, or lists a tool twice.
    """
    file_path = Path(path).expanduser()
    data = load_yaml_file(file_path, error_class=ToolPolicyConfigError)

    try:
        config = ToolPolicyConfig.model_validate(data)
    except ValidationError as e:
        raise ToolPolicyConfigError(f"Invalid tool policy in {file_path}: {e}") from e

    log.info(
        "tool_policy_loaded",
        path=str(file_path),
        safe=len(config.safe),
        approval_required=len(config.approval_required),
        dangerous=len(config.dangerous),
    )
    return config
