"""Tool classification and the read-before-write precondition.

ToolPolicy decides which approval class a tool call falls into. ReadTracker
remembers which files the model has read in this session so that file
mutations can be refused until the model has looked at the current content.
"""

from pathlib import Path
from typing import Any

from exa_agent.config.policy_loader import ToolPolicyConfig
from exa_agent.config.validators import resolve_path
from exa_agent.tools.types import ToolClass, ToolDefinition


def read_before_edit_error(file_path: str) -> str:
    return f"File must be read before editing. Use read_file tool first: {file_path}"


class ReadTracker:
    """Session-scoped set of resolved paths the model has read."""

    def __init__(self) -> None:
        self._paths: set[Path] = set()

    def __contains__(self, file_path: object) -> bool:
        if not isinstance(file_path, (str, Path)):
            return False
        return self.has_read(file_path)

    def __len__(self) -> int:
        return len(self._paths)

    @staticmethod
    def _key(file_path: str | Path) -> Path:
        return resolve_path(file_path)

    def record(self, file_path: str | Path) -> None:
        self._paths.add(self._key(file_path))

    def has_read(self, file_path: str | Path) -> bool:
        return self._key(file_path) in self._paths

    def clear(self) -> None:
        self._paths.clear()


class ToolPolicy:
    """Classifies tools into safe, approval-required and dangerous.

    The class declared on the tool definition is the default; an optional
    override file (see :mod:`exa_agent.config.policy_loader`) wins over it.
    Tools without a definition are treated as dangerous.

    Args:
        overrides: Optional per-tool class overrides.
    """

    def __init__(self, overrides: ToolPolicyConfig | None = None) -> None:
        self._overrides: dict[str, ToolClass] = {}
        if overrides is not None:
            self._overrides = {
                name: ToolClass(cls_name) for name, cls_name in overrides.overrides().items()
            }

    def classify(self, tool_name: str, definition: ToolDefinition | None) -> ToolClass:
        if tool_name in self._overrides:
            return self._overrides[tool_name]
        if definition is None:
            return ToolClass.DANGEROUS
        return definition.tool_class

    @staticmethod
    def check_read_before_write(
        definition: ToolDefinition | None, arguments: dict[str, Any], tracker: ReadTracker
    ) -> str | None:
        """Return an error message when a mutation targets an unread file.

        Only existing regular files need a prior read: creating a new file or
        touching a directory has no content to look at first.
        """
        if definition is None or not definition.mutates_path:
            return None
        target = arguments.get(definition.mutates_path)
        if not isinstance(target, str) or not target:
            return None
        if not resolve_path(target).is_file():
            return None
        if tracker.has_read(target):
            return None
        return read_before_edit_error(target)

    @staticmethod
    def record_read(
        definition: ToolDefinition | None, arguments: dict[str, Any], tracker: ReadTracker
    ) -> None:
        """Remember the file a successful read tool looked at."""
        if definition is None or not definition.reads_path:
            return
        target = arguments.get(definition.reads_path)
        if isinstance(target, str) and target:
            tracker.record(target)
