"""Filesystem tools for reading and manipulating files.

This module provides the file tools the model uses to inspect and change the
working tree: read_file, list_files and search_files are safe; create_file and
edit_file need approval; delete_file is dangerous. Read-before-write is not
enforced here but by the orchestrator, which consults ``reads_path`` and
``mutates_path`` on the definitions below.
"""

import fnmatch
import os
import re
import shutil
from pathlib import Path
from typing import Any

from exa_agent.config.validators import resolve_path
from exa_agent.tools.router import ToolExecutionError
from exa_agent.tools.types import ToolClass, ToolDefinition, ToolParameter

# Directories that are never worth walking
IGNORED_DIRS = frozenset(
    {".git", "node_modules", "__pycache__", ".venv", "venv", ".mypy_cache", ".pytest_cache", "dist", "build"}
)
MAX_SEARCH_FILE_BYTES = 1024 * 1024
MAX_LIST_ENTRIES = 500


def _resolve(file_path: str) -> Path:
    if not isinstance(file_path, str) or not file_path.strip():
        raise ToolExecutionError("file_path must be a non-empty string")
    return resolve_path(os.path.expandvars(file_path))


def read_file_executor(
    file_path: str,
    start_line: int | None = None,
    end_line: int | None = None,
    max_size_mb: int = 10,
) -> dict[str, Any]:
    """Execute read_file tool.

    Reads a text file, optionally restricted to a 1-based inclusive line range.

    Args:
        file_path: Absolute or relative file path.
        start_line: First line to return (1-based).
        end_line: Last line to return (inclusive).
        max_size_mb: Maximum file size in MB (default: 10).

    Returns:
        Dictionary with the resolved path, content, line counts and size.

    Raises:
        ToolExecutionError: If the file is missing, not a file, too large or unreadable.
    """
    path = _resolve(file_path)

    if not path.exists():
        raise ToolExecutionError(f"File not found: {file_path}")
    if not path.is_file():
        raise ToolExecutionError(f"Path is not a file: {file_path}")

    file_size_bytes = path.stat().st_size
    max_size_bytes = max_size_mb * 1024 * 1024
    if file_size_bytes > max_size_bytes:
        raise ToolExecutionError(
            f"File size {file_size_bytes} bytes exceeds limit {max_size_bytes} bytes ({max_size_mb} MB)"
        )

    try:
        content = path.read_text(encoding="utf-8", errors="replace")
    except PermissionError as e:
        raise ToolExecutionError(f"Permission denied: {e}") from e

    lines = content.splitlines(keepends=True)
    total_lines = len(lines)
    if start_line is not None or end_line is not None:
        start = max(int(start_line or 1), 1)
        end = min(int(end_line or total_lines), total_lines)
        if start > end and total_lines:
            raise ToolExecutionError(
                f"Invalid line range {start}-{end} (file has {total_lines} lines)"
            )
        content = "".join(lines[start - 1 : end])
    else:
        start, end = 1, total_lines

    return {
        "file_path": str(path),
        "content": content,
        "total_lines": total_lines,
        "start_line": start,
        "end_line": end,
        "size_bytes": file_size_bytes,
    }


def list_files_executor(
    directory: str = ".",
    pattern: str = "*",
    recursive: bool = False,
    show_hidden: bool = False,
) -> dict[str, Any]:
    """Execute list_files tool.

    Lists entries of a directory, optionally recursively, filtered by a glob
    pattern on the entry name. Output is capped at MAX_LIST_ENTRIES.
    """
    root = _resolve(directory)
    if not root.exists():
        raise ToolExecutionError(f"Directory not found: {directory}")
    if not root.is_dir():
        raise ToolExecutionError(f"Path is not a directory: {directory}")

    entries: list[dict[str, Any]] = []
    truncated = False

    def visit(current: Path) -> None:
        nonlocal truncated
        try:
            children = sorted(current.iterdir(), key=lambda p: (not p.is_dir(), p.name.lower()))
        except PermissionError:
            return
        for child in children:
            if truncated:
                return
            if not show_hidden and child.name.startswith("."):
                continue
            is_dir = child.is_dir()
            if fnmatch.fnmatch(child.name, pattern):
                if len(entries) >= MAX_LIST_ENTRIES:
                    truncated = True
                    return
                entry: dict[str, Any] = {
                    "path": str(child.relative_to(root)),
                    "type": "directory" if is_dir else "file",
                }
                if not is_dir:
                    try:
                        entry["size_bytes"] = child.stat().st_size
                    except OSError:
                        pass
                entries.append(entry)
            if recursive and is_dir and not child.is_symlink() and child.name not in IGNORED_DIRS:
                visit(child)

    visit(root)
    return {
        "directory": str(root),
        "entries": entries,
        "count": len(entries),
        "truncated": truncated,
    }


def search_files_executor(
    pattern: str,
    directory: str = ".",
    file_pattern: str = "*",
    case_sensitive: bool = False,
    regex: bool = False,
    max_results: int = 100,
) -> dict[str, Any]:
    """Execute search_files tool.

    Searches file contents below ``directory`` for a text or regex pattern and
    returns matching lines with their line numbers.
    """
    root = _resolve(directory)
    if not root.is_dir():
        raise ToolExecutionError(f"Directory not found: {directory}")
    if not pattern:
        raise ToolExecutionError("Search pattern cannot be empty")

    flags = 0 if case_sensitive else re.IGNORECASE
    try:
        matcher = re.compile(pattern if regex else re.escape(pattern), flags)
    except re.error as e:
        raise ToolExecutionError(f"Invalid regular expression: {e}") from e

    matches: list[dict[str, Any]] = []
    files_searched = 0
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in IGNORED_DIRS and not d.startswith("."))
        for filename in sorted(filenames):
            if not fnmatch.fnmatch(filename, file_pattern):
                continue
            path = Path(dirpath) / filename
            try:
                if path.stat().st_size > MAX_SEARCH_FILE_BYTES:
                    continue
                text = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError):
                # Binary or unreadable
                continue
            files_searched += 1
            for line_no, line in enumerate(text.splitlines(), start=1):
                if matcher.search(line):
                    matches.append(
                        {
                            "file": str(path.relative_to(root)),
                            "line": line_no,
                            "text": line.strip()[:300],
                        }
                    )
                    if len(matches) >= max_results:
                        return {
                            "pattern": pattern,
                            "matches": matches,
                            "files_searched": files_searched,
                            "truncated": True,
                        }

    return {
        "pattern": pattern,
        "matches": matches,
        "files_searched": files_searched,
        "truncated": False,
    }


def create_file_executor(
    file_path: str,
    content: str = "",
    file_type: str = "file",
    overwrite: bool = False,
) -> dict[str, Any]:
    """Execute create_file tool.

    Creates a file (with parent directories) or a directory. Refuses to replace
    an existing file unless ``overwrite`` is true.
    """
    path = _resolve(file_path)

    if file_type == "directory":
        if path.exists() and not path.is_dir():
            raise ToolExecutionError(f"A file already exists at {file_path}")
        path.mkdir(parents=True, exist_ok=True)
        return {"file_path": str(path), "type": "directory", "created": True}

    if file_type != "file":
        raise ToolExecutionError(f"Invalid file_type '{file_type}'. Use 'file' or 'directory'")

    existed = path.exists()
    if existed and path.is_dir():
        raise ToolExecutionError(f"Path is a directory: {file_path}")
    if existed and not overwrite:
        raise ToolExecutionError(
            f"File already exists: {file_path}. Use edit_file to modify it or set overwrite=true"
        )

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return {
        "file_path": str(path),
        "type": "file",
        "overwritten": existed,
        "size_bytes": len(content.encode("utf-8")),
        "lines": content.count("\n") + (1 if content and not content.endswith("\n") else 0),
    }


def edit_file_executor(
    file_path: str,
    old_text: str,
    new_text: str,
    replace_all: bool = False,
) -> dict[str, Any]:
    """Execute edit_file tool.

    Replaces an exact text span. The match must be unique unless
    ``replace_all`` is set.
    """
    path = _resolve(file_path)
    if not path.is_file():
        raise ToolExecutionError(f"File not found: {file_path}")
    if not old_text:
        raise ToolExecutionError("old_text cannot be empty")

    original = path.read_text(encoding="utf-8")
    occurrences = original.count(old_text)
    if occurrences == 0:
        raise ToolExecutionError(
            f"Text not found in {file_path}. The old_text must match exactly, including whitespace"
        )
    if occurrences > 1 and not replace_all:
        raise ToolExecutionError(
            f"old_text matches {occurrences} locations in {file_path}. "
            "Include more surrounding context or set replace_all=true"
        )

    if replace_all:
        updated = original.replace(old_text, new_text)
    else:
        updated = original.replace(old_text, new_text, 1)
    path.write_text(updated, encoding="utf-8")

    return {
        "file_path": str(path),
        "replacements": occurrences if replace_all else 1,
    }


def delete_file_executor(file_path: str, recursive: bool = False) -> dict[str, Any]:
    """Execute delete_file tool."""
    path = _resolve(file_path)
    if not path.exists() and not path.is_symlink():
        raise ToolExecutionError(f"File not found: {file_path}")

    if path.is_dir() and not path.is_symlink():
        if any(path.iterdir()) and not recursive:
            raise ToolExecutionError(
                f"Directory is not empty: {file_path}. Set recursive=true to delete it"
            )
        shutil.rmtree(path)
        return {"file_path": str(path), "type": "directory", "deleted": True}

    path.unlink()
    return {"file_path": str(path), "type": "file", "deleted": True}


read_file_tool = ToolDefinition(
    name="read_file",
    description=(
        "Read the contents of a file. Optionally restrict to a line range. "
        "A file must be read before it can be edited or deleted."
    ),
    category="filesystem",
    tool_class=ToolClass.SAFE,
    reads_path="file_path",
    parameters=[
        ToolParameter(name="file_path", type="string", description="Absolute or relative file path"),
        ToolParameter(
            name="start_line",
            type="integer",
            description="First line to read (1-based)",
            required=False,
        ),
        ToolParameter(
            name="end_line",
            type="integer",
            description="Last line to read (inclusive)",
            required=False,
        ),
    ],
)

list_files_tool = ToolDefinition(
    name="list_files",
    description="List files and directories, optionally recursively and filtered by a glob pattern",
    category="filesystem",
    tool_class=ToolClass.SAFE,
    parameters=[
        ToolParameter(
            name="directory",
            type="string",
            description="Directory to list (default: current directory)",
            required=False,
            default=".",
        ),
        ToolParameter(
            name="pattern",
            type="string",
            description="Glob pattern for entry names, e.g. '*.py' (default: '*')",
            required=False,
            default="*",
        ),
        ToolParameter(
            name="recursive",
            type="boolean",
            description="Descend into subdirectories",
            required=False,
            default=False,
        ),
        ToolParameter(
            name="show_hidden",
            type="boolean",
            description="Include entries whose names start with '.'",
            required=False,
            default=False,
        ),
    ],
)

search_files_tool = ToolDefinition(
    name="search_files",
    description="Search file contents for text or a regular expression and return matching lines",
    category="filesystem",
    tool_class=ToolClass.SAFE,
    parameters=[
        ToolParameter(name="pattern", type="string", description="Text or regex to search for"),
        ToolParameter(
            name="directory",
            type="string",
            description="Directory to search (default: current directory)",
            required=False,
            default=".",
        ),
        ToolParameter(
            name="file_pattern",
            type="string",
            description="Glob restricting which files are searched, e.g. '*.ts'",
            required=False,
            default="*",
        ),
        ToolParameter(
            name="case_sensitive",
            type="boolean",
            description="Match case exactly",
            required=False,
            default=False,
        ),
        ToolParameter(
            name="regex",
            type="boolean",
            description="Treat pattern as a regular expression",
            required=False,
            default=False,
        ),
        ToolParameter(
            name="max_results",
            type="integer",
            description="Maximum number of matching lines (default: 100)",
            required=False,
            default=100,
        ),
    ],
)

create_file_tool = ToolDefinition(
    name="create_file",
    description=(
        "Create a new file with the given content, or a directory. "
        "Set overwrite=true to replace an existing file completely."
    ),
    category="filesystem",
    tool_class=ToolClass.APPROVAL_REQUIRED,
    mutates_path="file_path",
    parameters=[
        ToolParameter(name="file_path", type="string", description="Path of the file to create"),
        ToolParameter(
            name="content",
            type="string",
            description="File content",
            required=False,
            default="",
        ),
        ToolParameter(
            name="file_type",
            type="string",
            description="'file' or 'directory'",
            required=False,
            default="file",
            enum=["file", "directory"],
        ),
        ToolParameter(
            name="overwrite",
            type="boolean",
            description="Replace the file if it already exists",
            required=False,
            default=False,
        ),
    ],
)

edit_file_tool = ToolDefinition(
    name="edit_file",
    description=(
        "Replace an exact text span in an existing file. The file must have been "
        "read with read_file first. old_text must match exactly, including whitespace."
    ),
    category="filesystem",
    tool_class=ToolClass.APPROVAL_REQUIRED,
    mutates_path="file_path",
    parameters=[
        ToolParameter(name="file_path", type="string", description="Path of the file to edit"),
        ToolParameter(name="old_text", type="string", description="Exact text to replace"),
        ToolParameter(name="new_text", type="string", description="Replacement text"),
        ToolParameter(
            name="replace_all",
            type="boolean",
            description="Replace every occurrence instead of requiring a unique match",
            required=False,
            default=False,
        ),
    ],
)

delete_file_tool = ToolDefinition(
    name="delete_file",
    description="Delete a file or directory. The file must have been read first.",
    category="filesystem",
    tool_class=ToolClass.DANGEROUS,
    mutates_path="file_path",
    parameters=[
        ToolParameter(name="file_path", type="string", description="Path to delete"),
        ToolParameter(
            name="recursive",
            type="boolean",
            description="Delete a non-empty directory and everything in it",
            required=False,
            default=False,
        ),
    ],
)
