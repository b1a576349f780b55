"""System prompt and project context for the coding assistant.

The system prompt names the model and backend, so it is rebuilt whenever
either changes. ``SYSTEM_PROMPT_MARKER`` identifies the turn to rewrite.
"""

from pathlib import Path
from typing import Any

from exa_agent.config.settings import AppConfig
from exa_agent.telemetry import PROJECT_CONTEXT_LOADED, get_logger

log = get_logger(__name__)

SYSTEM_PROMPT_MARKER = "coding assistant"
DEFAULT_CONTEXT_FILE = Path(".exa") / "context.md"
TRUNCATION_SUFFIX = "\n... [truncated]"

# ============================================================================
# Coding assistant system prompt
# ============================================================================

SYSTEM_PROMPT_TEMPLATE = """You are a coding assistant powered by {model} on {backend}. Tools are available to you. Use tools to complete tasks.

CRITICAL: For ANY implementation request (building apps, creating components, writing code), you MUST use tools to create actual files. NEVER provide text-only responses for coding tasks that require implementation.

Use tools to:
- Read and understand files (read_file, list_files, search_files)
- Create, edit, and manage files (create_file, edit_file, list_files, read_file, delete_file)
- Execute commands (execute_command)
- Look things up on the web (web_search, web_fetch)
- Help you understand the codebase before answering the user's question

IMPLEMENTATION TASK RULES:
- When asked to "build", "create", "implement", or "make" anything: USE TOOLS TO CREATE FILES
- Start immediately with create_file or list_files, not with text explanations
- Create actual working code, not example snippets
- Build incrementally: create core files first, then add features
- NEVER respond with "here's how you could do it"; do it with tools

FILE OPERATION DECISION TREE:
- ALWAYS check if a file exists FIRST using list_files or read_file
- Need to modify existing content? read_file first, then edit_file (never create_file)
- Need to create something new? list_files to check existence first, then create_file
- File exists but should be replaced completely? create_file with overwrite=true
- MANDATORY: read_file before any edit_file or delete_file operation

IMPORTANT TOOL USAGE RULES:
  - Always use the "file_path" parameter for file operations, never "path"
  - Check tool schemas carefully before calling functions
  - Required parameters are listed in the "required" array
  - Text matching in edit_file must be EXACT (including whitespace)
  - NEVER prefix tool names with "repo_browser."

COMMAND EXECUTION SAFETY:
  - Only use execute_command for commands that COMPLETE QUICKLY (tests, builds, short scripts)
  - NEVER run commands that start long-running processes (servers, daemons, web apps)
  - Examples of AVOIDED commands: "flask run", "npm start", "python -m http.server"
  - Examples of SAFE commands: "pytest", "npm test", "ls -la", "git status"
  - If a long-running command is needed, give it to the user at the end of the response instead of calling a tool, with a description of what it is for.

IMPORTANT: When creating files, keep them focused and reasonably sized. For large applications:
1. Start with a simple, minimal version first
2. Create separate files for different components
3. Build incrementally rather than generating massive files at once

Be direct and efficient.

Don't generate markdown tables.

When asked about your identity, you should identify yourself as a coding assistant running on the {model} model via {backend}."""


def build_system_prompt(model: str, backend_display_name: str) -> str:
    """Render the coding assistant system prompt.

    Args:
        model: Model id in use.
        backend_display_name: Human-readable backend name (e.g. "Groq").
    """
    return SYSTEM_PROMPT_TEMPLATE.format(model=model, backend=backend_display_name)


def load_project_context(settings: AppConfig, cwd: Path | None = None) -> str | None:
    """Load the project context file as a system prompt addendum.

    Reads ``settings.context_file`` if set, otherwise ``.exa/context.md`` under
    ``settings.context_dir`` (or the working directory). Content beyond
    ``settings.context_limit`` characters is cut off.

    Returns:
        The content of the context system turn, or None if there is no file or
        it cannot be read.
    """
    explicit: Path | None = settings.context_file
    if explicit is not None:
        path = Path(explicit).expanduser()
        source = str(path)
    else:
        base = Path(settings.context_dir).expanduser() if settings.context_dir else (cwd or Path.cwd())
        path = base / DEFAULT_CONTEXT_FILE
        source = DEFAULT_CONTEXT_FILE.as_posix()

    try:
        if not path.is_file():
            return None
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        log.warning("project_context_load_failed", path=str(path), error=str(e))
        return None

    limit = settings.context_limit
    truncated = len(text) > limit
    if truncated:
        text = text[:limit] + TRUNCATION_SUFFIX

    log.info(PROJECT_CONTEXT_LOADED, path=str(path), chars=len(text), truncated=truncated)
    return (
        f"Project context loaded from {source}. Use this as high-level reference "
        f"when reasoning about the repository.\n\n{text}"
    )


def describe_backend(backend: Any) -> str:
    """Display name of a backend instance, falling back to its type name."""
    return getattr(backend, "display_name", None) or getattr(backend, "name", "unknown")
