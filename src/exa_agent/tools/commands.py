"""Shell command tool.

``execute_command`` runs a shell command in a subprocess with a timeout. It is
classified dangerous, so every call goes through the approval gate.
"""

import asyncio
from typing import Any

from exa_agent.config.settings import get_settings
from exa_agent.config.validators import resolve_path
from exa_agent.telemetry import get_logger
from exa_agent.tools.router import ToolExecutionError
from exa_agent.tools.types import ToolClass, ToolDefinition, ToolParameter

log = get_logger(__name__)

MAX_OUTPUT_CHARS = 30_000


def _truncate(text: str, limit: int = MAX_OUTPUT_CHARS) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + f"\n... [truncated {len(text) - limit} characters]"


async def _terminate(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        proc.kill()
        await proc.wait()


async def execute_command_executor(
    command: str,
    working_directory: str | None = None,
    timeout: float | None = None,
) -> dict[str, Any]:
    """Execute execute_command tool.

    Args:
        command: Shell command line.
        working_directory: Directory to run in (default: current directory).
        timeout: Seconds before the process is killed. Defaults to
            ``command_timeout_seconds`` from settings.

    Returns:
        Dictionary with exit code, stdout and stderr.

    Raises:
        ToolExecutionError: On timeout, a bad working directory, or a non-zero exit.
    """
    if not command or not command.strip():
        raise ToolExecutionError("Command cannot be empty")

    cwd = None
    if working_directory:
        cwd = resolve_path(working_directory)
        if not cwd.is_dir():
            raise ToolExecutionError(f"Working directory not found: {working_directory}")

    limit = timeout if timeout and timeout > 0 else get_settings().command_timeout_seconds

    proc = await asyncio.create_subprocess_shell(
        command,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        stdin=asyncio.subprocess.DEVNULL,
        cwd=str(cwd) if cwd else None,
    )
    try:
        stdout_b, stderr_b = await asyncio.wait_for(proc.communicate(), timeout=limit)
    except asyncio.TimeoutError:
        await _terminate(proc)
        log.warning("command_timed_out", command=command, timeout_seconds=limit)
        raise ToolExecutionError(f"Command timed out after {limit:g} seconds: {command}") from None
    except asyncio.CancelledError:
        # The run was torn down; do not leave the child behind
        await _terminate(proc)
        raise

    stdout = _truncate(stdout_b.decode("utf-8", errors="replace"))
    stderr = _truncate(stderr_b.decode("utf-8", errors="replace"))

    if proc.returncode != 0:
        details = "\n".join(part for part in (stdout.strip(), stderr.strip()) if part)
        message = f"Command exited with code {proc.returncode}"
        raise ToolExecutionError(f"{message}:\n{details}" if details else message)

    return {
        "command": command,
        "exit_code": proc.returncode,
        "stdout": stdout,
        "stderr": stderr,
    }


execute_command_tool = ToolDefinition(
    name="execute_command",
    description=(
        "Run a shell command that completes quickly (tests, builds, git status, short scripts). "
        "Never start servers or other long-running processes."
    ),
    category="command",
    tool_class=ToolClass.DANGEROUS,
    parameters=[
        ToolParameter(name="command", type="string", description="Shell command to execute"),
        ToolParameter(
            name="working_directory",
            type="string",
            description="Directory to run the command in (default: current directory)",
            required=False,
        ),
        ToolParameter(
            name="timeout",
            type="number",
            description="Timeout in seconds (default: 120)",
            required=False,
        ),
    ],
)
