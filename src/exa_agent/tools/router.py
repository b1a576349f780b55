"""Tool routing: name resolution, argument parsing and execution.

ToolRouter is the only way the orchestrator runs a tool. It never raises for
tool-level problems; every outcome comes back as a ToolResult that the
orchestrator feeds into the conversation as one tool turn.
"""

import asyncio
import inspect
import json
import time
from typing import Any

from exa_agent.telemetry import (
    TOOL_ARGUMENTS_INVALID,
    TOOL_CALL_COMPLETED,
    TOOL_CALL_FAILED,
    TOOL_CALL_STARTED,
    TraceContext,
    get_logger,
)
from exa_agent.tools.registry import ToolRegistry
from exa_agent.tools.types import ToolDefinition, ToolResult

log = get_logger(__name__)

# Some models prefix tool names with a namespace that does not exist
HALLUCINATED_PREFIX = "repo_browser."


class ToolExecutionError(Exception):
    """Raised by executors for expected failures (file not found, bad input...).

    The router turns it into a failed ToolResult carrying the message.
    """

    pass


class ToolArgumentError(ValueError):
    """Raised when raw tool-call arguments cannot be parsed into an object."""

    pass


def resolve_tool_name(name: str) -> str:
    """Strip the hallucinated ``repo_browser.`` namespace from a tool name."""
    if name.startswith(HALLUCINATED_PREFIX):
        return name[len(HALLUCINATED_PREFIX) :]
    return name


def parse_tool_arguments(raw_arguments: str | dict[str, Any] | None) -> dict[str, Any]:
    """Parse the raw JSON argument string of a tool call.

    Raises:
        ToolArgumentError: If the text is not valid JSON or not an object.
    """
    if raw_arguments is None:
        return {}
    if isinstance(raw_arguments, dict):
        return raw_arguments
    if not raw_arguments.strip():
        return {}
    try:
        parsed = json.loads(raw_arguments)
    except json.JSONDecodeError as e:
        raise ToolArgumentError(str(e)) from e
    if not isinstance(parsed, dict):
        raise ToolArgumentError(f"expected a JSON object, got {type(parsed).__name__}")
    return parsed


def truncated_arguments_message(error: Exception) -> str:
    return (
        f"Tool arguments truncated: {error}. "
        "Please break this into smaller pieces or use shorter content."
    )


def prepare_tool_call(
    name: str, raw_arguments: str | dict[str, Any] | None
) -> tuple[str, dict[str, Any] | ToolResult]:
    """Resolve a tool call's name and parse its raw arguments.

    Returns:
        Tuple of (resolved name, parsed arguments). When the arguments cannot
        be parsed the second item is the failed ToolResult to report instead.
    """
    tool_name = resolve_tool_name(name)
    try:
        return tool_name, parse_tool_arguments(raw_arguments)
    except ToolArgumentError as e:
        log.warning(TOOL_ARGUMENTS_INVALID, tool_name=tool_name, error=str(e))
        return tool_name, ToolResult.failure(tool_name, truncated_arguments_message(e))


def _declared_parameters(tool_def: ToolDefinition) -> set[str] | None:
    """Names the executor accepts, or None when any key should pass through."""
    if tool_def.input_schema is not None:
        properties = tool_def.input_schema.get("properties")
        return set(properties) if isinstance(properties, dict) else None
    return {param.name for param in tool_def.parameters}


class ToolRouter:
    """Resolves tool names to executors and runs them.

    Args:
        registry: Registry holding built-in and MCP tools.
    """

    def __init__(self, registry: ToolRegistry) -> None:
        self.registry = registry

    def has_tool(self, name: str) -> bool:
        return self.registry.has_tool(resolve_tool_name(name))

    def get_definition(self, name: str) -> ToolDefinition | None:
        return self.registry.get_definition(resolve_tool_name(name))

    async def invoke(
        self,
        name: str,
        raw_arguments: str | dict[str, Any] | None,
        trace_ctx: TraceContext | None = None,
    ) -> ToolResult:
        """Parse raw arguments and execute a tool.

        This is the entry point for hosts that run tools without an approval
        step. The orchestrator calls :func:`prepare_tool_call` and
        :meth:`execute` separately because approval sits between the two.
        Argument parse failures come back as a failed ToolResult with the
        "Tool arguments truncated" message, never as an exception.
        """
        tool_name, arguments = prepare_tool_call(name, raw_arguments)
        if isinstance(arguments, ToolResult):
            return arguments
        return await self.execute(tool_name, arguments, trace_ctx)

    async def execute(
        self,
        name: str,
        arguments: dict[str, Any],
        trace_ctx: TraceContext | None = None,
    ) -> ToolResult:
        """Execute a tool with already-parsed arguments.

        Args:
            name: Tool name (the ``repo_browser.`` prefix is tolerated).
            arguments: Tool arguments (keyword arguments for executor).
            trace_ctx: Trace context for telemetry.

        Returns:
            ToolResult with execution outcome.
        """
        tool_name = resolve_tool_name(name)
        trace_ctx = trace_ctx or TraceContext.new_trace()

        entry = self.registry.get_tool(tool_name)
        if entry is None:
            available = self.registry.list_tool_names()
            error_msg = f"Unknown tool '{tool_name}'. Available tools: {', '.join(available)}"
            log.warning(TOOL_CALL_FAILED, tool_name=tool_name, error=error_msg, trace_id=trace_ctx.trace_id)
            return ToolResult.failure(tool_name, error_msg)

        tool_def, executor = entry

        # Drop parameters the tool does not declare; models invent extras
        declared = _declared_parameters(tool_def)
        if declared is None:
            filtered_arguments = dict(arguments)
        else:
            filtered_arguments = {k: v for k, v in arguments.items() if k in declared}
            invalid_params = set(arguments) - declared
            if invalid_params:
                log.warning(
                    "tool_call_invalid_parameters_filtered",
                    tool_name=tool_name,
                    invalid_parameters=sorted(invalid_params),
                    trace_id=trace_ctx.trace_id,
                )

        missing = [
            p.name for p in tool_def.parameters if p.required and p.name not in filtered_arguments
        ]
        if missing:
            error_msg = f"Missing required parameter(s) for {tool_name}: {', '.join(missing)}"
            log.warning(TOOL_CALL_FAILED, tool_name=tool_name, error=error_msg, trace_id=trace_ctx.trace_id)
            return ToolResult.failure(tool_name, error_msg)

        _, span_id = trace_ctx.new_span()
        log.info(
            TOOL_CALL_STARTED,
            tool_name=tool_name,
            arguments=filtered_arguments,
            trace_id=trace_ctx.trace_id,
            span_id=span_id,
        )

        start_time = time.monotonic()
        try:
            if inspect.iscoroutinefunction(executor):
                payload = await executor(**filtered_arguments)
            else:
                # Sync executor - run in a worker thread to keep the loop free
                payload = await asyncio.to_thread(executor, **filtered_arguments)
        except ToolExecutionError as e:
            latency_ms = (time.monotonic() - start_time) * 1000
            log.warning(
                TOOL_CALL_FAILED,
                tool_name=tool_name,
                error=str(e),
                latency_ms=latency_ms,
                trace_id=trace_ctx.trace_id,
                span_id=span_id,
            )
            return ToolResult(tool_name=tool_name, success=False, error=str(e), latency_ms=latency_ms)
        except Exception as e:
            latency_ms = (time.monotonic() - start_time) * 1000
            log.error(
                TOOL_CALL_FAILED,
                tool_name=tool_name,
                error=str(e),
                latency_ms=latency_ms,
                trace_id=trace_ctx.trace_id,
                span_id=span_id,
                exc_info=True,
            )
            return ToolResult(
                tool_name=tool_name,
                success=False,
                error=f"Tool execution error: {e}",
                latency_ms=latency_ms,
            )

        latency_ms = (time.monotonic() - start_time) * 1000
        log.info(
            TOOL_CALL_COMPLETED,
            tool_name=tool_name,
            success=True,
            latency_ms=latency_ms,
            trace_id=trace_ctx.trace_id,
            span_id=span_id,
        )
        return ToolResult(tool_name=tool_name, success=True, payload=payload, latency_ms=latency_ms)
