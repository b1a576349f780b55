"""Host-facing callbacks of the orchestrator.

A host (the CLI, a test, an IDE bridge) wires any subset of these. Each
callback may be a plain function or a coroutine function.
"""

import inspect
from dataclasses import dataclass
from typing import Any, Callable

from exa_agent.backends.types import Usage
from exa_agent.orchestrator.types import ApprovalDecision

Callback = Callable[..., Any]


async def call_callback(callback: Callback | None, *args: Any) -> Any:
    """Invoke a sync or async callback; a missing callback returns None."""
    if callback is None:
        return None
    result = callback(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


@dataclass
class OrchestratorCallbacks:
    """Callbacks the orchestrator fires during a run.

    Attributes:
        on_tool_start: ``(name, args)`` before a tool is checked and run.
        on_tool_end: ``(name, result)`` with the ToolResult once known.
        on_tool_approval: ``(name, args) -> ApprovalDecision`` for gated tools.
        on_thinking_text: ``(text, reasoning)`` when text accompanies tool calls.
        on_final_message: ``(text, reasoning)`` for the final answer.
        on_max_iterations_reached: ``(limit) -> bool``; True keeps going.
        on_usage: ``(Usage)`` after every backend call that reports usage.
        on_error: ``(message) -> bool``; True retries the failed backend call.
    """

    on_tool_start: Callback | None = None
    on_tool_end: Callback | None = None
    on_tool_approval: Callback | None = None
    on_thinking_text: Callback | None = None
    on_final_message: Callback | None = None
    on_max_iterations_reached: Callback | None = None
    on_usage: Callback | None = None
    on_error: Callback | None = None

    async def tool_start(self, name: str, args: dict[str, Any]) -> None:
        await call_callback(self.on_tool_start, name, args)

    async def tool_end(self, name: str, result: Any) -> None:
        await call_callback(self.on_tool_end, name, result)

    async def thinking_text(self, text: str, reasoning: str | None) -> None:
        await call_callback(self.on_thinking_text, text, reasoning)

    async def final_message(self, text: str, reasoning: str | None) -> None:
        await call_callback(self.on_final_message, text, reasoning)

    async def usage(self, usage: Usage) -> None:
        await call_callback(self.on_usage, usage)

    async def max_iterations_reached(self, limit: int) -> bool:
        return bool(await call_callback(self.on_max_iterations_reached, limit))

    async def error(self, message: str) -> bool:
        return bool(await call_callback(self.on_error, message))

    async def tool_approval(self, name: str, args: dict[str, Any]) -> ApprovalDecision:
        decision = await call_callback(self.on_tool_approval, name, args)
        if isinstance(decision, ApprovalDecision):
            return decision
        # Plain booleans are accepted for simple hosts
        return ApprovalDecision(approved=bool(decision))
