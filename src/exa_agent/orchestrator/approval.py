"""Approval gate for tool calls.

Gated tools suspend the run until the user answers. Approval-required tools
can be approved for the rest of the session; dangerous tools are asked about
every time. Without an approval handler every gated call is rejected.
"""

import asyncio
from typing import Any, Callable

from exa_agent.orchestrator.callbacks import OrchestratorCallbacks
from exa_agent.orchestrator.types import ApprovalDecision, SessionState
from exa_agent.telemetry import (
    APPROVAL_DENIED,
    APPROVAL_GRANTED,
    APPROVAL_REQUIRED,
    APPROVAL_TIMED_OUT,
    SESSION_AUTO_APPROVE_ENABLED,
    get_logger,
)
from exa_agent.tools.types import ToolClass, ToolResult

INTERRUPTED_MESSAGE = "Tool execution interrupted by user"
CANCELED_MESSAGE = "Tool execution canceled by user"
TIMED_OUT_MESSAGE = "Approval timed out"


class ApprovalGate:
    """Decides whether a tool call may run.

    Args:
        state: Session state; holds the session auto-approve flag.
        callbacks: Host callbacks; ``on_tool_approval`` answers requests.
        timeout_seconds: Give up waiting after this long (None waits forever).
        logger: Bound logger of the owning orchestrator.
    """

    def __init__(
        self,
        state: SessionState,
        callbacks: OrchestratorCallbacks,
        *,
        timeout_seconds: float | None = None,
        logger: Any = None,
    ) -> None:
        self.state = state
        self.callbacks = callbacks
        self.timeout_seconds = timeout_seconds
        self.log = logger or get_logger(__name__)

    def needs_approval(self, tool_class: ToolClass) -> bool:
        if tool_class == ToolClass.SAFE:
            return False
        if tool_class == ToolClass.APPROVAL_REQUIRED and self.state.session_auto_approve:
            return False
        return True

    async def request_approval(
        self, tool_name: str, args: dict[str, Any], tool_class: ToolClass
    ) -> ApprovalDecision:
        """Ask the host. Raises asyncio.TimeoutError when the wait expires."""
        if self.callbacks.on_tool_approval is None:
            return ApprovalDecision.reject()
        request = self.callbacks.tool_approval(tool_name, args)
        if self.timeout_seconds is None:
            return await request
        return await asyncio.wait_for(request, timeout=self.timeout_seconds)

    async def authorize(
        self,
        tool_name: str,
        args: dict[str, Any],
        tool_class: ToolClass,
        is_interrupted: Callable[[], bool],
        trace_id: str | None = None,
    ) -> ToolResult | None:
        """Run the approval protocol for one call.

        Returns:
            None when the call may run, otherwise the rejection ToolResult.
        """
        if not self.needs_approval(tool_class):
            return None

        if is_interrupted():
            return ToolResult.failure(tool_name, INTERRUPTED_MESSAGE, user_rejected=True)

        self.log.info(APPROVAL_REQUIRED, tool_name=tool_name, tool_class=tool_class.value, trace_id=trace_id)
        try:
            decision = await self.request_approval(tool_name, args, tool_class)
        except asyncio.TimeoutError:
            self.log.warning(
                APPROVAL_TIMED_OUT,
                tool_name=tool_name,
                timeout_seconds=self.timeout_seconds,
                trace_id=trace_id,
            )
            return ToolResult.failure(tool_name, TIMED_OUT_MESSAGE, user_rejected=True)

        if is_interrupted():
            return ToolResult.failure(tool_name, INTERRUPTED_MESSAGE, user_rejected=True)

        if (
            decision.auto_approve_session
            and tool_class == ToolClass.APPROVAL_REQUIRED
            and not self.state.session_auto_approve
        ):
            self.state.session_auto_approve = True
            self.log.info(SESSION_AUTO_APPROVE_ENABLED, tool_name=tool_name, trace_id=trace_id)

        if not decision.approved:
            self.log.info(APPROVAL_DENIED, tool_name=tool_name, trace_id=trace_id)
            return ToolResult.failure(tool_name, CANCELED_MESSAGE, user_rejected=True)

        self.log.info(APPROVAL_GRANTED, tool_name=tool_name, trace_id=trace_id)
        return None
