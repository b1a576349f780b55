"""Core types for the orchestrator.

This module defines the data structures used throughout the orchestrator:
- Role: Conversation roles
- Turn: One immutable entry in the conversation log
- SessionState: Per-session mutable state (backend, model, flags)
- ApprovalDecision: The user's answer to an approval request
- RunOutcome / RunResult: How a run ended
"""

from dataclasses import dataclass, field, replace
from enum import Enum

from exa_agent.backends.types import BackendType, ToolCallRequest, Usage


class Role(str, Enum):
    """Conversation roles, named as the chat-completions wire format names them."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True)
class Turn:
    """One entry in the conversation log.

    Attributes:
        role: Who produced the turn.
        content: Text content (tool turns carry the JSON-serialized ToolResult).
        tool_calls: Tool calls requested by an assistant turn.
        tool_call_id: For tool turns, the id of the request being answered.
    """

    role: Role
    content: str
    tool_calls: tuple[ToolCallRequest, ...] | None = None
    tool_call_id: str | None = None

    def __post_init__(self) -> None:
        if self.tool_calls is not None:
            if self.role != Role.ASSISTANT:
                raise ValueError("Only assistant turns carry tool calls")
            ids = [tc.id for tc in self.tool_calls]
            if len(ids) != len(set(ids)):
                raise ValueError(f"Duplicate tool call ids in one assistant turn: {ids}")
        if self.role == Role.TOOL and not self.tool_call_id:
            raise ValueError("Tool turns require a tool_call_id")

    @classmethod
    def system(cls, content: str) -> "Turn":
        return cls(Role.SYSTEM, content)

    @classmethod
    def user(cls, content: str) -> "Turn":
        return cls(Role.USER, content)

    @classmethod
    def assistant(
        cls, content: str, tool_calls: list[ToolCallRequest] | tuple[ToolCallRequest, ...] | None = None
    ) -> "Turn":
        return cls(Role.ASSISTANT, content, tuple(tool_calls) if tool_calls else None)

    @classmethod
    def tool(cls, tool_call_id: str, content: str) -> "Turn":
        return cls(Role.TOOL, content, tool_call_id=tool_call_id)

    def with_content(self, content: str) -> "Turn":
        return replace(self, content=content)


@dataclass(frozen=True)
class ApprovalDecision:
    """The user's answer to an approval request.

    Attributes:
        approved: Whether the tool call may run.
        auto_approve_session: Skip future prompts for approval-required tools
            in this session. Ignored for dangerous tools.
    """

    approved: bool
    auto_approve_session: bool = False

    @classmethod
    def reject(cls) -> "ApprovalDecision":
        return cls(approved=False)


@dataclass
class SessionState:
    """Mutable state of one interactive session.

    ``session_auto_approve`` survives ``clear_history``; only a new session
    resets it. ``interrupted`` is cleared at the start of every run.
    """

    backend: BackendType
    model: str
    temperature: float = 1.0
    max_tokens: int = 8000
    session_auto_approve: bool = False
    request_count: int = 0
    interrupted: bool = False


class RunOutcome(str, Enum):
    """How a call to ``Orchestrator.run`` ended."""

    COMPLETED = "completed"
    TOOL_REJECTED = "tool_rejected"
    INTERRUPTED = "interrupted"
    FAILED = "failed"
    MAX_ITERATIONS = "max_iterations"


@dataclass
class RunResult:
    """Summary of one run, returned to the host.

    Attributes:
        outcome: How the run ended.
        final_text: The final assistant message, when the run completed.
        iterations: Backend calls made during the run.
        trace_id: Trace id used on every log event of the run.
        usage: Usage reports received, in order.
    """

    outcome: RunOutcome
    final_text: str | None = None
    iterations: int = 0
    trace_id: str | None = None
    usage: list[Usage] = field(default_factory=list)
