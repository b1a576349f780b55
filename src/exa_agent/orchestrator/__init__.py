"""Orchestrator module: the conversation state machine.

This module provides the engine that drives iterative model and tool
exchanges, together with its collaborators: the conversation log, tool
policy, approval gate and cancellation controller.
"""

from exa_agent.orchestrator.approval import ApprovalGate
from exa_agent.orchestrator.callbacks import OrchestratorCallbacks
from exa_agent.orchestrator.cancellation import (
    CancellationController,
    CancellationToken,
    OperationCancelled,
)
from exa_agent.orchestrator.conversation import ConversationInvariantError, ConversationLog
from exa_agent.orchestrator.errors import (
    AuthenticationFatalError,
    BackendInitializationError,
    BackendSwitchError,
    OrchestratorError,
    RunInProgressError,
)
from exa_agent.orchestrator.orchestrator import Orchestrator
from exa_agent.orchestrator.policy import ReadTracker, ToolPolicy
from exa_agent.orchestrator.prompts import build_system_prompt, load_project_context
from exa_agent.orchestrator.types import (
    ApprovalDecision,
    Role,
    RunOutcome,
    RunResult,
    SessionState,
    Turn,
)

__all__ = [
    # Public API
    "Orchestrator",
    "OrchestratorCallbacks",
    # Types
    "Role",
    "Turn",
    "SessionState",
    "ApprovalDecision",
    "RunOutcome",
    "RunResult",
    # Collaborators
    "ConversationLog",
    "ToolPolicy",
    "ReadTracker",
    "ApprovalGate",
    "CancellationController",
    "CancellationToken",
    "build_system_prompt",
    "load_project_context",
    # Errors
    "OrchestratorError",
    "BackendInitializationError",
    "BackendSwitchError",
    "AuthenticationFatalError",
    "RunInProgressError",
    "ConversationInvariantError",
    "OperationCancelled",
]
