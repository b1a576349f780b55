"""Telemetry module for structured logging and trace correlation.

This module provides:
- TraceContext for run correlation
- Structured logging via structlog
- Semantic event constants
"""

from exa_agent.telemetry.events import (
    APPROVAL_DENIED,
    APPROVAL_GRANTED,
    APPROVAL_REQUIRED,
    APPROVAL_TIMED_OUT,
    BACKEND_AUTH_FAILED,
    BACKEND_CALL_CANCELLED,
    BACKEND_CALL_COMPLETED,
    BACKEND_CALL_ERROR,
    BACKEND_CALL_STARTED,
    BACKEND_FALLBACK,
    BACKEND_INIT_FAILED,
    BACKEND_INITIALIZED,
    BACKEND_ROLLBACK_FAILED,
    BACKEND_SWITCH_FAILED,
    BACKEND_SWITCHED,
    HISTORY_CLEARED,
    INTERRUPT_REQUESTED,
    ITERATION_STARTED,
    MAX_ITERATIONS_REACHED,
    MCP_SERVER_CONNECTED,
    MCP_SERVER_FAILED,
    MCP_SHUTDOWN,
    MCP_TOOL_REGISTERED,
    PROJECT_CONTEXT_LOADED,
    RUN_ABORTED,
    RUN_COMPLETED,
    RUN_INTERRUPTED,
    RUN_REJECTED,
    RUN_STARTED,
    SESSION_AUTO_APPROVE_ENABLED,
    SYSTEM_PROMPT_REWRITTEN,
    TOOL_ARGUMENTS_INVALID,
    TOOL_CALL_COMPLETED,
    TOOL_CALL_FAILED,
    TOOL_CALL_STARTED,
    TOOL_PRECONDITION_FAILED,
)
from exa_agent.telemetry.logger import configure_logging, get_logger
from exa_agent.telemetry.trace import TraceContext

__all__ = [
    # Core exports
    "TraceContext",
    "get_logger",
    "configure_logging",
    # Event constants
    "RUN_STARTED",
    "RUN_COMPLETED",
    "RUN_REJECTED",
    "RUN_INTERRUPTED",
    "RUN_ABORTED",
    "ITERATION_STARTED",
    "MAX_ITERATIONS_REACHED",
    "HISTORY_CLEARED",
    "SYSTEM_PROMPT_REWRITTEN",
    "PROJECT_CONTEXT_LOADED",
    "BACKEND_CALL_STARTED",
    "BACKEND_CALL_COMPLETED",
    "BACKEND_CALL_ERROR",
    "BACKEND_CALL_CANCELLED",
    "BACKEND_AUTH_FAILED",
    "BACKEND_INITIALIZED",
    "BACKEND_INIT_FAILED",
    "BACKEND_FALLBACK",
    "BACKEND_SWITCHED",
    "BACKEND_SWITCH_FAILED",
    "BACKEND_ROLLBACK_FAILED",
    "TOOL_CALL_STARTED",
    "TOOL_CALL_COMPLETED",
    "TOOL_CALL_FAILED",
    "TOOL_ARGUMENTS_INVALID",
    "TOOL_PRECONDITION_FAILED",
    "APPROVAL_REQUIRED",
    "APPROVAL_GRANTED",
    "APPROVAL_DENIED",
    "APPROVAL_TIMED_OUT",
    "SESSION_AUTO_APPROVE_ENABLED",
    "INTERRUPT_REQUESTED",
    "MCP_SERVER_CONNECTED",
    "MCP_SERVER_FAILED",
    "MCP_TOOL_REGISTERED",
    "MCP_SHUTDOWN",
]
