"""Semantic event constants for structured logging.

All log events should use these constants rather than magic strings to ensure
consistency and enable reliable querying of the JSON log files.
"""

# Orchestrator run lifecycle
RUN_STARTED = "run_started"
RUN_COMPLETED = "run_completed"
RUN_REJECTED = "run_rejected"
RUN_INTERRUPTED = "run_interrupted"
RUN_ABORTED = "run_aborted"
ITERATION_STARTED = "iteration_started"
MAX_ITERATIONS_REACHED = "max_iterations_reached"
HISTORY_CLEARED = "history_cleared"
SYSTEM_PROMPT_REWRITTEN = "system_prompt_rewritten"
PROJECT_CONTEXT_LOADED = "project_context_loaded"

# Backend events
BACKEND_CALL_STARTED = "backend_call_started"
BACKEND_CALL_COMPLETED = "backend_call_completed"
BACKEND_CALL_ERROR = "backend_call_error"
BACKEND_CALL_CANCELLED = "backend_call_cancelled"
BACKEND_AUTH_FAILED = "backend_auth_failed"
BACKEND_INITIALIZED = "backend_initialized"
BACKEND_INIT_FAILED = "backend_init_failed"
BACKEND_FALLBACK = "backend_fallback"
BACKEND_SWITCHED = "backend_switched"
BACKEND_SWITCH_FAILED = "backend_switch_failed"
BACKEND_ROLLBACK_FAILED = "backend_rollback_failed"

# Tool execution events
TOOL_CALL_STARTED = "tool_call_started"
TOOL_CALL_COMPLETED = "tool_call_completed"
TOOL_CALL_FAILED = "tool_call_failed"
TOOL_ARGUMENTS_INVALID = "tool_arguments_invalid"
TOOL_PRECONDITION_FAILED = "tool_precondition_failed"

# Safety and approval events
APPROVAL_REQUIRED = "approval_required"
APPROVAL_GRANTED = "approval_granted"
APPROVAL_DENIED = "approval_denied"
APPROVAL_TIMED_OUT = "approval_timed_out"
SESSION_AUTO_APPROVE_ENABLED = "session_auto_approve_enabled"

# Cancellation events
INTERRUPT_REQUESTED = "interrupt_requested"

# MCP events
MCP_SERVER_CONNECTED = "mcp_server_connected"
MCP_SERVER_FAILED = "mcp_server_failed"
MCP_TOOL_REGISTERED = "mcp_tool_registered"
MCP_SHUTDOWN = "mcp_shutdown"
