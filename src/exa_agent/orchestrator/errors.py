"""Orchestrator error types.

Backend-level errors live in :mod:`exa_agent.backends.types`; these are the
errors the orchestrator itself raises to its host.
"""


class OrchestratorError(Exception):
    """Base class for orchestrator errors."""

    pass


class BackendInitializationError(OrchestratorError):
    """No backend could be initialized, including the fallback."""

    pass


class BackendSwitchError(OrchestratorError):
    """Switching backend or model failed; the previous state was restored.

    Attributes:
        backend: Backend that failed to initialize.
    """

    def __init__(self, message: str, *, backend: str | None = None) -> None:
        super().__init__(message)
        self.backend = backend


class AuthenticationFatalError(OrchestratorError):
    """The backend rejected the credentials. Never retried.

    The message carries the ``/login <backend>`` guidance for the user.
    """

    def __init__(self, message: str, *, backend: str | None = None) -> None:
        super().__init__(message)
        self.backend = backend


class RunInProgressError(OrchestratorError):
    """``run`` was called while another run of the same orchestrator is active."""

    pass
