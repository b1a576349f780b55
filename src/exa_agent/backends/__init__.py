"""Model backends.

This module provides:
- BackendGateway: the contract the orchestrator consumes
- BackendFactory: closed registry of concrete backends
- Normalized request/response types and the backend error hierarchy
"""

from exa_agent.backends.base import BackendGateway, BaseBackend
from exa_agent.backends.errors import (
    ErrorClass,
    classify_backend_error,
    is_auth_error,
    login_guidance,
)
from exa_agent.backends.factory import (
    BackendFactory,
    UnknownBackendError,
    default_factory,
    register_builtin_backends,
)
from exa_agent.backends.models import (
    DEFAULT_MODELS,
    FALLBACK_BACKEND,
    FALLBACK_MODEL,
    PROVIDER_MODELS,
    ModelInfo,
)
from exa_agent.backends.types import (
    BackendAuthError,
    BackendConfig,
    BackendConfigError,
    BackendConnectionError,
    BackendError,
    BackendInvalidResponse,
    BackendNotInitialized,
    BackendRateLimit,
    BackendResponse,
    BackendServerError,
    BackendTimeout,
    BackendType,
    GenerationOptions,
    ToolCallRequest,
    Usage,
)

__all__ = [
    # Contract and registry
    "BackendGateway",
    "BaseBackend",
    "BackendFactory",
    "UnknownBackendError",
    "default_factory",
    "register_builtin_backends",
    # Types
    "BackendType",
    "BackendConfig",
    "BackendResponse",
    "GenerationOptions",
    "ToolCallRequest",
    "Usage",
    # Models
    "ModelInfo",
    "PROVIDER_MODELS",
    "DEFAULT_MODELS",
    "FALLBACK_BACKEND",
    "FALLBACK_MODEL",
    # Errors
    "BackendError",
    "BackendAuthError",
    "BackendConfigError",
    "BackendConnectionError",
    "BackendInvalidResponse",
    "BackendNotInitialized",
    "BackendRateLimit",
    "BackendServerError",
    "BackendTimeout",
    "ErrorClass",
    "classify_backend_error",
    "is_auth_error",
    "login_guidance",
]
