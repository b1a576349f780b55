"""Backend contract and shared base class.

Every concrete backend satisfies :class:`BackendGateway`. ``BaseBackend``
supplies the validate-then-store ``initialize`` flow the concrete backends
share; it is a mixin for that flow, not a hierarchy to extend further.
"""

from collections.abc import Sequence
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from exa_agent.backends.models import ModelInfo, PROVIDER_MODELS
from exa_agent.backends.types import (
    BackendConfig,
    BackendConfigError,
    BackendNotInitialized,
    BackendResponse,
    BackendType,
    GenerationOptions,
)

if TYPE_CHECKING:
    from exa_agent.orchestrator.types import Turn


@runtime_checkable
class BackendGateway(Protocol):
    """What the orchestrator needs from a model backend."""

    name: str
    display_name: str

    async def initialize(self, config: BackendConfig) -> None:
        """Validate ``config`` and prepare the backend.

        Raises:
            BackendConfigError: If the configuration is invalid.
        """
        ...

    async def send(
        self, turns: Sequence["Turn"], options: GenerationOptions
    ) -> BackendResponse:
        """Run one model call over the full conversation log.

        Raises:
            BackendError: Classified by ``exa_agent.backends.errors``.
        """
        ...

    def is_configured(self) -> bool: ...

    async def aclose(self) -> None: ...


class BaseBackend:
    """Shared initialize/validate flow for concrete backends."""

    backend_type: BackendType
    display_name: str = ""

    def __init__(self) -> None:
        self.config: BackendConfig | None = None
        self._initialized = False
        self.request_count = 0

    @property
    def name(self) -> str:
        return self.backend_type.value

    @property
    def models(self) -> list[ModelInfo]:
        return PROVIDER_MODELS.get(self.backend_type, [])

    def required_config_fields(self) -> list[str]:
        return ["api_key"]

    def validate_config(self, config: BackendConfig) -> list[str]:
        """Return a list of problems with ``config`` (empty when valid)."""
        errors = []
        for field_name in self.required_config_fields():
            if not getattr(config, field_name, None):
                label = field_name.replace("_", " ")
                errors.append(f"{label} is required for {self.display_name or self.name}")
        return errors

    async def initialize(self, config: BackendConfig) -> None:
        """Validate and store the configuration.

        Raises:
            BackendConfigError: If validation fails.
        """
        errors = self.validate_config(config)
        if errors:
            raise BackendConfigError(
                f"Invalid configuration: {', '.join(errors)}", backend=self.name
            )
        self.config = config
        self._initialized = True

    def is_configured(self) -> bool:
        return self._initialized and self.config is not None

    def check_compatibility(self, model: str) -> list[str]:
        """Return issues with using ``model`` on this backend (empty when known-good)."""
        if self.models and model not in {m.id for m in self.models}:
            return [f"Model {model} is not in supported model list"]
        return []

    def _require_config(self) -> BackendConfig:
        if not self.is_configured() or self.config is None:
            raise BackendNotInitialized(
                f"{self.display_name or self.name} backend not initialized", backend=self.name
            )
        return self.config

    async def aclose(self) -> None:
        """Release network resources. Subclasses holding clients override this."""
        return None
