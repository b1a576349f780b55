"""Registry of backend constructors keyed by BackendType.

The set of backends is closed: ``register_builtin_backends`` installs all of
them, and tests register fakes under an existing key. Instances are cached per
type so a switch back to an earlier backend reuses its client.
"""

from collections.abc import Callable

from exa_agent.backends.base import BackendGateway
from exa_agent.backends.types import BackendType
from exa_agent.telemetry import get_logger

log = get_logger(__name__)

BackendConstructor = Callable[[], BackendGateway]


class UnknownBackendError(ValueError):
    """Raised when no constructor is registered for a backend type."""

    pass


class BackendFactory:
    """Creates and caches backend instances."""

    def __init__(self) -> None:
        self._constructors: dict[BackendType, BackendConstructor] = {}
        self._instances: dict[BackendType, BackendGateway] = {}

    def register(self, backend_type: BackendType, constructor: BackendConstructor) -> None:
        """Register (or replace) the constructor for ``backend_type``."""
        self._constructors[backend_type] = constructor
        self._instances.pop(backend_type, None)

    def create(self, backend_type: BackendType | str) -> BackendGateway:
        """Return the cached instance for ``backend_type``, constructing it on first use.

        Raises:
            UnknownBackendError: If the type is unknown or has no constructor.
        """
        resolved = (
            backend_type
            if isinstance(backend_type, BackendType)
            else BackendType.from_str(backend_type)
        )
        if resolved is None:
            raise UnknownBackendError(f"Unknown backend type: {backend_type}")

        instance = self._instances.get(resolved)
        if instance is not None:
            return instance

        constructor = self._constructors.get(resolved)
        if constructor is None:
            raise UnknownBackendError(f"Unknown backend type: {resolved.value}")

        instance = constructor()
        self._instances[resolved] = instance
        log.debug("backend_instance_created", backend=resolved.value)
        return instance

    def available(self) -> list[BackendType]:
        return list(self._constructors)

    def evict(self, backend_type: BackendType) -> None:
        """Drop a cached instance so the next ``create`` builds a fresh one."""
        self._instances.pop(backend_type, None)

    async def aclose(self) -> None:
        """Close every cached instance."""
        for instance in list(self._instances.values()):
            await instance.aclose()
        self._instances.clear()


def register_builtin_backends(factory: BackendFactory) -> BackendFactory:
    """Register every built-in backend on ``factory``.

    Returns:
        The same factory, for chaining.
    """
    # Imported here so the anthropic SDK loads only when the registry is built
    from exa_agent.backends.anthropic import AnthropicBackend  # noqa: PLC0415
    from exa_agent.backends.openai_compat import PROFILES, OpenAICompatibleBackend  # noqa: PLC0415

    for backend_type, profile in PROFILES.items():
        factory.register(backend_type, lambda p=profile: OpenAICompatibleBackend(p))
    factory.register(BackendType.ANTHROPIC, AnthropicBackend)
    return factory


def default_factory() -> BackendFactory:
    """A new factory with every built-in backend registered."""
    return register_builtin_backends(BackendFactory())
