"""Fixtures for orchestrator tests."""

from collections.abc import Callable
from typing import Any

import pytest
from orchestrator_helpers import Recorder, ScriptedBackend

from exa_agent.backends.types import BackendType
from exa_agent.config import AppConfig, LocalSettings
from exa_agent.orchestrator import Orchestrator, OrchestratorCallbacks, SessionState
from exa_agent.tools import ToolClass, ToolDefinition, ToolParameter, ToolRegistry


@pytest.fixture
def executed() -> list[tuple[str, dict[str, Any]]]:
    return []


@pytest.fixture
def registry(executed) -> ToolRegistry:
    """Registry with one tool per approval class that records its invocations."""
    registry = ToolRegistry()

    def make(name: str) -> Callable[..., dict[str, Any]]:
        def executor(**kwargs: Any) -> dict[str, Any]:
            executed.append((name, kwargs))
            return {"tool": name, "args": kwargs}

        return executor

    for name, tool_class in (
        ("echo", ToolClass.SAFE),
        ("write_note", ToolClass.APPROVAL_REQUIRED),
        ("wipe_disk", ToolClass.DANGEROUS),
    ):
        registry.register(
            ToolDefinition(
                name=name,
                description=f"{name} test tool",
                parameters=[
                    ToolParameter(name="value", type="string", description="Any value", required=False)
                ],
                tool_class=tool_class,
            ),
            make(name),
        )
    return registry


@pytest.fixture
def settings(tmp_path) -> AppConfig:
    return AppConfig(config_dir=tmp_path / "config", max_iterations=10)


@pytest.fixture
def local_settings(tmp_path) -> LocalSettings:
    return LocalSettings(tmp_path / "config" / "local-settings.json")


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def make_orchestrator(registry, settings, local_settings, recorder):
    """Build an orchestrator around a ScriptedBackend."""

    def _make(
        script: list[Any] | None = None,
        *,
        callbacks: OrchestratorCallbacks | None = None,
        approval: bool = True,
        on_error: bool = True,
        tools: ToolRegistry | None = None,
        app_settings: AppConfig | None = None,
    ) -> tuple[Orchestrator, ScriptedBackend]:
        backend = ScriptedBackend(script)
        orchestrator = Orchestrator(
            backend=backend,
            state=SessionState(backend=BackendType.GROQ, model="moonshotai/kimi-k2-instruct"),
            settings=app_settings or settings,
            registry=tools or registry,
            callbacks=callbacks or recorder.callbacks(approval=approval, on_error=on_error),
            local_settings=local_settings,
        )
        return orchestrator, backend

    return _make
