"""Tests for backend creation, fallback, switching and the other host controls."""

import pytest
from orchestrator_helpers import ScriptedBackend, final

from exa_agent.backends import BackendFactory, BackendType, DEFAULT_MODELS
from exa_agent.backends.types import BackendConfigError
from exa_agent.orchestrator import (
    ApprovalDecision,
    BackendInitializationError,
    BackendSwitchError,
    Orchestrator,
    Role,
)
from exa_agent.orchestrator.orchestrator import DEFAULT_OLLAMA_ENDPOINT


def _factory(**backends: ScriptedBackend) -> BackendFactory:
    factory = BackendFactory()
    for name, backend in backends.items():
        factory.register(BackendType(name), lambda b=backend: b)
    return factory


# build_backend_config


def test_missing_api_key_message(local_settings, settings) -> None:
    """Test backends other than ollama require a stored key."""
    with pytest.raises(BackendConfigError) as exc_info:
        Orchestrator.build_backend_config(local_settings, settings, BackendType.OPENAI, "o3-mini")

    assert str(exc_info.value) == (
        "No API key found for openai provider. Please use /login openai to set your credentials."
    )


def test_ollama_defaults_endpoint(local_settings, settings) -> None:
    """Test ollama needs no key and gets the local endpoint."""
    config = Orchestrator.build_backend_config(
        local_settings, settings, BackendType.OLLAMA, "gemma3:270m"
    )

    assert config.api_key is None
    assert config.endpoint == DEFAULT_OLLAMA_ENDPOINT
    assert config.model == "gemma3:270m"


def test_azure_requires_endpoint_and_deployment(local_settings, settings) -> None:
    """Test azure checks its extra fields after the key."""
    local_settings.update_backend("azure", api_key="key")
    with pytest.raises(BackendConfigError, match="No endpoint found for Azure OpenAI"):
        Orchestrator.build_backend_config(local_settings, settings, BackendType.AZURE, "gpt-5")

    local_settings.update_backend("azure", endpoint="https://example.openai.azure.com")
    with pytest.raises(BackendConfigError, match="No deployment name found"):
        Orchestrator.build_backend_config(local_settings, settings, BackendType.AZURE, "gpt-5")


def test_environment_key_wins(local_settings, settings, monkeypatch) -> None:
    """Test GROQ_API_KEY overrides the stored key."""
    local_settings.update_backend("groq", api_key="stored")
    monkeypatch.setenv("GROQ_API_KEY", "from-env")

    config = Orchestrator.build_backend_config(local_settings, settings, BackendType.GROQ, "m")

    assert config.api_key == "from-env"
    assert config.timeout_seconds == settings.request_timeout_seconds


# create


@pytest.mark.asyncio
async def test_create_uses_stored_default_backend(local_settings, settings) -> None:
    """Test the stored default backend and model are used when none is passed."""
    local_settings.update_backend("openai", api_key="sk-test", default_model="gpt-5")
    local_settings.set_default_backend("openai")
    openai = ScriptedBackend(name="openai")

    orchestrator = await Orchestrator.create(
        settings=settings, local_settings=local_settings, factory=_factory(openai=openai)
    )

    assert orchestrator.state.backend == BackendType.OPENAI
    assert orchestrator.state.model == "gpt-5"
    assert openai.configs[0].api_key == "sk-test"
    assert "gpt-5" in orchestrator.conversation[0].content


@pytest.mark.asyncio
async def test_create_falls_back_and_persists(local_settings, settings) -> None:
    """Test a backend without credentials falls back to the fallback backend."""
    local_settings.update_backend("groq", api_key="gsk-test")
    openai = ScriptedBackend(name="openai")
    groq = ScriptedBackend(name="groq")

    orchestrator = await Orchestrator.create(
        backend="openai",
        settings=settings,
        local_settings=local_settings,
        factory=_factory(openai=openai, groq=groq),
    )

    assert orchestrator.state.backend == BackendType.GROQ
    assert orchestrator.state.model == DEFAULT_MODELS[BackendType.GROQ]
    assert orchestrator.backend is groq
    assert local_settings.get_default_backend() == "groq"
    assert local_settings.get_backend_config("groq").default_model == DEFAULT_MODELS[BackendType.GROQ]


@pytest.mark.asyncio
async def test_create_fails_when_fallback_fails(local_settings, settings) -> None:
    """Test the original error is reported when the fallback fails too."""
    with pytest.raises(BackendInitializationError, match="Failed to initialize openai provider"):
        await Orchestrator.create(
            backend="openai",
            settings=settings,
            local_settings=local_settings,
            factory=_factory(openai=ScriptedBackend(name="openai"), groq=ScriptedBackend()),
        )


@pytest.mark.asyncio
async def test_create_rejects_unknown_backend(local_settings, settings) -> None:
    """Test an unknown backend name fails fast."""
    with pytest.raises(BackendInitializationError, match="Unknown backend type"):
        await Orchestrator.create(
            backend="skynet", settings=settings, local_settings=local_settings, factory=BackendFactory()
        )


@pytest.mark.asyncio
async def test_create_loads_project_context(local_settings, settings, tmp_path) -> None:
    """Test the project context file becomes the second system turn."""
    context_file = tmp_path / "context.md"
    context_file.write_text("Use tabs.")
    local_settings.update_backend("groq", api_key="gsk-test")
    with_context = settings.model_copy(update={"context_file": context_file})

    orchestrator = await Orchestrator.create(
        settings=with_context,
        local_settings=local_settings,
        factory=_factory(groq=ScriptedBackend()),
    )

    context_turn = orchestrator.conversation[1]
    assert context_turn.role == Role.SYSTEM
    assert context_turn.content.startswith(f"Project context loaded from {context_file}")
    assert context_turn.content.endswith("Use tabs.")


# switch_backend


@pytest.mark.asyncio
async def test_switch_backend_success(local_settings, settings) -> None:
    """Test switching persists the choice and rewrites the system prompt."""
    local_settings.update_backend("groq", api_key="gsk-test")
    local_settings.update_backend("anthropic", api_key="sk-ant-test")
    groq, anthropic = ScriptedBackend(), ScriptedBackend(name="anthropic")
    orchestrator = await Orchestrator.create(
        backend="groq",
        settings=settings,
        local_settings=local_settings,
        factory=_factory(groq=groq, anthropic=anthropic),
    )

    await orchestrator.switch_backend("anthropic", "claude-opus-4-1")

    assert orchestrator.backend is anthropic
    assert orchestrator.state.backend == BackendType.ANTHROPIC
    assert orchestrator.state.model == "claude-opus-4-1"
    assert local_settings.get_default_backend() == "anthropic"
    assert local_settings.get_backend_config("anthropic").default_model == "claude-opus-4-1"
    assert "claude-opus-4-1" in orchestrator.conversation[0].content
    assert "Anthropic" in orchestrator.conversation[0].content


@pytest.mark.asyncio
async def test_switch_backend_failure_rolls_back(local_settings, settings) -> None:
    """Test a failed switch keeps the previous backend and model."""
    local_settings.update_backend("groq", api_key="gsk-test")
    groq = ScriptedBackend([final()])
    orchestrator = await Orchestrator.create(
        backend="groq",
        settings=settings,
        local_settings=local_settings,
        factory=_factory(groq=groq, openai=ScriptedBackend(name="openai")),
    )
    prompt_before = orchestrator.conversation[0].content

    with pytest.raises(BackendSwitchError, match="Failed to switch to openai"):
        await orchestrator.switch_backend("openai")

    assert orchestrator.backend is groq
    assert orchestrator.state.backend == BackendType.GROQ
    assert orchestrator.state.model == DEFAULT_MODELS[BackendType.GROQ]
    assert orchestrator.conversation[0].content == prompt_before
    # Previous backend was re-initialized
    assert len(groq.configs) == 2
    result = await orchestrator.run("still there?")
    assert result.final_text == "All done"


@pytest.mark.asyncio
async def test_switch_to_unknown_backend(make_orchestrator) -> None:
    """Test an unknown target raises without touching state."""
    orchestrator, backend = make_orchestrator()

    with pytest.raises(BackendSwitchError, match="Unknown backend type"):
        await orchestrator.switch_backend("skynet")

    assert orchestrator.backend is backend


# Other host controls


@pytest.mark.asyncio
async def test_clear_history_keeps_system_turns_and_auto_approve(make_orchestrator, recorder) -> None:
    """Test clearing drops user and assistant turns but not session approvals."""
    orchestrator, _ = make_orchestrator([final("one")])
    await orchestrator.run("hello")
    orchestrator.state.session_auto_approve = True

    orchestrator.clear_history()
    orchestrator.clear_history()

    assert [t.role for t in orchestrator.conversation] == [Role.SYSTEM]
    assert orchestrator.state.session_auto_approve is True


def test_set_model_rewrites_prompt_and_persists(make_orchestrator, local_settings) -> None:
    """Test set_model changes the model in state, settings and system prompt."""
    orchestrator, _ = make_orchestrator()

    orchestrator.set_model("openai/gpt-oss-20b")

    assert orchestrator.state.model == "openai/gpt-oss-20b"
    assert local_settings.get_backend_config("groq").default_model == "openai/gpt-oss-20b"
    assert "openai/gpt-oss-20b" in orchestrator.conversation[0].content


@pytest.mark.asyncio
async def test_configure_backend_reinitializes_current(make_orchestrator, local_settings) -> None:
    """Test /login for the active backend re-initializes it with the new key."""
    orchestrator, backend = make_orchestrator()

    await orchestrator.configure_backend("groq", api_key="gsk-new")

    assert local_settings.get_api_key("groq") == "gsk-new"
    assert backend.configs[-1].api_key == "gsk-new"


@pytest.mark.asyncio
async def test_configure_other_backend_only_stores(make_orchestrator, local_settings) -> None:
    """Test credentials for another backend are stored without re-initializing."""
    orchestrator, backend = make_orchestrator()

    await orchestrator.configure_backend("openai", api_key="sk-new")

    assert local_settings.get_api_key("openai") == "sk-new"
    assert backend.configs == []


def test_approval_decision_reject() -> None:
    """Test the reject helper never enables auto-approve."""
    decision = ApprovalDecision.reject()
    assert decision.approved is False
    assert decision.auto_approve_session is False
