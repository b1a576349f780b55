"""The orchestration engine.

``Orchestrator.run`` drives one user request to completion: it calls the
backend with the full conversation log, executes the tool calls the model asks
for (through the policy, the approval gate and the tool router), feeds the
results back and repeats until the model answers without tool calls, the user
rejects a tool, the run is interrupted, or the iteration limit is reached.
"""

import uuid
from typing import Any

from exa_agent.backends.base import BackendGateway
from exa_agent.backends.errors import is_auth_error, login_guidance
from exa_agent.backends.factory import BackendFactory, default_factory
from exa_agent.backends.models import DEFAULT_MODELS, default_model_for
from exa_agent.backends.types import (
    BackendConfig,
    BackendConfigError,
    BackendResponse,
    BackendType,
    GenerationOptions,
    ToolCallRequest,
)
from exa_agent.config.local_settings import LocalSettings, LocalSettingsError
from exa_agent.config.policy_loader import load_tool_policy_config
from exa_agent.config.settings import AppConfig, get_settings
from exa_agent.orchestrator.approval import INTERRUPTED_MESSAGE, ApprovalGate
from exa_agent.orchestrator.callbacks import OrchestratorCallbacks
from exa_agent.orchestrator.cancellation import CancellationController, OperationCancelled
from exa_agent.orchestrator.conversation import ConversationLog
from exa_agent.orchestrator.errors import (
    AuthenticationFatalError,
    BackendInitializationError,
    BackendSwitchError,
    RunInProgressError,
)
from exa_agent.orchestrator.policy import ReadTracker, ToolPolicy
from exa_agent.orchestrator.prompts import (
    SYSTEM_PROMPT_MARKER,
    build_system_prompt,
    describe_backend,
    load_project_context,
)
from exa_agent.orchestrator.types import RunOutcome, RunResult, SessionState, Turn
from exa_agent.security import sanitize_error_message
from exa_agent.telemetry import (
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
    RUN_ABORTED,
    RUN_COMPLETED,
    RUN_INTERRUPTED,
    RUN_REJECTED,
    RUN_STARTED,
    SYSTEM_PROMPT_REWRITTEN,
    TOOL_PRECONDITION_FAILED,
    TraceContext,
    get_logger,
)
from exa_agent.tools import ToolRegistry, create_default_registry
from exa_agent.tools.router import ToolRouter, prepare_tool_call, resolve_tool_name
from exa_agent.tools.types import ToolResult

INTERRUPTION_NOTE = "User has interrupted the request."
DEFAULT_OLLAMA_ENDPOINT = "http://localhost:11434"
SKIPPED_AFTER_REJECTION = "Tool execution skipped because an earlier tool call was rejected"


def rejection_note(tool_name: str) -> str:
    return (
        f"The user rejected the {tool_name} tool execution. The response has been "
        "terminated. Please wait for the user's next instruction."
    )


def unique_tool_calls(calls: list[ToolCallRequest]) -> list[ToolCallRequest]:
    """Make tool call ids unique within one assistant turn.

    Some backends repeat ids (or send empty ones) when a model emits several
    calls; later duplicates get a positional suffix.
    """
    seen: set[str] = set()
    result: list[ToolCallRequest] = []
    for index, call in enumerate(calls):
        call_id = call.id or f"call_{index}"
        while call_id in seen:
            call_id = f"{call_id}_{index}"
        seen.add(call_id)
        if call_id != call.id:
            call = ToolCallRequest(id=call_id, name=call.name, raw_arguments=call.raw_arguments)
        result.append(call)
    return result


class Orchestrator:
    """Conversation state machine for one interactive session.

    Use :meth:`create` to build a fully initialized instance from settings;
    the constructor takes ready-made collaborators and is what tests use.

    Args:
        backend: Initialized backend.
        state: Session state (backend type, model, flags).
        settings: Application settings. Defaults to ``get_settings()``.
        registry: Tool registry. Defaults to the built-in tools.
        callbacks: Host callbacks.
        local_settings: User settings store for credentials and defaults.
        factory: Backend factory used by ``switch_backend``.
        policy: Tool classification. Defaults to the override file from
            settings, if any.
        logger: Logger for every event of this session.
        project_context: Content of an extra system turn after the prompt.
    """

    def __init__(
        self,
        *,
        backend: BackendGateway,
        state: SessionState,
        settings: AppConfig | None = None,
        registry: ToolRegistry | None = None,
        callbacks: OrchestratorCallbacks | None = None,
        local_settings: LocalSettings | None = None,
        factory: BackendFactory | None = None,
        policy: ToolPolicy | None = None,
        logger: Any = None,
        project_context: str | None = None,
        mcp_manager: Any = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.session_id = str(uuid.uuid4())
        self.log = logger or get_logger(__name__).bind(session_id=self.session_id)

        self.backend = backend
        self.state = state
        self.registry = registry or create_default_registry()
        self.router = ToolRouter(self.registry)
        self.callbacks = callbacks or OrchestratorCallbacks()
        self.local_settings = local_settings or LocalSettings(self.settings.local_settings_path)
        self.factory = factory or default_factory()
        self.policy = policy or self._load_policy()
        self.read_tracker = ReadTracker()
        self.cancellation = CancellationController()
        self.approval = ApprovalGate(
            self.state,
            self.callbacks,
            timeout_seconds=self.settings.approval_timeout_seconds,
            logger=self.log,
        )
        self.max_iterations = self.settings.max_iterations
        self.mcp_manager = mcp_manager

        self.conversation = ConversationLog(self._system_prompt())
        if project_context:
            self.conversation.append_system_note(project_context)

        self._running = False
        self._in_tool_batch = False
        self._interrupt_noted = False

    # Construction

    @classmethod
    async def create(
        cls,
        *,
        backend: BackendType | str | None = None,
        model: str | None = None,
        settings: AppConfig | None = None,
        callbacks: OrchestratorCallbacks | None = None,
        local_settings: LocalSettings | None = None,
        factory: BackendFactory | None = None,
        registry: ToolRegistry | None = None,
        logger: Any = None,
        temperature: float | None = None,
        mcp_manager: Any = None,
    ) -> "Orchestrator":
        """Build an orchestrator with an initialized backend.

        The backend is the explicit argument, else the stored default, else
        ``settings.default_backend``. If it cannot be initialized, falls back
        once to ``settings.fallback_backend`` with its default model and
        persists that choice.

        Raises:
            BackendInitializationError: If neither backend can be initialized.
        """
        settings = settings or get_settings()
        local_settings = local_settings or LocalSettings(settings.local_settings_path)
        factory = factory or default_factory()
        log = logger or get_logger(__name__)

        requested = backend or local_settings.get_default_backend() or settings.default_backend
        backend_type = (
            requested if isinstance(requested, BackendType) else BackendType.from_str(requested)
        )
        if backend_type is None:
            raise BackendInitializationError(f"Unknown backend type: {requested}")

        stored_model = local_settings.get_backend_config(backend_type.value).default_model
        selected_model = model or stored_model or default_model_for(backend_type)

        try:
            instance = await cls._initialize_backend(
                factory, local_settings, settings, backend_type, selected_model, log
            )
        except Exception as exc:
            log.warning(BACKEND_INIT_FAILED, backend=backend_type.value, error=str(exc))
            fallback = BackendType.from_str(settings.fallback_backend) or BackendType.GROQ
            if backend_type == fallback:
                raise BackendInitializationError(
                    f"Failed to initialize {backend_type.value} provider: {exc}"
                ) from exc
            fallback_model = DEFAULT_MODELS[fallback]
            try:
                instance = await cls._initialize_backend(
                    factory, local_settings, settings, fallback, fallback_model, log
                )
            except Exception as fallback_exc:
                log.error(BACKEND_INIT_FAILED, backend=fallback.value, error=str(fallback_exc))
                raise BackendInitializationError(
                    f"Failed to initialize {backend_type.value} provider: {exc}"
                ) from exc
            log.warning(
                BACKEND_FALLBACK,
                requested=backend_type.value,
                backend=fallback.value,
                model=fallback_model,
            )
            try:
                local_settings.set_default_backend(fallback.value)
                local_settings.update_backend(fallback.value, default_model=fallback_model)
            except LocalSettingsError as e:
                log.warning("fallback_not_persisted", error=str(e))
            backend_type, selected_model = fallback, fallback_model

        state = SessionState(
            backend=backend_type,
            model=selected_model,
            temperature=settings.temperature if temperature is None else temperature,
            max_tokens=settings.max_tokens,
        )
        return cls(
            backend=instance,
            state=state,
            settings=settings,
            registry=registry,
            callbacks=callbacks,
            local_settings=local_settings,
            factory=factory,
            logger=logger,
            project_context=load_project_context(settings),
            mcp_manager=mcp_manager,
        )

    @staticmethod
    def build_backend_config(
        local_settings: LocalSettings,
        settings: AppConfig,
        backend_type: BackendType,
        model: str,
    ) -> BackendConfig:
        """Assemble the backend configuration from stored credentials.

        Raises:
            BackendConfigError: If a required credential is missing.
        """
        name = backend_type.value
        creds = local_settings.get_backend_config(name)
        if backend_type != BackendType.OLLAMA and not creds.api_key:
            raise BackendConfigError(
                f"No API key found for {name} provider. "
                f"Please use /login {name} to set your credentials.",
                backend=name,
            )
        if backend_type == BackendType.AZURE:
            if not creds.endpoint:
                raise BackendConfigError(
                    "No endpoint found for Azure OpenAI. Please use /login azure to set your credentials.",
                    backend=name,
                )
            if not creds.deployment_name:
                raise BackendConfigError(
                    "No deployment name found for Azure OpenAI. "
                    "Please use /login azure to set your credentials.",
                    backend=name,
                )

        endpoint = creds.endpoint
        if backend_type == BackendType.OLLAMA and not endpoint:
            endpoint = DEFAULT_OLLAMA_ENDPOINT
        return BackendConfig(
            api_key=creds.api_key,
            endpoint=endpoint,
            deployment_name=creds.deployment_name,
            api_version=creds.api_version,
            model=model,
            timeout_seconds=settings.request_timeout_seconds,
        )

    @classmethod
    async def _initialize_backend(
        cls,
        factory: BackendFactory,
        local_settings: LocalSettings,
        settings: AppConfig,
        backend_type: BackendType,
        model: str,
        log: Any,
    ) -> BackendGateway:
        instance = factory.create(backend_type)
        config = cls.build_backend_config(local_settings, settings, backend_type, model)
        check = getattr(instance, "check_compatibility", None)
        if check is not None:
            issues = check(model)
            if issues:
                log.warning(
                    "model_compatibility_issues", backend=backend_type.value, model=model, issues=issues
                )
        await instance.initialize(config)
        log.info(BACKEND_INITIALIZED, backend=backend_type.value, model=model)
        return instance

    def _load_policy(self) -> ToolPolicy:
        path = self.settings.tool_policy_path
        if path is None:
            return ToolPolicy()
        return ToolPolicy(load_tool_policy_config(path))

    def _system_prompt(self) -> str:
        return build_system_prompt(self.state.model, describe_backend(self.backend))

    def _rewrite_system_prompt(self) -> None:
        if self.conversation.rewrite_system_prompt(SYSTEM_PROMPT_MARKER, self._system_prompt()):
            self.log.debug(
                SYSTEM_PROMPT_REWRITTEN, backend=self.state.backend.value, model=self.state.model
            )

    # Run loop

    @property
    def is_running(self) -> bool:
        return self._running

    def _generation_options(self) -> GenerationOptions:
        return GenerationOptions(
            model=self.state.model,
            tools=self.registry.get_tool_definitions_for_llm(),
            tool_choice="auto",
            temperature=self.state.temperature,
            max_tokens=self.state.max_tokens,
        )

    async def run(self, user_text: str) -> RunResult:
        """Process one user request until the model gives a final answer.

        Returns:
            RunResult describing how the run ended.

        Raises:
            RunInProgressError: If another run of this orchestrator is active.
            AuthenticationFatalError: If the backend rejects the credentials.
        """
        if self._running:
            raise RunInProgressError("A request is already being processed")
        self._running = True
        try:
            return await self._run(user_text)
        finally:
            self._running = False
            self._in_tool_batch = False

    async def _run(self, user_text: str) -> RunResult:
        trace_ctx = TraceContext.new_trace()
        self.state.interrupted = False
        self._interrupt_noted = False
        self.conversation.append(Turn.user(user_text))

        result = RunResult(outcome=RunOutcome.COMPLETED, trace_id=trace_ctx.trace_id)
        self.log.info(
            RUN_STARTED,
            trace_id=trace_ctx.trace_id,
            backend=self.state.backend.value,
            model=self.state.model,
        )

        iteration = 0
        while True:
            while iteration < self.max_iterations:
                if self.state.interrupted:
                    return self._finish(result, RunOutcome.INTERRUPTED)

                self.log.debug(ITERATION_STARTED, trace_id=trace_ctx.trace_id, iteration=iteration)
                try:
                    response = await self._call_backend(trace_ctx)
                except OperationCancelled:
                    self.log.info(BACKEND_CALL_CANCELLED, trace_id=trace_ctx.trace_id)
                    return self._finish(result, RunOutcome.INTERRUPTED)
                except Exception as exc:
                    if self.state.interrupted:
                        # The request was aborted by the user
                        return self._finish(result, RunOutcome.INTERRUPTED)
                    if is_auth_error(exc):
                        self._raise_auth_error(exc, trace_ctx)
                    message = sanitize_error_message(exc)
                    self.log.warning(
                        BACKEND_CALL_ERROR,
                        trace_id=trace_ctx.trace_id,
                        error=message,
                        error_type=type(exc).__name__,
                    )
                    if self.callbacks.on_error is not None:
                        if await self.callbacks.error(message):
                            iteration += 1
                            continue
                        self.conversation.append_system_note(
                            f"Request failed with error: {message}. User chose not to retry."
                        )
                        return self._finish(result, RunOutcome.FAILED)
                    self.conversation.append_system_note(
                        f"Previous API request failed with error: {message}. "
                        "Please try a different approach or ask the user for clarification."
                    )
                    iteration += 1
                    continue

                result.iterations += 1
                if response.usage is not None:
                    result.usage.append(response.usage)
                    await self.callbacks.usage(response.usage)
                    if self.state.interrupted:
                        self._note_interrupt()
                        return self._finish(result, RunOutcome.INTERRUPTED)

                if response.tool_calls:
                    outcome = await self._handle_tool_calls(response, trace_ctx)
                    if outcome is not None:
                        return self._finish(result, outcome)
                    iteration += 1
                    continue

                text = response.text or ""
                await self.callbacks.final_message(text, response.reasoning)
                self.conversation.append(Turn.assistant(text))
                result.final_text = text
                return self._finish(result, RunOutcome.COMPLETED)

            self.log.warning(
                MAX_ITERATIONS_REACHED, trace_id=trace_ctx.trace_id, limit=self.max_iterations
            )
            if await self.callbacks.max_iterations_reached(self.max_iterations):
                iteration = 0
                continue
            return self._finish(result, RunOutcome.MAX_ITERATIONS)

    def _finish(self, result: RunResult, outcome: RunOutcome) -> RunResult:
        result.outcome = outcome
        if outcome == RunOutcome.INTERRUPTED:
            event = RUN_INTERRUPTED
        elif outcome == RunOutcome.TOOL_REJECTED:
            event = RUN_REJECTED
        elif outcome in (RunOutcome.FAILED, RunOutcome.MAX_ITERATIONS):
            event = RUN_ABORTED
        else:
            event = RUN_COMPLETED
        self.log.info(
            event,
            trace_id=result.trace_id,
            outcome=outcome.value,
            iterations=result.iterations,
        )
        return result

    async def _call_backend(self, trace_ctx: TraceContext) -> BackendResponse:
        _, span_id = trace_ctx.new_span()
        self.log.info(
            BACKEND_CALL_STARTED,
            trace_id=trace_ctx.trace_id,
            span_id=span_id,
            backend=self.state.backend.value,
            model=self.state.model,
            turns=len(self.conversation),
        )
        token = self.cancellation.mint()
        response = await self.cancellation.run(
            token, self.backend.send(self.conversation.turns, self._generation_options())
        )
        self.state.request_count += 1
        self.log.info(
            BACKEND_CALL_COMPLETED,
            trace_id=trace_ctx.trace_id,
            span_id=span_id,
            tool_calls=len(response.tool_calls),
            finish_reason=response.finish_reason,
            total_tokens=response.usage.total_tokens if response.usage else None,
        )
        return response

    def _raise_auth_error(self, exc: Exception, trace_ctx: TraceContext) -> None:
        backend = self.state.backend.value
        message = sanitize_error_message(exc)
        if "/login" not in message:
            message = f"{message}. {login_guidance(backend)}"
        self.log.error(BACKEND_AUTH_FAILED, trace_id=trace_ctx.trace_id, backend=backend)
        raise AuthenticationFatalError(message, backend=backend) from exc

    async def _handle_tool_calls(
        self, response: BackendResponse, trace_ctx: TraceContext
    ) -> RunOutcome | None:
        """Record the assistant turn and run its tool calls in order.

        Returns:
            The outcome that ends the run, or None to keep iterating.
        """
        calls = unique_tool_calls(list(response.tool_calls))
        text = response.text or ""
        if text or response.reasoning:
            await self.callbacks.thinking_text(text, response.reasoning)
            if self.state.interrupted:
                self._note_interrupt()
                return RunOutcome.INTERRUPTED

        self.conversation.append(Turn.assistant(text, calls))

        rejected_tool: str | None = None
        self._in_tool_batch = True
        try:
            for index, call in enumerate(calls):
                if self.state.interrupted:
                    self._answer_remaining(calls[index:], INTERRUPTED_MESSAGE, user_rejected=True)
                    break
                tool_result = await self._execute_tool_call(call, trace_ctx)
                self.conversation.append(Turn.tool(call.id, tool_result.to_content()))
                if tool_result.user_rejected:
                    rejected_tool = tool_result.tool_name
                    self._answer_remaining(calls[index + 1 :], SKIPPED_AFTER_REJECTION)
                    break
        finally:
            self._in_tool_batch = False

        if self.state.interrupted:
            self._note_interrupt()
            return RunOutcome.INTERRUPTED
        if rejected_tool is not None:
            self.conversation.append_system_note(rejection_note(rejected_tool))
            return RunOutcome.TOOL_REJECTED
        return None

    def _answer_remaining(
        self, calls: list[ToolCallRequest], message: str, *, user_rejected: bool = False
    ) -> None:
        """Give calls that will not run a result so every call has exactly one answer."""
        for call in calls:
            skipped = ToolResult.failure(
                resolve_tool_name(call.name), message, user_rejected=user_rejected
            )
            self.conversation.append(Turn.tool(call.id, skipped.to_content()))

    async def _execute_tool_call(self, call: ToolCallRequest, trace_ctx: TraceContext) -> ToolResult:
        """Parse, check, approve and run one tool call. Never raises."""
        tool_name, args = prepare_tool_call(call.name, call.raw_arguments)
        if isinstance(args, ToolResult):
            return args

        try:
            await self.callbacks.tool_start(tool_name, args)
            definition = self.router.get_definition(tool_name)

            precondition_error = ToolPolicy.check_read_before_write(definition, args, self.read_tracker)
            if precondition_error is not None:
                self.log.info(
                    TOOL_PRECONDITION_FAILED,
                    trace_id=trace_ctx.trace_id,
                    tool_name=tool_name,
                    error=precondition_error,
                )
                tool_result = ToolResult.failure(tool_name, precondition_error)
                await self.callbacks.tool_end(tool_name, tool_result)
                return tool_result

            # Unknown tools are reported by the router without running anything
            if definition is not None:
                tool_class = self.policy.classify(tool_name, definition)
                token = self.cancellation.mint()
                try:
                    rejection = await self.cancellation.run(
                        token,
                        self.approval.authorize(
                            tool_name,
                            args,
                            tool_class,
                            lambda: self.state.interrupted,
                            trace_id=trace_ctx.trace_id,
                        ),
                    )
                except OperationCancelled:
                    rejection = ToolResult.failure(tool_name, INTERRUPTED_MESSAGE, user_rejected=True)
                if rejection is not None:
                    await self.callbacks.tool_end(tool_name, rejection)
                    return rejection

            # Tools are not force-cancelled; an interrupt only stops the next one
            token = self.cancellation.mint(hard=False)
            tool_result = await self.cancellation.run(
                token, self.router.execute(tool_name, args, trace_ctx)
            )
            if tool_result.success:
                ToolPolicy.record_read(definition, args, self.read_tracker)
            await self.callbacks.tool_end(tool_name, tool_result)
            return tool_result
        except Exception as e:
            self.log.error(
                "tool_call_error", trace_id=trace_ctx.trace_id, tool_name=tool_name, error=str(e), exc_info=True
            )
            return ToolResult.failure(tool_name, f"Tool execution error: {e}")

    # Host controls

    def interrupt(self) -> None:
        """Stop the current run as soon as possible.

        Cancels the in-flight backend call or approval wait. A running tool is
        allowed to finish, but no further tool or backend call is started.
        """
        self.state.interrupted = True
        cancelled = self.cancellation.cancel_current()
        self.log.info(INTERRUPT_REQUESTED, running=self._running, cancelled_call=cancelled)
        if self._running and not self._in_tool_batch:
            self._note_interrupt()

    def _note_interrupt(self) -> None:
        if not self._interrupt_noted:
            self._interrupt_noted = True
            self.conversation.append_system_note(INTERRUPTION_NOTE)

    def clear_history(self) -> None:
        """Drop everything but the system turns. Session auto-approve is kept."""
        removed = self.conversation.clear()
        self.log.info(HISTORY_CLEARED, removed_turns=removed)

    def set_model(self, model: str) -> None:
        """Use ``model`` on the current backend and remember it as its default."""
        self.state.model = model
        try:
            self.local_settings.update_backend(self.state.backend.value, default_model=model)
        except LocalSettingsError as e:
            self.log.warning("default_model_not_persisted", error=str(e))
        self._rewrite_system_prompt()

    async def switch_backend(self, backend: BackendType | str, model: str | None = None) -> None:
        """Switch to another backend, optionally with a specific model.

        On failure the previous backend and model stay in place (the previous
        backend is re-initialized) and the error is raised.

        Raises:
            BackendSwitchError: If the new backend cannot be initialized.
        """
        target = backend if isinstance(backend, BackendType) else BackendType.from_str(backend)
        if target is None:
            raise BackendSwitchError(f"Unknown backend type: {backend}", backend=str(backend))

        previous_backend = self.backend
        previous_type, previous_model = self.state.backend, self.state.model
        new_model = (
            model
            or self.local_settings.get_backend_config(target.value).default_model
            or default_model_for(target)
        )

        try:
            instance = await self._initialize_backend(
                self.factory, self.local_settings, self.settings, target, new_model, self.log
            )
        except Exception as exc:
            self.log.warning(
                BACKEND_SWITCH_FAILED,
                backend=target.value,
                model=new_model,
                error=sanitize_error_message(exc),
            )
            try:
                config = self.build_backend_config(
                    self.local_settings, self.settings, previous_type, previous_model
                )
                await previous_backend.initialize(config)
            except Exception as rollback_exc:
                self.log.error(
                    BACKEND_ROLLBACK_FAILED,
                    backend=previous_type.value,
                    error=sanitize_error_message(rollback_exc),
                )
            self.backend = previous_backend
            self.state.backend, self.state.model = previous_type, previous_model
            raise BackendSwitchError(
                f"Failed to switch to {target.value}: {exc}", backend=target.value
            ) from exc

        self.backend = instance
        self.state.backend, self.state.model = target, new_model
        try:
            self.local_settings.set_default_backend(target.value)
            if model:
                self.local_settings.update_backend(target.value, default_model=model)
        except LocalSettingsError as e:
            self.log.warning("default_backend_not_persisted", error=str(e))
        self._rewrite_system_prompt()
        self.log.info(
            BACKEND_SWITCHED,
            backend=target.value,
            model=new_model,
            previous_backend=previous_type.value,
        )

    async def configure_backend(self, backend: BackendType | str, **credentials: Any) -> None:
        """Store credentials for a backend; re-initialize it if it is the current one.

        Args:
            backend: Backend to configure.
            **credentials: Any of ``api_key``, ``endpoint``, ``deployment_name``,
                ``api_version``, ``default_model``.

        Raises:
            BackendConfigError: If the backend is unknown or re-initialization fails.
        """
        target = backend if isinstance(backend, BackendType) else BackendType.from_str(backend)
        if target is None:
            raise BackendConfigError(f"Unknown backend type: {backend}", backend=str(backend))
        fields = {k: v for k, v in credentials.items() if v}
        self.local_settings.update_backend(target.value, **fields)
        if target == self.state.backend:
            config = self.build_backend_config(
                self.local_settings, self.settings, target, self.state.model
            )
            await self.backend.initialize(config)
            self.log.info(BACKEND_INITIALIZED, backend=target.value, model=self.state.model)

    async def aclose(self) -> None:
        """Release backend clients and MCP sessions."""
        if self.mcp_manager is not None:
            await self.mcp_manager.shutdown()
        await self.factory.aclose()
