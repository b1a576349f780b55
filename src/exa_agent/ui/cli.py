"""CLI interface for exa-agent.

This module provides a Typer-based command-line interface: an interactive
chat REPL, one-shot questions, credential management and the model catalog.
"""

import asyncio
import json
import signal
from typing import Any, Optional

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from exa_agent.backends import (
    DEFAULT_MODELS,
    PROVIDER_MODELS,
    BackendConfigError,
    BackendType,
    Usage,
)
from exa_agent.config import LocalSettings, LocalSettingsError, get_settings
from exa_agent.mcp import MCPToolManager
from exa_agent.orchestrator import (
    ApprovalDecision,
    AuthenticationFatalError,
    BackendInitializationError,
    BackendSwitchError,
    Orchestrator,
    OrchestratorCallbacks,
    RunInProgressError,
    RunOutcome,
    RunResult,
)
from exa_agent.telemetry import configure_logging
from exa_agent.tools import ToolResult, create_default_registry

app = typer.Typer(help="exa - coding assistant for your terminal")
console = Console()

MAX_ARGUMENT_PREVIEW = 120

SLASH_HELP = """\
/clear                      Clear the conversation (keeps session approvals)
/model [id]                 Show models or switch model on the current backend
/backend <type> [model]     Switch backend
/login <backend> <api_key>  Store an API key
/mcp                        Show MCP server status
/exit                       Leave the session"""


class LineReader:
    """Reads stdin lines off the event loop.

    A read that was abandoned (Ctrl-C during an approval prompt) is reused by
    the next caller, so two threads never compete for the same input line.
    """

    def __init__(self) -> None:
        self._pending: asyncio.Future[str] | None = None

    async def read(self, prompt: str) -> str:
        if self._pending is None or self._pending.done():
            self._pending = asyncio.ensure_future(asyncio.to_thread(console.input, prompt))
        else:
            console.print(prompt, end="")
        return await asyncio.shield(self._pending)


def _preview_arguments(args: dict[str, Any]) -> str:
    text = json.dumps(args, ensure_ascii=False, default=str)
    if len(text) > MAX_ARGUMENT_PREVIEW:
        return text[: MAX_ARGUMENT_PREVIEW - 3] + "..."
    return text


class ConsoleCallbacks:
    """Renders orchestrator events with rich and asks the user for decisions."""

    def __init__(self, reader: LineReader) -> None:
        self.reader = reader
        self.usage: list[Usage] = []

    def build(self) -> OrchestratorCallbacks:
        return OrchestratorCallbacks(
            on_tool_start=self.tool_start,
            on_tool_end=self.tool_end,
            on_tool_approval=self.tool_approval,
            on_thinking_text=self.thinking_text,
            on_final_message=self.final_message,
            on_max_iterations_reached=self.max_iterations_reached,
            on_usage=self.usage.append,
            on_error=self.error,
        )

    def tool_start(self, name: str, args: dict[str, Any]) -> None:
        console.print(f"[cyan]> {name}[/cyan] [dim]{_preview_arguments(args)}[/dim]")

    def tool_end(self, name: str, result: ToolResult) -> None:
        if result.success:
            console.print(f"[green]  done[/green] [dim]{name} ({result.latency_ms:.0f} ms)[/dim]")
        elif result.user_rejected:
            console.print(f"[yellow]  skipped[/yellow] [dim]{result.error}[/dim]")
        else:
            console.print(f"[red]  failed[/red] {result.error}")

    def thinking_text(self, text: str, reasoning: str | None) -> None:
        if reasoning:
            console.print(f"[dim italic]{reasoning}[/dim italic]")
        if text:
            console.print(Markdown(text), style="dim")

    def final_message(self, text: str, reasoning: str | None) -> None:
        if reasoning:
            console.print(f"[dim italic]{reasoning}[/dim italic]")
        console.print()
        console.print(Markdown(text or ""))

    async def tool_approval(self, name: str, args: dict[str, Any]) -> ApprovalDecision:
        console.print(
            Panel(
                json.dumps(args, indent=2, ensure_ascii=False, default=str),
                title=f"[bold yellow]Approve {name}?[/bold yellow]",
                border_style="yellow",
            )
        )
        try:
            answer = await self.reader.read("[y]es / [n]o / [a]lways this session: ")
        except EOFError:
            return ApprovalDecision.reject()
        answer = answer.strip().lower()
        if answer in ("a", "always"):
            return ApprovalDecision(approved=True, auto_approve_session=True)
        return ApprovalDecision(approved=answer in ("y", "yes"))

    async def _confirm(self, question: str) -> bool:
        try:
            answer = await self.reader.read(f"{question} [y/n]: ")
        except EOFError:
            return False
        return answer.strip().lower() in ("y", "yes")

    async def max_iterations_reached(self, limit: int) -> bool:
        console.print(f"[yellow]Reached the limit of {limit} iterations.[/yellow]")
        return await self._confirm("Continue?")

    async def error(self, message: str) -> bool:
        console.print(f"[red]Error:[/red] {message}")
        return await self._confirm("Retry?")


def _print_usage(usage: list[Usage]) -> None:
    if not usage:
        return
    prompt_tokens = sum(u.prompt_tokens for u in usage)
    completion_tokens = sum(u.completion_tokens for u in usage)
    console.print(
        f"[dim]{prompt_tokens} prompt + {completion_tokens} completion tokens "
        f"over {len(usage)} call(s)[/dim]"
    )


def _print_outcome(result: RunResult) -> None:
    if result.outcome == RunOutcome.INTERRUPTED:
        console.print("[yellow]Interrupted.[/yellow]")
    elif result.outcome == RunOutcome.TOOL_REJECTED:
        console.print("[yellow]Stopped after a rejected tool call.[/yellow]")
    elif result.outcome == RunOutcome.MAX_ITERATIONS:
        console.print("[yellow]Stopped at the iteration limit.[/yellow]")
    elif result.outcome == RunOutcome.FAILED:
        console.print("[red]Request failed.[/red]")


async def _open_session(
    backend: str | None, model: str | None, callbacks: OrchestratorCallbacks
) -> Orchestrator:
    """Connect MCP servers and build an orchestrator with an initialized backend."""
    settings = get_settings()
    local_settings = LocalSettings(settings.local_settings_path)
    registry = create_default_registry()

    mcp_manager: MCPToolManager | None = None
    if settings.mcp_enabled and local_settings.get_mcp_settings().servers:
        mcp_manager = MCPToolManager(registry, local_settings)
        with console.status("Connecting MCP servers..."):
            await mcp_manager.start()
        for status in mcp_manager.server_status():
            if not status.connected:
                console.print(f"[yellow]MCP server {status.name} unavailable:[/yellow] {status.last_error}")

    try:
        return await Orchestrator.create(
            backend=backend,
            model=model,
            settings=settings,
            callbacks=callbacks,
            local_settings=local_settings,
            registry=registry,
            mcp_manager=mcp_manager,
        )
    except BackendInitializationError:
        if mcp_manager is not None:
            await mcp_manager.shutdown()
        raise


async def _run_request(orchestrator: Orchestrator, text: str) -> RunResult:
    """Run one request with Ctrl-C mapped to ``orchestrator.interrupt()``."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, orchestrator.interrupt)
        handler_installed = True
    except (NotImplementedError, RuntimeError):
        # Windows event loops have no signal handlers
        handler_installed = False
    try:
        return await orchestrator.run(text)
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)


def _models_table(backend: BackendType, current: str | None = None) -> Table:
    table = Table(title=f"{backend.value} models")
    table.add_column("Model", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Description", style="white")
    for info in PROVIDER_MODELS.get(backend, []):
        marker = " *" if info.id == current else ""
        table.add_row(info.id + marker, info.name, info.description)
    return table


def _print_mcp_status(orchestrator: Orchestrator) -> None:
    manager = orchestrator.mcp_manager
    if manager is None or not manager.server_status():
        console.print("[dim]No MCP servers configured.[/dim]")
        return
    table = Table(title="MCP servers")
    table.add_column("Server", style="cyan")
    table.add_column("Status")
    table.add_column("Tools", justify="right")
    table.add_column("Last error", overflow="fold")
    for status in manager.server_status():
        state = "[green]connected[/green]" if status.connected else "[red]failed[/red]"
        table.add_row(status.name, state, str(status.tool_count), status.last_error or "")
    console.print(table)


async def _handle_slash_command(orchestrator: Orchestrator, line: str) -> bool:
    """Execute a slash command.

    Returns:
        False when the session should end.
    """
    parts = line.split()
    command, args = parts[0].lower(), parts[1:]

    if command in ("/exit", "/quit"):
        return False
    if command == "/clear":
        orchestrator.clear_history()
        console.print("[dim]Conversation cleared.[/dim]")
    elif command == "/model":
        if not args:
            console.print(_models_table(orchestrator.state.backend, orchestrator.state.model))
        else:
            orchestrator.set_model(args[0])
            console.print(f"[dim]Model set to {args[0]}.[/dim]")
    elif command == "/backend":
        if not args:
            console.print(f"[dim]Current backend: {orchestrator.state.backend.value} ({orchestrator.state.model})[/dim]")
        else:
            try:
                with console.status(f"Switching to {args[0]}..."):
                    await orchestrator.switch_backend(args[0], args[1] if len(args) > 1 else None)
            except BackendSwitchError as e:
                console.print(f"[red]{e}[/red]")
            else:
                console.print(f"[dim]Using {orchestrator.state.backend.value} ({orchestrator.state.model}).[/dim]")
    elif command == "/login":
        if len(args) < 2:
            console.print("[yellow]Usage: /login <backend> <api_key>[/yellow]")
        else:
            try:
                await orchestrator.configure_backend(args[0], api_key=args[1])
            except (BackendConfigError, LocalSettingsError) as e:
                console.print(f"[red]{e}[/red]")
            else:
                console.print(f"[green]Credentials saved for {args[0]}.[/green]")
    elif command == "/mcp":
        _print_mcp_status(orchestrator)
    else:
        console.print(SLASH_HELP)
    return True


async def _chat_loop(backend: str | None, model: str | None) -> None:
    reader = LineReader()
    renderer = ConsoleCallbacks(reader)
    orchestrator = await _open_session(backend, model, renderer.build())
    console.print(
        f"[bold blue]exa[/bold blue] [dim]{orchestrator.state.backend.value} / "
        f"{orchestrator.state.model}. Type /help for commands.[/dim]"
    )
    try:
        while True:
            try:
                line = (await reader.read("\n[bold green]>[/bold green] ")).strip()
            except EOFError:
                break
            if not line:
                continue
            if line.startswith("/"):
                if not await _handle_slash_command(orchestrator, line):
                    break
                continue

            renderer.usage.clear()
            try:
                result = await _run_request(orchestrator, line)
            except AuthenticationFatalError as e:
                console.print(f"[red]{e}[/red]")
                continue
            except RunInProgressError:
                continue
            _print_outcome(result)
            _print_usage(renderer.usage)
    finally:
        await orchestrator.aclose()


async def _ask_once(prompt: str, backend: str | None, model: str | None) -> RunResult:
    renderer = ConsoleCallbacks(LineReader())
    orchestrator = await _open_session(backend, model, renderer.build())
    try:
        result = await _run_request(orchestrator, prompt)
    finally:
        await orchestrator.aclose()
    _print_outcome(result)
    _print_usage(renderer.usage)
    return result


@app.callback()
def main(
    debug: bool = typer.Option(False, "--debug", help="Print debug logs to stderr"),
) -> None:
    """exa - coding assistant for your terminal."""
    if debug:
        configure_logging(level="DEBUG")


@app.command(name="chat")
def chat_command(
    backend: Optional[str] = typer.Option(None, "--backend", "-b", help="Backend to use"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model id"),
) -> None:
    """Start an interactive session.

    Examples:
        exa chat
        exa chat --backend anthropic --model claude-sonnet-4-5
    """
    try:
        asyncio.run(_chat_loop(backend, model))
    except BackendInitializationError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e
    except KeyboardInterrupt:
        console.print("\n[dim]Bye.[/dim]")


@app.command(name="ask")
def ask_command(
    prompt: str = typer.Argument(..., help="Request to send to the agent"),
    backend: Optional[str] = typer.Option(None, "--backend", "-b", help="Backend to use"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model id"),
) -> None:
    """Send one request and exit.

    Examples:
        exa ask "Summarize README.md"
    """
    try:
        result = asyncio.run(_ask_once(prompt, backend, model))
    except (BackendInitializationError, AuthenticationFatalError) as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e
    if result.outcome == RunOutcome.FAILED:
        raise typer.Exit(1)


@app.command(name="login")
def login_command(
    backend: str = typer.Argument(..., help="Backend to configure (groq, openai, azure, ...)"),
    api_key: Optional[str] = typer.Option(None, "--api-key", help="API key"),
    endpoint: Optional[str] = typer.Option(None, "--endpoint", help="Endpoint URL (azure, ollama)"),
    deployment: Optional[str] = typer.Option(None, "--deployment", help="Azure deployment name"),
    api_version: Optional[str] = typer.Option(None, "--api-version", help="Azure API version"),
    set_default: bool = typer.Option(True, "--default/--no-default", help="Make it the default backend"),
) -> None:
    """Store credentials for a backend.

    Examples:
        exa login groq --api-key gsk_...
        exa login azure --api-key ... --endpoint https://x.openai.azure.com --deployment gpt-5
    """
    target = BackendType.from_str(backend)
    if target is None:
        console.print(f"[red]Unknown backend: {backend}[/red]")
        raise typer.Exit(1)
    if api_key is None and target != BackendType.OLLAMA:
        api_key = typer.prompt(f"{target.value} API key", hide_input=True)

    local_settings = LocalSettings(get_settings().local_settings_path)
    fields = {
        "api_key": api_key,
        "endpoint": endpoint,
        "deployment_name": deployment,
        "api_version": api_version,
    }
    try:
        local_settings.update_backend(target.value, **{k: v for k, v in fields.items() if v})
        if set_default:
            local_settings.set_default_backend(target.value)
    except LocalSettingsError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e
    console.print(f"[green]Credentials saved for {target.value}.[/green]")


@app.command(name="models")
def models_command(
    backend: Optional[str] = typer.Argument(None, help="Only list this backend"),
) -> None:
    """List the known models per backend."""
    if backend is None:
        backends = list(PROVIDER_MODELS)
    else:
        target = BackendType.from_str(backend)
        if target is None:
            console.print(f"[red]Unknown backend: {backend}[/red]")
            raise typer.Exit(1)
        backends = [target]
    for target in backends:
        console.print(_models_table(target, DEFAULT_MODELS.get(target)))


if __name__ == "__main__":
    app()
