"""Typer CLI entrypoint for taskpilot."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from taskpilot.cli.bootstrap import (
    CliRuntime,
    build_runtime,
    configure_logging,
    resolve_config_path,
)
from taskpilot.cli.rendering import CliRenderer
from taskpilot.commands.errors import CancelledByUser, ParseError, TaskpilotError
from taskpilot.commands.types import ExecutionMode
from taskpilot.config import (
    GlobalConfigError,
    InterpreterBackend,
    TaskpilotConfig,
    load_global_config,
    save_global_config,
)
from taskpilot.nlp.cache import ResponseCache
from taskpilot.nlp.interpreter import compound_args
from taskpilot.nlp.suggestions import (
    AutoCompleter,
    SuggestionEngine,
    SuggestionRequest,
    command_patterns,
)
from taskpilot.runtime.router import RouteOutcome
from taskpilot.session.interactive import InteractiveMode

app = typer.Typer(help="taskpilot CLI: tasks and records from commands or plain language")
config_app = typer.Typer(help="Inspect and change taskpilot configuration.")
app.add_typer(config_app, name="config")
_CONSOLE = Console()

_EXIT_OK = 0
_EXIT_FAILED = 1
_EXIT_PARSE = 2
_EXIT_CANCELLED = 130


@dataclass(frozen=True)
class _GlobalOptions:
    config_file: Path | None
    verbose: bool


def _parse_mode(value: str | None) -> ExecutionMode | None:
    """Turn mode spellings into ``ExecutionMode``, rejecting unknown names."""
    if value is None:
        return None
    try:
        return ExecutionMode.parse(value)
    except ValueError as exc:
        choices = ", ".join(mode.value for mode in ExecutionMode)
        raise typer.BadParameter(f"unknown mode '{value}' (choose from {choices})") from exc


ModeOption = Annotated[
    str | None,
    typer.Option(
        "--mode",
        help="Execution mode: stop_on_error, continue_on_error, parallel, dependent.",
    ),
]
ShowOption = Annotated[
    bool | None,
    typer.Option("--show/--no-show", help="Preview interpreted commands before executing."),
]
YesOption = Annotated[
    bool,
    typer.Option("--yes", "-y", help="Skip the confirmation prompt."),
]


def _exit_code_for(error: TaskpilotError) -> int:
    if isinstance(error, CancelledByUser):
        return _EXIT_CANCELLED
    if isinstance(error, ParseError):
        return _EXIT_PARSE
    return _EXIT_FAILED


def _options(ctx: typer.Context) -> _GlobalOptions:
    options = ctx.find_object(_GlobalOptions)
    if options is None:
        return _GlobalOptions(config_file=None, verbose=False)
    return options


def _runtime(ctx: typer.Context, *, assume_yes: bool = False) -> CliRuntime:
    """Build runtime for one command, mapping config failures to exit 1.

    Raises:
        Exit: If global config cannot be loaded.
    """
    options = _options(ctx)
    try:
        return build_runtime(
            config_file=options.config_file,
            console=_CONSOLE,
            assume_yes=assume_yes,
            verbose=options.verbose,
        )
    except GlobalConfigError as exc:
        _CONSOLE.print(f"[bold red]{escape(str(exc))}[/bold red]")
        raise typer.Exit(code=_EXIT_FAILED) from exc


def _finish(runtime: CliRuntime, outcome: RouteOutcome, *, show: bool | None) -> None:
    """Render a routed outcome and exit with its status.

    Raises:
        Exit: Always, with zero only for complete success.
    """
    show_interpretation = bool(show) or runtime.config.nlp.show_transparency
    runtime.renderer.render_outcome(outcome, show_interpretation=show_interpretation)
    raise typer.Exit(code=_EXIT_OK if outcome.succeeded else _EXIT_FAILED)


def _fail(runtime: CliRuntime, error: TaskpilotError) -> typer.Exit:
    runtime.renderer.render_error(error)
    return typer.Exit(code=_exit_code_for(error))


@app.callback()
def main(
    ctx: typer.Context,
    config_file: Annotated[
        Path | None,
        typer.Option(
            "--config",
            file_okay=True,
            dir_okay=False,
            help="Path to taskpilot config YAML/JSON file.",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log per-command progress and debug output."),
    ] = False,
) -> None:
    """Manage tasks and records with commands or plain language."""
    configure_logging(verbose=verbose)
    ctx.obj = _GlobalOptions(config_file=config_file, verbose=verbose)


@app.command(
    "run",
    context_settings={"allow_extra_args": True, "ignore_unknown_options": True},
)
def run_command(
    ctx: typer.Context,
    words: Annotated[
        list[str],
        typer.Argument(help="Traditional command or plain-language request."),
    ],
    no_nlp: Annotated[
        bool,
        typer.Option("--no-nlp", help="Only accept traditional commands."),
    ] = False,
    show: ShowOption = None,
    mode: ModeOption = None,
    yes: YesOption = False,
) -> None:
    """Route input to a traditional command or the interpreter.

    Args:
        ctx: Typer context carrying global options.
        words: Input tokens as received from the shell.
        no_nlp: Disable natural-language fallback.
        show: Override the configured preview setting.
        mode: Override the configured execution mode.
        yes: Skip confirmation.

    Raises:
        Exit: Raised with the outcome status code for shell integration.
    """
    execution_mode = _parse_mode(mode)
    runtime = _runtime(ctx, assume_yes=yes)
    try:
        outcome = runtime.router.route_argv(
            [*words, *ctx.args], no_nlp=no_nlp, show_preview=show, mode=execution_mode
        )
    except TaskpilotError as exc:
        raise _fail(runtime, exc) from exc
    _finish(runtime, outcome, show=show)


@app.command("nlp")
def nlp_command(
    ctx: typer.Context,
    description: Annotated[
        list[str],
        typer.Argument(help="Plain-language description of what to do."),
    ],
    show: ShowOption = None,
    mode: ModeOption = None,
    yes: YesOption = False,
) -> None:
    """Interpret a plain-language request and execute it.

    Raises:
        Exit: Raised with the outcome status code for shell integration.
    """
    execution_mode = _parse_mode(mode)
    runtime = _runtime(ctx, assume_yes=yes)
    try:
        outcome = runtime.router.route_natural_language(
            " ".join(description), show_preview=show, mode=execution_mode
        )
    except TaskpilotError as exc:
        raise _fail(runtime, exc) from exc
    _finish(runtime, outcome, show=show)


@app.command("explain")
def explain_command(
    ctx: typer.Context,
    description: Annotated[list[str], typer.Argument(help="Plain-language request.")],
) -> None:
    """Show how a request would be interpreted without executing it.

    Raises:
        Exit: If interpretation fails.
    """
    runtime = _runtime(ctx)
    text = " ".join(description)
    try:
        command, from_cache = runtime.router.interpret(text)
        vectors, summary = compound_args(command, runtime.executor.mapper, text=text)
    except TaskpilotError as exc:
        raise _fail(runtime, exc) from exc
    source = "cache" if from_cache else "interpreter"
    runtime.renderer.render_explain(vectors, f"{summary} [{source}]")


@app.command("suggest")
def suggest_command(
    ctx: typer.Context,
    partial: Annotated[
        list[str] | None,
        typer.Argument(help="Partial input to complete."),
    ] = None,
) -> None:
    """Show completions and corrections for partial input."""
    runtime = _runtime(ctx)
    text = " ".join(partial or [])
    result = SuggestionEngine().suggest(
        SuggestionRequest(
            text=text,
            cursor=len(text),
            categories=list(runtime.store.categories()),
        )
    )
    runtime.renderer.render_suggestions(result)
    if result.is_valid:
        _CONSOLE.print("[green]Input is a complete command.[/green]")


@app.command("patterns")
def patterns_command(ctx: typer.Context) -> None:
    """List supported plain-language phrasings."""
    runtime = _runtime(ctx)
    runtime.renderer.render_patterns(command_patterns())


def _prompt_repl_line(prompt: str) -> str:
    return typer.prompt(prompt, default="", show_default=False)


@app.command("repl")
def repl_command(ctx: typer.Context) -> None:
    """Run an interactive session."""
    runtime = _runtime(ctx)
    interactive = runtime.config.interactive
    completer = AutoCompleter(max_history=interactive.max_history)
    mode = InteractiveMode(
        runtime.router,
        renderer=runtime.renderer,
        read_line=_prompt_repl_line,
        completer=completer,
        config=interactive,
        categories=runtime.store.categories,
    )
    mode.run()


def _load_for_update(ctx: typer.Context) -> tuple[Path, TaskpilotConfig]:
    """Load config for in-place modification.

    Raises:
        Exit: If the config cannot be loaded.
    """
    path = resolve_config_path(_options(ctx).config_file)
    try:
        return path, load_global_config(path)
    except GlobalConfigError as exc:
        _CONSOLE.print(f"[bold red]{escape(str(exc))}[/bold red]")
        raise typer.Exit(code=_EXIT_FAILED) from exc


def _update_nlp(ctx: typer.Context, message: str, **changes: object) -> None:
    """Apply NLP setting changes, persist them and report.

    Raises:
        Exit: If config cannot be loaded or saved.
    """
    path, config = _load_for_update(ctx)
    updated = config.model_copy(
        update={"nlp": config.nlp.model_copy(update=changes)}
    )
    try:
        save_global_config(path, updated)
    except GlobalConfigError as exc:
        _CONSOLE.print(f"[bold red]{escape(str(exc))}[/bold red]")
        raise typer.Exit(code=_EXIT_FAILED) from exc
    _CONSOLE.print(Panel(f"{message}\nConfig: {path}", title="Config", border_style="green"))


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Print effective configuration with the API key masked."""
    path, config = _load_for_update(ctx)
    _CONSOLE.print(f"[dim]Config file: {escape(str(path))}[/dim]")
    CliRenderer(console=_CONSOLE).render_config(config)


@config_app.command("enable")
def config_enable(ctx: typer.Context) -> None:
    """Enable natural-language routing."""
    _update_nlp(ctx, "Natural language enabled.", enabled=True)


@config_app.command("disable")
def config_disable(ctx: typer.Context) -> None:
    """Disable natural-language routing."""
    _update_nlp(ctx, "Natural language disabled.", enabled=False)


@config_app.command("set-key")
def config_set_key(
    ctx: typer.Context,
    api_key: Annotated[str, typer.Argument(help="Model provider API key.")],
) -> None:
    """Store the model provider API key."""
    if not api_key.strip():
        raise typer.BadParameter("API key must not be empty")
    _update_nlp(ctx, "API key stored.", api_key=api_key.strip())


@config_app.command("set-mode")
def config_set_mode(
    ctx: typer.Context,
    mode: Annotated[str, typer.Argument(help="Default execution mode.")],
) -> None:
    """Set the default compound execution mode."""
    execution_mode = _parse_mode(mode)
    _update_nlp(
        ctx, f"Execution mode set to {execution_mode}.", execution_mode=execution_mode
    )


@config_app.command("set-backend")
def config_set_backend(
    ctx: typer.Context,
    backend: Annotated[InterpreterBackend, typer.Argument(help="Interpreter backend.")],
) -> None:
    """Choose the natural-language interpreter backend."""
    _update_nlp(ctx, f"Interpreter backend set to {backend.value}.", backend=backend)


@config_app.command("enable-preview")
def config_enable_preview(ctx: typer.Context) -> None:
    """Preview interpreted commands before executing."""
    _update_nlp(ctx, "Preview enabled.", preview_enabled=True)


@config_app.command("disable-preview")
def config_disable_preview(ctx: typer.Context) -> None:
    """Execute interpreted commands without a preview."""
    _update_nlp(ctx, "Preview disabled.", preview_enabled=False)


@config_app.command("enable-auto-confirm")
def config_enable_auto_confirm(ctx: typer.Context) -> None:
    """Accept previews without prompting."""
    _update_nlp(ctx, "Auto-confirm enabled.", auto_confirm=True)


@config_app.command("disable-auto-confirm")
def config_disable_auto_confirm(ctx: typer.Context) -> None:
    """Prompt before executing previewed commands."""
    _update_nlp(ctx, "Auto-confirm disabled.", auto_confirm=False)


@config_app.command("enable-transparency")
def config_enable_transparency(ctx: typer.Context) -> None:
    """Always show how input was interpreted."""
    _update_nlp(ctx, "Transparency enabled.", show_transparency=True)


@config_app.command("disable-transparency")
def config_disable_transparency(ctx: typer.Context) -> None:
    """Only show interpretations when asked."""
    _update_nlp(ctx, "Transparency disabled.", show_transparency=False)


def _open_cache(ctx: typer.Context) -> ResponseCache:
    """Open the response cache configured for this invocation.

    Raises:
        Exit: If config or cache storage cannot be opened.
    """
    _, config = _load_for_update(ctx)
    try:
        return ResponseCache(config.cache_path(), ttl_seconds=config.nlp.cache_ttl_seconds)
    except TaskpilotError as exc:
        _CONSOLE.print(f"[bold red]{escape(exc.message)}[/bold red]")
        raise typer.Exit(code=_EXIT_FAILED) from exc


@config_app.command("cache-stats")
def config_cache_stats(ctx: typer.Context) -> None:
    """Show response cache statistics."""
    cache = _open_cache(ctx)
    try:
        stats = cache.stats()
    except TaskpilotError as exc:
        _CONSOLE.print(f"[bold red]{escape(exc.message)}[/bold red]")
        raise typer.Exit(code=_EXIT_FAILED) from exc
    CliRenderer(console=_CONSOLE).render_cache_stats(stats)


@config_app.command("cache-cleanup")
def config_cache_cleanup(ctx: typer.Context) -> None:
    """Remove expired cache entries."""
    cache = _open_cache(ctx)
    try:
        removed = cache.cleanup()
    except TaskpilotError as exc:
        _CONSOLE.print(f"[bold red]{escape(exc.message)}[/bold red]")
        raise typer.Exit(code=_EXIT_FAILED) from exc
    _CONSOLE.print(f"Removed {removed} expired cache entr{'y' if removed == 1 else 'ies'}.")


@config_app.command("clear-cache")
def config_clear_cache(ctx: typer.Context) -> None:
    """Remove every cached interpretation."""
    cache = _open_cache(ctx)
    try:
        cache.clear()
    except TaskpilotError as exc:
        _CONSOLE.print(f"[bold red]{escape(exc.message)}[/bold red]")
        raise typer.Exit(code=_EXIT_FAILED) from exc
    _CONSOLE.print("Response cache cleared.")

