"""CLI bootstrap/runtime wiring helpers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from taskpilot.actions import ActionLayer
from taskpilot.cli.rendering import CliRenderer
from taskpilot.commands.errors import CacheError, InterpretError
from taskpilot.config import (
    InterpreterBackend,
    NlpConfig,
    TaskpilotConfig,
    default_config_path,
    load_global_config,
)
from taskpilot.nlp.cache import ResponseCache
from taskpilot.nlp.interpreter import Interpreter, RuleInterpreter
from taskpilot.nlp.llm_interpreter import LlmInterpreter
from taskpilot.runtime.executor import SequentialExecutor, auto_confirm, line_confirmer
from taskpilot.runtime.router import CommandRouter
from taskpilot.store import TaskStore

_LOGGER = logging.getLogger(__name__)
_LOGGING_CONFIGURED = False


def configure_logging(*, verbose: bool = False) -> None:
    """Configure Rich-backed logging once for CLI commands."""
    global _LOGGING_CONFIGURED  # noqa: PLW0603
    if _LOGGING_CONFIGURED:
        return
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(show_path=False, rich_tracebacks=True)],
    )
    _LOGGING_CONFIGURED = True


def build_interpreter(config: NlpConfig) -> Interpreter | None:
    """Build the configured interpreter.

    Args:
        config: NLP settings.

    Returns:
        Interpreter, or ``None`` when the model backend has no credential.
    """
    if config.backend == InterpreterBackend.RULES:
        return RuleInterpreter()
    fast_path = RuleInterpreter() if config.pattern_fast_path else None
    try:
        return LlmInterpreter(config, fast_path=fast_path)
    except InterpretError as exc:
        _LOGGER.warning("%s", exc.message)
        return None


def _prompt_line(prompt: str) -> str:
    return typer.prompt(prompt, default="", show_default=False)


@dataclass
class CliRuntime:
    """Everything one CLI invocation needs."""

    config_path: Path
    config: TaskpilotConfig
    store: TaskStore
    actions: ActionLayer
    cache: ResponseCache | None
    interpreter: Interpreter | None
    executor: SequentialExecutor
    router: CommandRouter
    renderer: CliRenderer


def resolve_config_path(config_file: Path | None) -> Path:
    """Return explicit config path or the default location."""
    return config_file or default_config_path()


def build_runtime(
    *,
    config_file: Path | None,
    console: Console,
    assume_yes: bool = False,
    verbose: bool = False,
) -> CliRuntime:
    """Load config once and wire store, cache, interpreter, executor and router.

    Args:
        config_file: Optional config path override.
        console: Output console.
        assume_yes: Skip confirmation prompts.
        verbose: Log per-command progress.

    Returns:
        Wired runtime.

    Raises:
        GlobalConfigError: If config cannot be loaded.
    """
    config_path = resolve_config_path(config_file)
    config = load_global_config(config_path)
    renderer = CliRenderer(console=console)
    store = TaskStore(config.store_path())
    actions = ActionLayer(store)
    cache: ResponseCache | None = None
    try:
        cache = ResponseCache(config.cache_path(), ttl_seconds=config.nlp.cache_ttl_seconds)
    except CacheError as exc:
        _LOGGER.warning("response cache disabled: %s", exc.message)
    confirm = (
        auto_confirm if assume_yes or config.nlp.auto_confirm else line_confirmer(_prompt_line)
    )
    executor = SequentialExecutor(
        actions,
        confirm=confirm,
        render_preview=renderer.render_preview,
        verbose=verbose,
    )
    interpreter = build_interpreter(config.nlp) if config.nlp.enabled else None
    router = CommandRouter(
        actions=actions,
        executor=executor,
        config=config.nlp,
        interpreter=interpreter,
        cache=cache,
    )
    return CliRuntime(
        config_path=config_path,
        config=config,
        store=store,
        actions=actions,
        cache=cache,
        interpreter=interpreter,
        executor=executor,
        router=router,
        renderer=renderer,
    )
