"""REPL loop orchestrating router, completer and session state."""

from __future__ import annotations

import logging
import time
from collections import deque
from collections.abc import Callable
from enum import StrEnum

import typer

from taskpilot.cli.rendering import CliRenderer
from taskpilot.commands.errors import (
    CacheError,
    CancelledByUser,
    ExecutionError,
    InterpretError,
    ParseError,
    StoreError,
)
from taskpilot.commands.types import StructuredCommand
from taskpilot.config import InteractiveConfig
from taskpilot.nlp.suggestions import AutoCompleter
from taskpilot.runtime.executor import ExecutionContext
from taskpilot.runtime.router import CommandRouter, RouteOutcome, RoutePath
from taskpilot.session.models import InteractiveSession

_LOGGER = logging.getLogger(__name__)
_CLARIFY_SUGGESTIONS = 3

_HELP_TEXT = """Built-in commands:
  exit, quit, q      leave the session
  help, h, ?         show this help
  context, ctx       show session and last execution context
  clear, reset       forget last command, context and pending clarification
  repeat, r, !!      run the last successful command again
  history            show recent inputs

Anything else is a task command, for example:
  add task buy milk tomorrow #home
  list work tasks
  add task call mom and then mark it done
  task "pay rent" eom -c home"""


class BuiltinCommand(StrEnum):
    """Session commands handled without the interpreter."""

    EXIT = "exit"
    HELP = "help"
    CONTEXT = "context"
    CLEAR = "clear"
    REPEAT = "repeat"
    HISTORY = "history"


_BUILTIN_ALIASES: dict[str, BuiltinCommand] = {
    "exit": BuiltinCommand.EXIT,
    "quit": BuiltinCommand.EXIT,
    "q": BuiltinCommand.EXIT,
    ":q": BuiltinCommand.EXIT,
    "help": BuiltinCommand.HELP,
    "h": BuiltinCommand.HELP,
    "?": BuiltinCommand.HELP,
    ":help": BuiltinCommand.HELP,
    "context": BuiltinCommand.CONTEXT,
    "ctx": BuiltinCommand.CONTEXT,
    "clear": BuiltinCommand.CLEAR,
    "reset": BuiltinCommand.CLEAR,
    "repeat": BuiltinCommand.REPEAT,
    "r": BuiltinCommand.REPEAT,
    "!!": BuiltinCommand.REPEAT,
    "history": BuiltinCommand.HISTORY,
}


def match_builtin(text: str) -> BuiltinCommand | None:
    """Return the built-in command for ``text``, case-insensitively."""
    return _BUILTIN_ALIASES.get(text.strip().lower())


class InteractiveMode:
    """Read lines, run built-ins locally and route everything else."""

    def __init__(
        self,
        router: CommandRouter,
        *,
        renderer: CliRenderer,
        read_line: Callable[[str], str],
        completer: AutoCompleter | None = None,
        config: InteractiveConfig | None = None,
        categories: Callable[[], tuple[str, ...]] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Create REPL orchestration.

        Args:
            router: Command router used for non-built-in input.
            renderer: Output renderer.
            read_line: Prompting line reader; raises EOFError to end.
            completer: Suggestion completer fed with accepted input.
            config: REPL settings.
            categories: Provider of known categories for suggestions.
            clock: Wall clock for activity tracking.
        """
        self._router = router
        self._renderer = renderer
        self._read_line = read_line
        self._config = config or InteractiveConfig()
        self._completer = completer or AutoCompleter()
        self._categories = categories
        self._clock = clock
        self.session = InteractiveSession.start(clock())
        self.history: deque[str] = deque(maxlen=self._config.max_history)
        self.last_outcome: RouteOutcome | None = None
        self.last_context: ExecutionContext | None = None
        self.pending_clarification: str | None = None

    def run(self) -> InteractiveSession:
        """Run until exit, end of input or idle timeout.

        Returns:
            Final (inactive) session state.
        """
        console = self._renderer.console
        console.print(
            "taskpilot interactive mode. Type 'help' for commands, 'exit' to quit.",
            style="cyan",
        )
        self._refresh_categories()
        if self._config.show_context_on_start:
            self._show_context()
        _LOGGER.debug("session %s started", self.session.session_id)
        while self.session.is_active:
            try:
                line = self._read_line(self._config.prompt)
            except (EOFError, KeyboardInterrupt, typer.Abort):
                break
            self.handle_line(line)
        self.session.end()
        now = self._clock()
        console.print(
            f"Goodbye! {self.session.interaction_count} interaction(s) "
            f"in {self.session.duration(now):.0f}s.",
            style="cyan",
        )
        return self.session

    def handle_line(self, line: str) -> None:
        """Process one raw input line."""
        text = line.strip()
        if not text:
            return
        now = self._clock()
        if self.session.is_idle(self._config.session_timeout_seconds, now):
            self._renderer.console.print(
                "Session timed out after inactivity.", style="yellow"
            )
            self.session.end()
            return
        self.session.record_interaction(now)
        self.history.append(text)
        builtin = match_builtin(text)
        if builtin is not None:
            self._run_builtin(builtin)
            return
        self._process(text)

    def _run_builtin(self, command: BuiltinCommand) -> None:
        console = self._renderer.console
        if command == BuiltinCommand.EXIT:
            self.session.end()
        elif command == BuiltinCommand.HELP:
            console.print(_HELP_TEXT)
        elif command == BuiltinCommand.CONTEXT:
            self._show_context()
        elif command == BuiltinCommand.CLEAR:
            self.last_outcome = None
            self.last_context = None
            self.pending_clarification = None
            console.print("Session context cleared.", style="cyan")
        elif command == BuiltinCommand.REPEAT:
            self._repeat()
        elif command == BuiltinCommand.HISTORY:
            entries = list(self.history)[:-1]
            if not entries:
                console.print("No history yet.")
            for position, entry in enumerate(entries, start=1):
                console.print(f"{position:>3}. {entry}")

    def _process(self, text: str) -> None:
        if self.pending_clarification is not None:
            text = f"{self.pending_clarification} {text}"
            self.pending_clarification = None
        try:
            outcome = self._router.route_text(text)
        except InterpretError as exc:
            self._renderer.render_error(exc)
            if exc.ambiguous:
                self.pending_clarification = text
                self._renderer.console.print(
                    "Add more detail on the next line to clarify.", style="yellow"
                )
            suggestions = self._completer.suggest(text)
            self._renderer.render_suggestions(
                suggestions.model_copy(
                    update={"suggestions": suggestions.suggestions[:_CLARIFY_SUGGESTIONS]}
                ),
                title="Did you mean",
            )
            return
        except (CancelledByUser, ParseError, ExecutionError, CacheError, StoreError) as exc:
            self._renderer.render_error(exc)
            return
        self._accept(text, outcome)

    def _repeat(self) -> None:
        previous = self.last_outcome
        if previous is None or not previous.succeeded:
            self._renderer.console.print("No previous command to repeat.", style="yellow")
            return
        try:
            if previous.path == RoutePath.NATURAL_LANGUAGE:
                outcome = self._repeat_commands(previous)
            else:
                outcome = self._router.route_text(previous.text)
        except (CancelledByUser, ParseError, ExecutionError, InterpretError, CacheError) as exc:
            self._renderer.render_error(exc)
            return
        self._accept(previous.text, outcome)

    def _repeat_commands(self, previous: RouteOutcome) -> RouteOutcome:
        commands: tuple[StructuredCommand, ...] = previous.commands
        summary = self._router.execute_commands(commands)
        return previous.model_copy(update={"summary": summary, "from_cache": False})

    def _accept(self, text: str, outcome: RouteOutcome) -> None:
        self._renderer.render_outcome(
            outcome, show_interpretation=self._config.show_interpretation
        )
        self._completer.add_to_history(text)
        if outcome.summary is not None:
            self.last_context = outcome.summary.context
        if outcome.succeeded:
            self.last_outcome = outcome
        self._refresh_categories()

    def _refresh_categories(self) -> None:
        if self._categories is None:
            return
        try:
            self._completer.update_categories(self._categories())
        except StoreError as exc:
            _LOGGER.debug("could not refresh categories: %s", exc)

    def _show_context(self) -> None:
        now = self._clock()
        self._renderer.render_context(
            session_lines=[
                f"Session: {self.session.session_id}",
                f"Interactions: {self.session.interaction_count}",
                f"Duration: {self.session.duration(now):.0f}s",
                f"Pending clarification: {self.pending_clarification or '-'}",
            ],
            context=self.last_context,
            categories=self._completer.categories,
        )
