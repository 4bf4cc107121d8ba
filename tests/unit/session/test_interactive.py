"""Unit tests for the interactive REPL orchestration."""

from __future__ import annotations

import io
from collections.abc import Iterator
from pathlib import Path

import pytest
from rich.console import Console

from taskpilot.actions import ActionLayer
from taskpilot.cli.rendering import CliRenderer
from taskpilot.config import InteractiveConfig, NlpConfig
from taskpilot.nlp.cache import ResponseCache
from taskpilot.nlp.interpreter import RuleInterpreter
from taskpilot.runtime.executor import SequentialExecutor
from taskpilot.runtime.router import CommandRouter
from taskpilot.session.interactive import BuiltinCommand, InteractiveMode, match_builtin
from taskpilot.store import ItemQuery, TaskStore


class _Clock:
    """Manually advanced wall clock."""

    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _lines(*lines: str) -> Iterator[str]:
    yield from lines


def _mode(
    action_layer: ActionLayer,
    tmp_path: Path,
    *,
    lines: tuple[str, ...] = (),
    config: InteractiveConfig | None = None,
    clock: _Clock | None = None,
) -> tuple[InteractiveMode, io.StringIO]:
    """Build a REPL writing into a string buffer."""
    output = io.StringIO()
    renderer = CliRenderer(console=Console(file=output, width=120))
    router = CommandRouter(
        actions=action_layer,
        executor=SequentialExecutor(action_layer),
        config=NlpConfig(preview_enabled=False),
        interpreter=RuleInterpreter(),
        cache=ResponseCache(tmp_path / "cache.db"),
    )
    feed = _lines(*lines)

    def _read_line(_prompt: str) -> str:
        try:
            return next(feed)
        except StopIteration:
            raise EOFError from None

    mode = InteractiveMode(
        router,
        renderer=renderer,
        read_line=_read_line,
        config=config or InteractiveConfig(show_context_on_start=False),
        categories=action_layer.store.categories,
        clock=clock or _Clock(),
    )
    return mode, output


@pytest.mark.unit
@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("quit", BuiltinCommand.EXIT),
        (" Q ", BuiltinCommand.EXIT),
        ("?", BuiltinCommand.HELP),
        ("ctx", BuiltinCommand.CONTEXT),
        ("reset", BuiltinCommand.CLEAR),
        ("!!", BuiltinCommand.REPEAT),
        ("history", BuiltinCommand.HISTORY),
        ("list", None),
    ],
)
def test_match_builtin(text: str, expected: BuiltinCommand | None) -> None:
    """Built-in aliases are matched case-insensitively; others are not."""
    assert match_builtin(text) == expected


@pytest.mark.unit
def test_run_processes_lines_until_exit(
    action_layer: ActionLayer, task_store: TaskStore, tmp_path: Path
) -> None:
    """The loop routes commands, counts interactions and stops on exit."""
    # Arrange - two commands then exit, plus a line that must never be read
    mode, output = _mode(
        action_layer,
        tmp_path,
        lines=("add task buy milk #home", "", "exit", "add task never"),
    )

    # Act - run
    session = mode.run()

    # Assert - one task, two interactions, goodbye printed
    assert [item.content for item in task_store.list_items(ItemQuery())] == ["buy milk"]
    assert session.is_active is False
    assert session.interaction_count == 2
    assert "Goodbye! 2 interaction(s)" in output.getvalue()


@pytest.mark.unit
def test_end_of_input_ends_session(action_layer: ActionLayer, tmp_path: Path) -> None:
    """EOF from the line reader ends the loop cleanly."""
    mode, _ = _mode(action_layer, tmp_path, config=InteractiveConfig())

    session = mode.run()

    assert session.is_active is False
    assert session.interaction_count == 0


@pytest.mark.unit
def test_repeat_reruns_last_successful_command(
    action_layer: ActionLayer, task_store: TaskStore, tmp_path: Path
) -> None:
    """`repeat` runs the previous interpreted commands again."""
    # Arrange - REPL with nothing to repeat yet
    mode, output = _mode(action_layer, tmp_path)

    # Act - repeat before and after a successful command
    mode.handle_line("repeat")
    mode.handle_line("add task call mom")
    mode.handle_line("!!")

    # Assert - message first, then two identical tasks
    assert "No previous command to repeat." in output.getvalue()
    contents = [item.content for item in task_store.list_items(ItemQuery())]
    assert contents == ["call mom", "call mom"]
    assert mode.last_context is not None
    assert mode.last_context.last_content == "call mom"


@pytest.mark.unit
def test_ambiguous_input_sets_pending_clarification(
    action_layer: ActionLayer, tmp_path: Path
) -> None:
    """Ambiguous input is kept and offered suggestions; clear forgets it."""
    # Arrange - REPL
    mode, output = _mode(action_layer, tmp_path)

    # Act - ambiguous bare number
    mode.handle_line("5")

    # Assert - pending and suggestions shown
    assert mode.pending_clarification == "5"
    assert "Add more detail on the next line to clarify." in output.getvalue()
    assert "No suggestions available" in output.getvalue()

    # Act - clear
    mode.handle_line("clear")

    # Assert - forgotten
    assert mode.pending_clarification is None
    assert mode.last_outcome is None


@pytest.mark.unit
def test_pending_clarification_prefixes_next_line(
    action_layer: ActionLayer, tmp_path: Path
) -> None:
    """The next line is interpreted together with the pending text."""
    # Arrange - pending bare number
    mode, output = _mode(action_layer, tmp_path)
    mode.handle_line("5")

    # Act - follow-up that still cannot be understood
    mode.handle_line("please")

    # Assert - combined text failed and pending was consumed
    assert mode.pending_clarification is None
    assert "5 please" in output.getvalue()


@pytest.mark.unit
def test_idle_timeout_ends_session(action_layer: ActionLayer, tmp_path: Path) -> None:
    """Input after the idle timeout ends the session without running."""
    # Arrange - one-minute timeout and a controllable clock
    clock = _Clock()
    mode, output = _mode(
        action_layer,
        tmp_path,
        config=InteractiveConfig(show_context_on_start=False, session_timeout_seconds=60),
        clock=clock,
    )
    mode.handle_line("list")

    # Act - advance past timeout
    clock.now += 61
    mode.handle_line("add task late")

    # Assert - ended without recording the late line
    assert mode.session.is_active is False
    assert mode.session.interaction_count == 1
    assert "Session timed out after inactivity." in output.getvalue()
    assert list(mode.history) == ["list"]


@pytest.mark.unit
def test_help_and_history_builtins(action_layer: ActionLayer, tmp_path: Path) -> None:
    """Help lists built-ins and history shows earlier inputs."""
    # Arrange - REPL
    mode, output = _mode(action_layer, tmp_path)

    # Act - history when empty, then after a command
    mode.handle_line("history")
    mode.handle_line("help")
    mode.handle_line("list")
    mode.handle_line("history")

    # Assert - outputs
    text = output.getvalue()
    assert "No history yet." in text
    assert "Built-in commands:" in text
    assert "  3. list" in text


@pytest.mark.unit
def test_failed_input_shows_corrections(action_layer: ActionLayer, tmp_path: Path) -> None:
    """Unrecognized input renders an error and ranked corrections."""
    # Arrange - REPL
    mode, output = _mode(action_layer, tmp_path)

    # Act - misspelled command
    mode.handle_line("delet")

    # Assert - not pending, corrections shown
    text = output.getvalue()
    assert mode.pending_clarification is None
    assert "Did you mean" in text
    assert "delete" in text
