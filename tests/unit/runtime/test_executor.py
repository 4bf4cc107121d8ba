"""Unit tests for compound execution modes and context carry-over."""

from __future__ import annotations

from collections.abc import Sequence

import pytest

from taskpilot.actions import ActionLayer, ActionOutcome
from taskpilot.commands.errors import CancelledByUser
from taskpilot.commands.types import ActionKind, ExecutionMode, StructuredCommand
from taskpilot.runtime.executor import (
    CommandOutput,
    CompoundPreview,
    ExecutionContext,
    ExecutionResult,
    SequentialExecutor,
    is_affirmative,
    line_confirmer,
)
from taskpilot.store import ItemKind, ItemQuery, TaskStore


class _RecordingRunner:
    """Action runner that records vectors and never fails."""

    def __init__(self) -> None:
        self.calls: list[list[str]] = []

    def execute(self, argv: Sequence[str]) -> ActionOutcome:
        self.calls.append(list(argv))
        return ActionOutcome(message="ok", content=argv[1] if len(argv) > 1 else None)


def _task(content: str, **fields: object) -> StructuredCommand:
    return StructuredCommand(action=ActionKind.TASK, content=content, **fields)


def _done(content: str) -> StructuredCommand:
    return StructuredCommand(action=ActionKind.DONE, content=content)


@pytest.mark.unit
def test_dependent_mode_resolves_it_to_previous_content(
    action_layer: ActionLayer, task_store: TaskStore
) -> None:
    """`it` refers to the item touched by the previous command."""
    # Arrange - create then complete `it`
    executor = SequentialExecutor(action_layer)
    commands = [_task("call mom"), _done("it")]

    # Act - execute in dependent mode
    summary = executor.execute_compound(commands, ExecutionMode.DEPENDENT)

    # Assert - both succeed and the task is closed
    assert summary.is_complete_success
    assert summary.summary() == "All 2 command(s) executed successfully"
    assert summary.results[1].command is not None
    assert summary.results[1].command.content == "call mom"
    assert summary.context.last_content == "call mom"
    assert task_store.list_items(ItemQuery()) == ()


@pytest.mark.unit
def test_dependent_mode_inherits_category(action_layer: ActionLayer, task_store: TaskStore) -> None:
    """A missing category is filled from the previous command."""
    # Arrange - first task has a category, second does not
    executor = SequentialExecutor(action_layer)
    commands = [_task("draft plan", category="work"), _task("review plan")]

    # Act - execute
    executor.execute_compound(commands, ExecutionMode.DEPENDENT)

    # Assert - both stored under work
    items = task_store.list_items(ItemQuery(category="work"))
    assert [item.content for item in items] == ["draft plan", "review plan"]


@pytest.mark.unit
def test_stop_on_error_halts_after_first_failure(action_layer: ActionLayer) -> None:
    """Stop-on-error records the failure and skips the rest."""
    # Arrange - failing completion then a valid task
    executor = SequentialExecutor(action_layer)
    commands = [_done("missing chore"), _task("never created")]

    # Act - execute
    summary = executor.execute_compound(commands, ExecutionMode.STOP_ON_ERROR)

    # Assert - one failed result, total still counts both
    assert len(summary.results) == 1
    assert summary.total == 2
    assert summary.summary() == "Executed 2 command(s): 0 succeeded, 1 failed"
    error = summary.results[0].error or ""
    assert error.startswith("command 1 (done missing chore):")
    assert "no open task matches" in error


@pytest.mark.unit
@pytest.mark.parametrize(
    "mode",
    [ExecutionMode.CONTINUE_ON_ERROR, ExecutionMode.PARALLEL],
    ids=["continue", "parallel"],
)
def test_continue_modes_run_everything_without_resolution(
    action_layer: ActionLayer, mode: ExecutionMode
) -> None:
    """Continue and parallel modes run all members and leave `it` literal."""
    # Arrange - task then a reference that only dependent mode resolves
    executor = SequentialExecutor(action_layer)
    commands = [_task("call mom"), _done("it"), _task("buy milk")]

    # Act - execute
    summary = executor.execute_compound(commands, mode)

    # Assert - three results, middle one failed on the literal reference
    assert [result.success for result in summary.results] == [True, False, True]
    assert [result.index for result in summary.results] == [0, 1, 2]
    assert summary.summary() == "Executed 3 command(s): 2 succeeded, 1 failed"
    assert summary.context.last_content == "buy milk"


@pytest.mark.unit
def test_variables_substitute_into_modifications() -> None:
    """`$name` modification values come from context variables."""
    # Arrange - recording runner and update with variable
    runner = _RecordingRunner()
    executor = SequentialExecutor(runner)
    command = StructuredCommand(
        action=ActionKind.UPDATE,
        content="report",
        modifications={"category": "$area", "content": "$missing"},
    )

    # Act - execute with one known variable
    executor.execute_compound([command], ExecutionMode.DEPENDENT, variables={"area": "work"})

    # Assert - known variable replaced, unknown left as is
    assert runner.calls == [
        ["update", "report", "--content", "$missing", "--category", "work"]
    ]


@pytest.mark.unit
def test_preview_declined_cancels_before_running() -> None:
    """Declining the preview raises CancelledByUser and runs nothing."""
    # Arrange - runner, preview capture and a confirmer answering no
    runner = _RecordingRunner()
    previews: list[CompoundPreview] = []
    executor = SequentialExecutor(
        runner,
        confirm=line_confirmer(lambda _prompt: "n"),
        render_preview=previews.append,
    )
    container = StructuredCommand.container([_task("a"), _done("it")])

    # Act / Assert - cancelled
    with pytest.raises(CancelledByUser):
        executor.execute_compound([container], ExecutionMode.DEPENDENT, show_preview=True)
    assert runner.calls == []
    assert len(previews) == 1
    assert [line.description for line in previews[0].lines] == [
        "Create task: a",
        "Mark task as done: it",
    ]
    assert previews[0].lines[0].argv == ("task", "a")


@pytest.mark.unit
def test_preview_accepted_with_empty_answer() -> None:
    """An empty answer accepts the preview."""
    # Arrange - confirmer answering with enter
    runner = _RecordingRunner()
    executor = SequentialExecutor(runner, confirm=line_confirmer(lambda _prompt: ""))

    # Act - execute with preview
    summary = executor.execute_compound([_task("a")], show_preview=True)

    # Assert - command ran
    assert summary.is_complete_success
    assert runner.calls == [["task", "a"]]


@pytest.mark.unit
def test_is_affirmative_answers() -> None:
    """Only empty, y and yes accept."""
    assert is_affirmative("")
    assert is_affirmative(" Y ")
    assert is_affirmative("yes")
    assert not is_affirmative("no")
    assert not is_affirmative("yep")


@pytest.mark.unit
def test_context_ignores_failures_and_keeps_unresolved_references() -> None:
    """Failed results do not update context; unknown `it` stays literal."""
    # Arrange - empty context and a failed result
    context = ExecutionContext()
    failed = ExecutionResult(index=0, success=False, error="boom")
    succeeded = ExecutionResult(
        index=1,
        success=True,
        output=CommandOutput(item_id=7, content="pay rent", category="home"),
    )

    # Act - resolve before and after updates
    unresolved = context.resolve(_done("it"))
    context.update_with_result(failed)
    context.update_with_result(succeeded)
    context.set_var("who", "landlord")
    resolved = context.resolve(_done("that"))

    # Assert - literal first, then resolved with category
    assert unresolved.content == "it"
    assert context.get_var("who") == "landlord"
    assert context.get_var("missing") is None
    assert context.previous_results == [succeeded]
    assert context.last_item_id == 7
    assert resolved.content == "pay rent"
    assert resolved.category == "home"


@pytest.mark.unit
def test_listing_output_does_not_become_last_content(
    action_layer: ActionLayer, task_store: TaskStore
) -> None:
    """Listings carry items in metadata but do not replace `it`."""
    # Arrange - create, list, then complete `it`
    executor = SequentialExecutor(action_layer)
    commands = [
        _task("call mom"),
        StructuredCommand(action=ActionKind.LIST, content="tasks"),
        _done("it"),
    ]

    # Act - execute
    summary = executor.execute_compound(commands, ExecutionMode.DEPENDENT)

    # Assert - listing metadata present and `it` still the task
    listing_output = summary.results[1].output
    assert listing_output is not None
    assert listing_output.metadata["items"][0]["content"] == "call mom"
    assert summary.is_complete_success
    assert task_store.list_items(ItemQuery(kind=ItemKind.TASK)) == ()
