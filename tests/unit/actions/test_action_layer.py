"""Unit tests for the traditional action layer."""

from __future__ import annotations

import pytest
import typer
from typer.core import TyperGroup

from taskpilot.actions import ActionLayer
from taskpilot.actions.layer import CLICK_ERROR
from taskpilot.commands.errors import ExecutionError, ParseError
from taskpilot.commands.types import StatusType
from taskpilot.store import ItemKind, ItemQuery, TaskStore


@pytest.mark.unit
def test_task_command_creates_task_with_deadline(action_layer: ActionLayer) -> None:
    """`task <content> <time> -c <category>` inserts a dated task."""
    # Arrange - argument vector with keyword deadline
    argv = ["task", "buy milk", "tomorrow", "-c", "home"]

    # Act - execute
    outcome = action_layer.execute(argv)

    # Assert - outcome and stored deadline
    assert outcome.message == "Inserted task: buy milk"
    assert outcome.category == "home"
    assert outcome.item_id is not None
    stored = action_layer.store.require(outcome.item_id)
    assert stored.target_time == "2026-03-11T23:59:59"
    assert stored.schedule is None


@pytest.mark.unit
def test_task_command_stores_recurrence(action_layer: ActionLayer) -> None:
    """Schedule keywords become recurrence instead of deadlines."""
    # Arrange - recurring task vector
    argv = ["task", "water plants", "weekly"]

    # Act - execute
    outcome = action_layer.execute(argv)

    # Assert - schedule stored without deadline
    assert outcome.item_id is not None
    stored = action_layer.store.require(outcome.item_id)
    assert stored.schedule == "weekly"
    assert stored.target_time is None


@pytest.mark.unit
def test_parse_resolves_subcommand_path_without_running(
    action_layer: ActionLayer, task_store: TaskStore
) -> None:
    """Parsing validates the vector but leaves the store untouched."""
    # Arrange - nested list command and a create command
    list_argv = ["list", "task", "--status", "all", "--limit", "5"]
    create_argv = ["task", "draft plan"]

    # Act - parse only
    parsed_list = action_layer.parse(list_argv)
    parsed_create = action_layer.parse(create_argv)

    # Assert - paths resolved and nothing inserted
    assert parsed_list.command_path == "list task"
    assert parsed_create.command_path == "task"
    assert task_store.list_items(ItemQuery(status=StatusType.ALL)) == ()


@pytest.mark.unit
@pytest.mark.parametrize(
    "argv",
    [
        ["frobnicate", "x"],
        ["task", "x", "someday"],
        ["done"],
        ["list"],
        ["done", "70000"],
        ["update", "1", "--status", "sleepy"],
    ],
    ids=["unknown", "bad_time", "missing_target", "missing_subcommand", "index_range", "bad_enum"],
)
def test_parse_rejects_invalid_vectors(action_layer: ActionLayer, argv: list[str]) -> None:
    """Grammar violations raise ParseError before anything runs."""
    # Arrange - invalid vector from parameters

    # Act / Assert - parse error
    with pytest.raises(ParseError):
        action_layer.parse(argv)


@pytest.mark.unit
def test_done_by_index_uses_last_listing(action_layer: ActionLayer) -> None:
    """Numeric targets resolve against the most recent listing."""
    # Arrange - two tasks, listed
    action_layer.execute(["task", "alpha", "today"])
    action_layer.execute(["task", "beta", "tomorrow"])
    listing = action_layer.execute(["list", "task"])

    # Act - complete the second listed task
    outcome = action_layer.execute(["done", "2"])

    # Assert - beta marked done, alpha untouched
    assert [item.content for item in listing.items] == ["alpha", "beta"]
    assert outcome.message == "Marked done: beta"
    remaining = action_layer.execute(["list", "task"])
    assert [item.content for item in remaining.items] == ["alpha"]


@pytest.mark.unit
def test_done_on_recurring_task_logs_record_and_stays_open(
    action_layer: ActionLayer, task_store: TaskStore
) -> None:
    """Completing a recurring task records it and keeps it open."""
    # Arrange - recurring task
    created = action_layer.execute(["task", "water plants", "weekly", "-c", "home"])

    # Act - complete by text
    outcome = action_layer.execute(["done", "water plants"])

    # Assert - task still ongoing, record logged
    assert outcome.message == "Completed weekly task for now: water plants"
    assert created.item_id is not None
    assert task_store.require(created.item_id).status == StatusType.ONGOING
    records = task_store.list_items(ItemQuery(kind=ItemKind.RECORD))
    assert [(item.content, item.category) for item in records] == [("water plants", "home")]


@pytest.mark.unit
def test_text_target_must_match_exactly_one_task(action_layer: ActionLayer) -> None:
    """Ambiguous or unmatched text targets fail at execution."""
    # Arrange - two tasks sharing a word
    action_layer.execute(["task", "call mom"])
    action_layer.execute(["task", "call dentist"])

    # Act / Assert - ambiguous and missing targets
    with pytest.raises(ExecutionError, match="matches 2 tasks"):
        action_layer.execute(["done", "call"])
    with pytest.raises(ExecutionError, match="no open task matches"):
        action_layer.execute(["delete", "groceries"])


@pytest.mark.unit
def test_update_changes_time_category_and_content(action_layer: ActionLayer) -> None:
    """Update applies every provided option."""
    # Arrange - existing task
    created = action_layer.execute(["task", "report"])

    # Act - update by text
    outcome = action_layer.execute(
        ["update", "report", "-t", "eom", "-c", "work", "--add-content", "draft"]
    )

    # Assert - updated fields
    assert outcome.content == "report draft"
    assert created.item_id is not None
    stored = action_layer.store.require(created.item_id)
    assert stored.category == "work"
    assert stored.target_time == "2026-03-31T23:59:59"


@pytest.mark.unit
def test_update_rejects_filter_statuses(action_layer: ActionLayer) -> None:
    """Filter-only statuses cannot be assigned to an item."""
    # Arrange - existing task
    action_layer.execute(["task", "report"])

    # Act / Assert - `open` is a filter, not a status
    with pytest.raises(ExecutionError, match="is a filter"):
        action_layer.execute(["update", "report", "--status", "open"])


@pytest.mark.unit
def test_list_task_time_window_and_records(action_layer: ActionLayer) -> None:
    """Listing honors time windows; records list separately."""
    # Arrange - tasks due today and next week plus a record
    action_layer.execute(["task", "today task", "today"])
    action_layer.execute(["task", "later task", "+7d"])
    action_layer.execute(["record", "ran 5k", "-c", "health", "--time", "yesterday"])

    # Act - list window and records
    due_today = action_layer.execute(
        ["list", "task", "--target-time-min", "yesterday", "--target-time-max", "today"]
    )
    records = action_layer.execute(["list", "record", "-c", "health"])

    # Assert - only matching items
    assert [item.content for item in due_today.items] == ["today task"]
    assert due_today.message == "1 task(s)"
    assert [item.content for item in records.items] == ["ran 5k"]
    assert records.items[0].target_time == "2026-03-09T23:59:59"


@pytest.mark.unit
def test_list_show_and_delete_by_index(action_layer: ActionLayer) -> None:
    """`list show` and `delete` both use listing indexes."""
    # Arrange - one listed task
    action_layer.execute(["task", "alpha"])
    action_layer.execute(["list", "task"])

    # Act - show then delete
    shown = action_layer.execute(["list", "show", "1"])
    deleted = action_layer.execute(["delete", "1"])

    # Assert - same item shown and deleted
    assert shown.content == "alpha"
    assert deleted.message == "Deleted task: alpha"
    assert action_layer.execute(["list", "task"]).items == ()


@pytest.mark.unit
def test_parse_descends_to_leaf_command_built_by_typer(action_layer: ActionLayer) -> None:
    """Parsing walks typer's groups down to the leaf handler, then runs it."""
    # Arrange - nested and top-level vectors
    nested = ["list", "record", "--days", "3"]
    top_level = ["task", "buy milk", "tomorrow"]

    # Act - parse both and run the top-level one
    parsed_nested = action_layer.parse(nested)
    parsed_top = action_layer.parse(top_level)
    outcome = action_layer.run(parsed_top)

    # Assert - contexts point at leaf commands, never at a group
    assert not isinstance(parsed_nested.context.command, TyperGroup)
    assert parsed_nested.context.command.name == "record"
    assert parsed_nested.context.params["days"] == 3
    assert not isinstance(parsed_top.context.command, TyperGroup)
    assert parsed_top.context.params["content"] == "buy milk"
    assert outcome.message == "Inserted task: buy milk"


@pytest.mark.unit
def test_handler_usage_errors_become_parse_errors(action_layer: ActionLayer) -> None:
    """Errors raised through typer's exception hierarchy map to ParseError."""
    # Arrange - unknown option and a value typer rejects
    unknown_option = ["task", "x", "--colour", "red"]
    bad_limit = ["list", "task", "--limit", "0"]

    # Act / Assert - both rejected with typer's message kept
    with pytest.raises(ParseError, match="colour"):
        action_layer.parse(unknown_option)
    with pytest.raises(ParseError, match="limit"):
        action_layer.parse(bad_limit)
    assert issubclass(typer.BadParameter, CLICK_ERROR)
