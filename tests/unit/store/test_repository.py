"""Unit tests for the sqlite task store."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest

from taskpilot.commands.errors import StoreError
from taskpilot.commands.types import StatusType
from taskpilot.store import ItemKind, ItemQuery, TaskStore, format_time


@pytest.mark.unit
def test_add_item_persists_defaults(task_store: TaskStore) -> None:
    """New items default to the `default` category and ongoing status."""
    # Arrange - store fixture with fixed clock

    # Act - add a task without category
    item = task_store.add_item(ItemKind.TASK, "  buy milk  ")

    # Assert - stored fields and timestamps
    stored = task_store.require(item.id)
    assert stored.content == "buy milk"
    assert stored.category == "default"
    assert stored.status == StatusType.ONGOING
    assert stored.created_at == "2026-03-10T09:30:00"
    assert stored.updated_at == stored.created_at


@pytest.mark.unit
def test_add_item_rejects_empty_content(task_store: TaskStore) -> None:
    """Whitespace-only content is rejected."""
    # Arrange - blank content
    content = "   "

    # Act / Assert - store error
    with pytest.raises(StoreError, match="must not be empty"):
        task_store.add_item(ItemKind.TASK, content)


@pytest.mark.unit
def test_list_items_orders_by_deadline_and_hides_closed(task_store: TaskStore) -> None:
    """Open tasks list by deadline with undated tasks last."""
    # Arrange - dated, undated and completed tasks
    undated = task_store.add_item(ItemKind.TASK, "someday idea")
    later = task_store.add_item(
        ItemKind.TASK, "file taxes", target_time=datetime(2026, 4, 15, 23, 59, 59)
    )
    sooner = task_store.add_item(
        ItemKind.TASK, "pay rent", target_time=datetime(2026, 3, 31, 23, 59, 59)
    )
    finished = task_store.add_item(ItemKind.TASK, "old chore")
    task_store.update_item(finished.id, status=StatusType.DONE)

    # Act - list default and all statuses
    open_items = task_store.list_items(ItemQuery())
    every_item = task_store.list_items(ItemQuery(status=StatusType.ALL))

    # Assert - ordering and status filtering
    assert [item.id for item in open_items] == [sooner.id, later.id, undated.id]
    assert finished.id in {item.id for item in every_item}


@pytest.mark.unit
def test_list_items_remembers_order_for_index_resolution(task_store: TaskStore) -> None:
    """The last listing order backs 1-based index resolution."""
    # Arrange - two tasks, listed once
    first = task_store.add_item(ItemKind.TASK, "alpha")
    second = task_store.add_item(ItemKind.TASK, "beta")
    task_store.list_items(ItemQuery())

    # Act - resolve indexes
    resolved = [task_store.resolve_index(1), task_store.resolve_index(2)]

    # Assert - ids in listing order, out of range rejected
    assert resolved == [first.id, second.id]
    with pytest.raises(StoreError, match="out of range"):
        task_store.resolve_index(3)


@pytest.mark.unit
def test_resolve_index_without_listing_fails(task_store: TaskStore) -> None:
    """Index resolution requires a prior listing."""
    # Arrange - item exists but nothing was listed
    task_store.add_item(ItemKind.TASK, "alpha")

    # Act / Assert - helpful error
    with pytest.raises(StoreError, match="no cached listing"):
        task_store.resolve_index(1)


@pytest.mark.unit
def test_update_item_appends_and_changes_fields(task_store: TaskStore) -> None:
    """Partial updates keep untouched fields."""
    # Arrange - task with category
    item = task_store.add_item(ItemKind.TASK, "call mom", category="family")

    # Act - append content and change status
    updated = task_store.update_item(
        item.id, add_content="about sunday", status=StatusType.SUSPENDED
    )

    # Assert - content appended, category kept
    assert updated.content == "call mom about sunday"
    assert updated.category == "family"
    assert updated.status == StatusType.SUSPENDED


@pytest.mark.unit
def test_find_open_by_content_is_case_insensitive(task_store: TaskStore) -> None:
    """Text lookups match open tasks only, ignoring case."""
    # Arrange - open and closed tasks with similar text
    open_item = task_store.add_item(ItemKind.TASK, "Call Mom")
    closed = task_store.add_item(ItemKind.TASK, "call mom yesterday")
    task_store.update_item(closed.id, status=StatusType.DONE)
    task_store.add_item(ItemKind.RECORD, "called mom")

    # Act - lookup
    matches = task_store.find_open_by_content("call mom")

    # Assert - only the open task
    assert [item.id for item in matches] == [open_item.id]


@pytest.mark.unit
def test_delete_item_removes_item_and_listing_entry(task_store: TaskStore) -> None:
    """Deleted items vanish from storage and the listing cache."""
    # Arrange - listed item
    item = task_store.add_item(ItemKind.TASK, "alpha")
    task_store.list_items(ItemQuery())

    # Act - delete
    deleted = task_store.delete_item(item.id)

    # Assert - returned last state, no longer resolvable
    assert deleted.content == "alpha"
    assert task_store.get(item.id) is None
    with pytest.raises(StoreError):
        task_store.resolve_index(1)


@pytest.mark.unit
def test_target_window_and_no_deadline_filters(task_store: TaskStore) -> None:
    """Window bounds are exclusive below and inclusive above."""
    # Arrange - tasks due on consecutive days plus an undated task
    today = task_store.add_item(
        ItemKind.TASK, "today task", target_time=datetime(2026, 3, 10, 23, 59, 59)
    )
    tomorrow = task_store.add_item(
        ItemKind.TASK, "tomorrow task", target_time=datetime(2026, 3, 11, 23, 59, 59)
    )
    undated = task_store.add_item(ItemKind.TASK, "undated task")

    # Act - query tomorrow's window and the undated set
    window = task_store.list_items(
        ItemQuery(
            target_min=format_time(datetime(2026, 3, 10, 23, 59, 59)),
            target_max=format_time(datetime(2026, 3, 11, 23, 59, 59)),
        )
    )
    no_deadline = task_store.list_items(ItemQuery(no_deadline=True))

    # Assert - only matching tasks
    assert [item.id for item in window] == [tomorrow.id]
    assert [item.id for item in no_deadline] == [undated.id]
    assert today.id not in {item.id for item in window}


@pytest.mark.unit
def test_days_filter_and_categories(tmp_path: Path) -> None:
    """Day windows use creation time; categories rank by use."""
    # Arrange - store whose clock advances between inserts
    moments = [datetime(2026, 3, 1, 8, 0), datetime(2026, 3, 9, 8, 0)]
    current = {"now": moments[0]}
    store = TaskStore(tmp_path / "items.db", clock=lambda: current["now"])
    store.add_item(ItemKind.RECORD, "old run", category="health")
    current["now"] = moments[1]
    recent = store.add_item(ItemKind.RECORD, "new run", category="health")
    store.add_item(ItemKind.TASK, "report", category="work")

    # Act - list records from the last 3 days and read categories
    records = store.list_items(ItemQuery(kind=ItemKind.RECORD, days=3))
    categories = store.categories()

    # Assert - only the recent record; health used most
    assert [item.id for item in records] == [recent.id]
    assert categories == ("health", "work")
