"""Traditional command grammar and CRUD handlers."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated

import typer

from taskpilot.actions.models import ActionOutcome
from taskpilot.commands.errors import StoreError
from taskpilot.commands.types import StatusType
from taskpilot.store import (
    Item,
    ItemKind,
    ItemQuery,
    TaskStore,
    format_time,
    resolve_time,
    schedule_keyword,
)

MAX_INDEX = 65536
TRADITIONAL_SUBCOMMANDS = frozenset({"task", "record", "done", "update", "delete", "list"})

grammar_app = typer.Typer(help="Traditional task and record commands")
list_app = typer.Typer(help="List tasks, records or one item")
grammar_app.add_typer(list_app, name="list")

CategoryOption = Annotated[
    str | None, typer.Option("--category", "-c", help="Category name.")
]
StatusOption = Annotated[
    StatusType | None, typer.Option("--status", "-s", help="Item status.")
]
DaysOption = Annotated[
    int | None, typer.Option("--days", "-d", min=0, help="Only items from the last N days.")
]
LimitOption = Annotated[
    int, typer.Option("--limit", "-l", min=1, help="Maximum items to list.")
]
SearchOption = Annotated[
    str | None, typer.Option("--search", help="Substring to search for.")
]


def _validate_target(value: str) -> str:
    """Reject numeric targets outside the listing index range."""
    text = value.strip().lstrip("#")
    if not text:
        raise typer.BadParameter("target must not be empty")
    if text.isdigit() and not 1 <= int(text) <= MAX_INDEX:
        raise typer.BadParameter(f"index must be between 1 and {MAX_INDEX}")
    return text


def _validate_timestr(value: str | None) -> str | None:
    """Reject time strings the resolver cannot understand."""
    if value is None or schedule_keyword(value):
        return value
    try:
        resolve_time(value, now=datetime.now())
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    return value


TargetArgument = Annotated[
    str,
    typer.Argument(
        callback=_validate_target,
        help="Index from the last listing, or text matching one open task.",
    ),
]


def _store(ctx: typer.Context) -> TaskStore:
    store = ctx.obj
    if not isinstance(store, TaskStore):
        raise StoreError("task store is not configured")
    return store


def _resolve_time(store: TaskStore, text: str) -> datetime:
    try:
        return resolve_time(text, now=store.now())
    except ValueError as exc:
        raise StoreError(str(exc)) from exc


def _resolve_target(store: TaskStore, target: str) -> Item:
    """Resolve an index or content fragment to exactly one item."""
    if target.isdigit():
        return store.require(store.resolve_index(int(target)))
    matches = store.find_open_by_content(target)
    if not matches:
        raise StoreError(f"no open task matches '{target}'")
    if len(matches) > 1:
        raise StoreError(f"'{target}' matches {len(matches)} tasks; use an index instead")
    return matches[0]


@grammar_app.command("task")
def task_command(
    ctx: typer.Context,
    content: Annotated[str, typer.Argument(help="Task description.")],
    timestr: Annotated[
        str | None,
        typer.Argument(
            callback=_validate_timestr,
            help="Deadline or recurrence, e.g. today, weekly.",
        ),
    ] = None,
    category: CategoryOption = None,
) -> ActionOutcome:
    """Create a task."""
    store = _store(ctx)
    schedule = schedule_keyword(timestr) if timestr else None
    deadline = _resolve_time(store, timestr) if timestr and schedule is None else None
    item = store.add_item(
        ItemKind.TASK,
        content,
        category=category,
        target_time=deadline,
        schedule=schedule,
    )
    return ActionOutcome.for_item(f"Inserted task: {item.content}", item)


@grammar_app.command("record")
def record_command(
    ctx: typer.Context,
    content: Annotated[str, typer.Argument(help="Record description.")],
    category: CategoryOption = None,
    timestr: Annotated[
        str | None,
        typer.Option("--time", "-t", callback=_validate_timestr, help="When it happened."),
    ] = None,
) -> ActionOutcome:
    """Create a record."""
    store = _store(ctx)
    when = _resolve_time(store, timestr) if timestr else None
    item = store.add_item(ItemKind.RECORD, content, category=category, target_time=when)
    return ActionOutcome.for_item(f"Inserted record: {item.content}", item)


@grammar_app.command("done")
def done_command(
    ctx: typer.Context,
    target: TargetArgument,
    status: StatusOption = None,
    comment: Annotated[
        str | None, typer.Option("--comment", "-c", help="Completion comment.")
    ] = None,
) -> ActionOutcome:
    """Complete a task; recurring tasks log a record and stay open."""
    store = _store(ctx)
    item = _resolve_target(store, target)
    if item.kind != ItemKind.TASK:
        raise StoreError(f"item {item.id} is a record, not a task")
    if item.schedule and status in (None, StatusType.DONE):
        store.add_item(ItemKind.RECORD, item.content, category=item.category)
        updated = store.update_item(item.id, comment=comment)
        return ActionOutcome.for_item(
            f"Completed {item.schedule} task for now: {item.content}", updated
        )
    updated = store.update_item(
        item.id, status=status or StatusType.DONE, comment=comment
    )
    return ActionOutcome.for_item(
        f"Marked {updated.status.value}: {updated.content}", updated
    )


@grammar_app.command("delete")
def delete_command(
    ctx: typer.Context,
    target: TargetArgument,
    status: StatusOption = None,
) -> ActionOutcome:
    """Delete a task or record."""
    store = _store(ctx)
    item = _resolve_target(store, target)
    if status is not None and status != StatusType.ALL and item.status != status:
        raise StoreError(
            f"item {item.id} has status {item.status.value}, not {status.value}"
        )
    deleted = store.delete_item(item.id)
    return ActionOutcome.for_item(f"Deleted {deleted.kind.value}: {deleted.content}", deleted)


@grammar_app.command("update")
def update_command(
    ctx: typer.Context,
    target: TargetArgument,
    timestr: Annotated[
        str | None,
        typer.Option(
            "--time", "-t", callback=_validate_timestr, help="New deadline or recurrence."
        ),
    ] = None,
    category: CategoryOption = None,
    content: Annotated[
        str | None, typer.Option("--content", "-w", help="Replace content.")
    ] = None,
    add_content: Annotated[
        str | None, typer.Option("--add-content", "-a", help="Append to content.")
    ] = None,
    status: StatusOption = None,
) -> ActionOutcome:
    """Update fields of a task or record."""
    store = _store(ctx)
    item = _resolve_target(store, target)
    schedule = schedule_keyword(timestr) if timestr else None
    deadline = _resolve_time(store, timestr) if timestr and schedule is None else None
    if status in (StatusType.OPEN, StatusType.CLOSED, StatusType.ALL):
        raise StoreError(f"'{status.value}' is a filter, not an item status")
    updated = store.update_item(
        item.id,
        content=content,
        add_content=add_content,
        category=category,
        target_time=deadline,
        schedule=schedule,
        status=status,
    )
    return ActionOutcome.for_item(f"Updated: {updated.content}", updated)


@list_app.command("task")
def list_tasks_command(
    ctx: typer.Context,
    timestr: Annotated[
        str | None,
        typer.Argument(callback=_validate_timestr, help="Only tasks due by this time."),
    ] = None,
    category: CategoryOption = None,
    days: DaysOption = None,
    status: StatusOption = None,
    limit: LimitOption = 100,
    search: SearchOption = None,
    target_time_min: Annotated[
        str | None, typer.Option(
            "--target-time-min", callback=_validate_timestr, help="Due strictly after."
        )
    ] = None,
    target_time_max: Annotated[
        str | None, typer.Option(
            "--target-time-max", callback=_validate_timestr, help="Due at or before."
        )
    ] = None,
    no_deadline: Annotated[
        bool, typer.Option("--no-deadline", help="Only tasks without a deadline.")
    ] = False,
) -> ActionOutcome:
    """List tasks."""
    store = _store(ctx)
    upper = target_time_max or timestr
    query = ItemQuery(
        kind=ItemKind.TASK,
        category=category,
        status=status,
        search=search,
        days=days,
        limit=limit,
        target_min=format_time(_resolve_time(store, target_time_min))
        if target_time_min
        else None,
        target_max=format_time(_resolve_time(store, upper)) if upper else None,
        no_deadline=no_deadline,
    )
    items = store.list_items(query)
    return ActionOutcome(message=f"{len(items)} task(s)", items=items)


@list_app.command("record")
def list_records_command(
    ctx: typer.Context,
    category: CategoryOption = None,
    days: DaysOption = None,
    limit: LimitOption = 100,
    search: SearchOption = None,
) -> ActionOutcome:
    """List records."""
    store = _store(ctx)
    query = ItemQuery(
        kind=ItemKind.RECORD,
        category=category,
        search=search,
        days=days,
        limit=limit,
    )
    items = store.list_items(query)
    return ActionOutcome(message=f"{len(items)} record(s)", items=items)


@list_app.command("show")
def list_show_command(
    ctx: typer.Context,
    index: Annotated[int, typer.Argument(min=1, max=MAX_INDEX, help="Listing index.")],
) -> ActionOutcome:
    """Show one item from the last listing."""
    store = _store(ctx)
    item = store.require(store.resolve_index(index))
    return ActionOutcome(
        message=f"{item.kind.value} {item.id}: {item.content}",
        item_id=item.id,
        content=item.content,
        category=item.category,
        items=(item,),
    )
