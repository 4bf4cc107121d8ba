"""Structured command to action-layer argument vector mapping."""

from __future__ import annotations

from taskpilot.commands.errors import ExecutionError
from taskpilot.commands.types import (
    ActionKind,
    QueryType,
    StatusType,
    StructuredCommand,
)

_RECORD_WORDS = ("record", "records", "history")
_STATUS_QUERIES = frozenset({QueryType.OVERDUE, QueryType.UPCOMING, QueryType.URGENT})
_QUERY_FLAGS: dict[QueryType, tuple[str, ...]] = {
    QueryType.OVERDUE: ("--status", "ongoing", "--target-time-max", "now"),
    QueryType.UPCOMING: (
        "--status",
        "ongoing",
        "--target-time-min",
        "now",
        "--target-time-max",
        "+7d",
    ),
    QueryType.UNSCHEDULED: ("--no-deadline",),
    QueryType.DUE_TODAY: ("--target-time-min", "yesterday", "--target-time-max", "today"),
    QueryType.DUE_TOMORROW: (
        "--target-time-min",
        "today",
        "--target-time-max",
        "tomorrow",
    ),
    QueryType.DUE_THIS_WEEK: ("--target-time-min", "now", "--target-time-max", "+7d"),
    QueryType.DUE_THIS_MONTH: ("--target-time-min", "now", "--target-time-max", "eom"),
    QueryType.URGENT: ("--status", "ongoing", "--target-time-max", "tomorrow"),
    QueryType.ALL: (),
}
_MODIFICATION_FLAGS = (
    ("content", "--content"),
    ("add", "--add-content"),
    ("category", "--category"),
    ("deadline", "--time"),
    ("status", "--status"),
)


class CommandMapper:
    """Translate structured commands into traditional argument vectors."""

    def to_action_args(self, command: StructuredCommand) -> list[str]:
        """Build the argument vector for one executable command.

        Args:
            command: Non-container structured command.

        Returns:
            Argument vector accepted by the action layer.

        Raises:
            ExecutionError: If the command has no executable form.
        """
        if command.is_compound:
            raise ExecutionError("compound container cannot be executed directly")
        if command.action == ActionKind.TASK:
            args = ["task", command.content]
            timestr = command.deadline or command.schedule
            if timestr:
                args.append(timestr)
            return args + _category_flag(command.category)
        if command.action == ActionKind.RECORD:
            args = ["record", command.content]
            args += _category_flag(command.category)
            if command.deadline:
                args += ["--time", command.deadline]
            return args
        if command.action == ActionKind.DONE:
            args = ["done", command.content]
            if command.status is not None and command.status != StatusType.DONE:
                args += ["--status", command.status.value]
            return args
        if command.action == ActionKind.DELETE:
            args = ["delete", command.content]
            if command.status is not None:
                args += ["--status", command.status.value]
            return args
        if command.action == ActionKind.UPDATE:
            return self._update_args(command)
        if command.action == ActionKind.LIST:
            return self._list_args(command)
        raise ExecutionError(
            f"'{command.content or command.action.value}' is not an executable command"
        )

    def describe_command(self, command: StructuredCommand) -> str:
        """Return a short human description of a command."""
        if command.is_compound:
            return "; ".join(self.describe_command(item) for item in command.compound)
        if command.action == ActionKind.TASK:
            text = f"Create task: {command.content}"
            if command.category:
                text += f" (category: {command.category})"
            if command.deadline:
                text += f" (deadline: {command.deadline})"
            elif command.schedule:
                text += f" (recurring: {command.schedule})"
            return text
        if command.action == ActionKind.RECORD:
            text = f"Create record: {command.content}"
            if command.category:
                text += f" (category: {command.category})"
            return text
        if command.action == ActionKind.DONE:
            return f"Mark task as done: {command.content}"
        if command.action == ActionKind.DELETE:
            return f"Delete: {command.content}"
        if command.action == ActionKind.UPDATE:
            changes = ", ".join(f"{k}={v}" for k, v in command.modifications.items())
            return f"Update: {command.content}" + (f" ({changes})" if changes else "")
        if command.action == ActionKind.LIST:
            return _describe_list(command)
        return f"Meta: {command.content}"

    def _update_args(self, command: StructuredCommand) -> list[str]:
        args = ["update", command.content]
        modifications = dict(command.modifications)
        if command.category and "category" not in modifications:
            modifications["category"] = command.category
        if command.deadline and "deadline" not in modifications:
            modifications["deadline"] = command.deadline
        if command.status is not None and "status" not in modifications:
            modifications["status"] = command.status.value
        for key, flag in _MODIFICATION_FLAGS:
            value = modifications.get(key)
            if value:
                args += [flag, value]
        return args

    def _list_args(self, command: StructuredCommand) -> list[str]:
        unsupported = sorted(key for key in command.filters if key != "type")
        if unsupported:
            raise ExecutionError(
                f"listings cannot be filtered by {', '.join(unsupported)}"
            )
        if _lists_records(command):
            args = ["list", "record"]
            args += _category_flag(command.category)
            if command.search:
                args += ["--search", command.search]
            if command.days is not None:
                args += ["--days", str(command.days)]
            if command.limit is not None:
                args += ["--limit", str(command.limit)]
            return args
        args = ["list", "task"]
        if command.query_type is not None:
            args += list(_QUERY_FLAGS[command.query_type])
        args += _category_flag(command.category)
        if command.search:
            args += ["--search", command.search]
        if command.status is not None and command.query_type not in _STATUS_QUERIES:
            args += ["--status", command.status.value]
        if command.days is not None:
            args += ["--days", str(command.days)]
        if command.limit is not None:
            args += ["--limit", str(command.limit)]
        return args


def _category_flag(category: str | None) -> list[str]:
    return ["--category", category] if category else []


def _lists_records(command: StructuredCommand) -> bool:
    if command.filters.get("type") == "record":
        return True
    lowered = command.content.lower()
    return any(word in lowered for word in _RECORD_WORDS)


def _describe_list(command: StructuredCommand) -> str:
    noun = "records" if _lists_records(command) else "tasks"
    parts: list[str] = []
    if command.query_type is not None and command.query_type != QueryType.ALL:
        parts.append(command.query_type.value.replace("_", " "))
    if command.category:
        parts.append(f"category: {command.category}")
    if command.status is not None:
        parts.append(f"status: {command.status.value}")
    if command.search:
        parts.append(f"search: {command.search}")
    for key, value in sorted(command.filters.items()):
        if key != "type":
            parts.append(f"{key}: {value}")
    if command.days is not None:
        parts.append(f"last {command.days} days")
    if command.limit is not None:
        parts.append(f"limit: {command.limit}")
    if not parts:
        return f"List {noun}"
    return f"List {noun} ({', '.join(parts)})"
