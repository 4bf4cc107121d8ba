"""Deterministic phrase patterns for common natural-language commands."""

from __future__ import annotations

import re
from collections.abc import Callable
from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from taskpilot.commands.types import (
    ActionKind,
    QueryType,
    StatusType,
    StructuredCommand,
)

PATTERN_PROVENANCE = "pattern"
_PATTERN_CONFIDENCE = 0.95

_TIME_WORD = (
    r"(?:today|tonight|tomorrow|eod|eow|eom|now|next\s+week|"
    r"monday|tuesday|wednesday|thursday|friday|saturday|sunday|"
    r"\d{4}-\d{2}-\d{2}(?:\s+\d{1,2}:\d{2})?|\+\d+[dhw])"
)
_SCHEDULE_WORDS = {
    "daily": "daily",
    "every day": "daily",
    "weekly": "weekly",
    "every week": "weekly",
    "monthly": "monthly",
    "every month": "monthly",
}
_COMPLEX_RE = re.compile(r"\b(?:recurring|repeat(?:ing|s)?)\b", re.IGNORECASE)
_TRAILING_CATEGORY_RE = re.compile(
    r"\s+(?:#(\w+)|(?:in\s+)?category[:\s]\s*(\w+))$", re.IGNORECASE
)
_TRAILING_DEADLINE_RE = re.compile(
    rf"\s+(?:(?:by|due|before|on|until)\s+)?({_TIME_WORD})$", re.IGNORECASE
)
_TRAILING_SCHEDULE_RE = re.compile(
    r"\s+(daily|weekly|monthly|every\s+(?:day|week|month))$", re.IGNORECASE
)
_QUERY_PHRASES: dict[str, QueryType] = {
    "overdue": QueryType.OVERDUE,
    "upcoming": QueryType.UPCOMING,
    "due today": QueryType.DUE_TODAY,
    "due tomorrow": QueryType.DUE_TOMORROW,
    "unscheduled": QueryType.UNSCHEDULED,
    "urgent": QueryType.URGENT,
    "due this week": QueryType.DUE_THIS_WEEK,
    "due this month": QueryType.DUE_THIS_MONTH,
    "today": QueryType.DUE_TODAY,
    "today's": QueryType.DUE_TODAY,
    "todays": QueryType.DUE_TODAY,
    "tomorrow": QueryType.DUE_TOMORROW,
    "tomorrow's": QueryType.DUE_TOMORROW,
    "tomorrows": QueryType.DUE_TOMORROW,
}
_RESERVED_LIST_WORDS = frozenset(
    {"all", "my", "the", "list", "show", *StatusType, "high", "low", "medium"}
)


class PatternOutcomeKind(StrEnum):
    """Outcome of a deterministic pattern match."""

    MATCHED = "matched"
    NEEDS_INTERPRETER = "needs_interpreter"
    AMBIGUOUS = "ambiguous"


class PatternOutcome(BaseModel):
    """Result of matching one phrase."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: PatternOutcomeKind
    command: StructuredCommand | None = None
    reason: str = ""


_Builder = Callable[[re.Match[str]], StructuredCommand]


def _command(action: ActionKind, content: str = "", **fields: object) -> StructuredCommand:
    return StructuredCommand(
        action=action,
        content=content,
        confidence=_PATTERN_CONFIDENCE,
        provenance=PATTERN_PROVENANCE,
        **fields,
    )


def split_task_text(text: str) -> dict[str, str | None]:
    """Peel trailing category, schedule and deadline phrases off task text.

    Args:
        text: Raw task text, e.g. ``"pay rent by eom #home"``.

    Returns:
        Mapping with ``content``, ``category``, ``deadline`` and ``schedule``.
    """
    content = text.strip()
    category: str | None = None
    deadline: str | None = None
    schedule: str | None = None
    match = _TRAILING_CATEGORY_RE.search(content)
    if match:
        category = (match.group(1) or match.group(2)).lower()
        content = content[: match.start()]
    match = _TRAILING_SCHEDULE_RE.search(content)
    if match:
        schedule = _SCHEDULE_WORDS[" ".join(match.group(1).lower().split())]
        content = content[: match.start()]
    else:
        match = _TRAILING_DEADLINE_RE.search(content)
        if match:
            deadline = " ".join(match.group(1).lower().split())
            if deadline == "tonight":
                deadline = "today"
            content = content[: match.start()]
    if not content.strip():
        # Only a time word: keep it as content.
        return {"content": text.strip(), "category": None, "deadline": None, "schedule": None}
    return {
        "content": content.strip(),
        "category": category,
        "deadline": deadline,
        "schedule": schedule,
    }


def _task(match: re.Match[str]) -> StructuredCommand:
    return _command(ActionKind.TASK, **split_task_text(match.group(1)))


def _record(match: re.Match[str]) -> StructuredCommand:
    parts = split_task_text(match.group(1))
    return _command(
        ActionKind.RECORD,
        parts["content"] or "",
        category=parts["category"],
        deadline=parts["deadline"],
    )


def _done(match: re.Match[str]) -> StructuredCommand:
    return _command(ActionKind.DONE, match.group(1).strip())


def _delete(match: re.Match[str]) -> StructuredCommand:
    return _command(ActionKind.DELETE, match.group(1).strip())


def _list(_: re.Match[str]) -> StructuredCommand:
    return _command(ActionKind.LIST, "tasks")


def _list_records(_: re.Match[str]) -> StructuredCommand:
    return _command(ActionKind.LIST, "records", filters={"type": "record"})


def _list_query(match: re.Match[str]) -> StructuredCommand:
    phrase = " ".join(match.group(1).lower().split())
    return _command(ActionKind.LIST, "tasks", query_type=_QUERY_PHRASES[phrase])


def _list_status(match: re.Match[str]) -> StructuredCommand:
    return _command(ActionKind.LIST, "tasks", status=StatusType(match.group(1).lower()))


def _list_category(match: re.Match[str]) -> StructuredCommand:
    return _command(ActionKind.LIST, "tasks", category=match.group(1).lower())


def _list_record_category(match: re.Match[str]) -> StructuredCommand:
    return _command(
        ActionKind.LIST,
        "records",
        category=match.group(1).lower(),
        filters={"type": "record"},
    )


def _search(match: re.Match[str]) -> StructuredCommand:
    return _command(ActionKind.LIST, "tasks", search=match.group(1).strip())


def _update(match: re.Match[str]) -> StructuredCommand:
    modifications = {}
    if match.group(2):
        modifications["content"] = match.group(2).strip()
    return _command(ActionKind.UPDATE, match.group(1), modifications=modifications)


def _update_field(field: str) -> _Builder:
    def build(match: re.Match[str]) -> StructuredCommand:
        value = match.group(2).strip()
        if field == "category":
            value = value.lower()
        return _command(
            ActionKind.UPDATE,
            match.group(1).strip(),
            modifications={field: value},
        )

    return build


_RULES: tuple[tuple[re.Pattern[str], _Builder], ...] = tuple(
    (re.compile(pattern, re.IGNORECASE), builder)
    for pattern, builder in (
        (r"^(?:(?:add|create|new)\s+)?task\s+(.+)$", _task),
        (r"^(?:add\s+)?(?:record|log)\s+(.+)$", _record),
        (r"^(?:complete|done|finish|check|tick)\s+#?(\d+)$", _done),
        (r"^mark\s+(.+?)\s+(?:as\s+)?(?:done|complete|completed|finished)$", _done),
        (r"^(?:complete|finish)\s+(.+)$", _done),
        (r"^(?:delete|remove|del)\s+#?(\d+)$", _delete),
        (r"^(?:delete|remove)\s+(.+)$", _delete),
        (r"^(?:(?:list|show)\s+(?:my\s+)?(?:records|history)|records)$", _list_records),
        (r"^(?:(?:list|show)\s+(?:my\s+)?tasks?|ls|list|show)$", _list),
        (
            r"^(?:(?:list|show)\s+(?:my\s+)?)?(?:tasks\s+)?"
            r"(overdue|upcoming|due\s+today|due\s+tomorrow|unscheduled|urgent|"
            r"due\s+this\s+week|due\s+this\s+month|today'?s?|tomorrow'?s?)"
            r"(?:\s+tasks?)?$",
            _list_query,
        ),
        (
            r"^(?:(?:list|show)\s+(?:my\s+)?)?"
            r"(done|pending|ongoing|cancelled|open|closed|all)\s+tasks?$",
            _list_status,
        ),
        (r"^(?:list|show)\s+(\w+)\s+records$", _list_record_category),
        (r"^(?:(?:list|show)\s+(?:my\s+)?)?(\w+)\s+tasks?$", _list_category),
        (r"^(?:done|check\s+off)\s+(.+)$", _done),
        (r"^(?:update|edit|modify)\s+#?(\d+)(?:\s+(.+))?$", _update),
        (r"^set\s+(.+?)\s+category\s+to\s+(\w+)$", _update_field("category")),
        (r"^move\s+(.+?)\s+to\s+(\w+)$", _update_field("category")),
        (
            r"^(?:set|change)\s+(.+?)\s+(?:deadline|due\s+date)\s+to\s+(.+)$",
            _update_field("deadline"),
        ),
        (r"^rename\s+(.+?)\s+to\s+(.+)$", _update_field("content")),
        (r"^(?:search|find)\s+(?:for\s+)?(.+)$", _search),
        (r"^(?:add|create|new|remember\s+to|todo:?)\s+(.+)$", _task),
    )
)

_AMBIGUOUS_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    (
        re.compile(r"^#?\d+$"),
        "a bare number could mean done, update or delete; say which",
    ),
    (
        re.compile(r"^(?:help|clear|\?)$", re.IGNORECASE),
        "this looks like a session command rather than a task command",
    ),
)

PATTERN_DESCRIPTIONS: tuple[tuple[str, str], ...] = (
    ("add task <text> [by <time>] [#category]", "Create a task"),
    ("task <text> tomorrow", "Create a task with a deadline"),
    ("add task <text> weekly", "Create a recurring task"),
    ("record <text> [#category]", "Create a record"),
    ("done <n> | complete <n> | mark <text> as done", "Complete a task"),
    ("delete <n> | remove <text>", "Delete an item"),
    ("update <n> <new text>", "Replace task content"),
    ("set <text> category to <category>", "Move a task to a category"),
    ("set <text> deadline to <time>", "Change a task deadline"),
    ("rename <text> to <new text>", "Rename a task"),
    ("list | list tasks | ls", "List open tasks"),
    ("list records | records", "List records"),
    ("<category> tasks", "List tasks in a category"),
    ("done tasks | pending tasks | all tasks", "List tasks by status"),
    ("overdue | upcoming | urgent | unscheduled", "Canned task queries"),
    ("due today | due tomorrow | due this week | due this month", "Due-date queries"),
    ("search <text>", "Search task content"),
    ("<command> and then <command>", "Compound command"),
)


class PatternMatcher:
    """Match common phrasings without calling an interpreter."""

    def match(self, text: str) -> PatternOutcome:
        """Match one phrase against the deterministic rules.

        Args:
            text: Single (non-compound) phrase.

        Returns:
            Pattern outcome; unmatched phrases need the interpreter.
        """
        phrase = " ".join(text.split())
        if not phrase:
            return PatternOutcome(
                kind=PatternOutcomeKind.NEEDS_INTERPRETER, reason="empty input"
            )
        if _COMPLEX_RE.search(phrase):
            return PatternOutcome(
                kind=PatternOutcomeKind.NEEDS_INTERPRETER,
                reason="conditional or recurring phrasing",
            )
        for pattern, reason in _AMBIGUOUS_RULES:
            if pattern.match(phrase):
                return PatternOutcome(kind=PatternOutcomeKind.AMBIGUOUS, reason=reason)
        for pattern, builder in _RULES:
            matched = pattern.match(phrase)
            if matched is None:
                continue
            if builder is _list_category and matched.group(1).lower() in _RESERVED_LIST_WORDS:
                continue
            return PatternOutcome(
                kind=PatternOutcomeKind.MATCHED, command=builder(matched)
            )
        return PatternOutcome(
            kind=PatternOutcomeKind.NEEDS_INTERPRETER, reason="no deterministic pattern"
        )
