"""Task and record storage."""

from taskpilot.store.models import Item, ItemKind, ItemQuery
from taskpilot.store.repository import TaskStore, format_time
from taskpilot.store.timestr import resolve_time, schedule_keyword

__all__ = [
    "Item",
    "ItemKind",
    "ItemQuery",
    "TaskStore",
    "format_time",
    "resolve_time",
    "schedule_keyword",
]
