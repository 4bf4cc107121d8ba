"""Small time keyword resolver for deadlines and listing windows."""

from __future__ import annotations

import calendar
import re
from datetime import datetime, timedelta

_WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)
_OFFSET_RE = re.compile(r"^\+(\d+)([hdw])$")
_SCHEDULES = {
    "daily": "daily",
    "every day": "daily",
    "weekly": "weekly",
    "every week": "weekly",
    "monthly": "monthly",
    "every month": "monthly",
}


def schedule_keyword(text: str) -> str | None:
    """Return normalized recurrence keyword when ``text`` is a schedule.

    Args:
        text: Raw time string.

    Returns:
        ``daily``/``weekly``/``monthly`` or ``None`` for one-off times.
    """
    return _SCHEDULES.get(" ".join(text.lower().split()))


def _end_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=23, minute=59, second=59, microsecond=0)


def resolve_time(text: str, *, now: datetime) -> datetime:
    """Resolve a time keyword or ISO date relative to ``now``.

    Day-level keywords resolve to the end of that day.

    Args:
        text: Keyword such as ``today``, ``eom``, ``+3d`` or ``2026-01-31``.
        now: Reference moment.

    Returns:
        Resolved local datetime.

    Raises:
        ValueError: If the text is not a supported time expression.
    """
    value = " ".join(text.lower().split())
    if value == "now":
        return now.replace(microsecond=0)
    if value in {"today", "eod", "tonight"}:
        return _end_of_day(now)
    if value == "tomorrow":
        return _end_of_day(now + timedelta(days=1))
    if value == "yesterday":
        return _end_of_day(now - timedelta(days=1))
    if value == "eow":
        return _end_of_day(now + timedelta(days=6 - now.weekday()))
    if value == "eom":
        last_day = calendar.monthrange(now.year, now.month)[1]
        return _end_of_day(now.replace(day=last_day))
    if value == "next week":
        return _end_of_day(now + timedelta(days=7))
    if value in _WEEKDAYS:
        days_ahead = (_WEEKDAYS.index(value) - now.weekday()) % 7
        return _end_of_day(now + timedelta(days=days_ahead))
    offset = _OFFSET_RE.match(value)
    if offset:
        amount = int(offset.group(1))
        unit = offset.group(2)
        if unit == "h":
            return now.replace(microsecond=0) + timedelta(hours=amount)
        days = amount * 7 if unit == "w" else amount
        return _end_of_day(now + timedelta(days=days))
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as exc:
        raise ValueError(f"unsupported time expression: '{text}'") from exc
    if len(value) == 10:
        return _end_of_day(parsed)
    return parsed.replace(tzinfo=None)
