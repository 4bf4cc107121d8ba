"""Task and record models for the sqlite store."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from taskpilot.commands.types import StatusType

OPEN_STATUSES = frozenset({StatusType.ONGOING, StatusType.PENDING, StatusType.SUSPENDED})
CLOSED_STATUSES = frozenset({StatusType.DONE, StatusType.CANCELLED, StatusType.DUPLICATE})


class ItemKind(StrEnum):
    """Stored item kinds."""

    TASK = "task"
    RECORD = "record"


class Item(BaseModel):
    """One stored task or record."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: int
    kind: ItemKind
    content: str
    category: str = "default"
    status: StatusType = StatusType.ONGOING
    target_time: str | None = None
    schedule: str | None = None
    comment: str | None = None
    created_at: str
    updated_at: str


class ItemQuery(BaseModel):
    """Filters for one listing."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: ItemKind = ItemKind.TASK
    category: str | None = None
    status: StatusType | None = None
    search: str | None = None
    days: int | None = Field(default=None, ge=0)
    limit: int = Field(default=100, ge=1)
    target_min: str | None = None
    target_max: str | None = None
    no_deadline: bool = False
