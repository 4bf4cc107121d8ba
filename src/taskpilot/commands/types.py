"""Structured command model shared by the router, cache, executor and suggestions."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class ActionKind(StrEnum):
    """Closed set of structured command actions."""

    TASK = "task"
    RECORD = "record"
    DONE = "done"
    UPDATE = "update"
    DELETE = "delete"
    LIST = "list"
    META = "meta"


class StatusType(StrEnum):
    """Item status values understood by the action layer."""

    ONGOING = "ongoing"
    DONE = "done"
    CANCELLED = "cancelled"
    DUPLICATE = "duplicate"
    SUSPENDED = "suspended"
    PENDING = "pending"
    OPEN = "open"
    CLOSED = "closed"
    ALL = "all"


class QueryType(StrEnum):
    """Canned listing queries."""

    OVERDUE = "overdue"
    UPCOMING = "upcoming"
    UNSCHEDULED = "unscheduled"
    DUE_TODAY = "due_today"
    DUE_TOMORROW = "due_tomorrow"
    DUE_THIS_WEEK = "due_this_week"
    DUE_THIS_MONTH = "due_this_month"
    URGENT = "urgent"
    ALL = "all"


class StructuredCommand(BaseModel):
    """Typed representation of one user intent, or a compound container."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    action: ActionKind
    content: str = ""
    category: str | None = None
    deadline: str | None = None
    schedule: str | None = None
    status: StatusType | None = None
    query_type: QueryType | None = None
    search: str | None = None
    filters: dict[str, str] = Field(default_factory=dict)
    modifications: dict[str, str] = Field(default_factory=dict)
    days: int | None = Field(default=None, ge=0)
    limit: int | None = Field(default=None, ge=1)
    compound: tuple[StructuredCommand, ...] = ()
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    provenance: str | None = None

    @property
    def is_compound(self) -> bool:
        """Return whether this command is a pure container of members."""
        return len(self.compound) > 0

    def members(self) -> tuple[StructuredCommand, ...]:
        """Return executable members; a plain command is its own only member."""
        if self.is_compound:
            return self.compound
        return (self,)

    @classmethod
    def container(
        cls,
        commands: list[StructuredCommand],
        *,
        provenance: str | None = None,
    ) -> StructuredCommand:
        """Wrap members in a compound container.

        Args:
            commands: Ordered compound members.
            provenance: Optional provenance label.

        Returns:
            Single command for one member, container otherwise.
        """
        if len(commands) == 1:
            return commands[0]
        return cls(
            action=ActionKind.META,
            content="compound",
            compound=tuple(commands),
            provenance=provenance,
        )


class ExecutionMode(StrEnum):
    """Failure and context semantics for compound execution."""

    STOP_ON_ERROR = "stop_on_error"
    CONTINUE_ON_ERROR = "continue_on_error"
    PARALLEL = "parallel"
    DEPENDENT = "dependent"

    @classmethod
    def parse(cls, value: str) -> ExecutionMode:
        """Parse a mode name, accepting ``sequential`` and dashed spellings."""
        normalized = value.strip().lower().replace("-", "_")
        if normalized == "sequential":
            return cls.STOP_ON_ERROR
        return cls(normalized)
