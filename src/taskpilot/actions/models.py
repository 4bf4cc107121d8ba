"""Action layer result models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from taskpilot.store.models import Item


class ActionOutcome(BaseModel):
    """Outcome of one successful action invocation."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    message: str
    item_id: int | None = None
    content: str | None = None
    category: str | None = None
    items: tuple[Item, ...] = ()

    @classmethod
    def for_item(cls, message: str, item: Item) -> ActionOutcome:
        """Build an outcome describing one touched item."""
        return cls(
            message=message,
            item_id=item.id,
            content=item.content,
            category=item.category,
        )
