"""Interactive session lifecycle model."""

from __future__ import annotations

from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class InteractiveSession(BaseModel):
    """One REPL invocation; never persisted."""

    model_config = ConfigDict(extra="forbid")

    session_id: str = Field(default_factory=lambda: f"session_{uuid4().hex[:12]}")
    interaction_count: int = 0
    started_at: float
    last_activity: float
    is_active: bool = True

    @classmethod
    def start(cls, now: float) -> InteractiveSession:
        """Create an active session starting at ``now``."""
        return cls(started_at=now, last_activity=now)

    def record_interaction(self, now: float) -> None:
        """Count one accepted line and refresh last activity."""
        self.interaction_count += 1
        self.last_activity = now

    def is_idle(self, timeout_seconds: int | None, now: float) -> bool:
        """Return whether the idle timeout elapsed since last activity."""
        if timeout_seconds is None:
            return False
        return now - self.last_activity > timeout_seconds

    def duration(self, now: float) -> float:
        """Return seconds since session start."""
        return max(now - self.started_at, 0.0)

    def end(self) -> None:
        """Mark the session inactive."""
        self.is_active = False
