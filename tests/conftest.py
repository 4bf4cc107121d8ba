"""Pytest configuration and shared fixtures."""

from datetime import datetime
from pathlib import Path

import pytest

from taskpilot.actions import ActionLayer
from taskpilot.store import TaskStore

# Tuesday morning; keeps relative time keywords deterministic.
FIXED_NOW = datetime(2026, 3, 10, 9, 30, 0)


@pytest.fixture
def task_store(tmp_path: Path) -> TaskStore:
    """Task store in a temporary directory with a fixed clock."""
    return TaskStore(tmp_path / "data" / "taskpilot.db", clock=lambda: FIXED_NOW)


@pytest.fixture
def action_layer(task_store: TaskStore) -> ActionLayer:
    """Action layer bound to the temporary task store."""
    return ActionLayer(task_store)
