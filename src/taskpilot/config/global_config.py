"""Global taskpilot config models and loading helpers."""

from __future__ import annotations

import json
import os
from enum import StrEnum
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from taskpilot.commands.types import ExecutionMode

CONFIG_ENV_VAR = "TASKPILOT_CONFIG"
API_KEY_ENV_VAR = "TASKPILOT_API_KEY"


class InterpreterBackend(StrEnum):
    """Supported natural-language interpreter backends."""

    RULES = "rules"
    LLM = "llm"


class NlpConfig(BaseModel):
    """Natural-language routing, caching and interpreter settings."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = True
    backend: InterpreterBackend = InterpreterBackend.RULES
    api_key: str | None = None
    model: str = "openai:gpt-5-nano"
    pattern_fast_path: bool = True
    cache_commands: bool = True
    cache_ttl_seconds: int = Field(default=7 * 24 * 3600, ge=1)
    preview_enabled: bool = True
    auto_confirm: bool = False
    show_transparency: bool = False
    execution_mode: ExecutionMode = ExecutionMode.DEPENDENT
    max_api_calls_per_minute: int = Field(default=20, ge=1, le=600)
    timeout_seconds: int = Field(default=30, ge=1, le=600)
    max_attempts: int = Field(default=2, ge=1, le=5)

    def resolved_api_key(self) -> str | None:
        """Return configured API key, falling back to the environment."""
        return self.api_key or os.environ.get(API_KEY_ENV_VAR)


class InteractiveConfig(BaseModel):
    """REPL presentation and lifecycle settings."""

    model_config = ConfigDict(extra="forbid")

    prompt: str = "taskpilot"
    show_interpretation: bool = True
    show_context_on_start: bool = True
    max_history: int = Field(default=100, ge=1, le=10_000)
    session_timeout_seconds: int | None = Field(default=None, ge=1)


class TaskpilotConfig(BaseModel):
    """Root global config payload."""

    model_config = ConfigDict(extra="forbid")

    data_dir: str = "~/.local/share/taskpilot"
    nlp: NlpConfig = NlpConfig()
    interactive: InteractiveConfig = InteractiveConfig()

    def data_path(self) -> Path:
        """Return expanded data directory path."""
        return Path(self.data_dir).expanduser()

    def store_path(self) -> Path:
        """Return task store sqlite path."""
        return self.data_path() / "taskpilot.db"

    def cache_path(self) -> Path:
        """Return response cache sqlite path."""
        return self.data_path() / "nlp_cache.db"


class GlobalConfigError(RuntimeError):
    """Raised when global config cannot be loaded or saved."""


def default_config_path() -> Path:
    """Return config path from environment or the per-user default.

    Returns:
        Config file path.
    """
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".config" / "taskpilot" / "config.yaml"


def _decode_config_payload(path: Path) -> dict[str, object]:
    """Decode global config payload from JSON or YAML.

    Args:
        path: Config file path.

    Returns:
        Parsed mapping payload.

    Raises:
        GlobalConfigError: If decode fails or payload is not an object.
    """
    raw = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise GlobalConfigError(f"Invalid global config JSON: {exc}") from exc
    else:
        try:
            payload = yaml.safe_load(raw)
        except yaml.YAMLError as exc:
            raise GlobalConfigError(f"Invalid global config YAML: {exc}") from exc
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise GlobalConfigError("Invalid global config payload: root must be an object")
    return payload


def load_global_config(path: Path) -> TaskpilotConfig:
    """Load global config from disk, defaulting when missing.

    Args:
        path: Config file path.

    Returns:
        Parsed config payload, or defaults when file does not exist.

    Raises:
        GlobalConfigError: If payload decode or validation fails.
    """
    if not path.exists():
        return TaskpilotConfig()
    payload = _decode_config_payload(path)
    try:
        return TaskpilotConfig.model_validate(payload)
    except ValidationError as exc:
        raise GlobalConfigError(f"Invalid global config payload: {exc}") from exc


def save_global_config(path: Path, config: TaskpilotConfig) -> None:
    """Persist config atomically as JSON or YAML by suffix.

    Args:
        path: Config file path.
        config: Config payload to write.

    Raises:
        GlobalConfigError: If the file cannot be written.
    """
    payload = config.model_dump(mode="json")
    if path.suffix.lower() == ".json":
        text = json.dumps(payload, indent=2, sort_keys=True) + "\n"
    else:
        text = yaml.safe_dump(payload, sort_keys=False)
    tmp_path = path.with_suffix(f"{path.suffix}.tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path.write_text(text, encoding="utf-8")
        tmp_path.replace(path)
    except OSError as exc:
        raise GlobalConfigError(f"Failed to write global config: {exc}") from exc
