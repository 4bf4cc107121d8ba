"""Global taskpilot configuration loading."""

from taskpilot.config.global_config import (
    GlobalConfigError,
    InteractiveConfig,
    InterpreterBackend,
    NlpConfig,
    TaskpilotConfig,
    default_config_path,
    load_global_config,
    save_global_config,
)

__all__ = [
    "GlobalConfigError",
    "InteractiveConfig",
    "InterpreterBackend",
    "NlpConfig",
    "TaskpilotConfig",
    "default_config_path",
    "load_global_config",
    "save_global_config",
]
