"""taskpilot: tasks and records from commands or plain language."""

__version__ = "0.1.0"
