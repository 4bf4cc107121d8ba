"""Traditional grammar and action layer."""

from taskpilot.actions.grammar import TRADITIONAL_SUBCOMMANDS, grammar_app
from taskpilot.actions.layer import ActionLayer, ParsedAction
from taskpilot.actions.models import ActionOutcome

__all__ = [
    "TRADITIONAL_SUBCOMMANDS",
    "ActionLayer",
    "ActionOutcome",
    "ParsedAction",
    "grammar_app",
]
