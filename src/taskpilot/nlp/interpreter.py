"""Interpreter contract and the deterministic rule-based interpreter."""

from __future__ import annotations

import logging
import re
from typing import Protocol

from taskpilot.commands.errors import ExecutionError, InterpretError
from taskpilot.commands.mapper import CommandMapper
from taskpilot.commands.patterns import (
    PatternMatcher,
    PatternOutcomeKind,
)
from taskpilot.commands.types import StructuredCommand

_LOGGER = logging.getLogger(__name__)

_COMPOUND_SPLIT_RE = re.compile(
    r"\s*(?:;|,?\s+and\s+then\s+|,?\s+then\s+|,?\s+and\s+also\s+)\s*",
    re.IGNORECASE,
)


class Interpreter(Protocol):
    """Natural-language to structured command capability."""

    def parse(self, text: str) -> StructuredCommand:
        """Interpret text into one command or a compound container."""

    def parse_to_compound_args(self, text: str) -> tuple[list[list[str]], str]:
        """Interpret text into argument vectors and a description."""


def split_compound(text: str) -> list[str]:
    """Split input on compound connectors, dropping empty parts.

    Args:
        text: Raw natural-language input.

    Returns:
        Ordered phrases; a single element for simple input.
    """
    return [part for part in _COMPOUND_SPLIT_RE.split(text.strip()) if part.strip()]


def compound_args(
    command: StructuredCommand,
    mapper: CommandMapper,
    *,
    text: str = "",
) -> tuple[list[list[str]], str]:
    """Map a command (or container) to argument vectors and a description.

    Raises:
        InterpretError: If a member has no executable form.
    """
    try:
        vectors = [mapper.to_action_args(member) for member in command.members()]
    except ExecutionError as exc:
        raise InterpretError(exc.message, text=text) from exc
    return vectors, mapper.describe_command(command)


class RuleInterpreter:
    """Interpret input with deterministic phrase patterns only."""

    def __init__(
        self,
        matcher: PatternMatcher | None = None,
        mapper: CommandMapper | None = None,
    ) -> None:
        """Create interpreter with optional collaborators."""
        self._matcher = matcher or PatternMatcher()
        self._mapper = mapper or CommandMapper()

    def parse(self, text: str) -> StructuredCommand:
        """Interpret each compound part with the pattern matcher.

        Args:
            text: Raw natural-language input.

        Returns:
            One command, or a container when several parts were found.

        Raises:
            InterpretError: If any part is unmatched or ambiguous.
        """
        parts = split_compound(text)
        if not parts:
            raise InterpretError("nothing to interpret", text=text)
        commands: list[StructuredCommand] = []
        for part in parts:
            outcome = self._matcher.match(part)
            if outcome.kind == PatternOutcomeKind.AMBIGUOUS:
                raise InterpretError(
                    f"'{part}' is ambiguous: {outcome.reason}",
                    text=text,
                    ambiguous=True,
                )
            if outcome.command is None:
                raise InterpretError(f"could not understand '{part}'", text=text)
            commands.append(outcome.command)
        _LOGGER.debug("rule interpreter produced %d command(s)", len(commands))
        return StructuredCommand.container(commands, provenance="pattern")

    def parse_to_compound_args(self, text: str) -> tuple[list[list[str]], str]:
        """Interpret text and map it to argument vectors."""
        return compound_args(self.parse(text), self._mapper, text=text)
