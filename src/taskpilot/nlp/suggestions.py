"""Ranked completion, typo and context suggestions over partial input."""

from __future__ import annotations

from collections import deque
from collections.abc import Sequence
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from taskpilot.commands.patterns import (
    PATTERN_DESCRIPTIONS,
    PatternMatcher,
    PatternOutcomeKind,
)
from taskpilot.commands.types import StructuredCommand

MAX_SUGGESTIONS = 8
RECENT_WINDOW = 5
MAX_CATEGORY_SUGGESTIONS = 3


class SuggestionKind(StrEnum):
    """Where a suggestion came from."""

    COMMAND_COMPLETION = "command_completion"
    SIMILAR_COMMAND = "similar_command"
    TYPO_CORRECTION = "typo_correction"
    AVAILABLE_OPTION = "available_option"
    CONTEXTUAL = "contextual"


class Suggestion(BaseModel):
    """One ranked suggestion."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    text: str
    kind: SuggestionKind
    confidence: float = Field(ge=0.0, le=1.0)
    description: str


class SuggestionRequest(BaseModel):
    """Partial input plus the context used for ranking."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    text: str
    cursor: int | None = None
    recent_commands: tuple[str, ...] = ()
    categories: tuple[str, ...] = ()


class SuggestionResult(BaseModel):
    """Ranked suggestions and whether the input already parses."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    suggestions: tuple[Suggestion, ...]
    is_valid: bool
    parsed_command: StructuredCommand | None = None


def _suggestion(
    text: str,
    confidence: float,
    description: str,
    kind: SuggestionKind = SuggestionKind.COMMAND_COMPLETION,
) -> Suggestion:
    return Suggestion(text=text, kind=kind, confidence=confidence, description=description)


def rank_suggestions(
    candidates: Sequence[Suggestion], limit: int = MAX_SUGGESTIONS
) -> tuple[Suggestion, ...]:
    """Order candidates by descending confidence and keep the first ``limit``.

    Ties keep their insertion order.
    """
    ranked = sorted(candidates, key=lambda item: item.confidence, reverse=True)
    return tuple(ranked[:limit])


_COMMON_COMMANDS = (
    ("add task ", 1.0, "Add a new task"),
    ("list", 0.95, "List all tasks"),
    ("done ", 0.90, "Mark a task as complete"),
    ("delete ", 0.85, "Delete a task"),
    ("overdue", 0.80, "Show overdue tasks"),
    ("due today", 0.75, "Show tasks due today"),
)

_TYPOS = (
    ("ad", "add ", 0.9),
    ("complet", "complete ", 0.9),
    ("delet", "delete ", 0.9),
    ("updte", "update ", 0.85),
    ("lis", "list", 0.9),
    ("shwo", "show", 0.85),
    ("don", "done ", 0.85),
    ("ta sk", "task ", 0.8),
    ("recrd", "record ", 0.8),
)


class SuggestionEngine:
    """Produce ranked suggestions without executing anything."""

    def __init__(self, matcher: PatternMatcher | None = None) -> None:
        """Create engine with an optional pattern matcher for the validity pre-check."""
        self._matcher = matcher or PatternMatcher()

    def suggest(self, request: SuggestionRequest) -> SuggestionResult:
        """Rank suggestions for partial input.

        Args:
            request: Partial input, cursor and context.

        Returns:
            At most eight suggestions, highest confidence first.
        """
        text = request.text
        if request.cursor is not None:
            text = text[: max(request.cursor, 0)]
        trimmed = text.strip()
        outcome = self._matcher.match(trimmed)
        parsed = outcome.command if outcome.kind == PatternOutcomeKind.MATCHED else None
        suggestions: list[Suggestion] = []
        if not trimmed:
            suggestions.extend(
                _suggestion(item, confidence, description)
                for item, confidence, description in _COMMON_COMMANDS
            )
        else:
            suggestions.extend(self._completions(trimmed, request.categories))
            suggestions.extend(self._typo_corrections(trimmed))
        suggestions.extend(self._contextual(trimmed, request.recent_commands))
        return SuggestionResult(
            suggestions=rank_suggestions(suggestions),
            is_valid=parsed is not None,
            parsed_command=parsed,
        )

    @staticmethod
    def _completions(text: str, categories: Sequence[str]) -> list[Suggestion]:
        lowered = text.lower()
        found: list[Suggestion] = []
        if lowered.startswith(("add", "task")):
            found.append(_suggestion(f"{text} ", 0.9, "Adding a task/record"))
        if lowered.startswith("com"):
            found.append(_suggestion("complete ", 0.95, "Mark a task as complete"))
        if lowered.startswith(("li", "sh")):
            found.append(_suggestion("list", 0.95, "List all tasks"))
            found.append(_suggestion("list work tasks", 0.80, "List work tasks"))
            found.append(_suggestion("list done tasks", 0.80, "List completed tasks"))
        if lowered.startswith(("up", "ed")):
            found.append(_suggestion("update ", 0.95, "Update a task"))
        if lowered.startswith("over"):
            found.append(_suggestion("overdue", 0.95, "Show overdue tasks"))
        if lowered.startswith("upc"):
            found.append(_suggestion("upcoming", 0.95, "Show upcoming tasks"))
        if lowered.startswith(("list", "show")):
            found.extend(
                _suggestion(
                    f"list {category} tasks",
                    0.70,
                    f"List {category} tasks",
                    SuggestionKind.AVAILABLE_OPTION,
                )
                for category in categories[:MAX_CATEGORY_SUGGESTIONS]
            )
        return found

    @staticmethod
    def _typo_corrections(text: str) -> list[Suggestion]:
        lowered = text.lower()
        found: list[Suggestion] = []
        for typo, correction, confidence in _TYPOS:
            if lowered != typo and not lowered.startswith(f"{typo} "):
                continue
            # The remainder already starts with its own separator.
            remainder = text[len(typo) :]
            found.append(
                _suggestion(
                    correction.rstrip() + remainder if remainder else correction,
                    confidence,
                    f"Did you mean '{correction.strip()}'?",
                    SuggestionKind.TYPO_CORRECTION,
                )
            )
        return found

    @staticmethod
    def _contextual(text: str, recent: Sequence[str]) -> list[Suggestion]:
        lowered = text.lower()
        window = [entry.lower() for entry in recent[-RECENT_WINDOW:]][::-1]
        found: list[Suggestion] = []
        completing = lowered.startswith(("done", "complete"))
        for entry in window:
            if completing and entry.startswith(("add task", "task ")):
                found.append(
                    _suggestion(
                        "complete 1",
                        0.75,
                        "Complete the most recent task",
                        SuggestionKind.CONTEXTUAL,
                    )
                )
                break
        if any(entry.startswith("list") for entry in window) and (
            not lowered or lowered.startswith("d")
        ):
            found.append(
                _suggestion(
                    "done ",
                    0.70,
                    "Mark a task as complete",
                    SuggestionKind.CONTEXTUAL,
                )
            )
        return found


def command_patterns() -> tuple[tuple[str, str], ...]:
    """Return supported natural-language phrasings with descriptions."""
    return PATTERN_DESCRIPTIONS


class AutoCompleter:
    """Suggestion engine with bounded history and known categories."""

    def __init__(
        self,
        *,
        engine: SuggestionEngine | None = None,
        categories: Sequence[str] = (),
        max_history: int = 50,
    ) -> None:
        """Create completer.

        Args:
            engine: Suggestion engine to wrap.
            categories: Known categories for listing completions.
            max_history: History capacity; oldest entries are evicted first.
        """
        if max_history < 1:
            raise ValueError("max_history must be >= 1")
        self._engine = engine or SuggestionEngine()
        self._categories = list(categories)
        self._history: deque[str] = deque(maxlen=max_history)

    @property
    def history(self) -> tuple[str, ...]:
        """Return history oldest first."""
        return tuple(self._history)

    @property
    def categories(self) -> tuple[str, ...]:
        """Return known categories."""
        return tuple(self._categories)

    def update_categories(self, categories: Sequence[str]) -> None:
        """Replace known categories."""
        self._categories = list(categories)

    def add_to_history(self, command: str) -> None:
        """Append one command, evicting the oldest beyond capacity."""
        if command.strip():
            self._history.append(command.strip())

    def clear_history(self) -> None:
        """Forget all history."""
        self._history.clear()

    def suggest(self, text: str) -> SuggestionResult:
        """Return the full ranked result for ``text``."""
        return self._engine.suggest(
            SuggestionRequest(
                text=text,
                recent_commands=tuple(self._history),
                categories=tuple(self._categories),
            )
        )

    def complete(self, text: str) -> list[str]:
        """Return suggestion texts only."""
        return [item.text for item in self.suggest(text).suggestions]
