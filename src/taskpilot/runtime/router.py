"""Top-level dispatch between traditional commands and natural language."""

from __future__ import annotations

import logging
import shlex
from collections.abc import Sequence
from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from taskpilot.actions import TRADITIONAL_SUBCOMMANDS, ActionLayer, ActionOutcome
from taskpilot.commands.errors import CacheError, InterpretError, ParseError
from taskpilot.commands.types import ExecutionMode, StructuredCommand
from taskpilot.config import NlpConfig
from taskpilot.nlp.cache import ResponseCache
from taskpilot.nlp.interpreter import Interpreter
from taskpilot.runtime.executor import ExecutionSummary, SequentialExecutor

_LOGGER = logging.getLogger(__name__)

REPHRASE_HINT = "Try rephrasing, e.g. 'add task buy milk tomorrow' or 'list work tasks'."


class RoutePath(StrEnum):
    """Execution path chosen for one input."""

    TRADITIONAL = "traditional"
    NATURAL_LANGUAGE = "natural_language"


class RouteOutcome(BaseModel):
    """What the router did with one input."""

    model_config = ConfigDict(extra="forbid")

    path: RoutePath
    text: str
    action: ActionOutcome | None = None
    summary: ExecutionSummary | None = None
    commands: tuple[StructuredCommand, ...] = ()
    description: str | None = None
    from_cache: bool = False

    @property
    def succeeded(self) -> bool:
        """Return whether everything that ran succeeded."""
        if self.summary is not None:
            return self.summary.is_complete_success
        return self.action is not None


def first_keyword(text: str) -> str:
    """Return the lower-cased first whitespace-delimited token."""
    tokens = text.split(maxsplit=1)
    return tokens[0].lower() if tokens else ""


class CommandRouter:
    """Decide and run the execution path for raw input."""

    def __init__(
        self,
        *,
        actions: ActionLayer,
        executor: SequentialExecutor,
        config: NlpConfig,
        interpreter: Interpreter | None = None,
        cache: ResponseCache | None = None,
    ) -> None:
        """Create router.

        Args:
            actions: Traditional action layer.
            executor: Compound executor for interpreted commands.
            config: NLP settings loaded for this invocation.
            interpreter: Natural-language interpreter, when available.
            cache: Response cache consulted before the interpreter.
        """
        self._actions = actions
        self._executor = executor
        self._config = config
        self._interpreter = interpreter
        self._cache = cache

    @property
    def config(self) -> NlpConfig:
        """Return NLP settings."""
        return self._config

    def dispatch_traditional(self, argv: Sequence[str]) -> RouteOutcome:
        """Run an already-recognized traditional command directly.

        Raises:
            ParseError: If the vector does not match the grammar.
            ExecutionError: If the action fails.
        """
        outcome = self._actions.execute(argv)
        return RouteOutcome(
            path=RoutePath.TRADITIONAL, text=" ".join(argv), action=outcome
        )

    def route_argv(
        self,
        argv: Sequence[str],
        *,
        no_nlp: bool = False,
        show_preview: bool | None = None,
        mode: ExecutionMode | None = None,
    ) -> RouteOutcome:
        """Route shell-tokenized input.

        Args:
            argv: Tokens as received from the shell.
            no_nlp: Force traditional parsing only.
            show_preview: Override the configured preview setting.
            mode: Override the configured execution mode.

        Returns:
            Route outcome.
        """
        text = " ".join(argv)
        if argv and argv[0] in TRADITIONAL_SUBCOMMANDS:
            outcome = self._try_traditional(list(argv), text, no_nlp=no_nlp)
            if outcome is not None:
                return outcome
            return self.route_natural_language(text, show_preview=show_preview, mode=mode)
        return self.route_text(text, no_nlp=no_nlp, show_preview=show_preview, mode=mode)

    def route_text(
        self,
        text: str,
        *,
        no_nlp: bool = False,
        show_preview: bool | None = None,
        mode: ExecutionMode | None = None,
    ) -> RouteOutcome:
        """Route free text.

        Raises:
            ParseError: If ``no_nlp`` is set and traditional parsing fails.
            InterpretError: If natural-language interpretation fails.
            CancelledByUser: If the preview is declined.
        """
        stripped = text.strip()
        if no_nlp:
            return self.dispatch_traditional(_split(stripped))
        if first_keyword(stripped) in TRADITIONAL_SUBCOMMANDS:
            try:
                argv = _split(stripped)
            except ParseError as exc:
                _LOGGER.warning("%s; trying natural language", exc.message)
            else:
                outcome = self._try_traditional(argv, stripped, no_nlp=False)
                if outcome is not None:
                    return outcome
        return self.route_natural_language(stripped, show_preview=show_preview, mode=mode)

    def route_natural_language(
        self,
        text: str,
        *,
        show_preview: bool | None = None,
        mode: ExecutionMode | None = None,
    ) -> RouteOutcome:
        """Interpret (through the cache) and execute free text.

        Raises:
            InterpretError: If natural language is disabled or interpretation fails.
            CancelledByUser: If the preview is declined.
        """
        command, from_cache = self.interpret(text)
        summary = self.execute_commands(
            command.members(), show_preview=show_preview, mode=mode
        )
        return RouteOutcome(
            path=RoutePath.NATURAL_LANGUAGE,
            text=text,
            summary=summary,
            commands=command.members(),
            description=self._executor.mapper.describe_command(command),
            from_cache=from_cache,
        )

    def interpret(self, text: str) -> tuple[StructuredCommand, bool]:
        """Interpret text, consulting and filling the response cache.

        Returns:
            Structured command and whether it came from the cache.

        Raises:
            InterpretError: If disabled, unavailable or interpretation fails.
        """
        if not self._config.enabled:
            raise InterpretError(
                "natural language is disabled; use a traditional command "
                "or run 'taskpilot config enable'",
                text=text,
            )
        if self._interpreter is None:
            raise InterpretError("no interpreter is configured", text=text)
        use_cache = self._cache is not None and self._config.cache_commands
        if use_cache:
            cached = self._cache.get(text)
            if cached is not None:
                return cached, True
        try:
            command = self._interpreter.parse(text)
        except InterpretError as exc:
            raise InterpretError(
                f"{exc.message}. {REPHRASE_HINT}",
                text=text,
                ambiguous=exc.ambiguous,
            ) from exc
        if use_cache:
            try:
                self._cache.put(text, command)
            except CacheError as exc:
                _LOGGER.warning("could not cache interpretation: %s", exc.message)
        return command, False

    def execute_commands(
        self,
        commands: Sequence[StructuredCommand],
        *,
        show_preview: bool | None = None,
        mode: ExecutionMode | None = None,
    ) -> ExecutionSummary:
        """Execute structured commands with configured defaults."""
        preview = self._config.preview_enabled if show_preview is None else show_preview
        return self._executor.execute_compound(
            commands,
            mode or self._config.execution_mode,
            preview,
        )

    def _try_traditional(
        self, argv: list[str], text: str, *, no_nlp: bool
    ) -> RouteOutcome | None:
        try:
            parsed = self._actions.parse(argv)
        except ParseError as exc:
            if no_nlp or not self._config.enabled:
                raise
            _LOGGER.warning("not a traditional command (%s); trying natural language", exc.message)
            return None
        return RouteOutcome(
            path=RoutePath.TRADITIONAL, text=text, action=self._actions.run(parsed)
        )


def _split(text: str) -> list[str]:
    try:
        return shlex.split(text)
    except ValueError as exc:
        raise ParseError(f"cannot tokenize input: {exc}", argv=[text]) from exc
