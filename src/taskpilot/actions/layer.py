"""Action layer: parse and run traditional argument vectors."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import typer
from typer.core import TyperGroup

from taskpilot.actions.grammar import grammar_app
from taskpilot.actions.models import ActionOutcome
from taskpilot.commands.errors import ExecutionError, ParseError, StoreError
from taskpilot.store import TaskStore

_LOGGER = logging.getLogger(__name__)


def _typer_exception(name: str) -> type[Any]:
    """Return the click exception class of that name typer raises.

    Raises:
        LookupError: If typer's exception hierarchy has no such class.
    """
    for cls in typer.BadParameter.__mro__:
        if cls.__name__ == name:
            return cls
    raise LookupError(f"typer exposes no '{name}' exception")


CLICK_ERROR = _typer_exception("ClickException")


@dataclass(frozen=True)
class ParsedAction:
    """Argument vector already validated against the grammar."""

    argv: tuple[str, ...]
    context: typer.Context

    @property
    def command_path(self) -> str:
        """Return the resolved subcommand path, e.g. ``list task``."""
        return self.context.command_path.partition(" ")[2]
class ActionLayer:
    """Validate and execute traditional commands against the task store."""

    def __init__(self, store: TaskStore) -> None:
        """Bind the grammar to one store.

        Args:
            store: Task store handed to every handler.
        """
        self._store = store
        self._root = typer.main.get_command(grammar_app)

    @property
    def store(self) -> TaskStore:
        """Return bound task store."""
        return self._store

    def parse(self, argv: Sequence[str]) -> ParsedAction:
        """Validate an argument vector without running it.

        Args:
            argv: Traditional argument vector, e.g. ``["done", "1"]``.

        Returns:
            Parsed action ready to run.

        Raises:
            ParseError: If the vector does not match the grammar.
        """
        args = list(argv)
        if not args:
            raise ParseError("empty command")
        command: Any = self._root
        ctx = command.context_class(command, info_name="taskpilot", obj=self._store)
        try:
            while isinstance(command, TyperGroup):
                if not args:
                    raise ParseError(
                        f"'{ctx.command_path}' needs a subcommand", argv=argv
                    )
                name, resolved, args = command.resolve_command(ctx, args)
                if resolved is None or name is None:
                    raise ParseError("unknown command", argv=argv)
                if isinstance(resolved, TyperGroup):
                    ctx = resolved.context_class(resolved, info_name=name, parent=ctx)
                else:
                    ctx = resolved.make_context(name, args, parent=ctx)
                command = resolved
        except CLICK_ERROR as exc:
            raise ParseError(exc.format_message(), argv=argv) from exc
        except typer.Exit as exc:
            raise ParseError("help requested", argv=argv) from exc
        return ParsedAction(argv=tuple(argv), context=ctx)

    def run(self, parsed: ParsedAction) -> ActionOutcome:
        """Run a parsed action to completion.

        Raises:
            ExecutionError: If the handler or store fails.
        """
        ctx = parsed.context
        _LOGGER.debug("running action: %s", " ".join(parsed.argv))
        try:
            with ctx:
                outcome = ctx.command.invoke(ctx)
        except StoreError as exc:
            raise ExecutionError(exc.message) from exc
        except CLICK_ERROR as exc:
            raise ExecutionError(exc.format_message()) from exc
        if not isinstance(outcome, ActionOutcome):
            return ActionOutcome(message=f"Ran: {' '.join(parsed.argv)}")
        return outcome

    def execute(self, argv: Sequence[str]) -> ActionOutcome:
        """Parse then run one argument vector.

        Raises:
            ParseError: If the vector does not match the grammar.
            ExecutionError: If the handler or store fails.
        """
        return self.run(self.parse(argv))
