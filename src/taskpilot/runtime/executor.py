"""Compound command execution with failure modes and context carry-over."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field

from taskpilot.actions.models import ActionOutcome
from taskpilot.commands.errors import CancelledByUser, ExecutionError, ParseError
from taskpilot.commands.mapper import CommandMapper
from taskpilot.commands.types import ExecutionMode, StructuredCommand

_LOGGER = logging.getLogger(__name__)

_REFERENCE_WORDS = frozenset({"it", "that"})
_AFFIRMATIVE = frozenset({"", "y", "yes"})


class ActionRunner(Protocol):
    """Action layer consumed by the executor."""

    def execute(self, argv: Sequence[str]) -> ActionOutcome | None:
        """Run one argument vector, raising on failure."""


class Confirmer(Protocol):
    """Blocking yes/no confirmation capability."""

    def __call__(self, prompt: str) -> bool:
        """Return whether the operator accepted."""


class PreviewRenderer(Protocol):
    """Renders a compound preview before confirmation."""

    def __call__(self, preview: CompoundPreview) -> None:
        """Show preview to the operator."""


def is_affirmative(answer: str) -> bool:
    """Return whether a typed answer accepts (empty, ``y`` or ``yes``)."""
    return answer.strip().lower() in _AFFIRMATIVE


def line_confirmer(read_line: Callable[[str], str]) -> Confirmer:
    """Build a confirmer from a line reader such as ``input``."""

    def confirm(prompt: str) -> bool:
        return is_affirmative(read_line(prompt))

    return confirm


def auto_confirm(_: str) -> bool:
    """Confirmer that always accepts."""
    return True


class CommandOutput(BaseModel):
    """Output descriptor of one successful command."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    item_id: int | None = None
    content: str | None = None
    category: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class ExecutionResult(BaseModel):
    """Result of one compound member."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    index: int
    success: bool
    error: str | None = None
    output: CommandOutput | None = None
    command: StructuredCommand | None = None


class ExecutionContext(BaseModel):
    """Scratch state threaded between members of one compound run."""

    model_config = ConfigDict(extra="forbid")

    last_item_id: int | None = None
    last_category: str | None = None
    last_content: str | None = None
    previous_results: list[ExecutionResult] = Field(default_factory=list)
    variables: dict[str, str] = Field(default_factory=dict)

    def set_var(self, name: str, value: str) -> None:
        """Store a named variable."""
        self.variables[name] = value

    def get_var(self, name: str) -> str | None:
        """Return a named variable when set."""
        return self.variables.get(name)

    def update_with_result(self, result: ExecutionResult) -> None:
        """Record a successful result and refresh the ``last`` fields."""
        if not result.success:
            return
        self.previous_results.append(result)
        output = result.output
        if output is None:
            return
        if output.item_id is not None:
            self.last_item_id = output.item_id
        if output.content:
            self.last_content = output.content
        if output.category:
            self.last_category = output.category

    def resolve(self, command: StructuredCommand) -> StructuredCommand:
        """Substitute ``it``/``that``, missing category and ``$variable`` values.

        Unresolvable references are left unchanged.
        """
        updates: dict[str, object] = {}
        if command.content.strip().lower() in _REFERENCE_WORDS and self.last_content:
            updates["content"] = self.last_content
        if command.category is None and self.last_category:
            updates["category"] = self.last_category
        if any(value.startswith("$") for value in command.modifications.values()):
            updates["modifications"] = {
                key: self._substitute(value)
                for key, value in command.modifications.items()
            }
        if not updates:
            return command
        return command.model_copy(update=updates)

    def _substitute(self, value: str) -> str:
        if not value.startswith("$"):
            return value
        resolved = self.variables.get(value[1:])
        return value if resolved is None else resolved


class ExecutionSummary(BaseModel):
    """Outcome of one compound run."""

    model_config = ConfigDict(extra="forbid")

    total: int
    results: list[ExecutionResult]
    context: ExecutionContext
    mode: ExecutionMode = ExecutionMode.STOP_ON_ERROR

    @property
    def successful(self) -> int:
        """Return number of successful results."""
        return sum(1 for result in self.results if result.success)

    @property
    def failed(self) -> int:
        """Return number of failed results."""
        return sum(1 for result in self.results if not result.success)

    @property
    def is_complete_success(self) -> bool:
        """Return whether every recorded result succeeded."""
        return all(result.success for result in self.results)

    def summary(self) -> str:
        """Return human summary line."""
        if self.is_complete_success:
            return f"All {self.total} command(s) executed successfully"
        return (
            f"Executed {self.total} command(s): "
            f"{self.successful} succeeded, {self.failed} failed"
        )


class PreviewLine(BaseModel):
    """One previewed compound member."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    index: int
    description: str
    argv: tuple[str, ...]


class CompoundPreview(BaseModel):
    """Everything shown before confirmation."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    mode: ExecutionMode
    lines: tuple[PreviewLine, ...]


class SequentialExecutor:
    """Run structured commands one at a time under an execution mode."""

    def __init__(
        self,
        actions: ActionRunner,
        *,
        mapper: CommandMapper | None = None,
        confirm: Confirmer = auto_confirm,
        render_preview: PreviewRenderer | None = None,
        verbose: bool = False,
    ) -> None:
        """Create executor.

        Args:
            actions: Action layer that runs argument vectors.
            mapper: Structured command to argument vector mapper.
            confirm: Confirmation capability used when previewing.
            render_preview: Optional preview renderer; logs when absent.
            verbose: Log per-command progress at info level.
        """
        self._actions = actions
        self._mapper = mapper or CommandMapper()
        self._confirm = confirm
        self._render_preview = render_preview
        self._verbose = verbose

    @property
    def mapper(self) -> CommandMapper:
        """Return command mapper."""
        return self._mapper

    def preview(
        self, commands: Sequence[StructuredCommand], mode: ExecutionMode
    ) -> CompoundPreview:
        """Build preview lines; unmappable members show an empty invocation."""
        lines = []
        for index, command in enumerate(commands):
            try:
                argv = tuple(self._mapper.to_action_args(command))
            except ExecutionError:
                argv = ()
            lines.append(
                PreviewLine(
                    index=index,
                    description=self._mapper.describe_command(command),
                    argv=argv,
                )
            )
        return CompoundPreview(mode=mode, lines=tuple(lines))

    def execute_compound(
        self,
        commands: Sequence[StructuredCommand],
        mode: ExecutionMode = ExecutionMode.STOP_ON_ERROR,
        show_preview: bool = False,
        *,
        variables: Mapping[str, str] | None = None,
    ) -> ExecutionSummary:
        """Run commands in order under ``mode``.

        Args:
            commands: Ordered executable members (containers are flattened).
            mode: Failure and context semantics.
            show_preview: Render and confirm before running anything.
            variables: Initial ``$variable`` values for the context.

        Returns:
            Execution summary with per-command results and final context.

        Raises:
            CancelledByUser: If the operator declines the preview.
        """
        members = [member for command in commands for member in command.members()]
        if show_preview:
            preview = self.preview(members, mode)
            if self._render_preview is not None:
                self._render_preview(preview)
            else:
                for line in preview.lines:
                    _LOGGER.info("%d. %s", line.index + 1, line.description)
            if not self._confirm("Execute these commands? [Y/n]"):
                raise CancelledByUser()
        context = ExecutionContext(variables=dict(variables or {}))
        results: list[ExecutionResult] = []
        stops_on_failure = mode in (ExecutionMode.STOP_ON_ERROR, ExecutionMode.DEPENDENT)
        total = len(members)
        for index, command in enumerate(members):
            if mode == ExecutionMode.DEPENDENT:
                command = context.resolve(command)
            if self._verbose:
                _LOGGER.info("Executing command %d/%d...", index + 1, total)
            result = self.execute_single(command, index)
            results.append(result)
            context.update_with_result(result)
            if not result.success and stops_on_failure:
                _LOGGER.debug("stopping after failed command %d", index + 1)
                break
        return ExecutionSummary(total=total, results=results, context=context, mode=mode)

    def execute_single(self, command: StructuredCommand, index: int = 0) -> ExecutionResult:
        """Map and run one command, capturing failure as a result.

        Args:
            command: Executable structured command.
            index: Ordinal position within the compound run.

        Returns:
            Per-command execution result.
        """
        try:
            argv = self._mapper.to_action_args(command)
            outcome = self._actions.execute(argv)
        except (ExecutionError, ParseError) as exc:
            return ExecutionResult(
                index=index,
                success=False,
                error=f"command {index + 1} ({' '.join(_safe_args(self._mapper, command))}): "
                f"{exc.message}",
                command=command,
            )
        return ExecutionResult(
            index=index,
            success=True,
            output=_output_for(command, outcome),
            command=command,
        )


def _safe_args(mapper: CommandMapper, command: StructuredCommand) -> list[str]:
    try:
        return mapper.to_action_args(command)
    except ExecutionError:
        return [command.action.value, command.content]


def _output_for(command: StructuredCommand, outcome: ActionOutcome | None) -> CommandOutput:
    if outcome is None:
        return CommandOutput(content=command.content, category=command.category)
    metadata: dict[str, Any] = {"message": outcome.message}
    if outcome.items:
        metadata["items"] = [item.model_dump(mode="json") for item in outcome.items]
    listing = bool(outcome.items) and outcome.item_id is None
    return CommandOutput(
        item_id=outcome.item_id,
        content=None if listing else outcome.content or command.content,
        category=outcome.category or command.category,
        metadata=metadata,
    )
