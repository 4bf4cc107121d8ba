"""CLI rendering of routes, summaries, suggestions and diagnostics."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from rich.console import Console
from rich.json import JSON
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from taskpilot.commands.errors import ErrorCode, TaskpilotError
from taskpilot.config import TaskpilotConfig
from taskpilot.nlp.cache import CacheStats
from taskpilot.nlp.suggestions import SuggestionResult
from taskpilot.runtime.executor import (
    CompoundPreview,
    ExecutionContext,
    ExecutionSummary,
)
from taskpilot.runtime.router import RouteOutcome, RoutePath
from taskpilot.store import Item

_WARNING_CODES = frozenset({ErrorCode.CANCELLED_BY_USER, ErrorCode.AMBIGUOUS_INPUT})


class CliRenderer:
    """Render outcomes with Rich structures."""

    def __init__(self, *, console: Console) -> None:
        """Store console used for rendering.

        Args:
            console: Rich console used for output rendering.
        """
        self._console = console

    @property
    def console(self) -> Console:
        """Return output console."""
        return self._console

    def render_outcome(self, outcome: RouteOutcome, *, show_interpretation: bool) -> None:
        """Render one routed input.

        Args:
            outcome: Route outcome.
            show_interpretation: Whether to show how the input was understood.
        """
        if outcome.path == RoutePath.TRADITIONAL and outcome.action is not None:
            if outcome.action.items:
                self.render_items(outcome.action.items)
            self._console.print(
                Panel(escape(outcome.action.message), title="taskpilot", border_style="green")
            )
            return
        if show_interpretation and outcome.description:
            source = "cache" if outcome.from_cache else "interpreter"
            self._console.print(
                f"[dim]Understood ({source}):[/dim] {escape(outcome.description)}"
            )
        if outcome.summary is not None:
            self.render_summary(outcome.summary)

    def render_summary(self, summary: ExecutionSummary) -> None:
        """Render per-command results then the summary line."""
        for result in summary.results:
            output = result.output
            if result.success and output is not None:
                raw_items = output.metadata.get("items")
                if isinstance(raw_items, list):
                    self.render_items(raw_items)
                message = escape(str(output.metadata.get("message") or output.content or ""))
                self._console.print(f"[green]✓[/green] {result.index + 1}. {message}")
            elif result.success:
                self._console.print(f"[green]✓[/green] {result.index + 1}.")
            else:
                error = escape(result.error or "")
                self._console.print(f"[red]✗[/red] {result.index + 1}. {error}")
        self._console.print(
            Panel(
                summary.summary(),
                title=escape(f"taskpilot [{summary.mode.value}]"),
                border_style="green" if summary.is_complete_success else "bold red",
            )
        )

    def render_items(self, items: Sequence[Item | Mapping[str, Any]]) -> None:
        """Render listed tasks or records as a table."""
        rows = [item.model_dump(mode="json") if isinstance(item, Item) else item for item in items]
        if not rows:
            self._console.print(
                Panel("Nothing matched.", title="Items", border_style="yellow")
            )
            return
        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("#", justify="right")
        table.add_column("Category", style="magenta")
        table.add_column("Content", style="bold")
        table.add_column("Due / When", style="green")
        table.add_column("Status")
        for position, row in enumerate(rows, start=1):
            when = row.get("target_time") or row.get("schedule") or ""
            if row.get("kind") == "record" and not row.get("target_time"):
                when = row.get("created_at", "")
            table.add_row(
                str(position),
                str(row.get("category", "")),
                escape(str(row.get("content", ""))),
                str(when).replace("T", " "),
                str(row.get("status", "")),
            )
        self._console.print(table)

    def render_error(self, error: TaskpilotError) -> None:
        """Render an error panel, yellow for cancellations and clarifications."""
        warning = error.code in _WARNING_CODES
        self._console.print(
            Panel(
                escape(error.message),
                title=escape(f"Error [{error.code.value}]"),
                border_style="yellow" if warning else "bold red",
            )
        )

    def render_suggestions(self, result: SuggestionResult, *, title: str = "Suggestions") -> None:
        """Render ranked suggestions."""
        if not result.suggestions:
            self._console.print("No suggestions available")
            return
        table = Table(title=title, show_header=True, header_style="bold cyan")
        table.add_column("Suggestion", style="bold")
        table.add_column("Kind", style="magenta")
        table.add_column("Confidence", justify="right")
        table.add_column("Description")
        for item in result.suggestions:
            table.add_row(
                escape(repr(item.text)),
                item.kind.value,
                f"{item.confidence:.0%}",
                item.description,
            )
        self._console.print(table)

    def render_preview(self, preview: CompoundPreview) -> None:
        """Render compound preview before confirmation."""
        lines = [f"Mode: {preview.mode.value}", f"Commands: {len(preview.lines)}", ""]
        for line in preview.lines:
            lines.append(f"{line.index + 1}. {line.description}")
            lines.append(f"   Command: {' '.join(line.argv) or '(not executable)'}")
        self._console.print(
            Panel(escape("\n".join(lines)), title="Command Preview", border_style="cyan")
        )

    def render_explain(self, vectors: Iterable[Sequence[str]], description: str) -> None:
        """Render interpretation without execution."""
        table = Table(title=escape(description), show_header=True, header_style="bold cyan")
        table.add_column("#", justify="right")
        table.add_column("Command", style="bold")
        for position, argv in enumerate(vectors, start=1):
            table.add_row(str(position), escape(" ".join(argv)))
        self._console.print(table)

    def render_cache_stats(self, stats: CacheStats) -> None:
        """Render cache statistics."""
        self._console.print(
            Panel(JSON.from_data(stats.model_dump()), title="Cache", border_style="cyan")
        )

    def render_patterns(self, patterns: Iterable[tuple[str, str]]) -> None:
        """Render supported phrasings."""
        table = Table(title="Supported phrasings", show_header=True, header_style="bold cyan")
        table.add_column("Pattern", style="bold")
        table.add_column("Meaning")
        for pattern, description in patterns:
            table.add_row(pattern, description)
        self._console.print(table)

    def render_config(self, config: TaskpilotConfig) -> None:
        """Render effective config with the credential masked."""
        payload = config.model_dump(mode="json")
        if payload["nlp"].get("api_key"):
            payload["nlp"]["api_key"] = "********"
        self._console.print(
            Panel(JSON.from_data(payload), title="Configuration", border_style="cyan")
        )

    def render_context(
        self,
        *,
        session_lines: Sequence[str],
        context: ExecutionContext | None,
        categories: Sequence[str],
    ) -> None:
        """Render REPL session and last execution context."""
        lines = list(session_lines)
        if context is not None:
            lines.append(f"Last content: {context.last_content or '-'}")
            lines.append(f"Last category: {context.last_category or '-'}")
            if context.last_item_id is not None:
                lines.append(f"Last item id: {context.last_item_id}")
            lines.append(f"Commands in last run: {len(context.previous_results)}")
        if categories:
            lines.append(f"Categories: {', '.join(categories)}")
        self._console.print(Panel(escape("\n".join(lines)), title="Context", border_style="cyan"))
