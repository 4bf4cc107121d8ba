"""Error taxonomy for routing, interpretation, execution and caching."""

from __future__ import annotations

from collections.abc import Sequence
from enum import StrEnum


class ErrorCode(StrEnum):
    """Stable machine-readable error codes."""

    PARSE_ERROR = "parse_error"
    INTERPRET_ERROR = "interpret_error"
    AMBIGUOUS_INPUT = "ambiguous_input"
    EXECUTION_ERROR = "execution_error"
    CACHE_ERROR = "cache_error"
    CANCELLED_BY_USER = "cancelled_by_user"
    STORE_ERROR = "store_error"


class TaskpilotError(RuntimeError):
    """Base error carrying a deterministic code."""

    code: ErrorCode = ErrorCode.EXECUTION_ERROR

    def __init__(self, message: str, *, code: ErrorCode | None = None) -> None:
        """Store error code and message.

        Args:
            message: Human-readable error message.
            code: Optional override of the class default code.
        """
        super().__init__(message)
        if code is not None:
            self.code = code
        self.message = message


class ParseError(TaskpilotError):
    """Input matched no traditional grammar."""

    code = ErrorCode.PARSE_ERROR

    def __init__(self, message: str, *, argv: Sequence[str] = ()) -> None:
        """Keep the offending argument vector for reporting."""
        self.argv = tuple(argv)
        if self.argv:
            message = f"{message} (input: {' '.join(self.argv)})"
        super().__init__(message)


class InterpretError(TaskpilotError):
    """Interpreter could not produce a structured command."""

    code = ErrorCode.INTERPRET_ERROR

    def __init__(
        self,
        message: str,
        *,
        text: str = "",
        ambiguous: bool = False,
    ) -> None:
        """Create an interpretation failure.

        Args:
            message: Human-readable reason.
            text: Offending natural-language input.
            ambiguous: Whether the input needs clarification.
        """
        super().__init__(
            message,
            code=ErrorCode.AMBIGUOUS_INPUT if ambiguous else None,
        )
        self.text = text
        self.ambiguous = ambiguous


class ExecutionError(TaskpilotError):
    """Action layer failed for one command."""

    code = ErrorCode.EXECUTION_ERROR

    def __init__(self, message: str, *, index: int | None = None) -> None:
        """Keep the failing command index when known."""
        super().__init__(message)
        self.index = index


class CacheError(TaskpilotError):
    """Response cache storage or serialization failure."""

    code = ErrorCode.CACHE_ERROR


class CancelledByUser(TaskpilotError):
    """Operator declined a confirmation prompt."""

    code = ErrorCode.CANCELLED_BY_USER

    def __init__(self, message: str = "Commands cancelled by user.") -> None:
        """Create cancellation with default message."""
        super().__init__(message)


class StoreError(TaskpilotError):
    """Task store operation failed."""

    code = ErrorCode.STORE_ERROR
