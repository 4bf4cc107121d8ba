"""LangChain-backed interpreter (isolated behind the Interpreter contract)."""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections import deque
from collections.abc import Callable
from typing import Protocol

from langchain.agents import create_agent
from langchain.chat_models import init_chat_model
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from taskpilot.commands.errors import InterpretError
from taskpilot.commands.mapper import CommandMapper
from taskpilot.commands.types import (
    ActionKind,
    QueryType,
    StatusType,
    StructuredCommand,
)
from taskpilot.config import NlpConfig
from taskpilot.nlp.interpreter import RuleInterpreter, compound_args

_LOGGER = logging.getLogger(__name__)

LLM_PROVENANCE = "llm"
_SYSTEM_PROMPT = (
    "You translate task-tracker requests into structured commands.\n"
    "Actions: task (create task), record (log something that happened), "
    "done (complete a task), update, delete, list.\n"
    "Use one step per requested operation, in order. For done/update/delete the "
    "content is the task index or the task text; use 'it' to refer to the item "
    "touched by the previous step.\n"
    "Deadlines use keywords: today, tomorrow, eow, eom, +Nd, weekday names or "
    "YYYY-MM-DD. Recurrence uses daily, weekly or monthly in 'schedule'.\n"
    "Status values: " + ", ".join(status.value for status in StatusType) + ".\n"
    "Query types: " + ", ".join(query.value for query in QueryType) + ".\n"
    "If the request is unclear, leave steps empty and explain in 'clarification'."
)


class InterpretedStep(BaseModel):
    """One model-produced command step (non-recursive schema)."""

    model_config = ConfigDict(extra="forbid")

    action: ActionKind
    content: str = ""
    category: str | None = None
    deadline: str | None = None
    schedule: str | None = None
    status: StatusType | None = None
    query_type: QueryType | None = None
    search: str | None = None
    modifications: dict[str, str] = Field(default_factory=dict)
    days: int | None = None
    limit: int | None = None


class InterpretedPlan(BaseModel):
    """Structured output contract for the model."""

    model_config = ConfigDict(extra="forbid")

    steps: list[InterpretedStep] = Field(default_factory=list)
    confidence: float = Field(default=0.8, ge=0.0, le=1.0)
    clarification: str | None = None


class PlanInvoker(Protocol):
    """Asynchronous model call returning a plan payload."""

    async def ainvoke(self, text: str) -> InterpretedPlan | dict[str, object]:
        """Interpret one input.

        Args:
            text: Natural-language input.
        """


class _LangChainPlanInvoker:
    """Default invoker using LangChain v1 `create_agent` APIs."""

    def __init__(self, config: NlpConfig) -> None:
        """Build chat model and agent from config."""
        model = init_chat_model(
            config.model,
            api_key=config.resolved_api_key(),
            timeout=config.timeout_seconds,
        )
        self._agent = create_agent(
            model=model,
            tools=[],
            system_prompt=_SYSTEM_PROMPT,
            response_format=InterpretedPlan,
        )

    async def ainvoke(self, text: str) -> InterpretedPlan | dict[str, object]:
        """Run one agent turn and return its structured response."""
        result = await self._agent.ainvoke(
            {"messages": [{"role": "user", "content": text}]}
        )
        if not isinstance(result, dict):
            raise InterpretError("model response was not a dictionary", text=text)
        structured = result.get("structured_response")
        if isinstance(structured, InterpretedPlan | dict):
            return structured
        raise InterpretError("model response had no structured output", text=text)


class CallRateLimiter:
    """Sliding one-minute window limiting model calls."""

    def __init__(
        self,
        max_calls_per_minute: int,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep_fn: Callable[[float], None] = time.sleep,
    ) -> None:
        """Create limiter with injectable clock and sleep."""
        self._max_calls = max_calls_per_minute
        self._clock = clock
        self._sleep_fn = sleep_fn
        self._calls: deque[float] = deque()

    def acquire(self) -> None:
        """Block until one more call fits in the window."""
        now = self._clock()
        while self._calls and now - self._calls[0] >= 60.0:
            self._calls.popleft()
        if len(self._calls) >= self._max_calls:
            wait = 60.0 - (now - self._calls[0])
            _LOGGER.warning("model call rate limit reached; waiting %.1fs", wait)
            self._sleep_fn(wait)
            self._calls.popleft()
            now = self._clock()
        self._calls.append(now)


class LlmInterpreter:
    """Interpreter calling a chat model, with a pattern fast path."""

    def __init__(
        self,
        config: NlpConfig,
        invoker: PlanInvoker | None = None,
        *,
        mapper: CommandMapper | None = None,
        fast_path: RuleInterpreter | None = None,
        rate_limiter: CallRateLimiter | None = None,
        sleep_fn: Callable[[float], None] = time.sleep,
        backoff_seconds: float = 0.25,
    ) -> None:
        """Create interpreter.

        Args:
            config: NLP settings (model, credential, limits).
            invoker: Optional model invoker; defaults to LangChain.
            mapper: Command mapper for argument vectors.
            fast_path: Optional rule interpreter tried before the model.
            rate_limiter: Optional call limiter; built from config by default.
            sleep_fn: Injectable sleep between retries.
            backoff_seconds: Fixed sleep between retryable attempts.

        Raises:
            InterpretError: If no API credential is available for the default invoker.
        """
        if invoker is None and not config.resolved_api_key():
            raise InterpretError(
                "no API key configured; run 'taskpilot config set-key <KEY>'"
            )
        self._lock = threading.Lock()
        self._config = config
        self._invoker = invoker or _LangChainPlanInvoker(config)
        self._mapper = mapper or CommandMapper()
        self._fast_path = fast_path
        self._rate_limiter = rate_limiter or CallRateLimiter(
            config.max_api_calls_per_minute
        )
        self._sleep_fn = sleep_fn
        self._backoff_seconds = backoff_seconds

    def parse(self, text: str) -> StructuredCommand:
        """Interpret text, bridging the async model call into sync flow.

        Args:
            text: Natural-language input.

        Returns:
            One command or a compound container.

        Raises:
            InterpretError: If the model fails, times out or returns no steps.
        """
        if not text.strip():
            raise InterpretError("nothing to interpret", text=text)
        if self._fast_path is not None:
            try:
                return self._fast_path.parse(text)
            except InterpretError:
                _LOGGER.debug("pattern fast path missed; calling model")
        with self._lock:
            plan = self._run_with_retries(text)
        return self._to_command(plan, text)

    def parse_to_compound_args(self, text: str) -> tuple[list[list[str]], str]:
        """Interpret text and map it to argument vectors."""
        return compound_args(self.parse(text), self._mapper, text=text)

    def _run_with_retries(self, text: str) -> InterpretedPlan:
        attempts = self._config.max_attempts
        for attempt in range(1, attempts + 1):
            self._rate_limiter.acquire()
            try:
                raw = asyncio.run(self._call_model(text))
                return InterpretedPlan.model_validate(
                    raw.model_dump() if isinstance(raw, BaseModel) else raw
                )
            except ValidationError as exc:
                raise InterpretError(f"model returned invalid output: {exc}", text=text) from exc
            except InterpretError:
                raise
            except Exception as exc:  # noqa: BLE001 - provider errors vary by backend
                if attempt >= attempts:
                    raise InterpretError(
                        f"interpreter unavailable after {attempts} attempt(s): {exc}",
                        text=text,
                    ) from exc
                _LOGGER.warning("interpreter attempt %d failed: %s", attempt, exc)
                self._sleep_fn(self._backoff_seconds)
        raise InterpretError("interpreter produced no result", text=text)

    async def _call_model(self, text: str) -> InterpretedPlan | dict[str, object]:
        return await asyncio.wait_for(
            self._invoker.ainvoke(text), timeout=self._config.timeout_seconds
        )

    def _to_command(self, plan: InterpretedPlan, text: str) -> StructuredCommand:
        if not plan.steps:
            reason = plan.clarification or "no command found"
            raise InterpretError(f"please clarify: {reason}", text=text, ambiguous=True)
        try:
            commands = [
                StructuredCommand(
                    **step.model_dump(),
                    confidence=plan.confidence,
                    provenance=LLM_PROVENANCE,
                )
                for step in plan.steps
            ]
        except ValidationError as exc:
            raise InterpretError(f"model returned invalid command: {exc}", text=text) from exc
        return StructuredCommand.container(commands, provenance=LLM_PROVENANCE)
