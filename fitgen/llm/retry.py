"""Retry/timeout controller for remote generation.

Each call walks an explicit state machine::

    IDLE -> ATTEMPTING(1) -> ... -> ATTEMPTING(n) -> SUCCEEDED | EXHAUSTED

An attempt is one remote call raced against a per-attempt deadline, followed by
the caller-supplied ``parse`` step. Timeouts, transport errors and unparseable
output all count as a failed attempt. Between failures the controller sleeps
``base_delay * 2 ** (attempt - 1)``. The individual failure reasons are kept on
the outcome for logging and metrics but the orchestrator only branches on
SUCCEEDED vs EXHAUSTED.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Generic, List, Optional, TypeVar

from loguru import logger

from fitgen.models.context import CompiledPrompt, GenerationParams
from .groq_client import CompletionClient, LLMError, UnparseableResponseError

T = TypeVar("T")


class RetryState(str, Enum):
    IDLE = "idle"
    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


class AttemptStatus(str, Enum):
    OK = "ok"
    TIMEOUT = "timeout"
    TRANSPORT_ERROR = "transport_error"
    PARSE_ERROR = "parse_error"


@dataclass(frozen=True)
class AttemptRecord:
    number: int
    status: AttemptStatus
    elapsed_s: float
    error: Optional[str] = None


@dataclass
class RetryOutcome(Generic[T]):
    state: RetryState = RetryState.IDLE
    value: Optional[T] = None
    attempts: List[AttemptRecord] = field(default_factory=list)
    raw_text: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.state is RetryState.SUCCEEDED

    @property
    def last_error(self) -> Optional[str]:
        for rec in reversed(self.attempts):
            if rec.error:
                return f"{rec.status.value}: {rec.error}"
        return None


class RetryController:
    def __init__(
        self,
        completion: CompletionClient,
        *,
        max_retries: int = 3,
        attempt_timeout: float = 25.0,
        base_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        if attempt_timeout <= 0:
            raise ValueError("attempt_timeout must be > 0")
        self.completion = completion
        self.max_retries = max_retries
        self.attempt_timeout = attempt_timeout
        self.base_delay = max(0.0, base_delay)
        self._sleep = sleep
        self._clock = clock

    def backoff_delay(self, attempt: int) -> float:
        """Delay after failed attempt number ``attempt`` (1-based)."""
        return self.base_delay * (2 ** (attempt - 1))

    def worst_case_latency(self) -> float:
        """Upper bound on one ``invoke`` call: every deadline plus every backoff between attempts."""
        backoff = sum(self.backoff_delay(n) for n in range(1, self.max_retries))
        return self.max_retries * self.attempt_timeout + backoff

    async def _attempt(self, number: int, prompt: CompiledPrompt, params: GenerationParams,
                       parse: Callable[[str], T], timeout: float,
                       outcome: RetryOutcome[T]) -> bool:
        started = self._clock()
        try:
            # wait_for cancels the pending call on timeout so nothing is left in flight
            raw = await asyncio.wait_for(self.completion.complete(prompt, params), timeout=timeout)
        except asyncio.TimeoutError:
            outcome.attempts.append(AttemptRecord(number, AttemptStatus.TIMEOUT, self._clock() - started,
                                                  f"no response within {timeout:.2f}s"))
            return False
        except LLMError as e:
            outcome.attempts.append(AttemptRecord(number, AttemptStatus.TRANSPORT_ERROR,
                                                  self._clock() - started, str(e)))
            return False
        except Exception as e:  # noqa: BLE001 - any client fault is an attempt failure
            outcome.attempts.append(AttemptRecord(number, AttemptStatus.TRANSPORT_ERROR,
                                                  self._clock() - started, f"{type(e).__name__}: {e}"))
            return False

        try:
            value = parse(raw)
        except UnparseableResponseError as e:
            outcome.attempts.append(AttemptRecord(number, AttemptStatus.PARSE_ERROR,
                                                  self._clock() - started, str(e)))
            return False
        except Exception as e:  # noqa: BLE001 - output the parser chokes on is still a bad response
            logger.opt(exception=e).debug("Parser raised on remote output", attempt=number)
            outcome.attempts.append(AttemptRecord(number, AttemptStatus.PARSE_ERROR,
                                                  self._clock() - started, f"{type(e).__name__}: {e}"))
            return False

        outcome.attempts.append(AttemptRecord(number, AttemptStatus.OK, self._clock() - started))
        outcome.value = value
        outcome.raw_text = raw
        return True

    async def invoke(
        self,
        prompt: CompiledPrompt,
        parse: Callable[[str], T],
        params: Optional[GenerationParams] = None,
        *,
        deadline: Optional[float] = None,
    ) -> RetryOutcome[T]:
        """Run up to ``max_retries`` attempts. Never raises for remote failures.

        ``deadline`` is an absolute value on the controller clock (``time.monotonic`` by
        default) after which no further attempt or backoff is started; it also shortens
        the last attempt's own deadline.
        """
        params = params or GenerationParams()
        outcome: RetryOutcome[T] = RetryOutcome()

        for attempt in range(1, self.max_retries + 1):
            timeout = self.attempt_timeout
            if deadline is not None:
                remaining = deadline - self._clock()
                if remaining <= 0:
                    logger.warning("Caller deadline reached before attempt", attempt=attempt)
                    break
                timeout = min(timeout, remaining)

            outcome.state = RetryState.ATTEMPTING
            logger.info("Calling remote model", attempt=attempt, max_retries=self.max_retries,
                        timeout_s=round(timeout, 3))
            if await self._attempt(attempt, prompt, params, parse, timeout, outcome):
                outcome.state = RetryState.SUCCEEDED
                logger.info("Remote attempt succeeded", attempt=attempt,
                            elapsed_s=round(outcome.attempts[-1].elapsed_s, 3))
                return outcome

            rec = outcome.attempts[-1]
            logger.warning("Remote attempt failed", attempt=attempt, status=rec.status.value,
                           error=rec.error, elapsed_s=round(rec.elapsed_s, 3))

            if attempt < self.max_retries:
                delay = self.backoff_delay(attempt)
                if deadline is not None and self._clock() + delay >= deadline:
                    logger.warning("Skipping retry, backoff would pass caller deadline", attempt=attempt)
                    break
                await self._sleep(delay)

        outcome.state = RetryState.EXHAUSTED
        logger.error("Remote generation exhausted", attempts=len(outcome.attempts),
                     last_error=outcome.last_error)
        return outcome
