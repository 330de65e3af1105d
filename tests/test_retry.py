from __future__ import annotations

import asyncio
import time
from typing import List

import pytest

from fitgen.llm import AttemptStatus, LLMError, RetryController, RetryState
from fitgen.models import CompiledPrompt
from fitgen.services.response_parser import parse_workout

PROMPT = CompiledPrompt(system="system", user="{}")


def test_worst_case_latency_sums_deadlines_and_backoff(scripted) -> None:
    ctl = RetryController(scripted(["x"]), max_retries=3, attempt_timeout=25.0, base_delay=1.0)
    assert ctl.worst_case_latency() == 78.0
    assert [ctl.backoff_delay(n) for n in (1, 2, 3)] == [1.0, 2.0, 4.0]


def test_retry_bound_when_every_attempt_times_out(scripted, hang) -> None:
    completion = scripted([hang])
    sleeps: List[float] = []

    async def fake_sleep(delay: float) -> None:
        sleeps.append(delay)

    ctl = RetryController(completion, max_retries=3, attempt_timeout=0.02, base_delay=0.5, sleep=fake_sleep)
    outcome = asyncio.run(ctl.invoke(PROMPT, parse_workout))

    assert outcome.state is RetryState.EXHAUSTED
    assert completion.calls == 3
    assert completion.cancelled == 3
    assert [a.status for a in outcome.attempts] == [AttemptStatus.TIMEOUT] * 3
    assert sleeps == [0.5, 1.0]


def test_partial_failure_recovers_on_third_attempt(scripted, good_plan_text: str) -> None:
    completion = scripted([LLMError("connection reset"), "not json at all", good_plan_text])
    ctl = RetryController(completion, max_retries=3, attempt_timeout=1.0, base_delay=0.0)
    outcome = asyncio.run(ctl.invoke(PROMPT, parse_workout))

    assert outcome.succeeded
    assert completion.calls == 3
    assert [a.status for a in outcome.attempts] == [
        AttemptStatus.TRANSPORT_ERROR,
        AttemptStatus.PARSE_ERROR,
        AttemptStatus.OK,
    ]
    assert outcome.value is not None and outcome.value.plan.name == "Upper Body Strength"
    assert outcome.raw_text == good_plan_text


def test_unexpected_client_errors_count_as_transport_failures(scripted) -> None:
    completion = scripted([KeyError("choices")])
    ctl = RetryController(completion, max_retries=2, attempt_timeout=1.0, base_delay=0.0)
    outcome = asyncio.run(ctl.invoke(PROMPT, parse_workout))
    assert outcome.state is RetryState.EXHAUSTED
    assert outcome.last_error is not None and outcome.last_error.startswith("transport_error")


def test_caller_deadline_stops_further_attempts(scripted, hang) -> None:
    completion = scripted([hang])
    ctl = RetryController(completion, max_retries=3, attempt_timeout=10.0, base_delay=0.01)

    started = time.monotonic()
    outcome = asyncio.run(ctl.invoke(PROMPT, parse_workout, deadline=time.monotonic() + 0.05))

    assert outcome.state is RetryState.EXHAUSTED
    assert completion.calls == 1
    assert time.monotonic() - started < 2.0


def test_caller_cancellation_cancels_in_flight_call(scripted, hang) -> None:
    completion = scripted([hang])
    ctl = RetryController(completion, max_retries=3, attempt_timeout=10.0)

    async def run() -> None:
        task = asyncio.create_task(ctl.invoke(PROMPT, parse_workout))
        await asyncio.sleep(0.02)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(run())
    assert completion.calls == 1
    assert completion.cancelled == 1


def test_invalid_configuration_is_rejected(scripted) -> None:
    with pytest.raises(ValueError):
        RetryController(scripted(["x"]), max_retries=0)
    with pytest.raises(ValueError):
        RetryController(scripted(["x"]), attempt_timeout=0)


def test_parser_crash_counts_as_parse_failure(scripted, good_plan_text: str) -> None:
    completion = scripted(["boom", good_plan_text])

    def fragile(raw: str):
        if raw == "boom":
            raise OverflowError("int too large to convert to float")
        return parse_workout(raw)

    ctl = RetryController(completion, max_retries=3, attempt_timeout=1.0, base_delay=0.0)
    outcome = asyncio.run(ctl.invoke(PROMPT, fragile))

    assert outcome.succeeded
    assert [a.status for a in outcome.attempts] == [AttemptStatus.PARSE_ERROR, AttemptStatus.OK]
    assert outcome.attempts[0].error == "OverflowError: int too large to convert to float"
