from __future__ import annotations

import asyncio
from typing import List

import pytest

from fitgen.models import GenerationRequest
from fitgen.services.cache import ResultCache, SingleFlight, fingerprint, round_duration


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_entries_expire_after_ttl() -> None:
    clock = FakeClock()
    cache: ResultCache[str] = ResultCache(max_entries=10, ttl_seconds=300, clock=clock)
    cache.set("k", "v")
    clock.now += 299
    assert cache.get("k") == "v"
    clock.now += 1
    assert cache.get("k") is None
    assert len(cache) == 0


def test_oldest_insertion_is_evicted_first() -> None:
    cache: ResultCache[int] = ResultCache(max_entries=2, ttl_seconds=300, clock=FakeClock())
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("a", 10)  # replacing moves "a" to newest
    cache.set("c", 3)
    assert cache.get("b") is None
    assert cache.get("a") == 10
    assert cache.get("c") == 3
    assert len(cache) == 2


def test_expired_entries_are_purged_before_evicting_live_ones() -> None:
    clock = FakeClock()
    cache: ResultCache[int] = ResultCache(max_entries=2, ttl_seconds=10, clock=clock)
    cache.set("old", 1)
    clock.now += 5
    cache.set("live", 2)
    clock.now += 6
    cache.set("new", 3)
    assert cache.get("live") == 2
    assert cache.get("new") == 3


def test_max_entries_must_be_positive() -> None:
    with pytest.raises(ValueError):
        ResultCache(max_entries=0)


def test_round_duration_half_up_to_five() -> None:
    assert [round_duration(m) for m in (45, 47, 48, 52, 53)] == [45, 45, 50, 50, 55]


def test_fingerprint_is_stable_over_equivalent_requests() -> None:
    base = GenerationRequest(user_id="u1", goal="strength", duration_minutes=45, equipment=["barbell", "dumbbell"])
    same = GenerationRequest(user_id="u1", goal="strength", duration_minutes=47, equipment=["Dumbbell", "barbell"])
    assert fingerprint(base, "intermediate") == fingerprint(same, "intermediate")
    assert len(fingerprint(base, "intermediate")) == 64


def test_fingerprint_separates_distinct_requests() -> None:
    base = GenerationRequest(user_id="u1", goal="strength", duration_minutes=45)
    keys = {
        fingerprint(base, "intermediate"),
        fingerprint(base, "advanced"),
        fingerprint(base.model_copy(update={"user_id": "u2"}), "intermediate"),
        fingerprint(base.model_copy(update={"goal": "endurance"}), "intermediate"),
        fingerprint(base.model_copy(update={"duration_minutes": 48}), "intermediate"),
        fingerprint(base.model_copy(update={"equipment": ["kettlebell"]}), "intermediate"),
    }
    assert len(keys) == 6


def test_single_flight_shares_one_computation() -> None:
    flight: SingleFlight[str] = SingleFlight()
    calls: List[int] = []

    async def compute() -> str:
        calls.append(1)
        await asyncio.sleep(0.02)
        return "plan"

    async def run():
        return await asyncio.gather(flight.do("k", compute), flight.do("k", compute))

    results = asyncio.run(run())
    assert len(calls) == 1
    assert sorted(shared for _, shared in results) == [False, True]
    assert all(value == "plan" for value, _ in results)


def test_single_flight_propagates_leader_errors() -> None:
    flight: SingleFlight[str] = SingleFlight()

    async def boom() -> str:
        await asyncio.sleep(0.01)
        raise RuntimeError("down")

    async def run():
        return await asyncio.gather(flight.do("k", boom), flight.do("k", boom), return_exceptions=True)

    results = asyncio.run(run())
    assert all(isinstance(r, RuntimeError) for r in results)
