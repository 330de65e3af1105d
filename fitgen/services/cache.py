from __future__ import annotations

import asyncio
import hashlib
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Generic, Optional, Tuple, TypeVar

from loguru import logger

from fitgen.models.exercise import FitnessLevel
from fitgen.models.request import GenerationRequest

T = TypeVar("T")


def round_duration(minutes: int, step: int = 5) -> int:
    """Round half up to the nearest ``step`` minutes (47 -> 45, 48 -> 50)."""
    return int((minutes + step / 2) // step * step)


def fingerprint(request: GenerationRequest, level: FitnessLevel) -> str:
    """Deterministic cache key over caller, goal, level, rounded duration and sorted equipment."""
    key_data = "|".join([
        request.user_id,
        request.goal,
        level,
        str(round_duration(request.duration_minutes)),
        ",".join(sorted(request.equipment)),
    ])
    return hashlib.sha256(key_data.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    key: str
    payload: T
    inserted_at: float


class ResultCache(Generic[T]):
    """TTL + size bounded map. Oldest insertion is evicted first; entries are replaced, never mutated."""

    def __init__(self, max_entries: int = 50, ttl_seconds: float = 300.0,
                 clock: Callable[[], float] = time.monotonic) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._data: "OrderedDict[str, CacheEntry[T]]" = OrderedDict()

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def _expired(self, entry: CacheEntry[T], now: float) -> bool:
        return now - entry.inserted_at >= self.ttl_seconds

    def get(self, key: str) -> Optional[T]:
        now = self._clock()
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            if self._expired(entry, now):
                del self._data[key]
                return None
            return entry.payload

    def set(self, key: str, payload: T) -> None:
        now = self._clock()
        with self._lock:
            self._data.pop(key, None)
            # drop expired entries first so capacity pressure only evicts live ones
            for k in [k for k, e in self._data.items() if self._expired(e, now)]:
                del self._data[k]
            while len(self._data) >= self.max_entries:
                evicted, _ = self._data.popitem(last=False)
                logger.debug("Cache eviction", key=evicted[:12])
            self._data[key] = CacheEntry(key=key, payload=payload, inserted_at=now)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()


class SingleFlight(Generic[T]):
    """Coalesce concurrent calls with the same key into one in-flight computation.

    Sharing only happens between tasks on the same event loop.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._inflight: Dict[str, Tuple[asyncio.AbstractEventLoop, "asyncio.Future[T]"]] = {}

    async def do(self, key: str, fn: Callable[[], Awaitable[T]]) -> Tuple[T, bool]:
        """Run ``fn`` or join an identical in-flight run. Returns (value, shared)."""
        loop = asyncio.get_running_loop()
        with self._lock:
            current = self._inflight.get(key)
            if current is not None and current[0] is loop:
                fut = current[1]
                leader = False
            else:
                fut = loop.create_future()
                self._inflight[key] = (loop, fut)
                leader = True

        if not leader:
            # asyncio.wait never cancels ``fut`` when this follower is cancelled
            await asyncio.wait([fut])
            if fut.cancelled():
                # leader's caller went away; compute for ourselves
                return await fn(), False
            return fut.result(), True

        try:
            value = await fn()
        except asyncio.CancelledError:
            fut.cancel()
            raise
        except Exception as e:
            fut.set_exception(e)
            # followers may not exist; avoid "exception never retrieved" noise
            fut.exception()
            raise
        else:
            fut.set_result(value)
            return value, False
        finally:
            with self._lock:
                if self._inflight.get(key, (None, None))[1] is fut:
                    del self._inflight[key]
