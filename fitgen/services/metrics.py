from __future__ import annotations

import threading
from typing import Literal

from fitgen.models.result import MetricsSnapshot

Outcome = Literal["remote", "cache", "fallback", "input_error", "cancelled"]


class MetricsCollector:
    """Process-local counters for the generation path. One ``record`` per request."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.reset()

    def reset(self) -> None:
        with self._lock:
            self._counts = {"remote": 0, "cache": 0, "fallback": 0, "input_error": 0, "cancelled": 0}
            self._total = 0
            self._attempts = 0
            self._latency_total_ms = 0.0

    def record(self, outcome: Outcome, elapsed_ms: float, attempts: int = 0) -> None:
        with self._lock:
            self._total += 1
            self._counts[outcome] += 1
            self._attempts += max(0, attempts)
            self._latency_total_ms += max(0.0, elapsed_ms)

    def snapshot(self) -> MetricsSnapshot:
        with self._lock:
            total = self._total
            served = total - self._counts["input_error"] - self._counts["cancelled"]
            return MetricsSnapshot(
                total_requests=total,
                remote_successes=self._counts["remote"],
                fallbacks=self._counts["fallback"],
                cache_hits=self._counts["cache"],
                input_errors=self._counts["input_error"],
                cancelled=self._counts["cancelled"],
                remote_attempts=self._attempts,
                average_latency_ms=round(self._latency_total_ms / total, 3) if total else 0.0,
                cache_hit_rate=round(self._counts["cache"] / served, 4) if served else 0.0,
                success_rate=round((self._counts["remote"] + self._counts["cache"]) / served, 4) if served else 0.0,
            )
