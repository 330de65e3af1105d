"""Interfaces of the data collaborators the generator consumes, plus in-memory stores.

Persistence lives elsewhere; production wiring passes adapters that satisfy these
protocols. The in-memory stores back local runs and tests.
"""
from __future__ import annotations

import threading
from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Protocol

from fitgen.models.exercise import CatalogExercise, ExerciseFilter
from fitgen.models.user_profile import ProgressRecord, UserProfile, WorkoutRecord


class ExerciseCatalog(Protocol):
    def find_exercises(self, flt: ExerciseFilter) -> List[CatalogExercise]:
        ...

    def get_exercise(self, exercise_id: str) -> Optional[CatalogExercise]:
        ...


class ProfileLookup(Protocol):
    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        ...


class WorkoutHistoryLookup(Protocol):
    def get_recent_workouts(self, user_id: str, limit: int) -> List[WorkoutRecord]:
        """Most recent first."""
        ...


class ProgressLookup(Protocol):
    def get_progress_records(self, user_id: str, since: datetime) -> List[ProgressRecord]:
        ...


class InMemoryProfileStore:
    def __init__(self, profiles: Iterable[UserProfile] = ()) -> None:
        self._profiles: Dict[str, UserProfile] = {p.user_id: p for p in profiles}

    def put(self, profile: UserProfile) -> None:
        self._profiles[profile.user_id] = profile

    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        return self._profiles.get(user_id)


class InMemoryWorkoutHistory:
    """Workout and body-metric history per user."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._workouts: Dict[str, List[WorkoutRecord]] = defaultdict(list)
        self._progress: Dict[str, List[ProgressRecord]] = defaultdict(list)

    def add_workout(self, user_id: str, record: WorkoutRecord) -> None:
        with self._lock:
            self._workouts[user_id].append(record)

    def add_progress(self, user_id: str, record: ProgressRecord) -> None:
        with self._lock:
            self._progress[user_id].append(record)

    def get_recent_workouts(self, user_id: str, limit: int) -> List[WorkoutRecord]:
        with self._lock:
            items = sorted(self._workouts.get(user_id, []), key=lambda w: w.date, reverse=True)
        return items[: max(0, limit)]

    def get_progress_records(self, user_id: str, since: datetime) -> List[ProgressRecord]:
        with self._lock:
            items = [r for r in self._progress.get(user_id, []) if r.recorded_at >= since]
        return sorted(items, key=lambda r: r.recorded_at)
