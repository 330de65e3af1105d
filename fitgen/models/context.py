from __future__ import annotations

from typing import Tuple
from pydantic import BaseModel, ConfigDict, Field

from .exercise import CatalogExercise, FitnessLevel
from .request import Goal
from .user_profile import WorkoutRecord


class RecentDigest(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_workouts: int = 0
    frequent_exercises: Tuple[Tuple[str, int], ...] = ()

    @property
    def exercise_names(self) -> Tuple[str, ...]:
        return tuple(name for name, _ in self.frequent_exercises)


class GenerationContext(BaseModel):
    """Immutable, fully resolved view of one generation request."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    goal: Goal
    level: FitnessLevel
    duration_minutes: int
    equipment: Tuple[str, ...]
    target_muscles: Tuple[str, ...] = ()
    excluded_ids: Tuple[str, ...] = ()
    notes: str = ""
    experience: FitnessLevel = "beginner"
    candidate_exercises: Tuple[CatalogExercise, ...] = Field(default=(), max_length=20)
    recent_workouts: Tuple[WorkoutRecord, ...] = ()
    digest: RecentDigest = RecentDigest()


class CompiledPrompt(BaseModel):
    model_config = ConfigDict(frozen=True)

    system: str
    user: str

    @property
    def text(self) -> str:
        return f"{self.system}\n\n{self.user}"


class GenerationParams(BaseModel):
    model_config = ConfigDict(frozen=True)

    temperature: float = Field(0.75, ge=0.0, le=2.0)
    top_p: float = Field(0.85, gt=0.0, le=1.0)
    max_tokens: int = Field(2048, ge=1)
    json_mode: bool = False
