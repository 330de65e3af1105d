from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

from .exercise import FitnessLevel


class UserProfile(BaseModel):
    user_id: str
    fitness_level: Optional[FitnessLevel] = None
    account_created_at: datetime
    workout_count: Optional[int] = Field(default=None, ge=0, description="Lifetime logged workouts, if known")


class WorkoutRecord(BaseModel):
    exercise_names: List[str] = Field(default_factory=list)
    date: datetime
    volume: int = Field(default=0, ge=0, description="Sum of sets x reps logged for the session")


class ProgressRecord(BaseModel):
    recorded_at: datetime
    weight: Optional[float] = Field(default=None, gt=0)
