from __future__ import annotations

import math
from typing import Any, List, Literal, Optional, get_args
from pydantic import BaseModel, Field, field_validator

from .exercise import FitnessLevel


Goal = Literal["strength", "hypertrophy", "endurance", "weight_loss", "general_fitness"]
Timeframe = Literal["week", "month", "quarter", "year"]
FocusArea = Literal["strength", "volume", "frequency", "consistency", "body_metrics"]

GOALS: tuple[str, ...] = get_args(Goal)
FITNESS_LEVELS: tuple[str, ...] = get_args(FitnessLevel)

DEFAULT_GOAL: Goal = "general_fitness"
DEFAULT_LEVEL: FitnessLevel = "intermediate"
DEFAULT_DURATION = 45
MIN_DURATION = 10
MAX_DURATION = 180
DEFAULT_EQUIPMENT = ["barbell", "dumbbell"]


def _norm_token(value: Any) -> str:
    return str(value).strip().lower().replace("-", "_").replace(" ", "_")


def normalize_tags(values: Any, lower: bool = True) -> List[str]:
    """Strip, optionally lower-case, and de-duplicate a list of tags, keeping first-seen order."""
    if values is None:
        return []
    if isinstance(values, str):
        values = [values]
    if not isinstance(values, (list, tuple, set)):
        raise ValueError("expected a list of strings")
    out: List[str] = []
    for v in values:
        tag = str(v).strip()
        if lower:
            tag = tag.lower()
        if tag and tag not in out:
            out.append(tag)
    return out


def coerce_goal(value: Any) -> Goal:
    token = _norm_token(value) if value is not None else ""
    if token == "general":
        token = "general_fitness"
    return token if token in GOALS else DEFAULT_GOAL  # type: ignore[return-value]


def coerce_level(value: Any) -> Optional[FitnessLevel]:
    token = _norm_token(value) if value is not None else ""
    return token if token in FITNESS_LEVELS else None  # type: ignore[return-value]


class GenerationRequest(BaseModel):
    """Per-call preference bag. Unknown goal/level values degrade to defaults instead of failing."""

    user_id: str = Field(..., min_length=1)
    goal: Goal = DEFAULT_GOAL
    duration_minutes: int = Field(DEFAULT_DURATION, ge=MIN_DURATION, le=MAX_DURATION)
    fitness_level: Optional[FitnessLevel] = None
    equipment: List[str] = Field(default_factory=lambda: list(DEFAULT_EQUIPMENT))
    target_muscle_groups: List[str] = Field(default_factory=list)
    exclude_exercise_ids: List[str] = Field(default_factory=list)
    notes: str = ""

    @field_validator("user_id", mode="before")
    @classmethod
    def _strip_user_id(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("goal", mode="before")
    @classmethod
    def _resolve_goal(cls, v: Any) -> Goal:
        return coerce_goal(v)

    @field_validator("fitness_level", mode="before")
    @classmethod
    def _resolve_level(cls, v: Any) -> Optional[FitnessLevel]:
        return coerce_level(v)

    @field_validator("duration_minutes", mode="before")
    @classmethod
    def _clamp_duration(cls, v: Any) -> int:
        if v is None or v == "":
            return DEFAULT_DURATION
        if isinstance(v, bool):
            raise ValueError("duration must be a number of minutes")
        try:
            minutes = float(v)
        except (TypeError, ValueError):
            raise ValueError("duration must be a number of minutes") from None
        if math.isnan(minutes) or math.isinf(minutes):
            raise ValueError("duration must be finite")
        return max(MIN_DURATION, min(MAX_DURATION, int(round(minutes))))

    @field_validator("equipment", mode="before")
    @classmethod
    def _normalize_equipment(cls, v: Any) -> List[str]:
        tags = normalize_tags(v)
        return tags or list(DEFAULT_EQUIPMENT)

    @field_validator("target_muscle_groups", mode="before")
    @classmethod
    def _normalize_muscles(cls, v: Any) -> List[str]:
        return normalize_tags(v)

    @field_validator("exclude_exercise_ids", mode="before")
    @classmethod
    def _normalize_ids(cls, v: Any) -> List[str]:
        return normalize_tags(v, lower=False)

    @field_validator("notes", mode="before")
    @classmethod
    def _notes(cls, v: Any) -> str:
        return "" if v is None else str(v).strip()


class AlternativeCriteria(BaseModel):
    reason: Optional[str] = None
    equipment: List[str] = Field(default_factory=list)
    difficulty: Optional[FitnessLevel] = None
    target_muscle_groups: List[str] = Field(default_factory=list)

    @field_validator("equipment", "target_muscle_groups", mode="before")
    @classmethod
    def _normalize_lists(cls, v: Any) -> List[str]:
        return normalize_tags(v)

    @field_validator("difficulty", mode="before")
    @classmethod
    def _resolve_level(cls, v: Any) -> Optional[FitnessLevel]:
        return coerce_level(v)
