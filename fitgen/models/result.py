from __future__ import annotations

import math
import re
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field, field_validator

from .exercise import FitnessLevel


Intensity = Literal["light", "moderate", "high"]
Source = Literal["remote", "cache", "fallback"]

SETS_RANGE = (1, 10)
REPS_RANGE = (1, 50)
REST_RANGE = (15, 300)
DEFAULT_SETS = 3
DEFAULT_REPS = 10
DEFAULT_REST = 60
DEFAULT_NOTE = "Maintain proper form"

_INTENSITY_ALIASES: Dict[str, Intensity] = {
    "light": "light",
    "low": "light",
    "easy": "light",
    "moderate": "moderate",
    "medium": "moderate",
    "high": "high",
    "hard": "high",
    "intense": "high",
    "max": "high",
    "maximum": "high",
}

_LEADING_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")


def clamp_int(value: Any, lo: int, hi: int, default: int) -> int:
    """Coerce ``value`` to an int within [lo, hi]; unusable input yields ``default``.

    Strings such as "8-12" or "60s" use their leading number. Values beyond float
    range clamp to the bound on their side.
    """
    if isinstance(value, bool) or value is None:
        return default
    if isinstance(value, str):
        m = _LEADING_NUMBER.search(value)
        if not m:
            return default
        value = m.group(0)
    try:
        num = float(value)
    except OverflowError:
        return hi if value > 0 else lo
    except (TypeError, ValueError):
        return default
    if math.isnan(num):
        return default
    if math.isinf(num):
        return hi if num > 0 else lo
    return max(lo, min(hi, int(round(num))))


def coerce_intensity(value: Any) -> Intensity:
    if not isinstance(value, str):
        return "moderate"
    return _INTENSITY_ALIASES.get(value.strip().lower(), "moderate")


class ExerciseEntry(BaseModel):
    name: str = Field(..., min_length=1)
    sets: int = Field(DEFAULT_SETS, ge=SETS_RANGE[0], le=SETS_RANGE[1])
    reps: int = Field(DEFAULT_REPS, ge=REPS_RANGE[0], le=REPS_RANGE[1])
    rest_seconds: int = Field(DEFAULT_REST, ge=REST_RANGE[0], le=REST_RANGE[1])
    notes: str = DEFAULT_NOTE
    intensity: Intensity = "moderate"
    order: int = Field(1, ge=1)

    @field_validator("sets", mode="before")
    @classmethod
    def _clamp_sets(cls, v: Any) -> int:
        return clamp_int(v, *SETS_RANGE, DEFAULT_SETS)

    @field_validator("reps", mode="before")
    @classmethod
    def _clamp_reps(cls, v: Any) -> int:
        return clamp_int(v, *REPS_RANGE, DEFAULT_REPS)

    @field_validator("rest_seconds", mode="before")
    @classmethod
    def _clamp_rest(cls, v: Any) -> int:
        return clamp_int(v, *REST_RANGE, DEFAULT_REST)

    @field_validator("intensity", mode="before")
    @classmethod
    def _intensity(cls, v: Any) -> Intensity:
        return coerce_intensity(v)

    @field_validator("notes", mode="before")
    @classmethod
    def _notes(cls, v: Any) -> str:
        text = str(v).strip() if v is not None else ""
        return text or DEFAULT_NOTE


class WorkoutPlan(BaseModel):
    name: str
    description: str
    duration_minutes: int = Field(..., ge=10, le=180)
    difficulty: FitnessLevel
    exercises: List[ExerciseEntry] = Field(..., min_length=1)
    warmup: Optional[str] = None
    cooldown: Optional[str] = None
    target_muscles: List[str] = Field(default_factory=list)
    total_volume: int = 0
    estimated_calories: int = 0


class GenerationMetadata(BaseModel):
    source: Source
    model: str
    generated_at: datetime
    elapsed_ms: float = Field(0.0, ge=0)
    quality_score: int = Field(..., ge=0, le=100)
    attempts: int = Field(0, ge=0)
    cache_key: Optional[str] = None
    request_id: Optional[str] = None
    reason: Optional[str] = None
    based_on_history: bool = False


class GenerationResult(BaseModel):
    workout: WorkoutPlan
    metadata: GenerationMetadata


class AlternativeSuggestion(BaseModel):
    id: str
    name: str
    difficulty: FitnessLevel
    equipment: List[str]
    primary_muscles: List[str]
    secondary_muscles: List[str] = Field(default_factory=list)
    similarity_score: int = Field(..., ge=0, le=100)
    reason: str
    benefits: str
    ai_generated: bool = False

    @field_validator("similarity_score", mode="before")
    @classmethod
    def _clamp_score(cls, v: Any) -> int:
        return clamp_int(v, 0, 100, 0)


class AlternativesResult(BaseModel):
    original: Dict[str, Any]
    alternatives: List[AlternativeSuggestion] = Field(default_factory=list, max_length=5)
    source: Literal["remote", "fallback"]
    total_found: int = 0
    criteria: Dict[str, Any] = Field(default_factory=dict)
    generated_at: datetime


class ProgressMetrics(BaseModel):
    total_workouts: int
    average_per_week: float
    consistency_score: float = Field(..., ge=0, le=100)
    progress_trend: float
    volume_progression: List[Dict[str, int]] = Field(default_factory=list)


class ProgressInsights(BaseModel):
    overall_progress: Literal["improving", "declining", "stable"]
    key_insights: List[str]
    strengths: List[str]
    areas_for_improvement: List[str]
    recommendations: List[str]
    motivational_message: str
    consistency_rating: Literal["excellent", "good", "fair", "needs_improvement"]


class ProgressReport(BaseModel):
    insights: ProgressInsights
    metrics: Optional[ProgressMetrics] = None
    timeframe: str
    focus_areas: List[str]
    data_points: int = 0
    source: Literal["analytics", "basic_fallback"]
    generated_at: datetime


class MetricsSnapshot(BaseModel):
    total_requests: int = 0
    remote_successes: int = 0
    fallbacks: int = 0
    cache_hits: int = 0
    input_errors: int = 0
    cancelled: int = 0
    remote_attempts: int = 0
    average_latency_ms: float = 0.0
    cache_hit_rate: float = 0.0
    success_rate: float = 0.0


class ServiceStatus(BaseModel):
    remote_enabled: bool
    model: str
    max_retries: int
    attempt_timeout_s: float
    worst_case_latency_s: float
    cache_size: int
    metrics: MetricsSnapshot
