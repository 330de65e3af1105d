from .exercise import CatalogExercise, ExerciseFilter, FitnessLevel
from .user_profile import UserProfile, WorkoutRecord, ProgressRecord
from .request import AlternativeCriteria, GenerationRequest, Goal, Timeframe
from .context import CompiledPrompt, GenerationContext, GenerationParams, RecentDigest
from .result import (
    AlternativeSuggestion,
    AlternativesResult,
    ExerciseEntry,
    GenerationMetadata,
    GenerationResult,
    MetricsSnapshot,
    ProgressInsights,
    ProgressMetrics,
    ProgressReport,
    ServiceStatus,
    WorkoutPlan,
)

__all__ = [
    "CatalogExercise",
    "ExerciseFilter",
    "FitnessLevel",
    "UserProfile",
    "WorkoutRecord",
    "ProgressRecord",
    "AlternativeCriteria",
    "GenerationRequest",
    "Goal",
    "Timeframe",
    "CompiledPrompt",
    "GenerationContext",
    "GenerationParams",
    "RecentDigest",
    "AlternativeSuggestion",
    "AlternativesResult",
    "ExerciseEntry",
    "GenerationMetadata",
    "GenerationResult",
    "MetricsSnapshot",
    "ProgressInsights",
    "ProgressMetrics",
    "ProgressReport",
    "ServiceStatus",
    "WorkoutPlan",
]
