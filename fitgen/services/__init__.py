from .catalog import load_catalog, filter_by_equipment, filter_by_muscles, JsonExerciseCatalog
from .collaborators import InMemoryProfileStore, InMemoryWorkoutHistory
from .context_builder import ContextBuilder, classify_experience, summarize_history
from .prompt_compiler import compile_workout_prompt, compile_alternatives_prompt
from .response_parser import ParsedWorkout, parse_workout, score_quality
from .fallback import synthesize
from .cache import ResultCache, SingleFlight, fingerprint
from .metrics import MetricsCollector
from .alternatives import AlternativeRanker
from .progress import ProgressAnalyzer

__all__ = [
    "load_catalog",
    "filter_by_equipment",
    "filter_by_muscles",
    "JsonExerciseCatalog",
    "InMemoryProfileStore",
    "InMemoryWorkoutHistory",
    "ContextBuilder",
    "classify_experience",
    "summarize_history",
    "compile_workout_prompt",
    "compile_alternatives_prompt",
    "ParsedWorkout",
    "parse_workout",
    "score_quality",
    "synthesize",
    "ResultCache",
    "SingleFlight",
    "fingerprint",
    "MetricsCollector",
    "AlternativeRanker",
    "ProgressAnalyzer",
]
