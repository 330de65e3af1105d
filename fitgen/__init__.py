from .agents.orchestrator import WorkoutOrchestrator
from .config import Settings, get_settings
from .errors import ExerciseNotFoundError, FitgenError, InvalidRequestError

__all__ = [
    "WorkoutOrchestrator",
    "Settings",
    "get_settings",
    "FitgenError",
    "InvalidRequestError",
    "ExerciseNotFoundError",
]
