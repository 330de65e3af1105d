from .orchestrator import GenerationState, WorkoutOrchestrator

__all__ = [
    "GenerationState",
    "WorkoutOrchestrator",
]
