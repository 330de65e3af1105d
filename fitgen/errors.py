from __future__ import annotations


class FitgenError(RuntimeError):
    pass


class InvalidRequestError(FitgenError, ValueError):
    """Request could not be identified or has a malformed shape."""


class ExerciseNotFoundError(FitgenError, LookupError):
    def __init__(self, exercise_id: str) -> None:
        super().__init__(f"Exercise not found: {exercise_id!r}")
        self.exercise_id = exercise_id
