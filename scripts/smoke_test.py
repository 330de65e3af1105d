from __future__ import annotations

from datetime import datetime, timedelta, timezone

from fitgen import WorkoutOrchestrator
from fitgen.config import Settings
from fitgen.logger import setup_logger
from fitgen.models import UserProfile, WorkoutRecord
from fitgen.services import InMemoryProfileStore, InMemoryWorkoutHistory


def main() -> None:
    settings = Settings(GROQ_API_KEY=None, LOG_LEVEL="WARNING", LOG_FILE=None)
    setup_logger(settings)

    now = datetime.now(timezone.utc)
    profiles = InMemoryProfileStore([
        UserProfile(user_id="smoke", fitness_level="intermediate",
                    account_created_at=now - timedelta(days=120), workout_count=30),
    ])
    history = InMemoryWorkoutHistory()
    for day in range(3):
        history.add_workout("smoke", WorkoutRecord(
            exercise_names=["Barbell Back Squat", "Barbell Bench Press"],
            date=now - timedelta(days=2 * day + 1),
            volume=120,
        ))

    orch = WorkoutOrchestrator(settings=settings, profiles=profiles, history=history, progress=history)
    request = {"user_id": "smoke", "goal": "strength", "duration_minutes": 45, "equipment": ["barbell"]}

    result = orch.generate(request)
    plan = result.workout
    assert result.metadata.source == "fallback", "Remote is disabled, expected fallback"
    assert 4 <= len(plan.exercises) <= 7, "Unexpected exercise count"

    again = orch.generate(request)
    assert again.workout == plan, "Fallback output is not deterministic"

    alternatives = orch.suggest_alternatives("ex:barbell-bench-press", {"reason": "equipment"})
    assert alternatives.alternatives, "No alternatives found"

    report = orch.analyze_progress("smoke", "month")
    assert report.source == "analytics"

    print(plan.model_dump_json(indent=2))
    print(f"SMOKE OK - exercises={len(plan.exercises)} alternatives={len(alternatives.alternatives)} "
          f"consistency={report.insights.consistency_rating}")


if __name__ == "__main__":
    main()
