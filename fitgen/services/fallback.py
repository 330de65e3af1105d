from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from fitgen.models.request import DEFAULT_LEVEL, GenerationRequest
from fitgen.models.result import ExerciseEntry, GenerationMetadata, GenerationResult, WorkoutPlan
from fitgen.models.user_profile import WorkoutRecord
from .context_builder import exercise_frequency
from .response_parser import CALORIES_PER_MINUTE

FALLBACK_MODEL = "fallback"
HISTORY_NOTE = "Based on your history"

# name, sets, reps, rest seconds, note, intensity
_Row = Tuple[str, int, int, int, str, str]

TEMPLATES: Dict[str, Dict[str, object]] = {
    "strength": {
        "name": "Strength Power Workout",
        "exercises": [
            ("Barbell Squat", 4, 5, 180, "Focus on depth and control", "high"),
            ("Barbell Bench Press", 4, 5, 180, "Keep elbows at 45 degrees", "high"),
            ("Barbell Deadlift", 3, 5, 240, "Maintain neutral spine", "high"),
            ("Barbell Overhead Press", 3, 8, 120, "Engage core throughout", "moderate"),
            ("Barbell Row", 3, 8, 120, "Pull to lower chest", "moderate"),
        ],
        "warmup": "5-10 min light cardio + dynamic stretching",
        "cooldown": "5 min stretching focusing on worked muscles",
    },
    "hypertrophy": {
        "name": "Muscle Building Workout",
        "exercises": [
            ("Dumbbell Bench Press", 4, 10, 90, "Full range of motion", "moderate"),
            ("Lat Pulldown", 4, 12, 75, "Control the eccentric", "moderate"),
            ("Dumbbell Shoulder Press", 3, 12, 75, "Avoid momentum", "moderate"),
            ("Cable Bicep Curl", 3, 15, 60, "Squeeze at top", "light"),
            ("Cable Tricep Extension", 3, 15, 60, "Full extension", "light"),
            ("Leg Press", 3, 12, 90, "Full depth safely", "moderate"),
        ],
        "warmup": "5 min cardio + activation exercises",
        "cooldown": "Stretch all worked muscle groups",
    },
    "endurance": {
        "name": "Endurance Circuit",
        "exercises": [
            ("Burpees", 3, 15, 45, "Maintain pace", "high"),
            ("Mountain Climbers", 3, 30, 30, "Fast tempo", "high"),
            ("Jumping Jacks", 3, 40, 30, "Stay coordinated", "moderate"),
            ("Bodyweight Squats", 3, 25, 30, "Full range", "moderate"),
            ("Push-ups", 3, 20, 45, "Chest to ground", "moderate"),
            ("Plank Hold", 3, 50, 45, "Strong core, reps are seconds", "moderate"),
        ],
        "warmup": "3-5 min dynamic warm-up",
        "cooldown": "5-10 min cool down jog + stretch",
    },
    "weight_loss": {
        "name": "Fat Burning HIIT",
        "exercises": [
            ("High Knees", 4, 40, 30, "Maximum intensity", "high"),
            ("Jump Squats", 4, 15, 45, "Explosive power", "high"),
            ("Mountain Climbers", 4, 30, 30, "Fast pace", "high"),
            ("Burpees", 3, 12, 60, "Full movement", "high"),
            ("Plank Jacks", 3, 20, 30, "Controlled", "moderate"),
        ],
        "warmup": "5 min progressive cardio warm-up",
        "cooldown": "5 min walk + full body stretch",
    },
    "general_fitness": {
        "name": "Total Body Fitness",
        "exercises": [
            ("Goblet Squat", 3, 12, 60, "Keep chest up", "moderate"),
            ("Push-ups", 3, 15, 60, "Modify as needed", "moderate"),
            ("Dumbbell Rows", 3, 12, 60, "Each side", "moderate"),
            ("Walking Lunges", 3, 20, 60, "10 each leg", "moderate"),
            ("Plank", 3, 45, 45, "Hold steady, reps are seconds", "moderate"),
            ("Jumping Jacks", 3, 30, 30, "Keep moving", "light"),
        ],
        "warmup": "5-7 min mixed cardio and mobility",
        "cooldown": "Light stretch routine",
    },
}


def _template_for(goal: Optional[str]) -> Dict[str, object]:
    return TEMPLATES.get(goal or "", TEMPLATES["general_fitness"])


def blend_with_history(rows: Sequence[_Row], common_names: Sequence[str], slots: int) -> List[ExerciseEntry]:
    """Overwrite the first ``slots`` template names with the caller's most frequent exercises.

    Sets, reps, rest and intensity stay as the template defines them.
    """
    entries: List[ExerciseEntry] = []
    names = list(common_names)[: max(0, slots)]
    for idx, (name, sets, reps, rest, note, intensity) in enumerate(rows):
        if idx < len(names):
            name, note = names[idx], HISTORY_NOTE
        entries.append(ExerciseEntry(name=name, sets=sets, reps=reps, rest_seconds=rest,
                                     notes=note, intensity=intensity, order=idx + 1))
    return entries


def synthesize(
    request: GenerationRequest,
    history: Sequence[WorkoutRecord] = (),
    *,
    history_slots: int = 5,
    quality_score: int = 60,
    generated_at: Optional[datetime] = None,
    reason: Optional[str] = None,
) -> GenerationResult:
    """Deterministic, offline workout for ``request``. No I/O; cannot fail for a valid request."""
    template = _template_for(request.goal)
    rows: Sequence[_Row] = template["exercises"]  # type: ignore[assignment]
    common = [name for name, _ in exercise_frequency(history)]
    exercises = blend_with_history(rows, common, history_slots)
    blended = bool(common) and history_slots > 0

    name = str(template["name"])
    duration = request.duration_minutes
    plan = WorkoutPlan(
        name=name,
        description=f"{name} - Personalized for you" if blended else f"{name} workout",
        duration_minutes=duration,
        difficulty=request.fitness_level or DEFAULT_LEVEL,
        exercises=exercises,
        warmup=str(template["warmup"]),
        cooldown=str(template["cooldown"]),
        target_muscles=list(request.target_muscle_groups) or ["full_body"],
        total_volume=sum(e.sets * e.reps for e in exercises),
        estimated_calories=round(duration * CALORIES_PER_MINUTE.get(request.goal, 5.0)),
    )
    metadata = GenerationMetadata(
        source="fallback",
        model=FALLBACK_MODEL,
        generated_at=generated_at or datetime.now(timezone.utc),
        quality_score=max(0, min(quality_score, 100)),
        reason=reason,
        based_on_history=blended,
    )
    return GenerationResult(workout=plan, metadata=metadata)
