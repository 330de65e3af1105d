from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from string import Template
from typing import Any, Dict, List, Sequence

from fitgen.models.context import CompiledPrompt, GenerationContext
from fitgen.models.exercise import CatalogExercise
from fitgen.models.request import AlternativeCriteria, MAX_DURATION, MIN_DURATION
from fitgen.models.result import REPS_RANGE, REST_RANGE, SETS_RANGE

PROMPTS_DIR = Path(__file__).resolve().parents[1] / "prompts"

MIN_EXERCISES = 4
MAX_EXERCISES = 7


@lru_cache(maxsize=None)
def _load_prompt(name: str) -> str:
    return (PROMPTS_DIR / name).read_text(encoding="utf-8")


def _dumps(payload: Dict[str, Any]) -> str:
    # sorted keys keep the prompt byte-stable for identical contexts
    return json.dumps(payload, ensure_ascii=False, sort_keys=True, indent=2)


def _exercise_details(exercises: Sequence[CatalogExercise]) -> List[Dict[str, Any]]:
    return [
        {
            "id": ex.id,
            "name": ex.name,
            "primary_muscles": ex.primary_muscles,
            "equipment": ex.equipment,
            "difficulty": ex.difficulty,
        }
        for ex in exercises
    ]


def compile_workout_prompt(context: GenerationContext) -> CompiledPrompt:
    """Render a context into instructions plus a JSON payload. Pure: same context, same prompt."""
    system = Template(_load_prompt("generate_workout.md")).substitute(
        min_exercises=MIN_EXERCISES,
        max_exercises=MAX_EXERCISES,
        min_duration=MIN_DURATION,
        max_duration=MAX_DURATION,
        min_sets=SETS_RANGE[0],
        max_sets=SETS_RANGE[1],
        min_reps=REPS_RANGE[0],
        max_reps=REPS_RANGE[1],
        min_rest=REST_RANGE[0],
        max_rest=REST_RANGE[1],
    )
    payload: Dict[str, Any] = {
        "PROFILE": {
            "goal": context.goal,
            "fitness_level": context.level,
            "experience": context.experience,
            "recent_workouts": context.digest.total_workouts,
            "frequent_exercises": list(context.digest.exercise_names),
        },
        "CONSTRAINTS": {
            "DURATION_MINUTES": context.duration_minutes,
            "EQUIPMENT": list(context.equipment),
            "TARGET_MUSCLES": list(context.target_muscles) or ["full_body"],
            "EXCLUDED_EXERCISE_IDS": list(context.excluded_ids),
        },
        "CANDIDATE_EXERCISES": _exercise_details(context.candidate_exercises),
    }
    if context.notes:
        payload["USER_NOTES"] = context.notes
    return CompiledPrompt(system=system, user=_dumps(payload))


def compile_alternatives_prompt(
    original: CatalogExercise,
    candidates: Sequence[CatalogExercise],
    criteria: AlternativeCriteria,
    limit: int = 5,
) -> CompiledPrompt:
    system = Template(_load_prompt("rank_alternatives.md")).substitute(limit=limit)
    requirements: Dict[str, Any] = {}
    if criteria.reason:
        requirements["reason"] = criteria.reason
    if criteria.equipment:
        requirements["equipment"] = criteria.equipment
    if criteria.difficulty:
        requirements["difficulty"] = criteria.difficulty
    payload = {
        "ORIGINAL": _exercise_details([original])[0],
        "REQUIREMENTS": requirements,
        "CANDIDATES": _exercise_details(candidates[:10]),
    }
    return CompiledPrompt(system=system, user=_dumps(payload))
