from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from fitgen.models.exercise import CatalogExercise, ExerciseFilter

CATALOG_PATH = Path(__file__).resolve().parents[1] / "data" / "exercise_catalog.json"


@lru_cache(maxsize=1)
def load_catalog() -> List[CatalogExercise]:
    with CATALOG_PATH.open("r", encoding="utf-8") as f:
        raw = json.load(f)
    return [CatalogExercise.model_validate(item) for item in raw]


def filter_by_equipment(exercises: Sequence[CatalogExercise], allowed: Sequence[str] | None = None) -> List[CatalogExercise]:
    allowed_set = set(e.lower() for e in (allowed or []))
    if not allowed_set:
        return list(exercises)
    return [ex for ex in exercises if not set(ex.equipment).isdisjoint(allowed_set)]


def filter_by_muscles(exercises: Sequence[CatalogExercise], muscles: Sequence[str] | None = None) -> List[CatalogExercise]:
    """Keep exercises hitting any of ``muscles`` as a primary or secondary mover."""
    wanted = set(m.lower() for m in (muscles or []))
    if not wanted:
        return list(exercises)
    out: List[CatalogExercise] = []
    for ex in exercises:
        worked = set(ex.primary_muscles) | set(ex.secondary_muscles)
        if not worked.isdisjoint(wanted):
            out.append(ex)
    return out


class JsonExerciseCatalog:
    """Exercise catalog backed by the bundled JSON file (or any list of exercises)."""

    def __init__(self, exercises: Optional[Sequence[CatalogExercise]] = None) -> None:
        self._exercises: List[CatalogExercise] = list(exercises) if exercises is not None else load_catalog()
        self._by_id: Dict[str, CatalogExercise] = {ex.id: ex for ex in self._exercises}

    def find_exercises(self, flt: ExerciseFilter) -> List[CatalogExercise]:
        out = filter_by_equipment(self._exercises, flt.equipment)
        out = filter_by_muscles(out, flt.muscle_groups)
        if flt.exclude_ids:
            banned = set(flt.exclude_ids)
            out = [ex for ex in out if ex.id not in banned]
        if flt.difficulty:
            out = [ex for ex in out if ex.difficulty == flt.difficulty]
        if flt.limit is not None:
            out = out[: flt.limit]
        return out

    def get_exercise(self, exercise_id: str) -> Optional[CatalogExercise]:
        return self._by_id.get(exercise_id)
