from __future__ import annotations

from pydantic import BaseModel, Field, field_validator
from typing import List, Literal, Optional


FitnessLevel = Literal["beginner", "intermediate", "advanced"]

ExerciseCategory = Literal["compound", "isolation", "cardio", "core", "plyometric", "unknown"]


def _lower_tags(values: List[str]) -> List[str]:
    return [str(v).strip().lower() for v in values if str(v).strip()]


class CatalogExercise(BaseModel):
    id: str = Field(..., description="Catalog ID, e.g., ex:barbell-back-squat")
    name: str
    primary_muscles: List[str]
    secondary_muscles: List[str] = Field(default_factory=list)
    equipment: List[str]
    difficulty: FitnessLevel = "intermediate"
    category: ExerciseCategory = "unknown"

    @field_validator("primary_muscles", "secondary_muscles", "equipment")
    @classmethod
    def _normalize_tags(cls, v: List[str]) -> List[str]:
        return _lower_tags(v)

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "examples": [
                {
                    "id": "ex:barbell-bench-press",
                    "name": "Barbell Bench Press",
                    "primary_muscles": ["chest", "triceps"],
                    "secondary_muscles": ["front_delts"],
                    "equipment": ["barbell"],
                    "difficulty": "intermediate",
                    "category": "compound",
                }
            ]
        },
    }


class ExerciseFilter(BaseModel):
    equipment: Optional[List[str]] = None
    muscle_groups: Optional[List[str]] = None
    exclude_ids: Optional[List[str]] = None
    difficulty: Optional[FitnessLevel] = None
    limit: Optional[int] = Field(default=None, ge=1)
