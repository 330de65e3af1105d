from __future__ import annotations

from collections import Counter
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple

from loguru import logger

from fitgen.config import Settings, get_settings
from fitgen.models.context import GenerationContext, RecentDigest
from fitgen.models.exercise import CatalogExercise, ExerciseFilter, FitnessLevel
from fitgen.models.request import DEFAULT_LEVEL, GenerationRequest
from fitgen.models.user_profile import UserProfile, WorkoutRecord
from .collaborators import ExerciseCatalog, ProfileLookup, WorkoutHistoryLookup

LEVEL_RANK = {"beginner": 0, "intermediate": 1, "advanced": 2}


def exercise_frequency(workouts: Sequence[WorkoutRecord]) -> List[Tuple[str, int]]:
    """Exercise names by how often they appear, most frequent first; ties keep first-seen order."""
    counts: Counter[str] = Counter()
    for w in workouts:
        for name in w.exercise_names:
            name = name.strip()
            if name:
                counts[name] += 1
    # Counter preserves insertion order and sorted() is stable
    return sorted(counts.items(), key=lambda kv: kv[1], reverse=True)


def summarize_history(workouts: Sequence[WorkoutRecord], top_n: int = 5) -> RecentDigest:
    return RecentDigest(
        total_workouts=len(workouts),
        frequent_exercises=tuple(exercise_frequency(workouts)[:top_n]),
    )


def classify_experience(profile: Optional[UserProfile], workout_count: int,
                        now: Optional[datetime] = None) -> FitnessLevel:
    if profile is None:
        return "beginner"
    now = now or datetime.now(timezone.utc)
    created = profile.account_created_at
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    days_active = (now - created).total_seconds() / 86400
    if days_active > 180 and workout_count > 50:
        return "advanced"
    if days_active > 60 and workout_count > 20:
        return "intermediate"
    return "beginner"


def resolve_level(request: GenerationRequest, profile: Optional[UserProfile]) -> FitnessLevel:
    """Request level, else the profile level, else intermediate."""
    return request.fitness_level or (profile.fitness_level if profile else None) or DEFAULT_LEVEL


def rank_candidates(exercises: Sequence[CatalogExercise], level: FitnessLevel,
                    target_muscles: Sequence[str]) -> List[CatalogExercise]:
    """Prefer target-muscle hits, then exercises at or below the caller's level, then compounds."""
    targets = set(target_muscles)

    def score(ex: CatalogExercise) -> tuple:
        hits_target = int(bool(targets) and not targets.isdisjoint(ex.primary_muscles))
        fits_level = int(LEVEL_RANK[ex.difficulty] <= LEVEL_RANK[level])
        is_compound = 1 if ex.category == "compound" else 0
        return (hits_target, fits_level, is_compound)

    return sorted(exercises, key=score, reverse=True)


class ContextBuilder:
    """Resolves a request into a GenerationContext. Collaborator failures degrade to defaults."""

    def __init__(
        self,
        catalog: ExerciseCatalog,
        profiles: Optional[ProfileLookup] = None,
        history: Optional[WorkoutHistoryLookup] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.catalog = catalog
        self.profiles = profiles
        self.history = history
        self.settings = settings or get_settings()

    def profile(self, user_id: str) -> Optional[UserProfile]:
        if self.profiles is None:
            return None
        try:
            return self.profiles.get_profile(user_id)
        except Exception as e:  # noqa: BLE001
            logger.warning("Profile lookup failed, using defaults", user_id=user_id, error=str(e))
            return None

    def recent_workouts(self, user_id: str) -> List[WorkoutRecord]:
        if self.history is None:
            return []
        try:
            return list(self.history.get_recent_workouts(user_id, self.settings.HISTORY_LIMIT))
        except Exception as e:  # noqa: BLE001
            logger.warning("Workout history lookup failed, continuing without history",
                           user_id=user_id, error=str(e))
            return []

    def candidates(self, request: GenerationRequest, level: FitnessLevel) -> List[CatalogExercise]:
        flt = ExerciseFilter(
            equipment=request.equipment,
            muscle_groups=request.target_muscle_groups or None,
            exclude_ids=request.exclude_exercise_ids or None,
        )
        try:
            found = self.catalog.find_exercises(flt)
        except Exception as e:  # noqa: BLE001
            logger.warning("Exercise catalog lookup failed, no candidates", error=str(e))
            return []
        ranked = rank_candidates(found, level, request.target_muscle_groups)
        return ranked[: min(20, self.settings.MAX_CANDIDATE_EXERCISES)]

    def build(self, request: GenerationRequest, now: Optional[datetime] = None) -> GenerationContext:
        return self.build_for(request, self.profile(request.user_id), now)

    def build_for(self, request: GenerationRequest, profile: Optional[UserProfile],
                  now: Optional[datetime] = None) -> GenerationContext:
        """Build from a profile the caller has already looked up."""
        workouts = self.recent_workouts(request.user_id)
        level = resolve_level(request, profile)
        workout_count = profile.workout_count if profile and profile.workout_count is not None else len(workouts)
        candidates = self.candidates(request, level)

        ctx = GenerationContext(
            user_id=request.user_id,
            goal=request.goal,
            level=level,
            duration_minutes=request.duration_minutes,
            equipment=tuple(request.equipment),
            target_muscles=tuple(request.target_muscle_groups),
            excluded_ids=tuple(request.exclude_exercise_ids),
            notes=request.notes,
            experience=classify_experience(profile, workout_count, now),
            candidate_exercises=tuple(candidates),
            recent_workouts=tuple(workouts),
            digest=summarize_history(workouts),
        )
        logger.debug(
            "Generation context built",
            user_id=ctx.user_id,
            goal=ctx.goal,
            level=ctx.level,
            experience=ctx.experience,
            candidates=len(ctx.candidate_exercises),
            history=ctx.digest.total_workouts,
        )
        return ctx
