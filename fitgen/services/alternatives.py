from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from loguru import logger

from fitgen.errors import ExerciseNotFoundError
from fitgen.llm.groq_client import UnparseableResponseError
from fitgen.llm.retry import RetryController
from fitgen.models.context import GenerationParams
from fitgen.models.exercise import CatalogExercise, ExerciseFilter
from fitgen.models.request import AlternativeCriteria
from fitgen.models.result import AlternativeSuggestion, AlternativesResult, clamp_int
from .collaborators import ExerciseCatalog
from .prompt_compiler import compile_alternatives_prompt
from .response_parser import decode_json_block


def similarity(original: CatalogExercise, alt: CatalogExercise) -> int:
    """Primary-muscle overlap 20 each, equipment overlap 10 each, difficulty 20, category 20; max 100."""
    score = 20 * len(set(original.primary_muscles) & set(alt.primary_muscles))
    score += 10 * len(set(original.equipment) & set(alt.equipment))
    if original.difficulty == alt.difficulty:
        score += 20
    if original.category == alt.category:
        score += 20
    return min(score, 100)


def alternative_reason(original: CatalogExercise, alt: CatalogExercise, criteria: AlternativeCriteria) -> str:
    reasons: List[str] = []
    if criteria.reason == "equipment":
        reasons.append(f"Uses available equipment: {', '.join(alt.equipment)}")
    if criteria.reason == "injury":
        reasons.append("Lower impact alternative")
    if not set(original.primary_muscles).isdisjoint(alt.primary_muscles):
        reasons.append("Targets same muscle groups")
    if alt.difficulty == original.difficulty:
        reasons.append("Similar difficulty level")
    return ". ".join(reasons) or "Similar exercise"


def _suggestion(ex: CatalogExercise, score: Any, reason: str, benefits: str, ai: bool) -> AlternativeSuggestion:
    return AlternativeSuggestion(
        id=ex.id,
        name=ex.name,
        difficulty=ex.difficulty,
        equipment=ex.equipment,
        primary_muscles=ex.primary_muscles,
        secondary_muscles=ex.secondary_muscles,
        similarity_score=score,
        reason=reason,
        benefits=benefits,
        ai_generated=ai,
    )


def rank_locally(original: CatalogExercise, candidates: Sequence[CatalogExercise],
                 criteria: AlternativeCriteria, limit: int = 5) -> List[AlternativeSuggestion]:
    scored = [
        _suggestion(ex, similarity(original, ex), alternative_reason(original, ex, criteria),
                    f"Targets {', '.join(ex.primary_muscles)}", False)
        for ex in candidates
    ]
    scored.sort(key=lambda s: s.similarity_score, reverse=True)
    return scored[:limit]


def _match(name: str, candidates: Sequence[CatalogExercise]) -> Optional[CatalogExercise]:
    wanted = name.strip().lower()
    if not wanted:
        return None
    for ex in candidates:
        if ex.name.lower() == wanted:
            return ex
    for ex in candidates:
        have = ex.name.lower()
        if wanted in have or have in wanted:
            return ex
    return None


def parse_ranking(raw_text: str, candidates: Sequence[CatalogExercise], limit: int = 5) -> List[AlternativeSuggestion]:
    """Map a model ranking back onto catalog candidates. Raises when nothing usable comes back."""
    items = decode_json_block(raw_text, list)
    out: List[AlternativeSuggestion] = []
    seen: set[str] = set()
    for item in items:
        if not isinstance(item, dict) or not isinstance(item.get("name"), str):
            continue
        ex = _match(item["name"], candidates)
        if ex is None or ex.id in seen:
            continue
        seen.add(ex.id)
        out.append(_suggestion(
            ex,
            clamp_int(item.get("similarityScore", item.get("similarity_score")), 0, 100, 50),
            str(item.get("reason") or "Recommended alternative"),
            str(item.get("benefits") or f"Targets {', '.join(ex.primary_muscles)}"),
            True,
        ))
    if not out:
        raise UnparseableResponseError("Ranking did not name any known candidate")
    out.sort(key=lambda s: s.similarity_score, reverse=True)
    return out[:limit]


class AlternativeRanker:
    def __init__(
        self,
        catalog: ExerciseCatalog,
        retry: Optional[RetryController] = None,
        *,
        params: Optional[GenerationParams] = None,
        limit: int = 5,
        candidate_limit: int = 15,
    ) -> None:
        self.catalog = catalog
        self.retry = retry
        self.params = params or GenerationParams(temperature=0.7, top_p=0.8, max_tokens=512)
        self.limit = max(1, min(limit, 5))
        self.candidate_limit = candidate_limit

    def candidates(self, original: CatalogExercise, criteria: AlternativeCriteria) -> List[CatalogExercise]:
        found = self.catalog.find_exercises(ExerciseFilter(
            muscle_groups=original.primary_muscles,
            equipment=criteria.equipment or None,
            difficulty=criteria.difficulty,
            exclude_ids=[original.id],
        ))
        primary = set(original.primary_muscles)
        same_primary = [ex for ex in found if not primary.isdisjoint(ex.primary_muscles)]
        return same_primary[: self.candidate_limit]

    async def suggest(self, exercise_id: str, criteria: Optional[AlternativeCriteria] = None,
                      *, deadline: Optional[float] = None) -> AlternativesResult:
        criteria = criteria or AlternativeCriteria()
        criteria_dump = criteria.model_dump(exclude_defaults=True)
        try:
            original = self.catalog.get_exercise(exercise_id)
        except Exception as e:  # noqa: BLE001
            logger.error("Exercise catalog unavailable for alternatives", exercise_id=exercise_id, error=str(e))
            return AlternativesResult(original={"id": exercise_id}, source="fallback",
                                      criteria=criteria_dump, generated_at=datetime.now(timezone.utc))
        if original is None:
            raise ExerciseNotFoundError(exercise_id)

        try:
            candidates = self.candidates(original, criteria)
        except Exception as e:  # noqa: BLE001
            logger.warning("Alternative candidate lookup failed", exercise_id=exercise_id, error=str(e))
            candidates = []
        logger.info("Ranking alternatives", exercise=original.name, candidates=len(candidates))

        source = "fallback"
        ranked: List[AlternativeSuggestion] = []
        if self.retry is not None and candidates:
            prompt = compile_alternatives_prompt(original, candidates, criteria, self.limit)
            outcome = await self.retry.invoke(
                prompt, lambda raw: parse_ranking(raw, candidates, self.limit), self.params, deadline=deadline,
            )
            if outcome.succeeded and outcome.value:
                ranked, source = outcome.value, "remote"
            else:
                logger.warning("Remote ranking unavailable, using local similarity", reason=outcome.last_error)
        if not ranked:
            ranked = rank_locally(original, candidates, criteria, self.limit)

        original_dump: Dict[str, Any] = {
            "id": original.id,
            "name": original.name,
            "primary_muscles": original.primary_muscles,
            "equipment": original.equipment,
            "difficulty": original.difficulty,
        }
        return AlternativesResult(
            original=original_dump,
            alternatives=ranked,
            source=source,  # type: ignore[arg-type]
            total_found=len(candidates),
            criteria=criteria_dump,
            generated_at=datetime.now(timezone.utc),
        )
