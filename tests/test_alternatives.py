from __future__ import annotations

import asyncio
import json

import pytest

from fitgen.errors import ExerciseNotFoundError
from fitgen.llm import RetryController
from fitgen.models import AlternativeCriteria
from fitgen.services import AlternativeRanker, JsonExerciseCatalog
from fitgen.services.alternatives import similarity


def _ranker(completion=None) -> AlternativeRanker:
    retry = RetryController(completion, max_retries=2, attempt_timeout=1.0, base_delay=0.0) if completion else None
    return AlternativeRanker(JsonExerciseCatalog(), retry)


def test_similarity_scoring() -> None:
    catalog = JsonExerciseCatalog()
    bench = catalog.get_exercise("ex:barbell-bench-press")
    dip = catalog.get_exercise("ex:bodyweight-dip")
    pushdown = catalog.get_exercise("ex:cable-tricep-pushdown")
    assert bench and dip and pushdown
    # chest+triceps 40, difficulty 20, category 20
    assert similarity(bench, dip) == 80
    assert similarity(bench, pushdown) == 20
    assert similarity(bench, bench) == 90


def test_local_ranking_is_bounded_and_sorted() -> None:
    result = asyncio.run(_ranker().suggest("ex:barbell-bench-press"))

    assert result.source == "fallback"
    assert 0 < len(result.alternatives) <= 5
    scores = [a.similarity_score for a in result.alternatives]
    assert scores == sorted(scores, reverse=True)
    assert result.alternatives[0].name == "Parallel Bar Dip"
    assert "ex:barbell-bench-press" not in {a.id for a in result.alternatives}
    assert all({"chest", "triceps"} & set(a.primary_muscles) for a in result.alternatives)
    assert not any(a.ai_generated for a in result.alternatives)
    assert result.total_found >= len(result.alternatives)


def test_equipment_criteria_filters_and_explains() -> None:
    criteria = AlternativeCriteria(reason="equipment", equipment=["Bodyweight"])
    result = asyncio.run(_ranker().suggest("ex:barbell-bench-press", criteria))

    assert {a.name for a in result.alternatives} == {"Push-up", "Parallel Bar Dip", "Burpees"}
    assert all(a.reason.startswith("Uses available equipment: bodyweight") for a in result.alternatives)
    assert result.criteria == {"reason": "equipment", "equipment": ["bodyweight"]}


def test_unknown_exercise_raises() -> None:
    with pytest.raises(ExerciseNotFoundError) as exc:
        asyncio.run(_ranker().suggest("ex:does-not-exist"))
    assert exc.value.exercise_id == "ex:does-not-exist"


def test_remote_ranking_maps_names_back_to_catalog(scripted) -> None:
    ranking = json.dumps([
        {"name": "Parallel Bar Dip", "similarityScore": 85, "reason": "Same pressing pattern", "benefits": "No bar"},
        {"name": "push-up", "similarityScore": 250, "reason": "Bodyweight press"},
        {"name": "Underwater Basket Weaving", "similarityScore": 99},
    ])
    completion = scripted([f"Here you go:\n```json\n{ranking}\n```"])
    result = asyncio.run(_ranker(completion).suggest("ex:barbell-bench-press"))

    assert result.source == "remote"
    assert [a.name for a in result.alternatives] == ["Push-up", "Parallel Bar Dip"]
    assert [a.similarity_score for a in result.alternatives] == [100, 85]
    assert all(a.ai_generated for a in result.alternatives)
    assert completion.calls == 1


def test_unusable_remote_ranking_falls_back_to_local(scripted) -> None:
    completion = scripted(['[{"name": "Nothing we know"}]'])
    result = asyncio.run(_ranker(completion).suggest("ex:barbell-bench-press"))

    assert result.source == "fallback"
    assert completion.calls == 2
    assert result.alternatives[0].name == "Parallel Bar Dip"


def test_remote_score_beyond_float_range_is_clamped(scripted) -> None:
    completion = scripted(['[{"name": "Dumbbell Bench Press", "similarityScore": 1' + "0" * 400 + "}]"])
    result = asyncio.run(_ranker(completion).suggest("ex:barbell-bench-press"))

    assert result.source == "remote"
    assert [(a.name, a.similarity_score) for a in result.alternatives] == [("Dumbbell Bench Press", 100)]
