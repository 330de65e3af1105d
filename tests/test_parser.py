from __future__ import annotations

import json
import sys

import pytest

from fitgen.llm import UnparseableResponseError
from fitgen.services.response_parser import MAX_PLAN_EXERCISES, decode_json_block, parse_workout, score_quality


def test_parses_fenced_block_inside_prose(good_plan_text: str) -> None:
    raw = f"Here is your plan:\n```json\n{good_plan_text}\n```\nEnjoy the session {{and hydrate}}!"
    parsed = parse_workout(raw)
    assert parsed == parse_workout(good_plan_text)
    assert parsed.quality_score == 93
    assert parsed.plan.exercises[0].rest_seconds == 180
    assert parsed.plan.total_volume == 4 * 5 + 4 * 8 + 3 * 6 + 3 * 10


def test_parses_bare_json_surrounded_by_text(good_plan_text: str) -> None:
    parsed = parse_workout(f"Sure! {good_plan_text} Hope this helps {{x}}")
    assert parsed == parse_workout(good_plan_text)


def test_braces_inside_strings_do_not_break_isolation() -> None:
    payload = {"name": "Plan {A}", "exercises": [{"name": "Squat } variant", "sets": 3, "reps": 5}]}
    parsed = parse_workout("prefix " + json.dumps(payload) + " suffix")
    assert parsed.plan.name == "Plan {A}"
    assert parsed.plan.exercises[0].name == "Squat } variant"


def test_adversarial_values_are_clamped() -> None:
    payload = {
        "name": "Chaos",
        "estimatedDuration": 999,
        "difficulty": "godlike",
        "exercises": [
            {"name": "A", "sets": -5, "reps": 1000, "restTime": "10 seconds", "intensity": "nuclear"},
            {"name": "B", "sets": "lots", "reps": None, "rest": 9999},
        ],
    }
    plan = parse_workout(json.dumps(payload)).plan
    a, b = plan.exercises
    assert (a.sets, a.reps, a.rest_seconds, a.intensity) == (1, 50, 15, "moderate")
    assert (b.sets, b.reps, b.rest_seconds) == (3, 10, 300)
    assert plan.duration_minutes == 180
    assert plan.difficulty == "intermediate"


def test_workout_wrapper_key_is_unwrapped(good_plan_text: str) -> None:
    parsed = parse_workout(json.dumps({"workout": json.loads(good_plan_text)}))
    assert parsed.plan.name == "Upper Body Strength"


def test_oversized_plans_are_truncated() -> None:
    payload = {"name": "Long", "exercises": [{"name": f"Ex {i}"} for i in range(20)]}
    plan = parse_workout(json.dumps(payload)).plan
    assert len(plan.exercises) == MAX_PLAN_EXERCISES
    assert [e.order for e in plan.exercises] == list(range(1, MAX_PLAN_EXERCISES + 1))


@pytest.mark.parametrize(
    "raw",
    [
        "",
        "I cannot help with that.",
        '{"name": "No exercises", "exercises": []}',
        '{"exercises": [{"name": "Squat"}]}',
        '[{"name": "Squat"}]',
        '{"name": "Broken", "exercises": [',
    ],
)
def test_unusable_output_raises(raw: str) -> None:
    with pytest.raises(UnparseableResponseError):
        parse_workout(raw)


def test_decode_json_block_finds_arrays() -> None:
    items = decode_json_block('Ranking:\n[{"name": "Push-up"}]\nDone.', list)
    assert items == [{"name": "Push-up"}]


def test_quality_score_rubric(good_plan_text: str) -> None:
    # 4 exercises 16, description 10, complete structure 20, notes 12, rep variety 15, warmup 10, cooldown 10
    assert score_quality(json.loads(good_plan_text)) == 93
    assert score_quality({"name": "X", "exercises": [{"name": "A"}]}) == 4


def test_huge_integers_are_clamped() -> None:
    raw = ('{"name": "Big", "estimatedDuration": -1' + "0" * 400
           + ', "exercises": [{"name": "Squat", "sets": 1' + "0" * 400 + ', "reps": 8}]}')
    plan = parse_workout(raw).plan
    assert plan.exercises[0].sets == 10
    assert plan.duration_minutes == 10


@pytest.mark.skipif(not hasattr(sys, "get_int_max_str_digits"), reason="no integer digit limit")
def test_integer_past_digit_limit_is_unparseable() -> None:
    raw = '{"name": "Huge", "exercises": [{"name": "Squat", "sets": ' + "9" * 5000 + "}]}"
    with pytest.raises(UnparseableResponseError):
        parse_workout(raw)
