"""Turn raw model text into a validated, clamped WorkoutPlan.

The model is asked for bare JSON but routinely wraps it in prose or code fences, so
the parser isolates the most plausible JSON block before decoding. Anything that
cannot yield a named plan with at least one exercise raises
``UnparseableResponseError``; the retry controller treats that as a failed attempt.
Numeric fields are repaired (clamped), never rejected.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional

from loguru import logger

from fitgen.llm.groq_client import UnparseableResponseError
from fitgen.models.context import GenerationContext
from fitgen.models.request import DEFAULT_DURATION, DEFAULT_LEVEL, MAX_DURATION, MIN_DURATION, coerce_level
from fitgen.models.result import REPS_RANGE, DEFAULT_REPS, ExerciseEntry, WorkoutPlan, clamp_int

MAX_PLAN_EXERCISES = 12

CALORIES_PER_MINUTE = {
    "strength": 5.0,
    "hypertrophy": 4.5,
    "endurance": 6.0,
    "weight_loss": 5.5,
    "general_fitness": 5.0,
}

_FENCE = re.compile(r"```[ \t]*([A-Za-z0-9_-]*)[ \t]*\r?\n?(.*?)```", re.DOTALL)
_CLOSERS = {"{": "}", "[": "]"}


@dataclass(frozen=True)
class ParsedWorkout:
    plan: WorkoutPlan
    quality_score: int


def _balanced_spans(text: str, opener: str) -> Iterator[str]:
    """Yield top-level balanced ``opener...closer`` spans, skipping brackets inside strings."""
    closer = _CLOSERS[opener]
    depth = 0
    start = -1
    in_str = False
    escaped = False
    for i, ch in enumerate(text):
        if in_str:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_str = False
            continue
        if ch == '"' and depth > 0:
            in_str = True
        elif ch == opener:
            if depth == 0:
                start = i
            depth += 1
        elif ch == closer and depth > 0:
            depth -= 1
            if depth == 0:
                yield text[start: i + 1]


def candidate_blocks(text: str, opener: str = "{") -> List[str]:
    """Plausible JSON blocks in priority order: fenced blocks first, then balanced spans longest-first."""
    blocks: List[str] = []
    for _lang, body in _FENCE.findall(text):
        body = body.strip()
        if body:
            blocks.append(body)
    spans = sorted(_balanced_spans(text, opener), key=len, reverse=True)
    blocks.extend(spans)
    return blocks


def decode_json_block(text: str, expect: type = dict) -> Any:
    """Decode the first candidate block of type ``expect`` (dict or list)."""
    if not isinstance(text, str) or not text.strip():
        raise UnparseableResponseError("Empty response text")
    opener = "{" if expect is dict else "["
    stripped = text.strip()
    blocks = [stripped] + [b for b in candidate_blocks(text, opener) if b != stripped]
    for block in blocks:
        try:
            value = json.loads(block)
        except ValueError:
            # a fenced block may itself carry prose around the JSON; ValueError also covers
            # integers past the interpreter digit limit
            inner = sorted(_balanced_spans(block, opener), key=len, reverse=True)
            value = None
            for span in inner:
                try:
                    value = json.loads(span)
                    break
                except ValueError:
                    continue
            if value is None:
                continue
        if isinstance(value, expect):
            return value
    raise UnparseableResponseError(f"No decodable JSON {expect.__name__} found in response")


def _first(raw: Dict[str, Any], *keys: str) -> Any:
    for k in keys:
        if k in raw and raw[k] is not None:
            return raw[k]
    return None


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    if isinstance(value, list):
        joined = "; ".join(str(v).strip() for v in value if str(v).strip())
        return joined or None
    return None


def _exercise_dicts(payload: Dict[str, Any]) -> List[Dict[str, Any]]:
    raw = payload.get("exercises")
    if not isinstance(raw, list):
        return []
    return [e for e in raw if isinstance(e, dict)]


def extract_payload(raw_text: str) -> Dict[str, Any]:
    """Decode and check mandatory fields (non-empty name, at least one exercise object)."""
    payload = decode_json_block(raw_text, dict)
    if isinstance(payload.get("workout"), dict):
        payload = payload["workout"]
    if not _text(payload.get("name")):
        raise UnparseableResponseError("Response is missing the workout name")
    if not _exercise_dicts(payload):
        raise UnparseableResponseError("Response has no exercises")
    return payload


def score_quality(payload: Dict[str, Any]) -> int:
    """Structural completeness rubric, 0-100. Observability only, never a gate."""
    exercises = _exercise_dicts(payload)[:MAX_PLAN_EXERCISES]
    score = 0
    score += min(len(exercises) * 4, 20)

    description = _text(payload.get("description"))
    if description and len(description) > 10:
        score += 10

    if exercises and all(_text(_first(e, "name", "exercise")) and e.get("sets") is not None
                         and e.get("reps") is not None for e in exercises):
        score += 20

    with_notes = sum(1 for e in exercises if len(_text(_first(e, "notes", "note", "tips")) or "") > 5)
    score += min(with_notes * 3, 15)

    reps = {clamp_int(e.get("reps"), *REPS_RANGE, DEFAULT_REPS) for e in exercises}
    if len(reps) > 1:
        score += 15

    if _text(payload.get("warmup")):
        score += 10
    if _text(payload.get("cooldown")):
        score += 10
    return max(0, min(score, 100))


def build_plan(payload: Dict[str, Any], context: Optional[GenerationContext] = None) -> WorkoutPlan:
    """Repair a decoded payload into a WorkoutPlan; every numeric field ends up in range."""
    goal = context.goal if context else "general_fitness"
    level = context.level if context else DEFAULT_LEVEL
    default_duration = context.duration_minutes if context else DEFAULT_DURATION

    raw_exercises = _exercise_dicts(payload)
    if len(raw_exercises) > MAX_PLAN_EXERCISES:
        logger.warning("Truncating oversized plan", exercises=len(raw_exercises), kept=MAX_PLAN_EXERCISES)
        raw_exercises = raw_exercises[:MAX_PLAN_EXERCISES]

    entries: List[ExerciseEntry] = []
    for idx, ex in enumerate(raw_exercises):
        entries.append(ExerciseEntry(
            name=_text(_first(ex, "name", "exercise")) or f"Exercise {idx + 1}",
            sets=ex.get("sets"),
            reps=ex.get("reps"),
            rest_seconds=_first(ex, "restTime", "rest_time", "rest_seconds", "rest"),
            notes=_text(_first(ex, "notes", "note", "tips")),
            intensity=ex.get("intensity"),
            order=idx + 1,
        ))

    duration = clamp_int(_first(payload, "estimatedDuration", "estimated_duration", "duration_minutes", "duration"),
                         MIN_DURATION, MAX_DURATION, default_duration)
    muscles = payload.get("targetMuscles") or payload.get("target_muscles")
    if isinstance(muscles, list) and all(isinstance(m, str) for m in muscles) and muscles:
        target_muscles = [m.strip().lower() for m in muscles if m.strip()]
    else:
        target_muscles = list(context.target_muscles) if context and context.target_muscles else ["full_body"]

    return WorkoutPlan(
        name=_text(payload.get("name")) or "Custom Workout",
        description=_text(payload.get("description")) or f"A {goal.replace('_', ' ')} workout for {level} level",
        duration_minutes=duration,
        difficulty=coerce_level(payload.get("difficulty")) or level,
        exercises=entries,
        warmup=_text(payload.get("warmup")),
        cooldown=_text(payload.get("cooldown")),
        target_muscles=target_muscles,
        total_volume=sum(e.sets * e.reps for e in entries),
        estimated_calories=round(duration * CALORIES_PER_MINUTE.get(goal, 5.0)),
    )


def parse_workout(raw_text: str, context: Optional[GenerationContext] = None) -> ParsedWorkout:
    payload = extract_payload(raw_text)
    plan = build_plan(payload, context)
    return ParsedWorkout(plan=plan, quality_score=score_quality(payload))
