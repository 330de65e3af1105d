from __future__ import annotations

import asyncio
import json
from typing import Any, List, Sequence

import pytest

from fitgen.config import Settings
from fitgen.models import CompiledPrompt, GenerationParams

HANG = object()

GOOD_PLAN = {
    "name": "Upper Body Strength",
    "description": "Heavy compound pressing and pulling for the upper body.",
    "estimatedDuration": 45,
    "difficulty": "intermediate",
    "targetMuscles": ["chest", "back"],
    "exercises": [
        {"name": "Barbell Bench Press", "sets": 4, "reps": 5, "restTime": 180,
         "notes": "Control the descent", "intensity": "high"},
        {"name": "Barbell Row", "sets": 4, "reps": 8, "restTime": 120,
         "notes": "Pull to lower chest", "intensity": "moderate"},
        {"name": "Barbell Overhead Press", "sets": 3, "reps": 6, "restTime": 120,
         "notes": "Brace your core", "intensity": "high"},
        {"name": "Barbell Curl", "sets": 3, "reps": 10, "restTime": 60,
         "notes": "No swinging", "intensity": "light"},
    ],
    "warmup": "5 min rowing + band pull-aparts",
    "cooldown": "Chest and lat stretches",
}


class ScriptedCompletion:
    """Completion double that replays a script: text, an exception to raise, or HANG."""

    model = "scripted-model"

    def __init__(self, script: Sequence[Any], delay: float = 0.0) -> None:
        self.script: List[Any] = list(script)
        self.delay = delay
        self.calls = 0
        self.cancelled = 0
        self.prompts: List[CompiledPrompt] = []

    async def complete(self, prompt: CompiledPrompt, params: GenerationParams) -> str:
        self.calls += 1
        self.prompts.append(prompt)
        step = self.script[min(self.calls, len(self.script)) - 1]
        try:
            if step is HANG:
                await asyncio.sleep(3600)
            elif self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        if isinstance(step, BaseException):
            raise step
        return step


@pytest.fixture
def good_plan_text() -> str:
    return json.dumps(GOOD_PLAN)


@pytest.fixture
def scripted():
    return ScriptedCompletion


@pytest.fixture
def hang():
    return HANG


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        GROQ_API_KEY=None,
        GENERATION_MAX_RETRIES=3,
        GENERATION_ATTEMPT_TIMEOUT_S=0.2,
        GENERATION_RETRY_BASE_DELAY_S=0.01,
        CACHE_TTL_S=300,
        CACHE_MAX_ENTRIES=50,
    )
