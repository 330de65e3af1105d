from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional, Sequence, Union

from loguru import logger
from pydantic import ValidationError

from fitgen.config import Settings, get_settings
from fitgen.errors import InvalidRequestError
from fitgen.llm import (
    CompletionClient,
    GroqCompletionClient,
    LLMError,
    RetryController,
    RetryOutcome,
    params_from_settings,
)
from fitgen.models import (
    AlternativeCriteria,
    AlternativesResult,
    CompiledPrompt,
    FitnessLevel,
    GenerationContext,
    GenerationRequest,
    GenerationResult,
    ProgressReport,
    ServiceStatus,
    UserProfile,
    WorkoutRecord,
)
from fitgen.services.alternatives import AlternativeRanker
from fitgen.services.cache import ResultCache, SingleFlight, fingerprint
from fitgen.services.catalog import JsonExerciseCatalog
from fitgen.services.collaborators import ExerciseCatalog, ProfileLookup, ProgressLookup, WorkoutHistoryLookup
from fitgen.services.context_builder import ContextBuilder, resolve_level
from fitgen.services.fallback import synthesize
from fitgen.services.metrics import MetricsCollector, Outcome
from fitgen.services.progress import ProgressAnalyzer
from fitgen.services.prompt_compiler import compile_workout_prompt
from fitgen.services.response_parser import ParsedWorkout, parse_workout

RequestLike = Union[GenerationRequest, Mapping[str, Any]]


@dataclass
class GenerationState:
    request: GenerationRequest
    level: FitnessLevel
    cache_key: str
    request_id: str
    started: float
    profile: UserProfile | None = None
    context: GenerationContext | None = None
    prompt: CompiledPrompt | None = None
    outcome: RetryOutcome[ParsedWorkout] | None = None
    result: GenerationResult | None = None


def _validate_request(request: RequestLike) -> GenerationRequest:
    if isinstance(request, GenerationRequest):
        return request
    if not isinstance(request, Mapping):
        raise InvalidRequestError(f"Unsupported request type: {type(request).__name__}")
    try:
        return GenerationRequest.model_validate(dict(request))
    except ValidationError as e:
        raise InvalidRequestError(f"Invalid generation request: {e.errors(include_url=False)}") from e


class WorkoutOrchestrator:
    """Sequences cache, context, remote generation and fallback for one workout request.

    ``agenerate`` never raises because the remote side is slow or broken; the only
    error a caller sees is ``InvalidRequestError`` for malformed input.
    """

    def __init__(
        self,
        *,
        settings: Optional[Settings] = None,
        catalog: Optional[ExerciseCatalog] = None,
        profiles: Optional[ProfileLookup] = None,
        history: Optional[WorkoutHistoryLookup] = None,
        progress: Optional[ProgressLookup] = None,
        completion: Optional[CompletionClient] = None,
        cache: Optional[ResultCache[GenerationResult]] = None,
        metrics: Optional[MetricsCollector] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ) -> None:
        self.settings = settings or get_settings()
        s = self.settings
        self._clock = clock
        self.catalog = catalog or JsonExerciseCatalog()
        self.context_builder = ContextBuilder(self.catalog, profiles, history, s)

        if completion is None and s.remote_enabled:
            try:
                completion = GroqCompletionClient.from_settings(s)
            except LLMError as e:
                logger.error("Remote client unavailable, generation will use fallback", error=str(e))
                completion = None
        self.completion = completion
        self.retry: Optional[RetryController] = None
        if completion is not None:
            self.retry = RetryController(
                completion,
                max_retries=s.GENERATION_MAX_RETRIES,
                attempt_timeout=s.GENERATION_ATTEMPT_TIMEOUT_S,
                base_delay=s.GENERATION_RETRY_BASE_DELAY_S,
                sleep=sleep,
                clock=clock,
            )
        self.params = params_from_settings(s)

        self.cache: ResultCache[GenerationResult] = cache or ResultCache(
            max_entries=s.CACHE_MAX_ENTRIES, ttl_seconds=s.CACHE_TTL_S, clock=clock,
        )
        self.metrics = metrics or MetricsCollector()
        self.single_flight: Optional[SingleFlight[GenerationResult]] = (
            SingleFlight() if s.SINGLE_FLIGHT_ENABLED else None
        )
        self.alternatives = AlternativeRanker(
            self.catalog,
            self.retry,
            limit=s.ALTERNATIVES_LIMIT,
            candidate_limit=s.ALTERNATIVE_CANDIDATE_LIMIT,
        )
        self.progress = ProgressAnalyzer(history, progress)

    @property
    def remote_enabled(self) -> bool:
        return self.retry is not None

    def _model_name(self) -> str:
        return getattr(self.completion, "model", None) or self.settings.GROQ_MODEL

    def _elapsed_ms(self, started: float) -> float:
        return round(max(0.0, self._clock() - started) * 1000, 3)

    # ---- workout generation -------------------------------------------------

    async def agenerate(self, request: RequestLike, *, timeout: Optional[float] = None) -> GenerationResult:
        started = self._clock()
        outcome: Outcome = "input_error"
        attempts = 0
        try:
            req = _validate_request(request)
            outcome = "fallback"
            deadline = started + timeout if timeout is not None and timeout > 0 else None
            result = await self._generate(req, started, deadline)
            outcome = result.metadata.source
            attempts = result.metadata.attempts
            return result
        except InvalidRequestError as e:
            logger.warning("Rejected generation request", error=str(e))
            raise
        except asyncio.CancelledError:
            outcome = "cancelled"
            logger.info("Generation cancelled by caller")
            raise
        finally:
            self.metrics.record(outcome, self._elapsed_ms(started), attempts)

    def generate(self, request: RequestLike, *, timeout: Optional[float] = None) -> GenerationResult:
        return asyncio.run(self.agenerate(request, timeout=timeout))

    async def _generate(self, req: GenerationRequest, started: float, deadline: Optional[float]) -> GenerationResult:
        profile = self.context_builder.profile(req.user_id)
        level = resolve_level(req, profile)
        key = fingerprint(req, level)
        state = GenerationState(request=req, level=level, cache_key=key, request_id=uuid.uuid4().hex,
                                started=started, profile=profile)
        logger.info("Generating workout", user_id=req.user_id, goal=req.goal, level=level,
                    duration=req.duration_minutes, request_id=state.request_id)

        cached = self.cache.get(key)
        if cached is not None:
            logger.info("Cache hit", key=key[:12], request_id=state.request_id)
            return self._from_cache(cached, state)

        if self.single_flight is None:
            return await self._produce(state, deadline)
        result, shared = await self.single_flight.do(key, lambda: self._produce(state, deadline))
        if shared:
            logger.info("Joined in-flight generation", key=key[:12], request_id=state.request_id,
                        source=result.metadata.source)
            if result.metadata.source == "fallback":
                return self._shared_fallback(result, state)
            return self._from_cache(result, state)
        return result

    def _shared_fallback(self, leader: GenerationResult, state: GenerationState) -> GenerationResult:
        # the leader already accounted for the remote attempts
        metadata = leader.metadata.model_copy(update={
            "attempts": 0,
            "elapsed_ms": self._elapsed_ms(state.started),
            "request_id": state.request_id,
        })
        return GenerationResult(workout=leader.workout.model_copy(deep=True), metadata=metadata)

    def _from_cache(self, cached: GenerationResult, state: GenerationState) -> GenerationResult:
        metadata = cached.metadata.model_copy(update={
            "source": "cache",
            "attempts": 0,
            "elapsed_ms": self._elapsed_ms(state.started),
            "request_id": state.request_id,
            "cache_key": state.cache_key,
        })
        return GenerationResult(workout=cached.workout.model_copy(deep=True), metadata=metadata)

    async def _produce(self, state: GenerationState, deadline: Optional[float]) -> GenerationResult:
        try:
            state.context = self.context_builder.build_for(state.request, state.profile)
            if self.retry is None:
                reason = "remote generation disabled"
            else:
                ctx = state.context
                state.prompt = compile_workout_prompt(ctx)
                state.outcome = await self.retry.invoke(
                    state.prompt, lambda raw: parse_workout(raw, ctx), self.params, deadline=deadline,
                )
                if state.outcome.succeeded and state.outcome.value is not None:
                    state.result = self._remote_result(state, state.outcome.value)
                    self.cache.set(state.cache_key, state.result.model_copy(deep=True))
                    return state.result
                reason = state.outcome.last_error or "remote generation exhausted"
        except Exception as e:  # noqa: BLE001
            logger.exception("Generation pipeline fault, falling back", request_id=state.request_id)
            reason = f"internal error: {type(e).__name__}"

        state.result = self._fallback(state, reason)
        if self.settings.CACHE_FALLBACK_RESULTS:
            self.cache.set(state.cache_key, state.result.model_copy(deep=True))
        return state.result

    def _remote_result(self, state: GenerationState, parsed: ParsedWorkout) -> GenerationResult:
        outcome = state.outcome
        attempts = len(outcome.attempts) if outcome else 1
        result = GenerationResult(
            workout=parsed.plan,
            metadata={
                "source": "remote",
                "model": self._model_name(),
                "generated_at": datetime.now(timezone.utc),
                "elapsed_ms": self._elapsed_ms(state.started),
                "quality_score": parsed.quality_score,
                "attempts": attempts,
                "cache_key": state.cache_key,
                "request_id": state.request_id,
            },
        )
        logger.info("Remote workout generated", request_id=state.request_id, attempts=attempts,
                    quality_score=parsed.quality_score, exercises=len(parsed.plan.exercises))
        return result

    def _fallback(self, state: GenerationState, reason: str) -> GenerationResult:
        history: Sequence[WorkoutRecord]
        if state.context is not None:
            history = state.context.recent_workouts
        else:
            history = self.context_builder.recent_workouts(state.request.user_id)
        resolved = state.request.model_copy(update={"fitness_level": state.level})
        result = synthesize(
            resolved,
            history,
            history_slots=self.settings.FALLBACK_HISTORY_SLOTS,
            quality_score=self.settings.FALLBACK_QUALITY_SCORE,
            reason=reason,
        )
        attempts = len(state.outcome.attempts) if state.outcome else 0
        result = GenerationResult(workout=result.workout, metadata=result.metadata.model_copy(update={
            "elapsed_ms": self._elapsed_ms(state.started),
            "attempts": attempts,
            "cache_key": state.cache_key,
            "request_id": state.request_id,
        }))
        logger.warning("Serving fallback workout", request_id=state.request_id, reason=reason,
                       based_on_history=result.metadata.based_on_history)
        return result

    # ---- alternatives and progress ------------------------------------------

    async def asuggest_alternatives(
        self,
        exercise_id: str,
        criteria: Union[AlternativeCriteria, Mapping[str, Any], None] = None,
        *,
        timeout: Optional[float] = None,
    ) -> AlternativesResult:
        if not isinstance(exercise_id, str) or not exercise_id.strip():
            raise InvalidRequestError("exercise_id is required")
        if criteria is not None and not isinstance(criteria, AlternativeCriteria):
            try:
                criteria = AlternativeCriteria.model_validate(dict(criteria))
            except (TypeError, ValueError) as e:
                raise InvalidRequestError(f"Invalid alternative criteria: {e}") from e
        deadline = self._clock() + timeout if timeout is not None and timeout > 0 else None
        return await self.alternatives.suggest(exercise_id.strip(), criteria, deadline=deadline)

    def suggest_alternatives(
        self,
        exercise_id: str,
        criteria: Union[AlternativeCriteria, Mapping[str, Any], None] = None,
        *,
        timeout: Optional[float] = None,
    ) -> AlternativesResult:
        return asyncio.run(self.asuggest_alternatives(exercise_id, criteria, timeout=timeout))

    def analyze_progress(self, user_id: str, timeframe: str = "month",
                         focus_areas: Optional[Sequence[str]] = None) -> ProgressReport:
        if not isinstance(user_id, str) or not user_id.strip():
            raise InvalidRequestError("user_id is required")
        return self.progress.analyze(user_id.strip(), timeframe, focus_areas)

    # ---- service -------------------------------------------------------------

    def status(self) -> ServiceStatus:
        s = self.settings
        return ServiceStatus(
            remote_enabled=self.remote_enabled,
            model=self._model_name() if self.remote_enabled else "fallback",
            max_retries=s.GENERATION_MAX_RETRIES,
            attempt_timeout_s=s.GENERATION_ATTEMPT_TIMEOUT_S,
            worst_case_latency_s=self.retry.worst_case_latency() if self.retry else 0.0,
            cache_size=len(self.cache),
            metrics=self.metrics.snapshot(),
        )

    async def aclose(self) -> None:
        close = getattr(self.completion, "aclose", None)
        if close is not None:
            await close()
