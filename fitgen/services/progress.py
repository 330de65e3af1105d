"""Deterministic progress analytics over logged workouts and body metrics."""
from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence

from loguru import logger

from fitgen.models.result import ProgressInsights, ProgressMetrics, ProgressReport
from fitgen.models.user_profile import ProgressRecord, WorkoutRecord
from .collaborators import ProgressLookup, WorkoutHistoryLookup

TIMEFRAME_DAYS = {"week": 7, "month": 30, "quarter": 90, "year": 365}
TIMEFRAME_WEEKS = {"week": 1, "month": 4, "quarter": 13, "year": 52}
DEFAULT_TIMEFRAME = "month"
DEFAULT_FOCUS_AREAS = ["strength", "consistency"]
HISTORY_SCAN_LIMIT = 1000

BASIC_INSIGHTS = ProgressInsights(
    overall_progress="stable",
    key_insights=["Keep tracking your workouts", "Consistency is key"],
    strengths=["Regular training"],
    areas_for_improvement=["Track more metrics"],
    recommendations=["Continue current routine"],
    motivational_message="Great progress!",
    consistency_rating="good",
)


def timeframe_start(timeframe: str, now: datetime) -> datetime:
    return now - timedelta(days=TIMEFRAME_DAYS.get(timeframe, TIMEFRAME_DAYS[DEFAULT_TIMEFRAME]))


def weekly_average(workout_count: int, timeframe: str) -> float:
    if workout_count == 0:
        return 0.0
    weeks = TIMEFRAME_WEEKS.get(timeframe, TIMEFRAME_WEEKS[DEFAULT_TIMEFRAME])
    return round(workout_count / weeks, 1)


def consistency_score(workouts: Sequence[WorkoutRecord]) -> float:
    """100 minus the standard deviation (in days) of the gaps between sessions, floored at 0."""
    if len(workouts) < 2:
        return 0.0
    stamps = sorted(w.date.timestamp() for w in workouts)
    intervals = [(b - a) / 86400.0 for a, b in zip(stamps, stamps[1:])]
    mean = sum(intervals) / len(intervals)
    std_dev = math.sqrt(sum((i - mean) ** 2 for i in intervals) / len(intervals))
    return round(max(0.0, min(100.0, 100.0 - std_dev)), 2)


def weight_trend(records: Sequence[ProgressRecord]) -> float:
    """Least-squares slope of recorded body weight over record index. 0 with fewer than two points."""
    weights = [r.weight for r in records if r.weight]
    n = len(weights)
    if n < 2:
        return 0.0
    x_sum = n * (n + 1) / 2
    y_sum = sum(weights)
    xy_sum = sum(y * (i + 1) for i, y in enumerate(weights))
    x2_sum = n * (n + 1) * (2 * n + 1) / 6
    return round((n * xy_sum - x_sum * y_sum) / (n * x2_sum - x_sum * x_sum), 4)


def build_metrics(workouts: Sequence[WorkoutRecord], records: Sequence[ProgressRecord],
                  timeframe: str) -> ProgressMetrics:
    ordered = sorted(workouts, key=lambda w: w.date)
    return ProgressMetrics(
        total_workouts=len(ordered),
        average_per_week=weekly_average(len(ordered), timeframe),
        consistency_score=consistency_score(ordered),
        progress_trend=weight_trend(records),
        volume_progression=[{"workout": i + 1, "volume": w.volume} for i, w in enumerate(ordered)],
    )


def key_insights(m: ProgressMetrics, focus_areas: Sequence[str]) -> List[str]:
    insights: List[str] = []
    if "consistency" in focus_areas:
        if m.consistency_score > 75:
            insights.append("Excellent workout consistency!")
        elif m.consistency_score > 50:
            insights.append("Good consistency, try to maintain regular schedule")
        else:
            insights.append("Focus on building a consistent workout routine")
    if "strength" in focus_areas and m.progress_trend > 0:
        insights.append("Positive strength progression detected")
    if m.total_workouts == 0:
        insights.append("Start tracking workouts to see detailed insights")
    return insights


def strengths(m: ProgressMetrics) -> List[str]:
    out: List[str] = []
    if m.consistency_score > 70:
        out.append("High consistency")
    if m.total_workouts > 20:
        out.append("Strong workout history")
    if m.progress_trend > 0:
        out.append("Progressive improvement")
    return out or ["Building foundation"]


def weaknesses(m: ProgressMetrics) -> List[str]:
    out: List[str] = []
    if m.consistency_score < 50:
        out.append("Improve workout consistency")
    if m.total_workouts < 5:
        out.append("Build workout history")
    if m.progress_trend < 0:
        out.append("Review program intensity")
    return out or ["Continue current path"]


def recommendations(m: ProgressMetrics) -> List[str]:
    out: List[str] = []
    if m.consistency_score < 60:
        out += ["Set specific workout days and times", "Start with 3 workouts per week"]
    if m.progress_trend <= 0 and m.total_workouts > 10:
        out += ["Consider progressive overload", "Vary your routine every 4-6 weeks"]
    if m.average_per_week < 2:
        out.append("Aim for at least 3 workouts per week")
    return out or ["Keep up the great work!"]


def motivational_message(m: ProgressMetrics) -> str:
    if m.total_workouts == 0:
        return "Start your fitness journey today!"
    if m.total_workouts < 5:
        return "Great start! Keep building momentum!"
    if m.consistency_score > 80:
        return "Outstanding consistency! You are crushing it!"
    if m.progress_trend > 0:
        return "Your hard work is paying off!"
    return "Stay committed to your goals!"


def rate_consistency(score: float) -> str:
    if score >= 80:
        return "excellent"
    if score >= 60:
        return "good"
    if score >= 40:
        return "fair"
    return "needs_improvement"


def build_insights(m: ProgressMetrics, focus_areas: Sequence[str]) -> ProgressInsights:
    if m.progress_trend > 0:
        overall = "improving"
    elif m.progress_trend < 0:
        overall = "declining"
    else:
        overall = "stable"
    return ProgressInsights(
        overall_progress=overall,
        key_insights=key_insights(m, focus_areas),
        strengths=strengths(m),
        areas_for_improvement=weaknesses(m),
        recommendations=recommendations(m),
        motivational_message=motivational_message(m),
        consistency_rating=rate_consistency(m.consistency_score),  # type: ignore[arg-type]
    )


class ProgressAnalyzer:
    def __init__(self, history: Optional[WorkoutHistoryLookup] = None,
                 progress: Optional[ProgressLookup] = None) -> None:
        self.history = history
        self.progress = progress

    def analyze(self, user_id: str, timeframe: Optional[str] = None,
                focus_areas: Optional[Sequence[str]] = None, now: Optional[datetime] = None) -> ProgressReport:
        timeframe = timeframe if timeframe in TIMEFRAME_DAYS else DEFAULT_TIMEFRAME
        focus = [f.strip().lower() for f in (focus_areas or DEFAULT_FOCUS_AREAS) if f and f.strip()]
        now = now or datetime.now(timezone.utc)
        since = timeframe_start(timeframe, now)
        logger.info("Analyzing progress", user_id=user_id, timeframe=timeframe)

        try:
            workouts: List[WorkoutRecord] = []
            if self.history is not None:
                recent = self.history.get_recent_workouts(user_id, HISTORY_SCAN_LIMIT)
                workouts = [w for w in recent if w.date >= since]
            records: List[ProgressRecord] = []
            if self.progress is not None:
                records = list(self.progress.get_progress_records(user_id, since))
            metrics = build_metrics(workouts, records, timeframe)
            insights = build_insights(metrics, focus)
        except Exception as e:  # noqa: BLE001
            logger.error("Progress analysis failed, returning basic summary", user_id=user_id, error=str(e))
            return ProgressReport(insights=BASIC_INSIGHTS.model_copy(deep=True), timeframe=timeframe,
                                  focus_areas=focus, source="basic_fallback", generated_at=now)

        return ProgressReport(
            insights=insights,
            metrics=metrics,
            timeframe=timeframe,
            focus_areas=focus,
            data_points=len(workouts) + len(records),
            source="analytics",
            generated_at=now,
        )
