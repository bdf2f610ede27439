"""
Learning Pattern Analyzer.

Reduces bounded history windows into the six scalar signals of a
LearnerPatternProfile:

1. preferred difficulty    - difficulty level with the best mean score
2. optimal session length  - duration bucket with the best completion rate
3. best time of day        - start-hour bucket with the best performance
4. content effectiveness   - completion/score blend per content type
5. cognitive load capacity - time efficiency blended with accuracy
6. motivation level        - two-week learning-time trend and consistency

Every calculation is a pure function of its input slices. Empty history
yields the documented neutral defaults; malformed records are normalized
rather than rejected.
"""
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar

from loguru import logger

from gnosis.core.models import (
    DIFFICULTY_VALUES,
    AssessmentRecord,
    ContentType,
    DailyAnalytics,
    Difficulty,
    LearnerPatternProfile,
    SessionRecord,
    TimeOfDay,
    clamp,
)

# Defaults returned when there is no history to analyze
DEFAULT_PREFERRED_DIFFICULTY = 0.5
DEFAULT_SESSION_MINUTES = 30
DEFAULT_TIME_OF_DAY = TimeOfDay.MORNING
DEFAULT_EFFECTIVENESS = 50.0
DEFAULT_COGNITIVE_LOAD = 0.5
DEFAULT_MOTIVATION = 0.5

# Assessment duration treated as the optimum for time efficiency (5 minutes)
REFERENCE_ASSESSMENT_SECONDS = 300.0

# Completion percentage at which a session counts as completed
COMPLETION_THRESHOLD = 80.0

# Representative minutes per session-length bucket
DURATION_BUCKET_MINUTES = {"short": 15, "medium": 30, "long": 60}

MOTIVATION_WINDOW_DAYS = 14


def _difficulty_value(level: str) -> float:
    try:
        return DIFFICULTY_VALUES[Difficulty(level)]
    except ValueError:
        # Unrecognized labels sit at the top of the scale
        return DIFFICULTY_VALUES[Difficulty.ADVANCED]


def _duration_bucket(minutes: float) -> str:
    if minutes < 15:
        return "short"
    elif minutes < 45:
        return "medium"
    return "long"


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values)


# ============================================================================
# Scalar Signals
# ============================================================================


def calculate_preferred_difficulty(assessments: Sequence[AssessmentRecord]) -> float:
    """
    Numeric difficulty of the level with the highest mean assessment score.

    Groups are visited in first-seen order and only a strictly higher mean
    replaces the current best, so ties keep the earlier group.
    """
    if not assessments:
        return DEFAULT_PREFERRED_DIFFICULTY

    groups: dict[float, list[float]] = {}
    for assessment in assessments:
        groups.setdefault(_difficulty_value(assessment.difficulty_level), []).append(
            assessment.score
        )

    best_difficulty = DEFAULT_PREFERRED_DIFFICULTY
    best_score = 0.0
    for difficulty, scores in groups.items():
        avg = _mean(scores)
        if avg > best_score:
            best_score = avg
            best_difficulty = difficulty

    return clamp(best_difficulty)


def calculate_optimal_duration(sessions: Sequence[SessionRecord]) -> int:
    """
    Representative length of the session bucket with the best completion rate.

    Buckets: short (<15 min), medium (15-45 min), long (>=45 min). The first
    bucket encountered wins ties.
    """
    if not sessions:
        return DEFAULT_SESSION_MINUTES

    groups: dict[str, dict[str, int]] = {}
    for session in sessions:
        bucket = groups.setdefault(
            _duration_bucket(session.duration_minutes), {"completions": 0, "total": 0}
        )
        bucket["total"] += 1
        if session.completion_percentage >= COMPLETION_THRESHOLD:
            bucket["completions"] += 1

    best_group = "medium"
    best_rate = 0.0
    for group, data in groups.items():
        rate = data["completions"] / data["total"]
        if rate > best_rate:
            best_rate = rate
            best_group = group

    return DURATION_BUCKET_MINUTES[best_group]


def calculate_best_time_of_day(sessions: Sequence[SessionRecord]) -> TimeOfDay:
    """Time-of-day bucket (by local start hour) with the best mean performance."""
    if not sessions:
        return DEFAULT_TIME_OF_DAY

    groups: dict[TimeOfDay, list[float]] = {}
    for session in sessions:
        bucket = TimeOfDay.from_hour(session.started_at.hour)
        groups.setdefault(bucket, []).append(session.performance_score or 0.0)

    best_time = DEFAULT_TIME_OF_DAY
    best_avg = 0.0
    for time_of_day, scores in groups.items():
        avg = _mean(scores)
        if avg > best_avg:
            best_avg = avg
            best_time = time_of_day

    return best_time


def calculate_content_effectiveness(
    sessions: Sequence[SessionRecord],
    assessments: Sequence[AssessmentRecord],
) -> dict[str, float]:
    """
    Effectiveness (0-100) per known content type.

    A type needs both session and assessment evidence; otherwise it gets
    the neutral default of 50.
    """
    effectiveness: dict[str, float] = {}
    for content_type in ContentType:
        type_sessions = [s for s in sessions if s.content_format == content_type.value]
        type_assessments = [a for a in assessments if a.content_format == content_type.value]

        if type_sessions and type_assessments:
            avg_completion = _mean([s.completion_percentage for s in type_sessions])
            avg_score = _mean([a.score for a in type_assessments])
            effectiveness[content_type.value] = clamp((avg_completion + avg_score) / 2, 0.0, 100.0)
        else:
            effectiveness[content_type.value] = DEFAULT_EFFECTIVENESS

    return effectiveness


def calculate_cognitive_load(assessments: Sequence[AssessmentRecord]) -> float:
    """
    Cognitive load capacity: mean of time efficiency and accuracy.

    time efficiency = min(1, 300s / time taken), 0.5 when no time was recorded
    accuracy        = correct / total, 0.5 when there were no questions
    """
    if not assessments:
        return DEFAULT_COGNITIVE_LOAD

    efficiencies = []
    accuracies = []
    for assessment in assessments:
        if assessment.time_taken_seconds and assessment.time_taken_seconds > 0:
            efficiencies.append(min(1.0, REFERENCE_ASSESSMENT_SECONDS / assessment.time_taken_seconds))
        else:
            efficiencies.append(0.5)
        accuracies.append(assessment.accuracy_rate)

    return clamp((_mean(efficiencies) + _mean(accuracies)) / 2)


def calculate_motivation_level(analytics: Sequence[DailyAnalytics]) -> float:
    """
    Motivation from the last two weeks of daily analytics (most recent first).

    trend       = min(1, recent week avg minutes / prior week avg minutes),
                  1 when the prior week had no learning time
    consistency = share of recent-week days with any learning time
    """
    if len(analytics) < MOTIVATION_WINDOW_DAYS:
        return DEFAULT_MOTIVATION

    window = analytics[:MOTIVATION_WINDOW_DAYS]
    recent_week = window[:7]
    prior_week = window[7:]

    recent_avg = _mean([day.total_learning_minutes for day in recent_week])
    prior_avg = _mean([day.total_learning_minutes for day in prior_week])

    trend = min(1.0, recent_avg / prior_avg) if prior_avg > 0 else 1.0
    consistency = sum(1 for day in recent_week if day.total_learning_minutes > 0) / len(recent_week)

    return clamp((trend + consistency) / 2)


def analyze_learning_patterns(
    sessions: Sequence[SessionRecord],
    assessments: Sequence[AssessmentRecord],
    analytics: Sequence[DailyAnalytics],
) -> LearnerPatternProfile:
    """
    Compute a full LearnerPatternProfile from history slices.

    Args:
        sessions: Recent sessions, most recent first
        assessments: Recent assessments, most recent first
        analytics: Recent daily analytics, most recent first

    Returns:
        A freshly computed profile (no incremental update)
    """
    profile = LearnerPatternProfile(
        preferred_difficulty=calculate_preferred_difficulty(assessments),
        optimal_session_duration_minutes=calculate_optimal_duration(sessions),
        best_time_of_day=calculate_best_time_of_day(sessions),
        content_type_effectiveness=calculate_content_effectiveness(sessions, assessments),
        cognitive_load=calculate_cognitive_load(assessments),
        motivation_level=calculate_motivation_level(analytics),
    )

    logger.debug(
        f"Pattern analysis: difficulty={profile.preferred_difficulty:.2f} "
        f"duration={profile.optimal_session_duration_minutes}m "
        f"time={profile.best_time_of_day.value} "
        f"load={profile.cognitive_load:.2f} motivation={profile.motivation_level:.2f}"
    )

    return profile


# ============================================================================
# Profile Insights
# ============================================================================


def identify_strengths(profile: LearnerPatternProfile) -> list[str]:
    strengths = []

    if profile.motivation_level > 0.7:
        strengths.append("Highly motivated")
    if profile.cognitive_load > 0.7:
        strengths.append("High cognitive capacity")
    if profile.optimal_session_duration_minutes > 45:
        strengths.append("Learning endurance")

    best = profile.best_content_type
    if best and best[1] > 70:
        strengths.append(f"Excels with {best[0]}")

    return strengths


def identify_improvement_areas(profile: LearnerPatternProfile) -> list[str]:
    areas = []

    if profile.motivation_level < 0.4:
        areas.append("Sustaining motivation")
    if profile.cognitive_load < 0.4:
        areas.append("Managing cognitive load")
    if profile.optimal_session_duration_minutes < 20:
        areas.append("Sustained focus")

    weak_types = [
        content_type
        for content_type, score in profile.content_type_effectiveness.items()
        if score < 50
    ]
    if weak_types:
        areas.append(f"Improve with {', '.join(weak_types)}")

    return areas


def adaptation_score(profile: LearnerPatternProfile) -> float:
    """
    Overall adaptation score (0-100).

    Four equally weighted quarters: motivation, cognitive load, session
    endurance (60+ minute sessions score fully) and best content effectiveness.
    """
    best = profile.best_content_type
    scores = [
        profile.motivation_level * 25,
        profile.cognitive_load * 25,
        min(1.0, profile.optimal_session_duration_minutes / 60) * 25,
        (best[1] if best else 0.0) * 0.25,
    ]
    return sum(scores)


@dataclass
class CognitiveProfileSnapshot:
    """Persisted result of one analysis run."""

    record_type: ClassVar[str] = "pattern_profile"

    learner_id: str
    patterns: LearnerPatternProfile
    strengths: list[str] = field(default_factory=list)
    improvement_areas: list[str] = field(default_factory=list)
    adaptation_score: float = 0.0
    last_updated: datetime = field(default_factory=datetime.now)

    @property
    def id(self) -> str:
        return self.learner_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "learner_id": self.learner_id,
            "patterns": self.patterns.to_dict(),
            "strengths": list(self.strengths),
            "improvement_areas": list(self.improvement_areas),
            "adaptation_score": self.adaptation_score,
            "last_updated": self.last_updated,
        }


def build_profile_snapshot(learner_id: str, profile: LearnerPatternProfile) -> CognitiveProfileSnapshot:
    return CognitiveProfileSnapshot(
        learner_id=learner_id,
        patterns=profile,
        strengths=identify_strengths(profile),
        improvement_areas=identify_improvement_areas(profile),
        adaptation_score=adaptation_score(profile),
    )


# ============================================================================
# Weekly Progress
# ============================================================================


@dataclass
class WeeklyProgress:
    total_minutes: float = 0.0
    avg_score: float = 0.0
    trend: str = "stable"  # up, stable, down


def weekly_progress(analytics: Sequence[DailyAnalytics]) -> WeeklyProgress:
    """
    Summarize the last seven daily rows (most recent first).

    Trend compares the three most recent days with the four older ones;
    a change beyond 10% either way is reported as up/down.
    """
    week = list(analytics[:7])
    if not week:
        return WeeklyProgress()

    total_minutes = sum(day.total_learning_minutes for day in week)
    avg_score = _mean([day.avg_performance_score for day in week])

    older = week[-4:]
    recent = week[:3]
    older_avg = _mean([day.total_learning_minutes for day in older])
    recent_avg = _mean([day.total_learning_minutes for day in recent])

    if recent_avg > older_avg * 1.1:
        trend = "up"
    elif recent_avg < older_avg * 0.9:
        trend = "down"
    else:
        trend = "stable"

    return WeeklyProgress(total_minutes=total_minutes, avg_score=avg_score, trend=trend)
