"""
Core domain models for the Gnosis engine.

Design:
- Difficulty / ContentType / TimeOfDay / StepKind: closed vocabularies
- SessionRecord, AssessmentRecord, DailyAnalytics, Skill: learner history
- LearnerPatternProfile: derived snapshot, recomputed on every analysis run
- Recommendation: a ranked next-activity suggestion

Scales: profile scalars and priority scores live in [0, 1];
mastery, completion and performance percentages live in [0, 100].
"""

from __future__ import annotations

import math
import uuid
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, ClassVar

from gnosis.core.errors import SessionStateError


def new_record_id() -> str:
    """Generate a record identifier."""
    return uuid.uuid4().hex


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    """Clamp a value into [low, high]."""
    return max(low, min(high, value))


def clamp_percentage(value: float) -> float:
    """Clamp a value into [0, 100]."""
    return clamp(value, 0.0, 100.0)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


# ============================================================================
# Vocabularies
# ============================================================================


class Difficulty(str, Enum):
    """Activity difficulty level."""

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"

    @classmethod
    def from_numeric(cls, value: float) -> Difficulty:
        """Bucket a [0, 1] preferred difficulty into a level."""
        if value < 0.45:
            return cls.BEGINNER
        elif value < 0.75:
            return cls.INTERMEDIATE
        return cls.ADVANCED


DIFFICULTY_VALUES: dict[Difficulty, float] = {
    Difficulty.BEGINNER: 0.3,
    Difficulty.INTERMEDIATE: 0.6,
    Difficulty.ADVANCED: 0.9,
}


class ContentType(str, Enum):
    """Delivery format of an activity."""

    VIDEO = "video"
    PODCAST = "podcast"
    INTERACTIVE = "interactive"
    READING = "reading"


class TimeOfDay(str, Enum):
    """Coarse local time-of-day bucket."""

    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"

    @classmethod
    def from_hour(cls, hour: int) -> TimeOfDay:
        if hour < 12:
            return cls.MORNING
        elif hour < 18:
            return cls.AFTERNOON
        return cls.EVENING


class StepKind(str, Enum):
    """Kind of a guided activity step."""

    EXPLANATION = "explanation"
    EXERCISE = "exercise"
    QUIZ = "quiz"
    REFLECTION = "reflection"


# ============================================================================
# History Records
# ============================================================================


@dataclass
class SessionRecord:
    """
    One learner activity session.

    Mutable while the activity runs; frozen once `completed_at` is set.
    """

    record_type: ClassVar[str] = "session"

    learner_id: str
    skill_id: str
    content_format: str
    started_at: datetime
    duration_minutes: float = 0.0
    completion_percentage: float = 0.0
    performance_score: float = 0.0
    edu_tokens_earned: int = 0
    completed_at: datetime | None = None
    id: str = field(default_factory=new_record_id)

    def __post_init__(self) -> None:
        self.completion_percentage = clamp_percentage(self.completion_percentage)
        self.performance_score = clamp_percentage(self.performance_score)

    @property
    def is_final(self) -> bool:
        return self.completed_at is not None

    def finalize(
        self,
        duration_minutes: float,
        performance_score: float,
        edu_tokens_earned: int,
        completed_at: datetime | None = None,
    ) -> dict[str, Any]:
        """
        Mark the session complete and return the changed fields.

        Raises:
            SessionStateError: if the record was already finalized
        """
        if self.is_final:
            raise SessionStateError("finalize", "completed")
        self.duration_minutes = duration_minutes
        self.completion_percentage = 100.0
        self.performance_score = clamp_percentage(performance_score)
        self.edu_tokens_earned = edu_tokens_earned
        self.completed_at = completed_at or datetime.now()
        return {
            "duration_minutes": self.duration_minutes,
            "completion_percentage": self.completion_percentage,
            "performance_score": self.performance_score,
            "edu_tokens_earned": self.edu_tokens_earned,
            "completed_at": self.completed_at,
        }

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class AssessmentRecord:
    """A single evaluated step. Never mutated after creation."""

    record_type: ClassVar[str] = "assessment"

    learner_id: str
    skill_id: str
    assessment_type: str
    score: float
    difficulty_level: str
    content_format: str
    correct_answers: int = 0
    total_questions: int = 0
    time_taken_seconds: float = 0.0
    cognitive_load_rating: float | None = None
    session_id: str | None = None
    created_at: datetime = field(default_factory=datetime.now)
    id: str = field(default_factory=new_record_id)

    @property
    def accuracy_rate(self) -> float:
        """
        Fraction of questions answered correctly.

        Records without questions (or with inconsistent counts) are
        normalized to a neutral 0.5 rather than rejected.
        """
        if self.total_questions <= 0:
            return 0.5
        return clamp(self.correct_answers / self.total_questions)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class DailyAnalytics:
    """Per-day activity rollup for one learner. Upserted as activity accrues."""

    record_type: ClassVar[str] = "daily_analytics"

    learner_id: str
    date: date
    total_learning_minutes: float = 0.0
    avg_performance_score: float = 0.0
    sessions_completed: int = 0
    streak_days: int = 0
    edu_tokens_earned: int = 0
    practiced_skill_ids: list[str] = field(default_factory=list)
    id: str = field(default_factory=new_record_id)

    @property
    def skills_practiced(self) -> int:
        return len(self.practiced_skill_ids)

    def accrue(
        self,
        minutes: float,
        performance: float,
        skill_id: str,
        edu_tokens: int = 0,
    ) -> dict[str, Any]:
        """
        Fold one completed session into the day and return the changed fields.

        The average performance is a running arithmetic mean over sessions.
        """
        completed = self.sessions_completed + 1
        self.avg_performance_score = clamp_percentage(
            (self.avg_performance_score * self.sessions_completed + performance) / completed
        )
        self.sessions_completed = completed
        self.total_learning_minutes += max(0.0, minutes)
        self.edu_tokens_earned += edu_tokens
        if skill_id not in self.practiced_skill_ids:
            self.practiced_skill_ids.append(skill_id)
        return {
            "total_learning_minutes": self.total_learning_minutes,
            "avg_performance_score": self.avg_performance_score,
            "sessions_completed": self.sessions_completed,
            "edu_tokens_earned": self.edu_tokens_earned,
            "practiced_skill_ids": list(self.practiced_skill_ids),
        }

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Skill:
    """
    Learner progress on one skill.

    Mastery and level only move upward; unlocking is irreversible.
    """

    record_type: ClassVar[str] = "skill"

    learner_id: str
    skill_id: str
    name: str
    category: str
    current_level: int = 0
    max_level: int = 5
    mastery_percentage: float = 0.0
    is_unlocked: bool = False
    id: str = field(default_factory=new_record_id)

    def __post_init__(self) -> None:
        self.mastery_percentage = clamp_percentage(self.mastery_percentage)

    def raise_mastery(self, value: float) -> bool:
        """
        Move mastery up to `value` (clamped). Lower values are ignored.

        Returns:
            True if mastery or level changed
        """
        value = clamp_percentage(value)
        if value <= self.mastery_percentage:
            return False
        self.mastery_percentage = value
        level = min(self.max_level, int(value // 20))
        if level > self.current_level:
            self.current_level = level
        return True

    def unlock(self) -> bool:
        """Unlock the skill. Returns True on the first call only."""
        if self.is_unlocked:
            return False
        self.is_unlocked = True
        return True

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ============================================================================
# Derived Profile
# ============================================================================


@dataclass
class LearnerPatternProfile:
    """
    Behavioral snapshot derived from recent history.

    Attributes:
        preferred_difficulty: Difficulty with the best mean score (0-1)
        optimal_session_duration_minutes: Representative duration (15/30/60)
        best_time_of_day: Bucket with the best mean performance
        content_type_effectiveness: Content type -> effectiveness (0-100)
        cognitive_load: Capacity to absorb complexity (0-1)
        motivation_level: Two-week engagement trend (0-1)
    """

    record_type: ClassVar[str] = "pattern_profile"

    preferred_difficulty: float = 0.5
    optimal_session_duration_minutes: int = 30
    best_time_of_day: TimeOfDay = TimeOfDay.MORNING
    content_type_effectiveness: dict[str, float] = field(
        default_factory=lambda: {ct.value: 50.0 for ct in ContentType}
    )
    cognitive_load: float = 0.5
    motivation_level: float = 0.5

    def __post_init__(self) -> None:
        self.preferred_difficulty = clamp(self.preferred_difficulty)
        self.cognitive_load = clamp(self.cognitive_load)
        self.motivation_level = clamp(self.motivation_level)
        self.content_type_effectiveness = {
            key: clamp_percentage(value)
            for key, value in self.content_type_effectiveness.items()
        }

    @property
    def best_content_type(self) -> tuple[str, float] | None:
        """Most effective content type; first one wins on ties."""
        if not self.content_type_effectiveness:
            return None
        return max(self.content_type_effectiveness.items(), key=lambda item: item[1])

    def to_dict(self) -> dict[str, Any]:
        return {
            "preferred_difficulty": self.preferred_difficulty,
            "optimal_session_duration_minutes": self.optimal_session_duration_minutes,
            "best_time_of_day": self.best_time_of_day.value,
            "content_type_effectiveness": dict(self.content_type_effectiveness),
            "cognitive_load": self.cognitive_load,
            "motivation_level": self.motivation_level,
        }


# ============================================================================
# Recommendations
# ============================================================================


@dataclass
class Recommendation:
    """A scored next-activity suggestion. Accept/complete flags are one-way."""

    record_type: ClassVar[str] = "recommendation"

    learner_id: str
    skill_id: str
    title: str
    description: str
    difficulty_level: Difficulty
    content_type: ContentType
    estimated_duration_minutes: int
    priority_score: float
    reasoning: str = ""
    learning_objectives: list[str] = field(default_factory=list)
    is_accepted: bool = False
    is_completed: bool = False
    created_at: datetime = field(default_factory=datetime.now)
    id: str = field(default_factory=new_record_id)

    def __post_init__(self) -> None:
        self.priority_score = clamp(self.priority_score)

    @property
    def is_pending(self) -> bool:
        return not self.is_accepted and not self.is_completed

    def display_priority(self) -> int:
        """Priority on the 0-100 presentation scale."""
        return round_half_up(self.priority_score * 100)

    def accept(self) -> bool:
        if self.is_accepted:
            return False
        self.is_accepted = True
        return True

    def complete(self) -> bool:
        if self.is_completed:
            return False
        self.is_accepted = True
        self.is_completed = True
        return True

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["difficulty_level"] = self.difficulty_level.value
        data["content_type"] = self.content_type.value
        return data
