"""
Collaborator interfaces for the Gnosis engine.

The scoring and session core depends only on these protocols:
- HistoryProvider: bounded, most-recent-first learner history
- ContentGenerator: structured activity content (may take seconds)
- PersistenceSink: create/update of records (no deletes)

Concrete implementations live in gnosis.integrations.content_client,
gnosis.integrations.templates and gnosis.db.repository.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from gnosis.core.models import (
    AssessmentRecord,
    ContentType,
    DailyAnalytics,
    Difficulty,
    LearnerPatternProfile,
    Recommendation,
    SessionRecord,
    Skill,
    StepKind,
)


# =============================================================================
# Content Types
# =============================================================================


@dataclass
class ActivityStep:
    """One segment of a guided activity."""

    step_id: str
    kind: StepKind
    title: str
    body: str = ""
    time_estimate_minutes: float = 5.0
    cognitive_load: float = 0.5
    hints: list[str] = field(default_factory=list)


@dataclass
class ActivityContent:
    """Ordered steps for one guided activity."""

    title: str
    steps: list[ActivityStep]
    objectives: list[str] = field(default_factory=list)


@dataclass
class RecommendationDraft:
    """Generated text and format choices for a recommendation, before scoring."""

    title: str
    description: str
    difficulty: Difficulty
    content_type: ContentType
    estimated_duration_minutes: int
    reasoning: str = ""
    learning_objectives: list[str] = field(default_factory=list)


# =============================================================================
# Protocol Definitions
# =============================================================================


@runtime_checkable
class HistoryProvider(Protocol):
    """Read access to a learner's history, already filtered to that learner."""

    def recent_sessions(self, learner_id: str, limit: int) -> list[SessionRecord]:
        ...

    def recent_assessments(
        self, learner_id: str, limit: int, skill_id: str | None = None
    ) -> list[AssessmentRecord]:
        ...

    def recent_daily_analytics(self, learner_id: str, limit: int) -> list[DailyAnalytics]:
        ...

    def skills(self, learner_id: str) -> list[Skill]:
        """Skills ordered by ascending mastery."""
        ...

    def recommendations(self, learner_id: str) -> list[Recommendation]:
        ...


@runtime_checkable
class ContentGenerator(Protocol):
    """Produces structured learning content. Implementations may be slow."""

    async def generate_recommendation(
        self,
        skill: Skill,
        profile: LearnerPatternProfile,
        skill_assessments: Sequence[AssessmentRecord],
    ) -> RecommendationDraft:
        ...

    async def generate_activity(
        self,
        skill_id: str,
        difficulty: Difficulty,
        content_type: ContentType,
        duration_minutes: int,
        profile: LearnerPatternProfile | None = None,
    ) -> ActivityContent:
        ...


@runtime_checkable
class PersistenceSink(Protocol):
    """Write access for records. Failures raise; callers decide on retries."""

    def create(self, record: Any) -> None:
        ...

    def update(self, record_type: str, record_id: str, fields: dict[str, Any]) -> None:
        ...
