"""
Recommendation Engine.

Orchestrates one learner's recommendation cycle:

1. analyze()  - pull bounded history, compute the pattern profile, queue a snapshot
2. generate() - pre-filter lowest-mastery skills, skip skills with a pending
                recommendation, draft content, score, queue, rank
3. accept() / complete() - one-way flags queued as updates

The engine holds no authoritative state: profiles are a per-learner cache
that is only refreshed on request, and every write goes through the outbox.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from loguru import logger

from config import Settings, get_settings
from gnosis.adaptive.pattern_analyzer import (
    CognitiveProfileSnapshot,
    analyze_learning_patterns,
    build_profile_snapshot,
)
from gnosis.adaptive.prioritizer import (
    compute_priority_score,
    rank_recommendations,
    select_candidate_skills,
)
from gnosis.core.models import LearnerPatternProfile, Recommendation
from gnosis.integrations.protocols import ContentGenerator, HistoryProvider
from gnosis.sync.outbox import Outbox


@dataclass
class EngineStatus:
    """Acceptance statistics over a learner's recommendations."""

    total_recommendations: int = 0
    accepted: int = 0
    acceptance_rate: float = 0.0  # 0-100
    adaptation_score: float = 0.0  # 0-95
    last_analysis: datetime | None = None


def compute_engine_status(recommendations: list[Recommendation]) -> EngineStatus:
    total = len(recommendations)
    if total == 0:
        return EngineStatus()

    accepted = sum(1 for r in recommendations if r.is_accepted)
    ratio = accepted / total
    return EngineStatus(
        total_recommendations=total,
        accepted=accepted,
        acceptance_rate=ratio * 100,
        adaptation_score=min(95.0, 60 + ratio * 35),
        last_analysis=max(r.created_at for r in recommendations),
    )


class RecommendationEngine:
    """
    Produce ranked next-activity recommendations for learners.

    Safe to share across learners; per-learner state is limited to the
    profile cache and the skills whose drafts are currently being generated.
    """

    def __init__(
        self,
        history: HistoryProvider,
        content: ContentGenerator,
        outbox: Outbox,
        settings: Settings | None = None,
    ):
        self.history = history
        self.content = content
        self.outbox = outbox
        self.settings = settings or get_settings()
        self._profiles: dict[str, LearnerPatternProfile] = {}
        self._in_flight: dict[str, set[str]] = {}

    # =========================================================================
    # Pattern Analysis
    # =========================================================================

    def analyze(self, learner_id: str) -> CognitiveProfileSnapshot:
        """Recompute the learner's pattern profile from bounded history."""
        limits = self.settings.get_history_limits()
        sessions = self.history.recent_sessions(learner_id, limits["sessions"])
        assessments = self.history.recent_assessments(learner_id, limits["assessments"])
        analytics = self.history.recent_daily_analytics(learner_id, limits["analytics"])

        profile = analyze_learning_patterns(sessions, assessments, analytics)
        self._profiles[learner_id] = profile

        snapshot = build_profile_snapshot(learner_id, profile)
        self.outbox.enqueue_create(snapshot)

        logger.info(
            f"Profile refreshed for {learner_id}: "
            f"{len(sessions)} sessions, {len(assessments)} assessments, {len(analytics)} days "
            f"(adaptation score {snapshot.adaptation_score:.1f})"
        )
        return snapshot

    def cached_profile(self, learner_id: str) -> LearnerPatternProfile | None:
        return self._profiles.get(learner_id)

    def profile_for(self, learner_id: str) -> LearnerPatternProfile:
        """Cached profile, computing it first when the learner has none yet."""
        profile = self._profiles.get(learner_id)
        if profile is None:
            profile = self.analyze(learner_id).patterns
        return profile

    # =========================================================================
    # Generation
    # =========================================================================

    def _pending_skill_ids(self, learner_id: str) -> set[str]:
        """Skills with a pending recommendation: stored, queued for delivery, or being drafted."""
        stored = {
            r.skill_id for r in self.history.recommendations(learner_id) if r.is_pending
        }
        queued = {
            intent.payload.skill_id
            for intent in self.outbox.pending
            if intent.action == "create"
            and intent.record_type == Recommendation.record_type
            and intent.payload.learner_id == learner_id
            and intent.payload.is_pending
        }
        return stored | queued | self._in_flight.setdefault(learner_id, set())

    async def generate(self, learner_id: str) -> list[Recommendation]:
        """
        Create recommendations for the learner's weakest skills.

        Skills that already have a pending recommendation are skipped, so
        overlapping calls for the same learner do not duplicate work.

        Returns:
            New recommendations, highest priority first

        Raises:
            ContentGenerationError: if the content generator fails; drafts
                created before the failure stay queued
        """
        profile = self.profile_for(learner_id)

        skills = self.history.skills(learner_id)
        candidates = select_candidate_skills(skills, self.settings.recommendation_candidate_count)

        pending = self._pending_skill_ids(learner_id)
        in_flight = self._in_flight[learner_id]

        selected = []
        for skill in candidates:
            if skill.skill_id in pending:
                logger.warning(f"Skipping {skill.skill_id}: recommendation already pending for {learner_id}")
                continue
            in_flight.add(skill.skill_id)
            selected.append(skill)

        created: list[Recommendation] = []
        try:
            for skill in selected:
                skill_assessments = self.history.recent_assessments(
                    learner_id, self.settings.skill_assessment_limit, skill_id=skill.skill_id
                )
                draft = await self.content.generate_recommendation(skill, profile, skill_assessments)

                recommendation = Recommendation(
                    learner_id=learner_id,
                    skill_id=skill.skill_id,
                    title=draft.title,
                    description=draft.description,
                    difficulty_level=draft.difficulty,
                    content_type=draft.content_type,
                    estimated_duration_minutes=draft.estimated_duration_minutes,
                    priority_score=compute_priority_score(skill, skill_assessments, profile),
                    reasoning=draft.reasoning,
                    learning_objectives=list(draft.learning_objectives),
                )
                self.outbox.enqueue_create(recommendation)
                created.append(recommendation)

                logger.info(
                    f"Recommendation for {learner_id}/{skill.skill_id}: "
                    f"'{recommendation.title}' priority={recommendation.priority_score:.3f}"
                )
        finally:
            # Drafted skills stay deduplicated through the outbox and the store
            for skill in selected:
                in_flight.discard(skill.skill_id)

        return rank_recommendations(created)

    # =========================================================================
    # Learner Actions
    # =========================================================================

    def accept(self, recommendation: Recommendation) -> bool:
        if not recommendation.accept():
            return False
        self.outbox.enqueue_update(
            Recommendation.record_type, recommendation.id, {"is_accepted": True}
        )
        return True

    def complete(self, recommendation: Recommendation) -> bool:
        if not recommendation.complete():
            return False
        self.outbox.enqueue_update(
            Recommendation.record_type,
            recommendation.id,
            {"is_accepted": True, "is_completed": True},
        )
        return True

    def engine_status(self, learner_id: str) -> EngineStatus:
        return compute_engine_status(self.history.recommendations(learner_id))
