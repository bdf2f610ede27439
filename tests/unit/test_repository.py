"""
Unit tests for the SQL repository over in-memory SQLite.
"""
from datetime import date, datetime, timedelta

import pytest
from sqlalchemy import select

from gnosis.adaptive.pattern_analyzer import build_profile_snapshot
from gnosis.core.errors import PersistenceError
from gnosis.core.models import (
    ContentType,
    DailyAnalytics,
    Difficulty,
    LearnerPatternProfile,
    Recommendation,
)
from gnosis.db.models import PatternProfileRow
from gnosis.integrations.protocols import HistoryProvider, PersistenceSink
from gnosis.progress.ledger import LearnerAccount
from gnosis.sync.outbox import Outbox, SyncWorker


class TestProtocols:

    def test_implements_both_collaborators(self, sql_repository):
        assert isinstance(sql_repository, HistoryProvider)
        assert isinstance(sql_repository, PersistenceSink)


class TestSessions:

    def test_most_recent_first_and_bounded(self, sql_repository, make_session, learner_id):
        base = datetime(2024, 3, 1, 9, 0)
        for offset in range(5):
            sql_repository.create(make_session(started_at=base + timedelta(days=offset)))

        sessions = sql_repository.recent_sessions(learner_id, 3)

        assert [s.started_at.day for s in sessions] == [5, 4, 3]

    def test_filtered_to_learner(self, sql_repository, make_session):
        sql_repository.create(make_session())
        assert sql_repository.recent_sessions("someone-else", 10) == []

    def test_update_finalizes(self, sql_repository, make_session, learner_id):
        record = make_session()
        record.completed_at = None
        sql_repository.create(record)

        changes = record.finalize(duration_minutes=12, performance_score=81, edu_tokens_earned=44)
        sql_repository.update("session", record.id, changes)

        stored = sql_repository.recent_sessions(learner_id, 1)[0]
        assert stored.performance_score == 81
        assert stored.edu_tokens_earned == 44
        assert stored.is_final

    def test_update_missing_record_raises(self, sql_repository):
        with pytest.raises(PersistenceError):
            sql_repository.update("session", "missing", {"performance_score": 1})

    def test_unknown_record_type_raises(self, sql_repository):
        with pytest.raises(PersistenceError):
            sql_repository.update("badge", "x", {})


class TestAssessments:

    def test_skill_filter(self, sql_repository, make_assessment, learner_id):
        sql_repository.create(make_assessment(skill_id="math-algebra", score=60))
        sql_repository.create(make_assessment(skill_id="math-geometry", score=90))

        algebra = sql_repository.recent_assessments(learner_id, 10, skill_id="math-algebra")

        assert [a.score for a in algebra] == [60]
        assert len(sql_repository.recent_assessments(learner_id, 10)) == 2

    def test_redelivered_create_is_harmless(self, sql_repository, make_assessment, learner_id):
        assessment = make_assessment()
        sql_repository.create(assessment)
        sql_repository.create(assessment)

        assert len(sql_repository.recent_assessments(learner_id, 10)) == 1


class TestSkillsAndAnalytics:

    def test_skills_ascending_mastery(self, sql_repository, make_skill, learner_id):
        for skill_id, mastery in [("a", 50), ("b", 10), ("c", 30)]:
            sql_repository.create(make_skill(skill_id, mastery=mastery))

        assert [s.skill_id for s in sql_repository.skills(learner_id)] == ["b", "c", "a"]

    def test_daily_analytics_round_trip(self, sql_repository, learner_id):
        day = DailyAnalytics(learner_id=learner_id, date=date(2024, 3, 14))
        day.accrue(25, 80, "math-algebra", edu_tokens=12)
        sql_repository.create(day)

        stored = sql_repository.recent_daily_analytics(learner_id, 30)[0]
        assert stored.practiced_skill_ids == ["math-algebra"]
        assert stored.total_learning_minutes == 25


class TestRecommendationsAndProfiles:

    def test_recommendation_flags_update(self, sql_repository, learner_id):
        recommendation = Recommendation(
            learner_id=learner_id,
            skill_id="math-algebra",
            title="Algebra drills",
            description="",
            difficulty_level=Difficulty.INTERMEDIATE,
            content_type=ContentType.READING,
            estimated_duration_minutes=30,
            priority_score=0.72,
            learning_objectives=["Solve linear equations"],
        )
        sql_repository.create(recommendation)
        sql_repository.update("recommendation", recommendation.id, {"is_accepted": True})

        stored = sql_repository.recommendations(learner_id)[0]
        assert stored.difficulty_level == Difficulty.INTERMEDIATE
        assert stored.learning_objectives == ["Solve linear equations"]
        assert stored.is_accepted and not stored.is_completed

    def test_profile_snapshot_replaces_previous(self, sql_repository, learner_id):
        sql_repository.create(build_profile_snapshot(learner_id, LearnerPatternProfile()))
        sql_repository.create(build_profile_snapshot(learner_id, LearnerPatternProfile(motivation_level=0.9)))

        with sql_repository._scope() as session:
            rows = session.scalars(select(PatternProfileRow)).all()
            assert len(rows) == 1
            assert rows[0].patterns["motivation_level"] == 0.9


class TestAccounts:

    def test_ensure_learner_seeds_once(self, sql_repository, learner_id):
        account = sql_repository.ensure_learner(learner_id)
        account.credit_session(10, 50)
        sql_repository.update(LearnerAccount.record_type, learner_id, {"edu_tokens": account.edu_tokens})

        again = sql_repository.ensure_learner(learner_id)

        assert again.edu_tokens == 110
        assert len(sql_repository.skills(learner_id)) == 27

    def test_outbox_delivery(self, sql_repository, make_session, learner_id):
        outbox = Outbox()
        record = make_session()
        outbox.enqueue_create(record)
        outbox.enqueue_update("session", record.id, {"performance_score": 95})

        result = SyncWorker(outbox, sql_repository).flush()

        assert result.delivered == 2
        assert sql_repository.recent_sessions(learner_id, 1)[0].performance_score == 95
