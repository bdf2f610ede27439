"""
SQL-backed learner history and persistence.

SqlRepository implements both HistoryProvider and PersistenceSink on top of
the tables in gnosis.db.models. Reads are bounded and most-recent-first;
writes are create-or-replace by primary key, so a redelivered create from
the outbox is harmless.
"""

from __future__ import annotations

from typing import Any

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from gnosis.core.errors import PersistenceError
from gnosis.core.models import (
    AssessmentRecord,
    ContentType,
    DailyAnalytics,
    Difficulty,
    Recommendation,
    SessionRecord,
    Skill,
)
from gnosis.db.database import session_scope
from gnosis.db.models import (
    AssessmentRow,
    Base,
    DailyAnalyticsRow,
    LearnerAccountRow,
    LearnerSkillRow,
    LearningSessionRow,
    PatternProfileRow,
    RecommendationRow,
)
from gnosis.progress.ledger import LearnerAccount, default_skill_catalog

ROW_TYPES: dict[str, type[Base]] = {
    "session": LearningSessionRow,
    "assessment": AssessmentRow,
    "daily_analytics": DailyAnalyticsRow,
    "skill": LearnerSkillRow,
    "recommendation": RecommendationRow,
    "pattern_profile": PatternProfileRow,
    "learner_account": LearnerAccountRow,
}


class SqlRepository:
    """History provider and persistence sink backed by SQLAlchemy."""

    def __init__(self, session_factory: sessionmaker[Session] | None = None):
        self._session_factory = session_factory

    def _scope(self):
        return session_scope(self._session_factory)

    # =========================================================================
    # PersistenceSink
    # =========================================================================

    def create(self, record: Any) -> None:
        row_type = self._row_type(record.record_type)
        try:
            with self._scope() as session:
                session.merge(row_type(**record.to_dict()))
        except SQLAlchemyError as e:
            raise PersistenceError(f"create {record.record_type}/{record.id} failed", cause=e) from e

    def update(self, record_type: str, record_id: str, fields: dict[str, Any]) -> None:
        row_type = self._row_type(record_type)
        try:
            with self._scope() as session:
                row = session.get(row_type, record_id)
                if row is None:
                    raise PersistenceError(f"update {record_type}/{record_id}: no such record")
                for key, value in fields.items():
                    setattr(row, key, value)
        except SQLAlchemyError as e:
            raise PersistenceError(f"update {record_type}/{record_id} failed", cause=e) from e

    @staticmethod
    def _row_type(record_type: str) -> type[Base]:
        try:
            return ROW_TYPES[record_type]
        except KeyError:
            raise PersistenceError(f"unknown record type '{record_type}'") from None

    # =========================================================================
    # HistoryProvider
    # =========================================================================

    def recent_sessions(self, learner_id: str, limit: int) -> list[SessionRecord]:
        with self._scope() as session:
            rows = session.scalars(
                select(LearningSessionRow)
                .where(LearningSessionRow.learner_id == learner_id)
                .order_by(LearningSessionRow.started_at.desc())
                .limit(limit)
            ).all()
            return [
                SessionRecord(
                    id=row.id,
                    learner_id=row.learner_id,
                    skill_id=row.skill_id,
                    content_format=row.content_format,
                    started_at=row.started_at,
                    duration_minutes=row.duration_minutes or 0.0,
                    completion_percentage=row.completion_percentage or 0.0,
                    performance_score=row.performance_score or 0.0,
                    edu_tokens_earned=row.edu_tokens_earned or 0,
                    completed_at=row.completed_at,
                )
                for row in rows
            ]

    def recent_assessments(
        self, learner_id: str, limit: int, skill_id: str | None = None
    ) -> list[AssessmentRecord]:
        query = select(AssessmentRow).where(AssessmentRow.learner_id == learner_id)
        if skill_id is not None:
            query = query.where(AssessmentRow.skill_id == skill_id)

        with self._scope() as session:
            rows = session.scalars(query.order_by(AssessmentRow.created_at.desc()).limit(limit)).all()
            return [
                AssessmentRecord(
                    id=row.id,
                    learner_id=row.learner_id,
                    skill_id=row.skill_id,
                    assessment_type=row.assessment_type,
                    score=row.score,
                    difficulty_level=row.difficulty_level,
                    content_format=row.content_format,
                    correct_answers=row.correct_answers or 0,
                    total_questions=row.total_questions or 0,
                    time_taken_seconds=row.time_taken_seconds or 0.0,
                    cognitive_load_rating=row.cognitive_load_rating,
                    session_id=row.session_id,
                    created_at=row.created_at,
                )
                for row in rows
            ]

    def recent_daily_analytics(self, learner_id: str, limit: int) -> list[DailyAnalytics]:
        with self._scope() as session:
            rows = session.scalars(
                select(DailyAnalyticsRow)
                .where(DailyAnalyticsRow.learner_id == learner_id)
                .order_by(DailyAnalyticsRow.date.desc())
                .limit(limit)
            ).all()
            return [
                DailyAnalytics(
                    id=row.id,
                    learner_id=row.learner_id,
                    date=row.date,
                    total_learning_minutes=row.total_learning_minutes or 0.0,
                    avg_performance_score=row.avg_performance_score or 0.0,
                    sessions_completed=row.sessions_completed or 0,
                    streak_days=row.streak_days or 0,
                    edu_tokens_earned=row.edu_tokens_earned or 0,
                    practiced_skill_ids=list(row.practiced_skill_ids or []),
                )
                for row in rows
            ]

    def skills(self, learner_id: str) -> list[Skill]:
        with self._scope() as session:
            rows = session.scalars(
                select(LearnerSkillRow)
                .where(LearnerSkillRow.learner_id == learner_id)
                .order_by(LearnerSkillRow.mastery_percentage.asc(), LearnerSkillRow.skill_id)
            ).all()
            return [
                Skill(
                    id=row.id,
                    learner_id=row.learner_id,
                    skill_id=row.skill_id,
                    name=row.name,
                    category=row.category,
                    current_level=row.current_level or 0,
                    max_level=row.max_level or 5,
                    mastery_percentage=row.mastery_percentage or 0.0,
                    is_unlocked=bool(row.is_unlocked),
                )
                for row in rows
            ]

    def recommendations(self, learner_id: str) -> list[Recommendation]:
        with self._scope() as session:
            rows = session.scalars(
                select(RecommendationRow)
                .where(RecommendationRow.learner_id == learner_id)
                .order_by(RecommendationRow.created_at.desc())
            ).all()
            return [
                Recommendation(
                    id=row.id,
                    learner_id=row.learner_id,
                    skill_id=row.skill_id,
                    title=row.title,
                    description=row.description or "",
                    difficulty_level=Difficulty(row.difficulty_level),
                    content_type=ContentType(row.content_type),
                    estimated_duration_minutes=row.estimated_duration_minutes,
                    priority_score=row.priority_score,
                    reasoning=row.reasoning or "",
                    learning_objectives=list(row.learning_objectives or []),
                    is_accepted=bool(row.is_accepted),
                    is_completed=bool(row.is_completed),
                    created_at=row.created_at,
                )
                for row in rows
            ]

    # =========================================================================
    # Accounts
    # =========================================================================

    def account(self, learner_id: str) -> LearnerAccount | None:
        with self._scope() as session:
            row = session.get(LearnerAccountRow, learner_id)
            if row is None:
                return None
            return LearnerAccount(
                learner_id=row.learner_id,
                edu_tokens=row.edu_tokens,
                link_tokens=row.link_tokens,
                total_experience=row.total_experience,
            )

    def ensure_learner(self, learner_id: str) -> LearnerAccount:
        """Load the learner's account, creating it and the starter skills on first use."""
        existing = self.account(learner_id)
        if existing is not None:
            return existing

        account = LearnerAccount(learner_id=learner_id)
        self.create(account)
        for skill in default_skill_catalog(learner_id):
            self.create(skill)
        logger.info(f"New learner {learner_id}: starting balance {account.edu_tokens} EDU / {account.link_tokens} LINK")
        return account
