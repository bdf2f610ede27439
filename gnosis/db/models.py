"""
Gnosis Storage Models.

SQLAlchemy tables backing the history provider and persistence sink:
- learning_sessions / assessments: activity history
- daily_analytics: per-day rollups
- learner_skills: mastery and unlock state
- recommendations: ranked suggestions and their accept/complete flags
- pattern_profiles: latest profile snapshot per learner
- learner_accounts: token balances and experience

JSON columns keep the schema portable between SQLite and Postgres.
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import JSON, Boolean, Date, Float, Index, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class LearningSessionRow(Base):
    __tablename__ = "learning_sessions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    learner_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    skill_id: Mapped[str] = mapped_column(String(128), nullable=False)
    content_format: Mapped[str] = mapped_column(String(32), nullable=False)
    started_at: Mapped[datetime] = mapped_column(nullable=False)
    duration_minutes: Mapped[float] = mapped_column(Float, default=0.0)
    completion_percentage: Mapped[float] = mapped_column(Float, default=0.0)
    performance_score: Mapped[float] = mapped_column(Float, default=0.0)
    edu_tokens_earned: Mapped[int] = mapped_column(Integer, default=0)
    completed_at: Mapped[datetime | None] = mapped_column()

    __table_args__ = (Index("idx_sessions_learner_started", "learner_id", "started_at"),)

    def __repr__(self) -> str:
        return f"<LearningSessionRow {self.id} learner={self.learner_id} skill={self.skill_id}>"


class AssessmentRow(Base):
    __tablename__ = "assessments"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    learner_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    skill_id: Mapped[str] = mapped_column(String(128), nullable=False)
    session_id: Mapped[str | None] = mapped_column(String(64))
    assessment_type: Mapped[str] = mapped_column(String(32), nullable=False)
    score: Mapped[float] = mapped_column(Float, nullable=False)
    difficulty_level: Mapped[str] = mapped_column(String(32), nullable=False)
    content_format: Mapped[str] = mapped_column(String(32), nullable=False)
    correct_answers: Mapped[int] = mapped_column(Integer, default=0)
    total_questions: Mapped[int] = mapped_column(Integer, default=0)
    time_taken_seconds: Mapped[float] = mapped_column(Float, default=0.0)
    cognitive_load_rating: Mapped[float | None] = mapped_column(Float)
    created_at: Mapped[datetime] = mapped_column(default=func.now())

    __table_args__ = (
        Index("idx_assessments_learner_created", "learner_id", "created_at"),
        Index("idx_assessments_learner_skill", "learner_id", "skill_id"),
    )


class DailyAnalyticsRow(Base):
    __tablename__ = "daily_analytics"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    learner_id: Mapped[str] = mapped_column(String(128), nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    total_learning_minutes: Mapped[float] = mapped_column(Float, default=0.0)
    avg_performance_score: Mapped[float] = mapped_column(Float, default=0.0)
    sessions_completed: Mapped[int] = mapped_column(Integer, default=0)
    streak_days: Mapped[int] = mapped_column(Integer, default=0)
    edu_tokens_earned: Mapped[int] = mapped_column(Integer, default=0)
    practiced_skill_ids: Mapped[list] = mapped_column(JSON, default=list)

    __table_args__ = (UniqueConstraint("learner_id", "date", name="uq_daily_analytics_learner_date"),)


class LearnerSkillRow(Base):
    __tablename__ = "learner_skills"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    learner_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    skill_id: Mapped[str] = mapped_column(String(128), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(64), nullable=False)
    current_level: Mapped[int] = mapped_column(Integer, default=0)
    max_level: Mapped[int] = mapped_column(Integer, default=5)
    mastery_percentage: Mapped[float] = mapped_column(Float, default=0.0)
    is_unlocked: Mapped[bool] = mapped_column(Boolean, default=False)

    __table_args__ = (UniqueConstraint("learner_id", "skill_id", name="uq_learner_skill"),)

    def __repr__(self) -> str:
        return f"<LearnerSkillRow learner={self.learner_id} skill={self.skill_id} mastery={self.mastery_percentage}>"


class RecommendationRow(Base):
    __tablename__ = "recommendations"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    learner_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    skill_id: Mapped[str] = mapped_column(String(128), nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    difficulty_level: Mapped[str] = mapped_column(String(32), nullable=False)
    content_type: Mapped[str] = mapped_column(String(32), nullable=False)
    estimated_duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    priority_score: Mapped[float] = mapped_column(Float, nullable=False)  # 0-1
    reasoning: Mapped[str] = mapped_column(Text, default="")
    learning_objectives: Mapped[list] = mapped_column(JSON, default=list)
    is_accepted: Mapped[bool] = mapped_column(Boolean, default=False)
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(default=func.now())

    __table_args__ = (Index("idx_recommendations_learner_skill", "learner_id", "skill_id"),)


class PatternProfileRow(Base):
    __tablename__ = "pattern_profiles"

    learner_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    patterns: Mapped[dict] = mapped_column(JSON, nullable=False)
    strengths: Mapped[list] = mapped_column(JSON, default=list)
    improvement_areas: Mapped[list] = mapped_column(JSON, default=list)
    adaptation_score: Mapped[float] = mapped_column(Float, default=0.0)
    last_updated: Mapped[datetime] = mapped_column(default=func.now())


class LearnerAccountRow(Base):
    __tablename__ = "learner_accounts"

    learner_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    edu_tokens: Mapped[int] = mapped_column(Integer, default=0)
    link_tokens: Mapped[int] = mapped_column(Integer, default=0)
    total_experience: Mapped[int] = mapped_column(Integer, default=0)
