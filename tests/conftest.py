"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests:
record factories, an in-memory history/persistence fake, a scripted
content generator and an in-memory SQLite repository.
"""
import sys
from datetime import date, datetime, timedelta
from pathlib import Path

import pytest
from sqlalchemy.orm import sessionmaker

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import Settings  # noqa: E402
from gnosis.core.errors import ContentGenerationError, PersistenceError  # noqa: E402
from gnosis.core.models import (  # noqa: E402
    AssessmentRecord,
    ContentType,
    DailyAnalytics,
    Difficulty,
    SessionRecord,
    Skill,
    StepKind,
)
from gnosis.db.database import build_engine, init_db  # noqa: E402
from gnosis.db.repository import SqlRepository  # noqa: E402
from gnosis.integrations.protocols import (  # noqa: E402
    ActivityContent,
    ActivityStep,
    RecommendationDraft,
)
from gnosis.sync.outbox import Outbox  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


# ========================================
# Fakes
# ========================================


class InMemoryStore:
    """HistoryProvider and PersistenceSink over plain lists."""

    def __init__(self):
        self.sessions: list[SessionRecord] = []
        self.assessments: list[AssessmentRecord] = []
        self.days: list[DailyAnalytics] = []
        self.skill_rows: list[Skill] = []
        self.recommendation_rows = []
        self.created = []
        self.updated = []
        self.fail_writes = 0

    # HistoryProvider

    def recent_sessions(self, learner_id, limit):
        rows = [s for s in self.sessions if s.learner_id == learner_id]
        return sorted(rows, key=lambda s: s.started_at, reverse=True)[:limit]

    def recent_assessments(self, learner_id, limit, skill_id=None):
        rows = [
            a for a in self.assessments
            if a.learner_id == learner_id and (skill_id is None or a.skill_id == skill_id)
        ]
        return sorted(rows, key=lambda a: a.created_at, reverse=True)[:limit]

    def recent_daily_analytics(self, learner_id, limit):
        rows = [d for d in self.days if d.learner_id == learner_id]
        return sorted(rows, key=lambda d: d.date, reverse=True)[:limit]

    def skills(self, learner_id):
        rows = [s for s in self.skill_rows if s.learner_id == learner_id]
        return sorted(rows, key=lambda s: s.mastery_percentage)

    def recommendations(self, learner_id):
        return [r for r in self.recommendation_rows if r.learner_id == learner_id]

    # PersistenceSink

    def create(self, record):
        if self.fail_writes:
            self.fail_writes -= 1
            raise PersistenceError("store offline")
        self.created.append(record)
        if record.record_type == "recommendation":
            self.recommendation_rows.append(record)

    def update(self, record_type, record_id, fields):
        if self.fail_writes:
            self.fail_writes -= 1
            raise PersistenceError("store offline")
        self.updated.append((record_type, record_id, dict(fields)))


class ScriptedContentGenerator:
    """ContentGenerator returning fixed drafts; can be told to fail per skill."""

    def __init__(self, fail_for=None):
        self.fail_for = set(fail_for or [])
        self.recommendation_calls = []
        self.activity_calls = []

    async def generate_recommendation(self, skill, profile, skill_assessments):
        self.recommendation_calls.append(skill.skill_id)
        if skill.skill_id in self.fail_for:
            raise ContentGenerationError(f"no draft for {skill.skill_id}")
        return RecommendationDraft(
            title=f"Practice {skill.name}",
            description=f"Work on {skill.name}",
            difficulty=Difficulty.BEGINNER,
            content_type=ContentType.INTERACTIVE,
            estimated_duration_minutes=30,
            reasoning="lowest mastery",
            learning_objectives=[f"Improve {skill.name}"],
        )

    async def generate_activity(self, skill_id, difficulty, content_type, duration_minutes, profile=None):
        self.activity_calls.append((skill_id, difficulty, content_type, duration_minutes))
        if skill_id in self.fail_for:
            raise ContentGenerationError(f"no activity for {skill_id}")
        return make_activity(5)


def make_activity(step_count, minutes=5.0):
    kinds = [StepKind.EXPLANATION, StepKind.EXERCISE, StepKind.QUIZ, StepKind.REFLECTION]
    return ActivityContent(
        title="Test activity",
        steps=[
            ActivityStep(
                step_id=f"step-{i}",
                kind=kinds[i % len(kinds)],
                title=f"Step {i + 1}",
                time_estimate_minutes=minutes,
            )
            for i in range(step_count)
        ],
    )


# ========================================
# Fixtures
# ========================================


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def learner_id():
    return "learner-123"


@pytest.fixture
def settings():
    """Settings isolated from the environment and any .env file."""
    return Settings(_env_file=None, database_url="sqlite://")


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def outbox():
    return Outbox()


@pytest.fixture
def content_generator():
    return ScriptedContentGenerator()


@pytest.fixture
def activity():
    """Provide a five-step activity with 5-minute steps."""
    return make_activity(5)


@pytest.fixture
def sql_repository():
    """SqlRepository over a fresh in-memory SQLite database."""
    engine = build_engine("sqlite://")
    init_db(engine)
    yield SqlRepository(sessionmaker(bind=engine, autoflush=False, expire_on_commit=False))
    engine.dispose()


@pytest.fixture
def make_session(learner_id):
    """Factory for completed SessionRecords."""

    def _make(
        skill_id="math-algebra",
        content_format="interactive",
        started_at=None,
        duration_minutes=30,
        performance_score=70,
    ):
        started_at = started_at or datetime(2024, 3, 4, 9, 0)
        return SessionRecord(
            learner_id=learner_id,
            skill_id=skill_id,
            content_format=content_format,
            started_at=started_at,
            duration_minutes=duration_minutes,
            completion_percentage=100,
            performance_score=performance_score,
            completed_at=started_at + timedelta(minutes=duration_minutes),
        )

    return _make


@pytest.fixture
def make_assessment(learner_id):
    """Factory for AssessmentRecords."""

    def _make(
        score=70,
        difficulty_level="beginner",
        skill_id="math-algebra",
        content_format="interactive",
        correct_answers=0,
        total_questions=0,
        time_taken_seconds=0.0,
        created_at=None,
    ):
        return AssessmentRecord(
            learner_id=learner_id,
            skill_id=skill_id,
            assessment_type="quiz",
            score=score,
            difficulty_level=difficulty_level,
            content_format=content_format,
            correct_answers=correct_answers,
            total_questions=total_questions,
            time_taken_seconds=time_taken_seconds,
            created_at=created_at or datetime(2024, 3, 4, 9, 30),
        )

    return _make


@pytest.fixture
def make_days(learner_id):
    """Factory for most-recent-first DailyAnalytics rows ending at `end`."""

    def _make(minutes, scores=None, end=date(2024, 3, 14)):
        scores = scores or [70.0] * len(minutes)
        return [
            DailyAnalytics(
                learner_id=learner_id,
                date=end - timedelta(days=offset),
                total_learning_minutes=m,
                avg_performance_score=s,
                sessions_completed=1 if m else 0,
            )
            for offset, (m, s) in enumerate(zip(minutes, scores))
        ]

    return _make


@pytest.fixture
def make_skill(learner_id):
    def _make(skill_id, mastery=0.0, unlocked=True, name=None):
        return Skill(
            learner_id=learner_id,
            skill_id=skill_id,
            name=name or skill_id.title(),
            category="Mathematics",
            mastery_percentage=mastery,
            is_unlocked=unlocked,
        )

    return _make


@pytest.fixture
def activity_factory():
    """Build activities of any length; step kinds cycle explanation, exercise, quiz, reflection."""
    return make_activity
