"""
Learner progress ledger.

- LearnerAccount: the single owner of a learner's token balances and experience
- accrue_daily_activity(): upsert today's analytics row after a session
- compute_streak(): consecutive active days ending today
- default_skill_catalog(): seed skills for a new learner
"""
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import asdict, dataclass
from datetime import date, timedelta
from typing import Any, ClassVar

from loguru import logger

from gnosis.core.models import DailyAnalytics, Skill, round_half_up
from gnosis.sync.outbox import Outbox

STARTING_EDU_TOKENS = 100
STARTING_LINK_TOKENS = 50


@dataclass
class LearnerAccount:
    """Token balances and experience for one learner."""

    record_type: ClassVar[str] = "learner_account"

    learner_id: str
    edu_tokens: int = STARTING_EDU_TOKENS
    link_tokens: int = STARTING_LINK_TOKENS
    total_experience: int = 0

    @property
    def id(self) -> str:
        return self.learner_id

    def credit_session(self, tokens: int, performance: float) -> dict[str, Any]:
        """
        Pay out a completed session.

        Adds `tokens` EDU and round(performance) experience.

        Returns:
            The changed fields

        Raises:
            ValueError: on a negative credit
        """
        if tokens < 0 or performance < 0:
            raise ValueError(f"Negative session credit: tokens={tokens}, performance={performance}")
        self.edu_tokens += tokens
        self.total_experience += round_half_up(performance)
        return {"edu_tokens": self.edu_tokens, "total_experience": self.total_experience}

    def credit_contribution(self, tokens: int) -> dict[str, Any]:
        if tokens < 0:
            raise ValueError(f"Negative contribution credit: {tokens}")
        self.link_tokens += tokens
        return {"link_tokens": self.link_tokens}

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# =============================================================================
# Daily Analytics
# =============================================================================


def compute_streak(days: Iterable[DailyAnalytics], today: date | None = None) -> int:
    """Number of consecutive days with learning time, ending today."""
    today = today or date.today()
    active = {d.date for d in days if d.total_learning_minutes > 0}

    streak = 0
    current = today
    while current in active:
        streak += 1
        current -= timedelta(days=1)
    return streak


def accrue_daily_activity(
    outbox: Outbox,
    recent_days: list[DailyAnalytics],
    learner_id: str,
    minutes: float,
    performance: float,
    skill_id: str,
    edu_tokens: int = 0,
    today: date | None = None,
) -> DailyAnalytics:
    """
    Fold a completed session into today's analytics row.

    Updates the existing row for today when `recent_days` has one,
    otherwise creates it. The streak is recomputed either way.
    """
    today = today or date.today()
    row = next((d for d in recent_days if d.learner_id == learner_id and d.date == today), None)
    is_new = row is None
    if row is None:
        row = DailyAnalytics(learner_id=learner_id, date=today)

    changes = row.accrue(minutes, performance, skill_id, edu_tokens)
    others = [d for d in recent_days if d is not row]
    row.streak_days = compute_streak([*others, row], today)
    changes["streak_days"] = row.streak_days

    if is_new:
        outbox.enqueue_create(row)
    else:
        outbox.enqueue_update(DailyAnalytics.record_type, row.id, changes)

    logger.debug(
        f"Daily analytics {learner_id} {today}: {row.total_learning_minutes:.1f} min, "
        f"{row.sessions_completed} sessions, streak {row.streak_days}"
    )
    return row


# =============================================================================
# Skill Catalog
# =============================================================================

# (skill_id, name, category, starting level, unlocked)
SKILL_CATALOG: list[tuple[str, str, str, int, bool]] = [
    ("math-arithmetic", "Arithmetic", "Mathematics", 1, True),
    ("math-algebra", "Algebra", "Mathematics", 0, False),
    ("math-geometry", "Geometry", "Mathematics", 0, False),
    ("math-calculus", "Differential Calculus", "Mathematics", 0, False),
    ("math-statistics", "Statistics", "Mathematics", 0, False),
    ("lang-french", "French", "Languages", 2, True),
    ("lang-english", "English", "Languages", 1, True),
    ("lang-spanish", "Spanish", "Languages", 0, False),
    ("lang-german", "German", "Languages", 0, False),
    ("science-physics", "Physics", "Science", 0, False),
    ("science-chemistry", "Chemistry", "Science", 0, False),
    ("science-biology", "Biology", "Science", 0, False),
    ("science-astronomy", "Astronomy", "Science", 0, False),
    ("prog-javascript", "JavaScript", "Programming", 0, False),
    ("prog-python", "Python", "Programming", 0, False),
    ("prog-react", "React", "Programming", 0, False),
    ("prog-ai-ml", "AI & Machine Learning", "Programming", 0, False),
    ("art-drawing", "Drawing", "Arts", 1, True),
    ("art-painting", "Painting", "Arts", 0, False),
    ("art-digital", "Digital Art", "Arts", 0, False),
    ("art-photography", "Photography", "Arts", 0, False),
    ("music-theory", "Music Theory", "Music", 0, False),
    ("music-piano", "Piano", "Music", 0, False),
    ("music-guitar", "Guitar", "Music", 0, False),
    ("business-marketing", "Marketing", "Business", 0, False),
    ("business-finance", "Finance", "Business", 0, False),
    ("business-management", "Management", "Business", 0, False),
]


def default_skill_catalog(learner_id: str) -> list[Skill]:
    """Starting skills for a new learner; mastery is level * 20."""
    return [
        Skill(
            learner_id=learner_id,
            skill_id=skill_id,
            name=name,
            category=category,
            current_level=level,
            mastery_percentage=level * 20,
            is_unlocked=unlocked,
        )
        for skill_id, name, category, level, unlocked in SKILL_CATALOG
    ]
