"""
Recommendation Prioritizer.

Scores a candidate skill against the learner's pattern profile:

    score = 0.3 * (100 - mastery)
          + (30 if unlocked else 10)
          + 0.2 * (100 - mean assessment score)     # skipped without assessments
          + 20 * motivation
          + 15 * cognitive load
          + 10 * (best content effectiveness / 100)

and normalizes the sum into [0, 1] by dividing by 100. Low mastery and
unlocked status dominate urgency; the profile terms bias toward activities
the learner is currently equipped to handle.
"""
from __future__ import annotations

from collections.abc import Sequence

from gnosis.core.models import (
    AssessmentRecord,
    LearnerPatternProfile,
    Recommendation,
    Skill,
    clamp,
)

WEIGHT_MASTERY_GAP = 0.3
UNLOCKED_BONUS = 30.0
LOCKED_BONUS = 10.0
WEIGHT_SCORE_GAP = 0.2
WEIGHT_MOTIVATION = 20.0
WEIGHT_COGNITIVE_LOAD = 15.0
WEIGHT_CONTENT_FIT = 10.0


def priority_breakdown(
    skill: Skill,
    skill_assessments: Sequence[AssessmentRecord],
    profile: LearnerPatternProfile,
) -> dict[str, float]:
    """
    Individual weighted terms of the priority score (0-100 scale each).

    A skill without assessments contributes nothing for the score gap.
    """
    if skill_assessments:
        avg_score = sum(a.score for a in skill_assessments) / len(skill_assessments)
        score_gap = (100 - avg_score) * WEIGHT_SCORE_GAP
    else:
        score_gap = 0.0

    best = profile.best_content_type
    content_fit = (best[1] / 100) * WEIGHT_CONTENT_FIT if best else 0.0

    return {
        "mastery_gap": (100 - skill.mastery_percentage) * WEIGHT_MASTERY_GAP,
        "unlock_status": UNLOCKED_BONUS if skill.is_unlocked else LOCKED_BONUS,
        "score_gap": score_gap,
        "motivation": profile.motivation_level * WEIGHT_MOTIVATION,
        "cognitive_load": profile.cognitive_load * WEIGHT_COGNITIVE_LOAD,
        "content_fit": content_fit,
    }


def compute_priority_score(
    skill: Skill,
    skill_assessments: Sequence[AssessmentRecord],
    profile: LearnerPatternProfile,
) -> float:
    """
    Priority score for a candidate skill, clamped to [0, 1].

    Deterministic: identical inputs always yield identical scores.
    """
    total = sum(priority_breakdown(skill, skill_assessments, profile).values())
    return clamp(total / 100)


def select_candidate_skills(skills: Sequence[Skill], count: int) -> list[Skill]:
    """Lowest-mastery skills first; equal mastery keeps input order."""
    return sorted(skills, key=lambda s: s.mastery_percentage)[:count]


def rank_recommendations(recommendations: Sequence[Recommendation]) -> list[Recommendation]:
    """Descending priority; ties keep the original selection order."""
    return sorted(recommendations, key=lambda r: r.priority_score, reverse=True)
