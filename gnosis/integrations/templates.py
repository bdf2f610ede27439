"""
Offline content generator.

Deterministic stand-in for the remote content service: every activity is
five progressive steps splitting the target duration evenly, and
recommendation drafts are derived from the learner's pattern profile.
Used whenever no content service URL is configured.
"""

from __future__ import annotations

from collections.abc import Sequence

from gnosis.core.models import (
    AssessmentRecord,
    ContentType,
    Difficulty,
    LearnerPatternProfile,
    Skill,
    StepKind,
)
from gnosis.integrations.protocols import ActivityContent, ActivityStep, RecommendationDraft

# (kind, title, relative cognitive load)
STEP_TEMPLATES: list[tuple[StepKind, str, float]] = [
    (StepKind.EXPLANATION, "Introduction", 0.4),
    (StepKind.EXPLANATION, "Worked demonstration", 0.5),
    (StepKind.EXERCISE, "Guided exercise", 0.7),
    (StepKind.QUIZ, "Check your understanding", 0.6),
    (StepKind.REFLECTION, "Reflection and summary", 0.3),
]

DIFFICULTY_LOAD_OFFSET = {
    Difficulty.BEGINNER: -0.1,
    Difficulty.INTERMEDIATE: 0.0,
    Difficulty.ADVANCED: 0.1,
}


class TemplateContentGenerator:
    """ContentGenerator that needs no network access."""

    async def generate_recommendation(
        self,
        skill: Skill,
        profile: LearnerPatternProfile,
        skill_assessments: Sequence[AssessmentRecord],
    ) -> RecommendationDraft:
        difficulty = Difficulty.from_numeric(profile.preferred_difficulty)
        best = profile.best_content_type
        content_type = ContentType(best[0]) if best else ContentType.INTERACTIVE
        duration = profile.optimal_session_duration_minutes

        reasons = [f"mastery is at {skill.mastery_percentage:.0f}%"]
        if skill_assessments:
            avg = sum(a.score for a in skill_assessments) / len(skill_assessments)
            reasons.append(f"recent assessments average {avg:.0f}")
        if best:
            reasons.append(f"{best[0]} content works best for you ({best[1]:.0f}% effective)")

        return RecommendationDraft(
            title=f"{skill.name}: {difficulty.value} {content_type.value} session",
            description=(
                f"A {duration}-minute {content_type.value} activity to strengthen "
                f"{skill.name} ({skill.category})."
            ),
            difficulty=difficulty,
            content_type=content_type,
            estimated_duration_minutes=duration,
            reasoning="; ".join(reasons).capitalize(),
            learning_objectives=[
                f"Review the core ideas of {skill.name}",
                f"Apply {skill.name} in a guided exercise",
                f"Reach level {min(skill.max_level, skill.current_level + 1)} in {skill.name}",
            ],
        )

    async def generate_activity(
        self,
        skill_id: str,
        difficulty: Difficulty,
        content_type: ContentType,
        duration_minutes: int,
        profile: LearnerPatternProfile | None = None,
    ) -> ActivityContent:
        per_step = max(1.0, duration_minutes / len(STEP_TEMPLATES))
        offset = DIFFICULTY_LOAD_OFFSET[difficulty]

        steps = [
            ActivityStep(
                step_id=f"step-{index}",
                kind=kind,
                title=title,
                body=f"{title} for {skill_id} ({difficulty.value}, {content_type.value}).",
                time_estimate_minutes=per_step,
                cognitive_load=round(min(1.0, max(0.0, load + offset)), 2),
            )
            for index, (kind, title, load) in enumerate(STEP_TEMPLATES)
        ]
        return ActivityContent(
            title=f"{skill_id} - {difficulty.value} {content_type.value} session",
            steps=steps,
            objectives=[f"Practice {skill_id} at {difficulty.value} level"],
        )
