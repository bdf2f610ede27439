from gnosis.core.errors import (
    CollaboratorUnavailableError,
    ContentGenerationError,
    GnosisError,
    PersistenceError,
    SessionStateError,
)
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
    TimeOfDay,
)

__all__ = [
    "AssessmentRecord",
    "CollaboratorUnavailableError",
    "ContentGenerationError",
    "ContentType",
    "DailyAnalytics",
    "Difficulty",
    "GnosisError",
    "LearnerPatternProfile",
    "PersistenceError",
    "Recommendation",
    "SessionRecord",
    "SessionStateError",
    "Skill",
    "StepKind",
    "TimeOfDay",
]
