"""
Adaptive Learning Engine.

Components:
- pattern_analyzer: Learner pattern profile from bounded recent history
- prioritizer: Priority score for candidate skills
- RecommendationEngine: Analysis and recommendation orchestration
- AdaptiveSessionController: Real-time guided session state machine
"""
from gnosis.adaptive.pattern_analyzer import (
    CognitiveProfileSnapshot,
    WeeklyProgress,
    adaptation_score,
    analyze_learning_patterns,
    identify_improvement_areas,
    identify_strengths,
    weekly_progress,
)
from gnosis.adaptive.prioritizer import compute_priority_score, rank_recommendations, select_candidate_skills
from gnosis.adaptive.recommendation_engine import EngineStatus, RecommendationEngine
from gnosis.adaptive.session_controller import (
    ActiveSessionState,
    AdaptiveSessionController,
    LiveMetrics,
    SessionPayout,
    SessionStatus,
)

__all__ = [
    "ActiveSessionState",
    "AdaptiveSessionController",
    "CognitiveProfileSnapshot",
    "EngineStatus",
    "LiveMetrics",
    "RecommendationEngine",
    "SessionPayout",
    "SessionStatus",
    "WeeklyProgress",
    "adaptation_score",
    "analyze_learning_patterns",
    "compute_priority_score",
    "identify_improvement_areas",
    "identify_strengths",
    "rank_recommendations",
    "select_candidate_skills",
    "weekly_progress",
]
