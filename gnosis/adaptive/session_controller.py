"""
Adaptive Session Controller.

Steps one learner through an ordered list of activity steps while adapting
difficulty and cognitive load in real time.

State machine:

    IDLE --start--> RUNNING <--toggle_pause--> PAUSED
                       |
                    advance (last step)
                       v
                   COMPLETED (terminal)

- The clock ticks once per second while RUNNING; PAUSED freezes it.
- advance() records the finished step, then moves on or completes.
- Live metrics refresh every 10 elapsed seconds.
- Persistence goes through the outbox; local progress never waits on it.
"""
from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from loguru import logger

from gnosis.core.errors import ContentGenerationError, SessionStateError
from gnosis.core.models import (
    AssessmentRecord,
    ContentType,
    Difficulty,
    LearnerPatternProfile,
    SessionRecord,
    clamp,
    clamp_percentage,
    round_half_up,
)
from gnosis.integrations.protocols import ActivityContent, ActivityStep, ContentGenerator
from gnosis.progress.ledger import LearnerAccount
from gnosis.sync.outbox import Outbox

# Thresholds on the running performance average (0-100)
PROMOTE_TO_INTERMEDIATE_ABOVE = 85.0
DEMOTE_TO_BEGINNER_BELOW = 60.0
PROMOTE_TO_ADVANCED_ABOVE = 90.0

FOCUS_THRESHOLD = 0.6
COGNITIVE_LOAD_STEP = 0.1
COGNITIVE_LOAD_FLOOR = 0.2

MAX_TIME_EFFICIENCY = 2.0
TOKENS_PER_MINUTE = 2


class SessionStatus(str, Enum):
    """Lifecycle state of a guided session."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"


@dataclass
class LiveMetrics:
    """
    Real-time estimates refreshed while a step runs.

    focus_score models attention decaying as a step overruns its budget;
    comprehension_rate and engagement_level are bounded random walks.
    """

    focus_score: float = 1.0
    comprehension_rate: float = 0.5
    engagement_level: float = 0.8
    learning_velocity: float = 1.0

    def to_dict(self) -> dict[str, float]:
        return {
            "focus_score": round(self.focus_score, 3),
            "comprehension_rate": round(self.comprehension_rate, 3),
            "engagement_level": round(self.engagement_level, 3),
            "learning_velocity": round(self.learning_velocity, 3),
        }


@dataclass
class ActiveSessionState:
    """In-memory state of one guided activity. Never persisted mid-run."""

    total_steps: int
    difficulty: Difficulty
    status: SessionStatus = SessionStatus.IDLE
    current_step_index: int = 0
    elapsed_seconds: int = 0
    step_elapsed_seconds: int = 0
    cognitive_load: float = 0.5
    running_performance_average: float = 0.0
    step_scores: list[int] = field(default_factory=list)
    adaptation_log: list[str] = field(default_factory=list)
    tokens_earned_so_far: int = 0
    started_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status in (SessionStatus.RUNNING, SessionStatus.PAUSED)

    @property
    def is_paused(self) -> bool:
        return self.status is SessionStatus.PAUSED

    def recent_adaptations(self, count: int = 3) -> list[str]:
        return self.adaptation_log[-count:]


@dataclass
class StepResult:
    step_index: int
    step_id: str
    performance_score: int
    time_efficiency: float
    actual_minutes: float
    expected_minutes: float


@dataclass
class SessionPayout:
    """Final reward and summary of a completed session."""

    base_tokens: int
    performance_bonus: int
    total_tokens: int
    duration_minutes: float = 0.0
    final_performance: float = 0.0
    adaptations: list[str] = field(default_factory=list)
    metrics: dict[str, float] = field(default_factory=dict)


# ============================================================================
# Pure Calculations
# ============================================================================


def compute_session_reward(total_elapsed_minutes: float, final_performance: float) -> SessionPayout:
    """
    Reward for a completed session.

    base  = round(2 * minutes)
    bonus = round(performance / 100 * base)
    """
    base_tokens = round_half_up(TOKENS_PER_MINUTE * total_elapsed_minutes)
    performance_bonus = round_half_up(final_performance / 100 * base_tokens)
    return SessionPayout(
        base_tokens=base_tokens,
        performance_bonus=performance_bonus,
        total_tokens=base_tokens + performance_bonus,
        duration_minutes=total_elapsed_minutes,
        final_performance=final_performance,
    )


def compute_step_performance(
    expected_minutes: float,
    actual_minutes: float,
    comprehension_rate: float,
    engagement_level: float,
) -> tuple[int, float]:
    """
    Score a finished step.

    time efficiency = min(2, expected / actual); an instant finish counts as 2.
    score = round(100 * (0.4 * efficiency + 0.3 * comprehension + 0.3 * engagement)),
    clamped to 0-100.

    Returns:
        (performance score, time efficiency)
    """
    if actual_minutes > 0:
        time_efficiency = min(MAX_TIME_EFFICIENCY, expected_minutes / actual_minutes)
    else:
        time_efficiency = MAX_TIME_EFFICIENCY

    raw = 100 * (0.4 * time_efficiency + 0.3 * comprehension_rate + 0.3 * engagement_level)
    return int(clamp_percentage(round_half_up(raw))), time_efficiency


def refresh_live_metrics(
    previous: LiveMetrics,
    step_elapsed_minutes: float,
    expected_minutes: float,
    rng: random.Random,
) -> LiveMetrics:
    """Next live-metric estimate for the current step."""
    return LiveMetrics(
        focus_score=clamp(1.2 - step_elapsed_minutes / expected_minutes, 0.3, 1.0),
        comprehension_rate=clamp(previous.comprehension_rate + (rng.random() - 0.3) * 0.1),
        engagement_level=clamp(previous.engagement_level + (rng.random() - 0.4) * 0.2, 0.4, 1.0),
        learning_velocity=expected_minutes / max(step_elapsed_minutes, 0.5),
    )


def next_difficulty(average: float, difficulty: Difficulty) -> tuple[Difficulty, str] | None:
    """
    Difficulty transition for the running average, if any.

    Each rule tests a different starting level, so at most one fires.
    """
    if average > PROMOTE_TO_INTERMEDIATE_ABOVE and difficulty is Difficulty.BEGINNER:
        return Difficulty.INTERMEDIATE, "Difficulty raised to intermediate"
    if average < DEMOTE_TO_BEGINNER_BELOW and difficulty is Difficulty.INTERMEDIATE:
        return Difficulty.BEGINNER, "Difficulty lowered to beginner"
    if average > PROMOTE_TO_ADVANCED_ABOVE and difficulty is Difficulty.INTERMEDIATE:
        return Difficulty.ADVANCED, "Difficulty raised to advanced"
    return None


# ============================================================================
# Controller
# ============================================================================


class AdaptiveSessionController:
    """
    Run one guided activity for one learner.

    One controller per learner activity. All operations except the clock
    loop are synchronous against in-memory state.

    Usage:
        controller = await AdaptiveSessionController.prepare(generator, ...)
        controller.start()
        clock = asyncio.create_task(controller.run_clock())
        ...
        controller.advance()
    """

    def __init__(
        self,
        learner_id: str,
        skill_id: str,
        content: ActivityContent,
        difficulty: Difficulty,
        content_type: ContentType,
        outbox: Outbox | None = None,
        account: LearnerAccount | None = None,
        rng: random.Random | None = None,
        metrics_refresh_seconds: int = 10,
        default_step_minutes: float = 5.0,
        initial_cognitive_load: float = 0.5,
        recommendation_id: str | None = None,
    ):
        if not content.steps:
            raise ContentGenerationError(f"Activity '{content.title}' has no steps")

        self.learner_id = learner_id
        self.skill_id = skill_id
        self.content = content
        self.content_type = content_type
        self.outbox = outbox
        self.account = account
        self.recommendation_id = recommendation_id
        self.metrics_refresh_seconds = metrics_refresh_seconds
        self.default_step_minutes = default_step_minutes

        self._rng = rng or random.Random()
        self.metrics = LiveMetrics()
        self.state = ActiveSessionState(
            total_steps=len(content.steps),
            difficulty=difficulty,
            cognitive_load=clamp(initial_cognitive_load),
        )
        self.step_results: list[StepResult] = []
        self.session_record: SessionRecord | None = None
        self.payout: SessionPayout | None = None

    @classmethod
    async def prepare(
        cls,
        generator: ContentGenerator,
        learner_id: str,
        skill_id: str,
        difficulty: Difficulty,
        content_type: ContentType,
        duration_minutes: int,
        profile: LearnerPatternProfile | None = None,
        **kwargs: Any,
    ) -> AdaptiveSessionController:
        """
        Fetch activity content and build a controller for it.

        Raises:
            ContentGenerationError: if the generator fails or returns no steps
        """
        content = await generator.generate_activity(
            skill_id, difficulty, content_type, duration_minutes, profile
        )
        logger.info(f"Prepared '{content.title}' for {learner_id}: {len(content.steps)} steps")
        return cls(learner_id, skill_id, content, difficulty, content_type, **kwargs)

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def status(self) -> SessionStatus:
        return self.state.status

    @property
    def current_step(self) -> ActivityStep:
        return self.content.steps[self.state.current_step_index]

    def _expected_minutes(self, step: ActivityStep) -> float:
        return step.time_estimate_minutes or self.default_step_minutes

    # =========================================================================
    # Transitions
    # =========================================================================

    def start(self, now: datetime | None = None) -> None:
        """IDLE -> RUNNING. Records the start time and opens the session record."""
        if self.state.status is not SessionStatus.IDLE:
            raise SessionStateError("start", self.state.status.value)

        self.state.started_at = now or datetime.now()
        self.state.status = SessionStatus.RUNNING

        self.session_record = SessionRecord(
            learner_id=self.learner_id,
            skill_id=self.skill_id,
            content_format=self.content_type.value,
            started_at=self.state.started_at,
        )
        if self.outbox is not None:
            self.outbox.enqueue_create(self.session_record)

        logger.info(
            f"Session started: {self.learner_id}/{self.skill_id} "
            f"({self.state.total_steps} steps, {self.state.difficulty.value})"
        )

    def toggle_pause(self) -> bool:
        """
        RUNNING <-> PAUSED. Only freezes or unfreezes the clock.

        Returns:
            True if the session is now paused
        """
        if self.state.status is SessionStatus.RUNNING:
            self.state.status = SessionStatus.PAUSED
        elif self.state.status is SessionStatus.PAUSED:
            self.state.status = SessionStatus.RUNNING
        else:
            raise SessionStateError("pause", self.state.status.value)

        logger.debug(f"Session {'paused' if self.state.is_paused else 'resumed'} at {self.state.elapsed_seconds}s")
        return self.state.is_paused

    def advance(self) -> bool:
        """
        Finish the current step, then move to the next one or complete.

        Ignored while paused.

        Returns:
            True if the step was finished, False if the call was ignored
        """
        if self.state.status is SessionStatus.PAUSED:
            return False
        if self.state.status is not SessionStatus.RUNNING:
            raise SessionStateError("advance", self.state.status.value)

        self._record_step_performance()
        self._adapt()

        if self.state.current_step_index >= self.state.total_steps - 1:
            self._complete()
        else:
            self.state.current_step_index += 1
            self.state.step_elapsed_seconds = 0
        return True

    # =========================================================================
    # Clock
    # =========================================================================

    def tick(self) -> bool:
        """
        Advance the clock by one second if running.

        Returns:
            True if time advanced
        """
        if self.state.status is not SessionStatus.RUNNING:
            return False

        self.state.elapsed_seconds += 1
        self.state.step_elapsed_seconds += 1

        if self.state.elapsed_seconds % self.metrics_refresh_seconds == 0:
            self._refresh_metrics()
        return True

    def advance_time(self, seconds: int) -> int:
        """Apply `seconds` ticks; returns how many actually counted."""
        return sum(1 for _ in range(seconds) if self.tick())

    async def run_clock(self, tick_seconds: float = 1.0) -> None:
        """Tick once per `tick_seconds` until the session completes."""
        while self.state.status is not SessionStatus.COMPLETED:
            await asyncio.sleep(tick_seconds)
            self.tick()

    def _refresh_metrics(self) -> None:
        step_minutes = self.state.step_elapsed_seconds / 60
        self.metrics = refresh_live_metrics(
            self.metrics, step_minutes, self._expected_minutes(self.current_step), self._rng
        )
        logger.debug(f"Live metrics at {self.state.elapsed_seconds}s: {self.metrics.to_dict()}")

    # =========================================================================
    # Step Recording & Adaptation
    # =========================================================================

    def _record_step_performance(self) -> StepResult:
        step = self.current_step
        expected = self._expected_minutes(step)
        actual = self.state.step_elapsed_seconds / 60

        score, efficiency = compute_step_performance(
            expected, actual, self.metrics.comprehension_rate, self.metrics.engagement_level
        )

        self.state.step_scores.append(score)
        self.state.running_performance_average = sum(self.state.step_scores) / len(self.state.step_scores)

        result = StepResult(
            step_index=self.state.current_step_index,
            step_id=step.step_id,
            performance_score=score,
            time_efficiency=efficiency,
            actual_minutes=actual,
            expected_minutes=expected,
        )
        self.step_results.append(result)

        if self.outbox is not None:
            self.outbox.enqueue_create(
                AssessmentRecord(
                    learner_id=self.learner_id,
                    skill_id=self.skill_id,
                    assessment_type=step.kind.value,
                    score=score,
                    difficulty_level=self.state.difficulty.value,
                    content_format=self.content_type.value,
                    time_taken_seconds=self.state.step_elapsed_seconds,
                    cognitive_load_rating=self.metrics.focus_score,
                    session_id=self.session_record.id if self.session_record else None,
                )
            )

        logger.debug(
            f"Step {result.step_index + 1}/{self.state.total_steps} scored {score} "
            f"(efficiency {efficiency:.2f}, average {self.state.running_performance_average:.1f})"
        )
        return result

    def _adapt(self) -> None:
        transition = next_difficulty(self.state.running_performance_average, self.state.difficulty)
        if transition is not None:
            self.state.difficulty, message = transition
            self._log_adaptation(message)

        if self.metrics.focus_score < FOCUS_THRESHOLD:
            reduced = max(COGNITIVE_LOAD_FLOOR, round(self.state.cognitive_load - COGNITIVE_LOAD_STEP, 2))
            if reduced < self.state.cognitive_load:
                self.state.cognitive_load = reduced
                self._log_adaptation(f"Cognitive load reduced to {reduced:.1f}")

    def _log_adaptation(self, message: str) -> None:
        self.state.adaptation_log.append(message)
        logger.info(f"Adaptation at step {self.state.current_step_index + 1}: {message}")

    # =========================================================================
    # Completion
    # =========================================================================

    def _complete(self) -> SessionPayout:
        minutes = self.state.elapsed_seconds / 60
        payout = compute_session_reward(minutes, self.state.running_performance_average)
        payout.adaptations = list(self.state.adaptation_log)
        payout.metrics = self.metrics.to_dict()

        self.state.status = SessionStatus.COMPLETED
        self.state.tokens_earned_so_far = payout.total_tokens
        self.payout = payout

        if self.session_record is not None:
            changes = self.session_record.finalize(
                duration_minutes=round_half_up(minutes),
                performance_score=round_half_up(payout.final_performance),
                edu_tokens_earned=payout.total_tokens,
            )
            if self.outbox is not None:
                self.outbox.enqueue_update(SessionRecord.record_type, self.session_record.id, changes)

        if self.account is not None:
            changes = self.account.credit_session(payout.total_tokens, payout.final_performance)
            if self.outbox is not None:
                self.outbox.enqueue_update(LearnerAccount.record_type, self.account.id, changes)

        logger.info(
            f"Session complete: {self.learner_id}/{self.skill_id} {minutes:.1f} min, "
            f"performance {payout.final_performance:.1f}, tokens {payout.total_tokens} "
            f"({payout.base_tokens} + {payout.performance_bonus} bonus)"
        )
        return payout
