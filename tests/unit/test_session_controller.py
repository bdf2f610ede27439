"""
Unit tests for the adaptive session controller.

Time is driven through tick()/advance_time(), so no test depends on the
wall clock except the run_clock loop tests.
"""
import asyncio
import random

import pytest

from gnosis.adaptive.session_controller import (
    AdaptiveSessionController,
    LiveMetrics,
    SessionStatus,
    compute_session_reward,
    compute_step_performance,
    next_difficulty,
    refresh_live_metrics,
)
from gnosis.core.errors import ContentGenerationError, SessionStateError
from gnosis.core.models import ContentType, Difficulty
from gnosis.integrations.protocols import ActivityContent
from gnosis.progress.ledger import LearnerAccount


class FixedRandom(random.Random):
    """random() always returns the same value."""

    def __init__(self, value):
        super().__init__(0)
        self.value = value

    def random(self):
        return self.value


def _controller(content, difficulty=Difficulty.BEGINNER, outbox=None, account=None, refresh=10_000):
    return AdaptiveSessionController(
        learner_id="learner-123",
        skill_id="math-fractions",
        content=content,
        difficulty=difficulty,
        content_type=ContentType.INTERACTIVE,
        outbox=outbox,
        account=account,
        rng=random.Random(7),
        metrics_refresh_seconds=refresh,
    )


def _finish_step(controller, seconds, comprehension, engagement, focus=1.0):
    controller.advance_time(seconds)
    controller.metrics = LiveMetrics(
        focus_score=focus,
        comprehension_rate=comprehension,
        engagement_level=engagement,
    )
    return controller.advance()


@pytest.fixture
def controller(activity, outbox):
    return _controller(activity, outbox=outbox)


class TestTransitions:
    """State machine: Idle -> Running <-> Paused -> Completed."""

    def test_starts_idle(self, controller):
        assert controller.status == SessionStatus.IDLE
        assert not controller.state.is_active

    def test_start_records_session(self, controller, outbox):
        controller.start()

        assert controller.status == SessionStatus.RUNNING
        assert controller.state.started_at is not None
        assert outbox.pending[0].record_type == "session"
        assert outbox.pending[0].action == "create"

    def test_only_start_is_legal_from_idle(self, controller):
        with pytest.raises(SessionStateError):
            controller.advance()
        with pytest.raises(SessionStateError):
            controller.toggle_pause()
        assert controller.tick() is False

    def test_start_twice_raises(self, controller):
        controller.start()
        with pytest.raises(SessionStateError, match="Cannot start a session that is running"):
            controller.start()

    def test_double_toggle_restores_state(self, controller):
        controller.start()
        controller.advance_time(30)

        assert controller.toggle_pause() is True
        assert controller.toggle_pause() is False
        assert controller.status == SessionStatus.RUNNING
        assert controller.state.current_step_index == 0
        assert controller.state.elapsed_seconds == 30

    def test_paused_clock_is_frozen(self, controller):
        controller.start()
        controller.advance_time(5)
        controller.toggle_pause()

        assert controller.advance_time(20) == 0
        assert controller.state.elapsed_seconds == 5

    def test_advance_while_paused_is_ignored(self, controller):
        controller.start()
        controller.toggle_pause()

        assert controller.advance() is False
        assert controller.state.current_step_index == 0
        assert controller.state.step_scores == []

    def test_advance_resets_step_clock(self, controller):
        controller.start()
        _finish_step(controller, 120, 0.5, 0.8)

        assert controller.state.current_step_index == 1
        assert controller.state.step_elapsed_seconds == 0
        assert controller.state.elapsed_seconds == 120

    def test_last_advance_completes(self, controller):
        controller.start()
        for _ in range(5):
            _finish_step(controller, 60, 0.5, 0.8)

        assert controller.status == SessionStatus.COMPLETED
        assert controller.payout is not None

    def test_completed_is_terminal(self, controller):
        controller.start()
        for _ in range(5):
            _finish_step(controller, 60, 0.5, 0.8)

        with pytest.raises(SessionStateError):
            controller.advance()
        with pytest.raises(SessionStateError):
            controller.toggle_pause()
        with pytest.raises(SessionStateError):
            controller.start()
        assert controller.tick() is False


class TestStepPerformance:

    def test_on_time_step(self):
        score, efficiency = compute_step_performance(5, 5, 0.5, 0.8)
        assert efficiency == 1.0
        assert score == 79

    def test_efficiency_is_capped(self):
        _, efficiency = compute_step_performance(5, 1, 0.5, 0.5)
        assert efficiency == 2.0

    def test_instant_finish_counts_as_max_efficiency(self):
        score, efficiency = compute_step_performance(5, 0, 0.0, 0.0)
        assert efficiency == 2.0
        assert score == 80

    def test_score_is_clamped(self):
        score, _ = compute_step_performance(5, 2.5, 1.0, 1.0)
        assert score == 100

    def test_running_average_is_arithmetic_mean(self, controller):
        controller.start()
        _finish_step(controller, 600, 0.5, 0.5)   # 50
        _finish_step(controller, 300, 1.0, 1.0)   # 100
        _finish_step(controller, 300, 0.5, 0.8)   # 79

        assert controller.state.step_scores == [50, 100, 79]
        assert controller.state.running_performance_average == pytest.approx(229 / 3)

    def test_each_step_queues_an_assessment(self, controller, outbox):
        controller.start()
        _finish_step(controller, 300, 0.5, 0.8)

        assessment = outbox.pending[-1].payload
        assert assessment.record_type == "assessment"
        assert assessment.score == 79
        assert assessment.time_taken_seconds == 300
        assert assessment.session_id == controller.session_record.id
        assert assessment.assessment_type == "explanation"

        _finish_step(controller, 300, 0.5, 0.8)
        assert outbox.pending[-1].payload.assessment_type == "exercise"


class TestDifficultyAdaptation:

    def test_rules(self):
        assert next_difficulty(86, Difficulty.BEGINNER) == (
            Difficulty.INTERMEDIATE, "Difficulty raised to intermediate"
        )
        assert next_difficulty(59, Difficulty.INTERMEDIATE)[0] == Difficulty.BEGINNER
        assert next_difficulty(91, Difficulty.INTERMEDIATE)[0] == Difficulty.ADVANCED
        assert next_difficulty(85, Difficulty.BEGINNER) is None
        assert next_difficulty(95, Difficulty.ADVANCED) is None
        assert next_difficulty(10, Difficulty.BEGINNER) is None

    def test_single_promotion_when_crossing_85(self, controller):
        controller.start()

        _finish_step(controller, 600, 0.5, 0.5)   # avg 50
        _finish_step(controller, 300, 1.0, 1.0)   # avg 75
        _finish_step(controller, 300, 1.0, 1.0)   # avg 83.3
        assert controller.state.adaptation_log == []
        assert controller.state.difficulty == Difficulty.BEGINNER

        _finish_step(controller, 300, 1.0, 1.0)   # avg 87.5
        assert controller.state.adaptation_log == ["Difficulty raised to intermediate"]
        assert controller.state.difficulty == Difficulty.INTERMEDIATE

        _finish_step(controller, 300, 1.0, 1.0)   # avg 90, not above 90
        assert controller.state.running_performance_average == pytest.approx(90)
        assert controller.state.adaptation_log == ["Difficulty raised to intermediate"]
        assert controller.state.difficulty == Difficulty.INTERMEDIATE

    def test_demotion_from_intermediate(self, activity):
        controller = _controller(activity, difficulty=Difficulty.INTERMEDIATE)
        controller.start()
        _finish_step(controller, 600, 0.5, 0.5)   # 50

        assert controller.state.difficulty == Difficulty.BEGINNER
        assert controller.state.adaptation_log == ["Difficulty lowered to beginner"]

    def test_promotion_to_advanced(self, activity):
        controller = _controller(activity, difficulty=Difficulty.INTERMEDIATE)
        controller.start()
        _finish_step(controller, 300, 1.0, 1.0)   # 100

        assert controller.state.difficulty == Difficulty.ADVANCED


class TestCognitiveLoadAdaptation:

    def test_low_focus_reduces_load(self, controller):
        controller.start()
        _finish_step(controller, 300, 0.5, 0.8, focus=0.5)

        assert controller.state.cognitive_load == pytest.approx(0.4)
        assert controller.state.adaptation_log == ["Cognitive load reduced to 0.4"]

    def test_good_focus_keeps_load(self, controller):
        controller.start()
        _finish_step(controller, 300, 0.5, 0.8, focus=0.6)

        assert controller.state.cognitive_load == pytest.approx(0.5)

    def test_load_never_drops_below_floor(self, activity_factory):
        controller = _controller(activity_factory(10))
        controller.start()
        for _ in range(9):
            _finish_step(controller, 300, 0.5, 0.6, focus=0.3)

        assert controller.state.cognitive_load == pytest.approx(0.2)
        assert controller.state.adaptation_log == [
            "Cognitive load reduced to 0.4",
            "Cognitive load reduced to 0.3",
            "Cognitive load reduced to 0.2",
        ]
        assert controller.state.recent_adaptations(2) == controller.state.adaptation_log[-2:]


class TestLiveMetrics:

    def test_refresh_formulas(self):
        metrics = refresh_live_metrics(LiveMetrics(), 2.5, 5.0, FixedRandom(0.5))

        assert metrics.focus_score == pytest.approx(0.7)
        assert metrics.comprehension_rate == pytest.approx(0.52)
        assert metrics.engagement_level == pytest.approx(0.82)
        assert metrics.learning_velocity == pytest.approx(2.0)

    def test_overrun_floors_focus(self):
        metrics = refresh_live_metrics(LiveMetrics(), 12.0, 5.0, FixedRandom(0.0))

        assert metrics.focus_score == 0.3
        assert metrics.engagement_level == pytest.approx(0.72)

    def test_velocity_uses_half_minute_floor(self):
        metrics = refresh_live_metrics(LiveMetrics(), 0.0, 5.0, FixedRandom(0.5))
        assert metrics.learning_velocity == pytest.approx(10.0)

    def test_random_walk_stays_bounded(self):
        rng = random.Random(3)
        metrics = LiveMetrics()
        for minute in range(200):
            metrics = refresh_live_metrics(metrics, minute / 10, 5.0, rng)
            assert 0.0 <= metrics.comprehension_rate <= 1.0
            assert 0.4 <= metrics.engagement_level <= 1.0
            assert 0.3 <= metrics.focus_score <= 1.0

    def test_refreshed_every_ten_seconds(self, activity):
        controller = _controller(activity, refresh=10)
        controller.start()

        controller.advance_time(9)
        assert controller.metrics == LiveMetrics()

        controller.tick()
        assert controller.metrics.learning_velocity == pytest.approx(10.0)


class TestCompletion:

    def test_reward_example(self):
        payout = compute_session_reward(10, 80)

        assert payout.base_tokens == 20
        assert payout.performance_bonus == 16
        assert payout.total_tokens == 36

    def test_payout_credits_account_and_queues_writes(self, activity, outbox):
        account = LearnerAccount(learner_id="learner-123")
        controller = _controller(activity, outbox=outbox, account=account)
        controller.start()
        for _ in range(5):
            _finish_step(controller, 300, 1.0, 1.0)

        payout = controller.payout
        assert payout.duration_minutes == pytest.approx(25)
        assert payout.base_tokens == 50
        assert payout.performance_bonus == 50
        assert controller.state.tokens_earned_so_far == 100

        assert account.edu_tokens == 200
        assert account.total_experience == 100

        actions = [(i.action, i.record_type) for i in outbox.pending]
        assert actions == [
            ("create", "session"),
            *[("create", "assessment")] * 5,
            ("update", "session"),
            ("update", "learner_account"),
        ]
        assert outbox.pending[-2].payload["edu_tokens_earned"] == 100
        assert controller.session_record.is_final

    def test_runs_without_outbox(self, activity):
        controller = _controller(activity)
        controller.start()
        for _ in range(5):
            _finish_step(controller, 60, 0.5, 0.8)

        assert controller.status == SessionStatus.COMPLETED


class TestPreparation:

    @pytest.mark.asyncio
    async def test_prepare_loads_steps(self, content_generator):
        controller = await AdaptiveSessionController.prepare(
            content_generator, "learner-123", "math-algebra",
            Difficulty.BEGINNER, ContentType.VIDEO, 25,
        )

        assert controller.state.total_steps == 5
        assert content_generator.activity_calls == [
            ("math-algebra", Difficulty.BEGINNER, ContentType.VIDEO, 25)
        ]

    @pytest.mark.asyncio
    async def test_generator_failure_surfaces(self, content_generator):
        content_generator.fail_for.add("math-algebra")

        with pytest.raises(ContentGenerationError):
            await AdaptiveSessionController.prepare(
                content_generator, "learner-123", "math-algebra",
                Difficulty.BEGINNER, ContentType.VIDEO, 25,
            )

    def test_empty_activity_rejected(self):
        with pytest.raises(ContentGenerationError):
            _controller(ActivityContent(title="Empty", steps=[]))


class TestClockLoop:

    @pytest.mark.asyncio
    async def test_run_clock_ticks_until_completed(self, activity):
        controller = _controller(activity)
        controller.start()
        clock = asyncio.create_task(controller.run_clock(tick_seconds=0.001))

        await asyncio.sleep(0.05)
        assert controller.state.elapsed_seconds > 0

        controller.toggle_pause()
        frozen = controller.state.elapsed_seconds
        await asyncio.sleep(0.02)
        assert controller.state.elapsed_seconds == frozen

        controller.toggle_pause()
        for _ in range(5):
            controller.advance()

        await asyncio.wait_for(clock, timeout=1.0)
        assert controller.status == SessionStatus.COMPLETED
