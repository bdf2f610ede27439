"""
Typer CLI for the Gnosis adaptive learning engine.

Commands:
    gnosis db init                      - Initialize database tables
    gnosis profile <learner>            - Analyze learning patterns and show insights
    gnosis recommend <learner>          - Generate ranked recommendations
    gnosis session <learner> <skill>    - Run a simulated adaptive session

Usage:
    gnosis --help
    gnosis profile alice
    gnosis session alice math-algebra --difficulty intermediate --seed 7
"""

from __future__ import annotations

import asyncio
import random
import sys

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from config import Settings, get_settings
from gnosis.adaptive.pattern_analyzer import weekly_progress
from gnosis.adaptive.recommendation_engine import RecommendationEngine
from gnosis.adaptive.session_controller import AdaptiveSessionController
from gnosis.core.errors import GnosisError
from gnosis.core.models import ContentType, Difficulty
from gnosis.db.database import init_db
from gnosis.db.repository import SqlRepository
from gnosis.integrations.content_client import ContentServiceClient
from gnosis.integrations.protocols import ContentGenerator
from gnosis.integrations.templates import TemplateContentGenerator
from gnosis.progress.ledger import accrue_daily_activity
from gnosis.sync.outbox import Outbox, SyncWorker

app = typer.Typer(help="gnosis: adaptive learning pattern analysis and guided sessions")
console = Console()


def configure_logging(settings: Settings, verbose: bool = False) -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level="DEBUG" if verbose else settings.log_level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )
    if settings.log_file:
        logger.add(settings.log_file, level="DEBUG", rotation="10 MB", retention=5)


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    configure_logging(get_settings(), verbose)


# ========================================
# Context Builder
# ========================================


class CLIContext:
    """Wires the repository, outbox and engine for one command."""

    def __init__(self) -> None:
        self.settings = get_settings()
        self.repository = SqlRepository()
        self.outbox = Outbox()
        self.worker = SyncWorker(
            self.outbox,
            self.repository,
            max_attempts=self.settings.sync_max_attempts,
            base_delay=self.settings.sync_base_delay_seconds,
            max_delay=self.settings.sync_max_delay_seconds,
        )

    def content_generator(self) -> ContentGenerator:
        if self.settings.content_api_url:
            return ContentServiceClient.from_settings(self.settings)
        return TemplateContentGenerator()

    def engine(self, content: ContentGenerator) -> RecommendationEngine:
        return RecommendationEngine(self.repository, content, self.outbox, self.settings)

    def persist(self) -> None:
        result = asyncio.run(self.worker.drain(max_passes=self.settings.sync_max_attempts + 1))
        if self.outbox.dead_letters or len(self.outbox):
            rprint(
                f"[yellow]⚠[/yellow] {len(self.outbox.dead_letters)} writes failed, "
                f"{len(self.outbox)} still queued"
            )
        logger.debug(f"Persisted {result.delivered} records")


async def _close(content: ContentGenerator) -> None:
    if isinstance(content, ContentServiceClient):
        await content.close()


# ========================================
# DB COMMANDS
# ========================================

db_app = typer.Typer(help="Database management")
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """
    Initialize database tables.

    Safe to run multiple times (idempotent).
    """
    init_db()
    rprint("[green]✓[/green] Database initialized!")


# ========================================
# PROFILE
# ========================================


@app.command("profile")
def show_profile(learner_id: str = typer.Argument(..., help="Learner identifier")) -> None:
    """Analyze recent history and show the learner's pattern profile."""
    ctx = CLIContext()
    ctx.repository.ensure_learner(learner_id)

    snapshot = ctx.engine(TemplateContentGenerator()).analyze(learner_id)
    patterns = snapshot.patterns
    week = weekly_progress(
        ctx.repository.recent_daily_analytics(learner_id, ctx.settings.history_analytics_limit)
    )
    ctx.persist()

    table = Table(title=f"Learning patterns: {learner_id}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Preferred difficulty", f"{patterns.preferred_difficulty:.2f}")
    table.add_row("Optimal session", f"{patterns.optimal_session_duration_minutes} min")
    table.add_row("Best time of day", patterns.best_time_of_day.value)
    table.add_row("Cognitive load", f"{patterns.cognitive_load:.2f}")
    table.add_row("Motivation", f"{patterns.motivation_level:.2f}")
    for content_type, value in patterns.content_type_effectiveness.items():
        table.add_row(f"Effectiveness ({content_type})", f"{value:.0f}%")
    table.add_row("Adaptation score", f"{snapshot.adaptation_score:.1f}")
    console.print(table)

    strengths = "\n".join(f"• {s}" for s in snapshot.strengths) or "[dim]none yet[/dim]"
    areas = "\n".join(f"• {a}" for a in snapshot.improvement_areas) or "[dim]none[/dim]"
    console.print(Panel(strengths, title="Strengths", border_style="green"))
    console.print(Panel(areas, title="Improvement areas", border_style="yellow"))
    rprint(
        f"This week: {week.total_minutes:.0f} min, "
        f"avg score {week.avg_score:.1f}, trend [bold]{week.trend}[/bold]"
    )


# ========================================
# RECOMMEND
# ========================================


@app.command("recommend")
def recommend(learner_id: str = typer.Argument(..., help="Learner identifier")) -> None:
    """Generate recommendations for the learner's weakest skills."""
    ctx = CLIContext()
    ctx.repository.ensure_learner(learner_id)

    content = ctx.content_generator()
    engine = ctx.engine(content)

    async def _generate():
        try:
            return await engine.generate(learner_id)
        finally:
            await _close(content)

    try:
        recommendations = asyncio.run(_generate())
    except GnosisError as e:
        rprint(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)
    finally:
        ctx.persist()

    if not recommendations:
        rprint("[yellow]No new recommendations[/yellow] (all candidate skills already have one pending)")
        return

    table = Table(title=f"Recommendations: {learner_id}")
    table.add_column("Priority", justify="right", style="bold")
    table.add_column("Skill", style="cyan")
    table.add_column("Title")
    table.add_column("Difficulty")
    table.add_column("Format")
    table.add_column("Minutes", justify="right")
    for rec in recommendations:
        table.add_row(
            str(rec.display_priority()),
            rec.skill_id,
            rec.title,
            rec.difficulty_level.value,
            rec.content_type.value,
            str(rec.estimated_duration_minutes),
        )
    console.print(table)

    status = engine.engine_status(learner_id)
    rprint(
        f"Acceptance rate {status.acceptance_rate:.0f}% over {status.total_recommendations} "
        f"recommendations (adaptation {status.adaptation_score:.0f})"
    )


# ========================================
# SESSION
# ========================================


def _print_step_result(controller: AdaptiveSessionController) -> None:
    result = controller.step_results[-1]
    step = controller.content.steps[result.step_index]
    rprint(
        f"  [{result.step_index + 1}/{controller.state.total_steps}] {step.title}: "
        f"score {result.performance_score} ({result.actual_minutes:.1f} min)"
    )


async def _run_live(ctx: CLIContext, controller: AdaptiveSessionController) -> None:
    """Wall-clock session: the tick loop and outbox sync run beside the prompt."""
    stop = asyncio.Event()
    clock = asyncio.create_task(controller.run_clock(ctx.settings.session_tick_seconds))
    sync = asyncio.create_task(ctx.worker.run(stop, ctx.settings.sync_interval_seconds))

    try:
        while controller.state.is_active:
            step = controller.current_step
            if not controller.state.is_paused:
                rprint(f"\n[bold cyan]{step.title}[/bold cyan] (~{step.time_estimate_minutes:.0f} min)")
                rprint(step.body)
                for hint in step.hints:
                    rprint(f"[dim]Hint: {hint}[/dim]")

            answer = await asyncio.to_thread(
                typer.prompt, "Enter to finish the step, p to pause/resume", default="", show_default=False
            )
            if answer.strip().lower() == "p":
                paused = controller.toggle_pause()
                rprint("[yellow]Paused[/yellow]" if paused else "[green]Resumed[/green]")
            elif controller.advance():
                _print_step_result(controller)
    finally:
        clock.cancel()
        stop.set()
        await sync


@app.command("session")
def run_session(
    learner_id: str = typer.Argument(..., help="Learner identifier"),
    skill_id: str = typer.Argument(..., help="Skill to practice"),
    difficulty: Difficulty = typer.Option(Difficulty.BEGINNER, "--difficulty", "-d"),
    content_type: ContentType = typer.Option(ContentType.INTERACTIVE, "--content-type", "-c"),
    duration: int = typer.Option(15, "--duration", help="Target duration in minutes", min=1),
    seed: int | None = typer.Option(None, "--seed", help="Seed for simulated pacing and metrics"),
    live: bool = typer.Option(False, "--live", help="Run on the wall clock and advance steps with Enter"),
) -> None:
    """
    Run a guided activity.

    By default the session runs in simulated time: each step takes between
    70% and 130% of its time estimate. With --live the clock ticks in real
    time and pending writes sync in the background while you work.
    """
    ctx = CLIContext()
    account = ctx.repository.ensure_learner(learner_id)
    rng = random.Random(seed)

    try:
        controller = asyncio.run(
            AdaptiveSessionController.prepare(
                TemplateContentGenerator(),
                learner_id,
                skill_id,
                difficulty,
                content_type,
                duration,
                outbox=ctx.outbox,
                account=account,
                rng=rng,
                metrics_refresh_seconds=ctx.settings.metrics_refresh_seconds,
                default_step_minutes=ctx.settings.default_step_minutes,
            )
        )
    except GnosisError as e:
        rprint(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)

    controller.start()
    if live:
        asyncio.run(_run_live(ctx, controller))
    else:
        while controller.state.is_active:
            step = controller.current_step
            seconds = int(step.time_estimate_minutes * 60 * rng.uniform(0.7, 1.3))
            controller.advance_time(seconds)
            controller.advance()
            _print_step_result(controller)

    payout = controller.payout
    accrue_daily_activity(
        ctx.outbox,
        ctx.repository.recent_daily_analytics(learner_id, ctx.settings.history_analytics_limit),
        learner_id,
        payout.duration_minutes,
        payout.final_performance,
        skill_id,
        payout.total_tokens,
    )
    ctx.persist()

    adaptations = "\n".join(f"• {a}" for a in payout.adaptations) or "[dim]no adaptations[/dim]"
    console.print(
        Panel(
            f"Duration: {payout.duration_minutes:.1f} min\n"
            f"Performance: {payout.final_performance:.1f}\n"
            f"Final difficulty: {controller.state.difficulty.value}\n"
            f"Tokens: {payout.base_tokens} + {payout.performance_bonus} bonus = "
            f"[bold green]{payout.total_tokens} EDU[/bold green]\n"
            f"Balance: {account.edu_tokens} EDU, {account.total_experience} XP\n\n"
            f"{adaptations}",
            title="Session complete",
            border_style="green",
        )
    )


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
