"""
Persistence outbox for the Gnosis engine.

Local progress never waits on storage. The session controller and the
recommendation engine enqueue persistence intents here; a SyncWorker
delivers them to the PersistenceSink in FIFO order and retries failures
with exponential backoff.

Usage:
    outbox = Outbox()
    worker = SyncWorker(outbox, sink)
    outbox.enqueue_create(record)
    worker.flush()                    # one delivery pass
    await worker.run(stop_event)      # periodic background delivery
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable

from loguru import logger

from gnosis.core.models import new_record_id
from gnosis.integrations.protocols import PersistenceSink


@dataclass
class PersistenceIntent:
    """A queued create or update for the persistence sink."""

    action: str  # create, update
    record_type: str
    record_id: str
    payload: Any
    intent_id: str = field(default_factory=new_record_id)
    attempts: int = 0
    next_attempt_at: float = 0.0
    last_error: str | None = None

    def is_due(self, now: float) -> bool:
        return now >= self.next_attempt_at


@dataclass
class FlushResult:
    """Outcome of one delivery pass."""

    delivered: int = 0
    failed: int = 0
    dead_lettered: int = 0


class Outbox:
    """FIFO queue of persistence intents plus a dead-letter list."""

    def __init__(self) -> None:
        self._queue: deque[PersistenceIntent] = deque()
        self.dead_letters: list[PersistenceIntent] = []

    def __len__(self) -> int:
        return len(self._queue)

    @property
    def pending(self) -> list[PersistenceIntent]:
        return list(self._queue)

    def enqueue_create(self, record: Any) -> PersistenceIntent:
        intent = PersistenceIntent(
            action="create",
            record_type=record.record_type,
            record_id=record.id,
            payload=record,
        )
        self._queue.append(intent)
        logger.debug(f"Outbox: queued create {intent.record_type}/{intent.record_id}")
        return intent

    def enqueue_update(self, record_type: str, record_id: str, fields: dict[str, Any]) -> PersistenceIntent:
        intent = PersistenceIntent(
            action="update",
            record_type=record_type,
            record_id=record_id,
            payload=dict(fields),
        )
        self._queue.append(intent)
        logger.debug(f"Outbox: queued update {record_type}/{record_id} ({', '.join(fields)})")
        return intent

    def peek(self) -> PersistenceIntent | None:
        return self._queue[0] if self._queue else None

    def pop(self) -> PersistenceIntent:
        return self._queue.popleft()


class SyncWorker:
    """
    Delivers outbox intents to a PersistenceSink.

    Ordering: the first failing intent ends the pass, so a create is never
    overtaken by a later update for the same record. After `max_attempts`
    failures an intent is moved to the dead-letter list and the queue moves on.
    """

    def __init__(
        self,
        outbox: Outbox,
        sink: PersistenceSink,
        max_attempts: int = 5,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.outbox = outbox
        self.sink = sink
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._clock = clock

    def backoff_delay(self, attempts: int) -> float:
        """Delay before the next attempt after `attempts` failures."""
        return min(self.max_delay, self.base_delay * 2 ** (attempts - 1))

    def flush(self, now: float | None = None) -> FlushResult:
        """Deliver due intents in order until the queue is empty or one fails."""
        now = self._clock() if now is None else now
        result = FlushResult()

        while True:
            intent = self.outbox.peek()
            if intent is None or not intent.is_due(now):
                break

            try:
                self._deliver(intent)
            except Exception as exc:  # Sink failures of any kind are retried
                intent.attempts += 1
                intent.last_error = str(exc)
                result.failed += 1

                if intent.attempts >= self.max_attempts:
                    self.outbox.pop()
                    self.outbox.dead_letters.append(intent)
                    result.dead_lettered += 1
                    logger.error(
                        f"Outbox: giving up on {intent.action} {intent.record_type}/{intent.record_id} "
                        f"after {intent.attempts} attempts: {exc}"
                    )
                    continue

                intent.next_attempt_at = now + self.backoff_delay(intent.attempts)
                logger.warning(
                    f"Outbox: {intent.action} {intent.record_type}/{intent.record_id} failed "
                    f"(attempt {intent.attempts}/{self.max_attempts}): {exc}"
                )
                break

            self.outbox.pop()
            result.delivered += 1

        if result.delivered or result.failed:
            logger.info(
                "Outbox flush: delivered={}, failed={}, dead_lettered={}, pending={}",
                result.delivered,
                result.failed,
                result.dead_lettered,
                len(self.outbox),
            )
        return result

    def _deliver(self, intent: PersistenceIntent) -> None:
        if intent.action == "create":
            self.sink.create(intent.payload)
        else:
            self.sink.update(intent.record_type, intent.record_id, intent.payload)

    async def drain(self, max_passes: int = 100) -> FlushResult:
        """
        Flush repeatedly, sleeping through backoff, until the queue is empty.

        Gives up after `max_passes` passes; remaining intents stay queued.
        """
        total = FlushResult()
        for _ in range(max_passes):
            if not len(self.outbox):
                break
            result = self.flush()
            total.delivered += result.delivered
            total.failed += result.failed
            total.dead_lettered += result.dead_lettered

            head = self.outbox.peek()
            if head is not None:
                await asyncio.sleep(max(0.0, head.next_attempt_at - self._clock()))
        return total

    async def run(self, stop_event: asyncio.Event, interval_seconds: float = 5.0) -> None:
        """Background loop: flush every `interval_seconds` until stopped."""
        logger.info(f"Outbox sync worker started (interval: {interval_seconds}s)")
        while not stop_event.is_set():
            self.flush()
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
            except asyncio.TimeoutError:
                continue
        self.flush()
        logger.info("Outbox sync worker stopped")
