"""
Auto-Accept Scheduler
Evaluates pending reservations once their auto-accept deadline has passed.

The deadline lives on the reservation row (``auto_accept_due_at``) rather than
in an in-process timer, so a restarted worker picks up every evaluation that
was due while it was down.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Set

from infrastructure.constants import AUTO_ACCEPT_POLL_SECONDS
from reservations.models import Reservation, ReservationStatus
from reservations.queue.reservation_repository import utc_now
from reservations.queue.scheduler import SchedulerStats, record_outcome
from reservations.services.auto_accept import AutoAcceptEvaluator, EvaluationOutcome


class AutoAcceptScheduler:
    """
    Background worker that resolves pending reservations after a fixed delay.

    Attributes:
        store: Reservation store holding the due-at column
        evaluator (AutoAcceptEvaluator): Resolves one reservation at a time
        stats (SchedulerStats): Counters for evaluations and passes
    """

    def __init__(
        self,
        store,
        evaluator: Optional[AutoAcceptEvaluator] = None,
        *,
        poll_interval: float = AUTO_ACCEPT_POLL_SECONDS,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.logger = logging.getLogger('AutoAcceptScheduler')
        self.store = store
        self.evaluator = evaluator or AutoAcceptEvaluator(store)
        self.poll_interval = poll_interval
        self._clock = clock or utc_now
        self.running = False
        self.stats = SchedulerStats()

    async def schedule(self, reservation: Reservation, delay: timedelta) -> Reservation:
        """Record when ``reservation`` becomes due for evaluation."""

        due_at = self._clock() + delay
        updated = await self.store.update_reservation(
            reservation.reservation_id,
            expected_status=ReservationStatus.PENDING.value,
            auto_accept_due_at=due_at,
        )
        if updated is None:
            self.logger.warning(
                "Could not schedule auto-accept for %s; it is no longer pending",
                reservation.reservation_id,
            )
            return reservation

        self.logger.debug(
            "Auto-accept for %s scheduled at %s", reservation.reservation_id, due_at
        )
        return updated

    async def run_due(self, now: Optional[datetime] = None) -> List[EvaluationOutcome]:
        """Evaluate every reservation whose deadline is at or before ``now``."""

        now = now or self._clock()
        started = time.monotonic()
        due = await self.store.list_due_for_auto_accept(now)
        if due:
            self.logger.info(
                "AUTO-ACCEPT CHECK\nCurrent time: %s\nDue reservations: %s\n",
                now,
                len(due),
            )

        outcomes: List[EvaluationOutcome] = []
        resolved: Set[str] = set()
        for reservation in due:
            if reservation.reservation_id in resolved:
                continue
            outcome = await self.evaluator.evaluate(reservation.reservation_id)
            record_outcome(self.stats, outcome, resolved)
            outcomes.append(outcome)

        self.stats.record_pass(time.monotonic() - started)
        return outcomes

    async def run_async(self) -> None:
        """Run the polling loop in the current event loop until :meth:`stop`."""

        self.logger.info(
            "Starting auto-accept scheduler (poll every %ss)", self.poll_interval
        )
        self.running = True
        while self.running:
            try:
                await self.run_due()
                await asyncio.sleep(self.poll_interval)
            except asyncio.CancelledError:
                self.running = False
                raise
            except Exception as exc:
                self.logger.error("Scheduler error: %s", exc, exc_info=True)
                await asyncio.sleep(max(self.poll_interval * 2, 30))
        self.logger.info("Auto-accept scheduler stopped\n%s", self.stats.format_report())

    def stop(self) -> None:
        self.logger.info("Stopping auto-accept scheduler")
        self.running = False


__all__ = ["AutoAcceptScheduler"]
