"""Helpers for recording auto-accept outcomes."""

from __future__ import annotations

from typing import TYPE_CHECKING, Set

if TYPE_CHECKING:  # pragma: no cover - typing helper
    from reservations.queue.scheduler.metrics import SchedulerStats
    from reservations.services.auto_accept import EvaluationOutcome


def record_outcome(
    stats: "SchedulerStats",
    outcome: "EvaluationOutcome",
    resolved: Set[str],
) -> None:
    """Update counters and remember every reservation the outcome settled."""

    stats.record_result(outcome.result)
    if outcome.confirmed_id:
        resolved.add(outcome.confirmed_id)
    resolved.update(outcome.cancelled_ids)
    if outcome.result != "failed":
        resolved.add(outcome.reservation_id)
