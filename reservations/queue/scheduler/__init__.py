"""Scheduler helpers for the auto-accept worker."""

from .metrics import SchedulerStats
from .outcome import record_outcome

__all__ = [
    "SchedulerStats",
    "record_outcome",
]
