"""Detect confirmed reservations overlapping a requested slot."""

from __future__ import annotations

import logging
from enum import Enum
from typing import List, Optional

from reservations.errors import BackendError
from reservations.models import Reservation, ReservationStatus
from reservations.queue.request_builder import parse_booking_date
from reservations.time_utils import time_range, to_wire_time


class ConflictFailurePolicy(Enum):
    """What a failed conflict query means to the caller."""

    CLOSED = "closed"   # Treat as conflicting
    OPEN = "open"       # Treat as free
    RAISE = "raise"     # Propagate BackendError

    @classmethod
    def from_setting(cls, value: str) -> "ConflictFailurePolicy":
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.CLOSED


class ConflictDetector:
    """Checks a court/date/interval against confirmed reservations only.

    Pending reservations never block here; competing pending requests are
    settled later by the auto-accept evaluator.
    """

    def __init__(
        self,
        store,
        *,
        failure_policy: ConflictFailurePolicy = ConflictFailurePolicy.CLOSED,
    ) -> None:
        self.store = store
        self.failure_policy = failure_policy
        self.logger = logging.getLogger('ConflictDetector')

    async def find_conflicts(
        self,
        venue_id: str,
        court_id: str,
        date: str,
        start_display: str,
        duration_hours: int,
    ) -> List[Reservation]:
        """Return confirmed reservations overlapping the requested interval."""

        start, end = time_range(to_wire_time(start_display), duration_hours)
        return await self._query(venue_id, court_id, date, start, end)

    async def has_conflict(
        self,
        venue_id: str,
        court_id: str,
        date: str,
        start_display: str,
        duration_hours: int,
    ) -> bool:
        start, end = time_range(to_wire_time(start_display), duration_hours)
        return await self.has_wire_conflict(venue_id, court_id, date, start, end)

    async def has_wire_conflict(
        self,
        venue_id: str,
        court_id: str,
        date: str,
        start: str,
        end: str,
        *,
        exclude_id: Optional[str] = None,
    ) -> bool:
        """Wire-format variant used when confirming an existing reservation."""

        try:
            conflicts = await self._query(venue_id, court_id, date, start, end)
        except BackendError as exc:
            return self._on_failure(exc, venue_id, court_id, date, start, end)
        except Exception as exc:
            return self._on_failure(
                BackendError(f"Conflict query failed: {exc}"),
                venue_id, court_id, date, start, end,
            )

        conflicts = [c for c in conflicts if c.reservation_id != exclude_id]
        if conflicts:
            self.logger.info(
                "CONFLICT: court %s on %s %s-%s overlaps confirmed %s",
                court_id,
                date,
                start,
                end,
                [c.reservation_id for c in conflicts],
            )
        return bool(conflicts)

    async def _query(
        self,
        venue_id: str,
        court_id: str,
        date: str,
        start: str,
        end: str,
    ) -> List[Reservation]:
        return await self.store.list_reservations(
            venue_id=venue_id,
            court_id=court_id,
            date=parse_booking_date(date) if isinstance(date, str) else date,
            status=ReservationStatus.CONFIRMED.value,
            overlapping=(start, end),
        )

    def _on_failure(
        self,
        exc: BackendError,
        venue_id: str,
        court_id: str,
        date: str,
        start: str,
        end: str,
    ) -> bool:
        self.logger.error(
            "Conflict check failed for venue %s court %s on %s %s-%s (policy=%s): %s",
            venue_id,
            court_id,
            date,
            start,
            end,
            self.failure_policy.value,
            exc,
        )
        if self.failure_policy is ConflictFailurePolicy.RAISE:
            raise exc
        return self.failure_policy is ConflictFailurePolicy.CLOSED


__all__ = ["ConflictDetector", "ConflictFailurePolicy"]
