"""First-come-first-served resolution of pending reservations.

When a pending reservation's auto-accept deadline passes, every pending
reservation competing for the same court, date and interval is ranked by
``(created_at, id)``. The earliest one that can still be confirmed wins. Every
other ranked candidate is cancelled, whether or not it overlaps the winner,
and so is every pending reservation overlapping the winner.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from reservations.errors import AutoAcceptError
from reservations.models import Reservation, ReservationStatus
from reservations.queue import reservation_transitions as transitions
from reservations.time_utils import intervals_overlap

LOST_SLOT_REASON = "lost_first_come_first_served"
CONFIRMED_CONFLICT_REASON = "conflicts_with_confirmed_booking"


@dataclass
class EvaluationOutcome:
    """What a single evaluation did."""

    reservation_id: str
    result: str  # confirmed | cancelled | skipped | failed
    confirmed_id: Optional[str] = None
    cancelled_ids: List[str] = field(default_factory=list)
    detail: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.result == "failed"


class AutoAcceptEvaluator:
    """Resolves one pending reservation against its competitors."""

    def __init__(self, store) -> None:
        self.store = store
        self.logger = logging.getLogger('AutoAcceptEvaluator')

    async def evaluate(self, reservation_id: str) -> EvaluationOutcome:
        """Evaluate ``reservation_id``; failures are logged and reported, never raised."""

        try:
            return await self._evaluate(reservation_id)
        except Exception as exc:
            error = AutoAcceptError(reservation_id, exc)
            self.logger.error(
                """AUTO-ACCEPT FAILED
                Reservation ID: %s
                Error: %s
                The reservation keeps its current status until resolved manually
                """,
                reservation_id,
                error,
                exc_info=True,
            )
            return EvaluationOutcome(
                reservation_id=reservation_id,
                result="failed",
                detail=str(error),
            )

    async def _evaluate(self, reservation_id: str) -> EvaluationOutcome:
        reservation = await self.store.get_reservation(reservation_id)
        if reservation is None:
            self.logger.warning("Auto-accept skipped: reservation %s not found", reservation_id)
            return EvaluationOutcome(reservation_id, "skipped", detail="not_found")
        if not reservation.is_pending:
            self.logger.debug(
                "Auto-accept skipped: reservation %s already %s",
                reservation_id,
                reservation.status,
            )
            return EvaluationOutcome(reservation_id, "skipped", detail=reservation.status)

        if await self._blocked_by_confirmed(reservation):
            await transitions.cancel(self.store, reservation, CONFIRMED_CONFLICT_REASON)
            self.logger.info(
                "Auto-accept cancelled %s: slot already confirmed for another booking",
                reservation_id,
            )
            return EvaluationOutcome(
                reservation_id,
                "cancelled",
                cancelled_ids=[reservation_id],
                detail=CONFIRMED_CONFLICT_REASON,
            )

        candidates = await self._competing_pending(reservation)
        cancelled_ids: List[str] = []
        winner = await self._confirm_earliest(candidates, cancelled_ids)
        if winner is None:
            return EvaluationOutcome(
                reservation_id,
                "cancelled" if reservation_id in cancelled_ids else "skipped",
                cancelled_ids=cancelled_ids,
                detail="no_candidate_confirmed",
            )

        cancelled_ids.extend(await self._cancel_losers(candidates, winner))
        cancelled_ids.extend(await self.cancel_overlapping_pending(winner))

        result = "confirmed" if winner.reservation_id == reservation_id else "cancelled"
        self.logger.info(f"""AUTO-ACCEPT RESOLVED
        Evaluated: {reservation_id}
        Court: {winner.court_id} on {winner.date} {winner.start_time}-{winner.end_time}
        Candidates: {[c.reservation_id for c in candidates]}
        Confirmed: {winner.reservation_id}
        Cancelled: {cancelled_ids}
        """)
        return EvaluationOutcome(
            reservation_id,
            result,
            confirmed_id=winner.reservation_id,
            cancelled_ids=cancelled_ids,
        )

    async def cancel_overlapping_pending(self, confirmed: Reservation) -> List[str]:
        """Cancel every pending reservation overlapping ``confirmed``.

        Re-reads the store so that reservations created after the ranking
        query are covered too. Best effort; not transactional.
        """

        competitors = await self.store.list_reservations(
            venue_id=confirmed.venue_id,
            court_id=confirmed.court_id,
            date=confirmed.date,
            status=ReservationStatus.PENDING.value,
            overlapping=(confirmed.start_time, confirmed.end_time),
        )
        cancelled: List[str] = []
        for competitor in competitors:
            if competitor.reservation_id == confirmed.reservation_id:
                continue
            updated = await transitions.cancel(
                self.store, competitor, LOST_SLOT_REASON
            )
            if updated is not None:
                cancelled.append(competitor.reservation_id)
        return cancelled

    async def _cancel_losers(
        self,
        ranked: List[Reservation],
        winner: Reservation,
    ) -> List[str]:
        cancelled: List[str] = []
        for candidate in ranked:
            if candidate.reservation_id == winner.reservation_id:
                continue
            if await transitions.cancel(self.store, candidate, LOST_SLOT_REASON):
                cancelled.append(candidate.reservation_id)
        return cancelled

    async def _competing_pending(self, reservation: Reservation) -> List[Reservation]:
        candidates = await self.store.list_reservations(
            venue_id=reservation.venue_id,
            court_id=reservation.court_id,
            date=reservation.date,
            status=ReservationStatus.PENDING.value,
            overlapping=(reservation.start_time, reservation.end_time),
        )
        if all(c.reservation_id != reservation.reservation_id for c in candidates):
            candidates.append(reservation)
        return sorted(candidates, key=lambda candidate: candidate.sort_key())

    async def _confirm_earliest(
        self,
        ranked: List[Reservation],
        cancelled: List[str],
    ) -> Optional[Reservation]:
        for candidate in ranked:
            if await self._blocked_by_confirmed(candidate):
                if await transitions.cancel(self.store, candidate, CONFIRMED_CONFLICT_REASON):
                    cancelled.append(candidate.reservation_id)
                continue
            confirmed = await transitions.confirm(self.store, candidate)
            if confirmed is not None:
                return confirmed
            self.logger.debug(
                "Candidate %s was resolved by another actor; trying the next one",
                candidate.reservation_id,
            )
        return None

    async def _blocked_by_confirmed(self, reservation: Reservation) -> bool:
        confirmed = await self.store.list_reservations(
            venue_id=reservation.venue_id,
            court_id=reservation.court_id,
            date=reservation.date,
            status=ReservationStatus.CONFIRMED.value,
            overlapping=(reservation.start_time, reservation.end_time),
        )
        return any(
            intervals_overlap(c.start_time, c.end_time, reservation.start_time, reservation.end_time)
            for c in confirmed
            if c.reservation_id != reservation.reservation_id
        )


__all__ = ["AutoAcceptEvaluator", "EvaluationOutcome"]
