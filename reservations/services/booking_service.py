"""Create, accept, reject and withdraw court bookings."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional

from infrastructure.constants import AUTO_ACCEPT_DELAY_MINUTES
from reservations.errors import ConflictError, InvalidTransitionError, NotFoundError
from reservations.models import BookingRequest, Reservation, ReservationStatus
from reservations.queue import reservation_transitions as transitions
from reservations.queue.request_builder import DEFAULT_BUILDER, parse_booking_date
from reservations.queue.reservation_validation import booking_dedup_key, validate_booking_request
from reservations.services.conflict_detector import ConflictDetector
from reservations.services.inflight_guard import InFlightGuard
from reservations.time_utils import time_range, to_display_time, to_wire_time
from reservations.upcoming_games import UpcomingGame, UpcomingGames

OWNER_REJECTED_REASON = "rejected_by_owner"
WITHDRAWN_REASON = "withdrawn_by_creator"


class BookingService:
    """High-level API for the booking approval workflow."""

    def __init__(
        self,
        store,
        *,
        conflict_detector: Optional[ConflictDetector] = None,
        scheduler=None,
        evaluator=None,
        upcoming_games: Optional[UpcomingGames] = None,
        guard: Optional[InFlightGuard] = None,
        auto_accept_delay: timedelta = timedelta(minutes=AUTO_ACCEPT_DELAY_MINUTES),
    ) -> None:
        self.logger = logging.getLogger(self.__class__.__name__)
        self.store = store
        self.conflict_detector = conflict_detector or ConflictDetector(store)
        self.scheduler = scheduler
        self.evaluator = evaluator
        self.upcoming_games = upcoming_games or UpcomingGames()
        self.guard = guard or InFlightGuard()
        self.auto_accept_delay = auto_accept_delay
        self._builder = DEFAULT_BUILDER

    async def create_booking(self, request: BookingRequest) -> Reservation:
        """
        Validate, conflict-check and persist a booking request.

        Args:
            request: Booking details with a display-format start time

        Returns:
            Reservation: The persisted row, including its generated id

        Raises:
            ValidationError: Missing or out-of-range fields
            DuplicateInProgressError: The same request is already in flight
            NotFoundError: The court does not resolve for the venue
            ConflictError: A confirmed booking overlaps the requested slot
            BackendError: The store rejected the write
        """

        validate_booking_request(request, logger=self.logger)

        with self.guard.hold(booking_dedup_key(request)):
            court_id = await self._resolve_court_id(request)
            start, end = time_range(to_wire_time(request.start_time), request.duration_hours)
            booking_date = parse_booking_date(request.date)

            if await self.conflict_detector.has_wire_conflict(
                request.venue_id, court_id, booking_date, start, end
            ):
                raise ConflictError(
                    f"Court {court_id} is already booked on {booking_date} "
                    f"between {to_display_time(start)} and {to_display_time(end)}"
                )

            payload = self._builder.insert_payload(
                request,
                court_id=court_id,
                start_time=start,
                end_time=end,
                status=request.status,
            )
            reservation = await self.store.insert_reservation(payload)

            if reservation.is_pending and self.scheduler is not None:
                reservation = await self.scheduler.schedule(reservation, self.auto_accept_delay)

            if reservation.status == ReservationStatus.CONFIRMED.value:
                if self.evaluator is not None:
                    await self.evaluator.cancel_overlapping_pending(reservation)
                await self._mirror_upcoming(reservation)

        self.logger.info(f"""BOOKING CREATED
        Reservation ID: {reservation.reservation_id}
        User ID: {reservation.user_id}
        Court: {reservation.court_id} at venue {reservation.venue_id}
        Slot: {reservation.date} {reservation.start_time}-{reservation.end_time}
        Type: {reservation.booking_type}
        Status: {reservation.status}
        Auto-accept due: {reservation.auto_accept_due_at}
        """)
        return reservation

    async def accept_booking(self, reservation_id: str) -> Reservation:
        """Owner confirms a pending booking and overlapping pending ones are cancelled."""

        reservation = await self._require(reservation_id)
        transitions.ensure_transition(reservation, ReservationStatus.CONFIRMED.value)

        if await self.conflict_detector.has_wire_conflict(
            reservation.venue_id,
            reservation.court_id,
            reservation.date,
            reservation.start_time,
            reservation.end_time,
            exclude_id=reservation.reservation_id,
        ):
            raise ConflictError(
                f"Reservation {reservation_id} overlaps a confirmed booking"
            )

        confirmed = await transitions.confirm(self.store, reservation)
        if confirmed is None:
            current = await self._require(reservation_id)
            transitions.ensure_transition(current, ReservationStatus.CONFIRMED.value)
            raise ConflictError(f"Reservation {reservation_id} changed while accepting")

        cancelled = []
        if self.evaluator is not None:
            cancelled = await self.evaluator.cancel_overlapping_pending(confirmed)

        self.logger.info(
            "Owner accepted %s; cancelled overlapping pending %s",
            reservation_id,
            cancelled,
        )
        await self._mirror_upcoming(confirmed)
        return confirmed

    async def reject_booking(self, reservation_id: str, reason: Optional[str] = None) -> Reservation:
        reservation = await self._require(reservation_id)
        return await self._cancel(reservation, reason or OWNER_REJECTED_REASON)

    async def cancel_booking(self, reservation_id: str, user_id: str) -> Reservation:
        """Creator withdraws their own pending booking."""

        reservation = await self._require(reservation_id)
        if reservation.user_id != str(user_id):
            raise NotFoundError(f"Reservation {reservation_id} not found for user {user_id}")
        return await self._cancel(reservation, WITHDRAWN_REASON)

    async def _cancel(self, reservation: Reservation, reason: str) -> Reservation:
        transitions.ensure_transition(reservation, ReservationStatus.CANCELLED.value)
        cancelled = await transitions.cancel(self.store, reservation, reason)
        if cancelled is None:
            current = await self._require(reservation.reservation_id)
            transitions.ensure_transition(current, ReservationStatus.CANCELLED.value)
            cancelled = await transitions.cancel(self.store, current, reason)
            if cancelled is None:
                latest = await self._require(reservation.reservation_id)
                raise InvalidTransitionError(
                    reservation.reservation_id,
                    latest.status,
                    ReservationStatus.CANCELLED.value,
                )
        self.logger.info("Reservation %s cancelled (%s)", reservation.reservation_id, reason)
        return cancelled

    async def _require(self, reservation_id: str) -> Reservation:
        reservation = await self.store.get_reservation(reservation_id)
        if reservation is None:
            raise NotFoundError(f"Reservation {reservation_id} not found")
        return reservation

    async def _resolve_court_id(self, request: BookingRequest) -> str:
        if request.court_id:
            court = await self.store.get_court(request.court_id)
            if court is None or court.venue_id != str(request.venue_id):
                raise NotFoundError(
                    f"Court {request.court_id} not found at venue {request.venue_id}"
                )
            return court.court_id

        court = await self.store.find_court(request.venue_id, request.court_name)
        if court is None:
            raise NotFoundError(
                f"Court '{request.court_name}' not found at venue {request.venue_id}"
            )
        return court.court_id

    async def _mirror_upcoming(self, reservation: Reservation) -> None:
        venue = await self.store.get_venue(reservation.venue_id)
        court = await self.store.get_court(reservation.court_id)
        self.upcoming_games.add_booking(UpcomingGame(
            venue=venue.name if venue else reservation.venue_id,
            court=court.name if court else reservation.court_id,
            date=reservation.date,
            time=to_display_time(reservation.start_time),
            duration_hours=reservation.duration_hours,
            booking_type=reservation.booking_type,
            price=reservation.price,
            skill_level=reservation.skill_level,
            players_needed=reservation.players_needed,
        ))


__all__ = ["BookingService"]
