"""Join and leave open games."""

from __future__ import annotations

import logging

from reservations.errors import BackendError, GameFullError, InvalidTransitionError, NotFoundError, ValidationError
from reservations.models import Participant, Reservation, ReservationStatus


class ParticipantService:
    """Keeps ``booking_participants`` rows and the spots counter in step."""

    def __init__(self, store) -> None:
        self.store = store
        self.logger = logging.getLogger('ParticipantService')

    async def join_game(self, reservation_id: str, user_id: str) -> Participant:
        reservation = await self.require_open_game(reservation_id)
        if reservation.user_id == str(user_id):
            raise ValidationError("You cannot join your own game", field="user_id")

        participants = await self.store.list_participants(reservation_id)
        if any(p.user_id == str(user_id) for p in participants):
            raise ValidationError("You are already part of this game", field="user_id")

        # Conditional decrement: refuses to go below zero.
        updated = await self.store.adjust_players_needed(reservation_id, -1)
        if updated is None:
            raise GameFullError(f"Game {reservation_id} is already full")

        try:
            participant = await self.store.add_participant(reservation_id, str(user_id))
        except BackendError:
            await self.store.adjust_players_needed(reservation_id, 1)
            raise
        self.logger.info(
            "User %s joined %s; %s spots left",
            user_id,
            reservation_id,
            updated.players_needed,
        )
        return participant

    async def leave_game(self, reservation_id: str, user_id: str) -> Reservation:
        await self._require(reservation_id)
        removed = await self.store.remove_participant(reservation_id, str(user_id))
        if not removed:
            raise NotFoundError(f"User {user_id} is not part of game {reservation_id}")

        updated = await self.store.adjust_players_needed(reservation_id, 1)
        self.logger.info("User %s left %s", user_id, reservation_id)
        return updated

    async def total_players(self, reservation_id: str) -> int:
        """Participants plus the creator."""

        await self._require(reservation_id)
        return len(await self.store.list_participants(reservation_id)) + 1

    async def _require(self, reservation_id: str) -> Reservation:
        reservation = await self.store.get_reservation(reservation_id)
        if reservation is None:
            raise NotFoundError(f"Booking {reservation_id} not found")
        return reservation

    async def require_open_game(self, reservation_id: str) -> Reservation:
        reservation = await self._require(reservation_id)
        if not reservation.is_open_game:
            raise ValidationError(f"Booking {reservation_id} is not an open game", field="booking_type")
        if reservation.status == ReservationStatus.CANCELLED.value:
            raise InvalidTransitionError(reservation_id, reservation.status, "joined")
        return reservation
