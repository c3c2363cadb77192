"""Request, answer and withdraw requests to join open games.

A request moves out of ``pending`` exactly once. Accepting one claims a spot
through :class:`ParticipantService`, so the same guarded decrement protects
both direct joins and host-approved joins.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, List, Optional

from reservations.errors import InvalidTransitionError, NotFoundError, ValidationError
from reservations.models import JoinRequest, JoinRequestStatus, Participant
from reservations.queue.reservation_repository import utc_now
from reservations.services.participant_service import ParticipantService


class JoinRequestService:
    """Host-approved joining of open games."""

    def __init__(
        self,
        store,
        participants: Optional[ParticipantService] = None,
        *,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.store = store
        self.participants = participants or ParticipantService(store)
        self._clock = clock or utc_now
        self.logger = logging.getLogger('JoinRequestService')

    async def request_join(self, reservation_id: str, requester_id: str) -> JoinRequest:
        """
        Ask the host of an open game for a spot.

        Raises:
            ValidationError: A request is already pending, was rejected or
                accepted, the requester already plays, hosts the game, or
                the game is full
            NotFoundError: The booking does not exist
        """

        requester_id = str(requester_id)
        existing = await self.store.find_join_request(reservation_id, requester_id)
        if existing is not None:
            if existing.status == JoinRequestStatus.PENDING.value:
                raise ValidationError("Join request already sent", field="requester_id")
            if existing.status == JoinRequestStatus.REJECTED.value:
                raise ValidationError("Your previous request was rejected", field="requester_id")
            if existing.status == JoinRequestStatus.ACCEPTED.value:
                raise ValidationError("You have already joined this game", field="requester_id")

        participants = await self.store.list_participants(reservation_id)
        if any(p.user_id == requester_id for p in participants):
            raise ValidationError("You are already part of this game", field="requester_id")

        game = await self.participants.require_open_game(reservation_id)
        if game.user_id == requester_id:
            raise ValidationError("You cannot join your own game", field="requester_id")
        if (game.players_needed or 0) <= 0:
            raise ValidationError("This game is already full", field="players_needed")

        request = await self.store.insert_join_request(reservation_id, requester_id, game.user_id)
        self.logger.info(f"""JOIN REQUEST SENT
        Request ID: {request.request_id}
        Game: {reservation_id}
        Requester: {requester_id}
        Host: {game.user_id}
        Spots left: {game.players_needed}
        """)
        return request

    async def accept_join_request(self, request_id: str) -> Participant:
        """Host accepts; the requester takes a spot or the request stays pending.

        Raises ``GameFullError`` when no spot is left.
        """

        request = await self._respond(request_id, JoinRequestStatus.ACCEPTED)
        try:
            participant = await self.participants.join_game(
                request.reservation_id, request.requester_id
            )
        except Exception:
            await self.store.update_join_request(
                request_id,
                expected_status=JoinRequestStatus.ACCEPTED.value,
                status=JoinRequestStatus.PENDING.value,
                responded_at=None,
            )
            raise
        self.logger.info(
            "Join request %s accepted; %s joined %s",
            request_id,
            request.requester_id,
            request.reservation_id,
        )
        return participant

    async def reject_join_request(self, request_id: str) -> JoinRequest:
        request = await self._respond(request_id, JoinRequestStatus.REJECTED)
        self.logger.info("Join request %s rejected", request_id)
        return request

    async def cancel_join_request(self, request_id: str, requester_id: str) -> JoinRequest:
        """Requester withdraws their own pending request."""

        current = await self._require(request_id)
        if current.requester_id != str(requester_id):
            raise NotFoundError(f"Join request {request_id} not found for user {requester_id}")
        request = await self._respond(request_id, JoinRequestStatus.CANCELLED)
        self.logger.info("Join request %s cancelled by %s", request_id, requester_id)
        return request

    async def requests_for_game(self, reservation_id: str) -> List[JoinRequest]:
        return await self.store.list_join_requests(reservation_id=reservation_id)

    async def pending_for_host(self, host_id: str) -> List[JoinRequest]:
        return await self.store.list_join_requests(
            host_id=str(host_id), status=JoinRequestStatus.PENDING.value
        )

    async def pending_count(self, host_id: str) -> int:
        return len(await self.pending_for_host(host_id))

    async def request_status(self, reservation_id: str, requester_id: str) -> Optional[JoinRequest]:
        return await self.store.find_join_request(reservation_id, str(requester_id))

    async def _respond(self, request_id: str, target: JoinRequestStatus) -> JoinRequest:
        await self._require(request_id)
        updated = await self.store.update_join_request(
            request_id,
            expected_status=JoinRequestStatus.PENDING.value,
            status=target.value,
            responded_at=self._clock(),
        )
        if updated is None:
            latest = await self._require(request_id)
            raise InvalidTransitionError(request_id, latest.status, target.value)
        return updated

    async def _require(self, request_id: str) -> JoinRequest:
        request = await self.store.get_join_request(request_id)
        if request is None:
            raise NotFoundError(f"Join request {request_id} not found")
        return request


__all__ = ["JoinRequestService"]
