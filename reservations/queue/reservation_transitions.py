"""State transition helpers for reservation rows."""

from __future__ import annotations

from typing import Any, Optional

from reservations.errors import InvalidTransitionError
from reservations.models import Reservation, ReservationStatus

ALLOWED_TRANSITIONS = {
    ReservationStatus.PENDING.value: {
        ReservationStatus.CONFIRMED.value,
        ReservationStatus.CANCELLED.value,
    },
    ReservationStatus.CONFIRMED.value: set(),
    ReservationStatus.CANCELLED.value: set(),
}


def can_transition(current: str, new_status: str) -> bool:
    return new_status in ALLOWED_TRANSITIONS.get(current, set())


def ensure_transition(reservation: Reservation, new_status: str) -> None:
    """Raise ``InvalidTransitionError`` if ``reservation`` cannot move to ``new_status``."""

    if not can_transition(reservation.status, new_status):
        raise InvalidTransitionError(reservation.reservation_id, reservation.status, new_status)


async def apply_status_update(
    store: Any,
    reservation: Reservation,
    new_status: str,
    **updates: Any,
) -> Optional[Reservation]:
    """Move a pending reservation to ``new_status`` and clear its auto-accept deadline.

    The write is conditional on the row still being ``pending``; ``None`` means
    another actor resolved it first.
    """

    ensure_transition(reservation, new_status)
    return await store.update_reservation(
        reservation.reservation_id,
        expected_status=reservation.status,
        status=new_status,
        auto_accept_due_at=None,
        **updates,
    )


async def confirm(store: Any, reservation: Reservation, **updates: Any) -> Optional[Reservation]:
    return await apply_status_update(
        store, reservation, ReservationStatus.CONFIRMED.value, **updates
    )


async def cancel(
    store: Any,
    reservation: Reservation,
    reason: str,
    **updates: Any,
) -> Optional[Reservation]:
    return await apply_status_update(
        store,
        reservation,
        ReservationStatus.CANCELLED.value,
        status_reason=reason,
        **updates,
    )
