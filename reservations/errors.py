"""Error taxonomy for the booking workflow."""

from __future__ import annotations

from typing import Any, Optional, Sequence


class BookingError(RuntimeError):
    """Base error for booking workflow failures."""


class ValidationError(BookingError, ValueError):
    """Raised when a request is missing fields or carries out-of-range values."""

    def __init__(self, message: str, *, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class ParseError(ValidationError):
    """Raised when a time or date string does not match the expected pattern."""


class NotFoundError(BookingError, LookupError):
    """Raised when a referenced venue, court, booking or participant does not resolve."""


class ConflictError(BookingError):
    """Raised when a confirmed reservation already occupies the requested slot."""

    def __init__(self, message: str, conflicts: Sequence[Any] = ()) -> None:
        super().__init__(message)
        self.conflicts = tuple(conflicts)


class DuplicateInProgressError(BookingError):
    """Raised when an identical booking submission is still being processed."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Booking request {key} is already being processed")
        self.key = key


class BackendError(BookingError):
    """Raised when the persistence layer rejects a read or write."""


class InvalidTransitionError(BookingError):
    """Raised when a reservation cannot move from its current status."""

    def __init__(self, reservation_id: str, current: str, target: str) -> None:
        super().__init__(
            f"Reservation {reservation_id} cannot move from {current} to {target}"
        )
        self.reservation_id = reservation_id
        self.current = current
        self.target = target


class GameFullError(BookingError):
    """Raised when an open game has no spots left."""


class AutoAcceptError(BookingError):
    """Wraps any failure raised while evaluating a pending reservation."""

    def __init__(self, reservation_id: str, cause: BaseException) -> None:
        super().__init__(f"Auto-accept failed for {reservation_id}: {cause}")
        self.reservation_id = reservation_id
        self.cause = cause


__all__ = [
    "BookingError",
    "ValidationError",
    "ParseError",
    "NotFoundError",
    "ConflictError",
    "DuplicateInProgressError",
    "BackendError",
    "InvalidTransitionError",
    "GameFullError",
    "AutoAcceptError",
]
