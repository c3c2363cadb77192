"""Domain model definitions for court bookings."""

from .reservation import (
    BookingRequest,
    BookingType,
    Court,
    JoinRequest,
    JoinRequestStatus,
    Participant,
    PaymentStatus,
    Reservation,
    ReservationStatus,
    Venue,
)

__all__ = [
    "BookingRequest",
    "BookingType",
    "Court",
    "JoinRequest",
    "JoinRequestStatus",
    "Participant",
    "PaymentStatus",
    "Reservation",
    "ReservationStatus",
    "Venue",
]
