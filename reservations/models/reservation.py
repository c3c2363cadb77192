"""Domain dataclasses for reservations, courts, open-game participants and join requests."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional


class ReservationStatus(Enum):
    """Approval lifecycle of a court reservation"""
    PENDING = "pending"        # Waiting for owner action or auto-accept
    CONFIRMED = "confirmed"    # Holds the court
    CANCELLED = "cancelled"    # Rejected, withdrawn, or lost the slot


class PaymentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


class BookingType(Enum):
    """Whether the creator is looking for more players."""
    OPEN = "open"
    PRIVATE = "private"


@dataclass(frozen=True)
class Venue:
    venue_id: str
    name: str
    owner_id: Optional[str] = None


@dataclass(frozen=True)
class Court:
    """A bookable court; belongs to exactly one venue."""

    court_id: str
    venue_id: str
    name: str
    court_type: str = "badminton"


@dataclass(frozen=True)
class BookingRequest:
    """Input accepted by the booking creator.

    ``start_time`` is in display format (``"6:00 PM"``). Either ``court_id``
    or ``court_name`` must be supplied; a name is resolved against the venue.
    ``status`` is ``pending`` for the approval flow and ``confirmed`` for the
    direct booking path.
    """

    user_id: Optional[str]
    venue_id: Optional[str]
    date: Optional[str]
    start_time: Optional[str]
    duration_hours: Optional[int]
    booking_type: str = BookingType.PRIVATE.value
    price: Optional[float] = None
    court_id: Optional[str] = None
    court_name: Optional[str] = None
    skill_level: Optional[str] = None
    players_needed: Optional[int] = None
    status: str = ReservationStatus.PENDING.value


@dataclass(frozen=True)
class Reservation:
    """A persisted reservation row."""

    reservation_id: str
    venue_id: str
    court_id: str
    date: date
    start_time: str
    end_time: str
    duration_hours: int
    booking_type: str
    price: float
    status: str
    payment_status: str
    user_id: str
    created_at: datetime
    updated_at: datetime
    skill_level: Optional[str] = None
    players_needed: Optional[int] = None
    auto_accept_due_at: Optional[datetime] = None
    status_reason: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.status == ReservationStatus.PENDING.value

    @property
    def is_open_game(self) -> bool:
        return self.booking_type == BookingType.OPEN.value

    def sort_key(self):
        """First-come-first-served ordering; id breaks timestamp ties."""
        return (self.created_at, self.reservation_id)


@dataclass(frozen=True)
class Participant:
    """A user occupying one spot of an open game."""

    reservation_id: str
    user_id: str
    joined_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class JoinRequestStatus(Enum):
    """Lifecycle of a request to join someone else's open game"""
    PENDING = "pending"        # Waiting for the host
    ACCEPTED = "accepted"      # Requester now holds a spot
    REJECTED = "rejected"      # Host declined
    CANCELLED = "cancelled"    # Requester withdrew


@dataclass(frozen=True)
class JoinRequest:
    """A user's request to take a spot in an open game, answered by its host."""

    request_id: str
    reservation_id: str
    requester_id: str
    host_id: str
    status: str
    created_at: datetime
    updated_at: datetime
    responded_at: Optional[datetime] = None

    @property
    def is_pending(self) -> bool:
        return self.status == JoinRequestStatus.PENDING.value
