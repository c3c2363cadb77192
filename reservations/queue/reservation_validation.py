"""Validation helpers for incoming booking requests."""

from __future__ import annotations

import math
from typing import Any

from infrastructure.constants import BOOKING_TYPES, MAX_DURATION_HOURS, MIN_DURATION_HOURS
from reservations.errors import ValidationError
from reservations.models import BookingRequest, BookingType, ReservationStatus
from reservations.queue.request_builder import parse_booking_date

REQUIRED_REQUEST_FIELDS = ("user_id", "venue_id", "date", "start_time", "duration_hours", "price")
CREATABLE_STATUSES = {ReservationStatus.PENDING.value, ReservationStatus.CONFIRMED.value}


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_booking_request(request: BookingRequest, *, logger: Any) -> None:
    """Raise ``ValidationError`` if the request cannot be booked as submitted."""

    missing = [name for name in REQUIRED_REQUEST_FIELDS if _is_blank(getattr(request, name))]
    if _is_blank(request.court_id) and _is_blank(request.court_name):
        missing.append("court_id")
    if missing:
        logger.warning("BOOKING REJECTED: missing fields %s", ", ".join(missing))
        raise ValidationError(
            f"Missing required fields: {', '.join(missing)}", field=missing[0]
        )

    try:
        price = float(request.price)
    except (TypeError, ValueError):
        raise ValidationError(f"Price must be a number, got {request.price!r}", field="price")
    if not math.isfinite(price):
        raise ValidationError(f"Price must be a finite number, got {request.price!r}", field="price")
    if price < 0:
        raise ValidationError(f"Price must not be negative, got {price}", field="price")

    duration = request.duration_hours
    if isinstance(duration, bool) or not isinstance(duration, int):
        raise ValidationError(
            f"Duration must be a whole number of hours, got {duration!r}",
            field="duration_hours",
        )
    if not (MIN_DURATION_HOURS <= duration <= MAX_DURATION_HOURS):
        raise ValidationError(
            f"Duration must be between {MIN_DURATION_HOURS} and {MAX_DURATION_HOURS} hours",
            field="duration_hours",
        )

    if request.booking_type not in BOOKING_TYPES:
        raise ValidationError(
            f"Unknown booking type {request.booking_type!r}", field="booking_type"
        )

    if request.status not in CREATABLE_STATUSES:
        raise ValidationError(
            f"New bookings cannot start as {request.status!r}", field="status"
        )

    parse_booking_date(request.date)

    is_open = request.booking_type == BookingType.OPEN.value
    if not is_open and (request.skill_level is not None or request.players_needed is not None):
        raise ValidationError(
            "Skill level and player count only apply to open games", field="booking_type"
        )
    if request.players_needed is not None:
        if isinstance(request.players_needed, bool) or not isinstance(request.players_needed, int):
            raise ValidationError("Player count must be an integer", field="players_needed")
        if request.players_needed < 1:
            raise ValidationError("Open games need at least one more player", field="players_needed")


def booking_dedup_key(request: BookingRequest) -> str:
    """Composite key identifying identical submissions."""

    court = request.court_id or f"name:{(request.court_name or '').strip().lower()}"
    return "|".join(
        str(part)
        for part in (request.user_id, request.venue_id, court, request.date, request.start_time)
    )
