"""Time arithmetic helpers for booking slots.

Two string formats are in play: the display format used by the app
(``"6:00 PM"``) and the sortable 24-hour wire format stored by the backend
(``"18:00:00"``). Wire strings compare correctly as plain strings, which is
what the overlap checks rely on.
"""

from __future__ import annotations

import re
from typing import Tuple

from reservations.errors import ParseError, ValidationError

_DISPLAY_PATTERN = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*([AaPp][Mm])\s*$")
_WIRE_PATTERN = re.compile(r"^\s*(\d{2}):(\d{2})(?::(\d{2}))?\s*$")


def to_wire_time(display: str) -> str:
    """Convert ``"H:MM AM/PM"`` into ``"HH:MM:SS"``."""

    if not isinstance(display, str):
        raise ParseError(f"Display time must be a string, got {type(display).__name__}")

    match = _DISPLAY_PATTERN.match(display)
    if not match:
        raise ParseError(f"Time '{display}' does not match 'H:MM AM/PM'")

    hour = int(match.group(1))
    minute = int(match.group(2))
    meridiem = match.group(3).upper()

    if not (1 <= hour <= 12):
        raise ParseError(f"Hour {hour} out of valid range 1-12")
    if not (0 <= minute <= 59):
        raise ParseError(f"Minute {minute} out of valid range 0-59")

    if meridiem == "AM":
        hour = 0 if hour == 12 else hour
    else:
        hour = 12 if hour == 12 else hour + 12

    return f"{hour:02d}:{minute:02d}:00"


def parse_wire_time(wire: str) -> Tuple[int, int, int]:
    """Split a ``"HH:MM:SS"`` (or ``"HH:MM"``) string into its components."""

    if not isinstance(wire, str):
        raise ParseError(f"Wire time must be a string, got {type(wire).__name__}")

    match = _WIRE_PATTERN.match(wire)
    if not match:
        raise ParseError(f"Time '{wire}' does not match 'HH:MM:SS'")

    hour = int(match.group(1))
    minute = int(match.group(2))
    second = int(match.group(3) or 0)

    if not (0 <= hour <= 23):
        raise ParseError(f"Hour {hour} out of valid range 0-23")
    if not (0 <= minute <= 59):
        raise ParseError(f"Minute {minute} out of valid range 0-59")
    if not (0 <= second <= 59):
        raise ParseError(f"Second {second} out of valid range 0-59")

    return hour, minute, second


def to_display_time(wire: str) -> str:
    """Convert ``"HH:MM:SS"`` into ``"H:MM AM/PM"``."""

    hour, minute, _ = parse_wire_time(wire)
    meridiem = "AM" if hour < 12 else "PM"
    display_hour = hour % 12 or 12
    return f"{display_hour}:{minute:02d} {meridiem}"


def add_hours(wire_start: str, hours: int) -> str:
    """Return ``wire_start`` shifted by ``hours``.

    Bookings never span midnight, so a result at or past ``24:00`` is
    rejected rather than rolled into the next day.
    """

    if isinstance(hours, bool) or not isinstance(hours, int):
        raise ValidationError(f"Hours must be an integer, got {hours!r}", field="duration_hours")
    if hours < 0:
        raise ValidationError(f"Hours must not be negative, got {hours}", field="duration_hours")

    hour, minute, second = parse_wire_time(wire_start)
    end_hour = hour + hours
    if end_hour > 23:
        raise ValidationError(
            f"{wire_start} plus {hours}h crosses midnight; overnight bookings are not supported",
            field="duration_hours",
        )
    return f"{end_hour:02d}:{minute:02d}:{second:02d}"


def normalise_wire_time(wire: str) -> str:
    """Return ``wire`` in canonical ``"HH:MM:SS"`` form."""

    hour, minute, second = parse_wire_time(wire)
    return f"{hour:02d}:{minute:02d}:{second:02d}"


def time_range(wire_start: str, hours: int) -> Tuple[str, str]:
    """Return the half-open ``[start, end)`` wire interval for a booking."""

    start = normalise_wire_time(wire_start)
    return start, add_hours(start, hours)


def intervals_overlap(a_start: str, a_end: str, b_start: str, b_end: str) -> bool:
    """Half-open interval intersection on canonical wire strings."""

    return a_start < b_end and a_end > b_start


__all__ = [
    "to_wire_time",
    "to_display_time",
    "add_hours",
    "parse_wire_time",
    "normalise_wire_time",
    "time_range",
    "intervals_overlap",
]
