"""Builders for translating between booking rows and reservation dataclasses."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, Iterable, Mapping, Optional

import pytz

from reservations.errors import BackendError, ValidationError
from reservations.models import (
    BookingRequest,
    Court,
    JoinRequest,
    PaymentStatus,
    Reservation,
    Venue,
)

REQUIRED_ROW_FIELDS = {
    "id",
    "venue_id",
    "court_id",
    "date",
    "start_time",
    "end_time",
    "duration",
    "status",
    "user_id",
    "created_at",
}
REQUIRED_COURT_FIELDS = {"id", "venue_id", "name"}
REQUIRED_VENUE_FIELDS = {"id", "name"}
REQUIRED_JOIN_REQUEST_FIELDS = {
    "id",
    "booking_id",
    "requester_id",
    "host_id",
    "status",
    "created_at",
}


class ReservationRecordBuilder:
    """Construct reservation dataclasses from backend rows and back again."""

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def insert_payload(
        self,
        request: BookingRequest,
        *,
        court_id: str,
        start_time: str,
        end_time: str,
        status: str,
    ) -> Dict[str, Any]:
        """Build the row submitted to the store for a new reservation."""

        return {
            "venue_id": request.venue_id,
            "court_id": court_id,
            "date": self._parse_date(request.date, error=ValidationError).isoformat(),
            "start_time": start_time,
            "end_time": end_time,
            "duration": int(request.duration_hours),
            "booking_type": request.booking_type,
            "skill_level": request.skill_level,
            "player_count": request.players_needed,
            "price": float(request.price),
            "status": status,
            "payment_status": PaymentStatus.PENDING.value,
            "user_id": request.user_id,
        }

    def to_payload(self, reservation: Reservation) -> Dict[str, Any]:
        """Serialize a `Reservation` into the stored row structure."""

        return {
            "id": reservation.reservation_id,
            "venue_id": reservation.venue_id,
            "court_id": reservation.court_id,
            "date": reservation.date.isoformat(),
            "start_time": reservation.start_time,
            "end_time": reservation.end_time,
            "duration": reservation.duration_hours,
            "booking_type": reservation.booking_type,
            "skill_level": reservation.skill_level,
            "player_count": reservation.players_needed,
            "price": reservation.price,
            "status": reservation.status,
            "payment_status": reservation.payment_status,
            "user_id": reservation.user_id,
            "created_at": reservation.created_at.isoformat(),
            "updated_at": reservation.updated_at.isoformat(),
            "auto_accept_due_at": (
                reservation.auto_accept_due_at.isoformat()
                if reservation.auto_accept_due_at
                else None
            ),
            "status_reason": reservation.status_reason,
        }

    def record_from_payload(self, payload: Mapping[str, Any]) -> Reservation:
        """Convert a stored row into a `Reservation`, rejecting malformed rows."""

        self._ensure_fields(payload, REQUIRED_ROW_FIELDS, "Reservation row")
        try:
            created_at = self._parse_datetime(payload["created_at"])
            players_needed = payload.get("player_count")
            return Reservation(
                reservation_id=str(payload["id"]),
                venue_id=str(payload["venue_id"]),
                court_id=str(payload["court_id"]),
                date=self._parse_date(payload["date"]),
                start_time=str(payload["start_time"]),
                end_time=str(payload["end_time"]),
                duration_hours=int(payload["duration"]),
                booking_type=str(payload.get("booking_type") or "private"),
                price=float(payload.get("price") or 0),
                status=str(payload["status"]),
                payment_status=str(payload.get("payment_status") or PaymentStatus.PENDING.value),
                user_id=str(payload["user_id"]),
                created_at=created_at,
                updated_at=self._parse_datetime(payload.get("updated_at") or created_at),
                skill_level=payload.get("skill_level"),
                players_needed=int(players_needed) if players_needed is not None else None,
                auto_accept_due_at=(
                    self._parse_datetime(payload["auto_accept_due_at"])
                    if payload.get("auto_accept_due_at")
                    else None
                ),
                status_reason=payload.get("status_reason"),
            )
        except (TypeError, ValueError) as exc:
            raise BackendError(
                f"Malformed reservation row {payload.get('id')!r}: {exc}"
            ) from exc

    def court_from_payload(self, payload: Mapping[str, Any]) -> Court:
        self._ensure_fields(payload, REQUIRED_COURT_FIELDS, "Court row")
        return Court(
            court_id=str(payload["id"]),
            venue_id=str(payload["venue_id"]),
            name=str(payload["name"]),
            court_type=str(payload.get("court_type") or "badminton"),
        )

    def venue_from_payload(self, payload: Mapping[str, Any]) -> Venue:
        self._ensure_fields(payload, REQUIRED_VENUE_FIELDS, "Venue row")
        owner_id = payload.get("owner_id")
        return Venue(
            venue_id=str(payload["id"]),
            name=str(payload["name"]),
            owner_id=str(owner_id) if owner_id is not None else None,
        )

    def join_request_from_payload(self, payload: Mapping[str, Any]) -> JoinRequest:
        self._ensure_fields(payload, REQUIRED_JOIN_REQUEST_FIELDS, "Join request row")
        created_at = self._parse_datetime(payload["created_at"])
        updated_at = payload.get("updated_at")
        responded_at = payload.get("responded_at")
        return JoinRequest(
            request_id=str(payload["id"]),
            reservation_id=str(payload["booking_id"]),
            requester_id=str(payload["requester_id"]),
            host_id=str(payload["host_id"]),
            status=str(payload["status"]),
            created_at=created_at,
            updated_at=self._parse_datetime(updated_at) if updated_at else created_at,
            responded_at=self._parse_datetime(responded_at) if responded_at else None,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _parse_date(value: Any, *, error: type = ValueError) -> date:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            try:
                return date.fromisoformat(value.strip())
            except ValueError:
                pass
        raise error(f"Unsupported date value: {value!r}")

    @staticmethod
    def _parse_datetime(value: Any) -> datetime:
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, str) and value:
            parsed = datetime.fromisoformat(value)
        else:
            raise ValueError(f"Unsupported timestamp value: {value!r}")
        if parsed.tzinfo is None:
            parsed = pytz.UTC.localize(parsed)
        return parsed

    @staticmethod
    def _ensure_fields(
        source: Mapping[str, Any],
        required: Iterable[str],
        label: str,
    ) -> None:
        missing = [field for field in required if source.get(field) is None]
        if missing:
            raise BackendError(f"{label} missing required fields: {', '.join(sorted(missing))}")


def parse_booking_date(value: Optional[str]) -> date:
    """Parse a request date, raising ``ValidationError`` when it is unusable."""

    return ReservationRecordBuilder._parse_date(value, error=ValidationError)


DEFAULT_BUILDER = ReservationRecordBuilder()

__all__ = ["ReservationRecordBuilder", "DEFAULT_BUILDER", "parse_booking_date"]
