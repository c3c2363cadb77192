"""Shared fakes and utilities for unit tests."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

import pytz

from reservations.errors import BackendError
from reservations.models import BookingRequest, Court
from reservations.queue.reservation_repository import JsonReservationStore

VENUE_ID = "venue-1"
COURT_ID = "court-1"
OTHER_COURT_ID = "court-2"
OWNER_ID = "owner-1"


class DummyLogger:
    """Lightweight stand-in for ``logging.Logger`` that records calls."""

    def __init__(self) -> None:
        self.records: List[Tuple[str, Tuple[Any, ...], Dict[str, Any]]] = []

    def _record(self, level: str, *args: Any, **kwargs: Any) -> None:
        self.records.append((level, args, kwargs))

    def debug(self, *args: Any, **kwargs: Any) -> None:
        self._record("debug", *args, **kwargs)

    def info(self, *args: Any, **kwargs: Any) -> None:
        self._record("info", *args, **kwargs)

    def warning(self, *args: Any, **kwargs: Any) -> None:
        self._record("warning", *args, **kwargs)

    def error(self, *args: Any, **kwargs: Any) -> None:
        self._record("error", *args, **kwargs)

    def exception(self, *args: Any, **kwargs: Any) -> None:
        self._record("exception", *args, **kwargs)

    @property
    def messages(self) -> List[Tuple[str, Any]]:
        """Return formatted messages for quick assertions."""

        formatted: List[Tuple[str, Any]] = []
        for level, args, _kwargs in self.records:
            message: Any = args[0] if args else None
            if isinstance(message, str) and len(args) > 1:
                try:
                    message = message % args[1:]
                except (TypeError, ValueError):
                    pass
            formatted.append((level, message))
        return formatted

    def levels(self) -> List[str]:
        return [level for level, _args, _kwargs in self.records]


class Clock:
    """Manually advanced clock injected into stores, schedulers and caches."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or pytz.UTC.localize(datetime(2024, 6, 1, 9, 0, 0))

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FailingStore:
    """Store double whose reads raise ``BackendError``."""

    def __init__(self, message: str = "backend unavailable") -> None:
        self.message = message
        self.calls: List[str] = []

    async def list_reservations(self, **kwargs: Any):
        self.calls.append("list_reservations")
        raise BackendError(self.message)

    async def get_reservation(self, reservation_id: str):
        self.calls.append("get_reservation")
        raise BackendError(self.message)


async def make_store(tmp_path, clock: Optional[Clock] = None) -> JsonReservationStore:
    """JSON store seeded with one venue and two courts."""

    store = JsonReservationStore(str(tmp_path / "reservations.json"), clock=clock)
    await store.upsert_venue(VENUE_ID, "Riverside Sports Hall", owner_id=OWNER_ID)
    await store.upsert_court(Court(court_id=COURT_ID, venue_id=VENUE_ID, name="Court A"))
    await store.upsert_court(Court(court_id=OTHER_COURT_ID, venue_id=VENUE_ID, name="Court B"))
    return store


def booking_request(**overrides: Any) -> BookingRequest:
    """Valid private booking for 6:00 PM on 2024-06-15, court A."""

    fields: Dict[str, Any] = {
        "user_id": "player-1",
        "venue_id": VENUE_ID,
        "date": "2024-06-15",
        "start_time": "6:00 PM",
        "duration_hours": 1,
        "price": 20.0,
        "court_id": COURT_ID,
    }
    fields.update(overrides)
    return BookingRequest(**fields)


async def insert_reservation(
    store: JsonReservationStore,
    *,
    start_time: str = "18:00:00",
    end_time: str = "19:00:00",
    status: str = "pending",
    court_id: str = COURT_ID,
    user_id: str = "player-1",
    date: str = "2024-06-15",
    booking_type: str = "private",
    players_needed: Optional[int] = None,
):
    """Insert a raw reservation row, bypassing the booking service."""

    hours = int(end_time[:2]) - int(start_time[:2])
    return await store.insert_reservation({
        "venue_id": VENUE_ID,
        "court_id": court_id,
        "date": date,
        "start_time": start_time,
        "end_time": end_time,
        "duration": hours,
        "booking_type": booking_type,
        "player_count": players_needed,
        "price": 20.0,
        "status": status,
        "payment_status": "pending",
        "user_id": user_id,
    })


def fail_saves(monkeypatch, store: JsonReservationStore, message: str = "disk full") -> List[int]:
    """Make every save of ``store`` raise ``BackendError``; returns a call counter."""

    calls: List[int] = []

    def _save(tables):
        calls.append(1)
        raise BackendError(message)

    monkeypatch.setattr(store.repository, "save", _save)
    return calls
