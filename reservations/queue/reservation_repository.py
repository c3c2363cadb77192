"""Backend query interface for reservations and its JSON-file implementation.

The managed backend is reached through :class:`ReservationStore`. The services
only ever talk to that interface; :class:`JsonReservationStore` is the
reference implementation used by the worker and the tests.
"""

from __future__ import annotations

import abc
import copy
import json
from collections import Counter
from contextlib import contextmanager
import logging
import uuid
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

import pytz

from reservations.errors import BackendError, DuplicateInProgressError
from reservations.models import (
    Court,
    JoinRequest,
    JoinRequestStatus,
    Participant,
    Reservation,
    ReservationStatus,
    Venue,
)
from reservations.queue.request_builder import DEFAULT_BUILDER, ReservationRecordBuilder

Clock = Callable[[], datetime]
TimeRange = Tuple[str, str]

TABLES = ("venues", "courts", "reservations", "participants", "join_requests")


def utc_now() -> datetime:
    return datetime.now(pytz.UTC)


def pending_unique_key(row: Mapping[str, Any]) -> str:
    """Unique index over pending rows: creator, court, date and start time."""

    return "|".join(
        str(row.get(name))
        for name in ('user_id', 'venue_id', 'court_id', 'date', 'start_time')
    )


class ReservationRepository:
    """Read/write backend tables to a JSON backing file."""

    def __init__(self, file_path: str, *, logger: Any) -> None:
        self._path = Path(file_path)
        self._logger = logger

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Dict[str, List[dict]]:
        """Load tables from disk, returning empty tables when the file is absent."""

        tables: Dict[str, List[dict]] = {name: [] for name in TABLES}
        if not self._path.exists():
            self._logger.debug("Store file %s does not exist; starting empty", self._path)
            return tables

        try:
            with self._path.open('r', encoding='utf-8') as handle:
                payload = json.load(handle)
        except (OSError, ValueError) as exc:
            raise BackendError(f"Failed to load store from {self._path}: {exc}") from exc

        if not isinstance(payload, dict):
            raise BackendError(
                f"Invalid store format in {self._path}; expected object, "
                f"received {type(payload).__name__}"
            )

        for name in TABLES:
            rows = payload.get(name, [])
            if not isinstance(rows, list):
                raise BackendError(f"Invalid '{name}' table in {self._path}")
            tables[name] = rows

        self._logger.debug(
            "Loaded %s reservations from %s", len(tables["reservations"]), self._path
        )
        return tables

    def save(self, tables: Mapping[str, Iterable[dict]]) -> None:
        """Persist tables to disk, ensuring parent directories exist."""

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(self._path.suffix + '.tmp')
            with tmp_path.open('w', encoding='utf-8') as handle:
                json.dump(
                    {name: list(rows) for name, rows in tables.items()},
                    handle,
                    indent=2,
                    ensure_ascii=False,
                )
            tmp_path.replace(self._path)
        except OSError as exc:
            raise BackendError(f"Failed to save store to {self._path}: {exc}") from exc
        self._logger.debug("Store saved to %s", self._path)


class ReservationStore(abc.ABC):
    """Query/command interface the booking workflow consumes.

    A write that raises leaves every table exactly as it was before the call.
    """

    @abc.abstractmethod
    async def get_reservation(self, reservation_id: str) -> Optional[Reservation]:
        ...

    @abc.abstractmethod
    async def insert_reservation(self, payload: Mapping[str, Any]) -> Reservation:
        """Insert a row; the store assigns ``id``, ``created_at`` and ``updated_at``.

        Raises ``DuplicateInProgressError`` when a pending row with the same
        creator, court, date and start time already exists.
        """

    @abc.abstractmethod
    async def update_reservation(
        self,
        reservation_id: str,
        *,
        expected_status: Optional[str] = None,
        **fields: Any,
    ) -> Optional[Reservation]:
        """Update a row, optionally only while it still has ``expected_status``.

        Returns the updated reservation, or ``None`` when no row matched.
        """

    @abc.abstractmethod
    async def list_reservations(
        self,
        *,
        venue_id: str,
        court_id: str,
        date: date,
        status: Optional[str] = None,
        overlapping: Optional[TimeRange] = None,
    ) -> List[Reservation]:
        """Return matching rows ordered by ``(created_at, id)`` ascending."""

    @abc.abstractmethod
    async def list_due_for_auto_accept(self, now: datetime) -> List[Reservation]:
        ...

    @abc.abstractmethod
    async def get_venue(self, venue_id: str) -> Optional[Venue]:
        ...

    @abc.abstractmethod
    async def get_court(self, court_id: str) -> Optional[Court]:
        ...

    @abc.abstractmethod
    async def find_court(self, venue_id: str, court_name: str) -> Optional[Court]:
        ...

    @abc.abstractmethod
    async def add_participant(self, reservation_id: str, user_id: str) -> Participant:
        ...

    @abc.abstractmethod
    async def remove_participant(self, reservation_id: str, user_id: str) -> bool:
        ...

    @abc.abstractmethod
    async def list_participants(self, reservation_id: str) -> List[Participant]:
        ...

    @abc.abstractmethod
    async def adjust_players_needed(
        self, reservation_id: str, delta: int
    ) -> Optional[Reservation]:
        """Conditionally add ``delta`` to ``player_count``.

        Returns ``None`` without writing when the count would drop below zero.
        """

    @abc.abstractmethod
    async def insert_join_request(
        self, reservation_id: str, requester_id: str, host_id: str
    ) -> JoinRequest:
        """Insert a ``pending`` join request.

        Raises ``DuplicateInProgressError`` when the requester already has a
        pending request for the same game.
        """

    @abc.abstractmethod
    async def get_join_request(self, request_id: str) -> Optional[JoinRequest]:
        ...

    @abc.abstractmethod
    async def find_join_request(
        self, reservation_id: str, requester_id: str
    ) -> Optional[JoinRequest]:
        """Return the requester's most recent request for a game, if any."""

    @abc.abstractmethod
    async def update_join_request(
        self,
        request_id: str,
        *,
        expected_status: Optional[str] = None,
        **fields: Any,
    ) -> Optional[JoinRequest]:
        """Conditional update with the same contract as ``update_reservation``."""

    @abc.abstractmethod
    async def list_join_requests(
        self,
        *,
        reservation_id: Optional[str] = None,
        host_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[JoinRequest]:
        """Return matching requests, newest first."""


class JsonReservationStore(ReservationStore):
    """
    In-memory tables persisted to a JSON file after every write.

    Every method body runs without suspending, so within one event loop each
    call is atomic with respect to the others. Writes are applied to a copy of
    the tables which replaces the live tables only once it has been saved.

    Attributes:
        repository (ReservationRepository): File persistence helper
        tables (Dict[str, List[dict]]): Raw rows keyed by table name
        logger (logging.Logger): Logger instance for this class
    """

    def __init__(
        self,
        file_path: str,
        *,
        clock: Optional[Clock] = None,
        builder: Optional[ReservationRecordBuilder] = None,
    ) -> None:
        self.logger = logging.getLogger('ReservationStore')
        self.repository = ReservationRepository(file_path, logger=self.logger)
        self._clock = clock or utc_now
        self._builder = builder or DEFAULT_BUILDER
        self.tables = self.repository.load()
        self.logger.info(f"""RESERVATION STORE OPENED
        File: {self.repository.path}
        Reservations: {len(self.tables['reservations'])}
        Courts: {len(self.tables['courts'])}
        Join requests: {len(self.tables['join_requests'])}
        Status breakdown: {self._get_status_counts()}
        """)

    # ------------------------------------------------------------------
    # Reference data
    # ------------------------------------------------------------------
    async def upsert_venue(self, venue_id: str, name: str, owner_id: Optional[str] = None) -> None:
        self._upsert('venues', {'id': venue_id, 'name': name, 'owner_id': owner_id})

    async def upsert_court(self, court: Court) -> Court:
        self._upsert('courts', {
            'id': court.court_id,
            'venue_id': court.venue_id,
            'name': court.name,
            'court_type': court.court_type,
        })
        return court

    async def get_venue(self, venue_id: str) -> Optional[Venue]:
        row = self._find_row(venue_id, table='venues')
        return self._builder.venue_from_payload(row) if row else None

    async def get_court(self, court_id: str) -> Optional[Court]:
        row = self._find_row(court_id, table='courts')
        return self._builder.court_from_payload(row) if row else None

    async def find_court(self, venue_id: str, court_name: str) -> Optional[Court]:
        wanted = court_name.strip().lower()
        for row in self.tables['courts']:
            if str(row.get('venue_id')) != str(venue_id):
                continue
            if str(row.get('name', '')).strip().lower() == wanted:
                return self._builder.court_from_payload(row)
        return None

    # ------------------------------------------------------------------
    # Reservations
    # ------------------------------------------------------------------
    async def get_reservation(self, reservation_id: str) -> Optional[Reservation]:
        row = self._find_row(reservation_id)
        return self._builder.record_from_payload(row) if row else None

    async def insert_reservation(self, payload: Mapping[str, Any]) -> Reservation:
        now = self._clock().isoformat()
        row = {key: self._to_storage(value) for key, value in payload.items()}
        row['id'] = uuid.uuid4().hex
        row['created_at'] = now
        row['updated_at'] = now
        row.setdefault('auto_accept_due_at', None)
        row.setdefault('status_reason', None)

        if row.get('status') == ReservationStatus.PENDING.value:
            duplicate = self._find_pending_duplicate(row)
            if duplicate is not None:
                self.logger.warning(
                    "Rejected duplicate pending reservation; %s already holds the slot",
                    duplicate.get('id'),
                )
                raise DuplicateInProgressError(pending_unique_key(row))

        reservation = self._builder.record_from_payload(row)
        with self._write() as draft:
            draft['reservations'].append(row)
        return reservation

    async def update_reservation(
        self,
        reservation_id: str,
        *,
        expected_status: Optional[str] = None,
        **fields: Any,
    ) -> Optional[Reservation]:
        row = self._find_row(reservation_id)
        if row is None:
            self.logger.warning("Reservation %s not found for update", reservation_id)
            return None
        if expected_status is not None and row.get('status') != expected_status:
            self.logger.debug(
                "Skipping update of %s: status is %s, expected %s",
                reservation_id,
                row.get('status'),
                expected_status,
            )
            return None

        with self._write() as draft:
            updated = self._find_row(reservation_id, tables=draft)
            for key, value in fields.items():
                updated[key] = self._to_storage(value)
            updated['updated_at'] = self._clock().isoformat()
        return self._builder.record_from_payload(updated)

    async def list_reservations(
        self,
        *,
        venue_id: str,
        court_id: str,
        date: date,
        status: Optional[str] = None,
        overlapping: Optional[TimeRange] = None,
    ) -> List[Reservation]:
        target_date = date.isoformat() if hasattr(date, 'isoformat') else str(date)
        matches: List[Reservation] = []
        for row in self.tables['reservations']:
            if str(row.get('venue_id')) != str(venue_id):
                continue
            if str(row.get('court_id')) != str(court_id):
                continue
            if row.get('date') != target_date:
                continue
            if status is not None and row.get('status') != status:
                continue
            if overlapping is not None:
                start, end = overlapping
                if not (row.get('start_time', '') < end and row.get('end_time', '') > start):
                    continue
            matches.append(self._builder.record_from_payload(row))

        matches.sort(key=lambda reservation: reservation.sort_key())
        return matches

    async def list_due_for_auto_accept(self, now: datetime) -> List[Reservation]:
        due: List[Reservation] = []
        for row in self.tables['reservations']:
            if row.get('status') != ReservationStatus.PENDING.value:
                continue
            if not row.get('auto_accept_due_at'):
                continue
            reservation = self._builder.record_from_payload(row)
            if reservation.auto_accept_due_at <= now:
                due.append(reservation)

        due.sort(key=lambda r: (r.auto_accept_due_at, r.created_at, r.reservation_id))
        return due

    async def adjust_players_needed(
        self, reservation_id: str, delta: int
    ) -> Optional[Reservation]:
        row = self._find_row(reservation_id)
        if row is None:
            return None
        current = int(row.get('player_count') or 0)
        if current + delta < 0:
            return None
        with self._write() as draft:
            updated = self._find_row(reservation_id, tables=draft)
            updated['player_count'] = current + delta
            updated['updated_at'] = self._clock().isoformat()
        return self._builder.record_from_payload(updated)

    # ------------------------------------------------------------------
    # Participants
    # ------------------------------------------------------------------
    async def add_participant(self, reservation_id: str, user_id: str) -> Participant:
        joined_at = self._clock()
        with self._write() as draft:
            draft['participants'].append({
                'booking_id': reservation_id,
                'user_id': user_id,
                'joined_at': joined_at.isoformat(),
            })
        return Participant(reservation_id=reservation_id, user_id=user_id, joined_at=joined_at)

    async def remove_participant(self, reservation_id: str, user_id: str) -> bool:
        for index, row in enumerate(self.tables['participants']):
            if row.get('booking_id') == reservation_id and row.get('user_id') == user_id:
                with self._write() as draft:
                    draft['participants'].pop(index)
                return True
        return False

    async def list_participants(self, reservation_id: str) -> List[Participant]:
        return [
            Participant(
                reservation_id=row['booking_id'],
                user_id=row['user_id'],
                joined_at=datetime.fromisoformat(row['joined_at']),
            )
            for row in self.tables['participants']
            if row.get('booking_id') == reservation_id
        ]

    # ------------------------------------------------------------------
    # Join requests
    # ------------------------------------------------------------------
    async def insert_join_request(
        self, reservation_id: str, requester_id: str, host_id: str
    ) -> JoinRequest:
        for existing in self.tables['join_requests']:
            if (
                existing.get('booking_id') == reservation_id
                and existing.get('requester_id') == requester_id
                and existing.get('status') == JoinRequestStatus.PENDING.value
            ):
                raise DuplicateInProgressError(f"{reservation_id}|{requester_id}")

        now = self._clock().isoformat()
        row = {
            'id': uuid.uuid4().hex,
            'booking_id': reservation_id,
            'requester_id': requester_id,
            'host_id': host_id,
            'status': JoinRequestStatus.PENDING.value,
            'created_at': now,
            'updated_at': now,
            'responded_at': None,
        }
        request = self._builder.join_request_from_payload(row)
        with self._write() as draft:
            draft['join_requests'].append(row)
        return request

    async def get_join_request(self, request_id: str) -> Optional[JoinRequest]:
        row = self._find_row(request_id, table='join_requests')
        return self._builder.join_request_from_payload(row) if row else None

    async def find_join_request(
        self, reservation_id: str, requester_id: str
    ) -> Optional[JoinRequest]:
        matches = await self.list_join_requests(reservation_id=reservation_id)
        for request in matches:
            if request.requester_id == requester_id:
                return request
        return None

    async def update_join_request(
        self,
        request_id: str,
        *,
        expected_status: Optional[str] = None,
        **fields: Any,
    ) -> Optional[JoinRequest]:
        row = self._find_row(request_id, table='join_requests')
        if row is None:
            self.logger.warning("Join request %s not found for update", request_id)
            return None
        if expected_status is not None and row.get('status') != expected_status:
            self.logger.debug(
                "Skipping update of join request %s: status is %s, expected %s",
                request_id,
                row.get('status'),
                expected_status,
            )
            return None

        with self._write() as draft:
            updated = self._find_row(request_id, table='join_requests', tables=draft)
            for key, value in fields.items():
                updated[key] = self._to_storage(value)
            updated['updated_at'] = self._clock().isoformat()
        return self._builder.join_request_from_payload(updated)

    async def list_join_requests(
        self,
        *,
        reservation_id: Optional[str] = None,
        host_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[JoinRequest]:
        matches: List[JoinRequest] = []
        for row in self.tables['join_requests']:
            if reservation_id is not None and row.get('booking_id') != reservation_id:
                continue
            if host_id is not None and row.get('host_id') != host_id:
                continue
            if status is not None and row.get('status') != status:
                continue
            matches.append(self._builder.join_request_from_payload(row))

        matches.sort(key=lambda r: (r.created_at, r.request_id), reverse=True)
        return matches

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @contextmanager
    def _write(self) -> Iterator[Dict[str, List[dict]]]:
        """Yield a copy of the tables; it becomes live only after a successful save."""

        draft = copy.deepcopy(self.tables)
        yield draft
        self.repository.save(draft)
        self.tables = draft

    def _find_row(
        self,
        row_id: str,
        *,
        table: str = 'reservations',
        tables: Optional[Mapping[str, List[dict]]] = None,
    ) -> Optional[dict]:
        source = self.tables if tables is None else tables
        for row in source[table]:
            if str(row.get('id')) == str(row_id):
                return row
        return None

    def _find_pending_duplicate(self, row: Mapping[str, Any]) -> Optional[dict]:
        key = pending_unique_key(row)
        for existing in self.tables['reservations']:
            if existing.get('status') != ReservationStatus.PENDING.value:
                continue
            if pending_unique_key(existing) == key:
                return existing
        return None

    def _upsert(self, table: str, row: Dict[str, Any]) -> None:
        with self._write() as draft:
            rows = draft[table]
            for index, existing in enumerate(rows):
                if existing.get('id') == row['id']:
                    rows[index] = row
                    break
            else:
                rows.append(row)

    @staticmethod
    def _to_storage(value: Any) -> Any:
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        if hasattr(value, 'value') and isinstance(getattr(value, 'value'), str):
            return value.value
        return value

    def _get_status_counts(self) -> Dict[str, int]:
        return dict(Counter(row.get('status', 'unknown') for row in self.tables['reservations']))


__all__ = [
    "ReservationRepository",
    "ReservationStore",
    "JsonReservationStore",
    "utc_now",
    "pending_unique_key",
]
