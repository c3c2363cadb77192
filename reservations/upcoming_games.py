"""In-memory list of upcoming games shown by the legacy home screen.

Cosmetic only: the reservation store is authoritative.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, List, Optional

import pytz

Listener = Callable[[], None]


@dataclass
class UpcomingGame:
    venue: str
    court: str
    date: date
    time: str
    duration_hours: int
    booking_type: str
    price: float
    skill_level: Optional[str] = None
    players_needed: Optional[int] = None
    status: str = "upcoming"
    game_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=lambda: datetime.now(pytz.UTC))


class UpcomingGames:
    """Keeps mirrored games and notifies subscribers on change."""

    def __init__(self, tz=None, *, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._games: List[UpcomingGame] = []
        self._listeners: List[Listener] = []
        self.tz = tz
        self._clock = clock or (lambda: datetime.now(pytz.UTC))
        self.logger = logging.getLogger('UpcomingGames')

    def add_booking(self, game: UpcomingGame) -> UpcomingGame:
        self._games.append(game)
        self._notify_listeners()
        return game

    def today(self) -> Optional[date]:
        """Current calendar day in the booking timezone; ``None`` without one."""

        if self.tz is None:
            return None
        return self._clock().astimezone(self.tz).date()

    def get_upcoming(self) -> List[UpcomingGame]:
        """Games still marked upcoming, hiding days already past in ``tz``."""

        today = self.today()
        games = [
            game for game in self._games
            if game.status == "upcoming" and (today is None or game.date >= today)
        ]
        return sorted(games, key=lambda game: (game.date, game.time))

    def get_all(self) -> List[UpcomingGame]:
        return list(self._games)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; the returned callable unsubscribes it."""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify_listeners(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception as exc:
                self.logger.error("Upcoming games listener failed: %s", exc)
