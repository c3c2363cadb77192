"""Dependency container wiring stores, services and the scheduler."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from chat.kv_store import JsonFileKeyValueStore, KeyValueStore
from chat.message_cache import MessageCache
from infrastructure.settings import AppSettings
from reservations.queue.reservation_repository import JsonReservationStore, ReservationStore
from reservations.queue.reservation_scheduler import AutoAcceptScheduler
from reservations.services.auto_accept import AutoAcceptEvaluator
from reservations.services.booking_service import BookingService
from reservations.services.conflict_detector import ConflictDetector, ConflictFailurePolicy
from reservations.services.join_request_service import JoinRequestService
from reservations.services.participant_service import ParticipantService
from reservations.upcoming_games import UpcomingGames


@dataclass(frozen=True)
class BookingDependencies:
    """Concrete dependency snapshot for the booking runtime."""

    settings: AppSettings
    store: ReservationStore
    booking_service: BookingService
    participant_service: ParticipantService
    join_request_service: JoinRequestService
    scheduler: AutoAcceptScheduler
    message_cache: MessageCache

    def as_dict(self) -> Dict[str, Any]:
        return {
            'settings': self.settings,
            'store': self.store,
            'booking_service': self.booking_service,
            'participant_service': self.participant_service,
            'join_request_service': self.join_request_service,
            'scheduler': self.scheduler,
            'message_cache': self.message_cache,
        }


class DependencyContainer:
    """Lazy dependency container with optional override support."""

    def __init__(
        self,
        settings: AppSettings,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.settings = settings
        self._cache: Dict[str, Any] = {}
        if overrides:
            self._cache.update(overrides)

    def _resolve(self, key: str, factory: Callable[[], Any]) -> Any:
        if key not in self._cache:
            self._cache[key] = factory()
        return self._cache[key]

    # ------------------------------------------------------------------
    # Storage
    @property
    def store(self) -> ReservationStore:
        return self._resolve(
            'store', lambda: JsonReservationStore(self.settings.reservations_file)
        )

    @property
    def kv_store(self) -> KeyValueStore:
        return self._resolve(
            'kv_store', lambda: JsonFileKeyValueStore(self.settings.message_cache_file)
        )

    # ------------------------------------------------------------------
    # Booking workflow
    @property
    def conflict_detector(self) -> ConflictDetector:
        def factory() -> ConflictDetector:
            policy = ConflictFailurePolicy.from_setting(self.settings.conflict_failure_policy)
            return ConflictDetector(self.store, failure_policy=policy)

        return self._resolve('conflict_detector', factory)

    @property
    def evaluator(self) -> AutoAcceptEvaluator:
        return self._resolve('evaluator', lambda: AutoAcceptEvaluator(self.store))

    @property
    def scheduler(self) -> AutoAcceptScheduler:
        def factory() -> AutoAcceptScheduler:
            return AutoAcceptScheduler(
                self.store,
                self.evaluator,
                poll_interval=self.settings.auto_accept_poll_seconds,
            )

        return self._resolve('scheduler', factory)

    @property
    def upcoming_games(self) -> UpcomingGames:
        return self._resolve('upcoming_games', lambda: UpcomingGames(self.settings.tz))

    @property
    def booking_service(self) -> BookingService:
        def factory() -> BookingService:
            return BookingService(
                self.store,
                conflict_detector=self.conflict_detector,
                scheduler=self.scheduler,
                evaluator=self.evaluator,
                upcoming_games=self.upcoming_games,
                auto_accept_delay=self.settings.auto_accept_delay,
            )

        return self._resolve('booking_service', factory)

    @property
    def participant_service(self) -> ParticipantService:
        return self._resolve('participant_service', lambda: ParticipantService(self.store))

    @property
    def join_request_service(self) -> JoinRequestService:
        return self._resolve(
            'join_request_service',
            lambda: JoinRequestService(self.store, self.participant_service),
        )

    # ------------------------------------------------------------------
    # Chat
    @property
    def message_cache(self) -> MessageCache:
        def factory() -> MessageCache:
            return MessageCache(
                self.kv_store,
                ttl=self.settings.message_cache_ttl,
                max_messages=self.settings.message_cache_max_messages,
                max_conversations=self.settings.message_cache_max_conversations,
            )

        return self._resolve('message_cache', factory)

    # ------------------------------------------------------------------
    def build_dependencies(self) -> BookingDependencies:
        """Materialise and return all core dependencies."""

        return BookingDependencies(
            settings=self.settings,
            store=self.store,
            booking_service=self.booking_service,
            participant_service=self.participant_service,
            join_request_service=self.join_request_service,
            scheduler=self.scheduler,
            message_cache=self.message_cache,
        )


__all__ = ['BookingDependencies', 'DependencyContainer']
