"""Reservation storage, transitions and scheduling."""

from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - typing helper
    from .reservation_repository import JsonReservationStore, ReservationStore
    from .reservation_scheduler import AutoAcceptScheduler

__all__ = [
    "JsonReservationStore",
    "ReservationStore",
    "AutoAcceptScheduler",
]


def __getattr__(name: str):
    if name in {"JsonReservationStore", "ReservationStore"}:
        module = import_module("reservations.queue.reservation_repository")
    elif name in {"AutoAcceptScheduler"}:
        module = import_module("reservations.queue.reservation_scheduler")
    else:
        raise AttributeError(name)
    return getattr(module, name)
