"""Bootstrap helpers for wiring the booking workflow together."""

from .container import BookingDependencies, DependencyContainer

__all__ = [
    'BookingDependencies',
    'DependencyContainer',
]
