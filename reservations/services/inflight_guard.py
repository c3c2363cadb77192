"""Process-local guard against duplicate in-flight booking submissions."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Set

from reservations.errors import DuplicateInProgressError


class InFlightGuard:
    """Tracks keys currently being processed.

    Only protects a single process; two devices submitting the same booking
    are settled by the auto-accept evaluator instead.
    """

    def __init__(self) -> None:
        self._keys: Set[str] = set()

    def __contains__(self, key: str) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    def acquire(self, key: str) -> None:
        if key in self._keys:
            raise DuplicateInProgressError(key)
        self._keys.add(key)

    def release(self, key: str) -> None:
        self._keys.discard(key)

    @contextmanager
    def hold(self, key: str) -> Iterator[str]:
        """Hold ``key`` for the duration of the block, releasing it on any exit."""

        self.acquire(key)
        try:
            yield key
        finally:
            self.release(key)
