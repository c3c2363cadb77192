import pytest

from reservations.errors import DuplicateInProgressError
from reservations.services.inflight_guard import InFlightGuard


def test_hold_rejects_duplicates_and_releases_on_error():
    guard = InFlightGuard()

    with pytest.raises(RuntimeError):
        with guard.hold("key"):
            assert "key" in guard
            with pytest.raises(DuplicateInProgressError):
                guard.acquire("key")
            raise RuntimeError("processing failed")

    assert "key" not in guard
    assert len(guard) == 0
    with guard.hold("key"):
        pass
