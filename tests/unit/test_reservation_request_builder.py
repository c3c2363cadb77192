from datetime import date, datetime

import pytest
import pytz

from reservations.errors import BackendError, ValidationError
from reservations.queue.request_builder import DEFAULT_BUILDER, parse_booking_date
from tests.helpers import booking_request


def test_insert_payload_maps_request_to_row():
    request = booking_request(booking_type="open", skill_level="beginner", players_needed=2)

    payload = DEFAULT_BUILDER.insert_payload(
        request, court_id="court-1", start_time="18:00:00", end_time="19:00:00", status="pending"
    )

    assert payload["date"] == "2024-06-15"
    assert payload["duration"] == 1
    assert payload["player_count"] == 2
    assert payload["payment_status"] == "pending"
    assert payload["price"] == 20.0


def test_record_from_payload_localizes_naive_timestamps():
    record = DEFAULT_BUILDER.record_from_payload({
        "id": "r1",
        "venue_id": "venue-1",
        "court_id": "court-1",
        "date": "2024-06-15",
        "start_time": "18:00:00",
        "end_time": "19:00:00",
        "duration": "1",
        "status": "pending",
        "user_id": 42,
        "created_at": "2024-06-01T10:00:00",
    })

    assert record.user_id == "42"
    assert record.duration_hours == 1
    assert record.booking_type == "private"
    assert record.created_at == pytz.UTC.localize(datetime(2024, 6, 1, 10, 0))
    assert record.updated_at == record.created_at

    round_tripped = DEFAULT_BUILDER.record_from_payload(DEFAULT_BUILDER.to_payload(record))
    assert round_tripped == record


def test_record_from_payload_rejects_bad_values():
    row = {
        "id": "r1", "venue_id": "v", "court_id": "c", "date": "not-a-date",
        "start_time": "18:00:00", "end_time": "19:00:00", "duration": 1,
        "status": "pending", "user_id": "u", "created_at": "2024-06-01T10:00:00",
    }

    with pytest.raises(BackendError):
        DEFAULT_BUILDER.record_from_payload(row)


def test_parse_booking_date():
    assert parse_booking_date("2024-06-15") == date(2024, 6, 15)
    with pytest.raises(ValidationError):
        parse_booking_date(None)
