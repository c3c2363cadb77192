from datetime import timedelta

from infrastructure.settings import load_settings


def test_defaults_when_environment_is_empty():
    settings = load_settings({})

    assert settings.production_mode is False
    assert settings.timezone == "UTC"
    assert settings.auto_accept_delay == timedelta(minutes=30)
    assert settings.auto_accept_poll_seconds == 15.0
    assert settings.conflict_failure_policy == "closed"
    assert settings.message_cache_ttl == timedelta(hours=12)
    assert settings.message_cache_max_messages == 50
    assert settings.message_cache_max_conversations == 20
    assert settings.reservations_file == "data/reservations.json"


def test_environment_overrides():
    settings = load_settings({
        "PRODUCTION_MODE": "true",
        "BOOKING_TIMEZONE": "Asia/Kolkata",
        "AUTO_ACCEPT_DELAY_MINUTES": "5",
        "CONFLICT_FAILURE_POLICY": "OPEN",
        "MESSAGE_CACHE_MAX_MESSAGES": "10",
        "LOG_DIRECTORY": "/tmp/booking-logs",
    })

    assert settings.production_mode is True
    assert settings.tz.zone == "Asia/Kolkata"
    assert settings.auto_accept_delay == timedelta(minutes=5)
    assert settings.conflict_failure_policy == "open"
    assert settings.message_cache_max_messages == 10
    assert settings.log_directory == "/tmp/booking-logs"


def test_malformed_values_fall_back_to_defaults():
    settings = load_settings({
        "BOOKING_TIMEZONE": "Mars/Olympus",
        "AUTO_ACCEPT_POLL_SECONDS": "soon",
        "MESSAGE_CACHE_MAX_CONVERSATIONS": "many",
        "CONFLICT_FAILURE_POLICY": "maybe",
    })

    assert settings.timezone == "UTC"
    assert settings.auto_accept_poll_seconds == 15.0
    assert settings.message_cache_max_conversations == 20
    assert settings.conflict_failure_policy == "closed"
