import logging

import pytest

import main as worker
from bootstrap import DependencyContainer
from infrastructure.settings import load_settings
from logging_config import setup_logging
from reservations.services.conflict_detector import ConflictFailurePolicy
from tests.helpers import Clock, booking_request, make_store


def make_settings(tmp_path, **env):
    values = {
        "RESERVATIONS_FILE": str(tmp_path / "reservations.json"),
        "MESSAGE_CACHE_FILE": str(tmp_path / "cache.json"),
        "LOG_DIRECTORY": str(tmp_path / "logs"),
    }
    values.update(env)
    return load_settings(values)


def test_container_wires_shared_components(tmp_path):
    settings = make_settings(
        tmp_path, CONFLICT_FAILURE_POLICY="raise", MESSAGE_CACHE_MAX_MESSAGES="5"
    )
    container = DependencyContainer(settings)

    deps = container.build_dependencies()

    assert deps.booking_service.store is deps.store
    assert deps.booking_service.scheduler is deps.scheduler
    assert deps.scheduler.evaluator is container.evaluator
    assert container.conflict_detector.failure_policy is ConflictFailurePolicy.RAISE
    assert deps.message_cache.max_messages == 5
    assert set(deps.as_dict()) == {
        "settings", "store", "booking_service", "participant_service", "join_request_service",
        "scheduler", "message_cache",
    }
    assert deps.join_request_service.participants is deps.participant_service
    assert deps.booking_service.upcoming_games.tz.zone == settings.timezone


@pytest.mark.asyncio
async def test_worker_single_pass_resolves_due_bookings(tmp_path):
    clock = Clock()
    store = await make_store(tmp_path, clock=clock)
    settings = make_settings(tmp_path, AUTO_ACCEPT_DELAY_MINUTES="0")
    container = DependencyContainer(settings, overrides={"store": store})

    reservation = await container.booking_service.create_booking(booking_request())
    evaluated = await worker.run_worker(container, once=True)

    assert evaluated == 1
    assert (await store.get_reservation(reservation.reservation_id)).status == "confirmed"


def test_setup_logging_creates_log_files_and_workflow_handler(tmp_path):
    settings = make_settings(tmp_path)
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        log_dir = setup_logging(settings)
        logging.getLogger("BookingService").info("BOOKING CREATED")
        for handler in logging.getLogger("BookingService").handlers:
            handler.flush()
    finally:
        for handler in root.handlers:
            handler.close()
        for name in ("BookingService", "ConflictDetector", "AutoAcceptEvaluator",
                     "AutoAcceptScheduler", "ReservationStore", "ParticipantService",
                     "JoinRequestService"):
            component = logging.getLogger(name)
            for handler in component.handlers:
                handler.close()
            component.handlers = []
            component.setLevel(logging.NOTSET)
        root.handlers = saved_handlers
        root.setLevel(saved_level)

    assert log_dir == str(tmp_path / "logs")
    assert (tmp_path / "logs" / "bot.log").exists()
    assert (tmp_path / "logs" / "bot_errors.log").exists()
    assert "BOOKING CREATED" in (tmp_path / "logs" / "reservations.log").read_text(encoding="utf-8")


def test_parser_flags():
    args = worker.build_parser().parse_args(["--once", "-v"])

    assert args.once is True
    assert args.verbose is True
