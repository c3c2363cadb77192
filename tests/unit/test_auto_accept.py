import pytest

from reservations.services.auto_accept import AutoAcceptEvaluator
from tests.helpers import Clock, FailingStore, fail_saves, insert_reservation, make_store


@pytest.mark.asyncio
async def test_earliest_pending_reservation_wins(tmp_path):
    clock = Clock()
    store = await make_store(tmp_path, clock=clock)
    clock.now = clock.now.replace(hour=10, minute=0, second=0)
    r1 = await insert_reservation(store, user_id="player-1")
    clock.advance(seconds=5)
    r2 = await insert_reservation(store, user_id="player-2")
    clock.advance(minutes=30)

    outcome = await AutoAcceptEvaluator(store).evaluate(r2.reservation_id)

    assert outcome.result == "cancelled"
    assert outcome.confirmed_id == r1.reservation_id
    assert outcome.cancelled_ids == [r2.reservation_id]
    winner = await store.get_reservation(r1.reservation_id)
    loser = await store.get_reservation(r2.reservation_id)
    assert winner.status == "confirmed"
    assert loser.status == "cancelled"
    assert loser.status_reason == "lost_first_come_first_served"


@pytest.mark.asyncio
async def test_evaluating_the_winner_reports_confirmed(tmp_path):
    clock = Clock()
    store = await make_store(tmp_path, clock=clock)
    r1 = await insert_reservation(store, user_id="player-1")
    clock.advance(seconds=5)
    r2 = await insert_reservation(store, user_id="player-2", start_time="18:00:00", end_time="20:00:00")

    outcome = await AutoAcceptEvaluator(store).evaluate(r1.reservation_id)

    assert outcome.result == "confirmed"
    assert outcome.cancelled_ids == [r2.reservation_id]


@pytest.mark.asyncio
async def test_non_overlapping_pending_reservations_are_untouched(tmp_path):
    clock = Clock()
    store = await make_store(tmp_path, clock=clock)
    r1 = await insert_reservation(store, user_id="player-1")
    other = await insert_reservation(
        store, user_id="player-2", start_time="19:00:00", end_time="20:00:00"
    )

    outcome = await AutoAcceptEvaluator(store).evaluate(r1.reservation_id)

    assert outcome.result == "confirmed"
    assert (await store.get_reservation(other.reservation_id)).status == "pending"


@pytest.mark.asyncio
async def test_resolved_or_missing_reservations_are_skipped(tmp_path):
    store = await make_store(tmp_path)
    confirmed = await insert_reservation(store, status="confirmed")
    evaluator = AutoAcceptEvaluator(store)

    assert (await evaluator.evaluate(confirmed.reservation_id)).result == "skipped"
    assert (await evaluator.evaluate("missing")).detail == "not_found"


@pytest.mark.asyncio
async def test_pending_blocked_by_confirmed_booking_is_cancelled(tmp_path):
    store = await make_store(tmp_path)
    await insert_reservation(store, status="confirmed", user_id="player-9")
    pending = await insert_reservation(store, user_id="player-1")

    outcome = await AutoAcceptEvaluator(store).evaluate(pending.reservation_id)

    assert outcome.result == "cancelled"
    stored = await store.get_reservation(pending.reservation_id)
    assert stored.status == "cancelled"
    assert stored.status_reason == "conflicts_with_confirmed_booking"
    assert stored.auto_accept_due_at is None


@pytest.mark.asyncio
async def test_failures_are_logged_and_swallowed(caplog):
    outcome = await AutoAcceptEvaluator(FailingStore("boom")).evaluate("r-1")

    assert outcome.failed
    assert "boom" in outcome.detail
    assert "AUTO-ACCEPT FAILED" in caplog.text


@pytest.mark.asyncio
async def test_cancel_overlapping_pending_skips_confirmed_row(tmp_path):
    store = await make_store(tmp_path)
    confirmed = await insert_reservation(store, status="confirmed", user_id="player-1")
    a = await insert_reservation(store, user_id="player-2")
    b = await insert_reservation(store, user_id="player-3", start_time="18:00:00", end_time="21:00:00")

    cancelled = await AutoAcceptEvaluator(store).cancel_overlapping_pending(confirmed)

    assert sorted(cancelled) == sorted([a.reservation_id, b.reservation_id])


@pytest.mark.asyncio
async def test_every_losing_candidate_is_cancelled_even_without_overlapping_winner(tmp_path):
    clock = Clock()
    store = await make_store(tmp_path, clock=clock)
    a = await insert_reservation(store, user_id="player-1", start_time="17:00:00", end_time="19:00:00")
    clock.advance(seconds=5)
    b = await insert_reservation(store, user_id="player-2", start_time="19:00:00", end_time="21:00:00")
    clock.advance(seconds=5)
    r = await insert_reservation(store, user_id="player-3", start_time="18:00:00", end_time="20:00:00")

    outcome = await AutoAcceptEvaluator(store).evaluate(r.reservation_id)

    assert outcome.result == "cancelled"
    assert outcome.confirmed_id == a.reservation_id
    assert sorted(outcome.cancelled_ids) == sorted([b.reservation_id, r.reservation_id])
    late = await store.get_reservation(b.reservation_id)
    assert late.status == "cancelled"
    assert late.status_reason == "lost_first_come_first_served"


@pytest.mark.asyncio
async def test_failed_confirm_write_leaves_reservation_pending(tmp_path, monkeypatch):
    store = await make_store(tmp_path)
    pending = await insert_reservation(store)
    fail_saves(monkeypatch, store)

    outcome = await AutoAcceptEvaluator(store).evaluate(pending.reservation_id)

    assert outcome.failed
    assert (await store.get_reservation(pending.reservation_id)).status == "pending"
