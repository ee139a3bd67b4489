"""Test cancellation evaluation: lateness, penalties, and signals."""
from datetime import time

import pytest

from fakes import NOW, TODAY, TOMORROW, FakeReads, make_booking, make_facility, rule_row
from verticals.courts.engine import RulesEngine
from verticals.courts.errors import NotFoundError
from verticals.courts.types import BookingStatus, CancellationRequest, PenaltyType, StrikeType


def _engine(reads):
    return RulesEngine(reads, clock=lambda: NOW)


def _cancel(booking_id="bk-c", facility_id="fac-1"):
    return CancellationRequest(
        booking_id=booking_id, user_id="user-1", facility_id=facility_id, reason="Rain"
    )


def _booking(**overrides):
    values = {"id": "bk-c", "booking_date": TODAY, "start_time": time(11), "end_time": time(12)}
    values.update(overrides)
    return make_booking(**values)


@pytest.mark.asyncio
async def test_early_cancellation_has_no_penalty():
    reads = FakeReads(bookings=[_booking(booking_date=TOMORROW, start_time=time(14), end_time=time(15))])
    evaluation = await _engine(reads).evaluate_cancellation(_cancel())
    assert evaluation.allowed
    assert not evaluation.is_late_cancel
    assert evaluation.strike is None
    assert evaluation.minutes_before_start == 29 * 60
    assert evaluation.cutoff_minutes == 240
    assert evaluation.cancellation.reason == "Rain"
    assert evaluation.message == "Reservation can be cancelled without penalty."


@pytest.mark.asyncio
async def test_late_cancellation_signals_strike():
    evaluation = await _engine(FakeReads(bookings=[_booking()])).evaluate_cancellation(_cancel())
    assert evaluation.allowed
    assert evaluation.is_late_cancel
    assert evaluation.strike_will_be_issued
    assert evaluation.minutes_before_start == 120
    assert evaluation.strike.strike_type == StrikeType.LATE_CANCEL
    assert evaluation.strike.related_booking_id == "bk-c"
    assert evaluation.cancellation.is_late_cancel
    assert evaluation.cancellation.strike_issued
    assert evaluation.cancellation.cancelled_at == NOW


@pytest.mark.asyncio
async def test_late_without_penalty():
    facility = make_facility(rule_row("ACC-008", {"penalty_type": "none"}))
    reads = FakeReads(facilities=[facility], bookings=[_booking()])
    evaluation = await _engine(reads).evaluate_cancellation(_cancel())
    assert evaluation.allowed
    assert evaluation.is_late_cancel
    assert not evaluation.strike_will_be_issued
    assert evaluation.message == "This is a late cancellation (120 minutes before start)."


@pytest.mark.asyncio
async def test_court_specific_block_cancel():
    facility = make_facility(
        rule_row(
            "CRT-012",
            {"cancel_cutoff_minutes": 180, "penalty_type": "block_cancel"},
            applies_to_court_ids=("court-1",),
        )
    )
    reads = FakeReads(facilities=[facility], bookings=[_booking()])
    evaluation = await _engine(reads).evaluate_cancellation(_cancel())
    assert not evaluation.allowed
    assert evaluation.cutoff_minutes == 180
    assert evaluation.penalty_type == PenaltyType.BLOCK_CANCEL
    assert evaluation.cancellation is None


@pytest.mark.asyncio
async def test_court_row_for_other_court_falls_back_to_account_policy():
    facility = make_facility(
        rule_row("CRT-012", {"penalty_type": "block_cancel"}, applies_to_court_ids=("court-2",))
    )
    reads = FakeReads(facilities=[facility], bookings=[_booking()])
    evaluation = await _engine(reads).evaluate_cancellation(_cancel())
    assert evaluation.allowed
    assert evaluation.cutoff_minutes == 240


@pytest.mark.asyncio
async def test_disabled_late_cancel_policy():
    facility = make_facility(rule_row("ACC-008", is_enabled=False))
    reads = FakeReads(facilities=[facility], bookings=[_booking()])
    evaluation = await _engine(reads).evaluate_cancellation(_cancel())
    assert evaluation.allowed
    assert not evaluation.is_late_cancel
    assert evaluation.cutoff_minutes == 0


@pytest.mark.asyncio
async def test_already_cancelled():
    reads = FakeReads(bookings=[_booking(status=BookingStatus.CANCELLED)])
    evaluation = await _engine(reads).evaluate_cancellation(_cancel())
    assert not evaluation.allowed
    assert evaluation.message == "This reservation is already cancelled."


@pytest.mark.asyncio
async def test_booking_from_another_facility_is_not_found():
    engine = _engine(FakeReads(bookings=[_booking()]))
    with pytest.raises(NotFoundError):
        await engine.evaluate_cancellation(_cancel(facility_id="fac-2"))
    with pytest.raises(NotFoundError):
        await engine.evaluate_cancellation(_cancel(booking_id="missing"))


@pytest.mark.asyncio
async def test_booking_of_another_user_is_not_found():
    reads = FakeReads(bookings=[_booking()])
    request = CancellationRequest(booking_id="bk-c", user_id="user-2", facility_id="fac-1")
    with pytest.raises(NotFoundError) as exc_info:
        await _engine(reads).evaluate_cancellation(request)
    assert exc_info.value.entity == "Booking"
