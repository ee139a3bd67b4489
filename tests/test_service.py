"""Test the booking service against in-memory reads and writes."""
from datetime import time, timedelta

import pytest

from fakes import NOW, TODAY, FakeReads, FakeWriter, make_booking, make_request
from patterns.domain_config import RulesEngineConfig, ServiceConfig
from verticals.courts.errors import NotFoundError
from verticals.courts.engine import RulesEngine
from verticals.courts.service import SLOT_TAKEN, BookingService
from verticals.courts.types import AdminOverride, BookingStatus, CancellationRequest, StrikeType


def _service(reads, config=None):
    engine = RulesEngine(reads, config=config, clock=lambda: NOW)
    return BookingService(engine, FakeWriter(reads))


@pytest.mark.asyncio
async def test_create_booking_inserts_and_logs_action():
    reads = FakeReads()
    service = _service(reads)
    outcome = await service.create_booking(make_request())
    assert outcome.success
    assert outcome.booking["status"] == "confirmed"
    assert service.writer.actions == [("user-1", "fac-1", "create")]
    assert len(reads.bookings) == 1


@pytest.mark.asyncio
async def test_blocked_booking_reports_first_blocker():
    service = _service(FakeReads())
    outcome = await service.create_booking(make_request(booking_date=TODAY + timedelta(days=4)))
    assert not outcome.success
    assert outcome.error == "You can only book up to 3 days in advance."
    assert service.writer.inserted == []


@pytest.mark.asyncio
async def test_taken_slot_fails_after_rules_pass():
    taken = make_booking(user_id="user-2", start_time=time(10), end_time=time(11))
    service = _service(FakeReads(bookings=[taken]))
    outcome = await service.create_booking(make_request())
    assert not outcome.success
    assert outcome.error == SLOT_TAKEN
    assert outcome.evaluation.allowed


@pytest.mark.asyncio
async def test_validate_writes_nothing():
    service = _service(FakeReads())
    result = await service.validate(make_request())
    assert result.allowed
    assert service.writer.actions == []
    assert service.writer.inserted == []


@pytest.mark.asyncio
async def test_action_logging_can_be_disabled():
    config = RulesEngineConfig(service=ServiceConfig(record_actions=False))
    service = _service(FakeReads(), config)
    await service.create_booking(make_request())
    assert service.writer.actions == []


@pytest.mark.asyncio
async def test_override_persists_audit_but_not_over_a_taken_slot():
    request = make_request(booking_date=TODAY + timedelta(days=4))
    override = AdminOverride(admin_id="admin-1", reason="League night")

    service = _service(FakeReads())
    outcome = await service.create_booking_with_override(request, override)
    assert outcome.success
    assert outcome.booking["rule_overrides"]["overridden_rule_codes"] == ["ACC-005"]

    taken = make_booking(
        user_id="user-2", booking_date=request.booking_date, start_time=time(10), end_time=time(11)
    )
    service = _service(FakeReads(bookings=[taken]))
    outcome = await service.create_booking_with_override(request, override)
    assert not outcome.success
    assert outcome.error == SLOT_TAKEN


@pytest.mark.asyncio
async def test_late_cancel_records_issues_and_links_strike():
    booking = make_booking(id="bk-late", booking_date=TODAY, start_time=time(11), end_time=time(12))
    reads = FakeReads(bookings=[booking])
    config = RulesEngineConfig(service=ServiceConfig(strike_expiry_days=90))
    service = _service(reads, config)

    outcome = await service.cancel_booking(
        CancellationRequest(booking_id="bk-late", user_id="user-1", facility_id="fac-1")
    )
    assert outcome.success
    assert outcome.cancellation_id == "cx-1"
    assert outcome.strike_id == "st-1"
    assert service.writer.links == [("cx-1", "st-1")]
    assert service.writer.strikes[0]["expires_at"] == NOW + timedelta(days=90)
    assert reads.bookings[0].status == BookingStatus.CANCELLED
    assert service.writer.actions == [("user-1", "fac-1", "cancel")]


@pytest.mark.asyncio
async def test_refused_cancellation_writes_nothing_but_the_action():
    booking = make_booking(id="bk-gone", status=BookingStatus.CANCELLED)
    service = _service(FakeReads(bookings=[booking]))
    outcome = await service.cancel_booking(
        CancellationRequest(booking_id="bk-gone", user_id="user-1", facility_id="fac-1")
    )
    assert not outcome.success
    assert outcome.error == "This reservation is already cancelled."
    assert service.writer.cancellations == []
    assert service.writer.actions == [("user-1", "fac-1", "cancel")]


@pytest.mark.asyncio
async def test_cancel_by_another_user_writes_nothing():
    booking = make_booking(id="bk-other", booking_date=TODAY, start_time=time(11), end_time=time(12))
    reads = FakeReads(bookings=[booking])
    service = _service(reads)

    with pytest.raises(NotFoundError):
        await service.cancel_booking(
            CancellationRequest(booking_id="bk-other", user_id="user-2", facility_id="fac-1")
        )
    assert service.writer.cancellations == []
    assert service.writer.strikes == []
    assert reads.bookings[0].status == BookingStatus.CONFIRMED


@pytest.mark.asyncio
async def test_no_show_issues_one_strike():
    service = _service(FakeReads(bookings=[make_booking(id="bk-ns")]))
    outcome = await service.mark_no_show("bk-ns", "fac-1", marked_by="staff-1")
    assert outcome.success
    strike = service.writer.strikes[0]
    assert strike["strike"].strike_type == StrikeType.NO_SHOW
    assert strike["issued_by"] == "staff-1"
    assert strike["expires_at"] is None

    missing = await service.mark_no_show("bk-ns", "fac-2")
    assert not missing.success
    assert missing.error == "Booking not found"
