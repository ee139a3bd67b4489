"""Test household rules (HH-00x) through the engine."""
from datetime import time, timedelta

import pytest

from fakes import NOW, TODAY, FakeReads, make_booking, make_household, make_request
from verticals.courts.engine import RulesEngine
from verticals.courts.types import UserProfile


def _engine(reads):
    return RulesEngine(reads, clock=lambda: NOW)


def _rule(evaluation, code):
    return next(r for r in evaluation.results if r.rule_code == code)


def _household_reads(household, bookings=()):
    users = [UserProfile(id=uid) for uid in household.member_ids]
    return FakeReads(users=users, households=[household], bookings=list(bookings))


@pytest.mark.asyncio
async def test_rules_pass_without_household():
    result = await _engine(FakeReads()).evaluate(make_request(start_time=time(17), end_time=time(18)))
    for code in ("HH-001", "HH-002", "HH-003"):
        assert _rule(result, code).passed


@pytest.mark.asyncio
async def test_hh_001_full_household_is_advisory():
    household = make_household("user-1", "u2", "u3", "u4", "u5", "u6")
    result = await _engine(_household_reads(household)).evaluate(make_request())
    rule = _rule(result, "HH-001")
    assert rule.passed
    assert rule.details == {"current_members": 6, "max_members": 6}
    assert rule in result.warnings
    assert result.allowed


@pytest.mark.asyncio
async def test_hh_002_shared_active_cap():
    household = make_household("user-1", "user-2")
    bookings = [
        make_booking(user_id="user-2", booking_date=TODAY + timedelta(days=1)),
        make_booking(user_id="user-2", booking_date=TODAY + timedelta(days=2)),
        make_booking(user_id="user-2", booking_date=TODAY - timedelta(days=1)),
    ]
    result = await _engine(_household_reads(household, bookings)).evaluate(make_request())
    rule = _rule(result, "HH-002")
    assert not rule.passed
    assert rule.details == {"current": 2, "max": 2, "household_id": "hh-1"}


@pytest.mark.asyncio
async def test_hh_002_household_cap_overrides_config():
    household = make_household("user-1", "user-2", max_active_reservations=3)
    bookings = [
        make_booking(user_id="user-2", booking_date=TODAY + timedelta(days=1)),
        make_booking(user_id="user-2", booking_date=TODAY + timedelta(days=2)),
    ]
    result = await _engine(_household_reads(household, bookings)).evaluate(make_request())
    assert _rule(result, "HH-002").passed


@pytest.mark.asyncio
async def test_hh_003_household_prime_time_cap():
    household = make_household("user-1", "user-2")
    prime = [
        make_booking(user_id="user-2", booking_date=TODAY + timedelta(days=d),
                     start_time=time(17), end_time=time(18), is_prime_time=True)
        for d in (2, 3, 4)
    ]
    reads = _household_reads(household, prime)
    result = await _engine(reads).evaluate(make_request(start_time=time(17), end_time=time(18)))
    assert not _rule(result, "HH-003").passed

    roomy = make_household("user-1", "user-2", prime_time_max_per_week=5)
    reads = _household_reads(roomy, prime)
    result = await _engine(reads).evaluate(make_request(start_time=time(17), end_time=time(18)))
    assert _rule(result, "HH-003").passed
