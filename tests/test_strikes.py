"""Test strike counting and lockout decisions."""
from datetime import timedelta

from fakes import NOW, make_strike
from verticals.courts.strikes import active_strikes, lockout_status


def test_active_strikes_respects_window_expiry_and_revocation():
    strikes = [
        make_strike(NOW - timedelta(days=31)),
        make_strike(NOW - timedelta(days=29)),
        make_strike(NOW - timedelta(days=5), revoked=True),
        make_strike(NOW - timedelta(days=3), expires_at=NOW - timedelta(days=1)),
        make_strike(NOW - timedelta(days=1), expires_at=NOW + timedelta(days=10)),
    ]
    counted = active_strikes(strikes, NOW, window_days=30)
    assert [s.issued_at for s in counted] == [NOW - timedelta(days=29), NOW - timedelta(days=1)]


def test_below_threshold_is_not_locked():
    status = lockout_status(
        [make_strike(NOW - timedelta(days=2))], NOW, threshold=3, window_days=30, lockout_days=7
    )
    assert not status.is_locked_out
    assert status.strike_count == 1
    assert status.lockout_ends_at is None


def test_lockout_runs_from_most_recent_strike():
    strikes = [make_strike(NOW - timedelta(days=d)) for d in (12, 6, 2)]
    status = lockout_status(strikes, NOW, threshold=3, window_days=30, lockout_days=7)
    assert status.is_locked_out
    assert status.lockout_ends_at == NOW + timedelta(days=5)


def test_lockout_expires():
    strikes = [make_strike(NOW - timedelta(days=d)) for d in (20, 15, 10)]
    status = lockout_status(strikes, NOW, threshold=3, window_days=30, lockout_days=7)
    assert not status.is_locked_out
    assert status.strike_count == 3
    assert status.lockout_ends_at == NOW - timedelta(days=3)
