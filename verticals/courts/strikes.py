"""Strike counting and lockout decisions.

Shared by ACC-009 at booking time and by the admin lockout check.
"""

from datetime import datetime, timedelta

from verticals.courts.types import AccountStrike, LockoutStatus


def active_strikes(
    strikes: list[AccountStrike] | tuple[AccountStrike, ...],
    now: datetime,
    window_days: int,
) -> list[AccountStrike]:
    """Non-revoked, non-expired strikes issued within the rolling window."""
    window_start = now - timedelta(days=window_days)
    return [
        s
        for s in strikes
        if not s.revoked
        and (s.expires_at is None or s.expires_at > now)
        and window_start <= s.issued_at <= now
    ]


def lockout_status(
    strikes: list[AccountStrike] | tuple[AccountStrike, ...],
    now: datetime,
    threshold: int,
    window_days: int,
    lockout_days: int,
) -> LockoutStatus:
    """Locked out while ``now`` is before the most recent strike + lockout days."""
    counted = active_strikes(strikes, now, window_days)
    if len(counted) < threshold:
        return LockoutStatus(
            is_locked_out=False, strike_count=len(counted), threshold=threshold
        )

    most_recent = max(s.issued_at for s in counted)
    ends_at = most_recent + timedelta(days=lockout_days)
    return LockoutStatus(
        is_locked_out=now < ends_at,
        strike_count=len(counted),
        threshold=threshold,
        lockout_ends_at=ends_at,
    )
