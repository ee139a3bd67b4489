"""Courts vertical: booking rules engine for multi-tenant court reservations.

- Rule catalog (ACC / CRT / HH codes) with per-rule config schemas
- Three-level config merge: system default, membership tier, facility row
- Immutable evaluation context built from concurrent reads
- Ordered, non-short-circuiting evaluation pipeline
- Admin override with audit trail
- Cancellation policy, strikes, and lockout
- Booking service, SQLAlchemy adapters, and FastAPI router
"""
