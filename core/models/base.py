"""Base model and mixins for all SQLAlchemy models.

Provides:
- Base: Declarative base class for all models
- RecordMixin: String primary key and audit timestamps
- FacilityMixin: RecordMixin plus an indexed facility_id

Facility-owned rows (courts, bookings, strikes, rule configs) include
FacilityMixin so every query can be scoped to one facility. Global rows
(users, facilities themselves) use RecordMixin only.
"""

import uuid
from datetime import datetime

from sqlalchemy import String, DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Declarative base for all court-booking models."""
    pass


class RecordMixin:
    """Standard identity and audit columns.

    Adds:
    - id: UUID string primary key (auto-generated)
    - created_at: Timestamp set on insert
    - updated_at: Timestamp updated on every change
    """

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=new_id,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class FacilityMixin(RecordMixin):
    """Record owned by a single facility."""

    facility_id: Mapped[str] = mapped_column(
        String(36),
        index=True,
        nullable=False,
    )
