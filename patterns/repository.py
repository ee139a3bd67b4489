"""Facility-scoped async repository pattern.

Every query a repository issues is pinned to one facility: rows of another
facility are invisible, whether listing, loading, updating, or deleting.
Verticals subclass BaseRepository, set ``model``, and add their own
queries on top of the scoped helpers.

Example: RuleConfigRepository in verticals/courts/repository.py.
"""

from typing import Any, Generic, TypeVar

from sqlalchemy import Select, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.models.base import Base

ModelT = TypeVar("ModelT", bound=Base)

# Columns a caller may never overwrite through update()
PROTECTED_COLUMNS = frozenset({"id", "facility_id", "created_at"})


class BaseRepository(Generic[ModelT]):
    """Generic CRUD + pagination over a FacilityMixin model.

    Subclass and set ``model``::

        class BlackoutRepository(BaseRepository[CourtBlackout]):
            model = CourtBlackout

            async def list_for_court(self, facility_id: str, court_id: str):
                stmt = self.scoped(facility_id).where(self.model.court_id == court_id)
                result = await self.session.execute(stmt)
                return [r.to_dict() for r in result.scalars().all()]
    """

    model: type[ModelT]

    def __init__(self, session: AsyncSession):
        self.session = session

    # -- Query helpers --

    def scoped(self, facility_id: str) -> Select:
        return select(self.model).where(self.model.facility_id == facility_id)

    def _criteria(self, filters: dict[str, Any] | None) -> list:
        """Equality clauses for known columns; None values are skipped."""
        clauses = []
        for column, value in (filters or {}).items():
            if value is None or not hasattr(self.model, column):
                continue
            clauses.append(getattr(self.model, column) == value)
        return clauses

    # -- Reads --

    async def list(
        self,
        facility_id: str,
        page: int = 1,
        limit: int = 50,
        filters: dict[str, Any] | None = None,
    ) -> tuple[list[dict], int]:
        """One page of rows plus the total matching count."""
        clauses = self._criteria(filters)

        total = await self.session.scalar(
            select(func.count())
            .select_from(self.model)
            .where(self.model.facility_id == facility_id, *clauses)
        )

        stmt = (
            self.scoped(facility_id)
            .where(*clauses)
            .order_by(self.model.created_at)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return [row.to_dict() for row in result.scalars().all()], total or 0

    async def _load(self, item_id: str, facility_id: str) -> ModelT | None:
        result = await self.session.execute(
            self.scoped(facility_id).where(self.model.id == item_id)
        )
        return result.scalar_one_or_none()

    # -- Writes --

    async def create(self, facility_id: str, data: dict[str, Any]) -> dict:
        item = self.model(facility_id=facility_id, **data)
        self.session.add(item)
        await self.session.flush()
        return item.to_dict()

    async def update(
        self, item_id: str, facility_id: str, data: dict[str, Any]
    ) -> dict | None:
        """Apply ``data`` to one row. None when the row is not in this facility."""
        item = await self._load(item_id, facility_id)
        if item is None:
            return None

        for key, value in data.items():
            if key not in PROTECTED_COLUMNS and hasattr(item, key):
                setattr(item, key, value)
        await self.session.flush()
        return item.to_dict()

    async def delete_where(self, facility_id: str, **filters: Any) -> int:
        """Bulk delete matching rows in one facility. Returns the row count."""
        result = await self.session.execute(
            delete(self.model).where(
                self.model.facility_id == facility_id, *self._criteria(filters)
            )
        )
        return result.rowcount or 0
