"""
Base repository with common CRUD operations.
Implements the Repository pattern for data access abstraction.
"""
from typing import Any, Generic, TypeVar
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from retentionos.core.database import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Generic repository providing common database operations.

    Subclasses should set the `model` class attribute to the SQLAlchemy model.
    Tenant-scoped models expose an ``account_id`` column; the ``*_for_account``
    helpers filter on it.
    """

    model: type[ModelType]

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_id(self, id: UUID | str) -> ModelType | None:
        """Get a single record by its primary key."""
        return await self.session.get(self.model, id)

    async def create(self, obj_in: dict[str, Any]) -> ModelType:
        """Create a new record."""
        db_obj = self.model(**obj_in)
        self.session.add(db_obj)
        await self.session.flush()
        return db_obj

    async def update(
        self,
        db_obj: ModelType,
        obj_in: dict[str, Any],
    ) -> ModelType:
        """Overwrite the given fields, including ones set to None."""
        for field, value in obj_in.items():
            setattr(db_obj, field, value)
        await self.session.flush()
        return db_obj

    async def count_for_account(self, account_id: UUID) -> int:
        """Count rows owned by an account."""
        stmt = (
            select(func.count())
            .select_from(self.model)
            .where(self.model.account_id == account_id)
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def get_by_source_id(self, account_id: UUID, source_id: int) -> ModelType | None:
        """Look up a synced row by the remote platform's id."""
        stmt = select(self.model).where(
            self.model.account_id == account_id,
            self.model.source_id == source_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def all_for_account(self, account_id: UUID) -> list[ModelType]:
        stmt = select(self.model).where(self.model.account_id == account_id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
