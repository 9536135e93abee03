"""
Customer repository for data access operations.
"""
from uuid import UUID

from sqlalchemy import func, select

from retentionos.models.customer import Customer
from retentionos.repositories.base import BaseRepository


class CustomerRepository(BaseRepository[Customer]):
    """Repository for Customer model operations."""

    model = Customer

    async def get_local_id(self, account_id: UUID, source_id: int) -> UUID | None:
        """Resolve a Shopify customer id to the local surrogate id."""
        stmt = select(Customer.id).where(
            Customer.account_id == account_id,
            Customer.source_id == source_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_account(
        self,
        account_id: UUID,
        *,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[list[Customer], int]:
        """
        Newest customers first, paginated.
        Returns (customers, total_count) tuple.
        """
        total = await self.count_for_account(account_id)

        stmt = (
            select(Customer)
            .where(Customer.account_id == account_id)
            .order_by(Customer.source_created_at.desc(), Customer.source_id.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total

    async def marketing_opt_in_count(self, account_id: UUID) -> int:
        stmt = select(func.count()).where(
            Customer.account_id == account_id,
            Customer.accepts_marketing.is_(True),
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0
