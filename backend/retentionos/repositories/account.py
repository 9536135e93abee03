"""
Account repository for data access operations.
"""
from typing import Optional

from sqlalchemy import select

from retentionos.core.pii import generate_salt
from retentionos.models.account import Account
from retentionos.repositories.base import BaseRepository


class AccountRepository(BaseRepository[Account]):
    """Repository for Account model operations."""

    model = Account

    async def get_by_user_id(self, user_id: str) -> Optional[Account]:
        stmt = select(Account).where(Account.user_id == user_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_create(self, user_id: str, name: Optional[str] = None) -> tuple[Account, bool]:
        """
        Return the user's account, creating it (with a fresh salt) on first use.
        Returns (account, created) tuple.
        """
        existing = await self.get_by_user_id(user_id)
        if existing:
            return existing, False

        account = await self.create({
            "user_id": user_id,
            "name": name or "My Account",
            "email_salt": generate_salt(),
        })
        return account, True
