"""
Connection repository: the credential store for platform OAuth tokens.
"""
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select

from retentionos.models.connection import PLATFORM_SHOPIFY, Connection
from retentionos.repositories.base import BaseRepository


class ConnectionRepository(BaseRepository[Connection]):
    """Repository for Connection model operations."""

    model = Connection

    async def get_active(
        self,
        owner_id: str,
        platform: str = PLATFORM_SHOPIFY,
    ) -> Optional[Connection]:
        """Get the active connection for an owner/platform pair."""
        stmt = (
            select(Connection)
            .where(
                Connection.owner_id == owner_id,
                Connection.platform == platform,
                Connection.is_active.is_(True),
            )
            .order_by(Connection.connected_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def deactivate(
        self,
        owner_id: str,
        platform: str = PLATFORM_SHOPIFY,
    ) -> int:
        """Soft-delete every active connection of the owner. Returns rows touched."""
        stmt = select(Connection).where(
            Connection.owner_id == owner_id,
            Connection.platform == platform,
            Connection.is_active.is_(True),
        )
        result = await self.session.execute(stmt)
        active = list(result.scalars().all())

        now = datetime.now(timezone.utc)
        for connection in active:
            connection.is_active = False
            connection.disconnected_at = now
        await self.session.flush()
        return len(active)

    async def activate(
        self,
        owner_id: str,
        platform_domain: str,
        access_token_encrypted: str,
        scopes: Optional[str] = None,
        platform: str = PLATFORM_SHOPIFY,
    ) -> Connection:
        """
        Store a new active connection.

        Previous active rows for the same owner/platform are deactivated in the
        same transaction, so at most one connection is active at a time.
        """
        await self.deactivate(owner_id, platform)
        return await self.create({
            "owner_id": owner_id,
            "platform": platform,
            "platform_domain": platform_domain,
            "access_token_encrypted": access_token_encrypted,
            "scopes": scopes,
            "is_active": True,
            "connected_at": datetime.now(timezone.utc),
        })
