"""
Connection model - stored OAuth credentials for an external commerce platform.
"""
from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import Boolean, DateTime, Index, String, Text, Uuid, func, text
from sqlalchemy.orm import Mapped, mapped_column

from retentionos.core.database import Base

PLATFORM_SHOPIFY = "shopify"


class Connection(Base):
    """
    Platform connection with encrypted access token storage.

    Rows are soft-deleted through ``is_active``; at most one row per
    (owner_id, platform) is active at a time.
    """

    __tablename__ = "connections"
    __table_args__ = (
        Index("ix_connections_owner_platform_active", "owner_id", "platform", "is_active"),
        Index(
            "uq_connections_owner_platform_active",
            "owner_id",
            "platform",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active"),
        ),
    )

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
    )
    owner_id: Mapped[str] = mapped_column(String(255), nullable=False)
    platform: Mapped[str] = mapped_column(String(50), default=PLATFORM_SHOPIFY)
    platform_domain: Mapped[str] = mapped_column(String(255), nullable=False)
    access_token_encrypted: Mapped[str] = mapped_column(Text, nullable=False)
    scopes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    connected_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    disconnected_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        state = "active" if self.is_active else "inactive"
        return f"<Connection {self.platform}:{self.platform_domain} {state}>"
