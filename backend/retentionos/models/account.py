"""
Account model - the tenant that owns synced customers and orders.
"""
from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import DateTime, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from retentionos.core.database import Base

if TYPE_CHECKING:
    from retentionos.models.customer import Customer
    from retentionos.models.order import Order
    from retentionos.models.sync_run import SyncRun


class Account(Base):
    """One account per authenticated user; holds the e-mail hashing salt."""

    __tablename__ = "accounts"

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
    )
    user_id: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(255), default="My Account")

    # Persisted per-account salt for customer e-mail hashes
    email_salt: Mapped[str] = mapped_column(String(64), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

    customers: Mapped[list["Customer"]] = relationship(
        "Customer",
        back_populates="account",
        cascade="all, delete-orphan",
    )
    orders: Mapped[list["Order"]] = relationship(
        "Order",
        back_populates="account",
        cascade="all, delete-orphan",
    )
    sync_runs: Mapped[list["SyncRun"]] = relationship(
        "SyncRun",
        back_populates="account",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Account {self.user_id}>"
