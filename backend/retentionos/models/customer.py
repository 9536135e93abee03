"""
Customer model - a Shopify customer reconciled into the local table.
"""
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from retentionos.core.database import Base

if TYPE_CHECKING:
    from retentionos.models.account import Account
    from retentionos.models.order import Order


class Customer(Base):
    """Customer with hashed e-mail; mutated only by the sync job."""

    __tablename__ = "customers"
    __table_args__ = (
        UniqueConstraint("account_id", "source_id", name="uq_customers_account_source_id"),
    )

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
    )
    account_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        index=True,
    )

    # Shopify customer ID
    source_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    source_created_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    source_updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # PII
    email_hash: Mapped[Optional[str]] = mapped_column(String(64), index=True)
    email_salt: Mapped[Optional[str]] = mapped_column(String(64))
    first_name: Mapped[Optional[str]] = mapped_column(String(255))
    last_name: Mapped[Optional[str]] = mapped_column(String(255))
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    accepts_marketing: Mapped[bool] = mapped_column(Boolean, default=False)

    # Lifetime figures as reported by Shopify
    total_spent: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    orders_count: Mapped[int] = mapped_column(Integer, default=0)

    # Hash of mutable fields, compared when no remote updated_at is available
    content_hash: Mapped[Optional[str]] = mapped_column(String(64))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    synced_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

    account: Mapped["Account"] = relationship("Account", back_populates="customers")
    orders: Mapped[list["Order"]] = relationship("Order", back_populates="customer")

    @property
    def display_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p) or f"#{self.source_id}"

    def __repr__(self) -> str:
        return f"<Customer {self.source_id}>"
