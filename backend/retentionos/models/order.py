"""
Order model - represents a Shopify order.
"""
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    BigInteger,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from retentionos.core.database import Base

if TYPE_CHECKING:
    from retentionos.models.account import Account
    from retentionos.models.customer import Customer


class Order(Base):
    """Shopify order with line items and financial data."""

    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint("account_id", "source_id", name="uq_orders_account_source_id"),
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
    # Resolved at sync time; stays null when the customer is not synced locally
    customer_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid,
        ForeignKey("customers.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Shopify order ID and display number
    source_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    order_number: Mapped[str] = mapped_column(String(50))
    source_created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        index=True,
    )
    source_updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # Status
    financial_status: Mapped[str] = mapped_column(String(50), default="pending")
    fulfillment_status: Mapped[Optional[str]] = mapped_column(String(50))

    # Financial
    subtotal_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    total_tax: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    currency: Mapped[str] = mapped_column(String(3), default="USD")

    customer_email_hash: Mapped[Optional[str]] = mapped_column(String(64))

    # Line items (stored as JSON)
    line_items: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        default=list,
    )
    line_item_count: Mapped[int] = mapped_column(Integer, default=0)

    content_hash: Mapped[Optional[str]] = mapped_column(String(64))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    synced_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

    account: Mapped["Account"] = relationship("Account", back_populates="orders")
    customer: Mapped[Optional["Customer"]] = relationship("Customer", back_populates="orders")

    def __repr__(self) -> str:
        return f"<Order {self.order_number}>"
