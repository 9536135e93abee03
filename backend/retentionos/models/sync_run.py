"""
SyncRun model - append-only audit trail of reconciliation runs.
"""
import enum
from datetime import datetime
from typing import TYPE_CHECKING, Optional
from uuid import UUID, uuid4

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from retentionos.core.database import Base

if TYPE_CHECKING:
    from retentionos.models.account import Account


class SyncStatus(str, enum.Enum):
    """Lifecycle of a sync run: running, then exactly one terminal state."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class SyncRun(Base):
    """One row per sync invocation."""

    __tablename__ = "sync_runs"

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
    sync_type: Mapped[str] = mapped_column(String(50), default="full")

    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    status: Mapped[str] = mapped_column(String(20), default=SyncStatus.RUNNING.value)

    rows_ingested: Mapped[int] = mapped_column(Integer, default=0)
    rows_updated: Mapped[int] = mapped_column(Integer, default=0)
    rows_skipped: Mapped[int] = mapped_column(Integer, default=0)
    shopify_count: Mapped[int] = mapped_column(Integer, default=0)
    local_count: Mapped[int] = mapped_column(Integer, default=0)

    error_message: Mapped[Optional[str]] = mapped_column(Text)

    account: Mapped["Account"] = relationship("Account", back_populates="sync_runs")

    @property
    def is_finished(self) -> bool:
        return self.status != SyncStatus.RUNNING.value

    def __repr__(self) -> str:
        return f"<SyncRun {self.id} {self.status}>"
