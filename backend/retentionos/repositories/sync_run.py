"""
SyncRun repository: writes the reconciliation audit trail.
"""
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import select

from retentionos.models.sync_run import SyncRun, SyncStatus
from retentionos.repositories.base import BaseRepository


class SyncRunRepository(BaseRepository[SyncRun]):
    """Repository for SyncRun model operations."""

    model = SyncRun

    async def start(self, account_id: UUID, sync_type: str = "full") -> SyncRun:
        """Open a run in the running state."""
        return await self.create({
            "account_id": account_id,
            "sync_type": sync_type,
            "started_at": datetime.now(timezone.utc),
            "status": SyncStatus.RUNNING.value,
        })

    async def complete(
        self,
        run: SyncRun,
        *,
        rows_ingested: int,
        rows_updated: int,
        rows_skipped: int,
        shopify_count: int,
        local_count: int,
    ) -> SyncRun:
        """Close a run successfully with its aggregated totals."""
        self._ensure_running(run)
        return await self.update(run, {
            "status": SyncStatus.COMPLETED.value,
            "completed_at": datetime.now(timezone.utc),
            "rows_ingested": rows_ingested,
            "rows_updated": rows_updated,
            "rows_skipped": rows_skipped,
            "shopify_count": shopify_count,
            "local_count": local_count,
        })

    async def fail(self, run: SyncRun, error_message: Optional[str]) -> SyncRun:
        """Close a run as failed."""
        self._ensure_running(run)
        return await self.update(run, {
            "status": SyncStatus.FAILED.value,
            "completed_at": datetime.now(timezone.utc),
            "error_message": error_message,
        })

    async def latest_for_account(self, account_id: UUID, limit: int = 10) -> list[SyncRun]:
        stmt = (
            select(SyncRun)
            .where(SyncRun.account_id == account_id)
            .order_by(SyncRun.started_at.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    def _ensure_running(run: SyncRun) -> None:
        # Finished runs are immutable audit records
        if run.is_finished:
            raise ValueError(f"Sync run {run.id} already {run.status}")
