"""
Sync Pydantic schemas for request/response validation.
"""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class SyncResultSchema(BaseModel):
    """Per-entity counters of one sync run."""

    ingested: int
    updated: int
    skipped: int
    shopify_count: int = Field(alias="shopifyCount")
    local_count: int = Field(alias="localCount")

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class SyncData(BaseModel):
    customers: SyncResultSchema
    orders: SyncResultSchema
    sync_id: UUID


class SyncResponse(BaseModel):
    """Successful sync trigger response."""

    success: bool = True
    message: str
    data: SyncData


class SyncErrorResponse(BaseModel):
    """Failed sync trigger response."""

    error: str
    details: Optional[str] = None
    sync_id: Optional[UUID] = None


class SyncRunResponse(BaseModel):
    """Audit record of a past sync run."""

    id: UUID
    sync_type: str = Field(alias="syncType")
    status: str
    started_at: datetime = Field(alias="startedAt")
    completed_at: Optional[datetime] = Field(None, alias="completedAt")
    rows_ingested: int = Field(alias="rowsIngested")
    rows_updated: int = Field(alias="rowsUpdated")
    rows_skipped: int = Field(alias="rowsSkipped")
    shopify_count: int = Field(alias="shopifyCount")
    local_count: int = Field(alias="localCount")
    error_message: Optional[str] = Field(None, alias="errorMessage")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class SyncHistoryResponse(BaseModel):
    runs: list[SyncRunResponse]
    total: int
