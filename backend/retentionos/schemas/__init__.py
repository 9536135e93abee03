"""
Pydantic schemas for request/response validation.
"""
from retentionos.schemas.connection import ConnectionStatus
from retentionos.schemas.metrics import (
    CohortsData,
    CustomerListData,
    Envelope,
    KPIs,
    ProductsData,
    ReportSummary,
    RetentionAnalysis,
    SegmentsData,
)
from retentionos.schemas.sync import (
    SyncData,
    SyncErrorResponse,
    SyncHistoryResponse,
    SyncResponse,
    SyncResultSchema,
    SyncRunResponse,
)

__all__ = [
    "ConnectionStatus",
    "Envelope",
    "KPIs",
    "CohortsData",
    "SegmentsData",
    "RetentionAnalysis",
    "ProductsData",
    "CustomerListData",
    "ReportSummary",
    "SyncData",
    "SyncResponse",
    "SyncErrorResponse",
    "SyncResultSchema",
    "SyncRunResponse",
    "SyncHistoryResponse",
]
