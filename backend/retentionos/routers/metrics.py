"""
Dashboard metrics API routes.

All numbers are computed from the caller's synced data on each request.
"""
from typing import Annotated, Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from retentionos.core.database import get_db_session
from retentionos.core.logging import get_logger
from retentionos.repositories.customer import CustomerRepository
from retentionos.repositories.sync_run import SyncRunRepository
from retentionos.routers.deps import CurrentAccount
from retentionos.schemas.metrics import (
    CohortsData,
    CustomerListData,
    CustomerListItem,
    Envelope,
    KPIs,
    ProductsData,
    ReportSummary,
    RetentionAnalysis,
    SegmentsData,
)
from retentionos.schemas.sync import SyncRunResponse
from retentionos.services import retention_metrics
from retentionos.services.retention_metrics import AccountSnapshot, load_snapshot

logger = get_logger(__name__)

router = APIRouter(tags=["metrics"])

SegmentType = Literal["value", "activity", "frequency", "aov"]


async def get_snapshot(
    account: CurrentAccount,
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> AccountSnapshot:
    """Dependency loading the caller's customers and orders."""
    return await load_snapshot(session, account.id)


Snapshot = Annotated[AccountSnapshot, Depends(get_snapshot)]


@router.get("/metrics/kpis", response_model=Envelope[KPIs])
async def get_kpis(snapshot: Snapshot) -> Envelope[KPIs]:
    """Headline KPIs."""
    return Envelope[KPIs](data=KPIs(**retention_metrics.compute_kpis(snapshot)))


@router.get("/metrics/cohorts", response_model=Envelope[CohortsData])
async def get_cohorts(
    snapshot: Snapshot,
    limit: int = Query(12, ge=1, le=36, description="Number of most recent cohorts"),
) -> Envelope[CohortsData]:
    """Monthly acquisition cohorts with per-month retention."""
    cohorts = retention_metrics.compute_cohorts(snapshot, limit=limit)
    return Envelope[CohortsData](
        data=CohortsData(cohorts=cohorts, total_records=len(cohorts)),
    )


@router.get("/metrics/segments", response_model=Envelope[SegmentsData])
async def get_segments(
    snapshot: Snapshot,
    segment_type: Optional[SegmentType] = Query(None),
    segment_value: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
) -> Envelope[SegmentsData]:
    """
    Per-buyer segmentation rows plus summaries per segment type.

    ``segment_type`` and ``segment_value`` filter the rows; summaries always
    cover every buyer.
    """
    rows = retention_metrics.compute_customer_segments(snapshot)
    summaries = retention_metrics.summarize_segments(rows)
    total = len(rows)

    if segment_type and segment_value:
        rows = [r for r in rows if r[f"{segment_type}_segment"] == segment_value]

    return Envelope[SegmentsData](
        data=SegmentsData(segments=rows[:limit], summaries=summaries, total_customers=total),
    )


@router.get("/retention/analysis", response_model=Envelope[RetentionAnalysis])
async def get_retention_analysis(snapshot: Snapshot) -> Envelope[RetentionAnalysis]:
    """Retention curve, churn risk buckets and reactivation windows."""
    return Envelope[RetentionAnalysis](
        data=RetentionAnalysis(**retention_metrics.compute_retention_analysis(snapshot)),
    )


@router.get("/products/performance", response_model=Envelope[ProductsData])
async def get_product_performance(
    snapshot: Snapshot,
    limit: int = Query(20, ge=1, le=100),
) -> Envelope[ProductsData]:
    """Top products by revenue, from order line items."""
    products = retention_metrics.compute_product_performance(snapshot, limit=limit)
    return Envelope[ProductsData](data=ProductsData(products=products))


@router.get("/customers/list", response_model=Envelope[CustomerListData])
async def list_customers(
    account: CurrentAccount,
    session: Annotated[AsyncSession, Depends(get_db_session)],
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> Envelope[CustomerListData]:
    """Paginated customer list, newest first. E-mails are never returned."""
    customers, total = await CustomerRepository(session).list_for_account(
        account.id, skip=offset, limit=limit
    )
    items = [
        CustomerListItem(
            id=c.id,
            source_id=c.source_id,
            name=c.display_name,
            orders_count=c.orders_count or 0,
            total_spent=float(c.total_spent or 0),
            accepts_marketing=bool(c.accepts_marketing),
            source_created_at=c.source_created_at,
        )
        for c in customers
    ]
    return Envelope[CustomerListData](
        data=CustomerListData(customers=items, total=total, limit=limit, offset=offset),
    )


@router.get("/reports/summary", response_model=Envelope[ReportSummary])
async def get_report_summary(
    account: CurrentAccount,
    session: Annotated[AsyncSession, Depends(get_db_session)],
    snapshot: Snapshot,
) -> Envelope[ReportSummary]:
    """KPIs together with marketing reach and the latest sync run."""
    opt_in = await CustomerRepository(session).marketing_opt_in_count(account.id)
    runs = await SyncRunRepository(session).latest_for_account(account.id, limit=1)
    last_sync = SyncRunResponse.model_validate(runs[0]) if runs else None

    return Envelope[ReportSummary](
        data=ReportSummary(
            kpis=KPIs(**retention_metrics.compute_kpis(snapshot)),
            marketing_opt_in_customers=opt_in,
            last_sync=last_sync,
        ),
    )
