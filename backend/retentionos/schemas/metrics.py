"""
Metrics Pydantic schemas for the dashboard pages.

Field names stay snake_case: the dashboard reads these payloads verbatim.
"""
from datetime import datetime
from typing import Generic, Optional, TypeVar
from uuid import UUID

from pydantic import BaseModel

from retentionos.schemas.sync import SyncRunResponse

DataT = TypeVar("DataT")


class Envelope(BaseModel, Generic[DataT]):
    """Standard ``{success, data}`` wrapper."""

    success: bool = True
    data: DataT


class KPIs(BaseModel):
    total_customers: int
    total_orders: int
    total_revenue: float
    average_order_value: float
    customer_lifetime_value: float
    repeat_customers: int
    retention_rate_percent: float
    at_risk_customers: int
    dormant_customers: int
    one_time_buyers: int
    new_customers_30d: int
    revenue_30d: float
    revenue_90d: float
    avg_orders_per_customer: float
    calculated_at: datetime


class CohortPeriod(BaseModel):
    period_number: int
    order_month: str
    active_customers: int
    total_orders: int
    total_revenue: float
    retention_rate_percent: float


class Cohort(BaseModel):
    cohort_month: str
    cohort_size: int
    periods: list[CohortPeriod]


class CohortsData(BaseModel):
    cohorts: list[Cohort]
    total_records: int


class CustomerSegment(BaseModel):
    customer_id: Optional[UUID] = None
    first_order_at: Optional[datetime] = None
    last_order_at: Optional[datetime] = None
    actual_total_spent: float
    actual_orders_count: int
    avg_order_value: float
    days_since_last_order: Optional[int] = None
    customer_lifespan_days: int
    revenue_per_day: float
    value_segment: str
    activity_segment: str
    frequency_segment: str
    aov_segment: str


class SegmentSummary(BaseModel):
    segment: str
    count: int
    total_revenue: float
    avg_revenue_per_customer: float


class SegmentsData(BaseModel):
    segments: list[CustomerSegment]
    summaries: dict[str, list[SegmentSummary]]
    total_customers: int


class RetentionPoint(BaseModel):
    period_days: int
    retention_rate: float
    customer_count: int
    revenue: float


class ChurnRiskBucket(BaseModel):
    segment: str
    customer_count: int
    churn_rate: float
    risk_score: int
    revenue_at_risk: float


class ReactivationWindow(BaseModel):
    period: str
    reactivated_customers: int
    reactivation_rate: float
    revenue_generated: float
    average_days_inactive: int


class RetentionAnalysis(BaseModel):
    retention_curve: list[RetentionPoint]
    churn_risk: list[ChurnRiskBucket]
    reactivation: list[ReactivationWindow]
    total_customers: int
    overall_retention_rate: float
    at_risk_customers: int
    latest_calculated_at: datetime


class ProductPerformance(BaseModel):
    product_id: Optional[int] = None
    title: str
    revenue: float
    units_sold: int
    orders: int
    customers: int
    repeat_purchase_rate: float


class ProductsData(BaseModel):
    products: list[ProductPerformance]


class CustomerListItem(BaseModel):
    id: UUID
    source_id: int
    name: str
    orders_count: int
    total_spent: float
    accepts_marketing: bool
    source_created_at: Optional[datetime] = None


class CustomerListData(BaseModel):
    customers: list[CustomerListItem]
    total: int
    limit: int
    offset: int


class ReportSummary(BaseModel):
    kpis: KPIs
    marketing_opt_in_customers: int
    last_sync: Optional[SyncRunResponse] = None
