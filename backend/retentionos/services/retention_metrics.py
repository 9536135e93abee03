"""
Retention metrics computed over an account's synced customers and orders.

Everything here is a read-only reduction: rows are loaded once per request
and aggregated in Python. Orders are attributed to a buyer through the local
customer link, falling back to the hashed order e-mail.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from retentionos.core.logging import get_logger
from retentionos.models.customer import Customer
from retentionos.models.order import Order
from retentionos.repositories.customer import CustomerRepository
from retentionos.repositories.order import OrderRepository
from retentionos.services.shopify_sync import ensure_utc

logger = get_logger(__name__)

# A buyer with no order for this long is considered lapsed
CHURN_THRESHOLD_DAYS = 90
DORMANT_THRESHOLD_DAYS = 180

RETENTION_PERIODS_DAYS = (30, 60, 90, 180, 365)
REACTIVATION_WINDOWS = (
    ("Last 30 days", 30),
    ("Last 90 days", 90),
    ("Last 6 months", 180),
    ("Last year", 365),
)

# Churn score bands (0-100)
HIGH_RISK_SCORE = 70
MEDIUM_RISK_SCORE = 40

SEGMENT_TYPES = ("value", "activity", "frequency", "aov")


@dataclass
class BuyerProfile:
    """Per-buyer view joining the customer row with its local orders."""

    key: str
    customer: Optional[Customer]
    order_dates: list[datetime] = field(default_factory=list)
    order_totals: list[Decimal] = field(default_factory=list)

    @property
    def orders_count(self) -> int:
        reported = self.customer.orders_count if self.customer else 0
        return max(reported or 0, len(self.order_dates))

    @property
    def total_spent(self) -> Decimal:
        reported = Decimal(self.customer.total_spent or 0) if self.customer else Decimal(0)
        return max(reported, sum(self.order_totals, Decimal(0)))

    @property
    def first_order_at(self) -> Optional[datetime]:
        return min(self.order_dates) if self.order_dates else None

    @property
    def last_order_at(self) -> Optional[datetime]:
        return max(self.order_dates) if self.order_dates else None

    @property
    def avg_order_value(self) -> Decimal:
        if not self.orders_count:
            return Decimal(0)
        return self.total_spent / self.orders_count

    def days_since_last_order(self, now: datetime) -> Optional[int]:
        last = self.last_order_at
        return None if last is None else max(0, (now - last).days)

    def average_gap_days(self) -> Optional[float]:
        dates = sorted(self.order_dates)
        if len(dates) < 2:
            return None
        return (dates[-1] - dates[0]).days / (len(dates) - 1)


@dataclass
class AccountSnapshot:
    customers: list[Customer]
    orders: list[Order]
    now: datetime

    def __post_init__(self) -> None:
        self.profiles = build_profiles(self.customers, self.orders)


def _money(value: Decimal | float) -> float:
    return round(float(value), 2)


def _pct(part: float, whole: float) -> float:
    return round(part / whole * 100, 1) if whole else 0.0


def _month(value: datetime) -> str:
    return value.strftime("%Y-%m")


def _months_between(start: datetime, end: datetime) -> int:
    return (end.year - start.year) * 12 + (end.month - start.month)


def _buyer_key(order: Order) -> Optional[str]:
    if order.customer_id is not None:
        return f"customer:{order.customer_id}"
    if order.customer_email_hash:
        return f"email:{order.customer_email_hash}"
    return None


def build_profiles(customers: list[Customer], orders: list[Order]) -> dict[str, BuyerProfile]:
    """Group orders per buyer; every customer row gets a profile."""
    profiles: dict[str, BuyerProfile] = {
        f"customer:{c.id}": BuyerProfile(key=f"customer:{c.id}", customer=c)
        for c in customers
    }
    for order in orders:
        key = _buyer_key(order)
        if key is None:
            continue
        profile = profiles.setdefault(key, BuyerProfile(key=key, customer=None))
        profile.order_dates.append(ensure_utc(order.source_created_at))
        profile.order_totals.append(Decimal(order.total_price or 0))
    return profiles


async def load_snapshot(
    session: AsyncSession,
    account_id: UUID,
    now: Optional[datetime] = None,
) -> AccountSnapshot:
    """Fetch every customer and order of the account."""
    customers = await CustomerRepository(session).all_for_account(account_id)
    orders = await OrderRepository(session).all_for_account(account_id)
    logger.debug(
        "Loaded metrics snapshot",
        account_id=str(account_id),
        customers=len(customers),
        orders=len(orders),
    )
    return AccountSnapshot(customers=customers, orders=orders, now=now or datetime.now(timezone.utc))


# --- KPIs -----------------------------------------------------------------

def compute_kpis(snapshot: AccountSnapshot) -> dict[str, Any]:
    """Headline numbers for the dashboard home page."""
    now = snapshot.now
    orders = snapshot.orders
    # Per-customer figures are over customer rows; guest buyers only count
    # towards order and revenue totals
    buyers = [
        p for p in snapshot.profiles.values()
        if p.customer is not None and p.orders_count > 0
    ]

    total_customers = len(snapshot.customers)
    total_orders = len(orders)
    total_revenue = sum((Decimal(o.total_price or 0) for o in orders), Decimal(0))
    average_order_value = total_revenue / total_orders if total_orders else Decimal(0)
    customer_orders = sum(1 for o in orders if o.customer_id is not None)
    avg_orders_per_customer = customer_orders / total_customers if total_customers else 0.0

    repeat_customers = sum(1 for p in buyers if p.orders_count >= 2)
    one_time_buyers = sum(1 for p in buyers if p.orders_count == 1)

    at_risk = dormant = 0
    for profile in buyers:
        days = profile.days_since_last_order(now)
        if days is None:
            continue
        if days > DORMANT_THRESHOLD_DAYS:
            dormant += 1
        elif days >= CHURN_THRESHOLD_DAYS:
            at_risk += 1

    def revenue_since(days: int) -> float:
        cutoff = now - timedelta(days=days)
        return _money(sum(
            (Decimal(o.total_price or 0) for o in orders if ensure_utc(o.source_created_at) >= cutoff),
            Decimal(0),
        ))

    new_cutoff = now - timedelta(days=30)
    new_customers_30d = sum(
        1 for c in snapshot.customers
        if c.source_created_at and ensure_utc(c.source_created_at) >= new_cutoff
    )

    return {
        "total_customers": total_customers,
        "total_orders": total_orders,
        "total_revenue": _money(total_revenue),
        "average_order_value": _money(average_order_value),
        "customer_lifetime_value": _money(float(average_order_value) * avg_orders_per_customer),
        "repeat_customers": repeat_customers,
        "retention_rate_percent": _pct(repeat_customers, total_customers),
        "at_risk_customers": at_risk,
        "dormant_customers": dormant,
        "one_time_buyers": one_time_buyers,
        "new_customers_30d": new_customers_30d,
        "revenue_30d": revenue_since(30),
        "revenue_90d": revenue_since(90),
        "avg_orders_per_customer": round(avg_orders_per_customer, 2),
        "calculated_at": now,
    }


# --- Cohorts --------------------------------------------------------------

def compute_cohorts(snapshot: AccountSnapshot, limit: int = 12) -> list[dict[str, Any]]:
    """
    Monthly acquisition cohorts: buyers grouped by the month of their first
    order, with activity for each month since.
    """
    cohort_members: dict[str, set[str]] = defaultdict(set)
    first_orders: dict[str, datetime] = {}
    for profile in snapshot.profiles.values():
        if profile.first_order_at is None:
            continue
        first_orders[profile.key] = profile.first_order_at
        cohort_members[_month(profile.first_order_at)].add(profile.key)

    # cohort -> period -> stats
    periods: dict[str, dict[int, dict[str, Any]]] = defaultdict(dict)
    for order in snapshot.orders:
        key = _buyer_key(order)
        if key not in first_orders:
            continue
        first = first_orders[key]
        placed = ensure_utc(order.source_created_at)
        period = _months_between(first, placed)
        stats = periods[_month(first)].setdefault(
            period,
            {"order_month": _month(placed), "buyers": set(), "orders": 0, "revenue": Decimal(0)},
        )
        stats["buyers"].add(key)
        stats["orders"] += 1
        stats["revenue"] += Decimal(order.total_price or 0)

    cohorts = []
    for cohort_month in sorted(cohort_members, reverse=True)[:limit]:
        size = len(cohort_members[cohort_month])
        cohorts.append({
            "cohort_month": cohort_month,
            "cohort_size": size,
            "periods": [
                {
                    "period_number": period,
                    "order_month": stats["order_month"],
                    "active_customers": len(stats["buyers"]),
                    "total_orders": stats["orders"],
                    "total_revenue": _money(stats["revenue"]),
                    "retention_rate_percent": _pct(len(stats["buyers"]), size),
                }
                for period, stats in sorted(periods[cohort_month].items())
            ],
        })
    return cohorts


# --- Segments -------------------------------------------------------------

def value_segment(total_spent: Decimal) -> str:
    if total_spent >= 1000:
        return "VIP"
    if total_spent >= 500:
        return "High Value"
    if total_spent >= 100:
        return "Medium Value"
    return "Low Value"


def activity_segment(days_since_last_order: Optional[int]) -> str:
    if days_since_last_order is None:
        return "Unknown"
    if days_since_last_order <= 30:
        return "Active"
    if days_since_last_order < CHURN_THRESHOLD_DAYS:
        return "Warm"
    if days_since_last_order <= DORMANT_THRESHOLD_DAYS:
        return "At Risk"
    return "Dormant"


def frequency_segment(orders_count: int) -> str:
    if orders_count >= 10:
        return "Loyal"
    if orders_count >= 4:
        return "Frequent"
    if orders_count >= 2:
        return "Repeat"
    return "One-time"


def aov_segment(avg_order_value: Decimal) -> str:
    if avg_order_value >= 200:
        return "Premium"
    if avg_order_value >= 75:
        return "Standard"
    return "Budget"


def compute_customer_segments(snapshot: AccountSnapshot) -> list[dict[str, Any]]:
    """One row per buyer with an order, highest spend first."""
    now = snapshot.now
    rows = []
    for profile in snapshot.profiles.values():
        if profile.orders_count == 0:
            continue
        days_since = profile.days_since_last_order(now)
        first, last = profile.first_order_at, profile.last_order_at
        lifespan = (last - first).days if first and last else 0
        rows.append({
            "customer_id": profile.customer.id if profile.customer else None,
            "first_order_at": first,
            "last_order_at": last,
            "actual_total_spent": _money(profile.total_spent),
            "actual_orders_count": profile.orders_count,
            "avg_order_value": _money(profile.avg_order_value),
            "days_since_last_order": days_since,
            "customer_lifespan_days": lifespan,
            "revenue_per_day": _money(profile.total_spent / max(lifespan, 1)),
            "value_segment": value_segment(profile.total_spent),
            "activity_segment": activity_segment(days_since),
            "frequency_segment": frequency_segment(profile.orders_count),
            "aov_segment": aov_segment(profile.avg_order_value),
        })
    rows.sort(key=lambda r: r["actual_total_spent"], reverse=True)
    return rows


def summarize_segments(rows: list[dict[str, Any]]) -> dict[str, list[dict[str, Any]]]:
    """Count and revenue per segment value, for each segment type."""
    summaries: dict[str, list[dict[str, Any]]] = {}
    for segment_type in SEGMENT_TYPES:
        groups: dict[str, list[float]] = defaultdict(list)
        for row in rows:
            groups[row[f"{segment_type}_segment"]].append(row["actual_total_spent"])
        summaries[segment_type] = [
            {
                "segment": segment,
                "count": len(spends),
                "total_revenue": round(sum(spends), 2),
                "avg_revenue_per_customer": round(sum(spends) / len(spends), 2),
            }
            for segment, spends in sorted(groups.items())
        ]
    return summaries


# --- Retention, churn, reactivation ---------------------------------------

def churn_score(profile: BuyerProfile, now: datetime) -> Optional[int]:
    """
    0-100 score: days since the last order relative to twice the buyer's
    usual gap between orders (CHURN_THRESHOLD_DAYS for one-time buyers).
    """
    days = profile.days_since_last_order(now)
    if days is None:
        return None
    expected_gap = profile.average_gap_days() or CHURN_THRESHOLD_DAYS
    return min(100, round(days / (max(expected_gap, 1) * 2) * 100))


def compute_retention_curve(snapshot: AccountSnapshot) -> list[dict[str, Any]]:
    """
    For each period, the share of buyers old enough to be measured who placed
    another order within that many days of their first one.
    """
    now = snapshot.now
    curve = []
    for period_days in RETENTION_PERIODS_DAYS:
        window = timedelta(days=period_days)
        eligible = retained = 0
        revenue = Decimal(0)
        for profile in snapshot.profiles.values():
            first = profile.first_order_at
            if first is None or first + window > now:
                continue
            eligible += 1
            repeat = [
                total
                for placed, total in zip(profile.order_dates, profile.order_totals)
                if first < placed <= first + window
            ]
            if repeat:
                retained += 1
                revenue += sum(repeat, Decimal(0))
        curve.append({
            "period_days": period_days,
            "retention_rate": _pct(retained, eligible),
            "customer_count": retained,
            "revenue": _money(revenue),
        })
    return curve


def compute_churn_risk(snapshot: AccountSnapshot) -> list[dict[str, Any]]:
    """Buyers bucketed by churn score."""
    now = snapshot.now
    buckets: dict[str, list[tuple[int, BuyerProfile]]] = {"High": [], "Medium": [], "Low": []}
    for profile in snapshot.profiles.values():
        score = churn_score(profile, now)
        if score is None:
            continue
        if score >= HIGH_RISK_SCORE:
            buckets["High"].append((score, profile))
        elif score >= MEDIUM_RISK_SCORE:
            buckets["Medium"].append((score, profile))
        else:
            buckets["Low"].append((score, profile))

    scored = sum(len(members) for members in buckets.values())
    return [
        {
            "segment": f"{level} Risk",
            "customer_count": len(members),
            "churn_rate": _pct(len(members), scored),
            "risk_score": round(sum(s for s, _ in members) / len(members)) if members else 0,
            "revenue_at_risk": _money(sum((p.total_spent for _, p in members), Decimal(0))),
        }
        for level, members in buckets.items()
    ]


def compute_reactivation(snapshot: AccountSnapshot) -> list[dict[str, Any]]:
    """
    Buyers who came back within each window after at least
    CHURN_THRESHOLD_DAYS without ordering.
    """
    now = snapshot.now
    results = []
    for label, days in REACTIVATION_WINDOWS:
        window_start = now - timedelta(days=days)
        lapsed = reactivated = 0
        revenue = Decimal(0)
        gaps: list[int] = []
        for profile in snapshot.profiles.values():
            history = sorted(zip(profile.order_dates, profile.order_totals))
            before = [placed for placed, _ in history if placed < window_start]
            if not before or (window_start - before[-1]).days < CHURN_THRESHOLD_DAYS:
                continue
            lapsed += 1
            inside = [(placed, total) for placed, total in history if placed >= window_start]
            if inside:
                reactivated += 1
                gaps.append((inside[0][0] - before[-1]).days)
                revenue += sum((total for _, total in inside), Decimal(0))
        results.append({
            "period": label,
            "reactivated_customers": reactivated,
            "reactivation_rate": _pct(reactivated, lapsed),
            "revenue_generated": _money(revenue),
            "average_days_inactive": round(sum(gaps) / len(gaps)) if gaps else 0,
        })
    return results


def compute_retention_analysis(snapshot: AccountSnapshot) -> dict[str, Any]:
    kpis = compute_kpis(snapshot)
    churn = compute_churn_risk(snapshot)
    return {
        "retention_curve": compute_retention_curve(snapshot),
        "churn_risk": churn,
        "reactivation": compute_reactivation(snapshot),
        "total_customers": kpis["total_customers"],
        "overall_retention_rate": kpis["retention_rate_percent"],
        "at_risk_customers": sum(
            b["customer_count"] for b in churn if b["segment"] != "Low Risk"
        ),
        "latest_calculated_at": snapshot.now,
    }


# --- Products -------------------------------------------------------------

def compute_product_performance(snapshot: AccountSnapshot, limit: int = 20) -> list[dict[str, Any]]:
    """Revenue, units and repeat purchasing per product from order line items."""
    products: dict[str, dict[str, Any]] = {}
    for order in snapshot.orders:
        buyer = _buyer_key(order)
        for item in order.line_items or []:
            product_key = str(item.get("product_id") or item.get("title") or "unknown")
            stats = products.setdefault(product_key, {
                "product_id": item.get("product_id"),
                "title": item.get("title") or "Untitled",
                "revenue": Decimal(0),
                "units_sold": 0,
                "orders": set(),
                "buyer_orders": defaultdict(int),
            })
            quantity = int(item.get("quantity") or 0)
            stats["revenue"] += Decimal(str(item.get("price") or 0)) * quantity
            stats["units_sold"] += quantity
            stats["orders"].add(order.id)
            if buyer:
                stats["buyer_orders"][buyer] += 1

    rows = []
    for stats in products.values():
        buyers = stats["buyer_orders"]
        repeat_buyers = sum(1 for count in buyers.values() if count >= 2)
        rows.append({
            "product_id": stats["product_id"],
            "title": stats["title"],
            "revenue": _money(stats["revenue"]),
            "units_sold": stats["units_sold"],
            "orders": len(stats["orders"]),
            "customers": len(buyers),
            "repeat_purchase_rate": _pct(repeat_buyers, len(buyers)),
        })
    rows.sort(key=lambda r: r["revenue"], reverse=True)
    return rows[:limit]
