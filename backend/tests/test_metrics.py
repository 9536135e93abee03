"""
Tests for retention metrics and the dashboard endpoints.
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from retentionos.models.customer import Customer
from retentionos.models.order import Order
from retentionos.services import retention_metrics as metrics
from retentionos.services.retention_metrics import AccountSnapshot, BuyerProfile, load_snapshot
from retentionos.services.shopify_sync import run_shopify_sync
from shopify_fakes import TEST_USER_ID, FakeShopify, make_customer, make_order

NOW = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
async def synced(db_session, account, connection, fake_shopify: FakeShopify):
    """
    Customers 1-3; customer 1 ordered twice, customer 2 once, customer 3
    never, plus one order from an unsynced customer (99).
    """
    fake_shopify.customers = [
        make_customer(1),
        make_customer(2, accepts_marketing=True),
        make_customer(3),
    ]
    fake_shopify.orders = [
        make_order(100, customer_id=1, total_price="100.00", created_at="2024-01-10T12:00:00Z"),
        make_order(101, customer_id=1, total_price="150.00", created_at="2024-02-15T12:00:00Z"),
        make_order(102, customer_id=2, total_price="50.00", created_at="2024-01-20T12:00:00Z"),
        make_order(103, customer_id=99, total_price="30.00", created_at="2024-03-05T12:00:00Z"),
    ]
    await run_shopify_sync(
        db_session,
        account,
        TEST_USER_ID,
        client_factory=fake_shopify.client_factory(),
    )
    return account


@pytest.fixture
async def snapshot(db_session, synced) -> AccountSnapshot:
    return await load_snapshot(db_session, synced.id, now=NOW)


def _order(days_ago: int, total: str, customer_id=None, email_hash="buyer") -> Order:
    return Order(
        id=uuid4(),
        source_id=int(days_ago),
        customer_id=customer_id,
        customer_email_hash=None if customer_id else email_hash,
        source_created_at=NOW - timedelta(days=days_ago),
        total_price=Decimal(total),
        line_items=[],
    )


class TestKPIs:
    async def test_kpis(self, snapshot):
        kpis = metrics.compute_kpis(snapshot)

        assert kpis["total_customers"] == 3
        assert kpis["total_orders"] == 4
        assert kpis["total_revenue"] == 330.0
        assert kpis["average_order_value"] == 82.5
        assert kpis["repeat_customers"] == 1
        assert kpis["one_time_buyers"] == 1
        assert kpis["retention_rate_percent"] == 33.3
        assert kpis["revenue_30d"] == 180.0
        assert kpis["revenue_90d"] == 330.0
        assert kpis["at_risk_customers"] == 0
        assert kpis["dormant_customers"] == 0
        assert kpis["avg_orders_per_customer"] == 1.0

    def test_guest_buyers_do_not_inflate_per_customer_figures(self):
        customer = Customer(id=uuid4(), source_id=1, orders_count=2, total_spent=Decimal("40"))
        orders = [
            _order(5, "20.00", customer_id=customer.id),
            _order(35, "20.00", customer_id=customer.id),
            _order(10, "20.00", email_hash="guest-a"),
            _order(40, "20.00", email_hash="guest-a"),
            _order(12, "20.00", email_hash="guest-b"),
            _order(50, "20.00", email_hash="guest-b"),
        ]

        kpis = metrics.compute_kpis(AccountSnapshot(customers=[customer], orders=orders, now=NOW))

        assert kpis["total_customers"] == 1
        assert kpis["total_orders"] == 6
        assert kpis["total_revenue"] == 120.0
        assert kpis["repeat_customers"] == 1
        assert kpis["one_time_buyers"] == 0
        assert kpis["retention_rate_percent"] == 100.0
        assert kpis["avg_orders_per_customer"] == 2.0
        assert kpis["customer_lifetime_value"] == 40.0

    def test_empty_account(self):
        kpis = metrics.compute_kpis(AccountSnapshot(customers=[], orders=[], now=NOW))

        assert kpis["total_revenue"] == 0.0
        assert kpis["average_order_value"] == 0.0
        assert kpis["retention_rate_percent"] == 0.0


class TestCohorts:
    async def test_monthly_cohorts(self, snapshot):
        cohorts = metrics.compute_cohorts(snapshot)

        assert [c["cohort_month"] for c in cohorts] == ["2024-03", "2024-01"]
        january = cohorts[1]
        assert january["cohort_size"] == 2
        assert [p["period_number"] for p in january["periods"]] == [0, 1]
        assert january["periods"][0]["active_customers"] == 2
        assert january["periods"][0]["retention_rate_percent"] == 100.0
        assert january["periods"][1]["order_month"] == "2024-02"
        assert january["periods"][1]["retention_rate_percent"] == 50.0

    async def test_limit(self, snapshot):
        assert len(metrics.compute_cohorts(snapshot, limit=1)) == 1


class TestSegments:
    async def test_segment_rows(self, snapshot):
        rows = metrics.compute_customer_segments(snapshot)

        assert len(rows) == 3
        top = rows[0]
        assert top["actual_total_spent"] == 250.0
        assert top["actual_orders_count"] == 2
        assert top["value_segment"] == "Medium Value"
        assert top["frequency_segment"] == "Repeat"
        assert top["activity_segment"] == "Active"
        assert top["aov_segment"] == "Standard"
        # Buyer known only by e-mail hash
        assert rows[-1]["customer_id"] is None

    @pytest.mark.parametrize(
        "spent, expected",
        [(Decimal("1500"), "VIP"), (Decimal("500"), "High Value"), (Decimal("99.99"), "Low Value")],
    )
    def test_value_segment(self, spent, expected):
        assert metrics.value_segment(spent) == expected

    @pytest.mark.parametrize(
        "days, expected",
        [(None, "Unknown"), (10, "Active"), (60, "Warm"), (90, "At Risk"), (181, "Dormant")],
    )
    def test_activity_segment(self, days, expected):
        assert metrics.activity_segment(days) == expected

    async def test_summaries_cover_every_type(self, snapshot):
        summaries = metrics.summarize_segments(metrics.compute_customer_segments(snapshot))

        assert set(summaries) == {"value", "activity", "frequency", "aov"}
        frequency = {s["segment"]: s["count"] for s in summaries["frequency"]}
        assert frequency == {"One-time": 2, "Repeat": 1}


class TestRetention:
    def test_churn_score_one_time_buyer(self):
        profile = BuyerProfile(
            key="k",
            customer=None,
            order_dates=[NOW - timedelta(days=200)],
            order_totals=[Decimal("10")],
        )

        assert metrics.churn_score(profile, NOW) == 100

    def test_churn_score_uses_purchase_gap(self):
        profile = BuyerProfile(
            key="k",
            customer=None,
            order_dates=[NOW - timedelta(days=d) for d in (100, 70, 40)],
            order_totals=[Decimal("10")] * 3,
        )

        assert metrics.churn_score(profile, NOW) == 67

    def test_churn_score_without_orders(self):
        assert metrics.churn_score(BuyerProfile(key="k", customer=None), NOW) is None

    async def test_churn_risk_buckets(self, snapshot):
        buckets = {b["segment"]: b for b in metrics.compute_churn_risk(snapshot)}

        assert set(buckets) == {"High Risk", "Medium Risk", "Low Risk"}
        assert buckets["Low Risk"]["customer_count"] == 3
        assert buckets["High Risk"]["customer_count"] == 0

    async def test_retention_curve(self, snapshot):
        curve = {p["period_days"]: p for p in metrics.compute_retention_curve(snapshot)}

        assert list(curve) == [30, 60, 90, 180, 365]
        assert curve[30]["retention_rate"] == 0.0
        assert curve[60]["customer_count"] == 1
        assert curve[365]["retention_rate"] == 0.0

    def test_reactivation(self):
        orders = [_order(300, "40.00"), _order(10, "25.00")]
        snapshot = AccountSnapshot(customers=[], orders=orders, now=NOW)

        windows = {w["period"]: w for w in metrics.compute_reactivation(snapshot)}

        assert windows["Last 30 days"]["reactivated_customers"] == 1
        assert windows["Last 30 days"]["reactivation_rate"] == 100.0
        assert windows["Last 30 days"]["revenue_generated"] == 25.0
        assert windows["Last 30 days"]["average_days_inactive"] == 290
        assert windows["Last year"]["reactivated_customers"] == 0

    async def test_retention_analysis(self, snapshot):
        analysis = metrics.compute_retention_analysis(snapshot)

        assert analysis["total_customers"] == 3
        assert analysis["overall_retention_rate"] == 33.3
        assert analysis["at_risk_customers"] == 0
        assert analysis["latest_calculated_at"] == NOW


class TestProducts:
    async def test_product_performance(self, snapshot):
        products = metrics.compute_product_performance(snapshot)

        assert len(products) == 1
        coffee = products[0]
        assert coffee["product_id"] == 501
        assert coffee["revenue"] == 330.0
        assert coffee["units_sold"] == 4
        assert coffee["orders"] == 4
        assert coffee["customers"] == 3
        assert coffee["repeat_purchase_rate"] == 33.3


class TestBuyerProfiles:
    def test_reported_lifetime_figures_win_when_larger(self):
        customer = Customer(id=uuid4(), source_id=1, orders_count=5, total_spent=Decimal("500"))
        orders = [_order(5, "20.00", customer_id=customer.id)]

        snapshot = AccountSnapshot(customers=[customer], orders=orders, now=NOW)
        profile = snapshot.profiles[f"customer:{customer.id}"]

        assert profile.orders_count == 5
        assert profile.total_spent == Decimal("500")
        assert profile.last_order_at == NOW - timedelta(days=5)


class TestEndpoints:
    async def test_requires_auth(self, async_client):
        response = await async_client.get("/api/metrics/kpis")

        assert response.status_code == 401

    async def test_kpis(self, async_client, auth_headers, synced):
        response = await async_client.get("/api/metrics/kpis", headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["total_customers"] == 3
        assert body["data"]["total_orders"] == 4
        assert body["data"]["total_revenue"] == 330.0

    async def test_cohorts(self, async_client, auth_headers, synced):
        response = await async_client.get("/api/metrics/cohorts", headers=auth_headers)

        data = response.json()["data"]
        assert data["total_records"] == 2
        assert data["cohorts"][0]["cohort_month"] == "2024-03"

    async def test_segments_filter(self, async_client, auth_headers, synced):
        response = await async_client.get(
            "/api/metrics/segments",
            params={"segment_type": "frequency", "segment_value": "Repeat"},
            headers=auth_headers,
        )

        data = response.json()["data"]
        assert len(data["segments"]) == 1
        assert data["segments"][0]["actual_orders_count"] == 2
        assert data["total_customers"] == 3

    async def test_segments_rejects_unknown_type(self, async_client, auth_headers, synced):
        response = await async_client.get(
            "/api/metrics/segments",
            params={"segment_type": "color", "segment_value": "blue"},
            headers=auth_headers,
        )

        assert response.status_code == 422

    async def test_retention_analysis(self, async_client, auth_headers, synced):
        response = await async_client.get("/api/retention/analysis", headers=auth_headers)

        data = response.json()["data"]
        assert len(data["retention_curve"]) == 5
        assert len(data["churn_risk"]) == 3
        assert len(data["reactivation"]) == 4

    async def test_products(self, async_client, auth_headers, synced):
        response = await async_client.get("/api/products/performance", headers=auth_headers)

        products = response.json()["data"]["products"]
        assert products[0]["title"] == "Coffee Beans"

    async def test_customer_list(self, async_client, auth_headers, synced):
        response = await async_client.get(
            "/api/customers/list",
            params={"limit": 2},
            headers=auth_headers,
        )

        data = response.json()["data"]
        assert data["total"] == 3
        assert data["limit"] == 2
        assert [c["source_id"] for c in data["customers"]] == [3, 2]
        assert data["customers"][0]["name"] == "First3 Last3"
        assert "email" not in data["customers"][0]
        assert "email_hash" not in data["customers"][0]

    async def test_report_summary(self, async_client, auth_headers, synced):
        response = await async_client.get("/api/reports/summary", headers=auth_headers)

        data = response.json()["data"]
        assert data["kpis"]["total_customers"] == 3
        assert data["marketing_opt_in_customers"] == 1
        assert data["last_sync"]["status"] == "completed"
        assert data["last_sync"]["rowsIngested"] == 7

    async def test_empty_account(self, async_client, auth_headers):
        response = await async_client.get("/api/reports/summary", headers=auth_headers)

        data = response.json()["data"]
        assert data["kpis"]["total_customers"] == 0
        assert data["last_sync"] is None
