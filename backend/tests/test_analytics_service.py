# Overview: Pytest coverage for the analytics aggregator (pure metric functions and the owner loader).

"""
Analytics Tests

Most tests build snapshot records directly and call the pure functions, so
no database is involved. TestEnhancedAnalytics goes through the loader.
"""

from datetime import date, datetime, timedelta

import pytest
from stockbill.services import analytics_service as analytics
from stockbill.services import invoice_service
from stockbill.services.analytics_service import (
    CustomerMetrics,
    DateRange,
    InvoiceSnapshot,
    ItemSnapshot,
    LineSnapshot,
    ProfitMetrics,
)
from stockbill.validation import InvoiceLineInput


NOW = datetime(2026, 10, 18, 15, 30, 0)


def _invoice(id, created_at, amount_cents, lines, status="paid", customer="Acme"):
    return InvoiceSnapshot(
        id=id,
        customer_key=customer,
        amount_cents=amount_cents,
        status=status,
        created_at=created_at,
        lines=tuple(LineSnapshot(item_id=i, quantity=q, adjusted_price_cents=p) for i, q, p in lines),
    )


@pytest.fixture
def catalog():
    items = [
        ItemSnapshot(id=1, name="Widget", quantity=20, price_cents=1000, cost_price_cents=600, category="Hardware"),
        ItemSnapshot(id=2, name="Gadget", quantity=0, price_cents=2500, category="Electronics"),
        ItemSnapshot(id=3, name="Loose", quantity=4, price_cents=333),
    ]
    return items, {item.id: item for item in items}


class TestResolvePeriod:

    def test_rolling_thirty_days(self):
        keyword, current, previous = analytics.resolve_period("30days", NOW)
        assert keyword == "30days"
        assert current.start == datetime(2026, 9, 19)
        assert current.end == NOW
        assert len(current.days()) == 30
        assert previous.end < current.start
        assert previous.start == datetime(2026, 8, 20)

    def test_unknown_falls_back_to_thirty_days(self):
        keyword, current, _ = analytics.resolve_period("fortnight", NOW)
        assert keyword == "30days"
        assert len(current.days()) == 30

    def test_this_month(self):
        _, current, previous = analytics.resolve_period("thisMonth", NOW)
        assert current.start == datetime(2026, 10, 1)
        assert current.end == NOW
        assert previous.start == datetime(2026, 9, 1)
        assert previous.end.date() == date(2026, 9, 30)

    def test_last_month_across_year_boundary(self):
        _, current, previous = analytics.resolve_period("lastMonth", datetime(2026, 1, 10))
        assert current.start == datetime(2025, 12, 1)
        assert current.end.date() == date(2025, 12, 31)
        assert previous.start == datetime(2025, 11, 1)
        assert previous.end.date() == date(2025, 11, 30)


class TestProfitMetrics:

    def test_paid_invoices_only(self, catalog):
        _, items = catalog
        invoices = [
            _invoice(1, NOW, 5000, [(1, 3, None)]),
            _invoice(2, NOW, 9999, [(1, 9, None)], status="unpaid"),
        ]
        profit = analytics.profit_metrics(invoices, items)

        assert profit.revenue_cents == 5000
        assert profit.cogs_cents == 3 * 600
        assert profit.units_sold == 3
        assert profit.gross_profit_cents == 5000 - 1800
        assert profit.profit_margin == pytest.approx(64.0)

    def test_cost_falls_back_to_sixty_percent_of_price(self, catalog):
        _, items = catalog
        profit = analytics.profit_metrics([_invoice(1, NOW, 1000, [(3, 1, None)])], items)
        # 333 * 0.6 = 199.8 -> 200
        assert profit.cogs_cents == 200

    def test_unknown_item_costs_nothing(self, catalog):
        _, items = catalog
        profit = analytics.profit_metrics([_invoice(1, NOW, 1000, [(42, 5, None)])], items)
        assert profit.cogs_cents == 0
        assert profit.units_sold == 5

    def test_gross_profit_identity_holds_in_dict(self, catalog):
        _, items = catalog
        profit = analytics.profit_metrics([_invoice(1, NOW, 1001, [(3, 7, None)])], items)
        body = profit.to_dict()
        assert body["grossProfit"] == pytest.approx(body["revenue"] - body["cogs"])

    def test_zero_revenue_has_zero_margin(self):
        assert ProfitMetrics().profit_margin == 0.0


class TestTimeTrends:

    def test_no_invoices_gives_one_empty_bucket_per_day(self):
        _, current, _ = analytics.resolve_period("30days", NOW)
        buckets = analytics.time_trends([], current)

        assert len(buckets) == 30
        assert all(b.revenue_cents == 0 and b.orders == 0 and b.aov_cents == 0 for b in buckets)
        assert buckets[-1].to_dict()["date"] == "2026-10-18"
        assert buckets[-1].to_dict()["label"] == "Oct 18"

    def test_buckets_sum_to_profit_metrics(self, catalog):
        _, items = catalog
        _, current, _ = analytics.resolve_period("7days", NOW)
        invoices = [
            _invoice(1, NOW - timedelta(days=1), 3000, [(1, 2, None)]),
            _invoice(2, NOW - timedelta(days=1, hours=2), 1500, [(2, 1, None)]),
            _invoice(3, NOW, 700, [(3, 4, None)]),
            _invoice(4, NOW, 900, [(3, 1, None)], status="unpaid"),
        ]
        buckets = analytics.time_trends(invoices, current)
        profit = analytics.profit_metrics(invoices, items)

        assert sum(b.revenue_cents for b in buckets) == profit.revenue_cents
        assert sum(b.units for b in buckets) == profit.units_sold
        yesterday = buckets[-2]
        assert yesterday.orders == 2
        assert yesterday.to_dict()["aov"] == pytest.approx(22.5)


class TestCustomerMetrics:

    def test_new_and_returning(self):
        _, current_range, _ = analytics.resolve_period("30days", NOW)
        old = _invoice(1, NOW - timedelta(days=100), 1000, [], customer="Repeat Co")
        current = [
            _invoice(2, NOW - timedelta(days=2), 2000, [], customer="Repeat Co"),
            _invoice(3, NOW - timedelta(days=1), 4000, [], customer="Fresh Co"),
            _invoice(4, NOW, 1000, [], customer="Fresh Co", status="unpaid"),
        ]
        metrics = analytics.customer_metrics(current, [old] + current, current_range)

        assert metrics.total_customers == 2
        assert metrics.new_customers == 1
        assert metrics.returning_customers == 1
        assert metrics.revenue_cents == 6000
        assert metrics.cac == pytest.approx(60.0 * 0.15)
        assert metrics.ltv == pytest.approx(60.0 / 2 * 3)
        assert metrics.avg_order_value == pytest.approx(20.0)

    def test_empty_window(self):
        metrics = CustomerMetrics()
        assert metrics.to_dict() == {
            "totalCustomers": 0,
            "newCustomers": 0,
            "returningCustomers": 0,
            "cac": 0.0,
            "ltv": 0.0,
            "avgOrderValue": 0.0,
        }


class TestSalesVelocity:

    def test_classification_and_sellout(self, catalog):
        items, _ = catalog
        invoices = [
            _invoice(1, NOW, 0, [(1, 8, None), (3, 2, None)], status="unpaid"),
            _invoice(2, NOW, 0, [(1, 4, None), (2, 5, None)]),
        ]
        velocity = analytics.sales_velocity(invoices, items)

        assert [entry.item_id for entry in velocity] == [1, 2, 3]
        widget, gadget, loose = velocity
        assert widget.velocity == "Fast"
        assert widget.days_to_sellout == 50
        assert widget.turnover_rate == pytest.approx(60.0)
        assert gadget.velocity == "Medium"
        assert gadget.days_to_sellout == 999
        assert gadget.turnover_rate == 0.0
        assert loose.velocity == "Slow"
        assert loose.days_to_sellout == 60
        assert loose.to_dict()["soldLast30Days"] == 2

    def test_unsold_items_use_sentinel(self, catalog):
        items, _ = catalog
        velocity = analytics.sales_velocity([], items)
        assert all(entry.days_to_sellout == 999 for entry in velocity)

    def test_top_ten_only(self):
        items = [ItemSnapshot(id=i, name=f"Item {i}", quantity=1, price_cents=100) for i in range(1, 15)]
        assert len(analytics.sales_velocity([], items)) == 10


class TestProductMix:

    def test_category_shares(self, catalog):
        _, items = catalog
        invoices = [
            _invoice(1, NOW, 4000, [(1, 2, None), (2, 1, 2000)]),
            _invoice(2, NOW, 1000, [(3, 3, None)]),
            _invoice(3, NOW, 9000, [(2, 3, None)], status="unpaid"),
        ]
        mix = analytics.product_mix(invoices, items)

        by_category = {entry.category: entry for entry in mix}
        assert by_category["Hardware"].revenue_cents == 2000
        assert by_category["Electronics"].revenue_cents == 2000
        assert by_category["Uncategorized"].revenue_cents == 999
        assert by_category["Hardware"].percentage == pytest.approx(40.0)
        assert mix[-1].category == "Uncategorized"

    def test_no_paid_revenue(self, catalog):
        _, items = catalog
        assert analytics.product_mix([_invoice(1, NOW, 100, [(1, 1, None)], status="unpaid")], items) == []


class TestPeriodComparison:

    def test_changes(self):
        current = ProfitMetrics(revenue_cents=15000, cogs_cents=6000, units_sold=30)
        previous = ProfitMetrics(revenue_cents=10000, cogs_cents=5000, units_sold=40)
        comparison = analytics.period_comparison(
            current, previous, CustomerMetrics(total_customers=3), CustomerMetrics(total_customers=2),
        )

        assert comparison.revenue_change == pytest.approx(50.0)
        assert comparison.profit_margin_change == pytest.approx(60.0 - 50.0)
        assert comparison.units_change == pytest.approx(-25.0)
        assert comparison.customer_change == pytest.approx(50.0)
        assert comparison.status == "positive"

    def test_zero_previous_gives_zero_change(self):
        comparison = analytics.period_comparison(
            ProfitMetrics(revenue_cents=100), ProfitMetrics(), CustomerMetrics(), CustomerMetrics(),
        )
        assert comparison.revenue_change == 0.0
        assert comparison.status == "positive"

    def test_decline_is_negative(self):
        comparison = analytics.period_comparison(
            ProfitMetrics(revenue_cents=50), ProfitMetrics(revenue_cents=100), CustomerMetrics(), CustomerMetrics(),
        )
        assert comparison.status == "negative"


class TestDashboard:

    @pytest.fixture
    def history(self):
        return [
            _invoice(1, datetime(2026, 4, 30, 23, 0), 9999, [(1, 1, None)]),
            _invoice(2, datetime(2026, 9, 10, 9, 0), 3000, [(1, 3, None)]),
            _invoice(3, datetime(2026, 10, 1, 0, 0), 2000, [(2, 1, None)], status="unpaid"),
            _invoice(4, datetime(2026, 10, 5, 12, 0), 5000, [(2, 2, None)]),
        ]

    def test_monthly_trend_is_six_months_ending_now(self, history):
        trend = analytics.monthly_revenue_trend(history, NOW)

        assert [bucket.month for bucket in trend] == [datetime(2026, m, 1) for m in range(5, 11)]
        assert [bucket.revenue_cents for bucket in trend] == [0, 0, 0, 0, 3000, 5000]
        assert trend[-1].to_dict() == {"name": "Oct", "month": "2026-10", "value": 50.0}

    def test_trend_across_year_boundary(self):
        trend = analytics.monthly_revenue_trend([], datetime(2027, 2, 10))
        assert [bucket.to_dict()["month"] for bucket in trend] == [
            "2026-09", "2026-10", "2026-11", "2026-12", "2027-01", "2027-02",
        ]

    def test_low_stock_uses_each_items_threshold(self, catalog):
        items, _ = catalog
        assert [item.name for item in analytics.low_stock(items)] == ["Gadget", "Loose"]

        custom = ItemSnapshot(id=9, name="Bulk", quantity=40, price_cents=100, low_stock_threshold=50)
        assert analytics.low_stock([custom]) == [custom]

    def test_summary(self, catalog, history):
        items, _ = catalog
        summary = analytics.compute_dashboard(history, items, NOW)
        data = summary.to_dict()

        assert data["totalItems"] == 3
        assert data["totalIncome"] == 179.99
        assert data["unpaidInvoices"] == 1
        assert data["revenueTrend"] == pytest.approx(66.6667, rel=1e-4)
        assert data["kpiData"] == {"invoiceCollection": 75.0}
        assert [entry["name"] for entry in data["lowStockItems"]] == ["Gadget", "Loose"]
        assert data["revenueByCategory"] == [
            {"name": "Electronics", "value": 50.0},
            {"name": "Hardware", "value": 40.0},
        ]
        assert data["lastUpdated"] == "2026-10-18T15:30:00Z"

    def test_empty_owner(self, db_session, owner):
        data = analytics.dashboard(owner.id, now=NOW)

        assert data["totalItems"] == 0
        assert data["totalIncome"] == 0
        assert data["revenueTrend"] == 0.0
        assert [bucket["value"] for bucket in data["trendData"]] == [0] * 6
        assert data["lowStockItems"] == []
        assert data["revenueByCategory"] == []


class TestEnhancedAnalytics:
    """Loader plus composition, against the database."""

    def test_empty_owner(self, db_session, owner):
        report = analytics.enhanced_analytics(owner.id, "30days", now=NOW)

        assert report["period"] == "30days"
        assert len(report["timeTrends"]) == 30
        assert report["profitMetrics"]["revenue"] == 0
        assert report["salesVelocity"] == []
        assert report["productMix"] == []
        assert report["comparisons"]["status"] == "positive"

    def test_paid_invoice_flows_through(self, db_session, owner, other_owner, widget, make_item):
        invoice = invoice_service.create_invoice(
            owner.id,
            invoice_number="INV-1",
            customer_name="Acme",
            customer_phone="",
            amount_cents=5000,
            due_date=datetime(2026, 11, 1),
            items=[InvoiceLineInput(item_id=widget.id, quantity=4)],
        )
        invoice_service.update_invoice_status(invoice.id, "markPaid", owner)

        foreign = make_item(other_owner.id, sku="B-001")
        invoice_service.create_invoice(
            other_owner.id,
            invoice_number="INV-B",
            customer_name="Other",
            customer_phone="",
            amount_cents=99900,
            due_date=datetime(2026, 11, 1),
            items=[InvoiceLineInput(item_id=foreign.id, quantity=1)],
        )

        report = analytics.enhanced_analytics(owner.id, "7days")

        assert report["profitMetrics"]["revenue"] == 50.0
        assert report["profitMetrics"]["cogs"] == 24.0
        assert report["profitMetrics"]["unitsSold"] == 4
        assert sum(b["revenue"] for b in report["timeTrends"]) == pytest.approx(50.0)
        assert report["customerMetrics"]["totalCustomers"] == 1
        assert report["salesVelocity"][0]["_id"] == widget.id
        assert report["salesVelocity"][0]["soldLast30Days"] == 4
        assert report["productMix"][0]["category"] == "Hardware"

    def test_deleted_invoices_are_excluded(self, db_session, owner, widget):
        invoice = invoice_service.create_invoice(
            owner.id,
            invoice_number="INV-1",
            customer_name="Acme",
            customer_phone="",
            amount_cents=5000,
            due_date=datetime(2026, 11, 1),
            items=[InvoiceLineInput(item_id=widget.id, quantity=1)],
        )
        invoice_service.update_invoice_status(invoice.id, "markPaid", owner)
        invoice_service.update_invoice_status(invoice.id, "delete", owner)

        report = analytics.enhanced_analytics(owner.id, "7days")
        assert report["profitMetrics"]["revenue"] == 0
