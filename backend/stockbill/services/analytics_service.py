# Overview: Service-layer operations for analytics; pure metric functions over immutable snapshots.

"""
Analytics Aggregator

Read-only. enhanced_analytics() loads one owner's invoices and inventory
into frozen snapshot records, then every metric is a pure function of those
snapshots and a resolved DateRange. All money arithmetic is done in integer
cents and converted to currency units only in to_dict(), so
grossProfit == revenue - cogs holds exactly at the cents level.

Periods:
- 7days / 30days / 90days: the last N calendar days, today included
- thisMonth: first of the current month through now
- lastMonth: the whole previous calendar month
Unknown keywords fall back to 30days. The comparison window is the N days
immediately before, or the calendar month before.

dashboard() reuses the same snapshots for the landing page: six months of
paid revenue, total income, unpaid count, low stock and category revenue.

COGS uses the item's *current* cost (or 60% of its current price when no
cost is recorded), so historical profit shifts when costs change.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Mapping, Sequence

from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import InventoryItem, Invoice
from ..models.billing import INVOICE_STATUS_PAID
from ..money import from_cents, round_half_up
from stockbill.time_utils import (
    add_months,
    end_of_month,
    iter_days,
    start_of_day,
    start_of_month,
    to_utc_z,
    utcnow,
)


ROLLING_PERIOD_DAYS = {"7days": 7, "30days": 30, "90days": 90}
CALENDAR_PERIODS = ("thisMonth", "lastMonth")
DEFAULT_PERIOD = "30days"

FALLBACK_COST_RATIO = Decimal("0.6")
CAC_REVENUE_SHARE = 0.15
LTV_PERIOD_MULTIPLIER = 3

VELOCITY_FAST_THRESHOLD = 10
VELOCITY_MEDIUM_THRESHOLD = 3
SELLOUT_SENTINEL_DAYS = 999
SELLOUT_HORIZON_DAYS = 30
VELOCITY_TOP_N = 10

UNCATEGORIZED = "Uncategorized"

DASHBOARD_TREND_MONTHS = 6
DEFAULT_LOW_STOCK_THRESHOLD = 5


# =============================================================================
# SNAPSHOTS
# =============================================================================

@dataclass(frozen=True)
class DateRange:
    """Inclusive [start, end] window, UTC-naive."""
    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end

    def days(self) -> list[date]:
        return list(iter_days(self.start, self.end))


@dataclass(frozen=True)
class LineSnapshot:
    item_id: int
    quantity: int
    adjusted_price_cents: int | None = None


@dataclass(frozen=True)
class InvoiceSnapshot:
    id: int
    customer_key: str
    amount_cents: int
    status: str
    created_at: datetime
    lines: tuple[LineSnapshot, ...] = ()

    @property
    def is_paid(self) -> bool:
        return self.status == INVOICE_STATUS_PAID

    @property
    def units(self) -> int:
        return sum(line.quantity for line in self.lines)

    @classmethod
    def from_model(cls, invoice: Invoice) -> "InvoiceSnapshot":
        return cls(
            id=invoice.id,
            customer_key=(invoice.customer_name or "").strip() or (invoice.customer_phone or "").strip(),
            amount_cents=invoice.amount_cents,
            status=invoice.status,
            created_at=invoice.created_at,
            lines=tuple(
                LineSnapshot(
                    item_id=line.item_id,
                    quantity=line.quantity,
                    adjusted_price_cents=line.adjusted_price_cents,
                )
                for line in invoice.lines
            ),
        )


@dataclass(frozen=True)
class ItemSnapshot:
    id: int
    name: str
    quantity: int
    price_cents: int
    cost_price_cents: int | None = None
    category: str | None = None
    low_stock_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD

    @property
    def is_low_stock(self) -> bool:
        return self.quantity < self.low_stock_threshold

    @classmethod
    def from_model(cls, item: InventoryItem) -> "ItemSnapshot":
        return cls(
            id=item.id,
            name=item.name,
            quantity=item.quantity,
            price_cents=item.price_cents or 0,
            cost_price_cents=item.cost_price_cents,
            category=item.category,
            low_stock_threshold=item.low_stock_threshold,
        )


# =============================================================================
# RESULT RECORDS
# =============================================================================

@dataclass(frozen=True)
class ProfitMetrics:
    revenue_cents: int = 0
    cogs_cents: int = 0
    units_sold: int = 0

    @property
    def gross_profit_cents(self) -> int:
        return self.revenue_cents - self.cogs_cents

    @property
    def profit_margin(self) -> float:
        if self.revenue_cents <= 0:
            return 0.0
        return self.gross_profit_cents / self.revenue_cents * 100

    def to_dict(self) -> dict:
        return {
            "revenue": from_cents(self.revenue_cents),
            "cogs": from_cents(self.cogs_cents),
            "grossProfit": from_cents(self.gross_profit_cents),
            "profitMargin": self.profit_margin,
            "unitsSold": self.units_sold,
        }


@dataclass(frozen=True)
class TrendBucket:
    day: date
    revenue_cents: int = 0
    units: int = 0
    orders: int = 0

    @property
    def aov_cents(self) -> float:
        return self.revenue_cents / self.orders if self.orders else 0.0

    def to_dict(self) -> dict:
        return {
            "date": self.day.isoformat(),
            "label": self.day.strftime("%b %d"),
            "revenue": from_cents(self.revenue_cents),
            "units": self.units,
            "aov": self.aov_cents / 100,
            "orders": self.orders,
        }


@dataclass(frozen=True)
class CustomerMetrics:
    total_customers: int = 0
    new_customers: int = 0
    revenue_cents: int = 0
    order_count: int = 0

    @property
    def returning_customers(self) -> int:
        return self.total_customers - self.new_customers

    @property
    def cac(self) -> float:
        if not self.new_customers:
            return 0.0
        return from_cents(self.revenue_cents) * CAC_REVENUE_SHARE / self.new_customers

    @property
    def ltv(self) -> float:
        if not self.total_customers:
            return 0.0
        return from_cents(self.revenue_cents) / self.total_customers * LTV_PERIOD_MULTIPLIER

    @property
    def avg_order_value(self) -> float:
        if not self.order_count:
            return 0.0
        return from_cents(self.revenue_cents) / self.order_count

    def to_dict(self) -> dict:
        return {
            "totalCustomers": self.total_customers,
            "newCustomers": self.new_customers,
            "returningCustomers": self.returning_customers,
            "cac": self.cac,
            "ltv": self.ltv,
            "avgOrderValue": self.avg_order_value,
        }


@dataclass(frozen=True)
class VelocityEntry:
    item_id: int
    name: str
    current_stock: int
    sold: int

    @property
    def days_to_sellout(self) -> int:
        if self.current_stock > 0 and self.sold > 0:
            return round_half_up(Decimal(self.current_stock) / Decimal(self.sold) * SELLOUT_HORIZON_DAYS)
        return SELLOUT_SENTINEL_DAYS

    @property
    def turnover_rate(self) -> float:
        if self.current_stock > 0:
            return self.sold / self.current_stock * 100
        return 0.0

    @property
    def velocity(self) -> str:
        if self.sold > VELOCITY_FAST_THRESHOLD:
            return "Fast"
        if self.sold > VELOCITY_MEDIUM_THRESHOLD:
            return "Medium"
        return "Slow"

    def to_dict(self) -> dict:
        return {
            "_id": self.item_id,
            "name": self.name,
            "currentStock": self.current_stock,
            "soldLast30Days": self.sold,
            "daysToSellout": self.days_to_sellout,
            "turnoverRate": self.turnover_rate,
            "velocity": self.velocity,
        }


@dataclass(frozen=True)
class MixEntry:
    category: str
    revenue_cents: int
    total_paid_cents: int

    @property
    def percentage(self) -> float:
        if self.total_paid_cents <= 0:
            return 0.0
        return self.revenue_cents / self.total_paid_cents * 100

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "revenue": from_cents(self.revenue_cents),
            "percentage": self.percentage,
        }


@dataclass(frozen=True)
class PeriodComparison:
    revenue_change: float = 0.0
    profit_margin_change: float = 0.0
    units_change: float = 0.0
    customer_change: float = 0.0

    @property
    def status(self) -> str:
        return "positive" if self.revenue_change >= 0 else "negative"

    def to_dict(self) -> dict:
        return {
            "revenueChange": self.revenue_change,
            "profitMarginChange": self.profit_margin_change,
            "unitsChange": self.units_change,
            "customerChange": self.customer_change,
            "status": self.status,
        }


@dataclass(frozen=True)
class EnhancedAnalytics:
    period: str
    date_range: DateRange
    profit: ProfitMetrics
    trends: tuple[TrendBucket, ...]
    customers: CustomerMetrics
    velocity: tuple[VelocityEntry, ...]
    mix: tuple[MixEntry, ...]
    comparison: PeriodComparison
    previous_profit: ProfitMetrics = field(default_factory=ProfitMetrics)

    def to_dict(self) -> dict:
        return {
            "profitMetrics": self.profit.to_dict(),
            "timeTrends": [bucket.to_dict() for bucket in self.trends],
            "customerMetrics": self.customers.to_dict(),
            "salesVelocity": [entry.to_dict() for entry in self.velocity],
            "productMix": [entry.to_dict() for entry in self.mix],
            "comparisons": self.comparison.to_dict(),
            "period": self.period,
        }


@dataclass(frozen=True)
class MonthBucket:
    month: datetime
    revenue_cents: int = 0

    def to_dict(self) -> dict:
        return {
            "name": self.month.strftime("%b"),
            "month": self.month.strftime("%Y-%m"),
            "value": from_cents(self.revenue_cents),
        }


@dataclass(frozen=True)
class DashboardSummary:
    total_items: int
    low_stock: tuple[ItemSnapshot, ...]
    total_income_cents: int
    unpaid_invoices: int
    invoice_count: int
    paid_invoices: int
    trend: tuple[MonthBucket, ...]
    revenue_by_category: tuple[MixEntry, ...]
    generated_at: datetime

    @property
    def revenue_trend(self) -> float:
        """% change of the last trend month against the one before it."""
        if len(self.trend) < 2:
            return 0.0
        return _percent_change(self.trend[-1].revenue_cents, self.trend[-2].revenue_cents)

    @property
    def invoice_collection(self) -> float:
        if not self.invoice_count:
            return 0.0
        return self.paid_invoices / self.invoice_count * 100

    def to_dict(self) -> dict:
        return {
            "totalItems": self.total_items,
            "lowStockItems": [
                {"_id": item.id, "name": item.name, "quantity": item.quantity}
                for item in self.low_stock
            ],
            "totalIncome": from_cents(self.total_income_cents),
            "revenueTrend": self.revenue_trend,
            "unpaidInvoices": self.unpaid_invoices,
            "trendData": [bucket.to_dict() for bucket in self.trend],
            "revenueByCategory": [
                {"name": entry.category, "value": from_cents(entry.revenue_cents)}
                for entry in self.revenue_by_category
            ],
            "kpiData": {"invoiceCollection": self.invoice_collection},
            "lastUpdated": to_utc_z(self.generated_at),
        }


# =============================================================================
# PERIOD RESOLUTION
# =============================================================================

def resolve_period(period: str | None, now: datetime) -> tuple[str, DateRange, DateRange]:
    """
    Map a period keyword to (keyword, current range, previous range).

    Unknown or missing keywords resolve to 30days.
    """
    if period not in ROLLING_PERIOD_DAYS and period not in CALENDAR_PERIODS:
        period = DEFAULT_PERIOD

    if period in ROLLING_PERIOD_DAYS:
        days = ROLLING_PERIOD_DAYS[period]
        start = start_of_day(now) - timedelta(days=days - 1)
        current = DateRange(start=start, end=now)
        previous = DateRange(start=start - timedelta(days=days), end=start - timedelta(microseconds=1))
        return period, current, previous

    if period == "thisMonth":
        current = DateRange(start=start_of_month(now), end=now)
        last_month = add_months(now, -1)
        previous = DateRange(start=last_month, end=end_of_month(last_month))
        return period, current, previous

    last_month = add_months(now, -1)
    two_months_ago = add_months(now, -2)
    current = DateRange(start=last_month, end=end_of_month(last_month))
    previous = DateRange(start=two_months_ago, end=end_of_month(two_months_ago))
    return period, current, previous


def in_range(invoices: Sequence[InvoiceSnapshot], date_range: DateRange) -> list[InvoiceSnapshot]:
    return [inv for inv in invoices if date_range.contains(inv.created_at)]


# =============================================================================
# METRICS
# =============================================================================

def unit_cost_cents(item: ItemSnapshot | None) -> Decimal:
    """Current cost per unit: recorded cost, else 60% of price, else 0."""
    if item is None:
        return Decimal(0)
    if item.cost_price_cents:
        return Decimal(item.cost_price_cents)
    return Decimal(item.price_cents) * FALLBACK_COST_RATIO


def profit_metrics(invoices: Sequence[InvoiceSnapshot], items: Mapping[int, ItemSnapshot]) -> ProfitMetrics:
    """Revenue, COGS and units over paid invoices only."""
    revenue = 0
    cogs = 0
    units = 0
    for invoice in invoices:
        if not invoice.is_paid:
            continue
        revenue += invoice.amount_cents
        for line in invoice.lines:
            cogs += round_half_up(unit_cost_cents(items.get(line.item_id)) * line.quantity)
            units += line.quantity
    return ProfitMetrics(revenue_cents=revenue, cogs_cents=cogs, units_sold=units)


def time_trends(invoices: Sequence[InvoiceSnapshot], date_range: DateRange) -> list[TrendBucket]:
    """One bucket per calendar day of the range, paid invoices only."""
    totals = {day: [0, 0, 0] for day in date_range.days()}
    for invoice in invoices:
        if not invoice.is_paid or not date_range.contains(invoice.created_at):
            continue
        bucket = totals[invoice.created_at.date()]
        bucket[0] += invoice.amount_cents
        bucket[1] += invoice.units
        bucket[2] += 1
    return [
        TrendBucket(day=day, revenue_cents=revenue, units=units, orders=orders)
        for day, (revenue, units, orders) in totals.items()
    ]


def customer_metrics(
    current: Sequence[InvoiceSnapshot],
    all_invoices: Sequence[InvoiceSnapshot],
    date_range: DateRange,
) -> CustomerMetrics:
    """
    Distinct customers in the window, split into new and returning.

    A customer is new when their first-ever invoice (over all history) falls
    on or after the window start.
    """
    customers = {inv.customer_key for inv in current}

    first_purchase: dict[str, datetime] = {}
    for invoice in all_invoices:
        seen = first_purchase.get(invoice.customer_key)
        if seen is None or invoice.created_at < seen:
            first_purchase[invoice.customer_key] = invoice.created_at

    new_customers = sum(
        1 for key in customers
        if key in first_purchase and first_purchase[key] >= date_range.start
    )

    revenue = sum(inv.amount_cents for inv in current if inv.is_paid)
    return CustomerMetrics(
        total_customers=len(customers),
        new_customers=new_customers,
        revenue_cents=revenue,
        order_count=len(current),
    )


def sales_velocity(invoices: Sequence[InvoiceSnapshot], items: Sequence[ItemSnapshot]) -> list[VelocityEntry]:
    """
    Units sold per item over every invoice in the window (paid or not),
    classified Fast/Medium/Slow. Top 10 by units sold.
    """
    sold: dict[int, int] = {}
    for invoice in invoices:
        for line in invoice.lines:
            sold[line.item_id] = sold.get(line.item_id, 0) + line.quantity

    entries = [
        VelocityEntry(item_id=item.id, name=item.name, current_stock=item.quantity, sold=sold.get(item.id, 0))
        for item in items
    ]
    entries.sort(key=lambda entry: (-entry.sold, entry.item_id))
    return entries[:VELOCITY_TOP_N]


def product_mix(invoices: Sequence[InvoiceSnapshot], items: Mapping[int, ItemSnapshot]) -> list[MixEntry]:
    """
    Paid line revenue by category (adjusted price, else current price),
    as a share of total paid invoice revenue.
    """
    paid = [inv for inv in invoices if inv.is_paid]
    total_paid = sum(inv.amount_cents for inv in paid)

    by_category: dict[str, int] = {}
    for invoice in paid:
        for line in invoice.lines:
            item = items.get(line.item_id)
            category = (item.category if item else None) or UNCATEGORIZED
            if line.adjusted_price_cents is not None:
                unit = line.adjusted_price_cents
            else:
                unit = item.price_cents if item else 0
            by_category[category] = by_category.get(category, 0) + unit * line.quantity

    mix = [
        MixEntry(category=category, revenue_cents=revenue, total_paid_cents=total_paid)
        for category, revenue in by_category.items()
    ]
    mix.sort(key=lambda entry: (-entry.revenue_cents, entry.category))
    return mix


def _percent_change(current: int | float, previous: int | float) -> float:
    if not previous:
        return 0.0
    return (current - previous) / previous * 100


def period_comparison(
    current: ProfitMetrics,
    previous: ProfitMetrics,
    current_customers: CustomerMetrics,
    previous_customers: CustomerMetrics,
) -> PeriodComparison:
    """Relative % change for revenue/units/customers; margin as a point delta."""
    return PeriodComparison(
        revenue_change=_percent_change(current.revenue_cents, previous.revenue_cents),
        profit_margin_change=current.profit_margin - previous.profit_margin,
        units_change=_percent_change(current.units_sold, previous.units_sold),
        customer_change=_percent_change(current_customers.total_customers, previous_customers.total_customers),
    )


def total_income_cents(invoices: Sequence[InvoiceSnapshot]) -> int:
    return sum(inv.amount_cents for inv in invoices if inv.is_paid)


def unpaid_count(invoices: Sequence[InvoiceSnapshot]) -> int:
    return sum(1 for inv in invoices if not inv.is_paid)


def low_stock(items: Sequence[ItemSnapshot]) -> list[ItemSnapshot]:
    """Items under their own threshold, emptiest first."""
    flagged = [item for item in items if item.is_low_stock]
    flagged.sort(key=lambda item: (item.quantity, item.id))
    return flagged


def monthly_revenue_trend(
    invoices: Sequence[InvoiceSnapshot],
    now: datetime,
    months: int = DASHBOARD_TREND_MONTHS,
) -> list[MonthBucket]:
    """
    Paid revenue per calendar month, oldest first, ending with the month of
    `now`. Months without invoices are present with zero revenue.
    """
    buckets = []
    for offset in range(months - 1, -1, -1):
        month = DateRange(start=add_months(now, -offset), end=end_of_month(add_months(now, -offset)))
        revenue = total_income_cents(in_range(invoices, month))
        buckets.append(MonthBucket(month=month.start, revenue_cents=revenue))
    return buckets


# =============================================================================
# LOADER
# =============================================================================

def load_snapshots(owner_id: int) -> tuple[list[InvoiceSnapshot], list[ItemSnapshot]]:
    """All non-deleted invoices and every inventory item of one owner."""
    invoices = db.session.query(Invoice).options(selectinload(Invoice.lines)).filter(
        Invoice.owner_id == owner_id,
        Invoice.deleted.is_(False),
    ).order_by(Invoice.created_at.asc(), Invoice.id.asc()).all()

    items = db.session.query(InventoryItem).filter(
        InventoryItem.owner_id == owner_id
    ).order_by(InventoryItem.id.asc()).all()

    return (
        [InvoiceSnapshot.from_model(inv) for inv in invoices],
        [ItemSnapshot.from_model(item) for item in items],
    )


def compute_enhanced_analytics(
    period: str | None,
    invoices: Sequence[InvoiceSnapshot],
    items: Sequence[ItemSnapshot],
    now: datetime,
) -> EnhancedAnalytics:
    period, current_range, previous_range = resolve_period(period, now)
    catalog = {item.id: item for item in items}

    current = in_range(invoices, current_range)
    previous = in_range(invoices, previous_range)

    profit = profit_metrics(current, catalog)
    previous_profit = profit_metrics(previous, catalog)
    customers = customer_metrics(current, invoices, current_range)
    previous_customers = customer_metrics(previous, invoices, previous_range)

    return EnhancedAnalytics(
        period=period,
        date_range=current_range,
        profit=profit,
        trends=tuple(time_trends(current, current_range)),
        customers=customers,
        velocity=tuple(sales_velocity(current, items)),
        mix=tuple(product_mix(current, catalog)),
        comparison=period_comparison(profit, previous_profit, customers, previous_customers),
        previous_profit=previous_profit,
    )


def enhanced_analytics(owner_id: int, period: str | None = None, now: datetime | None = None) -> dict:
    invoices, items = load_snapshots(owner_id)
    return compute_enhanced_analytics(period, invoices, items, now or utcnow()).to_dict()


def compute_dashboard(
    invoices: Sequence[InvoiceSnapshot],
    items: Sequence[ItemSnapshot],
    now: datetime,
) -> DashboardSummary:
    catalog = {item.id: item for item in items}
    return DashboardSummary(
        total_items=len(items),
        low_stock=tuple(low_stock(items)),
        total_income_cents=total_income_cents(invoices),
        unpaid_invoices=unpaid_count(invoices),
        invoice_count=len(invoices),
        paid_invoices=sum(1 for inv in invoices if inv.is_paid),
        trend=tuple(monthly_revenue_trend(invoices, now)),
        revenue_by_category=tuple(product_mix(invoices, catalog)),
        generated_at=now,
    )


def dashboard(owner_id: int, now: datetime | None = None) -> dict:
    invoices, items = load_snapshots(owner_id)
    return compute_dashboard(invoices, items, now or utcnow()).to_dict()
