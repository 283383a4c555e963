# Overview: Analytics over catalog and ledger snapshots; pure computation, no writes.

"""
Analytics Semantics (authoritative)

- Every function below except load_snapshot is a pure function of its
  arguments: no database access, no wall-clock reads. "now" is always passed.
- Period filters are inclusive on both ends: start <= created_at <= end.
- Monetary aggregates are whole currency units (half-up rounding).
- Gross margin is a percentage with 2 decimals; 0 when revenue is 0.
- Weeks start on Monday.
- Product performance is all-time (not period-bounded).
- Alerts are recomputed on demand and never persisted; all applicable rule
  families are returned together.
"""
from __future__ import annotations

import calendar
import math
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Sequence

from ..extensions import db
from ..models import Product, StockTransaction
from ..validation import round_half_up
from .ledger_service import PURCHASE, SALE
from stockledger.time_utils import to_utc_z

REVENUE_DROP_RATIO = 0.8
EXPENSE_ANOMALY_RATIO = 1.5
# Rough "month" proxy used by the expense anomaly rule: one month per 30 entries
ENTRIES_PER_MONTH_PROXY = 30

SEVERITY_LOW = "low"
SEVERITY_MEDIUM = "medium"
SEVERITY_HIGH = "high"


@dataclass(frozen=True)
class ProductSnapshot:
    id: int
    name: str
    stock_quantity: int
    alert_threshold: int
    unit_label: str = "unit"


@dataclass(frozen=True)
class LedgerEntry:
    id: int
    product_id: int
    transaction_type: str
    quantity: int
    unit_price: int
    total_amount: int
    created_at: datetime


@dataclass(frozen=True)
class DateRange:
    key: str
    label: str
    start: datetime
    end: datetime

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "label": self.label,
            "start": to_utc_z(self.start),
            "end": to_utc_z(self.end),
        }


@dataclass
class PeriodStats:
    revenue: int
    expenses: int
    profit: int
    gross_margin: float
    transactions: int
    quantity_sold: int
    quantity_purchased: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ProductPerformance:
    product_id: int
    product_name: str
    total_sold: int
    total_revenue: int
    average_selling_price: int
    stock_rotation: float
    current_stock: int
    alert_threshold: int
    is_low_stock: bool

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Alert:
    id: str
    type: str
    severity: str
    message: str
    product_id: int | None = None
    product_name: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)


# ---------------------------------------------------------------------------
# Calendar helpers
# ---------------------------------------------------------------------------

def start_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def end_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=23, minute=59, second=59, microsecond=999999)


def start_of_week(dt: datetime) -> datetime:
    return start_of_day(dt - timedelta(days=dt.weekday()))


def end_of_week(dt: datetime) -> datetime:
    return end_of_day(start_of_week(dt) + timedelta(days=6))


def start_of_month(dt: datetime) -> datetime:
    return start_of_day(dt.replace(day=1))


def end_of_month(dt: datetime) -> datetime:
    last_day = calendar.monthrange(dt.year, dt.month)[1]
    return end_of_day(dt.replace(day=last_day))


def start_of_year(dt: datetime) -> datetime:
    return start_of_day(dt.replace(month=1, day=1))


def end_of_year(dt: datetime) -> datetime:
    return end_of_day(dt.replace(month=12, day=31))


def add_months(dt: datetime, months: int) -> datetime:
    """Shift by calendar months, clamping the day to the target month's length."""
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def build_date_ranges(now: datetime) -> list[DateRange]:
    """Named ranges relative to now; regenerated on every call."""
    yesterday = now - timedelta(days=1)
    last_week = now - timedelta(weeks=1)
    last_month = add_months(now, -1)
    return [
        DateRange("today", "Today", start_of_day(now), end_of_day(now)),
        DateRange("yesterday", "Yesterday", start_of_day(yesterday), end_of_day(yesterday)),
        DateRange("this_week", "This week", start_of_week(now), end_of_week(now)),
        DateRange("last_week", "Last week", start_of_week(last_week), end_of_week(last_week)),
        DateRange("this_month", "This month", start_of_month(now), end_of_month(now)),
        DateRange("last_month", "Last month", start_of_month(last_month), end_of_month(last_month)),
        DateRange("this_year", "This year", start_of_year(now), end_of_year(now)),
    ]


def find_date_range(key: str, now: datetime) -> DateRange | None:
    for date_range in build_date_ranges(now):
        if date_range.key == key:
            return date_range
    return None


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------

def entries_in_period(entries: Iterable, start: datetime, end: datetime) -> list:
    return [e for e in entries if start <= e.created_at <= end]


def gross_margin(revenue, profit) -> float:
    if revenue <= 0:
        return 0.0
    return round_half_up(profit / revenue * 100, 2)


def period_stats(entries: Iterable, start: datetime, end: datetime) -> PeriodStats:
    """Revenue/expense/margin over start <= created_at <= end."""
    in_period = entries_in_period(entries, start, end)
    sales = [e for e in in_period if e.transaction_type == SALE]
    purchases = [e for e in in_period if e.transaction_type == PURCHASE]

    revenue = sum(e.total_amount for e in sales)
    expenses = sum(e.total_amount for e in purchases)
    profit = revenue - expenses

    return PeriodStats(
        revenue=round_half_up(revenue),
        expenses=round_half_up(expenses),
        profit=round_half_up(profit),
        gross_margin=gross_margin(revenue, profit),
        transactions=len(in_period),
        quantity_sold=sum(e.quantity for e in sales),
        quantity_purchased=sum(e.quantity for e in purchases),
    )


def stock_rotation(total_sold: int, current_stock: int) -> float:
    if current_stock <= 0:
        return 0.0
    return round_half_up(total_sold / current_stock, 2)


def product_performance(products: Iterable, entries: Sequence) -> list[ProductPerformance]:
    """All-time sales per product, sorted by total revenue descending."""
    sold: dict[int, int] = {}
    revenue: dict[int, int] = {}
    for e in entries:
        if e.transaction_type != SALE:
            continue
        sold[e.product_id] = sold.get(e.product_id, 0) + e.quantity
        revenue[e.product_id] = revenue.get(e.product_id, 0) + e.total_amount

    rows = []
    for product in products:
        total_sold = sold.get(product.id, 0)
        total_revenue = revenue.get(product.id, 0)
        average_price = round_half_up(total_revenue / total_sold) if total_sold > 0 else 0
        rows.append(
            ProductPerformance(
                product_id=product.id,
                product_name=product.name,
                total_sold=total_sold,
                total_revenue=round_half_up(total_revenue),
                average_selling_price=average_price,
                stock_rotation=stock_rotation(total_sold, product.stock_quantity),
                current_stock=product.stock_quantity,
                alert_threshold=product.alert_threshold,
                is_low_stock=product.stock_quantity <= product.alert_threshold,
            )
        )

    # stable sort keeps catalog order for equal revenue
    rows.sort(key=lambda r: r.total_revenue, reverse=True)
    return rows


# ---------------------------------------------------------------------------
# Alerts
# ---------------------------------------------------------------------------

def low_stock_alerts(products: Iterable) -> list[Alert]:
    alerts = []
    for product in products:
        if product.stock_quantity > product.alert_threshold:
            continue
        unit_label = getattr(product, "unit_label", None) or "unit"
        if product.stock_quantity == 0:
            severity = SEVERITY_HIGH
            message = f"Out of stock: {product.name}"
        else:
            severity = SEVERITY_MEDIUM
            message = f"Low stock: {product.name} ({product.stock_quantity} {unit_label} left)"
        alerts.append(
            Alert(
                id=f"low_stock_{product.id}",
                type="low_stock",
                severity=severity,
                message=message,
                product_id=product.id,
                product_name=product.name,
                data={"current_stock": product.stock_quantity, "threshold": product.alert_threshold},
            )
        )
    return alerts


def revenue_drop_alert(current: PeriodStats, previous: PeriodStats) -> Alert | None:
    """Current month revenue strictly below 80% of a positive previous month."""
    if previous.revenue <= 0:
        return None
    if not current.revenue < previous.revenue * REVENUE_DROP_RATIO:
        return None
    drop_pct = round_half_up((previous.revenue - current.revenue) / previous.revenue * 100)
    return Alert(
        id="revenue_drop",
        type="revenue_drop",
        severity=SEVERITY_HIGH,
        message=f"Revenue down {drop_pct}% compared to last month",
        data={"current": current.revenue, "previous": previous.revenue, "drop_pct": drop_pct},
    )


def average_monthly_expenses(entries: Sequence) -> float:
    """All-time purchase totals divided by one 'month' per 30 entries (minimum 1)."""
    purchase_total = sum(e.total_amount for e in entries if e.transaction_type == PURCHASE)
    months = max(1, math.ceil(len(entries) / ENTRIES_PER_MONTH_PROXY))
    return purchase_total / months


def expense_anomaly_alert(current: PeriodStats, entries: Sequence) -> Alert | None:
    average = average_monthly_expenses(entries)
    if not current.expenses > average * EXPENSE_ANOMALY_RATIO:
        return None
    excess_pct = round_half_up((current.expenses - average) / average * 100) if average > 0 else None
    if excess_pct is None:
        message = "Unusually high expenses this month"
    else:
        message = f"Unusually high expenses this month ({excess_pct}% above average)"
    return Alert(
        id="expense_anomaly",
        type="expense_anomaly",
        severity=SEVERITY_MEDIUM,
        message=message,
        data={"current": current.expenses, "average": round_half_up(average, 2), "excess_pct": excess_pct},
    )


def generate_alerts(products: Sequence, entries: Sequence, now: datetime) -> list[Alert]:
    """Low stock, then revenue drop, then expense anomaly; every applicable alert."""
    alerts = low_stock_alerts(products)

    current_month = period_stats(entries, start_of_month(now), end_of_month(now))
    last_month_ref = add_months(now, -1)
    previous_month = period_stats(entries, start_of_month(last_month_ref), end_of_month(last_month_ref))

    drop = revenue_drop_alert(current_month, previous_month)
    if drop is not None:
        alerts.append(drop)

    anomaly = expense_anomaly_alert(current_month, entries)
    if anomaly is not None:
        alerts.append(anomaly)

    return alerts


# ---------------------------------------------------------------------------
# Time series and dashboard
# ---------------------------------------------------------------------------

def _series_point(entries: Sequence, *, key: str, label: str, start: datetime, end: datetime) -> dict:
    stats = period_stats(entries, start, end)
    return {
        "key": key,
        "label": label,
        "revenue": stats.revenue,
        "expenses": stats.expenses,
        "profit": stats.profit,
    }


def monthly_series(entries: Sequence, now: datetime, months: int = 12) -> list[dict]:
    """Trailing calendar months, oldest first, current month last."""
    points = []
    for offset in range(months - 1, -1, -1):
        month = add_months(start_of_month(now), -offset)
        points.append(
            _series_point(
                entries,
                key=month.strftime("%Y-%m"),
                label=month.strftime("%b %Y"),
                start=start_of_month(month),
                end=end_of_month(month),
            )
        )
    return points


def daily_series(entries: Sequence, now: datetime, days: int = 30) -> list[dict]:
    """Trailing calendar days, oldest first, today last."""
    points = []
    for offset in range(days - 1, -1, -1):
        day = now - timedelta(days=offset)
        points.append(
            _series_point(
                entries,
                key=day.strftime("%Y-%m-%d"),
                label=day.strftime("%d/%m"),
                start=start_of_day(day),
                end=end_of_day(day),
            )
        )
    return points


def time_series(entries: Sequence, now: datetime) -> dict:
    return {
        "monthly": monthly_series(entries, now),
        "daily": daily_series(entries, now),
    }


STOCK_OVERVIEW_SIZE = 5


def stock_overview(products: Sequence, limit: int = STOCK_OVERVIEW_SIZE) -> list[dict]:
    """Stock against alert threshold for the first `limit` products, in catalog order."""
    return [
        {
            "product_id": p.id,
            "name": p.name,
            "stock_quantity": p.stock_quantity,
            "alert_threshold": p.alert_threshold,
        }
        for p in list(products)[:limit]
    ]


def dashboard_summary(products: Sequence, entries: Sequence, now: datetime) -> dict:
    """Headline counters, the purchase/sale mix and the stock chart rows."""
    sales = [e for e in entries if e.transaction_type == SALE]
    purchases = [e for e in entries if e.transaction_type == PURCHASE]
    month_start, month_end = start_of_month(now), end_of_month(now)

    return {
        "total_products": len(products),
        "total_stock": sum(p.stock_quantity for p in products),
        "low_stock_products": sum(1 for p in products if p.stock_quantity <= p.alert_threshold),
        "total_revenue": round_half_up(sum(e.total_amount for e in sales)),
        "monthly_revenue": round_half_up(
            sum(e.total_amount for e in sales if month_start <= e.created_at <= month_end)
        ),
        "transaction_mix": {
            PURCHASE: {
                "count": len(purchases),
                "amount": round_half_up(sum(e.total_amount for e in purchases)),
            },
            SALE: {
                "count": len(sales),
                "amount": round_half_up(sum(e.total_amount for e in sales)),
            },
        },
        "stock_overview": stock_overview(products),
    }


# ---------------------------------------------------------------------------
# Snapshot loading (the only database access in this module)
# ---------------------------------------------------------------------------

def _as_utc_naive(dt: datetime) -> datetime:
    if dt is not None and dt.tzinfo is not None:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def load_snapshot(org_id: int) -> tuple[list[ProductSnapshot], list[LedgerEntry]]:
    """Fetch the tenant's catalog and full ledger as immutable snapshots."""
    products = [
        ProductSnapshot(
            id=p.id,
            name=p.name,
            stock_quantity=p.stock_quantity,
            alert_threshold=p.alert_threshold,
            unit_label=p.unit_label,
        )
        for p in db.session.query(Product)
        .filter_by(organization_id=org_id)
        .order_by(Product.created_at.desc(), Product.id.desc())
        .all()
    ]
    entries = [
        LedgerEntry(
            id=t.id,
            product_id=t.product_id,
            transaction_type=t.transaction_type,
            quantity=t.quantity,
            unit_price=t.unit_price,
            total_amount=t.total_amount,
            created_at=_as_utc_naive(t.created_at),
        )
        for t in db.session.query(StockTransaction)
        .filter_by(organization_id=org_id)
        .order_by(StockTransaction.created_at.asc(), StockTransaction.id.asc())
        .all()
    ]
    return products, entries
