# Overview: Service-layer operations for reporting; encapsulates aggregation over invoices, payments and products.

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from ..extensions import db
from ..errors import ServiceError
from ..models import Invoice, Payment, Product
from ..time_utils import (
    PERIODS,
    parse_date_bound,
    period_label,
    period_start,
    shift_period,
    to_utc_z,
    utcnow,
)


class ReportError(ServiceError):
    """Raised when report generation fails."""
    pass


@dataclass(frozen=True)
class SalesReportFilters:
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    branch_id: Optional[int] = None
    period: str = "monthly"


@dataclass(frozen=True)
class StockReportFilters:
    branch_id: Optional[int] = None
    category: Optional[str] = None


@dataclass(frozen=True)
class ProfitLossFilters:
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    branch_id: Optional[int] = None


@dataclass(frozen=True)
class PaymentReportFilters:
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    branch_id: Optional[int] = None


def _parse_range(start: str | None, end: str | None) -> tuple[datetime | None, datetime | None]:
    """Date-only `end` covers the whole day."""
    try:
        return parse_date_bound(start), parse_date_bound(end, upper=True)
    except ValueError:
        raise ReportError("Dates must be ISO-8601")


def _scoped(query, column_at, column_branch, start_dt, end_dt, branch_id):
    if start_dt is not None:
        query = query.filter(column_at >= start_dt)
    if end_dt is not None:
        query = query.filter(column_at <= end_dt)
    if branch_id is not None:
        query = query.filter(column_branch == branch_id)
    return query


def average_cents(total: int, count: int) -> int:
    """total / count rounded half-up to whole cents; 0 when count is 0."""
    if not count:
        return 0
    return int((Decimal(total) / Decimal(count)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percentage(numerator: int, denominator: int) -> Decimal:
    return (Decimal(numerator) * 100 / Decimal(denominator)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def gap_fill(buckets: dict[date, dict], period: str, *, pad_leading: bool, empty) -> list[tuple[date, dict]]:
    """
    Walk every bucket between the earliest and latest key.

    Missing buckets get `empty()`. With pad_leading, one extra empty bucket
    precedes the earliest one so a single bucket still yields two points.
    """
    if not buckets:
        return []
    keys = sorted(buckets)
    cursor = shift_period(keys[0], period, -1) if pad_leading else keys[0]
    out = []
    while cursor <= keys[-1]:
        out.append((cursor, buckets.get(cursor) or empty()))
        cursor = shift_period(cursor, period)
    return out


def sales_report(filters: SalesReportFilters | None = None, *, now: datetime | None = None) -> dict:
    """
    Revenue summary, a gap-filled revenue series and a payment-method breakdown.

    Buckets: daily (ISO date), weekly (Monday ISO date), monthly (YYYY-MM),
    yearly (YYYY). Weekly and monthly series get one empty leading bucket.
    With no invoices, monthly answers two zero points (previous and current
    month, relative to `now`); other periods answer an empty series.
    """
    filters = filters or SalesReportFilters()
    period = filters.period or "monthly"
    if period not in PERIODS:
        raise ReportError(f"Failed to get sales report: period must be one of: {', '.join(PERIODS)}")

    try:
        start_dt, end_dt = _parse_range(filters.date_from, filters.date_to)
    except ReportError as exc:
        raise exc.with_context("Failed to get sales report")

    query = db.session.query(Invoice.created_at, Invoice.total_cents, Invoice.payment_method)
    query = _scoped(query, Invoice.created_at, Invoice.branch_id, start_dt, end_dt, filters.branch_id)
    rows = query.order_by(Invoice.created_at.asc(), Invoice.id.asc()).all()

    total_revenue = sum(r.total_cents for r in rows)
    total_invoices = len(rows)

    buckets: dict[date, dict] = {}
    methods: dict[str, dict] = {}
    for r in rows:
        key = period_start(r.created_at, period)
        bucket = buckets.setdefault(key, {"revenue_cents": 0, "count": 0})
        bucket["revenue_cents"] += r.total_cents
        bucket["count"] += 1

        stat = methods.setdefault(r.payment_method, {"method": r.payment_method, "count": 0, "revenue_cents": 0})
        stat["count"] += 1
        stat["revenue_cents"] += r.total_cents

    def _empty():
        return {"revenue_cents": 0, "count": 0}

    if buckets:
        series = gap_fill(buckets, period, pad_leading=period in ("weekly", "monthly"), empty=_empty)
    elif period == "monthly":
        current = period_start(now or utcnow(), "monthly")
        series = [(shift_period(current, "monthly", -1), _empty()), (current, _empty())]
    else:
        series = []

    return {
        "summary": {
            "total_revenue_cents": total_revenue,
            "total_invoices": total_invoices,
            "average_order_value_cents": average_cents(total_revenue, total_invoices),
        },
        "period": period,
        "chart_data": [
            {"date": period_label(start, period), **values}
            for start, values in series
        ],
        "payment_method_stats": [methods[m] for m in sorted(methods)],
    }


def _stock_summary(p: Product) -> dict:
    return {
        "id": p.id,
        "name": p.name,
        "sku": p.sku,
        "category": p.category,
        "stock": p.stock,
        "min_stock": p.min_stock,
        "branch": p.branch.to_summary() if p.branch else None,
    }


def stock_report(filters: StockReportFilters | None = None) -> dict:
    filters = filters or StockReportFilters()

    query = db.session.query(Product).filter(Product.is_active.is_(True))
    if filters.branch_id is not None:
        query = query.filter(Product.branch_id == filters.branch_id)
    if filters.category:
        query = query.filter(Product.category.ilike(f"%{filters.category}%"))
    products = query.order_by(Product.stock.asc(), Product.id.asc()).all()

    low_stock = [p for p in products if p.stock <= p.min_stock]
    out_of_stock = [p for p in products if p.stock == 0]

    categories: dict[str, dict] = {}
    for p in products:
        stat = categories.setdefault(
            p.category, {"category": p.category, "count": 0, "total_stock": 0, "total_value_cents": 0}
        )
        stat["count"] += 1
        stat["total_stock"] += p.stock
        stat["total_value_cents"] += p.stock * p.cost_price_cents

    return {
        "summary": {
            "total_products": len(products),
            "low_stock_products": len(low_stock),
            "out_of_stock_products": len(out_of_stock),
            "total_stock_value_cents": sum(p.stock * p.cost_price_cents for p in products),
        },
        "low_stock_products": [_stock_summary(p) for p in low_stock[:10]],
        "out_of_stock_products": [_stock_summary(p) for p in out_of_stock[:10]],
        "category_stats": [categories[c] for c in sorted(categories)],
    }


def profit_loss_report(filters: ProfitLossFilters | None = None) -> dict:
    """
    Revenue (invoices) against expenses (debit payments only).

    profit_margin is net/revenue * 100 as a two-decimal string, "0.00"
    without revenue. The monthly series is gap-filled with no leading pad.
    """
    filters = filters or ProfitLossFilters()
    try:
        start_dt, end_dt = _parse_range(filters.start_date, filters.end_date)
    except ReportError as exc:
        raise exc.with_context("Failed to get profit/loss report")

    invoices = _scoped(
        db.session.query(Invoice.created_at, Invoice.total_cents),
        Invoice.created_at, Invoice.branch_id, start_dt, end_dt, filters.branch_id,
    ).all()
    expenses = _scoped(
        db.session.query(Payment.created_at, Payment.amount_cents).filter(Payment.payment_type == "debit"),
        Payment.created_at, Payment.branch_id, start_dt, end_dt, filters.branch_id,
    ).all()

    total_revenue = sum(r.total_cents for r in invoices)
    total_expenses = sum(r.amount_cents for r in expenses)
    net_profit = total_revenue - total_expenses

    months: dict[date, dict] = {}

    def _empty():
        return {"revenue_cents": 0, "expenses_cents": 0}

    for r in invoices:
        months.setdefault(period_start(r.created_at, "monthly"), _empty())["revenue_cents"] += r.total_cents
    for r in expenses:
        months.setdefault(period_start(r.created_at, "monthly"), _empty())["expenses_cents"] += r.amount_cents

    chart_data = []
    for start, values in gap_fill(months, "monthly", pad_leading=False, empty=_empty):
        chart_data.append({
            "month": period_label(start, "monthly"),
            "revenue_cents": values["revenue_cents"],
            "expenses_cents": values["expenses_cents"],
            "profit_cents": values["revenue_cents"] - values["expenses_cents"],
        })

    margin = f"{percentage(net_profit, total_revenue)}" if total_revenue > 0 else "0.00"

    return {
        "summary": {
            "total_revenue_cents": total_revenue,
            "total_expenses_cents": total_expenses,
            "net_profit_cents": net_profit,
            "profit_margin": margin,
        },
        "chart_data": chart_data,
        "start": to_utc_z(start_dt) if start_dt else None,
        "end": to_utc_z(end_dt) if end_dt else None,
    }


def payment_report(filters: PaymentReportFilters | None = None) -> dict:
    filters = filters or PaymentReportFilters()
    try:
        start_dt, end_dt = _parse_range(filters.date_from, filters.date_to)
    except ReportError as exc:
        raise exc.with_context("Failed to get payment report")

    rows = _scoped(
        db.session.query(Payment.amount_cents, Payment.payment_method, Payment.payment_type),
        Payment.created_at, Payment.branch_id, start_dt, end_dt, filters.branch_id,
    ).all()

    by_method: dict[str, dict] = {}
    by_type: dict[str, dict] = {}
    for r in rows:
        m = by_method.setdefault(r.payment_method, {"method": r.payment_method, "count": 0, "amount_cents": 0})
        m["count"] += 1
        m["amount_cents"] += r.amount_cents
        t = by_type.setdefault(r.payment_type, {"type": r.payment_type, "count": 0, "amount_cents": 0})
        t["count"] += 1
        t["amount_cents"] += r.amount_cents

    return {
        "summary": {
            "total_amount_cents": sum(r.amount_cents for r in rows),
            "total_payments": len(rows),
        },
        "payment_method_stats": [by_method[k] for k in sorted(by_method)],
        "payment_type_stats": [by_type[k] for k in sorted(by_type)],
    }
