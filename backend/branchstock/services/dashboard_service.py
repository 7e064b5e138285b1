# backend/branchstock/services/dashboard_service.py
"""
Dashboard aggregator.

Computes stats for a window anchored at `now` and compares them with the
immediately preceding window of the same length:

    daily:   [today 00:00, tomorrow 00:00)
    weekly:  [now - 7 days, now)
    monthly: [1st of month, 1st of next month)
    yearly:  [Jan 1, next Jan 1)

Unknown periods fall back to monthly. growth = (current - previous) /
previous * 100 rounded to 2 decimals, 0 when previous is 0.
"""
from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timedelta

from ..extensions import db
from ..models import Branch, Invoice, Payment, Product, User
from ..time_utils import PERIODS, add_months, to_utc_z, utcnow
from .reporting_service import average_cents, percentage

# Max number of daily points in sales_data per period
SALES_DATA_CAP = {"daily": 1, "weekly": 7, "monthly": 30, "yearly": 365}


def resolve_window(period: str, now: datetime) -> tuple[datetime, datetime]:
    today = datetime(now.year, now.month, now.day)
    if period == "daily":
        return today, today + timedelta(days=1)
    if period == "weekly":
        return now - timedelta(days=7), now
    if period == "yearly":
        return datetime(now.year, 1, 1), datetime(now.year + 1, 1, 1)
    first = today.replace(day=1)
    return first, datetime.combine(add_months(first.date(), 1), datetime.min.time())


def growth(current: int, previous: int) -> float:
    if not previous:
        return 0.0
    return float(percentage(current - previous, previous))


def _invoice_totals(start: datetime, end: datetime, branch_id: int | None) -> tuple[int, int]:
    query = db.session.query(
        db.func.count(Invoice.id), db.func.coalesce(db.func.sum(Invoice.total_cents), 0)
    ).filter(Invoice.created_at >= start, Invoice.created_at < end)
    if branch_id is not None:
        query = query.filter(Invoice.branch_id == branch_id)
    count, revenue = query.one()
    return int(count or 0), int(revenue or 0)


def _payment_total(start: datetime, end: datetime, branch_id: int | None) -> int:
    query = db.session.query(db.func.coalesce(db.func.sum(Payment.amount_cents), 0)).filter(
        Payment.created_at >= start, Payment.created_at < end
    )
    if branch_id is not None:
        query = query.filter(Payment.branch_id == branch_id)
    return int(query.scalar() or 0)


def _day_label(day: datetime, period: str) -> str:
    if period == "daily":
        return day.strftime("%A")
    if period == "yearly":
        return f"{day:%a, %b} {day.day}"
    return day.strftime("%a")


def get_dashboard_data(period: str = "monthly", *, branch_id: int | None = None, now: datetime | None = None) -> dict:
    if period not in PERIODS:
        period = "monthly"
    now = now or utcnow()
    start, end = resolve_window(period, now)
    previous_start = start - (end - start)

    products_query = db.session.query(Product).filter(Product.is_active.is_(True))
    if branch_id is not None:
        products_query = products_query.filter(Product.branch_id == branch_id)
    products = products_query.order_by(Product.stock.asc(), Product.id.asc()).all()

    invoices_query = db.session.query(Invoice).filter(Invoice.created_at >= start, Invoice.created_at < end)
    if branch_id is not None:
        invoices_query = invoices_query.filter(Invoice.branch_id == branch_id)
    invoices = invoices_query.order_by(Invoice.created_at.desc(), Invoice.id.desc()).all()

    total_invoices = len(invoices)
    total_revenue = sum(i.total_cents for i in invoices)
    total_products = len(products)
    total_payments = _payment_total(start, end, branch_id)

    previous_invoices, previous_revenue = _invoice_totals(previous_start, start, branch_id)
    previous_products = sum(1 for p in products if p.created_at < start)

    # sales_data: one point per calendar day from the window start
    by_day = defaultdict(int)
    for invoice in invoices:
        by_day[invoice.created_at.date()] += invoice.total_cents

    days_in_period = -(-(end - start) // timedelta(days=1))
    sales_data = []
    for i in range(min(days_in_period, SALES_DATA_CAP[period])):
        day = start + timedelta(days=i)
        sales = by_day.get(day.date(), 0)
        sales_data.append({
            "date": day.date().isoformat(),
            "name": _day_label(day, period),
            "sales_cents": sales,
            "value": sales,
        })

    categories: dict[str, dict] = {}
    for p in products:
        stat = categories.setdefault(p.category, {"name": p.category, "total_products": 0, "total_stock": 0})
        stat["total_products"] += 1
        stat["total_stock"] += p.stock
    product_data = [
        {**categories[c], "value": categories[c]["total_products"]}
        for c in sorted(categories)
    ]

    recent_invoices = [
        {
            "id": i.id,
            "invoice_number": i.invoice_number,
            "customer": i.customer_name or "Unknown",
            "amount_cents": i.total_cents,
            "date": to_utc_z(i.created_at),
        }
        for i in invoices[:5]
    ]

    low_stock_products = [
        {"id": p.id, "name": p.name, "stock": p.stock, "min_stock": p.min_stock}
        for p in products
        if p.stock <= p.min_stock
    ][:5]

    return {
        "stats": {
            "total_sales": total_invoices,
            "total_products": total_products,
            "total_invoices": total_invoices,
            "total_revenue_cents": total_revenue,
            "total_payments_cents": total_payments,
            "sales_growth": growth(total_invoices, previous_invoices),
            "product_growth": growth(total_products, previous_products),
            "invoice_growth": growth(total_invoices, previous_invoices),
            "revenue_growth": growth(total_revenue, previous_revenue),
        },
        "sales_data": sales_data,
        "product_data": product_data,
        "recent_invoices": recent_invoices,
        "low_stock_products": low_stock_products,
        "summary": {
            "total_users": db.session.query(db.func.count(User.id)).filter(User.is_active.is_(True)).scalar(),
            "total_branches": db.session.query(db.func.count(Branch.id)).filter(Branch.is_active.is_(True)).scalar(),
            "average_order_value_cents": average_cents(total_revenue, total_invoices),
            "period": period,
            "date_range": {"start": to_utc_z(start), "end": to_utc_z(end)},
        },
    }
