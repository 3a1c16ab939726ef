# Overview: Service-layer operations for reporting; aggregates the transaction archive.

"""
Analytics summary over one owner's transactions.

Only completed transactions count as sales. Canceled, held and active
transactions are excluded from every sales figure; status_counts reports
them separately. Daily and hourly buckets use created_at in UTC.
Line figures come from the bound lines' frozen prices, never the live catalogue.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func

from ..extensions import db
from ..models import CartItem, Product, Transaction
from ..models.sales import STATUS_COMPLETED
from ..validation import ValidationError
from pos.time_utils import DateWindowError, parse_date_window
from .pricing_service import round_cents
from .scope import Scope

UNCATEGORIZED = "Uncategorized"


class ReportError(ValidationError):
    """Raised when report parameters are invalid."""


def _window(query, start_dt, end_dt):
    if start_dt:
        query = query.filter(Transaction.created_at >= start_dt)
    if end_dt:
        query = query.filter(Transaction.created_at <= end_dt)
    return query


def _line_totals(scope: Scope, start_dt, end_dt):
    """(product_id, product name, category, units, sales_cents) per product for completed sales."""
    line_total = CartItem.unit_price_cents * CartItem.quantity
    query = (
        db.session.query(
            CartItem.product_id,
            Product.name,
            Product.category,
            func.sum(CartItem.quantity).label("units"),
            func.sum(line_total).label("sales_cents"),
        )
        .join(Transaction, CartItem.transaction_id == Transaction.id)
        .outerjoin(Product, Product.id == CartItem.product_id)
        .filter(
            Transaction.user_id == scope.user_id,
            Transaction.status == STATUS_COMPLETED,
        )
        .group_by(CartItem.product_id, Product.name, Product.category)
    )
    return _window(query, start_dt, end_dt).all()


def analytics_summary(
    scope: Scope,
    *,
    start: str | None = None,
    end: str | None = None,
    top_limit: int = 10,
) -> dict:
    try:
        start_dt, end_dt = parse_date_window(start, end)
    except DateWindowError as exc:
        raise ReportError(f"Invalid date range: {exc}", field=exc.field)

    base = db.session.query(Transaction).filter(Transaction.user_id == scope.user_id)
    base = _window(base, start_dt, end_dt)

    status_counts = dict(
        base.with_entities(Transaction.status, func.count(Transaction.id))
        .group_by(Transaction.status)
        .all()
    )

    completed = (
        base.filter(Transaction.status == STATUS_COMPLETED)
        .order_by(Transaction.created_at.asc(), Transaction.id.asc())
        .all()
    )

    total_sales = sum(tx.total_cents for tx in completed)
    count = len(completed)
    average = round_cents(Decimal(total_sales) / count) if count else 0

    daily: dict[str, dict] = {}
    hourly = [{"hour": f"{h:02d}:00", "count": 0} for h in range(24)]
    payment_methods: dict[str, int] = {}

    for tx in completed:
        day = tx.created_at.date().isoformat()
        bucket = daily.setdefault(day, {"date": day, "sales_cents": 0, "count": 0})
        bucket["sales_cents"] += tx.total_cents
        bucket["count"] += 1

        hourly[tx.created_at.hour]["count"] += 1

        method = tx.payment_method or "Unknown"
        payment_methods[method] = payment_methods.get(method, 0) + 1

    rows = _line_totals(scope, start_dt, end_dt)

    top_products = sorted(
        (
            {
                "product_id": product_id,
                "name": name or f"Product #{product_id}",
                "quantity": int(units),
                "sales_cents": int(sales),
            }
            for product_id, name, _category, units, sales in rows
        ),
        key=lambda p: (-p["quantity"], -p["sales_cents"], p["product_id"]),
    )[:top_limit]

    categories: dict[str, int] = {}
    for _product_id, _name, category, _units, sales in rows:
        label = category or UNCATEGORIZED
        categories[label] = categories.get(label, 0) + int(sales)

    return {
        "start": start,
        "end": end,
        "total_sales_cents": total_sales,
        "transaction_count": count,
        "average_sale_cents": average,
        "daily_sales": [daily[k] for k in sorted(daily)],
        "hourly_distribution": hourly,
        "top_products": top_products,
        "category_sales": [
            {"category": name, "sales_cents": cents}
            for name, cents in sorted(categories.items(), key=lambda kv: (-kv[1], kv[0]))
        ],
        "payment_methods": [
            {"method": name, "count": n}
            for name, n in sorted(payment_methods.items(), key=lambda kv: (-kv[1], kv[0]))
        ],
        "status_counts": status_counts,
    }
