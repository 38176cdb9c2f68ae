# Overview: Dashboard KPIs derived from the sale ledger and stock quantities.

from __future__ import annotations

from datetime import date

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import ProductVariant, Sale
from ..time_utils import day_bounds, month_bounds, utcnow
from .repository import not_deleted


def _net_sales_cents(start, end) -> int:
    total = db.session.query(
        func.coalesce(func.sum(Sale.total_cents), 0)
    ).filter(
        not_deleted(Sale),
        Sale.created_at >= start,
        Sale.created_at < end,
    ).scalar()
    return int(total or 0)


def dashboard_kpis(today: date | None = None) -> dict:
    """
    Headline numbers for the dashboard.

    Sales totals are net: returns and exchanges carry negative totals and
    reduce them.
    """
    today = today or utcnow().date()
    day_start, day_end = day_bounds(today)
    month_start, month_end = month_bounds(today)

    transactions_today = db.session.query(func.count(Sale.id)).filter(
        not_deleted(Sale),
        Sale.created_at >= day_start,
        Sale.created_at < day_end,
    ).scalar() or 0

    units_in_stock = db.session.query(
        func.coalesce(func.sum(ProductVariant.store_quantity + ProductVariant.warehouse_quantity), 0)
    ).filter(not_deleted(ProductVariant)).scalar() or 0

    threshold = current_app.config.get("LOW_STOCK_THRESHOLD", 3)
    low_stock = db.session.query(ProductVariant).filter(
        not_deleted(ProductVariant),
        (ProductVariant.store_quantity + ProductVariant.warehouse_quantity) < threshold,
    ).order_by(ProductVariant.reference.asc()).all()

    return {
        "date": today.isoformat(),
        "sales_month_cents": _net_sales_cents(month_start, month_end),
        "sales_today_cents": _net_sales_cents(day_start, day_end),
        "transactions_today": int(transactions_today),
        "units_in_stock": int(units_in_stock),
        "low_stock_threshold": threshold,
        "low_stock_variants": [
            {
                "variant_id": variant.id,
                "reference": variant.reference,
                "store_quantity": variant.store_quantity,
                "warehouse_quantity": variant.warehouse_quantity,
            }
            for variant in low_stock
        ],
    }
