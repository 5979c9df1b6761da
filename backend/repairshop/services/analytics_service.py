# Overview: Service-layer operations for dashboard and analytics figures; read-only aggregate queries.

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import func
from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import Part, Sale, SaleItem, StockTransaction
from repairshop.money import from_cents
from repairshop.time_utils import end_of_day, to_iso_date, to_utc_z, utcnow


PERIODS = ("day", "week", "month", "year")


class AnalyticsError(Exception):
    """Raised for bad analytics parameters."""
    pass


def _start_of_day(dt: datetime) -> datetime:
    return datetime(dt.year, dt.month, dt.day)


def period_bounds(period: str, now: datetime | None = None) -> tuple[datetime, datetime, datetime, datetime]:
    """
    (start, end, previous_start, previous_end) for the calendar period holding `now`.

    Weeks run Sunday through Saturday. Bounds are inclusive.
    """
    if period not in PERIODS:
        raise AnalyticsError(f"period must be one of {', '.join(PERIODS)}")
    now = now or utcnow()
    today = _start_of_day(now)

    if period == "day":
        start = today
        end = end_of_day(start)
        prev_start = start - timedelta(days=1)
        prev_end = end_of_day(prev_start)
    elif period == "week":
        start = today - timedelta(days=(today.weekday() + 1) % 7)
        end = end_of_day(start + timedelta(days=6))
        prev_start = start - timedelta(days=7)
        prev_end = end_of_day(prev_start + timedelta(days=6))
    elif period == "month":
        start = today.replace(day=1)
        next_month = (start + timedelta(days=32)).replace(day=1)
        end = end_of_day(next_month - timedelta(days=1))
        prev_end = end_of_day(start - timedelta(days=1))
        prev_start = _start_of_day(prev_end).replace(day=1)
    else:
        start = today.replace(month=1, day=1)
        end = end_of_day(start.replace(month=12, day=31))
        prev_start = start.replace(year=start.year - 1)
        prev_end = end_of_day(prev_start.replace(month=12, day=31))

    return start, end, prev_start, prev_end


def percent_change(current: float, previous: float) -> float:
    # No baseline counts as full growth
    if previous > 0:
        return round((current - previous) / previous * 100, 2)
    return 100.0


def _completed_between(start: datetime, end: datetime):
    return db.session.query(Sale).filter(
        Sale.status == "COMPLETED",
        Sale.created_at >= start,
        Sale.created_at <= end,
    )


def low_stock_parts(limit: int | None = None) -> list[dict]:
    query = (
        db.session.query(Part)
        .filter(Part.stock <= Part.low_stock_threshold)
        .order_by(Part.stock.asc(), Part.name.asc())
    )
    if limit:
        query = query.limit(limit)
    return [p.to_dict() for p in query.all()]


def recent_sales(limit: int = 5) -> list[dict]:
    sales = (
        db.session.query(Sale)
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .limit(limit)
        .all()
    )
    return [s.to_dict() for s in sales]


def recent_transactions(limit: int = 5) -> list[dict]:
    rows = (
        db.session.query(StockTransaction)
        .order_by(StockTransaction.created_at.desc(), StockTransaction.id.desc())
        .limit(limit)
        .all()
    )
    return [tx.to_dict() for tx in rows]


def dashboard_stats(now: datetime | None = None) -> dict:
    """Headline counters for the home screen."""
    now = now or utcnow()

    total_parts = db.session.query(func.count(Part.id)).scalar() or 0
    low_stock_count = (
        db.session.query(func.count(Part.id))
        .filter(Part.stock <= Part.low_stock_threshold)
        .scalar()
        or 0
    )
    inventory_value_cents = db.session.query(func.coalesce(func.sum(Part.selling_price_cents), 0)).scalar() or 0
    recent_tx = (
        db.session.query(func.count(StockTransaction.id))
        .filter(StockTransaction.created_at >= now - timedelta(days=7))
        .scalar()
        or 0
    )

    return {
        "totalParts": int(total_parts),
        "lowStockCount": int(low_stock_count),
        "inventoryValue": from_cents(inventory_value_cents),
        "recentTransactions": int(recent_tx),
    }


def transaction_activity(now: datetime | None = None) -> dict:
    now = now or utcnow()
    last_7 = now - timedelta(days=7)
    last_30 = now - timedelta(days=30)

    def _count(*criteria) -> int:
        return int(db.session.query(func.count(StockTransaction.id)).filter(*criteria).scalar() or 0)

    return {
        "weeklyTransactions": _count(StockTransaction.created_at >= last_7),
        "monthlyTransactions": _count(StockTransaction.created_at >= last_30),
        "weeklyIn": _count(StockTransaction.type == "IN", StockTransaction.created_at >= last_7),
        "weeklyOut": _count(StockTransaction.type.in_(("OUT", "SALE")), StockTransaction.created_at >= last_7),
        "totalTransactions": _count(),
    }


def inventory_analytics() -> dict:
    """
    Stock health and valuation across the whole catalog.

    healthScore starts at 100 and loses up to 100 points for the share of
    low-stock parts and up to 50 for the share of out-of-stock parts.
    """
    parts = db.session.query(Part).all()
    total = len(parts)

    low = sum(1 for p in parts if p.stock <= p.low_stock_threshold)
    out = sum(1 for p in parts if p.stock == 0)
    invested_cents = sum(p.real_cost_cents * p.stock for p in parts)
    potential_cents = sum(p.selling_price_cents * p.stock for p in parts)
    markups = [
        (p.selling_price_cents - p.real_cost_cents) / p.real_cost_cents * 100 if p.real_cost_cents > 0 else 0
        for p in parts
    ]

    if total:
        health = max(0.0, 100 - low / total * 100 - out / total * 50)
        average_stock = sum(p.stock for p in parts) / total
    else:
        health = 100.0
        average_stock = 0

    return {
        "totalParts": total,
        "lowStockCount": low,
        "outOfStockCount": out,
        "averageStock": round(average_stock, 2),
        "healthScore": round(health, 2),
        "totalSellingPrice": from_cents(sum(p.selling_price_cents for p in parts)),
        "stockValueAtCost": from_cents(invested_cents),
        "stockValueAtPrice": from_cents(potential_cents),
        "potentialProfit": from_cents(potential_cents - invested_cents),
        "profitMargin": (
            round((potential_cents - invested_cents) / potential_cents * 100, 2) if potential_cents > 0 else 0
        ),
        "averageMarkup": round(sum(markups) / total, 2) if total else 0,
        "activity": transaction_activity(),
    }


def sales_analytics(period: str = "week", now: datetime | None = None) -> dict:
    """
    Revenue, profit and volume for the current period against the previous one.

    Only COMPLETED sales are counted. Profit per line is its total price minus
    the part's current realCost times quantity. An unknown period means week.
    """
    if period not in PERIODS:
        period = "week"
    start, end, prev_start, prev_end = period_bounds(period, now)

    current = (
        _completed_between(start, end)
        .options(selectinload(Sale.items).selectinload(SaleItem.part))
        .all()
    )
    previous_revenue_cents, previous_count = (
        db.session.query(func.coalesce(func.sum(Sale.final_amount_cents), 0), func.count(Sale.id))
        .filter(
            Sale.status == "COMPLETED",
            Sale.created_at >= prev_start,
            Sale.created_at <= prev_end,
        )
        .one()
    )

    revenue_cents = sum(s.final_amount_cents for s in current)
    count = len(current)

    profit_cents = 0
    items_sold = 0
    by_part: dict[int, dict] = {}
    for sale in current:
        for item in sale.items:
            profit_cents += item.total_price_cents - item.part.real_cost_cents * item.quantity
            items_sold += item.quantity

            entry = by_part.setdefault(
                item.part_id,
                {"partId": item.part_id, "name": item.part.name, "quantity": 0, "revenue": 0},
            )
            entry["quantity"] += item.quantity
            entry["revenue"] += item.total_price_cents

    top_products = sorted(by_part.values(), key=lambda e: e["revenue"], reverse=True)[:10]
    for entry in top_products:
        entry["revenue"] = from_cents(entry["revenue"])

    day = func.date(Sale.created_at)
    daily_rows = (
        db.session.query(
            day.label("date"),
            func.count(Sale.id).label("count"),
            func.coalesce(func.sum(Sale.final_amount_cents), 0).label("revenue_cents"),
        )
        .filter(
            Sale.status == "COMPLETED",
            Sale.created_at >= start,
            Sale.created_at <= end,
        )
        .group_by(day)
        .order_by(day)
        .all()
    )

    return {
        "summary": {
            "revenue": from_cents(revenue_cents),
            "revenueChange": percent_change(revenue_cents, int(previous_revenue_cents or 0)),
            "salesCount": count,
            "salesCountChange": percent_change(count, int(previous_count or 0)),
            "profit": from_cents(profit_cents),
            "profitMargin": round(profit_cents / revenue_cents * 100, 2) if revenue_cents > 0 else 0,
            "averageSaleValue": round(revenue_cents / count / 100, 2) if count else 0,
            "itemsSold": items_sold,
        },
        "topProducts": top_products,
        "dailySales": [
            {
                "date": to_iso_date(row.date),
                "count": int(row.count or 0),
                "revenue": from_cents(row.revenue_cents or 0),
            }
            for row in daily_rows
        ],
        "period": {
            "name": period,
            "current": {"start": to_utc_z(start), "end": to_utc_z(end)},
            "previous": {"start": to_utc_z(prev_start), "end": to_utc_z(prev_end)},
        },
    }
