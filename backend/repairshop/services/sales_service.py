"""
Sales Service - point-of-sale recording and reversal

WHY: A sale touches three tables at once (sales/sale_items, parts.stock,
transactions). Each public operation here is one unit of work: it either
lands completely or rolls back completely.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import or_

from ..extensions import db
from ..models import Sale, SaleItem, Part, StockTransaction
from repairshop.money import from_cents
from repairshop.time_utils import end_of_day
from .inventory_service import (
    InsufficientStockError,
    apply_stock_change,
    get_part,
)
from .concurrency import run_with_retry


class SaleError(Exception):
    """Raised for sale operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class SaleNotFoundError(SaleError):
    """Sale does not exist (404)."""


def _requested_per_part(items: list[dict]) -> dict[int, int]:
    # Two lines for the same part must be checked against stock together
    totals: dict[int, int] = {}
    for item in items:
        totals[item["part_id"]] = totals.get(item["part_id"], 0) + item["quantity"]
    return totals


def _validate_stock(items: list[dict], *, lock: bool = False) -> dict[int, Part]:
    """
    Check every referenced part exists and has enough stock.

    Raises PartNotFoundError / InsufficientStockError for the first failing
    part, before any mutation.
    """
    parts: dict[int, Part] = {}
    for part_id, requested in _requested_per_part(items).items():
        part = get_part(part_id, lock=lock)
        if part.stock < requested:
            raise InsufficientStockError(
                f"Insufficient stock for {part.name}. Available: {part.stock}, Requested: {requested}",
                details={
                    "partId": part.id,
                    "partName": part.name,
                    "currentStock": part.stock,
                    "requested": requested,
                },
            )
        parts[part_id] = part
    return parts


def compute_totals(items: list[dict], discount_cents: int) -> tuple[int, int]:
    """Return (total_amount_cents, final_amount_cents) for validated line items."""
    total_cents = sum(item["total_price_cents"] for item in items)
    if discount_cents > total_cents:
        raise SaleError(
            "Discount cannot exceed the sale total",
            details={"totalAmount": from_cents(total_cents), "discount": from_cents(discount_cents)},
        )
    return total_cents, total_cents - discount_cents


def create_sale(
    *,
    items: list[dict],
    payment_method: str,
    discount_cents: int = 0,
    customer_name: str | None = None,
    customer_phone: str | None = None,
    customer_email: str | None = None,
    notes: str | None = None,
) -> Sale:
    """
    Record a completed sale.

    items: [{"part_id", "quantity", "unit_price_cents", "total_price_cents"}], non-empty.
    All amounts are integer cents.

    Steps (single unit of work):
    1. pre-validate parts and stock (no writes yet)
    2. insert Sale + SaleItems
    3. per line: decrement stock and append a SALE ledger row tied to the sale
    """
    if not items:
        raise SaleError("At least one item is required")

    discount_cents = discount_cents or 0
    total_cents, final_cents = compute_totals(items, discount_cents)

    # Fail fast outside the write transaction
    _validate_stock(items)

    def _op():
        # Re-read under lock; stock may have moved since the pre-check
        parts = _validate_stock(items, lock=True)

        sale = Sale(
            customer_name=customer_name,
            customer_phone=customer_phone,
            customer_email=customer_email or None,
            total_amount_cents=total_cents,
            discount_cents=discount_cents,
            final_amount_cents=final_cents,
            payment_method=payment_method,
            status="COMPLETED",
            notes=notes,
        )
        for item in items:
            sale.items.append(SaleItem(
                part_id=item["part_id"],
                quantity=item["quantity"],
                unit_price_cents=item["unit_price_cents"],
                total_price_cents=item["total_price_cents"],
            ))

        db.session.add(sale)
        db.session.flush()

        for item in items:
            apply_stock_change(
                parts[item["part_id"]],
                tx_type="SALE",
                quantity=item["quantity"],
                reason=f"Sale #{sale.id}",
                sale_id=sale.id,
            )

        db.session.commit()
        return sale

    return run_with_retry(_op)


def delete_sale(sale_id: int) -> None:
    """
    Reverse a sale: restore stock, drop its ledger rows, delete it.

    Single unit of work; sale items go with the sale (delete-orphan cascade).
    """
    def _op():
        sale = db.session.query(Sale).filter_by(id=sale_id).first()
        if sale is None:
            raise SaleNotFoundError("Sale not found", details={"saleId": sale_id})

        for item in sale.items:
            part = get_part(item.part_id, lock=True)
            part.stock = part.stock + item.quantity

        db.session.query(StockTransaction).filter(
            StockTransaction.sale_id == sale.id
        ).delete()

        db.session.delete(sale)
        db.session.commit()

    run_with_retry(_op)


def get_sale(sale_id: int) -> Sale:
    sale = db.session.query(Sale).filter_by(id=sale_id).first()
    if sale is None:
        raise SaleNotFoundError("Sale not found", details={"saleId": sale_id})
    return sale


def list_sales(
    *,
    page: int = 1,
    limit: int = 20,
    q: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    status: str | None = None,
    payment_method: str | None = None,
    min_amount_cents: int | None = None,
    max_amount_cents: int | None = None,
) -> dict:
    """
    Paginated sale history, newest first.

    q matches customer fields, notes, the sale id, and name/SKU/description
    of any part on the sale. end_date is inclusive through end of day.
    Amount bounds apply to the final amount, in cents.
    """
    limit = min(max(limit or 20, 1), 100)
    page = max(page or 1, 1)

    query = db.session.query(Sale)

    if q:
        like = f"%{q}%"
        part_match = Sale.items.any(
            SaleItem.part.has(
                or_(Part.name.ilike(like), Part.sku.ilike(like), Part.description.ilike(like))
            )
        )
        clauses = [
            Sale.customer_name.ilike(like),
            Sale.customer_phone.ilike(like),
            Sale.customer_email.ilike(like),
            Sale.notes.ilike(like),
            part_match,
        ]
        if q.strip().isdigit():
            clauses.append(Sale.id == int(q.strip()))
        query = query.filter(or_(*clauses))

    if start_date is not None:
        query = query.filter(Sale.created_at >= start_date)
    if end_date is not None:
        query = query.filter(Sale.created_at <= end_of_day(end_date))
    if status:
        query = query.filter(Sale.status == status)
    if payment_method:
        query = query.filter(Sale.payment_method == payment_method)
    if min_amount_cents is not None:
        query = query.filter(Sale.final_amount_cents >= min_amount_cents)
    if max_amount_cents is not None:
        query = query.filter(Sale.final_amount_cents <= max_amount_cents)

    total = query.count()
    sales = (
        query.order_by(Sale.created_at.desc(), Sale.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return {
        "sales": [s.to_dict() for s in sales],
        "pagination": {
            "page": page,
            "limit": limit,
            "totalCount": total,
            "totalPages": (total + limit - 1) // limit,
        },
    }
