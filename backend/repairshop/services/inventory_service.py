# Overview: Service-layer operations for the stock ledger; encapsulates business logic and database work.

from __future__ import annotations

from sqlalchemy import case, func

from ..extensions import db
from ..models import Part, StockTransaction
from .concurrency import lock_for_update, run_with_retry
"""
Stock Ledger Invariants (authoritative)

Stock model:
- Part.stock is the quantity on hand; StockTransaction rows are the ledger.
- Every change to Part.stock appends exactly one ledger row in the same DB
  transaction, so SUM(signed effect) over a part's ledger == Part.stock.

Signed effect by type:
- IN      +quantity   (quantity stored as a positive magnitude)
- OUT     -quantity   (quantity stored as a positive magnitude)
- SALE    -quantity   (positive magnitude; row carries sale_id)
- ADJUST  quantity    (stored signed)

Business invariants:
- Part.stock may never go negative; offending operations are rejected whole.
- Ledger rows are never updated. SALE rows are deleted only by sale reversal.
"""


class InventoryError(Exception):
    """Raised for stock ledger errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class PartNotFoundError(InventoryError):
    """Referenced part does not exist (404)."""


class InsufficientStockError(InventoryError):
    """Operation would drive a part's stock below zero (400)."""


def signed_effect(tx_type: str, quantity: int) -> int:
    """Stock delta a ledger entry of this type and input quantity produces."""
    if tx_type == "IN":
        return abs(quantity)
    if tx_type in ("OUT", "SALE"):
        return -abs(quantity)
    if tx_type == "ADJUST":
        return quantity
    raise InventoryError(f"Unknown transaction type: {tx_type}")


def stored_quantity(tx_type: str, quantity: int) -> int:
    """Quantity as persisted: magnitude for IN/OUT/SALE, signed for ADJUST."""
    return quantity if tx_type == "ADJUST" else abs(quantity)


def get_part(part_id: int, *, lock: bool = False) -> Part:
    query = db.session.query(Part).filter_by(id=part_id)
    if lock:
        query = lock_for_update(query)
    part = query.first()
    if part is None:
        raise PartNotFoundError(f"Part not found: {part_id}", details={"partId": part_id})
    return part


def apply_stock_change(
    part: Part,
    *,
    tx_type: str,
    quantity: int,
    reason: str | None = None,
    sale_id: int | None = None,
) -> StockTransaction:
    """
    Append one ledger row and move part.stock by its signed effect.

    Does not commit; the caller owns the unit of work. Raises
    InsufficientStockError (before touching anything) if the result would be
    negative.
    """
    delta = signed_effect(tx_type, quantity)
    new_stock = part.stock + delta
    if new_stock < 0:
        raise InsufficientStockError(
            f"Cannot reduce stock below zero. Current stock: {part.stock}, requested change: {quantity}",
            details={
                "partId": part.id,
                "partName": part.name,
                "currentStock": part.stock,
                "requested": abs(quantity) if tx_type != "ADJUST" else quantity,
            },
        )

    tx = StockTransaction(
        type=tx_type,
        quantity=stored_quantity(tx_type, quantity),
        reason=reason,
        part_id=part.id,
        sale_id=sale_id,
    )
    part.stock = new_stock

    db.session.add(tx)
    db.session.flush()
    return tx


def create_transaction(
    *,
    part_id: int,
    tx_type: str,
    quantity: int,
    reason: str | None = None,
) -> tuple[StockTransaction, Part]:
    """
    Record a manual stock movement (IN, OUT or ADJUST).

    The part row is locked, the new stock computed and checked, and the
    ledger row + stock update committed together.
    """
    def _op():
        part = get_part(part_id, lock=True)
        tx = apply_stock_change(part, tx_type=tx_type, quantity=quantity, reason=reason)
        db.session.commit()
        return tx, part

    return run_with_retry(_op)


def list_transactions(
    *,
    page: int = 1,
    limit: int = 20,
    part_id: int | None = None,
    tx_type: str | None = None,
) -> dict:
    """Paginated ledger listing, newest first."""
    limit = min(max(limit or 20, 1), 100)
    page = max(page or 1, 1)

    query = db.session.query(StockTransaction)
    if part_id is not None:
        query = query.filter(StockTransaction.part_id == part_id)
    if tx_type:
        query = query.filter(StockTransaction.type == tx_type)

    total = query.count()
    rows = (
        query.order_by(StockTransaction.created_at.desc(), StockTransaction.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return {
        "transactions": [tx.to_dict() for tx in rows],
        "pagination": {
            "page": page,
            "limit": limit,
            "totalCount": total,
            "totalPages": (total + limit - 1) // limit,
        },
    }


def _signed_sum_expr():
    return func.coalesce(
        func.sum(
            case(
                (StockTransaction.type == "IN", func.abs(StockTransaction.quantity)),
                (StockTransaction.type.in_(["OUT", "SALE"]), -func.abs(StockTransaction.quantity)),
                else_=StockTransaction.quantity,
            )
        ),
        0,
    )


def get_ledger_balance(part_id: int) -> int:
    """Replay a part's ledger from zero."""
    value = (
        db.session.query(_signed_sum_expr())
        .filter(StockTransaction.part_id == part_id)
        .scalar()
    )
    return int(value or 0)


def find_ledger_mismatches() -> list[dict]:
    """Parts whose stored stock disagrees with their ledger balance."""
    balances = dict(
        db.session.query(StockTransaction.part_id, _signed_sum_expr())
        .group_by(StockTransaction.part_id)
        .all()
    )

    mismatches = []
    for part in db.session.query(Part).order_by(Part.id.asc()).all():
        balance = int(balances.get(part.id) or 0)
        if balance != part.stock:
            mismatches.append({
                "partId": part.id,
                "sku": part.sku,
                "stock": part.stock,
                "ledgerBalance": balance,
            })
    return mismatches
