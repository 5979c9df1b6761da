# backend/repairshop/services/parts_service.py
"""
Parts Service

Catalog maintenance for parts. Stock is never written directly here without
a matching ledger row:
- create_part records the opening stock as an IN entry
- update_part records a direct stock edit as an ADJUST entry for the delta
- delete_part refuses parts that have ever been sold
"""
from __future__ import annotations

from sqlalchemy import and_, func, or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Part, PartModel, DeviceModel, Family, Brand, Platform, SaleItem, StockTransaction
from ..validation import ConflictError, ValidationError
from .inventory_service import PartNotFoundError, apply_stock_change, get_part
from .concurrency import lock_for_update, run_with_retry

PART_MUTABLE_FIELDS = {"sku", "name", "description", "real_cost_cents", "selling_price_cents", "low_stock_threshold"}


class PartInUseError(ValueError):
    """400-level referential integrity problem: the part has sale history."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def apply_part_patch(p: Part, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PART_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _ensure_sku_available(sku: str, exclude_part_id: int | None = None) -> None:
    query = db.session.query(Part.id).filter(Part.sku == sku)
    if exclude_part_id is not None:
        query = query.filter(Part.id != exclude_part_id)
    if query.first() is not None:
        raise ConflictError(f"SKU already exists: {sku}")


def _load_models(model_ids: list[int]) -> list[DeviceModel]:
    if not model_ids:
        return []
    models = db.session.query(DeviceModel).filter(DeviceModel.id.in_(model_ids)).all()
    found = {m.id for m in models}
    missing = [mid for mid in model_ids if mid not in found]
    if missing:
        raise ValidationError(f"Unknown device model ids: {', '.join(str(m) for m in missing)}", "modelIds")
    return models


def _replace_model_links(part: Part, models: list[DeviceModel]) -> None:
    # Keep surviving link rows; the unit of work inserts before it deletes
    existing = {link.model_id: link for link in part.models}
    part.models = [existing.get(m.id) or PartModel(model_id=m.id) for m in models]


def create_part(*, patch: dict, model_ids: list[int] | None = None) -> Part:
    """
    Create a part using a validated patch dict.

    Opening stock is written through the ledger so the part's ledger balance
    equals its stock from the first moment.
    """
    _ensure_sku_available(patch["sku"])
    models = _load_models(model_ids or [])

    def _op():
        p = Part(stock=0)
        apply_part_patch(p, patch)
        _replace_model_links(p, models)

        db.session.add(p)
        db.session.flush()  # ensure p.id exists before the ledger append

        opening = patch.get("stock") or 0
        if opening > 0:
            apply_stock_change(p, tx_type="IN", quantity=opening, reason="Initial stock")

        db.session.commit()
        return p

    try:
        return run_with_retry(_op)
    except IntegrityError:
        # Lost a race on the unique SKU
        raise ConflictError(f"SKU already exists: {patch['sku']}")


def update_part(*, part_id: int, patch: dict, model_ids: list[int] | None = None) -> Part:
    """
    Apply a validated patch; model_ids (when not None) replaces the link set.

    A changed stock value is recorded as an ADJUST ledger entry.
    """
    if "sku" in patch:
        _ensure_sku_available(patch["sku"], exclude_part_id=part_id)
    models = _load_models(model_ids) if model_ids is not None else None

    def _op():
        p = get_part(part_id, lock=True)
        apply_part_patch(p, patch)

        if "stock" in patch and patch["stock"] != p.stock:
            apply_stock_change(
                p,
                tx_type="ADJUST",
                quantity=patch["stock"] - p.stock,
                reason="Stock edited in catalog",
            )

        if models is not None:
            _replace_model_links(p, models)

        db.session.commit()
        return p

    try:
        return run_with_retry(_op)
    except IntegrityError:
        raise ConflictError(f"SKU already exists: {patch.get('sku')}")


def count_blocking_sales(part_id: int) -> int:
    """Number of distinct sales that include this part."""
    return int(
        db.session.query(func.count(func.distinct(SaleItem.sale_id)))
        .filter(SaleItem.part_id == part_id)
        .scalar()
        or 0
    )


def delete_part(*, part_id: int) -> None:
    """
    Delete a part that has never been sold.

    Its model links and manual ledger rows go with it. Parts with sale
    history are refused with PartInUseError; a foreign-key violation from
    the database is reported the same way.
    """
    def _op():
        part = lock_for_update(db.session.query(Part).filter_by(id=part_id)).first()
        if part is None:
            raise PartNotFoundError("Part not found", details={"partId": part_id})

        sale_count = count_blocking_sales(part_id)
        if sale_count > 0:
            plural = "sale" if sale_count == 1 else "sales"
            raise PartInUseError(
                f"Cannot delete part: it appears in {sale_count} {plural}. "
                "Delete those sales first.",
                details={"partId": part_id, "saleCount": sale_count},
            )

        db.session.delete(part)
        db.session.commit()

    try:
        run_with_retry(_op)
    except IntegrityError as e:
        raise PartInUseError(
            "Cannot delete part: it is still referenced by other records.",
            details={"partId": part_id, "constraint": str(e.orig)},
        )


def get_part_detail(part_id: int) -> dict:
    """Part with its model paths, 10 latest ledger entries and ledger count."""
    part = get_part(part_id)

    recent = (
        db.session.query(StockTransaction)
        .filter(StockTransaction.part_id == part_id)
        .order_by(StockTransaction.created_at.desc(), StockTransaction.id.desc())
        .limit(10)
        .all()
    )
    tx_count = db.session.query(StockTransaction).filter(StockTransaction.part_id == part_id).count()

    data = part.to_dict(include_models=True)
    data["transactions"] = [tx.to_dict(include_part=False) for tx in recent]
    data["transactionCount"] = tx_count
    return data


def _hierarchy_filter(*, platform: str | None, brand: str | None, family: str | None, model: str | None):
    conditions = []
    if model:
        conditions.append(DeviceModel.slug == model)
    if family:
        conditions.append(DeviceModel.family.has(Family.slug == family))
    if brand:
        conditions.append(DeviceModel.family.has(Family.brand.has(Brand.slug == brand)))
    if platform:
        conditions.append(
            DeviceModel.family.has(Family.brand.has(Brand.platform.has(Platform.slug == platform)))
        )
    return Part.models.any(PartModel.model.has(and_(*conditions)))


def list_parts(
    *,
    page: int = 1,
    limit: int = 20,
    q: str | None = None,
    platform: str | None = None,
    brand: str | None = None,
    family: str | None = None,
    model: str | None = None,
    low_stock: bool = False,
) -> dict:
    """
    Paginated catalog listing, most recently updated first.

    q matches name, description and SKU (case-insensitive). Hierarchy filters
    take slugs; a part matches if any linked model satisfies all of them.
    """
    limit = min(max(limit or 20, 1), 100)
    page = max(page or 1, 1)

    query = db.session.query(Part)

    if q:
        like = f"%{q}%"
        query = query.filter(or_(Part.name.ilike(like), Part.description.ilike(like), Part.sku.ilike(like)))

    if platform or brand or family or model:
        query = query.filter(_hierarchy_filter(platform=platform, brand=brand, family=family, model=model))

    if low_stock:
        query = query.filter(Part.stock <= Part.low_stock_threshold)

    total = query.count()
    parts = (
        query.order_by(Part.updated_at.desc(), Part.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return {
        "parts": [p.to_dict(include_models=True) for p in parts],
        "pagination": {
            "page": page,
            "limit": limit,
            "totalCount": total,
            "totalPages": (total + limit - 1) // limit,
        },
    }
