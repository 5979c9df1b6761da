# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/repairshop/routes/sales.py
"""Sales API routes: record, browse, reverse, and period analytics"""

from flask import Blueprint, request, jsonify, current_app

from ..models import Sale, SaleItem
from ..services import sales_service, analytics_service
from ..services.analytics_service import AnalyticsError
from ..services.inventory_service import InventoryError, PartNotFoundError
from ..services.sales_service import SaleError, SaleNotFoundError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_sale,
    enforce_rules_sale_item,
    ValidationError,
)
from repairshop.money import to_cents
from repairshop.time_utils import parse_iso_datetime

SALE_POLICY = ModelValidationPolicy(
    writable_fields={"customerName", "customerPhone", "customerEmail", "paymentMethod", "discount", "notes"},
    required_on_create={"paymentMethod"},
    aliases={
        "customerName": "customer_name",
        "customerPhone": "customer_phone",
        "customerEmail": "customer_email",
        "paymentMethod": "payment_method",
        "discount": "discount_cents",
    },
    money_fields={"discount"},
)

SALE_ITEM_POLICY = ModelValidationPolicy(
    writable_fields={"partId", "quantity", "unitPrice", "totalPrice"},
    required_on_create={"partId", "quantity", "unitPrice", "totalPrice"},
    aliases={
        "partId": "part_id",
        "unitPrice": "unit_price_cents",
        "totalPrice": "total_price_cents",
    },
    money_fields={"unitPrice", "totalPrice"},
)


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _parse_sale_payload(payload: dict) -> tuple[dict, list[dict]]:
    payload = dict(payload)
    raw_items = payload.pop("items", None)

    patch = validate_payload(model=Sale, payload=payload, policy=SALE_POLICY, partial=False)
    enforce_rules_sale(patch)

    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("At least one item is required", "items")

    items = []
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object", f"items[{index}]")
        item = validate_payload(model=SaleItem, payload=raw, policy=SALE_ITEM_POLICY, partial=False)
        enforce_rules_sale_item(item, index)
        items.append(item)

    return patch, items


def _amount_arg(name: str) -> int | None:
    raw = (request.args.get(name) or "").strip()
    return to_cents(raw) if raw else None


@sales_bp.post("")
def create_sale_route():
    """
    Record a completed sale.

    Body: {paymentMethod, discount?, customerName?, customerPhone?,
           customerEmail?, notes?, items: [{partId, quantity, unitPrice, totalPrice}]}
    """
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400

    try:
        patch, items = _parse_sale_payload(payload)
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    try:
        sale = sales_service.create_sale(
            items=items,
            payment_method=patch["payment_method"],
            discount_cents=patch.get("discount_cents") or 0,
            customer_name=patch.get("customer_name") or None,
            customer_phone=patch.get("customer_phone") or None,
            customer_email=patch.get("customer_email"),
            notes=patch.get("notes") or None,
        )
        return jsonify({"sale": sale.to_dict()}), 201

    except PartNotFoundError as e:
        return jsonify({"error": "Part not found", "details": e.details}), 404
    except InventoryError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except SaleError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
def list_sales_route():
    """
    Query params:
    - page, limit: pagination (limit max 100)
    - q: customer fields, notes, sale id, or sold part name/SKU
    - startDate, endDate: ISO dates; endDate covers the whole day
    - status, paymentMethod
    - minAmount, maxAmount: bounds on finalAmount
    """
    try:
        start_date = parse_iso_datetime(request.args.get("startDate"))
        end_date = parse_iso_datetime(request.args.get("endDate"))
    except ValueError:
        return jsonify({"error": "startDate and endDate must be ISO-8601 dates"}), 400

    try:
        min_amount = _amount_arg("minAmount")
        max_amount = _amount_arg("maxAmount")
    except ValueError:
        return jsonify({"error": "minAmount and maxAmount must be numbers"}), 400

    try:
        result = sales_service.list_sales(
            page=request.args.get("page", default=1, type=int),
            limit=request.args.get("limit", default=20, type=int),
            q=(request.args.get("q") or "").strip() or None,
            start_date=start_date,
            end_date=end_date,
            status=request.args.get("status") or None,
            payment_method=request.args.get("paymentMethod") or None,
            min_amount_cents=min_amount,
            max_amount_cents=max_amount,
        )
        return jsonify(result), 200
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/analytics")
def sales_analytics_route():
    """period: day | week | month | year (default week)."""
    try:
        result = analytics_service.sales_analytics(request.args.get("period", "week"))
        return jsonify(result), 200
    except AnalyticsError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to compute sales analytics")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
        return jsonify({"sale": sale.to_dict()}), 200
    except SaleNotFoundError:
        return jsonify({"error": "Sale not found"}), 404
    except Exception:
        current_app.logger.exception("Failed to load sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.delete("/<int:sale_id>")
def delete_sale_route(sale_id: int):
    """
    Reverse a sale: stock goes back, its ledger entries and items are removed.
    """
    try:
        sales_service.delete_sale(sale_id)
        return jsonify({"message": "Sale deleted successfully"}), 200

    except SaleNotFoundError:
        return jsonify({"error": "Sale not found"}), 404
    except Exception:
        current_app.logger.exception("Failed to delete sale")
        return jsonify({"error": "Internal server error"}), 500
