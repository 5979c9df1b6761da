# Overview: Flask API routes for the stock ledger; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from ..models import StockTransaction
from ..services import inventory_service
from ..services.inventory_service import InventoryError, PartNotFoundError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_transaction,
    ValidationError,
)

TRANSACTION_POLICY = ModelValidationPolicy(
    writable_fields={"partId", "type", "quantity", "reason"},
    required_on_create={"partId", "type", "quantity"},
    aliases={"partId": "part_id"},
)

transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


@transactions_bp.get("")
def list_transactions_route():
    """
    Query params:
    - page, limit: pagination (limit max 100)
    - partId: only entries for this part
    - type: IN | OUT | ADJUST | SALE
    """
    try:
        result = inventory_service.list_transactions(
            page=request.args.get("page", default=1, type=int),
            limit=request.args.get("limit", default=20, type=int),
            part_id=request.args.get("partId", type=int),
            tx_type=request.args.get("type") or None,
        )
        return jsonify(result), 200
    except Exception:
        current_app.logger.exception("Failed to list transactions")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.post("")
def create_transaction_route():
    """
    Record a manual stock movement.

    IN/OUT apply the magnitude of quantity; ADJUST takes a signed delta.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=StockTransaction, payload=payload, policy=TRANSACTION_POLICY, partial=False
        )
        enforce_rules_transaction(patch)
    except ValidationError as e:
        return e.to_dict(), 400

    try:
        tx, part = inventory_service.create_transaction(
            part_id=patch["part_id"],
            tx_type=patch["type"],
            quantity=patch["quantity"],
            reason=patch.get("reason") or None,
        )
        return jsonify({"transaction": tx.to_dict(), "part": part.to_dict()}), 201

    except PartNotFoundError as e:
        return jsonify({"error": "Part not found", "details": e.details}), 404
    except InventoryError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to create transaction")
        return jsonify({"error": "Internal server error"}), 500
