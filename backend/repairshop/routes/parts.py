# Overview: Flask API routes for the parts catalog; parses input and returns JSON responses.

# backend/repairshop/routes/parts.py
"""
Parts catalog routes.

Payload keys are camelCase; modelIds (list of device model ids) is handled
outside the column policy and replaces the part's compatibility links.
"""
from flask import Blueprint, request, current_app

from ..models import Part
from ..services import parts_service
from ..services.inventory_service import PartNotFoundError
from ..services.parts_service import PartInUseError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_part,
    parse_id_list,
    ValidationError,
    ConflictError,
)

PART_POLICY = ModelValidationPolicy(
    writable_fields={"sku", "name", "description", "realCost", "sellingPrice", "stock", "lowStockThreshold"},
    required_on_create={"sku", "name", "realCost", "sellingPrice"},
    aliases={
        "realCost": "real_cost_cents",
        "sellingPrice": "selling_price_cents",
        "lowStockThreshold": "low_stock_threshold",
    },
    money_fields={"realCost", "sellingPrice"},
)

parts_bp = Blueprint("parts", __name__, url_prefix="/api/parts")


def _split_payload(payload: dict, *, partial: bool) -> tuple[dict, list[int] | None]:
    payload = dict(payload)
    raw_ids = payload.pop("modelIds", None)
    model_ids = parse_id_list(raw_ids, "modelIds") if raw_ids is not None else None

    patch = validate_payload(model=Part, payload=payload, policy=PART_POLICY, partial=partial)
    enforce_rules_part(patch)
    return patch, model_ids


@parts_bp.get("")
def list_parts_route():
    """
    Query params:
    - page, limit: pagination (limit max 100)
    - q: substring of name, description or SKU
    - platform, brand, family, model: hierarchy slugs
    - lowStock: "true" to keep only parts at or below their threshold
    """
    try:
        result = parts_service.list_parts(
            page=request.args.get("page", default=1, type=int),
            limit=request.args.get("limit", default=20, type=int),
            q=(request.args.get("q") or "").strip() or None,
            platform=request.args.get("platform") or None,
            brand=request.args.get("brand") or None,
            family=request.args.get("family") or None,
            model=request.args.get("model") or None,
            low_stock=request.args.get("lowStock", "false").lower() == "true",
        )
        return result, 200
    except Exception:
        current_app.logger.exception("Failed to list parts")
        return {"error": "Internal server error"}, 500


@parts_bp.post("")
def create_part_route():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return {"error": "Invalid JSON payload"}, 400

    try:
        patch, model_ids = _split_payload(payload, partial=False)
        part = parts_service.create_part(patch=patch, model_ids=model_ids)
        return {"part": part.to_dict(include_models=True)}, 201
    except ValidationError as e:
        return e.to_dict(), 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to create part")
        return {"error": "Internal server error"}, 500


@parts_bp.get("/<int:part_id>")
def get_part_route(part_id: int):
    try:
        return {"part": parts_service.get_part_detail(part_id)}, 200
    except PartNotFoundError:
        return {"error": "Part not found"}, 404
    except Exception:
        current_app.logger.exception("Failed to load part")
        return {"error": "Internal server error"}, 500


@parts_bp.put("/<int:part_id>")
def update_part_route(part_id: int):
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return {"error": "Invalid JSON payload"}, 400

    try:
        patch, model_ids = _split_payload(payload, partial=True)
        part = parts_service.update_part(part_id=part_id, patch=patch, model_ids=model_ids)
        return {"part": part.to_dict(include_models=True)}, 200
    except ValidationError as e:
        return e.to_dict(), 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except PartNotFoundError:
        return {"error": "Part not found"}, 404
    except Exception:
        current_app.logger.exception("Failed to update part")
        return {"error": "Internal server error"}, 500


@parts_bp.delete("/<int:part_id>")
def delete_part_route(part_id: int):
    """
    Delete a part that has never been sold.

    400 with details.saleCount when sales still reference it.
    """
    try:
        parts_service.delete_part(part_id=part_id)
        return {"message": "Part deleted successfully"}, 200
    except PartNotFoundError:
        return {"error": "Part not found"}, 404
    except PartInUseError as e:
        return {"error": str(e), "details": e.details}, 400
    except Exception:
        current_app.logger.exception("Failed to delete part")
        return {"error": "Internal server error"}, 500
