# Overview: Read-only Flask API routes for the device hierarchy.

from flask import Blueprint, request, jsonify, current_app

from ..services import hierarchy_service


hierarchy_bp = Blueprint("hierarchy", __name__, url_prefix="/api/hierarchy")


@hierarchy_bp.get("/platforms")
def list_platforms_route():
    """Every platform with its brands, families and models nested."""
    try:
        return jsonify({"platforms": hierarchy_service.get_hierarchy_tree()}), 200
    except Exception:
        current_app.logger.exception("Failed to load hierarchy")
        return jsonify({"error": "Internal server error"}), 500


@hierarchy_bp.get("/brands")
def list_brands_route():
    """Optional platformId narrows to one platform."""
    try:
        brands = hierarchy_service.list_brands(request.args.get("platformId", type=int))
        return jsonify({"brands": brands}), 200
    except Exception:
        current_app.logger.exception("Failed to list brands")
        return jsonify({"error": "Internal server error"}), 500
