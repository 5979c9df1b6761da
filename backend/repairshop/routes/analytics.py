# Overview: Flask API routes for dashboard and inventory analytics; parses input and returns JSON responses.

from flask import Blueprint, jsonify, current_app

from ..services import analytics_service


analytics_bp = Blueprint("analytics", __name__, url_prefix="/api")


@analytics_bp.get("/dashboard")
def dashboard_route():
    """Headline stats plus low-stock alerts, latest sales and latest ledger entries."""
    try:
        limit = current_app.config.get("LOW_STOCK_ALERT_LIMIT", 10)
        return jsonify({
            "stats": analytics_service.dashboard_stats(),
            "lowStockParts": analytics_service.low_stock_parts(limit),
            "recentSales": analytics_service.recent_sales(5),
            "recentTransactions": analytics_service.recent_transactions(5),
        }), 200
    except Exception:
        current_app.logger.exception("Failed to build dashboard")
        return jsonify({"error": "Internal server error"}), 500


@analytics_bp.get("/analytics/inventory")
def inventory_analytics_route():
    try:
        return jsonify(analytics_service.inventory_analytics()), 200
    except Exception:
        current_app.logger.exception("Failed to compute inventory analytics")
        return jsonify({"error": "Internal server error"}), 500
