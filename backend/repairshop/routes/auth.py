# Overview: Flask API routes for the shop access PIN; parses input and returns JSON responses.

# backend/repairshop/routes/auth.py
"""
PIN routes.

- GET  /api/auth/pin     whether a PIN is stored and whether it is locked
- POST /api/auth/pin     set the first PIN or change it (currentPin required)
- POST /api/auth/verify  check a PIN

Verification only answers yes or no; no session or token is issued.
"""
from flask import Blueprint, request, jsonify, current_app

from ..services import pin_service
from ..services.pin_service import InvalidPinError, PinFormatError, PinLockedError


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.get("/pin")
def pin_status_route():
    return jsonify(pin_service.pin_status()), 200


@auth_bp.post("/pin")
def set_pin_route():
    data = request.get_json(silent=True) or {}

    try:
        _, replaced = pin_service.set_pin(data.get("pin"), current_pin=data.get("currentPin"))
        message = "PIN updated successfully" if replaced else "PIN created successfully"
        return jsonify({"success": True, "message": message}), 200

    except PinFormatError as e:
        return jsonify({"error": str(e)}), 400
    except PinLockedError as e:
        return jsonify({"error": str(e), "details": e.details}), 423
    except InvalidPinError as e:
        return jsonify({"error": str(e), "details": e.details}), 401
    except Exception:
        current_app.logger.exception("Failed to set PIN")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/verify")
def verify_pin_route():
    data = request.get_json(silent=True) or {}

    try:
        pin_service.verify_pin(data.get("pin"))
        return jsonify({"success": True}), 200

    except PinFormatError as e:
        return jsonify({"error": str(e)}), 400
    except PinLockedError as e:
        return jsonify({"error": str(e), "details": e.details}), 423
    except InvalidPinError as e:
        return jsonify({"error": str(e), "details": e.details}), 401
    except Exception:
        current_app.logger.exception("Failed to verify PIN")
        return jsonify({"error": "Internal server error"}), 500
