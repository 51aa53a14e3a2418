# Overview: Flask API routes for subscription status of the current user.

from flask import Blueprint, jsonify, g, current_app

from ..decorators import require_auth
from ..services import subscription_service


subscription_bp = Blueprint("subscription", __name__, url_prefix="/api/subscription")


@subscription_bp.get("/status")
@require_auth
def subscription_status():
    try:
        return jsonify(subscription_service.subscription_status(g.current_user)), 200
    except Exception:
        current_app.logger.exception("Failed to check subscription status")
        return jsonify({"error": "An error occurred while checking subscription status"}), 500
