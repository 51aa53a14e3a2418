# Overview: Flask API route for the dashboard summary of the current owner.

from flask import Blueprint, jsonify, g, current_app

from ..decorators import require_auth
from ..services import analytics_service


dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("")
@require_auth
def dashboard_route():
    """
    Six-month paid revenue trend, total income, unpaid invoice count,
    low-stock items and revenue by category.
    """
    try:
        return jsonify(analytics_service.dashboard(g.current_user.id)), 200
    except Exception:
        current_app.logger.exception("Dashboard summary failed")
        return jsonify({"error": "An error occurred while fetching dashboard stats"}), 500
