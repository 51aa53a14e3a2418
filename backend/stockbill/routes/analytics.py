# Overview: Flask API routes for analytics reports; read-only aggregates for the current owner.

from flask import Blueprint, jsonify, request, g, current_app

from ..decorators import require_auth
from ..services import analytics_service


analytics_bp = Blueprint("analytics", __name__, url_prefix="/api/analytics")


@analytics_bp.get("/enhanced")
@require_auth
def enhanced_analytics():
    period = request.args.get("period", analytics_service.DEFAULT_PERIOD)

    try:
        report = analytics_service.enhanced_analytics(g.current_user.id, period)
        return jsonify(report), 200
    except Exception:
        current_app.logger.exception("Enhanced analytics failed")
        return jsonify({"error": "Failed to fetch analytics"}), 500
