# Overview: Flask API routes for the notification inbox; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import StockbillError
from ..services import notification_service
from ..validation import parse_id
from ..decorators import require_auth


notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


@notifications_bp.get("")
@require_auth
def list_notifications_route():
    """
    Query params:
    - limit: max rows (default 10)
    - unreadOnly: only unread notifications
    - countOnly: return {total, unread} instead of rows
    """
    try:
        user_id = g.current_user.id
        if request.args.get("countOnly", "false").lower() == "true":
            return jsonify(notification_service.notification_counts(user_id)), 200

        notifications = notification_service.list_notifications(
            user_id,
            limit=request.args.get("limit", notification_service.DEFAULT_LIST_LIMIT, type=int),
            unread_only=request.args.get("unreadOnly", "false").lower() == "true",
        )
        return jsonify([n.to_dict() for n in notifications]), 200
    except Exception:
        current_app.logger.exception("Failed to fetch notifications")
        return jsonify({"error": "An error occurred while fetching notifications"}), 500


@notifications_bp.put("/<notification_id>")
@require_auth
def mark_read_route(notification_id):
    try:
        notification = notification_service.mark_read(
            g.current_user.id, parse_id(notification_id, "notificationId")
        )
        return jsonify({"message": "Notification marked as read", "notification": notification.to_dict()}), 200

    except StockbillError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update notification")
        return jsonify({"error": "An error occurred while updating the notification"}), 500


@notifications_bp.delete("/<notification_id>")
@require_auth
def delete_notification_route(notification_id):
    try:
        notification_service.delete_notification(
            g.current_user.id, parse_id(notification_id, "notificationId")
        )
        return jsonify({"message": "Notification deleted"}), 200

    except StockbillError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete notification")
        return jsonify({"error": "An error occurred while deleting the notification"}), 500


@notifications_bp.post("/mark-all-read")
@require_auth
def mark_all_read_route():
    try:
        updated = notification_service.mark_all_read(g.current_user.id)
        return jsonify({"message": "All notifications marked as read", "updated": updated}), 200
    except Exception:
        current_app.logger.exception("Failed to mark notifications read")
        return jsonify({"error": "An error occurred while updating notifications"}), 500
