# Overview: Flask API routes for admin oversight; cross-tenant reads and account management.

from flask import Blueprint, jsonify, request, g, current_app

from ..errors import StockbillError
from ..extensions import db
from ..models import Invoice, User
from ..services import user_service
from ..validation import parse_id, validate_user_edit
from ..decorators import require_auth, require_admin


admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.get("/users")
@require_auth
@require_admin
def list_users_route():
    try:
        users = db.session.query(User).order_by(User.id.asc()).all()
        return jsonify([user.to_dict() for user in users]), 200
    except Exception:
        current_app.logger.exception("Failed to list users for admin")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.get("/users/<user_id>")
@require_auth
@require_admin
def get_user_route(user_id):
    """Account details with invoice/inventory counts and the 10 latest invoices."""
    try:
        return jsonify(user_service.get_user_overview(parse_id(user_id, "userId"))), 200

    except StockbillError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to fetch user details")
        return jsonify({"error": "An error occurred while fetching user details"}), 500


@admin_bp.put("/users/<user_id>")
@require_auth
@require_admin
def update_user_route(user_id):
    """
    Request body (any subset):
    {
        "name": "Jane",
        "email": "jane@example.com",
        "role": "user" | "admin",
        "isActive": false,
        "subscriptionStatus": "active" | "inactive" | "expired",
        "subscriptionEndDate": "2027-01-01"     (null clears it)
    }
    """
    try:
        user_pk = parse_id(user_id, "userId")
        patch = validate_user_edit(request.get_json(silent=True))
        user = user_service.update_user(user_pk, patch, acting_user=g.current_user)
        return jsonify({"message": "User updated successfully", "user": user.to_dict()}), 200

    except StockbillError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update user")
        return jsonify({"error": "An error occurred while updating the user"}), 500


@admin_bp.delete("/users/<user_id>")
@require_auth
@require_admin
def deactivate_user_route(user_id):
    """Deactivates the account and revokes its tokens; owned records are kept."""
    try:
        revoked = user_service.deactivate_user(parse_id(user_id, "userId"), acting_user=g.current_user)
        return jsonify({"message": "User deactivated successfully", "revokedSessions": revoked}), 200

    except StockbillError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to deactivate user")
        return jsonify({"error": "An error occurred while deactivating the user"}), 500


@admin_bp.get("/invoices")
@require_auth
@require_admin
def list_all_invoices_route():
    """All tenants' invoices; ?userId= filters to one owner."""
    try:
        query = db.session.query(Invoice)
        user_id = request.args.get("userId", type=int)
        if user_id:
            query = query.filter(Invoice.owner_id == user_id)
        if request.args.get("includeDeleted", "false").lower() != "true":
            query = query.filter(Invoice.deleted.is_(False))
        invoices = query.order_by(Invoice.created_at.desc(), Invoice.id.desc()).all()
        return jsonify([invoice.to_dict() for invoice in invoices]), 200
    except Exception:
        current_app.logger.exception("Failed to list invoices for admin")
        return jsonify({"error": "Internal server error"}), 500
