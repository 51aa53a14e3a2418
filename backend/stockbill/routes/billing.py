# Overview: Flask API routes for billing operations; parses input and returns JSON responses.

# backend/stockbill/routes/billing.py
"""
Billing API Routes

Invoice list/creation and status actions for the authenticated owner.

Request body for creation:
{
    "invoiceNumber": "INV-1001",
    "customerName": "Jane Doe",
    "customerPhone": "+15551234567",   (optional)
    "amount": 100.0,                   (optional; derived from items when 0/absent)
    "dueDate": "2026-11-01",
    "items": [{"itemId": 1, "quantity": 2, "adjustedPrice": 45.0}]
}
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import StockbillError
from ..services import invoice_service
from ..validation import parse_id, require_dict, validate_invoice_payload
from ..decorators import require_auth


billing_bp = Blueprint("billing", __name__, url_prefix="/api/billing")


@billing_bp.get("")
@require_auth
def list_invoices_route():
    """List the caller's invoices (soft-deleted ones only with ?includeDeleted=true)."""
    try:
        include_deleted = request.args.get("includeDeleted", "false").lower() == "true"
        invoices = invoice_service.list_invoices(g.current_user.id, include_deleted=include_deleted)
        return jsonify([invoice.to_dict() for invoice in invoices]), 200
    except Exception:
        current_app.logger.exception("Failed to list invoices")
        return jsonify({"error": "An error occurred while fetching invoices"}), 500


@billing_bp.post("")
@require_auth
def create_invoice_route():
    """
    Create an invoice and decrement stock for every line, atomically.

    Returns:
        201: {message, invoiceId}
        400: Validation failed (nothing written)
        500: Transaction failed (nothing written)
    """
    try:
        payload = validate_invoice_payload(request.get_json(silent=True))
        invoice = invoice_service.create_invoice(g.current_user.id, **payload)
        return jsonify({"message": "Invoice added successfully", "invoiceId": invoice.id}), 201

    except StockbillError as e:
        if e.status_code >= 500:
            current_app.logger.error("Invoice creation aborted: %s %s", e.message, e.details)
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create invoice")
        return jsonify({"error": "An error occurred while adding the invoice"}), 500


def _apply_action(invoice_id_raw, action):
    invoice_id = parse_id(invoice_id_raw, "invoiceId")
    invoice_service.update_invoice_status(invoice_id, action, g.current_user)
    return jsonify({"message": "Invoice updated successfully"}), 200


@billing_bp.put("")
@require_auth
def update_invoice_status_route():
    """Apply markPaid / markUnpaid / delete / restore. Body: {invoiceId, action}."""
    try:
        data = require_dict(request.get_json(silent=True) or {})
        return _apply_action(data.get("invoiceId"), data.get("action"))

    except StockbillError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update invoice")
        return jsonify({"error": "An error occurred while updating the invoice"}), 500


@billing_bp.put("/<invoice_id>")
@require_auth
def update_invoice_status_by_id_route(invoice_id):
    """Same as PUT /api/billing with the id in the path. Body: {action}."""
    try:
        data = require_dict(request.get_json(silent=True) or {})
        return _apply_action(invoice_id, data.get("action"))

    except StockbillError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update invoice")
        return jsonify({"error": "An error occurred while updating the invoice"}), 500
