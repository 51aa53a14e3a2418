# Overview: Flask API routes for single-invoice operations; parses input and returns JSON responses.

# backend/stockbill/routes/invoices.py
"""
Invoice Detail & Payment Routes

- GET    /api/invoices/<id>            detail with enriched items and payments
- PUT    /api/invoices/<id>            {action} or field edits
- POST   /api/invoices/<id>/payments   record a payment
- POST   /api/invoices/<id>            same as above

Owners see their own invoices; admins see any invoice.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import StockbillError
from ..services import invoice_service
from ..validation import parse_id, require_dict, validate_invoice_edit, validate_payment_payload
from ..decorators import require_auth


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


@invoices_bp.get("/<invoice_id>")
@require_auth
def get_invoice_route(invoice_id):
    try:
        detail = invoice_service.get_invoice_detail(parse_id(invoice_id, "invoiceId"), g.current_user)
        return jsonify(detail), 200

    except StockbillError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to fetch invoice")
        return jsonify({"error": "An error occurred while fetching the invoice"}), 500


@invoices_bp.put("/<invoice_id>")
@require_auth
def update_invoice_route(invoice_id):
    """
    Body is either {"action": "markPaid" | "markUnpaid" | "delete" | "restore"}
    or a subset of {customerName, customerPhone, dueDate, notes}.
    """
    try:
        invoice_pk = parse_id(invoice_id, "invoiceId")
        data = require_dict(request.get_json(silent=True) or {})

        if "action" in data:
            invoice_service.update_invoice_status(invoice_pk, data.get("action"), g.current_user)
            return jsonify({"message": "Invoice updated successfully"}), 200

        patch = validate_invoice_edit(data)
        invoice = invoice_service.update_invoice_fields(invoice_pk, patch, g.current_user)
        return jsonify({"message": "Invoice updated successfully", "invoice": invoice.to_dict()}), 200

    except StockbillError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update invoice")
        return jsonify({"error": "An error occurred while updating the invoice"}), 500


@invoices_bp.post("/<invoice_id>")
@invoices_bp.post("/<invoice_id>/payments")
@require_auth
def record_payment_route(invoice_id):
    """
    Record a payment.

    Request body:
    {
        "amount": 40.0,
        "method": "cash",     (optional, default "other")
        "notes": "deposit"    (optional)
    }

    Returns:
        201: {message, paymentId, invoiceStatus}
    """
    try:
        invoice_pk = parse_id(invoice_id, "invoiceId")
        payload = validate_payment_payload(request.get_json(silent=True))

        payment, invoice = invoice_service.record_payment(
            invoice_pk,
            amount_cents=payload["amount_cents"],
            method=payload["method"],
            notes=payload["notes"],
            acting_user=g.current_user,
        )

        return jsonify({
            "message": "Payment recorded successfully",
            "paymentId": payment.id,
            "invoiceStatus": invoice.status,
        }), 201

    except StockbillError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return jsonify({"error": "An error occurred while recording the payment"}), 500
