# Overview: Flask API routes for point-of-sale operations; parses input and returns JSON responses.

# backend/stockbill/routes/pos.py
"""
POS API Routes

Request body for a sale:
{
    "items": [{"itemId": 1, "name": "Widget", "quantity": 3, "price": 12.5}],
    "total": 37.5,
    "payment": {"method": "cash", "tendered": 40}
}
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import StockbillError
from ..services import pos_service
from ..validation import validate_sale_payload
from ..decorators import require_auth


pos_bp = Blueprint("pos", __name__, url_prefix="/api/pos")


@pos_bp.post("/sales")
@require_auth
def process_sale_route():
    """
    Returns:
        201: {message, salesId}
        400: Invalid sale data (nothing written)
        500: Transaction failed (nothing written)
    """
    try:
        payload = validate_sale_payload(request.get_json(silent=True))
        sale = pos_service.process_sale(g.current_user.id, **payload)
        return jsonify({"message": "Sale processed successfully", "salesId": sale.id}), 201

    except StockbillError as e:
        if e.status_code >= 500:
            current_app.logger.error("Sale aborted: %s %s", e.message, e.details)
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to process sale")
        return jsonify({"error": "An error occurred while processing the sale"}), 500


@pos_bp.get("/sales")
@require_auth
def list_sales_route():
    """
    Query params: limit (default 50), skip (default 0), startDate, endDate.
    """
    try:
        result = pos_service.list_sales(
            g.current_user.id,
            start_date=request.args.get("startDate"),
            end_date=request.args.get("endDate"),
            limit=request.args.get("limit", pos_service.DEFAULT_SALES_LIMIT, type=int),
            skip=request.args.get("skip", 0, type=int),
        )
        return jsonify(result), 200

    except StockbillError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify({"error": "An error occurred while fetching sales"}), 500


@pos_bp.get("/reports")
@require_auth
def sales_report_route():
    try:
        report = pos_service.generate_sales_report(
            g.current_user.id,
            request.args.get("startDate"),
            request.args.get("endDate"),
        )
        return jsonify(report), 200

    except StockbillError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to generate sales report")
        return jsonify({"error": "An error occurred while generating the sales report"}), 500
