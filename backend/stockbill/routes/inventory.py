# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

# backend/stockbill/routes/inventory.py
"""Inventory items, restock and restock history for the authenticated owner."""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import StockbillError
from ..services import inventory_service
from ..validation import parse_id, validate_item_edit, validate_item_payload, validate_restock_payload
from ..decorators import require_auth


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")
restock_history_bp = Blueprint("restock_history", __name__, url_prefix="/api/restock-history")


@inventory_bp.get("")
@require_auth
def list_items_route():
    try:
        low_stock_only = request.args.get("lowStock", "false").lower() == "true"
        if low_stock_only:
            items = inventory_service.low_stock_items(g.current_user.id)
        else:
            items = inventory_service.list_items(g.current_user.id)
        return jsonify([item.to_dict() for item in items]), 200
    except Exception:
        current_app.logger.exception("Failed to list inventory")
        return jsonify({"error": "An error occurred while fetching inventory"}), 500


@inventory_bp.post("")
@require_auth
def create_item_route():
    """
    Add an inventory item.

    Request body:
    {
        "name": "Widget",
        "sku": "WID-001",
        "quantity": 10,
        "price": 12.5,
        "costPrice": 7.0,          (optional)
        "category": "Hardware",    (optional)
        "lowStockThreshold": 5     (optional)
    }
    """
    try:
        payload = validate_item_payload(request.get_json(silent=True))
        item = inventory_service.create_item(g.current_user.id, **payload)
        return jsonify({"message": "Item added successfully", "item": item.to_dict()}), 201

    except StockbillError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add inventory item")
        return jsonify({"error": "An error occurred while adding the item"}), 500


@inventory_bp.put("/<item_id>")
@inventory_bp.patch("/<item_id>")
@require_auth
def update_item_route(item_id):
    """
    Edit name, price, costPrice, category or lowStockThreshold.

    Quantity and SKU are refused with 400; stock changes go through restock.
    """
    try:
        item_pk = parse_id(item_id, "itemId")
        patch = validate_item_edit(request.get_json(silent=True))
        item = inventory_service.update_item(g.current_user.id, item_pk, patch)
        return jsonify({"message": "Item updated successfully", "item": item.to_dict()}), 200

    except StockbillError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update inventory item")
        return jsonify({"error": "An error occurred while updating the item"}), 500


@inventory_bp.get("/sku")
@require_auth
def sku_lookup_route():
    sku = (request.args.get("sku") or "").strip()
    if not sku:
        return jsonify({"error": "SKU is required"}), 400

    try:
        item = inventory_service.get_item_by_sku(g.current_user.id, sku)
        if not item:
            return jsonify({"exists": False}), 200
        return jsonify({"exists": True, "item": item.to_dict()}), 200
    except Exception:
        current_app.logger.exception("Failed to look up SKU")
        return jsonify({"error": "An error occurred while checking the SKU"}), 500


@inventory_bp.post("/restock")
@require_auth
def restock_route():
    """
    Restock an item. Body: {itemId, quantity}.

    Returns:
        200: {message, previousQuantity, newQuantity, itemName, sku}
        400: quantity not a positive integer
        404: item not found for this owner
    """
    try:
        payload = validate_restock_payload(request.get_json(silent=True))
        result = inventory_service.restock(g.current_user.id, payload["item_id"], payload["quantity"])
        return jsonify(result), 200

    except StockbillError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to restock item")
        return jsonify({"error": "An error occurred while restocking the item"}), 500


@restock_history_bp.get("")
@require_auth
def restock_history_route():
    """
    Query params:
    - period: day | week | month | quarter | year | all (default all)
    - startDate, endDate: custom range (both required; overrides period)
    - itemId: restrict to one item
    """
    try:
        item_id = request.args.get("itemId")
        history = inventory_service.list_restock_history(
            g.current_user.id,
            period=request.args.get("period", "all"),
            start_date=request.args.get("startDate"),
            end_date=request.args.get("endDate"),
            item_id=parse_id(item_id, "itemId") if item_id else None,
        )
        return jsonify(history), 200

    except StockbillError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to fetch restock history")
        return jsonify({"error": "An error occurred while fetching restock history"}), 500
