from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from stockbill.errors import StockbillError
from stockbill.money import decimal_to_cents
from stockbill.time_utils import parse_iso_datetime


# Maximum money value: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_MONEY_CENTS = 999_999_999

PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{1,14}$")

INVOICE_ACTIONS = ("markPaid", "markUnpaid", "delete", "restore")
INVOICE_EDITABLE_FIELDS = ("customerName", "customerPhone", "dueDate", "notes")
ITEM_EDITABLE_FIELDS = ("name", "price", "costPrice", "category", "lowStockThreshold")
USER_EDITABLE_FIELDS = ("name", "email", "role", "isActive", "subscriptionStatus", "subscriptionEndDate")


class ValidationError(StockbillError, ValueError):
    """400-level input problem."""
    status_code = 400


class ConflictError(StockbillError, ValueError):
    """409-level business rule conflict (e.g., duplicate SKU)."""
    status_code = 409


@dataclass(frozen=True)
class InvoiceLineInput:
    item_id: int
    quantity: int
    adjusted_price_cents: int | None = None


@dataclass(frozen=True)
class SaleLineInput:
    item_id: int
    name: str
    quantity: int
    price_cents: int


# =============================================================================
# SCALAR PARSERS
# =============================================================================

def parse_int(value: Any, field: str) -> int:
    """
    Strict integer parsing.

    Rejects floats, booleans, decimals-in-strings and scientific notation so
    "1.5" or 1e3 never silently become quantities.
    """
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def parse_positive_int(value: Any, field: str) -> int:
    parsed = parse_int(value, field)
    if parsed <= 0:
        raise ValidationError(f"{field} must be a positive integer")
    return parsed


def parse_non_negative_int(value: Any, field: str) -> int:
    parsed = parse_int(value, field)
    if parsed < 0:
        raise ValidationError(f"{field} must be a non-negative integer")
    return parsed


def parse_id(value: Any, field: str = "id") -> int:
    """Canonical identifier: a positive integer, from JSON ints or path strings."""
    try:
        parsed = parse_int(value, field)
    except ValidationError:
        raise ValidationError(f"Invalid {field} format")
    if parsed <= 0:
        raise ValidationError(f"Invalid {field} format")
    return parsed


def parse_money(value: Any, field: str = "amount") -> int:
    """
    JSON currency number -> integer cents (half-up).

    Booleans, NaN and infinities are rejected.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number")
    if not isinstance(value, (int, float, str, Decimal)):
        raise ValidationError(f"{field} must be a number")
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    cents = decimal_to_cents(amount)
    if abs(cents) > MAX_MONEY_CENTS:
        raise ValidationError(f"{field} cannot exceed {MAX_MONEY_CENTS / 100:,.2f}")
    return cents


def parse_date(value: Any, field: str) -> datetime:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required")
    try:
        dt = parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"Invalid date format for {field}")
    if dt is None:
        raise ValidationError(f"Invalid date format for {field}")
    return dt


def require_text(data: dict, field: str, label: str) -> str:
    value = data.get(field)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{label} is required")
    return value.strip()


def normalize_phone(phone: Any) -> str:
    """
    Phone numbers outside E.164 are coerced to "+1" + their digits.

    Empty input stays empty.
    """
    if phone is None:
        return ""
    phone = str(phone).strip()
    if phone and not PHONE_PATTERN.match(phone):
        phone = "+1" + re.sub(r"\D", "", phone)
    return phone


def require_dict(data: Any) -> dict:
    """Request bodies must be JSON objects; arrays and scalars are rejected."""
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    return data


# =============================================================================
# PAYLOAD VALIDATORS
# =============================================================================

def validate_invoice_payload(data: Any) -> dict:
    """
    Validate and normalize a CreateInvoice body.

    Returns snake_case kwargs for invoice_service.create_invoice; amount_cents
    is None when the caller omitted the amount (or sent 0) so the service can
    derive it from the line items.
    """
    data = require_dict(data)
    errors = []

    def collect(fn, *args):
        try:
            return fn(*args)
        except ValidationError as e:
            errors.append(e.message)
            return None

    invoice_number = collect(require_text, data, "invoiceNumber", "Invoice number")
    customer_name = collect(require_text, data, "customerName", "Customer name")
    due_date = collect(parse_date, data.get("dueDate"), "dueDate")

    amount_cents = None
    if data.get("amount") is not None:
        amount_cents = collect(parse_money, data.get("amount"), "amount")
        if amount_cents is not None and amount_cents < 0:
            errors.append("Amount must be a non-negative number")
        if amount_cents == 0:
            amount_cents = None

    items = data.get("items")
    lines: list[InvoiceLineInput] = []
    if not isinstance(items, list) or not items:
        errors.append("At least one item is required")
    else:
        for index, raw in enumerate(items):
            if not isinstance(raw, dict):
                errors.append(f"items[{index}] must be an object")
                continue
            item_id = collect(parse_id, raw.get("itemId"), f"items[{index}].itemId")
            quantity = collect(parse_positive_int, raw.get("quantity"), f"items[{index}].quantity")
            adjusted = None
            if raw.get("adjustedPrice") is not None:
                adjusted = collect(parse_money, raw.get("adjustedPrice"), f"items[{index}].adjustedPrice")
                if adjusted is not None and adjusted < 0:
                    errors.append(f"items[{index}].adjustedPrice must be non-negative")
            if item_id is not None and quantity is not None:
                lines.append(InvoiceLineInput(item_id=item_id, quantity=quantity, adjusted_price_cents=adjusted))

    if errors:
        raise ValidationError("Validation failed", details=errors)

    return {
        "invoice_number": invoice_number,
        "customer_name": customer_name,
        "customer_phone": normalize_phone(data.get("customerPhone")),
        "amount_cents": amount_cents,
        "due_date": due_date,
        "items": lines,
    }


def validate_invoice_action(action: Any) -> str:
    if action not in INVOICE_ACTIONS:
        raise ValidationError("Invalid action", details=[f"action must be one of {', '.join(INVOICE_ACTIONS)}"])
    return action


def validate_invoice_edit(data: Any) -> dict:
    """Field edits are limited to customer details, due date and notes."""
    data = require_dict(data)
    patch: dict = {}
    for key in data:
        if key not in INVOICE_EDITABLE_FIELDS:
            raise ValidationError(f"Field not allowed: {key}")

    if "customerName" in data:
        patch["customer_name"] = require_text(data, "customerName", "Customer name")
    if "customerPhone" in data:
        patch["customer_phone"] = normalize_phone(data.get("customerPhone"))
    if "dueDate" in data:
        patch["due_date"] = parse_date(data.get("dueDate"), "dueDate")
    if "notes" in data:
        notes = data.get("notes")
        patch["notes"] = "" if notes is None else str(notes)

    if not patch:
        raise ValidationError("No editable fields provided")
    return patch


def validate_payment_payload(data: Any) -> dict:
    data = require_dict(data)
    if data.get("amount") is None:
        raise ValidationError("Payment amount must be greater than 0")
    amount_cents = parse_money(data.get("amount"), "amount")
    if amount_cents <= 0:
        raise ValidationError("Payment amount must be greater than 0")

    method = data.get("method") or "other"
    notes = data.get("notes") or ""
    return {
        "amount_cents": amount_cents,
        "method": str(method).strip() or "other",
        "notes": str(notes),
    }


def validate_sale_payload(data: Any) -> dict:
    data = require_dict(data)

    items = data.get("items")
    if not isinstance(items, list) or not items:
        raise ValidationError("Invalid sale data", details=["items must be a non-empty list"])

    lines: list[SaleLineInput] = []
    for index, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise ValidationError("Invalid sale data", details=[f"items[{index}] must be an object"])
        item_id = parse_id(raw.get("itemId"), f"items[{index}].itemId")
        quantity = parse_positive_int(raw.get("quantity"), f"items[{index}].quantity")
        price_cents = parse_money(raw.get("price", 0), f"items[{index}].price")
        if price_cents < 0:
            raise ValidationError(f"items[{index}].price must be non-negative")
        name = str(raw.get("name") or "").strip()
        lines.append(SaleLineInput(item_id=item_id, name=name, quantity=quantity, price_cents=price_cents))

    total = data.get("total")
    if total is None:
        raise ValidationError("Invalid sale data", details=["total is required"])
    total_cents = parse_money(total, "total")
    if total_cents <= 0:
        raise ValidationError("Invalid sale data", details=["total must be greater than 0"])

    payment = data.get("payment")
    if not isinstance(payment, dict) or not str(payment.get("method") or "").strip():
        raise ValidationError("Invalid sale data", details=["payment.method is required"])

    return {
        "items": lines,
        "total_cents": total_cents,
        "payment": dict(payment),
    }


def validate_restock_payload(data: Any) -> dict:
    data = require_dict(data)
    return {
        "item_id": parse_id(data.get("itemId"), "itemId"),
        "quantity": parse_positive_int(data.get("quantity"), "quantity"),
    }


def validate_item_payload(data: Any) -> dict:
    data = require_dict(data)
    name = require_text(data, "name", "Name")
    sku = require_text(data, "sku", "SKU").upper()
    if len(sku) > 64:
        raise ValidationError("sku exceeds max length 64")

    price_cents = parse_money(data.get("price"), "price")
    if price_cents <= 0:
        raise ValidationError("Price must be a positive number")

    cost_price_cents = None
    if data.get("costPrice") is not None:
        cost_price_cents = parse_money(data.get("costPrice"), "costPrice")
        if cost_price_cents < 0:
            raise ValidationError("Cost price must be non-negative")

    category = data.get("category")
    category = str(category).strip() if category else None

    return {
        "name": name,
        "sku": sku,
        "quantity": parse_non_negative_int(data.get("quantity", 0), "quantity"),
        "price_cents": price_cents,
        "cost_price_cents": cost_price_cents,
        "category": category or None,
        "low_stock_threshold": parse_non_negative_int(data.get("lowStockThreshold", 5), "lowStockThreshold"),
    }


def validate_item_edit(data: Any) -> dict:
    """
    Catalog edits for an existing item.

    Quantity only moves through restocks, sales and invoices, and the SKU is
    the item's lookup key, so both are refused here.
    """
    data = require_dict(data)
    if "quantity" in data:
        raise ValidationError("Quantity cannot be edited directly; use a restock")
    for key in data:
        if key not in ITEM_EDITABLE_FIELDS:
            raise ValidationError(f"Field not allowed: {key}")

    patch: dict = {}
    if "name" in data:
        patch["name"] = require_text(data, "name", "Name")
    if "price" in data:
        price_cents = parse_money(data.get("price"), "price")
        if price_cents <= 0:
            raise ValidationError("Price must be a positive number")
        patch["price_cents"] = price_cents
    if "costPrice" in data:
        cost = data.get("costPrice")
        if cost is None:
            patch["cost_price_cents"] = None
        else:
            patch["cost_price_cents"] = parse_money(cost, "costPrice")
            if patch["cost_price_cents"] < 0:
                raise ValidationError("Cost price must be non-negative")
    if "category" in data:
        category = data.get("category")
        patch["category"] = (str(category).strip() if category else "") or None
    if "lowStockThreshold" in data:
        patch["low_stock_threshold"] = parse_non_negative_int(data.get("lowStockThreshold"), "lowStockThreshold")

    if not patch:
        raise ValidationError("No editable fields provided")
    return patch


def validate_user_edit(data: Any) -> dict:
    """Admin edits to an account; domain checks (role, email) live in user_service."""
    data = require_dict(data)
    for key in data:
        if key not in USER_EDITABLE_FIELDS:
            raise ValidationError(f"Field not allowed: {key}")

    patch: dict = {}
    if "name" in data:
        patch["name"] = require_text(data, "name", "Name")
    if "email" in data:
        patch["email"] = require_text(data, "email", "Email")
    if "role" in data:
        patch["role"] = require_text(data, "role", "Role")
    if "subscriptionStatus" in data:
        patch["subscription_status"] = require_text(data, "subscriptionStatus", "Subscription status")
    if "subscriptionEndDate" in data:
        end = data.get("subscriptionEndDate")
        patch["subscription_end_date"] = None if end is None else parse_date(end, "subscriptionEndDate")
    if "isActive" in data:
        if not isinstance(data.get("isActive"), bool):
            raise ValidationError("isActive must be a boolean")
        patch["is_active"] = data["isActive"]

    if not patch:
        raise ValidationError("No update data provided")
    return patch
