# Overview: Service-layer operations for inventory; encapsulates business logic and database work.

"""
Inventory Ledger

InventoryItem.quantity is the authoritative stock level. It changes only
through adjust_quantity(), called inside the transaction of the business
event that moves stock:

- invoice creation and POS sales (negative delta, fulfillment)
- restock (positive delta, paired with a RestockRecord)

There is no stock floor: fulfillment may take quantity below zero.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from ..errors import ItemNotFoundError
from ..extensions import db
from ..models import InventoryItem, RestockRecord
from ..money import from_cents
from ..validation import ConflictError, ValidationError
from stockbill.time_utils import utcnow, start_of_day, start_of_month, add_months, parse_iso_datetime, end_of_day
from .concurrency import lock_for_update, run_in_transaction


RESTOCK_PERIODS = ("day", "week", "month", "quarter", "year", "all")


# =============================================================================
# LEDGER
# =============================================================================

def adjust_quantity(owner_id: int, item_id: int, delta: int) -> InventoryItem:
    """
    Apply `delta` to an item's quantity.

    Must run inside the caller's transaction; never commits.
    Raises ItemNotFoundError if the item is missing or belongs to another
    owner, which aborts the enclosing transaction.
    """
    item = lock_for_update(
        db.session.query(InventoryItem).filter_by(id=item_id, owner_id=owner_id)
    ).first()
    if not item:
        raise ItemNotFoundError(item_id)

    item.quantity = item.quantity + delta
    db.session.flush()
    return item


def restock(owner_id: int, item_id: int, quantity: int) -> dict:
    """
    Add stock to an item and append the matching RestockRecord.

    Both writes commit together. Raises ItemNotFoundError (404) when the item
    is not owned by the caller.
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("Quantity must be a positive integer")

    def _op():
        item = lock_for_update(
            db.session.query(InventoryItem).filter_by(id=item_id, owner_id=owner_id)
        ).first()
        if not item:
            raise ItemNotFoundError(item_id)

        previous_quantity = item.quantity
        adjust_quantity(owner_id, item_id, quantity)

        record = RestockRecord(
            owner_id=owner_id,
            item_id=item.id,
            item_name=item.name,
            item_sku=item.sku,
            quantity=quantity,
            previous_quantity=previous_quantity,
            new_quantity=item.quantity,
            date=utcnow(),
        )
        db.session.add(record)

        return {
            "message": "Item restocked successfully",
            "previousQuantity": previous_quantity,
            "newQuantity": item.quantity,
            "itemName": item.name,
            "sku": item.sku,
        }

    return run_in_transaction(_op, label="restock")


# =============================================================================
# ITEM MANAGEMENT
# =============================================================================

def create_item(owner_id: int, *, name: str, sku: str, quantity: int, price_cents: int,
                cost_price_cents: int | None = None, category: str | None = None,
                low_stock_threshold: int = 5) -> InventoryItem:
    """Explicit add of a new item. SKU is unique per owner."""
    def _op():
        existing = db.session.query(InventoryItem).filter_by(owner_id=owner_id, sku=sku).first()
        if existing:
            raise ConflictError(f"An item with SKU {sku} already exists")

        item = InventoryItem(
            owner_id=owner_id,
            name=name,
            sku=sku,
            quantity=quantity,
            price_cents=price_cents,
            cost_price_cents=cost_price_cents,
            category=category,
            low_stock_threshold=low_stock_threshold,
        )
        db.session.add(item)
        db.session.flush()
        return item

    return run_in_transaction(_op, label="create item")


ITEM_EDITABLE_ATTRS = ("name", "price_cents", "cost_price_cents", "category", "low_stock_threshold")


def update_item(owner_id: int, item_id: int, patch: dict) -> InventoryItem:
    """
    Edit catalog fields of an item. Stock never changes here; it moves only
    through adjust_quantity().
    """
    if "quantity" in patch:
        raise ValidationError("Quantity cannot be edited directly; use a restock")
    unknown = [key for key in patch if key not in ITEM_EDITABLE_ATTRS]
    if unknown:
        raise ValidationError(f"Field not allowed: {unknown[0]}")

    def _op():
        item = lock_for_update(
            db.session.query(InventoryItem).filter_by(id=item_id, owner_id=owner_id)
        ).first()
        if not item:
            raise ItemNotFoundError(item_id)

        for attr, value in patch.items():
            setattr(item, attr, value)
        db.session.flush()
        return item

    return run_in_transaction(_op, label="update item")


def list_items(owner_id: int) -> list[InventoryItem]:
    return db.session.query(InventoryItem).filter_by(
        owner_id=owner_id
    ).order_by(InventoryItem.name.asc(), InventoryItem.id.asc()).all()


def get_item_by_sku(owner_id: int, sku: str) -> InventoryItem | None:
    return db.session.query(InventoryItem).filter_by(
        owner_id=owner_id,
        sku=sku.strip().upper(),
    ).first()


def get_items_by_ids(owner_id: int, item_ids) -> dict[int, InventoryItem]:
    """Owner-scoped lookup; missing ids are simply absent from the result."""
    ids = {int(i) for i in item_ids}
    if not ids:
        return {}
    items = db.session.query(InventoryItem).filter(
        InventoryItem.owner_id == owner_id,
        InventoryItem.id.in_(ids),
    ).all()
    return {item.id: item for item in items}


def low_stock_items(owner_id: int | None = None) -> list[InventoryItem]:
    """Items below their low-stock threshold, optionally for one owner."""
    query = db.session.query(InventoryItem).filter(
        InventoryItem.quantity < InventoryItem.low_stock_threshold
    )
    if owner_id is not None:
        query = query.filter(InventoryItem.owner_id == owner_id)
    return query.order_by(InventoryItem.owner_id.asc(), InventoryItem.name.asc()).all()


# =============================================================================
# RESTOCK HISTORY
# =============================================================================

def _restock_period_start(period: str, now: datetime) -> datetime | None:
    if period == "day":
        return start_of_day(now)
    if period == "week":
        # Weeks start on Sunday
        days_since_sunday = (now.weekday() + 1) % 7
        return start_of_day(now - timedelta(days=days_since_sunday))
    if period == "month":
        return start_of_month(now)
    if period == "quarter":
        # Same day three months back (clamped to month length)
        target = add_months(now, -3)
        day = min(now.day, (add_months(target, 1) - timedelta(days=1)).day)
        return target.replace(day=day, hour=now.hour, minute=now.minute,
                              second=now.second, microsecond=now.microsecond)
    if period == "year":
        return datetime(now.year, 1, 1)
    return None


def list_restock_history(
    owner_id: int,
    *,
    period: str = "all",
    start_date: str | None = None,
    end_date: str | None = None,
    item_id: int | None = None,
    now: datetime | None = None,
) -> list[dict]:
    """
    Restock records newest first, enriched with the item's current name and
    price ("Unknown" / 0 once the item is gone).

    A custom startDate+endDate range wins over `period`; the end date is
    inclusive of the whole day.
    """
    now = now or utcnow()
    query = db.session.query(RestockRecord).filter(RestockRecord.owner_id == owner_id)

    if start_date and end_date:
        try:
            start_dt = parse_iso_datetime(start_date)
            end_dt = parse_iso_datetime(end_date)
        except ValueError:
            raise ValidationError("Invalid date range")
        query = query.filter(RestockRecord.date >= start_dt, RestockRecord.date <= end_of_day(end_dt))
    else:
        if period not in RESTOCK_PERIODS:
            period = "all"
        start_dt = _restock_period_start(period, now)
        if start_dt is not None:
            query = query.filter(RestockRecord.date >= start_dt)

    if item_id is not None:
        query = query.filter(RestockRecord.item_id == item_id)

    records = query.order_by(RestockRecord.date.desc(), RestockRecord.id.desc()).all()
    items = get_items_by_ids(owner_id, {r.item_id for r in records})

    history = []
    for record in records:
        item = items.get(record.item_id)
        row = record.to_dict()
        row["itemName"] = item.name if item else "Unknown"
        row["itemPrice"] = from_cents(item.price_cents) if item else 0
        history.append(row)
    return history
