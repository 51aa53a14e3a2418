# Overview: Service-layer operations for point-of-sale; encapsulates business logic and database work.

"""
POS Sale Engine

A POS sale is a one-shot, already-paid fulfillment. One commit writes:
- the PosSale row and its lines
- a negative ledger adjustment per line
- one InventoryTransaction (type="sale") listing every decrement

Any failure rolls back all three; there is never a sale without its stock
effect or the other way round.
"""

from __future__ import annotations

from collections import OrderedDict
from datetime import datetime

from ..errors import ItemNotFoundError, TransactionFailedError
from ..extensions import db
from ..models import InventoryTransaction, InventoryTransactionLine, PosSale, PosSaleLine
from ..models.pos import POS_SALE_COMPLETED
from ..money import from_cents
from ..validation import SaleLineInput, ValidationError
from stockbill.time_utils import end_of_day, iter_days, parse_iso_datetime, utcnow
from .concurrency import run_in_transaction
from .inventory_service import adjust_quantity


INVENTORY_TX_SALE = "sale"

DEFAULT_SALES_LIMIT = 50
MAX_SALES_LIMIT = 500
TOP_PRODUCTS_LIMIT = 10
MAX_REPORT_DAYS = 366


class SaleReportError(ValidationError):
    """Raised when report parameters are missing or malformed."""


# =============================================================================
# SALE PROCESSING
# =============================================================================

def process_sale(
    owner_id: int,
    *,
    items: list[SaleLineInput],
    total_cents: int,
    payment: dict,
) -> PosSale:
    """
    Record a completed sale and its inventory effects atomically.

    Raises TransactionFailedError if any item cannot be resolved for this
    owner; nothing is written in that case.
    """
    if not items:
        raise ValidationError("Invalid sale data", details=["items must be a non-empty list"])
    if total_cents <= 0:
        raise ValidationError("Invalid sale data", details=["total must be greater than 0"])
    method = str((payment or {}).get("method") or "").strip()
    if not method:
        raise ValidationError("Invalid sale data", details=["payment.method is required"])

    def _op():
        now = utcnow()
        sale = PosSale(
            owner_id=owner_id,
            total_cents=total_cents,
            payment=payment,
            payment_method=method,
            status=POS_SALE_COMPLETED,
            timestamp=now,
        )
        db.session.add(sale)
        db.session.flush()

        for line in items:
            db.session.add(PosSaleLine(
                sale_id=sale.id,
                item_id=line.item_id,
                name=line.name,
                quantity=line.quantity,
                price_cents=line.price_cents,
            ))
            adjust_quantity(owner_id, line.item_id, -line.quantity)

        audit = InventoryTransaction(
            owner_id=owner_id,
            type=INVENTORY_TX_SALE,
            related_document_id=sale.id,
            timestamp=now,
        )
        for line in items:
            audit.lines.append(InventoryTransactionLine(item_id=line.item_id, quantity_delta=-line.quantity))
        db.session.add(audit)
        db.session.flush()
        return sale

    try:
        return run_in_transaction(_op, label="process sale")
    except ItemNotFoundError as exc:
        raise TransactionFailedError(
            "Sale could not be processed; no changes were applied",
            details=[exc.message],
        ) from exc


# =============================================================================
# QUERIES
# =============================================================================

def _parse_report_date(value: str | None, field: str) -> datetime:
    try:
        dt = parse_iso_datetime(value)
    except ValueError:
        raise SaleReportError(f"Invalid date format for {field}")
    if dt is None:
        raise SaleReportError("Start and end dates are required")
    return dt


def list_sales(
    owner_id: int,
    *,
    start_date: str | None = None,
    end_date: str | None = None,
    limit: int = DEFAULT_SALES_LIMIT,
    skip: int = 0,
) -> dict:
    """Sales newest first, with the unpaged total for pagination."""
    if limit <= 0:
        limit = DEFAULT_SALES_LIMIT
    limit = min(limit, MAX_SALES_LIMIT)
    skip = max(skip, 0)

    query = db.session.query(PosSale).filter(PosSale.owner_id == owner_id)
    if start_date:
        query = query.filter(PosSale.timestamp >= _parse_report_date(start_date, "startDate"))
    if end_date:
        query = query.filter(PosSale.timestamp <= end_of_day(_parse_report_date(end_date, "endDate")))

    total = query.count()
    sales = query.order_by(PosSale.timestamp.desc(), PosSale.id.desc()).offset(skip).limit(limit).all()

    return {
        "sales": [sale.to_dict() for sale in sales],
        "pagination": {"total": total, "limit": limit, "skip": skip},
    }


def get_inventory_transactions_for_sale(owner_id: int, sale_id: int) -> list[InventoryTransaction]:
    return db.session.query(InventoryTransaction).filter_by(
        owner_id=owner_id,
        type=INVENTORY_TX_SALE,
        related_document_id=sale_id,
    ).all()


def generate_sales_report(owner_id: int, start_date: str | None, end_date: str | None) -> dict:
    """
    Read-only fold over POS sales in [start, end-of-day(end)].

    Every calendar date in the range appears in dailySales, zero-filled.
    Ranges longer than MAX_REPORT_DAYS are rejected.
    """
    if not start_date or not end_date:
        raise SaleReportError("Start and end dates are required")

    start_dt = _parse_report_date(start_date, "startDate")
    end_dt = end_of_day(_parse_report_date(end_date, "endDate"))
    if start_dt > end_dt:
        raise SaleReportError("startDate must be on or before endDate")
    if (end_dt.date() - start_dt.date()).days + 1 > MAX_REPORT_DAYS:
        raise SaleReportError(f"Report range cannot exceed {MAX_REPORT_DAYS} days")

    sales = db.session.query(PosSale).filter(
        PosSale.owner_id == owner_id,
        PosSale.timestamp >= start_dt,
        PosSale.timestamp <= end_dt,
    ).order_by(PosSale.timestamp.asc()).all()

    total_cents = sum(sale.total_cents for sale in sales)
    transaction_count = len(sales)

    daily = OrderedDict(
        (day.isoformat(), {"total_cents": 0, "count": 0}) for day in iter_days(start_dt, end_dt)
    )
    methods: "OrderedDict[str, dict]" = OrderedDict()
    products: dict[int, dict] = {}

    for sale in sales:
        bucket = daily[sale.timestamp.date().isoformat()]
        bucket["total_cents"] += sale.total_cents
        bucket["count"] += 1

        method = methods.setdefault(sale.payment_method, {"count": 0, "total_cents": 0})
        method["count"] += 1
        method["total_cents"] += sale.total_cents

        for line in sale.lines:
            product = products.setdefault(
                line.item_id, {"name": line.name, "quantity": 0, "revenue_cents": 0}
            )
            product["quantity"] += line.quantity
            product["revenue_cents"] += line.line_total_cents

    top_products = sorted(
        products.items(),
        key=lambda entry: (-entry[1]["revenue_cents"], entry[0]),
    )[:TOP_PRODUCTS_LIMIT]

    return {
        "dailySales": [
            {"date": date, "total": from_cents(data["total_cents"]), "count": data["count"]}
            for date, data in daily.items()
        ],
        "paymentMethods": [
            {"method": name, "count": data["count"], "total": from_cents(data["total_cents"])}
            for name, data in methods.items()
        ],
        "topProducts": [
            {
                "itemId": item_id,
                "name": data["name"],
                "quantity": data["quantity"],
                "revenue": from_cents(data["revenue_cents"]),
            }
            for item_id, data in top_products
        ],
        "totalSales": from_cents(total_cents),
        "transactionCount": transaction_count,
        "averageTransaction": from_cents(total_cents) / transaction_count if transaction_count else 0,
        "dateRange": {"start": start_date, "end": end_date},
    }
