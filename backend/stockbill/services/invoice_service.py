# Overview: Service-layer operations for invoices and payments; encapsulates business logic and database work.

"""
Invoice / Payment Engine

DESIGN PRINCIPLES:
- Invoice creation and its inventory decrements commit together or not at all
- Payments are an append-only ledger per invoice
- Invoice.status is derived from that ledger: once the payment sum reaches
  the amount the invoice becomes "paid" (payments never move it back)
- Status actions (markPaid/markUnpaid/delete/restore) are administrative
  overrides and do not look at payments
- Owners act on their own invoices; admins may act on any invoice
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func

from ..errors import ForbiddenError, ItemNotFoundError, NotFoundError, TransactionFailedError
from ..extensions import db
from ..models import Invoice, InvoiceLine, Payment, User
from ..models.billing import INVOICE_STATUS_PAID, INVOICE_STATUS_UNPAID
from ..money import from_cents
from ..validation import InvoiceLineInput, ValidationError, validate_invoice_action
from stockbill.time_utils import utcnow
from .concurrency import lock_for_update, run_in_transaction
from .inventory_service import adjust_quantity, get_items_by_ids


UNKNOWN_ITEM_NAME = "Unknown Item"


# =============================================================================
# ACCESS
# =============================================================================

def _check_access(invoice: Invoice, acting_user: User) -> None:
    if invoice.owner_id != acting_user.id and not acting_user.is_admin:
        raise ForbiddenError("You do not have access to this invoice")


def _get_invoice_for_user(invoice_id: int, acting_user: User, *, lock: bool = False) -> Invoice:
    query = db.session.query(Invoice).filter_by(id=invoice_id)
    if lock:
        query = lock_for_update(query)
    invoice = query.first()
    if not invoice:
        raise NotFoundError("Invoice not found")
    _check_access(invoice, acting_user)
    return invoice


# =============================================================================
# INVOICE CREATION
# =============================================================================

def compute_invoice_amount_cents(owner_id: int, items: list[InvoiceLineInput]) -> int:
    """
    Commercial total derived from line items.

    Each line uses its adjusted price when given, else the item's current
    price; unknown items count as 0.
    """
    catalog = get_items_by_ids(owner_id, {line.item_id for line in items})
    total = 0
    for line in items:
        if line.adjusted_price_cents is not None:
            unit = line.adjusted_price_cents
        else:
            item = catalog.get(line.item_id)
            unit = item.price_cents if item else 0
        total += unit * line.quantity
    return total


def create_invoice(
    owner_id: int,
    *,
    invoice_number: str,
    customer_name: str,
    customer_phone: str,
    amount_cents: int | None,
    due_date: datetime,
    items: list[InvoiceLineInput],
) -> Invoice:
    """
    Create an unpaid invoice and decrement stock for every line.

    Everything happens in one transaction. If any line's item cannot be
    resolved for this owner, nothing is written and TransactionFailedError
    is raised.
    """
    if not items:
        raise ValidationError("At least one item is required")
    for line in items:
        if line.quantity <= 0:
            raise ValidationError("Quantity must be a positive integer")

    if not amount_cents:
        amount_cents = compute_invoice_amount_cents(owner_id, items)

    def _op():
        invoice = Invoice(
            owner_id=owner_id,
            invoice_number=invoice_number,
            customer_name=customer_name,
            customer_phone=customer_phone or "",
            amount_cents=amount_cents,
            due_date=due_date,
            status=INVOICE_STATUS_UNPAID,
            deleted=False,
            created_at=utcnow(),
        )
        db.session.add(invoice)
        db.session.flush()

        for line in items:
            db.session.add(InvoiceLine(
                invoice_id=invoice.id,
                item_id=line.item_id,
                quantity=line.quantity,
                adjusted_price_cents=line.adjusted_price_cents,
            ))
            adjust_quantity(owner_id, line.item_id, -line.quantity)

        db.session.flush()
        return invoice

    try:
        return run_in_transaction(_op, label="create invoice")
    except ItemNotFoundError as exc:
        raise TransactionFailedError(
            "Invoice could not be created; no changes were applied",
            details=[exc.message],
        ) from exc


# =============================================================================
# STATUS ACTIONS & FIELD EDITS
# =============================================================================

def update_invoice_status(invoice_id: int, action: str, acting_user: User) -> Invoice:
    """
    Apply markPaid / markUnpaid / delete / restore.

    Pure flag change: no ledger interaction and markPaid does not check the
    payment total.
    """
    validate_invoice_action(action)

    def _op():
        invoice = _get_invoice_for_user(invoice_id, acting_user, lock=True)

        if action == "markPaid":
            invoice.status = INVOICE_STATUS_PAID
        elif action == "markUnpaid":
            invoice.status = INVOICE_STATUS_UNPAID
        elif action == "delete":
            invoice.deleted = True
        elif action == "restore":
            invoice.deleted = False

        invoice.updated_at = utcnow()
        invoice.updated_by = acting_user.id
        return invoice

    return run_in_transaction(_op, label=f"invoice {action}")


def update_invoice_fields(invoice_id: int, patch: dict, acting_user: User) -> Invoice:
    """Edit customer name/phone, due date or notes (already validated)."""
    allowed = {"customer_name", "customer_phone", "due_date", "notes"}
    unknown = set(patch) - allowed
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")

    def _op():
        invoice = _get_invoice_for_user(invoice_id, acting_user, lock=True)
        for key, value in patch.items():
            setattr(invoice, key, value)
        invoice.updated_at = utcnow()
        invoice.updated_by = acting_user.id
        return invoice

    return run_in_transaction(_op, label="invoice edit")


# =============================================================================
# PAYMENTS
# =============================================================================

def get_total_paid_cents(invoice_id: int) -> int:
    total = db.session.query(
        func.coalesce(func.sum(Payment.amount_cents), 0)
    ).filter(Payment.invoice_id == invoice_id).scalar()
    return int(total or 0)


def record_payment(
    invoice_id: int,
    *,
    amount_cents: int,
    method: str | None,
    notes: str | None,
    acting_user: User,
) -> tuple[Payment, Invoice]:
    """
    Append a payment and re-derive the invoice status.

    The invoice row is locked and the payment sum is read inside the same
    transaction as the insert, so concurrent payments always see each other.
    Moving to "paid" is idempotent; an already-paid invoice stays paid.

    Returns (payment, invoice).
    """
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int) or amount_cents <= 0:
        raise ValidationError("Payment amount must be greater than 0")

    def _op():
        invoice = _get_invoice_for_user(invoice_id, acting_user, lock=True)

        now = utcnow()
        payment = Payment(
            invoice_id=invoice.id,
            amount_cents=amount_cents,
            method=method or "other",
            notes=notes or "",
            date=now,
            recorded_by=acting_user.id,
        )
        db.session.add(payment)
        db.session.flush()

        total_paid = get_total_paid_cents(invoice.id)
        if total_paid >= invoice.amount_cents and invoice.status != INVOICE_STATUS_PAID:
            invoice.status = INVOICE_STATUS_PAID
            invoice.paid_date = now
            invoice.updated_at = now
            invoice.updated_by = acting_user.id

        return payment, invoice

    return run_in_transaction(_op, label="record payment")


# =============================================================================
# QUERIES
# =============================================================================

def list_invoices(owner_id: int, include_deleted: bool = False) -> list[Invoice]:
    query = db.session.query(Invoice).filter(Invoice.owner_id == owner_id)
    if not include_deleted:
        query = query.filter(Invoice.deleted.is_(False))
    return query.order_by(Invoice.created_at.desc(), Invoice.id.desc()).all()


def get_invoice_detail(invoice_id: int, acting_user: User) -> dict:
    """
    Invoice with enriched lines and payment history (newest first).

    Lines whose item no longer exists degrade to "Unknown Item" / price 0
    instead of failing the read.
    """
    invoice = _get_invoice_for_user(invoice_id, acting_user)
    catalog = get_items_by_ids(invoice.owner_id, {line.item_id for line in invoice.lines})

    items = []
    for line in invoice.lines:
        item = catalog.get(line.item_id)
        price_cents = item.price_cents if item else 0
        unit_cents = line.adjusted_price_cents if line.adjusted_price_cents is not None else price_cents
        items.append({
            "itemId": line.item_id,
            "name": item.name if item else UNKNOWN_ITEM_NAME,
            "sku": item.sku if item else None,
            "quantity": line.quantity,
            "price": from_cents(price_cents),
            "adjustedPrice": from_cents(line.adjusted_price_cents) if line.adjusted_price_cents is not None else None,
            "subtotal": from_cents(unit_cents * line.quantity),
        })

    payments = db.session.query(Payment).filter_by(
        invoice_id=invoice.id
    ).order_by(Payment.date.desc(), Payment.id.desc()).all()
    total_paid = sum(p.amount_cents for p in payments)

    detail = invoice.to_dict()
    detail["items"] = items
    detail["payments"] = [p.to_dict() for p in payments]
    detail["totalPaid"] = from_cents(total_paid)
    detail["balance"] = from_cents(max(invoice.amount_cents - total_paid, 0))
    return detail
