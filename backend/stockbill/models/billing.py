from __future__ import annotations

from ..extensions import db
from stockbill.money import from_cents
from stockbill.time_utils import to_utc_z

INVOICE_STATUS_PAID = "paid"
INVOICE_STATUS_UNPAID = "unpaid"


class Invoice(db.Model):
    """
    Customer invoice.

    `amount_cents` is fixed at creation. `status` is a cache of the payment
    ledger: payment recording moves it to "paid" once the sum of payments
    reaches the amount. Soft-deleted via `deleted`, never removed.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.Index("ix_invoices_owner_created", "owner_id", "created_at"),
        db.Index("ix_invoices_owner_deleted", "owner_id", "deleted"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    invoice_number = db.Column(db.String(64), nullable=False)
    customer_name = db.Column(db.String(255), nullable=False)
    customer_phone = db.Column(db.String(32), nullable=False, default="")

    amount_cents = db.Column(db.Integer, nullable=False)
    due_date = db.Column(db.DateTime(timezone=True), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=INVOICE_STATUS_UNPAID)
    deleted = db.Column(db.Boolean, nullable=False, default=False)
    notes = db.Column(db.Text, nullable=True)
    paid_date = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    updated_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    lines = db.relationship(
        "InvoiceLine",
        backref="invoice",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="InvoiceLine.id",
    )
    payments = db.relationship("Payment", backref="invoice", lazy=True, order_by="Payment.date.desc()")

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Invoice id={self.id} number={self.invoice_number!r} status={self.status} owner_id={self.owner_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.owner_id,
            "invoiceNumber": self.invoice_number,
            "customerName": self.customer_name,
            "customerPhone": self.customer_phone,
            "amount": from_cents(self.amount_cents),
            "dueDate": to_utc_z(self.due_date),
            "status": self.status,
            "deleted": self.deleted,
            "notes": self.notes,
            "paidDate": to_utc_z(self.paid_date),
            "items": [line.to_dict() for line in self.lines],
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
            "updatedBy": self.updated_by,
        }


class InvoiceLine(db.Model):
    """
    Invoice line item.

    `item_id` is a soft reference with no foreign key: the inventory item may
    be deleted later, and readers degrade to "Unknown Item" / price 0.
    """
    __tablename__ = "invoice_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    adjusted_price_cents = db.Column(db.Integer, nullable=True)

    def to_dict(self) -> dict:
        return {
            "itemId": self.item_id,
            "quantity": self.quantity,
            "adjustedPrice": from_cents(self.adjusted_price_cents) if self.adjusted_price_cents is not None else None,
        }


class Payment(db.Model):
    """Append-only payment against an invoice. Never updated after insert."""
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_invoice_date", "invoice_id", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    method = db.Column(db.String(32), nullable=False, default="other")
    notes = db.Column(db.Text, nullable=False, default="")
    date = db.Column(db.DateTime(timezone=True), nullable=False)
    recorded_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoiceId": self.invoice_id,
            "amount": from_cents(self.amount_cents),
            "method": self.method,
            "notes": self.notes,
            "date": to_utc_z(self.date),
            "recordedBy": self.recorded_by,
        }
