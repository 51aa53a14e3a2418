# Overview: Pytest coverage for invoice creation, status actions and the payment ledger.

"""
Invoice / Payment Engine Tests

Covers:
1. Invoice creation decrements stock atomically (all lines or nothing)
2. Amount derivation from line items when no amount is given
3. Payments accumulate; status flips to paid once the sum reaches the amount
4. Status actions are pure overrides
5. Owner/admin access rules
"""

from datetime import datetime

import pytest
from stockbill.errors import ForbiddenError, NotFoundError, TransactionFailedError
from stockbill.models import InventoryItem, Invoice, InvoiceLine, Payment
from stockbill.services import invoice_service
from stockbill.validation import InvoiceLineInput, ValidationError


DUE = datetime(2026, 11, 1)


def _create(owner, items, amount_cents=10000, customer_name="Acme Ltd"):
    return invoice_service.create_invoice(
        owner.id,
        invoice_number="INV-1001",
        customer_name=customer_name,
        customer_phone="+15551234567",
        amount_cents=amount_cents,
        due_date=DUE,
        items=items,
    )


class TestInvoiceCreation:

    def test_create_decrements_stock(self, db_session, owner, widget, gadget):
        invoice = _create(owner, [
            InvoiceLineInput(item_id=widget.id, quantity=3),
            InvoiceLineInput(item_id=gadget.id, quantity=1),
        ])

        assert invoice.status == "unpaid"
        assert invoice.deleted is False
        assert len(invoice.lines) == 2
        assert db_session.get(InventoryItem, widget.id).quantity == 7
        assert db_session.get(InventoryItem, gadget.id).quantity == 2

    def test_missing_item_rolls_back_everything(self, db_session, owner, widget):
        with pytest.raises(TransactionFailedError) as exc_info:
            _create(owner, [
                InvoiceLineInput(item_id=widget.id, quantity=2),
                InvoiceLineInput(item_id=99999, quantity=1),
            ])

        assert exc_info.value.status_code == 500
        assert "Item 99999 not found" in exc_info.value.details
        assert db_session.query(Invoice).count() == 0
        assert db_session.query(InvoiceLine).count() == 0
        assert db_session.get(InventoryItem, widget.id).quantity == 10

    def test_other_tenant_item_is_rejected(self, db_session, owner, other_owner, make_item):
        foreign = make_item(other_owner.id, sku="B-001")
        with pytest.raises(TransactionFailedError):
            _create(owner, [InvoiceLineInput(item_id=foreign.id, quantity=1)])
        assert db_session.get(InventoryItem, foreign.id).quantity == 10

    def test_amount_derived_from_lines(self, db_session, owner, widget, gadget):
        invoice = _create(owner, [
            InvoiceLineInput(item_id=widget.id, quantity=2),
            InvoiceLineInput(item_id=gadget.id, quantity=1, adjusted_price_cents=2000),
        ], amount_cents=None)

        assert invoice.amount_cents == 2 * 1000 + 2000

    def test_stock_may_go_negative(self, db_session, owner, gadget):
        _create(owner, [InvoiceLineInput(item_id=gadget.id, quantity=5)])
        assert db_session.get(InventoryItem, gadget.id).quantity == -2

    def test_empty_items_rejected(self, db_session, owner):
        with pytest.raises(ValidationError):
            _create(owner, [])


class TestPayments:
    """Payment ledger and derived status."""

    def test_partial_then_full_payment(self, db_session, owner, widget):
        invoice = _create(owner, [InvoiceLineInput(item_id=widget.id, quantity=1)], amount_cents=10000)

        _, after_first = invoice_service.record_payment(
            invoice.id, amount_cents=6000, method="cash", notes="deposit", acting_user=owner,
        )
        assert after_first.status == "unpaid"
        assert after_first.paid_date is None

        payment, after_second = invoice_service.record_payment(
            invoice.id, amount_cents=4000, method="card", notes=None, acting_user=owner,
        )
        assert after_second.status == "paid"
        assert after_second.paid_date is not None
        assert payment.recorded_by == owner.id
        assert invoice_service.get_total_paid_cents(invoice.id) == 10000

    def test_overpayment_stays_paid(self, db_session, owner, widget):
        invoice = _create(owner, [InvoiceLineInput(item_id=widget.id, quantity=1)], amount_cents=5000)
        invoice_service.record_payment(invoice.id, amount_cents=5000, method=None, notes=None, acting_user=owner)
        payment, invoice = invoice_service.record_payment(
            invoice.id, amount_cents=100, method=None, notes=None, acting_user=owner,
        )
        assert invoice.status == "paid"
        assert payment.method == "other"
        assert db_session.query(Payment).count() == 2

    @pytest.mark.parametrize("amount", [0, -100])
    def test_non_positive_amount_rejected(self, db_session, owner, widget, amount):
        invoice = _create(owner, [InvoiceLineInput(item_id=widget.id, quantity=1)])
        with pytest.raises(ValidationError):
            invoice_service.record_payment(invoice.id, amount_cents=amount, method=None, notes=None, acting_user=owner)
        assert db_session.query(Payment).count() == 0

    def test_payment_on_missing_invoice(self, db_session, owner):
        with pytest.raises(NotFoundError):
            invoice_service.record_payment(99999, amount_cents=100, method=None, notes=None, acting_user=owner)

    def test_other_tenant_cannot_pay(self, db_session, owner, other_owner, widget):
        invoice = _create(owner, [InvoiceLineInput(item_id=widget.id, quantity=1)])
        with pytest.raises(ForbiddenError):
            invoice_service.record_payment(
                invoice.id, amount_cents=100, method=None, notes=None, acting_user=other_owner,
            )
        assert db_session.query(Payment).count() == 0

    def test_admin_can_pay_any_invoice(self, db_session, owner, admin, widget):
        invoice = _create(owner, [InvoiceLineInput(item_id=widget.id, quantity=1)], amount_cents=1000)
        payment, invoice = invoice_service.record_payment(
            invoice.id, amount_cents=1000, method="cash", notes=None, acting_user=admin,
        )
        assert invoice.status == "paid"
        assert payment.recorded_by == admin.id


class TestStatusActions:

    def test_mark_paid_ignores_payments(self, db_session, owner, widget):
        invoice = _create(owner, [InvoiceLineInput(item_id=widget.id, quantity=1)])
        updated = invoice_service.update_invoice_status(invoice.id, "markPaid", owner)

        assert updated.status == "paid"
        assert updated.updated_by == owner.id
        assert invoice_service.get_total_paid_cents(invoice.id) == 0

    def test_mark_unpaid_after_full_payment(self, db_session, owner, widget):
        invoice = _create(owner, [InvoiceLineInput(item_id=widget.id, quantity=1)], amount_cents=1000)
        invoice_service.record_payment(invoice.id, amount_cents=1000, method=None, notes=None, acting_user=owner)

        updated = invoice_service.update_invoice_status(invoice.id, "markUnpaid", owner)
        assert updated.status == "unpaid"

    def test_delete_and_restore(self, db_session, owner, widget):
        invoice = _create(owner, [InvoiceLineInput(item_id=widget.id, quantity=1)])

        invoice_service.update_invoice_status(invoice.id, "delete", owner)
        assert invoice_service.list_invoices(owner.id) == []
        assert len(invoice_service.list_invoices(owner.id, include_deleted=True)) == 1
        # Stock is not returned on delete
        assert db_session.get(InventoryItem, widget.id).quantity == 9

        invoice_service.update_invoice_status(invoice.id, "restore", owner)
        assert [inv.id for inv in invoice_service.list_invoices(owner.id)] == [invoice.id]

    def test_unknown_action(self, db_session, owner, widget):
        invoice = _create(owner, [InvoiceLineInput(item_id=widget.id, quantity=1)])
        with pytest.raises(ValidationError):
            invoice_service.update_invoice_status(invoice.id, "archive", owner)

    def test_other_tenant_cannot_act(self, db_session, owner, other_owner, widget):
        invoice = _create(owner, [InvoiceLineInput(item_id=widget.id, quantity=1)])
        with pytest.raises(ForbiddenError):
            invoice_service.update_invoice_status(invoice.id, "markPaid", other_owner)
        assert db_session.get(Invoice, invoice.id).status == "unpaid"

    def test_field_edit(self, db_session, owner, widget):
        invoice = _create(owner, [InvoiceLineInput(item_id=widget.id, quantity=1)])
        updated = invoice_service.update_invoice_fields(
            invoice.id, {"notes": "call first", "customer_name": "Acme Holdings"}, owner,
        )
        assert updated.notes == "call first"
        assert updated.customer_name == "Acme Holdings"

    def test_field_edit_rejects_amount(self, db_session, owner, widget):
        invoice = _create(owner, [InvoiceLineInput(item_id=widget.id, quantity=1)])
        with pytest.raises(ValidationError):
            invoice_service.update_invoice_fields(invoice.id, {"amount_cents": 1}, owner)


class TestInvoiceDetail:

    def test_detail_enriches_lines_and_payments(self, db_session, owner, widget, gadget):
        invoice = _create(owner, [
            InvoiceLineInput(item_id=widget.id, quantity=2),
            InvoiceLineInput(item_id=gadget.id, quantity=1, adjusted_price_cents=2000),
        ], amount_cents=10000)
        invoice_service.record_payment(invoice.id, amount_cents=6000, method="cash", notes=None, acting_user=owner)
        invoice_service.record_payment(invoice.id, amount_cents=1000, method="card", notes=None, acting_user=owner)

        detail = invoice_service.get_invoice_detail(invoice.id, owner)

        widget_line, gadget_line = detail["items"]
        assert widget_line["name"] == "Widget"
        assert widget_line["subtotal"] == 20.0
        assert gadget_line["price"] == 25.0
        assert gadget_line["adjustedPrice"] == 20.0
        assert gadget_line["subtotal"] == 20.0

        assert [p["method"] for p in detail["payments"]] == ["card", "cash"]
        assert detail["totalPaid"] == 70.0
        assert detail["balance"] == 30.0

    def test_detail_with_deleted_item(self, db_session, owner, widget):
        invoice = _create(owner, [InvoiceLineInput(item_id=widget.id, quantity=2)])
        db_session.delete(db_session.get(InventoryItem, widget.id))
        db_session.commit()

        line = invoice_service.get_invoice_detail(invoice.id, owner)["items"][0]
        assert line["name"] == "Unknown Item"
        assert line["price"] == 0
        assert line["subtotal"] == 0

    def test_detail_forbidden_for_other_tenant(self, db_session, owner, other_owner, widget):
        invoice = _create(owner, [InvoiceLineInput(item_id=widget.id, quantity=1)])
        with pytest.raises(ForbiddenError):
            invoice_service.get_invoice_detail(invoice.id, other_owner)
