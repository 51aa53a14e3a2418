# Overview: Pytest coverage for POS sale processing, listing and reports.

"""
POS Sale Engine Tests

A sale, its stock decrements and its InventoryTransaction audit row commit
together; reports zero-fill every day of the requested range.
"""

from datetime import timedelta

import pytest
from stockbill.errors import TransactionFailedError
from stockbill.models import InventoryItem, InventoryTransaction, InventoryTransactionLine, PosSale
from stockbill.services import pos_service
from stockbill.time_utils import utcnow
from stockbill.validation import SaleLineInput, ValidationError


def _line(item, quantity, price_cents=None):
    return SaleLineInput(
        item_id=item.id,
        name=item.name,
        quantity=quantity,
        price_cents=item.price_cents if price_cents is None else price_cents,
    )


class TestProcessSale:

    def test_sale_decrements_stock_and_writes_audit(self, db_session, owner, widget):
        sale = pos_service.process_sale(
            owner.id,
            items=[_line(widget, 3)],
            total_cents=3000,
            payment={"method": "cash", "tendered": 40},
        )

        assert sale.status == "completed"
        assert sale.payment_method == "cash"
        assert sale.payment["tendered"] == 40
        assert db_session.get(InventoryItem, widget.id).quantity == 7

        transactions = pos_service.get_inventory_transactions_for_sale(owner.id, sale.id)
        assert len(transactions) == 1
        tx = transactions[0]
        assert tx.type == "sale"
        assert [(line.item_id, line.quantity_delta) for line in tx.lines] == [(widget.id, -3)]
        assert tx.to_dict()["items"] == [{"itemId": widget.id, "quantity": -3}]

    def test_multi_line_sale(self, db_session, owner, widget, gadget):
        sale = pos_service.process_sale(
            owner.id,
            items=[_line(widget, 2), _line(gadget, 1)],
            total_cents=4500,
            payment={"method": "card"},
        )
        assert len(sale.lines) == 2
        assert db_session.get(InventoryItem, widget.id).quantity == 8
        assert db_session.get(InventoryItem, gadget.id).quantity == 2
        assert db_session.query(InventoryTransactionLine).count() == 2

    def test_missing_item_rolls_back_everything(self, db_session, owner, widget):
        missing = SaleLineInput(item_id=99999, name="Ghost", quantity=1, price_cents=100)
        with pytest.raises(TransactionFailedError):
            pos_service.process_sale(
                owner.id,
                items=[_line(widget, 3), missing],
                total_cents=3100,
                payment={"method": "cash"},
            )

        assert db_session.get(InventoryItem, widget.id).quantity == 10
        assert db_session.query(PosSale).count() == 0
        assert db_session.query(InventoryTransaction).count() == 0

    def test_other_tenant_item_rolls_back(self, db_session, owner, other_owner, make_item):
        foreign = make_item(other_owner.id, sku="B-001")
        with pytest.raises(TransactionFailedError):
            pos_service.process_sale(
                owner.id, items=[_line(foreign, 1)], total_cents=1000, payment={"method": "cash"},
            )
        assert db_session.get(InventoryItem, foreign.id).quantity == 10

    def test_oversell_is_allowed(self, db_session, owner, gadget):
        pos_service.process_sale(
            owner.id, items=[_line(gadget, 5)], total_cents=12500, payment={"method": "cash"},
        )
        assert db_session.get(InventoryItem, gadget.id).quantity == -2

    @pytest.mark.parametrize("kwargs", [
        {"items": [], "total_cents": 1000, "payment": {"method": "cash"}},
        {"total_cents": 0, "payment": {"method": "cash"}},
        {"total_cents": 1000, "payment": {}},
    ])
    def test_invalid_sale_rejected(self, db_session, owner, widget, kwargs):
        kwargs.setdefault("items", [_line(widget, 1)])
        with pytest.raises(ValidationError):
            pos_service.process_sale(owner.id, **kwargs)
        assert db_session.query(PosSale).count() == 0
        assert db_session.get(InventoryItem, widget.id).quantity == 10


class TestListSales:

    def test_newest_first_with_pagination(self, db_session, owner, other_owner, widget, make_item):
        ids = [
            pos_service.process_sale(
                owner.id, items=[_line(widget, 1)], total_cents=1000, payment={"method": "cash"},
            ).id
            for _ in range(3)
        ]
        foreign = make_item(other_owner.id, sku="B-001")
        pos_service.process_sale(
            other_owner.id, items=[_line(foreign, 1)], total_cents=1000, payment={"method": "cash"},
        )

        result = pos_service.list_sales(owner.id, limit=2)
        assert result["pagination"] == {"total": 3, "limit": 2, "skip": 0}
        assert [s["id"] for s in result["sales"]] == [ids[2], ids[1]]

        page_two = pos_service.list_sales(owner.id, limit=2, skip=2)
        assert [s["id"] for s in page_two["sales"]] == [ids[0]]

    def test_limit_is_capped(self, db_session, owner):
        result = pos_service.list_sales(owner.id, limit=10_000)
        assert result["pagination"]["limit"] == pos_service.MAX_SALES_LIMIT


class TestSalesReport:

    def test_dates_required(self, db_session, owner):
        with pytest.raises(ValidationError) as exc_info:
            pos_service.generate_sales_report(owner.id, None, "2026-10-01")
        assert exc_info.value.message == "Start and end dates are required"

    def test_invalid_date(self, db_session, owner):
        with pytest.raises(ValidationError):
            pos_service.generate_sales_report(owner.id, "yesterday", "2026-10-01")

    def test_range_is_capped(self, db_session, owner):
        report = pos_service.generate_sales_report(owner.id, "2024-01-01", "2024-12-31")
        assert len(report["dailySales"]) == pos_service.MAX_REPORT_DAYS

        with pytest.raises(ValidationError) as exc_info:
            pos_service.generate_sales_report(owner.id, "2024-01-01", "2025-01-01")
        assert exc_info.value.message == "Report range cannot exceed 366 days"

        with pytest.raises(ValidationError):
            pos_service.generate_sales_report(owner.id, "2026-01-01", "9999-12-31")

    def test_empty_range_is_zero_filled(self, db_session, owner):
        report = pos_service.generate_sales_report(owner.id, "2026-01-01", "2026-01-07")

        assert len(report["dailySales"]) == 7
        assert all(day["total"] == 0 and day["count"] == 0 for day in report["dailySales"])
        assert report["transactionCount"] == 0
        assert report["averageTransaction"] == 0
        assert report["topProducts"] == []

    def test_report_aggregates(self, db_session, owner, widget, gadget):
        pos_service.process_sale(
            owner.id, items=[_line(widget, 2)], total_cents=2000, payment={"method": "cash"},
        )
        pos_service.process_sale(
            owner.id, items=[_line(gadget, 1), _line(widget, 1)], total_cents=3500, payment={"method": "card"},
        )

        today = utcnow().date()
        start = (today - timedelta(days=2)).isoformat()
        report = pos_service.generate_sales_report(owner.id, start, today.isoformat())

        assert len(report["dailySales"]) == 3
        assert report["dailySales"][-1] == {"date": today.isoformat(), "total": 55.0, "count": 2}
        assert report["dailySales"][0]["count"] == 0
        assert report["totalSales"] == 55.0
        assert report["transactionCount"] == 2
        assert report["averageTransaction"] == pytest.approx(27.5)

        methods = {m["method"]: m for m in report["paymentMethods"]}
        assert methods["cash"]["total"] == 20.0
        assert methods["card"]["count"] == 1

        assert [p["name"] for p in report["topProducts"]] == ["Widget", "Gadget"]
        assert report["topProducts"][0]["quantity"] == 3
        assert report["topProducts"][0]["revenue"] == 30.0
        assert report["dateRange"] == {"start": start, "end": today.isoformat()}
