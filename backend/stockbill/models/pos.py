from __future__ import annotations

from ..extensions import db
from stockbill.money import from_cents
from stockbill.time_utils import to_utc_z

POS_SALE_COMPLETED = "completed"


class PosSale(db.Model):
    """
    Point-of-sale transaction, paid at the counter.

    Written in the same commit as its inventory decrements and the
    InventoryTransaction audit row.
    """
    __tablename__ = "pos_sales"
    __table_args__ = (
        db.Index("ix_pos_sales_owner_time", "owner_id", "timestamp"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    total_cents = db.Column(db.Integer, nullable=False)

    # Payment details as sent by the register; method is denormalized for reporting
    payment = db.Column(db.JSON, nullable=False)
    payment_method = db.Column(db.String(32), nullable=False)

    status = db.Column(db.String(16), nullable=False, default=POS_SALE_COMPLETED)
    timestamp = db.Column(db.DateTime(timezone=True), nullable=False)

    lines = db.relationship(
        "PosSaleLine",
        backref="sale",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="PosSaleLine.id",
    )

    def __repr__(self) -> str:
        return f"<PosSale id={self.id} total_cents={self.total_cents} owner_id={self.owner_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.owner_id,
            "items": [line.to_dict() for line in self.lines],
            "total": from_cents(self.total_cents),
            "payment": self.payment,
            "status": self.status,
            "timestamp": to_utc_z(self.timestamp),
        }


class PosSaleLine(db.Model):
    __tablename__ = "pos_sale_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("pos_sales.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False, default="")
    quantity = db.Column(db.Integer, nullable=False)
    # Unit price charged at the register
    price_cents = db.Column(db.Integer, nullable=False)

    @property
    def line_total_cents(self) -> int:
        return self.price_cents * self.quantity

    def to_dict(self) -> dict:
        return {
            "itemId": self.item_id,
            "name": self.name,
            "quantity": self.quantity,
            "price": from_cents(self.price_cents),
        }
