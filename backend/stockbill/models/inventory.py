from __future__ import annotations

from ..extensions import db
from stockbill.money import from_cents
from stockbill.time_utils import to_utc_z


class InventoryItem(db.Model):
    """
    Stock-keeping item owned by one user.

    `quantity` is the ledger value. It is only changed through
    inventory_service.adjust_quantity inside the transaction of the business
    event (invoice, POS sale, restock). It may go negative.
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.UniqueConstraint("owner_id", "sku", name="uq_inventory_items_owner_sku"),
        db.Index("ix_inventory_items_owner_name", "owner_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=False)
    category = db.Column(db.String(120), nullable=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=5)

    # Authoritative storage in cents
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    cost_price_cents = db.Column(db.Integer, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    owner = db.relationship("User", backref=db.backref("inventory_items", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_low_stock(self) -> bool:
        return self.quantity < self.low_stock_threshold

    def __repr__(self) -> str:
        return f"<InventoryItem id={self.id} sku={self.sku!r} qty={self.quantity} owner_id={self.owner_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ownerId": self.owner_id,
            "name": self.name,
            "sku": self.sku,
            "category": self.category,
            "quantity": self.quantity,
            "lowStockThreshold": self.low_stock_threshold,
            "price": from_cents(self.price_cents),
            "costPrice": from_cents(self.cost_price_cents) if self.cost_price_cents is not None else None,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class RestockRecord(db.Model):
    """Append-only audit row paired with every +quantity ledger movement."""
    __tablename__ = "restock_history"
    __table_args__ = (
        db.Index("ix_restock_history_owner_date", "owner_id", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    # Soft reference: the item may be deleted later
    item_id = db.Column(db.Integer, nullable=False, index=True)
    item_name = db.Column(db.String(255), nullable=False)
    item_sku = db.Column(db.String(64), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    previous_quantity = db.Column(db.Integer, nullable=False)
    new_quantity = db.Column(db.Integer, nullable=False)
    date = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "itemId": self.item_id,
            "itemName": self.item_name,
            "itemSku": self.item_sku,
            "quantity": self.quantity,
            "previousQuantity": self.previous_quantity,
            "newQuantity": self.new_quantity,
            "date": to_utc_z(self.date),
            "userId": self.owner_id,
        }


class InventoryTransaction(db.Model):
    """
    Audit header for a multi-item stock movement (currently POS sales).

    One row per business event; the per-item deltas live in
    InventoryTransactionLine.
    """
    __tablename__ = "inventory_transactions"
    __table_args__ = (
        db.Index("ix_inventory_tx_owner_time", "owner_id", "timestamp"),
        db.Index("ix_inventory_tx_related", "type", "related_document_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    type = db.Column(db.String(16), nullable=False)
    related_document_id = db.Column(db.Integer, nullable=False)
    timestamp = db.Column(db.DateTime(timezone=True), nullable=False)

    lines = db.relationship(
        "InventoryTransactionLine",
        backref="transaction",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="InventoryTransactionLine.id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "relatedDocumentId": self.related_document_id,
            "items": [line.to_dict() for line in self.lines],
            "userId": self.owner_id,
            "timestamp": to_utc_z(self.timestamp),
        }


class InventoryTransactionLine(db.Model):
    __tablename__ = "inventory_transaction_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("inventory_transactions.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, nullable=False)
    # Negative for sales
    quantity_delta = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {"itemId": self.item_id, "quantity": self.quantity_delta}
