from __future__ import annotations

from ..extensions import db
from stockbill.time_utils import to_utc_z

NOTIFICATION_SUBSCRIPTION = "subscription"
NOTIFICATION_LOW_STOCK = "lowStock"
NOTIFICATION_SYSTEM = "system"

NOTIFICATION_TYPES = (NOTIFICATION_SUBSCRIPTION, NOTIFICATION_LOW_STOCK, NOTIFICATION_SYSTEM)


class Notification(db.Model):
    __tablename__ = "notifications"
    __table_args__ = (
        db.Index("ix_notifications_user_read", "user_id", "read"),
        db.Index("ix_notifications_user_created", "user_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    type = db.Column(db.String(16), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)
    read = db.Column(db.Boolean, nullable=False, default=False)
    related_item_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "read": self.read,
            "relatedItemId": self.related_item_id,
            "createdAt": to_utc_z(self.created_at),
        }
