# Overview: Service-layer operations for notifications; low-stock and subscription sweeps plus inbox queries.

"""
Notification Policy

The sweeps (check_low_stock_items, check_subscription_expirations,
cleanup_old_notifications) are invoked synchronously from the CLI or an
external scheduler. They read ledger and user state and write notification
rows; they never change inventory.
"""

from __future__ import annotations

from collections import OrderedDict
from datetime import datetime, timedelta
import math

from flask import current_app

from ..errors import NotFoundError
from ..extensions import db
from ..models import Notification, User
from ..models.auth import SUBSCRIPTION_ACTIVE, SUBSCRIPTION_EXPIRED
from ..models.notifications import (
    NOTIFICATION_LOW_STOCK,
    NOTIFICATION_SUBSCRIPTION,
    NOTIFICATION_TYPES,
)
from ..validation import ValidationError
from stockbill.time_utils import utcnow
from .inventory_service import low_stock_items


DEFAULT_LIST_LIMIT = 10
MAX_LIST_LIMIT = 100
DEFAULT_WARNING_DAYS = 7
DEFAULT_RETENTION_DAYS = 30
LOW_STOCK_NAMED_LIMIT = 3

LOW_STOCK_TITLE = "Low Stock Alert"


def create_notification(
    user_id: int,
    type: str,
    title: str,
    message: str,
    related_item_id: int | None = None,
    *,
    commit: bool = True,
) -> Notification:
    if type not in NOTIFICATION_TYPES:
        raise ValidationError(f"Invalid notification type: {type}")

    notification = Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        read=False,
        related_item_id=related_item_id,
        created_at=utcnow(),
    )
    db.session.add(notification)
    if commit:
        db.session.commit()
    return notification


# =============================================================================
# SWEEPS
# =============================================================================

def low_stock_message(items) -> tuple[str, int | None]:
    """Message text (and related item for single-item alerts) for one owner."""
    if len(items) == 1:
        item = items[0]
        return f"{item.name} is running low on stock ({item.quantity} remaining).", item.id
    if len(items) <= LOW_STOCK_NAMED_LIMIT:
        names = ", ".join(item.name for item in items)
        return f"Multiple items are running low on stock: {names}.", None
    return f"{len(items)} items are running low on stock. Please check your inventory.", None


def check_low_stock_items() -> int:
    """One low-stock notification per owner with items below threshold."""
    items = low_stock_items()

    by_owner: "OrderedDict[int, list]" = OrderedDict()
    for item in items:
        by_owner.setdefault(item.owner_id, []).append(item)

    for owner_id, owner_items in by_owner.items():
        message, related_item_id = low_stock_message(owner_items)
        create_notification(
            owner_id,
            NOTIFICATION_LOW_STOCK,
            LOW_STOCK_TITLE,
            message,
            related_item_id,
            commit=False,
        )

    db.session.commit()
    current_app.logger.info(
        "Low stock sweep: %s items, %s notifications", len(items), len(by_owner)
    )
    return len(by_owner)


def check_subscription_expirations(now: datetime | None = None, warning_days: int | None = None) -> dict:
    """
    Warn active users whose subscription ends within `warning_days`, and
    expire active users whose end date has passed.
    """
    now = now or utcnow()
    if warning_days is None:
        warning_days = current_app.config.get("SUBSCRIPTION_WARNING_DAYS", DEFAULT_WARNING_DAYS)
    horizon = now + timedelta(days=warning_days)

    expiring = db.session.query(User).filter(
        User.subscription_status == SUBSCRIPTION_ACTIVE,
        User.subscription_end_date >= now,
        User.subscription_end_date <= horizon,
    ).all()

    for user in expiring:
        days_left = math.ceil((user.subscription_end_date - now).total_seconds() / 86400)
        plural = "" if days_left == 1 else "s"
        create_notification(
            user.id,
            NOTIFICATION_SUBSCRIPTION,
            "Subscription Expiring Soon",
            f"Your subscription will expire in {days_left} day{plural}. "
            "Please renew to avoid service interruption.",
            commit=False,
        )

    expired = db.session.query(User).filter(
        User.subscription_status == SUBSCRIPTION_ACTIVE,
        User.subscription_end_date < now,
    ).all()

    for user in expired:
        user.subscription_status = SUBSCRIPTION_EXPIRED
        create_notification(
            user.id,
            NOTIFICATION_SUBSCRIPTION,
            "Subscription Expired",
            "Your subscription has expired. Please renew to continue using all features.",
            commit=False,
        )

    db.session.commit()
    current_app.logger.info(
        "Subscription sweep: %s expiring, %s expired", len(expiring), len(expired)
    )
    return {"expiring": len(expiring), "expired": len(expired)}


def cleanup_old_notifications(days_to_keep: int | None = None, now: datetime | None = None) -> int:
    """Delete read notifications older than the retention window."""
    if days_to_keep is None:
        days_to_keep = current_app.config.get("NOTIFICATION_RETENTION_DAYS", DEFAULT_RETENTION_DAYS)
    cutoff = (now or utcnow()) - timedelta(days=days_to_keep)

    deleted = db.session.query(Notification).filter(
        Notification.created_at < cutoff,
        Notification.read.is_(True),
    ).delete(synchronize_session=False)
    db.session.commit()
    current_app.logger.info("Deleted %s old notifications", deleted)
    return deleted


# =============================================================================
# INBOX
# =============================================================================

def list_notifications(user_id: int, limit: int = DEFAULT_LIST_LIMIT, unread_only: bool = False) -> list[Notification]:
    limit = min(max(limit, 1), MAX_LIST_LIMIT)
    query = db.session.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        query = query.filter(Notification.read.is_(False))
    return query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()


def notification_counts(user_id: int) -> dict:
    base = db.session.query(Notification).filter(Notification.user_id == user_id)
    return {
        "total": base.count(),
        "unread": base.filter(Notification.read.is_(False)).count(),
    }


def _get_owned(user_id: int, notification_id: int) -> Notification:
    notification = db.session.query(Notification).filter_by(id=notification_id, user_id=user_id).first()
    if not notification:
        raise NotFoundError("Notification not found")
    return notification


def mark_read(user_id: int, notification_id: int) -> Notification:
    notification = _get_owned(user_id, notification_id)
    notification.read = True
    db.session.commit()
    return notification


def mark_all_read(user_id: int) -> int:
    updated = db.session.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.read.is_(False),
    ).update({"read": True}, synchronize_session=False)
    db.session.commit()
    return updated


def delete_notification(user_id: int, notification_id: int) -> None:
    notification = _get_owned(user_id, notification_id)
    db.session.delete(notification)
    db.session.commit()
