# Overview: Service-layer operations for user accounts; encapsulates business logic and database work.

from __future__ import annotations

import re
from datetime import datetime

from ..errors import NotFoundError
from ..extensions import db
from ..models import InventoryItem, Invoice, User
from ..models.auth import SUBSCRIPTION_ACTIVE, SUBSCRIPTION_EXPIRED, SUBSCRIPTION_INACTIVE
from ..validation import ConflictError, ValidationError
from . import session_service, subscription_service


EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
VALID_ROLES = ("user", "admin")
VALID_SUBSCRIPTION_STATUSES = (SUBSCRIPTION_ACTIVE, SUBSCRIPTION_INACTIVE, SUBSCRIPTION_EXPIRED)
RECENT_INVOICE_LIMIT = 10
USER_EDITABLE_ATTRS = ("name", "email", "role", "is_active", "subscription_status", "subscription_end_date")


def create_user(
    name: str,
    email: str,
    role: str = "user",
    subscription_end_date: datetime | None = None,
) -> User:
    """
    Create a tenant account.

    A subscription end date marks the account active; otherwise it starts
    inactive. Email is unique across the system.
    """
    name = (name or "").strip()
    email = (email or "").strip().lower()
    if not name:
        raise ValidationError("Name is required")
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("Invalid email format")
    if role not in VALID_ROLES:
        raise ValidationError(f"Role must be one of {', '.join(VALID_ROLES)}")

    if db.session.query(User).filter_by(email=email).first():
        raise ConflictError(f"User with email {email} already exists")

    user = User(
        name=name,
        email=email,
        role=role,
        is_active=True,
        subscription_status=SUBSCRIPTION_ACTIVE if subscription_end_date else SUBSCRIPTION_INACTIVE,
        subscription_end_date=subscription_end_date,
    )
    db.session.add(user)
    db.session.commit()
    return user


def get_user_by_email(email: str) -> User | None:
    return db.session.query(User).filter_by(email=(email or "").strip().lower()).first()


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def get_user_overview(user_id: int) -> dict:
    """Account plus invoice/inventory counts and the latest invoices."""
    user = get_user(user_id)
    invoices = db.session.query(Invoice).filter(Invoice.owner_id == user.id)
    recent = invoices.order_by(Invoice.created_at.desc(), Invoice.id.desc()).limit(RECENT_INVOICE_LIMIT).all()
    return {
        "user": user.to_dict(),
        "stats": {
            "invoiceCount": invoices.count(),
            "recentInvoices": [invoice.to_dict() for invoice in recent],
            "inventoryCount": db.session.query(InventoryItem).filter_by(owner_id=user.id).count(),
        },
    }


def update_user(user_id: int, patch: dict, acting_user: User | None = None) -> User:
    """
    Admin edit of name, email, role, active flag and subscription.

    A new end date without an explicit status is reconciled the same way the
    subscription sweep does it. Deactivation revokes every live token.
    """
    unknown = [key for key in patch if key not in USER_EDITABLE_ATTRS]
    if unknown:
        raise ValidationError(f"Field not allowed: {unknown[0]}")

    user = get_user(user_id)
    changes = dict(patch)

    if "email" in changes:
        email = changes["email"].strip().lower()
        if not EMAIL_PATTERN.match(email):
            raise ValidationError("Invalid email format")
        if db.session.query(User).filter(User.email == email, User.id != user.id).first():
            raise ConflictError(f"User with email {email} already exists")
        changes["email"] = email
    if "role" in changes and changes["role"] not in VALID_ROLES:
        raise ValidationError(f"Role must be one of {', '.join(VALID_ROLES)}")
    if "subscription_status" in changes and changes["subscription_status"] not in VALID_SUBSCRIPTION_STATUSES:
        raise ValidationError(f"Subscription status must be one of {', '.join(VALID_SUBSCRIPTION_STATUSES)}")

    deactivating = changes.get("is_active") is False and user.is_active
    if deactivating and acting_user is not None and acting_user.id == user.id:
        raise ConflictError("Admins cannot deactivate their own account")

    for attr, value in changes.items():
        setattr(user, attr, value)
    db.session.commit()

    if "subscription_end_date" in patch and "subscription_status" not in patch:
        subscription_service.reconcile_status(user)
    if deactivating:
        session_service.revoke_all_user_sessions(user.id, reason="User account deactivated")
    return user


def deactivate_user(user_id: int, acting_user: User | None = None) -> int:
    """
    Soft delete: the account is marked inactive and its tokens revoked.

    Rows it owns stay in place. Returns the number of revoked tokens.
    """
    user = get_user(user_id)
    if acting_user is not None and acting_user.id == user.id:
        raise ConflictError("Admins cannot deactivate their own account")

    user.is_active = False
    db.session.commit()
    return session_service.revoke_all_user_sessions(user.id, reason="User account deactivated")
