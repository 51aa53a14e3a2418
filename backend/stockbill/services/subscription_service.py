# Overview: Service-layer operations for subscription status; keeps the cached status in line with the end date.

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..models import User
from ..models.auth import SUBSCRIPTION_ACTIVE, SUBSCRIPTION_EXPIRED, SUBSCRIPTION_INACTIVE
from stockbill.time_utils import to_utc_z, utcnow


def reconcile_status(user: User, now: datetime | None = None) -> str:
    """
    Bring `subscription_status` in line with `subscription_end_date`.

    - active with an end date in the past -> expired
    - expired/inactive with an end date in the future -> active
    Users without an end date keep their status.
    """
    now = now or utcnow()
    status = user.subscription_status or SUBSCRIPTION_INACTIVE
    end = user.subscription_end_date

    if end is not None:
        if status == SUBSCRIPTION_ACTIVE and end < now:
            status = SUBSCRIPTION_EXPIRED
        elif status in (SUBSCRIPTION_EXPIRED, SUBSCRIPTION_INACTIVE) and end > now:
            status = SUBSCRIPTION_ACTIVE

    if status != user.subscription_status:
        user.subscription_status = status
        db.session.commit()
    return status


def subscription_status(user: User, now: datetime | None = None) -> dict:
    now = now or utcnow()
    status = reconcile_status(user, now)
    end = user.subscription_end_date
    days_remaining = None
    if end is not None and status == SUBSCRIPTION_ACTIVE:
        days_remaining = max((end - now).days, 0)
    return {
        "status": status,
        "endDate": to_utc_z(end),
        "daysRemaining": days_remaining,
    }
