# backend/stockbill/routes/system.py
"""
System health endpoint.

Each check runs one cheap query against a table the core depends on and
reports its latency, so deployments can tell a storage outage (503) from an
application error.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import InventoryItem, Invoice, PosSale, SessionToken, User
from stockbill.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def _timed(label: str, check) -> dict:
    """Run `check()` and wrap its details with status and latency."""
    started = time.perf_counter()
    try:
        details = check()
        status = {"status": "healthy", "details": details}
    except Exception:
        current_app.logger.exception("%s health check failed", label)
        db.session.rollback()
        status = {"status": "unhealthy", "error": f"{label} error"}
    status["latency_ms"] = round((time.perf_counter() - started) * 1000, 2)
    return status


def _ledger_counts() -> dict:
    return {
        "users": db.session.query(User).count(),
        "inventory_items": db.session.query(InventoryItem).count(),
        "invoices": db.session.query(Invoice).count(),
        "pos_sales": db.session.query(PosSale).count(),
    }


def _session_counts() -> dict:
    live = db.session.query(SessionToken).filter(SessionToken.is_revoked.is_(False))
    return {
        "active_sessions": live.count(),
        # Expired but not yet removed by `flask notifications cleanup-sessions`
        "expired_pending_cleanup": live.filter(SessionToken.expires_at < utcnow()).count(),
    }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: all checks healthy
    - 503: one or more checks unhealthy
    """
    checks = {
        "database": _timed("Database", _ledger_counts),
        "session_service": _timed("Session store", _session_counts),
    }
    healthy = all(check["status"] == "healthy" for check in checks.values())

    body = {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": to_utc_z(utcnow()),
        "checks": checks,
    }
    return body, 200 if healthy else 503
