# Overview: Service-layer operations for bearer-token sessions; issue, resolve and revoke.

"""
Bearer Tokens

Accounts are provisioned from the CLI (`flask users issue-token`), which
prints an opaque token once. Only its SHA-256 digest is stored in
session_tokens, together with the expiry and revocation state, so every
worker process resolves the same identity for the same token.

A token resolves to a SessionContext while it is:
- known and not revoked
- before expires_at (SESSION_TTL_HOURS after issue)
- owned by an active user
"""

import secrets
import hashlib
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..errors import NotFoundError
from ..extensions import db
from ..models import SessionToken, User
from stockbill.time_utils import utcnow


DEFAULT_SESSION_TTL_HOURS = 24
TOKEN_BYTES = 32


@dataclass
class SessionContext:
    """The acting user behind a request, plus the token row it came from."""
    user: User
    session: SessionToken

    @property
    def user_id(self) -> int:
        return self.user.id

    @property
    def is_admin(self) -> bool:
        return self.user.is_admin


def generate_token() -> str:
    """64 hex characters from the OS CSPRNG; handed to the client, never stored."""
    return secrets.token_hex(TOKEN_BYTES)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def _ttl() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_TTL_HOURS", DEFAULT_SESSION_TTL_HOURS))


def _mark_revoked(session: SessionToken, reason: str, now) -> None:
    session.is_revoked = True
    session.revoked_at = now
    session.revoked_reason = reason


def create_session(user_id: int) -> tuple[SessionToken, str]:
    """
    Issue a token for `user_id`.

    Returns (session_row, plaintext_token). Raises NotFoundError for an
    unknown user.
    """
    if db.session.get(User, user_id) is None:
        raise NotFoundError("User not found")

    token = generate_token()
    issued_at = utcnow()
    session = SessionToken(
        user_id=user_id,
        token_hash=hash_token(token),
        created_at=issued_at,
        last_used_at=issued_at,
        expires_at=issued_at + _ttl(),
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()
    return session, token


def validate_session(token: str) -> SessionContext | None:
    """
    Resolve a bearer token, or None when it must be rejected.

    Tokens of a deactivated user are revoked on first sight so later
    requests fail without the user lookup.
    """
    if not token:
        return None

    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()
    if session is None:
        return None

    now = utcnow()
    if session.expires_at <= now:
        return None

    user = db.session.get(User, session.user_id)
    if user is None or not user.is_active:
        _mark_revoked(session, "User account deactivated", now)
        db.session.commit()
        return None

    session.last_used_at = now
    db.session.commit()
    return SessionContext(user=user, session=session)


def revoke_session(token: str, reason: str = "logout") -> bool:
    """Revoke one token. False when the token was never issued."""
    session = db.session.query(SessionToken).filter_by(token_hash=hash_token(token)).first()
    if session is None:
        return False
    _mark_revoked(session, reason, utcnow())
    db.session.commit()
    return True


def revoke_all_user_sessions(user_id: int, reason: str = "revoked") -> int:
    """Revoke every live token of a user; returns how many were live."""
    revoked = db.session.query(SessionToken).filter_by(
        user_id=user_id,
        is_revoked=False,
    ).update(
        {"is_revoked": True, "revoked_at": utcnow(), "revoked_reason": reason},
        synchronize_session=False,
    )
    db.session.commit()
    return revoked


def cleanup_expired_sessions() -> int:
    """Delete token rows past expires_at, revoked or not."""
    removed = db.session.query(SessionToken).filter(
        SessionToken.expires_at < utcnow()
    ).delete(synchronize_session=False)
    db.session.commit()
    return removed
